"""Role model and the user/role association table."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from tokenlife.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin

user_roles = Table(
    "user_roles",
    db.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Role(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Named role granted to principals.

    Role names are copied into every access token as the ``roles`` claim at
    mint time; changing membership affects only tokens minted afterwards.

    Fields
    ------
    name : str
        Unique role name, stored trimmed and lower-cased.
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (UniqueConstraint("name", name="uq_roles_name"),)

    @validates("name")
    def _normalize_name(self, key: str, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Role name is required.")
        return value.strip().lower()
