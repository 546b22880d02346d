"""Refresh token model: one row per active refresh token."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tokenlife.core.extensions import db

from .base import PKMixin, ReprMixin, UTCDateTime

if TYPE_CHECKING:
    from .user import User


class RefreshToken(PKMixin, ReprMixin, db.Model):
    """
    Persisted refresh token.

    Deleting the row is the revocation; there is no soft-delete flag.
    Expired rows are ignored at validation time and linger until the
    per-user bound evicts them.

    Fields
    ------
    user_id : int
        Owner principal.
    secret_hash : str
        SHA-256 hex digest of the secret handed to the client.
    created_at : datetime
        Issuance instant; FIFO eviction order (ties broken by ``id``).
    expires_at : datetime
        Absolute expiry (UTC).
    issuing_ip : str | None
        Caller address at issuance, for optional IP consistency checks.
    """

    __tablename__ = "refresh_tokens"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    secret_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    issuing_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        UniqueConstraint("secret_hash", name="uq_refresh_tokens_secret_hash"),
        Index("ix_refresh_tokens_user_id_created_at", "user_id", "created_at"),
    )

    def is_active(self, now: datetime) -> bool:
        """Return ``True`` while ``now`` is strictly before ``expires_at``."""
        return now < self.expires_at
