"""User repository: principal lookups, role membership and credentials."""

from __future__ import annotations

from collections.abc import Iterable
from typing import cast

from sqlalchemy import select

from tokenlife.models.role import Role
from tokenlife.models.user import User
from tokenlife.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER creates tokens; the token lifecycle reads principals through
    :class:`tokenlife.services.principals.store.SQLPrincipalStore`.
    """

    model = User

    def _filterable_fields(self):
        return {"email": User.email}

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.lower().strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        stmt = select(User.id).where(User.email == email.lower().strip())
        return bool(self.session.execute(stmt).first())

    def authenticate(self, email: str, password: str) -> User | None:
        """Return the user when ``password`` matches, else ``None``."""
        user = self.get_by_email(email)
        if not user or not user.verify_password(password):
            return None
        return user

    # ---------------------------- Writes ----------------------------

    def create(self, *, email: str, password: str, roles: Iterable[str] = ()) -> User:
        """Stage a new user with hashed password and the given roles."""
        user = User(email=email)
        user.password = password
        user.roles = [self.ensure_role(name) for name in sorted(set(roles))]
        return self.add(user)

    def ensure_role(self, name: str) -> Role:
        """Return the role called ``name``, staging it when missing."""
        normalized = name.strip().lower()
        role = self.session.execute(select(Role).where(Role.name == normalized)).scalars().first()
        if role is None:
            role = Role(name=normalized)
            self.session.add(role)
            self.flush()
        return role

    def grant_roles(self, user: User, names: Iterable[str]) -> User:
        """Add roles to ``user`` without removing existing ones."""
        current = user.role_names
        for name in names:
            if name.strip().lower() not in current:
                user.roles.append(self.ensure_role(name))
        self.flush()
        return user
