# tokenlife/services/principals/store.py
"""
SQL-backed principal store.

Reads go through a read-only Unit of Work and are detached into
:class:`PrincipalView` values before the transaction ends, so nothing
ORM-bound leaks into the token lifecycle.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.exc import IntegrityError

from tokenlife.models.user import User
from tokenlife.repositories.user import UserRepository
from tokenlife.services._shared.base import BaseService
from tokenlife.services._shared.errors import ConflictError
from tokenlife.services._shared.ports import PrincipalStore, PrincipalView


def to_view(user: User) -> PrincipalView:
    return PrincipalView(
        id=str(user.id),
        email=user.email,
        roles=user.role_names,
        created_at=user.created_at,
    )


def _coerce_id(principal_id: str) -> int | None:
    text = str(principal_id).strip()
    return int(text) if text.isdigit() else None


class SQLPrincipalStore(BaseService, PrincipalStore):
    """Principal store over the ``users``/``roles`` tables."""

    def find_by_email(self, email: str) -> PrincipalView | None:
        with self.ro_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_by_email(email)
            return to_view(user) if user else None

    def find_by_id(self, principal_id: str) -> PrincipalView | None:
        user_id = _coerce_id(principal_id)
        if user_id is None:
            return None
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            return to_view(user) if user else None

    def roles_of(self, principal: PrincipalView) -> frozenset[str]:
        # Roles are re-read so that grants since sign-in show up in new tokens.
        fresh = self.find_by_id(principal.id)
        return fresh.roles if fresh else frozenset()

    def authenticate(self, email: str, password: str) -> PrincipalView | None:
        with self.ro_uow() as uow:
            user = uow.users.authenticate(email, password)
            return to_view(user) if user else None

    # ------------------------------------------------------------------ #
    # Writes (registration and CLI only)
    # ------------------------------------------------------------------ #

    def register(self, email: str, password: str, roles: Iterable[str] = ()) -> PrincipalView:
        """
        Create a principal in one transaction.

        :raises ConflictError: When the email is already registered.
        """
        try:
            with self.rw_uow() as uow:
                repo: UserRepository = uow.users
                if repo.exists_by_email(email):
                    raise ConflictError("User", "email already in use")
                user = repo.create(email=email, password=password, roles=roles)
                repo.flush()
                view = to_view(user)
        except IntegrityError as exc:
            # Concurrent registration won the unique index race.
            raise ConflictError("User", "email already in use") from exc
        return view

    def grant(self, email: str, roles: Iterable[str]) -> PrincipalView | None:
        """Add ``roles`` to the principal owning ``email``."""
        with self.rw_uow() as uow:
            user = uow.users.get_by_email(email)
            if user is None:
                return None
            uow.users.grant_roles(user, roles)
            view = to_view(user)
        return view
