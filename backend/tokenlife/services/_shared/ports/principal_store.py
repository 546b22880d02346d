from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from werkzeug.security import check_password_hash, generate_password_hash


@dataclass(frozen=True)
class PrincipalView:
    """
    Read-model for an authenticated principal.

    :ivar id: Stable opaque identifier (string form of the user id).
    :ivar email: Normalised (lower-cased) email.
    :ivar roles: Role names at read time.
    :ivar created_at: Account creation instant (UTC).
    """

    id: str
    email: str
    roles: frozenset[str] = frozenset()
    created_at: datetime | None = None


class PrincipalStore(Protocol):
    """
    Narrow view of the identity collaborator consumed by the token lifecycle.

    Email comparison is case-insensitive.
    """

    def find_by_email(self, email: str) -> PrincipalView | None: ...
    def find_by_id(self, principal_id: str) -> PrincipalView | None: ...
    def roles_of(self, principal: PrincipalView) -> frozenset[str]: ...
    def authenticate(self, email: str, password: str) -> PrincipalView | None: ...


@dataclass
class _Account:
    view: PrincipalView
    password_hash: str
    roles: set[str] = field(default_factory=set)


class InMemoryPrincipalStore(PrincipalStore):
    """Dictionary-backed principal store used in unit tests."""

    def __init__(self) -> None:
        self._by_email: dict[str, _Account] = {}
        self._seq = 0

    def add(
        self, email: str, password: str = "Passw0rd!", roles: Iterable[str] = ()
    ) -> PrincipalView:
        """Register an account and return its view."""
        self._seq += 1
        normalized = email.strip().lower()
        role_set = {r.strip().lower() for r in roles}
        view = PrincipalView(
            id=str(self._seq),
            email=normalized,
            roles=frozenset(role_set),
            created_at=datetime.now(UTC),
        )
        self._by_email[normalized] = _Account(view, generate_password_hash(password), role_set)
        return view

    def remove(self, email: str) -> None:
        self._by_email.pop(email.strip().lower(), None)

    def grant(self, email: str, role: str) -> None:
        self._by_email[email.strip().lower()].roles.add(role.strip().lower())

    def find_by_email(self, email: str) -> PrincipalView | None:
        account = self._by_email.get(email.strip().lower())
        return account.view if account else None

    def find_by_id(self, principal_id: str) -> PrincipalView | None:
        for account in self._by_email.values():
            if account.view.id == str(principal_id):
                return account.view
        return None

    def roles_of(self, principal: PrincipalView) -> frozenset[str]:
        account = self._by_email.get(principal.email)
        return frozenset(account.roles) if account else frozenset()

    def authenticate(self, email: str, password: str) -> PrincipalView | None:
        account = self._by_email.get(email.strip().lower())
        if account is None or not check_password_hash(account.password_hash, password):
            return None
        return account.view
