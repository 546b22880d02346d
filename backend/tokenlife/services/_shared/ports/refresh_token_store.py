from __future__ import annotations

import hashlib
import itertools
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Protocol

from tokenlife.services._shared.locks import KeyedLock


def hash_secret(secret: str) -> str:
    """Return the SHA-256 hex digest under which a refresh secret is stored."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def token_ref(secret_hash: str) -> str:
    """Short, non-reversible reference to a stored token, safe for logs."""
    return secret_hash[:12]


class RevokeResult(Enum):
    """Outcome of a revocation attempt."""

    REMOVED = auto()
    NOT_FOUND = auto()


@dataclass(frozen=True)
class RefreshTokenView:
    """
    Read-model for a stored refresh token (never carries the secret).

    :ivar token_id: Surrogate key assigned at creation.
    :ivar principal_id: Owner principal.
    :ivar secret_hash: SHA-256 hex digest of the secret.
    :ivar created_at: Issuance instant (UTC); FIFO eviction order.
    :ivar expires_at: Absolute expiry (UTC).
    :ivar issuing_ip: Caller address at issuance, when known.
    """

    token_id: str
    principal_id: str
    secret_hash: str
    created_at: datetime
    expires_at: datetime
    issuing_ip: str | None = None

    def is_active(self, now: datetime) -> bool:
        return now < self.expires_at

    @property
    def ref(self) -> str:
        return token_ref(self.secret_hash)


class RefreshTokenStore(Protocol):
    """
    Authoritative registry of refresh tokens.

    All mutation goes through :meth:`add`, :meth:`revoke` and
    :meth:`revoke_all`. Implementations MUST serialise :meth:`add` per
    principal so that read-count, evict-oldest and insert behave as one unit;
    operations on different principals MUST NOT contend. Persistence errors
    propagate to the caller; implementations never retry them.
    """

    max_active: int

    def add(
        self,
        *,
        principal_id: str,
        secret: str,
        created_at: datetime,
        expires_at: datetime,
        issuing_ip: str | None = None,
    ) -> RefreshTokenView | None:
        """
        Persist a new token, evicting the principal's oldest one when the
        bound is already reached.

        :returns: The evicted token, or ``None`` when nothing was evicted.
        """

    def validate(self, principal_id: str, secret: str, *, now: datetime | None = None) -> bool:
        """Return ``True`` iff a matching, unexpired token exists. Never mutates."""

    def revoke(self, principal_id: str, secret: str) -> RevokeResult:
        """Delete the exact matching token. Idempotent."""

    def lookup_issuing_ip(self, secret: str) -> str:
        """Return the issuing address for ``secret`` or ``""`` when unknown."""

    def list_for_principal(self, principal_id: str) -> list[RefreshTokenView]:
        """Every stored token of the principal, oldest first (expired included)."""

    def revoke_all(self, principal_id: str) -> int:
        """Delete every token of the principal. :returns: Number removed."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store.

    ``add`` holds the principal's entry of a :class:`KeyedLock` for the whole
    read-evict-insert sequence; a short global lock only protects the shared
    dictionaries themselves.
    """

    def __init__(self, *, max_active: int) -> None:
        if not 1 <= max_active <= 10:
            raise ValueError("max_active must be in [1, 10]")
        self.max_active = max_active
        self._by_hash: dict[str, RefreshTokenView] = {}
        self._by_principal: dict[str, list[str]] = {}
        self._ids = itertools.count(1)
        self._principal_locks = KeyedLock()
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    def _oldest(self, principal_id: str) -> RefreshTokenView | None:
        views = self._views(principal_id)
        return views[0] if views else None

    def _views(self, principal_id: str) -> list[RefreshTokenView]:
        with self._lock:
            views = [self._by_hash[h] for h in self._by_principal.get(principal_id, [])]
        return sorted(views, key=lambda v: (v.created_at, int(v.token_id)))

    def _remove(self, view: RefreshTokenView) -> None:
        with self._lock:
            self._discard(view)

    def _discard(self, view: RefreshTokenView) -> None:
        # Caller holds self._lock.
        self._by_hash.pop(view.secret_hash, None)
        hashes = self._by_principal.get(view.principal_id, [])
        if view.secret_hash in hashes:
            hashes.remove(view.secret_hash)
        if not hashes:
            self._by_principal.pop(view.principal_id, None)

    # -------------------------- API ----------------------------

    def add(
        self,
        *,
        principal_id: str,
        secret: str,
        created_at: datetime,
        expires_at: datetime,
        issuing_ip: str | None = None,
    ) -> RefreshTokenView | None:
        digest = hash_secret(secret)
        with self._principal_locks.hold(principal_id):
            evicted: RefreshTokenView | None = None
            if len(self._views(principal_id)) >= self.max_active:
                evicted = self._oldest(principal_id)
                if evicted is not None:
                    self._remove(evicted)
            with self._lock:
                if digest in self._by_hash:
                    raise ValueError("Refresh secret collision")
                view = RefreshTokenView(
                    token_id=str(next(self._ids)),
                    principal_id=principal_id,
                    secret_hash=digest,
                    created_at=created_at,
                    expires_at=expires_at,
                    issuing_ip=issuing_ip,
                )
                self._by_hash[digest] = view
                self._by_principal.setdefault(principal_id, []).append(digest)
            return evicted

    def validate(self, principal_id: str, secret: str, *, now: datetime | None = None) -> bool:
        with self._lock:
            view = self._by_hash.get(hash_secret(secret))
        if view is None or view.principal_id != principal_id:
            return False
        return view.is_active(now or _utcnow())

    def revoke(self, principal_id: str, secret: str) -> RevokeResult:
        # Lookup and removal under one lock: exactly one caller sees REMOVED.
        with self._lock:
            view = self._by_hash.get(hash_secret(secret))
            if view is None or view.principal_id != principal_id:
                return RevokeResult.NOT_FOUND
            self._discard(view)
        return RevokeResult.REMOVED

    def lookup_issuing_ip(self, secret: str) -> str:
        with self._lock:
            view = self._by_hash.get(hash_secret(secret))
        return (view.issuing_ip or "") if view else ""

    def list_for_principal(self, principal_id: str) -> list[RefreshTokenView]:
        return self._views(principal_id)

    def revoke_all(self, principal_id: str) -> int:
        with self._principal_locks.hold(principal_id):
            views = self._views(principal_id)
            for view in views:
                self._remove(view)
            return len(views)
