# comments in English; reST docstrings
from __future__ import annotations

from datetime import UTC, datetime

from tokenlife.models.refresh_token import RefreshToken
from tokenlife.services._shared.errors import PrincipalNotFound
from tokenlife.services._shared.locks import KeyedLock
from tokenlife.services._shared.ports import (
    RefreshTokenStore,
    RefreshTokenView,
    RevokeResult,
    hash_secret,
)
from tokenlife.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork


def _to_view(row: RefreshToken) -> RefreshTokenView:
    return RefreshTokenView(
        token_id=str(row.id),
        principal_id=str(row.user_id),
        secret_hash=row.secret_hash,
        created_at=row.created_at,
        expires_at=row.expires_at,
        issuing_ip=row.issuing_ip,
    )


def _user_id(principal_id: str) -> int | None:
    text = str(principal_id).strip()
    return int(text) if text.isdigit() else None


class SQLRefreshTokenStore(RefreshTokenStore):
    """
    SQLAlchemy-backed refresh token store.

    ``add`` runs count, evict-oldest and insert inside one read-write Unit of
    Work, after locking the owner's ``users`` row with ``SELECT ... FOR
    UPDATE``. A process-local :class:`KeyedLock` is held as well, since SQLite
    has no row locks. Any failure rolls back eviction and insertion together.

    :param max_active: Bound on stored tokens per principal (1-10).
    """

    def __init__(self, *, max_active: int) -> None:
        if not 1 <= max_active <= 10:
            raise ValueError("max_active must be in [1, 10]")
        self.max_active = max_active
        self._principal_locks = KeyedLock()

    # -------------------- API ------------------------

    def add(
        self,
        *,
        principal_id: str,
        secret: str,
        created_at: datetime,
        expires_at: datetime,
        issuing_ip: str | None = None,
    ) -> RefreshTokenView | None:
        user_id = _user_id(principal_id)
        if user_id is None:
            raise PrincipalNotFound(principal_id)

        with self._principal_locks.hold(str(user_id)), SQLAlchemyUnitOfWork() as uow:
            if uow.users.get_for_update(user_id) is None:
                raise PrincipalNotFound(principal_id)

            evicted: RefreshTokenView | None = None
            rows = uow.refresh_tokens.list_for_user(user_id)
            if len(rows) >= self.max_active:
                oldest = rows[0]
                evicted = _to_view(oldest)
                uow.refresh_tokens.delete(oldest)

            uow.refresh_tokens.add(
                RefreshToken(
                    user_id=user_id,
                    secret_hash=hash_secret(secret),
                    created_at=created_at,
                    expires_at=expires_at,
                    issuing_ip=issuing_ip,
                )
            )
        return evicted

    def validate(self, principal_id: str, secret: str, *, now: datetime | None = None) -> bool:
        user_id = _user_id(principal_id)
        if user_id is None:
            return False
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            row = uow.refresh_tokens.find_for_user(user_id, hash_secret(secret))
            return row is not None and row.is_active(now or datetime.now(UTC))

    def revoke(self, principal_id: str, secret: str) -> RevokeResult:
        user_id = _user_id(principal_id)
        if user_id is None:
            return RevokeResult.NOT_FOUND
        with SQLAlchemyUnitOfWork() as uow:
            removed = uow.refresh_tokens.delete_for_user(user_id, hash_secret(secret))
        return RevokeResult.REMOVED if removed else RevokeResult.NOT_FOUND

    def lookup_issuing_ip(self, secret: str) -> str:
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            row = uow.refresh_tokens.find_by_hash(hash_secret(secret))
            return (row.issuing_ip or "") if row else ""

    def list_for_principal(self, principal_id: str) -> list[RefreshTokenView]:
        user_id = _user_id(principal_id)
        if user_id is None:
            return []
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            return [_to_view(row) for row in uow.refresh_tokens.list_for_user(user_id)]

    def revoke_all(self, principal_id: str) -> int:
        user_id = _user_id(principal_id)
        if user_id is None:
            return 0
        with self._principal_locks.hold(str(user_id)), SQLAlchemyUnitOfWork() as uow:
            return uow.refresh_tokens.delete_all_for_user(user_id)
