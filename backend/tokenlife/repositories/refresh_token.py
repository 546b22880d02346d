"""Refresh token repository: row-level access to ``refresh_tokens``."""

from __future__ import annotations

from typing import cast

from sqlalchemy import delete, select

from tokenlife.models.refresh_token import RefreshToken
from tokenlife.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`.

    Bound enforcement and eviction policy live in
    :class:`tokenlife.infra.sql.sql_refresh_token_store.SQLRefreshTokenStore`.
    """

    model = RefreshToken

    def _filterable_fields(self):
        return {"user_id": RefreshToken.user_id, "secret_hash": RefreshToken.secret_hash}

    def list_for_user(self, user_id: int) -> list[RefreshToken]:
        """Return every row for ``user_id``, oldest first (``created_at``, ``id``)."""
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def find_for_user(self, user_id: int, secret_hash: str) -> RefreshToken | None:
        stmt = select(RefreshToken).where(
            RefreshToken.user_id == user_id,
            RefreshToken.secret_hash == secret_hash,
        )
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def find_by_hash(self, secret_hash: str) -> RefreshToken | None:
        return self.find_one(secret_hash=secret_hash)

    def delete_for_user(self, user_id: int, secret_hash: str) -> int:
        """Delete the matching row with one statement; returns 0 or 1.

        Concurrent callers cannot both observe a removal.
        """
        result = self.session.execute(
            delete(RefreshToken).where(
                RefreshToken.user_id == user_id,
                RefreshToken.secret_hash == secret_hash,
            )
        )
        return int(result.rowcount or 0)

    def delete_all_for_user(self, user_id: int) -> int:
        """Delete every row for ``user_id`` and return the number removed."""
        result = self.session.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id)
        )
        return int(result.rowcount or 0)
