# comments in English; reST docstrings
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

import redis  # type: ignore[import-untyped]

from tokenlife.services._shared.ports import (
    RefreshTokenStore,
    RefreshTokenView,
    RevokeResult,
    hash_secret,
)


def _s(value: bytes | str | None, default: str = "") -> str:
    if value is None:
        return default
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


def _iso(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat()


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store.

    Layout
    ------
    - ``rt:{digest}``: hash with ``id``, ``user_id``, ``created_at``,
      ``expires_at`` and ``issuing_ip``; expires with the token.
    - ``rt:u:{user_id}``: sorted set of digests scored by ``created_at``.
    - ``rt:seq``: counter handing out token ids.

    ``add`` watches the principal's index (WATCH/MULTI/EXEC) so a concurrent
    ``add`` or ``revoke`` for the same principal forces a re-read of the bound
    before anything is written. Other principals use other keys and never
    conflict.

    :param r: A Redis client (already connected).
    :param max_active: Bound on stored tokens per principal (1-10).
    """

    r: redis.Redis
    max_active: int = 5
    _seq_key: str = field(default="rt:seq", repr=False)

    def __post_init__(self) -> None:
        if not 1 <= self.max_active <= 10:
            raise ValueError("max_active must be in [1, 10]")

    # -------------------- helpers --------------------

    @staticmethod
    def _k(digest: str) -> str:
        return f"rt:{digest}"

    @staticmethod
    def _ku(principal_id: str) -> str:
        return f"rt:u:{principal_id}"

    @staticmethod
    def _view(digest: str, raw: dict) -> RefreshTokenView | None:
        if not raw:
            return None
        h = {_s(k): _s(v) for k, v in raw.items()}
        return RefreshTokenView(
            token_id=h.get("id", "0"),
            principal_id=h.get("user_id", ""),
            secret_hash=digest,
            created_at=datetime.fromisoformat(h["created_at"]),
            expires_at=datetime.fromisoformat(h["expires_at"]),
            issuing_ip=h.get("issuing_ip") or None,
        )

    def _load_many(self, client, members: list) -> tuple[list[RefreshTokenView], list[str]]:
        """Return live views sorted oldest first, plus digests whose hash is gone."""
        views: list[RefreshTokenView] = []
        stale: list[str] = []
        for member in members:
            digest = _s(member)
            view = self._view(digest, client.hgetall(self._k(digest)))
            if view is None:
                stale.append(digest)
            else:
                views.append(view)
        views.sort(key=lambda v: (v.created_at, int(v.token_id)))
        return views, stale

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
        digest = hash_secret(secret)
        k_new = self._k(digest)
        k_user = self._ku(principal_id)

        # Retry loop for optimistic locking in case of concurrent modifications
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_user)

                    # Immediate-mode reads while watching
                    views, stale = self._load_many(p, p.zrange(k_user, 0, -1))
                    evicted = views[0] if len(views) >= self.max_active else None
                    token_id = int(p.incr(self._seq_key))
                    survivors = views[1:] if evicted is not None else views
                    keep_until = max([expires_at, *(v.expires_at for v in survivors)])

                    p.multi()
                    if stale:
                        p.zrem(k_user, *stale)
                    if evicted is not None:
                        p.delete(self._k(evicted.secret_hash))
                        p.zrem(k_user, evicted.secret_hash)
                    mapping = {
                        "id": str(token_id),
                        "user_id": principal_id,
                        "created_at": _iso(created_at),
                        "expires_at": _iso(expires_at),
                    }
                    if issuing_ip:
                        mapping["issuing_ip"] = issuing_ip
                    p.hset(k_new, mapping=mapping)
                    p.pexpireat(k_new, expires_at)
                    p.zadd(k_user, {digest: created_at.timestamp()})
                    p.pexpireat(k_user, keep_until)
                    p.execute()
                return evicted
            except redis.WatchError:
                # Concurrent modification detected; re-read the bound
                continue

    def validate(self, principal_id: str, secret: str, *, now: datetime | None = None) -> bool:
        digest = hash_secret(secret)
        view = self._view(digest, self.r.hgetall(self._k(digest)))
        if view is None or view.principal_id != principal_id:
            return False
        return view.is_active(now or datetime.now(UTC))

    def revoke(self, principal_id: str, secret: str) -> RevokeResult:
        digest = hash_secret(secret)
        key = self._k(digest)
        if _s(self.r.hget(key, "user_id")) != principal_id:
            return RevokeResult.NOT_FOUND
        with self.r.pipeline(transaction=True) as p:
            p.delete(key)
            p.zrem(self._ku(principal_id), digest)
            deleted, _ = p.execute()
        return RevokeResult.REMOVED if deleted else RevokeResult.NOT_FOUND

    def lookup_issuing_ip(self, secret: str) -> str:
        return _s(self.r.hget(self._k(hash_secret(secret)), "issuing_ip"))

    def list_for_principal(self, principal_id: str) -> list[RefreshTokenView]:
        k_user = self._ku(principal_id)
        views, stale = self._load_many(self.r, self.r.zrange(k_user, 0, -1))
        if stale:
            # Underlying hash expired: drop it from the index
            self.r.zrem(k_user, *stale)
        return views

    def revoke_all(self, principal_id: str) -> int:
        k_user = self._ku(principal_id)

        # Same optimistic lock as add(): a concurrent add either lands before
        # the read (and is revoked) or forces a retry.
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_user)
                    digests = [_s(m) for m in p.zrange(k_user, 0, -1)]
                    if not digests:
                        p.unwatch()
                        return 0
                    p.multi()
                    p.delete(*[self._k(d) for d in digests])
                    p.delete(k_user)
                    removed, _ = p.execute()
                return int(removed)
            except redis.WatchError:
                continue
