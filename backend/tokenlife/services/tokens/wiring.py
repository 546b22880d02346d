# tokenlife/services/tokens/wiring.py
"""Build the token lifecycle object graph from validated settings."""

from __future__ import annotations

import logging

from flask import Flask, current_app

from tokenlife.core.config import TokenSettings
from tokenlife.core.extensions import get_redis
from tokenlife.services._shared.ports import InMemoryRefreshTokenStore, RefreshTokenStore
from tokenlife.services.principals.store import SQLPrincipalStore
from tokenlife.services.tokens.minter import TokenMinter
from tokenlife.services.tokens.service import TokenLifecycleService

log = logging.getLogger(__name__)

EXTENSION_KEY = "token_lifecycle"


def build_refresh_store(settings: TokenSettings) -> RefreshTokenStore:
    """Instantiate the refresh token store selected by ``REFRESH_TOKEN_BACKEND``."""
    max_active = settings.refresh.max_active_tokens_per_user
    if settings.backend == "redis":
        from tokenlife.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore

        return RedisRefreshTokenStore(r=get_redis(), max_active=max_active)
    if settings.backend == "memory":
        return InMemoryRefreshTokenStore(max_active=max_active)

    from tokenlife.infra.sql.sql_refresh_token_store import SQLRefreshTokenStore

    return SQLRefreshTokenStore(max_active=max_active)


def init_app(app: Flask, settings: TokenSettings) -> TokenLifecycleService:
    """
    Create the minter, stores and coordinator once per process.

    The signing key lives only inside the :class:`TokenMinter` built here.

    :param app: Application receiving the service under
        ``app.extensions["token_lifecycle"]``.
    :param settings: Settings returned by :func:`load_token_settings`.
    """
    service = TokenLifecycleService(
        minter=TokenMinter(settings.jwt),
        refresh_store=build_refresh_store(settings),
        principals=SQLPrincipalStore(),
        settings=settings,
    )
    app.extensions[EXTENSION_KEY] = service
    log.info(
        "token lifecycle ready: backend=%s max_active=%d revoke_on_rotate=%s",
        settings.backend,
        settings.refresh.max_active_tokens_per_user,
        settings.refresh.revoke_on_rotate,
    )
    return service


def get_token_service() -> TokenLifecycleService:
    """Return the coordinator bound to the current application."""
    try:
        return current_app.extensions[EXTENSION_KEY]
    except KeyError as exc:
        raise RuntimeError("Token lifecycle is not initialized. Call init_app() first.") from exc
