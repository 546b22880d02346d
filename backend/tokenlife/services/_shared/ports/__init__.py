"""
tokenlife.services._shared.ports
================================

Collection of *ports* (hexagonal interfaces) the token lifecycle depends on.

Modules
-------
- :mod:`principal_store`:
    Defines :class:`~.PrincipalStore` and :class:`~.PrincipalView`, the
    narrow read interface onto the identity collaborator.

- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore`, :class:`~.RefreshTokenView` and
    :class:`~.RevokeResult`: the registry of active refresh tokens with
    bounded, FIFO-evicting insertion.

Concrete adapters (SQLAlchemy, Redis) live under ``tokenlife.infra``; the
in-memory doubles here back unit tests and ``REFRESH_TOKEN_BACKEND=memory``.
"""

from __future__ import annotations

from .principal_store import InMemoryPrincipalStore, PrincipalStore, PrincipalView
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
    RefreshTokenView,
    RevokeResult,
    hash_secret,
    token_ref,
)

__all__ = [
    "PrincipalStore",
    "PrincipalView",
    "InMemoryPrincipalStore",
    "RefreshTokenStore",
    "RefreshTokenView",
    "RevokeResult",
    "InMemoryRefreshTokenStore",
    "hash_secret",
    "token_ref",
]
