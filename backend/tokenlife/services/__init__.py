"""Service layer public API.

This package exposes the building blocks of the token lifecycle so that
callers can import from :mod:`tokenlife.services` without knowing internal
structure.

Re-exports
----------
- Base primitives (from ``tokenlife.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Token lifecycle (from ``tokenlife.services.tokens``)
    * :class:`TokenLifecycleService`
    * :class:`TokenMinter`
    * DTOs: :class:`RefreshIn`, :class:`MintedAccessToken`, :class:`TokenPairOut`

- Principals (from ``tokenlife.services.principals``)
    * :class:`SQLPrincipalStore`
"""

from __future__ import annotations

from tokenlife.services._shared.base import BaseService, ServiceContext
from tokenlife.services.principals.store import SQLPrincipalStore
from tokenlife.services.tokens.dto import MintedAccessToken, RefreshIn, TokenPairOut
from tokenlife.services.tokens.minter import TokenMinter
from tokenlife.services.tokens.service import TokenLifecycleService

__all__ = [
    "BaseService",
    "ServiceContext",
    "MintedAccessToken",
    "RefreshIn",
    "SQLPrincipalStore",
    "TokenLifecycleService",
    "TokenMinter",
    "TokenPairOut",
]
