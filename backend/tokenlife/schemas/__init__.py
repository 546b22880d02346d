"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    RegisterSchema,
    SessionSchema,
    TokenPairSchema,
    VerifySchema,
    WhoAmISchema,
)

__all__ = [
    "LoginSchema",
    "LogoutSchema",
    "RefreshSchema",
    "RegisterSchema",
    "SessionSchema",
    "TokenPairSchema",
    "VerifySchema",
    "WhoAmISchema",
]
