"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
concerns. The translation to HTTP responses (RFC 7807) is handled by
``tokenlife/core/errors.py`` via ``BaseService.translate_exceptions()``.

Persistence failures (``SQLAlchemyError``, ``RedisError``) are deliberately
NOT wrapped: they propagate untouched so callers can tell "retry later"
apart from "sign in again".
"""

from __future__ import annotations

from dataclasses import dataclass


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them to ``APIError`` instances.
    """

    pass


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


class PrincipalNotFound(NotFoundError):
    """The email or identifier does not resolve to a principal."""

    def __init__(self, key: str | int) -> None:
        super().__init__("Principal", key)


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :param detail: Short human-readable explanation.
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


class AuthenticationError(ServiceError):
    """Credentials were rejected by the principal store."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class TokenError(ServiceError):
    """Base class for rejected tokens; the client should sign in again."""


class InvalidRefreshToken(TokenError):
    """The presented refresh token is absent, expired, evicted or revoked."""

    def __init__(self, message: str = "Refresh token is no longer valid. Please sign in.") -> None:
        super().__init__(message)


class InvalidAccessToken(TokenError):
    """The access token failed signature, issuer, audience or claim checks."""

    def __init__(self, message: str = "Access token is invalid.") -> None:
        super().__init__(message)


class IpBindingMismatch(TokenError):
    """The caller address differs from the refresh token's issuing address."""

    def __init__(
        self, message: str = "Caller address does not match the address used at sign-in."
    ) -> None:
        super().__init__(message)
