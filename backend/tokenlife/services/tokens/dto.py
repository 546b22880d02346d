# tokenlife/services/tokens/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    The principal is resolved from ``email`` when given, otherwise from the
    ``email`` claim of ``access_token`` (which may already be expired).

    :param refresh_token: Opaque refresh secret previously issued.
    :type refresh_token: str
    :param access_token: Last access token held by the client.
    :type access_token: str | None
    :param email: Principal email, when the caller already knows it.
    :type email: str | None
    :param issuing_ip: Caller address; stored on the new refresh token.
    :type issuing_ip: str | None
    """

    refresh_token: str
    access_token: str | None = None
    email: str | None = None
    issuing_ip: str | None = None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class MintedAccessToken:
    """
    A freshly signed access token and the claims callers log or return.

    :param token: Compact JWS.
    :param jti: Unique token id (``jti`` claim).
    :param issued_at: ``iat`` claim as aware UTC datetime.
    :param expires_at: ``exp`` claim as aware UTC datetime.
    """

    token: str
    jti: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: Opaque refresh secret (base64).
    :type refresh_token: str
    :param access_expires_at: Access token expiry (UTC).
    :param refresh_expires_at: Refresh token expiry (UTC).
    """

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
