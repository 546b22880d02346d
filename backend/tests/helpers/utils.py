"""Tiny helpers shared across test modules."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

from tokenlife.core.config import JwtSettings, RefreshTokenSettings, TokenSettings

SIGNING_KEY = "unit-test-signing-key-0123456789abcdef0123"
ISSUER = "tokenlife-tests"
AUDIENCE = "tokenlife-clients"


def make_settings(
    *,
    max_active: int = 5,
    expiry_minutes: int = 15,
    expiry_days: int = 7,
    revoke_on_rotate: bool = False,
    enforce_ip_binding: bool = False,
    backend: str = "memory",
) -> TokenSettings:
    """Build validated-looking token settings without touching the environment."""
    return TokenSettings(
        jwt=JwtSettings(
            secret_key=SIGNING_KEY,
            issuer=ISSUER,
            audience=AUDIENCE,
            expiry_minutes=expiry_minutes,
        ),
        refresh=RefreshTokenSettings(
            expiry_days=expiry_days,
            token_size_bytes=32,
            max_active_tokens_per_user=max_active,
            revoke_on_rotate=revoke_on_rotate,
            enforce_ip_binding=enforce_ip_binding,
        ),
        backend=backend,
    )


def with_jwt(settings: TokenSettings, **changes) -> TokenSettings:
    return replace(settings, jwt=replace(settings.jwt, **changes))


class ManualClock:
    """Deterministic clock: returns ``now`` until moved with :meth:`advance`.

    Starts at the real current second; PyJWT checks ``iat``/``nbf`` against
    the real clock, so tokens minted "in the future" would be rejected.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now
