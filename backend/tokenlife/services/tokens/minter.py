# tokenlife/services/tokens/minter.py
"""
Token minter: signs access tokens and draws refresh secrets.

Access tokens are HS256 JWTs encoded with PyJWT using the key from
:class:`~tokenlife.core.config.JwtSettings`, passed in explicitly. Refresh
secrets are opaque: ``size_bytes`` bytes from :mod:`secrets`, base64 encoded.
"""

from __future__ import annotations

import base64
import logging
import secrets
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

import jwt

from tokenlife.core.config import MIN_SIGNING_KEY_BYTES, ConfigurationError, JwtSettings
from tokenlife.services._shared.errors import InvalidAccessToken
from tokenlife.services._shared.ports import PrincipalView
from tokenlife.services.tokens.dto import MintedAccessToken

log = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REQUIRED_CLAIMS = ["sub", "jti", "iat", "nbf", "exp", "iss", "aud"]

MIN_REFRESH_BYTES = 32
MAX_REFRESH_BYTES = 128


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenMinter:
    """
    Stateless signer/verifier for access tokens.

    :param settings: Validated JWT settings (key, issuer, audience, lifetime).
    :param clock: Returns the current aware UTC datetime; injectable for tests.
    :raises ConfigurationError: When the key, issuer or audience is unusable.
    """

    def __init__(
        self, settings: JwtSettings, *, clock: Callable[[], datetime] | None = None
    ) -> None:
        problems: list[str] = []
        if not settings.secret_key:
            problems.append("JWT signing key is empty")
        elif len(settings.secret_key.encode("utf-8")) < MIN_SIGNING_KEY_BYTES:
            problems.append(f"JWT signing key must be at least {MIN_SIGNING_KEY_BYTES} bytes")
        if not settings.issuer:
            problems.append("JWT issuer is empty")
        if not settings.audience:
            problems.append("JWT audience is empty")
        if settings.expiry_minutes < 1:
            problems.append("JWT expiry must be at least one minute")
        if problems:
            raise ConfigurationError(problems)

        self.settings = settings
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------ #
    # Issuance
    # ------------------------------------------------------------------ #

    def mint_access_token(
        self, principal: PrincipalView, roles: Iterable[str]
    ) -> MintedAccessToken:
        """
        Sign an access token for ``principal``.

        :param principal: Subject of the token.
        :param roles: Role names embedded as the ``roles`` claim (sorted).
        :returns: The compact token plus its ``jti``, ``iat`` and ``exp``.
        """
        # JWT NumericDate has second precision
        issued_at = self._clock().astimezone(UTC).replace(microsecond=0)
        expires_at = issued_at + self.settings.access_expires
        jti = uuid.uuid4().hex
        claims: dict[str, Any] = {
            "sub": str(principal.id),
            "email": principal.email,
            "jti": jti,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": expires_at,
            "iss": self.settings.issuer,
            "aud": self.settings.audience,
            "roles": sorted(set(roles)),
            "type": ACCESS_TOKEN_TYPE,
        }
        token = jwt.encode(claims, self.settings.secret_key, algorithm=self.settings.algorithm)
        return MintedAccessToken(token=token, jti=jti, issued_at=issued_at, expires_at=expires_at)

    @staticmethod
    def mint_refresh_secret(size_bytes: int) -> str:
        """
        Draw a fresh refresh secret.

        :param size_bytes: Number of random bytes (32-128).
        :returns: Standard base64 encoding of the random bytes.
        :raises ValueError: When ``size_bytes`` is out of range.
        """
        if not MIN_REFRESH_BYTES <= size_bytes <= MAX_REFRESH_BYTES:
            raise ValueError(
                f"size_bytes must be in [{MIN_REFRESH_BYTES}, {MAX_REFRESH_BYTES}], "
                f"got {size_bytes}"
            )
        return base64.b64encode(secrets.token_bytes(size_bytes)).decode("ascii")

    # ------------------------------------------------------------------ #
    # Verification
    # ------------------------------------------------------------------ #

    def _decode(self, token: str, *, verify_exp: bool) -> dict[str, Any]:
        try:
            claims = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.algorithm],
                issuer=self.settings.issuer,
                audience=self.settings.audience,
                leeway=0,
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": verify_exp,
                },
            )
        except jwt.PyJWTError as exc:
            raise InvalidAccessToken(f"Access token rejected: {exc}") from exc
        if claims.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidAccessToken("Access token rejected: wrong token type")
        return claims

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """
        Verify ``token`` and return its claims.

        :raises InvalidAccessToken: On bad signature, algorithm, issuer,
            audience, expiry or missing claims.
        """
        return self._decode(token, verify_exp=True)

    def verify_access_token(self, token: str) -> bool:
        """Return ``True`` iff ``token`` passes every check. Never raises."""
        try:
            self._decode(token, verify_exp=True)
        except InvalidAccessToken as exc:
            log.debug("access token rejected: %s", exc)
            return False
        return True

    def extract_email(self, token: str) -> str:
        """
        Read the ``email`` claim from a possibly expired access token.

        Signature, issuer and audience are still verified; only the expiry is
        ignored, since clients refresh after their access token lapsed.

        :raises InvalidAccessToken: When the token is unreadable or carries no email.
        """
        claims = self._decode(token, verify_exp=False)
        email = claims.get("email")
        if not isinstance(email, str) or not email.strip():
            raise InvalidAccessToken("Access token carries no email claim")
        return email.strip().lower()
