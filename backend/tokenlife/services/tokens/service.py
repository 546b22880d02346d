# tokenlife/services/tokens/service.py
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from tokenlife.core.config import TokenSettings
from tokenlife.services._shared.base import BaseService, ServiceContext
from tokenlife.services._shared.errors import (
    InvalidAccessToken,
    InvalidRefreshToken,
    IpBindingMismatch,
    PrincipalNotFound,
)
from tokenlife.services._shared.ports import (
    PrincipalStore,
    PrincipalView,
    RefreshTokenStore,
    RefreshTokenView,
    RevokeResult,
    hash_secret,
    token_ref,
)
from tokenlife.services.tokens.dto import RefreshIn, TokenPairOut
from tokenlife.services.tokens.minter import TokenMinter

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenLifecycleService(BaseService):
    """
    Token lifecycle coordinator (issue / refresh / revoke).

    Issues access tokens through :class:`TokenMinter` and keeps refresh
    tokens in a :class:`RefreshTokenStore`, which bounds the number of live
    refresh tokens per principal and evicts the oldest first.

    Rotation
    --------
    By default a refresh does **not** revoke the presented refresh token: it
    stays valid until it expires or is evicted by the bound. Set
    ``REVOKE_ON_ROTATE`` to make every refresh token single-use.

    Access tokens are stateless; logout removes the refresh token only and
    an issued access token stays valid until its ``exp``.
    """

    def __init__(
        self,
        *,
        minter: TokenMinter,
        refresh_store: RefreshTokenStore,
        principals: PrincipalStore,
        settings: TokenSettings,
        clock: Callable[[], datetime] | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its collaborators.

        :param minter: Signs access tokens and draws refresh secrets.
        :param refresh_store: Bounded registry of refresh tokens.
        :param principals: Read-only identity collaborator.
        :param settings: Validated token settings.
        :param clock: Returns the current aware UTC datetime.
        """
        super().__init__(ctx=ctx)
        self.minter = minter
        self.refresh_store = refresh_store
        self.principals = principals
        self.settings = settings
        self._clock = clock or _utcnow

    def now_utc(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue(self, principal: PrincipalView, *, issuing_ip: str | None = None) -> TokenPairOut:
        """
        Mint a new access/refresh pair for an authenticated principal.

        The refresh token is persisted before anything is returned; a store
        failure propagates and no pair is handed out.

        :param principal: Principal that just authenticated.
        :param issuing_ip: Caller address recorded on the refresh token.
        :returns: The new pair and both expiries.
        """
        now = self.now_utc()
        roles = self.principals.roles_of(principal)
        access = self.minter.mint_access_token(principal, roles)

        secret = self.minter.mint_refresh_secret(self.settings.refresh.token_size_bytes)
        refresh_expires_at = now + self.settings.refresh.refresh_expires
        evicted = self.refresh_store.add(
            principal_id=principal.id,
            secret=secret,
            created_at=now,
            expires_at=refresh_expires_at,
            issuing_ip=issuing_ip,
        )

        log.info(
            "token pair issued",
            extra={
                "principal_id": principal.id,
                "token_ref": token_ref(hash_secret(secret)),
            },
        )
        if evicted is not None:
            log.info(
                "refresh token evicted (bound %d reached)",
                self.refresh_store.max_active,
                extra={"principal_id": principal.id, "evicted_ref": evicted.ref},
            )

        return TokenPairOut(
            access_token=access.token,
            refresh_token=secret,
            access_expires_at=access.expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    def issue_for_email(self, email: str, *, issuing_ip: str | None = None) -> TokenPairOut:
        """
        Issue a pair for the principal owning ``email``.

        :raises PrincipalNotFound: When no principal has that email.
        """
        return self.issue(self._principal_by_email(email), issuing_ip=issuing_ip)

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """
        Exchange a valid refresh token for a brand-new pair.

        :param dto: Refresh input; the email comes from ``dto.email`` or,
            failing that, from the (possibly expired) ``dto.access_token``.
        :returns: The new pair.
        :raises InvalidAccessToken: When no email can be read.
        :raises PrincipalNotFound: When the email resolves to nobody.
        :raises InvalidRefreshToken: When the presented secret is absent,
            expired, evicted, revoked or bound to another address.
        """
        email = dto.email
        if not email:
            if not dto.access_token:
                raise InvalidAccessToken("Either an email or an access token is required")
            email = self.minter.extract_email(dto.access_token)
        principal = self._principal_by_email(email)
        ref = token_ref(hash_secret(dto.refresh_token))

        if self.settings.refresh.enforce_ip_binding and not self._ip_matches(
            dto.refresh_token, dto.issuing_ip
        ):
            log.warning(
                "refresh rejected: caller address differs from issuing address",
                extra={"principal_id": principal.id, "token_ref": ref},
            )
            raise InvalidRefreshToken()

        if not self.refresh_store.validate(principal.id, dto.refresh_token, now=self.now_utc()):
            log.info(
                "refresh rejected: token absent or expired",
                extra={"principal_id": principal.id, "token_ref": ref},
            )
            raise InvalidRefreshToken()

        if self.settings.refresh.revoke_on_rotate:
            # Consume before issuing: of two concurrent refreshes with the
            # same secret only one sees REMOVED.
            consumed = self.refresh_store.revoke(principal.id, dto.refresh_token)
            if consumed is not RevokeResult.REMOVED:
                log.info(
                    "refresh rejected: token already consumed",
                    extra={"principal_id": principal.id, "token_ref": ref},
                )
                raise InvalidRefreshToken()
            log.info(
                "presented refresh token consumed on rotation",
                extra={"principal_id": principal.id, "token_ref": ref},
            )

        return self.issue(principal, issuing_ip=dto.issuing_ip)

    # ------------------------------------------------------------------ #
    # Revoke
    # ------------------------------------------------------------------ #

    def revoke(
        self,
        principal: PrincipalView,
        refresh_token: str,
        *,
        caller_ip: str | None = None,
    ) -> RevokeResult:
        """
        Remove the matching refresh token (logout). Idempotent.

        :returns: :attr:`RevokeResult.NOT_FOUND` when nothing matched; this
            is informational, never an error.
        :raises IpBindingMismatch: With IP binding on, when ``caller_ip``
            differs from the token's issuing address.
        """
        ref = token_ref(hash_secret(refresh_token))
        if self.settings.refresh.enforce_ip_binding and not self._ip_matches(
            refresh_token, caller_ip
        ):
            log.warning(
                "logout rejected: caller address differs from issuing address",
                extra={"principal_id": principal.id, "token_ref": ref},
            )
            raise IpBindingMismatch()

        result = self.refresh_store.revoke(principal.id, refresh_token)
        if result is RevokeResult.REMOVED:
            log.info(
                "refresh token revoked",
                extra={"principal_id": principal.id, "token_ref": ref, "result": result.name},
            )
        else:
            log.debug(
                "nothing to revoke",
                extra={"principal_id": principal.id, "token_ref": ref, "result": result.name},
            )
        return result

    def revoke_all(self, principal: PrincipalView) -> int:
        """Remove every refresh token of ``principal`` (log out everywhere)."""
        removed = self.refresh_store.revoke_all(principal.id)
        log.info(
            "all refresh tokens revoked (%d)", removed, extra={"principal_id": principal.id}
        )
        return removed

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def validate_access_token(self, token: str) -> bool:
        return self.minter.verify_access_token(token)

    def validate_refresh_token(self, principal: PrincipalView, refresh_token: str) -> bool:
        return self.refresh_store.validate(principal.id, refresh_token, now=self.now_utc())

    def active_sessions(self, principal: PrincipalView) -> list[RefreshTokenView]:
        """Unexpired refresh tokens of ``principal``, oldest first."""
        now = self.now_utc()
        return [
            v for v in self.refresh_store.list_for_principal(principal.id) if v.is_active(now)
        ]

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #

    def _principal_by_email(self, email: str) -> PrincipalView:
        principal = self.principals.find_by_email(email)
        if principal is None:
            log.info("principal lookup failed")
            raise PrincipalNotFound(email.strip().lower())
        return principal

    def _ip_matches(self, refresh_token: str, caller_ip: str | None) -> bool:
        # Unknown addresses on either side are not enforced.
        stored = self.refresh_store.lookup_issuing_ip(refresh_token)
        if not stored or not caller_ip:
            return True
        return stored == caller_ip
