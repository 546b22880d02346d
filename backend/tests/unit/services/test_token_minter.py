"""Unit tests for :class:`TokenMinter`."""

from __future__ import annotations

import base64
from datetime import timedelta

import jwt
import pytest
from freezegun import freeze_time

from tests.helpers.utils import AUDIENCE, ISSUER, SIGNING_KEY, make_settings, with_jwt
from tokenlife.core.config import ConfigurationError
from tokenlife.services._shared.errors import InvalidAccessToken
from tokenlife.services._shared.ports import PrincipalView
from tokenlife.services.tokens.minter import TokenMinter

PRINCIPAL = PrincipalView(id="42", email="ada@example.com", roles=frozenset({"user"}))


@pytest.fixture()
def minter() -> TokenMinter:
    return TokenMinter(make_settings(expiry_minutes=15).jwt)


class TestMintAccessToken:
    def test_claims_carry_identity_roles_and_registered_fields(self, minter):
        minted = minter.mint_access_token(PRINCIPAL, {"user", "admin"})

        claims = jwt.decode(
            minted.token, SIGNING_KEY, algorithms=["HS256"], audience=AUDIENCE, issuer=ISSUER
        )
        assert claims["sub"] == "42"
        assert claims["email"] == "ada@example.com"
        assert claims["roles"] == ["admin", "user"]
        assert claims["jti"] == minted.jti
        assert claims["type"] == "access"
        assert claims["exp"] - claims["iat"] == 15 * 60
        assert jwt.get_unverified_header(minted.token)["alg"] == "HS256"

    def test_each_token_has_a_unique_jti(self, minter):
        jtis = {minter.mint_access_token(PRINCIPAL, []).jti for _ in range(20)}
        assert len(jtis) == 20

    def test_expires_at_matches_configured_lifetime(self, minter):
        minted = minter.mint_access_token(PRINCIPAL, [])
        assert minted.expires_at - minted.issued_at == timedelta(minutes=15)


class TestVerifyAccessToken:
    def test_valid_immediately_after_minting(self, minter):
        token = minter.mint_access_token(PRINCIPAL, ["user"]).token
        assert minter.verify_access_token(token) is True

    def test_invalid_once_expiry_elapses_with_zero_leeway(self, minter):
        with freeze_time("2026-01-01 12:00:00") as frozen:
            token = minter.mint_access_token(PRINCIPAL, []).token

            frozen.tick(timedelta(minutes=14, seconds=59))
            assert minter.verify_access_token(token) is True

            frozen.tick(timedelta(seconds=1))
            assert minter.verify_access_token(token) is False

    def test_rejects_wrong_key_issuer_and_audience(self, minter):
        token = minter.mint_access_token(PRINCIPAL, []).token
        settings = make_settings()

        other_key = TokenMinter(with_jwt(settings, secret_key="x" * 40).jwt)
        other_iss = TokenMinter(with_jwt(settings, issuer="someone-else").jwt)
        other_aud = TokenMinter(with_jwt(settings, audience="other-clients").jwt)

        assert other_key.verify_access_token(token) is False
        assert other_iss.verify_access_token(token) is False
        assert other_aud.verify_access_token(token) is False

    def test_rejects_garbage_and_unsigned_tokens(self, minter):
        unsigned = jwt.encode({"sub": "42"}, key=None, algorithm="none")

        assert minter.verify_access_token("not.a.jwt") is False
        assert minter.verify_access_token("") is False
        assert minter.verify_access_token(unsigned) is False

    def test_rejects_token_of_another_type(self, minter):
        claims = jwt.decode(
            minter.mint_access_token(PRINCIPAL, []).token,
            SIGNING_KEY,
            algorithms=["HS256"],
            audience=AUDIENCE,
        )
        claims["type"] = "refresh"
        forged = jwt.encode(claims, SIGNING_KEY, algorithm="HS256")

        with pytest.raises(InvalidAccessToken, match="wrong token type"):
            minter.decode_access_token(forged)


class TestExtractEmail:
    def test_reads_email_from_expired_token(self, minter):
        with freeze_time("2026-01-01 12:00:00") as frozen:
            token = minter.mint_access_token(PRINCIPAL, []).token
            frozen.tick(timedelta(hours=3))

            assert minter.verify_access_token(token) is False
            assert minter.extract_email(token) == "ada@example.com"

    def test_still_checks_signature(self, minter):
        token = minter.mint_access_token(PRINCIPAL, []).token
        other = TokenMinter(with_jwt(make_settings(), secret_key="y" * 40).jwt)

        with pytest.raises(InvalidAccessToken):
            other.extract_email(token)


class TestRefreshSecret:
    @pytest.mark.parametrize("size", [32, 64, 128])
    def test_secret_is_base64_of_requested_size(self, size):
        secret = TokenMinter.mint_refresh_secret(size)
        assert len(base64.b64decode(secret)) == size

    def test_secrets_do_not_repeat(self):
        assert len({TokenMinter.mint_refresh_secret(32) for _ in range(100)}) == 100

    @pytest.mark.parametrize("size", [0, 31, 129])
    def test_out_of_range_size_is_rejected(self, size):
        with pytest.raises(ValueError):
            TokenMinter.mint_refresh_secret(size)


class TestConstructor:
    @pytest.mark.parametrize(
        "changes",
        [{"secret_key": ""}, {"secret_key": "too-short"}, {"issuer": ""}, {"audience": ""}],
    )
    def test_fails_closed_on_unusable_settings(self, changes):
        with pytest.raises(ConfigurationError):
            TokenMinter(with_jwt(make_settings(), **changes).jwt)
