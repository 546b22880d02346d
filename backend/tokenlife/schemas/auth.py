"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from typing import Any

from marshmallow import Schema, ValidationError, fields, validate, validates_schema


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(Schema):
    """Input payload for exchanging a refresh token.

    The principal is identified by ``email`` or by the (possibly expired)
    ``access_token``; at least one of them is required.
    """

    refresh_token = fields.String(required=True, validate=validate.Length(min=1, max=512))
    access_token = fields.String(load_default=None)
    email = fields.Email(load_default=None, validate=validate.Length(max=254))

    @validates_schema
    def require_identity(self, data: dict[str, Any], **_: Any) -> None:
        if not data.get("access_token") and not data.get("email"):
            raise ValidationError(
                "Either access_token or email is required.", field_name="access_token"
            )


class LogoutSchema(Schema):
    """Input payload for revoking a single refresh token."""

    access_token = fields.String(required=True, validate=validate.Length(min=1))
    refresh_token = fields.String(required=True, validate=validate.Length(min=1, max=512))


class VerifySchema(Schema):
    """Input payload for checking an access token."""

    access_token = fields.String(required=True)


class TokenPairSchema(Schema):
    """Response payload containing an access/refresh token pair."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.Constant("bearer")
    access_expires_at = fields.DateTime(format="iso")
    refresh_expires_at = fields.DateTime(format="iso")


class WhoAmISchema(Schema):
    """Response payload exposing identity details for the authenticated principal."""

    id = fields.String(required=True)
    email = fields.Email(required=True)
    roles = fields.Method("dump_roles")
    created_at = fields.DateTime(format="iso", allow_none=True)

    def dump_roles(self, obj: Any) -> list[str]:
        return sorted(obj.roles)


class SessionSchema(Schema):
    """Metadata of one stored refresh token (never the secret)."""

    id = fields.String(attribute="token_id")
    ref = fields.String()
    created_at = fields.DateTime(format="iso")
    expires_at = fields.DateTime(format="iso")
    issuing_ip = fields.String(allow_none=True)
