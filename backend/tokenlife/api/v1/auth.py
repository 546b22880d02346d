"""Authentication and token lifecycle endpoints."""

from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import get_jwt

from tokenlife.api.deps import (
    current_principal,
    json_response,
    require_auth,
    service_errors,
    timing,
    token_service,
)
from tokenlife.core.errors import Unauthorized
from tokenlife.core.proxy import client_ip
from tokenlife.schemas import (
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    RegisterSchema,
    SessionSchema,
    TokenPairSchema,
    VerifySchema,
    WhoAmISchema,
)
from tokenlife.services._shared.errors import PrincipalNotFound
from tokenlife.services._shared.ports import RevokeResult
from tokenlife.services.tokens.dto import RefreshIn

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
verify_schema = VerifySchema()
token_schema = TokenPairSchema()
whoami_schema = WhoAmISchema()
session_schema = SessionSchema(many=True)


@bp.post("/register")
@timing
def register():
    """Create an account and sign it in immediately."""

    data = register_schema.load(request.get_json(silent=True) or {})
    service = token_service()
    with service_errors():
        principal = service.principals.register(data["email"], data["password"])
        pair = service.issue(principal, issuing_ip=client_ip())
    return json_response({"data": token_schema.dump(pair)}, status=201)


@bp.post("/login")
@timing
def login():
    """Authenticate credentials and issue an access/refresh pair."""

    data = login_schema.load(request.get_json(silent=True) or {})
    service = token_service()
    principal = service.principals.authenticate(data["email"], data["password"])
    if principal is None:
        raise Unauthorized("Invalid credentials", code="invalid_credentials")
    with service_errors():
        pair = service.issue(principal, issuing_ip=client_ip())
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/refresh")
@timing
def refresh():
    """Exchange a refresh token for a new pair (the presented one is kept by default)."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    dto = RefreshIn(
        refresh_token=data["refresh_token"],
        access_token=data.get("access_token"),
        email=data.get("email"),
        issuing_ip=client_ip(),
    )
    with service_errors():
        pair = token_service().refresh(dto)
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/logout")
@timing
def logout():
    """Revoke one refresh token. Succeeds whether or not it still existed."""

    data = logout_schema.load(request.get_json(silent=True) or {})
    service = token_service()
    with service_errors():
        email = service.minter.extract_email(data["access_token"])
        principal = service.principals.find_by_email(email)
        if principal is None:
            raise PrincipalNotFound(email)
        result = service.revoke(principal, data["refresh_token"], caller_ip=client_ip())
    return json_response({"data": {"revoked": result is RevokeResult.REMOVED}})


@bp.post("/logout-all")
@require_auth
@timing
def logout_all():
    """Revoke every refresh token of the authenticated principal."""

    removed = token_service().revoke_all(current_principal())
    return json_response({"data": {"revoked": removed}})


@bp.post("/verify")
@timing
def verify():
    """Report whether an access token is currently valid."""

    data = verify_schema.load(request.get_json(silent=True) or {})
    valid = token_service().validate_access_token(data["access_token"])
    return json_response({"data": {"valid": valid}})


@bp.get("/whoami")
@require_auth
@timing
def whoami():
    """Return the authenticated principal and the token's identifying claims."""

    principal = current_principal()
    claims = get_jwt()
    body = whoami_schema.dump(principal)
    body["token"] = {
        "jti": claims.get("jti"),
        "exp": claims.get("exp"),
        "roles": claims.get("roles", []),
    }
    return json_response({"data": body})


@bp.get("/sessions")
@require_auth
@timing
def sessions():
    """List the caller's unexpired refresh tokens (metadata only)."""

    views = token_service().active_sessions(current_principal())
    return json_response({"data": session_schema.dump(views)})
