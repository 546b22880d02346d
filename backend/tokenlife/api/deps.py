"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from tokenlife.core.errors import Unauthorized
from tokenlife.services._shared.base import BaseService
from tokenlife.services._shared.errors import ServiceError
from tokenlife.services._shared.ports import PrincipalView
from tokenlife.services.tokens.service import TokenLifecycleService
from tokenlife.services.tokens.wiring import get_token_service

F = TypeVar("F", bound=Callable[..., Any])


@contextmanager
def service_errors() -> Iterator[None]:
    """Re-raise service-layer errors as their API counterparts.

    Store failures are not service errors and reach the 503 handlers as-is.
    """

    try:
        yield
    except ServiceError as exc:
        raise BaseService.translate_exceptions(exc) from exc


def token_service() -> TokenLifecycleService:
    return get_token_service()


def require_auth(func: F) -> F:
    """Ensure the request carries a valid JWT access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_principal() -> PrincipalView:
    """Resolve the principal named by the verified access token's ``sub``."""

    identity = get_jwt_identity()
    principal = token_service().principals.find_by_id(str(identity))
    if principal is None:
        raise Unauthorized("Principal no longer exists", code="invalid_access_token")
    return principal


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
