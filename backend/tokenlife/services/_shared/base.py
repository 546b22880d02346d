# tokenlife/services/_shared/base.py
from __future__ import annotations

from dataclasses import dataclass

from tokenlife.core import errors as api_errors
from tokenlife.services._shared.errors import (
    AuthenticationError,
    ConflictError,
    InvalidAccessToken,
    InvalidRefreshToken,
    IpBindingMismatch,
    NotFoundError,
    PrincipalNotFound,
    ServiceError,
)
from tokenlife.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data.

    :param actor_id: Authenticated principal identifier.
    :param request_id: Correlation id for logging/tracing.
    :param client_ip: Caller address as seen after proxy normalisation.
    """

    actor_id: str | None = None
    request_id: str | None = None
    client_ip: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Carry the request context.
    * Centralize translation of service errors to API errors.

    Services never touch HTTP objects; the API layer calls
    :meth:`translate_exceptions` on anything they raise.
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        self.ctx = ctx or ServiceContext()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :returns: Read-write UoW instance.
        :rtype: SQLAlchemyUnitOfWork
        """
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :returns: Read-only UoW instance.
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        return SQLAlchemyReadOnlyUnitOfWork()

    @staticmethod
    def translate_exceptions(exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, PrincipalNotFound):
            return api_errors.NotFound(str(exc), code="principal_not_found")

        if isinstance(exc, NotFoundError):
            return api_errors.NotFound(str(exc))

        if isinstance(exc, InvalidRefreshToken):
            return api_errors.Unauthorized(str(exc), code="invalid_refresh_token")

        if isinstance(exc, InvalidAccessToken):
            return api_errors.Unauthorized(str(exc), code="invalid_access_token")

        if isinstance(exc, IpBindingMismatch):
            return api_errors.Forbidden(str(exc), code="ip_binding_mismatch")

        if isinstance(exc, AuthenticationError):
            return api_errors.Unauthorized(str(exc), code="invalid_credentials")

        if isinstance(exc, ConflictError):
            return api_errors.Conflict(str(exc))

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(message=str(exc), status_code=400, code="bad_request")

        # Fallback: return untouched (store failures bubble up to the 503 handlers)
        return exc
