"""Per-request authorization context binding and domain error mapping."""

from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from campus_rbac.auth.context import reset_auth_context, set_auth_context
from campus_rbac.auth.resolver import IdentityResolver
from campus_rbac.errors import (
    ConcurrentModificationError,
    DomainError,
    DuplicateRequestError,
    IdentityNotFoundError,
    InvalidDesignationError,
    InvalidRequestError,
    InvalidTransitionError,
    RequestNotFoundError,
    RoleUnauthorizedError,
    ScopeUnauthorizedError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)

SUBJECT_HEADER = "x-subject-id"
EXEMPT_PATHS = frozenset({"/health", "/ready"})

_STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (UnauthenticatedError, 401),
    (RoleUnauthorizedError, 403),
    (ScopeUnauthorizedError, 403),
    (RequestNotFoundError, 404),
    (IdentityNotFoundError, 404),
    (InvalidTransitionError, 409),
    (ConcurrentModificationError, 409),
    (DuplicateRequestError, 409),
    (InvalidDesignationError, 400),
    (InvalidRequestError, 400),
)


def status_for(exc: DomainError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


def error_response(exc: DomainError) -> JSONResponse:
    return JSONResponse(
        {"error": exc.code, "message": exc.message},
        status_code=status_for(exc),
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Starlette exception handler; register it for ``DomainError``."""
    logger.info(
        "%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message
    )
    return error_response(exc)


class AuthContextMiddleware(BaseHTTPMiddleware):
    """
    Resolves the caller once per request and binds the ``AuthContext``.

    The subject id comes from ``request.state.subject_id`` when an upstream
    authentication layer set it, otherwise from the ``X-Subject-Id`` header.
    """

    def __init__(self, app, resolver: IdentityResolver) -> None:
        super().__init__(app)
        self._resolver = resolver

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        subject_id = getattr(request.state, "subject_id", None) or request.headers.get(
            SUBJECT_HEADER, ""
        )
        ctx = self._resolver.resolve(subject_id.strip())
        if ctx is None:
            return error_response(UnauthenticatedError("Identity could not be resolved"))

        request.state.auth_context = ctx
        token = set_auth_context(ctx)
        try:
            return await call_next(request)
        finally:
            reset_auth_context(token)
