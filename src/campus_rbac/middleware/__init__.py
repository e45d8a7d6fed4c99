"""Starlette integration for the access core."""

from .auth_context import AuthContextMiddleware, domain_error_handler, error_response

__all__ = ["AuthContextMiddleware", "domain_error_handler", "error_response"]
