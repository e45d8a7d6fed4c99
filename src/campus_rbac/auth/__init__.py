"""Caller identity and authorization context."""

from campus_rbac.auth.context import (
    DEPARTMENT_HEAD,
    AuthContext,
    get_auth_context,
    get_auth_context_optional,
    reset_auth_context,
    set_auth_context,
)

__all__ = [
    "AuthContext",
    "DEPARTMENT_HEAD",
    "get_auth_context",
    "get_auth_context_optional",
    "reset_auth_context",
    "set_auth_context",
]
