"""Domain errors surfaced to callers of the access core.

Every ``DomainError`` is an expected, caller-recoverable outcome. The
transport layer maps ``code`` to its own status vocabulary.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for recoverable access-control and workflow failures."""

    code = "domain_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthenticatedError(DomainError):
    """Identity is missing, unknown, disabled, or not yet approved."""

    code = "unauthenticated"


class RoleUnauthorizedError(DomainError):
    """The permission table does not grant the action to the role."""

    code = "role_unauthorized"


class ScopeUnauthorizedError(DomainError):
    """The target lies outside the caller's organizational unit."""

    code = "scope_unauthorized"


class InvalidTransitionError(DomainError):
    """Workflow action is not valid for the request's current stage."""

    code = "invalid_transition"


class DesignationRequiredError(InvalidTransitionError):
    """The role may act at this stage only with a secondary designation."""

    code = "designation_required"


class ConcurrentModificationError(DomainError):
    """Another writer changed the request first; re-read and retry."""

    code = "concurrent_modification"


class RequestNotFoundError(DomainError):
    code = "not_found"


class IdentityNotFoundError(DomainError):
    code = "not_found"


class InvalidRequestError(DomainError):
    """Malformed caller input such as an unknown document kind."""

    code = "invalid_request"


class DuplicateRequestError(DomainError):
    code = "duplicate_request"


class InvalidDesignationError(DomainError):
    code = "invalid_designation"


class UnknownRoleError(RuntimeError):
    """An unrecognized role value reached the core.

    This is a programming or data-model defect, never a user error.
    """
