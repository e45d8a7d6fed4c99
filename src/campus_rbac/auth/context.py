"""Request-scoped authorization context."""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone

from campus_rbac.domain.roles import Role
from campus_rbac.domain.units import UnitRef

DEPARTMENT_HEAD = "department-head"


@dataclass(frozen=True)
class AuthContext:
    """
    Immutable per-action authorization context.

    Built by the identity resolver for a single action and never reused
    across actions: role, unit and approval state may change in between.
    """

    subject_id: str
    role: Role
    unit: UnitRef | None
    display_name: str
    elevated: bool = False
    designations: frozenset[str] = frozenset()
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    resolved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "designations", frozenset(self.designations))

    def has_designation(self, designation: str) -> bool:
        return designation in self.designations

    @property
    def is_department_head(self) -> bool:
        return DEPARTMENT_HEAD in self.designations

    @property
    def unit_value(self) -> str | None:
        return self.unit.value if self.unit is not None else None


_auth_context: ContextVar[AuthContext | None] = ContextVar(
    "auth_context",
    default=None,
)


def set_auth_context(ctx: AuthContext) -> Token[AuthContext | None]:
    """Set context and return reset token."""
    return _auth_context.set(ctx)


def reset_auth_context(token: Token[AuthContext | None]) -> None:
    """Reset context using token from set_auth_context()."""
    _auth_context.reset(token)


def get_auth_context() -> AuthContext:
    """Get context or raise RuntimeError."""
    ctx = _auth_context.get()
    if ctx is None:
        raise RuntimeError("No auth context set")
    return ctx


def get_auth_context_optional() -> AuthContext | None:
    """Get context or None (for code that also runs outside a request)."""
    return _auth_context.get()
