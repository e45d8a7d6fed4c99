"""Approval stages and the tables that drive stage transitions."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType

from campus_rbac.auth.context import DEPARTMENT_HEAD
from campus_rbac.domain.roles import Role


class ApprovalStage(str, Enum):
    PENDING = "pending"
    FACULTY_APPROVED = "faculty-approved"
    HOD_APPROVED = "hod-approved"
    ADMIN_APPROVED = "admin-approved"
    ISSUED = "issued"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGES


TERMINAL_STAGES = frozenset({ApprovalStage.ISSUED, ApprovalStage.REJECTED})

# The forward chain; ``rejected`` is reached only via reject.
STAGE_ORDER: tuple[ApprovalStage, ...] = (
    ApprovalStage.PENDING,
    ApprovalStage.FACULTY_APPROVED,
    ApprovalStage.HOD_APPROVED,
    ApprovalStage.ADMIN_APPROVED,
    ApprovalStage.ISSUED,
)

NEXT_STAGE = MappingProxyType(
    {current: following for current, following in zip(STAGE_ORDER, STAGE_ORDER[1:])}
)

# Stage at which the issuance artifact may be attached.
ISSUANCE_STAGE = ApprovalStage.ADMIN_APPROVED

ACTIONABLE_STAGES = MappingProxyType(
    {
        Role.STUDENT: frozenset(),
        Role.FACULTY: frozenset({ApprovalStage.PENDING, ApprovalStage.FACULTY_APPROVED}),
        Role.HOD: frozenset({ApprovalStage.FACULTY_APPROVED}),
        Role.PRINCIPAL: frozenset({ApprovalStage.HOD_APPROVED}),
        Role.ADMIN: frozenset({ApprovalStage.HOD_APPROVED, ApprovalStage.ADMIN_APPROVED}),
    }
)

# (role, stage) pairs that additionally require a designation on the caller.
REQUIRED_DESIGNATIONS = MappingProxyType(
    {
        (Role.FACULTY, ApprovalStage.FACULTY_APPROVED): DEPARTMENT_HEAD,
        (Role.HOD, ApprovalStage.FACULTY_APPROVED): DEPARTMENT_HEAD,
    }
)


def stage_rank(stage: ApprovalStage) -> int:
    """Position in the forward chain; rejected ranks after every live stage."""
    if stage is ApprovalStage.REJECTED:
        return len(STAGE_ORDER)
    return STAGE_ORDER.index(stage)
