"""Approvable document requests and their history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from campus_rbac.domain.roles import Role
from campus_rbac.domain.units import UnitRef
from campus_rbac.workflow.stages import ApprovalStage


class RequestKind(str, Enum):
    BONAFIDE_CERTIFICATE = "bonafide-certificate"
    LEAVING_CERTIFICATE = "leaving-certificate"


class WorkflowAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class HistoryAction(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    ISSUED = "issued"


@dataclass(frozen=True)
class HistoryEntry:
    acting_role: Role
    actor_id: str
    actor_name: str
    action: HistoryAction
    stage_before: ApprovalStage
    stage_after: ApprovalStage
    timestamp: datetime
    comment: str | None = None


@dataclass(frozen=True)
class ApprovableRequest:
    """
    A document request moving through sequential sign-off.

    ``unit`` is the requester's unit captured at creation and is what
    isolation checks use, even if the requester later changes unit.
    ``version`` increases by one per applied transition.
    """

    request_id: str
    kind: RequestKind
    requester_id: str
    requester_name: str
    unit: UnitRef | None
    purpose: str
    stage: ApprovalStage
    created_at: datetime
    updated_at: datetime
    history: tuple[HistoryEntry, ...] = ()
    version: int = 0
    artifact_url: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    @property
    def unit_value(self) -> str | None:
        return self.unit.value if self.unit is not None else None
