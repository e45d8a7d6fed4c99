"""Approval workflow state machine."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime

from campus_rbac.auth.context import AuthContext
from campus_rbac.domain.roles import Role
from campus_rbac.errors import DesignationRequiredError, InvalidTransitionError
from campus_rbac.utils.time import utc_now
from campus_rbac.workflow.models import (
    ApprovableRequest,
    HistoryAction,
    HistoryEntry,
    WorkflowAction,
)
from campus_rbac.workflow.stages import (
    ACTIONABLE_STAGES,
    ISSUANCE_STAGE,
    NEXT_STAGE,
    REQUIRED_DESIGNATIONS,
    ApprovalStage,
    stage_rank,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    request: ApprovableRequest
    entry: HistoryEntry

    @property
    def stage(self) -> ApprovalStage:
        return self.request.stage


class ApprovalWorkflow:
    """
    Table-driven approval chain.

    ``transition`` and ``issue`` never mutate their input; they return the
    updated request together with the history entry that was appended.
    Persisting the result (with a version check) is the caller's job.
    """

    def __init__(
        self,
        actionable: Mapping[Role, frozenset[ApprovalStage]] = ACTIONABLE_STAGES,
        successors: Mapping[ApprovalStage, ApprovalStage] = NEXT_STAGE,
        designations: Mapping[tuple[Role, ApprovalStage], str] = REQUIRED_DESIGNATIONS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._actionable = actionable
        self._successors = successors
        self._designations = designations
        self._clock = clock

    def can_act_at_stage(self, role: Role | str, stage: ApprovalStage | str) -> bool:
        return ApprovalStage(stage) in self._actionable.get(Role.parse(role), frozenset())

    def actionable_stages(self, ctx: AuthContext) -> frozenset[ApprovalStage]:
        """Stages the caller can act on, designations included."""
        return frozenset(
            stage
            for stage in self._actionable.get(ctx.role, frozenset())
            if self._has_required_designation(ctx, ctx.role, stage)
        )

    def next_stage(self, stage: ApprovalStage) -> ApprovalStage | None:
        return self._successors.get(stage)

    def transition(
        self,
        request: ApprovableRequest,
        acting_role: Role | str,
        ctx: AuthContext,
        action: WorkflowAction | str,
        comment: str | None = None,
    ) -> TransitionResult:
        role = Role.parse(acting_role)
        try:
            action = WorkflowAction(action)
        except ValueError as exc:
            raise InvalidTransitionError(f"Unknown workflow action: {action!r}") from exc

        current = request.stage
        if current.is_terminal:
            raise InvalidTransitionError(f"Request is already {current.value}")
        if role is not ctx.role:
            raise InvalidTransitionError("Acting role does not match the caller's role")

        comment = comment.strip() if comment else None
        if action is WorkflowAction.REJECT and not comment:
            raise InvalidTransitionError("A rejection reason is required")

        if not self.can_act_at_stage(role, current):
            raise InvalidTransitionError(f"Cannot {action.value} at stage: {current.value}")
        if not self._has_required_designation(ctx, role, current):
            designation = self._designations[(role, current)]
            raise DesignationRequiredError(
                f"Only a {designation} may {action.value} at stage: {current.value}"
            )

        if action is WorkflowAction.APPROVE:
            following = self._successors.get(current)
            if following is None:
                raise InvalidTransitionError(f"No stage follows {current.value}")
            history_action = HistoryAction.APPROVED
        else:
            following = ApprovalStage.REJECTED
            history_action = HistoryAction.REJECTED

        return self._apply(request, ctx, role, history_action, following, comment)

    def issue(
        self,
        request: ApprovableRequest,
        ctx: AuthContext,
        artifact_url: str,
    ) -> TransitionResult:
        """Attach the issued document and move the request to ``issued``."""
        artifact_url = (artifact_url or "").strip()
        if not artifact_url:
            raise InvalidTransitionError("An issuance artifact reference is required")
        if request.stage is not ISSUANCE_STAGE:
            raise InvalidTransitionError(
                f"Cannot issue at stage: {request.stage.value}"
            )
        return self._apply(
            request,
            ctx,
            ctx.role,
            HistoryAction.ISSUED,
            ApprovalStage.ISSUED,
            None,
            artifact_url=artifact_url,
        )

    def _has_required_designation(
        self, ctx: AuthContext, role: Role, stage: ApprovalStage
    ) -> bool:
        designation = self._designations.get((role, stage))
        return designation is None or ctx.has_designation(designation)

    def _apply(
        self,
        request: ApprovableRequest,
        ctx: AuthContext,
        role: Role,
        history_action: HistoryAction,
        following: ApprovalStage,
        comment: str | None,
        artifact_url: str | None = None,
    ) -> TransitionResult:
        if stage_rank(following) <= stage_rank(request.stage):
            raise InvalidTransitionError(
                f"Stage map moves backwards: {request.stage.value} -> {following.value}"
            )
        now = self._clock()
        entry = HistoryEntry(
            acting_role=role,
            actor_id=ctx.subject_id,
            actor_name=ctx.display_name,
            action=history_action,
            stage_before=request.stage,
            stage_after=following,
            timestamp=now,
            comment=comment,
        )
        updated = replace(
            request,
            stage=following,
            history=request.history + (entry,),
            version=request.version + 1,
            updated_at=now,
            artifact_url=artifact_url if artifact_url is not None else request.artifact_url,
        )
        logger.info(
            "Request %s: %s -> %s by %s (%s)",
            request.request_id,
            request.stage.value,
            following.value,
            ctx.subject_id,
            role.value,
        )
        return TransitionResult(request=updated, entry=entry)
