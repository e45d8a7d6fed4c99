"""Document request service: submission, sign-off, issuance, and queries."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Protocol
from uuid import uuid4

from campus_rbac.audit.models import AuditOutcome
from campus_rbac.audit.recorder import AuditRecorder
from campus_rbac.auth.context import AuthContext
from campus_rbac.errors import (
    ConcurrentModificationError,
    DomainError,
    DuplicateRequestError,
    InvalidRequestError,
    InvalidTransitionError,
    RequestNotFoundError,
)
from campus_rbac.policy.models import AccessScope
from campus_rbac.policy.pipeline import AccessPipeline
from campus_rbac.utils.time import utc_now
from campus_rbac.workflow.engine import ApprovalWorkflow, TransitionResult
from campus_rbac.workflow.models import (
    ApprovableRequest,
    HistoryEntry,
    RequestKind,
    WorkflowAction,
)
from campus_rbac.workflow.stages import ApprovalStage

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "request"

# Read grants that open another user's request, subject to isolation.
_READ_ACTIONS = ("read-all", "read-own-dept", "read-department")


class RequestStore(Protocol):
    def create_request(self, request: ApprovableRequest, *, unique_active: bool = True) -> bool: ...

    def get_request(self, request_id: str) -> ApprovableRequest | None: ...

    def list_requests(
        self,
        *,
        units=None,
        stages=None,
        requester_id: str | None = None,
        kind: RequestKind | None = None,
    ) -> list[ApprovableRequest]: ...

    def save_transition(
        self, request: ApprovableRequest, entry: HistoryEntry, expected_version: int
    ) -> bool: ...


class ApprovalService:
    """
    Single entry point for acting on document requests.

    Every mutating call runs the access pipeline (role gate, then isolation),
    then the state machine, then a version-checked write, and is audited
    whether it succeeds or fails.
    """

    def __init__(
        self,
        store: RequestStore,
        pipeline: AccessPipeline,
        workflow: ApprovalWorkflow,
        recorder: AuditRecorder,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._workflow = workflow
        self._recorder = recorder
        self._clock = clock

    def submit(
        self,
        ctx: AuthContext,
        kind: RequestKind | str,
        purpose: str,
    ) -> ApprovableRequest:
        self._pipeline.enforce(ctx, RESOURCE_TYPE, "create", scoped=False)
        try:
            kind = RequestKind(kind)
        except ValueError as exc:
            raise InvalidRequestError(f"Unknown document kind: {kind!r}") from exc
        purpose = (purpose or "").strip()
        if not purpose:
            raise InvalidRequestError("A purpose is required")

        now = self._clock()
        request = ApprovableRequest(
            request_id=uuid4().hex,
            kind=kind,
            requester_id=ctx.subject_id,
            requester_name=ctx.display_name,
            unit=ctx.unit,
            purpose=purpose,
            stage=ApprovalStage.PENDING,
            created_at=now,
            updated_at=now,
        )
        if not self._store.create_request(request):
            self._recorder.record_for(
                ctx,
                "create",
                RESOURCE_TYPE,
                None,
                {"kind": kind.value},
                AuditOutcome.FAILURE,
                "An active request of this kind already exists",
            )
            raise DuplicateRequestError(
                f"An active {kind.value} request already exists for {ctx.subject_id}"
            )

        logger.info("Request %s (%s) submitted by %s", request.request_id, kind.value, ctx.subject_id)
        self._recorder.record_for(
            ctx,
            "create",
            RESOURCE_TYPE,
            request.request_id,
            {"kind": kind.value, "purpose": purpose},
        )
        return request

    def act(
        self,
        ctx: AuthContext,
        request_id: str,
        action: WorkflowAction | str,
        comment: str | None = None,
    ) -> ApprovableRequest:
        """Approve or reject ``request_id`` as the caller's own role."""
        try:
            action = WorkflowAction(action)
        except ValueError as exc:
            raise InvalidTransitionError(f"Unknown workflow action: {action!r}") from exc

        request = self._load(request_id)
        try:
            self._pipeline.enforce(
                ctx, RESOURCE_TYPE, action.value, request.unit, AccessScope.APPROVE
            )
            result = self._workflow.transition(request, ctx.role, ctx, action, comment)
            self._persist(request, result)
        except DomainError as exc:
            self._recorder.record_for(
                ctx,
                action.value,
                RESOURCE_TYPE,
                request_id,
                {"stage": request.stage.value, "comment": comment},
                AuditOutcome.FAILURE,
                str(exc),
            )
            raise

        self._record_transition(ctx, action.value, result)
        return result.request

    def issue(self, ctx: AuthContext, request_id: str, artifact_url: str) -> ApprovableRequest:
        """Attach the issued document to a fully approved request."""
        request = self._load(request_id)
        try:
            self._pipeline.enforce(ctx, RESOURCE_TYPE, "issue", request.unit, AccessScope.APPROVE)
            result = self._workflow.issue(request, ctx, artifact_url)
            self._persist(request, result)
        except DomainError as exc:
            self._recorder.record_for(
                ctx,
                "issue",
                RESOURCE_TYPE,
                request_id,
                {"stage": request.stage.value},
                AuditOutcome.FAILURE,
                str(exc),
            )
            raise

        self._record_transition(ctx, "issue", result, artifact_url=result.request.artifact_url)
        return result.request

    def get(self, ctx: AuthContext, request_id: str) -> ApprovableRequest:
        request = self._load(request_id)
        table = self._pipeline.table
        if request.requester_id == ctx.subject_id and table.allows(ctx.role, RESOURCE_TYPE, "read-own"):
            return request

        granted = [a for a in _READ_ACTIONS if table.allows(ctx.role, RESOURCE_TYPE, a)]
        read_action = granted[0] if granted else "read-all"
        self._pipeline.enforce(ctx, RESOURCE_TYPE, read_action, request.unit, AccessScope.READ)
        return request

    def pending_for(self, ctx: AuthContext) -> list[ApprovableRequest]:
        """Requests waiting on the caller, restricted to what the caller may approve."""
        if not self._pipeline.table.allows(ctx.role, RESOURCE_TYPE, WorkflowAction.APPROVE.value):
            return []
        stages = self._workflow.actionable_stages(ctx)
        if not stages:
            return []

        units = self._pipeline.guard.unit_filter(ctx, AccessScope.APPROVE)
        candidates = self._store.list_requests(units=units, stages=stages)
        return [
            request
            for request in candidates
            if self._pipeline.guard.can_access(ctx, request.unit, AccessScope.APPROVE)
        ]

    def list_own(self, ctx: AuthContext) -> list[ApprovableRequest]:
        self._pipeline.enforce(ctx, RESOURCE_TYPE, "read-own", scoped=False)
        return self._store.list_requests(requester_id=ctx.subject_id)

    def _load(self, request_id: str) -> ApprovableRequest:
        request = self._store.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(f"Request not found: {request_id}")
        return request

    def _persist(self, original: ApprovableRequest, result: TransitionResult) -> None:
        if not self._store.save_transition(result.request, result.entry, original.version):
            logger.warning(
                "Request %s changed since version %d; transition discarded",
                original.request_id,
                original.version,
            )
            raise ConcurrentModificationError(
                f"Request {original.request_id} was modified concurrently"
            )

    def _record_transition(
        self,
        ctx: AuthContext,
        action: str,
        result: TransitionResult,
        **extra: object,
    ) -> None:
        entry = result.entry
        payload: dict[str, object] = {
            "kind": result.request.kind.value,
            "stage_before": entry.stage_before.value,
            "stage_after": entry.stage_after.value,
            "comment": entry.comment,
            "version": result.request.version,
        }
        payload.update(extra)
        self._recorder.record_for(ctx, action, RESOURCE_TYPE, result.request.request_id, payload)
