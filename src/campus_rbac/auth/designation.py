"""Department-head designation and faculty account review."""

from __future__ import annotations

import logging
from typing import Protocol

from campus_rbac.audit.models import AuditOutcome
from campus_rbac.audit.recorder import AuditRecorder
from campus_rbac.auth.context import AuthContext
from campus_rbac.auth.resolver import APPROVED
from campus_rbac.domain.roles import Role
from campus_rbac.errors import (
    DomainError,
    IdentityNotFoundError,
    InvalidDesignationError,
    InvalidRequestError,
)
from campus_rbac.policy.models import AccessScope
from campus_rbac.policy.pipeline import AccessPipeline
from campus_rbac.storage.models import IdentityRecord

logger = logging.getLogger(__name__)

REJECTED = "rejected"
PENDING = "pending"
REVIEW_DECISIONS = frozenset({APPROVED, REJECTED})


class IdentityStore(Protocol):
    def get_identity(self, subject_id: str) -> IdentityRecord | None: ...

    def list_identities(
        self, role: str | None = None, approval_status: str | None = None
    ) -> list[IdentityRecord]: ...

    def set_approval_status(self, subject_id: str, status: str) -> bool: ...

    def assign_department_head(self, subject_id: str, unit_id: str) -> str | None: ...


class DepartmentAdministration:
    """
    Administrative changes that feed the identity resolver.

    - ``designate_department_head`` grants a faculty member the
      department-head designation; the unit's previous head loses it
    - ``review_faculty_account`` flips the approval gate on a faculty account

    Both are authorized through the access pipeline and audited.
    """

    def __init__(
        self,
        store: IdentityStore,
        pipeline: AccessPipeline,
        recorder: AuditRecorder,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._recorder = recorder

    def designate_department_head(
        self, ctx: AuthContext, faculty_id: str, unit_id: str
    ) -> IdentityRecord:
        directory = self._pipeline.guard.directory
        try:
            self._pipeline.enforce(
                ctx, "faculty", "assign-department", unit_id, AccessScope.MANAGE
            )
            unit = directory.get(unit_id)
            if unit is None:
                raise InvalidDesignationError(f"Unknown unit: {unit_id}")
            target = self._faculty(faculty_id)
            if not target.active:
                raise InvalidDesignationError(f"Identity {faculty_id} is disabled")
            previous = self._store.assign_department_head(faculty_id, unit.unit_id)
        except DomainError as exc:
            self._recorder.record_for(
                ctx,
                "designate-department-head",
                "faculty",
                faculty_id,
                {"unit_id": unit_id},
                AuditOutcome.FAILURE,
                str(exc),
            )
            raise

        logger.info(
            "%s designated head of %s by %s (previous: %s)",
            faculty_id,
            unit.unit_id,
            ctx.subject_id,
            previous,
        )
        self._recorder.record_for(
            ctx,
            "designate-department-head",
            "faculty",
            faculty_id,
            {
                "unit_id": unit.unit_id,
                "unit_name": unit.name,
                "faculty_name": target.display_name,
                "previous_head_id": previous,
            },
        )
        return self._faculty(faculty_id)

    def review_faculty_account(
        self,
        ctx: AuthContext,
        faculty_id: str,
        decision: str,
        comment: str | None = None,
    ) -> IdentityRecord:
        """Approve or reject a faculty account.

        Principal and admin may review any unit; a hod only its own.
        """
        decision = (decision or "").strip().lower()
        if decision not in REVIEW_DECISIONS:
            raise InvalidRequestError(f"Invalid review decision: {decision!r}")

        target = self._faculty(faculty_id)
        try:
            self._pipeline.enforce(
                ctx, "faculty", "approve-account", target.unit, AccessScope.APPROVE
            )
            self._store.set_approval_status(faculty_id, decision)
        except DomainError as exc:
            self._recorder.record_for(
                ctx,
                "review-account",
                "faculty",
                faculty_id,
                {"decision": decision, "comment": comment},
                AuditOutcome.FAILURE,
                str(exc),
            )
            raise

        logger.info("Faculty account %s %s by %s", faculty_id, decision, ctx.subject_id)
        self._recorder.record_for(
            ctx,
            "review-account",
            "faculty",
            faculty_id,
            {"decision": decision, "comment": comment, "previous_status": target.approval_status},
        )
        return self._faculty(faculty_id)

    def pending_faculty_accounts(self, ctx: AuthContext) -> list[IdentityRecord]:
        """Faculty accounts awaiting review that the caller may decide on."""
        self._pipeline.enforce(ctx, "faculty", "approve-account", scoped=False)
        guard = self._pipeline.guard
        return [
            record
            for record in self._store.list_identities(role=Role.FACULTY.value, approval_status=PENDING)
            if guard.can_access(ctx, record.unit, AccessScope.APPROVE)
        ]

    def _faculty(self, subject_id: str) -> IdentityRecord:
        record = self._store.get_identity(subject_id)
        if record is None:
            raise IdentityNotFoundError(f"Identity not found: {subject_id}")
        if Role.parse(record.role) is not Role.FACULTY:
            raise InvalidDesignationError(f"Identity {subject_id} is not a faculty member")
        return record
