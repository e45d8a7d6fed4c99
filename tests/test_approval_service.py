from __future__ import annotations

import threading

import pytest

from campus_rbac.audit.models import AuditOutcome
from campus_rbac.domain.roles import Role
from campus_rbac.errors import (
    ConcurrentModificationError,
    DesignationRequiredError,
    DuplicateRequestError,
    InvalidRequestError,
    InvalidTransitionError,
    RequestNotFoundError,
    RoleUnauthorizedError,
    ScopeUnauthorizedError,
)
from campus_rbac.storage.models import IdentityRecord
from campus_rbac.workflow.models import HistoryAction, RequestKind
from campus_rbac.workflow.stages import ApprovalStage

S = ApprovalStage
ARTIFACT = "https://files.example.edu/certificates/bonafide.pdf"


@pytest.fixture
def service(core):
    return core.approvals


@pytest.fixture
def submitted(service, ctx_for):
    return service.submit(ctx_for("stu-1"), "bonafide-certificate", "Education loan")


def _events(core, request_id):
    return core.store.list_audit_events(resource_type="request", resource_id=request_id)


def test_full_approval_chain(core, service, ctx_for, submitted) -> None:
    rid = submitted.request_id

    assert service.act(ctx_for("fac-1"), rid, "approve").stage is S.FACULTY_APPROVED
    assert service.act(ctx_for("hod-cse"), rid, "approve").stage is S.HOD_APPROVED
    assert service.act(ctx_for("principal"), rid, "approve", "Verified").stage is S.ADMIN_APPROVED
    issued = service.issue(ctx_for("admin"), rid, ARTIFACT)

    assert issued.stage is S.ISSUED
    assert issued.artifact_url == ARTIFACT
    stored = core.store.get_request(rid)
    assert stored.version == 4
    assert [(e.acting_role, e.actor_id) for e in stored.history] == [
        (Role.FACULTY, "fac-1"),
        (Role.HOD, "hod-cse"),
        (Role.PRINCIPAL, "principal"),
        (Role.ADMIN, "admin"),
    ]
    assert stored.history[2].comment == "Verified"

    events = _events(core, rid)
    assert [e.action for e in events] == ["create", "approve", "approve", "approve", "issue"]
    assert all(e.outcome is AuditOutcome.SUCCESS for e in events)
    assert events[-1].payload["artifact_url"] == ARTIFACT


def test_submit_snapshots_requester_unit(service, ctx_for) -> None:
    request = service.submit(ctx_for("stu-2"), RequestKind.LEAVING_CERTIFICATE, "Transfer")

    assert request.stage is S.PENDING
    assert request.unit_value == "Computer Science"
    assert request.requester_name == "Vikram Shah"


def test_mixed_unit_representations_are_isolated_correctly(service, ctx_for) -> None:
    request = service.submit(ctx_for("stu-2"), "bonafide-certificate", "Scholarship")

    # Request unit is the name form, faculty unit is the id form.
    assert service.act(ctx_for("fac-1"), request.request_id, "approve").stage is S.FACULTY_APPROVED


def test_other_department_is_denied_and_audited(core, service, ctx_for, submitted) -> None:
    with pytest.raises(ScopeUnauthorizedError):
        service.act(ctx_for("fac-ece"), submitted.request_id, "approve")

    assert core.store.get_request(submitted.request_id).stage is S.PENDING
    failure = _events(core, submitted.request_id)[-1]
    assert failure.outcome is AuditOutcome.FAILURE
    assert failure.actor_id == "fac-ece"
    assert failure.error


def test_student_cannot_approve(service, ctx_for, submitted) -> None:
    with pytest.raises(RoleUnauthorizedError):
        service.act(ctx_for("stu-1"), submitted.request_id, "approve")


def test_non_head_faculty_cannot_take_second_faculty_step(service, ctx_for, submitted) -> None:
    rid = submitted.request_id
    service.act(ctx_for("fac-1"), rid, "approve")

    with pytest.raises(DesignationRequiredError):
        service.act(ctx_for("fac-2"), rid, "approve")

    assert service.act(ctx_for("fac-head"), rid, "approve").stage is S.HOD_APPROVED


def test_principal_cannot_skip_ahead(service, ctx_for, submitted) -> None:
    with pytest.raises(InvalidTransitionError):
        service.act(ctx_for("principal"), submitted.request_id, "approve")


def test_admin_stands_in_at_hod_approved(service, ctx_for, submitted) -> None:
    rid = submitted.request_id
    service.act(ctx_for("fac-1"), rid, "approve")
    service.act(ctx_for("hod-cse"), rid, "approve")

    assert service.act(ctx_for("admin"), rid, "approve").stage is S.ADMIN_APPROVED


def test_rejection_is_terminal_and_allows_resubmission(service, ctx_for, submitted) -> None:
    rid = submitted.request_id
    with pytest.raises(InvalidTransitionError):
        service.act(ctx_for("fac-1"), rid, "reject")

    rejected = service.act(ctx_for("fac-1"), rid, "reject", "Attendance below threshold")
    assert rejected.stage is S.REJECTED

    with pytest.raises(InvalidTransitionError):
        service.act(ctx_for("fac-head"), rid, "approve")

    again = service.submit(ctx_for("stu-1"), "bonafide-certificate", "Education loan")
    assert again.request_id != rid
    assert again.stage is S.PENDING


@pytest.fixture
def rejected_after_hod(service, ctx_for, submitted):
    rid = submitted.request_id
    service.act(ctx_for("fac-1"), rid, "approve")
    service.act(ctx_for("hod-cse"), rid, "approve")
    return service.act(ctx_for("admin"), rid, "reject", "incomplete documents")


def test_admin_rejection_after_two_approvals(core, rejected_after_hod) -> None:
    stored = core.store.get_request(rejected_after_hod.request_id)

    assert stored.stage is S.REJECTED
    assert [(e.acting_role, e.action, e.stage_after) for e in stored.history] == [
        (Role.FACULTY, HistoryAction.APPROVED, S.FACULTY_APPROVED),
        (Role.HOD, HistoryAction.APPROVED, S.HOD_APPROVED),
        (Role.ADMIN, HistoryAction.REJECTED, S.REJECTED),
    ]
    assert stored.history[-1].comment == "incomplete documents"


@pytest.mark.parametrize(
    ("subject_id", "error"),
    [
        ("stu-1", RoleUnauthorizedError),
        ("fac-1", InvalidTransitionError),
        ("fac-head", InvalidTransitionError),
        ("hod-cse", InvalidTransitionError),
        ("principal", InvalidTransitionError),
        ("admin", InvalidTransitionError),
    ],
)
def test_no_role_can_approve_after_rejection(
    core, service, ctx_for, rejected_after_hod, subject_id, error
) -> None:
    rid = rejected_after_hod.request_id

    with pytest.raises(error):
        service.act(ctx_for(subject_id), rid, "approve")

    stored = core.store.get_request(rid)
    assert stored.stage is S.REJECTED
    assert len(stored.history) == 3
    assert stored.version == 3


def test_one_active_request_per_kind(service, ctx_for, submitted) -> None:
    with pytest.raises(DuplicateRequestError):
        service.submit(ctx_for("stu-1"), "bonafide-certificate", "Again")

    other = service.submit(ctx_for("stu-1"), "leaving-certificate", "Graduating")
    assert other.kind is RequestKind.LEAVING_CERTIFICATE


def test_submit_validation(service, ctx_for) -> None:
    with pytest.raises(RoleUnauthorizedError):
        service.submit(ctx_for("fac-1"), "bonafide-certificate", "Not a student")
    with pytest.raises(InvalidRequestError):
        service.submit(ctx_for("stu-1"), "transcript", "Unknown kind")
    with pytest.raises(InvalidRequestError):
        service.submit(ctx_for("stu-1"), "bonafide-certificate", "   ")


def test_unknown_request_and_action(service, ctx_for, submitted) -> None:
    with pytest.raises(RequestNotFoundError):
        service.act(ctx_for("fac-1"), "missing", "approve")
    with pytest.raises(InvalidTransitionError):
        service.act(ctx_for("fac-1"), submitted.request_id, "escalate")


def test_issue_rules(service, ctx_for, submitted) -> None:
    rid = submitted.request_id
    with pytest.raises(InvalidTransitionError):
        service.issue(ctx_for("admin"), rid, ARTIFACT)
    with pytest.raises(RoleUnauthorizedError):
        service.issue(ctx_for("hod-cse"), rid, ARTIFACT)


def test_get_visibility(service, ctx_for, submitted) -> None:
    rid = submitted.request_id

    assert service.get(ctx_for("stu-1"), rid).request_id == rid
    assert service.get(ctx_for("fac-2"), rid).request_id == rid
    assert service.get(ctx_for("hod-cse"), rid).request_id == rid
    assert service.get(ctx_for("principal"), rid).request_id == rid
    with pytest.raises(RoleUnauthorizedError):
        service.get(ctx_for("stu-2"), rid)
    with pytest.raises(ScopeUnauthorizedError):
        service.get(ctx_for("fac-ece"), rid)
    with pytest.raises(ScopeUnauthorizedError):
        service.get(ctx_for("hod-ece"), rid)


def test_pending_queues(service, ctx_for, submitted) -> None:
    ece = service.submit(ctx_for("stu-3"), "bonafide-certificate", "Internship")
    cse = submitted.request_id

    assert [r.request_id for r in service.pending_for(ctx_for("fac-1"))] == [cse]
    assert [r.request_id for r in service.pending_for(ctx_for("fac-ece"))] == [ece.request_id]
    assert service.pending_for(ctx_for("hod-cse")) == []
    assert service.pending_for(ctx_for("stu-1")) == []

    service.act(ctx_for("fac-1"), cse, "approve")

    assert service.pending_for(ctx_for("fac-1")) == []
    assert [r.request_id for r in service.pending_for(ctx_for("fac-head"))] == [cse]
    assert [r.request_id for r in service.pending_for(ctx_for("hod-cse"))] == [cse]
    assert service.pending_for(ctx_for("hod-ece")) == []

    service.act(ctx_for("hod-cse"), cse, "approve")

    assert [r.request_id for r in service.pending_for(ctx_for("principal"))] == [cse]
    assert [r.request_id for r in service.pending_for(ctx_for("admin"))] == [cse]


def test_pending_queue_matches_irregular_unit_spelling(core, service, ctx_for) -> None:
    core.store.upsert_identity(
        IdentityRecord(
            "stu-9", "Kiran Patil", "student", unit="Computer  SCIENCE", approval_status="approved"
        )
    )
    request = service.submit(ctx_for("stu-9"), "bonafide-certificate", "Scholarship")

    assert core.pipeline.guard.can_access(ctx_for("fac-1"), request.unit)
    assert [r.request_id for r in service.pending_for(ctx_for("fac-1"))] == [request.request_id]
    assert service.pending_for(ctx_for("fac-ece")) == []


def test_list_own(service, ctx_for, submitted) -> None:
    service.submit(ctx_for("stu-3"), "bonafide-certificate", "Internship")

    assert [r.request_id for r in service.list_own(ctx_for("stu-1"))] == [submitted.request_id]
    with pytest.raises(RoleUnauthorizedError):
        service.list_own(ctx_for("fac-1"))


def test_stale_read_loses(core, service, ctx_for, submitted, monkeypatch) -> None:
    rid = submitted.request_id
    stale = core.store.get_request(rid)
    service.act(ctx_for("fac-1"), rid, "approve")

    monkeypatch.setattr(core.store, "get_request", lambda _request_id: stale)
    with pytest.raises(ConcurrentModificationError):
        service.act(ctx_for("fac-2"), rid, "approve")
    monkeypatch.undo()

    stored = core.store.get_request(rid)
    assert stored.version == 1
    assert [e.actor_id for e in stored.history] == ["fac-1"]
    failure = _events(core, rid)[-1]
    assert failure.outcome is AuditOutcome.FAILURE
    assert failure.actor_id == "fac-2"


def test_concurrent_approvals_apply_once(core, service, ctx_for, submitted) -> None:
    rid = submitted.request_id
    callers = [ctx_for("fac-1"), ctx_for("fac-2")]
    barrier = threading.Barrier(len(callers))
    outcomes: list[object] = []
    lock = threading.Lock()

    def approve(ctx) -> None:
        barrier.wait()
        try:
            result: object = service.act(ctx, rid, "approve")
        except (ConcurrentModificationError, InvalidTransitionError) as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=approve, args=(ctx,)) for ctx in callers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    errors = [o for o in outcomes if isinstance(o, Exception)]
    assert len(outcomes) == 2
    assert len(errors) == 1
    stored = core.store.get_request(rid)
    assert stored.stage is S.FACULTY_APPROVED
    assert stored.version == 1
    assert len(stored.history) == 1
