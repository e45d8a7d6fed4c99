from __future__ import annotations

from datetime import datetime, timezone

import pytest

from campus_rbac.app import AppContext, build_app_context
from campus_rbac.auth.context import AuthContext
from campus_rbac.config import Settings
from campus_rbac.domain.roles import Role
from campus_rbac.domain.units import UnitId, UnitRecord, UnitRef
from campus_rbac.storage.db import SqliteStore
from campus_rbac.storage.models import IdentityRecord
from campus_rbac.workflow.models import ApprovableRequest, RequestKind
from campus_rbac.workflow.stages import ApprovalStage

UNITS = [
    UnitRecord("dept-cse", "Computer Science", "CSE"),
    UnitRecord("dept-ece", "Electronics and Communication", "ECE"),
]

IDENTITIES = [
    IdentityRecord("stu-1", "Asha Rao", "student", unit="dept-cse", approval_status="approved"),
    IdentityRecord(
        "stu-2", "Vikram Shah", "student", unit="Computer Science", approval_status="approved"
    ),
    IdentityRecord("stu-3", "Meera Iyer", "student", unit="dept-ece", approval_status="approved"),
    IdentityRecord("fac-1", "R. Kulkarni", "faculty", unit="dept-cse", approval_status="approved"),
    IdentityRecord("fac-2", "S. Nair", "faculty", unit="CSE", approval_status="approved"),
    IdentityRecord(
        "fac-head",
        "P. Menon",
        "faculty",
        unit="dept-cse",
        approval_status="approved",
        is_department_head=True,
    ),
    IdentityRecord("fac-ece", "T. Das", "faculty", unit="dept-ece", approval_status="approved"),
    IdentityRecord("fac-new", "N. Joshi", "faculty", unit="dept-cse", approval_status="pending"),
    IdentityRecord("hod-cse", "D. Pillai", "hod", unit="CSE", approval_status="approved"),
    IdentityRecord("hod-ece", "K. Bose", "hod", unit="dept-ece", approval_status="approved"),
    IdentityRecord("principal", "Dr. A. Sen", "principal", approval_status="approved"),
    IdentityRecord("admin", "Registrar", "admin", approval_status="approved"),
]

FIXED_NOW = datetime(2024, 7, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "campus.db")


@pytest.fixture
def store(db_path):
    sqlite_store = SqliteStore(db_path)
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def seeded_store(store):
    for unit in UNITS:
        store.upsert_unit(unit)
    for identity in IDENTITIES:
        store.upsert_identity(identity)
    return store


@pytest.fixture
def core(seeded_store) -> AppContext:
    return build_app_context(Settings(), store=seeded_store)


@pytest.fixture
def ctx_for(core):
    """Resolve a fresh AuthContext for a seeded subject."""

    def _resolve(subject_id: str) -> AuthContext:
        return core.resolver.require(subject_id)

    return _resolve


@pytest.fixture
def make_ctx():
    def _make(
        role: Role,
        unit: UnitRef | None = None,
        *,
        subject_id: str | None = None,
        designations: frozenset[str] = frozenset(),
    ) -> AuthContext:
        return AuthContext(
            subject_id=subject_id or f"{role.value}-1",
            role=role,
            unit=unit,
            display_name=f"Test {role.value}",
            elevated=role is Role.ADMIN,
            designations=designations,
        )

    return _make


@pytest.fixture
def make_request():
    def _make(
        stage: ApprovalStage = ApprovalStage.PENDING,
        unit: UnitRef | None = UnitId("dept-cse"),
        *,
        request_id: str = "req-1",
        requester_id: str = "stu-1",
        kind: RequestKind = RequestKind.BONAFIDE_CERTIFICATE,
        version: int = 0,
    ) -> ApprovableRequest:
        return ApprovableRequest(
            request_id=request_id,
            kind=kind,
            requester_id=requester_id,
            requester_name="Asha Rao",
            unit=unit,
            purpose="Education loan",
            stage=stage,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
            version=version,
        )

    return _make
