from __future__ import annotations

import pytest

from campus_rbac.domain.roles import Role
from campus_rbac.errors import UnknownRoleError
from campus_rbac.policy.loader import load_permissions
from campus_rbac.policy.models import PermissionConfig
from campus_rbac.policy.table import PermissionTable


@pytest.fixture
def table() -> PermissionTable:
    return PermissionTable(load_permissions())


@pytest.mark.parametrize(
    ("role", "resource_type", "action", "expected"),
    [
        (Role.STUDENT, "request", "create", True),
        (Role.STUDENT, "request", "approve", False),
        (Role.STUDENT, "request", "read-own", True),
        (Role.FACULTY, "request", "approve", True),
        (Role.FACULTY, "request", "reject", True),
        (Role.FACULTY, "request", "create", False),
        (Role.HOD, "faculty", "approve-account", True),
        (Role.HOD, "request", "issue", False),
        (Role.PRINCIPAL, "department", "delete", False),
        (Role.PRINCIPAL, "request", "issue", True),
        (Role.ADMIN, "audit", "export", True),
        (Role.ADMIN, "faculty", "assign-department", True),
        (Role.ADMIN, "timetable", "read", False),
        (Role.ADMIN, "request", "teleport", False),
    ],
)
def test_default_grants(table, role, resource_type, action, expected) -> None:
    assert table.allows(role, resource_type, action) is expected


def test_accepts_role_strings(table) -> None:
    assert table.allows("hod", "student", "read-own-dept")
    with pytest.raises(UnknownRoleError):
        table.allows("dean", "request", "approve")


def test_actions_for_and_resource_types(table) -> None:
    assert table.actions_for(Role.STUDENT, "request") == frozenset(
        {"create", "read-own", "track-approval"}
    )
    assert table.actions_for(Role.STUDENT, "audit") == frozenset()
    assert "profile" in table.resource_types(Role.STUDENT)
    assert "audit" not in table.resource_types(Role.FACULTY)


def test_custom_config_is_default_deny() -> None:
    config = PermissionConfig.model_validate({"roles": {"student": {"request": ["create"]}}})
    table = PermissionTable(config)

    assert table.allows(Role.STUDENT, "request", "create")
    assert not table.allows(Role.ADMIN, "request", "create")
    assert not table.allows(Role.STUDENT, "request", "read-own")


def test_names_are_trimmed_and_null_actions_become_empty() -> None:
    config = PermissionConfig.model_validate(
        {"roles": {"faculty": {" course ": [" read-own "], "materials": None}}}
    )
    table = PermissionTable(config)

    assert table.allows(Role.FACULTY, "course", "read-own")
    assert table.actions_for(Role.FACULTY, "materials") == frozenset()
