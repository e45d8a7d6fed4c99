from __future__ import annotations

import dataclasses

import pytest

from campus_rbac.auth.context import (
    DEPARTMENT_HEAD,
    AuthContext,
    get_auth_context,
    get_auth_context_optional,
    reset_auth_context,
    set_auth_context,
)
from campus_rbac.domain.roles import Role
from campus_rbac.domain.units import UnitId


def _ctx(**overrides) -> AuthContext:
    values = {
        "subject_id": "fac-1",
        "role": Role.FACULTY,
        "unit": UnitId("dept-cse"),
        "display_name": "R. Kulkarni",
    }
    values.update(overrides)
    return AuthContext(**values)


def test_context_var_lifecycle() -> None:
    assert get_auth_context_optional() is None
    with pytest.raises(RuntimeError, match="No auth context set"):
        get_auth_context()

    ctx = _ctx()
    token = set_auth_context(ctx)
    assert get_auth_context() is ctx

    reset_auth_context(token)
    assert get_auth_context_optional() is None


def test_context_is_immutable() -> None:
    ctx = _ctx()
    with pytest.raises(dataclasses.FrozenInstanceError):
        ctx.role = Role.ADMIN  # type: ignore[misc]


def test_designations_are_frozen() -> None:
    ctx = _ctx(designations={DEPARTMENT_HEAD})

    assert isinstance(ctx.designations, frozenset)
    assert ctx.is_department_head
    assert ctx.has_designation(DEPARTMENT_HEAD)
    assert not _ctx().is_department_head


def test_unit_value_and_request_ids() -> None:
    assert _ctx().unit_value == "dept-cse"
    assert _ctx(unit=None).unit_value is None
    assert _ctx().request_id != _ctx().request_id
    assert _ctx().resolved_at.tzinfo is not None
