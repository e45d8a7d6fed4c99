"""Role enumeration and seniority ordering."""

from __future__ import annotations

from enum import Enum

from campus_rbac.errors import UnknownRoleError


class Role(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    HOD = "hod"
    PRINCIPAL = "principal"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Role | str) -> Role:
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise UnknownRoleError(f"Unrecognized role value: {value!r}") from exc

    @property
    def level(self) -> int:
        return _ROLE_LEVELS[self]


# Student < Faculty < HOD < Principal < Admin
_ROLE_LEVELS: dict[Role, int] = {
    Role.STUDENT: 1,
    Role.FACULTY: 2,
    Role.HOD: 3,
    Role.PRINCIPAL: 4,
    Role.ADMIN: 5,
}


class RoleOrdering(Enum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


def compare_roles(role_a: Role | str, role_b: Role | str) -> RoleOrdering:
    level_a = Role.parse(role_a).level
    level_b = Role.parse(role_b).level
    if level_a > level_b:
        return RoleOrdering.GREATER
    if level_a < level_b:
        return RoleOrdering.LESS
    return RoleOrdering.EQUAL


def is_at_least(role: Role | str, threshold: Role | str) -> bool:
    """Return True if ``role`` is as senior as ``threshold`` or more."""
    return compare_roles(role, threshold) is not RoleOrdering.LESS
