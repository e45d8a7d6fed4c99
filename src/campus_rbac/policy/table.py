"""Static role/resource permission table."""

from __future__ import annotations

import logging
from types import MappingProxyType

from campus_rbac.domain.roles import Role
from campus_rbac.policy.models import PermissionConfig

logger = logging.getLogger(__name__)


class PermissionTable:
    """
    Read-only (role, resource type) -> allowed actions lookup.

    Built once from a ``PermissionConfig``; anything not granted is denied.
    """

    def __init__(self, config: PermissionConfig) -> None:
        grants: dict[tuple[Role, str], frozenset[str]] = {}
        for role, resources in config.roles.items():
            for resource_type, actions in resources.items():
                key = (role, resource_type.strip())
                grants[key] = grants.get(key, frozenset()) | frozenset(
                    action.strip() for action in actions
                )
        self._grants = MappingProxyType(grants)
        logger.info("PermissionTable initialized with %d grants", len(grants))

    def allows(self, role: Role | str, resource_type: str, action: str) -> bool:
        actions = self._grants.get((Role.parse(role), resource_type))
        if actions is None:
            return False
        return action in actions

    def actions_for(self, role: Role | str, resource_type: str) -> frozenset[str]:
        return self._grants.get((Role.parse(role), resource_type), frozenset())

    def resource_types(self, role: Role | str) -> frozenset[str]:
        parsed = Role.parse(role)
        return frozenset(resource for granted_role, resource in self._grants if granted_role is parsed)
