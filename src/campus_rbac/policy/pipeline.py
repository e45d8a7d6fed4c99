"""Two-gate authorization pipeline: role level, then scope level."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from campus_rbac.auth.context import AuthContext
from campus_rbac.domain.units import UnitRef
from campus_rbac.errors import RoleUnauthorizedError, ScopeUnauthorizedError
from campus_rbac.policy.isolation import DepartmentIsolationGuard
from campus_rbac.policy.models import AccessScope
from campus_rbac.policy.table import PermissionTable

logger = logging.getLogger(__name__)


@dataclass
class AccessDecision:
    allowed: bool
    reasons: list[str] = field(default_factory=list)
    role_allowed: bool = False
    scope_allowed: bool = False


class AccessPipeline:
    def __init__(self, table: PermissionTable, guard: DepartmentIsolationGuard) -> None:
        self._table = table
        self._guard = guard

    @property
    def table(self) -> PermissionTable:
        return self._table

    @property
    def guard(self) -> DepartmentIsolationGuard:
        return self._guard

    def authorize(
        self,
        ctx: AuthContext,
        resource_type: str,
        action: str,
        target_unit: UnitRef | str | None = None,
        scope: AccessScope | str = AccessScope.READ,
        *,
        scoped: bool = True,
    ) -> AccessDecision:
        """Evaluate both gates.

        ``scoped=False`` is only for actions that do not target an existing
        record (e.g. creating a new request).
        """
        reasons: list[str] = []
        if not self._table.allows(ctx.role, resource_type, action):
            reasons.append(f"Role '{ctx.role.value}' may not {action} {resource_type}")
            return AccessDecision(False, reasons)

        if scoped and not self._guard.can_access(ctx, target_unit, scope):
            reasons.append("Target is outside the caller's organizational unit")
            return AccessDecision(False, reasons, role_allowed=True)

        return AccessDecision(True, reasons, role_allowed=True, scope_allowed=scoped)

    def enforce(
        self,
        ctx: AuthContext,
        resource_type: str,
        action: str,
        target_unit: UnitRef | str | None = None,
        scope: AccessScope | str = AccessScope.READ,
        *,
        scoped: bool = True,
    ) -> AccessDecision:
        decision = self.authorize(
            ctx, resource_type, action, target_unit, scope, scoped=scoped
        )
        if decision.allowed:
            return decision
        logger.info(
            "Access denied for %s (%s): %s %s: %s",
            ctx.subject_id,
            ctx.role.value,
            action,
            resource_type,
            "; ".join(decision.reasons),
        )
        if not decision.role_allowed:
            raise RoleUnauthorizedError(decision.reasons[0])
        raise ScopeUnauthorizedError(decision.reasons[0])
