"""Department isolation guard."""

from __future__ import annotations

import logging

from campus_rbac.audit.models import AuditOutcome
from campus_rbac.audit.recorder import AuditRecorder
from campus_rbac.auth.context import AuthContext
from campus_rbac.domain.roles import Role
from campus_rbac.domain.units import UnitDirectory, UnitMatch, UnitRef
from campus_rbac.policy.models import AccessScope, IsolationPolicy

logger = logging.getLogger(__name__)


class DepartmentIsolationGuard:
    """
    Decides whether a caller may touch a record owned by a given unit.

    - Admin bypasses isolation in every scope
    - Principal bypasses isolation only in the configured global scopes
    - Everyone else needs both units present and matching; anything
      missing or ambiguous is denied
    """

    def __init__(
        self,
        directory: UnitDirectory,
        policy: IsolationPolicy | None = None,
        recorder: AuditRecorder | None = None,
    ) -> None:
        self._directory = directory
        policy = policy or IsolationPolicy()
        self._principal_scopes = frozenset(policy.principal_global_scopes)
        self._recorder = recorder

    @property
    def directory(self) -> UnitDirectory:
        return self._directory

    def can_access(
        self,
        ctx: AuthContext,
        target: UnitRef | str | None,
        scope: AccessScope | str = AccessScope.READ,
    ) -> bool:
        scope = AccessScope(scope)

        if ctx.role is Role.ADMIN:
            logger.debug("Isolation bypass for admin %s", ctx.subject_id)
            return True

        if ctx.role is Role.PRINCIPAL and scope in self._principal_scopes:
            logger.debug(
                "Isolation bypass for principal %s in scope %s", ctx.subject_id, scope.value
            )
            return True

        target_ref = self._directory.classify(target)
        if target_ref is None or ctx.unit is None:
            return False

        match = self._directory.compare(ctx.unit, target_ref)
        if match is UnitMatch.AMBIGUOUS:
            self._report_ambiguity(ctx, target_ref, scope)
            return False
        return match is UnitMatch.MATCH

    def unit_filter(
        self,
        ctx: AuthContext,
        scope: AccessScope | str = AccessScope.READ,
    ) -> frozenset[str] | None:
        """Normalized unit strings a storage query should match.

        None means unrestricted. Rows selected this way must still pass
        ``can_access``.
        """
        scope = AccessScope(scope)
        if ctx.role is Role.ADMIN:
            return None
        if ctx.role is Role.PRINCIPAL and scope in self._principal_scopes:
            return None
        if ctx.unit is None:
            return frozenset()
        return self._directory.aliases(ctx.unit)

    def _report_ambiguity(self, ctx: AuthContext, target: UnitRef, scope: AccessScope) -> None:
        logger.warning(
            "Ambiguous unit comparison for %s: caller=%r target=%r; denying",
            ctx.subject_id,
            ctx.unit_value,
            target.value,
        )
        if self._recorder is None:
            return
        self._recorder.record_for(
            ctx,
            "isolation-check",
            "organizational-unit",
            target.value,
            {
                "caller_unit": ctx.unit_value,
                "caller_unit_kind": ctx.unit.kind if ctx.unit is not None else None,
                "target_unit": target.value,
                "target_unit_kind": target.kind,
                "scope": scope.value,
                "caller_candidates": sorted(self._directory.resolve(ctx.unit))
                if ctx.unit is not None
                else [],
                "target_candidates": sorted(self._directory.resolve(target)),
            },
            AuditOutcome.FAILURE,
            "Ambiguous organizational unit reference",
        )
