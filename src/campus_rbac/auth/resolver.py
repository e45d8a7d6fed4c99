"""Identity resolution: subject identifier to authorization context."""

from __future__ import annotations

import logging
from typing import Protocol

from campus_rbac.auth.context import DEPARTMENT_HEAD, AuthContext
from campus_rbac.domain.roles import Role
from campus_rbac.domain.units import UnitDirectory
from campus_rbac.errors import UnauthenticatedError
from campus_rbac.storage.models import IdentityRecord

logger = logging.getLogger(__name__)

APPROVED = "approved"

# Roles whose accounts must be approved before they carry any capability.
APPROVAL_GATED_ROLES = frozenset({Role.FACULTY})


class IdentitySource(Protocol):
    def get_identity(self, subject_id: str) -> IdentityRecord | None: ...


class IdentityResolver:
    """
    Loads a caller's authorization context from the identity store.

    - Unknown, disabled, and unapproved identities all resolve to None
    - Role values are parsed strictly; an unknown role is a data defect
    - Nothing is cached; every call reads the store
    """

    def __init__(self, source: IdentitySource, directory: UnitDirectory) -> None:
        self._source = source
        self._directory = directory

    def resolve(self, subject_id: str) -> AuthContext | None:
        if not subject_id or not subject_id.strip():
            return None

        record = self._source.get_identity(subject_id)
        if record is None:
            logger.info("No identity found for subject %s", subject_id)
            return None
        if not record.active:
            logger.warning("Identity %s is disabled", subject_id)
            return None

        role = Role.parse(record.role)
        if role in APPROVAL_GATED_ROLES and record.approval_status != APPROVED:
            logger.warning(
                "Identity %s (%s) is not approved: %s",
                subject_id,
                role.value,
                record.approval_status,
            )
            return None

        designations: set[str] = set()
        if role is Role.HOD or (role is Role.FACULTY and record.is_department_head):
            designations.add(DEPARTMENT_HEAD)

        return AuthContext(
            subject_id=record.subject_id,
            role=role,
            unit=self._directory.classify(record.unit),
            display_name=record.display_name,
            elevated=role is Role.ADMIN,
            designations=frozenset(designations),
        )

    def require(self, subject_id: str) -> AuthContext:
        """Resolve or raise ``UnauthenticatedError``."""
        ctx = self.resolve(subject_id)
        if ctx is None:
            raise UnauthenticatedError("Identity could not be resolved")
        return ctx
