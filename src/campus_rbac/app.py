"""Application context assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from campus_rbac.audit.recorder import AuditRecorder
from campus_rbac.auth.designation import DepartmentAdministration
from campus_rbac.auth.resolver import IdentityResolver
from campus_rbac.config import Settings, load_settings
from campus_rbac.domain.units import UnitDirectory
from campus_rbac.logging_utils import configure_logging
from campus_rbac.policy.isolation import DepartmentIsolationGuard
from campus_rbac.policy.loader import load_permissions
from campus_rbac.policy.pipeline import AccessPipeline
from campus_rbac.policy.table import PermissionTable
from campus_rbac.storage.db import SqliteStore
from campus_rbac.workflow.engine import ApprovalWorkflow
from campus_rbac.workflow.service import ApprovalService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Application-wide dependency container.

    Initialized once at startup and cached for the lifetime of the process.
    The unit directory is a snapshot of the units table at that point.
    """

    settings: Settings
    store: SqliteStore
    directory: UnitDirectory
    permissions: PermissionTable
    pipeline: AccessPipeline
    resolver: IdentityResolver
    recorder: AuditRecorder
    workflow: ApprovalWorkflow
    approvals: ApprovalService
    administration: DepartmentAdministration


def build_app_context(settings: Settings, store: SqliteStore | None = None) -> AppContext:
    """Wire every component from ``settings``."""
    config = load_permissions(settings.policy.path)

    if store is None:
        store = SqliteStore(settings.storage.sqlite_path, wal=settings.storage.sqlite_wal)
    recorder = AuditRecorder(
        store,
        enabled=settings.audit.enabled,
        asynchronous=settings.audit.asynchronous,
    )

    directory = UnitDirectory(store.list_units())
    permissions = PermissionTable(config)
    guard = DepartmentIsolationGuard(directory, config.isolation, recorder)
    pipeline = AccessPipeline(permissions, guard)
    workflow = ApprovalWorkflow()

    logger.info(
        "Access core ready: %d units, permission table v%d, audit=%s",
        len(directory),
        config.version,
        "async" if settings.audit.asynchronous else "sync" if settings.audit.enabled else "off",
    )

    return AppContext(
        settings=settings,
        store=store,
        directory=directory,
        permissions=permissions,
        pipeline=pipeline,
        resolver=IdentityResolver(store, directory),
        recorder=recorder,
        workflow=workflow,
        approvals=ApprovalService(store, pipeline, workflow, recorder),
        administration=DepartmentAdministration(store, pipeline, recorder),
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the cached application context."""
    settings = load_settings()
    configure_logging()
    return build_app_context(settings)
