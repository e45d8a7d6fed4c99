"""Append-only audit event recorder."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Protocol
from uuid import uuid4

from campus_rbac.audit.models import AuditEvent, AuditOutcome
from campus_rbac.auth.context import AuthContext, get_auth_context_optional
from campus_rbac.domain.roles import Role
from campus_rbac.utils.masking import redact_sensitive_fields
from campus_rbac.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def add_audit_event(self, event: AuditEvent) -> None: ...


class AuditRecorder:
    """
    Fire-and-forget audit writer.

    A failed write is logged and never propagated: it must not change the
    result of the operation being audited. In asynchronous mode a single
    worker thread drains events in submission order.
    """

    def __init__(
        self,
        sink: AuditSink,
        *,
        enabled: bool = True,
        asynchronous: bool = False,
    ) -> None:
        self._sink = sink
        self._enabled = enabled
        self._executor: ThreadPoolExecutor | None = None
        self._pending: list[Future[None]] = []
        self._pending_lock = threading.Lock()
        if asynchronous:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit")

    def record(
        self,
        actor_id: str,
        actor_name: str,
        actor_role: Role | str,
        unit: str | None,
        action: str,
        resource_type: str,
        resource_id: str | None,
        payload: dict[str, object] | None,
        outcome: AuditOutcome | str = AuditOutcome.SUCCESS,
        error: str | None = None,
    ) -> None:
        if not self._enabled:
            return

        ctx = get_auth_context_optional()
        event = AuditEvent(
            event_id=uuid4().hex,
            actor_id=actor_id,
            actor_name=actor_name,
            actor_role=actor_role.value if isinstance(actor_role, Role) else str(actor_role),
            unit=unit,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            outcome=AuditOutcome(outcome),
            created_at=utc_now_iso(),
            payload=redact_sensitive_fields(dict(payload or {})),
            error=error,
            request_id=ctx.request_id if ctx is not None else None,
        )

        if self._executor is None:
            self._write(event)
            return
        future = self._executor.submit(self._write, event)
        with self._pending_lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def record_for(
        self,
        ctx: AuthContext,
        action: str,
        resource_type: str,
        resource_id: str | None,
        payload: dict[str, object] | None,
        outcome: AuditOutcome | str = AuditOutcome.SUCCESS,
        error: str | None = None,
    ) -> None:
        """Record an event attributed to a resolved caller."""
        self.record(
            ctx.subject_id,
            ctx.display_name,
            ctx.role,
            ctx.unit_value,
            action,
            resource_type,
            resource_id,
            payload,
            outcome,
            error,
        )

    def flush(self, timeout: float | None = None) -> None:
        """Wait for queued asynchronous writes."""
        with self._pending_lock:
            pending = list(self._pending)
            self._pending = []
        for future in pending:
            future.result(timeout=timeout)

    def close(self) -> None:
        if self._executor is not None:
            self.flush()
            self._executor.shutdown(wait=True)
            self._executor = None

    def _write(self, event: AuditEvent) -> None:
        try:
            self._sink.add_audit_event(event)
        except Exception:
            logger.exception(
                "Failed to write audit event action=%s resource=%s/%s actor=%s",
                event.action,
                event.resource_type,
                event.resource_id,
                event.actor_id,
            )
