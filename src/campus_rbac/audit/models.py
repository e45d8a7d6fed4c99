"""Data models for audit records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class AuditOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class AuditEvent:
    event_id: str
    actor_id: str
    actor_name: str
    actor_role: str
    unit: str | None
    action: str
    resource_type: str
    resource_id: str | None
    outcome: AuditOutcome
    created_at: str
    payload: dict[str, object] = field(default_factory=dict)
    error: str | None = None
    request_id: str | None = None
