"""Data models for records read from and written to storage."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class IdentityRecord:
    subject_id: str
    display_name: str
    role: str
    unit: str | None = None
    approval_status: str = "pending"
    is_department_head: bool = False
    active: bool = True
    email: str | None = None
    updated_at: str | None = None
