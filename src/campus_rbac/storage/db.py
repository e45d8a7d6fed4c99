"""SQLite access layer for identities, units, document requests, and audit events."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Mapping, Sequence

from campus_rbac.audit.models import AuditEvent, AuditOutcome
from campus_rbac.domain.roles import Role
from campus_rbac.domain.units import UnitRecord, normalize_unit_text, unit_ref_from
from campus_rbac.storage.models import IdentityRecord
from campus_rbac.utils.serialization import dumps_payload, loads_payload
from campus_rbac.utils.time import parse_iso, utc_now_iso
from campus_rbac.workflow.models import (
    ApprovableRequest,
    HistoryAction,
    HistoryEntry,
    RequestKind,
)
from campus_rbac.workflow.stages import TERMINAL_STAGES, ApprovalStage

_SqlValue = str | bytes | int | float | None
_SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]


class SqliteStore:
    def __init__(self, path: str, wal: bool = True) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False
        if wal:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS identities (
                subject_id TEXT PRIMARY KEY,
                display_name TEXT NOT NULL,
                role TEXT NOT NULL,
                unit TEXT,
                approval_status TEXT NOT NULL,
                is_department_head INTEGER NOT NULL DEFAULT 0,
                active INTEGER NOT NULL DEFAULT 1,
                email TEXT,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS units (
                unit_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                abbreviation TEXT,
                head_id TEXT
            );

            CREATE TABLE IF NOT EXISTS approval_requests (
                request_id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                requester_id TEXT NOT NULL,
                requester_name TEXT NOT NULL,
                unit TEXT,
                unit_kind TEXT,
                unit_key TEXT,
                purpose TEXT NOT NULL,
                stage TEXT NOT NULL,
                version INTEGER NOT NULL,
                artifact_url TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS approval_history (
                request_id TEXT NOT NULL,
                seq INTEGER NOT NULL,
                acting_role TEXT NOT NULL,
                actor_id TEXT NOT NULL,
                actor_name TEXT NOT NULL,
                action TEXT NOT NULL,
                stage_before TEXT NOT NULL,
                stage_after TEXT NOT NULL,
                comment TEXT,
                created_at TEXT NOT NULL,
                PRIMARY KEY (request_id, seq),
                FOREIGN KEY(request_id) REFERENCES approval_requests(request_id)
            );

            CREATE TABLE IF NOT EXISTS audit_events (
                event_id TEXT PRIMARY KEY,
                actor_id TEXT NOT NULL,
                actor_name TEXT NOT NULL,
                actor_role TEXT NOT NULL,
                unit TEXT,
                action TEXT NOT NULL,
                resource_type TEXT NOT NULL,
                resource_id TEXT,
                payload TEXT NOT NULL,
                outcome TEXT NOT NULL,
                error TEXT,
                request_id TEXT,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_identities_role_status
                ON identities(role, approval_status);
            CREATE INDEX IF NOT EXISTS idx_requests_unit_stage
                ON approval_requests(unit_key, stage);
            CREATE INDEX IF NOT EXISTS idx_requests_requester
                ON approval_requests(requester_id, kind);
            CREATE INDEX IF NOT EXISTS idx_audit_resource
                ON audit_events(resource_type, resource_id);
            """
        )
        self._conn.commit()

    def execute(
        self,
        query: str,
        params: _SqlParams,
    ) -> None:
        with self._lock:
            self._conn.execute(query, params)
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    def fetch_one(
        self,
        query: str,
        params: _SqlParams,
    ) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchone()

    def fetch_all(
        self,
        query: str,
        params: _SqlParams,
    ) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchall()

    # Identities

    def upsert_identity(self, identity: IdentityRecord) -> None:
        self.execute(
            """
            INSERT INTO identities (
                subject_id, display_name, role, unit, approval_status,
                is_department_head, active, email, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(subject_id) DO UPDATE SET
                display_name = excluded.display_name,
                role = excluded.role,
                unit = excluded.unit,
                approval_status = excluded.approval_status,
                is_department_head = excluded.is_department_head,
                active = excluded.active,
                email = excluded.email,
                updated_at = excluded.updated_at
            """,
            (
                identity.subject_id,
                identity.display_name,
                identity.role,
                identity.unit,
                identity.approval_status,
                int(identity.is_department_head),
                int(identity.active),
                identity.email,
                identity.updated_at or utc_now_iso(),
            ),
        )

    def get_identity(self, subject_id: str) -> IdentityRecord | None:
        row = self.fetch_one("SELECT * FROM identities WHERE subject_id = ?", (subject_id,))
        if row is None:
            return None
        return _row_to_identity(row)

    def list_identities(
        self,
        role: str | None = None,
        approval_status: str | None = None,
    ) -> list[IdentityRecord]:
        clauses: list[str] = []
        params: list[_SqlValue] = []
        if role is not None:
            clauses.append("role = ?")
            params.append(role)
        if approval_status is not None:
            clauses.append("approval_status = ?")
            params.append(approval_status)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.fetch_all(f"SELECT * FROM identities{where} ORDER BY subject_id", params)
        return [_row_to_identity(row) for row in rows]

    def set_approval_status(self, subject_id: str, status: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE identities SET approval_status = ?, updated_at = ? WHERE subject_id = ?",
                (status, utc_now_iso(), subject_id),
            )
            self._conn.commit()
            return cursor.rowcount == 1

    def assign_department_head(self, subject_id: str, unit_id: str) -> str | None:
        """Make ``subject_id`` the head of ``unit_id``.

        The previous head, if any, loses the designation in the same
        transaction. Returns the previous head's subject id.
        """
        now = utc_now_iso()
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT head_id FROM units WHERE unit_id = ?", (unit_id,)
                ).fetchone()
                previous = row["head_id"] if row is not None else None
                if previous and previous != subject_id:
                    self._conn.execute(
                        "UPDATE identities SET is_department_head = 0, updated_at = ? "
                        "WHERE subject_id = ?",
                        (now, previous),
                    )
                self._conn.execute(
                    "UPDATE identities SET is_department_head = 1, unit = ?, "
                    "approval_status = 'approved', updated_at = ? WHERE subject_id = ?",
                    (unit_id, now, subject_id),
                )
                self._conn.execute(
                    "UPDATE units SET head_id = ? WHERE unit_id = ?",
                    (subject_id, unit_id),
                )
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
        return previous

    # Units

    def upsert_unit(self, unit: UnitRecord) -> None:
        self.execute(
            """
            INSERT INTO units (unit_id, name, abbreviation, head_id) VALUES (?, ?, ?, ?)
            ON CONFLICT(unit_id) DO UPDATE SET
                name = excluded.name,
                abbreviation = excluded.abbreviation,
                head_id = excluded.head_id
            """,
            (unit.unit_id, unit.name, unit.abbreviation, unit.head_id),
        )

    def list_units(self) -> list[UnitRecord]:
        rows = self.fetch_all("SELECT * FROM units ORDER BY unit_id", ())
        return [UnitRecord(**dict(row)) for row in rows]

    # Approval requests

    def create_request(self, request: ApprovableRequest, *, unique_active: bool = True) -> bool:
        """Insert a new request.

        With ``unique_active`` the insert is refused (returns False) when the
        requester already has a non-terminal request of the same kind.
        """
        terminal = tuple(stage.value for stage in TERMINAL_STAGES)
        with self._lock:
            if unique_active:
                row = self._conn.execute(
                    "SELECT request_id FROM approval_requests "
                    "WHERE requester_id = ? AND kind = ? AND stage NOT IN (?, ?) LIMIT 1",
                    (request.requester_id, request.kind.value, *terminal),
                ).fetchone()
                if row is not None:
                    return False
            self._conn.execute(
                """
                INSERT INTO approval_requests (
                    request_id, kind, requester_id, requester_name, unit, unit_kind, unit_key,
                    purpose, stage, version, artifact_url, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    request.request_id,
                    request.kind.value,
                    request.requester_id,
                    request.requester_name,
                    request.unit_value,
                    request.unit.kind if request.unit is not None else None,
                    _unit_key(request.unit_value),
                    request.purpose,
                    request.stage.value,
                    request.version,
                    request.artifact_url,
                    request.created_at.isoformat(),
                    request.updated_at.isoformat(),
                ),
            )
            self._conn.commit()
            return True

    def get_request(self, request_id: str) -> ApprovableRequest | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM approval_requests WHERE request_id = ?", (request_id,)
            ).fetchone()
            if row is None:
                return None
            history = self._conn.execute(
                "SELECT * FROM approval_history WHERE request_id = ? ORDER BY seq",
                (request_id,),
            ).fetchall()
        return _row_to_request(row, history)

    def list_requests(
        self,
        *,
        units: Iterable[str] | None = None,
        stages: Iterable[ApprovalStage] | None = None,
        requester_id: str | None = None,
        kind: RequestKind | None = None,
    ) -> list[ApprovableRequest]:
        """List requests, newest first.

        ``units`` holds normalized unit strings; None means no unit filter.
        """
        clauses: list[str] = []
        params: list[_SqlValue] = []
        if units is not None:
            unit_values = sorted(units)
            if not unit_values:
                return []
            placeholders = ",".join("?" for _ in unit_values)
            clauses.append(f"unit_key IN ({placeholders})")
            params.extend(unit_values)
        if stages is not None:
            stage_values = sorted(stage.value for stage in stages)
            if not stage_values:
                return []
            placeholders = ",".join("?" for _ in stage_values)
            clauses.append(f"stage IN ({placeholders})")
            params.extend(stage_values)
        if requester_id is not None:
            clauses.append("requester_id = ?")
            params.append(requester_id)
        if kind is not None:
            clauses.append("kind = ?")
            params.append(kind.value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.fetch_all(
            f"SELECT request_id FROM approval_requests{where} ORDER BY created_at DESC",
            params,
        )
        requests = [self.get_request(row["request_id"]) for row in rows]
        return [request for request in requests if request is not None]

    def save_transition(
        self,
        request: ApprovableRequest,
        entry: HistoryEntry,
        expected_version: int,
    ) -> bool:
        """Persist a transition if nobody else has moved the request.

        The stage update is conditional on ``expected_version`` and the
        history row is appended in the same transaction. Returns True if
        this writer won, False if the stored version has moved on.
        """
        with self._lock:
            try:
                cursor = self._conn.execute(
                    """
                    UPDATE approval_requests
                    SET stage = ?, version = ?, artifact_url = ?, updated_at = ?
                    WHERE request_id = ? AND version = ?
                    """,
                    (
                        request.stage.value,
                        request.version,
                        request.artifact_url,
                        request.updated_at.isoformat(),
                        request.request_id,
                        expected_version,
                    ),
                )
                if cursor.rowcount != 1:
                    self._conn.rollback()
                    return False
                self._conn.execute(
                    """
                    INSERT INTO approval_history (
                        request_id, seq, acting_role, actor_id, actor_name, action,
                        stage_before, stage_after, comment, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        request.request_id,
                        len(request.history) - 1,
                        entry.acting_role.value,
                        entry.actor_id,
                        entry.actor_name,
                        entry.action.value,
                        entry.stage_before.value,
                        entry.stage_after.value,
                        entry.comment,
                        entry.timestamp.isoformat(),
                    ),
                )
                self._conn.commit()
                return True
            except sqlite3.Error:
                self._conn.rollback()
                raise

    # Audit events

    def add_audit_event(self, event: AuditEvent) -> None:
        self.execute(
            """
            INSERT INTO audit_events (
                event_id, actor_id, actor_name, actor_role, unit, action,
                resource_type, resource_id, payload, outcome, error, request_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.actor_id,
                event.actor_name,
                event.actor_role,
                event.unit,
                event.action,
                event.resource_type,
                event.resource_id,
                dumps_payload(event.payload),
                event.outcome.value,
                event.error,
                event.request_id,
                event.created_at,
            ),
        )

    def list_audit_events(
        self,
        resource_type: str | None = None,
        resource_id: str | None = None,
        actor_id: str | None = None,
    ) -> list[AuditEvent]:
        """Audit events in the order they were written."""
        clauses: list[str] = []
        params: list[_SqlValue] = []
        if resource_type is not None:
            clauses.append("resource_type = ?")
            params.append(resource_type)
        if resource_id is not None:
            clauses.append("resource_id = ?")
            params.append(resource_id)
        if actor_id is not None:
            clauses.append("actor_id = ?")
            params.append(actor_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.fetch_all(f"SELECT * FROM audit_events{where} ORDER BY rowid", params)
        return [_row_to_audit_event(row) for row in rows]


def _unit_key(unit: str | None) -> str | None:
    if unit is None or not unit.strip():
        return None
    return normalize_unit_text(unit)


def _row_to_identity(row: sqlite3.Row) -> IdentityRecord:
    data = dict(row)
    data["is_department_head"] = bool(data["is_department_head"])
    data["active"] = bool(data["active"])
    return IdentityRecord(**data)


def _row_to_request(row: sqlite3.Row, history_rows: list[sqlite3.Row]) -> ApprovableRequest:
    history = tuple(
        HistoryEntry(
            acting_role=Role.parse(h["acting_role"]),
            actor_id=h["actor_id"],
            actor_name=h["actor_name"],
            action=HistoryAction(h["action"]),
            stage_before=ApprovalStage(h["stage_before"]),
            stage_after=ApprovalStage(h["stage_after"]),
            timestamp=parse_iso(h["created_at"]),
            comment=h["comment"],
        )
        for h in history_rows
    )
    return ApprovableRequest(
        request_id=row["request_id"],
        kind=RequestKind(row["kind"]),
        requester_id=row["requester_id"],
        requester_name=row["requester_name"],
        unit=unit_ref_from(row["unit_kind"], row["unit"]),
        purpose=row["purpose"],
        stage=ApprovalStage(row["stage"]),
        created_at=parse_iso(row["created_at"]),
        updated_at=parse_iso(row["updated_at"]),
        history=history,
        version=row["version"],
        artifact_url=row["artifact_url"],
    )


def _row_to_audit_event(row: sqlite3.Row) -> AuditEvent:
    return AuditEvent(
        event_id=row["event_id"],
        actor_id=row["actor_id"],
        actor_name=row["actor_name"],
        actor_role=row["actor_role"],
        unit=row["unit"],
        action=row["action"],
        resource_type=row["resource_type"],
        resource_id=row["resource_id"],
        outcome=AuditOutcome(row["outcome"]),
        created_at=row["created_at"],
        payload=loads_payload(row["payload"]),
        error=row["error"],
        request_id=row["request_id"],
    )
