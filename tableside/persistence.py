"""SQLite journal of Send to Kitchen submissions."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from tableside.config import DB_PATH

STATUS_SENDING = "SENDING"
STATUS_SENT = "SENT"
STATUS_FAILED = "FAILED"


@dataclass(frozen=True)
class SubmissionRecord:
    """One journaled submission and the exact payload that was sent."""

    submission_id: str
    created_at: str
    table_id: str
    target_order_id: str | None
    payload: dict[str, Any]
    status: str
    server_order_id: str | None = None
    error: str | None = None
    attempts: int = 1


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SubmissionJournal:
    """Audit trail of what left this device for the kitchen.

    The backend stays the system of record; this only answers "what did
    we send, and did it go through".
    """

    def __init__(self, db_path: str | Path = DB_PATH) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def bootstrap_schema(self) -> None:
        """Create persistence schema if it does not already exist."""
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS submissions (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    table_id TEXT NOT NULL,
                    target_order_id TEXT,
                    payload TEXT NOT NULL,
                    status TEXT NOT NULL,
                    server_order_id TEXT,
                    error TEXT,
                    attempts INTEGER NOT NULL DEFAULT 1
                );

                CREATE INDEX IF NOT EXISTS idx_submissions_table_created
                    ON submissions(table_id, created_at);
                """
            )

    def record_submission(self, table_id: str, target_order_id: str | None, payload: dict[str, Any]) -> SubmissionRecord:
        """Persist a submission attempt before the request goes out."""
        if not payload.get("items"):
            raise ValueError("Cannot journal an empty submission")

        record = SubmissionRecord(
            submission_id=uuid4().hex,
            created_at=_utc_now_iso(),
            table_id=table_id,
            target_order_id=target_order_id,
            payload=payload,
            status=STATUS_SENDING,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO submissions (id, created_at, updated_at, table_id, target_order_id, payload, status)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.submission_id,
                    record.created_at,
                    record.created_at,
                    table_id,
                    target_order_id,
                    json.dumps(payload, sort_keys=True),
                    STATUS_SENDING,
                ),
            )
        return record

    def mark_retry(self, submission_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE submissions SET status = ?, attempts = attempts + 1, error = NULL, updated_at = ? WHERE id = ?",
                (STATUS_SENDING, _utc_now_iso(), submission_id),
            )

    def mark_sent(self, submission_id: str, server_order_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE submissions SET status = ?, server_order_id = ?, updated_at = ? WHERE id = ?",
                (STATUS_SENT, server_order_id, _utc_now_iso(), submission_id),
            )

    def mark_failed(self, submission_id: str, error: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE submissions SET status = ?, error = ?, updated_at = ? WHERE id = ?",
                (STATUS_FAILED, error, _utc_now_iso(), submission_id),
            )

    def get(self, submission_id: str) -> SubmissionRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT id, created_at, table_id, target_order_id, payload, status, server_order_id, error, attempts
                FROM submissions WHERE id = ?
                """,
                (submission_id,),
            ).fetchone()
        return _to_record(row) if row is not None else None

    def list_for_table(self, table_id: str) -> list[SubmissionRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, created_at, table_id, target_order_id, payload, status, server_order_id, error, attempts
                FROM submissions WHERE table_id = ? ORDER BY created_at
                """,
                (table_id,),
            ).fetchall()
        return [_to_record(row) for row in rows]


def _to_record(row: tuple[Any, ...]) -> SubmissionRecord:
    submission_id, created_at, table_id, target_order_id, payload, status, server_order_id, error, attempts = row
    return SubmissionRecord(
        submission_id=submission_id,
        created_at=created_at,
        table_id=table_id,
        target_order_id=target_order_id,
        payload=json.loads(payload),
        status=status,
        server_order_id=server_order_id,
        error=error,
        attempts=int(attempts),
    )
