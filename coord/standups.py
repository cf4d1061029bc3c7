"""
Standups — one row per (date, agent scope).

Re-running a standup replaces the row for that date. If nothing changed,
the row isn't touched at all (same id, same generated_at).
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from .schema import UnknownAgentError, now_iso, write_lock
from .roster import agent_exists


@dataclass
class StandupRecord:
    date: str
    agent_id: str | None            # None = whole-system digest
    tasks_completed: int
    tasks_in_progress: int
    tasks_blocked: int
    tasks_pending: int
    highlights: str
    automation_findings: str
    id: int | None = None
    generated_at: str | None = None

    def content(self) -> tuple:
        return (
            self.tasks_completed, self.tasks_in_progress,
            self.tasks_blocked, self.tasks_pending,
            self.highlights, self.automation_findings,
        )


def _from_row(row: sqlite3.Row) -> StandupRecord:
    return StandupRecord(
        id=row["id"],
        date=row["date"],
        agent_id=row["agent_id"],
        tasks_completed=row["tasks_completed"],
        tasks_in_progress=row["tasks_in_progress"],
        tasks_blocked=row["tasks_blocked"],
        tasks_pending=row["tasks_pending"],
        highlights=row["highlights"],
        automation_findings=row["automation_findings"],
        generated_at=row["generated_at"],
    )


def get_standup(
    conn: sqlite3.Connection,
    day: str,
    agent_id: str | None = None,
) -> StandupRecord | None:
    row = conn.execute(
        "SELECT * FROM standups WHERE date = ? AND agent_id IS ?",
        (day, agent_id),
    ).fetchone()
    return _from_row(row) if row else None


def save_standup(conn: sqlite3.Connection, record: StandupRecord) -> tuple[int, bool]:
    """Upsert by (date, agent). Returns (standup id, whether anything changed)."""
    if record.agent_id is not None and not agent_exists(conn, record.agent_id):
        raise UnknownAgentError(record.agent_id)

    with write_lock(conn):
        existing = get_standup(conn, record.date, record.agent_id)

        if existing is not None and existing.content() == record.content():
            return existing.id, False

        now = now_iso()
        if existing is not None:
            conn.execute("""
                UPDATE standups
                SET tasks_completed = ?, tasks_in_progress = ?,
                    tasks_blocked = ?, tasks_pending = ?,
                    highlights = ?, automation_findings = ?,
                    generated_at = ?
                WHERE id = ?
            """, (*record.content(), now, existing.id))
            return existing.id, True

        cursor = conn.execute("""
            INSERT INTO standups
                (date, agent_id, tasks_completed, tasks_in_progress,
                 tasks_blocked, tasks_pending, highlights,
                 automation_findings, generated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (record.date, record.agent_id, *record.content(), now))
        return cursor.lastrowid, True
