"""
Activity — the audit trail. Append-only.

insert_activity() writes inside the caller's transaction;
log_activity() opens its own.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from .schema import now_iso, write_lock


@dataclass
class ActivityEntry:
    id: int
    agent_id: str | None
    description: str
    created_at: str

    def line(self) -> str:
        return f"{self.agent_id or 'system'}: {self.description}"


def insert_activity(
    conn: sqlite3.Connection,
    description: str,
    agent_id: str | None = None,
) -> int:
    cursor = conn.execute(
        "INSERT INTO activities (agent_id, description, created_at) VALUES (?, ?, ?)",
        (agent_id, description, now_iso()),
    )
    return cursor.lastrowid


def log_activity(
    conn: sqlite3.Connection,
    description: str,
    agent_id: str | None = None,
) -> int:
    with write_lock(conn):
        return insert_activity(conn, description, agent_id)


def recent_activity(
    conn: sqlite3.Connection,
    limit: int = 10,
    until_day: str | None = None,
    agent_id: str | None = None,
) -> list[ActivityEntry]:
    """Newest first. until_day (YYYY-MM-DD) caps entries at the end of that day."""
    clauses = []
    params: list = []
    if until_day:
        clauses.append("substr(created_at, 1, 10) <= ?")
        params.append(until_day)
    if agent_id:
        clauses.append("agent_id = ?")
        params.append(agent_id)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(f"""
        SELECT id, agent_id, description, created_at
        FROM activities
        {where}
        ORDER BY created_at DESC, id DESC
        LIMIT ?
    """, (*params, limit)).fetchall()

    return [
        ActivityEntry(
            id=r["id"],
            agent_id=r["agent_id"],
            description=r["description"],
            created_at=r["created_at"],
        )
        for r in rows
    ]
