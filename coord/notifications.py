"""
Notifications — the per-agent delivery queue.

A notification is pending until something outside the store says it
got through. mark_delivered() only ever flips 0 → 1; the schema has a
trigger that rejects the reverse.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from .roster import agent_exists
from .schema import (
    NOTIFICATION_KINDS,
    NOTIFICATION_PRIORITIES,
    UnknownAgentError,
    now_iso,
    write_lock,
)


@dataclass
class PendingNotification:
    id: int
    agent_id: str
    agent_name: str
    kind: str                   # mention / task_assigned / urgent
    source_type: str            # message / task
    source_id: int
    priority: str               # normal / urgent
    created_at: str
    summary: str                # message content or task title
    sender: str | None = None

    @property
    def urgent(self) -> bool:
        return self.priority == "urgent"


def insert_notification(
    conn: sqlite3.Connection,
    agent_id: str,
    kind: str,
    source_type: str,
    source_id: int,
    priority: str = "normal",
) -> int:
    """Queue a notification. Runs inside the caller's transaction."""
    if kind not in NOTIFICATION_KINDS:
        raise ValueError(f"Invalid notification kind: {kind}")
    if priority not in NOTIFICATION_PRIORITIES:
        raise ValueError(f"Invalid notification priority: {priority}")
    if not agent_exists(conn, agent_id):
        raise UnknownAgentError(agent_id)

    cursor = conn.execute("""
        INSERT INTO notifications
            (agent_id, kind, source_type, source_id, priority, delivered, created_at)
        VALUES (?, ?, ?, ?, ?, 0, ?)
    """, (agent_id, kind, source_type, source_id, priority, now_iso()))
    return cursor.lastrowid


def list_pending(
    conn: sqlite3.Connection,
    priority: str | None = None,
    agent_id: str | None = None,
    limit: int | None = None,
) -> list[PendingNotification]:
    """Undelivered notifications, urgent first, then oldest first."""
    clauses = []
    params: list = []
    if priority:
        clauses.append("priority = ?")
        params.append(priority)
    if agent_id:
        clauses.append("agent_id = ?")
        params.append(agent_id)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    sql = f"""
        SELECT * FROM v_pending_notifications
        {where}
        ORDER BY CASE priority WHEN 'urgent' THEN 0 ELSE 1 END, created_at, id
    """
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)

    return [
        PendingNotification(
            id=r["id"],
            agent_id=r["agent_id"],
            agent_name=r["agent_name"],
            kind=r["kind"],
            source_type=r["source_type"],
            source_id=r["source_id"],
            priority=r["priority"],
            created_at=r["created_at"],
            summary=r["summary"] or "",
            sender=r["sender"],
        )
        for r in conn.execute(sql, params).fetchall()
    ]


def pending_counts(conn: sqlite3.Connection) -> tuple[int, int]:
    """(total pending, urgent pending)."""
    row = conn.execute("""
        SELECT COUNT(*) AS total,
               COUNT(CASE WHEN priority = 'urgent' THEN 1 END) AS urgent
        FROM notifications
        WHERE delivered = 0
    """).fetchone()
    return row["total"], row["urgent"]


def mark_delivered(conn: sqlite3.Connection, notification_id: int) -> bool:
    """Flip to delivered. False if it was already delivered (or doesn't exist)."""
    with write_lock(conn):
        cursor = conn.execute("""
            UPDATE notifications
            SET delivered = 1, delivered_at = ?
            WHERE id = ? AND delivered = 0
        """, (now_iso(), notification_id))
        return cursor.rowcount == 1
