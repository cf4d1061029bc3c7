"""
Tasks — work items and the dedup guard.

Imports from signal reports can run more than once for the same window,
sometimes at the same time. insert_task() relies on the partial unique
index on (title, source) over open tasks: the insert either lands or
hits the index, in one statement, so two importers can't both see
"not there yet" and both insert.

Status lifecycle:
  pending → in_progress → completed
  any open status ↔ blocked (blocked needs a reason)
  completed is terminal
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from .activity import insert_activity
from .notifications import insert_notification
from .roster import agent_exists
from .schema import (
    OPEN_STATUSES,
    PRIORITY_DEFAULT,
    PRIORITY_URGENT,
    TASK_STATUSES,
    UnknownAgentError,
    now_iso,
    write_lock,
)


@dataclass
class Task:
    id: int
    title: str
    description: str | None
    source: str | None
    assigned_to: str | None         # None = unrouted, the coordinator's problem
    status: str
    priority: int
    category: str | None
    blocked_reason: str | None
    created_at: str
    updated_at: str
    completed_at: str | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Task:
        return cls(**{k: row[k] for k in row.keys()})

    def line(self) -> str:
        text = f"{self.assigned_to or 'unassigned'}: {self.title}"
        if self.status == "blocked" and self.blocked_reason:
            text += f" ({self.blocked_reason})"
        return text


def insert_task(
    conn: sqlite3.Connection,
    title: str,
    *,
    description: str | None = None,
    source: str | None = None,
    assigned_to: str | None = None,
    priority: int = PRIORITY_DEFAULT,
    category: str | None = None,
) -> int | None:
    """Insert unless an open task with the same (title, source) exists.

    Returns the new task id, or None when skipped as a duplicate.
    Runs inside the caller's transaction.
    """
    title = title.strip()
    if not title:
        raise ValueError("Task title is empty")
    if not 1 <= int(priority) <= 5:
        raise ValueError(f"Priority must be 1-5, got {priority}")
    if assigned_to is not None and not agent_exists(conn, assigned_to):
        raise UnknownAgentError(assigned_to)

    now = now_iso()
    cursor = conn.execute("""
        INSERT INTO tasks
            (title, description, source, assigned_to, status, priority,
             category, created_at, updated_at)
        VALUES (?, ?, ?, ?, 'pending', ?, ?, ?, ?)
        ON CONFLICT DO NOTHING
    """, (title, description, source, assigned_to, int(priority),
          category, now, now))

    if cursor.rowcount != 1:
        return None
    return cursor.lastrowid


def create_task(
    conn: sqlite3.Connection,
    title: str,
    *,
    description: str | None = None,
    source: str | None = None,
    assigned_to: str | None = None,
    priority: int = PRIORITY_DEFAULT,
    category: str | None = None,
    notify: bool = True,
) -> int | None:
    """Dedup-guarded insert in its own transaction.

    On insert, logs an activity entry and (with notify) queues a
    notification for the assignee: `urgent` for priority 1, else
    `task_assigned`. Returns the task id, or None if it was a duplicate.
    """
    with write_lock(conn):
        task_id = insert_task(
            conn, title,
            description=description,
            source=source,
            assigned_to=assigned_to,
            priority=priority,
            category=category,
        )
        if task_id is None:
            return None

        if notify and assigned_to:
            urgent = int(priority) == PRIORITY_URGENT
            insert_notification(
                conn, assigned_to,
                kind="urgent" if urgent else "task_assigned",
                source_type="task",
                source_id=task_id,
                priority="urgent" if urgent else "normal",
            )

        insert_activity(
            conn,
            f"created task #{task_id} '{title.strip()}'"
            + (f" for {assigned_to}" if assigned_to else ""),
            agent_id=assigned_to,
        )
        return task_id


def get_task(conn: sqlite3.Connection, task_id: int) -> Task | None:
    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    return Task.from_row(row) if row else None


def update_status(
    conn: sqlite3.Connection,
    task_id: int,
    status: str,
    blocked_reason: str | None = None,
    actor: str | None = None,
) -> Task:
    """Move a task to a new status. Raises ValueError on a bad transition."""
    if status not in TASK_STATUSES:
        raise ValueError(f"Invalid status: {status}")
    if status == "blocked" and not (blocked_reason or "").strip():
        raise ValueError("Blocking a task needs a reason")

    with write_lock(conn):
        task = get_task(conn, task_id)
        if task is None:
            raise ValueError(f"Task {task_id} not found")
        if task.status == "completed":
            raise ValueError(f"Task {task_id} is already completed")

        now = now_iso()
        conn.execute("""
            UPDATE tasks
            SET status = ?,
                blocked_reason = ?,
                updated_at = ?,
                completed_at = ?
            WHERE id = ?
        """, (
            status,
            blocked_reason.strip() if status == "blocked" else None,
            now,
            now if status == "completed" else None,
            task_id,
        ))

        verb = {
            "pending": "reopened",
            "in_progress": "started",
            "blocked": "blocked",
            "completed": "completed",
        }[status]
        insert_activity(
            conn,
            f"{verb} task #{task_id} '{task.title}'",
            agent_id=actor or task.assigned_to,
        )

    updated = get_task(conn, task_id)
    assert updated is not None
    return updated


def list_tasks(
    conn: sqlite3.Connection,
    agent_id: str | None = None,
    include_completed: bool = False,
) -> list[Task]:
    clauses = []
    params: list = []
    if agent_id:
        clauses.append("assigned_to = ?")
        params.append(agent_id)
    if not include_completed:
        clauses.append("status != 'completed'")

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(f"""
        SELECT * FROM tasks
        {where}
        ORDER BY priority, created_at, id
    """, params).fetchall()
    return [Task.from_row(r) for r in rows]


def tasks_with_status(
    conn: sqlite3.Connection,
    status: str,
    agent_id: str | None = None,
) -> list[Task]:
    """Tasks in one status, highest priority first, then most recently touched."""
    if status not in OPEN_STATUSES:
        raise ValueError(f"Not an open status: {status}")

    sql = "SELECT * FROM tasks WHERE status = ?"
    params: list = [status]
    if agent_id:
        sql += " AND assigned_to = ?"
        params.append(agent_id)
    sql += " ORDER BY priority, updated_at DESC, id DESC"

    return [Task.from_row(r) for r in conn.execute(sql, params).fetchall()]


def completed_on(
    conn: sqlite3.Connection,
    day: str,
    agent_id: str | None = None,
) -> list[Task]:
    """Tasks completed on a UTC date (YYYY-MM-DD), newest first."""
    sql = """
        SELECT * FROM tasks
        WHERE status = 'completed' AND substr(completed_at, 1, 10) = ?
    """
    params: list = [day]
    if agent_id:
        sql += " AND assigned_to = ?"
        params.append(agent_id)
    sql += " ORDER BY completed_at DESC, id DESC"

    return [Task.from_row(r) for r in conn.execute(sql, params).fetchall()]
