"""
Workload — per-agent counts, computed from the tasks table every time.

Nothing is cached, so the numbers can't drift from the tasks they
describe. v_agent_workload in the schema is the same query pinned to
date('now') for ad hoc sqlite3 use; this module takes the day as a
parameter so a standup for a given date counts that date.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from .schema import today_iso


@dataclass
class Workload:
    agent_id: str
    agent_name: str
    pending: int
    in_progress: int
    completed_today: int

    def line(self) -> str:
        return (
            f"{self.agent_id}: {self.pending}P/"
            f"{self.in_progress}IP/{self.completed_today}Done"
        )


def workload(
    conn: sqlite3.Connection,
    day: str | None = None,
    agent_id: str | None = None,
) -> list[Workload]:
    """One Workload per roster agent (or just agent_id), roster order."""
    day = day or today_iso()
    sql = """
        SELECT
            a.id AS agent_id,
            a.name AS agent_name,
            COUNT(CASE WHEN t.status = 'pending' THEN 1 END) AS pending,
            COUNT(CASE WHEN t.status = 'in_progress' THEN 1 END) AS in_progress,
            COUNT(CASE WHEN t.status = 'completed'
                        AND substr(t.completed_at, 1, 10) = ? THEN 1 END) AS completed_today
        FROM agents a
        LEFT JOIN tasks t ON t.assigned_to = a.id
    """
    params: list = [day]
    if agent_id:
        sql += " WHERE a.id = ?"
        params.append(agent_id)
    sql += " GROUP BY a.id ORDER BY a.rowid"

    return [
        Workload(
            agent_id=r["agent_id"],
            agent_name=r["agent_name"],
            pending=r["pending"],
            in_progress=r["in_progress"],
            completed_today=r["completed_today"],
        )
        for r in conn.execute(sql, params).fetchall()
    ]


def pending_by_agent(
    conn: sqlite3.Connection,
    agent_id: str | None = None,
) -> list[tuple[str, int]]:
    """(assignee or 'unassigned', pending count), busiest first."""
    sql = """
        SELECT COALESCE(assigned_to, 'unassigned') AS agent, COUNT(*) AS n
        FROM tasks
        WHERE status = 'pending'
    """
    params: list = []
    if agent_id:
        sql += " AND assigned_to = ?"
        params.append(agent_id)
    sql += " GROUP BY assigned_to ORDER BY n DESC, agent"

    return [(r["agent"], r["n"]) for r in conn.execute(sql, params).fetchall()]
