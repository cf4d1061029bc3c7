"""
Roster — who's on the team.

Four agents, provisioned once by `hydra init`. Everything else only
needs to know an agent id exists; identity files live with the agent
runtime, not here.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field

from .schema import AGENT_ROLES, COST_TIERS, now_iso, write_lock


@dataclass
class Agent:
    id: str
    name: str
    role: str                       # coordinator / dev / research / ops
    model: str                      # backing model identifier
    heartbeat_minutes: int = 15
    skills: list[str] = field(default_factory=list)   # category tags
    cost_tier: str = "cheap"        # premium / cheap

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Agent:
        return cls(
            id=row["id"],
            name=row["name"],
            role=row["role"],
            model=row["model"],
            heartbeat_minutes=row["heartbeat_minutes"],
            skills=json.loads(row["skills"] or "[]"),
            cost_tier=row["cost_tier"],
        )


DEFAULT_ROSTER: tuple[Agent, ...] = (
    Agent(
        id="milo", name="MILO", role="coordinator",
        model="claude-opus-4-6", heartbeat_minutes=15,
        skills=["planning", "triage"], cost_tier="premium",
    ),
    Agent(
        id="forge", name="FORGE", role="dev",
        model="claude-sonnet-4-5", heartbeat_minutes=30,
        skills=["dev", "code", "bug", "feature"],
    ),
    Agent(
        id="scout", name="SCOUT", role="research",
        model="claude-haiku-4-5", heartbeat_minutes=60,
        skills=["research", "marketing", "seo", "content", "growth"],
    ),
    Agent(
        id="pulse", name="PULSE", role="ops",
        model="claude-haiku-4-5", heartbeat_minutes=30,
        skills=["ops", "devops", "security", "infra", "automation"],
    ),
)


def provision(conn: sqlite3.Connection, agents: tuple[Agent, ...] | list[Agent] = DEFAULT_ROSTER) -> int:
    """Insert agents, or refresh configuration fields of ones that exist.
    Returns how many were new."""
    created = 0
    now = now_iso()
    with write_lock(conn):
        for agent in agents:
            if agent.role not in AGENT_ROLES:
                raise ValueError(f"Invalid role for {agent.id}: {agent.role}")
            if agent.cost_tier not in COST_TIERS:
                raise ValueError(f"Invalid cost tier for {agent.id}: {agent.cost_tier}")

            exists = conn.execute(
                "SELECT 1 FROM agents WHERE id = ?", (agent.id,)
            ).fetchone()
            if exists:
                conn.execute("""
                    UPDATE agents
                    SET model = ?, heartbeat_minutes = ?, skills = ?, cost_tier = ?
                    WHERE id = ?
                """, (
                    agent.model, agent.heartbeat_minutes,
                    json.dumps(agent.skills), agent.cost_tier, agent.id,
                ))
                continue

            conn.execute("""
                INSERT INTO agents
                    (id, name, role, model, heartbeat_minutes, skills,
                     cost_tier, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                agent.id, agent.name, agent.role, agent.model,
                agent.heartbeat_minutes, json.dumps(agent.skills),
                agent.cost_tier, now,
            ))
            created += 1
    return created


def list_agents(conn: sqlite3.Connection) -> list[Agent]:
    rows = conn.execute("SELECT * FROM agents ORDER BY rowid").fetchall()
    return [Agent.from_row(r) for r in rows]


def agent_ids(conn: sqlite3.Connection) -> list[str]:
    """Current roster ids, read fresh so newly added agents show up."""
    return [r["id"] for r in conn.execute("SELECT id FROM agents ORDER BY rowid")]


def get_agent(conn: sqlite3.Connection, agent_id: str) -> Agent | None:
    row = conn.execute("SELECT * FROM agents WHERE id = ?", (agent_id,)).fetchone()
    return Agent.from_row(row) if row else None


def agent_exists(conn: sqlite3.Connection, agent_id: str) -> bool:
    return conn.execute(
        "SELECT 1 FROM agents WHERE id = ?", (agent_id,)
    ).fetchone() is not None
