"""
Schema — the shape of the shared store.

Tables:
  agents          — the roster. Provisioned once, read by everything.
  tasks           — work items. Never deleted, only completed.
  messages        — chat log, append-only
  notifications   — per-agent delivery queue
  standups        — one row per (date, agent scope)
  activities      — audit trail, append-only
  state           — metadata (last full notification sweep, etc.)
  job_runs        — when each batch job last ran and how it went

Views:
  v_agent_workload         — pending / in progress / done today per agent
  v_pending_notifications  — undelivered, urgent first

Several cron jobs write here at overlapping times. Anything that
checks-then-writes goes through write_lock(), which takes the SQLite
write lock up front (BEGIN IMMEDIATE) so the check and the write can't
interleave with another process.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator


SCHEMA_VERSION = 2  # bump when schema changes


class StoreNotFoundError(RuntimeError):
    """The store file doesn't exist. Nothing can proceed without it."""

    def __init__(self, db_path: Path):
        super().__init__(
            f"HYDRA database not found at {db_path} (run `hydra init` first)"
        )
        self.db_path = db_path


class UnknownAgentError(ValueError):
    """An insert referenced an agent id that isn't in the roster."""

    def __init__(self, agent_id: str):
        super().__init__(f"Unknown agent: {agent_id}")
        self.agent_id = agent_id


def now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")


def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn


def open_store(db_path: Path) -> sqlite3.Connection:
    """Connect to an existing store. Raises StoreNotFoundError if missing."""
    if not Path(db_path).is_file():
        raise StoreNotFoundError(Path(db_path))
    return connect(db_path)


@contextmanager
def write_lock(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """BEGIN IMMEDIATE ... COMMIT, rolling back on any exception."""
    if conn.in_transaction:
        raise RuntimeError("write_lock() needs a connection with no open transaction")
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


def state_get(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM state WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def state_set(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Upsert a metadata key. Runs inside the caller's transaction."""
    conn.execute("""
        INSERT INTO state (key, value, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            updated_at = excluded.updated_at
    """, (key, value, now_iso()))


def migrate(db_path: Path) -> None:
    """Create or update the schema. Safe to call every startup."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)

    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER NOT NULL
            )
        """)

        row = conn.execute("SELECT version FROM schema_version").fetchone()
        current = row["version"] if row else 0

        if current < 1:
            _create_v1(conn)

        if current < 2:
            _migrate_v1_to_v2(conn)

        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )

        conn.commit()
    finally:
        conn.close()


def _create_v1(conn: sqlite3.Connection) -> None:
    """Core coordination tables."""

    conn.executescript("""
        CREATE TABLE IF NOT EXISTS agents (
            id                  TEXT PRIMARY KEY,
            name                TEXT NOT NULL,
            role                TEXT NOT NULL
                CHECK (role IN ('coordinator', 'dev', 'research', 'ops')),
            model               TEXT NOT NULL,
            heartbeat_minutes   INTEGER NOT NULL DEFAULT 15,
            skills              TEXT NOT NULL DEFAULT '[]',
            cost_tier           TEXT NOT NULL DEFAULT 'cheap'
                CHECK (cost_tier IN ('premium', 'cheap')),
            created_at          TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS tasks (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            title           TEXT NOT NULL,
            description     TEXT,
            source          TEXT,
            assigned_to     TEXT REFERENCES agents(id),
            status          TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'in_progress', 'blocked', 'completed')),
            priority        INTEGER NOT NULL DEFAULT 3
                CHECK (priority BETWEEN 1 AND 5),
            category        TEXT,
            blocked_reason  TEXT,
            created_at      TEXT NOT NULL,
            updated_at      TEXT NOT NULL,
            completed_at    TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);
        CREATE INDEX IF NOT EXISTS idx_tasks_assigned
            ON tasks(assigned_to, status);

        -- The dedup guard. At most one open task per (title, source).
        -- NULL sources never collide, so hand-made tasks aren't deduped.
        CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_open_title_source
            ON tasks(title, source)
            WHERE status != 'completed';

        CREATE TABLE IF NOT EXISTS messages (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            channel     TEXT NOT NULL DEFAULT 'general',
            thread_id   INTEGER REFERENCES messages(id),
            sender      TEXT NOT NULL,
            content     TEXT NOT NULL,
            mentions    TEXT NOT NULL DEFAULT '[]',
            created_at  TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_messages_channel
            ON messages(channel, created_at);

        CREATE TABLE IF NOT EXISTS notifications (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            agent_id        TEXT NOT NULL REFERENCES agents(id),
            kind            TEXT NOT NULL
                CHECK (kind IN ('mention', 'task_assigned', 'urgent')),
            source_type     TEXT NOT NULL
                CHECK (source_type IN ('message', 'task')),
            source_id       INTEGER NOT NULL,
            priority        TEXT NOT NULL DEFAULT 'normal'
                CHECK (priority IN ('normal', 'urgent')),
            delivered       INTEGER NOT NULL DEFAULT 0,
            created_at      TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_notifications_pending
            ON notifications(delivered, priority);

        CREATE TABLE IF NOT EXISTS standups (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            date                TEXT NOT NULL,
            agent_id            TEXT REFERENCES agents(id),
            tasks_completed     INTEGER NOT NULL DEFAULT 0,
            tasks_in_progress   INTEGER NOT NULL DEFAULT 0,
            tasks_blocked       INTEGER NOT NULL DEFAULT 0,
            tasks_pending       INTEGER NOT NULL DEFAULT 0,
            highlights          TEXT NOT NULL DEFAULT '',
            automation_findings TEXT NOT NULL DEFAULT '',
            generated_at        TEXT NOT NULL
        );

        -- NULL agent_id is the whole-system digest; IFNULL keeps it unique too.
        CREATE UNIQUE INDEX IF NOT EXISTS idx_standups_date_agent
            ON standups(date, IFNULL(agent_id, ''));

        CREATE TABLE IF NOT EXISTS activities (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            agent_id    TEXT,
            description TEXT NOT NULL,
            created_at  TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_activities_created
            ON activities(created_at);

        CREATE TABLE IF NOT EXISTS state (
            key         TEXT PRIMARY KEY,
            value       TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS job_runs (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            job             TEXT NOT NULL,
            started_at      TEXT NOT NULL,
            completed_at    TEXT,
            status          TEXT NOT NULL DEFAULT 'running',
            summary         TEXT
        );

        CREATE VIEW IF NOT EXISTS v_agent_workload AS
        SELECT
            a.id AS agent_id,
            a.name AS agent_name,
            COUNT(CASE WHEN t.status = 'pending' THEN 1 END) AS pending_tasks,
            COUNT(CASE WHEN t.status = 'in_progress' THEN 1 END) AS in_progress_tasks,
            COUNT(CASE WHEN t.status = 'completed'
                        AND date(t.completed_at) = date('now') THEN 1 END) AS completed_today
        FROM agents a
        LEFT JOIN tasks t ON t.assigned_to = a.id
        GROUP BY a.id
        ORDER BY a.rowid;
    """)


def _migrate_v1_to_v2(conn: sqlite3.Connection) -> None:
    """Delivery timestamps, the sticky-delivered trigger, pending view."""

    cols = {row[1] for row in conn.execute("PRAGMA table_info(notifications)")}
    if "delivered_at" not in cols:
        conn.execute("ALTER TABLE notifications ADD COLUMN delivered_at TEXT")

    conn.executescript("""
        -- Once delivered, always delivered.
        CREATE TRIGGER IF NOT EXISTS notifications_delivered_sticky
        BEFORE UPDATE OF delivered ON notifications
        WHEN old.delivered = 1 AND new.delivered = 0
        BEGIN
            SELECT RAISE(ABORT, 'delivered notifications cannot be reset');
        END;

        CREATE VIEW IF NOT EXISTS v_pending_notifications AS
        SELECT
            n.id,
            n.agent_id,
            a.name AS agent_name,
            n.kind,
            n.source_type,
            n.source_id,
            n.priority,
            n.created_at,
            CASE n.source_type
                WHEN 'message' THEN m.content
                ELSE t.title
            END AS summary,
            m.sender AS sender
        FROM notifications n
        JOIN agents a ON a.id = n.agent_id
        LEFT JOIN messages m
            ON n.source_type = 'message' AND m.id = n.source_id
        LEFT JOIN tasks t
            ON n.source_type = 'task' AND t.id = n.source_id
        WHERE n.delivered = 0
        ORDER BY CASE n.priority WHEN 'urgent' THEN 0 ELSE 1 END,
                 n.created_at, n.id;
    """)


# Valid values, mirrored in the CHECK constraints above
AGENT_ROLES = ("coordinator", "dev", "research", "ops")
COST_TIERS = ("premium", "cheap")

TASK_STATUSES = ("pending", "in_progress", "blocked", "completed")
OPEN_STATUSES = frozenset({"pending", "in_progress", "blocked"})

NOTIFICATION_KINDS = frozenset({"mention", "task_assigned", "urgent"})
NOTIFICATION_PRIORITIES = ("normal", "urgent")

# Task priority: 1 is urgent, 5 is someday
PRIORITY_URGENT = 1
PRIORITY_DEFAULT = 3
