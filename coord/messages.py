"""
Messages — the chat log. Append-only; nothing here updates or deletes.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field

from .schema import now_iso


@dataclass
class Message:
    id: int
    channel: str
    sender: str
    content: str
    mentions: list[str] = field(default_factory=list)   # ordered agent ids
    thread_id: int | None = None
    created_at: str = ""


def insert_message(
    conn: sqlite3.Connection,
    sender: str,
    content: str,
    mentions: list[str] | None = None,
    channel: str = "general",
    thread_id: int | None = None,
) -> int:
    """Append a message. Runs inside the caller's transaction."""
    cursor = conn.execute("""
        INSERT INTO messages (channel, thread_id, sender, content, mentions, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
    """, (channel, thread_id, sender, content, json.dumps(mentions or []), now_iso()))
    return cursor.lastrowid


def get_message(conn: sqlite3.Connection, message_id: int) -> Message | None:
    row = conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
    if row is None:
        return None
    return Message(
        id=row["id"],
        channel=row["channel"],
        sender=row["sender"],
        content=row["content"],
        mentions=json.loads(row["mentions"] or "[]"),
        thread_id=row["thread_id"],
        created_at=row["created_at"],
    )
