"""
Lifecycle — what a routed message does to the store.

One write transaction per message:
  - Resolve targets (@all → the roster as it is right now)
  - Append the message
  - Queue a mention notification per target, urgent if the text says so
  - Optionally turn the message into a task, routed by category

Turning a message into a task is always the caller's explicit choice
(create_task=True), never guessed from the wording.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field

from coord.activity import insert_activity
from coord.messages import get_message, insert_message
from coord.notifications import insert_notification
from coord.roster import agent_ids
from coord.schema import (
    PRIORITY_DEFAULT,
    PRIORITY_URGENT,
    UnknownAgentError,
    write_lock,
)
from coord.tasks import insert_task
from .parse import MENTION_ALL, derive_title, infer_category, parse_message
from .router import route_category


@dataclass
class RouteResult:
    """What happened when we routed a message."""
    message_id: int
    targets: list[str]                  # agent ids notified via mention
    notifications: list[int]            # notification ids created
    priority: str                       # normal / urgent
    unknown: list[str] = field(default_factory=list)   # @names not on the roster
    task_id: int | None = None
    task_assignee: str | None = None


def resolve_targets(conn: sqlite3.Connection, mentions: list[str]) -> tuple[list[str], list[str]]:
    """Split mentions into (roster agent ids, unknown names). `all` expands."""
    roster = agent_ids(conn)
    if MENTION_ALL in mentions:
        return roster, [m for m in mentions if m != MENTION_ALL and m not in roster]

    known = [m for m in mentions if m in roster]
    unknown = [m for m in mentions if m not in roster]
    return known, unknown


def route_message(
    conn: sqlite3.Connection,
    content: str,
    sender: str = "user",
    channel: str = "general",
    create_task: bool = False,
    category: str | None = None,
    thread_id: int | None = None,
) -> RouteResult:
    """Store a message, notify everyone it mentions, maybe open a task."""
    if not content.strip():
        raise ValueError("Message is empty")

    parsed = parse_message(content)

    with write_lock(conn):
        if thread_id is not None and get_message(conn, thread_id) is None:
            raise ValueError(f"Message {thread_id} not found")

        targets, unknown = resolve_targets(conn, parsed.mentions)

        message_id = insert_message(
            conn, sender, content,
            mentions=targets,
            channel=channel,
            thread_id=thread_id,
        )

        notification_ids = [
            insert_notification(
                conn, agent_id,
                kind="mention",
                source_type="message",
                source_id=message_id,
                priority=parsed.priority,
            )
            for agent_id in targets
        ]

        result = RouteResult(
            message_id=message_id,
            targets=targets,
            notifications=notification_ids,
            priority=parsed.priority,
            unknown=unknown,
        )

        if create_task:
            _open_task(conn, result, content, parsed.urgent, category)

        summary = f"{sender} → {', '.join('@' + t for t in targets) or 'nobody'}"
        if result.task_id is not None:
            summary += f" (task #{result.task_id} for {result.task_assignee})"
        insert_activity(conn, summary, agent_id=None)

    return result


def _open_task(
    conn: sqlite3.Connection,
    result: RouteResult,
    content: str,
    urgent: bool,
    category: str | None,
) -> None:
    """Create the task half of a routed message. Inside the route transaction."""
    if category is None:
        roles = [
            row["role"] for row in conn.execute(
                f"SELECT role FROM agents WHERE id IN ({','.join('?' * len(result.targets))})",
                result.targets,
            )
        ] if result.targets else []
        category = infer_category(content, roles)

    assignee = route_category(category)
    priority = PRIORITY_URGENT if urgent else PRIORITY_DEFAULT

    task_id = insert_task(
        conn,
        derive_title(content) or content.strip(),
        description=content,
        source=f"message:{result.message_id}",
        assigned_to=assignee,
        priority=priority,
        category=category,
    )
    result.task_assignee = assignee
    if task_id is None:
        return

    result.task_id = task_id
    if assignee not in result.targets:
        result.notifications.append(insert_notification(
            conn, assignee,
            kind="urgent" if urgent else "task_assigned",
            source_type="task",
            source_id=task_id,
            priority=result.priority,
        ))


def notify_agent(
    conn: sqlite3.Connection,
    agent_id: str,
    content: str,
    sender: str = "user",
    urgent: bool = False,
) -> int:
    """Direct notification to one agent. No mention parsing.

    The text is still kept as a message on the `direct` channel so the
    notification has something to point at.
    """
    agent_id = agent_id.lstrip("@").lower()
    if not content.strip():
        raise ValueError("Message is empty")

    with write_lock(conn):
        if agent_id not in agent_ids(conn):
            raise UnknownAgentError(agent_id)

        message_id = insert_message(
            conn, sender, content,
            mentions=[agent_id],
            channel="direct",
        )
        notification_id = insert_notification(
            conn, agent_id,
            kind="urgent" if urgent else "mention",
            source_type="message",
            source_id=message_id,
            priority="urgent" if urgent else "normal",
        )
        insert_activity(conn, f"{sender} → @{agent_id} (direct)", agent_id=None)

    return notification_id
