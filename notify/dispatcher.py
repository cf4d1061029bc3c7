"""
Dispatcher — moving the notification queue out to the phone.

At-least-once: a notification is marked delivered only after the
transport says it went through. If the send fails it stays pending and
the next run tries again. One failure doesn't stop the rest of the
batch.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Protocol

from coord.config import log
from coord.notifications import PendingNotification, list_pending, mark_delivered
from .telegram import DeliveryError


class Transport(Protocol):
    def send(self, text: str) -> None: ...


@dataclass
class DeliveryReport:
    delivered: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


KIND_LABELS = {
    "mention": "mention",
    "task_assigned": "new task",
    "urgent": "URGENT",
}


def format_notification(n: PendingNotification) -> str:
    prefix = "[URGENT] " if n.urgent else ""
    origin = f" from {n.sender}" if n.sender else ""
    kind = KIND_LABELS.get(n.kind, n.kind)
    return f"{prefix}@{n.agent_id} {kind}{origin}: {n.summary}"


def send_text(transport: Transport | None, text: str, verbose: bool = True) -> bool:
    """Push arbitrary text (a standup, say). False on any delivery failure."""
    if transport is None:
        log("no transport configured, not sending", verbose)
        return False
    try:
        transport.send(text)
    except DeliveryError as e:
        log(f"delivery failed: {e}", verbose)
        return False
    return True


def deliver_pending(
    conn: sqlite3.Connection,
    transport: Transport,
    priority: str | None = None,
    limit: int | None = 50,
    verbose: bool = True,
) -> DeliveryReport:
    """Send pending notifications, urgent first. Returns what happened."""
    report = DeliveryReport()

    for n in list_pending(conn, priority=priority, limit=limit):
        try:
            transport.send(format_notification(n))
        except DeliveryError as e:
            log(f"notification {n.id} → {n.agent_id} failed: {e}", verbose)
            report.failed.append(n.id)
            report.errors.append(f"{n.id}: {e}")
            continue

        if mark_delivered(conn, n.id):
            report.delivered.append(n.id)
            log(f"delivered {n.id} → {n.agent_id} ({n.priority})", verbose)
        else:
            # Another dispatcher got there first; the push still went out.
            log(f"notification {n.id} was already marked delivered", verbose)

    return report
