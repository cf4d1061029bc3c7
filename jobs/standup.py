"""
Standup — the daily digest.

Gathers, for one date:
  - tasks completed that day
  - everything in progress (priority, then most recently touched)
  - everything blocked, with the reason
  - per-agent workload and pending counts
  - one line per signal report (missing → "no data")
  - pending notification counts
  - the latest activity entries

Persists one standups row per (date, agent scope), archives the markdown
to standup_dir, and pushes a compact version through the dispatcher.
Running it twice on unchanged data leaves the same single row.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from coord.activity import ActivityEntry, recent_activity
from coord.notifications import pending_counts
from coord.standups import StandupRecord, save_standup
from coord.tasks import Task, completed_on, tasks_with_status
from coord.workload import Workload, pending_by_agent, workload
from coord.schema import today_iso
from notify.dispatcher import Transport, send_text
from signals.reports import FindingLine, collect_findings
from .runner import Job, JobResult


@dataclass
class StandupData:
    day: str
    agent_id: str | None
    completed: list[Task] = field(default_factory=list)
    in_progress: list[Task] = field(default_factory=list)
    blocked: list[Task] = field(default_factory=list)
    workload: list[Workload] = field(default_factory=list)
    pending: list[tuple[str, int]] = field(default_factory=list)
    findings: list[FindingLine] = field(default_factory=list)
    notifications_pending: int = 0
    notifications_urgent: int = 0
    activity: list[ActivityEntry] = field(default_factory=list)

    @property
    def pending_total(self) -> int:
        return sum(n for _, n in self.pending)

    def record(self) -> StandupRecord:
        return StandupRecord(
            date=self.day,
            agent_id=self.agent_id,
            tasks_completed=len(self.completed),
            tasks_in_progress=len(self.in_progress),
            tasks_blocked=len(self.blocked),
            tasks_pending=self.pending_total,
            highlights="\n".join(a.line() for a in self.activity),
            automation_findings="\n".join(f.line() for f in self.findings),
        )


def compile_standup(
    conn: sqlite3.Connection,
    day: str,
    logs_base: Path,
    agent_id: str | None = None,
    activity_limit: int = 5,
) -> StandupData:
    """Read everything the standup needs. No writes."""
    total, urgent = pending_counts(conn)
    return StandupData(
        day=day,
        agent_id=agent_id,
        completed=completed_on(conn, day, agent_id),
        in_progress=tasks_with_status(conn, "in_progress", agent_id),
        blocked=tasks_with_status(conn, "blocked", agent_id),
        workload=workload(conn, day, agent_id),
        pending=pending_by_agent(conn, agent_id),
        findings=collect_findings(logs_base, day),
        notifications_pending=total,
        notifications_urgent=urgent,
        activity=recent_activity(conn, activity_limit, until_day=day, agent_id=agent_id),
    )


def _bullets(lines: list[str], empty: str = "(none)") -> str:
    if not lines:
        return f"- {empty}"
    return "\n".join(f"- {line}" for line in lines)


def render_standup(data: StandupData, generated_at: datetime | None = None) -> str:
    """Full markdown report. Every section is always there."""
    generated_at = generated_at or datetime.now()
    scope = f" ({data.agent_id})" if data.agent_id else ""

    sections = [
        f"# HYDRA Daily Standup{scope}\n**Date:** {data.day}",
        "## Agent Status\n" + _bullets([w.line() for w in data.workload], "no agents"),
        f"## Completed Today ({len(data.completed)})\n"
        + _bullets([t.line() for t in data.completed]),
        f"## In Progress ({len(data.in_progress)})\n"
        + _bullets([t.line() for t in data.in_progress]),
        f"## Blocked ({len(data.blocked)})\n"
        + _bullets([t.line() for t in data.blocked]),
        f"## Pending ({data.pending_total})\n"
        + _bullets([f"{agent}: {n} pending" for agent, n in data.pending]),
        "## Automation Signals\n" + _bullets([f.line() for f in data.findings], "no data"),
        "## Notifications\n"
        f"- Pending: {data.notifications_pending} (urgent: {data.notifications_urgent})",
        "## Recent Activity\n"
        + _bullets([a.line() for a in data.activity], "(no recent activity)"),
        f"*Generated by HYDRA at {generated_at.strftime('%H:%M')}*",
    ]
    return "\n\n---\n\n".join(sections) + "\n"


def render_compact(data: StandupData, full_report: Path | None = None) -> str:
    """Short version for the phone."""
    lines = [
        f"HYDRA Standup {data.day}",
        "",
        "Agents: " + " ".join(w.line() for w in data.workload),
        "",
        f"Done: {len(data.completed)} | WIP: {len(data.in_progress)} "
        f"| Blocked: {len(data.blocked)}",
    ]
    if data.notifications_urgent:
        lines.append(f"URGENT: {data.notifications_urgent} notifications")

    signals = [f.line() for f in data.findings if f.status != "no_data"]
    if signals:
        lines += ["", "Signals:"] + signals

    if full_report is not None:
        lines += ["", f"Full report: {full_report}"]
    return "\n".join(lines)


class StandupJob(Job):
    """Compile, persist, archive and push the standup for one date."""

    name = "standup"

    def __init__(
        self,
        db_path: Path,
        logs_base: Path,
        standup_dir: Path,
        day: str | None = None,
        agent_id: str | None = None,
        activity_limit: int = 5,
        transport: Transport | None = None,
        send: bool = True,
        verbose: bool = True,
    ):
        super().__init__(db_path, verbose)
        self.logs_base = logs_base
        self.standup_dir = standup_dir
        self.day = day or today_iso()
        self.agent_id = agent_id
        self.activity_limit = activity_limit
        self.transport = transport
        self.send = send
        self.data: StandupData | None = None

    @property
    def report_path(self) -> Path:
        suffix = f"-{self.agent_id}" if self.agent_id else ""
        return self.standup_dir / f"standup-{self.day}{suffix}.md"

    def run(self, conn: sqlite3.Connection) -> JobResult:
        result = JobResult()

        self.log(f"gathering data for {self.day}")
        data = compile_standup(
            conn, self.day, self.logs_base,
            agent_id=self.agent_id,
            activity_limit=self.activity_limit,
        )
        self.data = data

        standup_id, changed = save_standup(conn, data.record())
        result.notes.append(
            f"Standup #{standup_id} {'stored' if changed else 'unchanged'} for {self.day}."
        )

        result._post_commit_writes.append((self.report_path, render_standup(data)))

        for finding in data.findings:
            if finding.status == "error":
                result.notes.append(finding.line())

        self.log(
            f"{len(data.completed)} done, {len(data.in_progress)} WIP, "
            f"{len(data.blocked)} blocked"
        )
        return result

    def after_commit(self, result: JobResult) -> None:
        if not self.send or self.data is None:
            return

        # Only link the archive if it was written
        full_report = self.report_path if self.report_path in result.written else None
        if send_text(self.transport, render_compact(self.data, full_report), self.verbose):
            result.notes.append("Sent to Telegram.")
        else:
            result.notes.append("Not sent (saved to file only).")
