"""
Sync — turning signal reports into tasks.

Runs after the detectors (cron, or `hydra sync`). Each report kind has a
rule that turns its finding into zero or more task specs; every spec goes
through the dedup guard, so importing the same report twice creates
nothing the second time.

  70% detector        — one task per stale item       → forge (code)
  dependency guardian — CRITICAL / HIGH urgency       → pulse (security)
  marketing check     — streak lapsed                 → scout (marketing)
  morning commitment  — nothing committed for the day → milo  (planning)

The context-switch report only feeds the standup.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path

from coord.schema import PRIORITY_URGENT, today_iso
from coord.tasks import create_task
from ingest.router import route_category
from jobs.runner import Job, JobResult
from .reports import (
    KINDS_BY_NAME,
    CommitmentFinding,
    ReportFormatError,
    SecurityFinding,
    SeventyFinding,
    StreakFinding,
    load,
)


@dataclass
class TaskSpec:
    title: str
    description: str
    priority: int
    category: str


SEVENTY_RULES = {
    "ABANDON OR FINISH": ("Branch needs to be finished or abandoned", 2),
    "MERGE OR CLOSE": ("PR needs attention", 2),
    "ADVANCE PIPELINE": ("Pipeline stage stuck", 1),
}


def seventy_tasks(finding: SeventyFinding, day: str) -> list[TaskSpec]:
    specs = []
    for item in finding.items:
        description, priority = SEVENTY_RULES[item.action]
        specs.append(TaskSpec(
            title=f"70%: {item.line}",
            description=f"From 70% detector: {description}",
            priority=priority,
            category="code",
        ))
    return specs


def security_tasks(finding: SecurityFinding, day: str) -> list[TaskSpec]:
    if finding.urgency == "CRITICAL":
        return [TaskSpec(
            title="SECURITY: Critical vulnerabilities found",
            description="Run npm audit fix - critical security issues detected by dependency guardian",
            priority=PRIORITY_URGENT,
            category="security",
        )]
    if finding.urgency == "HIGH":
        return [TaskSpec(
            title="SECURITY: High severity vulnerabilities",
            description="Review and fix high severity npm audit findings this week",
            priority=2,
            category="security",
        )]
    return []


def streak_tasks(finding: StreakFinding, day: str) -> list[TaskSpec]:
    if finding.status(day) == "active":
        return []
    return [TaskSpec(
        title="MARKETING: Rebuild your streak",
        description="Marketing streak broken - do ONE marketing task today to restart",
        priority=2,
        category="marketing",
    )]


def commitment_tasks(finding: CommitmentFinding, day: str) -> list[TaskSpec]:
    if finding.commitment:
        return []
    return [TaskSpec(
        title="Morning: Set your ONE thing",
        description="No commitment made today - run morning-commitment.sh --commit \"Your task\"",
        priority=PRIORITY_URGENT,
        category="planning",
    )]


# report kind name → rule. Kinds missing here (context-switch) make no tasks.
SYNC_RULES = {
    "seventy-percent-detector": seventy_tasks,
    "dependency-guardian": security_tasks,
    "marketing-check": streak_tasks,
    "morning-commitment": commitment_tasks,
}


class SignalSync(Job):
    """Import actionable findings from signal reports as routed tasks."""

    name = "signal-sync"

    def __init__(
        self,
        db_path: Path,
        logs_base: Path,
        day: str | None = None,
        verbose: bool = True,
    ):
        super().__init__(db_path, verbose)
        self.logs_base = logs_base
        self.day = day or today_iso()

    def run(self, conn: sqlite3.Connection) -> JobResult:
        result = JobResult()

        for kind_name, rule in SYNC_RULES.items():
            kind = KINDS_BY_NAME[kind_name]
            try:
                finding = load(self.logs_base, kind, self.day)
            except ReportFormatError as e:
                self.log(f"ERROR {e}")
                result.errors.append(str(e))
                continue
            except OSError as e:
                self.log(f"could not read {kind.label} report: {e}")
                result.notes.append(f"{kind.label}: unreadable ({e})")
                continue

            if finding is None:
                self.log(f"no {kind.label} report for {self.day}")
                result.notes.append(f"{kind.label}: no report")
                continue

            for spec in rule(finding, self.day):
                self._import(conn, kind.name, spec, result)

        self.log(
            f"done: {result.tasks_created} created, "
            f"{result.tasks_skipped} skipped (already open)"
        )
        return result

    def _import(
        self,
        conn: sqlite3.Connection,
        source: str,
        spec: TaskSpec,
        result: JobResult,
    ) -> None:
        assignee = route_category(spec.category)
        task_id = create_task(
            conn, spec.title,
            description=spec.description,
            source=source,
            assigned_to=assignee,
            priority=spec.priority,
            category=spec.category,
        )
        if task_id is None:
            self.log(f"SKIP (exists): {spec.title}")
            result.tasks_skipped += 1
            return

        self.log(f"CREATED: {spec.title} → {assignee} (priority {spec.priority})")
        result.tasks_created += 1
        result.notifications_created += 1
