"""
Reports — reading what the signal producers leave behind.

Each detector writes dated files under one logs directory:

  seventy-percent-detector/report-YYYY-MM-DD.md   "# 70% Detector Report"
                                                  "- ABANDON OR FINISH: ..." lines
  dependency-guardian/report-YYYY-MM-DD.md        "**Urgency Level:** HIGH"
  context-switch/report-YYYY-MM-DD.md             "| Focus Score | 62% | - |"
  marketing-check/.marketing-streak               "4:2026-10-17"
  morning-commitment/.commitments.json            {"2026-10-18": {"commitment": ...}}

One parser per kind, each returning a dataclass. A parser that can't
find its named field raises ReportFormatError instead of guessing, so a
change in a detector's output shows up as an error and not as a quiet
"nothing to report".

A report that doesn't exist yet is not an error: load() returns None.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable


class ReportFormatError(ValueError):
    """A report exists but its documented field is missing or unreadable."""

    def __init__(self, kind: str, field_name: str, path: Path | None = None):
        where = f" in {path}" if path else ""
        super().__init__(f"{kind}: expected field '{field_name}' not found{where}")
        self.kind = kind
        self.field_name = field_name
        self.path = path


# --- findings ---

@dataclass
class SeventyItem:
    action: str         # ABANDON OR FINISH / MERGE OR CLOSE / ADVANCE PIPELINE
    target: str         # the rest of the line

    @property
    def line(self) -> str:
        return f"{self.action}: {self.target}"


@dataclass
class SeventyFinding:
    items: list[SeventyItem] = field(default_factory=list)

    def summary(self) -> str:
        if not self.items:
            return "nothing stale"
        return f"{len(self.items)} items need attention"


@dataclass
class SecurityFinding:
    urgency: str        # LOW / MODERATE / HIGH / CRITICAL

    def summary(self) -> str:
        if self.urgency == "LOW":
            return "LOW (no action needed)"
        return f"{self.urgency} priority vulnerabilities"


@dataclass
class FocusFinding:
    score: int          # percent of commits in the dominant project

    def summary(self) -> str:
        return f"{self.score}%"


@dataclass
class StreakFinding:
    days: int
    last_date: str      # YYYY-MM-DD

    def status(self, day: str) -> str:
        """active / at_risk / broken, relative to day."""
        today = date.fromisoformat(day)
        if self.last_date in (day, (today - timedelta(days=1)).isoformat()):
            return "active"
        if self.last_date == (today - timedelta(days=2)).isoformat():
            return "at_risk"
        return "broken"

    def summary(self) -> str:
        return f"{self.days} days"


@dataclass
class CommitmentFinding:
    commitment: str | None
    completed: bool = False

    def summary(self) -> str:
        if not self.commitment:
            return "none set"
        return self.commitment + (" (done)" if self.completed else "")


# --- parsers ---

SEVENTY_HEADER = "# 70% Detector Report"
SEVENTY_ACTIONS = ("ABANDON OR FINISH", "MERGE OR CLOSE", "ADVANCE PIPELINE")

URGENCY_LEVELS = ("LOW", "MODERATE", "HIGH", "CRITICAL")
URGENCY_LINE = re.compile(r"Urgency Level\s*:\s*([A-Za-z]+)")
FOCUS_LINE = re.compile(r"Focus Score\D*?(\d+)\s*%")
STREAK_LINE = re.compile(r"^\s*(\d+):(\d{4}-\d{2}-\d{2})\s*$")


def parse_seventy_report(text: str, path: Path | None = None) -> SeventyFinding:
    if SEVENTY_HEADER not in text:
        raise ReportFormatError("seventy-percent-detector", SEVENTY_HEADER, path)

    items = []
    for raw_line in text.splitlines():
        if not raw_line.startswith("- "):
            continue
        line = raw_line[2:].replace("**", "").strip()
        for action in SEVENTY_ACTIONS:
            if line.startswith(action + ":"):
                items.append(SeventyItem(action=action, target=line[len(action) + 1:].strip()))
                break
    return SeventyFinding(items=items)


def parse_security_report(text: str, path: Path | None = None) -> SecurityFinding:
    match = URGENCY_LINE.search(text.replace("*", ""))
    if not match:
        raise ReportFormatError("dependency-guardian", "Urgency Level", path)

    urgency = match.group(1).upper()
    if urgency not in URGENCY_LEVELS:
        raise ReportFormatError("dependency-guardian", "Urgency Level", path)
    return SecurityFinding(urgency=urgency)


def parse_focus_report(text: str, path: Path | None = None) -> FocusFinding:
    match = FOCUS_LINE.search(text)
    if not match:
        raise ReportFormatError("context-switch", "Focus Score", path)
    return FocusFinding(score=int(match.group(1)))


def parse_streak_file(text: str, path: Path | None = None) -> StreakFinding:
    match = STREAK_LINE.match(text.strip())
    if not match:
        raise ReportFormatError("marketing-check", "streak:last_date", path)
    return StreakFinding(days=int(match.group(1)), last_date=match.group(2))


def parse_commitments(text: str, day: str, path: Path | None = None) -> CommitmentFinding:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ReportFormatError("morning-commitment", "date → commitment map", path) from e
    if not isinstance(data, dict):
        raise ReportFormatError("morning-commitment", "date → commitment map", path)

    entry = data.get(day)
    if entry is None:
        return CommitmentFinding(commitment=None)
    if not isinstance(entry, dict) or "commitment" not in entry:
        raise ReportFormatError("morning-commitment", "commitment", path)
    return CommitmentFinding(
        commitment=entry["commitment"] or None,
        completed=bool(entry.get("completed", False)),
    )


# --- locating ---

@dataclass
class ReportKind:
    name: str                   # also the task `source` for anything it produces
    label: str                  # how the standup names it
    directory: str              # under logs_base
    parse: Callable[..., Any]
    filename: str | None = None # fixed name, or None for dated report-*.md
    dated: str = "latest"       # "today": only that day's report; "latest": newest ≤ day
    takes_day: bool = False     # parser wants the day too


REPORT_KINDS: tuple[ReportKind, ...] = (
    ReportKind(
        name="seventy-percent-detector", label="70% Detector",
        directory="seventy-percent-detector", filename=None, dated="today",
        parse=parse_seventy_report,
    ),
    ReportKind(
        name="dependency-guardian", label="Security",
        directory="dependency-guardian", filename=None,
        parse=parse_security_report,
    ),
    ReportKind(
        name="context-switch", label="Focus score",
        directory="context-switch", filename=None,
        parse=parse_focus_report,
    ),
    ReportKind(
        name="marketing-check", label="Marketing streak",
        directory="marketing-check", filename=".marketing-streak",
        parse=parse_streak_file,
    ),
    ReportKind(
        name="morning-commitment", label="Morning commitment",
        directory="morning-commitment", filename=".commitments.json",
        parse=parse_commitments, takes_day=True,
    ),
)

KINDS_BY_NAME = {k.name: k for k in REPORT_KINDS}


def locate(logs_base: Path, kind: ReportKind, day: str) -> Path | None:
    """Find the file a kind should be read from for a given day."""
    directory = logs_base / kind.directory
    if kind.filename:
        path = directory / kind.filename
        return path if path.is_file() else None

    if kind.dated == "today":
        path = directory / f"report-{day}.md"
        return path if path.is_file() else None

    if not directory.is_dir():
        return None
    cutoff = f"report-{day}.md"
    candidates = sorted(
        p for p in directory.glob("report-*.md")
        if p.is_file() and p.name <= cutoff
    )
    return candidates[-1] if candidates else None


def load(logs_base: Path, kind: ReportKind, day: str) -> Any | None:
    """Parse a kind's report for day. None if there's no report.
    Raises ReportFormatError if it's there but unreadable."""
    path = locate(logs_base, kind, day)
    if path is None:
        return None
    text = path.read_text(encoding="utf-8")
    if kind.takes_day:
        return kind.parse(text, day, path)
    return kind.parse(text, path)


@dataclass
class FindingLine:
    kind: str
    label: str
    status: str         # ok / no_data / error
    text: str

    def line(self) -> str:
        return f"{self.label}: {self.text}"


def collect_findings(logs_base: Path, day: str) -> list[FindingLine]:
    """One line per report kind, always. Missing → no data, drift → unreadable."""
    lines = []
    for kind in REPORT_KINDS:
        try:
            finding = load(logs_base, kind, day)
        except (ReportFormatError, OSError) as e:
            lines.append(FindingLine(kind.name, kind.label, "error", f"unreadable report ({e})"))
            continue

        if finding is None:
            lines.append(FindingLine(kind.name, kind.label, "no_data", "no data"))
            continue

        text = finding.summary()
        if isinstance(finding, StreakFinding):
            text += f" ({finding.status(day).replace('_', ' ')})"
        lines.append(FindingLine(kind.name, kind.label, "ok", text))
    return lines
