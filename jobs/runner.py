"""
Runner — base interface for batch jobs.

A job is a short-lived task that reads from the store, does some work,
and writes back. Each job has:
  - A name (for logging and the job_runs audit)
  - A run() method that does the actual work

The runner handles setup, teardown, and audit logging. A missing store
is fatal and raises before anything runs; anything run() throws is
rolled back and reported in the result instead of crashing the caller.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from coord.config import log
from coord.schema import now_iso, open_store


@dataclass
class JobResult:
    """What a job produced."""
    tasks_created: int = 0
    tasks_skipped: int = 0
    notifications_created: int = 0
    errors: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    # Deferred filesystem writes to apply after DB commit
    _post_commit_writes: list[tuple[Path, str]] = field(default_factory=list)
    # Paths the post-commit writes actually landed on
    written: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class Job(ABC):
    """Base class for all batch jobs."""

    name: str = "unnamed"

    def __init__(self, db_path: Path, verbose: bool = True):
        self.db_path = db_path
        self.verbose = verbose

    def log(self, msg: str) -> None:
        log(f"{self.name}: {msg}", self.verbose)

    @abstractmethod
    def run(self, conn: sqlite3.Connection) -> JobResult:
        """Do the actual work. Connection is provided, don't close it."""
        ...

    def after_commit(self, result: JobResult) -> None:
        """Side effects that need the commit and file writes done first."""

    def execute(self) -> JobResult:
        """Run the job with audit logging and error handling."""
        conn = open_store(self.db_path)

        cursor = conn.execute(
            "INSERT INTO job_runs (job, started_at) VALUES (?, ?)",
            (self.name, now_iso()),
        )
        run_id = cursor.lastrowid
        conn.commit()

        try:
            result = self.run(conn)
            conn.commit()

            # Apply deferred filesystem writes now that DB is committed
            for path, content in result._post_commit_writes:
                try:
                    path.parent.mkdir(parents=True, exist_ok=True)
                    path.write_text(content, encoding="utf-8")
                    result.written.append(path)
                    result.notes.append(f"Wrote {path} ({len(content)} chars).")
                except OSError as e:
                    result.errors.append(f"Post-commit write to {path} failed: {e}")

            self.after_commit(result)

            self._finish(conn, run_id, "ok" if result.ok else "error", result)
            return result

        except Exception as e:
            conn.rollback()
            self.log(f"failed: {e}")
            result = JobResult(errors=[str(e)])
            self._finish(conn, run_id, "error", result)
            return result

        finally:
            conn.close()

    def _finish(
        self,
        conn: sqlite3.Connection,
        run_id: int,
        status: str,
        result: JobResult,
    ) -> None:
        summary = (
            f"created={result.tasks_created} skipped={result.tasks_skipped} "
            f"notified={result.notifications_created} errors={len(result.errors)}"
        )
        conn.execute(
            "UPDATE job_runs SET completed_at = ?, status = ?, summary = ? WHERE id = ?",
            (now_iso(), status, summary, run_id),
        )
        conn.commit()
