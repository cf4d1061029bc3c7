"""
HYDRA notification worker — cron-driven delivery.

Runs via cron every urgent_poll_minutes (5 by default):

  */5 * * * * /usr/bin/python3 /path/to/hydra/worker/notify_cron.py >> ~/.hydra/logs/notify.log 2>&1

Every run pushes pending urgent notifications. Once full_poll_minutes
have passed since the last full sweep (kept in the state table) it
pushes everything else too. A notification that fails to send stays
pending and is retried next run.

Overlapping runs exit straight away; the lock file sits next to the
store.
"""

from __future__ import annotations

import argparse
import fcntl
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from coord.config import HydraConfig, load_config, log
from coord.schema import migrate, now_iso, open_store, state_get, state_set, write_lock
from notify.dispatcher import Transport, deliver_pending
from notify.telegram import transport_from_config

LAST_FULL_SWEEP = "last_full_sweep"

# Upper bound per run so one backlog can't keep a run going past the next
BATCH_LIMIT = 50


def lock_path_for(cfg: HydraConfig) -> Path:
    return cfg.db_path.with_name(cfg.db_path.name + ".notify.lock")


def due_for_full_sweep(last: str | None, every_minutes: int, now: datetime) -> bool:
    if not last:
        return True
    try:
        previous = datetime.fromisoformat(last)
    except ValueError:
        return True
    return now - previous >= timedelta(minutes=every_minutes)


def run(
    cfg: HydraConfig,
    mode: str | None = None,
    transport: Transport | None = None,
    now: datetime | None = None,
) -> int:
    """One delivery pass. mode: "all", "urgent", or None to decide by the clock."""
    transport = transport or transport_from_config(cfg)
    if transport is None:
        log("no telegram_bot_token / telegram_chat_id configured, nothing to do", cfg.verbose)
        return 1

    now = now or datetime.now(timezone.utc)

    # One worker at a time
    lock_path = lock_path_for(cfg)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_fd = open(lock_path, "w")
    try:
        fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        log("another notify worker is running, exiting", cfg.verbose)
        lock_fd.close()
        return 0

    try:
        conn = open_store(cfg.db_path)
        try:
            migrate(cfg.db_path)
            if mode == "all":
                full = True
            elif mode == "urgent":
                full = False
            else:
                full = due_for_full_sweep(
                    state_get(conn, LAST_FULL_SWEEP), cfg.full_poll_minutes, now
                )

            log(f"delivering {'all pending' if full else 'urgent'} notifications", cfg.verbose)
            report = deliver_pending(
                conn, transport,
                priority=None if full else "urgent",
                limit=BATCH_LIMIT,
                verbose=cfg.verbose,
            )

            # A batch cut short by the limit isn't a full sweep; finish it next run
            handled = len(report.delivered) + len(report.failed)
            if full and handled < BATCH_LIMIT:
                with write_lock(conn):
                    state_set(conn, LAST_FULL_SWEEP, now_iso())
        finally:
            conn.close()

        log(
            f"delivered {len(report.delivered)}, failed {len(report.failed)}"
            + (" (will retry)" if report.failed else ""),
            cfg.verbose,
        )
        return 0

    finally:
        fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)
        lock_fd.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="HYDRA notification worker")
    parser.add_argument(
        "--config", default=None,
        help="Path to config JSON (default: ~/.hydra/config.json if present)",
    )
    parser.add_argument("--db", default=None, help="Path to the store")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--all", action="store_const", const="all", dest="mode",
        help="Deliver everything pending, regardless of the sweep interval.",
    )
    mode.add_argument(
        "--urgent", action="store_const", const="urgent", dest="mode",
        help="Deliver urgent notifications only.",
    )
    args = parser.parse_args(argv)

    try:
        cfg = load_config(Path(args.config).expanduser() if args.config else None)
        if args.db:
            cfg.db_path = Path(args.db).expanduser()
        return run(cfg, mode=args.mode)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
