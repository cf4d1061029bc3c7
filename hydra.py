#!/usr/bin/env python3
"""
hydra — command line for the coordination store.

Usage:
  hydra init
  hydra status
  hydra agents
  hydra tasks [forge] [--all]
  hydra task create [--title T] [--category C] [--priority N] [--agent A]
  hydra task start 12
  hydra task block 12 waiting on the API key
  hydra task done 12
  hydra notify @forge "deploy is done" [--urgent]
  hydra route "@forge can you fix the auth bug? urgent" [--task]
  hydra standup [--date yesterday] [--agent forge] [--no-send]
  hydra notifications [--urgent]
  hydra activity [20]
  hydra sync [--date 2026-01-15]

Global options: --db PATH, --config PATH.
"""

from __future__ import annotations

import argparse
import sys
from datetime import date, datetime, timezone
from pathlib import Path

# Repo root, next to this file
ROOT = Path(__file__).resolve().parent

# Make the flat packages importable when run as a script
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import dateparser

from coord.activity import recent_activity
from coord.config import HydraConfig, load_config
from coord.notifications import list_pending, pending_counts
from coord.roster import get_agent, list_agents, provision
from coord.schema import (
    PRIORITY_DEFAULT,
    StoreNotFoundError,
    UnknownAgentError,
    connect,
    migrate,
    open_store,
    today_iso,
)
from coord.tasks import create_task, get_task, list_tasks, update_status
from coord.workload import workload
from ingest.lifecycle import notify_agent, route_message
from ingest.router import route_category
from jobs.runner import JobResult
from jobs.standup import StandupJob, render_standup
from notify.dispatcher import format_notification
from notify.telegram import transport_from_config
from signals.sync import SignalSync


def parse_day(text: str | None) -> str | None:
    """ISO date, or anything dateparser understands ("yesterday", "last friday")."""
    if not text:
        return None
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError:
        pass

    parsed = dateparser.parse(
        text,
        settings={
            "RELATIVE_BASE": datetime.now(timezone.utc).replace(tzinfo=None),
            "PREFER_DATES_FROM": "past",
        },
    )
    if parsed is None:
        raise ValueError(f"Can't read date: {text!r}")
    return parsed.date().isoformat()


def _open(cfg: HydraConfig):
    """Existing store, schema brought up to date."""
    if not cfg.db_path.is_file():
        raise StoreNotFoundError(cfg.db_path)
    migrate(cfg.db_path)
    return open_store(cfg.db_path)


def _ask(prompt: str, default: str | None = None) -> str | None:
    suffix = f" [{default}]" if default else ""
    try:
        answer = input(f"{prompt}{suffix}: ").strip()
    except EOFError:
        return default
    return answer or default


def _print_job(result: JobResult) -> int:
    for note in result.notes:
        print(f"  {note}")

    if result.tasks_created or result.tasks_skipped:
        print(f"  Tasks created: {result.tasks_created}")
        print(f"  Tasks skipped (already open): {result.tasks_skipped}")

    if result.errors:
        print("\nErrors:", file=sys.stderr)
        for err in result.errors:
            print(f"  {err}", file=sys.stderr)
        return 1

    print("Done.")
    return 0


# --- commands ---

def cmd_init(args, cfg: HydraConfig) -> int:
    migrate(cfg.db_path)
    conn = connect(cfg.db_path)
    try:
        created = provision(conn)
    finally:
        conn.close()
    print(f"Store ready at {cfg.db_path} ({created} new agents).")
    return 0


def cmd_status(args, cfg: HydraConfig) -> int:
    conn = _open(cfg)
    try:
        rows = workload(conn)
        total, urgent = pending_counts(conn)
    finally:
        conn.close()

    print(f"HYDRA status ({today_iso()})")
    print(f"  {'agent':<8} {'pending':>7} {'wip':>5} {'done':>5}")
    for w in rows:
        print(
            f"  {w.agent_id:<8} {w.pending:>7} {w.in_progress:>5} "
            f"{w.completed_today:>5}"
        )
    print(f"Notifications pending: {total} (urgent: {urgent})")
    return 0


def cmd_agents(args, cfg: HydraConfig) -> int:
    conn = _open(cfg)
    try:
        agents = list_agents(conn)
    finally:
        conn.close()

    if not agents:
        print("No agents. Run `hydra init`.")
        return 0
    for a in agents:
        print(
            f"  {a.id:<6} {a.role:<12} {a.model:<20} {a.cost_tier:<8} "
            f"every {a.heartbeat_minutes}m  [{', '.join(a.skills)}]"
        )
    return 0


def cmd_tasks(args, cfg: HydraConfig) -> int:
    conn = _open(cfg)
    try:
        if args.agent and get_agent(conn, args.agent) is None:
            raise UnknownAgentError(args.agent)
        tasks = list_tasks(conn, args.agent, include_completed=args.all)
    finally:
        conn.close()

    if not tasks:
        print("No tasks.")
        return 0
    for t in tasks:
        print(f"  #{t.id:<4} p{t.priority} {t.status:<11} {t.line()}")
    return 0


def cmd_task_create(args, cfg: HydraConfig) -> int:
    interactive = not args.no_input

    title = args.title or (_ask("Title") if interactive else None)
    if not title:
        raise ValueError("Task title is required")
    description = args.description
    if description is None and interactive:
        description = _ask("Description (optional)")
    category = args.category
    if category is None and interactive:
        category = _ask("Category (dev, research, ops, ...)")
    priority = args.priority
    if priority is None:
        raw = _ask("Priority 1-5", str(PRIORITY_DEFAULT)) if interactive else None
        try:
            priority = int(raw) if raw else PRIORITY_DEFAULT
        except ValueError:
            raise ValueError(f"Priority must be a number 1-5, got {raw!r}") from None

    assignee = args.agent or route_category(category)

    conn = _open(cfg)
    try:
        task_id = create_task(
            conn, title,
            description=description,
            source=args.source,
            assigned_to=assignee,
            priority=priority,
            category=category,
        )
    finally:
        conn.close()

    if task_id is None:
        print(f"Skipped: an open task '{title}' from {args.source} already exists.")
        return 0
    print(f"Created task #{task_id} → {assignee} (priority {priority})")
    return 0


def _transition(args, cfg: HydraConfig, status: str, reason: str | None = None) -> int:
    conn = _open(cfg)
    try:
        task = update_status(conn, args.id, status, blocked_reason=reason, actor=args.actor)
    finally:
        conn.close()
    print(f"Task #{task.id} is now {task.status}: {task.line()}")
    return 0


def cmd_task_start(args, cfg: HydraConfig) -> int:
    return _transition(args, cfg, "in_progress")


def cmd_task_block(args, cfg: HydraConfig) -> int:
    return _transition(args, cfg, "blocked", " ".join(args.reason))


def cmd_task_done(args, cfg: HydraConfig) -> int:
    return _transition(args, cfg, "completed")


def cmd_task_show(args, cfg: HydraConfig) -> int:
    conn = _open(cfg)
    try:
        task = get_task(conn, args.id)
    finally:
        conn.close()
    if task is None:
        raise ValueError(f"Task {args.id} not found")

    print(f"#{task.id} {task.title}")
    print(f"  status:   {task.status}")
    print(f"  assigned: {task.assigned_to or 'unassigned'}")
    print(f"  priority: {task.priority}  category: {task.category or '-'}")
    print(f"  source:   {task.source or '-'}")
    if task.blocked_reason:
        print(f"  blocked:  {task.blocked_reason}")
    if task.description:
        print(f"\n{task.description}")
    return 0


def cmd_notify(args, cfg: HydraConfig) -> int:
    conn = _open(cfg)
    try:
        notification_id = notify_agent(
            conn, args.agent, " ".join(args.message),
            sender=args.sender,
            urgent=args.urgent,
        )
    finally:
        conn.close()
    flag = " (urgent)" if args.urgent else ""
    print(f"Notification #{notification_id} queued for @{args.agent.lstrip('@').lower()}{flag}")
    return 0


def cmd_route(args, cfg: HydraConfig) -> int:
    conn = _open(cfg)
    try:
        result = route_message(
            conn, " ".join(args.message),
            sender=args.sender,
            channel=args.channel,
            create_task=args.task,
            category=args.category,
            thread_id=args.thread,
        )
    finally:
        conn.close()

    targets = ", ".join(f"@{t}" for t in result.targets) or "nobody"
    print(f"Message #{result.message_id} → {targets} ({result.priority})")
    if result.unknown:
        print(f"  Not on the roster: {', '.join('@' + u for u in result.unknown)}")
    if result.task_id is not None:
        print(f"  Task #{result.task_id} → {result.task_assignee}")
    elif args.task:
        print("  Task skipped (already open)")
    return 0


def cmd_standup(args, cfg: HydraConfig) -> int:
    if not cfg.db_path.is_file():
        raise StoreNotFoundError(cfg.db_path)
    migrate(cfg.db_path)

    job = StandupJob(
        db_path=cfg.db_path,
        logs_base=cfg.logs_base,
        standup_dir=cfg.standup_dir,
        day=parse_day(args.date),
        agent_id=args.agent,
        activity_limit=cfg.activity_limit,
        transport=None if args.no_send else transport_from_config(cfg),
        send=not args.no_send,
        verbose=cfg.verbose,
    )
    result = job.execute()

    if job.data is not None and result.ok:
        print(render_standup(job.data))
    return _print_job(result)


def cmd_notifications(args, cfg: HydraConfig) -> int:
    conn = _open(cfg)
    try:
        pending = list_pending(
            conn,
            priority="urgent" if args.urgent else None,
            agent_id=args.agent,
        )
    finally:
        conn.close()

    if not pending:
        print("No pending notifications.")
        return 0
    for n in pending:
        print(f"  #{n.id:<4} {n.created_at[:16]}  {format_notification(n)}")
    return 0


def cmd_activity(args, cfg: HydraConfig) -> int:
    conn = _open(cfg)
    try:
        entries = recent_activity(conn, args.limit)
    finally:
        conn.close()

    if not entries:
        print("No activity yet.")
        return 0
    for e in entries:
        print(f"  {e.created_at[:16]}  {e.line()}")
    return 0


def cmd_sync(args, cfg: HydraConfig) -> int:
    if not cfg.db_path.is_file():
        raise StoreNotFoundError(cfg.db_path)
    migrate(cfg.db_path)

    day = parse_day(args.date) or today_iso()
    print(f"Importing signal reports for {day} from {cfg.logs_base}...")
    job = SignalSync(cfg.db_path, cfg.logs_base, day=day, verbose=cfg.verbose)
    return _print_job(job.execute())


# --- parser ---

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hydra",
        description="Coordinate the HYDRA agents: tasks, messages, notifications, standups.",
    )
    parser.add_argument(
        "--db", default=None,
        help="Path to the store (default: db_path from config, ~/.hydra/hydra.db).",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to config JSON (default: ~/.hydra/config.json if present).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Create or migrate the store and provision the roster.")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("status", help="Workload per agent and pending notifications.")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("agents", help="List the roster.")
    p.set_defaults(func=cmd_agents)

    p = sub.add_parser("tasks", help="List tasks (open only unless --all).")
    p.add_argument("agent", nargs="?", default=None)
    p.add_argument("--all", action="store_true", help="Include completed tasks.")
    p.set_defaults(func=cmd_tasks)

    task = sub.add_parser("task", help="Create or move a task.")
    task_sub = task.add_subparsers(dest="task_command", required=True)

    p = task_sub.add_parser("create", help="Create a task (prompts for anything not given).")
    p.add_argument("--title")
    p.add_argument("--description")
    p.add_argument("--category", help="Routes the task: dev, research, ops, ...")
    p.add_argument("--priority", type=int, help="1 (urgent) to 5.")
    p.add_argument("--agent", help="Assign directly instead of routing by category.")
    p.add_argument("--source", default="cli")
    p.add_argument("--no-input", action="store_true", help="Don't prompt; use defaults.")
    p.set_defaults(func=cmd_task_create)

    for name, func, help_text in (
        ("start", cmd_task_start, "Mark a task in progress."),
        ("done", cmd_task_done, "Complete a task."),
        ("show", cmd_task_show, "Show one task."),
    ):
        p = task_sub.add_parser(name, help=help_text)
        p.add_argument("id", type=int)
        p.add_argument("--as", dest="actor", default=None, help="Agent doing it.")
        p.set_defaults(func=func)

    p = task_sub.add_parser("block", help="Block a task, with a reason.")
    p.add_argument("id", type=int)
    p.add_argument("reason", nargs="+")
    p.add_argument("--as", dest="actor", default=None, help="Agent doing it.")
    p.set_defaults(func=cmd_task_block)

    p = sub.add_parser("notify", help="Send a direct notification to one agent.")
    p.add_argument("agent", help="@agent or agent id")
    p.add_argument("message", nargs="+")
    p.add_argument("--urgent", action="store_true")
    p.add_argument("--from", dest="sender", default="user")
    p.set_defaults(func=cmd_notify)

    p = sub.add_parser("route", help="Post a message; @mentions get notified.")
    p.add_argument("message", nargs="+")
    p.add_argument("--task", action="store_true", help="Also open a routed task.")
    p.add_argument("--category", default=None, help="Task category (default: inferred).")
    p.add_argument("--from", dest="sender", default="user")
    p.add_argument("--channel", default="general")
    p.add_argument("--thread", type=int, default=None, help="Reply to message id.")
    p.set_defaults(func=cmd_route)

    p = sub.add_parser("standup", help="Compile, save and send the daily standup.")
    p.add_argument("--date", default=None, help="ISO date or e.g. 'yesterday' (default: today, UTC).")
    p.add_argument("--agent", default=None, help="Scope to one agent.")
    p.add_argument("--no-send", action="store_true", help="Save only, don't push.")
    p.set_defaults(func=cmd_standup)

    p = sub.add_parser("notifications", help="List undelivered notifications.")
    p.add_argument("--urgent", action="store_true")
    p.add_argument("--agent", default=None)
    p.set_defaults(func=cmd_notifications)

    p = sub.add_parser("activity", help="Recent activity.")
    p.add_argument("limit", nargs="?", type=int, default=10)
    p.set_defaults(func=cmd_activity)

    p = sub.add_parser("sync", help="Import findings from signal reports as tasks.")
    p.add_argument("--date", default=None, help="ISO date or e.g. 'yesterday' (default: today, UTC).")
    p.set_defaults(func=cmd_sync)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(Path(args.config).expanduser() if args.config else None)
        if args.db:
            cfg.db_path = Path(args.db).expanduser()
        return args.func(args, cfg)
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
