"""
Coord — the shared store every HYDRA job reads and writes.

  schema.py         — tables, views, migrations, write_lock()
  config.py         — JSON config + log()
  roster.py         — the agents
  tasks.py          — work items, dedup-guarded inserts, status changes
  messages.py       — chat log
  notifications.py  — delivery queue
  standups.py       — one standup row per date
  activity.py       — audit trail
  workload.py       — per-agent counts, computed on demand
"""
