"""
Ingest — how free text becomes notifications and tasks.

  router.py     — category → agent, total and pure
  parse.py      — @mentions, urgency words, titles
  lifecycle.py  — route_message() / notify_agent(): the store writes
"""
