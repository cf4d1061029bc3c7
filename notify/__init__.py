"""
Notify — getting notifications and standups off the box.

  dispatcher.py  — pending queue → transport, mark delivered on success
  telegram.py    — the bot API client
"""
