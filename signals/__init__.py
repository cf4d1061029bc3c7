"""
Signals — what the detectors found, in a form the store can use.

  reports.py  — one parser per report kind, explicit format errors
  sync.py     — SignalSync job: findings → dedup-guarded, routed tasks
"""
