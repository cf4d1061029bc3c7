"""
Jobs — batch work that runs against the store on a schedule.

  runner.py    — base job interface, job_runs audit
  standup.py   — the daily standup compiler
"""
