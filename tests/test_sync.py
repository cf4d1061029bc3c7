from coord.notifications import list_pending
from coord.schema import connect
from coord.tasks import list_tasks
from helpers import write_report
from signals.reports import parse_seventy_report
from signals.sync import SignalSync, seventy_tasks

DAY = "2026-10-18"

CRITICAL = "# Dependency Guardian Report\n\n**Urgency Level:** CRITICAL\n"


def _tasks(db_path):
    conn = connect(db_path)
    try:
        return list_tasks(conn)
    finally:
        conn.close()


def _sync(db_path, logs_base):
    return SignalSync(db_path, logs_base, day=DAY, verbose=False).execute()


def test_critical_report_imported_once(db_path, logs_base):
    write_report(logs_base, "dependency-guardian", f"report-{DAY}.md", CRITICAL)
    # commitments present so only the security rule fires
    write_report(logs_base, "morning-commitment", ".commitments.json",
                 '{"2026-10-18": {"commitment": "Ship it"}}')

    first = _sync(db_path, logs_base)
    assert first.ok
    assert first.tasks_created == 1

    [task] = _tasks(db_path)
    assert task.title == "SECURITY: Critical vulnerabilities found"
    assert task.assigned_to == "pulse"
    assert task.priority == 1
    assert task.category == "security"
    assert task.source == "dependency-guardian"

    second = _sync(db_path, logs_base)
    assert second.tasks_created == 0
    assert second.tasks_skipped == 1
    assert len(_tasks(db_path)) == 1

    conn = connect(db_path)
    try:
        [n] = list_pending(conn)
        assert (n.agent_id, n.kind, n.priority) == ("pulse", "urgent", "urgent")
    finally:
        conn.close()


def test_high_is_priority_two(db_path, logs_base):
    write_report(logs_base, "dependency-guardian", f"report-{DAY}.md", "**Urgency Level:** HIGH")
    _sync(db_path, logs_base)
    titles = {t.title: t for t in _tasks(db_path)}
    assert titles["SECURITY: High severity vulnerabilities"].priority == 2


def test_low_makes_nothing(db_path, logs_base):
    write_report(logs_base, "dependency-guardian", f"report-{DAY}.md", "**Urgency Level:** LOW")
    _sync(db_path, logs_base)
    assert not [t for t in _tasks(db_path) if t.source == "dependency-guardian"]


def test_no_reports_no_tasks(db_path, logs_base):
    result = _sync(db_path, logs_base)
    assert result.ok
    assert result.tasks_created == 0
    assert any("no report" in note for note in result.notes)
    assert _tasks(db_path) == []


def test_missing_commitment_goes_to_coordinator(db_path, logs_base):
    write_report(logs_base, "morning-commitment", ".commitments.json", "{}")
    _sync(db_path, logs_base)
    [task] = _tasks(db_path)
    assert task.title == "Morning: Set your ONE thing"
    assert (task.assigned_to, task.priority, task.category) == ("milo", 1, "planning")


def test_broken_streak_goes_to_research(db_path, logs_base):
    write_report(logs_base, "marketing-check", ".marketing-streak", "9:2026-10-10")
    _sync(db_path, logs_base)
    [task] = _tasks(db_path)
    assert task.title == "MARKETING: Rebuild your streak"
    assert (task.assigned_to, task.priority) == ("scout", 2)


def test_active_streak_makes_nothing(db_path, logs_base):
    write_report(logs_base, "marketing-check", ".marketing-streak", "9:2026-10-17")
    _sync(db_path, logs_base)
    assert _tasks(db_path) == []


def test_seventy_items(db_path, logs_base):
    write_report(logs_base, "seventy-percent-detector", f"report-{DAY}.md",
                 "# 70% Detector Report\n"
                 "- ABANDON OR FINISH: feature/x\n"
                 "- ADVANCE PIPELINE: blog draft\n")
    _sync(db_path, logs_base)
    tasks = {t.title: t for t in _tasks(db_path)}
    assert tasks["70%: ABANDON OR FINISH: feature/x"].priority == 2
    assert tasks["70%: ADVANCE PIPELINE: blog draft"].priority == 1
    assert {t.assigned_to for t in tasks.values()} == {"forge"}


def test_format_drift_is_an_error_but_others_still_import(db_path, logs_base):
    write_report(logs_base, "dependency-guardian", f"report-{DAY}.md", "Urgency: CRITICAL")
    write_report(logs_base, "marketing-check", ".marketing-streak", "2:2026-09-01")

    result = _sync(db_path, logs_base)
    assert not result.ok
    assert any("Urgency Level" in e for e in result.errors)
    assert [t.title for t in _tasks(db_path)] == ["MARKETING: Rebuild your streak"]


def test_job_run_recorded(db_path, logs_base):
    _sync(db_path, logs_base)
    conn = connect(db_path)
    try:
        row = conn.execute("SELECT job, status, summary FROM job_runs").fetchone()
    finally:
        conn.close()
    assert row["job"] == "signal-sync"
    assert row["status"] == "ok"
    assert "created=0" in row["summary"]


def test_seventy_rule_titles():
    finding = parse_seventy_report("# 70% Detector Report\n- MERGE OR CLOSE: PR #7\n")
    [spec] = seventy_tasks(finding, DAY)
    assert spec.title == "70%: MERGE OR CLOSE: PR #7"
    assert spec.category == "code"
