import json

import pytest

import hydra
from coord import config
from coord.schema import connect, today_iso
from coord.tasks import get_task, list_tasks


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    for key in ("HYDRA_DB", "HYDRA_TELEGRAM_TOKEN", "HYDRA_TELEGRAM_CHAT_ID"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "DEFAULT_CONFIG_PATH", tmp_path / "absent.json")


@pytest.fixture
def config_file(tmp_path, db_path, logs_base):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "db_path": str(db_path),
        "logs_base": str(logs_base),
        "standup_dir": str(tmp_path / "standups"),
        "verbose": False,
    }))
    return path


def run(config_file, *argv):
    return hydra.main(["--config", str(config_file), *argv])


def test_init_fresh(tmp_path, capsys):
    db = tmp_path / "new" / "hydra.db"
    assert hydra.main(["--db", str(db), "init"]) == 0
    assert "4 new agents" in capsys.readouterr().out
    assert hydra.main(["--db", str(db), "init"]) == 0
    assert "0 new agents" in capsys.readouterr().out


def test_missing_store(tmp_path, capsys):
    assert hydra.main(["--db", str(tmp_path / "none.db"), "status"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("Error:")
    assert "hydra init" in err
    assert not (tmp_path / "none.db").exists()


def test_missing_config(tmp_path, capsys):
    assert hydra.main(["--config", str(tmp_path / "nope.json"), "status"]) == 1
    assert "Config not found" in capsys.readouterr().err


def test_status_and_agents(config_file, capsys):
    assert run(config_file, "status") == 0
    out = capsys.readouterr().out
    assert "forge" in out
    assert "Notifications pending: 0 (urgent: 0)" in out

    assert run(config_file, "agents") == 0
    out = capsys.readouterr().out
    assert "milo" in out and "premium" in out


def test_route_with_task(config_file, db_path, capsys):
    code = run(config_file, "route", "Hey @forge can you fix the auth bug? It's urgent!", "--task")
    assert code == 0
    out = capsys.readouterr().out
    assert "@forge (urgent)" in out
    assert "→ forge" in out

    conn = connect(db_path)
    try:
        [task] = list_tasks(conn)
    finally:
        conn.close()
    assert task.priority == 1


def test_route_reply_to_missing_message(config_file, capsys):
    assert run(config_file, "route", "--thread", "999", "@forge hi") == 1
    assert capsys.readouterr().err.startswith("Error: Message 999 not found")


def test_notify_and_list(config_file, capsys):
    assert run(config_file, "notify", "@pulse", "prod", "is", "down", "--urgent") == 0
    assert "queued for @pulse (urgent)" in capsys.readouterr().out

    assert run(config_file, "notifications", "--urgent") == 0
    assert "[URGENT] @pulse URGENT from user: prod is down" in capsys.readouterr().out


def test_notify_unknown_agent(config_file, capsys):
    assert run(config_file, "notify", "@ghost", "hi") == 1
    assert "Unknown agent: ghost" in capsys.readouterr().err


def test_task_create_with_flags(config_file, db_path, capsys):
    code = run(config_file, "task", "create", "--title", "Audit SSL certs",
               "--category", "security", "--priority", "2", "--no-input")
    assert code == 0
    assert "→ pulse" in capsys.readouterr().out

    code = run(config_file, "task", "create", "--title", "Audit SSL certs",
               "--category", "security", "--priority", "2", "--no-input")
    assert code == 0
    assert "Skipped" in capsys.readouterr().out


def test_task_create_prompts(config_file, db_path, monkeypatch):
    answers = iter(["Write launch post", "", "content", "4"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
    assert run(config_file, "task", "create") == 0

    conn = connect(db_path)
    try:
        [task] = list_tasks(conn)
    finally:
        conn.close()
    assert (task.title, task.assigned_to, task.priority, task.description) == (
        "Write launch post", "scout", 4, None,
    )


def test_task_transitions(config_file, db_path, capsys):
    run(config_file, "task", "create", "--title", "t", "--agent", "forge", "--no-input")
    assert run(config_file, "task", "start", "1") == 0
    assert run(config_file, "task", "block", "1", "waiting", "on", "keys") == 0
    assert run(config_file, "task", "done", "1") == 0
    assert run(config_file, "task", "start", "1") == 1
    assert "already completed" in capsys.readouterr().err

    conn = connect(db_path)
    try:
        assert get_task(conn, 1).status == "completed"
    finally:
        conn.close()


def test_tasks_listing(config_file, capsys):
    run(config_file, "task", "create", "--title", "a", "--agent", "forge", "--no-input")
    run(config_file, "task", "create", "--title", "b", "--agent", "scout", "--no-input")
    capsys.readouterr()

    assert run(config_file, "tasks", "forge") == 0
    out = capsys.readouterr().out
    assert "forge: a" in out and "scout: b" not in out

    assert run(config_file, "tasks", "nobody") == 1


def test_standup(config_file, tmp_path, capsys):
    assert run(config_file, "standup", "--no-send") == 0
    out = capsys.readouterr().out
    assert "# HYDRA Daily Standup" in out
    assert (tmp_path / "standups" / f"standup-{today_iso()}.md").exists()


def test_standup_for_date(config_file, tmp_path):
    assert run(config_file, "standup", "--no-send", "--date", "2026-01-15") == 0
    assert (tmp_path / "standups" / "standup-2026-01-15.md").exists()


def test_sync_error_exit_code(config_file, logs_base, capsys):
    (logs_base / "dependency-guardian").mkdir()
    (logs_base / "dependency-guardian" / f"report-{today_iso()}.md").write_text("garbage")
    assert run(config_file, "sync") == 1
    assert "Urgency Level" in capsys.readouterr().err


def test_activity(config_file, capsys):
    run(config_file, "route", "@scout hello")
    capsys.readouterr()
    assert run(config_file, "activity", "5") == 0
    assert "user → @scout" in capsys.readouterr().out


def test_parse_day():
    assert hydra.parse_day("2026-01-15") == "2026-01-15"
    assert hydra.parse_day(None) is None
    assert len(hydra.parse_day("yesterday")) == 10
    with pytest.raises(ValueError):
        hydra.parse_day("xyzzy plugh")
