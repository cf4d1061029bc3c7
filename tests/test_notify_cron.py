from datetime import datetime, timedelta, timezone

from coord.notifications import list_pending
from coord.schema import connect, state_get
from helpers import FakeTransport
from ingest.lifecycle import notify_agent
from worker import notify_cron


def _seed(db_path):
    conn = connect(db_path)
    try:
        notify_agent(conn, "forge", "whenever")
        notify_agent(conn, "pulse", "prod is down", urgent=True)
    finally:
        conn.close()


def _pending(db_path):
    conn = connect(db_path)
    try:
        return [n.agent_id for n in list_pending(conn)]
    finally:
        conn.close()


def _last_sweep(db_path):
    conn = connect(db_path)
    try:
        return state_get(conn, notify_cron.LAST_FULL_SWEEP)
    finally:
        conn.close()


def test_first_run_is_a_full_sweep(cfg):
    _seed(cfg.db_path)
    transport = FakeTransport()
    assert notify_cron.run(cfg, transport=transport) == 0
    assert len(transport.sent) == 2
    assert transport.sent[0].startswith("[URGENT]")
    assert _pending(cfg.db_path) == []
    assert _last_sweep(cfg.db_path) is not None


def test_between_sweeps_only_urgent(cfg):
    notify_cron.run(cfg, transport=FakeTransport())
    _seed(cfg.db_path)

    transport = FakeTransport()
    soon = datetime.now(timezone.utc) + timedelta(minutes=1)
    notify_cron.run(cfg, transport=transport, now=soon)
    assert len(transport.sent) == 1
    assert _pending(cfg.db_path) == ["forge"]

    later = datetime.now(timezone.utc) + timedelta(minutes=cfg.full_poll_minutes + 1)
    notify_cron.run(cfg, transport=transport, now=later)
    assert _pending(cfg.db_path) == []


def test_modes(cfg):
    _seed(cfg.db_path)
    transport = FakeTransport()
    notify_cron.run(cfg, mode="urgent", transport=transport)
    assert _pending(cfg.db_path) == ["forge"]
    assert _last_sweep(cfg.db_path) is None

    notify_cron.run(cfg, mode="all", transport=transport)
    assert _pending(cfg.db_path) == []


def test_backlog_over_batch_limit_finishes_next_run(cfg):
    conn = connect(cfg.db_path)
    try:
        for i in range(notify_cron.BATCH_LIMIT + 10):
            notify_agent(conn, "scout", f"note {i}")
    finally:
        conn.close()

    transport = FakeTransport()
    notify_cron.run(cfg, transport=transport)
    assert len(transport.sent) == notify_cron.BATCH_LIMIT
    assert _last_sweep(cfg.db_path) is None

    soon = datetime.now(timezone.utc) + timedelta(minutes=1)
    notify_cron.run(cfg, transport=transport, now=soon)
    assert _pending(cfg.db_path) == []
    assert _last_sweep(cfg.db_path) is not None


def test_failure_stays_pending(cfg):
    _seed(cfg.db_path)
    assert notify_cron.run(cfg, transport=FakeTransport(fail_all=True)) == 0
    assert sorted(_pending(cfg.db_path)) == ["forge", "pulse"]


def test_no_transport(cfg):
    assert notify_cron.run(cfg) == 1


def test_missing_store(tmp_path, capsys, monkeypatch):
    for key in ("HYDRA_DB", "HYDRA_TELEGRAM_TOKEN", "HYDRA_TELEGRAM_CHAT_ID"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HYDRA_TELEGRAM_TOKEN", "t")
    monkeypatch.setenv("HYDRA_TELEGRAM_CHAT_ID", "c")
    config = tmp_path / "config.json"
    config.write_text('{"verbose": false}')

    code = notify_cron.main(["--config", str(config), "--db", str(tmp_path / "none.db")])
    assert code == 1
    assert "hydra init" in capsys.readouterr().err


def test_due_for_full_sweep():
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    assert notify_cron.due_for_full_sweep(None, 30, now)
    assert notify_cron.due_for_full_sweep("garbage", 30, now)
    assert not notify_cron.due_for_full_sweep("2026-10-18T11:45:00+00:00", 30, now)
    assert notify_cron.due_for_full_sweep("2026-10-18T11:30:00+00:00", 30, now)
