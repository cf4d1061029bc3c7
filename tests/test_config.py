import json

import pytest

from coord import config
from coord.config import load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ("HYDRA_DB", "HYDRA_TELEGRAM_TOKEN", "HYDRA_TELEGRAM_CHAT_ID"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "DEFAULT_CONFIG_PATH", tmp_path / "absent.json")


def test_defaults():
    cfg = load_config()
    assert cfg.db_path.name == "hydra.db"
    assert cfg.logs_base.name == "claude-automation"
    assert cfg.telegram_bot_token is None
    assert cfg.full_poll_minutes == 30


def test_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "db_path": str(tmp_path / "x.db"),
        "telegram_bot_token": "abc",
        "telegram_chat_id": "123",
        "activity_limit": 8,
        "verbose": False,
    }))
    cfg = load_config(path)
    assert cfg.db_path == tmp_path / "x.db"
    assert cfg.telegram_bot_token == "abc"
    assert cfg.activity_limit == 8
    assert cfg.verbose is False


def test_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"telegram_bot_token": "from-file"}))
    monkeypatch.setenv("HYDRA_TELEGRAM_TOKEN", "from-env")
    monkeypatch.setenv("HYDRA_DB", str(tmp_path / "env.db"))
    cfg = load_config(path)
    assert cfg.telegram_bot_token == "from-env"
    assert cfg.db_path == tmp_path / "env.db"


def test_named_file_missing(tmp_path):
    with pytest.raises(RuntimeError):
        load_config(tmp_path / "missing.json")


def test_not_an_object(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2]")
    with pytest.raises(RuntimeError):
        load_config(path)


def test_log(capsys):
    config.log("hello")
    config.log("quiet", verbose=False)
    out = capsys.readouterr().out
    assert out.startswith("[") and out.rstrip().endswith("hello")
    assert "quiet" not in out
