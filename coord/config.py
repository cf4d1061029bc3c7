"""
Config — where things live and how to reach the phone.

One JSON file, ~/.hydra/config.json by default. Every key is optional.
Secrets can come from the environment instead of the file:
  HYDRA_DB                 — store path
  HYDRA_TELEGRAM_TOKEN     — bot token
  HYDRA_TELEGRAM_CHAT_ID   — chat to push to
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


HYDRA_HOME = Path("~/.hydra").expanduser()
DEFAULT_CONFIG_PATH = HYDRA_HOME / "config.json"


@dataclass
class HydraConfig:
    db_path: Path
    logs_base: Path
    standup_dir: Path
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None
    telegram_api_base: str = "https://api.telegram.org"
    request_timeout: float = 10.0
    activity_limit: int = 5
    urgent_poll_minutes: int = 5      # how often cron should run the worker
    full_poll_minutes: int = 30       # how often the worker sweeps everything
    verbose: bool = True


def load_config(path: Path | None = None) -> HydraConfig:
    """Load config from JSON. A missing default file just means defaults;
    a missing file that was asked for by name is an error."""
    raw: dict = {}
    if path is not None:
        if not path.is_file():
            raise RuntimeError(f"Config not found: {path}")
        raw = _read(path)
    elif DEFAULT_CONFIG_PATH.is_file():
        raw = _read(DEFAULT_CONFIG_PATH)

    def resolve(val: str | None, default: Path) -> Path:
        if not val:
            return default
        return Path(val).expanduser()

    db_override = os.environ.get("HYDRA_DB")

    return HydraConfig(
        db_path=resolve(db_override or raw.get("db_path"), HYDRA_HOME / "hydra.db"),
        logs_base=resolve(
            raw.get("logs_base"),
            Path("~/Library/Logs/claude-automation").expanduser(),
        ),
        standup_dir=resolve(raw.get("standup_dir"), HYDRA_HOME / "logs" / "standups"),
        telegram_bot_token=(
            os.environ.get("HYDRA_TELEGRAM_TOKEN") or raw.get("telegram_bot_token") or None
        ),
        telegram_chat_id=(
            os.environ.get("HYDRA_TELEGRAM_CHAT_ID") or raw.get("telegram_chat_id") or None
        ),
        telegram_api_base=str(
            raw.get("telegram_api_base", "https://api.telegram.org")
        ).rstrip("/"),
        request_timeout=float(raw.get("request_timeout", 10.0)),
        activity_limit=int(raw.get("activity_limit", 5)),
        urgent_poll_minutes=int(raw.get("urgent_poll_minutes", 5)),
        full_poll_minutes=int(raw.get("full_poll_minutes", 30)),
        verbose=bool(raw.get("verbose", True)),
    )


def _read(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise RuntimeError(f"Config must be a JSON object: {path}")
    return raw


def log(msg: str, verbose: bool = True) -> None:
    if verbose:
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        print(f"[{ts}] {msg}", flush=True)
