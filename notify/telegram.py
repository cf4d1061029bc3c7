"""
Telegram — pushing text to the phone.

A thin client for the bot API's sendMessage. It knows nothing about
notifications or standups; it takes text and either gets it through or
raises DeliveryError. Every request has a timeout, so a hung API can't
hold a cron run hostage.
"""

from __future__ import annotations

import requests

from coord.config import HydraConfig


# sendMessage rejects anything longer
MAX_MESSAGE_CHARS = 4096


class DeliveryError(RuntimeError):
    """The transport couldn't confirm delivery."""


class TelegramTransport:
    """HTTP client for the Telegram bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "hydra-notify/1.0"})

    def _url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.bot_token}/{method}"

    def send(self, text: str) -> None:
        if len(text) > MAX_MESSAGE_CHARS:
            text = text[:MAX_MESSAGE_CHARS - 3] + "..."

        try:
            r = self.session.post(
                self._url("sendMessage"),
                json={
                    "chat_id": self.chat_id,
                    "text": text,
                    "disable_web_page_preview": True,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DeliveryError(f"sendMessage failed: {e}") from e

        try:
            body = r.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if r.status_code != 200 or not body.get("ok"):
            description = body.get("description") or r.text[:200]
            raise DeliveryError(f"sendMessage rejected ({r.status_code}): {description}")


def transport_from_config(cfg: HydraConfig) -> TelegramTransport | None:
    """A transport if the config has credentials, else None."""
    if not cfg.telegram_bot_token or not cfg.telegram_chat_id:
        return None
    return TelegramTransport(
        bot_token=cfg.telegram_bot_token,
        chat_id=cfg.telegram_chat_id,
        api_base=cfg.telegram_api_base,
        timeout=cfg.request_timeout,
    )
