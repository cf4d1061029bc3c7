"""Test helpers that aren't fixtures."""

from pathlib import Path

from notify.telegram import DeliveryError


class FakeTransport:
    """Records what would have been pushed. Fails on demand."""

    def __init__(self, fail_on: set[int] | None = None, fail_all: bool = False):
        self.sent: list[str] = []
        self.calls = 0
        self.fail_on = fail_on or set()
        self.fail_all = fail_all

    def send(self, text: str) -> None:
        self.calls += 1
        if self.fail_all or self.calls in self.fail_on:
            raise DeliveryError("simulated outage")
        self.sent.append(text)


def write_report(logs_base: Path, directory: str, name: str, text: str) -> Path:
    path = logs_base / directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
