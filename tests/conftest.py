"""Shared fixtures: a fresh, migrated store with the default roster."""

from pathlib import Path

import pytest

from coord.config import HydraConfig
from coord.roster import provision
from coord.schema import connect, migrate
from helpers import FakeTransport


@pytest.fixture
def db_path(tmp_path) -> Path:
    path = tmp_path / "hydra.db"
    migrate(path)
    conn = connect(path)
    try:
        provision(conn)
    finally:
        conn.close()
    return path


@pytest.fixture
def conn(db_path):
    c = connect(db_path)
    yield c
    c.close()


@pytest.fixture
def logs_base(tmp_path) -> Path:
    path = tmp_path / "logs"
    path.mkdir()
    return path


@pytest.fixture
def cfg(tmp_path, db_path, logs_base) -> HydraConfig:
    return HydraConfig(
        db_path=db_path,
        logs_base=logs_base,
        standup_dir=tmp_path / "standups",
        verbose=False,
    )


@pytest.fixture
def transport():
    return FakeTransport()
