from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from taskdone.db import SQLiteRepository
from taskdone.main import create_app
from taskdone.repositories import InMemoryRepository, Repository
from taskdone.service import TaskPolicy, TaskService
from taskdone.settings import get_settings


class FakeClock:
    """Deterministic time source; advance() moves it forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta

    def set(self, moment: datetime) -> None:
        self.now = moment


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 10, 9, 30, 0))


@pytest.fixture(params=["memory", "sqlite"])
def repo(request: pytest.FixtureRequest, tmp_path: Path, clock: FakeClock) -> Iterator[Repository]:
    """Both backends, so every repository test runs against each of them."""
    if request.param == "sqlite":
        r: Repository = SQLiteRepository(str(tmp_path / "taskdone.db"), clock=clock)
    else:
        r = InMemoryRepository(clock=clock)
    yield r
    r.close()


@pytest.fixture()
def service(repo: Repository, clock: FakeClock) -> TaskService:
    policy = TaskPolicy(active_window=timedelta(days=1), retention=timedelta(days=30), copy_suffix="copy")
    return TaskService(repo, policy=policy, clock=clock)


@pytest.fixture()
def app_settings(monkeypatch: pytest.MonkeyPatch):
    # Memory backend keeps API tests free of filesystem state.
    monkeypatch.setenv("PERSISTENCE_BACKEND", "memory")
    monkeypatch.setenv("CLEANUP_ON_STARTUP", "true")
    return replace(get_settings(), active_window=timedelta(days=1), retention=timedelta(days=30))


@pytest.fixture()
def client(app_settings, clock: FakeClock) -> Iterator[TestClient]:
    app = create_app(settings=app_settings, clock=clock)
    with TestClient(app) as c:
        yield c
