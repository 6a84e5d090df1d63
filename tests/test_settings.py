import logging
from datetime import timedelta

from taskdone.logging_setup import setup_logging
from taskdone.repositories import InMemoryRepository, get_repository
from taskdone.db import SQLiteRepository
from taskdone.service import TaskPolicy
from taskdone.settings import get_settings


def test_defaults(monkeypatch):
    for name in [
        "PERSISTENCE_BACKEND",
        "SQLITE_DB_PATH",
        "ACTIVE_WINDOW_HOURS",
        "RETENTION_DAYS",
        "COPY_SUFFIX",
        "CLEANUP_ON_STARTUP",
        "LOG_LEVEL",
        "LOG_FILE",
    ]:
        monkeypatch.delenv(name, raising=False)
    s = get_settings()
    assert s.persistence_backend == "memory"
    assert s.active_window == timedelta(hours=24)
    assert s.retention == timedelta(days=30)
    assert s.copy_suffix == "copy"
    assert s.cleanup_on_startup is True
    assert s.log_level == logging.INFO
    assert s.log_file is None


def test_env_overrides_and_fallbacks(monkeypatch):
    monkeypatch.setenv("PERSISTENCE_BACKEND", "postgres")  # unsupported -> memory
    monkeypatch.setenv("ACTIVE_WINDOW_HOURS", "48")
    monkeypatch.setenv("RETENTION_DAYS", "-3")  # invalid -> default
    monkeypatch.setenv("COPY_SUFFIX", "copia")
    monkeypatch.setenv("CLEANUP_ON_STARTUP", "off")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    s = get_settings()
    assert s.persistence_backend == "memory"
    assert s.active_window == timedelta(hours=48)
    assert s.retention == timedelta(days=30)
    assert s.cleanup_on_startup is False
    assert s.log_level == logging.DEBUG

    policy = TaskPolicy.from_settings(s)
    assert policy.active_window == timedelta(hours=48)
    assert policy.copy_suffix == "copia"


def test_repository_factory(monkeypatch, tmp_path):
    monkeypatch.setenv("PERSISTENCE_BACKEND", "memory")
    assert isinstance(get_repository(get_settings()), InMemoryRepository)

    db_path = tmp_path / "nested" / "taskdone.db"
    monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_DB_PATH", str(db_path))
    repo = get_repository(get_settings())
    assert isinstance(repo, SQLiteRepository)
    assert db_path.exists()


def test_sqlite_survives_restart(tmp_path):
    path = str(tmp_path / "taskdone.db")
    first = SQLiteRepository(path)
    cat = first.create_category("Work", "#FF0000", ["Write spec"])
    first.close()

    second = SQLiteRepository(path)
    assert second.list_visible_categories() == [cat]


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "taskdone.log"
    setup_logging(console_level=logging.WARNING, log_file=log_file)
    try:
        logging.getLogger("taskdone.test").debug("hello %s", "file")
        for h in logging.getLogger().handlers:
            h.flush()
        assert "hello file" in log_file.read_text(encoding="utf-8")
    finally:
        setup_logging(console_level=logging.WARNING)


def test_out_of_range_durations_fall_back(monkeypatch):
    for value in ["inf", "nan", "1e300", "-5", "soon"]:
        monkeypatch.setenv("ACTIVE_WINDOW_HOURS", value)
        monkeypatch.setenv("RETENTION_DAYS", value)
        s = get_settings()
        assert s.active_window == timedelta(hours=24), value
        assert s.retention == timedelta(days=30), value


def test_large_but_representable_retention_is_kept(monkeypatch):
    monkeypatch.setenv("RETENTION_DAYS", "1000000")
    assert get_settings().retention == timedelta(days=1_000_000)
