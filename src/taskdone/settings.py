from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/taskdone.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - ACTIVE_WINDOW_HOURS: age after which an open task counts as overdue (default 24)
    - RETENTION_DAYS: age after which completed tasks are swept (default 30)
    - COPY_SUFFIX: marker appended to duplicated category names (default 'copy')
    - CLEANUP_ON_STARTUP: 'true' (default) to run the retention sweep on app start
    - LOG_LEVEL: console log level name (default 'INFO')
    - LOG_FILE: optional path of a debug log file
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    active_window: timedelta
    retention: timedelta
    copy_suffix: str
    cleanup_on_startup: bool
    log_level: int
    log_file: Optional[str]


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_positive_float(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if math.isfinite(parsed) and parsed > 0 else default


def _parse_duration(value: str, unit: str, default: float) -> timedelta:
    """
    Parse a positive number of `unit` (e.g. "hours", "days") into a timedelta.
    Non-numeric, non-positive, non-finite or out-of-range values yield the default.
    """
    amount = _parse_positive_float(value, default)
    try:
        return timedelta(**{unit: amount})
    except OverflowError:
        return timedelta(**{unit: default})


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_log_level(value: str) -> int:
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else logging.INFO


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/taskdone.db").strip()
    origins = _parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*"))

    active_window = _parse_duration(_get_env("ACTIVE_WINDOW_HOURS", "24"), "hours", 24.0)
    retention = _parse_duration(_get_env("RETENTION_DAYS", "30"), "days", 30.0)
    copy_suffix = _get_env("COPY_SUFFIX", "copy").strip() or "copy"

    log_file = os.getenv("LOG_FILE") or None

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        active_window=active_window,
        retention=retention,
        copy_suffix=copy_suffix,
        cleanup_on_startup=_parse_bool(_get_env("CLEANUP_ON_STARTUP", "true"), True),
        log_level=_parse_log_level(_get_env("LOG_LEVEL", "INFO")),
        log_file=log_file,
    )
