from __future__ import annotations

import os

DEFAULT_MAX_RANGE_DAYS = 90
DEFAULT_DATABASE_URL = "sqlite:///./dutysync.db"


def get_database_url() -> str:
    """``DATABASE_URL``, with bare Postgres schemes pointed at the psycopg driver."""
    raw_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg://", 1)
    if raw_url.startswith("postgresql://") and "+" not in raw_url.split("://", 1)[0]:
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


def get_max_range_days() -> int:
    raw = os.getenv("SCHEDULER_MAX_RANGE_DAYS", "")
    if not raw.strip():
        return DEFAULT_MAX_RANGE_DAYS
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"SCHEDULER_MAX_RANGE_DAYS must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError("SCHEDULER_MAX_RANGE_DAYS must be at least 1")
    return value


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_environment() -> str:
    return os.getenv("ENVIRONMENT", "local")
