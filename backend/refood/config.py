# backend/refood/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _database_uri() -> str:
    # DATABASE_URL wins; otherwise DB_PATH points at a SQLite file
    if os.environ.get("DATABASE_URL"):
        return os.environ["DATABASE_URL"]
    return f"sqlite:///{os.environ.get('DB_PATH', 'refood.sqlite3')}"


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Background jobs are off unless explicitly enabled (tests, CLI runs)
    SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED")

    # Actor id recorded on automatic status transitions; not a real Attori row
    SYSTEM_ACTOR_ID = int(os.environ.get("SYSTEM_ACTOR_ID", "0"))

    ARCHIVE_RETENTION_DAYS = int(os.environ.get("ARCHIVE_RETENTION_DAYS", "30"))
