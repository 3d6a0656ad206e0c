# src/taskflow/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing is required at import time; every value has a default.
- Bad values fall back to defaults instead of crashing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKFLOW"

BACKENDS = ("memory", "sqlite")

# Real environment always wins over .env.
load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Backend ----
    backend: str
    poll_interval_seconds: float

    # ---- Session ----
    user_id: str | None

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    log_dir: Path
    tasks_db_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "TaskFlow").strip() or "TaskFlow"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        backend = _env_choice(_k("BACKEND"), BACKENDS, "sqlite")
        poll_interval_seconds = max(0.05, _env_float(_k("POLL_INTERVAL_SECONDS"), 2.0))

        user_id = _env(_k("USER_ID")).strip() or None

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskflow"))
        log_dir = _env_path(_k("LOG_DIR"), data_dir)
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            backend=backend,
            poll_interval_seconds=poll_interval_seconds,
            user_id=user_id,
            data_dir=data_dir,
            log_dir=log_dir,
            tasks_db_path=tasks_db_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
