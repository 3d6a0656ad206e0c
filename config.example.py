# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Put local values in `.env` (gitignored); the real environment always wins over it.

This file exists to make the repo self-documenting without opening src/taskflow/config.py.
"""

ENV_VARS = {
    # App / logging
    "TASKFLOW_APP_NAME": "App display name (default: TaskFlow).",
    "TASKFLOW_LOG_LEVEL": "Console logging level (default: INFO).",
    # Backend
    "TASKFLOW_BACKEND": "Document store: sqlite or memory (default: sqlite).",
    "TASKFLOW_POLL_INTERVAL_SECONDS": "SQLite live-query poll interval, min 0.05 (default: 2.0).",
    # Session
    "TASKFLOW_USER_ID": "Sign in as this user at startup (default: signed out).",
    # Paths (gitignored)
    "TASKFLOW_DATA_DIR": "Local data directory (default: .local/taskflow).",
    "TASKFLOW_LOG_DIR": "Log file directory (default: <data_dir>).",
    "TASKFLOW_TASKS_DB_PATH": "Task database path (default: <data_dir>/tasks.sqlite3).",
}
