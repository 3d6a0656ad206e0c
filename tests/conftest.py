# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskflow.cli.bootstrap import create_initial_state
from taskflow.core.state import AppState
from taskflow.storage.memory import InMemoryDocumentStore
from taskflow.tasks.task_board import TaskBoard
from taskflow.tasks.task_cache import TaskCache
from taskflow.tasks.task_sync import TaskSync

from .fakes import FlakyDocumentStore, counter_ids, ticking_clock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap helpers.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="TaskFlow",
        log_level="INFO",
        backend="memory",
        poll_interval_seconds=0.05,
        user_id=None,
        data_dir=tmp_path,
        log_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
    )


@pytest.fixture()
def store() -> FlakyDocumentStore:
    return FlakyDocumentStore(InMemoryDocumentStore())


@pytest.fixture()
def sync(store: FlakyDocumentStore) -> TaskSync:
    """Sync layer with deterministic ids (t1, t2, ...) and a ticking clock."""
    return TaskSync(store, TaskCache(), id_factory=counter_ids(), clock=ticking_clock())


@pytest.fixture()
def board(store: FlakyDocumentStore, sync: TaskSync) -> TaskBoard:
    return TaskBoard(store, sync=sync)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired through the real composition root.

    NOTE: settings.backend="memory", so no SQLite file is involved here.
    """
    return create_initial_state(settings=settings)
