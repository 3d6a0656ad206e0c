# src/taskflow/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_board import TaskBoard
from ..tasks.task_views import SortKey, TaskFilter
from .ports import DocumentStore


@dataclass
class AppState:
    # Settings object (taskflow.config.Settings or a test SimpleNamespace).
    settings: Any

    store: DocumentStore
    board: TaskBoard

    # Opaque id from the identity provider; None means signed out.
    user_id: str | None = None

    # Console view preferences (/list remembers the last choice).
    task_filter: TaskFilter = TaskFilter.ALL
    sort_by: SortKey = SortKey.DUE_DATE

    # Short task-id prefixes shown by the last /list, in display order.
    last_listing: list[str] = field(default_factory=list)
