# src/taskflow/tasks/task_views.py

"""Presentation-level derived views: filtering, sorting, stats and new-task form rules."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from .task_models import Task


class TaskFilter(StrEnum):
    ALL = "all"
    COMPLETED = "completed"
    PENDING = "pending"


class SortKey(StrEnum):
    DUE_DATE = "date"
    PRIORITY = "priority"


@dataclass(frozen=True, slots=True)
class TaskStats:
    total: int
    completed: int
    pending: int


def sort_newest_first(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: t.created_at, reverse=True)


def filter_tasks(tasks: Iterable[Task], task_filter: TaskFilter = TaskFilter.ALL) -> list[Task]:
    if task_filter == TaskFilter.COMPLETED:
        return [t for t in tasks if t.completed]
    if task_filter == TaskFilter.PENDING:
        return [t for t in tasks if not t.completed]
    return list(tasks)


def sort_tasks(tasks: Iterable[Task], sort_by: SortKey = SortKey.DUE_DATE) -> list[Task]:
    """Due date ascending, or priority high -> low. Both sorts are stable."""
    if sort_by == SortKey.PRIORITY:
        return sorted(tasks, key=lambda t: t.priority.rank, reverse=True)
    return sorted(tasks, key=lambda t: t.due_date)


def visible_tasks(
        tasks: Iterable[Task],
        task_filter: TaskFilter = TaskFilter.ALL,
        sort_by: SortKey = SortKey.DUE_DATE,
) -> list[Task]:
    return sort_tasks(filter_tasks(tasks, task_filter), sort_by)


def task_stats(tasks: Iterable[Task]) -> TaskStats:
    total = completed = 0
    for t in tasks:
        total += 1
        if t.completed:
            completed += 1
    return TaskStats(total=total, completed=completed, pending=total - completed)


def validate_task_form(
        title: str | None,
        due_date: datetime | None,
        now: datetime | None = None,
) -> dict[str, str]:
    """
    New-task form rules. Returns {field: message}; empty dict means valid.

    "In the past" is judged by calendar day, so a task due today is fine.
    """
    errors: dict[str, str] = {}
    if not (title or "").strip():
        errors["title"] = "Title is required"

    if due_date is None:
        errors["due_date"] = "Due date is required"
    else:
        now = now or datetime.now(UTC)
        due = due_date if due_date.tzinfo else due_date.replace(tzinfo=UTC)
        if due.astimezone(now.tzinfo or UTC).date() < now.date():
            errors["due_date"] = "Due date cannot be in the past"
    return errors
