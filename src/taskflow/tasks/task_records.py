# src/taskflow/tasks/task_records.py

"""
Conversion between Task values and backend records.

Records are flat dicts; datetimes are stored as float epoch seconds (UTC).
Reading is lenient (like a DB row mapper): missing values fall back to defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from ..core.ports import Record
from .task_models import MUTABLE_FIELDS, Priority, Task


def as_utc(value: datetime) -> datetime:
    # Naive datetimes are taken as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def to_timestamp(value: datetime) -> float:
    return as_utc(value).timestamp()


def from_timestamp(raw: object) -> datetime:
    try:
        ts = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        ts = 0.0
    return datetime.fromtimestamp(ts, tz=UTC)


def task_to_record(task: Task) -> Record:
    return {
        "user_id": task.user_id,
        "title": task.title,
        "description": task.description,
        "due_date": to_timestamp(task.due_date),
        "priority": task.priority.value,
        "completed": bool(task.completed),
        "created_at": to_timestamp(task.created_at),
    }


def record_to_task(task_id: str, data: Mapping[str, Any]) -> Task:
    return Task(
        id=str(task_id),
        user_id=str(data.get("user_id") or ""),
        title=str(data.get("title") or ""),
        description=str(data.get("description") or ""),
        due_date=from_timestamp(data.get("due_date")),
        priority=Priority.from_record(data.get("priority")),
        completed=bool(data.get("completed")),
        created_at=from_timestamp(data.get("created_at")),
    )


def normalize_changes(fields: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate a partial update and coerce values to Task attribute types.

    Raises ValueError for immutable/unknown fields or invalid values.
    """
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"fields cannot be updated: {', '.join(sorted(unknown))}")

    out: dict[str, Any] = {}
    for name, value in fields.items():
        if name == "title":
            title = str(value or "").strip()
            if not title:
                raise ValueError("title is required")
            out[name] = title
        elif name == "description":
            out[name] = str(value or "")
        elif name == "due_date":
            if not isinstance(value, datetime):
                raise ValueError("due_date must be a datetime")
            out[name] = as_utc(value)
        elif name == "priority":
            out[name] = Priority(value)
        elif name == "completed":
            out[name] = bool(value)
    return out


def changes_to_record(changes: Mapping[str, Any]) -> Record:
    """Backend form of normalized changes (for merge writes)."""
    out: Record = {}
    for name, value in changes.items():
        if name == "due_date":
            out[name] = to_timestamp(value)
        elif name == "priority":
            out[name] = Priority(value).value
        else:
            out[name] = value
    return out
