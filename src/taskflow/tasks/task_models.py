# src/taskflow/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def from_record(cls, raw: object) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.MEDIUM


_PRIORITY_RANK = {Priority.LOW: 1, Priority.MEDIUM: 2, Priority.HIGH: 3}

# Fields a partial update may touch. id, user_id and created_at never change.
MUTABLE_FIELDS = frozenset({"title", "description", "due_date", "priority", "completed"})


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    user_id: str
    title: str
    description: str
    due_date: datetime
    priority: Priority
    completed: bool
    created_at: datetime


@dataclass(frozen=True, slots=True)
class NewTask:
    """Creation input: the client assigns id, created_at and completed."""

    user_id: str
    title: str
    due_date: datetime
    description: str = ""
    priority: Priority = Priority.MEDIUM
