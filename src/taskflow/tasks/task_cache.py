# src/taskflow/tasks/task_cache.py

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from .task_models import Task

logger = logging.getLogger(__name__)


class TaskCache:
    """
    In-memory task buckets keyed by owner id.

    - A bucket exists only after something referenced that owner (subscribe delivery / add).
    - clear() removes buckets entirely; it never leaves empty ones behind.
    - Readers always get copies, so callers cannot mutate a bucket behind our back.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, list[Task]] = {}

    def __contains__(self, owner_id: object) -> bool:
        return owner_id in self._buckets

    def owners(self) -> list[str]:
        return list(self._buckets)

    def get(self, owner_id: str) -> list[Task] | None:
        bucket = self._buckets.get(owner_id)
        return None if bucket is None else list(bucket)

    def find(self, owner_id: str, task_id: str) -> Task | None:
        for task in self._buckets.get(owner_id, ()):
            if task.id == task_id:
                return task
        return None

    def replace(self, owner_id: str, tasks: Iterable[Task]) -> None:
        bucket = [t for t in tasks if t.user_id == owner_id]
        self._buckets[owner_id] = bucket

    def prepend(self, owner_id: str, task: Task) -> None:
        self._check_owner(owner_id, task)
        self._buckets[owner_id] = [task, *self._buckets.get(owner_id, [])]

    def append(self, owner_id: str, task: Task) -> bool:
        """Append to an existing bucket. Returns False if the bucket was cleared meanwhile."""
        self._check_owner(owner_id, task)
        bucket = self._buckets.get(owner_id)
        if bucket is None:
            return False
        bucket.append(task)
        return True

    def remove(self, owner_id: str, task_id: str) -> Task | None:
        bucket = self._buckets.get(owner_id)
        if bucket is None:
            return None
        for i, task in enumerate(bucket):
            if task.id == task_id:
                return bucket.pop(i)
        return None

    def patch(self, owner_id: str, task_id: str, changes: Mapping[str, Any]) -> Task | None:
        bucket = self._buckets.get(owner_id)
        if bucket is None:
            return None
        for i, task in enumerate(bucket):
            if task.id == task_id:
                bucket[i] = replace(task, **changes)
                return bucket[i]
        return None

    def overwrite(self, owner_id: str, task: Task) -> bool:
        """Swap in an authoritative copy of a cached entry (no-op if it is not cached)."""
        bucket = self._buckets.get(owner_id)
        if bucket is None:
            return False
        for i, cur in enumerate(bucket):
            if cur.id == task.id:
                bucket[i] = task
                return True
        return False

    def clear(self, owner_id: str | None = None) -> None:
        if owner_id is None:
            n = len(self._buckets)
            self._buckets.clear()
            logger.debug("Task cache cleared (all, buckets=%d)", n)
            return
        if self._buckets.pop(owner_id, None) is not None:
            logger.debug("Task cache cleared owner=%s", owner_id)

    @staticmethod
    def _check_owner(owner_id: str, task: Task) -> None:
        if task.user_id != owner_id:
            raise ValueError(f"task {task.id} belongs to {task.user_id!r}, not {owner_id!r}")
