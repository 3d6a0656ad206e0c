# src/taskflow/tasks/task_sync.py

"""
Task cache & sync layer.

Keeps a per-owner in-memory view of tasks that is updated:
- optimistically (right away, before the backend confirms a write),
- authoritatively (every live snapshot replaces the owner's whole bucket).

Failed writes are rolled back (create/delete) or repaired by a re-fetch (update).
Any transient inconsistency is corrected by the next snapshot from the backend.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from ..core.ports import DocumentSnapshot, DocumentStore, Record, Unsubscribe
from .optimistic import run_optimistic
from .task_cache import TaskCache
from .task_errors import AuthRequiredError, SubscriptionError, TaskNotFoundError, TaskWriteError
from .task_models import NewTask, Task
from .task_records import (
    as_utc,
    changes_to_record,
    normalize_changes,
    record_to_task,
    task_to_record,
)

logger = logging.getLogger(__name__)

_END = object()


def new_task_id() -> str:
    # 128 random bits: ids are assigned before the backend ever sees the task.
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TaskSubscription:
    """
    Cancellable async stream of task-list snapshots for one owner.

        sub = sync.subscribe("u1")
        async for tasks in sub:
            ...
        sub.cancel()

    cancel() is idempotent: it stops further emissions and releases the backend listener.
    It does not abort backend calls that are already in flight.
    """

    def __init__(self, owner_id: str) -> None:
        self.owner_id = owner_id
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._unsubscribe: Unsubscribe | None = None
        self._live = True
        self._cancelled = False

    @property
    def live(self) -> bool:
        """True while snapshots from the backend are still accepted."""
        return self._live

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._release()
        # Wake a consumer blocked in __anext__.
        self._queue.put_nowait(_END)

    def _attach(self, unsubscribe: Unsubscribe) -> None:
        if self._live:
            self._unsubscribe = unsubscribe
        else:
            unsubscribe()

    def _release(self) -> None:
        self._live = False
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def _emit(self, tasks: list[Task]) -> None:
        if self._live:
            self._queue.put_nowait(tasks)

    def _fail(self, exc: SubscriptionError) -> None:
        if not self._live:
            return
        self._release()
        self._queue.put_nowait(exc)

    def __aiter__(self) -> TaskSubscription:
        return self

    async def __anext__(self) -> list[Task]:
        if self._cancelled:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END or self._cancelled:
            raise StopAsyncIteration
        if isinstance(item, SubscriptionError):
            self._cancelled = True
            raise item
        return item


class TaskSync:
    def __init__(
            self,
            store: DocumentStore,
            cache: TaskCache | None = None,
            *,
            id_factory: Callable[[], str] = new_task_id,
            clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self.cache = cache if cache is not None else TaskCache()
        self._id_factory = id_factory
        self._clock = clock

    # ---- reads ----

    def subscribe(self, owner_id: str) -> TaskSubscription:
        """
        Live snapshots of owner_id's tasks.

        - A cached bucket (if any) is emitted first, then the backend's snapshots.
        - Each snapshot replaces the whole bucket.
        - Stream errors fall back to the cached bucket; with nothing cached the
          consumer gets SubscriptionError and the stream ends.
        """
        sub = TaskSubscription(owner_id)
        if not owner_id:
            sub.cancel()
            return sub

        cached = self.cache.get(owner_id)
        if cached is not None:
            sub._emit(cached)

        def on_change(docs: list[DocumentSnapshot]) -> None:
            if not sub.live:
                return
            self.cache.replace(owner_id, self._decode(docs))
            sub._emit(self.cache.get(owner_id) or [])

        def on_error(exc: BaseException) -> None:
            if not sub.live:
                return
            fallback = self.cache.get(owner_id)
            if fallback is not None:
                logger.warning(
                    "Task stream error owner=%s (%s); serving %d cached tasks",
                    owner_id,
                    exc,
                    len(fallback),
                )
                sub._emit(fallback)
                return
            logger.error("Task stream error owner=%s with no cached data: %s", owner_id, exc)
            err = SubscriptionError(f"task stream failed for {owner_id}")
            err.__cause__ = exc
            sub._fail(err)

        sub._attach(self._store.listen(owner_id, on_change, on_error))
        logger.debug("Subscribed owner=%s cached=%s", owner_id, cached is not None)
        return sub

    @staticmethod
    def _decode(docs: list[DocumentSnapshot]) -> list[Task]:
        return [record_to_task(d.id, d.data) for d in docs]

    async def _lookup(self, task_id: str) -> Record:
        try:
            record = await self._store.get(task_id)
        except Exception as exc:
            raise TaskWriteError(f"lookup failed for task {task_id}") from exc
        if record is None:
            raise TaskNotFoundError(task_id)
        return record

    # ---- writes ----

    async def create(self, new_task: NewTask) -> str:
        owner_id = new_task.user_id
        if not owner_id:
            raise AuthRequiredError()
        title = (new_task.title or "").strip()
        if not title:
            raise ValueError("title is required")

        task = Task(
            id=self._id_factory(),
            user_id=owner_id,
            title=title,
            description=new_task.description or "",
            due_date=as_utc(new_task.due_date),
            priority=new_task.priority,
            completed=False,
            created_at=as_utc(self._clock()),
        )
        record = task_to_record(task)

        async def remote() -> str:
            await self._store.set(task.id, record)
            return task.id

        task_id = await run_optimistic(
            action="create",
            task_id=task.id,
            apply=lambda: self.cache.prepend(owner_id, task),
            remote=remote,
            rollback=lambda: self.cache.remove(owner_id, task.id),
        )
        logger.info("Task created id=%s owner=%s", task_id, owner_id)
        return task_id

    async def update(self, task_id: str, fields: Mapping[str, Any]) -> None:
        changes = normalize_changes(fields)
        record = await self._lookup(task_id)
        # Owner comes from the backend record, not from the cache.
        owner_id = str(record.get("user_id") or "")
        if not changes:
            return

        async def refetch() -> None:
            fresh = await self._store.get(task_id)
            if fresh is not None:
                self.cache.overwrite(owner_id, record_to_task(task_id, fresh))

        await run_optimistic(
            action="update",
            task_id=task_id,
            apply=lambda: self.cache.patch(owner_id, task_id, changes),
            remote=lambda: self._store.set(task_id, changes_to_record(changes), merge=True),
            rollback=refetch,
        )
        logger.info("Task updated id=%s fields=%s", task_id, sorted(changes))

    async def delete(self, task_id: str, owner_id: str) -> None:
        if not owner_id:
            raise AuthRequiredError()

        removed: Task | None = None

        def apply() -> None:
            nonlocal removed
            removed = self.cache.remove(owner_id, task_id)

        def rollback() -> None:
            # Back at the end, not at the original index.
            if removed is not None:
                self.cache.append(owner_id, removed)

        await run_optimistic(
            action="delete",
            task_id=task_id,
            apply=apply,
            remote=lambda: self._store.delete(task_id),
            rollback=rollback,
        )
        logger.info("Task deleted id=%s owner=%s", task_id, owner_id)

    async def toggle_completion(self, task_id: str, completed: bool, owner_id: str) -> None:
        if not owner_id:
            raise AuthRequiredError()
        await self.update(task_id, {"completed": bool(completed)})

    def clear_cache(self, owner_id: str | None = None) -> None:
        self.cache.clear(owner_id)
