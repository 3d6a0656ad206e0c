# src/taskflow/tasks/task_board.py

"""
Task board: the single observable state container the presentation layer uses.

It owns the TaskSync layer (and through it the TaskCache), keeps at most one live
subscription, and exposes the state the UI renders: tasks (newest first), loading, error.

Failures are reported as fixed, operation-scoped messages in `error`; the structured
exception is kept in `failure` for callers that want the kind.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from typing import Any

from ..core.ports import DocumentStore
from .task_cache import TaskCache
from .task_errors import AuthRequiredError, SubscriptionError, TaskError, TaskNotFoundError
from .task_models import NewTask, Task
from .task_sync import TaskSubscription, TaskSync
from .task_views import sort_newest_first

logger = logging.getLogger(__name__)

BoardListener = Callable[["TaskBoard"], None]

LOAD_ERROR = "Failed to load tasks"
ADD_ERROR = "Failed to add task"
UPDATE_ERROR = "Failed to update task"
DELETE_ERROR = "Failed to delete task"


class TaskBoard:
    def __init__(self, store: DocumentStore, *, sync: TaskSync | None = None) -> None:
        self.sync = sync if sync is not None else TaskSync(store, TaskCache())

        self.tasks: list[Task] = []
        self.loading = True
        self.error: str | None = None
        self.failure: Exception | None = None

        self.user_id: str | None = None
        self._subscription: TaskSubscription | None = None
        self._pump: asyncio.Task[None] | None = None
        self._listeners: list[BoardListener] = []

    # ---- observation ----

    @property
    def subscription(self) -> TaskSubscription | None:
        return self._subscription

    def subscribe(self, listener: BoardListener) -> Callable[[], None]:
        """Call listener(board) after every state change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes: Any) -> None:
        for name, value in changes.items():
            setattr(self, name, value)
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Board listener crashed.")

    def find(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    # ---- lifecycle ----

    def initialize_tasks(self, user_id: str) -> None:
        """
        (Re)open the live task stream for user_id.

        Any previous subscription is cancelled first, so there is never more than
        one live listener per board. Must be called with a running event loop.
        """
        if not user_id:
            raise AuthRequiredError()

        self._stop_subscription()
        self.user_id = user_id
        self._set(loading=True, error=None, failure=None)

        sub = self.sync.subscribe(user_id)
        self._subscription = sub
        self._pump = asyncio.get_running_loop().create_task(self._run_pump(sub))
        logger.info("Task board initialized user=%s", user_id)

    async def _run_pump(self, sub: TaskSubscription) -> None:
        try:
            async for tasks in sub:
                if sub is not self._subscription:
                    break
                self._set(tasks=sort_newest_first(tasks), loading=False, error=None)
        except SubscriptionError as exc:
            if sub is self._subscription:
                logger.error("Task stream failed user=%s: %s", sub.owner_id, exc)
                self._set(loading=False, error=LOAD_ERROR, failure=exc)

    def _stop_subscription(self) -> None:
        sub, self._subscription = self._subscription, None
        pump, self._pump = self._pump, None
        if sub is not None:
            sub.cancel()
        if pump is not None and not pump.done():
            pump.cancel()

    def cleanup(self) -> None:
        """
        Tear down on logout / view unmount. Idempotent.

        Clears only the cache bucket of the user this board was opened for.
        """
        self._stop_subscription()
        if self.user_id is not None:
            self.sync.clear_cache(self.user_id)
            logger.info("Task board cleaned up user=%s", self.user_id)
        self.user_id = None
        self._set(tasks=[])

    async def aclose(self) -> None:
        """cleanup() and wait for the pump task to finish."""
        pump = self._pump
        self.cleanup()
        if pump is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await pump

    # ---- mutations ----

    def _begin(self) -> None:
        self._set(loading=True, error=None, failure=None)

    def _fail(self, message: str, exc: Exception) -> None:
        self._set(loading=False, error=message, failure=exc)

    async def add_task(self, new_task: NewTask) -> str | None:
        self._begin()
        try:
            task_id = await self.sync.create(new_task)
        except (TaskError, ValueError) as exc:
            logger.warning("Error adding task: %s", exc)
            self._fail(ADD_ERROR, exc)
            return None
        self._set(loading=False)
        return task_id

    async def update_task(self, task_id: str, fields: Mapping[str, Any]) -> bool:
        self._begin()
        try:
            await self.sync.update(task_id, fields)
        except (TaskError, ValueError) as exc:
            logger.warning("Error updating task %s: %s", task_id, exc)
            self._fail(UPDATE_ERROR, exc)
            return False
        self._set(loading=False)
        return True

    async def delete_task(self, task_id: str) -> bool:
        self._begin()
        try:
            task = self.find(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            await self.sync.delete(task_id, task.user_id)
        except TaskError as exc:
            logger.warning("Error deleting task %s: %s", task_id, exc)
            self._fail(DELETE_ERROR, exc)
            return False
        self._set(loading=False)
        return True

    async def toggle_task_completion(self, task_id: str, completed: bool) -> bool:
        self._begin()
        try:
            task = self.find(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            await self.sync.toggle_completion(task_id, completed, task.user_id)
        except TaskError as exc:
            logger.warning("Error toggling task %s: %s", task_id, exc)
            self._fail(UPDATE_ERROR, exc)
            return False
        self._set(loading=False)
        return True
