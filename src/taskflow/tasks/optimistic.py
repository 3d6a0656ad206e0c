# src/taskflow/tasks/optimistic.py

"""
Optimistic write protocol shared by every cache mutation.

Three phases:
1) apply the local delta right away (the UI sees it immediately),
2) await the remote call,
3) on failure run the precomputed inverse, then re-raise as TaskWriteError.

The inverse is best-effort: if it fails too, that is logged and the ORIGINAL
failure is what the caller sees.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .task_errors import TaskWriteError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_optimistic(
        *,
        action: str,
        task_id: str,
        apply: Callable[[], Any],
        remote: Callable[[], Awaitable[T]],
        rollback: Callable[[], Any],
) -> T:
    apply()
    try:
        return await remote()
    except Exception as exc:
        logger.warning("%s failed task_id=%s (%s); rolling back", action, task_id, exc)
        try:
            result = rollback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Rollback after failed %s failed task_id=%s", action, task_id)
        raise TaskWriteError(f"{action} failed for task {task_id}") from exc
