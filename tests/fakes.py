# tests/fakes.py

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from taskflow.core.ports import ErrorCallback, Record, SnapshotCallback, Unsubscribe
from taskflow.storage.memory import InMemoryDocumentStore


class FlakyDocumentStore:
    """
    DocumentStore wrapper with switchable failures.

    - Records every backend call as (method, id/owner) for assertions
    - fail_get / fail_set / fail_delete make the matching calls raise ConnectionError
    - fail_get_from=N makes the N-th and later get() calls fail (1-based)
    """

    def __init__(self, inner: InMemoryDocumentStore | None = None) -> None:
        self.inner = inner or InMemoryDocumentStore()
        self.calls: list[tuple[str, str]] = []
        self.fail_get = False
        self.fail_get_from: int | None = None
        self.fail_set = False
        self.fail_delete = False
        self._get_count = 0

    async def get(self, doc_id: str) -> Record | None:
        self.calls.append(("get", doc_id))
        self._get_count += 1
        if self.fail_get or (self.fail_get_from is not None and self._get_count >= self.fail_get_from):
            raise ConnectionError("backend unreachable")
        return await self.inner.get(doc_id)

    async def set(self, doc_id: str, data: Record, *, merge: bool = False) -> None:
        self.calls.append(("set", doc_id))
        if self.fail_set:
            raise ConnectionError("backend unreachable")
        await self.inner.set(doc_id, data, merge=merge)

    async def delete(self, doc_id: str) -> None:
        self.calls.append(("delete", doc_id))
        if self.fail_delete:
            raise ConnectionError("backend unreachable")
        await self.inner.delete(doc_id)

    def listen(self, owner_id: str, on_change: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        self.calls.append(("listen", owner_id))
        return self.inner.listen(owner_id, on_change, on_error)

    def backend_calls(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("get", "set", "delete")]

    def writes(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("set", "delete")]


def counter_ids(prefix: str = "t") -> Callable[[], str]:
    """Deterministic id factory: t1, t2, ..."""
    n = 0

    def make() -> str:
        nonlocal n
        n += 1
        return f"{prefix}{n}"

    return make


def ticking_clock(start: datetime | None = None, step: timedelta = timedelta(minutes=1)) -> Callable[[], datetime]:
    """Clock that advances by `step` on every call, so created_at values are distinct."""
    current = start or datetime(2024, 1, 1, 9, 0, tzinfo=UTC)

    def now() -> datetime:
        nonlocal current
        current = current + step
        return current

    return now


async def settle(rounds: int = 5) -> None:
    """Let call_soon deliveries and freshly created tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
