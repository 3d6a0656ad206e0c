# src/taskflow/core/ports.py

"""
Ports (interfaces) used by the core.

The task sync layer depends on a DocumentStore Protocol instead of a concrete backend.
This keeps storage swappable (in-memory / SQLite / a hosted document DB) and makes
testing easier.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

Record = dict[str, Any]
# Flat backend record, e.g. {"user_id": "...", "title": "...", "due_date": 1704844800.0, ...}


@dataclass(frozen=True, slots=True)
class DocumentSnapshot:
    id: str
    data: Record


SnapshotCallback = Callable[[list[DocumentSnapshot]], None]
ErrorCallback = Callable[[BaseException], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """
    Query-and-subscribe document store keyed by document id.

    listen() delivers the FULL current result set for the owner (not a diff):
    once right after attaching and again after every change.
    Callbacks are invoked on the event loop thread.
    """

    async def get(self, doc_id: str) -> Record | None: ...

    async def set(self, doc_id: str, data: Record, *, merge: bool = False) -> None: ...

    async def delete(self, doc_id: str) -> None: ...

    def listen(
            self,
            owner_id: str,
            on_change: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> Unsubscribe: ...
