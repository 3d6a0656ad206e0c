# src/taskflow/storage/memory.py

"""In-process document store (demo backend and test double)."""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass

from ..core.ports import (
    DocumentSnapshot,
    ErrorCallback,
    Record,
    SnapshotCallback,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Listener:
    owner_id: str
    on_change: SnapshotCallback
    on_error: ErrorCallback
    loop: asyncio.AbstractEventLoop


class InMemoryDocumentStore:
    """
    Dict-backed DocumentStore.

    Snapshots are pushed with loop.call_soon, i.e. after the writing coroutine yields,
    which is how a real push channel behaves. Each delivery reads the CURRENT result set,
    so several quick writes may collapse into fewer snapshots.
    """

    def __init__(self) -> None:
        self._docs: dict[str, Record] = {}
        self._listeners: dict[int, _Listener] = {}
        self._next_listener_id = 1

    # ---- DocumentStore ----

    async def get(self, doc_id: str) -> Record | None:
        doc = self._docs.get(doc_id)
        return None if doc is None else copy.deepcopy(doc)

    async def set(self, doc_id: str, data: Record, *, merge: bool = False) -> None:
        before = self._docs.get(doc_id)
        if merge and before is not None:
            doc = {**before, **copy.deepcopy(data)}
        else:
            doc = copy.deepcopy(data)
        self._docs[doc_id] = doc

        owners = {str(doc.get("user_id") or "")}
        if before is not None:
            owners.add(str(before.get("user_id") or ""))
        self._notify(owners)

    async def delete(self, doc_id: str) -> None:
        doc = self._docs.pop(doc_id, None)
        if doc is not None:
            self._notify({str(doc.get("user_id") or "")})

    def listen(
            self,
            owner_id: str,
            on_change: SnapshotCallback,
            on_error: ErrorCallback,
    ) -> Unsubscribe:
        key = self._next_listener_id
        self._next_listener_id += 1
        listener = _Listener(owner_id, on_change, on_error, asyncio.get_running_loop())
        self._listeners[key] = listener
        listener.loop.call_soon(self._deliver, key)
        logger.debug("Listener %s attached owner=%s", key, owner_id)

        def unsubscribe() -> None:
            if self._listeners.pop(key, None) is not None:
                logger.debug("Listener %s detached owner=%s", key, owner_id)

        return unsubscribe

    # ---- introspection / fault injection ----

    def listener_count(self, owner_id: str | None = None) -> int:
        if owner_id is None:
            return len(self._listeners)
        return sum(1 for lst in self._listeners.values() if lst.owner_id == owner_id)

    def query(self, owner_id: str) -> list[DocumentSnapshot]:
        return [
            DocumentSnapshot(id=doc_id, data=copy.deepcopy(doc))
            for doc_id, doc in self._docs.items()
            if doc.get("user_id") == owner_id
        ]

    def fail_listeners(self, owner_id: str, exc: BaseException) -> int:
        """Report a stream error to every listener of owner_id (e.g. lost connection)."""
        targets = [lst for lst in self._listeners.values() if lst.owner_id == owner_id]
        for lst in targets:
            lst.on_error(exc)
        return len(targets)

    # ---- internals ----

    def _notify(self, owners: set[str]) -> None:
        for key, lst in list(self._listeners.items()):
            if lst.owner_id in owners:
                lst.loop.call_soon(self._deliver, key)

    def _deliver(self, key: int) -> None:
        lst = self._listeners.get(key)
        if lst is None:
            return
        try:
            lst.on_change(self.query(lst.owner_id))
        except Exception:
            logger.exception("Snapshot listener %s crashed owner=%s", key, lst.owner_id)
