# src/taskflow/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the document store, the task board and the session into AppState,
- signs the session in and out.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import DocumentStore
from ..core.state import AppState
from ..storage.memory import InMemoryDocumentStore
from ..storage.sqlite import SqliteDocumentStore
from ..tasks.task_board import TaskBoard

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_store(settings) -> DocumentStore:
    backend = str(getattr(settings, "backend", "sqlite"))
    if backend == "memory":
        logger.info("Using in-memory document store (tasks are lost on exit).")
        return InMemoryDocumentStore()
    return SqliteDocumentStore(
        settings.tasks_db_path,
        poll_interval_seconds=float(getattr(settings, "poll_interval_seconds", 2.0)),
    )


def create_initial_state(*, settings=None, store: DocumentStore | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the store) injectable makes the app easier to test and avoids
    hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if store is None:
        store = create_store(settings)

    return AppState(settings=settings, store=store, board=TaskBoard(store))


def sign_in(state: AppState, user_id: str) -> None:
    """Start a session: replaces any previous one and opens the live task stream."""
    user_id = user_id.strip()
    if state.user_id and state.user_id != user_id:
        sign_out(state)
    state.user_id = user_id
    state.last_listing = []
    state.board.initialize_tasks(user_id)
    logger.info("Signed in user=%s", user_id)


def sign_out(state: AppState) -> None:
    if state.user_id is None:
        state.board.cleanup()
        return
    logger.info("Signed out user=%s", state.user_id)
    state.board.cleanup()
    state.user_id = None
    state.last_listing = []


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.board.aclose()
    except Exception:
        logger.exception("Board close failed.")

    close = getattr(state.store, "close", None)
    if close is not None:
        try:
            await close()
        except Exception:
            logger.debug("Store close failed.", exc_info=True)
