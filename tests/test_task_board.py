# tests/test_task_board.py

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from taskflow.tasks.task_board import ADD_ERROR, DELETE_ERROR, LOAD_ERROR, UPDATE_ERROR
from taskflow.tasks.task_errors import AuthRequiredError, TaskNotFoundError, TaskWriteError
from taskflow.tasks.task_models import NewTask, Priority, Task
from taskflow.tasks.task_records import task_to_record

from .fakes import settle, wait_until

DUE = datetime(2030, 1, 10, tzinfo=UTC)


def _task(task_id: str, created: datetime, owner: str = "u1") -> Task:
    return Task(
        id=task_id,
        user_id=owner,
        title=task_id.upper(),
        description="",
        due_date=DUE,
        priority=Priority.MEDIUM,
        completed=False,
        created_at=created,
    )


@pytest.mark.asyncio
async def test_board_shows_newest_created_first(board, store) -> None:
    t1 = _task("t1", datetime(2024, 1, 1, 10, 0, tzinfo=UTC))
    t2 = _task("t2", datetime(2024, 1, 1, 11, 0, tzinfo=UTC))
    await store.inner.set(t1.id, task_to_record(t1))
    await store.inner.set(t2.id, task_to_record(t2))

    assert board.loading is True
    board.initialize_tasks("u1")
    await wait_until(lambda: not board.loading)

    assert board.tasks == [t2, t1]
    assert board.error is None
    await board.aclose()


@pytest.mark.asyncio
async def test_initialize_requires_user(board) -> None:
    with pytest.raises(AuthRequiredError):
        board.initialize_tasks("")


@pytest.mark.asyncio
async def test_reinitialize_keeps_single_live_listener(board, store) -> None:
    board.initialize_tasks("u1")
    first = board.subscription
    board.initialize_tasks("u1")
    second = board.subscription
    await settle()

    assert first is not second
    assert first.cancelled and not first.live
    assert second.live
    assert store.inner.listener_count() == 1
    await board.aclose()


@pytest.mark.asyncio
async def test_switching_users_replaces_subscription(board, store) -> None:
    board.initialize_tasks("u1")
    board.initialize_tasks("u2")
    await wait_until(lambda: not board.loading)

    assert store.inner.listener_count("u1") == 0
    assert store.inner.listener_count("u2") == 1
    assert board.user_id == "u2"
    await board.aclose()


@pytest.mark.asyncio
async def test_cleanup_is_idempotent(board, store) -> None:
    board.initialize_tasks("u1")
    await board.add_task(NewTask(user_id="u1", title="a", due_date=DUE))
    await wait_until(lambda: len(board.tasks) == 1)

    board.cleanup()
    once = (list(board.tasks), board.subscription, board.user_id, board.sync.cache.owners())
    board.cleanup()
    twice = (list(board.tasks), board.subscription, board.user_id, board.sync.cache.owners())

    assert once == twice == ([], None, None, [])
    assert store.inner.listener_count() == 0


@pytest.mark.asyncio
async def test_cleanup_only_clears_own_bucket(board, sync) -> None:
    await sync.create(NewTask(user_id="other", title="theirs", due_date=DUE))
    board.initialize_tasks("u1")
    await wait_until(lambda: not board.loading)

    await board.aclose()
    assert sync.cache.owners() == ["other"]


@pytest.mark.asyncio
async def test_add_task_round_trip_through_snapshot(board) -> None:
    board.initialize_tasks("u1")
    await wait_until(lambda: not board.loading)

    task_id = await board.add_task(NewTask(user_id="u1", title="Write report", due_date=DUE))
    assert task_id is not None
    assert board.loading is False
    await wait_until(lambda: board.find(task_id) is not None)

    assert board.find(task_id).title == "Write report"
    await board.aclose()


@pytest.mark.asyncio
async def test_add_task_failure_sets_error_and_keeps_list(board, store) -> None:
    board.initialize_tasks("u1")
    await wait_until(lambda: not board.loading)

    store.fail_set = True
    result = await board.add_task(
        NewTask(user_id="u1", title="Buy milk", due_date=DUE, priority=Priority.LOW)
    )

    assert result is None
    assert board.error == ADD_ERROR
    assert isinstance(board.failure, TaskWriteError)
    assert board.loading is False
    assert board.tasks == []
    assert all(t.title != "Buy milk" for t in board.sync.cache.get("u1"))
    await board.aclose()


@pytest.mark.asyncio
async def test_new_operation_clears_previous_error(board, store) -> None:
    board.initialize_tasks("u1")
    await wait_until(lambda: not board.loading)

    store.fail_set = True
    await board.add_task(NewTask(user_id="u1", title="x", due_date=DUE))
    assert board.error == ADD_ERROR

    store.fail_set = False
    assert await board.add_task(NewTask(user_id="u1", title="y", due_date=DUE)) is not None
    assert board.error is None
    assert board.failure is None
    await board.aclose()


@pytest.mark.asyncio
async def test_toggle_and_delete(board) -> None:
    board.initialize_tasks("u1")
    task_id = await board.add_task(NewTask(user_id="u1", title="a", due_date=DUE))
    await wait_until(lambda: board.find(task_id) is not None)

    assert await board.toggle_task_completion(task_id, True) is True
    await wait_until(lambda: board.find(task_id).completed)

    assert await board.delete_task(task_id) is True
    await wait_until(lambda: board.tasks == [])
    await board.aclose()


@pytest.mark.asyncio
async def test_toggle_unknown_task_fails_fast_without_backend_call(board, store) -> None:
    board.initialize_tasks("u1")
    await wait_until(lambda: not board.loading)
    store.calls.clear()

    ok = await board.toggle_task_completion("nope", True)

    assert ok is False
    assert isinstance(board.failure, TaskNotFoundError)
    assert board.error == UPDATE_ERROR
    assert board.loading is False
    assert store.backend_calls() == []
    await board.aclose()


@pytest.mark.asyncio
async def test_delete_unknown_task_fails_fast_without_backend_call(board, store) -> None:
    board.initialize_tasks("u1")
    await wait_until(lambda: not board.loading)
    store.calls.clear()

    assert await board.delete_task("nope") is False
    assert board.error == DELETE_ERROR
    assert store.backend_calls() == []
    await board.aclose()


@pytest.mark.asyncio
async def test_update_failure_leaves_task_list_for_next_push(board, store) -> None:
    board.initialize_tasks("u1")
    task_id = await board.add_task(NewTask(user_id="u1", title="a", due_date=DUE))
    await wait_until(lambda: board.find(task_id) is not None)
    before = list(board.tasks)

    store.fail_set = True
    assert await board.update_task(task_id, {"title": "b"}) is False
    assert board.error == UPDATE_ERROR
    assert board.tasks == before
    await board.aclose()


@pytest.mark.asyncio
async def test_stream_failure_sets_load_error(board, store) -> None:
    board.initialize_tasks("u1")
    store.inner.fail_listeners("u1", ConnectionError("lost"))
    await wait_until(lambda: board.error is not None)

    assert board.error == LOAD_ERROR
    assert board.loading is False
    await board.aclose()


@pytest.mark.asyncio
async def test_listeners_observe_state_changes(board) -> None:
    seen: list[tuple[bool, int]] = []
    unsubscribe = board.subscribe(lambda b: seen.append((b.loading, len(b.tasks))))

    board.initialize_tasks("u1")
    await wait_until(lambda: not board.loading)
    unsubscribe()
    await board.aclose()

    assert seen[0] == (True, 0)
    assert (False, 0) in seen
    # Nothing recorded after unsubscribe (aclose resets tasks).
    assert seen[-1] == (False, 0)
