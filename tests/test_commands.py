# tests/test_commands.py

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from taskflow.cli.bootstrap import shutdown
from taskflow.cli.commands import CommandRegistry, registry

from .fakes import wait_until

FUTURE = (datetime.now(UTC) + timedelta(days=30)).strftime("%Y-%m-%d")


@pytest.mark.asyncio
async def test_command_registry_routes_sync_async_and_emit_handlers(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    async def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return f"h3 {' '.join(args)}"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    assert await reg.handle(state, "/a x") == "h2"
    assert await reg.handle(state, "/BEE y z", emit=lambda _: None) == "h3 y z"
    assert called == {"h2": 1, "h3": 1}


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_task_commands_require_login(state) -> None:
    for line in ("/add x | 2030-01-01", "/list", "/done 1", "/rm 1", "/stats"):
        reply = await registry.handle(state, line)
        assert reply is not None and "Not signed in" in reply


@pytest.mark.asyncio
async def test_console_session_flow(state) -> None:
    assert "Signed in as u1" in await registry.handle(state, "/login u1")
    await wait_until(lambda: not state.board.loading)

    reply = await registry.handle(state, f"/add Buy milk | {FUTURE} | low | 2% please")
    assert reply.startswith("Added 'Buy milk'")
    await wait_until(lambda: len(state.board.tasks) == 1)

    listing = await registry.handle(state, "/list pending priority")
    assert "Buy milk" in listing
    assert "2% please" in listing
    assert len(state.last_listing) == 1

    assert "Completed 'Buy milk'" in await registry.handle(state, "/done 1")
    await wait_until(lambda: state.board.tasks[0].completed)
    assert await registry.handle(state, "/stats") == "Total: 1  Completed: 1  Pending: 0"
    assert "No tasks found" in await registry.handle(state, "/list pending")

    task_id = state.board.tasks[0].id
    reply = await registry.handle(state, f"/edit {task_id[:6]} title=Buy oat milk priority=high")
    assert reply == "Updated 'Buy milk'."
    await wait_until(lambda: state.board.tasks[0].title == "Buy oat milk")

    assert "Deleted 'Buy oat milk'" in await registry.handle(state, f"/rm {task_id}")
    await wait_until(lambda: state.board.tasks == [])

    assert await registry.handle(state, "/logout") == "Signed out u1."
    assert state.user_id is None
    assert state.board.subscription is None
    await shutdown(state)


@pytest.mark.asyncio
async def test_add_validates_form(state) -> None:
    await registry.handle(state, "/login u1")

    assert "Usage" in await registry.handle(state, "/add just a title")
    assert "Bad date" in await registry.handle(state, "/add x | 10/01/2030")
    assert "Bad priority" in await registry.handle(state, f"/add x | {FUTURE} | urgent")
    assert await registry.handle(state, "/add x | 2000-01-01") == "Due date cannot be in the past"
    assert await registry.handle(state, f"/add  | {FUTURE}") == "Title is required"
    assert await registry.handle(state, "/add x | ") == "Due date is required"
    await shutdown(state)


@pytest.mark.asyncio
async def test_unknown_task_reference(state) -> None:
    await registry.handle(state, "/login u1")
    await wait_until(lambda: not state.board.loading)

    assert "No task matches" in await registry.handle(state, "/done deadbeef")
    await shutdown(state)


@pytest.mark.asyncio
async def test_switching_login_drops_previous_session(state) -> None:
    await registry.handle(state, "/login u1")
    await registry.handle(state, "/login u2")

    assert state.user_id == "u2"
    assert state.board.user_id == "u2"
    assert state.store.listener_count() == 1
    await shutdown(state)
