# src/taskflow/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, cast

from ..core.state import AppState
from ..tasks.task_models import NewTask, Priority, Task
from ..tasks.task_views import SortKey, TaskFilter, task_stats, validate_task_form, visible_tasks
from .bootstrap import sign_in, sign_out

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID = 8
DATE_FORMAT = "%Y-%m-%d"


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        result: Any
        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            result = await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _short(task_id: str) -> str:
    return task_id[:SHORT_ID]


def _login_hint(state: AppState) -> str | None:
    if not state.user_id:
        return "Not signed in. Use /login <user>."
    return None


def _parse_date(raw: str) -> datetime | None:
    try:
        return datetime.strptime(raw.strip(), DATE_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        return None


def resolve_task(state: AppState, ref: str) -> Task | str:
    """
    Find a task on the board by list number (from the last /list) or id prefix.
    Returns the Task or a user-facing error message.
    """
    ref = ref.strip()
    if ref.isdigit() and state.last_listing:
        n = int(ref)
        if 1 <= n <= len(state.last_listing):
            ref = state.last_listing[n - 1]

    matches = [t for t in state.board.tasks if t.id.startswith(ref)]
    if not matches:
        return f"No task matches '{ref}'."
    if len(matches) > 1:
        return f"'{ref}' is ambiguous ({len(matches)} tasks). Use more characters."
    return matches[0]


def format_task(task: Task, n: int | None = None) -> str:
    mark = "x" if task.completed else " "
    prefix = f"{n:>2}. " if n is not None else ""
    line = (
        f"{prefix}[{mark}] {task.title}  "
        f"(due {task.due_date.strftime(DATE_FORMAT)}, {task.priority.value}, id {_short(task.id)})"
    )
    if task.description:
        line += f"\n      {task.description}"
    return line


def _board_error(state: AppState, fallback: str) -> str:
    return state.board.error or fallback


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    board = state.board
    backend = getattr(state.settings, "backend", "?")
    return (
        "Status:\n"
        f"  User: {state.user_id or '(signed out)'}\n"
        f"  Backend: {backend}\n"
        f"  Tasks loaded: {len(board.tasks)} (loading={'yes' if board.loading else 'no'})\n"
        f"  Last error: {board.error or '-'}\n"
        f"  View: filter={state.task_filter.value} sort={state.sort_by.value}"
    )


def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /login <user>"
    user_id = args[0].strip()
    if state.user_id == user_id:
        return f"Already signed in as {user_id}."
    if emit:
        emit(f"Signing in as {user_id}...")
    sign_in(state, user_id)
    return f"Signed in as {user_id}. Tasks will appear as they sync."


def cmd_logout(state: AppState, args: list[str]) -> str:
    if not state.user_id:
        return "Not signed in."
    user_id = state.user_id
    sign_out(state)
    return f"Signed out {user_id}."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    return state.user_id or "(signed out)"


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title> | <YYYY-MM-DD> [| low|medium|high] [| description]
    """
    hint = _login_hint(state)
    if hint:
        return hint

    fields = [p.strip() for p in " ".join(args).split("|")]
    if len(fields) < 2:
        return "Usage: /add <title> | <YYYY-MM-DD> [| low|medium|high] [| description]"

    title = fields[0]
    due_date = _parse_date(fields[1]) if fields[1] else None
    if fields[1] and due_date is None:
        return f"Bad date '{fields[1]}'. Use YYYY-MM-DD."

    priority = Priority.MEDIUM
    if len(fields) > 2 and fields[2]:
        try:
            priority = Priority(fields[2].lower())
        except ValueError:
            return f"Bad priority '{fields[2]}'. Use low, medium or high."
    description = " | ".join(fields[3:]) if len(fields) > 3 else ""

    errors = validate_task_form(title, due_date)
    if errors or due_date is None:
        return "\n".join(errors.values()) or "Due date is required"

    task_id = await state.board.add_task(
        NewTask(
            user_id=cast(str, state.user_id),
            title=title,
            due_date=due_date,
            description=description,
            priority=priority,
        )
    )
    if task_id is None:
        return _board_error(state, "Failed to add task")
    return f"Added '{title}' (id {_short(task_id)})."


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                      -> current view
    /list pending|completed|all
    /list date|priority        -> sort order (can be combined with a filter)
    """
    hint = _login_hint(state)
    if hint:
        return hint

    for arg in (a.lower() for a in args):
        if arg in {f.value for f in TaskFilter}:
            state.task_filter = TaskFilter(arg)
        elif arg in {s.value for s in SortKey}:
            state.sort_by = SortKey(arg)
        else:
            return "Usage: /list [all|completed|pending] [date|priority]"

    board = state.board
    if board.loading and not board.tasks:
        return "Loading tasks..."

    shown = visible_tasks(board.tasks, state.task_filter, state.sort_by)
    state.last_listing = [t.id for t in shown]
    if not shown:
        return "No tasks found. Create your first task with /add."

    lines = [f"Your tasks ({state.task_filter.value}, by {state.sort_by.value}):"]
    lines.extend(format_task(t, i) for i, t in enumerate(shown, start=1))
    return "\n".join(lines)


def _parse_assignments(args: list[str]) -> dict[str, str] | str:
    """Parse `title=New title priority=high` (values may contain spaces)."""
    known = ("title", "description", "desc", "due", "priority")
    out: dict[str, str] = {}
    key: str | None = None
    for token in args:
        name, sep, value = token.partition("=")
        if sep and name.lower() in known:
            key = "description" if name.lower() == "desc" else name.lower()
            out[key] = value
        elif key is None:
            return f"Expected field=value, got '{token}'."
        else:
            out[key] = f"{out[key]} {token}"
    return out


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <n|id> title=... description=... due=YYYY-MM-DD priority=low|medium|high
    """
    hint = _login_hint(state)
    if hint:
        return hint
    if len(args) < 2:
        return "Usage: /edit <n|id> field=value ... (fields: title, description, due, priority)"

    task = resolve_task(state, args[0])
    if isinstance(task, str):
        return task

    parsed = _parse_assignments(args[1:])
    if isinstance(parsed, str):
        return parsed

    updates: dict[str, Any] = {}
    for name, value in parsed.items():
        if name == "due":
            due = _parse_date(value)
            if due is None:
                return f"Bad date '{value}'. Use YYYY-MM-DD."
            updates["due_date"] = due
        elif name == "priority":
            try:
                updates["priority"] = Priority(value.strip().lower())
            except ValueError:
                return f"Bad priority '{value}'. Use low, medium or high."
        else:
            updates[name] = value.strip()

    ok = await state.board.update_task(task.id, updates)
    if not ok:
        return _board_error(state, "Failed to update task")
    return f"Updated '{task.title}'."


async def _set_completed(state: AppState, args: list[str], completed: bool) -> str:
    hint = _login_hint(state)
    if hint:
        return hint
    if not args:
        return "Usage: /done <n|id>" if completed else "Usage: /undone <n|id>"

    task = resolve_task(state, args[0])
    if isinstance(task, str):
        return task

    ok = await state.board.toggle_task_completion(task.id, completed)
    if not ok:
        return _board_error(state, "Failed to update task")
    return f"{'Completed' if completed else 'Reopened'} '{task.title}'."


async def cmd_done(state: AppState, args: list[str]) -> str:
    return await _set_completed(state, args, True)


async def cmd_undone(state: AppState, args: list[str]) -> str:
    return await _set_completed(state, args, False)


async def cmd_rm(state: AppState, args: list[str]) -> str:
    hint = _login_hint(state)
    if hint:
        return hint
    if not args:
        return "Usage: /rm <n|id>"

    task = resolve_task(state, args[0])
    if isinstance(task, str):
        return task

    ok = await state.board.delete_task(task.id)
    if not ok:
        return _board_error(state, "Failed to delete task")
    return f"Deleted '{task.title}'."


def cmd_stats(state: AppState, args: list[str]) -> str:
    hint = _login_hint(state)
    if hint:
        return hint
    stats = task_stats(state.board.tasks)
    return f"Total: {stats.total}  Completed: {stats.completed}  Pending: {stats.pending}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session, backend and board state.")
registry.register("login", cmd_login, help_text="Sign in: /login <user>.")
registry.register("logout", cmd_logout, help_text="Sign out and drop cached tasks.")
registry.register("whoami", cmd_whoami, help_text="Show the signed-in user.")
registry.register(
    "add",
    cmd_add,
    help_text="Create a task: /add <title> | <YYYY-MM-DD> [| priority] [| description].",
    aliases=["new"],
)
registry.register(
    "list",
    cmd_list,
    help_text="List tasks: /list [all|completed|pending] [date|priority].",
    aliases=["ls"],
)
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <n|id> field=value ...")
registry.register("done", cmd_done, help_text="Mark a task completed: /done <n|id>.")
registry.register("undone", cmd_undone, help_text="Mark a task pending again: /undone <n|id>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <n|id>.", aliases=["del"])
registry.register("stats", cmd_stats, help_text="Show total / completed / pending counts.")
