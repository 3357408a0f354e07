# src/taskpilot/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from typing import cast

from ..core.state import AppState
from ..tasks.outcomes import Outcome, http_status
from ..tasks.task_models import Task, TaskState

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by connectors (/help, /add, /list, ...)."""

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

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
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

        nparams = len(inspect.signature(handler).parameters)
        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("Anything else is read as a free-text command, e.g. 'mark groceries as done'.")
        return "\n".join(lines)


registry = CommandRegistry()


def _ts_local(ts: float) -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def _task_line(i: int, t: Task) -> str:
    return f"{i}. [{t.state.value}] {t.name} (id={t.id}, created {_ts_local(t.created_at)})"


def render_outcome(outcome: Outcome) -> str:
    """Human-readable rendering of an Outcome for text connectors."""
    lines = [f"[{http_status(outcome)}] {outcome.message}"]

    if outcome.count is not None:
        lines.append(f"Count: {outcome.count}")
        for i, t in enumerate(outcome.tasks, start=1):
            lines.append(_task_line(i, t))
    elif outcome.success and outcome.tasks:
        lines.append(_task_line(1, outcome.tasks[0]))

    if outcome.matches:
        lines.append("Matches:")
        for i, t in enumerate(outcome.matches, start=1):
            lines.append(_task_line(i, t))

    if outcome.intent is not None and not outcome.success and outcome.intent.ambiguity:
        lines.append(f"Note: {outcome.intent.ambiguity}")

    if outcome.suggestion:
        lines.append(f"Hint: {outcome.suggestion}")

    return "\n".join(lines)


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.task_store
    per_state = ", ".join(f"{s.value}: {store.count_tasks(s)}" for s in TaskState)
    models = ", ".join(list(getattr(state.llm, "models", []) or []))
    if not models:
        offline_reason = getattr(state.llm, "reason", None)
        models = f"offline ({offline_reason})" if offline_reason else "offline"
    return (
        "Status:\n"
        f"  Tasks: {store.count_tasks()} ({per_state})\n"
        f"  Models (priority -> fallback): {models}"
    )


def cmd_add(state: AppState, args: list[str]) -> str:
    return render_outcome(state.dispatcher.create(" ".join(args)))


def cmd_start(state: AppState, args: list[str]) -> str:
    return render_outcome(state.dispatcher.update_state(" ".join(args), TaskState.IN_PROGRESS))


def cmd_done(state: AppState, args: list[str]) -> str:
    return render_outcome(state.dispatcher.update_state(" ".join(args), TaskState.COMPLETED))


def cmd_move(state: AppState, args: list[str]) -> str:
    """
    /move <state> <name>
    state: not_started | in_progress | completed
    """
    if len(args) < 2:
        return "Usage: /move <not_started|in_progress|completed> <task name>"
    return render_outcome(state.dispatcher.update_state(" ".join(args[1:]), args[0]))


def cmd_delete(state: AppState, args: list[str]) -> str:
    return render_outcome(state.dispatcher.delete(" ".join(args)))


def cmd_list(state: AppState, args: list[str]) -> str:
    return render_outcome(state.dispatcher.list_tasks(" ".join(args) or None))


def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <id>"
    return render_outcome(state.dispatcher.get(args[0]))


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show task counts and configured models.")
registry.register("add", cmd_add, help_text="Create a task: /add <name>.", aliases=["new"])
registry.register("start", cmd_start, help_text="Move a task to In Progress: /start <name>.")
registry.register("done", cmd_done, help_text="Move a task to Completed: /done <name>.")
registry.register(
    "move", cmd_move, help_text="Move a task: /move <not_started|in_progress|completed> <name>."
)
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <name>.", aliases=["rm"])
registry.register(
    "list", cmd_list, help_text="List tasks newest-first: /list [state].", aliases=["ls"]
)
registry.register("show", cmd_show, help_text="Show one task by id: /show <id>.")
