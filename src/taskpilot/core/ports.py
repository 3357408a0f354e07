# src/taskpilot/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/LLM providers swappable and makes testing easier.
"""

from typing import TYPE_CHECKING, Iterable, Protocol

if TYPE_CHECKING:
    from ..intent.models import InterpretResult
    from ..tasks.task_models import Task, TaskState

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """
    Streaming chat completion client (OpenAI/OpenRouter-compatible).

    deadline is a time.monotonic() instant; once it passes, no further
    request (model fallback included) may be started.
    """
    def stream_chat(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            *,
            deadline: float | None = None,
    ) -> Iterable[str]: ...


class TaskRepo(Protocol):
    """
    Persistence collaborator.

    find_all is always newest-first; update_state bumps updated_at.
    """

    def insert(self, name: str, *, state: TaskState = ...) -> Task: ...
    def get_by_id(self, task_id: int) -> Task | None: ...
    def find_all(self, state: TaskState | None = None) -> list[Task]: ...
    def update_state(
            self,
            task_id: int,
            new_state: TaskState,
            *,
            expected_version: int | None = None,
    ) -> Task | None: ...
    def delete_by_id(self, task_id: int) -> Task | None: ...
    def count_tasks(self, state: TaskState | None = None) -> int: ...
    def close(self) -> None: ...


class IntentInterpreterPort(Protocol):
    """Free text -> structured intent guess. Must never raise."""
    def interpret(self, command_text: str) -> InterpretResult: ...
