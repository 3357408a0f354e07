# tests/fakes.py

from __future__ import annotations

import json
import time
from collections.abc import Iterable
from typing import Any

from taskpilot.core.ports import ChatMessage
from taskpilot.tasks.task_models import Task, TaskState
from taskpilot.tasks.task_store import TaskStore


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Yields a predefined text as a single chunk
    """

    def __init__(self, next_text: str = '{"action": "unknown"}') -> None:
        self.next_text = next_text
        self.calls: list[tuple[list[ChatMessage], str]] = []
        self.deadlines: list[float | None] = []

    def reply_with(self, **payload: Any) -> None:
        self.next_text = json.dumps(payload)

    def stream_chat(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        *,
        deadline: float | None = None,
    ) -> Iterable[str]:
        self.calls.append((messages, system_prompt))
        self.deadlines.append(deadline)
        yield self.next_text


class RaisingLLMClient:
    """Fails on the first chunk, like a transport timeout would."""

    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.calls = 0

    def stream_chat(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        *,
        deadline: float | None = None,
    ) -> Iterable[str]:
        self.calls += 1
        raise self.exc
        yield ""  # pragma: no cover


class SlowLLMClient:
    """Yields chunks with a delay before each one (so it stalls before the first)."""

    def __init__(self, chunks: list[str], delay_seconds: float) -> None:
        self.chunks = chunks
        self.delay_seconds = delay_seconds
        self.calls = 0

    def stream_chat(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        *,
        deadline: float | None = None,
    ) -> Iterable[str]:
        self.calls += 1
        for chunk in self.chunks:
            time.sleep(self.delay_seconds)
            yield chunk


class RacingTaskStore:
    """
    Wraps a real TaskStore and lets another writer sneak in once:
    right before the first conditional state write, the interloper's state is
    written unconditionally (bumping the version).
    """

    def __init__(self, inner: TaskStore, interloper_state: TaskState, *, times: int = 1) -> None:
        self.inner = inner
        self.interloper_state = interloper_state
        self.remaining = times
        self.update_calls = 0

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)

    def update_state(
        self,
        task_id: int,
        new_state: TaskState,
        *,
        expected_version: int | None = None,
    ) -> Task | None:
        self.update_calls += 1
        if self.remaining > 0 and expected_version is not None:
            self.remaining -= 1
            self.inner.update_state(task_id, self.interloper_state)
        return self.inner.update_state(task_id, new_state, expected_version=expected_version)
