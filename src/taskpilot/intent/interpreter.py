# src/taskpilot/intent/interpreter.py

"""
Free text -> Intent via an LLM.

Contract:
- one blocking round-trip per command, never retried (a second attempt against a
  non-deterministic model can produce a different, equally wrong guess),
- a hard deadline over the whole answer,
- never raises: any failure (timeout, transport error, bad JSON, missing
  "action") comes back as success=False with an "unknown" intent.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, wait

from ..core.ports import LLMClient
from ..tasks.task_models import TaskState
from .models import Intent, InterpretResult

logger = logging.getLogger(__name__)

_STATES = ", ".join(f'"{s}"' for s in TaskState.labels())

INTENT_SYSTEM_PROMPT = f"""
You are the intent interpreter of a task tracker.

You do NOT chat with the user.
You convert one natural-language command into one JSON object.

Task states (use these exact labels): {_STATES}.
Lifecycle: Not Started -> In Progress -> Completed.

STRICT schema:
{{
  "action": "create" | "update_state" | "delete" | "list" | "unknown",
  "taskName": string | null,
  "targetState": one of the state labels | null,
  "filterState": one of the state labels | null,
  "confidence": "high" | "medium" | "low",
  "ambiguity": string | null
}}

Rules:
- Copy the task name exactly as the user wrote it; do not complete or fix it.
- "start", "begin", "working on" -> "In Progress".
- "done", "complete", "finished" -> "Completed".
- "reset", "mark as not started" -> "Not Started".
- "list" takes an optional filterState; no filter means all tasks.
- Anything that is not a task command -> "unknown".
- Use "ambiguity" to explain what could not be determined (e.g. a partial name).

Examples:
"Create a task called Buy groceries" ->
{{"action":"create","taskName":"Buy groceries","targetState":null,"filterState":null,"confidence":"high","ambiguity":null}}
"Start working on homework" ->
{{"action":"update_state","taskName":"homework","targetState":"In Progress","filterState":null,"confidence":"medium","ambiguity":"Task name might be partial"}}
"Show me all completed tasks" ->
{{"action":"list","taskName":null,"targetState":null,"filterState":"Completed","confidence":"high","ambiguity":null}}
"What's the weather?" ->
{{"action":"unknown","taskName":null,"targetState":null,"filterState":null,"confidence":"high","ambiguity":"Not a task management command"}}

Output format:
Return STRICT JSON only. No extra text. No Markdown.
""".strip()


class InterpreterTimeout(TimeoutError):
    pass


class IntentInterpreter:
    def __init__(self, llm: LLMClient, *, timeout_seconds: float = 20.0) -> None:
        self._llm = llm
        self._timeout_seconds = max(0.1, float(timeout_seconds))

    def _collect(self, command: str, deadline: float) -> str:
        parts: list[str] = []
        messages = [{"role": "user", "content": f'User command: "{command}"'}]
        for piece in self._llm.stream_chat(messages, INTENT_SYSTEM_PROMPT, deadline=deadline):
            if time.monotonic() > deadline:
                raise InterpreterTimeout(self._timeout_message())
            if piece:
                parts.append(piece)
        return "".join(parts)

    def _timeout_message(self) -> str:
        return f"Interpreter timed out after {self._timeout_seconds:.1f}s"

    def _ask(self, command: str) -> str:
        """
        Run the LLM round-trip on a daemon worker and wait at most the deadline.

        A stalled stream keeps its worker busy, never the caller.
        """
        deadline = time.monotonic() + self._timeout_seconds
        future: Future[str] = Future()

        def worker() -> None:
            try:
                future.set_result(self._collect(command, deadline))
            except Exception as e:
                future.set_exception(e)

        threading.Thread(target=worker, name="taskpilot-interpret", daemon=True).start()
        done, _ = wait([future], timeout=max(0.0, deadline - time.monotonic()))
        if not done:
            logger.info("Abandoning interpreter call still running after %.1fs", self._timeout_seconds)
            raise InterpreterTimeout(self._timeout_message())
        return future.result()

    def interpret(self, command_text: str) -> InterpretResult:
        command = command_text if isinstance(command_text, str) else ""
        try:
            if not command.strip():
                raise ValueError("Command must be a non-empty string")

            raw = self._ask(command.strip())
            intent = Intent.from_json(raw)
            logger.info(
                "Interpreted command action=%s confidence=%s",
                intent.action.value,
                intent.confidence.value,
            )
            return InterpretResult(success=True, intent=intent, raw_command=command)

        except Exception as e:
            reason = str(e).strip() or e.__class__.__name__
            logger.warning("Interpretation failed (%s): %s", e.__class__.__name__, reason)
            return InterpretResult(
                success=False,
                intent=Intent.unknown(f"Error processing command: {reason}"),
                raw_command=command,
                error=reason,
            )
