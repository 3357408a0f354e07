# tests/test_interpreter.py

from __future__ import annotations

import time

import httpx
import pytest

from taskpilot.intent.interpreter import INTENT_SYSTEM_PROMPT, IntentInterpreter
from taskpilot.intent.models import Confidence, Intent, IntentAction, extract_json_object
from taskpilot.llm.offline import OfflineLLMClient

from .fakes import FakeLLMClient, RaisingLLMClient, SlowLLMClient


def test_parses_plain_json_reply() -> None:
    llm = FakeLLMClient()
    llm.reply_with(
        action="update_state",
        taskName="Buy groceries",
        targetState="Completed",
        filterState=None,
        confidence="high",
        ambiguity=None,
    )

    res = IntentInterpreter(llm).interpret("Mark 'Buy groceries' as done")

    assert res.success
    assert res.error is None
    assert res.intent == Intent(
        action=IntentAction.UPDATE_STATE,
        task_name="Buy groceries",
        target_state="Completed",
        confidence=Confidence.HIGH,
    )
    assert len(llm.calls) == 1
    messages, system_prompt = llm.calls[0]
    assert system_prompt == INTENT_SYSTEM_PROMPT
    assert "Mark 'Buy groceries' as done" in messages[0]["content"]


def test_strips_markdown_fences_and_normalizes_synonyms() -> None:
    llm = FakeLLMClient(
        'Sure!\n```json\n{"action": "Move", "taskName": " homework ", "targetState": "started",'
        ' "confidence": "MEDIUM", "ambiguity": "Task name might be partial"}\n```'
    )

    res = IntentInterpreter(llm).interpret("Start working on homework")

    assert res.success
    assert res.intent.action is IntentAction.UPDATE_STATE
    assert res.intent.task_name == "homework"
    assert res.intent.target_state == "In Progress"
    assert res.intent.confidence is Confidence.MEDIUM
    assert res.intent.ambiguity == "Task name might be partial"


@pytest.mark.parametrize(
    "exc",
    [
        TimeoutError("simulated timeout"),
        httpx.ConnectError("connection refused"),
        RuntimeError("All LLM models failed."),
    ],
)
def test_transport_failures_degrade_to_unknown(exc: Exception) -> None:
    llm = RaisingLLMClient(exc)

    res = IntentInterpreter(llm).interpret("Create a task called X")

    assert res.success is False
    assert res.intent.action is IntentAction.UNKNOWN
    assert res.intent.confidence is Confidence.LOW
    assert res.intent.ambiguity is not None and res.intent.ambiguity.startswith("Error processing command")
    assert res.error
    assert res.raw_command == "Create a task called X"
    assert llm.calls == 1


def test_hard_deadline_over_slow_stream() -> None:
    llm = SlowLLMClient(['{"action": ', '"list"}'], delay_seconds=0.2)

    res = IntentInterpreter(llm, timeout_seconds=0.1).interpret("show tasks")

    assert res.success is False
    assert "timed out" in (res.error or "")
    assert llm.calls == 1


def test_stalled_stream_returns_at_the_deadline() -> None:
    llm = SlowLLMClient(['{"action": "list"}'], delay_seconds=2.0)

    started = time.monotonic()
    res = IntentInterpreter(llm, timeout_seconds=0.1).interpret("show tasks")
    elapsed = time.monotonic() - started

    assert res.success is False
    assert res.error == "Interpreter timed out after 0.1s"
    assert res.intent.action is IntentAction.UNKNOWN
    assert elapsed < 1.0


def test_deadline_is_handed_to_the_client() -> None:
    llm = FakeLLMClient('{"action": "list"}')

    before = time.monotonic()
    IntentInterpreter(llm, timeout_seconds=3.0).interpret("show tasks")

    (deadline,) = llm.deadlines
    assert deadline is not None
    assert before + 2.5 < deadline <= time.monotonic() + 3.0


@pytest.mark.parametrize(
    "reply,needle",
    [
        ("I think you want to create a task", "invalid JSON"),
        ('{"taskName": "x"}', '"action"'),
        ('["create"]', "not a JSON object"),
        ('{"action": ""}', '"action"'),
    ],
)
def test_malformed_replies_degrade_to_unknown(reply: str, needle: str) -> None:
    res = IntentInterpreter(FakeLLMClient(reply)).interpret("do something")
    assert res.success is False
    assert res.intent.action is IntentAction.UNKNOWN
    assert needle in (res.error or "")


def test_blank_command_never_reaches_the_llm() -> None:
    llm = FakeLLMClient()
    for blank in ("", "   ", None):
        res = IntentInterpreter(llm).interpret(blank)  # type: ignore[arg-type]
        assert res.success is False
        assert res.intent.action is IntentAction.UNKNOWN
    assert llm.calls == []


def test_offline_client_yields_unknown_intent() -> None:
    res = IntentInterpreter(OfflineLLMClient()).interpret("Create a task called X")
    assert res.success
    assert res.intent.action is IntentAction.UNKNOWN
    assert "Offline mode" in (res.intent.ambiguity or "")


def test_intent_payload_normalization() -> None:
    intent = Intent.from_payload(
        {"action": "remove", "task_name": "old", "filter_state": "todo", "confidence": "sure"}
    )
    assert intent.action is IntentAction.DELETE
    assert intent.task_name == "old"
    assert intent.filter_state == "Not Started"
    assert intent.confidence is Confidence.LOW
    assert intent.raw_action is None

    odd = Intent.from_payload({"action": "list", "filterState": "Blocked", "taskName": "  "})
    assert odd.filter_state == "Blocked"
    assert odd.task_name is None


def test_extract_json_object() -> None:
    assert extract_json_object('noise {"a": {"b": 1}} trailing') == '{"a": {"b": 1}}'
    assert extract_json_object("no braces") == "no braces"
