# tests/test_bootstrap.py

from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from taskpilot.cli.bootstrap import create_initial_state
from taskpilot.cli.commands import registry
from taskpilot.llm.client import OpenRouterLLMClient, friendly_llm_error_message
from taskpilot.llm.offline import OfflineLLMClient
from taskpilot.tasks.task_api import handle_command


def test_without_api_key_state_falls_back_to_offline(settings: SimpleNamespace) -> None:
    state = create_initial_state(settings=settings)

    assert isinstance(state.llm, OfflineLLMClient)
    assert settings.tasks_db_path.exists()

    out = handle_command(state, "Create a task called X")
    assert out.to_dict()["success"] is False
    assert "missing API key" in (out.intent.ambiguity or "")
    assert state.task_store.count_tasks() == 0

    assert state.dispatcher.create("X").success


def test_llm_client_requires_key_and_models() -> None:
    with pytest.raises(RuntimeError) as e:
        OpenRouterLLMClient(SimpleNamespace(openrouter_api_key="", openrouter_base_url="http://x"))
    assert "TASKPILOT_OPENROUTER_API_KEY" in friendly_llm_error_message(e.value)

    with pytest.raises(RuntimeError, match="model list is empty"):
        OpenRouterLLMClient(
            SimpleNamespace(openrouter_api_key="k", openrouter_base_url="http://x", llm_models=[])
        )


def test_offline_reason_is_logged_and_shown_in_status(settings: SimpleNamespace, caplog) -> None:
    caplog.set_level(logging.INFO, logger="taskpilot")

    state = create_initial_state(settings=settings)

    assert state.llm.reason == (
        "LLM is not configured (missing API key). Set TASKPILOT_OPENROUTER_API_KEY in .env."
    )
    assert "using offline interpreter" in caplog.text
    assert "missing API key" in caplog.text
    assert "offline (LLM is not configured (missing API key)" in registry.handle(state, "/status")
