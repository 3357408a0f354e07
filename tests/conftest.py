# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskpilot.core.state import AppState
from taskpilot.intent.interpreter import IntentInterpreter
from taskpilot.tasks.dispatcher import CommandDispatcher
from taskpilot.tasks.task_store import TaskStore

from .fakes import FakeLLMClient


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskpilot-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        llm_models=["fake/model"],
        interpret_timeout_seconds=5.0,
        max_name_length=200,
        transition_conflict_retries=1,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    """Real SQLite store: its ordering and versioning are part of what we test."""
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def dispatcher(store: TaskStore) -> CommandDispatcher:
    return CommandDispatcher(store)


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, dispatcher: CommandDispatcher, llm: FakeLLMClient) -> AppState:
    """AppState wired with a deterministic LLM fake."""
    return AppState(
        settings=settings,
        llm=llm,
        task_store=store,
        dispatcher=dispatcher,
        interpreter=IntentInterpreter(llm, timeout_seconds=settings.interpret_timeout_seconds),
    )
