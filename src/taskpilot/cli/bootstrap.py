# src/taskpilot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (LLM/store/interpreter/dispatcher).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import LLMClient
from ..core.state import AppState
from ..intent.interpreter import IntentInterpreter
from ..llm.client import OpenRouterLLMClient, friendly_llm_error_message
from ..llm.offline import OfflineLLMClient
from ..tasks.dispatcher import CommandDispatcher
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, llm: LLMClient | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if llm is None:
        try:
            llm = OpenRouterLLMClient(settings)
        except RuntimeError as e:
            # No API key / models: free text degrades to "could not understand".
            reason = friendly_llm_error_message(e)
            logger.info("LLM unavailable (%s); using offline interpreter.", reason)
            llm = OfflineLLMClient(reason)

    task_store = TaskStore(settings.tasks_db_path)
    dispatcher = CommandDispatcher(
        task_store,
        max_name_length=getattr(settings, "max_name_length", 200),
        conflict_retries=getattr(settings, "transition_conflict_retries", 1),
    )
    interpreter = IntentInterpreter(
        llm,
        timeout_seconds=getattr(settings, "interpret_timeout_seconds", 20.0),
    )

    return AppState(
        settings=settings,
        llm=llm,
        task_store=task_store,
        dispatcher=dispatcher,
        interpreter=interpreter,
    )
