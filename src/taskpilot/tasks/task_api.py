# src/taskpilot/tasks/task_api.py

from __future__ import annotations

import logging

from ..core.state import AppState
from .outcomes import Outcome

logger = logging.getLogger(__name__)


def handle_command(state: AppState, command_text: str) -> Outcome:
    """
    Free-text entry point: interpreter -> dispatcher.

    Interpreter failures become a "could not understand" outcome carrying the
    degraded intent; they never abort the request.
    """
    result = state.interpreter.interpret(command_text)
    if not result.success:
        logger.info("Command not understood: %s", result.error)
        return state.dispatcher.not_understood(result.intent, error=result.error or "unknown error")
    return state.dispatcher.dispatch(result.intent)
