# src/taskpilot/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..tasks.dispatcher import CommandDispatcher
from .ports import IntentInterpreterPort, LLMClient, TaskRepo


@dataclass
class AppState:
    # Settings object (config.Settings in the app, SimpleNamespace in tests).
    settings: Any

    llm: LLMClient
    task_store: TaskRepo
    dispatcher: CommandDispatcher
    interpreter: IntentInterpreterPort

    # Serializes commands coming from one process (console + any future connector).
    lock: threading.RLock = field(default_factory=threading.RLock)
