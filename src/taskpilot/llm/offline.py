# src/taskpilot/llm/offline.py

from __future__ import annotations

import json
from collections.abc import Iterable

from ..core.ports import ChatMessage

DEFAULT_OFFLINE_REASON = (
    "no external LLM is configured. Set TASKPILOT_OPENROUTER_API_KEY to enable free-text commands."
)


class OfflineLLMClient:
    """
    Offline deterministic LLM client used when no external API is configured.

    Every prompt is answered with an "unknown" intent, so free-text commands
    degrade to a "could not understand" outcome while slash commands keep working.
    """

    def __init__(self, reason: str | None = None) -> None:
        self.reason = (reason or "").strip() or DEFAULT_OFFLINE_REASON

    def stream_chat(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        *,
        deadline: float | None = None,
    ) -> Iterable[str]:
        yield json.dumps(
            {
                "action": "unknown",
                "taskName": None,
                "targetState": None,
                "filterState": None,
                "confidence": "low",
                "ambiguity": f"Offline mode: {self.reason} Use /help for typed commands.",
            }
        )
