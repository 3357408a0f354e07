# src/taskpilot/intent/models.py

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..tasks.task_models import TaskState


class IntentAction(StrEnum):
    CREATE = "create"
    UPDATE_STATE = "update_state"
    DELETE = "delete"
    LIST = "list"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Any) -> IntentAction | None:
        s = str(raw or "").strip().lower().replace("-", "_").replace(" ", "_")
        if not s:
            return None
        s = _ACTION_ALIASES.get(s, s)
        try:
            return cls(s)
        except ValueError:
            return None


_ACTION_ALIASES = {
    "add": "create",
    "new": "create",
    "create_task": "create",
    "add_task": "create",
    "update": "update_state",
    "move": "update_state",
    "transition": "update_state",
    "set_state": "update_state",
    "update_status": "update_state",
    "remove": "delete",
    "delete_task": "delete",
    "show": "list",
    "list_tasks": "list",
    "get": "list",
}


class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, raw: Any) -> Confidence:
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.LOW


_STATE_SYNONYMS = {
    "done": TaskState.COMPLETED,
    "complete": TaskState.COMPLETED,
    "finished": TaskState.COMPLETED,
    "closed": TaskState.COMPLETED,
    "start": TaskState.IN_PROGRESS,
    "started": TaskState.IN_PROGRESS,
    "doing": TaskState.IN_PROGRESS,
    "working": TaskState.IN_PROGRESS,
    "in progress": TaskState.IN_PROGRESS,
    "todo": TaskState.NOT_STARTED,
    "to do": TaskState.NOT_STARTED,
    "new": TaskState.NOT_STARTED,
    "reset": TaskState.NOT_STARTED,
    "pending": TaskState.NOT_STARTED,
}


def normalize_state_text(raw: Any) -> str | None:
    """
    Map interpreter state wording onto a canonical label.

    Unrecognised non-empty text is returned trimmed (not dropped) so the
    dispatcher can reject it with a proper validation message.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    parsed = TaskState.parse(text)
    if parsed is not None:
        return parsed.value
    synonym = _STATE_SYNONYMS.get(" ".join(text.lower().split()))
    return synonym.value if synonym is not None else text


def _opt_text(raw: Any) -> str | None:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def extract_json_object(raw: str) -> str:
    """Strip Markdown fences and cut out the outermost {...} block."""
    raw = raw.replace("```json", "").replace("```", "").strip()
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


@dataclass(slots=True, frozen=True)
class Intent:
    action: IntentAction
    task_name: str | None = None
    target_state: str | None = None
    filter_state: str | None = None
    confidence: Confidence = Confidence.LOW
    ambiguity: str | None = None
    # Action text as received when it did not map onto a known action.
    raw_action: str | None = None

    @classmethod
    def unknown(cls, ambiguity: str | None = None) -> Intent:
        return cls(action=IntentAction.UNKNOWN, confidence=Confidence.LOW, ambiguity=ambiguity)

    @classmethod
    def from_payload(cls, payload: Any) -> Intent:
        """
        Build an Intent from interpreter JSON (camelCase or snake_case keys).

        Raises ValueError when the payload is not an object or lacks "action".
        """
        if not isinstance(payload, dict):
            raise ValueError("Interpreter response is not a JSON object")

        raw_action = payload.get("action")
        if raw_action is None or not str(raw_action).strip():
            raise ValueError('Interpreter response missing required "action" field')

        action = IntentAction.parse(raw_action)

        def pick(*keys: str) -> Any:
            for k in keys:
                if k in payload:
                    return payload[k]
            return None

        return cls(
            action=action or IntentAction.UNKNOWN,
            task_name=_opt_text(pick("taskName", "task_name", "name")),
            target_state=normalize_state_text(pick("targetState", "target_state", "state")),
            filter_state=normalize_state_text(pick("filterState", "filter_state", "filter")),
            confidence=Confidence.parse(payload.get("confidence")),
            ambiguity=_opt_text(payload.get("ambiguity")),
            raw_action=None if action is not None else str(raw_action).strip(),
        )

    @classmethod
    def from_json(cls, text: str) -> Intent:
        try:
            payload = json.loads(extract_json_object(text or ""))
        except json.JSONDecodeError as e:
            raise ValueError("Interpreter returned invalid JSON format") from e
        return cls.from_payload(payload)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.raw_action or self.action.value,
            "taskName": self.task_name,
            "targetState": self.target_state,
            "filterState": self.filter_state,
            "confidence": self.confidence.value,
            "ambiguity": self.ambiguity,
        }


@dataclass(slots=True, frozen=True)
class InterpretResult:
    success: bool
    intent: Intent
    raw_command: str
    error: str | None = None
