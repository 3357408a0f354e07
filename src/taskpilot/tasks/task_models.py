# src/taskpilot/tasks/task_models.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200


class TaskState(StrEnum):
    """
    Task lifecycle state.

    Values are the user-facing labels and are stored verbatim in the database.
    """

    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"

    @classmethod
    def parse(cls, raw: Any) -> TaskState | None:
        """
        Lenient lookup: accepts the label in any case and the enum name
        ("in_progress", "IN PROGRESS"). Returns None if nothing matches.
        """
        if isinstance(raw, TaskState):
            return raw
        if raw is None:
            return None
        s = " ".join(str(raw).replace("_", " ").replace("-", " ").split()).lower()
        if not s:
            return None
        for member in cls:
            if member.value.lower() == s:
                return member
        return None

    @classmethod
    def from_db(cls, raw: str | None, *, task_id: int | None = None) -> TaskState:
        state = cls.parse(raw)
        if state is None:
            logger.warning(
                "Unrecognised stored state %r for task id=%s, reading it as %s",
                raw,
                task_id,
                cls.NOT_STARTED.value,
            )
            return cls.NOT_STARTED
        return state

    @classmethod
    def labels(cls) -> list[str]:
        return [m.value for m in cls]


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat()


@dataclass(slots=True, frozen=True)
class Task:
    id: int
    name: str
    state: TaskState
    created_at: float
    updated_at: float
    # Bumped by the store on every state write; used for optimistic checks.
    version: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state.value,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "version": self.version,
        }

    def summary(self) -> dict[str, Any]:
        """Compact form used for disambiguation candidate lists."""
        return {"id": self.id, "name": self.name, "state": self.state.value}
