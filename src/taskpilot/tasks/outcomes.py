# src/taskpilot/tasks/outcomes.py

"""
Uniform command outcomes.

Every dispatcher call ends in an Outcome. Rejections carry one CommandError
variant with structured fields, so transports can map kinds to status codes
without parsing message text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar

from ..intent.models import Intent
from .task_models import Task, TaskState


class OutcomeKind(StrEnum):
    OK = "ok"
    CREATED = "created"
    NOT_UNDERSTOOD = "not_understood"
    VALIDATION_FAILURE = "validation_failure"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    INVALID_TRANSITION = "invalid_transition"
    VERSION_CONFLICT = "version_conflict"


# ---- error variants ----


@dataclass(slots=True, frozen=True)
class CommandError:
    kind: ClassVar[OutcomeKind]


@dataclass(slots=True, frozen=True)
class ValidationFailure(CommandError):
    field_name: str
    reason: str
    kind: ClassVar[OutcomeKind] = OutcomeKind.VALIDATION_FAILURE


@dataclass(slots=True, frozen=True)
class NotFound(CommandError):
    search_text: str
    kind: ClassVar[OutcomeKind] = OutcomeKind.NOT_FOUND


@dataclass(slots=True, frozen=True)
class Ambiguous(CommandError):
    search_text: str
    candidates: tuple[Task, ...]
    kind: ClassVar[OutcomeKind] = OutcomeKind.AMBIGUOUS


@dataclass(slots=True, frozen=True)
class InvalidTransition(CommandError):
    current: TaskState
    target: TaskState
    allowed: tuple[TaskState, ...]
    kind: ClassVar[OutcomeKind] = OutcomeKind.INVALID_TRANSITION

    def allowed_text(self) -> str:
        return ", ".join(s.value for s in self.allowed) if self.allowed else "none"


@dataclass(slots=True, frozen=True)
class InterpreterFailure(CommandError):
    reason: str
    kind: ClassVar[OutcomeKind] = OutcomeKind.NOT_UNDERSTOOD


@dataclass(slots=True, frozen=True)
class VersionConflict(CommandError):
    task_id: int
    kind: ClassVar[OutcomeKind] = OutcomeKind.VERSION_CONFLICT


# ---- outcome ----

_HTTP_STATUS: dict[OutcomeKind, int] = {
    OutcomeKind.OK: 200,
    OutcomeKind.CREATED: 201,
    OutcomeKind.NOT_UNDERSTOOD: 200,
    OutcomeKind.VALIDATION_FAILURE: 400,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.AMBIGUOUS: 400,
    OutcomeKind.INVALID_TRANSITION: 400,
    OutcomeKind.VERSION_CONFLICT: 409,
}

_SUCCESS_KINDS = frozenset({OutcomeKind.OK, OutcomeKind.CREATED})


@dataclass(slots=True, frozen=True)
class Outcome:
    kind: OutcomeKind
    message: str
    data: Task | list[Task] | None = None
    count: int | None = None
    matches: tuple[Task, ...] | None = None
    suggestion: str | None = None
    intent: Intent | None = None
    error: CommandError | None = None

    @property
    def success(self) -> bool:
        return self.kind in _SUCCESS_KINDS

    @property
    def tasks(self) -> list[Task]:
        if self.data is None:
            return []
        if isinstance(self.data, Task):
            return [self.data]
        return list(self.data)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "message": self.message}
        if isinstance(self.data, Task):
            out["data"] = self.data.to_dict()
        elif self.data is not None:
            out["data"] = [t.to_dict() for t in self.data]
        if self.count is not None:
            out["count"] = self.count
        if self.matches is not None:
            out["matches"] = [t.summary() for t in self.matches]
        if self.suggestion is not None:
            out["suggestion"] = self.suggestion
        if self.intent is not None:
            out["intent"] = self.intent.to_dict()
        if isinstance(self.error, InterpreterFailure):
            out["error"] = self.error.reason
        return out


def http_status(outcome: Outcome) -> int:
    """Status code a transport should use for this outcome."""
    return _HTTP_STATUS[outcome.kind]
