# src/taskpilot/tasks/transitions.py

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from .task_models import TaskState


def _freeze(table: Mapping[TaskState, Iterable[TaskState]]) -> Mapping[TaskState, tuple[TaskState, ...]]:
    return MappingProxyType({state: tuple(table.get(state, ())) for state in TaskState})


DEFAULT_LIFECYCLE: Mapping[TaskState, tuple[TaskState, ...]] = _freeze(
    {
        TaskState.NOT_STARTED: (TaskState.IN_PROGRESS,),
        TaskState.IN_PROGRESS: (TaskState.COMPLETED,),
        TaskState.COMPLETED: (),
    }
)


class TransitionValidator:
    """
    Pure check over (current, target) against a fixed lifecycle graph.

    A self-transition is always allowed (it is a no-op, not an error).
    """

    def __init__(self, table: Mapping[TaskState, Iterable[TaskState]] | None = None) -> None:
        self._table = DEFAULT_LIFECYCLE if table is None else _freeze(table)

    def allowed_targets(self, current: TaskState) -> tuple[TaskState, ...]:
        return self._table.get(current, ())

    def is_allowed(self, current: TaskState, target: TaskState) -> bool:
        if current == target:
            return True
        return target in self.allowed_targets(current)

    def is_terminal(self, current: TaskState) -> bool:
        return not self.allowed_targets(current)
