# src/taskpilot/tasks/dispatcher.py

"""
Command dispatcher.

One entry point per action. Each call walks
validate input -> (resolve name) -> (validate transition) -> write -> respond
and always returns an Outcome; rejections never raise.

Store failures (sqlite3.Error etc.) are not caught here and propagate to the
request boundary.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.ports import TaskRepo
from ..intent.models import Intent, IntentAction
from .outcomes import (
    Ambiguous,
    InterpreterFailure,
    InvalidTransition,
    NotFound,
    Outcome,
    OutcomeKind,
    ValidationFailure,
    VersionConflict,
)
from .resolver import NameResolver, ResolutionStatus
from .task_models import MAX_NAME_LENGTH, Task, TaskState
from .task_store import StaleTaskError
from .transitions import TransitionValidator

logger = logging.getLogger(__name__)

# SQLite INTEGER is a signed 64-bit value; ids outside 1..MAX cannot exist.
_MAX_TASK_ID = 2**63 - 1

EXAMPLE_COMMANDS = (
    'Try commands like: "Create a task called Buy groceries", "Mark Buy groceries as done", '
    '"Show completed tasks", "Delete Buy groceries"'
)


def _valid_states_text() -> str:
    return ", ".join(TaskState.labels())


class CommandDispatcher:
    def __init__(
        self,
        store: TaskRepo,
        *,
        validator: TransitionValidator | None = None,
        resolver: NameResolver | None = None,
        max_name_length: int = MAX_NAME_LENGTH,
        conflict_retries: int = 1,
    ) -> None:
        self._store = store
        self._validator = validator or TransitionValidator()
        self._resolver = resolver or NameResolver(store)
        self._max_name_length = max(1, min(int(max_name_length), MAX_NAME_LENGTH))
        self._conflict_retries = max(0, int(conflict_retries))

    # ---- rejections ----

    @staticmethod
    def _invalid(field_name: str, reason: str, *, intent: Intent | None = None) -> Outcome:
        logger.info("Validation failure field=%s: %s", field_name, reason)
        return Outcome(
            kind=OutcomeKind.VALIDATION_FAILURE,
            message=reason,
            intent=intent,
            error=ValidationFailure(field_name=field_name, reason=reason),
        )

    @staticmethod
    def _not_found(search_text: str, *, intent: Intent | None = None) -> Outcome:
        logger.info("No task found for %r", search_text)
        return Outcome(
            kind=OutcomeKind.NOT_FOUND,
            message=f'No task found matching "{search_text}"',
            suggestion="Check the task name and try again",
            intent=intent,
            error=NotFound(search_text=search_text),
        )

    @staticmethod
    def _ambiguous(search_text: str, candidates: tuple[Task, ...], *, intent: Intent | None) -> Outcome:
        logger.info("Ambiguous task name %r (%d candidates)", search_text, len(candidates))
        return Outcome(
            kind=OutcomeKind.AMBIGUOUS,
            message=f'Found {len(candidates)} tasks matching "{search_text}"',
            matches=candidates,
            suggestion="Please be more specific with the task name",
            intent=intent,
            error=Ambiguous(search_text=search_text, candidates=candidates),
        )

    # ---- input parsing ----

    def _check_name(self, raw: Any, *, intent: Intent | None) -> str | Outcome:
        if raw is None or not isinstance(raw, str) or not raw.strip():
            return self._invalid("taskName", "Task name is required", intent=intent)
        name = raw.strip()
        if len(name) > self._max_name_length:
            return self._invalid(
                "taskName",
                f"Task name cannot exceed {self._max_name_length} characters",
                intent=intent,
            )
        return name

    def _check_state(
        self, raw: Any, field_name: str, *, intent: Intent | None
    ) -> TaskState | Outcome:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return self._invalid(field_name, "Target state is required", intent=intent)
        state = TaskState.parse(raw)
        if state is None:
            return self._invalid(
                field_name,
                f"Invalid state: {raw}. Must be one of: {_valid_states_text()}",
                intent=intent,
            )
        return state

    def _check_id(self, raw: Any, *, intent: Intent | None = None) -> int | Outcome:
        try:
            task_id = int(str(raw).strip())
        except (TypeError, ValueError):
            return self._invalid("id", "Invalid task ID format", intent=intent)
        if not 1 <= task_id <= _MAX_TASK_ID:
            return self._not_found(str(task_id), intent=intent)
        return task_id

    def _locate(self, raw_name: Any, *, intent: Intent | None) -> Task | Outcome:
        name = self._check_name(raw_name, intent=intent)
        if isinstance(name, Outcome):
            return name

        found = self._resolver.resolve(name)
        if found.status is ResolutionStatus.AMBIGUOUS:
            return self._ambiguous(found.search_text, found.candidates, intent=intent)
        if found.task is None:
            return self._not_found(found.search_text, intent=intent)
        return found.task

    # ---- operations ----

    def create(self, task_name: Any, *, intent: Intent | None = None) -> Outcome:
        name = self._check_name(task_name, intent=intent)
        if isinstance(name, Outcome):
            return name

        task = self._store.insert(name, state=TaskState.NOT_STARTED)
        logger.info("Task created id=%s name=%r", task.id, task.name)
        return Outcome(
            kind=OutcomeKind.CREATED,
            message=f'Task "{task.name}" created successfully',
            data=task,
            intent=intent,
        )

    def get(self, task_id: Any) -> Outcome:
        tid = self._check_id(task_id)
        if isinstance(tid, Outcome):
            return tid

        task = self._store.get_by_id(tid)
        if task is None:
            return self._not_found(str(tid))
        return Outcome(kind=OutcomeKind.OK, message=f'Task "{task.name}"', data=task)

    def list_tasks(self, filter_state: Any = None, *, intent: Intent | None = None) -> Outcome:
        state: TaskState | None = None
        if filter_state is not None and not (isinstance(filter_state, str) and not filter_state.strip()):
            state = TaskState.parse(filter_state)
            if state is None:
                return self._invalid(
                    "filterState",
                    f"Invalid state: {filter_state}. Must be one of: {_valid_states_text()}",
                    intent=intent,
                )

        tasks = self._store.find_all(state)
        return Outcome(
            kind=OutcomeKind.OK,
            message=f"Tasks filtered by state: {state.value}" if state else "All tasks retrieved",
            data=tasks,
            count=len(tasks),
            intent=intent,
        )

    def update_state(self, task_name: Any, target_state: Any, *, intent: Intent | None = None) -> Outcome:
        if task_name is None or (isinstance(task_name, str) and not task_name.strip()):
            return self._invalid("taskName", "Could not determine which task to update", intent=intent)
        target = self._check_state(target_state, "targetState", intent=intent)
        if isinstance(target, Outcome):
            return target

        task = self._locate(task_name, intent=intent)
        if isinstance(task, Outcome):
            return task

        return self._transition(task.id, target, search_text=str(task_name).strip(), intent=intent)

    def update_state_by_id(self, task_id: Any, target_state: Any) -> Outcome:
        target = self._check_state(target_state, "targetState", intent=None)
        if isinstance(target, Outcome):
            return target
        tid = self._check_id(task_id)
        if isinstance(tid, Outcome):
            return tid

        return self._transition(tid, target, search_text=str(tid), intent=None)

    def delete(self, task_name: Any, *, intent: Intent | None = None) -> Outcome:
        if task_name is None or (isinstance(task_name, str) and not task_name.strip()):
            return self._invalid("taskName", "Could not determine which task to delete", intent=intent)

        task = self._locate(task_name, intent=intent)
        if isinstance(task, Outcome):
            return task

        return self._delete(task.id, search_text=str(task_name).strip(), intent=intent)

    def delete_by_id(self, task_id: Any) -> Outcome:
        tid = self._check_id(task_id)
        if isinstance(tid, Outcome):
            return tid
        return self._delete(tid, search_text=str(tid), intent=None)

    def not_understood(self, intent: Intent, *, error: str | None = None) -> Outcome:
        if error is not None:
            message = "Could not understand the command"
        elif intent.raw_action:
            message = f"Unknown action: {intent.raw_action}"
        else:
            message = "Could not determine what you want to do"
        return Outcome(
            kind=OutcomeKind.NOT_UNDERSTOOD,
            message=message,
            suggestion=EXAMPLE_COMMANDS,
            intent=intent,
            error=InterpreterFailure(reason=error) if error is not None else None,
        )

    def dispatch(self, intent: Intent) -> Outcome:
        """Route a structured intent. The interpreter's confidence is never consulted."""
        action = intent.action
        logger.debug("Dispatching action=%s intent=%s", action.value, intent.to_dict())

        if action is IntentAction.CREATE:
            if not intent.task_name:
                return self._invalid("taskName", "Could not determine task name", intent=intent)
            return self.create(intent.task_name, intent=intent)
        if action is IntentAction.UPDATE_STATE:
            if intent.task_name and not intent.target_state:
                return self._invalid("targetState", "Could not determine target state", intent=intent)
            return self.update_state(intent.task_name, intent.target_state, intent=intent)
        if action is IntentAction.DELETE:
            return self.delete(intent.task_name, intent=intent)
        if action is IntentAction.LIST:
            return self.list_tasks(intent.filter_state, intent=intent)
        return self.not_understood(intent)

    # ---- writes ----

    def _transition(
        self,
        task_id: int,
        target: TaskState,
        *,
        search_text: str,
        intent: Intent | None,
    ) -> Outcome:
        attempts = 0
        while True:
            task = self._store.get_by_id(task_id)
            if task is None:
                return self._not_found(search_text, intent=intent)

            current = task.state
            if not self._validator.is_allowed(current, target):
                error = InvalidTransition(
                    current=current,
                    target=target,
                    allowed=self._validator.allowed_targets(current),
                )
                logger.info("Rejected transition id=%s %s -> %s", task.id, current.value, target.value)
                return Outcome(
                    kind=OutcomeKind.INVALID_TRANSITION,
                    message=(
                        f'Invalid state transition: Cannot move from "{current.value}" to "{target.value}". '
                        f'Valid next state(s) from "{current.value}": {error.allowed_text()}'
                    ),
                    data=task,
                    intent=intent,
                    error=error,
                )

            if current == target:
                return Outcome(
                    kind=OutcomeKind.OK,
                    message=f"Task is already in state: {target.value}",
                    data=task,
                    intent=intent,
                )

            try:
                updated = self._store.update_state(task.id, target, expected_version=task.version)
            except StaleTaskError:
                if attempts >= self._conflict_retries:
                    logger.warning("Giving up on id=%s after %d conflicting writes", task.id, attempts + 1)
                    return Outcome(
                        kind=OutcomeKind.VERSION_CONFLICT,
                        message=f'Task "{task.name}" was changed concurrently, please retry',
                        intent=intent,
                        error=VersionConflict(task_id=task.id),
                    )
                attempts += 1
                logger.info("Concurrent update on id=%s, re-validating (attempt %d)", task.id, attempts)
                continue

            if updated is None:
                return self._not_found(search_text, intent=intent)

            logger.info("Task id=%s moved %s -> %s", task.id, current.value, target.value)
            return Outcome(
                kind=OutcomeKind.OK,
                message=f'Task state updated from "{current.value}" to "{target.value}"',
                data=updated,
                intent=intent,
            )

    def _delete(self, task_id: int, *, search_text: str, intent: Intent | None) -> Outcome:
        deleted = self._store.delete_by_id(task_id)
        if deleted is None:
            return self._not_found(search_text, intent=intent)
        logger.info("Task deleted id=%s name=%r", deleted.id, deleted.name)
        return Outcome(
            kind=OutcomeKind.OK,
            message=f'Task "{deleted.name}" deleted successfully',
            data=deleted,
            intent=intent,
        )
