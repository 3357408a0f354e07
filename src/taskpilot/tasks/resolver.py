# src/taskpilot/tasks/resolver.py

"""
Name -> task resolution.

Free-text commands rarely quote the stored name exactly, so lookup is two-phase:

1. exact match (case-insensitive, whole string, trimmed input);
   exactly one hit resolves immediately.
2. otherwise substring match over all tasks, newest-first:
   0 hits -> not found, 1 hit -> resolved, 2+ hits -> ambiguous (never guessed).

Two tasks with the same exact name fall through to phase 2 and come back
ambiguous, since both contain the search text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from ..core.ports import TaskRepo
from .task_models import Task

logger = logging.getLogger(__name__)


class ResolutionStatus(StrEnum):
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass(slots=True, frozen=True)
class Resolution:
    status: ResolutionStatus
    search_text: str
    task: Task | None = None
    candidates: tuple[Task, ...] = field(default_factory=tuple)
    matched_by: str | None = None  # "exact" | "substring"

    @property
    def count(self) -> int:
        if self.status is ResolutionStatus.RESOLVED:
            return 1
        return len(self.candidates)


def _fold(s: str) -> str:
    return s.strip().casefold()


class NameResolver:
    def __init__(self, store: TaskRepo) -> None:
        self._store = store

    def resolve(self, name: str) -> Resolution:
        search = (name or "").strip()
        if not search:
            return Resolution(ResolutionStatus.NOT_FOUND, search_text=search)

        needle = _fold(search)
        tasks = self._store.find_all()

        exact = [t for t in tasks if _fold(t.name) == needle]
        if len(exact) == 1:
            logger.debug("Resolved %r by exact match -> id=%s", search, exact[0].id)
            return Resolution(
                ResolutionStatus.RESOLVED,
                search_text=search,
                task=exact[0],
                matched_by="exact",
            )

        partial = [t for t in tasks if needle in t.name.casefold()]
        if not partial:
            logger.debug("No task matches %r", search)
            return Resolution(ResolutionStatus.NOT_FOUND, search_text=search)

        if len(partial) == 1:
            logger.debug("Resolved %r by substring match -> id=%s", search, partial[0].id)
            return Resolution(
                ResolutionStatus.RESOLVED,
                search_text=search,
                task=partial[0],
                matched_by="substring",
            )

        logger.debug("Ambiguous name %r: %d candidates", search, len(partial))
        return Resolution(
            ResolutionStatus.AMBIGUOUS,
            search_text=search,
            candidates=tuple(partial),
        )
