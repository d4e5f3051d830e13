# src/cooprun/tasks/task_models.py

from __future__ import annotations

from enum import StrEnum


class TaskState(StrEnum):
    """
    Task lifecycle state.

    Notes:
    - CREATED -> RUNNING -> one of the terminal states.
    - A task cancelled before it was ever scheduled goes CREATED -> CANCELLED.
    - Terminal states are reached exactly once.
    """

    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({TaskState.COMPLETED, TaskState.CANCELLED, TaskState.FAILED})

_ALLOWED: dict[TaskState, frozenset[TaskState]] = {
    TaskState.CREATED: frozenset({TaskState.RUNNING, TaskState.CANCELLED}),
    TaskState.RUNNING: _TERMINAL,
}


def can_transition(current: TaskState, new: TaskState) -> bool:
    return new in _ALLOWED.get(current, frozenset())
