# src/retask/core/errors.py

from __future__ import annotations


class RetaskError(Exception):
    """Base class for errors raised by retask components."""


class InvalidTaskData(RetaskError):
    """Task cannot be scheduled: missing id, missing or malformed due timestamp."""

    def __init__(self, message: str, *, task_id: str | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id


class SchedulingFailed(RetaskError):
    """
    The alarm facility rejected a register/cancel call.

    Not retried here: the next window refresh re-attempts any task that is
    still imminent.
    """

    def __init__(self, message: str, *, task_id: str | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id


class ExactAlarmDenied(RetaskError):
    """Raised by an alarm facility when exact timing is requested but not permitted."""
