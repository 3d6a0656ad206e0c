# src/taskflow/tasks/task_errors.py

from __future__ import annotations


class TaskError(Exception):
    """Base class for task cache / sync failures."""


class TaskNotFoundError(TaskError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class TaskWriteError(TaskError):
    """Backend create/update/delete was rejected or unreachable."""


class AuthRequiredError(TaskError):
    def __init__(self, message: str = "A signed-in user is required") -> None:
        super().__init__(message)


class SubscriptionError(TaskError):
    """Live task stream failed and there was no cached data to fall back to."""
