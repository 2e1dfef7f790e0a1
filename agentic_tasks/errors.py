"""Error taxonomy for the task store.

Every engine operation raises one of these; callers at the edge (the
workflow facade, the MCP tools) decide how to present them.
"""

from __future__ import annotations


class TaskError(Exception):
    """Base class for all task store errors."""


class ValidationError(TaskError, ValueError):
    """Malformed input to a mutating call. Raised before any file I/O."""


class NotFoundError(TaskError, LookupError):
    """A referenced task ID is absent from the expected partition(s)."""

    def __init__(self, task_id: str, where: str = "any partition"):
        self.task_id = task_id
        self.where = where
        super().__init__(f"Task '{task_id}' not found in {where}")


class StorageError(TaskError, OSError):
    """Underlying filesystem or YAML failure; the cause is chained."""


class LockTimeoutError(StorageError):
    """The store lock could not be acquired in time."""
