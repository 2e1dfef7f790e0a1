"""Task identifier generation.

IDs look like ``TASK-1760870400123-7F3A``: epoch milliseconds followed by a
short random suffix. Within a process the millisecond part is strictly
increasing, so IDs sort by creation order even under sub-second bursts.
"""

from __future__ import annotations

import secrets
import threading
import time
from typing import Callable, Optional

TASK_PREFIX = "TASK"


class IdGenerator:
    """Monotonic, lock-protected task ID source."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock
        self._lock = threading.Lock()
        self._last_millis = 0

    def _next_millis(self) -> int:
        with self._lock:
            millis = int((self._clock or time.time)() * 1000)
            if millis <= self._last_millis:
                millis = self._last_millis + 1
            self._last_millis = millis
            return millis

    def new_id(self) -> str:
        """Return a new task identifier."""
        millis = self._next_millis()
        return f"{TASK_PREFIX}-{millis:013d}-{secrets.token_hex(2).upper()}"


# Shared by every TaskManager in the process.
default_generator = IdGenerator()


def new_id() -> str:
    """Return a new task identifier from the process-wide generator."""
    return default_generator.new_id()


def subtask_id(parent_id: str, sequence: int) -> str:
    """Derive a subtask ID from its parent."""
    if sequence < 1:
        raise ValueError("Subtask sequence starts at 1")
    return f"{parent_id}.{sequence}"


def tdd_subtask_id(parent_id: str, phase: str) -> str:
    """Derive the ID of a RED/GREEN/REFACTOR subtask."""
    return f"{parent_id}-{phase}"
