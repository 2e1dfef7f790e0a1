"""Task store: the three partition files under one base directory."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List

from filelock import FileLock, Timeout

from .codec import load_partition, save_partition
from .errors import LockTimeoutError, ValidationError
from .models import PARTITIONS, Task

logger = logging.getLogger("agentic_tasks.store")

LOCK_FILENAME = ".tasks.lock"


class TaskStore:
    """Load and save partitions; no caching, the files are the truth."""

    def __init__(self, base_dir: Path | str, *, lock_timeout: float = 10.0):
        self.base_dir = Path(base_dir)
        self.lock_timeout = lock_timeout
        self._lock = FileLock(str(self.base_dir / LOCK_FILENAME), timeout=lock_timeout)

    def path_for(self, partition: str) -> Path:
        """Get the YAML file backing a partition."""
        if partition not in PARTITIONS:
            raise ValidationError(
                f"Unknown partition '{partition}'; expected one of {', '.join(PARTITIONS)}"
            )
        return self.base_dir / f"{partition}.yaml"

    def load_tasks(self, partition: str) -> List[Task]:
        return load_partition(self.path_for(partition))

    def save_tasks(self, partition: str, tasks: List[Task]) -> None:
        save_partition(self.path_for(partition), tasks)

    def load_all(self) -> Dict[str, List[Task]]:
        """Load every partition, in search order."""
        return {partition: self.load_tasks(partition) for partition in PARTITIONS}

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Hold the advisory store lock around a read-modify-write."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire()
        except Timeout as e:
            raise LockTimeoutError(
                f"Timed out after {self.lock_timeout}s waiting for {self._lock.lock_file}"
            ) from e
        try:
            yield
        finally:
            self._lock.release()
