"""Status file codec: one partition <-> one YAML file.

The codec knows nothing about cross-partition invariants; it only turns a
list of tasks into a ``tasks:`` document and back, writing atomically.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List

import yaml

from .errors import StorageError, ValidationError
from .models import Task

logger = logging.getLogger("agentic_tasks.codec")


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` via a temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=f".{path.stem}_",
        dir=path.parent,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise


def dump_tasks(tasks: List[Task]) -> str:
    """Serialize tasks to the partition YAML document."""
    return yaml.safe_dump(
        {"tasks": [task.to_dict() for task in tasks]},
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )


def parse_tasks(content: str, *, source: str = "<string>") -> List[Task]:
    """Parse a partition YAML document into tasks."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise StorageError(f"Corrupt task file {source}: {e}") from e

    if data is None:
        return []
    if not isinstance(data, dict):
        raise StorageError(f"Corrupt task file {source}: expected a mapping with a 'tasks' key")

    entries = data.get("tasks")
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise StorageError(f"Corrupt task file {source}: 'tasks' must be a list")

    try:
        return [Task.from_dict(entry) for entry in entries]
    except ValidationError as e:
        raise StorageError(f"Corrupt task file {source}: {e}") from e


def load_partition(path: Path) -> List[Task]:
    """Load the tasks stored at ``path``; a missing file is an empty list."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(f"Could not read task file {path}: {e}") from e

    tasks = parse_tasks(content, source=str(path))
    logger.debug(f"Loaded {len(tasks)} tasks from {path}")
    return tasks


def save_partition(path: Path, tasks: List[Task]) -> None:
    """Overwrite ``path`` with the full ordered task list."""
    content = dump_tasks(tasks)
    try:
        atomic_write_text(path, content)
    except OSError as e:
        raise StorageError(f"Could not write task file {path}: {e}") from e
    logger.debug(f"Saved {len(tasks)} tasks to {path}")
