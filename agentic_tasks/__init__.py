"""Agentic task store: file-backed tasks moved through backlog, in-progress and done."""

from .config import TaskConfig, load_config, resolve_project_root
from .errors import LockTimeoutError, NotFoundError, StorageError, TaskError, ValidationError
from .manager import TaskManager
from .models import BACKLOG, DONE, IN_PROGRESS, PARTITIONS, SubTask, Task, TaskStatus
from .workflow import TaskWorkflow

__all__ = [
    "BACKLOG",
    "DONE",
    "IN_PROGRESS",
    "PARTITIONS",
    "LockTimeoutError",
    "NotFoundError",
    "StorageError",
    "SubTask",
    "Task",
    "TaskConfig",
    "TaskError",
    "TaskManager",
    "TaskStatus",
    "TaskWorkflow",
    "ValidationError",
    "load_config",
    "resolve_project_root",
]
