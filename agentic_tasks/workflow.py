"""Workflow facade over the task manager.

Every method returns a plain dictionary suitable for an MCP tool response.
Task errors are turned into ``{"error": ..., "suggestion": ...}`` payloads
instead of being raised.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import TaskConfig, load_config
from .errors import LockTimeoutError, NotFoundError, StorageError, TaskError, ValidationError
from .manager import TDD_PHASES, TaskManager
from .models import BACKLOG, DONE, IN_PROGRESS, PARTITIONS, Task
from .plans import decompose_from_plan
from .readiness import can_claim_task, format_readiness_result
from .status import gather_status
from .task_logging import log_error_with_context

logger = logging.getLogger("agentic_tasks.workflow")

DEFAULT_CLAIMANT = "unknown-agent"

_SUGGESTIONS = {
    ValidationError: ("Check the arguments and try again", None),
    NotFoundError: ("Use list_tasks to see the available task IDs", "list_tasks"),
    LockTimeoutError: ("Another process is holding the task lock; retry shortly", None),
    StorageError: ("Inspect the task files under the tasks directory, then run repair_tasks", "repair_tasks"),
}


def default_claimant() -> str:
    """Claimant used when none is given: $USER, else a fixed agent name."""
    return os.getenv("USER") or DEFAULT_CLAIMANT


def _task_payload(task: Task, partition: str) -> Dict[str, Any]:
    return {"task": task.to_dict(), "partition": partition}


class TaskWorkflow:
    """Tool-facing operations for one project root."""

    def __init__(self, root: Path | str, config: Optional[TaskConfig] = None):
        self.config = config or load_config(root)
        self.manager = TaskManager.from_config(self.config)

    def _error_response(self, error: Exception, operation: str, **context: Any) -> Dict[str, Any]:
        suggestion, next_step = "Check the server logs for details", None
        for error_type, hint in _SUGGESTIONS.items():
            if isinstance(error, error_type):
                suggestion, next_step = hint
                break
        logger.error(f"{operation} failed: {error}")
        log_error_with_context(error, {"operation": operation, **context})
        return {
            "error": str(error),
            "error_type": type(error).__name__,
            "suggestion": suggestion,
            "next_suggested_step": next_step or operation,
        }

    # ------------------------------------------------------------------
    # Task records
    # ------------------------------------------------------------------

    def create_task(self, title: str, **fields: Any) -> Dict[str, Any]:
        fields = {name: value for name, value in fields.items() if value not in (None, "", [])}
        try:
            task = self.manager.create_task(title, **fields)
        except TaskError as e:
            return self._error_response(e, "create_task", title=title)
        return {
            **_task_payload(task, BACKLOG),
            "message": f"Created task {task.id}",
            "next_suggested_step": "claim_task",
        }

    def list_tasks(self, partition: Optional[str] = None) -> Dict[str, Any]:
        partitions = [partition] if partition else list(PARTITIONS)
        try:
            listed = {name: [task.to_dict() for task in self.manager.list_tasks(name)] for name in partitions}
        except TaskError as e:
            return self._error_response(e, "list_tasks", partition=partition)
        return {
            "tasks": listed,
            "counts": {name: len(tasks) for name, tasks in listed.items()},
        }

    def show_task(self, task_id: str) -> Dict[str, Any]:
        try:
            task, partition = self.manager.find_task(task_id)
        except TaskError as e:
            return self._error_response(e, "show_task", task_id=task_id)
        if task is None:
            return self._error_response(NotFoundError(task_id), "show_task", task_id=task_id)
        return _task_payload(task, partition)

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            task = self.manager.update_task(task_id, **fields)
        except TaskError as e:
            return self._error_response(e, "update_task", task_id=task_id)
        _, partition = self.manager.find_task(task_id)
        return {**_task_payload(task, partition), "updated_fields": sorted(fields)}

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def claim_task(self, task_id: str, claimant: Optional[str] = None) -> Dict[str, Any]:
        """Claim a backlog task.

        Readiness is checked first and reported with the result; failed
        checks are warnings and never block the claim.
        """
        claimant = claimant or default_claimant()
        readiness = None
        try:
            task, partition = self.manager.find_task(task_id)
            if task is not None and partition == BACKLOG:
                readiness = can_claim_task(task, self.config)
                if not readiness.ready:
                    logger.warning(f"Claiming {task_id} although it is not ready")
            task = self.manager.claim_task(task_id, claimant)
        except TaskError as e:
            return self._error_response(e, "claim_task", task_id=task_id, claimant=claimant)

        result = {
            **_task_payload(task, IN_PROGRESS),
            "message": f"Task {task_id} claimed by {claimant}",
            "next_suggested_step": "complete_task",
        }
        if readiness is not None:
            result["readiness"] = readiness.to_dict()
            result["report"] = format_readiness_result(readiness)
            result["warnings"] = [
                f"{check.name}: {check.message}" for check in readiness.checks if not check.passed
            ]
        return result

    def complete_task(
        self,
        task_id: str,
        learnings: Optional[List[str]] = None,
        files_changed: Optional[List[str]] = None,
        thread_url: str = "",
    ) -> Dict[str, Any]:
        try:
            task = self.manager.complete_task(
                task_id,
                learnings=learnings,
                files_changed=files_changed,
                thread_url=thread_url,
            )
        except TaskError as e:
            return self._error_response(e, "complete_task", task_id=task_id)
        return {
            **_task_payload(task, DONE),
            "message": f"Task {task_id} completed",
            "next_suggested_step": "next_task",
        }

    def move_task(self, task_id: str, from_partition: str, to_partition: str, status: str) -> Dict[str, Any]:
        try:
            task = self.manager.move_task(task_id, from_partition, to_partition, status)
        except TaskError as e:
            return self._error_response(
                e, "move_task", task_id=task_id, from_partition=from_partition, to_partition=to_partition
            )
        return _task_payload(task, to_partition)

    def decompose_task(self, task_id: str, subtasks: List[str]) -> Dict[str, Any]:
        try:
            task = self.manager.decompose_task(task_id, subtasks)
        except TaskError as e:
            return self._error_response(e, "decompose_task", task_id=task_id)
        _, partition = self.manager.find_task(task_id)
        return {
            **_task_payload(task, partition),
            "subtask_ids": [subtask.id for subtask in task.subtasks[-len(subtasks):]],
        }

    def decompose_for_tdd(self, task_id: str) -> Dict[str, Any]:
        try:
            task = self.manager.decompose_for_tdd(task_id)
        except TaskError as e:
            return self._error_response(e, "decompose_for_tdd", task_id=task_id)
        _, partition = self.manager.find_task(task_id)
        return {
            **_task_payload(task, partition),
            "subtask_ids": [subtask.id for subtask in task.subtasks[-len(TDD_PHASES):]],
            "next_suggested_step": "claim_task" if partition == BACKLOG else "complete_task",
        }

    # ------------------------------------------------------------------
    # Planning and status
    # ------------------------------------------------------------------

    def next_task(self) -> Dict[str, Any]:
        """First backlog task that passes readiness checks."""
        try:
            backlog = self.manager.list_tasks(BACKLOG)
        except TaskError as e:
            return self._error_response(e, "next_task")
        for task in backlog:
            readiness = can_claim_task(task, self.config)
            if readiness.ready:
                return {
                    "task": task.to_dict(),
                    "readiness": readiness.to_dict(),
                    "next_suggested_step": "claim_task",
                }
        return {
            "task": None,
            "message": "No ready tasks in the backlog",
            "next_suggested_step": "create_task",
        }

    def project_status(self) -> Dict[str, Any]:
        try:
            status = gather_status(self.manager.store, self.config, self.manager.progress)
            patterns = self.manager.progress.get_codebase_patterns()
        except TaskError as e:
            return self._error_response(e, "project_status")
        return {**status.to_dict(), "codebase_patterns": patterns}

    def add_codebase_pattern(self, pattern: str) -> Dict[str, Any]:
        try:
            if not pattern or not pattern.strip():
                raise ValidationError("Pattern cannot be empty")
            self.manager.progress.add_codebase_pattern(pattern.strip())
        except TaskError as e:
            return self._error_response(e, "add_codebase_pattern")
        return {"codebase_patterns": self.manager.progress.get_codebase_patterns()}

    def import_plan(self, plan_path: str, track_id: str) -> Dict[str, Any]:
        path = Path(plan_path)
        if not path.is_absolute():
            path = self.config.project_root / path
        try:
            created = decompose_from_plan(self.manager, path, track_id)
        except TaskError as e:
            return self._error_response(e, "import_plan", plan_path=str(path), track_id=track_id)
        return {
            "created": [task.to_dict() for task in created],
            "count": len(created),
            "message": f"Created {len(created)} tasks from {path}",
            "next_suggested_step": "next_task",
        }

    def repair_tasks(self) -> Dict[str, Any]:
        try:
            repaired = self.manager.repair()
        except TaskError as e:
            return self._error_response(e, "repair_tasks")
        return {"repaired": repaired, "count": len(repaired)}
