"""Transition engine for the agentic task store.

``TaskManager`` is the only component that moves tasks between the backlog,
in-progress and done partitions. Every mutation runs under the store lock.
Two-partition transitions write the destination before the source, so a
crash in between leaves a duplicate that ``repair()`` resolves, never a
lost task.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from . import gitinfo
from .config import TaskConfig
from .errors import NotFoundError, ValidationError
from .ids import IdGenerator, default_generator, subtask_id, tdd_subtask_id
from .models import (
    BACKLOG,
    DONE,
    IN_PROGRESS,
    LIFECYCLE_FIELDS,
    LIST_FIELDS,
    PARTITION_STATUS,
    PARTITIONS,
    TRANSITIONS,
    ProgressEntry,
    SubTask,
    Task,
    TaskStatus,
    parse_status,
    utc_timestamp,
    validate_title,
)
from .progress import ProgressWriter
from .store import TaskStore
from .task_logging import (
    log_error_with_context,
    log_operation,
    log_performance,
    observability_hooks,
)

logger = logging.getLogger("agentic_tasks.manager")

EDITABLE_FIELDS = frozenset({"title", "description", "track_id", *LIST_FIELDS})

TDD_PHASES = (
    ("red", "[RED] Write failing tests for: {title}"),
    ("green", "[GREEN] Implement minimal code to pass tests for: {title}"),
    ("refactor", "[REFACTOR] Refactor implementation for: {title}"),
)


def _index_of(tasks: List[Task], task_id: str) -> Optional[int]:
    for index, task in enumerate(tasks):
        if task.id == task_id:
            return index
    return None


def _check_fields(fields: Dict[str, Any]) -> None:
    """Reject lifecycle, unknown or badly typed editable fields."""
    for name, value in fields.items():
        if name in LIFECYCLE_FIELDS:
            raise ValidationError(f"Field '{name}' is managed by task transitions and cannot be edited")
        if name not in EDITABLE_FIELDS:
            raise ValidationError(f"Unknown task field '{name}'")
        if name == "title":
            validate_title(value)
        elif name in LIST_FIELDS:
            if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) for item in value):
                raise ValidationError(f"Field '{name}' must be a list of strings")
        elif not isinstance(value, str):
            raise ValidationError(f"Field '{name}' must be a string")


def _apply_fields(task: Task, fields: Dict[str, Any]) -> None:
    for name, value in fields.items():
        setattr(task, name, list(value) if name in LIST_FIELDS else value)


class TaskManager:
    """Create, find and transition tasks across the three partitions."""

    def __init__(
        self,
        base_dir: Path | str,
        *,
        lock_timeout: float = 10.0,
        progress: Optional[ProgressWriter] = None,
        capture_git: bool = False,
        repo_dir: Optional[Path | str] = None,
        id_generator: Optional[IdGenerator] = None,
    ):
        self.store = TaskStore(base_dir, lock_timeout=lock_timeout)
        self.progress = progress
        self.capture_git = capture_git
        self.repo_dir = Path(repo_dir) if repo_dir else None
        self._ids = id_generator or default_generator

    @classmethod
    def from_config(cls, config: TaskConfig) -> "TaskManager":
        """Build a manager wired to the configured paths and progress log."""
        return cls(
            config.tasks_dir,
            lock_timeout=config.lock_timeout,
            progress=ProgressWriter(config.progress_text_path, config.progress_yaml_path),
            capture_git=config.capture_git,
            repo_dir=config.project_root,
        )

    @property
    def base_dir(self) -> Path:
        return self.store.base_dir

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_tasks(self, partition: str) -> List[Task]:
        """Return the tasks stored in one partition, in file order."""
        return self.store.load_tasks(partition)

    def find_task(self, task_id: str) -> Tuple[Optional[Task], str]:
        """Search backlog, in-progress and done for a task or subtask ID.

        Returns ``(task, partition)``, or ``(None, "")`` when nothing matches.
        A subtask match is returned as a ``Task`` carrying the subtask's
        fields, with the partition of its parent.
        """
        for partition in PARTITIONS:
            for task in self.store.load_tasks(partition):
                if task.id == task_id:
                    return task, partition
                subtask = task.find_subtask(task_id)
                if subtask is not None:
                    view = Task(
                        id=subtask.id,
                        title=subtask.title,
                        status=subtask.status,
                        assigned_to=subtask.assigned_to,
                    )
                    return view, partition
        return None, ""

    # ------------------------------------------------------------------
    # Creation and in-place edits
    # ------------------------------------------------------------------

    @log_performance("create_task")
    def create_task(self, title: str, **fields: Any) -> Task:
        """Create a pending task at the end of the backlog."""
        validate_title(title)
        _check_fields(fields)

        try:
            with log_operation("create_task", title=title), self.store.lock():
                existing = {task.id for tasks in self.store.load_all().values() for task in tasks}
                task_id = self._ids.new_id()
                while task_id in existing:
                    logger.warning(f"Generated ID {task_id} already exists, regenerating")
                    task_id = self._ids.new_id()

                task = Task(id=task_id, title=title, status=TaskStatus.PENDING)
                _apply_fields(task, fields)

                backlog = self.store.load_tasks(BACKLOG)
                backlog.append(task)
                self.store.save_tasks(BACKLOG, backlog)

            logger.info(f"Created task {task.id}: {title}")
            observability_hooks.log_task_event("task_created", task.id, title=title)
            return task

        except Exception as e:
            log_error_with_context(e, {"operation": "create_task", "title": title})
            raise

    @log_performance("update_task")
    def update_task(self, task_id: str, **fields: Any) -> Task:
        """Edit non-lifecycle fields of a task in whichever partition holds it."""
        if not fields:
            raise ValidationError("No fields to update")
        _check_fields(fields)

        try:
            with log_operation("update_task", task_id=task_id, fields=sorted(fields)), self.store.lock():
                for partition in PARTITIONS:
                    tasks = self.store.load_tasks(partition)
                    index = _index_of(tasks, task_id)
                    if index is None:
                        continue
                    task = tasks[index]
                    _apply_fields(task, fields)
                    self.store.save_tasks(partition, tasks)
                    break
                else:
                    raise NotFoundError(task_id)

            observability_hooks.log_task_event("task_updated", task_id, fields=sorted(fields))
            return task

        except Exception as e:
            log_error_with_context(e, {"operation": "update_task", "task_id": task_id})
            raise

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self,
        task_id: str,
        from_partition: str,
        to_partition: str,
        mutate: Callable[[Task], None],
    ) -> Task:
        """Move one task between partitions. Caller validates the move."""
        with self.store.lock():
            if _index_of(self.store.load_tasks(from_partition), task_id) is None:
                raise NotFoundError(task_id, from_partition)
            self._repair_locked()

            source = self.store.load_tasks(from_partition)
            index = _index_of(source, task_id)
            if index is None:
                # Repair dropped a stale source copy; the task already moved on.
                raise NotFoundError(task_id, from_partition)

            task = source.pop(index)
            mutate(task)
            task.status = PARTITION_STATUS[to_partition]

            destination = self.store.load_tasks(to_partition)
            destination.append(task)
            # Destination first: a crash after this line leaves a duplicate, not a loss.
            self.store.save_tasks(to_partition, destination)
            self.store.save_tasks(from_partition, source)

        observability_hooks.log_task_event(
            "task_moved",
            task_id,
            from_partition=from_partition,
            to_partition=to_partition,
            status=task.status.value,
        )
        return task

    @log_performance("move_task")
    def move_task(
        self,
        task_id: str,
        from_partition: str,
        to_partition: str,
        new_status: TaskStatus | str,
    ) -> Task:
        """Move a task along a legal lifecycle edge and set its status."""
        self.store.path_for(from_partition)
        self.store.path_for(to_partition)
        if (from_partition, to_partition) not in TRANSITIONS:
            raise ValidationError(f"Illegal transition: {from_partition} -> {to_partition}")
        status = parse_status(new_status)
        if status != PARTITION_STATUS[to_partition]:
            raise ValidationError(
                f"Status '{status.value}' does not match partition '{to_partition}'"
            )

        try:
            with log_operation("move_task", task_id=task_id, from_partition=from_partition,
                               to_partition=to_partition):
                task = self._transition(task_id, from_partition, to_partition, lambda task: None)
            logger.info(f"Moved task {task_id}: {from_partition} -> {to_partition}")
            return task

        except Exception as e:
            log_error_with_context(e, {
                "operation": "move_task",
                "task_id": task_id,
                "from_partition": from_partition,
                "to_partition": to_partition,
            })
            raise

    @log_performance("claim_task")
    def claim_task(self, task_id: str, claimant: str) -> Task:
        """Assign a backlog task to ``claimant`` and move it to in-progress."""
        if not claimant or not claimant.strip():
            raise ValidationError("Claimant cannot be empty")

        branch = gitinfo.current_branch(self.repo_dir) if self.capture_git else ""

        def claim(task: Task) -> None:
            task.assigned_to = claimant
            task.claimed_at = utc_timestamp()
            if branch:
                task.branch = branch

        try:
            with log_operation("claim_task", task_id=task_id, claimant=claimant):
                task = self._transition(task_id, BACKLOG, IN_PROGRESS, claim)
            logger.info(f"Task {task_id} claimed by {claimant}")
            observability_hooks.log_task_event("task_claimed", task_id, claimant=claimant, branch=branch)
            return task

        except Exception as e:
            log_error_with_context(e, {"operation": "claim_task", "task_id": task_id, "claimant": claimant})
            raise

    @log_performance("complete_task")
    def complete_task(
        self,
        task_id: str,
        learnings: Optional[Sequence[str]] = None,
        files_changed: Optional[Sequence[str]] = None,
        thread_url: str = "",
    ) -> Task:
        """Move an in-progress task to done and record it in the progress log.

        The move is committed before the progress entry is written; if the
        log write fails the task stays in done and the error is raised.
        """
        changed = list(files_changed or [])

        def complete(task: Task) -> None:
            task.completed_at = utc_timestamp()
            if self.capture_git and task.claimed_at:
                task.commits = gitinfo.commits_since(task.claimed_at, self.repo_dir)
                if not changed:
                    changed.extend(gitinfo.files_changed_since(task.claimed_at, self.repo_dir))

        try:
            with log_operation("complete_task", task_id=task_id), self.store.lock():
                task = self._transition(task_id, IN_PROGRESS, DONE, complete)
                if self.progress is not None:
                    self.progress.append_entry(
                        ProgressEntry(
                            timestamp=task.completed_at,
                            story_id=task.id,
                            title=task.title,
                            files_changed=changed,
                            learnings=list(learnings or []),
                            thread_url=thread_url,
                        )
                    )
            logger.info(f"Completed task {task_id}")
            return task

        except Exception as e:
            log_error_with_context(e, {"operation": "complete_task", "task_id": task_id})
            raise

    @log_performance("decompose_task")
    def decompose_task(self, task_id: str, subtask_titles: Sequence[str]) -> Task:
        """Append pending subtasks to a backlog or in-progress task.

        Subtask numbering continues after the highest existing number, so
        decomposing twice appends rather than reusing IDs.
        """
        if isinstance(subtask_titles, str) or not subtask_titles:
            raise ValidationError("At least one subtask title is required")
        for title in subtask_titles:
            validate_title(title, label="Subtask title")

        try:
            with log_operation("decompose_task", task_id=task_id, count=len(subtask_titles)), \
                    self.store.lock():
                for partition in (BACKLOG, IN_PROGRESS):
                    tasks = self.store.load_tasks(partition)
                    index = _index_of(tasks, task_id)
                    if index is not None:
                        break
                else:
                    raise NotFoundError(task_id, f"{BACKLOG} or {IN_PROGRESS}")

                task = tasks[index]
                sequence = task.next_subtask_sequence()
                new_ids = []
                for offset, title in enumerate(subtask_titles):
                    new_id = subtask_id(task.id, sequence + offset)
                    task.subtasks.append(SubTask(id=new_id, title=title, status=TaskStatus.PENDING))
                    new_ids.append(new_id)
                self.store.save_tasks(partition, tasks)

            logger.info(f"Decomposed task {task_id} into {len(new_ids)} subtasks")
            observability_hooks.log_task_event("task_decomposed", task_id, subtask_ids=new_ids)
            return task

        except Exception as e:
            log_error_with_context(e, {"operation": "decompose_task", "task_id": task_id})
            raise

    @log_performance("decompose_for_tdd")
    def decompose_for_tdd(self, task_id: str) -> Task:
        """Give a backlog or in-progress task RED, GREEN and REFACTOR subtasks.

        Phase subtasks are ``<id>-red``, ``<id>-green`` and ``<id>-refactor``.
        Running it again resets those three to pending and leaves any other
        subtasks alone.
        """
        try:
            with log_operation("decompose_for_tdd", task_id=task_id), self.store.lock():
                for partition in (BACKLOG, IN_PROGRESS):
                    tasks = self.store.load_tasks(partition)
                    index = _index_of(tasks, task_id)
                    if index is not None:
                        break
                else:
                    raise NotFoundError(task_id, f"{BACKLOG} or {IN_PROGRESS}")

                task = tasks[index]
                phases = [
                    SubTask(
                        id=tdd_subtask_id(task.id, phase),
                        title=template.format(title=task.title),
                        status=TaskStatus.PENDING,
                    )
                    for phase, template in TDD_PHASES
                ]
                phase_ids = [subtask.id for subtask in phases]
                task.subtasks = [s for s in task.subtasks if s.id not in phase_ids] + phases
                self.store.save_tasks(partition, tasks)

            logger.info(f"Added TDD subtasks to task {task_id}")
            observability_hooks.log_task_event("task_decomposed", task_id, subtask_ids=phase_ids, tdd=True)
            return task

        except Exception as e:
            log_error_with_context(e, {"operation": "decompose_for_tdd", "task_id": task_id})
            raise

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def _repair_locked(self) -> List[str]:
        partitions = self.store.load_all()
        # Later partitions win: a duplicate means the source write never landed.
        keeper: Dict[str, str] = {}
        for partition in PARTITIONS:
            for task in partitions[partition]:
                keeper[task.id] = partition

        affected: List[str] = []
        for partition in PARTITIONS:
            kept: List[Task] = []
            seen: set[str] = set()
            for task in partitions[partition]:
                if keeper[task.id] != partition or task.id in seen:
                    if task.id not in affected:
                        affected.append(task.id)
                    continue
                seen.add(task.id)
                kept.append(task)
            if len(kept) != len(partitions[partition]):
                self.store.save_tasks(partition, kept)

        if affected:
            logger.warning(f"Removed stale copies of tasks: {', '.join(affected)}")
            observability_hooks.log_task_event("tasks_repaired", None, task_ids=affected)
        return affected

    def repair(self) -> List[str]:
        """Drop stale duplicate copies, keeping the furthest-along one.

        Returns the IDs that had duplicates.
        """
        with log_operation("repair_tasks"), self.store.lock():
            return self._repair_locked()
