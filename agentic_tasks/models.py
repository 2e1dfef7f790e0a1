"""Data models for the agentic task store.

This module contains the core data structures used throughout the task
engine: tasks and their subtasks, the lifecycle statuses and the partitions
they map to, progress log entries, readiness results and project status.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ValidationError

MAX_TITLE_LENGTH = 200


class TaskStatus(str, Enum):
    """Lifecycle status of a task or subtask."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    def __str__(self) -> str:
        return self.value


BACKLOG = "backlog"
IN_PROGRESS = "in-progress"
DONE = "done"

# Fixed search order; also the lifecycle order.
PARTITIONS = (BACKLOG, IN_PROGRESS, DONE)

PARTITION_STATUS: Dict[str, TaskStatus] = {
    BACKLOG: TaskStatus.PENDING,
    IN_PROGRESS: TaskStatus.IN_PROGRESS,
    DONE: TaskStatus.DONE,
}

# Legal (from, to) partition moves. Nothing leaves done.
TRANSITIONS = frozenset(
    {
        (BACKLOG, IN_PROGRESS),
        (IN_PROGRESS, DONE),
        (BACKLOG, DONE),
    }
)

# Fields that only the transition engine may change.
LIFECYCLE_FIELDS = frozenset(
    {"id", "status", "subtasks", "assigned_to", "claimed_at", "completed_at", "branch", "commits"}
)

LIST_FIELDS = ("scope", "spec_refs", "skill_refs", "inputs", "outputs", "acceptance")


def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string with a Z suffix."""
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds") + "Z"


def validate_title(title: Any, *, label: str = "Title") -> str:
    """Validate a task or subtask title and return it unchanged."""
    if not isinstance(title, str) or not title.strip():
        raise ValidationError(f"{label} cannot be empty")
    if "\n" in title or "\r" in title:
        raise ValidationError(f"{label} cannot contain newlines")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"{label} too long (max {MAX_TITLE_LENGTH} characters)")
    return title


def parse_status(value: Any) -> TaskStatus:
    """Coerce a stored status string into a TaskStatus."""
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(str(value).replace("-", "_"))
    except ValueError:
        raise ValidationError(f"Invalid status: {value!r}") from None


def _string_list(data: Dict[str, Any], key: str) -> List[str]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ValidationError(f"Field '{key}' must be a list, got {type(value).__name__}")
    return [str(item) for item in value]


def _optional_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    # Unquoted YAML timestamps load as datetime objects.
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.isoformat()
        return value.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


@dataclass(slots=True)
class SubTask:
    """A child work item owned by exactly one parent task."""

    id: str
    title: str
    status: TaskStatus = TaskStatus.PENDING
    assigned_to: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk dictionary form."""
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
        }
        if self.assigned_to:
            data["assigned_to"] = self.assigned_to
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubTask":
        """Create from the on-disk dictionary form."""
        if not isinstance(data, dict):
            raise ValidationError(f"Subtask entry must be a mapping, got {type(data).__name__}")
        if not data.get("id"):
            raise ValidationError("Subtask is missing an 'id'")
        return cls(
            id=str(data["id"]),
            title=_optional_str(data, "title"),
            status=parse_status(data.get("status", TaskStatus.PENDING.value)),
            assigned_to=_optional_str(data, "assigned_to"),
        )

    def sequence(self) -> int:
        """Numeric suffix of a derived subtask ID, or 0 when it has none."""
        _, _, tail = self.id.rpartition(".")
        return int(tail) if tail.isdigit() else 0


@dataclass(slots=True)
class Task:
    """One unit of work stored in a partition file."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    assigned_to: str = ""
    scope: List[str] = field(default_factory=list)
    spec_refs: List[str] = field(default_factory=list)
    skill_refs: List[str] = field(default_factory=list)
    inputs: List[str] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)
    acceptance: List[str] = field(default_factory=list)
    subtasks: List[SubTask] = field(default_factory=list)
    track_id: str = ""
    claimed_at: str = ""
    completed_at: str = ""
    branch: str = ""
    commits: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk dictionary form.

        Empty optional strings and empty lists are left out so that
        hand-edited files stay clean.
        """
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
        }
        if self.description:
            data["description"] = self.description
        data["status"] = self.status.value
        if self.assigned_to:
            data["assigned_to"] = self.assigned_to
        for name in LIST_FIELDS:
            values = getattr(self, name)
            if values:
                data[name] = list(values)
        if self.subtasks:
            data["subtasks"] = [subtask.to_dict() for subtask in self.subtasks]
        if self.track_id:
            data["track_id"] = self.track_id
        if self.claimed_at:
            data["claimed_at"] = self.claimed_at
        if self.completed_at:
            data["completed_at"] = self.completed_at
        if self.branch:
            data["branch"] = self.branch
        if self.commits:
            data["commits"] = list(self.commits)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create from the on-disk dictionary form."""
        if not isinstance(data, dict):
            raise ValidationError(f"Task entry must be a mapping, got {type(data).__name__}")
        if not data.get("id"):
            raise ValidationError("Task is missing an 'id'")
        subtasks = data.get("subtasks") or []
        if not isinstance(subtasks, list):
            raise ValidationError("Field 'subtasks' must be a list")
        return cls(
            id=str(data["id"]),
            title=_optional_str(data, "title"),
            description=_optional_str(data, "description"),
            status=parse_status(data.get("status", TaskStatus.PENDING.value)),
            assigned_to=_optional_str(data, "assigned_to"),
            scope=_string_list(data, "scope"),
            spec_refs=_string_list(data, "spec_refs"),
            skill_refs=_string_list(data, "skill_refs"),
            inputs=_string_list(data, "inputs"),
            outputs=_string_list(data, "outputs"),
            acceptance=_string_list(data, "acceptance"),
            subtasks=[SubTask.from_dict(item) for item in subtasks],
            track_id=_optional_str(data, "track_id"),
            claimed_at=_optional_str(data, "claimed_at"),
            completed_at=_optional_str(data, "completed_at"),
            branch=_optional_str(data, "branch"),
            commits=_string_list(data, "commits"),
        )

    def next_subtask_sequence(self) -> int:
        """Next free subtask number; numbering never restarts."""
        return max((subtask.sequence() for subtask in self.subtasks), default=0) + 1

    def find_subtask(self, subtask_id: str) -> Optional[SubTask]:
        """Return the subtask with the given ID, if any."""
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                return subtask
        return None

    def validate(self) -> List[str]:
        """Validate task data and return any issues."""
        issues = []

        if not self.id:
            issues.append("Task ID is required")
        try:
            validate_title(self.title)
        except ValidationError as e:
            issues.append(str(e))
        seen: set[str] = set()
        for subtask in self.subtasks:
            if subtask.id in seen:
                issues.append(f"Duplicate subtask ID: {subtask.id}")
            seen.add(subtask.id)

        return issues


@dataclass(slots=True)
class ProgressEntry:
    """A single task completion recorded in the progress log."""

    timestamp: str
    story_id: str
    title: str
    files_changed: List[str] = field(default_factory=list)
    learnings: List[str] = field(default_factory=list)
    thread_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the progress.yaml dictionary form."""
        data: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "storyId": self.story_id,
            "title": self.title,
            "filesChanged": list(self.files_changed),
            "learnings": list(self.learnings),
        }
        if self.thread_url:
            data["threadUrl"] = self.thread_url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressEntry":
        """Create from the progress.yaml dictionary form."""
        return cls(
            timestamp=str(data.get("timestamp", "")),
            story_id=str(data.get("storyId", "")),
            title=str(data.get("title", "")),
            files_changed=[str(f) for f in data.get("filesChanged") or []],
            learnings=[str(item) for item in data.get("learnings") or []],
            thread_url=str(data.get("threadUrl") or ""),
        )


@dataclass(slots=True)
class ReadinessCheck:
    """One check performed before claiming a task."""

    name: str
    passed: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "passed": self.passed, "message": self.message}


@dataclass(slots=True)
class ReadinessResult:
    """All readiness checks for one task."""

    task_id: str
    ready: bool = True
    checks: List[ReadinessCheck] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "ready": self.ready,
            "checks": [check.to_dict() for check in self.checks],
        }


@dataclass(slots=True)
class ProjectStatus:
    """Aggregated counts across the three partitions."""

    project_name: str
    backlog_count: int = 0
    in_progress_count: int = 0
    done_count: int = 0
    in_progress_tasks: List[Task] = field(default_factory=list)
    backlog_tasks: List[Task] = field(default_factory=list)
    next_ready: Optional[Task] = None
    blockers: List[str] = field(default_factory=list)
    recent_entries: List[ProgressEntry] = field(default_factory=list)
    last_updated: str = field(default_factory=utc_timestamp)

    @property
    def total_count(self) -> int:
        return self.backlog_count + self.in_progress_count + self.done_count

    def get_completion_rate(self) -> float:
        """Get task completion rate as percentage."""
        if self.total_count == 0:
            return 0.0
        return (self.done_count / self.total_count) * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "project_name": self.project_name,
            "backlog_count": self.backlog_count,
            "in_progress_count": self.in_progress_count,
            "done_count": self.done_count,
            "total_count": self.total_count,
            "completion_pct": round(self.get_completion_rate(), 1),
            "in_progress_tasks": [task.to_dict() for task in self.in_progress_tasks],
            "backlog_tasks": [task.to_dict() for task in self.backlog_tasks],
            "next_ready": self.next_ready.to_dict() if self.next_ready else None,
            "blockers": list(self.blockers),
            "recent_entries": [entry.to_dict() for entry in self.recent_entries],
            "last_updated": self.last_updated,
        }
