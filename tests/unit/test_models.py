"""Unit tests for the task data models.

This module tests task and subtask serialization, title validation,
status parsing and the aggregate status model.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from agentic_tasks.errors import ValidationError
from agentic_tasks.models import (
    BACKLOG,
    DONE,
    IN_PROGRESS,
    MAX_TITLE_LENGTH,
    PARTITION_STATUS,
    TRANSITIONS,
    ProgressEntry,
    ProjectStatus,
    SubTask,
    Task,
    TaskStatus,
    parse_status,
    validate_title,
)


class TestValidateTitle:
    """Test cases for title validation."""

    def test_accepts_normal_title(self):
        assert validate_title("Add login") == "Add login"

    @pytest.mark.parametrize("title", ["", "   ", None])
    def test_rejects_empty(self, title):
        with pytest.raises(ValidationError, match="cannot be empty"):
            validate_title(title)

    @pytest.mark.parametrize("title", ["line\nbreak", "carriage\rreturn"])
    def test_rejects_newlines(self, title):
        with pytest.raises(ValidationError, match="newlines"):
            validate_title(title)

    def test_rejects_too_long(self):
        with pytest.raises(ValidationError, match="too long"):
            validate_title("x" * (MAX_TITLE_LENGTH + 1))

    def test_max_length_is_allowed(self):
        assert validate_title("x" * MAX_TITLE_LENGTH)

    def test_custom_label(self):
        with pytest.raises(ValidationError, match="Subtask title cannot be empty"):
            validate_title("", label="Subtask title")


class TestStatus:
    """Test cases for statuses and their partitions."""

    def test_parse_status_values(self):
        assert parse_status("pending") is TaskStatus.PENDING
        assert parse_status("in_progress") is TaskStatus.IN_PROGRESS
        assert parse_status("done") is TaskStatus.DONE

    def test_parse_status_accepts_hyphenated_form(self):
        assert parse_status("in-progress") is TaskStatus.IN_PROGRESS

    def test_parse_status_rejects_unknown(self):
        with pytest.raises(ValidationError, match="Invalid status"):
            parse_status("blocked")

    def test_partition_status_mapping(self):
        assert PARTITION_STATUS[BACKLOG] is TaskStatus.PENDING
        assert PARTITION_STATUS[IN_PROGRESS] is TaskStatus.IN_PROGRESS
        assert PARTITION_STATUS[DONE] is TaskStatus.DONE

    def test_nothing_leaves_done(self):
        assert not [edge for edge in TRANSITIONS if edge[0] == DONE]
        assert (IN_PROGRESS, BACKLOG) not in TRANSITIONS


class TestTask:
    """Test cases for the Task model."""

    def test_to_dict_omits_empty_fields(self):
        task = Task(id="TASK-1", title="Add login")

        assert task.to_dict() == {"id": "TASK-1", "title": "Add login", "status": "pending"}

    def test_to_dict_full(self):
        task = Task(
            id="TASK-1",
            title="Add login",
            description="Login form",
            status=TaskStatus.IN_PROGRESS,
            assigned_to="alice",
            acceptance=["form renders"],
            subtasks=[SubTask(id="TASK-1.1", title="A")],
            claimed_at="2026-01-01T00:00:00Z",
        )

        data = task.to_dict()

        assert list(data) == [
            "id",
            "title",
            "description",
            "status",
            "assigned_to",
            "acceptance",
            "subtasks",
            "claimed_at",
        ]
        assert data["status"] == "in_progress"
        assert data["subtasks"] == [{"id": "TASK-1.1", "title": "A", "status": "pending"}]

    def test_from_dict_restores_fields(self):
        data = {
            "id": "TASK-1",
            "title": "Add login",
            "status": "in_progress",
            "assigned_to": "alice",
            "spec_refs": ["auth.md"],
            "outputs": ["login.py"],
            "subtasks": [{"id": "TASK-1.1", "title": "A", "status": "done"}],
        }

        task = Task.from_dict(data)

        assert task.status is TaskStatus.IN_PROGRESS
        assert task.spec_refs == ["auth.md"]
        assert task.outputs == ["login.py"]
        assert task.subtasks[0].status is TaskStatus.DONE
        assert task.to_dict() == data

    def test_from_dict_defaults(self):
        task = Task.from_dict({"id": "TASK-1", "title": "t"})

        assert task.status is TaskStatus.PENDING
        assert task.description == ""
        assert task.scope == []

    def test_from_dict_normalizes_timestamps(self):
        task = Task.from_dict(
            {
                "id": "TASK-1",
                "title": "t",
                "claimed_at": datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc),
                "completed_at": datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2))),
            }
        )

        assert task.claimed_at == "2024-01-01T10:00:00Z"
        assert task.completed_at == "2024-01-01T10:00:00Z"

    def test_from_dict_naive_timestamp_and_date(self):
        task = Task.from_dict(
            {"id": "TASK-1", "title": "t", "claimed_at": datetime(2024, 1, 1, 10, 0), "branch": date(2024, 1, 1)}
        )

        assert task.claimed_at == "2024-01-01T10:00:00"
        assert task.branch == "2024-01-01"

    def test_from_dict_requires_id(self):
        with pytest.raises(ValidationError, match="missing an 'id'"):
            Task.from_dict({"title": "no id"})

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(ValidationError, match="must be a mapping"):
            Task.from_dict(["not", "a", "task"])

    def test_from_dict_rejects_scalar_list_field(self):
        with pytest.raises(ValidationError, match="'acceptance' must be a list"):
            Task.from_dict({"id": "TASK-1", "title": "t", "acceptance": "done"})

    def test_next_subtask_sequence(self):
        task = Task(id="TASK-1", title="t")
        assert task.next_subtask_sequence() == 1

        task.subtasks = [SubTask(id="TASK-1.1", title="A"), SubTask(id="TASK-1.4", title="B")]
        assert task.next_subtask_sequence() == 5

    def test_subtask_without_numeric_suffix(self):
        assert SubTask(id="custom", title="x").sequence() == 0

    def test_find_subtask(self):
        task = Task(id="TASK-1", title="t", subtasks=[SubTask(id="TASK-1.1", title="A")])

        assert task.find_subtask("TASK-1.1").title == "A"
        assert task.find_subtask("TASK-1.2") is None

    def test_validate_reports_issues(self):
        task = Task(
            id="",
            title="",
            subtasks=[SubTask(id="X.1", title="a"), SubTask(id="X.1", title="b")],
        )

        issues = task.validate()

        assert "Task ID is required" in issues
        assert "Title cannot be empty" in issues
        assert "Duplicate subtask ID: X.1" in issues


class TestProgressEntry:
    """Test cases for ProgressEntry."""

    def test_to_dict_uses_log_keys(self):
        entry = ProgressEntry(
            timestamp="2026-01-01T00:00:00Z",
            story_id="TASK-1",
            title="Add login",
            files_changed=["a.py"],
            learnings=["keep it small"],
            thread_url="https://example.com/t/1",
        )

        data = entry.to_dict()

        assert data["storyId"] == "TASK-1"
        assert data["filesChanged"] == ["a.py"]
        assert data["threadUrl"] == "https://example.com/t/1"
        assert ProgressEntry.from_dict(data) == entry

    def test_thread_url_omitted_when_empty(self):
        entry = ProgressEntry(timestamp="t", story_id="TASK-1", title="x")
        assert "threadUrl" not in entry.to_dict()


class TestProjectStatus:
    """Test cases for ProjectStatus."""

    def test_empty_project(self):
        status = ProjectStatus(project_name="demo")

        assert status.total_count == 0
        assert status.get_completion_rate() == 0.0
        assert status.to_dict()["next_ready"] is None

    def test_completion_rate(self):
        status = ProjectStatus(project_name="demo", backlog_count=1, in_progress_count=1, done_count=1)

        assert status.total_count == 3
        assert status.to_dict()["completion_pct"] == 33.3
