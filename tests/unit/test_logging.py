"""Unit tests for task store logging and observability.

This module tests the logging infrastructure, performance monitoring,
and observability hooks.
"""

import json
import logging
import sys
from unittest.mock import MagicMock, patch

import pytest

from agentic_tasks.task_logging import (
    ROOT_LOGGER,
    JsonFormatter,
    ObservabilityHooks,
    PerformanceMonitor,
    log_error_with_context,
    log_operation,
    log_performance,
    performance_monitor,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestJsonFormatter:
    """Test cases for JsonFormatter."""

    def test_json_formatter_basic(self):
        """Test basic JSON formatting."""
        formatter = JsonFormatter()
        record = logging.getLogger("test").makeRecord("test", logging.INFO, "file.py", 1, "Test message", (), None)

        data = json.loads(formatter.format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        for key in ("timestamp", "module", "function", "line"):
            assert key in data

    def test_json_formatter_with_exception(self):
        """Test JSON formatting with exception info."""
        formatter = JsonFormatter()
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = logging.getLogger("test").makeRecord(
                "test", logging.ERROR, "file.py", 1, "Test message", (), sys.exc_info()
            )

        data = json.loads(formatter.format(record))

        assert data["level"] == "ERROR"
        assert "ValueError" in data["exception"]

    def test_json_formatter_with_extra_fields(self):
        """Test JSON formatting with extra fields."""
        formatter = JsonFormatter()
        record = logging.getLogger("test").makeRecord("test", logging.INFO, "file.py", 1, "Test message", (), None)
        record.extra_fields = {"task_id": "TASK-1"}

        data = json.loads(formatter.format(record))

        assert data["task_id"] == "TASK-1"


class TestPerformanceMonitor:
    """Test cases for PerformanceMonitor."""

    def test_record_metric(self):
        """Test recording a performance metric."""
        monitor = PerformanceMonitor()

        monitor.record_metric("claim_duration", 0.5, {"status": "success"})

        metrics = monitor.get_metrics("claim_duration")
        assert metrics["claim_duration"][0]["value"] == 0.5
        assert metrics["claim_duration"][0]["tags"]["status"] == "success"
        assert "timestamp" in metrics["claim_duration"][0]

    def test_samples_are_capped(self):
        """Test that only the most recent samples are kept."""
        monitor = PerformanceMonitor(max_samples=3)

        for value in range(5):
            monitor.record_metric("metric", value)

        assert [m["value"] for m in monitor.get_metrics("metric")["metric"]] == [2, 3, 4]

    def test_get_all_metrics(self):
        """Test getting all metrics."""
        monitor = PerformanceMonitor()
        monitor.record_metric("metric1", 1)
        monitor.record_metric("metric2", 2)
        monitor.record_metric("metric1", 3)

        all_metrics = monitor.get_metrics()

        assert len(all_metrics["metric1"]) == 2
        assert len(all_metrics["metric2"]) == 1


class TestLogPerformance:
    """Test cases for log_performance decorator."""

    def test_log_performance_decorator(self):
        """Test that a successful call records a duration."""
        @log_performance("unit_success_operation")
        def operation():
            return "result"

        assert operation() == "result"

        samples = performance_monitor.get_metrics("unit_success_operation_duration")["unit_success_operation_duration"]
        assert samples[-1]["value"] >= 0
        assert samples[-1]["tags"]["status"] == "success"

    def test_log_performance_decorator_with_exception(self):
        """Test that a failing call records the error type and re-raises."""
        @log_performance("unit_failing_operation")
        def operation():
            raise ValueError("Test error")

        with pytest.raises(ValueError):
            operation()

        samples = performance_monitor.get_metrics("unit_failing_operation_duration")["unit_failing_operation_duration"]
        assert samples[-1]["tags"]["status"] == "error"
        assert samples[-1]["tags"]["error_type"] == "ValueError"


class TestLogOperation:
    """Test cases for log_operation context manager."""

    def test_log_operation_success(self):
        """Test successful operation logging."""
        with patch("agentic_tasks.task_logging.std_logging.getLogger") as mock_logger:
            with log_operation("claim_task", task_id="TASK-1"):
                pass

        instance = mock_logger.return_value
        assert instance.info.called
        assert not instance.warning.called
        assert instance.info.call_args.kwargs["extra"]["extra_fields"]["task_id"] == "TASK-1"

    def test_log_operation_with_exception(self):
        """Test that failures are logged and re-raised."""
        with patch("agentic_tasks.task_logging.std_logging.getLogger") as mock_logger:
            with pytest.raises(ValueError):
                with log_operation("claim_task"):
                    raise ValueError("Test error")

        instance = mock_logger.return_value
        assert instance.warning.called
        assert "Test error" in str(instance.warning.call_args)
        assert not instance.info.called


class TestObservabilityHooks:
    """Test cases for ObservabilityHooks."""

    def test_register_and_trigger_hooks(self):
        """Test registering and triggering hooks."""
        hooks = ObservabilityHooks()
        callback = MagicMock()

        hooks.register_hook("task_claimed", callback)
        hooks.trigger_hooks("task_claimed", task_id="TASK-1")

        callback.assert_called_once_with(task_id="TASK-1")

    def test_unregister_hook(self):
        """Test that unregistered hooks are no longer called."""
        hooks = ObservabilityHooks()
        callback = MagicMock()
        hooks.register_hook("task_claimed", callback)

        hooks.unregister_hook("task_claimed", callback)
        hooks.trigger_hooks("task_claimed", task_id="TASK-1")

        callback.assert_not_called()

    def test_log_task_event(self):
        """Test that task events carry a timestamp and the task ID."""
        hooks = ObservabilityHooks()
        callback = MagicMock()
        hooks.register_hook("task_moved", callback)

        hooks.log_task_event("task_moved", "TASK-1", to_partition="done")

        kwargs = callback.call_args.kwargs
        assert kwargs["task_id"] == "TASK-1"
        assert kwargs["to_partition"] == "done"
        assert "timestamp" in kwargs

    def test_hook_failure_handling(self):
        """Test that a failing hook does not stop the others."""
        hooks = ObservabilityHooks()
        after = MagicMock()

        def failing_callback(**data):
            raise ValueError("Hook failed")

        hooks.register_hook("task_created", failing_callback)
        hooks.register_hook("task_created", after)

        hooks.trigger_hooks("task_created", task_id="TASK-1")

        after.assert_called_once()


class TestLogErrorWithContext:
    """Test cases for log_error_with_context."""

    def test_log_error_with_context(self):
        """Test that errors are logged with their context."""
        with patch("agentic_tasks.task_logging.std_logging.getLogger") as mock_logger:
            error = ValueError("Test error")

            log_error_with_context(error, {"operation": "claim_task", "task_id": "TASK-1"}, attempt=1)

        call_args = mock_logger.return_value.error.call_args
        assert "claim_task" in call_args.args[0]
        extra = call_args.kwargs["extra"]["extra_fields"]
        assert extra["error_type"] == "ValueError"
        assert extra["context"]["task_id"] == "TASK-1"
        assert extra["attempt"] == 1


class TestSetupLogging:
    """Test cases for setup_logging."""

    def test_setup_logging_writes_json_file(self, tmp_path, restore_root_logger):
        """Test that the file handler writes one JSON object per line."""
        log_file = tmp_path / "logs" / "tasks.log"

        setup_logging(log_level=logging.DEBUG, log_file=log_file)
        logging.getLogger(f"{ROOT_LOGGER}.test").info("Test message")

        content = log_file.read_text(encoding="utf-8")
        assert "Test message" in content
        for line in content.strip().splitlines():
            json.loads(line)

    def test_level_from_environment(self, monkeypatch, restore_root_logger):
        """Test that AGENTIC_LOG_LEVEL sets the level."""
        monkeypatch.setenv("AGENTIC_LOG_LEVEL", "warning")

        setup_logging()

        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1
