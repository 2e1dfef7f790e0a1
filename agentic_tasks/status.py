"""Project status dashboard data."""

from __future__ import annotations

import logging
from typing import Optional

from .config import TaskConfig
from .errors import StorageError
from .models import BACKLOG, DONE, IN_PROGRESS, ProjectStatus
from .progress import ProgressWriter
from .readiness import can_claim_task
from .store import TaskStore

logger = logging.getLogger("agentic_tasks.status")

RECENT_ENTRY_LIMIT = 5


def gather_status(
    store: TaskStore,
    config: TaskConfig,
    progress: Optional[ProgressWriter] = None,
) -> ProjectStatus:
    """Collect counts, the next ready task, blockers and recent progress."""
    backlog = store.load_tasks(BACKLOG)
    in_progress = store.load_tasks(IN_PROGRESS)
    done = store.load_tasks(DONE)

    status = ProjectStatus(
        project_name=config.project_name,
        backlog_count=len(backlog),
        in_progress_count=len(in_progress),
        done_count=len(done),
        in_progress_tasks=in_progress,
        backlog_tasks=backlog,
    )

    for task in backlog:
        result = can_claim_task(task, config)
        if result.ready:
            if status.next_ready is None:
                status.next_ready = task
            continue
        status.blockers.extend(
            f"{task.id}: {check.message}" for check in result.checks if not check.passed
        )

    if progress is not None:
        try:
            entries = progress.get_all_entries()
        except StorageError as e:
            # The dashboard still renders without history.
            logger.warning(f"Skipping progress entries: {e}")
            entries = []
        status.recent_entries = entries[-RECENT_ENTRY_LIMIT:]

    return status
