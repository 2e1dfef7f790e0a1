"""Plan files: markdown phases of checkbox items, turned into backlog tasks.

A plan looks like::

    # Plan: Authentication
    ## Phase 1: Login
    - [x] Design the form
    - [~] Wire the endpoint
    - [ ] Write tests
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .errors import StorageError, ValidationError
from .models import Task, TaskStatus
from .task_logging import log_operation

if TYPE_CHECKING:
    from .manager import TaskManager

logger = logging.getLogger("agentic_tasks.plans")

_TITLE_PATTERN = re.compile(r"^#\s+(?P<title>.+)$")
_PHASE_PATTERN = re.compile(r"^##\s+(?P<name>.+)$")
_ITEM_PATTERN = re.compile(r"^-\s\[(?P<mark>[ xX~])\]\s*(?P<title>.*)$")

_MARK_STATUS = {
    " ": TaskStatus.PENDING,
    "x": TaskStatus.DONE,
    "X": TaskStatus.DONE,
    "~": TaskStatus.IN_PROGRESS,
}


@dataclass(slots=True)
class PlanItem:
    title: str
    status: TaskStatus
    line: int

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "status": self.status.value, "line": self.line}


@dataclass(slots=True)
class PlanPhase:
    name: str
    items: List[PlanItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "items": [item.to_dict() for item in self.items]}


@dataclass(slots=True)
class Plan:
    """A parsed plan.md file."""

    title: str = ""
    phases: List[PlanPhase] = field(default_factory=list)
    path: str = ""

    def next_item(self) -> Optional[PlanItem]:
        """First pending item across all phases."""
        for phase in self.phases:
            for item in phase.items:
                if item.status == TaskStatus.PENDING:
                    return item
        return None

    def progress(self) -> tuple[int, int]:
        """Return (done, total) item counts."""
        items = [item for phase in self.phases for item in phase.items]
        return sum(1 for item in items if item.status == TaskStatus.DONE), len(items)

    def to_dict(self) -> Dict[str, Any]:
        done, total = self.progress()
        return {
            "title": self.title,
            "path": self.path,
            "phases": [phase.to_dict() for phase in self.phases],
            "done": done,
            "total": total,
        }


def parse_plan(content: str, *, path: str = "") -> Plan:
    """Parse plan markdown. Checkbox lines before the first phase are ignored."""
    plan = Plan(path=path)
    current: Optional[PlanPhase] = None

    for line_number, raw in enumerate(content.splitlines(), start=1):
        line = raw.strip()

        phase_match = _PHASE_PATTERN.match(line)
        if phase_match:
            current = PlanPhase(name=phase_match.group("name").strip())
            plan.phases.append(current)
            continue

        title_match = _TITLE_PATTERN.match(line)
        if title_match:
            title = title_match.group("title").strip()
            plan.title = title.removeprefix("Plan: ")
            continue

        if current is None:
            continue
        item_match = _ITEM_PATTERN.match(line)
        if item_match:
            current.items.append(
                PlanItem(
                    title=item_match.group("title").strip(),
                    status=_MARK_STATUS[item_match.group("mark")],
                    line=line_number,
                )
            )

    return plan


def parse_plan_file(path: Path | str) -> Plan:
    """Read and parse a plan file."""
    plan_path = Path(path)
    try:
        content = plan_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ValidationError(f"Plan file not found: {plan_path}") from None
    except OSError as e:
        raise StorageError(f"Could not read plan {plan_path}: {e}") from e
    return parse_plan(content, path=str(plan_path))


def decompose_from_plan(manager: "TaskManager", plan_path: Path | str, track_id: str) -> List[Task]:
    """Create one backlog task per non-empty plan phase, linked to ``track_id``."""
    if not track_id or not track_id.strip():
        raise ValidationError("Track ID cannot be empty")

    plan = parse_plan_file(plan_path)
    if not plan.phases:
        raise ValidationError(f"Plan {plan_path} has no phases")

    created: List[Task] = []
    with log_operation("decompose_from_plan", plan=str(plan_path), track_id=track_id):
        for phase in plan.phases:
            if not phase.items:
                continue
            description = f"Phase from track {track_id}:\n" + "".join(
                f"- {item.title}\n" for item in phase.items
            )
            task = manager.create_task(
                f"[{track_id}] {phase.name}",
                description=description,
                acceptance=[item.title for item in phase.items],
                track_id=track_id,
            )
            created.append(task)

    logger.info(f"Created {len(created)} tasks from plan {plan_path}")
    return created
