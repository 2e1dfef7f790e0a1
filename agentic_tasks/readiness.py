"""Readiness checks run before a task is claimed."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config import TaskConfig
from .models import ReadinessCheck, ReadinessResult, Task


def resolve_spec_ref(ref: str, config: TaskConfig) -> Optional[Path]:
    """Find a spec file by trying the project root, then each spec directory."""
    candidates = [config.project_root / ref]
    candidates.extend(spec_dir / ref for spec_dir in config.spec_dirs)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def can_claim_task(task: Task, config: TaskConfig) -> ReadinessResult:
    """Check inputs, spec refs and scope directories for a task.

    Missing inputs and unresolvable spec refs make the task not ready.
    A missing scope directory is reported without affecting readiness.
    """
    result = ReadinessResult(task_id=task.id)

    for item in task.inputs:
        if (config.project_root / item).exists():
            result.checks.append(ReadinessCheck("input-exists", True, f"input file '{item}' exists"))
        else:
            result.checks.append(ReadinessCheck("input-exists", False, f"input file '{item}' not found"))
            result.ready = False

    for ref in task.spec_refs:
        resolved = resolve_spec_ref(ref, config)
        if resolved:
            result.checks.append(ReadinessCheck("spec-resolvable", True, f"spec '{ref}' resolved at {resolved}"))
        else:
            result.checks.append(
                ReadinessCheck("spec-resolvable", False, f"spec '{ref}' not found in any spec directory")
            )
            result.ready = False

    for directory in task.scope:
        if (config.project_root / directory).is_dir():
            result.checks.append(ReadinessCheck("scope-exists", True, f"scope directory '{directory}' exists"))
        else:
            result.checks.append(
                ReadinessCheck("scope-exists", False, f"scope directory '{directory}' not found (warning only)")
            )

    return result


def format_readiness_result(result: ReadinessResult) -> str:
    """Render readiness checks as plain text."""
    lines = [f"Task {result.task_id}: {'READY' if result.ready else 'NOT READY'}"]
    for check in result.checks:
        icon = "+" if check.passed else "-"
        lines.append(f"  [{icon}] {check.name}: {check.message}")
    return "\n".join(lines) + "\n"
