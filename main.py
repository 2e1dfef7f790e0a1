"""MCP server exposing the agentic task store."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.resources import TextResource

from agentic_tasks import (
    PARTITIONS,
    TaskWorkflow,
    ValidationError,
    resolve_project_root,
)
from agentic_tasks.task_logging import setup_logging

mcp = FastMCP("agentic-tasks")


def _workflow(root: Optional[str]) -> TaskWorkflow:
    return TaskWorkflow(resolve_project_root(root))


def _call(root: Optional[str], method: str, *args: Any, **kwargs: Any) -> Dict[str, Any]:
    try:
        workflow = _workflow(root)
    except ValidationError as e:
        return {
            "error": str(e),
            "error_type": type(e).__name__,
            "suggestion": "Pass the 'root' argument or set AGENTIC_PROJECT_ROOT",
            "next_suggested_step": method,
        }
    return getattr(workflow, method)(*args, **kwargs)


@mcp.tool()
def create_task(
    title: str,
    description: str = "",
    acceptance: Optional[List[str]] = None,
    scope: Optional[List[str]] = None,
    spec_refs: Optional[List[str]] = None,
    skill_refs: Optional[List[str]] = None,
    inputs: Optional[List[str]] = None,
    outputs: Optional[List[str]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a pending task at the end of the backlog."""
    return _call(
        root,
        "create_task",
        title,
        description=description,
        acceptance=acceptance,
        scope=scope,
        spec_refs=spec_refs,
        skill_refs=skill_refs,
        inputs=inputs,
        outputs=outputs,
    )


@mcp.tool()
def list_tasks(partition: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """List tasks in one partition (backlog, in-progress, done) or in all of them."""
    return _call(root, "list_tasks", partition)


@mcp.tool()
def show_task(task_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Show a task or subtask and the partition it lives in."""
    return _call(root, "show_task", task_id)


@mcp.tool()
def claim_task(
    task_id: str,
    claimant: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Claim a backlog task and move it to in-progress.
    Failed readiness checks (missing inputs, unresolved spec refs) are returned as warnings."""
    return _call(root, "claim_task", task_id, claimant=claimant)


@mcp.tool()
def complete_task(
    task_id: str,
    learnings: Optional[List[str]] = None,
    files_changed: Optional[List[str]] = None,
    thread_url: str = "",
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Move an in-progress task to done and append an entry to the progress log."""
    return _call(
        root,
        "complete_task",
        task_id,
        learnings=learnings,
        files_changed=files_changed,
        thread_url=thread_url,
    )


@mcp.tool()
def move_task(
    task_id: str,
    from_partition: str,
    to_partition: str,
    status: str,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Move a task between partitions along a legal lifecycle edge."""
    return _call(root, "move_task", task_id, from_partition, to_partition, status)


@mcp.tool()
def decompose_task(task_id: str, subtasks: List[str], root: Optional[str] = None) -> Dict[str, Any]:
    """Append pending subtasks to a backlog or in-progress task."""
    return _call(root, "decompose_task", task_id, subtasks)


@mcp.tool()
def decompose_for_tdd(task_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Add RED, GREEN and REFACTOR subtasks to a backlog or in-progress task."""
    return _call(root, "decompose_for_tdd", task_id)


@mcp.tool()
def update_task(task_id: str, fields: Dict[str, Any], root: Optional[str] = None) -> Dict[str, Any]:
    """Edit descriptive fields (title, description, acceptance, scope, ...) of a task."""
    return _call(root, "update_task", task_id, fields)


@mcp.tool()
def next_task(root: Optional[str] = None) -> Dict[str, Any]:
    """Return the first backlog task that passes readiness checks."""
    return _call(root, "next_task")


@mcp.tool()
def project_status(root: Optional[str] = None) -> Dict[str, Any]:
    """Counts per partition, completion percentage, blockers and recent progress."""
    return _call(root, "project_status")


@mcp.tool()
def add_codebase_pattern(pattern: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Record a reusable codebase pattern in the progress log."""
    return _call(root, "add_codebase_pattern", pattern)


@mcp.tool()
def import_plan(plan_path: str, track_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Create one backlog task per phase of a plan.md file."""
    return _call(root, "import_plan", plan_path, track_id)


@mcp.tool()
def repair_tasks(root: Optional[str] = None) -> Dict[str, Any]:
    """Remove stale duplicate task copies left by an interrupted transition."""
    return _call(root, "repair_tasks")


TASKS_RESOURCE_URI = "agentic://tasks"


def _text_resource(text: str) -> TextResource:
    return TextResource(uri=TASKS_RESOURCE_URI, name="tasks", text=text, mime_type="text/plain")


@mcp.resource(TASKS_RESOURCE_URI)
def resource_tasks():
    """Resource view of the task board for discovery."""

    try:
        workflow = _workflow(None)
    except ValidationError:
        return _text_resource(
            "No project root detected. Launch tools with a 'root' argument or set AGENTIC_PROJECT_ROOT."
        )

    listing = workflow.list_tasks()
    if "error" in listing:
        return _text_resource(f"Unable to read tasks: {listing['error']}")

    lines = ["Agentic Tasks"]
    for partition in PARTITIONS:
        tasks = listing["tasks"][partition]
        lines.append("")
        lines.append(f"{partition} ({len(tasks)})")
        for task in tasks:
            owner = f" [{task['assigned_to']}]" if task.get("assigned_to") else ""
            lines.append(f"- {task['id']}: {task['title']}{owner}")

    return _text_resource("\n".join(lines))


if __name__ == "__main__":
    setup_logging()
    mcp.run(transport="stdio")
