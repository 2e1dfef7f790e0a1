"""Best-effort git metadata for claimed and completed tasks.

Outside a repository, or without a git binary, every helper returns an
empty value instead of raising.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("agentic_tasks.gitinfo")

GIT_TIMEOUT_SECONDS = 5


def _run_git(args: List[str], cwd: Optional[Path]) -> Optional[str]:
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"git {' '.join(args)} unavailable: {e}")
        return None
    return completed.stdout


def current_branch(cwd: Optional[Path] = None) -> str:
    """Return the checked-out branch name, or an empty string."""
    out = _run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd)
    return out.strip() if out else ""


def commits_since(since: str, cwd: Optional[Path] = None) -> List[str]:
    """Return non-merge commit hashes made since an ISO timestamp."""
    if not since:
        return []
    out = _run_git(["log", f"--since={since}", "--format=%H", "--no-merges"], cwd)
    if not out:
        return []
    return [line.strip() for line in out.splitlines() if line.strip()]


def files_changed_since(since: str, cwd: Optional[Path] = None) -> List[str]:
    """Return unique file paths touched by commits since an ISO timestamp."""
    if not since:
        return []
    out = _run_git(["log", f"--since={since}", "--name-only", "--format=", "--no-merges"], cwd)
    if not out:
        return []
    seen: List[str] = []
    for line in out.splitlines():
        line = line.strip()
        if line and line not in seen:
            seen.append(line)
    return seen
