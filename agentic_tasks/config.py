"""Configuration for the task store.

Settings come from an optional ``agnostic-agent.yaml`` at the project root,
then environment variables, then the defaults below.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ValidationError

logger = logging.getLogger("agentic_tasks.config")

CONFIG_FILENAME = "agnostic-agent.yaml"
PROJECT_MARKER_DIRECTORY = ".agentic"

PROJECT_ROOT_ENV = "AGENTIC_PROJECT_ROOT"
TASKS_DIR_ENV = "AGENTIC_TASKS_DIR"
LOCK_TIMEOUT_ENV = "AGENTIC_LOCK_TIMEOUT"

DEFAULT_TASKS_DIR = ".agentic/tasks"
DEFAULT_PROGRESS_TEXT = ".agentic/progress.txt"
DEFAULT_PROGRESS_YAML = ".agentic/progress.yaml"
DEFAULT_SPEC_DIRS = (".agentic/spec",)
DEFAULT_LOCK_TIMEOUT = 10.0


@dataclass(slots=True)
class TaskConfig:
    """Resolved settings for one project checkout."""

    project_root: Path
    project_name: str = ""
    tasks_dir: Path = Path(DEFAULT_TASKS_DIR)
    progress_text_path: Path = Path(DEFAULT_PROGRESS_TEXT)
    progress_yaml_path: Path = Path(DEFAULT_PROGRESS_YAML)
    spec_dirs: List[Path] = field(default_factory=lambda: [Path(d) for d in DEFAULT_SPEC_DIRS])
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    capture_git: bool = True

    def __post_init__(self) -> None:
        self.project_root = Path(self.project_root).resolve()
        if not self.project_name:
            self.project_name = self.project_root.name
        self.tasks_dir = self._absolute(self.tasks_dir)
        self.progress_text_path = self._absolute(self.progress_text_path)
        self.progress_yaml_path = self._absolute(self.progress_yaml_path)
        self.spec_dirs = [self._absolute(d) for d in self.spec_dirs]

    def _absolute(self, path: Path | str) -> Path:
        path = Path(path).expanduser()
        return path if path.is_absolute() else self.project_root / path

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "project_root": str(self.project_root),
            "project_name": self.project_name,
            "tasks_dir": str(self.tasks_dir),
            "progress_text_path": str(self.progress_text_path),
            "progress_yaml_path": str(self.progress_yaml_path),
            "spec_dirs": [str(d) for d in self.spec_dirs],
            "lock_timeout": self.lock_timeout,
            "capture_git": self.capture_git,
        }


def _candidate_bases(start: Path) -> List[Path]:
    start = start.resolve()
    return [start, *start.parents]


def locate_project_root(start: Optional[Path] = None) -> Optional[Path]:
    """Walk up from ``start`` looking for ``.agentic/`` or the config file."""
    for base in _candidate_bases(start or Path.cwd()):
        if (base / PROJECT_MARKER_DIRECTORY).is_dir() or (base / CONFIG_FILENAME).is_file():
            return base
    return None


def resolve_project_root(root: Optional[str] = None) -> Path:
    """Pick the project root from an explicit argument, the environment, or discovery."""
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValidationError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(PROJECT_ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValidationError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    detected_root = locate_project_root()
    if detected_root:
        return detected_root

    raise ValidationError(
        "Unable to determine project root automatically. Provide the 'root' argument "
        f"or set the {PROJECT_ROOT_ENV} environment variable."
    )


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError(f"Config file {path} must contain a mapping")
    return data


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValidationError(f"Config section '{name}' must be a mapping")
    return value


def _parse_timeout(value: Any, source: str) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{source} must be a number, got {value!r}") from None
    if timeout <= 0:
        raise ValidationError(f"{source} must be positive, got {value!r}")
    return timeout


def load_config(project_root: Path | str) -> TaskConfig:
    """Load settings for ``project_root``."""
    root = Path(project_root).resolve()
    data = _read_config_file(root / CONFIG_FILENAME)
    project = _section(data, "project")
    paths = _section(data, "paths")
    tasks = _section(data, "tasks")

    config = TaskConfig(
        project_root=root,
        project_name=str(project.get("name") or ""),
        tasks_dir=Path(os.getenv(TASKS_DIR_ENV) or paths.get("tasksDir") or DEFAULT_TASKS_DIR),
        progress_text_path=Path(paths.get("progressTextPath") or DEFAULT_PROGRESS_TEXT),
        progress_yaml_path=Path(paths.get("progressYAMLPath") or DEFAULT_PROGRESS_YAML),
        spec_dirs=[Path(d) for d in (paths.get("specDirs") or DEFAULT_SPEC_DIRS)],
        lock_timeout=_parse_timeout(
            os.getenv(LOCK_TIMEOUT_ENV) or tasks.get("lockTimeout") or DEFAULT_LOCK_TIMEOUT,
            "lock timeout",
        ),
        capture_git=bool(tasks.get("captureGit", True)),
    )
    logger.debug(f"Loaded task config for {root}: tasks_dir={config.tasks_dir}")
    return config
