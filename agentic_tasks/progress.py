"""Progress log written when tasks are completed.

Entries go to two files: a human-readable markdown ``progress.txt`` and a
machine-readable ``progress.yaml`` list.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List

import yaml

from .codec import atomic_write_text
from .errors import StorageError
from .models import ProgressEntry

logger = logging.getLogger("agentic_tasks.progress")

PATTERNS_HEADING = "## Codebase Patterns"


class ProgressWriter:
    """Append completion entries to progress.txt and progress.yaml."""

    def __init__(self, text_path: Path | str, yaml_path: Path | str):
        self.text_path = Path(text_path)
        self.yaml_path = Path(yaml_path)

    def append_entry(self, entry: ProgressEntry) -> None:
        """Append an entry to both files."""
        try:
            self.text_path.parent.mkdir(parents=True, exist_ok=True)
            self.yaml_path.parent.mkdir(parents=True, exist_ok=True)
            self._append_to_text_file(entry)
        except OSError as e:
            raise StorageError(f"Could not append to {self.text_path}: {e}") from e

        entries = self.get_all_entries()
        entries.append(entry)
        content = yaml.safe_dump(
            [item.to_dict() for item in entries],
            sort_keys=False,
            allow_unicode=True,
        )
        try:
            atomic_write_text(self.yaml_path, content)
        except OSError as e:
            raise StorageError(f"Could not write {self.yaml_path}: {e}") from e

        logger.info(f"Recorded progress for {entry.story_id}")

    def _initialize_text_file(self) -> None:
        if self.text_path.exists():
            return
        started = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.text_path.write_text(f"# Progress Log\n\nStarted: {started}\n\n---\n", encoding="utf-8")

    def _append_to_text_file(self, entry: ProgressEntry) -> None:
        self._initialize_text_file()

        lines = ["", f"## {entry.timestamp} - {entry.story_id}"]
        if entry.thread_url:
            lines.append(f"Thread: {entry.thread_url}")
        lines.append(f"**{entry.title}**")
        lines.append("")
        if entry.files_changed:
            lines.append("**Files Changed:**")
            lines.extend(f"- {path}" for path in entry.files_changed)
            lines.append("")
        if entry.learnings:
            lines.append("**Learnings for future iterations:**")
            lines.extend(f"- {learning}" for learning in entry.learnings)
        lines.append("---")

        with self.text_path.open("a", encoding="utf-8") as handle:
            handle.write("\n".join(lines) + "\n")

    def _read_text(self) -> str:
        try:
            return self.text_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read {self.text_path}: {e}") from e

    def get_all_entries(self) -> List[ProgressEntry]:
        """Read every entry from progress.yaml."""
        try:
            content = self.yaml_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read {self.yaml_path}: {e}") from e

        try:
            data = yaml.safe_load(content) or []
        except yaml.YAMLError as e:
            raise StorageError(f"Corrupt progress file {self.yaml_path}: {e}") from e
        if not isinstance(data, list):
            raise StorageError(f"Corrupt progress file {self.yaml_path}: expected a list")
        return [ProgressEntry.from_dict(item) for item in data if isinstance(item, dict)]

    def get_entries_by_file(self, file_path: str) -> List[ProgressEntry]:
        """Entries whose changed files mention ``file_path``."""
        return [
            entry
            for entry in self.get_all_entries()
            if any(file_path == changed or file_path in changed for changed in entry.files_changed)
        ]

    def get_codebase_patterns(self) -> List[str]:
        """Bullet items under the Codebase Patterns heading of progress.txt."""
        if not self.text_path.exists():
            return []

        patterns: List[str] = []
        in_section = False
        for raw in self._read_text().splitlines():
            line = raw.strip()
            if line == PATTERNS_HEADING:
                in_section = True
                continue
            if in_section and line.startswith("##"):
                break
            if in_section and line.startswith("- "):
                pattern = line[2:].strip()
                if pattern:
                    patterns.append(pattern)
        return patterns

    def add_codebase_pattern(self, pattern: str) -> None:
        """Add a bullet to the Codebase Patterns section, creating it if needed."""
        self.text_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_text_file()
        lines = self._read_text().split("\n")

        heading_idx = -1
        end_idx = -1
        for idx, raw in enumerate(lines):
            line = raw.strip()
            if line == PATTERNS_HEADING:
                heading_idx = idx
            elif heading_idx != -1 and line.startswith("##"):
                end_idx = idx
                break

        if heading_idx == -1:
            # New section goes right after the three header lines.
            header_end = min(3, len(lines))
            lines[header_end:header_end] = ["", PATTERNS_HEADING, f"- {pattern}", ""]
        else:
            section_end = end_idx if end_idx != -1 else len(lines)
            insert_idx = heading_idx + 1
            for idx in range(heading_idx + 1, section_end):
                if lines[idx].strip().startswith("- "):
                    insert_idx = idx + 1
            lines.insert(insert_idx, f"- {pattern}")

        atomic_write_text(self.text_path, "\n".join(lines))
