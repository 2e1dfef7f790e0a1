"""Unit tests for the best-effort git helpers."""

import subprocess
from unittest.mock import patch

from agentic_tasks import gitinfo


def _completed(stdout):
    return subprocess.CompletedProcess(args=["git"], returncode=0, stdout=stdout, stderr="")


class TestGitInfo:
    """Test cases for git metadata helpers."""

    def test_current_branch(self):
        with patch("agentic_tasks.gitinfo.subprocess.run", return_value=_completed("main\n")) as run:
            assert gitinfo.current_branch() == "main"

        assert run.call_args.args[0] == ["git", "rev-parse", "--abbrev-ref", "HEAD"]

    def test_git_missing(self):
        with patch("agentic_tasks.gitinfo.subprocess.run", side_effect=FileNotFoundError("git")):
            assert gitinfo.current_branch() == ""
            assert gitinfo.commits_since("2026-01-01T00:00:00Z") == []

    def test_not_a_repository(self):
        error = subprocess.CalledProcessError(128, ["git"], stderr="not a git repository")
        with patch("agentic_tasks.gitinfo.subprocess.run", side_effect=error):
            assert gitinfo.files_changed_since("2026-01-01T00:00:00Z") == []

    def test_commits_since(self):
        with patch("agentic_tasks.gitinfo.subprocess.run", return_value=_completed("abc\n\ndef\n")) as run:
            assert gitinfo.commits_since("2026-01-01T00:00:00Z") == ["abc", "def"]

        assert "--since=2026-01-01T00:00:00Z" in run.call_args.args[0]

    def test_empty_since_skips_git(self):
        with patch("agentic_tasks.gitinfo.subprocess.run") as run:
            assert gitinfo.commits_since("") == []

        run.assert_not_called()

    def test_files_changed_are_unique(self):
        output = "a.py\nb.py\n\na.py\n"
        with patch("agentic_tasks.gitinfo.subprocess.run", return_value=_completed(output)):
            assert gitinfo.files_changed_since("2026-01-01T00:00:00Z") == ["a.py", "b.py"]
