"""Pytest configuration and shared fixtures."""

import os
import subprocess
from pathlib import Path

import pytest


class RecordingLogger:
    """Logger that keeps every line it is given, per level."""

    def __init__(self) -> None:
        self.lines: list[tuple[str, str]] = []

    def log(self, message: str) -> None:
        self.lines.append(("log", message))

    def info(self, message: str) -> None:
        self.lines.append(("info", message))

    def warn(self, message: str) -> None:
        self.lines.append(("warn", message))

    def error(self, message: str) -> None:
        self.lines.append(("error", message))

    def messages(self, level: str | None = None) -> list[str]:
        return [message for lvl, message in self.lines if level is None or lvl == level]

    @property
    def text(self) -> str:
        return "\n".join(self.messages())


def git(cwd: Path, *args: str) -> str:
    """Run git in a test repository and return its stdout."""
    result = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)
    return result.stdout


@pytest.fixture(autouse=True)
def clean_lint_staged_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep LINT_STAGED_* variables of the developer's shell out of tests."""
    for name in list(os.environ):
        if name.upper().startswith("LINT_STAGED_"):
            monkeypatch.delenv(name)


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def run_git():
    """The ``git`` helper, for tests that drive a repository themselves."""
    return git


@pytest.fixture
def empty_repo(tmp_path: Path) -> Path:
    """Git repository without any commit."""
    repo = (tmp_path / "repo").resolve()
    repo.mkdir()
    git(repo, "init", "--quiet")
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")
    git(repo, "config", "core.autocrlf", "false")
    return repo


@pytest.fixture
def git_repo(empty_repo: Path) -> Path:
    """Git repository with an initial commit of README.md and app.txt."""
    (empty_repo / "README.md").write_text("# Test Repository\n")
    (empty_repo / "app.txt").write_text("one\ntwo\nthree\n")
    git(empty_repo, "add", "README.md", "app.txt")
    git(empty_repo, "commit", "--quiet", "-m", "Initial commit")
    return empty_repo
