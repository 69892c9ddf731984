"""Repository discovery and staged file listing.

Repository discovery uses GitPython; the calls are synchronous, so they are
run in a worker thread to keep the event loop responsive.
"""

import asyncio
import os
from pathlib import Path

import git
import structlog
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from lint_staged.engine.matcher import normalize_path
from lint_staged.exceptions import GitCommandError
from lint_staged.git.commands import exec_git
from lint_staged.git.models import GitRepoInfo

log = structlog.get_logger(__name__)


def _discover(cwd: Path) -> GitRepoInfo | None:
    try:
        repo = git.Repo(cwd, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return None
    try:
        if repo.working_tree_dir is None:
            # Bare repositories have nothing to lint
            return None
        return GitRepoInfo(
            git_dir=normalize_path(str(repo.working_tree_dir)),
            git_config_dir=normalize_path(os.path.abspath(repo.git_dir)),
        )
    finally:
        repo.close()


async def resolve_git_repo(cwd: Path | str | None = None) -> GitRepoInfo | None:
    """Find the repository containing ``cwd``.

    Args:
        cwd: Any directory inside the working tree. Defaults to the process cwd.

    Returns:
        GitRepoInfo, or None when ``cwd`` is not inside a git working tree
    """
    path = Path(cwd or os.getcwd()).resolve()
    info = await asyncio.to_thread(_discover, path)
    log.debug("git_repo_resolved", cwd=str(path), git_dir=info.git_dir if info else None)
    return info


def _head_is_valid(git_dir: str) -> bool:
    repo = git.Repo(git_dir)
    try:
        return repo.head.is_valid()
    finally:
        repo.close()


async def has_initial_commit(git_dir: str) -> bool:
    """Whether HEAD points at a commit. A backup stash needs one."""
    try:
        return await asyncio.to_thread(_head_is_valid, git_dir)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False


def get_diff_command(diff: str | None = None, diff_filter: str | None = None) -> list[str]:
    """Build the ``git diff`` arguments listing files to lint.

    Args:
        diff: Custom diff arguments (e.g. ``"main...HEAD"``). Defaults to ``--staged``.
        diff_filter: ``--diff-filter`` value. Defaults to ``ACMR``.
    """
    diff_args = diff.strip().split(" ") if diff else ["--staged"]
    diff_filter_arg = diff_filter.strip() if diff_filter is not None else "ACMR"
    return ["diff", "--name-only", "-z", f"--diff-filter={diff_filter_arg}", *diff_args]


async def get_staged_files(
    cwd: str,
    diff: str | None = None,
    diff_filter: str | None = None,
) -> list[str] | None:
    """List staged files as absolute paths.

    Args:
        cwd: Repository root
        diff: Custom diff arguments
        diff_filter: Custom diff filter

    Returns:
        Absolute, normalized paths, or None if git failed
    """
    try:
        lines = await exec_git(get_diff_command(diff, diff_filter), cwd=cwd)
    except GitCommandError as e:
        log.debug("staged_files_failed", error=str(e))
        return None
    files = [normalize_path(os.path.join(cwd, file)) for file in lines.split("\0") if file]
    log.debug("staged_files_loaded", count=len(files))
    return files
