"""Git collaborators and the partial-staging workflow.

Example:
    >>> from lint_staged.git import resolve_git_repo, get_staged_files
    >>> repo = await resolve_git_repo(Path.cwd())
    >>> files = await get_staged_files(repo.git_dir)
"""

from lint_staged.git.commands import exec_git
from lint_staged.git.models import GitRepoInfo
from lint_staged.git.repository import get_diff_command, get_staged_files, has_initial_commit, resolve_git_repo
from lint_staged.git.workflow import GitWorkflow

__all__ = [
    "GitRepoInfo",
    "GitWorkflow",
    "exec_git",
    "get_diff_command",
    "get_staged_files",
    "has_initial_commit",
    "resolve_git_repo",
]
