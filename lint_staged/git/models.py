"""Git repository data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class GitRepoInfo:
    """Location of a git repository.

    Attributes:
        git_dir: Absolute path of the working tree root
        git_config_dir: Absolute path of the ``.git`` directory (or the
            worktree's git dir), where temporary files are kept
    """

    git_dir: str
    git_config_dir: str
