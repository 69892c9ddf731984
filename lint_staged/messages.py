"""User-facing messages."""

from __future__ import annotations

ERROR = "✖"
INFO = "→"
WARNING = "⚠"

NOT_GIT_REPO = f"{ERROR} Current directory is not a git directory!"

FAILED_GET_STAGED_FILES = f"{ERROR} Failed to get staged files!"

NO_STAGED_FILES = f"{INFO} No staged files found."

NO_TASKS = f"{INFO} No staged files match any configured task."

NO_CONFIGURATION = f"{ERROR} No valid configuration found."

DEPRECATED_GIT_ADD = (
    f"{WARNING} Some of your tasks use `git add` command. Please remove it from the config since all "
    "modifications made by tasks will be automatically added to the git commit index.\n"
)

TASK_ERROR = "Skipped because of errors from tasks."

SKIPPED_GIT_ERROR = "Skipped because of previous git error."

GIT_ERROR = f"\n  {ERROR} lint-staged failed due to a git error."

PREVENTED_EMPTY_COMMIT = (
    f"\n  {WARNING} lint-staged prevented an empty git commit.\n"
    "  Use the --allow-empty option to continue, or check your task configuration\n"
)

RESTORE_STASH_EXAMPLE = """  Any lost modifications can be restored from a git stash:

    > git stash list
    stash@{0}: lint-staged automatic backup
    > git stash apply --index stash@{0}
"""

BACKUP_KEPT = f"{WARNING} The lint-staged backup stash was kept because reverting to the original state failed."


def skipping_backup(has_initial_commit: bool, diff: str | None) -> str:
    """Explain why no backup stash will be created."""
    if diff is not None:
        reason = "`--diff` was used"
    elif has_initial_commit:
        reason = "`--no-stash` was used"
    else:
        reason = "there's no initial commit yet"
    return f"{WARNING} Skipping backup because {reason}.\n"


def files_title(prefix: str, count: int) -> str:
    """Title a task or group with its file count."""
    return f"{prefix} — {count} {'file' if count == 1 else 'files'}"
