"""Enumerations for lint-staged error markers."""

from enum import Enum


class ErrorKind(str, Enum):
    """Markers collected in ``RunContext.errors``.

    These are not exception types. Phases add one or more markers when they
    fail, and later phases inspect the set to decide whether to run, skip or
    revert. The presence of any marker means the run is failing.
    """

    TASK_ERROR = "TaskError"
    GIT_ERROR = "GitError"
    GET_STAGED_FILES_ERROR = "GetStagedFilesError"
    CONFIG_NOT_FOUND_ERROR = "ConfigNotFoundError"
    GIT_REPO_ERROR = "GitRepoError"

    # Refinements of GIT_ERROR, always added alongside it
    APPLY_EMPTY_COMMIT_ERROR = "ApplyEmptyCommitError"
    GET_BACKUP_STASH_ERROR = "GetBackupStashError"
    HIDE_UNSTAGED_CHANGES_ERROR = "HideUnstagedChangesError"
    RESTORE_MERGE_STATUS_ERROR = "RestoreMergeStatusError"
    RESTORE_ORIGINAL_STATE_ERROR = "RestoreOriginalStateError"
    RESTORE_UNSTAGED_CHANGES_ERROR = "RestoreUnstagedChangesError"

    def __str__(self) -> str:
        return self.value
