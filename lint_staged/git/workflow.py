"""
Partial-staging workflow: keep unstaged changes out of the tasks' way.

Files can be partially staged: some hunks are in the index, others only in
the working tree. Tasks must see exactly what will be committed, and the
developer's unstaged hunks must survive whatever the tasks do. The workflow
runs in strictly sequential phases around task execution:

    prepare -> (tasks) -> apply_modifications -> restore_unstaged_changes -> cleanup
                     \\-> restore_original_state -> cleanup      (on failure)

Snapshot:
    - the unstaged diff of partially staged files, written as a patch to
      ``<git config dir>/lint-staged_unstaged.patch``
    - a backup stash (``lint-staged automatic backup``) of index and working
      tree, created with ``git stash create`` + ``git stash store`` so the
      working tree is left untouched
    - in-memory copies of ``MERGE_HEAD``, ``MERGE_MODE`` and ``MERGE_MSG``,
      which ``git stash`` would otherwise clear during a merge

Until cleanup, the backup stash alone is enough to recover every unstaged
change, whatever happened to the working tree in between.

Error Handling:
    Every phase except cleanup converts failures into ``GitError`` plus a
    phase-specific marker on the run context and raises GitWorkflowError.
    Cleanup logs its failures and never raises.
"""

import os
import re
from collections.abc import Sequence

import aiofiles
import aiofiles.os
import structlog

from lint_staged.engine.context import RunContext
from lint_staged.enums import ErrorKind
from lint_staged.exceptions import GitWorkflowError
from lint_staged.git.commands import exec_git
from lint_staged.git.repository import get_diff_command
from lint_staged.utils.status_reporter import Logger

log = structlog.get_logger(__name__)

MERGE_HEAD = "MERGE_HEAD"
MERGE_MODE = "MERGE_MODE"
MERGE_MSG = "MERGE_MSG"

STASH = "lint-staged automatic backup"

PATCH_UNSTAGED = "lint-staged_unstaged.patch"

GIT_DIFF_ARGS = [
    "--binary",
    "--unified=0",
    "--no-color",
    "--no-ext-diff",
    "--src-prefix=a/",
    "--dst-prefix=b/",
    "--patch",
    "--submodule=short",
]
GIT_APPLY_ARGS = ["-v", "--whitespace=nowarn", "--recount", "--unidiff-zero"]

# Entries of `git status -z` start with a two-letter status and a space
STATUS_ENTRY = re.compile(r"\x00(?=[ AMDRCU?!]{2} |$)")

# In `git status -z` output renames are `to\0from`
RENAME = "\x00"


def process_renames(files: Sequence[str], include_rename_from: bool = True) -> list[str]:
    """Flatten ``to\\0from`` rename entries into separate paths."""
    flattened: list[str] = []
    for file in files:
        if RENAME in file:
            to, from_ = file.split(RENAME, 1)
            if include_rename_from:
                flattened.append(from_)
            flattened.append(to)
        else:
            flattened.append(file)
    return flattened


def parse_partially_staged(status: str) -> list[str]:
    """Extract files with both staged and unstaged changes from ``git status -z``."""
    files = []
    for entry in STATUS_ENTRY.split(status):
        if len(entry) < 3:
            continue
        index, working_tree = entry[0], entry[1]
        if index in " ?" or working_tree in " ?":
            continue
        files.append(entry[3:])
    return files


class GitWorkflow:
    """Hide, restore and revert working tree state around task execution.

    Attributes:
        git_dir: Repository root
        git_config_dir: Git directory, where the patch file is kept
        matched_file_chunks: Files matched by tasks, chunked for ``git add``
        allow_empty: Allow a commit that tasks have emptied
    """

    def __init__(
        self,
        git_dir: str,
        git_config_dir: str,
        matched_file_chunks: Sequence[Sequence[str]],
        allow_empty: bool = False,
        diff: str | None = None,
        diff_filter: str | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.git_dir = git_dir
        self.git_config_dir = git_config_dir
        self.matched_file_chunks = [list(chunk) for chunk in matched_file_chunks]
        self.allow_empty = allow_empty
        self.diff = diff
        self.diff_filter = diff_filter
        self.logger = logger
        self.deleted_files: list[str] = []
        self.merge_status: dict[str, str] = {}
        self.partially_staged_files: list[str] = []
        self.backup_hash: str | None = None

    async def exec_git(self, args: Sequence[str]) -> str:
        return await exec_git(args, cwd=self.git_dir)

    def hidden_filepath(self, filename: str) -> str:
        return os.path.join(self.git_config_dir, filename)

    async def find_backup_stash(self) -> str | None:
        """Return the ``stash@{n}`` reference of the backup stored by this workflow.

        Stashes are matched by commit hash, so backups kept from earlier runs
        are never picked up. None if this workflow stored no backup or it is gone.
        """
        if self.backup_hash is None:
            return None
        stashes = await self.exec_git(["stash", "list", "--format=%H"])
        for index, commit in enumerate(stashes.split("\n")):
            if commit.strip() == self.backup_hash:
                return f"stash@{{{index}}}"
        return None

    async def get_backup_stash(self, ctx: RunContext) -> str:
        stash = await self.find_backup_stash()
        if stash is None:
            ctx.errors.add(ErrorKind.GET_BACKUP_STASH_ERROR)
            raise GitWorkflowError("lint-staged automatic backup is missing!")
        return stash

    async def get_deleted_files(self) -> list[str]:
        """Unstaged deletions, which applying the backup stash would resurrect."""
        ls_files = await self.exec_git(["ls-files", "--deleted"])
        return [os.path.join(self.git_dir, file) for file in ls_files.split("\n") if file]

    async def get_partially_staged_files(self) -> list[str]:
        status = await self.exec_git(["status", "-z"])
        return parse_partially_staged(status)

    async def backup_merge_status(self) -> None:
        """Keep a copy of ongoing merge metadata, which ``git stash`` clears."""
        for name in (MERGE_HEAD, MERGE_MODE, MERGE_MSG):
            path = self.hidden_filepath(name)
            try:
                async with aiofiles.open(path) as f:
                    self.merge_status[name] = await f.read()
            except FileNotFoundError:
                continue
        if self.merge_status:
            log.debug("merge_status_backed_up", files=sorted(self.merge_status))

    async def restore_merge_status(self, ctx: RunContext) -> None:
        try:
            for name, content in self.merge_status.items():
                async with aiofiles.open(self.hidden_filepath(name), "w") as f:
                    await f.write(content)
        except OSError as e:
            ctx.errors.add(ErrorKind.GIT_ERROR)
            ctx.errors.add(ErrorKind.RESTORE_MERGE_STATUS_ERROR)
            raise GitWorkflowError(f"Merge state could not be restored due to an error: {e}") from e

    def _fail(self, error: Exception, ctx: RunContext, kind: ErrorKind | None = None) -> GitWorkflowError:
        ctx.errors.add(ErrorKind.GIT_ERROR)
        if kind is not None:
            ctx.errors.add(kind)
        log.debug("git_workflow_failed", error=str(error), kind=str(kind) if kind else None)
        if isinstance(error, GitWorkflowError):
            return error
        return GitWorkflowError(str(error))

    async def prepare(self, ctx: RunContext) -> None:
        """Snapshot the working tree and hide unstaged changes.

        Sets ``ctx.has_partially_staged_files``. When ``ctx.should_backup``
        is set, the backup stash is stored before anything in the working
        tree is touched.

        Raises:
            GitWorkflowError: With ``GitError`` (and ``HideUnstagedChangesError``
                if hiding failed) recorded on ``ctx``
        """
        try:
            self.partially_staged_files = await self.get_partially_staged_files()
            if self.partially_staged_files:
                ctx.has_partially_staged_files = True
                unstaged_patch = self.hidden_filepath(PATCH_UNSTAGED)
                files = process_renames(self.partially_staged_files)
                await self.exec_git(["diff", *GIT_DIFF_ARGS, "--output", unstaged_patch, "--", *files])
                log.debug("unstaged_changes_saved", files=len(files), patch=unstaged_patch)
            else:
                ctx.has_partially_staged_files = False

            if ctx.should_backup:
                await self.backup_merge_status()
                self.deleted_files = await self.get_deleted_files()
                # `stash create` makes a dangling commit without touching files;
                # `stash store` keeps it as a real stash entry.
                stash_hash = await self.exec_git(["stash", "create"])
                await self.exec_git(["stash", "store", "--quiet", "--message", STASH, stash_hash])
                self.backup_hash = stash_hash
                log.debug("backup_stash_created", hash=stash_hash)
        except Exception as e:
            raise self._fail(e, ctx) from e

        if ctx.has_partially_staged_files:
            await self.hide_unstaged_changes(ctx)

    async def hide_unstaged_changes(self, ctx: RunContext) -> None:
        """Reset partially staged files in the working tree to their staged content."""
        try:
            files = process_renames(self.partially_staged_files, include_rename_from=False)
            await self.exec_git(["checkout", "--force", "--", *files])
        except Exception as e:
            raise self._fail(e, ctx, ErrorKind.HIDE_UNSTAGED_CHANGES_ERROR) from e

    async def apply_modifications(self, ctx: RunContext) -> None:
        """Stage the tasks' edits to matched files.

        Only files that were staged and matched a task are added, so edits
        tasks make to other files stay out of the commit. Chunks are added
        one after another because ``git add`` holds the index lock.

        Raises:
            GitWorkflowError: With ``ApplyEmptyCommitError`` when the tasks
                reverted every staged change and empty commits are not allowed
        """
        try:
            for files in self.matched_file_chunks:
                await self.exec_git(["add", "--", *files])
            staged_after_add = await self.exec_git(get_diff_command(self.diff, self.diff_filter))
        except Exception as e:
            raise self._fail(e, ctx) from e

        if not staged_after_add and not self.allow_empty:
            raise self._fail(
                GitWorkflowError("Prevented an empty git commit!"), ctx, ErrorKind.APPLY_EMPTY_COMMIT_ERROR
            )

    async def restore_unstaged_changes(self, ctx: RunContext) -> None:
        """Re-apply the hidden unstaged changes on top of the tasks' edits.

        A plain apply is tried first, then a three-way merge. If both fail
        the run must be reverted from the backup stash.
        """
        if not ctx.has_partially_staged_files:
            return
        unstaged_patch = self.hidden_filepath(PATCH_UNSTAGED)
        try:
            await self.exec_git(["apply", *GIT_APPLY_ARGS, unstaged_patch])
        except Exception as apply_error:
            log.debug("unstaged_changes_apply_failed", error=str(apply_error))
            try:
                await self.exec_git(["apply", *GIT_APPLY_ARGS, "--3way", unstaged_patch])
            except Exception as three_way_error:
                raise self._fail(
                    GitWorkflowError("Unstaged changes could not be restored due to a merge conflict!"),
                    ctx,
                    ErrorKind.RESTORE_UNSTAGED_CHANGES_ERROR,
                ) from three_way_error

    async def restore_original_state(self, ctx: RunContext) -> None:
        """Revert index and working tree to the backup stash, discarding task edits."""
        try:
            await self.exec_git(["reset", "--hard", "HEAD"])
            await self.exec_git(["stash", "apply", "--quiet", "--index", await self.get_backup_stash(ctx)])
            await self.restore_merge_status(ctx)
            # Applying the stash resurrects files deleted in the working tree
            for file in self.deleted_files:
                await _remove_if_exists(file)
            await _remove_if_exists(self.hidden_filepath(PATCH_UNSTAGED))
        except Exception as e:
            raise self._fail(e, ctx, ErrorKind.RESTORE_ORIGINAL_STATE_ERROR) from e

    async def cleanup(self, ctx: RunContext) -> None:
        """Remove the patch file and drop the backup stash stored by this workflow.

        Backup stashes of earlier runs are left alone.

        Safe to call repeatedly. Never raises and never records errors.
        """
        try:
            await _remove_if_exists(self.hidden_filepath(PATCH_UNSTAGED))
            stash = await self.find_backup_stash()
            if stash is None:
                log.debug("backup_stash_not_found")
                return
            await self.exec_git(["stash", "drop", "--quiet", stash])
            log.debug("backup_stash_dropped", stash=stash)
        except Exception as e:
            log.warning("cleanup_failed", error=str(e))
            if self.logger is not None:
                self.logger.warn(f"Failed to clean up temporary files: {e}")


async def _remove_if_exists(path: str) -> None:
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        return
