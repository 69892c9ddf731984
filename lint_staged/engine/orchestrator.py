"""
Run orchestration: from staged files to a committed-ready index.

``run_all`` is the top-level pipeline of a lint-staged run:

1. Resolve the repository and list staged files
2. Find configurations and match staged files against their patterns
3. ``prepare`` the partial-staging workflow (backup, hide unstaged changes)
4. Run tasks: config groups and chunks concurrently, patterns within a chunk
   concurrently, commands within a pattern one after another
5. Apply task modifications and restore unstaged changes, or revert to the
   original state on failure
6. Clean up the backup

One RunContext is threaded through every step. Steps do not raise to each
other: a failing step records ``ErrorKind`` markers, and later steps decide
from the markers whether to run. The only exception that leaves ``run_all``
for a failed run is RunFailedError.

Example:
    >>> options = LintStagedOptions(config_object={"*.py": "ruff check"})
    >>> try:
    ...     ctx = await run_all(options)
    ... except RunFailedError as e:
    ...     print(e.ctx.errors)
"""

import os
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from lint_staged.config.loader import search_configs
from lint_staged.config.settings import LintStagedOptions
from lint_staged.engine.context import RunContext
from lint_staged.engine.matcher import chunk_files, generate_tasks, group_files_by_config, normalize_path
from lint_staged.engine.parallel_executor import ExecutionTask, ParallelExecutor, max_workers_for
from lint_staged.engine.task_runner import CmdTask, make_cmd_tasks
from lint_staged.enums import ErrorKind
from lint_staged.exceptions import GitWorkflowError, RunFailedError, TaskFailedError
from lint_staged.git.repository import get_staged_files, has_initial_commit, resolve_git_repo
from lint_staged.git.workflow import GitWorkflow
from lint_staged.messages import (
    BACKUP_KEPT,
    DEPRECATED_GIT_ADD,
    FAILED_GET_STAGED_FILES,
    NO_STAGED_FILES,
    NO_TASKS,
    NOT_GIT_REPO,
    SKIPPED_GIT_ERROR,
    TASK_ERROR,
    files_title,
    skipping_backup,
)
from lint_staged.utils.status_reporter import ConsoleLogger, Logger, StatusReporter

log = structlog.get_logger(__name__)

PREPARE = "Preparing lint-staged..."
RUN_TASKS = "Running tasks for staged files..."
APPLY_MODIFICATIONS = "Applying modifications from tasks..."
RESTORE_UNSTAGED = "Restoring unstaged changes to partially staged files..."
REVERT = "Reverting to original state because of errors..."
CLEANUP = "Cleaning up temporary files..."


@dataclass
class PatternJob:
    """Commands of one pattern, bound to the files it matched."""

    title: str
    cmd_tasks: list[CmdTask]


@dataclass
class ChunkJob:
    """Pattern jobs of one chunk of a config group's files."""

    title: str
    patterns: list[PatternJob] = field(default_factory=list)
    skipped_patterns: list[str] = field(default_factory=list)


def apply_modifications_skipped(ctx: RunContext) -> str | None:
    """Without a backup, modifications are always applied since nothing could be reverted."""
    if not ctx.should_backup:
        return None
    if ErrorKind.GIT_ERROR in ctx.errors:
        return SKIPPED_GIT_ERROR
    if ErrorKind.TASK_ERROR in ctx.errors:
        return TASK_ERROR
    return None


def restore_unstaged_changes_skipped(ctx: RunContext) -> str | None:
    if ErrorKind.GIT_ERROR in ctx.errors:
        return SKIPPED_GIT_ERROR
    if ctx.should_backup and ErrorKind.TASK_ERROR in ctx.errors:
        return TASK_ERROR
    return None


def restore_original_state_enabled(ctx: RunContext) -> bool:
    return bool(ctx.should_backup) and ctx.errors.has_any(
        ErrorKind.TASK_ERROR,
        ErrorKind.APPLY_EMPTY_COMMIT_ERROR,
        ErrorKind.RESTORE_UNSTAGED_CHANGES_ERROR,
        ErrorKind.HIDE_UNSTAGED_CHANGES_ERROR,
    )


def cleanup_skipped(ctx: RunContext) -> bool:
    # The backup stash is the only copy of the original state now
    return ErrorKind.RESTORE_ORIGINAL_STATE_ERROR in ctx.errors


class RunOrchestrator:
    """Drive one lint-staged run. Use ``run_all`` instead of instantiating directly."""

    def __init__(self, options: LintStagedOptions, logger: Logger) -> None:
        self.options = options
        self.logger = logger
        self.reporter = StatusReporter(logger, quiet=options.quiet)
        self.ctx = RunContext(quiet=options.quiet)
        self.cwd = normalize_path(options.cwd or os.getcwd())
        self.max_workers = max_workers_for(options.concurrent)

    def fail(self, kind: ErrorKind) -> RunFailedError:
        self.ctx.errors.add(kind)
        return RunFailedError(self.ctx)

    async def run(self) -> RunContext:
        options, ctx = self.options, self.ctx

        repo = await resolve_git_repo(self.cwd)
        if repo is None:
            if not options.quiet:
                ctx.output.append(NOT_GIT_REPO)
            raise self.fail(ErrorKind.GIT_REPO_ERROR)

        initial_commit = await has_initial_commit(repo.git_dir)
        ctx.should_backup = initial_commit and options.stash and options.diff is None
        if not ctx.should_backup:
            self.logger.warn(skipping_backup(initial_commit, options.diff))

        files = await get_staged_files(repo.git_dir, options.diff, options.diff_filter)
        if files is None:
            if not options.quiet:
                ctx.output.append(FAILED_GET_STAGED_FILES)
            raise self.fail(ErrorKind.GET_STAGED_FILES_ERROR)
        if not files:
            if not options.quiet:
                ctx.output.append(NO_STAGED_FILES)
            return ctx

        configs = await search_configs(
            self.cwd,
            repo.git_dir,
            config_object=options.config_object,
            config_path=options.config_path,
            logger=self.logger,
        )
        if not configs:
            raise self.fail(ErrorKind.CONFIG_NOT_FOUND_ERROR)

        chunk_jobs, matched_files = await self.build_jobs(configs, files, repo.git_dir)
        if not any(job.patterns for job in chunk_jobs):
            if not options.quiet:
                ctx.output.append(NO_TASKS)
            return ctx

        # Sorted by directory so `git add` receives a deterministic order
        matched_file_chunks = chunk_files(
            sorted(matched_files, key=lambda file: (os.path.dirname(file), file)),
            max_arg_length=options.max_arg_length,
        )
        workflow = GitWorkflow(
            git_dir=repo.git_dir,
            git_config_dir=repo.git_config_dir,
            matched_file_chunks=matched_file_chunks,
            allow_empty=options.allow_empty,
            diff=options.diff,
            diff_filter=options.diff_filter,
            logger=self.logger,
        )

        await self.step(PREPARE, workflow.prepare)

        if ErrorKind.GIT_ERROR in ctx.errors:
            self.reporter.skipped(f"{RUN_TASKS}\n{SKIPPED_GIT_ERROR}")
        else:
            await self.run_tasks(chunk_jobs)

        reason = apply_modifications_skipped(ctx)
        if reason is None:
            await self.step(APPLY_MODIFICATIONS, workflow.apply_modifications)
        else:
            self.reporter.skipped(f"{APPLY_MODIFICATIONS}\n{reason}")

        # Only reported when there are partially staged files; otherwise a no-op
        reason = restore_unstaged_changes_skipped(ctx)
        if reason is None:
            await self.step(
                RESTORE_UNSTAGED, workflow.restore_unstaged_changes, report=bool(ctx.has_partially_staged_files)
            )
        elif ctx.has_partially_staged_files:
            self.reporter.skipped(f"{RESTORE_UNSTAGED}\n{reason}")

        if restore_original_state_enabled(ctx):
            await self.step(REVERT, workflow.restore_original_state)

        if not cleanup_skipped(ctx):
            # Cleanup never raises
            self.reporter.started(CLEANUP)
            await workflow.cleanup(ctx)
            self.reporter.succeeded(CLEANUP)
        else:
            self.logger.warn(BACKUP_KEPT)

        if ctx.failed:
            log.debug("run_failed", errors=sorted(str(kind) for kind in ctx.errors))
            raise RunFailedError(ctx)

        log.debug("run_succeeded")
        return ctx

    async def build_jobs(
        self,
        configs: Mapping[str, Mapping[str, Any]],
        files: Sequence[str],
        git_dir: str,
    ) -> tuple[list[ChunkJob], set[str]]:
        """Match staged files to configured tasks.

        Returns:
            Tuple of (chunk jobs, absolute paths of every matched file)
        """
        options = self.options
        groups = group_files_by_config(configs, files, single_config_mode=options.explicit_config)
        has_multiple_configs = len(configs) > 1
        matched_files: set[str] = set()
        chunk_jobs: list[ChunkJob] = []
        has_deprecated_git_add = False

        for config_path, group in groups.items():
            if not group.files:
                continue
            group_cwd = (
                normalize_path(os.path.dirname(config_path))
                if has_multiple_configs and options.cwd is None
                else self.cwd
            )
            config_name = (
                normalize_path(os.path.relpath(config_path, self.cwd)) if os.path.isabs(config_path) else config_path
            )
            chunks = chunk_files(group.files, base_dir=git_dir, max_arg_length=options.max_arg_length)

            for index, chunk in enumerate(chunks):
                suffix = f" (chunk {index + 1}/{len(chunks)})" if len(chunks) > 1 else ""
                job = ChunkJob(title=files_title(f"{config_name}{suffix}", len(chunk)))

                for task in generate_tasks(group.config, cwd=group_cwd, files=chunk, relative=options.relative):
                    if not task.file_list:
                        job.skipped_patterns.append(f"{task.pattern} — no files")
                        continue
                    for file in task.file_list:
                        matched_files.add(normalize_path(os.path.join(group_cwd, file)))
                    cmd_tasks = await make_cmd_tasks(
                        task.commands,
                        task.file_list,
                        cwd=group_cwd,
                        git_dir=git_dir,
                        shell=options.shell,
                        verbose=options.verbose,
                    )
                    if any(cmd.command.strip() == "git add" for cmd in cmd_tasks):
                        has_deprecated_git_add = True
                    job.patterns.append(
                        PatternJob(title=files_title(task.pattern, len(task.file_list)), cmd_tasks=cmd_tasks)
                    )

                chunk_jobs.append(job)

        if has_deprecated_git_add:
            self.logger.warn(DEPRECATED_GIT_ADD)

        log.debug("tasks_generated", chunks=len(chunk_jobs), matched_files=len(matched_files))
        return chunk_jobs, matched_files

    async def run_tasks(self, chunk_jobs: list[ChunkJob]) -> None:
        self.reporter.started(RUN_TASKS)
        executor = ParallelExecutor(max_workers=self.max_workers)
        jobs = [
            ExecutionTask(id=job.title, func=self._chunk_runner(job)) for job in chunk_jobs if job.patterns
        ]
        results = await executor.execute_tasks(jobs, ctx=self.ctx, exit_on_error=True)
        for result in results:
            if result.skipped:
                self.reporter.skipped(f"{result.task_id}\n{TASK_ERROR}")
        if ErrorKind.TASK_ERROR in self.ctx.errors:
            self.reporter.failed(RUN_TASKS)
        else:
            self.reporter.succeeded(RUN_TASKS)

    def _chunk_runner(self, job: ChunkJob) -> Callable[[], Awaitable[None]]:
        async def run_chunk() -> None:
            self.reporter.started(job.title)
            for pattern in job.skipped_patterns:
                self.reporter.skipped(pattern)
            executor = ParallelExecutor(max_workers=self.max_workers)
            results = await executor.execute_tasks(
                [ExecutionTask(id=p.title, func=self._pattern_runner(p)) for p in job.patterns],
                ctx=self.ctx,
                exit_on_error=True,
            )
            for result in results:
                if result.skipped:
                    self.reporter.skipped(f"{result.task_id}\n{TASK_ERROR}")
            if any(not result.success for result in results):
                self.reporter.failed(job.title)
            else:
                self.reporter.succeeded(job.title)

        return run_chunk

    def _pattern_runner(self, pattern: PatternJob) -> Callable[[], Awaitable[None]]:
        async def run_pattern() -> None:
            self.reporter.started(pattern.title)
            for cmd in pattern.cmd_tasks:
                if self.ctx.failed:
                    self.reporter.skipped(f"{cmd.title}\n{TASK_ERROR}")
                    return
                self.reporter.started(cmd.title)
                try:
                    await cmd.invoke(self.ctx)
                except TaskFailedError as e:
                    self.reporter.failed(e.message)
                    raise
                except Exception as e:
                    log.debug("task_crashed", command=cmd.command, error=str(e))
                    self.ctx.errors.add(ErrorKind.TASK_ERROR)
                    self.reporter.failed(f"{cmd.title} [FAILED]\n{e}")
                    raise
                self.reporter.succeeded(cmd.title)
            self.reporter.succeeded(pattern.title)

        return run_pattern

    async def step(
        self,
        title: str,
        action: Callable[[RunContext], Awaitable[None]],
        report: bool = True,
    ) -> None:
        """Run a workflow phase, reporting its outcome. Markers are recorded by the phase."""
        if report:
            self.reporter.started(title)
        try:
            await action(self.ctx)
        except GitWorkflowError as e:
            log.debug("step_failed", step=title, error=e.message)
            self.reporter.failed(e.message)
            return
        if report:
            self.reporter.succeeded(title)


async def run_all(options: LintStagedOptions, logger: Logger | None = None) -> RunContext:
    """Run configured tasks against staged files.

    Args:
        options: Run options
        logger: Destination for progress lines. Defaults to the console.

    Returns:
        The RunContext of a successful run

    Raises:
        RunFailedError: If any error marker was recorded. ``e.ctx`` holds
            the markers and collected output.
        ConfigurationError: If a configuration is invalid
    """
    orchestrator = RunOrchestrator(options, logger or ConsoleLogger())
    return await orchestrator.run()
