"""
Bounded parallel execution of task jobs.

Jobs are coroutine factories. The executor runs them concurrently up to
``max_workers`` at a time and returns one TaskResult per job. A job that
raises does not stop its siblings: the error is captured in its result.

When ``exit_on_error`` is set, jobs that have not yet acquired a worker slot
when the run context records an error are skipped instead of started. Jobs
already running are stopped by their own cancellation watchers (see
``lint_staged.engine.task_runner``), which bounds the wall-clock time of a
failing batch.

Example:
    >>> executor = ParallelExecutor(max_workers=2)
    >>> results = await executor.execute_tasks(
    ...     [ExecutionTask(id="lint", func=run_lint), ExecutionTask(id="fmt", func=run_fmt)],
    ...     ctx=ctx,
    ...     exit_on_error=True,
    ... )
    >>> [r.task_id for r in results if not r.success]
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from lint_staged.engine.context import RunContext

log = structlog.get_logger(__name__)


@dataclass
class ExecutionTask:
    """A job for parallel execution.

    Attributes:
        id: Identifier used in results and logs
        func: Zero-argument coroutine factory
    """

    id: str
    func: Callable[[], Awaitable[Any]]


@dataclass
class TaskResult:
    """Result of a job execution.

    Attributes:
        task_id: ID of the job
        success: True if the job completed without raising
        skipped: True if the job never started because the run was failing
        error: Exception raised by the job (if unsuccessful)
        execution_time: Wall-clock execution time in seconds
    """

    task_id: str
    success: bool
    skipped: bool = False
    error: Exception | None = None
    execution_time: float = 0.0


def max_workers_for(concurrent: bool | int) -> int | None:
    """Translate the ``concurrent`` option into a worker limit.

    ``True`` means unbounded (None), ``False`` means serial (1), and a
    positive integer is used as is.
    """
    if concurrent is True:
        return None
    if concurrent is False:
        return 1
    return max(1, int(concurrent))


class ParallelExecutor:
    """Execute jobs in parallel with a concurrency limit.

    Attributes:
        max_workers: Maximum number of jobs running at once. None means no limit.
    """

    def __init__(self, max_workers: int | None = None) -> None:
        """Initialize the executor.

        Args:
            max_workers: Concurrency limit. None runs every job at once.
        """
        self.max_workers = max_workers
        self.semaphore = asyncio.Semaphore(max_workers) if max_workers else None

    async def execute_tasks(
        self,
        tasks: list[ExecutionTask],
        ctx: RunContext | None = None,
        exit_on_error: bool = False,
    ) -> list[TaskResult]:
        """Run all jobs and return their results in submission order.

        Args:
            tasks: Jobs to run
            ctx: Run context consulted before each job starts
            exit_on_error: Skip jobs not yet started once ``ctx`` has errors

        Returns:
            One TaskResult per job, in the order the jobs were given
        """
        log.debug("parallel_execution_started", total_tasks=len(tasks), max_workers=self.max_workers)
        start_time = time.monotonic()
        results = await asyncio.gather(*(self._execute_task(task, ctx, exit_on_error) for task in tasks))
        slowest = max(results, key=lambda r: r.execution_time, default=None)
        log.debug(
            "parallel_execution_complete",
            total=len(results),
            elapsed=round(time.monotonic() - start_time, 3),
            slowest_task=slowest.task_id if slowest else None,
            slowest_time=round(slowest.execution_time, 3) if slowest else None,
            failed=sum(1 for r in results if not r.success and not r.skipped),
            skipped=sum(1 for r in results if r.skipped),
        )
        return list(results)

    async def _execute_task(self, task: ExecutionTask, ctx: RunContext | None, exit_on_error: bool) -> TaskResult:
        if self.semaphore is None:
            return await self._run(task, ctx, exit_on_error)
        async with self.semaphore:
            return await self._run(task, ctx, exit_on_error)

    async def _run(self, task: ExecutionTask, ctx: RunContext | None, exit_on_error: bool) -> TaskResult:
        if exit_on_error and ctx is not None and ctx.failed:
            log.debug("task_skipped", task_id=task.id)
            return TaskResult(task_id=task.id, success=False, skipped=True)

        start_time = time.monotonic()
        try:
            await task.func()
        except Exception as e:
            log.debug("task_exception", task_id=task.id, error=str(e))
            return TaskResult(
                task_id=task.id,
                success=False,
                error=e,
                execution_time=time.monotonic() - start_time,
            )
        execution_time = time.monotonic() - start_time
        log.debug("task_finished", task_id=task.id, execution_time=round(execution_time, 3))
        return TaskResult(task_id=task.id, success=True, execution_time=execution_time)
