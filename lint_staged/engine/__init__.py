"""Task execution engine: run context, task invocation, matching and orchestration."""

from lint_staged.engine.context import ErrorSet, RunContext
from lint_staged.engine.orchestrator import run_all
from lint_staged.engine.task_runner import RunRecord, TaskInvoker, TaskSpec, resolve_task_fn

__all__ = [
    "ErrorSet",
    "RunContext",
    "RunRecord",
    "TaskInvoker",
    "TaskSpec",
    "resolve_task_fn",
    "run_all",
]
