"""
Task invocation: spawn a configured command against matched files.

A task is one command from the configuration, bound to the files that
matched its glob. Invoking it spawns the process, waits for it while
watching the run context for failures of sibling tasks, and classifies the
outcome.

Outcome classification, in priority order:
    1. Terminated by a signal -> ``[SIGINT]``, ``[SIGTERM]``, ...
    2. Killed because a sibling failed -> ``[KILLED]``
    3. Failed with a non-zero exit code -> ``[<code>]``
    4. Failed without an exit code -> ``[FAILED]``
    5. Otherwise the task succeeded

Example:
    >>> invoker = resolve_task_fn(command="ruff check", files=["a.py"])
    >>> ctx = RunContext()
    >>> await invoker(ctx)  # raises TaskFailedError("ruff check [1]") on failure
"""

import asyncio
import inspect
import os
import re
import shlex
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from lint_staged.engine.context import RunContext
from lint_staged.enums import ErrorKind
from lint_staged.exceptions import ConfigurationError, TaskFailedError
from lint_staged.messages import ERROR, INFO
from lint_staged.utils.async_subprocess import ProcessOutput, RunningProcess, spawn_process

log = structlog.get_logger(__name__)

GIT_BINARY = re.compile(r"^git(\.exe)?", re.IGNORECASE)


@dataclass(frozen=True)
class TaskSpec:
    """Everything needed to invoke one command.

    Attributes:
        command: Command template from the configuration
        files: Matched files, appended as trailing arguments unless ``is_fn``
        cwd: Working directory for non-git binaries. None means the process cwd.
        git_dir: Repository root, used as cwd for git binaries
        shell: False, True, or the path of a shell interpreter
        is_fn: The command was produced by a config function and already
            embeds its files
    """

    command: str
    files: tuple[str, ...] = ()
    cwd: str | None = None
    git_dir: str | None = None
    shell: bool | str = False
    is_fn: bool = False


@dataclass(frozen=True)
class RunRecord:
    """Normalized outcome of one task process."""

    command: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = 0
    failed: bool = False
    killed: bool = False
    signal: str | None = None

    @classmethod
    def from_output(cls, command: str, output: ProcessOutput) -> "RunRecord":
        exit_code = output.returncode if output.returncode is not None and output.returncode >= 0 else None
        failed = output.killed or output.signal is not None or exit_code != 0
        return cls(
            command=command,
            stdout=output.stdout,
            stderr=output.stderr,
            exit_code=exit_code,
            failed=failed,
            killed=output.killed,
            signal=output.signal,
        )

    @property
    def tag(self) -> str | None:
        """Failure tag, or None when the task succeeded."""
        if self.signal:
            return self.signal
        if self.killed:
            return "KILLED"
        if self.failed and self.exit_code:
            return str(self.exit_code)
        if self.failed:
            return "FAILED"
        return None


class TaskInvoker:
    """Callable that runs one TaskSpec against a run context."""

    def __init__(self, spec: TaskSpec, verbose: bool = False) -> None:
        self.spec = spec
        self.verbose = verbose

    @property
    def command(self) -> str:
        return self.spec.command

    def working_directory(self, binary: str) -> str:
        """Git binaries run in the repository root, everything else in the task cwd."""
        process_cwd = os.getcwd()
        git_dir = self.spec.git_dir
        if git_dir is not None and GIT_BINARY.match(binary) and git_dir != process_cwd:
            return git_dir
        return self.spec.cwd or process_cwd

    def invocation(self) -> tuple[str, list[str]]:
        """Return the (command, args) pair handed to the spawner."""
        spec = self.spec
        if spec.shell:
            if spec.is_fn or not spec.files:
                return spec.command, []
            return f"{spec.command} {' '.join(spec.files)}", []
        binary, *args = shlex.split(spec.command)
        if not spec.is_fn:
            args.extend(spec.files)
        return binary, args

    async def __call__(self, ctx: RunContext | None = None) -> None:
        if ctx is None:
            ctx = RunContext()

        command, args = self.invocation()
        binary = command if not self.spec.shell else self.spec.command.split(" ")[0]
        cwd = self.working_directory(binary)
        log.debug("task_starting", command=self.command, args=args, cwd=cwd, shell=self.spec.shell)

        try:
            process = await spawn_process(command, args, cwd=cwd, shell=self.spec.shell, prefer_local=True)
        except OSError as e:
            # Missing or non-executable binary
            record = RunRecord(command=self.command, stderr=str(e), exit_code=None, failed=True)
        else:
            record = RunRecord.from_output(self.command, await self._wait(process, ctx))

        tag = record.tag
        if tag is not None:
            ctx.errors.add(ErrorKind.TASK_ERROR)
            self._handle_output(record, ctx, is_error=True)
            log.debug("task_failed", command=self.command, tag=tag)
            raise TaskFailedError(f"{self.command} [{tag}]")

        if self.verbose:
            self._handle_output(record, ctx)

    async def _wait(self, process: RunningProcess, ctx: RunContext) -> ProcessOutput:
        """Wait for the process, killing it if any error is recorded first.

        The process runs in its own session and never sees a terminal
        interrupt, so cancelling the wait kills its process group too.
        """
        result_task = asyncio.ensure_future(process.wait())
        interrupt_task = asyncio.ensure_future(ctx.errors.wait())
        try:
            done, _ = await asyncio.wait({result_task, interrupt_task}, return_when=asyncio.FIRST_COMPLETED)
            if result_task not in done:
                log.debug("task_interrupted", command=self.command, pid=process.pid)
                await process.kill()
            return await result_task
        except asyncio.CancelledError:
            log.debug("task_cancelled", command=self.command, pid=process.pid)
            await asyncio.shield(process.kill())
            result_task.cancel()
            raise
        finally:
            interrupt_task.cancel()

    def _handle_output(self, record: RunRecord, ctx: RunContext, is_error: bool = False) -> None:
        streams = [text for text in (record.stderr, record.stdout) if text]
        if not streams:
            return
        if is_error:
            title = [] if ctx.quiet else ["", f"{ERROR} {self.command}:"]
        else:
            title = ["", f"{INFO} {self.command}:"]
        ctx.output.append("\n".join(title + streams))


def resolve_task_fn(
    command: str,
    files: Sequence[str] = (),
    cwd: str | None = None,
    git_dir: str | None = None,
    is_fn: bool = False,
    shell: bool | str = False,
    verbose: bool = False,
) -> TaskInvoker:
    """Build a TaskInvoker for a command and its matched files."""
    spec = TaskSpec(
        command=command,
        files=tuple(files),
        cwd=cwd,
        git_dir=git_dir,
        shell=shell,
        is_fn=is_fn,
    )
    return TaskInvoker(spec, verbose=verbose)


@dataclass(frozen=True)
class CmdTask:
    """A titled command ready to be invoked."""

    title: str
    command: str
    invoke: TaskInvoker


async def make_cmd_tasks(
    commands: Any,
    files: Sequence[str],
    cwd: str | None = None,
    git_dir: str | None = None,
    shell: bool | str = False,
    verbose: bool = False,
) -> list[CmdTask]:
    """Resolve a configuration value into titled commands.

    Args:
        commands: A command string, a list of command strings, or a callable
            (sync or async) taking the matched files and returning one of
            those. Lists may mix strings and callables.
        files: Files matched by the pattern
        cwd: Working directory for the commands
        git_dir: Repository root
        shell: Shell mode passed to every command
        verbose: Record output of successful commands

    Returns:
        One CmdTask per resolved command, in configuration order

    Raises:
        ConfigurationError: If a callable returns something other than a
            string or a list of strings
    """
    command_list = commands if isinstance(commands, (list, tuple)) else [commands]
    cmd_tasks: list[CmdTask] = []

    for cmd in command_list:
        is_fn = callable(cmd)
        resolved = await _call_config_function(cmd, files) if is_fn else cmd
        resolved_list = resolved if isinstance(resolved, (list, tuple)) else [resolved]

        for command in resolved_list:
            if not isinstance(command, str):
                raise ConfigurationError(
                    f"Invalid value for '[Function]': function task should return a string or "
                    f"an array of strings, got {resolved!r}"
                )
            if is_fn:
                start = command.split(" ")[0]
                title = f"[Function] {start} ..."
            else:
                title = command
            invoker = resolve_task_fn(
                command=command,
                files=files,
                cwd=cwd,
                git_dir=git_dir,
                is_fn=is_fn,
                shell=shell,
                verbose=verbose,
            )
            cmd_tasks.append(CmdTask(title=title, command=command, invoke=invoker))

    return cmd_tasks


async def _call_config_function(fn: Callable[..., Any], files: Sequence[str]) -> Any:
    result = fn(list(files))
    if inspect.isawaitable(result):
        result = await result
    return result
