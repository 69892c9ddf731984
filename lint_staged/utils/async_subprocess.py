"""Async subprocess utilities.

Provides non-blocking subprocess execution for use in async contexts.

This module offers two entry points:
    - run_command: Execute a command to completion and return its output
      (used for git plumbing)
    - spawn_process: Start a task process in its own process group and
      return a handle that can be awaited or killed together with all of
      its descendants

Key Features:
    - Non-blocking execution compatible with asyncio
    - Local binaries preferred over global ones (``node_modules/.bin`` and
      the running interpreter's scripts directory are put first on PATH)
    - Process-group termination so linters that fork workers do not
      outlive a cancelled run
    - Proper handling of stdout/stderr capture and decoding

Example:
    >>> from lint_staged.utils.async_subprocess import run_command
    >>> stdout, stderr, code = await run_command("git", "status", cwd="/repo")
    >>> if code == 0:
    ...     print(stdout)

Thread Safety:
    These functions are safe to call concurrently from multiple async tasks.
    Each call creates an independent subprocess with no shared state.
"""

import asyncio
import os
import signal
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

log = structlog.get_logger(__name__)

# Seconds between SIGTERM and SIGKILL when killing a process group
KILL_GRACE_PERIOD = 2.0


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
) -> tuple[str, str, int]:
    """Run a command asynchronously without shell interpolation.

    Args:
        *args: Command and arguments as separate strings. The first argument
            is the executable, subsequent arguments are passed to it.
        cwd: Working directory for command execution. If None, uses the
            current working directory of the parent process.
        check: If True (default), raise CalledProcessError when the command
            returns a non-zero exit code.

    Returns:
        Tuple of (stdout, stderr, return_code) with output decoded as UTF-8
        (invalid bytes replaced).

    Raises:
        subprocess.CalledProcessError: If check=True and command returns
            non-zero.
        FileNotFoundError: If the command executable is not found.
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    stdout_bytes, stderr_bytes = await process.communicate()

    stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
    stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")

    if check and process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode or 1,
            args,
            stdout,
            stderr,
        )

    return stdout, stderr, process.returncode or 0


def local_path_env(cwd: Path | str, env: dict[str, str] | None = None) -> dict[str, str]:
    """Build an environment whose PATH prefers project-local binaries.

    Directories are prepended in order: ``node_modules/.bin`` of ``cwd`` and
    each of its ancestors, then the directory of the running interpreter
    (the active virtualenv's ``bin``).

    Args:
        cwd: Directory the command will run in
        env: Base environment. Defaults to ``os.environ``.

    Returns:
        A new environment mapping
    """
    result = dict(os.environ if env is None else env)
    base = Path(cwd).resolve()
    local_dirs = [str(d / "node_modules" / ".bin") for d in (base, *base.parents)]
    local_dirs.append(str(Path(sys.executable).parent))
    existing = [d for d in local_dirs if os.path.isdir(d)]
    current = result.get("PATH", os.defpath)
    result["PATH"] = os.pathsep.join([*existing, current]) if existing else current
    return result


@dataclass(frozen=True)
class ProcessOutput:
    """Raw outcome of a spawned process."""

    stdout: str
    stderr: str
    returncode: int | None
    killed: bool
    signal: str | None


class RunningProcess:
    """Handle to a spawned task process.

    The process is started in its own session so that ``kill()`` can
    terminate it and every descendant in one call.
    """

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self._killed = False

    @property
    def pid(self) -> int:
        return self._process.pid

    async def wait(self) -> ProcessOutput:
        """Wait for the process to exit and collect its output."""
        stdout_bytes, stderr_bytes = await self._process.communicate()
        returncode = self._process.returncode
        signal_name = None
        if not self._killed and returncode is not None and returncode < 0:
            signal_name = _signal_name(-returncode)
        return ProcessOutput(
            stdout=(stdout_bytes or b"").decode("utf-8", errors="replace"),
            stderr=(stderr_bytes or b"").decode("utf-8", errors="replace"),
            returncode=returncode,
            killed=self._killed,
            signal=signal_name,
        )

    async def kill(self, grace_period: float = KILL_GRACE_PERIOD) -> None:
        """Terminate the process group, escalating to SIGKILL after a grace period."""
        if self._process.returncode is not None:
            return
        self._killed = True
        self._signal_group(signal.SIGTERM)
        try:
            await asyncio.wait_for(asyncio.shield(self._process.wait()), timeout=grace_period)
        except TimeoutError:
            log.debug("process_force_killing", pid=self.pid)
            self._signal_group(getattr(signal, "SIGKILL", signal.SIGTERM))
            await self._process.wait()

    def _signal_group(self, sig: int) -> None:
        try:
            if hasattr(os, "killpg"):
                os.killpg(self._process.pid, sig)
            else:
                self._process.send_signal(sig)
        except ProcessLookupError:
            # Process already exited
            log.debug("process_already_exited", pid=self.pid)


def _signal_name(number: int) -> str:
    try:
        return signal.Signals(number).name
    except ValueError:
        return f"SIG{number}"


async def spawn_process(
    command: str,
    args: Sequence[str] = (),
    *,
    cwd: Path | str,
    shell: bool | str = False,
    prefer_local: bool = True,
) -> RunningProcess:
    """Start a task process with captured output.

    Args:
        command: The binary to run, or the full command line in shell mode
        args: Arguments for the binary. Must be empty in shell mode.
        cwd: Working directory
        shell: False to exec the binary directly, True to run ``command``
            with the system shell, or the path of a shell interpreter to
            run it with (``<shell> -c <command>``)
        prefer_local: Put project-local binary directories first on PATH

    Returns:
        A RunningProcess handle

    Raises:
        FileNotFoundError: If the binary (or shell interpreter) does not exist
        PermissionError: If it cannot be executed
    """
    env = local_path_env(cwd) if prefer_local else None
    options: dict = {
        "cwd": str(cwd),
        "env": env,
        "stdout": asyncio.subprocess.PIPE,
        "stderr": asyncio.subprocess.PIPE,
        "stdin": asyncio.subprocess.DEVNULL,
    }
    if os.name == "posix":
        options["start_new_session"] = True

    if shell is True:
        process = await asyncio.create_subprocess_shell(command, **options)
    elif shell:
        process = await asyncio.create_subprocess_exec(str(shell), "-c", command, **options)
    else:
        process = await asyncio.create_subprocess_exec(command, *args, **options)

    log.debug("process_spawned", pid=process.pid, command=command, args=list(args), cwd=str(cwd))
    return RunningProcess(process)
