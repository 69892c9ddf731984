"""Running git subcommands."""

import subprocess
from collections.abc import Sequence
from pathlib import Path

import structlog

from lint_staged.exceptions import GitCommandError
from lint_staged.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

# Submodules are never recursed into by lint-staged's own git calls
NO_SUBMODULE_RECURSE = ("-c", "submodule.recurse=false")


async def exec_git(args: Sequence[str], cwd: Path | str | None = None) -> str:
    """Run ``git <args>`` and return its stdout without the final newline.

    Args:
        args: Git arguments, without the ``git`` binary
        cwd: Directory to run git in

    Returns:
        Standard output of the command

    Raises:
        GitCommandError: If git exits non-zero or cannot be started
    """
    log.debug("git_command", args=list(args), cwd=str(cwd) if cwd else None)
    try:
        stdout, _, _ = await run_command("git", *NO_SUBMODULE_RECURSE, *args, cwd=cwd, check=True)
    except subprocess.CalledProcessError as e:
        raise GitCommandError(args, e.returncode, e.stdout or "", e.stderr or "") from e
    except OSError as e:
        raise GitCommandError(args, 127, stderr=str(e)) from e
    return stdout.removesuffix("\n")
