"""Custom exception hierarchy for lint-staged.

Exception Hierarchy:
    LintStagedError (base)
    ├── ConfigurationError
    ├── GitCommandError
    ├── GitWorkflowError
    ├── TaskFailedError
    └── RunFailedError

Exceptions only unwind the phase that raised them. The kind of failure is
recorded separately as an ``ErrorKind`` marker in the run context, and the
only failure a caller of ``run_all`` ever sees is ``RunFailedError``.

Example Usage:
    >>> from lint_staged.exceptions import RunFailedError
    >>> try:
    ...     await run_all(options)
    ... except RunFailedError as e:
    ...     print(sorted(e.ctx.errors))
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lint_staged.engine.context import RunContext


class LintStagedError(Exception):
    """Base exception for all lint-staged errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(LintStagedError):
    """Configuration-related errors.

    Raised when a configuration file cannot be read or parsed, when a task
    mapping is malformed, or when a function task returns something other
    than a command string or a list of command strings.
    """

    pass


class GitCommandError(LintStagedError):
    """A git subprocess exited with a non-zero status.

    Attributes:
        args_list: Arguments passed to git (without the binary)
        stderr: Captured standard error
        returncode: Process exit status
    """

    def __init__(self, args_list: Sequence[str], returncode: int, stdout: str = "", stderr: str = "") -> None:
        self.args_list = list(args_list)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = (stderr or stdout).strip()
        message = f"git {' '.join(self.args_list)} failed with exit code {returncode}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class GitWorkflowError(LintStagedError):
    """A phase of the partial-staging workflow failed."""

    pass


class TaskFailedError(LintStagedError):
    """A configured task failed, was killed or was interrupted.

    The message has the form ``"<command> [<tag>]"`` where the tag is the
    signal name, ``KILLED``, the exit code or ``FAILED``.
    """

    pass


class RunFailedError(LintStagedError):
    """The run failed. Carries the full run context.

    Attributes:
        ctx: The RunContext of the failed run
    """

    def __init__(self, ctx: RunContext, message: str = "lint-staged failed") -> None:
        self.ctx = ctx
        super().__init__(message)
