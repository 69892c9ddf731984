"""lint-staged: run linters against staged git files without losing unstaged work."""

from lint_staged.engine.context import RunContext
from lint_staged.engine.orchestrator import run_all
from lint_staged.enums import ErrorKind
from lint_staged.exceptions import LintStagedError, RunFailedError
from lint_staged.main import lint_staged

__all__ = [
    "ErrorKind",
    "LintStagedError",
    "RunContext",
    "RunFailedError",
    "lint_staged",
    "run_all",
]
