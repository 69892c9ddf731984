"""CLI entry point and programmatic API for lint-staged."""

import asyncio
import sys

import click
import structlog
from pydantic import ValidationError

from lint_staged.config.settings import LintStagedOptions
from lint_staged.engine.context import RunContext
from lint_staged.engine.orchestrator import run_all
from lint_staged.enums import ErrorKind
from lint_staged.exceptions import LintStagedError, RunFailedError
from lint_staged.messages import GIT_ERROR, NO_CONFIGURATION, PREVENTED_EMPTY_COMMIT, RESTORE_STASH_EXAMPLE
from lint_staged.utils.logging_config import configure_logging, ensure_logging_configured
from lint_staged.utils.status_reporter import ConsoleLogger, Logger

log = structlog.get_logger(__name__)


def print_task_output(ctx: RunContext, logger: Logger) -> None:
    write = logger.error if ctx.failed else logger.log
    for block in ctx.output:
        write(block)


async def lint_staged(options: LintStagedOptions | None = None, logger: Logger | None = None) -> bool:
    """Run lint-staged and print the results.

    Args:
        options: Run options. Defaults to options read from the environment.
        logger: Destination for every user-facing line. Defaults to the console.

    Returns:
        True if the run succeeded, False otherwise

    Raises:
        ConfigurationError: If a configuration is invalid
    """
    options = options or LintStagedOptions()
    logger = logger or ConsoleLogger()
    ensure_logging_configured(options.debug)
    log.debug("lint_staged_started", options=options.model_dump(exclude={"config_object"}))

    try:
        ctx = await run_all(options, logger)
    except RunFailedError as e:
        ctx = e.ctx
        if ErrorKind.CONFIG_NOT_FOUND_ERROR in ctx.errors:
            logger.error(NO_CONFIGURATION)
        elif ErrorKind.APPLY_EMPTY_COMMIT_ERROR in ctx.errors:
            logger.warn(PREVENTED_EMPTY_COMMIT)
        elif ErrorKind.GIT_ERROR in ctx.errors and ErrorKind.GET_BACKUP_STASH_ERROR not in ctx.errors:
            logger.error(GIT_ERROR)
            if ctx.should_backup:
                logger.error(RESTORE_STASH_EXAMPLE)
        print_task_output(ctx, logger)
        return False

    print_task_output(ctx, logger)
    return True


def _parse_concurrent(ctx: click.Context, param: click.Parameter, value: str | None) -> bool | int | None:
    if value is None:
        return None
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        number = int(value)
    except ValueError as e:
        raise click.BadParameter("must be true, false or a positive number") from e
    if number < 1:
        raise click.BadParameter("must be true, false or a positive number")
    return number


def _parse_shell(ctx: click.Context, param: click.Parameter, value: str | None) -> bool | str | None:
    if value is None:
        return None
    return True if value == "true" else value


@click.command()
@click.version_option(package_name="lint-staged-py")
@click.option(
    "--allow-empty", is_flag=True, default=False, help="Allow empty commits when tasks revert all staged changes"
)
@click.option(
    "-p",
    "--concurrent",
    callback=_parse_concurrent,
    help="Number of tasks to run concurrently, or false for serial (default: true)",
)
@click.option("-c", "--config", "config_path", type=click.Path(dir_okay=False), help="Path to configuration file")
@click.option("--cwd", type=click.Path(file_okay=False), help="Run all tasks in specific directory")
@click.option("-d", "--debug", is_flag=True, default=False, help="Print additional debug information")
@click.option("--diff", help="Override the default --staged flag of `git diff` to get list of files")
@click.option("--diff-filter", help="Override the default --diff-filter=ACMR flag of `git diff`")
@click.option(
    "--max-arg-length", type=click.IntRange(min=0), help="Maximum length of the command-line argument string"
)
@click.option("--no-stash", "no_stash", is_flag=True, default=False, help="Disable the backup stash")
@click.option("-q", "--quiet", is_flag=True, default=False, help="Disable lint-staged's own console output")
@click.option("-r", "--relative", is_flag=True, default=False, help="Pass relative filepaths to tasks")
@click.option(
    "-x",
    "--shell",
    is_flag=False,
    flag_value="true",
    callback=_parse_shell,
    help="Run tasks in a shell; optionally the path of the shell to use",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show task output even when tasks succeed")
def cli(
    allow_empty: bool,
    concurrent: bool | int | None,
    config_path: str | None,
    cwd: str | None,
    debug: bool,
    diff: str | None,
    diff_filter: str | None,
    max_arg_length: int | None,
    no_stash: bool,
    quiet: bool,
    relative: bool,
    shell: bool | str | None,
    verbose: bool,
) -> None:
    """lint-staged: run linters against staged git files."""
    if debug:
        configure_logging("DEBUG")

    flags = {"allow_empty": allow_empty, "quiet": quiet, "relative": relative, "verbose": verbose}
    values = {
        "concurrent": concurrent,
        "config_path": config_path,
        "cwd": cwd,
        "diff": diff,
        "diff_filter": diff_filter,
        "max_arg_length": max_arg_length,
        "shell": shell,
    }
    # Unset options fall back to LINT_STAGED_* environment variables
    overrides = {key: True for key, value in flags.items() if value}
    overrides.update({key: value for key, value in values.items() if value is not None})
    if debug:
        overrides["debug"] = True
    if no_stash:
        overrides["stash"] = False

    try:
        options = LintStagedOptions(**overrides)
    except ValidationError as e:
        click.echo(f"Error: invalid options\n{e}", err=True)
        sys.exit(1)

    try:
        passed = asyncio.run(lint_staged(options))
    except LintStagedError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("lint_staged_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    sys.exit(0 if passed else 1)


if __name__ == "__main__":
    cli()
