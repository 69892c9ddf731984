"""Progress reporting through an injectable logger.

Every user-facing line is written through a ``Logger``, so a host can run
lint-staged silently or with a custom reporter. ``ConsoleLogger`` is the
default and writes with click.
"""

from __future__ import annotations

from typing import Protocol

import click


class Logger(Protocol):
    """Sink for user-facing lines."""

    def log(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class ConsoleLogger:
    """Write lines to the terminal, warnings and errors to stderr."""

    def log(self, message: str) -> None:
        click.echo(message)

    def info(self, message: str) -> None:
        click.echo(message)

    def warn(self, message: str) -> None:
        click.echo(click.style(message, fg="yellow"), err=True)

    def error(self, message: str) -> None:
        click.echo(click.style(message, fg="red"), err=True)


class StatusReporter:
    """Report step progress as ``[STARTED]``/``[SUCCESS]``/``[FAILED]``/``[SKIPPED]`` lines.

    Multi-line messages get the marker on every line. Nothing is written
    when ``quiet`` is set.
    """

    def __init__(self, logger: Logger, quiet: bool = False) -> None:
        """Initialize with the logger to write through.

        Args:
            logger: Destination for progress lines
            quiet: Suppress all progress lines
        """
        self.logger = logger
        self.quiet = quiet

    def started(self, title: str) -> None:
        self._emit(self.logger.log, "STARTED", title)

    def succeeded(self, title: str) -> None:
        self._emit(self.logger.log, "SUCCESS", title)

    def failed(self, message: str) -> None:
        self._emit(self.logger.error, "FAILED", message)

    def skipped(self, message: str) -> None:
        self._emit(self.logger.info, "SKIPPED", message)

    def _emit(self, write, marker: str, text: str) -> None:  # type: ignore[no-untyped-def]
        if self.quiet:
            return
        write("\n".join(f"[{marker}] {line}" for line in text.split("\n")))
