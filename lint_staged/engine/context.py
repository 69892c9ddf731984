"""Run context shared by every phase of a lint-staged run.

This module provides the RunContext dataclass, the single mutable
accumulator of errors, output and workflow flags for one run, and the
ErrorSet that doubles as the cancellation broadcast for running tasks.
"""

import asyncio
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from lint_staged.enums import ErrorKind


class ErrorSet:
    """Append-only set of error markers with a cancellation broadcast.

    Adding any marker wakes every coroutine blocked in ``wait()``. Running
    tasks use this to kill their processes as soon as a sibling fails.

    The set is mutated from the event loop thread only. Callers running
    tasks on OS threads must hand results back to the loop before adding
    markers.
    """

    def __init__(self, kinds: Iterable[ErrorKind] = ()) -> None:
        self._kinds: set[ErrorKind] = set()
        self._event = asyncio.Event()
        for kind in kinds:
            self.add(kind)

    def add(self, kind: ErrorKind) -> None:
        """Record a marker and broadcast cancellation."""
        self._kinds.add(kind)
        self._event.set()

    async def wait(self) -> None:
        """Block until at least one marker has been recorded."""
        await self._event.wait()

    def has_any(self, *kinds: ErrorKind) -> bool:
        return any(kind in self._kinds for kind in kinds)

    def __contains__(self, kind: object) -> bool:
        return kind in self._kinds

    def __iter__(self) -> Iterator[ErrorKind]:
        return iter(self._kinds)

    def __len__(self) -> int:
        return len(self._kinds)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorSet):
            return self._kinds == other._kinds
        if isinstance(other, (set, frozenset)):
            return self._kinds == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ErrorSet({sorted(kind.value for kind in self._kinds)})"


@dataclass
class RunContext:
    """State carried through one lint-staged run.

    Attributes:
        quiet: Suppress informational output blocks
        errors: Error markers recorded so far. Non-empty means the run fails.
        output: Text blocks to print at the end of the run, in completion order
        has_partially_staged_files: Set by the workflow's prepare phase
        should_backup: Whether a backup stash is taken before running tasks
    """

    quiet: bool = False
    errors: ErrorSet = field(default_factory=ErrorSet)
    output: list[str] = field(default_factory=list)
    has_partially_staged_files: bool | None = None
    should_backup: bool | None = None

    @property
    def failed(self) -> bool:
        return len(self.errors) > 0
