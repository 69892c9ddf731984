"""Tests for lint_staged.engine.context."""

import asyncio

import pytest

from lint_staged.engine.context import ErrorSet, RunContext
from lint_staged.enums import ErrorKind


class TestErrorSet:
    """Tests for the error marker set."""

    def test_starts_empty(self):
        errors = ErrorSet()

        assert len(errors) == 0
        assert ErrorKind.TASK_ERROR not in errors

    def test_add_is_idempotent(self):
        errors = ErrorSet()
        errors.add(ErrorKind.GIT_ERROR)
        errors.add(ErrorKind.GIT_ERROR)

        assert len(errors) == 1
        assert errors == {ErrorKind.GIT_ERROR}

    def test_has_any(self):
        errors = ErrorSet([ErrorKind.TASK_ERROR])

        assert errors.has_any(ErrorKind.GIT_ERROR, ErrorKind.TASK_ERROR)
        assert not errors.has_any(ErrorKind.GIT_ERROR)

    def test_markers_render_as_their_value(self):
        errors = ErrorSet([ErrorKind.CONFIG_NOT_FOUND_ERROR])

        assert repr(errors) == "ErrorSet(['ConfigNotFoundError'])"
        assert str(ErrorKind.CONFIG_NOT_FOUND_ERROR) == "ConfigNotFoundError"

    @pytest.mark.asyncio
    async def test_wait_returns_once_a_marker_is_added(self):
        errors = ErrorSet()
        waiter = asyncio.create_task(errors.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        errors.add(ErrorKind.TASK_ERROR)

        await asyncio.wait_for(waiter, timeout=1)

    @pytest.mark.asyncio
    async def test_wait_returns_immediately_when_failing(self):
        errors = ErrorSet([ErrorKind.GIT_ERROR])

        await asyncio.wait_for(errors.wait(), timeout=1)


class TestRunContext:
    """Tests for RunContext defaults."""

    def test_defaults(self):
        ctx = RunContext()

        assert ctx.quiet is False
        assert ctx.errors == set()
        assert ctx.output == []
        assert ctx.has_partially_staged_files is None
        assert ctx.should_backup is None
        assert ctx.failed is False

    def test_contexts_do_not_share_state(self):
        first, second = RunContext(), RunContext()
        first.errors.add(ErrorKind.TASK_ERROR)
        first.output.append("block")

        assert second.failed is False
        assert second.output == []

    def test_failed_once_any_marker_is_recorded(self):
        ctx = RunContext()
        ctx.errors.add(ErrorKind.GET_STAGED_FILES_ERROR)

        assert ctx.failed is True
