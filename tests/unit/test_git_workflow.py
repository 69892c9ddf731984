"""Unit tests for lint_staged.git.workflow with git calls mocked."""

from unittest.mock import AsyncMock, patch

import pytest

from lint_staged.engine.context import RunContext
from lint_staged.enums import ErrorKind
from lint_staged.exceptions import GitCommandError, GitWorkflowError
from lint_staged.git.workflow import GitWorkflow, parse_partially_staged, process_renames


def make_workflow(tmp_path, **kwargs) -> GitWorkflow:
    return GitWorkflow(
        git_dir=str(tmp_path),
        git_config_dir=str(tmp_path / ".git"),
        matched_file_chunks=kwargs.pop("matched_file_chunks", [[str(tmp_path / "a.py")]]),
        **kwargs,
    )


class TestStatusParsing:
    def test_partially_staged_files(self):
        status = "MM a.py\x00M  b.py\x00 M c.py\x00AM d.py\x00?? e.py\x00"

        assert parse_partially_staged(status) == ["a.py", "d.py"]

    def test_renamed_entry_keeps_origin(self):
        status = "RM new.py\x00old.py\x00M  other.py\x00"

        assert parse_partially_staged(status) == ["new.py\x00old.py"]

    def test_empty_status(self):
        assert parse_partially_staged("") == []

    def test_process_renames(self):
        assert process_renames(["new.py\x00old.py", "a.py"]) == ["old.py", "new.py", "a.py"]
        assert process_renames(["new.py\x00old.py"], include_rename_from=False) == ["new.py"]


class TestPrepare:
    @pytest.mark.asyncio
    async def test_without_partially_staged_files(self, tmp_path):
        workflow = make_workflow(tmp_path)
        ctx = RunContext(should_backup=True)
        responses = {"status": "M  a.py\x00", "ls-files": "", "stash": "abc123"}

        async def fake_git(args, cwd=None):
            return responses.get(args[0], "")

        with patch("lint_staged.git.workflow.exec_git", side_effect=fake_git) as git:
            await workflow.prepare(ctx)

        commands = [call.args[0] for call in git.call_args_list]
        assert ctx.has_partially_staged_files is False
        assert ["stash", "create"] in commands
        assert ["stash", "store", "--quiet", "--message", "lint-staged automatic backup", "abc123"] in commands
        assert workflow.backup_hash == "abc123"
        assert not any(command[0] in ("diff", "checkout") for command in commands)

    @pytest.mark.asyncio
    async def test_no_backup_without_should_backup(self, tmp_path):
        workflow = make_workflow(tmp_path)
        ctx = RunContext(should_backup=False)

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock, return_value="MM a.py\x00") as git:
            await workflow.prepare(ctx)

        commands = [call.args[0] for call in git.call_args_list]
        assert ctx.has_partially_staged_files is True
        assert not any(command[0] == "stash" for command in commands)
        assert workflow.backup_hash is None
        assert commands[-1] == ["checkout", "--force", "--", "a.py"]

    @pytest.mark.asyncio
    async def test_failure_adds_git_error(self, tmp_path):
        workflow = make_workflow(tmp_path)
        ctx = RunContext(should_backup=True)
        error = GitCommandError(["status", "-z"], 128, stderr="fatal: broken")

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock, side_effect=error):
            with pytest.raises(GitWorkflowError, match="fatal: broken"):
                await workflow.prepare(ctx)

        assert ctx.errors == {ErrorKind.GIT_ERROR}

    @pytest.mark.asyncio
    async def test_hide_failure_adds_marker(self, tmp_path):
        workflow = make_workflow(tmp_path)
        ctx = RunContext(should_backup=False)

        async def fake_git(args, cwd=None):
            if args[0] == "checkout":
                raise GitCommandError(args, 1)
            return "MM a.py\x00"

        with patch("lint_staged.git.workflow.exec_git", side_effect=fake_git):
            with pytest.raises(GitWorkflowError):
                await workflow.prepare(ctx)

        assert ctx.errors == {ErrorKind.GIT_ERROR, ErrorKind.HIDE_UNSTAGED_CHANGES_ERROR}


class TestApplyModifications:
    @pytest.mark.asyncio
    async def test_adds_each_chunk_in_order(self, tmp_path):
        workflow = make_workflow(tmp_path, matched_file_chunks=[["a.py", "b.py"], ["c.py"]])
        ctx = RunContext()

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock, return_value="a.py") as git:
            await workflow.apply_modifications(ctx)

        commands = [call.args[0] for call in git.call_args_list]
        assert commands[:2] == [["add", "--", "a.py", "b.py"], ["add", "--", "c.py"]]
        assert commands[2][:2] == ["diff", "--name-only"]
        assert not ctx.failed

    @pytest.mark.asyncio
    async def test_prevents_empty_commit(self, tmp_path):
        workflow = make_workflow(tmp_path)
        ctx = RunContext()

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock, return_value=""):
            with pytest.raises(GitWorkflowError, match="empty git commit"):
                await workflow.apply_modifications(ctx)

        assert ctx.errors == {ErrorKind.GIT_ERROR, ErrorKind.APPLY_EMPTY_COMMIT_ERROR}

    @pytest.mark.asyncio
    async def test_allow_empty(self, tmp_path):
        workflow = make_workflow(tmp_path, allow_empty=True)
        ctx = RunContext()

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock, return_value=""):
            await workflow.apply_modifications(ctx)

        assert not ctx.failed


class TestRestoreUnstagedChanges:
    @pytest.mark.asyncio
    async def test_no_op_without_partially_staged_files(self, tmp_path):
        workflow = make_workflow(tmp_path)
        ctx = RunContext(has_partially_staged_files=False)

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock) as git:
            await workflow.restore_unstaged_changes(ctx)

        git.assert_not_called()

    @pytest.mark.asyncio
    async def test_retries_with_three_way_merge(self, tmp_path):
        workflow = make_workflow(tmp_path)
        ctx = RunContext(has_partially_staged_files=True)
        attempts = []

        async def fake_git(args, cwd=None):
            attempts.append(args)
            if "--3way" not in args:
                raise GitCommandError(args, 1, stderr="patch does not apply")
            return ""

        with patch("lint_staged.git.workflow.exec_git", side_effect=fake_git):
            await workflow.restore_unstaged_changes(ctx)

        assert len(attempts) == 2
        assert "--3way" in attempts[1]
        assert not ctx.failed

    @pytest.mark.asyncio
    async def test_conflict_is_fatal(self, tmp_path):
        workflow = make_workflow(tmp_path)
        ctx = RunContext(has_partially_staged_files=True)
        error = GitCommandError(["apply"], 1, stderr="conflict")

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock, side_effect=error):
            with pytest.raises(GitWorkflowError, match="merge conflict"):
                await workflow.restore_unstaged_changes(ctx)

        assert ctx.errors == {ErrorKind.GIT_ERROR, ErrorKind.RESTORE_UNSTAGED_CHANGES_ERROR}


class TestRestoreOriginalState:
    @pytest.mark.asyncio
    async def test_missing_backup_stash(self, tmp_path):
        workflow = make_workflow(tmp_path)
        workflow.backup_hash = "abc123"
        ctx = RunContext(should_backup=True)

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock, return_value="def456"):
            with pytest.raises(GitWorkflowError, match="backup is missing"):
                await workflow.restore_original_state(ctx)

        assert ctx.errors == {
            ErrorKind.GIT_ERROR,
            ErrorKind.GET_BACKUP_STASH_ERROR,
            ErrorKind.RESTORE_ORIGINAL_STATE_ERROR,
        }

    @pytest.mark.asyncio
    async def test_applies_backup_stash_by_index(self, tmp_path):
        workflow = make_workflow(tmp_path)
        workflow.backup_hash = "abc123"
        ctx = RunContext(should_backup=True)

        async def fake_git(args, cwd=None):
            return "def456\nabc123" if args[:2] == ["stash", "list"] else ""

        with patch("lint_staged.git.workflow.exec_git", side_effect=fake_git) as git:
            await workflow.restore_original_state(ctx)

        commands = [call.args[0] for call in git.call_args_list]
        assert commands[0] == ["reset", "--hard", "HEAD"]
        assert ["stash", "apply", "--quiet", "--index", "stash@{1}"] in commands
        assert not ctx.failed


class TestCleanup:
    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, tmp_path, logger):
        workflow = make_workflow(tmp_path, logger=logger)
        workflow.backup_hash = "abc123"
        ctx = RunContext(should_backup=True)
        error = GitCommandError(["stash", "list"], 128, stderr="fatal")

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock, side_effect=error):
            await workflow.cleanup(ctx)

        assert not ctx.failed
        assert "Failed to clean up" in logger.messages("warn")[0]

    @pytest.mark.asyncio
    async def test_drops_own_backup_stash(self, tmp_path):
        workflow = make_workflow(tmp_path)
        workflow.backup_hash = "abc123"
        ctx = RunContext()

        async def fake_git(args, cwd=None):
            return "def456\nabc123" if args[:2] == ["stash", "list"] else ""

        with patch("lint_staged.git.workflow.exec_git", side_effect=fake_git) as git:
            await workflow.cleanup(ctx)

        assert git.call_args_list[-1].args[0] == ["stash", "drop", "--quiet", "stash@{1}"]

    @pytest.mark.asyncio
    async def test_leaves_other_backups_alone(self, tmp_path):
        workflow = make_workflow(tmp_path)
        workflow.backup_hash = "abc123"

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock, return_value="def456") as git:
            await workflow.cleanup(RunContext())

        assert not any(call.args[0][:2] == ["stash", "drop"] for call in git.call_args_list)

    @pytest.mark.asyncio
    async def test_without_backup_touches_no_stash(self, tmp_path):
        workflow = make_workflow(tmp_path)

        with patch("lint_staged.git.workflow.exec_git", new_callable=AsyncMock) as git:
            await workflow.cleanup(RunContext())

        git.assert_not_called()
