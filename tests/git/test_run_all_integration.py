"""End-to-end tests: real repositories, real task processes."""

import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from lint_staged.config.settings import LintStagedOptions
from lint_staged.engine.orchestrator import run_all
from lint_staged.enums import ErrorKind
from lint_staged.exceptions import RunFailedError
from lint_staged.main import cli
from lint_staged.messages import NO_STAGED_FILES

UPPERCASE = """
import sys
for name in sys.argv[1:]:
    with open(name) as f:
        content = f.read()
    with open(name, "w") as f:
        f.write(content.upper())
"""

BREAK_AND_FAIL = """
import sys
for name in sys.argv[1:]:
    with open(name, "w") as f:
        f.write("broken\\n")
print("lint error in", len(sys.argv) - 1, "file(s)")
sys.exit(1)
"""


@pytest.fixture
def scripts(tmp_path: Path) -> dict[str, str]:
    """Task commands backed by small Python scripts outside the repository."""
    commands = {}
    for name, source in (("uppercase", UPPERCASE), ("break_and_fail", BREAK_AND_FAIL)):
        path = tmp_path / f"{name}.py"
        path.write_text(source)
        commands[name] = f"{sys.executable} {path}"
    return commands


@pytest.fixture
def partially_staged(git_repo: Path, run_git) -> Path:
    app = git_repo / "app.txt"
    app.write_text("one\ntwo\nthree\nfour\n")
    run_git(git_repo, "add", "app.txt")
    app.write_text("zero\none\ntwo\nthree\nfour\n")
    return git_repo


class TestRunAll:
    @pytest.mark.asyncio
    async def test_formatter_on_partially_staged_file(self, partially_staged: Path, run_git, scripts, logger):
        options = LintStagedOptions(cwd=str(partially_staged), config_object={"*.txt": scripts["uppercase"]})

        ctx = await run_all(options, logger)

        assert not ctx.failed
        assert run_git(partially_staged, "show", ":app.txt") == "ONE\nTWO\nTHREE\nFOUR\n"
        assert (partially_staged / "app.txt").read_text() == "zero\nONE\nTWO\nTHREE\nFOUR\n"
        assert run_git(partially_staged, "stash", "list") == ""

    @pytest.mark.asyncio
    async def test_failing_task_restores_original_state(self, partially_staged: Path, run_git, scripts, logger):
        options = LintStagedOptions(cwd=str(partially_staged), config_object={"*.txt": scripts["break_and_fail"]})

        with pytest.raises(RunFailedError) as exc_info:
            await run_all(options, logger)

        ctx = exc_info.value.ctx
        assert ErrorKind.TASK_ERROR in ctx.errors
        assert "lint error in 1 file(s)" in "".join(ctx.output)
        assert run_git(partially_staged, "show", ":app.txt") == "one\ntwo\nthree\nfour\n"
        assert (partially_staged / "app.txt").read_text() == "zero\none\ntwo\nthree\nfour\n"
        assert run_git(partially_staged, "stash", "list") == ""

    @pytest.mark.asyncio
    async def test_unmatched_files_are_untouched(self, partially_staged: Path, run_git, scripts, logger):
        (partially_staged / "README.md").write_text("# Staged readme\n")
        run_git(partially_staged, "add", "README.md")
        options = LintStagedOptions(cwd=str(partially_staged), config_object={"*.txt": scripts["uppercase"]})

        await run_all(options, logger)

        assert (partially_staged / "README.md").read_text() == "# Staged readme\n"
        assert run_git(partially_staged, "show", ":README.md") == "# Staged readme\n"

    @pytest.mark.asyncio
    async def test_nothing_staged(self, git_repo: Path, scripts, logger):
        options = LintStagedOptions(cwd=str(git_repo), config_object={"*.txt": scripts["uppercase"]})

        ctx = await run_all(options, logger)

        assert ctx.output == [NO_STAGED_FILES]

    @pytest.mark.asyncio
    async def test_first_commit_runs_without_backup(self, empty_repo: Path, run_git, scripts, logger):
        (empty_repo / "app.txt").write_text("one\n")
        run_git(empty_repo, "add", "app.txt")
        options = LintStagedOptions(cwd=str(empty_repo), config_object={"*.txt": scripts["uppercase"]})

        ctx = await run_all(options, logger)

        assert ctx.should_backup is False
        assert run_git(empty_repo, "show", ":app.txt") == "ONE\n"
        assert any("Skipping backup" in message for message in logger.messages("warn"))


class TestCliEndToEnd:
    def test_config_file_in_repository(self, partially_staged: Path, run_git, scripts):
        (partially_staged / ".lintstagedrc.yaml").write_text(f"'*.txt': {scripts['uppercase']}\n")

        result = CliRunner().invoke(cli, ["--cwd", str(partially_staged), "--concurrent", "false"])

        assert result.exit_code == 0, result.output
        assert run_git(partially_staged, "show", ":app.txt") == "ONE\nTWO\nTHREE\nFOUR\n"

    def test_missing_configuration(self, git_repo: Path, run_git):
        (git_repo / "app.txt").write_text("changed\n")
        run_git(git_repo, "add", "app.txt")

        result = CliRunner().invoke(cli, ["--cwd", str(git_repo)])

        assert result.exit_code == 1
        assert "No valid configuration found" in result.output


class TestEarlierBackups:
    """Backup stashes kept from earlier failed runs survive later runs."""

    @pytest.fixture
    def earlier_backup(self, git_repo: Path, run_git) -> Path:
        (git_repo / "app.txt").write_text("work from an earlier run\n")
        run_git(git_repo, "stash", "push", "--quiet", "-m", "lint-staged automatic backup")
        (git_repo / "README.md").write_text("# Staged readme\n")
        run_git(git_repo, "add", "README.md")
        return git_repo

    @pytest.mark.asyncio
    async def test_run_without_backup(self, earlier_backup: Path, run_git, scripts, logger):
        options = LintStagedOptions(cwd=str(earlier_backup), stash=False, config_object={"*.md": scripts["uppercase"]})

        await run_all(options, logger)

        assert "lint-staged automatic backup" in run_git(earlier_backup, "stash", "list")

    @pytest.mark.asyncio
    async def test_run_with_backup(self, earlier_backup: Path, run_git, scripts, logger):
        options = LintStagedOptions(cwd=str(earlier_backup), config_object={"*.md": scripts["uppercase"]})

        await run_all(options, logger)

        stashes = run_git(earlier_backup, "stash", "list").splitlines()
        assert len(stashes) == 1
        run_git(earlier_backup, "stash", "pop", "--quiet")
        assert (earlier_backup / "app.txt").read_text() == "work from an earlier run\n"

    @pytest.mark.asyncio
    async def test_failed_run_reverts_from_its_own_backup(self, earlier_backup: Path, run_git, scripts, logger):
        options = LintStagedOptions(cwd=str(earlier_backup), config_object={"*.md": scripts["break_and_fail"]})

        with pytest.raises(RunFailedError):
            await run_all(options, logger)

        assert (earlier_backup / "README.md").read_text() == "# Staged readme\n"
        assert (earlier_backup / "app.txt").read_text() == "one\ntwo\nthree\n"
        assert len(run_git(earlier_backup, "stash", "list").splitlines()) == 1
