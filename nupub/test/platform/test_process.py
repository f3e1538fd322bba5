"""Tests for nupub.platform.process module."""

from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

from nupub.platform.process import (
    Command,
    CommandResult,
    CommandRunner,
    DryRunRunner,
    MockCommandRunner,
    SubprocessRunner,
)


class Sinks:
    def __init__(self) -> None:
        self.out: list[str] = []
        self.err: list[str] = []


def _py(code: str) -> Command:
    return Command((sys.executable, "-c", code))


def _run(runner: CommandRunner, command: Command) -> tuple[CommandResult, Sinks]:
    sinks = Sinks()
    result = runner.run(command, on_output=sinks.out.append, on_error=sinks.err.append)
    return result, sinks


class TestCommand:
    def test_shown_uses_argv(self) -> None:
        command = Command(("dotnet", "build", "-c", "Release", "My Lib.csproj"))
        assert command.shown() == "dotnet build -c Release 'My Lib.csproj'"
        assert command.program == "dotnet"

    def test_shown_prefers_display(self) -> None:
        command = Command(("tool", "-k", "s3cr3t"), display=("tool", "-k", "***"))
        assert str(command) == "tool -k ***"
        assert "s3cr3t" not in command.shown()


class TestCommandResult:
    def test_success_needs_exit_zero_and_empty_stderr(self) -> None:
        cmd = Command(("x",))
        assert CommandResult(cmd, 0).success
        assert not CommandResult(cmd, 1).success
        assert not CommandResult(cmd, 0, stderr="warning NU5100").success

    def test_str_truncates_and_hides_secret(self) -> None:
        cmd = Command(
            ("dotnet", "nuget", "push", "a.nupkg", "-k", "s3cr3t"),
            display=("dotnet", "nuget", "push", "a.nupkg", "-k", "***"),
        )
        assert str(CommandResult(cmd, 1)) == "dotnet nuget push ... failed (exit 1)"

    def test_str_for_stderr_only_failure(self) -> None:
        result = CommandResult(Command(("git", "tag", "v1")), 0, stderr="fatal")
        assert str(result) == "git tag v1 wrote to stderr (exit 0)"


class TestSubprocessRunner:
    def test_success_streams_stdout(self) -> None:
        result, sinks = _run(SubprocessRunner(), _py("print('hello'); print(''); print('world')"))

        assert result.success
        assert result.returncode == 0
        assert result.stdout == "hello\nworld"
        # First line is the echoed command, empty lines are dropped.
        assert sinks.out[1:] == ["hello", "world"]
        assert sinks.err == []

    def test_echoes_display_form(self) -> None:
        command = Command(
            (sys.executable, "-c", "pass", "s3cr3t"),
            display=("python", "-c", "pass", "***"),
        )
        result, sinks = _run(SubprocessRunner(), command)

        assert result.success
        assert sinks.out[0] == "python -c pass '***'"
        assert all("s3cr3t" not in line for line in sinks.out)

    def test_nonzero_exit_fails(self) -> None:
        result, _ = _run(SubprocessRunner(), _py("import sys; sys.exit(3)"))

        assert not result.success
        assert result.returncode == 3

    def test_stderr_with_exit_zero_fails(self) -> None:
        result, sinks = _run(
            SubprocessRunner(),
            _py("import sys; sys.stderr.write('warning: something\\n')"),
        )

        assert result.returncode == 0
        assert not result.success
        assert result.stderr == "warning: something"
        assert sinks.err == ["warning: something"]

    def test_blank_stderr_does_not_fail(self) -> None:
        result, sinks = _run(SubprocessRunner(), _py("import sys; sys.stderr.write('\\n\\n')"))

        assert result.success
        assert sinks.err == []

    def test_large_output_on_both_streams(self) -> None:
        code = (
            "import sys\n"
            "for i in range(5000):\n"
            "    print('out', i)\n"
            "    print('err', i, file=sys.stderr)\n"
        )
        result, sinks = _run(SubprocessRunner(), _py(code))

        assert result.returncode == 0
        assert len(sinks.err) == 5000
        assert len(sinks.out) == 5001

    def test_missing_program(self) -> None:
        result, sinks = _run(SubprocessRunner(), Command(("nonexistent_command_12345",)))

        assert not result.success
        assert result.returncode == -1
        assert result.stderr
        assert sinks.err == [result.stderr]

    def test_cwd(self, tmp_path: Path) -> None:
        (tmp_path / "marker.txt").write_text("x", encoding="utf-8")
        result, _ = _run(
            SubprocessRunner(cwd=tmp_path),
            _py("import os; print(sorted(os.listdir('.')))"),
        )

        assert "marker.txt" in result.stdout

    def test_timeout(self) -> None:
        result, sinks = _run(SubprocessRunner(timeout=0.2), _py("import time; time.sleep(10)"))

        assert not result.success
        assert result.returncode == -1
        assert "timed out" in sinks.err[-1]

    @pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX only")
    def test_timeout_kills_grandchildren_holding_the_pipes(self) -> None:
        code = (
            "import subprocess, sys, time\n"
            "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(6)'])\n"
            "time.sleep(30)\n"
        )
        started = time.monotonic()
        result, sinks = _run(SubprocessRunner(timeout=0.5), _py(code))
        elapsed = time.monotonic() - started

        assert elapsed < 2.0
        assert result.returncode == -1
        assert "timed out" in sinks.err[-1]

    def test_failing_sink_does_not_block_the_child(self) -> None:
        seen: list[str] = []
        errors: list[str] = []

        def fragile(line: str) -> None:
            seen.append(line)
            if len(seen) == 2:
                raise BrokenPipeError("stdout closed")

        result = SubprocessRunner(timeout=30).run(
            _py("for i in range(200000): print('line', i)"),
            on_output=fragile,
            on_error=errors.append,
        )

        assert result.returncode == 0
        assert not result.success
        assert len(result.stdout.splitlines()) == 200000
        # The echoed command and one line reached the sink, nothing after.
        assert len(seen) == 2
        assert "BrokenPipeError" in result.stderr
        assert errors and "stdout output failed" in errors[-1]


class TestDryRunRunner:
    def test_never_executes(self, tmp_path: Path) -> None:
        marker = tmp_path / "ran"
        result, sinks = _run(DryRunRunner(), _py(f"open({str(marker)!r}, 'w')"))

        assert result.success
        assert not marker.exists()
        assert sinks.out[0].startswith("(dry-run) ")


class TestMockCommandRunner:
    def test_unscripted_commands_succeed(self) -> None:
        runner = MockCommandRunner()
        result, sinks = _run(runner, Command(("git", "tag", "v1")))

        assert result.success
        assert sinks.out == ["git tag v1"]
        assert runner.ran("git", "tag")

    def test_longest_prefix_wins(self) -> None:
        runner = MockCommandRunner()
        runner.script(("git",), returncode=1)
        runner.script(("git", "push"), stderr=["rejected"])

        tag, _ = _run(runner, Command(("git", "tag", "v1")))
        push, sinks = _run(runner, Command(("git", "push", "origin", "v1")))

        assert tag.returncode == 1
        assert push.returncode == 0
        assert not push.success
        assert sinks.err == ["rejected"]
        assert runner.argvs == [("git", "tag", "v1"), ("git", "push", "origin", "v1")]

    def test_is_a_command_runner(self) -> None:
        assert isinstance(MockCommandRunner(), CommandRunner)
        assert isinstance(SubprocessRunner(), CommandRunner)
        assert isinstance(DryRunRunner(), CommandRunner)


@pytest.mark.parametrize("returncode", [0, 2])
def test_mock_and_real_agree_on_stderr_rule(returncode: int) -> None:
    runner = MockCommandRunner()
    runner.script(("tool",), returncode=returncode, stderr=["oops"])
    mocked, _ = _run(runner, Command(("tool",)))

    real, _ = _run(
        SubprocessRunner(),
        _py(f"import sys; sys.stderr.write('oops'); sys.exit({returncode})"),
    )

    assert mocked.success is real.success is False
