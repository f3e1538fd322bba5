"""External command execution with streamed output.

A command succeeds only when it exits 0 AND wrote nothing to stderr. Many
dotnet tools exit 0 while printing errors on stderr, so the exit code alone
is not trusted.

Usage:
    runner = SubprocessRunner()
    result = runner.run(
        Command(("dotnet", "--info")),
        on_output=console.print,
        on_error=console.error,
    )
    if not result.success:
        console.error(str(result))
"""

from __future__ import annotations

import os
import shlex
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

__all__ = [
    "Command",
    "CommandResult",
    "CommandRunner",
    "DryRunRunner",
    "MockCommandRunner",
    "OutputSink",
    "SubprocessRunner",
]

OutputSink = Callable[[str], None]

_POSIX = os.name == "posix"


@dataclass(frozen=True, slots=True)
class Command:
    """A command line plus the form shown in logs.

    Attributes:
        argv: Program and arguments actually executed.
        display: What gets logged instead of argv (secrets masked).
            None means argv is safe to show.
    """

    argv: tuple[str, ...]
    display: tuple[str, ...] | None = None

    @property
    def program(self) -> str:
        return self.argv[0]

    def shown(self) -> str:
        return shlex.join(self.display if self.display is not None else self.argv)

    def __str__(self) -> str:
        return self.shown()


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of one command.

    Attributes:
        command: The command that ran.
        returncode: Exit code, -1 when the process never started or timed out.
        stdout: Non-empty stdout lines, newline-joined.
        stderr: Non-empty stderr lines, newline-joined.
    """

    command: Command
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.stderr

    def __str__(self) -> str:
        shown = self.command.display or self.command.argv
        cmd_str = " ".join(shown[:3])
        if len(shown) > 3:
            cmd_str += " ..."
        if self.returncode == 0 and self.stderr:
            return f"{cmd_str} wrote to stderr (exit 0)"
        return f"{cmd_str} failed (exit {self.returncode})"


@runtime_checkable
class CommandRunner(Protocol):
    """Runs a command to completion, streaming its output to the sinks."""

    def run(
        self,
        command: Command,
        *,
        on_output: OutputSink,
        on_error: OutputSink,
    ) -> CommandResult: ...


@dataclass
class _Stream:
    """One pipe being drained: its lines, its sink and the sink's failure."""

    sink: OutputSink
    lines: list[str] = field(default_factory=list)
    failure: Exception | None = None
    detached: bool = False


def _pump(stream: IO[str], target: _Stream, lock: threading.Lock) -> None:
    # The pipe is always read to EOF, even after the sink failed, so the
    # child can never block on a full pipe.
    for raw in stream:
        line = raw.rstrip("\r\n")
        if not line:
            continue
        with lock:
            if target.detached:
                continue
            target.lines.append(line)
            if target.failure is not None:
                continue
            try:
                target.sink(line)
            except Exception as e:  # noqa: BLE001 - reported in the CommandResult
                target.failure = e


def _kill_group(proc: subprocess.Popen[str]) -> None:
    """Kill the child and everything it spawned in its session."""
    if _POSIX:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        proc.kill()


class SubprocessRunner:
    """Real runner backed by subprocess.Popen.

    stdout and stderr are drained on two threads so a chatty stream can never
    block the other one. Sink calls are serialized.

    On POSIX the child gets its own session, so a timeout kills the whole
    process group (MSBuild worker nodes included). Processes that detach on
    their own may keep the pipes open; the readers are then given
    DRAIN_GRACE_SECONDS and abandoned.
    """

    DRAIN_GRACE_SECONDS = 2.0

    def __init__(
        self,
        *,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.cwd = cwd
        self.env = env
        self.timeout = timeout

    def run(
        self,
        command: Command,
        *,
        on_output: OutputSink,
        on_error: OutputSink,
    ) -> CommandResult:
        on_output(command.shown())

        try:
            proc = subprocess.Popen(
                list(command.argv),
                cwd=str(self.cwd) if self.cwd else None,
                env=self.env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=_POSIX,
            )
        except OSError as e:
            on_error(str(e))
            return CommandResult(command=command, returncode=-1, stderr=str(e))

        lock = threading.Lock()
        out = _Stream(sink=on_output)
        err = _Stream(sink=on_error)
        assert proc.stdout is not None and proc.stderr is not None
        pumps = [
            threading.Thread(target=_pump, args=(proc.stdout, out, lock), daemon=True),
            threading.Thread(target=_pump, args=(proc.stderr, err, lock), daemon=True),
        ]
        for pump in pumps:
            pump.start()

        timed_out = False
        try:
            returncode = proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            _kill_group(proc)
            proc.wait()
            returncode = -1
            timed_out = True

        deadline = time.monotonic() + self.DRAIN_GRACE_SECONDS
        for pump in pumps:
            pump.join(timeout=max(0.0, deadline - time.monotonic()))
        drained = not any(pump.is_alive() for pump in pumps)

        with lock:
            out.detached = err.detached = True
            out_lines = list(out.lines)
            err_lines = list(err.lines)

        if drained:
            proc.stdout.close()
            proc.stderr.close()

        notes: list[str] = []
        if timed_out:
            notes.append(f"Command timed out after {self.timeout}s")
        for stream, name in ((out, "stdout"), (err, "stderr")):
            if stream.failure is not None:
                notes.append(f"Writing {name} output failed: {stream.failure!r}")
        for note in notes:
            err_lines.append(note)
            if err.failure is None:
                on_error(note)

        return CommandResult(
            command=command,
            returncode=returncode,
            stdout="\n".join(out_lines),
            stderr="\n".join(err_lines),
        )


class DryRunRunner:
    """Runner that only prints what would run and reports success."""

    def run(
        self,
        command: Command,
        *,
        on_output: OutputSink,
        on_error: OutputSink,
    ) -> CommandResult:
        on_output(f"(dry-run) {command.shown()}")
        return CommandResult(command=command, returncode=0)


@dataclass(frozen=True, slots=True)
class ScriptedOutput:
    returncode: int = 0
    stdout: tuple[str, ...] = ()
    stderr: tuple[str, ...] = ()


def _empty_calls() -> list[Command]:
    return []


@dataclass
class MockCommandRunner:
    """Runner returning scripted results, for testing.

    Results are matched on the longest registered argv prefix; unmatched
    commands succeed silently.

    Usage:
        runner = MockCommandRunner()
        runner.script(("dotnet", "build"), returncode=1, stderr=["error CS1002"])
    """

    calls: list[Command] = field(default_factory=_empty_calls)
    _scripts: dict[tuple[str, ...], ScriptedOutput] = field(default_factory=dict)

    def script(
        self,
        prefix: Sequence[str],
        *,
        returncode: int = 0,
        stdout: Sequence[str] = (),
        stderr: Sequence[str] = (),
    ) -> None:
        self._scripts[tuple(prefix)] = ScriptedOutput(
            returncode=returncode, stdout=tuple(stdout), stderr=tuple(stderr)
        )

    def _lookup(self, argv: tuple[str, ...]) -> ScriptedOutput:
        best: tuple[str, ...] | None = None
        for prefix in self._scripts:
            if argv[: len(prefix)] == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        return self._scripts[best] if best is not None else ScriptedOutput()

    def run(
        self,
        command: Command,
        *,
        on_output: OutputSink,
        on_error: OutputSink,
    ) -> CommandResult:
        self.calls.append(command)
        on_output(command.shown())

        scripted = self._lookup(command.argv)
        for line in scripted.stdout:
            on_output(line)
        for line in scripted.stderr:
            on_error(line)
        return CommandResult(
            command=command,
            returncode=scripted.returncode,
            stdout="\n".join(scripted.stdout),
            stderr="\n".join(scripted.stderr),
        )

    # Test helpers

    @property
    def argvs(self) -> list[tuple[str, ...]]:
        return [c.argv for c in self.calls]

    def ran(self, *prefix: str) -> bool:
        """True if any recorded command starts with prefix."""
        return any(argv[: len(prefix)] == prefix for argv in self.argvs)
