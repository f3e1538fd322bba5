"""Platform abstraction layer."""

from .process import (
    Command,
    CommandResult,
    CommandRunner,
    DryRunRunner,
    MockCommandRunner,
    OutputSink,
    SubprocessRunner,
)

__all__ = [
    "Command",
    "CommandResult",
    "CommandRunner",
    "DryRunRunner",
    "MockCommandRunner",
    "OutputSink",
    "SubprocessRunner",
]
