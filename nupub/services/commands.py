"""Command lines run by the publish pipeline.

Each builder returns a Command; only the registry push carries a secret,
so it is the only one with a separate display form.
"""

from __future__ import annotations

from pathlib import Path

from nupub.core.config import CommandSettings, RegistrySettings
from nupub.platform.process import Command

__all__ = [
    "REDACTED",
    "build_command",
    "git_push_tag_command",
    "git_tag_command",
    "pack_command",
    "push_package_command",
]

REDACTED = "***"

_CONFIGURATION = "Release"
_REMOTE = "origin"


def build_command(commands: CommandSettings, project: Path) -> Command:
    return Command((commands.dotnet, "build", "-c", _CONFIGURATION, str(project)))


def pack_command(
    commands: CommandSettings,
    project: Path,
    output_dir: Path,
    *,
    include_symbols: bool,
) -> Command:
    symbols = ("--include-symbols", "-p:SymbolPackageFormat=snupkg") if include_symbols else ()
    return Command(
        (
            commands.dotnet,
            "pack",
            *symbols,
            "--no-build",
            "-c",
            _CONFIGURATION,
            str(project),
            "-o",
            str(output_dir),
        )
    )


def git_tag_command(commands: CommandSettings, tag: str) -> Command:
    return Command((commands.git, "tag", tag))


def git_push_tag_command(commands: CommandSettings, tag: str) -> Command:
    return Command((commands.git, "push", _REMOTE, tag))


def push_package_command(
    commands: CommandSettings,
    registry: RegistrySettings,
    output_dir: Path,
    api_key: str,
    *,
    include_symbols: bool,
) -> Command:
    """`dotnet nuget push` for every .nupkg in output_dir.

    The glob is expanded by dotnet itself, not by a shell. With symbols the
    matching .snupkg files are pushed alongside; without, -n skips them.
    """

    def argv(key: str) -> tuple[str, ...]:
        no_symbols = () if include_symbols else ("-n",)
        return (
            commands.dotnet,
            "nuget",
            "push",
            str(output_dir / "*.nupkg"),
            "-k",
            key,
            "-s",
            registry.push_source,
            "--skip-duplicate",
            *no_symbols,
        )

    return Command(argv(api_key), display=argv(REDACTED))
