from __future__ import annotations

from dataclasses import dataclass

from nupub.core.config import ReleaseConfig
from nupub.output.console import ConsoleProtocol, RichConsole
from nupub.platform.process import CommandRunner, DryRunRunner, SubprocessRunner
from nupub.registry.client import NuGetRegistry
from nupub.registry.http import RealHttpClient


@dataclass(frozen=True, slots=True)
class CLIContext:
    console: ConsoleProtocol
    runner: CommandRunner
    registry: NuGetRegistry


def build_context(config: ReleaseConfig, console: ConsoleProtocol | None = None) -> CLIContext:
    settings = config.settings
    runner: CommandRunner
    if config.dry_run:
        runner = DryRunRunner()
    else:
        runner = SubprocessRunner(timeout=settings.commands.timeout)

    registry = NuGetRegistry(
        RealHttpClient(timeout=settings.registry.http_timeout),
        base_url=settings.registry.flat_container_url,
    )
    return CLIContext(console=console or RichConsole(), runner=runner, registry=registry)
