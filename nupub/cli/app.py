from __future__ import annotations

from pathlib import Path

import typer

from nupub import __version__
from nupub.cli.context import build_context
from nupub.core.config import (
    DEFAULT_TAG_FORMAT,
    DEFAULT_VERSION_REGEX,
    ReleaseConfig,
    load_settings,
    validate_tag_format,
    validate_version_regex,
)
from nupub.core.errors import ErrorCode, PublishError
from nupub.core.result import Err
from nupub.services.pipeline import ReleasePipeline

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _fail(error: PublishError) -> typer.Exit:
    typer.echo(f"error: {error.pretty()}", err=True)
    return typer.Exit(code=int(ErrorCode.FAILURE))


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=int(ErrorCode.OK))


@app.command()
def publish(
    name: str = typer.Option(..., "--name", help="The name of the NuGet package."),
    project_file_path: Path = typer.Option(
        ...,
        "--project-file-path",
        help="The relative path of the project file.",
    ),
    nuget_key: str = typer.Option(
        ...,
        "--nuget-key",
        envvar="NUGET_KEY",
        help="An API key to authenticate with the NuGet server.",
        show_envvar=True,
    ),
    version_file_path: Path | None = typer.Option(
        None,
        "--version-file-path",
        help="The relative path of the version file. Defaults to the project file.",
    ),
    version_regex: str = typer.Option(
        DEFAULT_VERSION_REGEX,
        "--version-regex",
        help="Regex used to extract the version; the first group is the version.",
    ),
    tag_format: str = typer.Option(
        DEFAULT_TAG_FORMAT,
        "--tag-format",
        help="Format of the git tag. [*] gets replaced with the version number.",
    ),
    tag_commit: bool = typer.Option(
        True,
        "--tag-commit/--no-tag-commit",
        help="Create and push a git tag for the release.",
    ),
    include_symbols: bool = typer.Option(
        False,
        "--include-symbols/--no-include-symbols",
        help="Push a symbol package (.snupkg) along with the NuGet package.",
    ),
    fail_on_build_error: bool = typer.Option(
        True,
        "--fail-on-build-error/--no-fail-on-build-error",
        help="Fail on a build, pack or push error.",
    ),
    continue_on_query_failure: bool = typer.Option(
        True,
        "--continue-on-query-failure/--abort-on-query-failure",
        help="Keep going when the registry version check fails.",
    ),
    output_dir: Path | None = typer.Option(
        None,
        "--output-dir",
        help="Where packages are written. Defaults to a fresh temporary directory.",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="TOML settings file (registry endpoints, tool paths, timeouts).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Print the commands instead of running them.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Build, pack, tag and push a NuGet package unless its version is already published."""
    settings = load_settings(config_path)
    if isinstance(settings, Err):
        raise _fail(settings.error)

    tag = validate_tag_format(tag_format)
    if isinstance(tag, Err):
        raise _fail(tag.error)

    regex = validate_version_regex(version_regex)
    if isinstance(regex, Err):
        raise _fail(regex.error)

    config = ReleaseConfig(
        name=name,
        project_file_path=project_file_path,
        nuget_key=nuget_key,
        version_file_path=version_file_path,
        version_regex=version_regex,
        tag_format=tag_format,
        tag_commit=tag_commit,
        include_symbols=include_symbols,
        fail_on_build_error=fail_on_build_error,
        continue_on_query_failure=continue_on_query_failure,
        output_dir=output_dir,
        dry_run=dry_run,
        settings=settings.value,
    )

    ctx = build_context(config)
    outcome = ReleasePipeline(
        config,
        runner=ctx.runner,
        registry=ctx.registry,
        console=ctx.console,
    ).run()

    raise typer.Exit(code=int(outcome.exit_code))


def main() -> None:
    app()
