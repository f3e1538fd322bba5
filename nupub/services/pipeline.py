"""Release pipeline: version check, build, pack, tag, push.

Steps run strictly in order and never go back:

    resolve-inputs -> extract-version -> check-existence -> build -> pack
        -> tag (optional) -> push-package -> finish

An already published version ends the run early with exit 0, so re-running a
release job is a no-op. Build, pack and push failures are fatal only when
fail_on_build_error is set; tagging failures are never fatal.
"""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from nupub.core.config import ReleaseConfig
from nupub.core.errors import ErrorCode, PublishError
from nupub.core.result import Err, Ok, Result
from nupub.output.console import ConsoleProtocol, Style
from nupub.platform.process import Command, CommandResult, CommandRunner
from nupub.registry.client import (
    NuGetRegistry,
    PackageUnknown,
    QueryFailed,
    VersionAbsent,
    VersionExists,
)
from nupub.services.commands import (
    build_command,
    git_push_tag_command,
    git_tag_command,
    pack_command,
    push_package_command,
)
from nupub.services.version import extract_version

__all__ = ["PipelineOutcome", "ReleasePipeline", "Step"]


class Step(StrEnum):
    RESOLVE_INPUTS = "resolve-inputs"
    EXTRACT_VERSION = "extract-version"
    CHECK_EXISTENCE = "check-existence"
    BUILD = "build"
    PACK = "pack"
    TAG = "tag"
    PUSH_PACKAGE = "push-package"
    FINISH = "finish"


@dataclass(frozen=True, slots=True)
class PipelineOutcome:
    """What a run did.

    Attributes:
        exit_code: Process exit code for the run.
        steps: Steps entered, in order.
        version: Raw version, once extracted.
        tag: Full version tag, once extracted.
        already_published: True when the run stopped at the existence check.
        error: The error that aborted the run, if any.
        problems: Errors that were logged but did not abort the run.
    """

    exit_code: ErrorCode
    steps: tuple[Step, ...]
    version: str | None = None
    tag: str | None = None
    already_published: bool = False
    error: PublishError | None = None
    problems: tuple[PublishError, ...] = ()


def _fresh_output_dir() -> Path:
    return Path(tempfile.mkdtemp(prefix="nupub-"))


class ReleasePipeline:
    """One publish run. Create, call run() once, read the outcome."""

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        runner: CommandRunner,
        registry: NuGetRegistry,
        console: ConsoleProtocol,
        make_output_dir: Callable[[], Path] = _fresh_output_dir,
    ) -> None:
        self._config = config
        self._runner = runner
        self._registry = registry
        self._console = console
        self._make_output_dir = make_output_dir

        self._steps: list[Step] = []
        self._problems: list[PublishError] = []
        self._version: str | None = None
        self._tag: str | None = None
        self._scratch_dir: Path | None = None

    # -------------------------------------------------------------------------
    # Driver
    # -------------------------------------------------------------------------

    def run(self) -> PipelineOutcome:
        try:
            return self._run_steps()
        finally:
            self._remove_scratch_dir()

    def _run_steps(self) -> PipelineOutcome:
        cfg = self._config
        commands = cfg.settings.commands

        self._enter(Step.RESOLVE_INPUTS)
        resolved = self._resolve_inputs()
        if isinstance(resolved, Err):
            return self._abort(resolved.error)

        self._enter(Step.EXTRACT_VERSION)
        version = extract_version(cfg.version_source, cfg.version_pattern)
        if isinstance(version, Err):
            return self._abort(version.error)
        self._version = version.value
        self._tag = tag = cfg.full_version(version.value)
        self._console.info(f"Extracted version: '{version.value}' (tag '{tag}')")

        self._enter(Step.CHECK_EXISTENCE)
        existence = self._check_existence(version.value)
        if isinstance(existence, Err):
            return self._abort(existence.error)
        if existence.value:
            return self._outcome(ErrorCode.OK, already_published=True)

        self._enter(Step.BUILD)
        self._console.info(f"Building package {cfg.name}...")
        built = self._run_gated(build_command(commands, cfg.project_file_path), "build")
        if isinstance(built, Err):
            return self._abort(built.error)

        self._enter(Step.PACK)
        output_dir = self._prepare_output_dir()
        if isinstance(output_dir, Err):
            return self._abort(output_dir.error)
        self._console.info(f"Packing package {cfg.name} into '{output_dir.value}'...")
        packed = self._run_gated(
            pack_command(
                commands,
                cfg.project_file_path,
                output_dir.value,
                include_symbols=cfg.include_symbols,
            ),
            "pack",
        )
        if isinstance(packed, Err):
            return self._abort(packed.error)

        if cfg.tag_commit:
            self._enter(Step.TAG)
            self._tag_and_push(tag)

        self._enter(Step.PUSH_PACKAGE)
        self._console.info(f"Pushing package {cfg.name}...")
        pushed = self._run_gated(
            push_package_command(
                commands,
                cfg.settings.registry,
                output_dir.value,
                cfg.nuget_key,
                include_symbols=cfg.include_symbols,
            ),
            "push",
        )
        if isinstance(pushed, Err):
            return self._abort(pushed.error)

        self._enter(Step.FINISH)
        self._console.success(f"Finished publishing {cfg.name} {version.value}.")
        return self._outcome(ErrorCode.OK)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _resolve_inputs(self) -> Result[None, PublishError]:
        project = self._config.project_file_path
        if not project.is_file():
            return Err(
                PublishError(
                    kind="project_missing",
                    message=f"The project file '{project}' does not exist.",
                )
            )
        self._console.info(f"Project '{self._config.name}' found at '{project}'.")
        return Ok(None)

    def _check_existence(self, version: str) -> Result[bool, PublishError]:
        """Ok(True) when the version is already published."""
        name = self._config.name
        match self._registry.check(name, version):
            case VersionExists():
                self._console.success(f"The version '{version}' already exists, nothing to do.")
                return Ok(True)
            case VersionAbsent():
                self._console.info(f"The version '{version}' does not exist, continuing...")
            case PackageUnknown():
                self._console.info(
                    f"This is the first version '{version}' of {name}, continuing..."
                )
            case QueryFailed() as failed:
                error = PublishError(
                    kind="registry_query_failed",
                    message=f"Could not check whether {name} {version} is published.",
                    hint=str(failed),
                )
                if not self._config.continue_on_query_failure:
                    return Err(error)
                self._report(error)
                self._console.warning("Continuing without a registry check.")
        return Ok(False)

    def _prepare_output_dir(self) -> Result[Path, PublishError]:
        configured = self._config.output_dir
        try:
            if configured is None:
                self._scratch_dir = self._make_output_dir()
                return Ok(self._scratch_dir)
            configured.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(
                PublishError(
                    kind="io_error",
                    message="Could not create the package output directory.",
                    hint=str(e),
                )
            )
        return Ok(configured)

    def _remove_scratch_dir(self) -> None:
        """Delete the output directory when this run created it."""
        scratch = self._scratch_dir
        if scratch is None:
            return
        self._scratch_dir = None
        try:
            shutil.rmtree(scratch)
        except FileNotFoundError:
            pass
        except OSError as e:
            self._console.warning(f"Could not remove temporary directory '{scratch}': {e}")

    def _tag_and_push(self, tag: str) -> None:
        commands = self._config.settings.commands
        self._console.info(f"Creating tag '{tag}'.")

        for command in (git_tag_command(commands, tag), git_push_tag_command(commands, tag)):
            result = self._execute(command)
            if not result.success:
                self._report(
                    PublishError(
                        kind="tag_failed",
                        message=f"Tag '{tag}' could not be created.",
                        hint=str(result),
                    )
                )
                return

        self._console.success(f"Tag '{tag}' created.")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _execute(self, command: Command) -> CommandResult:
        return self._runner.run(
            command,
            on_output=lambda line: self._console.print(line, Style.DIM),
            on_error=self._console.error,
        )

    def _run_gated(self, command: Command, label: str) -> Result[None, PublishError]:
        """Run command; Err only when it failed and failures are fatal."""
        result = self._execute(command)
        if result.success:
            self._console.success(f"{label.capitalize()} succeeded.")
            return Ok(None)

        error = PublishError(
            kind="command_failed",
            message=f"{label.capitalize()} of {self._config.name} failed.",
            hint=str(result),
        )
        if self._config.fail_on_build_error:
            return Err(error)

        self._report(error)
        self._console.warning(f"Ignoring {label} failure (fail-on-build-error is off).")
        return Ok(None)

    def _enter(self, step: Step) -> None:
        self._steps.append(step)
        self._console.header(step.value)

    def _report(self, error: PublishError) -> None:
        self._problems.append(error)
        self._console.error(error.pretty())

    def _abort(self, error: PublishError) -> PipelineOutcome:
        self._console.error(error.pretty())
        return self._outcome(ErrorCode.FAILURE, error=error)

    def _outcome(
        self,
        code: ErrorCode,
        *,
        already_published: bool = False,
        error: PublishError | None = None,
    ) -> PipelineOutcome:
        return PipelineOutcome(
            exit_code=code,
            steps=tuple(self._steps),
            version=self._version,
            tag=self._tag,
            already_published=already_published,
            error=error,
            problems=tuple(self._problems),
        )
