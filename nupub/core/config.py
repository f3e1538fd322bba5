"""Typed release configuration.

`ReleaseConfig` is built once from validated CLI input and never mutated.
`Settings` holds the endpoints and tool paths, optionally loaded from a
TOML file:

    [registry]
    flat_container_url = "https://api.nuget.org/v3-flatcontainer"
    push_source = "https://api.nuget.org/v3/index.json"
    http_timeout = 30.0

    [commands]
    timeout = 1800.0
    dotnet = "dotnet"
    git = "git"
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .errors import PublishError
from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_float, get_str, get_table

__all__ = [
    "DEFAULT_FLAT_CONTAINER_URL",
    "DEFAULT_PUSH_SOURCE",
    "DEFAULT_TAG_FORMAT",
    "DEFAULT_VERSION_REGEX",
    "TAG_PLACEHOLDER",
    "CommandSettings",
    "RegistrySettings",
    "ReleaseConfig",
    "Settings",
    "load_settings",
    "validate_tag_format",
    "validate_version_regex",
]

TAG_PLACEHOLDER = "[*]"
DEFAULT_TAG_FORMAT = "v[*]"
DEFAULT_VERSION_REGEX = r"<Version>(.*)</Version>"

DEFAULT_FLAT_CONTAINER_URL = "https://api.nuget.org/v3-flatcontainer"
DEFAULT_PUSH_SOURCE = "https://api.nuget.org/v3/index.json"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0


def validate_tag_format(tag_format: str) -> Result[str, PublishError]:
    """Check that the tag format holds the placeholder exactly once."""
    count = tag_format.count(TAG_PLACEHOLDER)
    if count != 1:
        return Err(
            PublishError(
                kind="invalid_input",
                message=f"tag-format '{tag_format}' must contain {TAG_PLACEHOLDER} exactly once",
                hint=f"found {count} occurrence(s)",
            )
        )
    return Ok(tag_format)


def validate_version_regex(pattern: str) -> Result[re.Pattern[str], PublishError]:
    """Compile the version pattern; it needs at least one capturing group."""
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        return Err(
            PublishError(
                kind="invalid_input",
                message=f"version-regex '{pattern}' is not a valid regular expression",
                hint=str(e),
            )
        )
    if compiled.groups < 1:
        return Err(
            PublishError(
                kind="invalid_input",
                message=f"version-regex '{pattern}' has no capturing group",
                hint="wrap the version part in parentheses, e.g. <Version>(.*)</Version>",
            )
        )
    return Ok(compiled)


@dataclass(frozen=True, slots=True)
class RegistrySettings:
    """Registry endpoints."""

    flat_container_url: str = DEFAULT_FLAT_CONTAINER_URL
    push_source: str = DEFAULT_PUSH_SOURCE
    http_timeout: float | None = DEFAULT_HTTP_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class CommandSettings:
    """External tool executables and the optional per-command timeout."""

    dotnet: str = "dotnet"
    git: str = "git"
    timeout: float | None = None


@dataclass(frozen=True, slots=True)
class Settings:
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    commands: CommandSettings = field(default_factory=CommandSettings)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Settings:
        """Create Settings from a mapping (parsed TOML)."""
        registry: StrDict = get_table(data, "registry") or {}
        commands: StrDict = get_table(data, "commands") or {}

        return cls(
            registry=RegistrySettings(
                flat_container_url=(
                    get_str(registry, "flat_container_url") or DEFAULT_FLAT_CONTAINER_URL
                ).rstrip("/"),
                push_source=get_str(registry, "push_source") or DEFAULT_PUSH_SOURCE,
                http_timeout=get_float(registry, "http_timeout") or DEFAULT_HTTP_TIMEOUT_SECONDS,
            ),
            commands=CommandSettings(
                dotnet=get_str(commands, "dotnet") or "dotnet",
                git=get_str(commands, "git") or "git",
                timeout=get_float(commands, "timeout"),
            ),
        )


def _parse_toml(path: Path) -> Result[StrDict, PublishError]:
    import tomllib

    def _err(message: str) -> Err[PublishError]:
        return Err(PublishError(kind="invalid_input", message=message, hint=str(path)))

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return _err(f"Settings file not found: {path}")
    except PermissionError:
        return _err(f"Permission denied reading: {path}")
    except tomllib.TOMLDecodeError as e:
        return _err(f"Invalid TOML syntax: {e}")
    except UnicodeDecodeError as e:
        return _err(f"Error reading settings: {e}")

    data = as_str_dict(data_obj)
    if data is None:
        return _err("Settings root must be a TOML table")
    return Ok(data)


_STRING_KEYS = {
    "registry": ("flat_container_url", "push_source"),
    "commands": ("dotnet", "git"),
}
_POSITIVE_NUMBER_KEYS = {
    "registry": ("http_timeout",),
    "commands": ("timeout",),
}


def _check_values(data: StrDict, path: Path) -> Result[None, PublishError]:
    """Reject known keys holding a value of the wrong type."""

    def _err(message: str) -> Err[PublishError]:
        return Err(PublishError(kind="invalid_input", message=message, hint=str(path)))

    for section in _STRING_KEYS:
        if section in data and get_table(data, section) is None:
            return _err(f"[{section}] must be a table")

    for section, keys in _STRING_KEYS.items():
        table = get_table(data, section) or {}
        for key in keys:
            if key in table and get_str(table, key) is None:
                return _err(f"{section}.{key} must be a non-empty string")

    for section, keys in _POSITIVE_NUMBER_KEYS.items():
        table = get_table(data, section) or {}
        for key in keys:
            if key in table and get_float(table, key) is None:
                return _err(f"{section}.{key} must be a positive number of seconds")

    return Ok(None)


def load_settings(path: Path | None) -> Result[Settings, PublishError]:
    """Load settings from a TOML file, or defaults when path is None."""
    if path is None:
        return Ok(Settings())

    result = _parse_toml(path)
    if isinstance(result, Err):
        return result
    checked = _check_values(result.value, path)
    if isinstance(checked, Err):
        return checked
    return Ok(Settings.from_dict(result.value))


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Everything a publish run needs, validated at construction.

    Raises:
        ValueError: If tag_format does not contain the placeholder exactly
            once, or version_regex is invalid or has no capturing group.
    """

    name: str
    project_file_path: Path
    nuget_key: str
    version_file_path: Path | None = None
    version_regex: str = DEFAULT_VERSION_REGEX
    tag_format: str = DEFAULT_TAG_FORMAT
    tag_commit: bool = True
    include_symbols: bool = False
    fail_on_build_error: bool = True
    continue_on_query_failure: bool = True
    output_dir: Path | None = None
    dry_run: bool = False
    settings: Settings = field(default_factory=Settings)

    def __post_init__(self) -> None:
        tag = validate_tag_format(self.tag_format)
        if isinstance(tag, Err):
            raise ValueError(tag.error.pretty())
        regex = validate_version_regex(self.version_regex)
        if isinstance(regex, Err):
            raise ValueError(regex.error.pretty())

    @property
    def version_source(self) -> Path:
        """File the version is read from."""
        return self.version_file_path or self.project_file_path

    @property
    def version_pattern(self) -> re.Pattern[str]:
        return re.compile(self.version_regex)

    def full_version(self, version: str) -> str:
        """Render the tag name for a version, e.g. v[*] + 1.2.3 -> v1.2.3."""
        return self.tag_format.replace(TAG_PLACEHOLDER, version)
