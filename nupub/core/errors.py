"""Exit codes and the error payload shared by every publish step.

A publish run only ever signals failure through its exit code: 0 when the
package was published (or was already there), 1 for anything fatal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Literal

__all__ = ["ErrorCode", "ErrorKind", "PublishError"]


class ErrorCode(IntEnum):
    """Process exit codes. Values are part of the CI contract."""

    OK = 0
    FAILURE = 1

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK


ErrorKind = Literal[
    "invalid_input",
    "project_missing",
    "version_file_missing",
    "version_no_match",
    "registry_query_failed",
    "command_failed",
    "tag_failed",
    "io_error",
]


@dataclass(frozen=True, slots=True)
class PublishError:
    """Error payload carried by Err results.

    Attributes:
        kind: Stable category, decides the continue/abort policy.
        message: Human-readable description.
        hint: Optional extra detail (stderr excerpt, suggestion).
    """

    kind: ErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
