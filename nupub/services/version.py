from __future__ import annotations

import re
from pathlib import Path

from nupub.core.errors import PublishError
from nupub.core.result import Err, Ok, Result


def extract_version(path: Path, pattern: re.Pattern[str]) -> Result[str, PublishError]:
    """Read path and return the first capturing group of pattern's first match."""
    if not path.is_file():
        return Err(
            PublishError(
                kind="version_file_missing",
                message=f"The version file '{path}' is not valid.",
            )
        )

    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            PublishError(
                kind="version_file_missing",
                message=f"The version file '{path}' could not be read.",
                hint=str(e),
            )
        )

    match = pattern.search(content)
    version = match.group(1) if match is not None else None
    if not version:
        return Err(
            PublishError(
                kind="version_no_match",
                message=f"The version file '{path}' doesn't contain any match for the regex "
                f"'{pattern.pattern}'.",
            )
        )

    return Ok(version)
