"""NuGet flat-container version lookup.

The flat container serves `{base}/{id}/index.json` as `{"versions": [...]}`,
with ids and versions lowercased. A package that was never published answers
404 with an Azure blob error body containing `BlobNotFound`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TypeAlias

from nupub.core.config import DEFAULT_FLAT_CONTAINER_URL
from nupub.core.result import Err
from nupub.core.structured import as_str_dict, get_str_list
from nupub.registry.http import HttpClient

__all__ = [
    "BLOB_NOT_FOUND_MARKER",
    "NuGetRegistry",
    "PackageUnknown",
    "QueryFailed",
    "RegistryExistence",
    "VersionAbsent",
    "VersionExists",
]

BLOB_NOT_FOUND_MARKER = "BlobNotFound"


@dataclass(frozen=True, slots=True)
class VersionExists:
    package: str
    version: str


@dataclass(frozen=True, slots=True)
class VersionAbsent:
    """Package is published, this version is not."""

    package: str
    version: str
    known_versions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PackageUnknown:
    """Package has never been published."""

    package: str


@dataclass(frozen=True, slots=True)
class QueryFailed:
    """Registry answer could not be interpreted.

    Attributes:
        url: Requested URL
        status: HTTP status, 0 when no answer was received or the body was unusable
        body: Response body or transport error message
    """

    url: str
    status: int
    body: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status} from {self.url}: {self.body.strip()}"
        return f"{self.body} ({self.url})"


RegistryExistence: TypeAlias = VersionExists | VersionAbsent | PackageUnknown | QueryFailed


class NuGetRegistry:
    """Read-only view of a NuGet v3 flat container."""

    def __init__(
        self,
        http: HttpClient,
        *,
        base_url: str = DEFAULT_FLAT_CONTAINER_URL,
    ) -> None:
        self._http = http
        self.base_url = base_url.rstrip("/")

    def index_url(self, package: str) -> str:
        return f"{self.base_url}/{package.lower()}/index.json"

    def check(self, package: str, version: str) -> RegistryExistence:
        """Tell whether version of package is already on the registry.

        A single request is made; failures are reported, not retried.
        """
        url = self.index_url(package)
        result = self._http.get(url)
        if isinstance(result, Err):
            return QueryFailed(url=url, status=0, body=result.error.message)

        response = result.value
        if response.status == 404 and BLOB_NOT_FOUND_MARKER in response.body:
            return PackageUnknown(package=package)
        if not response.is_success:
            return QueryFailed(url=url, status=response.status, body=response.body)

        try:
            data = as_str_dict(json.loads(response.body))
        except json.JSONDecodeError as e:
            return QueryFailed(url=url, status=0, body=f"JSON parse error: {e}")
        versions = get_str_list(data, "versions") if data is not None else None
        if versions is None:
            return QueryFailed(url=url, status=0, body="Expected a 'versions' array")

        wanted = version.lower()
        if any(v.lower() == wanted for v in versions):
            return VersionExists(package=package, version=version)
        return VersionAbsent(package=package, version=version, known_versions=tuple(versions))
