"""Package registry access (existence checks only)."""

from .client import (
    NuGetRegistry,
    PackageUnknown,
    QueryFailed,
    RegistryExistence,
    VersionAbsent,
    VersionExists,
)
from .http import HttpClient, HttpError, HttpResponse, MockHttpClient, RealHttpClient

__all__ = [
    # client
    "NuGetRegistry",
    "PackageUnknown",
    "QueryFailed",
    "RegistryExistence",
    "VersionAbsent",
    "VersionExists",
    # http
    "HttpClient",
    "HttpError",
    "HttpResponse",
    "MockHttpClient",
    "RealHttpClient",
]
