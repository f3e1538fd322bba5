"""Tests for registry/client.py - flat container existence checks."""

from __future__ import annotations

import pytest

from nupub.registry.client import (
    NuGetRegistry,
    PackageUnknown,
    QueryFailed,
    VersionAbsent,
    VersionExists,
)
from nupub.registry.http import MockHttpClient

BASE = "https://api.nuget.org/v3-flatcontainer"
INDEX = f"{BASE}/contoso.lib/index.json"


@pytest.fixture
def http() -> MockHttpClient:
    return MockHttpClient()


@pytest.fixture
def registry(http: MockHttpClient) -> NuGetRegistry:
    return NuGetRegistry(http)


def test_index_url_lowercases_id(registry: NuGetRegistry) -> None:
    assert registry.index_url("Contoso.Lib") == INDEX


def test_custom_base_url(http: MockHttpClient) -> None:
    registry = NuGetRegistry(http, base_url="https://feed.example.test/flat/")
    assert registry.index_url("A") == "https://feed.example.test/flat/a/index.json"


def test_version_exists(http: MockHttpClient, registry: NuGetRegistry) -> None:
    http.set_response(INDEX, 200, '{"versions":["1.0.0","2.0.0"]}')

    assert registry.check("Contoso.Lib", "2.0.0") == VersionExists("Contoso.Lib", "2.0.0")
    assert http.calls == [INDEX]


def test_version_absent(http: MockHttpClient, registry: NuGetRegistry) -> None:
    http.set_response(INDEX, 200, '{"versions":["1.0.0","2.0.0"]}')

    result = registry.check("Contoso.Lib", "3.0.0")

    assert result == VersionAbsent("Contoso.Lib", "3.0.0", known_versions=("1.0.0", "2.0.0"))


def test_version_comparison_ignores_case(http: MockHttpClient, registry: NuGetRegistry) -> None:
    http.set_response(INDEX, 200, '{"versions":["1.0.0-beta.1"]}')

    assert isinstance(registry.check("Contoso.Lib", "1.0.0-Beta.1"), VersionExists)


def test_blob_not_found_means_new_package(http: MockHttpClient, registry: NuGetRegistry) -> None:
    http.set_response(
        INDEX,
        404,
        '<?xml version="1.0" encoding="utf-8"?><Error><Code>BlobNotFound</Code>'
        "<Message>The specified blob does not exist.</Message></Error>",
    )

    assert registry.check("Contoso.Lib", "1.0.0") == PackageUnknown("Contoso.Lib")


def test_plain_404_is_query_failure(http: MockHttpClient, registry: NuGetRegistry) -> None:
    http.set_response(INDEX, 404, "Not Found")

    result = registry.check("Contoso.Lib", "1.0.0")

    assert result == QueryFailed(url=INDEX, status=404, body="Not Found")


@pytest.mark.parametrize("status", [401, 500, 503])
def test_other_statuses_are_query_failures(
    http: MockHttpClient, registry: NuGetRegistry, status: int
) -> None:
    http.set_response(INDEX, status, "nope")

    result = registry.check("Contoso.Lib", "1.0.0")

    assert isinstance(result, QueryFailed)
    assert result.status == status
    assert str(result) == f"HTTP {status} from {INDEX}: nope"


def test_transport_error(http: MockHttpClient, registry: NuGetRegistry) -> None:
    http.set_error(INDEX, "Connection refused")

    result = registry.check("Contoso.Lib", "1.0.0")

    assert result == QueryFailed(url=INDEX, status=0, body="Connection refused")
    assert str(result) == f"Connection refused ({INDEX})"


@pytest.mark.parametrize(
    "body",
    ["not json", "[]", '{"items": []}', '{"versions": "1.0.0"}'],
)
def test_unusable_body(http: MockHttpClient, registry: NuGetRegistry, body: str) -> None:
    http.set_response(INDEX, 200, body)

    result = registry.check("Contoso.Lib", "1.0.0")

    assert isinstance(result, QueryFailed)
    assert result.status == 0
