"""HTTP client abstraction for registry queries.

This module provides:
- HttpClient: Protocol for HTTP GET (injectable for tests)
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Mock implementation for testing

Unlike a download helper, a registry lookup needs to see non-2xx responses
(a 404 body tells "unknown package" apart from "broken feed"), so any HTTP
answer is returned as an HttpResponse. Only transport failures are errors.
"""

from __future__ import annotations

import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from nupub import __version__
from nupub.core.result import Err, Ok, Result

__all__ = [
    "HttpClient",
    "HttpError",
    "HttpResponse",
    "MockHttpClient",
    "RealHttpClient",
]


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """An HTTP answer, whatever its status.

    Attributes:
        url: Requested URL
        status: HTTP status code
        body: Decoded response body (may be empty)
    """

    url: str
    status: int
    body: str

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300


@dataclass(frozen=True, slots=True)
class HttpError:
    """Transport failure: no HTTP answer was received.

    Attributes:
        url: The URL that failed
        message: Human-readable error message
    """

    url: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP GET requests."""

    def get(self, url: str) -> Result[HttpResponse, HttpError]:
        """Fetch URL.

        Returns:
            Ok with the response (any status), or Err on transport failure
        """
        ...


def _decode(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace")


class RealHttpClient:
    """Real HTTP client using urllib with system certificates."""

    def __init__(
        self,
        timeout: float | None = 30.0,
        user_agent: str = f"nupub/{__version__}",
    ) -> None:
        """Initialize HTTP client.

        Args:
            timeout: Request timeout in seconds (None waits forever)
            user_agent: User-Agent header value
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def get(self, url: str) -> Result[HttpResponse, HttpError]:
        try:
            req = urllib.request.Request(
                url,
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            )
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                body = _decode(response.read())
                return Ok(HttpResponse(url=url, status=response.status, body=body))
        except urllib.error.HTTPError as e:
            try:
                body = _decode(e.read())
            except OSError:
                body = ""
            return Ok(HttpResponse(url=url, status=e.code, body=body))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, message=str(e)))


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_response("https://example.test/x/index.json", 200, '{"versions": []}')
        result = client.get("https://example.test/x/index.json")
    """

    def __init__(self) -> None:
        self._responses: dict[str, HttpResponse | HttpError] = {}
        self.calls: list[str] = []

    def set_response(self, url: str, status: int, body: str = "") -> None:
        self._responses[url] = HttpResponse(url=url, status=status, body=body)

    def set_error(self, url: str, message: str) -> None:
        self._responses[url] = HttpError(url=url, message=message)

    def get(self, url: str) -> Result[HttpResponse, HttpError]:
        self.calls.append(url)

        response = self._responses.get(url)
        if response is None:
            return Ok(HttpResponse(url=url, status=404, body="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
