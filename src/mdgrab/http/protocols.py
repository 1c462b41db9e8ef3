"""Protocol definitions for HTTP client abstraction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class HttpResponse:
    """
    Immutable HTTP response returned by HttpClient.

    Attributes:
        status_code: HTTP status code (200, 404, etc.)
        content: Raw response content as bytes
        content_type: Content-Type header value
        headers: All response headers
        url: Final URL after any redirects
    """

    status_code: int
    content: bytes
    content_type: str
    headers: dict[str, str]
    url: str

    @property
    def ok(self) -> bool:
        """True for 2xx and 3xx statuses."""
        return 200 <= self.status_code < 400

    @property
    def media_type(self) -> str:
        """Content-Type without parameters, lower-cased."""
        return self.content_type.split(";")[0].strip().lower()


class HttpClient(Protocol):
    """
    Protocol for HTTP clients.

    Lets the session cache be driven by the aiohttp client in production
    and by mocks in tests.
    """

    async def get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        """
        Perform an HTTP GET request.

        Args:
            url: The URL to fetch
            headers: Optional additional headers

        Returns:
            HttpResponse with status, content, and headers

        Raises:
            FetchError if the host is not allowed; transport exceptions otherwise
        """
        ...
