"""Async HTTP client with an outbound host allow-list and optional retries."""

from __future__ import annotations

import asyncio
import logging
import random
from types import TracebackType

import aiohttp

from ..errors import FetchError
from ..urls import host_matches, host_of
from .protocols import HttpResponse

# Better encoding detection (charset-normalizer is an aiohttp dependency)
try:
    from charset_normalizer import from_bytes as detect_encoding

    CHARSET_NORMALIZER_AVAILABLE = True
except ImportError:
    CHARSET_NORMALIZER_AVAILABLE = False

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def decode_body(content: bytes, content_type: str = "") -> str:
    """
    Decode response content with intelligent encoding detection.

    Fallback chain:
    1. Content-Type header charset
    2. charset-normalizer detection
    3. UTF-8 with replacement

    Args:
        content: Raw bytes content
        content_type: Content-Type header value

    Returns:
        Decoded string
    """
    encoding = None
    if content_type:
        for part in content_type.split(";"):
            part = part.strip()
            if part.lower().startswith("charset="):
                encoding = part.split("=", 1)[1].strip().strip("\"'")
                break

    if encoding:
        try:
            return content.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            logger.debug(f"Failed to decode with declared encoding: {encoding}")

    # Most platform pages are UTF-8; avoid statistical detection when it decodes cleanly
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        pass

    if CHARSET_NORMALIZER_AVAILABLE:
        try:
            result = detect_encoding(content)
            best_match = result.best() if result else None
            if best_match:
                logger.debug(f"Detected encoding: {best_match.encoding}")
                return str(best_match)
        except Exception as e:
            logger.debug(f"Encoding detection failed: {e}")

    return content.decode("utf-8", errors="replace")


class AsyncHttpClient:
    """
    Async HTTP client for platform pages, JSON endpoints and images.

    Features:
    - Outbound host allow-list (no request leaves for other origins)
    - Session cookie sent with every request
    - Optional exponential backoff retry for transient failures
    - Content size limits to prevent memory exhaustion

    Example:
        client = AsyncHttpClient(allowed_domains=["zhihu.com", "zhimg.com"])

        async with client:
            response = await client.get("https://zhuanlan.zhihu.com/p/123")
            print(decode_body(response.content, response.content_type))
    """

    MAX_CONTENT_SIZE = 50 * 1024 * 1024  # 50 MB

    # Status codes that warrant a retry
    RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

    # Exceptions that warrant a retry
    RETRYABLE_EXCEPTIONS = (
        aiohttp.ClientError,
        asyncio.TimeoutError,
        ConnectionError,
    )

    def __init__(
        self,
        allowed_domains: list[str] | None = None,
        max_retries: int = 0,
        retry_base_delay: float = 1.0,
        max_content_size: int = MAX_CONTENT_SIZE,
        user_agent: str | None = None,
        proxy: str | None = None,
        default_timeout: float = 30.0,
        cookie: str | None = None,
    ) -> None:
        """
        Initialize the HTTP client.

        Args:
            allowed_domains: Hosts (and subdomains) requests may go to; None allows any
            max_retries: Retry attempts for retryable statuses and transport errors
            retry_base_delay: Base delay for exponential backoff (seconds)
            max_content_size: Maximum response size in bytes
            user_agent: Custom User-Agent string
            proxy: Proxy URL (http:// or socks5://)
            default_timeout: Default request timeout in seconds
            cookie: Cookie header value included in all requests
        """
        self._allowed_domains = list(allowed_domains) if allowed_domains is not None else None
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._max_content_size = max_content_size
        self._proxy = proxy
        self._default_timeout = default_timeout
        self._cookie = cookie
        self._user_agent = user_agent or DEFAULT_USER_AGENT

        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> AsyncHttpClient:
        """Enter async context and create session."""
        connector = aiohttp.TCPConnector(
            limit=20,
            limit_per_host=6,
            ttl_dns_cache=300,
        )
        self._session = aiohttp.ClientSession(
            connector=connector,
            headers={"User-Agent": self._user_agent},
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context and close session."""
        if self._session:
            await self._session.close()
            self._session = None

    def is_allowed(self, url: str) -> bool:
        """True if ``url`` points at an allow-listed host."""
        if self._allowed_domains is None:
            return True
        host = host_of(url)
        return bool(host) and any(host_matches(host, domain) for domain in self._allowed_domains)

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter: base * 2^attempt + U(0, 1)."""
        delay: float = self._retry_base_delay * (2**attempt)
        return delay + random.uniform(0, 1)

    def _build_headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        request_headers: dict[str, str] = {}
        if self._cookie:
            request_headers["Cookie"] = self._cookie
        if headers:
            request_headers.update(headers)
        return request_headers

    async def get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        """
        Perform an HTTP GET request.

        Retryable statuses are retried up to ``max_retries`` times; once
        retries are exhausted the last response is returned so the caller
        can inspect the status.

        Args:
            url: The URL to fetch
            headers: Optional additional headers
            timeout: Request timeout in seconds (uses default if None)

        Returns:
            HttpResponse with status, content, and headers

        Raises:
            FetchError: If the host is not allowed or the content is too large
            aiohttp.ClientError: On network errors after retries exhausted
        """
        if self._session is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        if not self.is_allowed(url):
            raise FetchError(url, reason=f"host not allowed: {host_of(url) or url}")

        timeout_val = timeout or self._default_timeout
        request_headers = self._build_headers(headers)

        for attempt in range(self._max_retries + 1):
            try:
                async with self._session.get(
                    url,
                    timeout=aiohttp.ClientTimeout(total=timeout_val),
                    headers=request_headers,
                    proxy=self._proxy,
                    allow_redirects=True,
                ) as response:
                    if response.status in self.RETRYABLE_STATUS_CODES and attempt < self._max_retries:
                        delay = self._calculate_retry_delay(attempt)
                        logger.warning(
                            f"Got {response.status} for {url}, retrying in {delay:.1f}s "
                            f"(attempt {attempt + 1}/{self._max_retries + 1})"
                        )
                        await asyncio.sleep(delay)
                        continue

                    content_length = response.headers.get("Content-Length")
                    if content_length and content_length.isdigit() and int(content_length) > self._max_content_size:
                        raise FetchError(url, reason=f"content too large: {content_length} bytes")

                    content = b""
                    async for chunk in response.content.iter_chunked(8192):
                        content += chunk
                        if len(content) > self._max_content_size:
                            raise FetchError(
                                url, reason=f"content size limit exceeded: >{self._max_content_size} bytes"
                            )

                    return HttpResponse(
                        status_code=response.status,
                        content=content,
                        content_type=response.headers.get("Content-Type", ""),
                        headers=dict(response.headers),
                        url=str(response.url),
                    )

            except self.RETRYABLE_EXCEPTIONS as e:
                if attempt < self._max_retries:
                    delay = self._calculate_retry_delay(attempt)
                    logger.warning(
                        f"Error fetching {url}: {e}, retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{self._max_retries + 1})"
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.debug(f"HTTP fetch error for {url} after {self._max_retries + 1} attempts: {e}")
                    raise

        raise RuntimeError(f"Unexpected error fetching {url}")
