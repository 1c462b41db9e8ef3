"""Per-session document, JSON and image fetching with write-once caches."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Optional

from bs4 import BeautifulSoup

from ..errors import BlockedPageError, FetchError, JsonParseError
from ..extraction.blockpage import detect_block_page
from ..http.client import decode_body
from ..http.protocols import HttpClient, HttpResponse
from ..models.config import BlockPolicy
from ..models.platforms import PlatformProfile
from ..models.records import BlockClassification
from ..urls import host_of, host_matches, normalize_url

logger = logging.getLogger(__name__)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
JSON_ACCEPT = "application/json, text/plain, */*"
IMAGE_ACCEPT = "image/avif,image/webp,image/apng,image/*,*/*;q=0.8"
DEFAULT_MEDIA_TYPE = "application/octet-stream"


class SessionCache:
    """
    Fetches documents, JSON and images for one download session.

    Parsed documents and image data URLs are cached by normalized absolute
    URL. Entries are written once and never evicted; the caches live as long
    as this object. JSON responses are never cached.

    Example:
        async with AsyncHttpClient(allowed_domains=ZHIHU.allowed_domains) as client:
            cache = SessionCache(client, ZHIHU)
            doc = await cache.fetch_document("https://zhuanlan.zhihu.com/p/123")
            again = await cache.fetch_document("https://zhuanlan.zhihu.com/p/123")
            assert doc is again
    """

    def __init__(
        self,
        client: HttpClient,
        profile: PlatformProfile,
        block_policy: BlockPolicy = BlockPolicy.LOG,
    ) -> None:
        self._client = client
        self._profile = profile
        self._block_policy = block_policy
        self._documents: dict[str, BeautifulSoup] = {}
        self._images: dict[str, str] = {}

    @property
    def profile(self) -> PlatformProfile:
        return self._profile

    def referer_for(self, url: str) -> str:
        """Referer header for a request URL, from the platform's referer table."""
        host = host_of(url)
        for referer_host, referer in self._profile.referers.items():
            if host_matches(host, referer_host):
                return referer
        return self._profile.default_referer

    def cached_document(self, url: str) -> Optional[BeautifulSoup]:
        """Return the cached document for ``url`` without fetching."""
        return self._documents.get(normalize_url(url))

    def store_document(self, url: str, document: BeautifulSoup) -> BeautifulSoup:
        """
        Seed the cache with an already obtained document (e.g. a rendered DOM).

        Existing entries win; the cached document is returned.
        """
        return self._documents.setdefault(normalize_url(url), document)

    async def _get(self, url: str, accept: str, extra: Optional[dict[str, str]] = None) -> HttpResponse:
        headers = {"Accept": accept, "Referer": self.referer_for(url)}
        if extra:
            headers.update(extra)
        try:
            return await self._client.get(url, headers=headers)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(url, reason=str(e) or type(e).__name__) from e

    def _check_block(self, url: str, text: str) -> BlockClassification:
        classification = detect_block_page(text)
        if classification != BlockClassification.CLEAN:
            logger.warning(f"{url} looks like a blocked page ({classification.value})")
        return classification

    async def fetch_document(self, url: str) -> BeautifulSoup:
        """
        Fetch and parse an HTML document.

        Args:
            url: Page URL (normalized before use)

        Returns:
            Parsed document, shared with later callers for the same URL

        Raises:
            FetchError: On a status outside [200, 400) or a transport error
            BlockedPageError: For a blocked page under the ``fallback`` policy
        """
        url = normalize_url(url)
        cached = self._documents.get(url)
        if cached is not None:
            return cached

        response = await self._get(url, HTML_ACCEPT)
        if not response.ok:
            raise FetchError(url, status=response.status_code)

        html = decode_body(response.content, response.content_type)
        classification = self._check_block(url, html)
        if classification != BlockClassification.CLEAN and self._block_policy == BlockPolicy.FALLBACK:
            raise BlockedPageError(url, classification)

        document = BeautifulSoup(html, "html.parser")
        self._documents[url] = document
        logger.debug(f"Fetched document {url} ({len(response.content)} bytes)")
        return document

    async def fetch_json(self, url: str) -> Any:
        """
        Fetch and parse a JSON endpoint (never cached).

        Raises:
            FetchError: On a status outside [200, 400) or a transport error
            JsonParseError: When a successful response is not JSON
        """
        url = normalize_url(url)
        response = await self._get(url, JSON_ACCEPT, {"X-Requested-With": "XMLHttpRequest"})
        if not response.ok:
            raise FetchError(url, status=response.status_code)

        text = decode_body(response.content, response.content_type)
        try:
            return json.loads(text)
        except ValueError as e:
            self._check_block(url, text)
            raise JsonParseError(url) from e

    async def fetch_image_data_url(self, url: str) -> str:
        """
        Fetch an image and return it as a base64 ``data:`` URL.

        Data URLs are returned unchanged without a request; results are
        cached by absolute URL.

        Raises:
            FetchError: On a status outside [200, 400) or a transport error
        """
        if url.startswith("data:"):
            return url

        url = normalize_url(url)
        cached = self._images.get(url)
        if cached is not None:
            return cached

        response = await self._get(url, IMAGE_ACCEPT)
        if not response.ok:
            raise FetchError(url, status=response.status_code)

        media_type = response.media_type or DEFAULT_MEDIA_TYPE
        payload = base64.b64encode(response.content).decode("ascii")
        data_url = f"data:{media_type};base64,{payload}"
        self._images[url] = data_url
        return data_url
