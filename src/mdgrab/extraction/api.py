"""Content recovery through the platform's public content API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from ..dates import first_date
from ..models.records import ContentRecord
from ..urls import extract_article_id, normalize_url
from .embedded import fragment_from_html

if TYPE_CHECKING:
    from ..cache.session import SessionCache

logger = logging.getLogger(__name__)


class ApiFallbackClient:
    """
    Fetches an article through the content API when the page itself fails.

    Only URLs carrying a ``/p/<digits>`` article id are eligible.

    Example:
        api = ApiFallbackClient(cache)
        record = await api.fetch("https://zhuanlan.zhihu.com/p/123")
    """

    def __init__(self, cache: SessionCache):
        self._cache = cache
        profile = cache.profile
        self._endpoint = profile.api_endpoint
        self._canonical = profile.api_canonical_url

    def endpoint_for(self, url: str) -> Optional[str]:
        """API URL for an article URL, or None if the URL has no article id."""
        article_id = extract_article_id(url)
        if not article_id or not self._endpoint:
            return None
        return self._endpoint.format(id=article_id)

    async def fetch(self, url: str) -> Optional[ContentRecord]:
        """
        Fetch and convert the API payload for ``url``.

        Returns:
            Record with ``source="api"``, or None on any failure. Never raises.
        """
        api_url = self.endpoint_for(url)
        if api_url is None:
            return None
        article_id = extract_article_id(url)

        try:
            data = await self._cache.fetch_json(api_url)
        except Exception as e:
            logger.warning(f"API fallback failed for {url}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"API fallback for {url} returned {type(data).__name__}, expected an object")
            return None

        content_html = data.get("content")
        if not isinstance(content_html, str) or not content_html.strip():
            logger.warning(f"API fallback for {url} returned no content")
            return None

        content = fragment_from_html(content_html)
        if content is None:
            return None

        author = data.get("author")
        canonical = data.get("url") or (self._canonical.format(id=article_id) if self._canonical else url)

        return ContentRecord(
            title=str(data.get("title") or ""),
            author=str(author.get("name") or "") if isinstance(author, dict) else "",
            date=first_date(data.get("updated"), data.get("created")),
            url=normalize_url(canonical),
            content=content,
            source="api",
        )
