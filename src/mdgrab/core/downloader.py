"""Download session: one HTTP client, cache and converter shared by every page."""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from types import TracebackType
from typing import Optional

from bs4 import BeautifulSoup

from ..cache.session import SessionCache
from ..concurrency.browser_pool import BrowserSession
from ..conversion.images import ImageInliner
from ..conversion.markdown import build_document, select_converter
from ..conversion.protocols import MarkdownConverter
from ..http.client import AsyncHttpClient
from ..models.config import MdgrabConfig
from ..models.events import EventEmitter, EventType, ProgressEvent
from ..models.platforms import PlatformProfile
from ..models.records import ContentRecord
from ..output import MarkdownWriter, build_filename
from ..pipeline.base import ContentResolver
from ..pipeline.strategies import build_resolver

logger = logging.getLogger(__name__)


class Downloader:
    """
    Owns everything one download run needs for a platform.

    The document and image caches live exactly as long as the session.
    With ``browser.javascript`` enabled, pages are rendered by Playwright
    and the rendered DOM is what the resolver reads.

    Example:
        async with Downloader(config, ZHIHU, emit=indicator.on_event) as downloader:
            record = await downloader.resolver.resolve(url)
            path = await downloader.save_record(record)
    """

    def __init__(
        self,
        config: MdgrabConfig,
        profile: PlatformProfile,
        emit: Optional[EventEmitter] = None,
    ) -> None:
        self._config = config
        self._profile = profile
        self._emit = emit

        network = config.network
        self._client = AsyncHttpClient(
            allowed_domains=profile.allowed_domains,
            max_retries=network.max_retries,
            user_agent=network.user_agent,
            proxy=network.proxy,
            default_timeout=network.timeout,
            cookie=config.auth.cookie,
        )
        self._cache = SessionCache(self._client, profile, block_policy=network.block_policy)
        self._resolver = build_resolver(self._cache, config.conversion.min_content_length)
        self._inliner = ImageInliner(self._cache)
        self._converter = select_converter(
            config.conversion.table_header_policy,
            profile.removal_selectors,
        )
        self._writer = MarkdownWriter(config.output.directory, dry_run=config.dry_run)
        self._browser: Optional[BrowserSession] = None
        self._stack: Optional[contextlib.AsyncExitStack] = None

    async def __aenter__(self) -> Downloader:
        """Open the HTTP client and, if configured, the browser."""
        stack = contextlib.AsyncExitStack()
        try:
            await stack.enter_async_context(self._client)
            if self._config.browser.javascript:
                browser = BrowserSession(
                    headless=self._config.browser.headless,
                    user_agent=self._config.network.user_agent,
                    timeout=self._config.network.timeout,
                    cookie=self._config.auth.cookie,
                    cookie_domain=self._profile.allowed_domains[0],
                )
                self._browser = await stack.enter_async_context(browser)
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close the browser and HTTP client."""
        if self._stack is not None:
            await self._stack.aclose()
            self._stack = None
        self._browser = None

    @property
    def config(self) -> MdgrabConfig:
        return self._config

    @property
    def profile(self) -> PlatformProfile:
        return self._profile

    @property
    def cache(self) -> SessionCache:
        return self._cache

    @property
    def resolver(self) -> ContentResolver:
        return self._resolver

    @property
    def converter(self) -> MarkdownConverter:
        return self._converter

    @property
    def writer(self) -> MarkdownWriter:
        return self._writer

    @property
    def browser(self) -> Optional[BrowserSession]:
        return self._browser

    @property
    def event_emitter(self) -> Optional[EventEmitter]:
        return self._emit

    def emit(self, event_type: EventType, message: str, **kwargs) -> None:
        """Send a progress event if anyone is listening."""
        if self._emit:
            self._emit(ProgressEvent(type=event_type, message=message, **kwargs))

    async def prime(self, url: str) -> None:
        """
        Render ``url`` in the browser and seed the document cache with it.

        A failed render is logged and leaves the cache empty, so the page is
        fetched over HTTP instead.
        """
        if self._browser is None or self._cache.cached_document(url) is not None:
            return
        try:
            html = await self._browser.render(url)
        except Exception as e:
            logger.warning(f"Browser render failed for {url}, fetching over HTTP: {e}")
            logger.debug("Render failure details", exc_info=True)
            return
        self._cache.store_document(url, BeautifulSoup(html, "html.parser"))

    async def document(self, url: str) -> BeautifulSoup:
        """The page's document: rendered if a browser is open, fetched otherwise."""
        await self.prime(url)
        return await self._cache.fetch_document(url)

    async def save_markdown(self, title: str, author: str, date: str, markdown: str) -> Path:
        """Write a finished document under its standard file name."""
        return await self._writer.save(build_filename(title, author, date), markdown)

    async def save_record(self, record: ContentRecord) -> Path:
        """
        Inline images, convert and save one resolved record.

        Raises:
            ValueError: If the record carries no content
        """
        if record.content is None:
            raise ValueError(f"Record for {record.url} has no content")

        if self._config.conversion.inline_images:
            self.emit(EventType.STATUS, "Embedding images...", url=record.url)
            result = await self._inliner.inline(record.content, record.url)
            logger.debug(f"Images for {record.url}: {result.inlined} inlined, {result.failed} failed")

        self.emit(EventType.STATUS, "Converting to Markdown...", url=record.url)
        body = self._converter.convert(record.content, record.url)
        markdown = build_document(record, body)
        return await self.save_markdown(record.title, record.author, record.date, markdown)
