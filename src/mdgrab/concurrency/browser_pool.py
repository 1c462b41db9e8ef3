"""Headless browser session for JavaScript-rendered pages."""

from __future__ import annotations

import contextlib
import logging
from types import TracebackType
from typing import TYPE_CHECKING, AsyncIterator, Optional

logger = logging.getLogger(__name__)

# Check for Playwright availability
PLAYWRIGHT_AVAILABLE = False
try:
    from playwright.async_api import async_playwright

    PLAYWRIGHT_AVAILABLE = True
except ImportError:
    pass

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright


def parse_cookie_header(cookie: Optional[str], domain: str) -> list[dict[str, str]]:
    """
    Turn a ``Cookie`` header value into Playwright cookie records.

    Args:
        cookie: Header value such as ``"z_c0=abc; d_c0=def"``
        domain: Domain the cookies are scoped to (subdomains included)

    Returns:
        Cookie dicts for ``BrowserContext.add_cookies``
    """
    if not cookie:
        return []
    records = []
    for part in cookie.split(";"):
        name, sep, value = part.strip().partition("=")
        if not sep or not name:
            continue
        records.append({"name": name.strip(), "value": value.strip(), "domain": f".{domain}", "path": "/"})
    return records


class BrowserSession:
    """
    One browser and one context shared by every page of a download session.

    The context carries the session cookie so rendered pages see the same
    logged-in state as the HTTP client.

    Example:
        async with BrowserSession(cookie="z_c0=...", cookie_domain="zhihu.com") as browser:
            html = await browser.render("https://zhuanlan.zhihu.com/p/123")

    Requires: pip install mdgrab[js]
    """

    def __init__(
        self,
        headless: bool = True,
        user_agent: str | None = None,
        timeout: float = 30.0,
        cookie: str | None = None,
        cookie_domain: str = "zhihu.com",
        wait_until: str = "networkidle",
    ) -> None:
        """
        Initialize the browser session.

        Args:
            headless: Run browser in headless mode
            user_agent: Custom user agent string
            timeout: Default timeout for page operations (seconds)
            cookie: Cookie header value to install in the context
            cookie_domain: Domain the cookie belongs to
            wait_until: Wait condition ('load', 'domcontentloaded', 'networkidle')
        """
        if not PLAYWRIGHT_AVAILABLE:
            raise ImportError("Playwright is required for JavaScript rendering. Install with: pip install mdgrab[js]")

        self._headless = headless
        self._user_agent = user_agent
        self._timeout = timeout * 1000  # Convert to milliseconds
        self._cookies = parse_cookie_header(cookie, cookie_domain)
        self._wait_until = wait_until

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    async def __aenter__(self) -> BrowserSession:
        """Enter async context and launch the browser."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self._headless)

        context_options: dict[str, object] = {
            "viewport": {"width": 1920, "height": 1080},
            "java_script_enabled": True,
        }
        if self._user_agent:
            context_options["user_agent"] = self._user_agent

        self._context = await self._browser.new_context(**context_options)  # type: ignore[arg-type]
        self._context.set_default_timeout(self._timeout)
        if self._cookies:
            await self._context.add_cookies(self._cookies)  # type: ignore[arg-type]

        logger.info("Browser session started")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context and cleanup resources."""
        if self._context:
            try:
                await self._context.close()
            except Exception as e:
                logger.debug(f"Error closing context: {e}")
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        logger.info("Browser session shut down")

    @contextlib.asynccontextmanager
    async def open_page(self, url: str) -> AsyncIterator[Page]:
        """
        Navigate a fresh page to ``url`` and yield it; the page is closed afterwards.

        Example:
            async with browser.open_page(url) as page:
                await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
        """
        if self._context is None:
            raise RuntimeError("Browser session not initialized. Use 'async with' context.")

        page = await self._context.new_page()
        try:
            await page.goto(url, wait_until=self._wait_until)  # type: ignore[arg-type]
            yield page
        finally:
            with contextlib.suppress(Exception):
                await page.close()

    async def render(self, url: str) -> str:
        """Return the rendered HTML of ``url``."""
        async with self.open_page(url) as page:
            html: str = await page.content()
            return html
