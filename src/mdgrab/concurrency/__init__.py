"""Headless browser support for mdgrab."""

from .browser_pool import PLAYWRIGHT_AVAILABLE, BrowserSession, parse_cookie_header

__all__ = [
    "BrowserSession",
    "PLAYWRIGHT_AVAILABLE",
    "parse_cookie_header",
]
