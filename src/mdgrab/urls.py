"""URL canonicalization helpers."""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional
from urllib.parse import urljoin, urlparse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.zhihu.com/"

_ARTICLE_ID_RE = re.compile(r"/p/(\d+)")

# URL of the page being processed; the default base for normalization
_current_page: ContextVar[Optional[str]] = ContextVar("mdgrab_current_page", default=None)


@contextmanager
def page_url_context(url: str) -> Iterator[None]:
    """Make ``url`` the default base for ``normalize_url`` within the block."""
    token = _current_page.set(url)
    try:
        yield
    finally:
        _current_page.reset(token)


def current_page_url() -> str:
    """The page URL set by ``page_url_context``, or the Zhihu main origin."""
    return _current_page.get() or DEFAULT_BASE_URL


def normalize_url(raw: Optional[str], base: Optional[str] = None) -> str:
    """
    Canonicalize a raw URL against a base URL.

    Rules, in order:
    1. Empty input gives an empty string
    2. ``data:`` URLs are returned unchanged
    3. Protocol-relative URLs get the base URL's scheme
    4. Absolute ``http(s)://`` URLs are returned unchanged
    5. Anything else is resolved against the base

    Never raises: if resolution fails the raw string is returned and a
    warning is logged.

    Args:
        raw: The URL as found in markup or supplied by the user
        base: Base URL for resolution (defaults to the current page URL)

    Returns:
        Normalized absolute URL (or the raw input on failure)
    """
    if not raw:
        return ""

    raw = raw.strip()
    base = base or current_page_url()

    if raw.startswith("data:"):
        return raw

    if raw.startswith("//"):
        scheme = urlparse(base).scheme or "https"
        return f"{scheme}:{raw}"

    if raw.startswith(("http://", "https://")):
        return raw

    try:
        return urljoin(base, raw)
    except ValueError as e:
        logger.warning(f"Failed to normalize url {raw!r} against {base!r}: {e}")
        return raw


def extract_article_id(url: Optional[str]) -> str:
    """Return the numeric article id from a ``/p/<id>`` URL, or an empty string."""
    if not url:
        return ""
    match = _ARTICLE_ID_RE.search(normalize_url(url))
    return match.group(1) if match else ""


def host_of(url: str) -> str:
    """Lower-cased hostname of a URL without port."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def host_matches(host: str, domain: str) -> bool:
    """True if ``host`` is ``domain`` or one of its subdomains."""
    host = host.lower()
    domain = domain.lower().lstrip(".")
    return host == domain or host.endswith("." + domain)
