"""Exception taxonomy for mdgrab.

Low-level helpers (HTTP, session cache) raise these; the fallback helpers
(embedded state, API fallback, per-image inlining, resolver strategies) catch
them and degrade to ``None``. Only the outermost page handler lets one reach
the user.
"""

from __future__ import annotations

from typing import Optional

from .models.records import BlockClassification


class MdgrabError(Exception):
    """Base class for all mdgrab errors."""


class FetchError(MdgrabError):
    """A document, JSON or image request failed (non-2xx/3xx or transport error)."""

    def __init__(
        self,
        url: str,
        status: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.url = url
        self.status = status
        self.reason = reason
        if status is not None:
            detail = f"HTTP {status}"
        else:
            detail = reason or "request failed"
        super().__init__(f"Failed to fetch {url}: {detail}")


class BlockedPageError(FetchError):
    """The response was a security challenge or login wall instead of content."""

    def __init__(self, url: str, classification: BlockClassification) -> None:
        self.classification = classification
        super().__init__(url, reason=f"blocked page ({classification.value})")


class JsonParseError(MdgrabError):
    """A 2xx response that should have been JSON could not be parsed."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Failed to parse JSON from {url}")


class ContentNotFoundError(MdgrabError):
    """No content element was located by any strategy."""

    def __init__(self, url: str, detail: Optional[str] = None) -> None:
        self.url = url
        super().__init__(detail or f"Could not find content for {url}")


class UnsupportedPageError(MdgrabError):
    """The URL matches no known page handler."""

    def __init__(self, url: str, reason: Optional[str] = None) -> None:
        self.url = url
        super().__init__(reason or f"This page type is not supported for download: {url}")


__all__ = [
    "BlockedPageError",
    "ContentNotFoundError",
    "FetchError",
    "JsonParseError",
    "MdgrabError",
    "UnsupportedPageError",
]
