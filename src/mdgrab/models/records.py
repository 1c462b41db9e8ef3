"""Records produced by the resolution pipeline and the list harvester."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bs4 import Tag

DEFAULT_TITLE = "Untitled"
DEFAULT_AUTHOR = "Unknown"


class BlockClassification(str, Enum):
    """Classification of a fetched HTML payload."""

    CLEAN = "clean"
    SECURITY_CHECK = "security_check"
    LOGIN_REQUIRED = "login_required"


@dataclass
class ContentRecord:
    """
    One resolved content item.

    The ``content`` fragment is owned by the record: it is either a deep copy
    of a node from a fetched document or a freshly parsed fragment, so
    downstream steps may mutate it freely.

    Attributes:
        title: Content title (never empty once resolved)
        author: Author display name
        date: ISO ``YYYY-MM-DD`` or empty
        url: Absolute canonical URL
        content: Detached HTML fragment, or None if nothing was found
        source: Strategy that produced the content (dom, embedded, api)
    """

    title: str = DEFAULT_TITLE
    author: str = DEFAULT_AUTHOR
    date: str = ""
    url: str = ""
    content: Optional[Tag] = None
    source: str = ""

    @property
    def is_usable(self) -> bool:
        """True if the record carries non-blank content."""
        if self.content is None:
            return False
        return bool(self.content.get_text().strip())

    def overlay(self, other: ContentRecord) -> None:
        """
        Copy every non-empty field of ``other`` onto this record.

        Fields the other record leaves empty keep their current value.
        """
        if other.title:
            self.title = other.title
        if other.author:
            self.author = other.author
        if other.date:
            self.date = other.date
        if other.url:
            self.url = other.url
        if other.content is not None:
            self.content = other.content
            self.source = other.source


@dataclass
class ListEntry:
    """A content link discovered on a feed/listing page."""

    url: str
    title: str = ""
    author: str = ""
    date: str = ""
