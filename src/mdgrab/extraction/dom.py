"""Field extraction from a fetched or rendered document."""

from __future__ import annotations

import copy
import logging
import re
from typing import Optional, Sequence

from bs4 import BeautifulSoup, Tag

from ..dates import parse_date
from ..models.platforms import FieldRule, PlatformProfile
from ..models.records import DEFAULT_AUTHOR, DEFAULT_TITLE, ContentRecord
from ..urls import normalize_url

logger = logging.getLogger(__name__)


def element_text(element: Tag) -> str:
    """Visible text of an element; script and style bodies are returned as-is."""
    if element.name in ("script", "style"):
        return element.string or element.get_text()
    return element.get_text()


def select_value(root: Tag, rules: Sequence[FieldRule]) -> str:
    """
    Evaluate field rules in order and return the first non-empty value.

    Every element matching a rule's selector is tried in document order
    before moving to the next rule.

    Args:
        root: Document or element to search
        rules: Ordered rules for one field

    Returns:
        Stripped value, or an empty string if no rule produced one
    """
    for rule in rules:
        for element in root.select(rule.selector):
            if rule.attribute:
                raw = element.get(rule.attribute)
                if isinstance(raw, list):
                    raw = " ".join(raw)
                value = raw or ""
            else:
                value = element_text(element)

            if rule.pattern:
                match = re.search(rule.pattern, value)
                value = match.group(1) if match else ""

            value = value.strip()
            if value:
                return value
    return ""


def select_date(root: Tag, rules: Sequence[FieldRule]) -> str:
    """Like ``select_value`` but returns the first value that parses as a date."""
    for rule in rules:
        date = parse_date(select_value(root, [rule]))
        if date:
            return date
    return ""


class DomExtractor:
    """
    Reads a ContentRecord out of a document using a platform's field rules.

    The content element is deep-copied so the record never aliases the
    cached document.

    Example:
        extractor = DomExtractor(ZHIHU)
        record = extractor.extract(doc, "https://zhuanlan.zhihu.com/p/123")
        if extractor.is_truncated(record):
            ...
    """

    def __init__(self, profile: PlatformProfile, min_content_length: int = 200):
        self._profile = profile
        self._min_content_length = min_content_length
        self._read_more = re.compile(profile.read_more_pattern) if profile.read_more_pattern else None

    def find_content(self, document: Tag) -> Optional[Tag]:
        for selector in self._profile.content:
            element = document.select_one(selector)
            if element is not None:
                return element
        return None

    def extract(self, document: BeautifulSoup, url: str) -> ContentRecord:
        """
        Extract title, content, author, date and canonical URL.

        Title falls back to ``"Untitled"`` and author to ``"Unknown"``;
        content is None when no content selector matches.
        """
        profile = self._profile
        element = self.find_content(document)
        content = copy.copy(element) if element is not None else None

        canonical = select_value(document, profile.canonical_url) or url

        return ContentRecord(
            title=select_value(document, profile.title) or DEFAULT_TITLE,
            author=select_value(document, profile.author) or DEFAULT_AUTHOR,
            date=select_date(document, profile.date),
            url=normalize_url(canonical, url),
            content=content,
            source="dom",
        )

    def is_truncated(self, record: ContentRecord) -> bool:
        """
        True if DOM content should be supplemented from another source.

        Content counts as truncated when absent, shorter than the minimum
        length, or carrying a read-more control or marker text.
        """
        content = record.content
        if content is None:
            return True

        text = content.get_text().strip()
        if len(text) < self._min_content_length:
            return True

        for selector in self._profile.read_more_selectors:
            if content.select_one(selector) is not None:
                return True

        return bool(self._read_more and self._read_more.search(text))
