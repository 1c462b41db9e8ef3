"""Embedding of fragment images as base64 data URLs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from bs4 import Tag

from ..urls import normalize_url

if TYPE_CHECKING:
    from ..cache.session import SessionCache

logger = logging.getLogger(__name__)

# Attributes holding the image location, lazy-loading variants included
SOURCE_ATTRIBUTES = ("src", "data-original", "data-src", "data-actualsrc")


@dataclass
class InlineResult:
    """Counts from one inlining pass."""

    inlined: int = 0
    failed: int = 0
    skipped: int = 0


def image_source(img: Tag) -> Optional[str]:
    """First non-empty source attribute of an ``img``."""
    for attribute in SOURCE_ATTRIBUTES:
        value = img.get(attribute)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class ImageInliner:
    """
    Rewrites every image in a fragment to a ``data:`` URL.

    Images are fetched concurrently through the session cache, so an image
    repeated across items is downloaded once. A failed image is logged and
    left as it was; it never fails the fragment.

    Example:
        inliner = ImageInliner(cache)
        result = await inliner.inline(record.content, record.url)
        logger.info(f"Inlined {result.inlined} images")
    """

    def __init__(self, cache: SessionCache):
        self._cache = cache

    async def _inline_one(self, img: Tag, source: str, base_url: str) -> bool:
        if source.startswith("data:"):
            data_url = source
        else:
            absolute = normalize_url(source, base_url)
            try:
                data_url = await self._cache.fetch_image_data_url(absolute)
            except Exception as e:
                logger.warning(f"Failed to embed image {absolute}: {e}")
                return False

        img["src"] = data_url
        if img.has_attr("srcset"):
            del img["srcset"]
        return True

    async def inline(self, fragment: Tag, base_url: str) -> InlineResult:
        """
        Inline all images of ``fragment`` in place.

        Running it again over an inlined fragment makes no requests and
        changes nothing.

        Args:
            fragment: Content fragment (mutated)
            base_url: URL used to resolve relative image sources

        Returns:
            InlineResult with inlined/failed/skipped counts
        """
        result = InlineResult()
        jobs = []
        for img in fragment.find_all("img"):
            source = image_source(img)
            if source is None:
                result.skipped += 1
                continue
            jobs.append(self._inline_one(img, source, base_url))

        if not jobs:
            return result

        outcomes = await asyncio.gather(*jobs)
        result.inlined = sum(1 for ok in outcomes if ok)
        result.failed = len(outcomes) - result.inlined
        if result.failed:
            logger.info(f"Inlined {result.inlined} images, {result.failed} failed")
        return result
