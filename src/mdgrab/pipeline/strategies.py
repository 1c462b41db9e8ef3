"""Resolution strategies: rendered DOM, embedded state, content API."""

from __future__ import annotations

import logging

from ..cache.session import SessionCache
from ..errors import FetchError
from ..extraction.api import ApiFallbackClient
from ..extraction.dom import DomExtractor
from ..extraction.embedded import extract_from_initial_data
from ..models.platforms import PlatformProfile
from .base import ContentResolver, ResolutionState, ResolutionStrategy

logger = logging.getLogger(__name__)


class DomStrategy:
    """Fetch the document and read fields with the platform's DOM rules."""

    name = "dom"

    def __init__(self, cache: SessionCache, extractor: DomExtractor):
        self._cache = cache
        self._extractor = extractor

    def applies(self, state: ResolutionState) -> bool:
        return state.document is None and not state.fetch_failed

    async def run(self, state: ResolutionState) -> None:
        try:
            document = await self._cache.fetch_document(state.url)
        except FetchError as e:
            logger.warning(f"Document fetch failed, falling back: {e}")
            state.fetch_error = e
            return

        state.document = document
        record = self._extractor.extract(document, state.url)
        state.record = record
        state.insufficient = self._extractor.is_truncated(record)
        if state.insufficient:
            logger.info(f"DOM content for {state.url} looks truncated or missing")


class EmbeddedStateStrategy:
    """Overlay fields from the page's embedded JSON state onto the DOM record."""

    name = "embedded"

    def __init__(self, profile: PlatformProfile):
        self._profile = profile

    def applies(self, state: ResolutionState) -> bool:
        return state.document is not None and state.insufficient

    async def run(self, state: ResolutionState) -> None:
        if state.document is None:
            return
        fallback_url = state.record.url if state.record and state.record.url else state.url
        embedded = extract_from_initial_data(state.document, fallback_url, self._profile)
        if embedded is None:
            logger.debug(f"No embedded state content for {state.url}")
            return

        if state.record is None:
            state.record = embedded
        else:
            state.record.overlay(embedded)
        state.insufficient = False


class ApiFallbackStrategy:
    """Replace the record with the content API's version when nothing usable exists."""

    name = "api"

    def __init__(self, client: ApiFallbackClient):
        self._client = client

    def applies(self, state: ResolutionState) -> bool:
        return state.fetch_failed or not state.has_usable_content

    async def run(self, state: ResolutionState) -> None:
        record = await self._client.fetch(state.url)
        if record is not None:
            state.record = record


def build_strategies(
    cache: SessionCache,
    min_content_length: int = 200,
) -> list[ResolutionStrategy]:
    """Strategies supported by the cache's platform, in resolution order."""
    profile = cache.profile
    strategies: list[ResolutionStrategy] = [DomStrategy(cache, DomExtractor(profile, min_content_length))]
    if profile.has_embedded_state:
        strategies.append(EmbeddedStateStrategy(profile))
    if profile.has_api:
        strategies.append(ApiFallbackStrategy(ApiFallbackClient(cache)))
    return strategies


def build_resolver(cache: SessionCache, min_content_length: int = 200) -> ContentResolver:
    """ContentResolver for the cache's platform."""
    return ContentResolver(strategies=build_strategies(cache, min_content_length))
