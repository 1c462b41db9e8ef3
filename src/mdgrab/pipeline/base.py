"""Base classes for the content resolution pipeline."""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from bs4 import BeautifulSoup

from ..models.records import DEFAULT_AUTHOR, DEFAULT_TITLE, ContentRecord
from ..urls import normalize_url

logger = logging.getLogger(__name__)


@dataclass
class ResolutionState:
    """
    State shared by the strategies resolving one URL.

    Attributes:
        url: Normalized URL being resolved
        document: Fetched document, None until fetched or if the fetch failed
        record: Best record so far
        fetch_error: Error raised by the document fetch, if any
        insufficient: True while the current record needs supplementing
    """

    url: str
    document: Optional[BeautifulSoup] = None
    record: Optional[ContentRecord] = None
    fetch_error: Optional[Exception] = None
    insufficient: bool = True

    @property
    def fetch_failed(self) -> bool:
        return self.fetch_error is not None

    @property
    def has_usable_content(self) -> bool:
        return self.record is not None and self.record.is_usable


@runtime_checkable
class ResolutionStrategy(Protocol):
    """
    Protocol for one source of content.

    Strategies run in the order they are given to the resolver. A strategy
    decides from the shared state whether it applies, and updates the
    state in place.

    Error Handling Contract:
    - Expected failures (fetch errors, missing data) are handled inside
      ``run`` and recorded on the state or logged
    - Anything unexpected may raise; the resolver logs it and moves on

    Example implementation:
        class CachedStrategy:
            name = "cached"

            def applies(self, state: ResolutionState) -> bool:
                return state.record is None

            async def run(self, state: ResolutionState) -> None:
                state.record = lookup(state.url)
    """

    name: str

    def applies(self, state: ResolutionState) -> bool:
        """True if this strategy should run for the current state."""
        ...

    async def run(self, state: ResolutionState) -> None:
        """Update ``state`` with whatever this source provides."""
        ...


@dataclass
class ContentResolver:
    """
    Resolves a URL to a ContentRecord through ordered fallback strategies.

    Example:
        resolver = ContentResolver(strategies=[
            DomStrategy(cache, DomExtractor(ZHIHU)),
            EmbeddedStateStrategy(ZHIHU),
            ApiFallbackStrategy(ApiFallbackClient(cache)),
        ])

        record = await resolver.resolve("https://zhuanlan.zhihu.com/p/123")
        if record is None:
            logger.info("Nothing usable found")
    """

    strategies: list[ResolutionStrategy]

    async def resolve(self, url: str) -> Optional[ContentRecord]:
        """
        Run the strategies for ``url``.

        Returns:
            Record with usable content and a non-empty title and author (placeholders
            if no source had them), or None when no strategy produced any. Never raises.
        """
        state = ResolutionState(url=normalize_url(url))

        for strategy in self.strategies:
            if not strategy.applies(state):
                logger.debug(f"Strategy {strategy.name} not applicable for {state.url}")
                continue
            try:
                await strategy.run(state)
            except Exception as e:
                logger.warning(f"Strategy {strategy.name} failed for {state.url}: {e}")
                logger.debug("Strategy failure details", exc_info=True)

        record = state.record
        if record is None or not record.is_usable:
            logger.info(f"No usable content found for {state.url}")
            return None

        if not record.title:
            record.title = DEFAULT_TITLE
        if not record.author:
            record.author = DEFAULT_AUTHOR

        logger.debug(f"Resolved {state.url} via {record.source}")
        return record

    def add_strategy(self, strategy: ResolutionStrategy) -> "ContentResolver":
        """Add a strategy (fluent API)."""
        self.strategies.append(strategy)
        return self
