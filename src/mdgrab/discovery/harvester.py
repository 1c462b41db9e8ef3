"""Batch download of the articles listed on a feed or profile page."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from bs4 import BeautifulSoup, Tag

from ..dates import parse_date
from ..errors import ContentNotFoundError
from ..extraction.dom import select_date, select_value
from ..models.config import HarvestConfig
from ..models.events import EventEmitter, EventType, HarvestStats, ProgressEvent
from ..models.platforms import ZHIHU, ListRules, PlatformProfile
from ..models.records import DEFAULT_AUTHOR, DEFAULT_TITLE, ContentRecord, ListEntry
from ..pipeline.base import ContentResolver
from ..urls import normalize_url
from .protocols import ListPageDriver

if TYPE_CHECKING:
    from playwright.async_api import Page

    from ..cache.session import SessionCache

logger = logging.getLogger(__name__)

# Persists one merged record and returns where it went
SaveRecord = Callable[[ContentRecord], Awaitable[Path]]


def _timestamp_date(item: Tag, attribute: str) -> str:
    raw = item.get(attribute)
    if not isinstance(raw, str) or not raw:
        return ""
    try:
        module = json.loads(raw.replace("&quot;", '"'))
    except ValueError as e:
        logger.warning(f"Failed to parse {attribute}: {e}")
        return ""
    card = module.get("card") if isinstance(module, dict) else None
    content = card.get("content") if isinstance(card, dict) else None
    timestamp = content.get("publish_timestamp") if isinstance(content, dict) else None
    return parse_date(timestamp) if timestamp else ""


def entry_from_item(item: Tag, rules: ListRules, base_url: Optional[str] = None) -> Optional[ListEntry]:
    """
    Read one listing item.

    Returns:
        The entry, or None if the item has no link to an article
    """
    link = None
    for selector in rules.link:
        link = item.select_one(selector)
        if link is not None:
            break

    href = link.get("href") if link is not None else None
    url = normalize_url(href if isinstance(href, str) else "", base_url)
    if not url or not re.search(rules.url_pattern, url):
        return None

    title = (link.get_text().strip() if link is not None else "") or select_value(item, rules.title) or url
    author = select_value(item, rules.author) or DEFAULT_AUTHOR
    date = select_date(item, rules.date)
    if not date and rules.timestamp_attribute:
        date = _timestamp_date(item, rules.timestamp_attribute)

    return ListEntry(url=url, title=title, author=author, date=date)


def collect_entries(document: BeautifulSoup, rules: ListRules, base_url: Optional[str] = None) -> dict[str, ListEntry]:
    """
    Collect article entries from a listing document, keyed by normalized URL.

    The first container selector that matches scopes the search; without
    one the whole document is searched. The first entry for a URL wins.
    """
    container: Tag = document
    for selector in rules.containers:
        found = document.select_one(selector)
        if found is not None:
            container = found
            break

    entries: dict[str, ListEntry] = {}
    for item in container.select(rules.item):
        entry = entry_from_item(item, rules, base_url)
        if entry is not None:
            entries.setdefault(entry.url, entry)
    return entries


class StaticListPage:
    """
    A listing page fetched once over HTTP.

    Scrolling loads nothing, so collection ends once the idle threshold
    is reached.
    """

    def __init__(self, cache: SessionCache, url: str):
        self._cache = cache
        self._url = url

    async def snapshot(self) -> BeautifulSoup:
        return await self._cache.fetch_document(self._url)

    async def scroll_to_bottom(self) -> None:
        return None


class BrowserListPage:
    """A listing page open in a headless browser; scrolling loads more items."""

    def __init__(self, page: Page):
        self._page = page

    async def snapshot(self) -> BeautifulSoup:
        html = await self._page.content()
        return BeautifulSoup(html, "html.parser")

    async def scroll_to_bottom(self) -> None:
        await self._page.evaluate("window.scrollTo(0, document.body.scrollHeight)")


class ListHarvester:
    """
    Collects article links from a listing page and downloads them one by one.

    Items are processed strictly in order. A failure on one item is
    reported as a skip and never stops the batch.

    Example:
        harvester = ListHarvester(resolver, downloader.save_record, config.harvest, emit=indicator.on_event)
        entries = await harvester.collect(StaticListPage(cache, url), base_url=url)
        stats = await harvester.download(entries)
    """

    def __init__(
        self,
        resolver: ContentResolver,
        save_record: SaveRecord,
        config: Optional[HarvestConfig] = None,
        emit: Optional[EventEmitter] = None,
        profile: PlatformProfile = ZHIHU,
    ):
        if profile.list_rules is None:
            raise ValueError(f"Platform {profile.name.value} has no listing rules")
        self._resolver = resolver
        self._save_record = save_record
        self._config = config or HarvestConfig()
        self._emit = emit
        self._rules = profile.list_rules
        self._stats = HarvestStats()

    @property
    def stats(self) -> HarvestStats:
        return self._stats

    def _send(self, event_type: EventType, message: str, **kwargs) -> None:
        if self._emit:
            self._emit(ProgressEvent(type=event_type, message=message, **kwargs))

    async def collect(self, driver: ListPageDriver, base_url: Optional[str] = None) -> list[ListEntry]:
        """
        Scroll the page and gather entries until no new ones appear.

        Stops after ``max_idle_rounds`` rounds without growth or after
        ``max_rounds`` rounds.

        Returns:
            Entries in discovery order
        """
        config = self._config
        entries: dict[str, ListEntry] = {}
        idle_rounds = 0
        last_size = 0

        for round_number in range(1, config.max_rounds + 1):
            self._stats.rounds = round_number
            document = await driver.snapshot()
            for url, entry in collect_entries(document, self._rules, base_url).items():
                entries.setdefault(url, entry)

            self._send(
                EventType.ENTRIES_COLLECTED,
                f"Collected {len(entries)} links (scrolling to load more...)",
                current=len(entries),
            )

            if len(entries) == last_size:
                idle_rounds += 1
            else:
                idle_rounds = 0
                last_size = len(entries)

            if idle_rounds >= config.max_idle_rounds:
                break

            await driver.scroll_to_bottom()
            await asyncio.sleep(config.scroll_delay)

        self._stats.entries_collected = len(entries)
        logger.info(f"Collected {len(entries)} entries in {self._stats.rounds} rounds")
        return list(entries.values())

    def merge(self, record: ContentRecord, entry: ListEntry, position: int) -> ContentRecord:
        """Combine a resolved record with its listing entry; real record values win over the entry."""
        title = record.title if record.title != DEFAULT_TITLE else ""
        author = record.author if record.author != DEFAULT_AUTHOR else ""
        return ContentRecord(
            title=title or entry.title or f"Article {position}",
            author=author or entry.author or DEFAULT_AUTHOR,
            date=record.date or entry.date,
            url=record.url or entry.url,
            content=record.content,
            source=record.source,
        )

    async def download(self, entries: list[ListEntry]) -> HarvestStats:
        """
        Resolve and save every entry in order.

        Returns:
            HarvestStats with saved and skipped counts
        """
        total = len(entries)
        self._send(EventType.STARTED, f"Preparing to download {total} articles...", total=total)

        for position, entry in enumerate(entries, start=1):
            label = f"({position}/{total})"
            self._send(
                EventType.ITEM_PROGRESS,
                f"{label} Fetching article details...",
                url=entry.url,
                current=position,
                total=total,
            )

            try:
                record = await self._resolver.resolve(entry.url)
                if record is None:
                    raise ContentNotFoundError(entry.url, f"Could not get content: {entry.url}")
                path = await self._save_record(self.merge(record, entry, position))
            except Exception as e:
                logger.warning(f"Failed to download item {label} {entry.url}, skipping: {e}")
                self._stats.items_skipped += 1
                self._stats.skipped_positions.append(position)
                self._send(
                    EventType.ITEM_SKIPPED,
                    f"{label} Skipped: {e}",
                    url=entry.url,
                    error=str(e),
                    current=position,
                    total=total,
                    timeout=2.0,
                )
                await asyncio.sleep(self._config.skip_delay)
                continue

            self._stats.items_saved += 1
            self._send(
                EventType.ITEM_SAVED,
                f"{label} Saved: {path.name}",
                url=entry.url,
                current=position,
                total=total,
                output_path=path,
            )
            await asyncio.sleep(self._config.item_delay)

        self._send(
            EventType.COMPLETED,
            f"Finished downloading {self._stats.items_saved} articles",
            total=total,
            timeout=4.0,
        )
        return self._stats

    async def harvest(self, driver: ListPageDriver, base_url: Optional[str] = None) -> HarvestStats:
        """
        Collect entries and download them.

        Raises:
            ContentNotFoundError: If the page lists no downloadable articles
        """
        entries = await self.collect(driver, base_url)
        if not entries:
            raise ContentNotFoundError(
                base_url or "",
                "No downloadable article links found (make sure the page lists articles)",
            )
        return await self.download(entries)
