"""Tests for list-page discovery and batch download."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from bs4 import BeautifulSoup
from mdgrab.discovery import ListHarvester, StaticListPage, collect_entries
from mdgrab.errors import ContentNotFoundError
from mdgrab.extraction.embedded import fragment_from_html
from mdgrab.models.config import HarvestConfig
from mdgrab.models.events import EventType
from mdgrab.models.platforms import CSDN, ZHIHU
from mdgrab.models.records import DEFAULT_AUTHOR, DEFAULT_TITLE, ContentRecord, ListEntry

PROFILE_URL = "https://www.zhihu.com/people/someone/posts"

NO_DELAY = HarvestConfig(scroll_delay=0, item_delay=0, skip_delay=0)


def _item(article_id: int, title: str, extra: str = "", attrs: str = "") -> str:
    return (
        f'<div class="ContentItem ArticleItem" {attrs}>'
        f'<h2 class="ContentItem-title"><a href="//zhuanlan.zhihu.com/p/{article_id}">{title}</a></h2>'
        f"{extra}</div>"
    )


def _listing(*items: str) -> BeautifulSoup:
    html = '<html><body><div id="Profile-posts">' + "".join(items) + "</div></body></html>"
    return BeautifulSoup(html, "html.parser")


class FakeListPage:
    """Listing page whose content grows by one snapshot per scroll."""

    def __init__(self, snapshots: list[BeautifulSoup]):
        self._snapshots = snapshots
        self._index = 0
        self.scrolls = 0

    async def snapshot(self) -> BeautifulSoup:
        return self._snapshots[min(self._index, len(self._snapshots) - 1)]

    async def scroll_to_bottom(self) -> None:
        self.scrolls += 1
        self._index += 1


class TestCollectEntries:
    """Tests for collect_entries."""

    def test_reads_items(self):
        document = _listing(
            _item(
                101,
                "First",
                '<meta itemprop="name" content="Alice">',
                attrs="data-za-extra-module='{\"card\":{\"content\":{\"publish_timestamp\":1700000000}}}'",
            ),
            _item(102, "Second", '<meta itemprop="datePublished" content="2022-01-02T00:00:00Z">'),
        )

        entries = collect_entries(document, ZHIHU.list_rules, PROFILE_URL)

        assert list(entries) == ["https://zhuanlan.zhihu.com/p/101", "https://zhuanlan.zhihu.com/p/102"]
        first = entries["https://zhuanlan.zhihu.com/p/101"]
        assert first.title == "First"
        assert first.author == "Alice"
        assert first.date == "2023-11-14"
        second = entries["https://zhuanlan.zhihu.com/p/102"]
        assert second.author == "Unknown"
        assert second.date == "2022-01-02"

    def test_first_entry_wins_and_non_articles_skipped(self):
        document = _listing(
            _item(101, "Original"),
            _item(101, "Duplicate"),
            '<div class="ContentItem"><a href="https://www.zhihu.com/question/1">Question</a></div>',
        )

        entries = collect_entries(document, ZHIHU.list_rules, PROFILE_URL)

        assert len(entries) == 1
        assert entries["https://zhuanlan.zhihu.com/p/101"].title == "Original"

    def test_scoped_to_container(self):
        html = (
            '<div class="ContentItem"><a href="/p/9">outside</a></div>'
            '<div id="Profile-posts">' + _item(1, "inside") + "</div>"
        )

        entries = collect_entries(BeautifulSoup(html, "html.parser"), ZHIHU.list_rules, PROFILE_URL)

        assert list(entries) == ["https://zhuanlan.zhihu.com/p/1"]

    def test_whole_document_without_container(self):
        html = '<div class="ContentItem"><a href="/p/9">loose</a></div>'

        entries = collect_entries(BeautifulSoup(html, "html.parser"), ZHIHU.list_rules, PROFILE_URL)

        assert list(entries) == ["https://www.zhihu.com/p/9"]


class TestCollect:
    """Tests for ListHarvester.collect."""

    def _harvester(self, config=NO_DELAY, emit=None):
        return ListHarvester(MagicMock(), AsyncMock(), config, emit=emit)

    @pytest.mark.asyncio
    async def test_stops_after_idle_rounds(self):
        page = FakeListPage(
            [
                _listing(_item(1, "a"), _item(2, "b")),
                _listing(_item(1, "a"), _item(2, "b"), _item(3, "c")),
            ]
        )
        events = []
        harvester = self._harvester(emit=events.append)

        entries = await harvester.collect(page, PROFILE_URL)

        assert [e.title for e in entries] == ["a", "b", "c"]
        assert harvester.stats.rounds == 6
        assert harvester.stats.entries_collected == 3
        assert page.scrolls == 5
        collected = [e for e in events if e.type == EventType.ENTRIES_COLLECTED]
        assert collected[-1].current == 3

    @pytest.mark.asyncio
    async def test_stops_at_max_rounds(self):
        page = FakeListPage([_listing(*[_item(n, str(n)) for n in range(1, k + 1)]) for k in range(1, 10)])
        config = HarvestConfig(max_rounds=3, scroll_delay=0, item_delay=0, skip_delay=0)

        entries = await self._harvester(config).collect(page, PROFILE_URL)

        assert len(entries) == 3

    def test_requires_list_rules(self):
        with pytest.raises(ValueError):
            ListHarvester(MagicMock(), AsyncMock(), NO_DELAY, profile=CSDN)


class TestDownload:
    """Tests for ListHarvester.download."""

    ENTRIES = [
        ListEntry(url="https://zhuanlan.zhihu.com/p/1", title="One", author="Alice", date="2023-01-01"),
        ListEntry(url="https://zhuanlan.zhihu.com/p/2", title="Two", author="Bob"),
        ListEntry(url="https://zhuanlan.zhihu.com/p/3", title="Three", author="Carol"),
    ]

    @staticmethod
    def _record(url: str, **fields) -> ContentRecord:
        return ContentRecord(url=url, content=fragment_from_html("<p>body</p>"), source="dom", **fields)

    @pytest.mark.asyncio
    async def test_failed_item_is_skipped(self):
        """Test that one unresolvable item never stops the batch."""
        resolver = MagicMock()
        resolver.resolve = AsyncMock(
            side_effect=[
                self._record("https://zhuanlan.zhihu.com/p/1", title="", author=""),
                None,
                self._record("https://zhuanlan.zhihu.com/p/3", title="Real Three"),
            ]
        )
        save_record = AsyncMock(side_effect=lambda record: Path(f"/tmp/{record.title}.md"))
        events = []
        harvester = ListHarvester(resolver, save_record, NO_DELAY, emit=events.append)

        stats = await harvester.download(self.ENTRIES)

        assert stats.items_saved == 2
        assert stats.items_skipped == 1
        assert stats.skipped_positions == [2]
        assert save_record.await_count == 2

        first_saved = save_record.await_args_list[0].args[0]
        assert first_saved.title == "One"
        assert first_saved.author == "Alice"
        assert first_saved.date == "2023-01-01"
        assert save_record.await_args_list[1].args[0].title == "Real Three"

        skipped = [e for e in events if e.type == EventType.ITEM_SKIPPED]
        assert len(skipped) == 1
        assert "(2/3)" in skipped[0].message
        assert skipped[0].timeout == 2.0
        saved = [e.message for e in events if e.type == EventType.ITEM_SAVED]
        assert saved == ["(1/3) Saved: One.md", "(3/3) Saved: Real Three.md"]
        assert events[0].type == EventType.STARTED
        assert events[-1].type == EventType.COMPLETED
        assert events[-1].message == "Finished downloading 2 articles"

    @pytest.mark.asyncio
    async def test_save_error_is_skipped(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=lambda url: self._record(url))
        save_record = AsyncMock(side_effect=[Path("/tmp/a.md"), OSError("disk full"), Path("/tmp/c.md")])
        harvester = ListHarvester(resolver, save_record, NO_DELAY)

        stats = await harvester.download(self.ENTRIES)

        assert stats.items_saved == 2
        assert stats.skipped_positions == [2]

    def test_merge_fallbacks(self):
        harvester = ListHarvester(MagicMock(), AsyncMock(), NO_DELAY)
        record = ContentRecord(title="", author="", date="", url="", source="api")
        entry = ListEntry(url="https://zhuanlan.zhihu.com/p/5")

        merged = harvester.merge(record, entry, 4)

        assert merged.title == "Article 4"
        assert merged.author == "Unknown"
        assert merged.url == "https://zhuanlan.zhihu.com/p/5"
        assert merged.source == "api"

    def test_merge_prefers_entry_over_placeholders(self):
        harvester = ListHarvester(MagicMock(), AsyncMock(), NO_DELAY)
        record = ContentRecord(title=DEFAULT_TITLE, author=DEFAULT_AUTHOR, url="https://zhuanlan.zhihu.com/p/5")
        entry = ListEntry(url="https://zhuanlan.zhihu.com/p/5", title="Listed", author="Alice")

        merged = harvester.merge(record, entry, 1)

        assert merged.title == "Listed"
        assert merged.author == "Alice"


class TestHarvest:
    """Tests for ListHarvester.harvest."""

    @pytest.mark.asyncio
    async def test_empty_listing_raises(self):
        harvester = ListHarvester(MagicMock(), AsyncMock(), NO_DELAY)

        with pytest.raises(ContentNotFoundError, match="No downloadable article links"):
            await harvester.harvest(FakeListPage([_listing()]), PROFILE_URL)

    @pytest.mark.asyncio
    async def test_static_page_collects_once(self):
        cache = MagicMock()
        cache.fetch_document = AsyncMock(return_value=_listing(_item(1, "only")))
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value=None)
        harvester = ListHarvester(resolver, AsyncMock(), NO_DELAY)

        stats = await harvester.harvest(StaticListPage(cache, PROFILE_URL), PROFILE_URL)

        assert stats.entries_collected == 1
        assert stats.items_skipped == 1
        assert stats.rounds == 5
