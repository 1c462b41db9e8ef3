"""Page handlers: one download routine per page type."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

from ..discovery.harvester import BrowserListPage, ListHarvester, StaticListPage
from ..errors import ContentNotFoundError, MdgrabError, UnsupportedPageError
from ..extraction.dom import select_date
from ..models.config import MdgrabConfig
from ..models.events import EventEmitter, EventType, HarvestStats, ProgressEvent
from ..models.platforms import FieldRule, get_platform
from ..urls import page_url_context
from .downloader import Downloader
from .pages import PageType, match_page

logger = logging.getLogger(__name__)

VIDEO_DATE_RULE = FieldRule(selector="div.ZVideo-meta", pattern=r"(\d{4}-\d{2}-\d{2})")


@dataclass
class DownloadResult:
    """Outcome of one handled page."""

    page_type: PageType
    paths: list[Path] = field(default_factory=list)
    stats: Optional[HarvestStats] = None


Handler = Callable[[Downloader, str, PageType], Awaitable[DownloadResult]]


def _label(page_type: PageType) -> str:
    return page_type.value.replace("_", " ")


async def download_single_page(downloader: Downloader, url: str, page_type: PageType) -> DownloadResult:
    """
    Resolve, convert and save one article-like page.

    Raises:
        ContentNotFoundError: If no strategy finds content
    """
    downloader.emit(EventType.STARTED, f"Processing {_label(page_type)}...", url=url)
    await downloader.prime(url)

    record = await downloader.resolver.resolve(url)
    if record is None:
        raise ContentNotFoundError(url, "Could not find content on this page")

    path = await downloader.save_record(record)
    downloader.emit(EventType.COMPLETED, f"Downloaded: {path.name}", url=url, output_path=path, timeout=3.0)
    return DownloadResult(page_type=page_type, paths=[path])


def build_video_document(title: str, author: str, date: str, url: str, video_url: str) -> str:
    """Markdown info sheet for a video page."""
    return (
        f"# {title}\n\n"
        f"**Author:** {author}\n\n"
        f"**Date:** {date}\n\n"
        f"**Link:** {url}\n\n"
        f"**Video URL:** [Download Video]({video_url})\n\n"
        "Note: You can download the video by opening the link above or copying the URL."
    )


def find_play_url(state: object, video_id: str) -> Optional[str]:
    """First quality's ``playUrl`` from ``initialState.entities.zvideos[id].video.playlist``."""
    node = state
    for key in ("initialState", "entities", "zvideos", video_id, "video", "playlist"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if not isinstance(node, dict) or not node:
        return None
    first_quality = next(iter(node.values()))
    if not isinstance(first_quality, dict):
        return None
    play_url = first_quality.get("playUrl")
    return play_url if isinstance(play_url, str) and play_url else None


async def download_video(
    downloader: Downloader,
    url: str,
    page_type: PageType = PageType.ZHIHU_VIDEO,
) -> DownloadResult:
    """
    Save an info document pointing at a video's playable stream.

    Raises:
        ContentNotFoundError: If the video metadata or stream URL is missing
    """
    downloader.emit(EventType.STARTED, "Processing video...", url=url)
    document = await downloader.document(url)

    video_element = document.select_one("div.ZVideo-video")
    if video_element is None:
        raise ContentNotFoundError(url, "Could not find video data")
    try:
        video_data = json.loads(video_element.get("data-zop") or "{}")
    except ValueError as e:
        raise ContentNotFoundError(url, f"Could not parse video data: {e}") from e
    if not isinstance(video_data, dict):
        video_data = {}

    title = video_data.get("title") or "Untitled Video"
    author = video_data.get("authorName") or "Unknown"
    date = select_date(document, [VIDEO_DATE_RULE])

    script = document.select_one("script#js-initialData")
    script_text = (script.string or script.get_text()) if script is not None else ""
    if not script_text:
        raise ContentNotFoundError(url, "Could not find video data script")
    try:
        state = json.loads(script_text)
    except ValueError as e:
        raise ContentNotFoundError(url, f"Could not parse video data script: {e}") from e

    video_id = urlparse(url).path.rstrip("/").split("/")[-1]
    video_url = find_play_url(state, video_id)
    if not video_url:
        raise ContentNotFoundError(url, "Could not find video URL")

    markdown = build_video_document(title, author, date, url, video_url)
    path = await downloader.save_markdown(title, author, date, markdown)
    downloader.emit(
        EventType.COMPLETED,
        f"Downloaded info: {path.name}. Video URL: {video_url}",
        url=url,
        output_path=path,
        timeout=5.0,
    )
    return DownloadResult(page_type=page_type, paths=[path])


async def download_list(
    downloader: Downloader,
    url: str,
    page_type: PageType = PageType.ZHIHU_LIST,
) -> DownloadResult:
    """Collect the articles listed on a profile or column page and download each."""
    harvester = ListHarvester(
        downloader.resolver,
        downloader.save_record,
        downloader.config.harvest,
        emit=downloader.event_emitter,
        profile=downloader.profile,
    )

    if downloader.browser is not None:
        async with downloader.browser.open_page(url) as page:
            stats = await harvester.harvest(BrowserListPage(page), base_url=url)
    else:
        stats = await harvester.harvest(StaticListPage(downloader.cache, url), base_url=url)

    return DownloadResult(page_type=page_type, stats=stats)


async def reject_category(downloader: Downloader, url: str, page_type: PageType) -> DownloadResult:
    """CSDN category pages are recognized but not downloadable."""
    raise UnsupportedPageError(url, "CSDN category download is not supported")


HANDLERS: dict[PageType, Handler] = {
    PageType.ZHIHU_ARTICLE: download_single_page,
    PageType.ZHIHU_ANSWER: download_single_page,
    PageType.ZHIHU_VIDEO: download_video,
    PageType.ZHIHU_LIST: download_list,
    PageType.CSDN_ARTICLE: download_single_page,
    PageType.CSDN_CATEGORY: reject_category,
    PageType.WECHAT_ARTICLE: download_single_page,
    PageType.JUEJIN_ARTICLE: download_single_page,
}


async def download_url(
    url: str,
    config: Optional[MdgrabConfig] = None,
    emit: Optional[EventEmitter] = None,
) -> DownloadResult:
    """
    Download whatever ``url`` points at.

    This is the one place failures reach the user: the error is reported
    as a FAILED event and logged, then re-raised.

    Raises:
        MdgrabError: Unsupported page, missing content or a failed fetch
    """
    config = config or MdgrabConfig()
    url = url.strip()

    try:
        page_type = match_page(url)
        handler = HANDLERS[page_type]
        profile = get_platform(page_type.platform)
        logger.info(f"Handling {url} as {page_type.value}")

        with page_url_context(url):
            async with Downloader(config, profile, emit=emit) as downloader:
                return await handler(downloader, url, page_type)
    except MdgrabError as e:
        logger.error(f"Error downloading {url}: {e}")
        logger.debug("Download failure details", exc_info=True)
        _report_failure(emit, url, e)
        raise
    except Exception as e:
        logger.error(f"Unexpected error downloading {url}: {e}", exc_info=True)
        _report_failure(emit, url, e)
        raise


def _report_failure(emit: Optional[EventEmitter], url: str, error: Exception) -> None:
    if emit:
        emit(ProgressEvent(type=EventType.FAILED, message=f"Error: {error}", url=url, error=str(error), timeout=3.0))


def download_blocking(
    url: str,
    config: Optional[MdgrabConfig] = None,
    emit: Optional[EventEmitter] = None,
) -> DownloadResult:
    """
    Blocking download for sync code that can't use async/await.

    WARNING: Do not call from within an existing event loop (e.g., Jupyter,
    asyncio-based frameworks). Use ``download_url`` instead.
    """
    return asyncio.run(download_url(url, config, emit))
