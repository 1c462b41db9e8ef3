"""Page dispatch and download sessions for mdgrab."""

from .downloader import Downloader
from .handlers import HANDLERS, DownloadResult, download_blocking, download_url
from .pages import PageType, match_page

__all__ = [
    "Downloader",
    "DownloadResult",
    "HANDLERS",
    "PageType",
    "download_blocking",
    "download_url",
    "match_page",
]
