"""
mdgrab - Save articles from Zhihu, CSDN, WeChat and Juejin as Markdown.

Usage:
    from mdgrab import MdgrabConfig, OutputConfig, download_url

    config = MdgrabConfig(output=OutputConfig(directory=Path("./notes")))
    result = await download_url("https://zhuanlan.zhihu.com/p/123456789", config)
    print(result.paths)
"""

__version__ = "0.3.0"

from .core.downloader import Downloader
from .core.handlers import DownloadResult, download_blocking, download_url
from .core.pages import PageType, match_page
from .errors import (
    BlockedPageError,
    ContentNotFoundError,
    FetchError,
    JsonParseError,
    MdgrabError,
    UnsupportedPageError,
)
from .models.config import (
    AuthConfig,
    BlockPolicy,
    BrowserConfig,
    ConversionConfig,
    HarvestConfig,
    MdgrabConfig,
    NetworkConfig,
    OutputConfig,
    TableHeaderPolicy,
)
from .models.events import EventType, HarvestStats, ProgressEvent
from .models.records import ContentRecord, ListEntry

__all__ = [
    "__version__",
    # Core
    "Downloader",
    "DownloadResult",
    "PageType",
    "download_blocking",
    "download_url",
    "match_page",
    # Config
    "MdgrabConfig",
    "AuthConfig",
    "BlockPolicy",
    "BrowserConfig",
    "ConversionConfig",
    "HarvestConfig",
    "NetworkConfig",
    "OutputConfig",
    "TableHeaderPolicy",
    # Events
    "EventType",
    "HarvestStats",
    "ProgressEvent",
    # Records
    "ContentRecord",
    "ListEntry",
    # Errors
    "BlockedPageError",
    "ContentNotFoundError",
    "FetchError",
    "JsonParseError",
    "MdgrabError",
    "UnsupportedPageError",
]
