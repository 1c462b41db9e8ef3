"""List-page discovery and batch download for mdgrab."""

from .harvester import (
    BrowserListPage,
    ListHarvester,
    StaticListPage,
    collect_entries,
    entry_from_item,
)
from .protocols import ListPageDriver

__all__ = [
    # Protocols
    "ListPageDriver",
    # Implementations
    "BrowserListPage",
    "ListHarvester",
    "StaticListPage",
    # Helpers
    "collect_entries",
    "entry_from_item",
]
