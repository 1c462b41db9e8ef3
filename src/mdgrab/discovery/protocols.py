"""Protocol definitions for list-page discovery."""

from typing import Protocol

from bs4 import BeautifulSoup


class ListPageDriver(Protocol):
    """
    Protocol for a listing page that may load more items when scrolled.

    Implementations give the harvester the current DOM and a way to ask
    for more content.
    """

    async def snapshot(self) -> BeautifulSoup:
        """
        Return the page's current DOM.

        Returns:
            Parsed document reflecting everything loaded so far
        """
        ...

    async def scroll_to_bottom(self) -> None:
        """Scroll to the end of the page to trigger lazy loading."""
        ...
