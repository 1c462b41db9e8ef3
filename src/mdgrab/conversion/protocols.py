"""Protocol definitions for content conversion."""

from typing import Protocol

from bs4 import Tag


class MarkdownConverter(Protocol):
    """
    Protocol for converting content fragments to Markdown.

    Implementations must not mutate the fragment they are given.
    """

    def convert(self, fragment: Tag, url: str = "") -> str:
        """
        Convert a fragment to Markdown.

        Args:
            fragment: Content fragment
            url: Source URL (for resolving relative links)

        Returns:
            Markdown string
        """
        ...
