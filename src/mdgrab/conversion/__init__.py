"""Content conversion for mdgrab (image inlining, HTML to Markdown)."""

from .images import ImageInliner, InlineResult, image_source
from .markdown import (
    HtmlToMarkdown,
    SimpleMarkdownConverter,
    build_document,
    prepare_fragment,
    render_table,
    select_converter,
)
from .protocols import MarkdownConverter

__all__ = [
    # Protocols
    "MarkdownConverter",
    # Implementations
    "HtmlToMarkdown",
    "ImageInliner",
    "InlineResult",
    "SimpleMarkdownConverter",
    # Helpers
    "build_document",
    "image_source",
    "prepare_fragment",
    "render_table",
    "select_converter",
]
