"""Content extraction: DOM rules, embedded state, content API and block pages."""

from .api import ApiFallbackClient
from .blockpage import detect_block_page
from .dom import DomExtractor, select_date, select_value
from .embedded import extract_from_initial_data, find_entity_with_content, fragment_from_html

__all__ = [
    "ApiFallbackClient",
    "DomExtractor",
    "detect_block_page",
    "extract_from_initial_data",
    "find_entity_with_content",
    "fragment_from_html",
    "select_date",
    "select_value",
]
