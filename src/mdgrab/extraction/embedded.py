"""Content recovery from the JSON application state embedded in a page."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from bs4 import BeautifulSoup, Tag

from ..dates import first_date
from ..models.platforms import ZHIHU, PlatformProfile
from ..models.records import ContentRecord
from ..urls import normalize_url
from .dom import element_text

logger = logging.getLogger(__name__)

DATE_KEYS = ("updated", "updatedTime", "publish_time", "publishTime", "created", "createdTime")


def fragment_from_html(html: Any) -> Optional[Tag]:
    """Parse an HTML string into a fresh ``<div>`` fragment; None for non-strings."""
    if not isinstance(html, str) or not html:
        return None
    soup = BeautifulSoup(f"<div>{html}</div>", "html.parser")
    return soup.div.extract() if soup.div else None


def _has_content(item: Any) -> bool:
    return isinstance(item, dict) and isinstance(item.get("content"), str) and bool(item["content"].strip())


def find_entity_with_content(
    entities: Any,
    preferred: list[str],
) -> Optional[tuple[str, dict]]:
    """
    Find the first entity carrying non-empty ``content``.

    Preferred buckets are searched first, in order, then the remaining
    buckets in their stored order.

    Returns:
        (bucket name, entity) or None
    """
    if not isinstance(entities, dict):
        return None

    remaining = [key for key in entities if key not in preferred]
    for key in [*preferred, *remaining]:
        bucket = entities.get(key)
        if not isinstance(bucket, dict):
            continue
        for entity in bucket.values():
            if _has_content(entity):
                return key, entity
    return None


def _nested(mapping: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(mapping, dict):
            return None
        mapping = mapping.get(key)
    return mapping


def extract_from_initial_data(
    document: BeautifulSoup,
    fallback_url: str,
    profile: PlatformProfile = ZHIHU,
) -> Optional[ContentRecord]:
    """
    Build a ContentRecord from the page's embedded initial state.

    Args:
        document: Fetched or rendered document
        fallback_url: URL used when the entity carries none
        profile: Platform profile naming the state script and buckets

    Returns:
        Record with ``source="embedded"``, or None if the state is missing,
        unparsable or holds no entity with content. Never raises.
    """
    if document is None or not profile.embedded_state_selector:
        return None

    script = document.select_one(profile.embedded_state_selector)
    if script is None:
        return None
    text = element_text(script).strip()
    if not text:
        return None

    try:
        parsed = json.loads(text)
    except ValueError as e:
        logger.warning(f"Failed to parse embedded state for {fallback_url}: {e}")
        return None

    if not isinstance(parsed, dict):
        return None
    state = parsed.get("initialState") or parsed.get("data") or parsed
    if not isinstance(state, dict):
        return None

    found = find_entity_with_content(state.get("entities"), profile.embedded_buckets)
    if found is None:
        logger.debug(f"No entity with content in embedded state for {fallback_url}")
        return None

    bucket, entity = found
    content = fragment_from_html(entity["content"])
    if content is None:
        return None

    title = entity.get("title") or _nested(entity, "question", "title") or state.get("title") or ""
    author = (
        _nested(entity, "author", "name")
        or _nested(entity, "author", "urlToken")
        or _nested(entity, "user", "name")
        or ""
    )
    date = first_date(*(entity.get(key) for key in DATE_KEYS))

    url = normalize_url(entity.get("url") or fallback_url)
    template = profile.entity_url_templates.get(bucket)
    if not entity.get("url") and entity.get("id") and template:
        question_id = _nested(entity, "question", "id")
        if "{question_id}" not in template or question_id:
            url = normalize_url(template.format(id=entity["id"], question_id=question_id))

    return ContentRecord(
        title=str(title),
        author=str(author),
        date=date,
        url=url,
        content=content,
        source="embedded",
    )
