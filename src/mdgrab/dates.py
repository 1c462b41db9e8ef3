"""Date normalization to ISO ``YYYY-MM-DD``."""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Union

logger = logging.getLogger(__name__)

# Timestamps below this are seconds, at or above are milliseconds. Seconds are read
# correctly up to year 5138 and milliseconds from 1973-03-03 on.
MILLISECONDS_THRESHOLD = 1e11

_DATE_PATTERN = re.compile(r"(\d{4}-\d{2}-\d{2})")

DateInput = Union[str, int, float, None]


def _from_timestamp(value: float) -> str:
    if value < MILLISECONDS_THRESHOLD:
        value *= 1000
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date().isoformat()
    except (OverflowError, OSError, ValueError):
        return ""


def _from_iso(text: str) -> str:
    candidate = text.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return ""
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def parse_date(value: DateInput) -> str:
    """
    Normalize a heterogeneous date value to ``YYYY-MM-DD``.

    Accepts ISO strings, unix seconds, unix milliseconds (as numbers or
    digit strings) and free text containing a ``YYYY-MM-DD`` pattern.
    Aware datetimes are converted to UTC before the date is taken.

    Args:
        value: The raw date value

    Returns:
        ISO date string, or an empty string if nothing could be parsed
    """
    if value is None or value == "" or isinstance(value, bool):
        return ""

    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return _from_timestamp(float(stripped))

        iso = _from_iso(stripped)
        if iso:
            return iso

        match = _DATE_PATTERN.search(stripped)
        return match.group(1) if match else ""

    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return ""
        return _from_timestamp(float(value))

    logger.debug(f"Unsupported date value type: {type(value).__name__}")
    return ""


def first_date(*values: DateInput) -> str:
    """Return the parsed date of the first truthy value (later values are not consulted)."""
    for value in values:
        if value:
            return parse_date(value)
    return ""
