"""Date normalization for feed items.

Feeds in the wild publish dates in many shapes. The candidate fields are
checked in order and the first non-empty one is parsed against a fixed list
of layouts; a later candidate is never consulted once a non-empty one is found.
"""

import re
from collections.abc import Callable
from datetime import UTC, datetime

from dateutil import tz

from .fields import DATE_FIELDS, first_non_empty
from .logging_config import ExecutionLogger, create_execution_logger
from .models import Diagnostic, RawItem

# Order matters: the first layout that parses wins.
DATE_LAYOUTS = (
    "%a, %d %b %Y %H:%M:%S %z",  # RFC 1123, numeric zone
    "%a, %d %b %Y %H:%M:%S %Z",  # RFC 1123, zone abbreviation
    "%Y-%m-%dT%H:%M:%S%z",  # RFC 3339
    "%Y-%m-%dT%H:%M:%S.%f%z",  # RFC 3339 with fractional seconds
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M:%S %z",
    "%d %b %Y %H:%M %z",
    "%a, %d %b %Y %H:%M:%S GMT",
    "%d %b %Y %H:%M +0000",
    "%Y-%m-%d",
    "%B %d, %Y",
)

_ZONE_NAME_RE = re.compile(r"^(?P<stamp>.+) (?P<zone>[A-Za-z]{1,5})$")
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")
_UTC_NAMES = frozenset({"UT", "UTC", "GMT", "Z"})

_default_logger = create_execution_logger("date_normalizer")


def _resolve_zone_name(name: str):
    if name.upper() in _UTC_NAMES:
        return UTC
    return tz.gettz(name) or UTC


def _parse_layout(value: str, layout: str) -> datetime | None:
    try:
        if layout.endswith(" %Z"):
            # strptime only understands UTC, GMT and the local zone names
            match = _ZONE_NAME_RE.match(value)
            if not match:
                return None
            parsed = datetime.strptime(match.group("stamp"), layout[:-3])
            return parsed.replace(tzinfo=_resolve_zone_name(match.group("zone")))
        parsed = datetime.strptime(value, layout)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_date_string(value: str) -> datetime | None:
    """Parse a date string against the known layouts.

    Args:
        value: Raw date text from a feed

    Returns:
        Timezone-aware datetime, or None if no layout matches
    """
    value = _FRACTION_RE.sub(r"\1", value.strip())
    if not value:
        return None

    for layout in DATE_LAYOUTS:
        parsed = _parse_layout(value, layout)
        if parsed is not None:
            return parsed
    return None


def resolve_date(
    item: RawItem,
    diagnostics: list[Diagnostic] | None = None,
    logger: ExecutionLogger | None = None,
    now: Callable[[], datetime] | None = None,
) -> datetime:
    """Resolve the publication date of an item, falling back to now.

    Args:
        item: Raw feed item
        diagnostics: Optional list that receives a Diagnostic on fallback
        logger: Logger for the fallback warning
        now: Clock used for the fallback value

    Returns:
        Timezone-aware datetime
    """
    candidate = first_non_empty(item, DATE_FIELDS)
    parsed = parse_date_string(candidate) if candidate else None
    if parsed is not None:
        return parsed

    if candidate:
        message = f"Could not parse date {candidate!r} for item {item.title}"
    else:
        message = f"No date found for item {item.title}"

    (logger or _default_logger).warning(
        message, item_title=item.title, raw_date=candidate
    )
    if diagnostics is not None:
        diagnostics.append(
            Diagnostic(
                component="date_normalizer",
                message=message,
                item_title=item.title,
                error=candidate,
            )
        )

    return now() if now else datetime.now(UTC)
