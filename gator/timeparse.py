"""
Tolerant parsing of RSS ``pubDate`` values.

Feeds in the wild disagree on timestamp formats, so a fixed list of layouts is
tried in order and the first one that matches wins. Everything is normalized
to an aware UTC datetime.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from gator.errors import TimeParseError

logger = logging.getLogger(__name__)

# Offsets (hours) for the zone names defined by RFC 822.
RFC822_ZONES = {
    "UT": 0,
    "UTC": 0,
    "GMT": 0,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
}


_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


@dataclass(frozen=True)
class Layout:
    name: str
    formats: Tuple[str, ...]
    # Layout ends in a zone abbreviation (``GMT``, ``PST``) that strptime can't resolve itself.
    named_zone: bool = False
    # strptime's %f stops at microseconds; longer fractions are cut to six digits.
    trim_fraction: bool = False


LAYOUTS: Tuple[Layout, ...] = (
    Layout("RFC1123Z", ("%a, %d %b %Y %H:%M:%S %z",)),
    Layout("RFC1123", ("%a, %d %b %Y %H:%M:%S",), named_zone=True),
    Layout("RFC822Z", ("%d %b %y %H:%M %z",)),
    Layout("RFC822", ("%d %b %y %H:%M",), named_zone=True),
    Layout("ISO8601", ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f%z"), trim_fraction=True),
    Layout("DateTime", ("%Y-%m-%d %H:%M:%S",)),
)


def _zone_offset(abbreviation: str) -> Optional[timezone]:
    if abbreviation not in RFC822_ZONES and not (
        3 <= len(abbreviation) <= 5 and abbreviation.isalpha() and abbreviation.isupper()
    ):
        return None
    hours = RFC822_ZONES.get(abbreviation, 0)
    return timezone(timedelta(hours=hours))


def _try_layout(layout: Layout, value: str) -> Optional[datetime]:
    text = value
    zone: Optional[timezone] = None
    if layout.named_zone:
        parts = value.rsplit(None, 1)
        if len(parts) != 2:
            return None
        text, abbreviation = parts
        zone = _zone_offset(abbreviation)
        if zone is None:
            return None
    if layout.trim_fraction:
        text = _LONG_FRACTION.sub(r"\1", text)

    for fmt in layout.formats:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if zone is not None:
            parsed = parsed.replace(tzinfo=zone)
        elif parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


def parse_rss_time(value: str) -> datetime:
    """
    Parse a feed timestamp using the first matching layout in ``LAYOUTS``.

    Args:
        value: Raw timestamp string, e.g. ``"Mon, 02 Jan 2006 15:04:05 -0700"``.

    Returns:
        Timezone-aware UTC datetime.

    Raises:
        TimeParseError: if no layout matches.
    """
    text = (value or "").strip()
    if text:
        for layout in LAYOUTS:
            parsed = _try_layout(layout, text)
            if parsed is not None:
                return parsed
    raise TimeParseError(value)


def parse_published(value: Optional[str]) -> Optional[datetime]:
    """Like :func:`parse_rss_time` but returns ``None`` for missing or unparseable input."""
    if not value:
        return None
    try:
        return parse_rss_time(value)
    except TimeParseError as exc:
        logger.debug("Ignoring publish date: %s", exc)
        return None
