"""
Parse interval strings such as ``30s``, ``1m`` or ``1h30m``.
"""
from __future__ import annotations

import re
from datetime import timedelta

from gator.errors import InvalidIntervalError

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# Longest units first so that "ms" is not read as "m" followed by garbage.
_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|h|m|s)")


def parse_duration(raw: str) -> timedelta:
    """
    Parse a sequence of decimal numbers with unit suffixes into a positive timedelta.

    Raises:
        InvalidIntervalError: the string is malformed or not strictly positive.
    """
    text = (raw or "").strip()
    if not text:
        raise InvalidIntervalError(f"invalid duration {raw!r}")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _COMPONENT.match(text, pos)
        if match is None:
            raise InvalidIntervalError(f"invalid duration {raw!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos == 0:
        raise InvalidIntervalError(f"invalid duration {raw!r}")

    seconds = sign * total
    if seconds <= 0:
        raise InvalidIntervalError(f"duration must be positive, got {raw!r}")
    try:
        return timedelta(seconds=seconds)
    except OverflowError as exc:
        raise InvalidIntervalError(f"invalid duration {raw!r}: overflow") from exc
