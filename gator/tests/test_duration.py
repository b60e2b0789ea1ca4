from datetime import timedelta

import pytest

from gator.errors import InvalidIntervalError
from gator.utils.duration import parse_duration


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("30s", timedelta(seconds=30)),
        ("1m", timedelta(minutes=1)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("500ms", timedelta(milliseconds=500)),
        ("1.5h", timedelta(minutes=90)),
        (" 2m ", timedelta(minutes=2)),
    ],
)
def test_parse_duration_accepts_go_style_strings(raw, expected):
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", ["", "soon", "10", "5x", "1m30", "-1m", "0s", "+", "99999999999999h"])
def test_parse_duration_rejects_malformed_or_non_positive(raw):
    with pytest.raises(InvalidIntervalError):
        parse_duration(raw)
