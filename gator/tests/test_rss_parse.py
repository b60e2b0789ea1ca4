from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from gator.errors import FeedParseError, FeedTransportError
from gator.infra.http import HttpFetcher
from gator.ingesters import rss
from gator.ingesters.rss import fetch_feed, parse_feed_document

SAMPLE_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Boot.dev Blog</title>
    <link>https://blog.boot.dev/</link>
    <description>Recent content on Boot.dev Blog</description>
    <item>
      <title>The Zen of Proverbs</title>
      <link>https://blog.boot.dev/zen</link>
      <pubDate>Mon, 25 Nov 2024 12:00:00 GMT</pubDate>
      <description>Twenty short sayings.</description>
    </item>
    <item>
      <title>  Untimed &amp; undescribed  </title>
      <link>https://blog.boot.dev/untimed</link>
    </item>
  </channel>
</rss>
"""


def test_parse_feed_document_reads_channel_and_items():
    document = parse_feed_document(SAMPLE_FEED, "https://blog.boot.dev/index.xml")

    assert document.channel.title == "Boot.dev Blog"
    assert document.channel.link == "https://blog.boot.dev/"
    assert document.channel.description == "Recent content on Boot.dev Blog"
    assert [item.link for item in document.items] == [
        "https://blog.boot.dev/zen",
        "https://blog.boot.dev/untimed",
    ]
    first, second = document.items
    assert first.title == "The Zen of Proverbs"
    assert first.description == "Twenty short sayings."
    assert first.pub_date == "Mon, 25 Nov 2024 12:00:00 GMT"
    assert second.title == "Untimed & undescribed"
    assert second.description == ""
    assert second.pub_date == ""


def test_malformed_xml_raises_parse_error():
    with pytest.raises(FeedParseError):
        parse_feed_document(b"<rss><channel><title>Broken</title><item></channel>", "https://example.com/bad")


def test_fetch_feed_passes_deadline_to_fetcher():
    fetcher = MagicMock(spec=HttpFetcher)
    fetcher.get.return_value = SAMPLE_FEED

    document = fetch_feed(fetcher, "https://blog.boot.dev/index.xml", deadline=3)

    fetcher.get.assert_called_once_with("https://blog.boot.dev/index.xml", deadline=3)
    assert len(document.items) == 2


def _fetcher_with_response(status_code=200, chunks=(SAMPLE_FEED,)):
    session = MagicMock()
    response = MagicMock()
    response.status_code = status_code
    response.iter_content.return_value = list(chunks)
    session.get.return_value.__enter__.return_value = response
    return HttpFetcher(user_agent="gator-test", timeout=5, session=session), session


def test_http_fetcher_returns_body_and_sets_user_agent():
    fetcher, session = _fetcher_with_response(chunks=(b"<rss>", b"</rss>"))

    assert fetcher.get("https://example.com/feed") == b"<rss></rss>"
    session.headers.update.assert_called_once()
    assert session.headers.update.call_args[0][0]["User-Agent"] == "gator-test"
    _, kwargs = session.get.call_args
    assert kwargs["timeout"] == 5
    assert kwargs["stream"] is True


def test_http_fetcher_rejects_non_2xx_status():
    fetcher, _ = _fetcher_with_response(status_code=500)

    with pytest.raises(FeedTransportError) as info:
        fetcher.get("https://example.com/feed")
    assert info.value.status_code == 500


def test_http_fetcher_wraps_request_exceptions():
    fetcher, session = _fetcher_with_response()
    session.get.side_effect = requests.ConnectTimeout("timed out")

    with pytest.raises(FeedTransportError) as info:
        fetcher.get("https://example.com/feed?token=abc")
    assert "timed out" in info.value.reason


def test_http_fetcher_enforces_overall_deadline(monkeypatch):
    ticks = iter([0.0, 1.0, 9.0])
    monkeypatch.setattr("gator.infra.http.time", SimpleNamespace(monotonic=lambda: next(ticks)))
    fetcher, _ = _fetcher_with_response(chunks=(b"<rss>", b"</rss>"))

    with pytest.raises(FeedTransportError) as info:
        fetcher.get("https://example.com/slow", deadline=2)
    assert "deadline" in info.value.reason


def test_fetch_feed_parse_failure_after_successful_transport(monkeypatch):
    fetcher, _ = _fetcher_with_response(chunks=(b"<html><body>oops",))
    broken = {"bozo": 1, "bozo_exception": rss.xml.sax.SAXException("bad")}
    monkeypatch.setattr(rss.feedparser, "parse", lambda _content: broken)

    with pytest.raises(FeedParseError):
        fetch_feed(fetcher, "https://example.com/html")
