"""
Fetch one RSS feed and decode it into a RawFeedDocument.
"""
from __future__ import annotations

import logging
import xml.sax
from typing import Optional

import feedparser

from gator.errors import FeedParseError
from gator.infra.http import HttpFetcher
from gator.schemas.models import RawFeedDocument, RssChannel, RssItem

logger = logging.getLogger(__name__)


def parse_feed_document(content: bytes, url: str = "") -> RawFeedDocument:
    """
    Decode an RSS payload.

    feedparser recovers from most markup problems with its loose parser, but it
    records the strict parser's failure in ``bozo_exception``. A SAX error there
    means the document is not well-formed XML and is rejected.
    """
    feed = feedparser.parse(content)
    exc = feed.get("bozo_exception") if feed.get("bozo") else None
    if isinstance(exc, xml.sax.SAXException):
        raise FeedParseError(url, f"malformed XML: {exc}")
    if exc is not None:
        logger.debug("Tolerating feed quirk for %s: %s", url, exc)

    meta = feed.get("feed", {})
    items = [
        RssItem(
            title=entry.get("title"),
            link=entry.get("link"),
            description=entry.get("description"),
            pub_date=entry.get("published"),
        )
        for entry in feed.get("entries", [])
    ]
    channel = RssChannel(
        title=meta.get("title"),
        link=meta.get("link"),
        description=meta.get("description"),
        items=items,
    )
    return RawFeedDocument(channel=channel)


def fetch_feed(fetcher: HttpFetcher, url: str, deadline: Optional[float] = None) -> RawFeedDocument:
    """
    GET ``url`` and parse the body.

    Raises:
        FeedTransportError: the request failed or returned a non-2xx status.
        FeedParseError: the body is not well-formed XML.
    """
    content = fetcher.get(url, deadline=deadline)
    document = parse_feed_document(content, url)
    logger.debug("Parsed %d items from %s", len(document.items), url)
    return document
