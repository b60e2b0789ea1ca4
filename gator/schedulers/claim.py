"""
Claim-before-fetch scheduling: one feed per cycle, least recently fetched first.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from gator.errors import FeedFetchError, NoFeedsError
from gator.infra.http import HttpFetcher
from gator.ingesters.rss import fetch_feed
from gator.models import CycleResult, CycleStatus, Feed
from gator.pipelines.ingest import ingest_document
from gator.pipelines.store import Store
from gator.utils.security import redact_secrets

logger = logging.getLogger(__name__)


class FetchScheduler:
    """
    Picks the feed that waited longest and stamps it *before* fetching.

    Stamping first means a slow or hanging fetch only delays that feed by one
    cycle; an overlapping tick can never pick the same feed again, because the
    stamp already moved it to the back of the queue.
    """

    def __init__(
        self,
        store: Store,
        fetcher: HttpFetcher,
        deadline: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.deadline = deadline
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def claim(self) -> Feed:
        """
        Select the least recently fetched feed and persist its new stamp.

        Raises:
            NoFeedsError: no feed is registered.
            StorageError: the stamp could not be written.
        """
        feed = self.store.select_least_recently_fetched_feed()
        if feed is None:
            raise NoFeedsError()
        now = self.clock()
        self.store.stamp_feed_fetched(feed.id, now)
        feed.last_fetched_at = now
        return feed

    def run_cycle(self) -> CycleResult:
        """Claim one feed, fetch it and ingest its items."""
        started_at = self.clock()
        try:
            feed = self.claim()
        except NoFeedsError as exc:
            logger.warning("Nothing to fetch: %s", exc)
            return CycleResult(status=CycleStatus.NO_FEEDS, started_at=started_at, error=str(exc))

        logger.info("Fetching feed: %s (%s)", feed.name, redact_secrets(feed.url))
        try:
            document = fetch_feed(self.fetcher, feed.url, deadline=self.deadline)
        except FeedFetchError as exc:
            logger.error("Error fetching RSS feed %s: %s", redact_secrets(feed.url), redact_secrets(exc.reason))
            return CycleResult(status=CycleStatus.FETCH_FAILED, started_at=started_at, feed=feed, error=str(exc))

        logger.info("Found %d posts from %s", len(document.items), document.channel.title or feed.name)
        report = ingest_document(self.store, feed, document, clock=self.clock)
        return CycleResult(status=CycleStatus.OK, started_at=started_at, feed=feed, report=report)
