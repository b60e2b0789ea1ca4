"""
Persist the items of a fetched document as posts.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import uuid4

from gator.errors import DuplicatePostError, StorageError
from gator.models import Feed, IngestReport
from gator.pipelines.store import Store
from gator.schemas.models import RawFeedDocument
from gator.timeparse import parse_published

logger = logging.getLogger(__name__)


def ingest_document(
    store: Store,
    feed: Feed,
    document: RawFeedDocument,
    clock: Optional[Callable[[], datetime]] = None,
) -> IngestReport:
    """
    Insert every item of ``document`` as a post of ``feed``.

    Links already stored are counted as duplicates and skipped. Any other storage
    failure is logged for that item only; the remaining items are still processed.
    """
    clock = clock or (lambda: datetime.now(timezone.utc))
    report = IngestReport(total=len(document.items))

    for item in document.items:
        if not item.link:
            report.failed += 1
            report.errors.append(f"item {item.title!r} has no link")
            logger.warning("Skipping item without link in %s: %r", feed.name, item.title)
            continue
        try:
            store.insert_post(
                post_id=uuid4(),
                created_at=clock(),
                title=item.title,
                url=item.link,
                description=item.description or None,
                published_at=parse_published(item.pub_date),
                feed_id=feed.id,
            )
        except DuplicatePostError:
            report.duplicates += 1
            continue
        except StorageError as exc:
            report.failed += 1
            report.errors.append(f"{item.link}: {exc}")
            logger.error("Error saving post %r from %s: %s", item.title, feed.name, exc)
            continue
        report.inserted += 1

    logger.info(
        "Processed %d posts from %s (%d new, %d already known, %d failed)",
        report.total,
        feed.name,
        report.inserted,
        report.duplicates,
        report.failed,
    )
    return report
