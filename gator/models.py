"""
Core records shared by the store, the ingestion pipeline and the tick driver.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID


class CycleStatus(str, Enum):
    OK = "ok"
    NO_FEEDS = "no_feeds"
    FETCH_FAILED = "fetch_failed"
    ERROR = "error"


@dataclass
class User:
    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Feed:
    """
    A registered RSS source. ``last_fetched_at`` stays ``None`` until the feed is first claimed.
    """

    id: UUID
    name: str
    url: str
    user_id: UUID
    created_at: datetime
    updated_at: datetime
    last_fetched_at: Optional[datetime] = None


@dataclass
class FeedListing:
    name: str
    url: str
    user_name: str


@dataclass
class FeedFollow:
    id: UUID
    user_id: UUID
    feed_id: UUID
    user_name: str
    feed_name: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Post:
    id: UUID
    title: str
    url: str
    feed_id: UUID
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    published_at: Optional[datetime] = None
    feed_name: Optional[str] = None


@dataclass
class IngestReport:
    total: int = 0
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class CycleResult:
    status: CycleStatus
    started_at: datetime
    feed: Optional[Feed] = None
    report: Optional[IngestReport] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is CycleStatus.OK
