"""
SQL storage for users, feeds, follows and posts.

SQLite is the default backend; PostgreSQL works as well. Both dialects support
``INSERT ... ON CONFLICT DO NOTHING``, which is how duplicate links are detected:
a conflicting insert affects zero rows instead of raising a driver-specific error.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    create_engine,
    delete,
    event,
    or_,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from gator.errors import AlreadyExistsError, DuplicatePostError, FeedNotFoundError, StorageError, UserNotFoundError
from gator.models import Feed, FeedFollow, FeedListing, Post, User
from gator.utils.security import redact_secrets

logger = logging.getLogger(__name__)

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("name", String, nullable=False, unique=True),
)

feeds_table = Table(
    "feeds",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("name", String, nullable=False),
    Column("url", String, nullable=False, unique=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("last_fetched_at", DateTime(timezone=True), nullable=True, index=True),
)

feed_follows_table = Table(
    "feed_follows",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("feed_id", Uuid, ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("user_id", "feed_id", name="uq_feed_follows_user_feed"),
)

posts_table = Table(
    "posts",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("title", Text, nullable=False),
    Column("url", String, nullable=False, unique=True),
    Column("description", Text, nullable=True),
    Column("published_at", DateTime(timezone=True), nullable=True),
    Column("feed_id", Uuid, ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True),
)

_DIALECT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is written in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _row_to_user(row) -> User:
    return User(id=row.id, name=row.name, created_at=_utc(row.created_at), updated_at=_utc(row.updated_at))


def _row_to_feed(row) -> Feed:
    return Feed(
        id=row.id,
        name=row.name,
        url=row.url,
        user_id=row.user_id,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
        last_fetched_at=_utc(row.last_fetched_at),
    )


class Store:
    def __init__(self, db_url: str = "sqlite:///gator.db", engine: Optional[Engine] = None) -> None:
        if engine is None:
            try:
                url = make_url(db_url)
                if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
                    Path(url.database).parent.mkdir(parents=True, exist_ok=True)
                engine = create_engine(url, future=True)
            except (SQLAlchemyError, ImportError) as exc:
                raise StorageError(f"cannot open database {redact_secrets(db_url)}: {exc}") from exc
        if engine.dialect.name not in _DIALECT_INSERTS:
            raise StorageError(f"unsupported database backend: {engine.dialect.name}")

        self.engine = engine
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._insert = _DIALECT_INSERTS[self.engine.dialect.name]
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"cannot initialise database {redact_secrets(db_url)}: {exc}") from exc

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise StorageError(redact_secrets(str(exc))) from exc

    def _insert_unless_conflict(self, conn: Connection, table: Table, values: dict, conflict_on: Sequence[str]) -> bool:
        stmt = self._insert(table).values(**values).on_conflict_do_nothing(index_elements=list(conflict_on))
        return conn.execute(stmt).rowcount == 1

    def close(self) -> None:
        self.engine.dispose()

    # -- users -----------------------------------------------------------------

    def create_user(self, name: str, now: Optional[datetime] = None) -> User:
        now = _utc(now) or utcnow()
        user = User(id=uuid4(), name=name, created_at=now, updated_at=now)
        with self._begin() as conn:
            created = self._insert_unless_conflict(
                conn,
                users_table,
                {"id": user.id, "name": name, "created_at": now, "updated_at": now},
                ["name"],
            )
        if not created:
            raise AlreadyExistsError(f"user {name} already exists")
        return user

    def get_user(self, name: str) -> User:
        with self._begin() as conn:
            row = conn.execute(select(users_table).where(users_table.c.name == name)).first()
        if row is None:
            raise UserNotFoundError(name)
        return _row_to_user(row)

    def list_users(self) -> List[User]:
        with self._begin() as conn:
            rows = conn.execute(select(users_table).order_by(users_table.c.name)).all()
        return [_row_to_user(row) for row in rows]

    def delete_all_users(self) -> int:
        with self._begin() as conn:
            return conn.execute(delete(users_table)).rowcount

    # -- feeds -----------------------------------------------------------------

    def create_feed(self, name: str, url: str, user_id: UUID, now: Optional[datetime] = None) -> Feed:
        now = _utc(now) or utcnow()
        feed = Feed(id=uuid4(), name=name, url=url, user_id=user_id, created_at=now, updated_at=now)
        with self._begin() as conn:
            created = self._insert_unless_conflict(
                conn,
                feeds_table,
                {
                    "id": feed.id,
                    "name": name,
                    "url": url,
                    "user_id": user_id,
                    "created_at": now,
                    "updated_at": now,
                },
                ["url"],
            )
        if not created:
            raise AlreadyExistsError(f"feed {url} already exists")
        return feed

    def get_feed_by_url(self, url: str) -> Feed:
        with self._begin() as conn:
            row = conn.execute(select(feeds_table).where(feeds_table.c.url == url)).first()
        if row is None:
            raise FeedNotFoundError(url)
        return _row_to_feed(row)

    def list_feeds(self) -> List[FeedListing]:
        stmt = (
            select(feeds_table.c.name, feeds_table.c.url, users_table.c.name.label("user_name"))
            .join(users_table, users_table.c.id == feeds_table.c.user_id)
            .order_by(feeds_table.c.created_at)
        )
        with self._begin() as conn:
            rows = conn.execute(stmt).all()
        return [FeedListing(name=row.name, url=row.url, user_name=row.user_name) for row in rows]

    def select_least_recently_fetched_feed(self) -> Optional[Feed]:
        """Return the feed that waited longest; never-fetched feeds come first."""
        with self._begin() as conn:
            return self._select_least_recent(conn)

    def stamp_feed_fetched(self, feed_id: UUID, instant: datetime) -> None:
        """
        Record that ``feed_id`` was claimed at ``instant``.

        The stamp never moves backwards: an ``instant`` older than the stored value
        leaves the row untouched.
        """
        with self._begin() as conn:
            self._stamp(conn, feed_id, _utc(instant))

    def claim_next_feed(self, now: Optional[datetime] = None) -> Optional[Feed]:
        """Select and stamp the least recently fetched feed in a single transaction."""
        now = _utc(now) or utcnow()
        with self._begin() as conn:
            feed = self._select_least_recent(conn)
            if feed is None:
                return None
            self._stamp(conn, feed.id, now)
        feed.last_fetched_at = now
        feed.updated_at = now
        return feed

    def _select_least_recent(self, conn: Connection) -> Optional[Feed]:
        stmt = (
            select(feeds_table)
            .order_by(
                feeds_table.c.last_fetched_at.asc().nulls_first(),
                feeds_table.c.created_at.asc(),
                feeds_table.c.id.asc(),
            )
            .limit(1)
        )
        row = conn.execute(stmt).first()
        return _row_to_feed(row) if row is not None else None

    def _stamp(self, conn: Connection, feed_id: UUID, instant: datetime) -> None:
        stmt = (
            update(feeds_table)
            .where(feeds_table.c.id == feed_id)
            .where(or_(feeds_table.c.last_fetched_at.is_(None), feeds_table.c.last_fetched_at <= instant))
            .values(last_fetched_at=instant, updated_at=instant)
        )
        if conn.execute(stmt).rowcount:
            return
        exists = conn.execute(select(feeds_table.c.id).where(feeds_table.c.id == feed_id)).first()
        if exists is None:
            raise StorageError(f"cannot stamp unknown feed {feed_id}")
        logger.debug("Feed %s already stamped after %s; keeping newer stamp", feed_id, instant.isoformat())

    # -- follows ---------------------------------------------------------------

    def create_feed_follow(self, user_id: UUID, feed_id: UUID, now: Optional[datetime] = None) -> FeedFollow:
        now = _utc(now) or utcnow()
        follow_id = uuid4()
        with self._begin() as conn:
            created = self._insert_unless_conflict(
                conn,
                feed_follows_table,
                {"id": follow_id, "user_id": user_id, "feed_id": feed_id, "created_at": now, "updated_at": now},
                ["user_id", "feed_id"],
            )
            if not created:
                raise AlreadyExistsError("already following this feed")
            names = conn.execute(
                select(users_table.c.name.label("user_name"), feeds_table.c.name.label("feed_name"))
                .select_from(users_table)
                .join(feeds_table, feeds_table.c.id == feed_id)
                .where(users_table.c.id == user_id)
            ).one()
        return FeedFollow(
            id=follow_id,
            user_id=user_id,
            feed_id=feed_id,
            user_name=names.user_name,
            feed_name=names.feed_name,
            created_at=now,
            updated_at=now,
        )

    def list_follows_for_user(self, user_id: UUID) -> List[FeedFollow]:
        stmt = (
            select(
                feed_follows_table,
                users_table.c.name.label("user_name"),
                feeds_table.c.name.label("feed_name"),
            )
            .join(users_table, users_table.c.id == feed_follows_table.c.user_id)
            .join(feeds_table, feeds_table.c.id == feed_follows_table.c.feed_id)
            .where(feed_follows_table.c.user_id == user_id)
            .order_by(feed_follows_table.c.created_at)
        )
        with self._begin() as conn:
            rows = conn.execute(stmt).all()
        return [
            FeedFollow(
                id=row.id,
                user_id=row.user_id,
                feed_id=row.feed_id,
                user_name=row.user_name,
                feed_name=row.feed_name,
                created_at=_utc(row.created_at),
                updated_at=_utc(row.updated_at),
            )
            for row in rows
        ]

    def delete_feed_follow(self, user_id: UUID, feed_url: str) -> bool:
        feed_ids = select(feeds_table.c.id).where(feeds_table.c.url == feed_url)
        stmt = delete(feed_follows_table).where(
            feed_follows_table.c.user_id == user_id,
            feed_follows_table.c.feed_id.in_(feed_ids),
        )
        with self._begin() as conn:
            return conn.execute(stmt).rowcount > 0

    # -- posts -----------------------------------------------------------------

    def insert_post(
        self,
        post_id: UUID,
        created_at: datetime,
        title: str,
        url: str,
        description: Optional[str],
        published_at: Optional[datetime],
        feed_id: UUID,
    ) -> Post:
        """
        Append a post.

        Raises:
            DuplicatePostError: a post with the same url is already stored.
            StorageError: any other database failure (unknown feed, lost connection, ...).
        """
        created_at = _utc(created_at)
        published_at = _utc(published_at)
        values = {
            "id": post_id,
            "created_at": created_at,
            "updated_at": created_at,
            "title": title,
            "url": url,
            "description": description,
            "published_at": published_at,
            "feed_id": feed_id,
        }
        with self._begin() as conn:
            created = self._insert_unless_conflict(conn, posts_table, values, ["url"])
        if not created:
            raise DuplicatePostError(url)
        return Post(
            id=post_id,
            title=title,
            url=url,
            feed_id=feed_id,
            created_at=created_at,
            updated_at=created_at,
            description=description,
            published_at=published_at,
        )

    def posts_for_user(self, user_id: UUID, limit: int) -> List[Post]:
        stmt = (
            select(posts_table, feeds_table.c.name.label("feed_name"))
            .join(feeds_table, feeds_table.c.id == posts_table.c.feed_id)
            .join(feed_follows_table, feed_follows_table.c.feed_id == feeds_table.c.id)
            .where(feed_follows_table.c.user_id == user_id)
            .order_by(posts_table.c.published_at.desc().nulls_last(), posts_table.c.created_at.desc())
            .limit(limit)
        )
        with self._begin() as conn:
            rows = conn.execute(stmt).all()
        return [
            Post(
                id=row.id,
                title=row.title,
                url=row.url,
                feed_id=row.feed_id,
                created_at=_utc(row.created_at),
                updated_at=_utc(row.updated_at),
                description=row.description,
                published_at=_utc(row.published_at),
                feed_name=row.feed_name,
            )
            for row in rows
        ]
