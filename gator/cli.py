"""
Command line front end: user/feed bookkeeping plus the ``agg`` ingestion loop.
"""
from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import click
from dotenv import load_dotenv

from gator.errors import GatorError, InvalidIntervalError
from gator.infra.http import HttpFetcher
from gator.models import CycleResult, CycleStatus, User
from gator.pipelines.store import Store
from gator.schedulers.aps import run_scheduler
from gator.schedulers.claim import FetchScheduler
from gator.settings import GatorSettings, load_settings
from gator.utils.duration import parse_duration
from gator.utils.security import redact_secrets

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    settings: GatorSettings
    user_name: Optional[str]
    _store: Optional[Store] = None

    @property
    def store(self) -> Store:
        if self._store is None:
            logger.debug("Opening database %s", redact_secrets(self.settings.db_url))
            self._store = Store(self.settings.db_url)
        return self._store

    def fetcher(self) -> HttpFetcher:
        return HttpFetcher(user_agent=self.settings.user_agent, timeout=self.settings.fetch_timeout)

    def current_user(self) -> User:
        if not self.user_name:
            raise click.ClickException("no current user; pass --user or set GATOR_USER")
        return self.store.get_user(self.user_name)


def reports_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GatorError as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


def _parse_interval(_ctx, _param, value: str) -> timedelta:
    try:
        return parse_duration(value)
    except InvalidIntervalError as exc:
        raise click.BadParameter(str(exc)) from exc


def _format_published(value: datetime) -> str:
    hour = value.hour % 12 or 12
    return f"{value:%B} {value.day}, {value.year} at {hour}:{value:%M %p}"


def _describe(result: CycleResult) -> str:
    if result.ok and result.report is not None:
        report = result.report
        return (
            f"Processed {report.total} posts from {result.feed.name}: "
            f"{report.inserted} new, {report.duplicates} already known, {report.failed} failed"
        )
    if result.status is CycleStatus.NO_FEEDS:
        return "No feeds registered"
    return f"Error scraping feeds: {result.error}"


@click.group()
@click.option("--user", "user_name", default=None, help="Act as this user (defaults to current_user_name / GATOR_USER).")
@click.pass_context
def cli(ctx: click.Context, user_name: Optional[str]):
    load_dotenv(os.getenv("GATOR_DOTENV", ".env"))
    try:
        settings = load_settings()
    except GatorError as exc:
        raise click.ClickException(str(exc)) from exc
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = AppState(settings=settings, user_name=user_name or settings.current_user_name)


@cli.command()
@click.argument("name")
@click.pass_obj
@reports_errors
def register(state: AppState, name: str):
    user = state.store.create_user(name)
    click.echo(f"User {user.name} created successfully!")
    click.echo(f"User data: ID={user.id}, Name={user.name}, CreatedAt={user.created_at.isoformat()}")


@cli.command()
@click.pass_obj
@reports_errors
def users(state: AppState):
    for user in state.store.list_users():
        if user.name == state.user_name:
            click.echo(f"* {user.name} (current)")
        else:
            click.echo(f"* {user.name}")


@cli.command()
@click.pass_obj
@reports_errors
def reset(state: AppState):
    removed = state.store.delete_all_users()
    logger.info("Removed %d users", removed)
    click.echo("Database reset successfully")


@cli.command()
@click.argument("name")
@click.argument("url")
@click.pass_obj
@reports_errors
def addfeed(state: AppState, name: str, url: str):
    user = state.current_user()
    feed = state.store.create_feed(name, url, user.id)
    state.store.create_feed_follow(user.id, feed.id)
    click.echo("Feed added successfully!")
    click.echo(
        f"Feed data: ID={feed.id}, Name={feed.name}, URL={feed.url}, "
        f"UserID={user.id}, CreatedAt={feed.created_at.isoformat()}"
    )


@cli.command()
@click.pass_obj
@reports_errors
def feeds(state: AppState):
    click.echo("Feeds:")
    for feed in state.store.list_feeds():
        click.echo(f"  Name: {feed.name}")
        click.echo(f"  URL: {feed.url}")
        click.echo(f"  Created by: {feed.user_name}\n")


@cli.command()
@click.argument("url")
@click.pass_obj
@reports_errors
def follow(state: AppState, url: str):
    user = state.current_user()
    feed = state.store.get_feed_by_url(url)
    created = state.store.create_feed_follow(user.id, feed.id)
    click.echo(f"User {created.user_name} is now following feed {created.feed_name}")


@cli.command()
@click.pass_obj
@reports_errors
def following(state: AppState):
    user = state.current_user()
    click.echo("Following feeds:")
    for entry in state.store.list_follows_for_user(user.id):
        click.echo(f"* {entry.feed_name}")


@cli.command()
@click.argument("url")
@click.pass_obj
@reports_errors
def unfollow(state: AppState, url: str):
    user = state.current_user()
    feed = state.store.get_feed_by_url(url)
    if not state.store.delete_feed_follow(user.id, url):
        raise click.ClickException(f"{user.name} is not following {feed.name}")
    click.echo(f"User {user.name} has unfollowed feed {feed.name}")


@cli.command()
@click.argument("limit", type=click.IntRange(min=1), default=2)
@click.pass_obj
@reports_errors
def browse(state: AppState, limit: int):
    user = state.current_user()
    posts = state.store.posts_for_user(user.id, limit)
    if not posts:
        click.echo("No posts found from your followed feeds")
        return
    click.echo(f"Recent posts from your followed feeds (showing {len(posts)}):\n")
    for post in posts:
        click.echo(f"Title: {post.title}")
        click.echo(f"Feed: {post.feed_name}")
        if post.description:
            click.echo(f"Description: {post.description}")
        click.echo(f"URL: {post.url}")
        if post.published_at:
            click.echo(f"Published: {_format_published(post.published_at)}")
        click.echo("=====================================")


@cli.command()
@click.pass_obj
@reports_errors
def scrape(state: AppState):
    """Run a single claim/fetch/ingest cycle."""
    result = FetchScheduler(state.store, state.fetcher(), deadline=state.settings.fetch_timeout).run_cycle()
    click.echo(_describe(result))
    if result.status in (CycleStatus.FETCH_FAILED, CycleStatus.ERROR):
        raise click.exceptions.Exit(1)


@cli.command()
@click.argument("interval", callback=_parse_interval)
@click.pass_obj
@reports_errors
def agg(state: AppState, interval: timedelta):
    """Fetch one feed immediately, then one more every INTERVAL (e.g. 30s, 1m, 1h30m)."""
    click.echo(f"Collecting feeds every {interval}")
    run_scheduler(state.store, state.fetcher(), interval, deadline=state.settings.fetch_timeout)


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
