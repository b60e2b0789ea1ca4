"""
Exception hierarchy shared by the fetcher, store, pipeline and CLI.
"""
from __future__ import annotations


class GatorError(Exception):
    """Base class for every error raised by gator."""


class InvalidIntervalError(GatorError, ValueError):
    pass


class TimeParseError(GatorError, ValueError):
    def __init__(self, raw: str) -> None:
        super().__init__(f"unable to parse time: {raw!r}")
        self.raw = raw


class NoFeedsError(GatorError):
    def __init__(self) -> None:
        super().__init__("no feeds registered")


class FeedFetchError(GatorError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class FeedTransportError(FeedFetchError):
    """Network failure, timeout, expired deadline or non-2xx status."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(url, reason)
        self.status_code = status_code


class FeedParseError(FeedFetchError):
    """The response body is not a well-formed RSS document."""


class StorageError(GatorError):
    pass


class DuplicatePostError(StorageError):
    def __init__(self, url: str) -> None:
        super().__init__(f"post already stored: {url}")
        self.url = url


class AlreadyExistsError(StorageError):
    pass


class UserNotFoundError(GatorError):
    def __init__(self, name: str) -> None:
        super().__init__(f"user {name} doesn't exist")
        self.name = name


class FeedNotFoundError(GatorError):
    def __init__(self, url: str) -> None:
        super().__init__(f"feed not found: {url}")
        self.url = url


class ConfigError(GatorError):
    pass
