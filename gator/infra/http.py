"""
Single-shot HTTP fetching for feed documents, bounded by a wall-clock deadline.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

import requests

from gator.errors import FeedTransportError
from gator.utils.security import redact_secrets

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class HttpFetcher:
    """
    Thin wrapper over requests.Session that issues exactly one GET per call.

    requests only bounds individual socket operations, so the body is streamed and
    the overall deadline is checked between chunks. A server trickling bytes can
    therefore not hold the tick loop longer than ``timeout`` (plus one chunk).
    """

    def __init__(self, user_agent: str = "gator", timeout: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent,
                "Accept": "application/rss+xml, application/xml;q=0.9, text/xml;q=0.8, */*;q=0.5",
            }
        )
        self.timeout = timeout

    def get(self, url: str, deadline: Optional[float] = None) -> bytes:
        """
        Fetch ``url`` and return the raw body.

        Args:
            url: Feed URL.
            deadline: Seconds allowed for the whole request; defaults to ``self.timeout``.

        Raises:
            FeedTransportError: on connection failure, timeout, expired deadline or non-2xx status.
        """
        budget = self.timeout if deadline is None else deadline
        expires = time.monotonic() + budget
        try:
            with self.session.get(url, timeout=budget, stream=True) as response:
                if not 200 <= response.status_code < 300:
                    raise FeedTransportError(url, f"HTTP {response.status_code}", status_code=response.status_code)
                chunks = []
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if time.monotonic() > expires:
                        raise FeedTransportError(url, f"deadline of {budget:g}s exceeded")
                    chunks.append(chunk)
                return b"".join(chunks)
        except requests.RequestException as exc:
            logger.warning("GET %s failed: %s", redact_secrets(url), redact_secrets(str(exc)))
            raise FeedTransportError(url, str(exc)) from exc
