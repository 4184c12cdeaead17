"""Fetching and parsing RSS / Atom feeds."""

from __future__ import annotations

import io
import logging
from typing import Any

import feedparser
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from feedkeeper.config import Feed
from feedkeeper.models import FeedChannel, FeedItem

logger = logging.getLogger(__name__)

__all__ = [
    "FeedError",
    "FeedFetchError",
    "FeedParseError",
    "build_session",
    "fetch_channel",
    "fetch_configured_feed",
    "parse_channel",
]

DEFAULT_FEED_TIMEOUT = 30.0
HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/129.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "application/rss+xml,application/atom+xml,application/xml;q=0.9,"
        "text/xml;q=0.9,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}


class FeedError(RuntimeError):
    """Base class for feed transport failures."""


class FeedFetchError(FeedError):
    """The feed could not be downloaded."""


class FeedParseError(FeedError):
    """The downloaded document is not an RSS or Atom feed."""


def build_session() -> requests.Session:
    """Return a session that retries idempotent feed requests on transient errors."""

    retry = Retry(
        total=3,
        connect=3,
        read=3,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods={"GET"},
    )
    session = requests.Session()
    session.headers.update(HEADERS)
    session.mount("https://", HTTPAdapter(max_retries=retry))
    session.mount("http://", HTTPAdapter(max_retries=retry))
    return session


_session: requests.Session | None = None


def _default_session() -> requests.Session:
    global _session
    if _session is None:
        _session = build_session()
    return _session


def _clean(value: Any) -> str | None:
    if not value:
        return None
    text = str(value).strip()
    return text or None


def _entry_content(entry: Any) -> str | None:
    for content in entry.get("content") or []:
        value = _clean(content.get("value"))
        if value:
            return value
    return None


def _to_item(entry: Any) -> FeedItem:
    return FeedItem(
        title=_clean(entry.get("title")),
        link=_clean(entry.get("link")),
        pub_date=_clean(entry.get("published") or entry.get("updated")),
        content=_entry_content(entry),
        summary=_clean(entry.get("summary")),
    )


def parse_channel(document: str | bytes) -> FeedChannel:
    """Parse an RSS or Atom document into a :class:`FeedChannel`.

    Item bodies come back as HTML with scripts and event handlers removed.
    """

    data = document.encode("utf-8") if isinstance(document, str) else document
    # A stream keeps feedparser from treating the document as a URL or a filename.
    parsed = feedparser.parse(io.BytesIO(data))

    if not parsed.entries and (parsed.bozo or not parsed.version):
        reason = parsed.get("bozo_exception") or "no RSS or Atom content"
        raise FeedParseError(f"Document is not a feed: {reason}")
    if parsed.bozo:
        logger.debug("Feed parsed with warnings: %s", parsed.get("bozo_exception"))

    header = parsed.feed
    return FeedChannel(
        title=_clean(header.get("title")) or "",
        description=_clean(header.get("subtitle")),
        items=[_to_item(entry) for entry in parsed.entries],
    )


def fetch_channel(
    url: str,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_FEED_TIMEOUT,
) -> FeedChannel:
    """Download and parse the feed at ``url``."""

    client = session or _default_session()
    try:
        response = client.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise FeedFetchError(f"Failed to fetch feed {url}: {exc}") from exc

    if not 200 <= response.status_code < 300:
        raise FeedFetchError(f"Failed to fetch feed {url}: HTTP {response.status_code}")

    channel = parse_channel(response.content)
    logger.debug("Fetched %d items from %s", len(channel.items), url)
    return channel


def fetch_configured_feed(
    feed: Feed,
    *,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_FEED_TIMEOUT,
) -> FeedChannel:
    """Resolve ``feed`` (direct URL or hub route) and fetch it."""

    try:
        url = feed.resolved_url()
    except ValueError as exc:
        raise FeedFetchError(str(exc)) from exc
    return fetch_channel(url, session=session, timeout=timeout)
