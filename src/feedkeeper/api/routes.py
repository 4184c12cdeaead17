"""API routes exposing configured feeds and stored articles."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from feedkeeper.config import Feed
from feedkeeper.models import FeedChannel, IndexRecord
from feedkeeper.services.converter import render_markdown_html
from feedkeeper.services.feeds import FeedError, fetch_configured_feed
from feedkeeper.services.store import ArticleStore

logger = logging.getLogger(__name__)

router = APIRouter()

PROCESSING_HTML = "<em>Content is still processing.</em>"
EMPTY_HTML = "<em>No content.</em>"


class FeedInfo(BaseModel):
    name: str
    url: str
    is_hub: bool


class ItemMeta(BaseModel):
    id: int
    title: str
    link: str | None = None
    pub_date: str | None = None


class FeedResponse(BaseModel):
    title: str
    description: str | None = None
    items: List[ItemMeta] = Field(default_factory=list)


class ItemContent(BaseModel):
    title: str
    link: str | None = None
    pub_date: str | None = None
    content_html: str


class IndexResponse(BaseModel):
    records: List[IndexRecord] = Field(default_factory=list)


class ChannelCache:
    """Per-process cache of fetched channels, keyed by feed position."""

    def __init__(self) -> None:
        self._channels: Dict[int, FeedChannel] = {}
        self._lock = threading.Lock()

    def get(self, index: int) -> FeedChannel | None:
        with self._lock:
            return self._channels.get(index)

    def put(self, index: int, channel: FeedChannel) -> None:
        with self._lock:
            self._channels[index] = channel


def _feeds(request: Request) -> List[Feed]:
    return request.app.state.feeds


def _store(request: Request) -> ArticleStore:
    return request.app.state.store


def _feed_at(request: Request, index: int) -> Feed:
    feeds = _feeds(request)
    if index < 0 or index >= len(feeds):
        raise HTTPException(status_code=404, detail="Feed not found")
    return feeds[index]


async def _get_or_fetch_channel(request: Request, index: int, feed: Feed) -> FeedChannel:
    cache: ChannelCache = request.app.state.channel_cache
    cached = cache.get(index)
    if cached is not None:
        return cached

    timeout = request.app.state.settings.feed_timeout
    try:
        channel = await run_in_threadpool(fetch_configured_feed, feed, timeout=timeout)
    except FeedError as exc:
        logger.warning("Failed to fetch feed %s: %s", feed.name, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    cache.put(index, channel)
    return channel


def ingest_in_background(store: ArticleStore, feed: Feed, channel: FeedChannel) -> None:
    """Ingest ``channel`` and log, rather than raise, any failure."""

    try:
        store.ingest_channel(feed.name, feed.resolved_url(), channel)
    except Exception:  # noqa: BLE001 - background task has no caller to report to
        logger.exception("Failed to store items of feed %s", feed.name)


@router.get("/feeds", response_model=List[FeedInfo])
async def list_feeds(request: Request) -> List[FeedInfo]:
    """Return the configured feeds."""

    return [FeedInfo(name=feed.name, url=feed.url, is_hub=feed.is_hub) for feed in _feeds(request)]


@router.get("/feeds/{index}", response_model=FeedResponse)
async def get_feed(index: int, request: Request, background_tasks: BackgroundTasks) -> FeedResponse:
    """Return a feed's items and ingest them in the background."""

    feed = _feed_at(request, index)
    channel = await _get_or_fetch_channel(request, index, feed)

    background_tasks.add_task(ingest_in_background, _store(request), feed, channel)

    return FeedResponse(
        title=channel.title,
        description=channel.description or None,
        items=[
            ItemMeta(id=position, title=item.display_title, link=item.link, pub_date=item.pub_date)
            for position, item in enumerate(channel.items)
        ],
    )


@router.get("/feeds/{index}/items/{item_index}", response_model=ItemContent)
async def get_item(index: int, item_index: int, request: Request) -> ItemContent:
    """Return a stored article rendered to HTML, or a placeholder while it is processing."""

    feed = _feed_at(request, index)
    channel = await _get_or_fetch_channel(request, index, feed)
    if item_index < 0 or item_index >= len(channel.items):
        raise HTTPException(status_code=404, detail="Item not found")
    item = channel.items[item_index]

    markdown = _store(request).read_artifact(feed.name, feed.resolved_url(), item)
    if markdown is None:
        content_html = PROCESSING_HTML
    elif not markdown.strip():
        content_html = EMPTY_HTML
    else:
        content_html = render_markdown_html(markdown)

    return ItemContent(
        title=item.display_title,
        link=item.link,
        pub_date=item.pub_date,
        content_html=content_html,
    )


@router.get("/index", response_model=IndexResponse)
async def list_index(request: Request) -> IndexResponse:
    """Return every row of the index log."""

    records = await run_in_threadpool(_store(request).index.records)
    return IndexResponse(records=records)
