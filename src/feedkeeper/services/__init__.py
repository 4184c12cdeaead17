"""Service layer entry points for feedkeeper."""

from __future__ import annotations

from .assets import ImageCache  # noqa: F401
from .converter import html_to_markdown, render_markdown_html  # noqa: F401
from .feeds import FeedError, fetch_channel, fetch_configured_feed, parse_channel  # noqa: F401
from .index_log import IndexLog  # noqa: F401
from .store import ArticleStore, parse_pub_date  # noqa: F401

__all__ = [
    "ArticleStore",
    "FeedError",
    "ImageCache",
    "IndexLog",
    "fetch_channel",
    "fetch_configured_feed",
    "html_to_markdown",
    "parse_channel",
    "parse_pub_date",
    "render_markdown_html",
]
