"""Command line interface for reading feeds and syncing them into the store."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from feedkeeper.config import (
    DEFAULT_HUB_HOST,
    AppConfig,
    Settings,
    build_hub_url,
    create_default_config,
    load_or_create_config,
)
from feedkeeper.models import FeedChannel
from feedkeeper.services.feeds import FeedError, fetch_channel, fetch_configured_feed
from feedkeeper.services.store import ArticleStore

logger = logging.getLogger(__name__)


def print_channel(channel: FeedChannel, limit: int) -> None:
    print(f"\nTitle: {channel.title}")
    if channel.description:
        print(f"Description: {channel.description}")
    print("-" * 40)

    for position, item in enumerate(channel.items[:limit], start=1):
        print(f"{position}. {item.display_title}")
        if item.link:
            print(f"   Link: {item.link}")
        if item.pub_date:
            print(f"   Date: {item.pub_date}")
        print()


def _read(url: str, fallback_name: str, limit: int, settings: Settings) -> int:
    try:
        channel = fetch_channel(url, timeout=settings.feed_timeout)
    except FeedError as exc:
        logger.error("%s", exc)
        return 1

    feed_name = channel.title or fallback_name
    store = ArticleStore.initialize(settings.store_dir, image_timeout=settings.image_timeout)
    store.ingest_channel(feed_name, url, channel)
    print_channel(channel, limit)
    return 0


def sync_feeds(config: AppConfig, store: ArticleStore, settings: Settings) -> int:
    """Ingest every configured feed, skipping feeds that fail. Returns the failure count."""

    failures = 0
    for feed in config.iter_feeds():
        logger.info("Syncing %s", feed.name)
        try:
            channel = fetch_configured_feed(feed, timeout=settings.feed_timeout)
        except FeedError as exc:
            logger.error("Failed to sync %s: %s", feed.name, exc)
            failures += 1
            continue
        count = store.ingest_channel(feed.name, feed.resolved_url(), channel)
        logger.info("Processed %d items from %s", count, feed.name)
    return failures


def _load_config(path: Path | None, settings: Settings) -> AppConfig | None:
    try:
        return load_or_create_config(path or settings.config_path)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Could not load feed configuration: %s", exc)
        return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="feedkeeper", description="Feed reader with a local article store")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    read = commands.add_parser("read", help="read and store a feed by URL")
    read.add_argument("url")
    read.add_argument("-l", "--limit", type=int, default=5, help="number of items to show")

    hub = commands.add_parser("hub", help="read and store a feed hub route")
    hub.add_argument("route", help="route such as /github/trending/daily")
    hub.add_argument("--host", default=DEFAULT_HUB_HOST, help="hub instance URL")
    hub.add_argument("-l", "--limit", type=int, default=5, help="number of items to show")

    sync = commands.add_parser("sync", help="store every configured feed")
    sync.add_argument("-c", "--config", type=Path, default=None)

    serve = commands.add_parser("serve", help="run the web reader")
    serve.add_argument("-c", "--config", type=Path, default=None)
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=7878)

    init = commands.add_parser("init-config", help="write a starter feed configuration")
    init.add_argument("path", type=Path, nargs="?", default=None)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        settings = Settings.from_environment()
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    if args.command == "read":
        logger.info("Fetching feed from %s", args.url)
        return _read(args.url, args.url, args.limit, settings)

    if args.command == "hub":
        try:
            url = build_hub_url(args.host, args.route)
        except ValueError as exc:
            logger.error("%s", exc)
            return 1
        logger.info("Fetching hub route %s (%s)", args.route, url)
        return _read(url, args.route, args.limit, settings)

    if args.command == "init-config":
        path = args.path or settings.config_path
        create_default_config(path)
        logger.info("Wrote starter configuration to %s", path)
        return 0

    config = _load_config(args.config, settings)
    if config is None:
        return 1

    if args.command == "sync":
        store = ArticleStore.initialize(settings.store_dir, image_timeout=settings.image_timeout)
        return 1 if sync_feeds(config, store, settings) else 0

    import uvicorn

    from feedkeeper.api.app import create_app

    app = create_app(config=config, settings=settings)
    logger.info("Serving on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
