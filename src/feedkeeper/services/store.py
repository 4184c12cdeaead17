"""Filesystem-backed article store.

Articles are written as markdown files named after a digest of the feed name,
feed URL, item title, item link and normalized publish date. Writing the same
item twice is a no-op, so the store can be fed the full contents of a feed on
every poll. Remote images are mirrored into ``images/`` and every ingested
article gets one row in ``index.csv``.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Dict, Iterable

import requests

from feedkeeper.blobstore import INDEX_FILENAME, ensure_store_root, image_dir, resolve_store_root, write_atomic
from feedkeeper.models import FeedChannel, FeedItem
from feedkeeper.services.assets import DEFAULT_IMAGE_TIMEOUT, ImageCache
from feedkeeper.services.converter import html_to_markdown
from feedkeeper.services.index_log import IndexLog
from feedkeeper.services.naming import article_filename
from feedkeeper.services.references import extract_image_urls, rewrite_references

logger = logging.getLogger(__name__)

__all__ = ["ArticleStore", "parse_pub_date"]

_RFC3339 = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


def _parse_rfc2822(value: str) -> datetime | None:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        # "-0000" means UTC with no known local offset.
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_rfc3339(value: str) -> datetime | None:
    match = _RFC3339.match(value)
    if match is None:
        return None

    offset = match.group("offset")
    if offset in {"Z", "z"}:
        offset = "+00:00"
    fraction = match.group("fraction")
    fraction = f".{fraction[:6].ljust(6, '0')}" if fraction else ""
    try:
        return datetime.fromisoformat(f"{match.group('date')}T{match.group('time')}{fraction}{offset}")
    except ValueError:
        return None


def parse_pub_date(raw: str | None) -> str | None:
    """Normalize an RFC 2822 or RFC 3339 date to a UTC ISO-8601 string.

    Returns ``None`` when the value is missing or in neither format.
    """

    if raw is None or not raw.strip():
        return None

    value = raw.strip()
    parsed = _parse_rfc2822(value) or _parse_rfc3339(value)
    if parsed is None:
        logger.debug("Ignoring unparseable publish date %r", raw)
        return None
    return parsed.astimezone(UTC).isoformat()


class ArticleStore:
    """Handle on one store directory.

    Construct it once with :meth:`initialize` and share it between workers; all
    mutations are create-once files plus appends to the index log.
    """

    def __init__(self, store_dir: Path | str, *, images: ImageCache, index: IndexLog) -> None:
        self.store_dir = Path(store_dir)
        self.images = images
        self.index = index

    @classmethod
    def initialize(
        cls,
        store_dir: Path | str | None = None,
        *,
        session: requests.Session | None = None,
        image_timeout: float = DEFAULT_IMAGE_TIMEOUT,
    ) -> "ArticleStore":
        """Create the store directories and index log, failing if they are not writable."""

        root = ensure_store_root(resolve_store_root(store_dir))
        index = IndexLog(root / INDEX_FILENAME)
        index.ensure_header()
        images = ImageCache(image_dir(root), session=session, timeout=image_timeout)
        return cls(root, images=images, index=index)

    @property
    def image_dir(self) -> Path:
        return self.images.image_dir

    def artifact_path(self, feed_name: str, feed_url: str, item: FeedItem) -> Path:
        """Return the file an item is (or will be) stored under."""

        published = parse_pub_date(item.pub_date) or ""
        filename = article_filename(feed_name, feed_url, item.display_title, item.link or "", published)
        return self.store_dir / filename

    def ingest(self, feed_name: str, feed_url: str, item: FeedItem) -> str:
        """Store ``item`` unless it is already present and return its markdown."""

        title = item.display_title
        published = parse_pub_date(item.pub_date)
        file_path = self.store_dir / article_filename(
            feed_name, feed_url, title, item.link or "", published or ""
        )

        if file_path.exists():
            logger.debug("Article %r from %s already stored at %s", title, feed_name, file_path)
            return file_path.read_text(encoding="utf-8")

        content = self.localize_images(html_to_markdown(item.html_body()))
        write_atomic(file_path, content.encode("utf-8"))

        self.index.append(
            published or datetime.now(UTC).isoformat(),
            title,
            feed_name,
            str(file_path),
        )
        logger.info("Stored article %r from %s", title, feed_name)
        return content

    def ingest_channel(self, feed_name: str, feed_url: str, channel: FeedChannel) -> int:
        """Ingest every item of ``channel`` in order and return how many there were."""

        return self.ingest_items(feed_name, feed_url, channel.items)

    def ingest_items(self, feed_name: str, feed_url: str, items: Iterable[FeedItem]) -> int:
        count = 0
        for item in items:
            self.ingest(feed_name, feed_url, item)
            count += 1
        return count

    def read_artifact(self, feed_name: str, feed_url: str, item: FeedItem) -> str | None:
        """Return the stored markdown for ``item`` or ``None`` if not ingested yet.

        Never touches the network and never writes.
        """

        file_path = self.artifact_path(feed_name, feed_url, item)
        try:
            return file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def localize_images(self, markdown: str) -> str:
        """Mirror every referenced image and point the markdown at the local copies."""

        urls = extract_image_urls(markdown)
        if not urls:
            return markdown

        replacements: Dict[str, str] = {}
        for url in sorted(urls):
            local = self.images.localize(url)
            if local is not None:
                replacements[url] = local
            else:
                logger.warning("Keeping remote reference for image %s", url)

        return rewrite_references(markdown, replacements)
