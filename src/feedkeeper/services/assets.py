"""Mirroring of remote images into the local store."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from urllib.parse import urlparse

import requests

from feedkeeper.blobstore import write_atomic
from feedkeeper.services.naming import IMAGE_EXTENSIONS, asset_filename, digest, resolve_extension

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_HEADERS", "IMAGE_URL_PREFIX", "ImageCache"]

#: URL prefix under which the presentation layer serves the image directory.
IMAGE_URL_PREFIX = "/images"
DEFAULT_IMAGE_TIMEOUT = 15.0
_LOCK_STRIPES = 64
DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/129.0.0.0 Safari/537.36"
    ),
    "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class ImageCache:
    """Content-addressed cache of remote images.

    Every source URL maps to ``<sha256(url)>.<ext>`` inside ``image_dir``. Files
    are created once and reused by every later reference to the same URL.
    Failures never propagate: :meth:`localize` returns ``None`` and the caller
    keeps the remote reference.
    """

    def __init__(
        self,
        image_dir: Path | str,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_IMAGE_TIMEOUT,
        url_prefix: str = IMAGE_URL_PREFIX,
    ) -> None:
        self.image_dir = Path(image_dir)
        self._timeout = timeout
        self._url_prefix = url_prefix.rstrip("/")
        if session is None:
            session = requests.Session()
            session.headers.update(DEFAULT_HEADERS)
        self._session = session
        self._locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]

    def reference(self, filename: str) -> str:
        """Return the store-relative reference for an image file."""

        return f"{self._url_prefix}/{filename}"

    def find_existing(self, url: str) -> str | None:
        """Return the reference of an already mirrored copy of ``url``, if any."""

        for extension in IMAGE_EXTENSIONS:
            filename = asset_filename(url, extension)
            if (self.image_dir / filename).exists():
                return self.reference(filename)
        return None

    def localize(self, url: str) -> str | None:
        """Mirror ``url`` locally and return its reference, or ``None`` on failure."""

        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            logger.debug("Not localizing unsupported image URL %s", url)
            return None

        existing = self.find_existing(url)
        if existing is not None:
            return existing

        with self._lock_for(url):
            existing = self.find_existing(url)
            if existing is not None:
                return existing
            return self._download(url)

    def _lock_for(self, url: str) -> threading.Lock:
        return self._locks[int(digest(url)[:8], 16) % _LOCK_STRIPES]

    def _download(self, url: str) -> str | None:
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.warning("Failed to fetch image %s: %s", url, exc)
            return None

        if not 200 <= response.status_code < 300:
            logger.warning("Image %s returned HTTP %s", url, response.status_code)
            return None

        content_type = response.headers.get("Content-Type")
        filename = asset_filename(url, resolve_extension(url, content_type))
        target = self.image_dir / filename
        if target.exists():
            logger.debug("Image %s was stored concurrently, reusing %s", url, filename)
            return self.reference(filename)

        try:
            write_atomic(target, response.content)
        except OSError as exc:
            logger.warning("Failed to store image %s at %s: %s", url, target, exc)
            return None

        logger.debug("Stored image %s as %s", url, filename)
        return self.reference(filename)
