"""Content-addressed naming for article artifacts and image assets."""

from __future__ import annotations

import hashlib
from pathlib import PurePosixPath
from urllib.parse import urlparse

__all__ = [
    "ARTICLE_SUFFIX",
    "GENERIC_EXTENSION",
    "IMAGE_EXTENSIONS",
    "article_filename",
    "asset_filename",
    "digest",
    "extension_from_content_type",
    "extension_from_url",
    "resolve_extension",
]

ARTICLE_SUFFIX = ".md"
GENERIC_EXTENSION = "img"
IDENTITY_SEPARATOR = "|"

_SUFFIX_EXTENSIONS = {
    "png": "png",
    "jpg": "jpg",
    "jpeg": "jpg",
    "webp": "webp",
    "gif": "gif",
    "svg": "svg",
    "svgz": "svg",
}

_CONTENT_TYPE_EXTENSIONS = (
    ("image/png", "png"),
    ("image/jpeg", "jpg"),
    ("image/jpg", "jpg"),
    ("image/webp", "webp"),
    ("image/gif", "gif"),
    ("image/svg+xml", "svg"),
)

#: Every extension an asset can be stored under.
IMAGE_EXTENSIONS = (GENERIC_EXTENSION, "png", "jpg", "webp", "gif", "svg")


def digest(text: str) -> str:
    """Return the SHA-256 hex digest of ``text``."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def article_filename(feed_name: str, feed_url: str, title: str, link: str, timestamp: str) -> str:
    """Return the artifact filename for an article identity.

    The five fields are joined with ``|`` before hashing, so read-back must pass
    exactly the same normalized values that were used at ingest time.
    """

    identity = IDENTITY_SEPARATOR.join((feed_name, feed_url, title, link, timestamp))
    return f"{digest(identity)}{ARTICLE_SUFFIX}"


def asset_filename(url: str, extension: str | None = None) -> str:
    """Return the image filename for ``url`` with the given extension."""

    return f"{digest(url)}.{extension or GENERIC_EXTENSION}"


def extension_from_content_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    lowered = content_type.lower()
    for marker, extension in _CONTENT_TYPE_EXTENSIONS:
        if marker in lowered:
            return extension
    return None


def extension_from_url(url: str) -> str | None:
    suffix = PurePosixPath(urlparse(url).path).suffix
    if not suffix:
        return None
    return _SUFFIX_EXTENSIONS.get(suffix[1:].lower())


def resolve_extension(url: str, content_type: str | None = None) -> str:
    """Pick the asset extension: content type, then URL suffix, then generic."""

    return (
        extension_from_content_type(content_type)
        or extension_from_url(url)
        or GENERIC_EXTENSION
    )
