"""Utilities for locating the on-disk article store."""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Union

#: Default location where articles, images and the index log are stored.
DEFAULT_STORE_ROOT = Path("data") / "articles"

#: Name of the directory under the store root that holds mirrored images.
IMAGE_SUBDIR = "images"

#: Name of the append-only index log under the store root.
INDEX_FILENAME = "index.csv"


_Pathish = Union[str, Path]


def resolve_store_root(store_root: _Pathish | None = None) -> Path:
    """Return a :class:`Path` pointing at the store root.

    ``store_root`` may be either a string or :class:`Path`.  When ``None`` is
    provided the ``FEEDKEEPER_STORE_DIR`` environment variable is consulted and
    :data:`DEFAULT_STORE_ROOT` is used when it is unset.  The path is not
    created on disk; callers can use :func:`ensure_store_root` for that.
    """

    if store_root is None:
        configured = os.environ.get("FEEDKEEPER_STORE_DIR")
        return Path(configured) if configured else DEFAULT_STORE_ROOT
    if isinstance(store_root, Path):
        return store_root
    return Path(store_root)


def image_dir(store_root: _Pathish | None = None) -> Path:
    """Return the image directory that belongs to ``store_root``."""

    return resolve_store_root(store_root) / IMAGE_SUBDIR


def ensure_store_root(store_root: _Pathish | None = None) -> Path:
    """Ensure the store root and its image directory exist and return the root."""

    root = resolve_store_root(store_root)
    root.mkdir(parents=True, exist_ok=True)
    (root / IMAGE_SUBDIR).mkdir(parents=True, exist_ok=True)
    return root


def write_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` so readers never observe a partial file.

    The payload is written to a temporary sibling and moved into place with
    :func:`os.replace`; the temporary file is removed if anything fails.
    """

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


__all__ = [
    "DEFAULT_STORE_ROOT",
    "IMAGE_SUBDIR",
    "INDEX_FILENAME",
    "ensure_store_root",
    "image_dir",
    "resolve_store_root",
    "write_atomic",
]
