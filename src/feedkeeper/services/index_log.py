"""Append-only CSV log of ingested articles."""

from __future__ import annotations

import csv
import io
import logging
import threading
from pathlib import Path
from typing import Dict, List

from feedkeeper.models import IndexRecord

logger = logging.getLogger(__name__)

__all__ = ["INDEX_HEADER", "IndexLog"]

INDEX_HEADER = ("time", "article_name", "rss_subscription_name", "path")

_PATH_LOCKS: Dict[Path, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    # Shared by every IndexLog pointing at the same file in this process.
    key = path.resolve()
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


def _encode_row(values) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(values)
    return buffer.getvalue()


class IndexLog:
    """The ``index.csv`` enumeration of everything ingested so far.

    Rows are only ever appended. Each append is a single write followed by a
    flush while holding a per-file lock, so concurrent writers in one process
    queue up instead of interleaving.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = _lock_for(self.path)

    def ensure_header(self) -> None:
        """Create the log with its header row when it is missing or empty."""

        with self._lock:
            with self.path.open("a", encoding="utf-8", newline="") as handle:
                self._write_header_if_empty(handle)

    def append(self, time: str, title: str, feed_name: str, path: str) -> None:
        """Append one row and flush it before returning."""

        row = _encode_row((time, title, feed_name, path))
        with self._lock:
            with self.path.open("a", encoding="utf-8", newline="") as handle:
                self._write_header_if_empty(handle)
                handle.write(row)
                handle.flush()
        logger.debug("Indexed %r from %s", title, feed_name)

    def records(self) -> List[IndexRecord]:
        """Parse every complete row of the log."""

        if not self.path.exists():
            return []

        with self.path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle)
            rows = []
            for row in reader:
                if None in row.values() or None in row:
                    logger.warning("Skipping incomplete index row at line %d", reader.line_num)
                    continue
                rows.append(IndexRecord(**row))
        return rows

    @staticmethod
    def _write_header_if_empty(handle) -> None:
        if handle.tell() == 0:
            handle.write(_encode_row(INDEX_HEADER))
            handle.flush()
