"""Convenience script for syncing every configured feed into the local store."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure the src directory is on the Python path so the feedkeeper package can be imported
SRC_PATH = Path(__file__).resolve().parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from feedkeeper.cli import sync_feeds  # noqa: E402  (import after path setup)
from feedkeeper.config import AppConfig, Settings  # noqa: E402
from feedkeeper.services.store import ArticleStore  # noqa: E402


def main() -> None:
    """Load the feed configuration and store every configured feed."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    settings = Settings.from_environment()
    try:
        config = AppConfig.from_file(settings.config_path)
    except (FileNotFoundError, ValueError) as exc:
        logging.error("Could not load feed configuration: %s", exc)
        sys.exit(1)

    store = ArticleStore.initialize(settings.store_dir, image_timeout=settings.image_timeout)
    failures = sync_feeds(config, store, settings)
    if failures:
        logging.warning("%d feed(s) could not be synced", failures)
        sys.exit(1)


if __name__ == "__main__":
    main()
