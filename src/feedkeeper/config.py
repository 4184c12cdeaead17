"""Configuration models and helpers for feedkeeper."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Iterator, List
from urllib.parse import urljoin, urlparse

from pydantic import BaseModel, Field, HttpUrl, ValidationError

from feedkeeper.blobstore import DEFAULT_STORE_ROOT

__all__ = [
    "AppConfig",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_HUB_HOST",
    "Feed",
    "FeedEntry",
    "HubConfig",
    "Settings",
    "build_hub_url",
    "create_default_config",
    "load_or_create_config",
]

DEFAULT_CONFIG_PATH = Path("feeds.json")
DEFAULT_HUB_HOST = "https://rsshub.app"


def build_hub_url(host: str, route: str) -> str:
    """Join a hub ``route`` onto ``host``, adding a leading slash when missing."""

    parsed = urlparse(host)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"Invalid hub host URL: {host!r}")

    normalized = route if route.startswith("/") else f"/{route}"
    return urljoin(host, normalized)


class HubConfig(BaseModel):
    """Location of the shared feed hub that resolves ``hub_feeds`` routes."""

    host: HttpUrl = Field(
        default=DEFAULT_HUB_HOST, validate_default=True, description="Base URL of the hub instance"
    )


class FeedEntry(BaseModel):
    """A named subscription as written in the configuration file."""

    name: str = Field(..., description="Human friendly feed name")
    url: str = Field(..., description="Feed URL, or a route for hub feeds")


class Feed(BaseModel):
    """Unified view over direct feeds and hub routes."""

    name: str
    url: str
    is_hub: bool = False
    hub_host: str | None = None

    def resolved_url(self) -> str:
        """Return the concrete URL the feed is fetched from."""

        if not self.is_hub:
            return self.url
        if not self.hub_host:
            raise ValueError(f"Hub host missing for feed {self.name!r}")
        return build_hub_url(self.hub_host, self.url)


class AppConfig(BaseModel):
    """Collection of configured feeds."""

    hub: HubConfig = Field(default_factory=HubConfig)
    feeds: List[FeedEntry] = Field(default_factory=list)
    hub_feeds: List[FeedEntry] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path | str | None = None) -> "AppConfig":
        """Load configuration data from a JSON file."""

        config_path = Path(path) if path else default_config_path()
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Configuration file not found: {config_path}") from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file: {config_path}") from exc

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Configuration file is invalid: {config_path}\n{exc}") from exc

    def dump(self, path: Path | str | None = None) -> None:
        """Persist the configuration back to disk as JSON."""

        config_path = Path(path) if path else default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(self.model_dump_json(indent=2), encoding="utf-8")

    def iter_feeds(self) -> Iterator[Feed]:
        """Iterate over direct feeds followed by hub routes."""

        for entry in self.feeds:
            yield Feed(name=entry.name, url=entry.url)

        host = str(self.hub.host)
        for entry in self.hub_feeds:
            yield Feed(name=entry.name, url=entry.url, is_hub=True, hub_host=host)

    def all_feeds(self) -> List[Feed]:
        return list(self.iter_feeds())


def default_config_path() -> Path:
    configured = os.environ.get("FEEDKEEPER_CONFIG")
    return Path(configured) if configured else DEFAULT_CONFIG_PATH


def create_default_config(path: Path | str | None = None) -> AppConfig:
    """Write a starter configuration to ``path`` and return it."""

    config = AppConfig(
        hub=HubConfig(host=DEFAULT_HUB_HOST),
        feeds=[FeedEntry(name="Hacker News", url="https://news.ycombinator.com/rss")],
        hub_feeds=[FeedEntry(name="GitHub Trending", url="/github/trending/daily")],
    )
    config.dump(path)
    return config


def load_or_create_config(path: Path | str | None = None) -> AppConfig:
    """Load the configuration at ``path``, creating a default one when missing."""

    config_path = Path(path) if path else default_config_path()
    if not config_path.exists():
        return create_default_config(config_path)
    return AppConfig.from_file(config_path)


def _env_float(key: str, default: float) -> float:
    value = os.environ.get(key)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be a number.") from exc


class Settings(BaseModel):
    """Runtime settings read from the environment."""

    store_dir: Path = Field(default=DEFAULT_STORE_ROOT)
    config_path: Path = Field(default=DEFAULT_CONFIG_PATH)
    image_timeout: float = Field(default=15.0, gt=0)
    feed_timeout: float = Field(default=30.0, gt=0)

    @classmethod
    def from_environment(cls) -> "Settings":
        """Build settings from ``FEEDKEEPER_*`` environment variables."""

        return cls(
            store_dir=Path(os.environ.get("FEEDKEEPER_STORE_DIR") or DEFAULT_STORE_ROOT),
            config_path=default_config_path(),
            image_timeout=_env_float("FEEDKEEPER_IMAGE_TIMEOUT", 15.0),
            feed_timeout=_env_float("FEEDKEEPER_FEED_TIMEOUT", 30.0),
        )
