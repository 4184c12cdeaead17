"""Domain models used across the application."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

#: Title used for items that do not carry one.
DEFAULT_TITLE = "No Title"


class FeedItem(BaseModel):
    """A single entry of a parsed feed."""

    title: Optional[str] = None
    link: Optional[str] = None
    pub_date: Optional[str] = None
    content: Optional[str] = Field(default=None, description="Full HTML content")
    summary: Optional[str] = Field(default=None, description="HTML summary / description")

    @property
    def display_title(self) -> str:
        return self.title if self.title is not None else DEFAULT_TITLE

    def html_body(self) -> str:
        """Return the HTML payload, preferring full content over the summary."""

        if self.content:
            return self.content
        if self.summary:
            return self.summary
        return ""


class FeedChannel(BaseModel):
    """A parsed feed: its title plus the ordered sequence of items."""

    title: str = ""
    description: Optional[str] = None
    items: List[FeedItem] = Field(default_factory=list)


class IndexRecord(BaseModel):
    """One row of the append-only index log."""

    time: str
    article_name: str
    rss_subscription_name: str
    path: str
