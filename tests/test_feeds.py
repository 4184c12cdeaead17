from __future__ import annotations

import pytest
import requests

from feedkeeper.config import Feed
from feedkeeper.services.feeds import (
    FeedFetchError,
    FeedParseError,
    fetch_channel,
    fetch_configured_feed,
    parse_channel,
)

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>Example</title>
    <description>An example feed</description>
    <item>
      <title>Hello</title>
      <link>https://feed.example/1</link>
      <pubDate>Mon, 01 Jan 2024 00:00:00 GMT</pubDate>
      <description>&lt;p&gt;Short&lt;/p&gt;</description>
      <content:encoded><![CDATA[<p>Hi <img src="https://img.example/a.png"></p>]]></content:encoded>
    </item>
    <item>
      <description>Untitled</description>
    </item>
  </channel>
</rss>
"""

ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <subtitle>Entries</subtitle>
  <entry>
    <title>First</title>
    <link rel="alternate" href="https://atom.example/1"/>
    <updated>2024-01-02T00:00:00Z</updated>
    <published>2024-01-01T00:00:00Z</published>
    <summary>Summary text</summary>
    <content type="html">&lt;p&gt;Body&lt;/p&gt;</content>
  </entry>
</feed>
"""


class DummyResponse:
    def __init__(self, content: bytes, status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code


class FakeSession:
    def __init__(self, response: DummyResponse) -> None:
        self.response = response
        self.calls: list[tuple[str, dict]] = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response


def test_parse_rss_channel() -> None:
    channel = parse_channel(RSS)

    assert channel.title == "Example"
    assert channel.description == "An example feed"
    assert len(channel.items) == 2

    first = channel.items[0]
    assert first.title == "Hello"
    assert first.link == "https://feed.example/1"
    assert first.pub_date == "Mon, 01 Jan 2024 00:00:00 GMT"
    assert first.summary == "<p>Short</p>"
    assert first.content.startswith("<p>Hi <img")
    assert 'src="https://img.example/a.png"' in first.content

    second = channel.items[1]
    assert second.title is None
    assert second.link is None
    assert second.display_title == "No Title"


def test_parse_atom_feed() -> None:
    channel = parse_channel(ATOM)

    assert channel.title == "Atom Example"
    assert channel.description == "Entries"
    entry = channel.items[0]
    assert entry.title == "First"
    assert entry.link == "https://atom.example/1"
    assert entry.pub_date == "2024-01-01T00:00:00Z"
    assert entry.summary == "Summary text"
    assert entry.content == "<p>Body</p>"
    assert entry.html_body() == "<p>Body</p>"


def test_parse_rejects_other_documents() -> None:
    with pytest.raises(FeedParseError):
        parse_channel("<html><body>Not a feed</body></html>")


def test_fetch_channel_uses_session_and_timeout() -> None:
    session = FakeSession(DummyResponse(RSS.encode("utf-8")))

    channel = fetch_channel("https://feed.example/rss", session=session, timeout=3)

    assert channel.title == "Example"
    assert session.calls == [("https://feed.example/rss", {"timeout": 3})]


def test_fetch_channel_raises_on_http_error() -> None:
    session = FakeSession(DummyResponse(b"", status_code=503))

    with pytest.raises(FeedFetchError, match="HTTP 503"):
        fetch_channel("https://feed.example/rss", session=session)


def test_fetch_channel_wraps_transport_errors() -> None:
    class FailingSession:
        def get(self, url, **kwargs):
            raise requests.ConnectionError("refused")

    with pytest.raises(FeedFetchError, match="refused"):
        fetch_channel("https://feed.example/rss", session=FailingSession())


def test_fetch_configured_hub_feed_resolves_route() -> None:
    session = FakeSession(DummyResponse(RSS.encode("utf-8")))
    feed = Feed(name="Trending", url="github/trending/daily", is_hub=True, hub_host="https://hub.example")

    fetch_configured_feed(feed, session=session)

    assert session.calls[0][0] == "https://hub.example/github/trending/daily"


def test_rss_item_link_ignores_atom_self_link() -> None:
    document = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
  <channel>
    <title>Links</title>
    <item>
      <title>One</title>
      <atom:link href="https://x.example/self" rel="self"/>
      <link>https://x.example/1</link>
    </item>
  </channel>
</rss>
"""

    channel = parse_channel(document)

    assert channel.items[0].link == "https://x.example/1"


def test_atom_xhtml_content_keeps_images() -> None:
    document = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Xhtml</title>
  <entry>
    <title>Pictures</title>
    <link href="https://x.example/2"/>
    <updated>2024-01-02T00:00:00Z</updated>
    <content type="xhtml">
      <div xmlns="http://www.w3.org/1999/xhtml"><p>Hi <img src="https://x.example/a.png"/></p></div>
    </content>
  </entry>
</feed>
"""

    entry = parse_channel(document).items[0]

    assert entry.link == "https://x.example/2"
    assert entry.pub_date == "2024-01-02T00:00:00Z"
    assert 'src="https://x.example/a.png"' in entry.content
    assert "Hi" in entry.content


def test_parse_strips_scripts_from_item_bodies() -> None:
    document = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Scripts</title>
    <item>
      <title>One</title>
      <description>&lt;p onclick="steal()"&gt;Body&lt;/p&gt;&lt;script&gt;steal()&lt;/script&gt;</description>
    </item>
  </channel>
</rss>
"""

    summary = parse_channel(document).items[0].summary

    assert "Body" in summary
    assert "steal" not in summary


def test_parse_accepts_feed_without_items() -> None:
    document = '<?xml version="1.0"?><rss version="2.0"><channel><title>Quiet</title></channel></rss>'

    channel = parse_channel(document)

    assert channel.title == "Quiet"
    assert channel.items == []
