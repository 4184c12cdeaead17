from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path

import pytest

from feedkeeper.models import FeedChannel, FeedItem
from feedkeeper.services import store as store_module
from feedkeeper.services.naming import article_filename, digest
from feedkeeper.services.store import ArticleStore, parse_pub_date

FEED_NAME = "Example"
FEED_URL = "https://feed.example/rss"
IMAGE_URL = "https://img.example/a.png"


class DummyResponse:
    def __init__(self, content: bytes = b"", status_code: int = 200, headers: dict | None = None) -> None:
        self.content = content
        self.status_code = status_code
        self.headers = headers or {}


class FakeSession:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.calls: list[str] = []

    def get(self, url, **kwargs):
        self.calls.append(url)
        return DummyResponse(b"png-bytes", status_code=self.status_code, headers={"Content-Type": "image/png"})


def make_item(**overrides) -> FeedItem:
    fields = {
        "title": "Hello",
        "link": "https://feed.example/1",
        "pub_date": "Mon, 01 Jan 2024 00:00:00 GMT",
        "content": f"<p>Hi <img src='{IMAGE_URL}'></p>",
    }
    fields.update(overrides)
    return FeedItem(**fields)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def store(tmp_path: Path, session: FakeSession) -> ArticleStore:
    return ArticleStore.initialize(tmp_path / "articles", session=session)


def artifact_files(store: ArticleStore) -> list[Path]:
    return sorted(store.store_dir.glob("*.md"))


def test_initialize_creates_layout(tmp_path: Path) -> None:
    store = ArticleStore.initialize(tmp_path / "articles")

    assert (tmp_path / "articles" / "images").is_dir()
    assert (tmp_path / "articles" / "index.csv").read_text(encoding="utf-8") == (
        "time,article_name,rss_subscription_name,path\n"
    )
    assert store.image_dir == tmp_path / "articles" / "images"


def test_end_to_end_ingest(store: ArticleStore, session: FakeSession) -> None:
    item = make_item()

    text = store.ingest(FEED_NAME, FEED_URL, item)

    assert text == f"Hi ![](/images/{digest(IMAGE_URL)}.png)"
    assert f"images/{digest(IMAGE_URL)}.png" in text
    assert (store.image_dir / f"{digest(IMAGE_URL)}.png").read_bytes() == b"png-bytes"
    assert session.calls == [IMAGE_URL]

    records = store.index.records()
    assert len(records) == 1
    assert records[0].time == "2024-01-01T00:00:00+00:00"
    assert records[0].article_name == "Hello"
    assert records[0].rss_subscription_name == FEED_NAME
    expected_name = article_filename(
        FEED_NAME, FEED_URL, "Hello", "https://feed.example/1", "2024-01-01T00:00:00+00:00"
    )
    assert records[0].path == str(store.store_dir / expected_name)

    assert store.read_artifact(FEED_NAME, FEED_URL, item) == text


def test_ingest_is_idempotent(store: ArticleStore, session: FakeSession) -> None:
    item = make_item()

    first = store.ingest(FEED_NAME, FEED_URL, item)
    second = store.ingest(FEED_NAME, FEED_URL, make_item())

    assert first == second
    assert len(artifact_files(store)) == 1
    assert len(store.index.records()) == 1
    assert len(session.calls) == 1


def test_changing_identity_field_misses(store: ArticleStore) -> None:
    store.ingest(FEED_NAME, FEED_URL, make_item())

    assert store.read_artifact(FEED_NAME, FEED_URL, make_item(title="Hello!")) is None
    assert store.read_artifact("Other", FEED_URL, make_item()) is None
    assert store.read_artifact(FEED_NAME, FEED_URL, make_item(pub_date="Tue, 02 Jan 2024 00:00:00 GMT")) is None


def test_read_artifact_before_ingest_is_absent(store: ArticleStore, session: FakeSession) -> None:
    assert store.read_artifact(FEED_NAME, FEED_URL, make_item()) is None
    assert artifact_files(store) == []
    assert session.calls == []


def test_failed_image_keeps_remote_reference(tmp_path: Path) -> None:
    store = ArticleStore.initialize(tmp_path / "articles", session=FakeSession(status_code=404))

    text = store.ingest(FEED_NAME, FEED_URL, make_item())

    assert text == f"Hi ![]({IMAGE_URL})"
    assert len(store.index.records()) == 1


def test_unsupported_image_scheme_is_left_alone(store: ArticleStore, session: FakeSession) -> None:
    text = store.ingest(FEED_NAME, FEED_URL, make_item(content='<p><img src="ftp://img.example/a.png" alt="A"></p>'))

    assert text == "![A](ftp://img.example/a.png)"
    assert session.calls == []


def test_repeated_image_is_fetched_once(store: ArticleStore, session: FakeSession) -> None:
    content = f'<p><img src="{IMAGE_URL}" alt="one"></p><p><img src="{IMAGE_URL}" alt="two"></p>'

    text = store.ingest(FEED_NAME, FEED_URL, make_item(content=content))

    local = f"/images/{digest(IMAGE_URL)}.png"
    assert text == f"![one]({local})\n\n![two]({local})"
    assert session.calls == [IMAGE_URL]


def test_image_reused_across_articles(store: ArticleStore, session: FakeSession) -> None:
    store.ingest(FEED_NAME, FEED_URL, make_item())
    store.ingest(FEED_NAME, FEED_URL, make_item(title="Second"))

    assert len(artifact_files(store)) == 2
    assert session.calls == [IMAGE_URL]


def test_content_takes_priority_over_summary(store: ArticleStore) -> None:
    text = store.ingest(FEED_NAME, FEED_URL, make_item(content="<p>full</p>", summary="<p>short</p>"))

    assert text == "full"


def test_summary_used_without_content(store: ArticleStore) -> None:
    text = store.ingest(FEED_NAME, FEED_URL, make_item(content=None, summary="<p>short</p>"))

    assert text == "short"


def test_missing_fields_use_defaults(store: ArticleStore) -> None:
    item = FeedItem(summary="<p>body</p>")

    store.ingest(FEED_NAME, FEED_URL, item)

    expected = store.store_dir / article_filename(FEED_NAME, FEED_URL, "No Title", "", "")
    assert expected.read_text(encoding="utf-8") == "body"
    record = store.index.records()[0]
    assert record.article_name == "No Title"
    assert datetime.fromisoformat(record.time).tzinfo is not None


def test_write_failure_propagates_without_index_row(store: ArticleStore, monkeypatch) -> None:
    def fail(path, data):
        raise OSError("disk full")

    monkeypatch.setattr(store_module, "write_atomic", fail)

    with pytest.raises(OSError):
        store.ingest(FEED_NAME, FEED_URL, make_item(content="<p>text</p>"))

    assert store.index.records() == []


def test_ingest_channel_processes_every_item(store: ArticleStore) -> None:
    channel = FeedChannel(
        title="Example",
        items=[make_item(title="One", content="<p>1</p>"), make_item(title="Two", content="<p>2</p>")],
    )

    assert store.ingest_channel(FEED_NAME, FEED_URL, channel) == 2
    assert [record.article_name for record in store.index.records()] == ["One", "Two"]


def test_concurrent_ingest_converges(store: ArticleStore) -> None:
    results: list[str] = []
    threads = [
        threading.Thread(target=lambda: results.append(store.ingest(FEED_NAME, FEED_URL, make_item())))
        for _ in range(4)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(set(results)) == 1
    assert len(artifact_files(store)) == 1


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Mon, 01 Jan 2024 00:00:00 GMT", "2024-01-01T00:00:00+00:00"),
        ("Tue, 02 Jan 2024 10:30:00 +0100", "2024-01-02T09:30:00+00:00"),
        ("2024-01-01T02:00:00+02:00", "2024-01-01T00:00:00+00:00"),
        ("2024-01-01T00:00:00Z", "2024-01-01T00:00:00+00:00"),
        ("2024-01-01T00:00:00.5Z", "2024-01-01T00:00:00.500000+00:00"),
        ("  Mon, 01 Jan 2024 00:00:00 GMT  ", "2024-01-01T00:00:00+00:00"),
        ("2024-01-01", None),
        ("2024-01-01T00:00:00", None),
        ("yesterday", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_pub_date(raw: str | None, expected: str | None) -> None:
    assert parse_pub_date(raw) == expected
