"""
PyTest Configuration and Fixtures
=================================

Shared fixtures for Hemeroteca tests.

- Temporary file databases with the schema applied
- Settings tuned for tests (no backoff delay, short timeouts)
- A fake aiohttp-like session serving canned responses
"""

import asyncio
import sys
import tempfile
from pathlib import Path

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def temp_db():
    """Path of a fresh database file with the schema created."""
    from hemeroteca.database.schema import DatabaseSchema

    with tempfile.TemporaryDirectory(prefix="hemeroteca_test_") as tmp_dir:
        db_path = str(Path(tmp_dir) / "hemeroteca_test.db")
        DatabaseSchema(db_path).create_tables()
        yield db_path


@pytest.fixture
def db_connection(temp_db):
    """Create a database connection manager for testing."""
    from hemeroteca.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def archive_store(db_connection):
    from hemeroteca.storage.archive_store import ArchiveStore

    return ArchiveStore(db_connection)


@pytest.fixture
def feed_repository(db_connection):
    from hemeroteca.storage.feed_repository import FeedSourceRepository

    return FeedSourceRepository(db_connection)


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def test_settings(temp_db):
    """Settings with instant retries and short request timeouts."""
    from hemeroteca.config.settings import (
        DatabaseSettings,
        DedupSettings,
        FetchSettings,
        HemerotecaSettings,
        IngestionSettings,
        LoggingSettings,
    )

    return HemerotecaSettings(
        fetch=FetchSettings(
            parallel_feeds=2,
            parallel_links_per_feed=3,
            request_timeout=0.2,
            max_attempts=2,
            backoff_base=0.0,
            backoff_max=0.0,
            jitter=False,
        ),
        dedup=DedupSettings(duplicate_threshold=0.9),
        ingestion=IngestionSettings(default_fetch_interval_minutes=60),
        database=DatabaseSettings(path=temp_db, pool_size=2),
        logging=LoggingSettings(file_path=None, console_logging=False),
    )


# ============================================================================
# Fake HTTP
# ============================================================================


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(self, body=b"", status=200, content_type="text/html; charset=utf-8", delay=0.0):
        self.status = status
        self.reason = "OK" if status == 200 else "Error"
        self.headers = {"Content-Type": content_type}
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        self._delay = delay

    async def read(self):
        if self._delay:
            await asyncio.sleep(self._delay)
        return self._body


class _RequestContext:
    def __init__(self, response):
        self.response = response

    async def __aenter__(self):
        return self.response

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Serves canned responses by URL.

    A route is a FakeResponse, an exception instance to raise, or a list of
    those consumed in order (the last one repeats). Unknown URLs get 404.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    def get(self, url):
        self.requests.append(url)
        route = self.routes.get(url, FakeResponse(status=404))
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, BaseException):
            raise route
        return _RequestContext(route)

    def count(self, url):
        return self.requests.count(url)


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def make_session():
    return FakeSession


def _rss(items, title="Test Feed", link="https://news.example.com/"):
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/"><channel>',
        f"<title>{title}</title><link>{link}</link><description>Test</description>",
    ]
    for item in items:
        categories = "".join(f"<category>{c}</category>" for c in item.get("categories", []))
        keywords = f"<media:keywords>{item['keywords']}</media:keywords>" if item.get("keywords") else ""
        parts.append(
            "<item>"
            f"<title>{item.get('title', 'Untitled')}</title>"
            f"<link>{item['link']}</link>"
            f"<pubDate>{item.get('pub_date', 'Mon, 06 Jan 2025 10:00:00 GMT')}</pubDate>"
            f"{categories}{keywords}"
            "</item>"
        )
    parts.append("</channel></rss>")
    return "".join(parts).encode("utf-8")


@pytest.fixture
def make_rss():
    """Build an RSS 2.0 document from item dicts (title, link, categories, keywords)."""
    return _rss


def _article_html(*paragraphs, title="Article"):
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        f"<html><head><title>{title}</title><script>var x = 1;</script></head>"
        f"<body><nav>Home | Sections</nav><article>{body}</article>"
        f"<footer>Copyright</footer></body></html>"
    ).encode("utf-8")


@pytest.fixture
def make_article_html():
    return _article_html
