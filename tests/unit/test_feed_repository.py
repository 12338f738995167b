"""
Tests for the feed source repository.
"""

from datetime import datetime, timedelta, timezone

from hemeroteca.database.models import FeedSource


def source(url="https://news.example.com/feed.xml", minutes=60):
    return FeedSource(url=url, fetch_interval=timedelta(minutes=minutes))


class TestFeedSourceRepository:

    def test_sync_inserts_new_sources(self, feed_repository):
        assert feed_repository.sync_sources([source(), source("https://b.example.com/rss", 15)]) == 2

        stored = feed_repository.get_source("https://b.example.com/rss")
        assert stored.fetch_interval == timedelta(minutes=15)
        assert stored.last_fetch_timestamp is None

    def test_sync_nothing(self, feed_repository):
        assert feed_repository.sync_sources([]) == 0

    def test_resync_keeps_timestamp_and_updates_interval(self, feed_repository):
        feed_repository.sync_sources([source()])
        completed = datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)
        feed_repository.update_last_fetch(source().url, completed)

        feed_repository.sync_sources([source(minutes=5)])

        stored = feed_repository.get_source(source().url)
        assert stored.fetch_interval == timedelta(minutes=5)
        assert stored.last_fetch_timestamp == completed

    def test_list_sources_filtered(self, feed_repository):
        feed_repository.sync_sources([source("https://a.example.com/rss"), source("https://b.example.com/rss")])

        assert [s.url for s in feed_repository.list_sources()] == [
            "https://a.example.com/rss",
            "https://b.example.com/rss",
        ]
        assert [s.url for s in feed_repository.list_sources(["https://b.example.com/rss"])] == [
            "https://b.example.com/rss"
        ]
        assert feed_repository.list_sources([]) == []

    def test_update_last_fetch(self, feed_repository):
        feed_repository.sync_sources([source()])

        assert feed_repository.update_last_fetch(source().url, datetime(2025, 1, 6, 11, 0))
        assert not feed_repository.update_last_fetch("https://unknown.example.com/", datetime(2025, 1, 6))

        stored = feed_repository.get_source(source().url)
        assert stored.last_fetch_timestamp == datetime(2025, 1, 6, 11, 0, tzinfo=timezone.utc)

    def test_get_unknown_source(self, feed_repository):
        assert feed_repository.get_source("https://unknown.example.com/") is None
