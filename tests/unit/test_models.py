"""
Tests for Data Models
=====================
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from hemeroteca.database.models import (
    ArchivedArticle,
    ArticleCandidate,
    CandidateOutcome,
    CandidateState,
    FeedSource,
    PassResult,
    RawDocument,
    ensure_utc,
)


class TestFeedSource:

    def test_never_fetched_source_is_due(self):
        source = FeedSource(url="https://news.example.com/feed.xml")
        assert source.is_due()

    def test_due_after_interval(self):
        last = datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)
        source = FeedSource(
            url="https://news.example.com/feed.xml",
            fetch_interval=timedelta(minutes=30),
            last_fetch_timestamp=last,
        )

        assert not source.is_due(last + timedelta(minutes=29))
        assert source.is_due(last + timedelta(minutes=30))

    def test_naive_timestamp_is_utc(self):
        source = FeedSource(
            url="https://news.example.com/feed.xml",
            last_fetch_timestamp=datetime(2025, 1, 6, 10, 0),
        )
        assert source.last_fetch_timestamp.tzinfo == timezone.utc

    @pytest.mark.parametrize("interval", [timedelta(0), timedelta(minutes=-5)])
    def test_interval_must_be_positive(self, interval):
        with pytest.raises(ValidationError):
            FeedSource(url="https://news.example.com/feed.xml", fetch_interval=interval)


class TestRawDocument:

    def test_charset_and_mime_type(self):
        doc = RawDocument("https://x.example.com/", b"hi", "Text/HTML; charset=ISO-8859-1")
        assert doc.charset == "ISO-8859-1"
        assert doc.mime_type == "text/html"

    def test_text_decodes_with_declared_charset(self):
        doc = RawDocument("https://x.example.com/", "año".encode("latin-1"), "text/html; charset=latin-1")
        assert doc.text() == "año"

    def test_unknown_charset_falls_back_to_utf8(self):
        doc = RawDocument("https://x.example.com/", "año".encode("utf-8"), "text/html; charset=bogus-42")
        assert doc.text() == "año"

    def test_missing_content_type(self):
        doc = RawDocument("https://x.example.com/", b"plain")
        assert doc.charset is None
        assert doc.mime_type == ""


class TestArticleCandidate:

    def test_valid_candidate(self):
        candidate = ArticleCandidate(
            canonical_url="https://news.example.com/a",
            title="Title",
            normalized_text="Some text",
            published_at=datetime(2025, 1, 6, 10, 0),
        )
        assert candidate.published_at.tzinfo == timezone.utc
        assert candidate.discovered_at.tzinfo is not None

    @pytest.mark.parametrize("text", ["", "   "])
    def test_empty_text_rejected(self, text):
        with pytest.raises(ValidationError):
            ArticleCandidate(canonical_url="https://news.example.com/a", title="T", normalized_text=text)


class TestArchivedArticle:

    def test_from_db_row_parses_timestamps(self):
        article = ArchivedArticle.from_db_row({
            "id": 3,
            "canonical_url": "https://news.example.com/a",
            "title": "T",
            "normalized_text": "Body",
            "published_at": None,
            "archived_at": "2025-01-06T10:00:00.000001+00:00",
            "source_feed": None,
            "superseded_by": None,
        })

        assert article.archived_at == datetime(2025, 1, 6, 10, 0, 0, 1, tzinfo=timezone.utc)
        assert article.published_at is None

    def test_is_immutable(self):
        article = ArchivedArticle(
            id=1, canonical_url="https://a.example.com/", title="T",
            normalized_text="B", archived_at=datetime.now(timezone.utc),
        )
        with pytest.raises(ValidationError):
            article.title = "Other"


class TestPassResult:

    def test_counts_by_state(self):
        result = PassResult()
        for state in (CandidateState.PERSISTED, CandidateState.DUPLICATE,
                      CandidateState.DUPLICATE, CandidateState.FETCH_FAILED):
            result.outcomes.append(CandidateOutcome(url="u", state=state, source_url="s"))

        assert result.persisted == 1
        assert result.duplicates == 2
        assert result.extraction_failures == 0
        assert result.fetch_failures == 1

    def test_summary(self):
        result = PassResult(sources_processed=2, sources_failed=1)
        result.finished_at = result.started_at + timedelta(seconds=1.5)

        summary = result.summary()
        assert summary["sources_processed"] == 2
        assert summary["sources_failed"] == 1
        assert summary["processing_time_seconds"] == 1.5

    def test_unfinished_pass_has_no_duration(self):
        assert PassResult().processing_time_seconds == 0.0


def test_ensure_utc_converts_aware_datetimes():
    cet = timezone(timedelta(hours=1))
    value = ensure_utc(datetime(2025, 1, 6, 11, 0, tzinfo=cet))
    assert value == datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)
    assert value.tzinfo == timezone.utc
    assert ensure_utc(None) is None
