"""
Tests for the Deduplicator
==========================
"""

from datetime import datetime, timezone

import pytest

from hemeroteca.config.settings import DedupSettings
from hemeroteca.database.models import ArchivedArticle, ArticleCandidate
from hemeroteca.processing.deduplicator import DedupDecision, Deduplicator
from hemeroteca.processing.similarity_index import IndexSnapshot, SimilarityIndex


def archived(article_id=1, url="https://news.example.com/archived", text="Texto archivado"):
    return ArchivedArticle(
        id=article_id, canonical_url=url, title="T", normalized_text=text,
        archived_at=datetime(2025, 1, 6, tzinfo=timezone.utc),
    )


def candidate(url="https://news.example.com/new", text="Texto nuevo"):
    return ArticleCandidate(canonical_url=url, title="T", normalized_text=text)


def dedup_with_score(score, threshold=0.9):
    settings = DedupSettings(duplicate_threshold=threshold)
    index = SimilarityIndex(settings, scorer=lambda a, b: score)
    index.add(archived())
    return Deduplicator(index, settings)


class TestDecide:

    def test_empty_archive_accepts(self):
        settings = DedupSettings()
        deduplicator = Deduplicator(SimilarityIndex(settings), settings)

        decision = deduplicator.decide(candidate())

        assert decision == DedupDecision.accept()
        assert decision.similarity is None

    def test_threshold_is_inclusive(self):
        decision = dedup_with_score(0.9).decide(candidate())

        assert decision.is_duplicate
        assert decision.duplicate_of == 1
        assert decision.reason == DedupDecision.REASON_SIMILARITY
        assert decision.similarity == 0.9

    def test_below_threshold_accepts(self):
        decision = dedup_with_score(0.89).decide(candidate())

        assert decision.accepted
        assert decision.similarity == 0.89

    @pytest.mark.parametrize("threshold,expected", [(0.0, True), (1.0, False)])
    def test_threshold_extremes(self, threshold, expected):
        assert dedup_with_score(0.5, threshold).decide(candidate()).is_duplicate is expected

    def test_known_url_is_duplicate_regardless_of_text(self):
        deduplicator = dedup_with_score(0.0)

        decision = deduplicator.decide(candidate(url="https://news.example.com/archived", text="Other"))

        assert decision.is_duplicate
        assert decision.reason == DedupDecision.REASON_URL
        assert decision.duplicate_of == 1
        assert deduplicator.is_known_url("https://news.example.com/archived") == 1
        assert deduplicator.is_known_url("https://news.example.com/new") is None

    def test_decides_against_given_snapshot(self):
        deduplicator = dedup_with_score(1.0)
        empty = IndexSnapshot()

        assert deduplicator.decide(candidate(), snapshot=empty).accepted
        assert deduplicator.decide(candidate()).is_duplicate

    def test_real_scorer_near_duplicate(self):
        settings = DedupSettings(duplicate_threshold=0.9)
        index = SimilarityIndex(settings)
        text = "El Gobierno aprueba hoy el anteproyecto de presupuestos generales para 2025."
        index.add(archived(text=text))

        reworded = Deduplicator(index, settings).decide(candidate(text=text.replace("hoy ", "")))
        different = Deduplicator(index, settings).decide(candidate(text="El Atlético gana en Vigo."))

        assert reworded.is_duplicate
        assert different.accepted


class TestDescribe:

    def test_descriptions(self):
        assert DedupDecision.accept().describe() == "accept"
        assert DedupDecision.duplicate(3, DedupDecision.REASON_URL).describe() == (
            "duplicate of #3 by canonical URL"
        )
        assert DedupDecision.duplicate(3, DedupDecision.REASON_SIMILARITY, 0.95).describe() == (
            "duplicate of #3 with similarity 0.950"
        )
