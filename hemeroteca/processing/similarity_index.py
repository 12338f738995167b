"""
Similarity Index
================

In-memory nearest-match structure over archived article text.

The index is a derived cache of the archive: it holds fingerprints and
article ids only and can be rebuilt at any time from the store. Readers work
on an immutable snapshot; writers build a new snapshot and swap the
reference, so a lookup never sees a partially applied insertion.
"""

import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Mapping, NamedTuple, Optional, Tuple

from fuzzywuzzy import fuzz

from ..config.settings import DedupSettings, SimilarityAlgorithm, get_settings
from ..database.models import ArchivedArticle
from ..utils.logging import get_logger_for_component, PerformanceLogger


_NON_WORD_PATTERN = re.compile(r"[^\w\s]+", re.UNICODE)
_WHITESPACE_PATTERN = re.compile(r"\s+")


def fingerprint(text: str, length: int = 2000) -> str:
    """Reduce normalized text to its comparable form.

    Lowercases, strips punctuation, collapses whitespace and keeps the
    first ``length`` characters.
    """
    if not text:
        return ""
    text = _NON_WORD_PATTERN.sub(" ", text.lower())
    text = _WHITESPACE_PATTERN.sub(" ", text).strip()
    return text[:length].rstrip()


_SCORERS = {
    SimilarityAlgorithm.EDIT_DISTANCE: lambda a, b: fuzz.ratio(a, b),
    SimilarityAlgorithm.TOKEN_SET: lambda a, b: fuzz.token_set_ratio(a, b, force_ascii=False),
    SimilarityAlgorithm.TOKEN_SORT: lambda a, b: fuzz.token_sort_ratio(a, b, force_ascii=False),
}


def similarity(a: str, b: str, algorithm: SimilarityAlgorithm = SimilarityAlgorithm.EDIT_DISTANCE) -> float:
    """Score two fingerprints in [0, 1].

    Arguments are ordered before scoring so the result does not depend on
    argument order. Empty input never matches.
    """
    if not a or not b:
        return 0.0
    first, second = sorted((a, b))
    return _SCORERS[SimilarityAlgorithm(algorithm)](first, second) / 100.0


@dataclass(frozen=True)
class IndexEntry:
    """Back-reference from a fingerprint to its archived article."""
    archived_article_id: int
    archived_at: datetime
    text_fingerprint: str

    @property
    def recency_key(self) -> Tuple[datetime, int]:
        return (self.archived_at, self.archived_article_id)


class IndexMatch(NamedTuple):
    """Nearest archived article and its similarity score."""
    article_id: int
    score: float


@dataclass(frozen=True)
class IndexSnapshot:
    """Immutable view of the index at one point in time."""
    entries: Tuple[IndexEntry, ...] = ()
    urls: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    version: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    def article_for_url(self, canonical_url: str) -> Optional[int]:
        return self.urls.get(canonical_url)


class SimilarityIndex:
    """Snapshot-and-swap similarity index over the archive."""

    def __init__(
        self,
        settings: Optional[DedupSettings] = None,
        scorer: Optional[Callable[[str, str], float]] = None,
    ):
        """Initialize an empty index.

        Args:
            settings: Dedup settings (default from global config)
            scorer: Similarity function over fingerprints, overriding the
                configured algorithm
        """
        self.settings = settings or get_settings().dedup
        self._scorer = scorer or (
            lambda a, b: similarity(a, b, self.settings.algorithm)
        )
        self._snapshot = IndexSnapshot()
        self._write_lock = threading.Lock()
        self.logger = get_logger_for_component("similarity_index")

    @property
    def snapshot(self) -> IndexSnapshot:
        """Current snapshot; reading the reference is atomic."""
        return self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def fingerprint(self, text: str) -> str:
        return fingerprint(text, self.settings.fingerprint_length)

    def score(self, a: str, b: str) -> float:
        """Similarity of two fingerprints using the configured scorer."""
        return self._scorer(a, b)

    def add(self, article: ArchivedArticle) -> None:
        """Insert an archived article, publishing a new snapshot."""
        self.add_many([article])

    def _entries_for(self, articles, known: set):
        """Build index entries for the articles whose id is not in ``known``."""
        new_entries = []
        urls = {}
        for article in articles:
            if article.id in known:
                continue
            known.add(article.id)
            new_entries.append(
                IndexEntry(
                    archived_article_id=article.id,
                    archived_at=article.archived_at,
                    text_fingerprint=self.fingerprint(article.normalized_text),
                )
            )
            urls[article.canonical_url] = article.id
        return new_entries, urls

    def add_many(self, articles) -> int:
        """Insert several archived articles in one swap.

        Returns:
            Number of articles actually added (known ids are skipped)
        """
        with self._write_lock:
            current = self._snapshot
            known = {entry.archived_article_id for entry in current.entries}
            new_entries, new_urls = self._entries_for(articles, known)

            if new_entries:
                urls = dict(current.urls)
                urls.update(new_urls)
                self._snapshot = IndexSnapshot(
                    entries=current.entries + tuple(new_entries),
                    urls=MappingProxyType(urls),
                    version=current.version + 1,
                )
            return len(new_entries)

    def rebuild(self, store) -> int:
        """Rebuild the index by replaying the archive store.

        The replacement snapshot is built aside and published in one swap,
        so readers see either the old index or the complete new one.

        Args:
            store: Object providing ``load_all()``

        Returns:
            Number of indexed articles
        """
        with PerformanceLogger(self.logger, "similarity index rebuild") as perf:
            entries, urls = self._entries_for(store.load_all(), set())
            with self._write_lock:
                self._snapshot = IndexSnapshot(
                    entries=tuple(entries),
                    urls=MappingProxyType(urls),
                    version=self._snapshot.version + 1,
                )
        count = len(entries)
        self.logger.info(
            f"Indexed {count} archived articles",
            extra={"indexed": count, "duration_seconds": perf.duration},
        )
        return count

    def nearest(
        self, candidate_text: str, snapshot: Optional[IndexSnapshot] = None
    ) -> Optional[IndexMatch]:
        """Find the most similar archived article.

        Scores within ``tie_epsilon`` of each other are ties, resolved in
        favour of the most recently archived article.

        Args:
            candidate_text: Normalized candidate text
            snapshot: Snapshot to search (current one by default)

        Returns:
            IndexMatch, or None when the index is empty
        """
        if snapshot is None:
            snapshot = self._snapshot
        if not snapshot.entries:
            return None

        epsilon = self.settings.tie_epsilon
        candidate_fingerprint = self.fingerprint(candidate_text)
        best_entry = None
        best_score = -1.0

        for entry in snapshot.entries:
            score = self.score(candidate_fingerprint, entry.text_fingerprint)
            if best_entry is None or score > best_score + epsilon:
                best_entry, best_score = entry, score
            elif abs(score - best_score) <= epsilon and entry.recency_key > best_entry.recency_key:
                best_entry, best_score = entry, max(score, best_score)

        return IndexMatch(best_entry.archived_article_id, best_score)
