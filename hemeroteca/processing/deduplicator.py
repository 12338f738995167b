"""
Deduplicator
============

Novelty decision for extracted candidates against the similarity index.
The decision is a pure function of the candidate and the snapshot it
observes; it performs no I/O.
"""

from dataclasses import dataclass
from typing import Optional

from ..config.settings import DedupSettings, get_settings
from ..database.models import ArticleCandidate
from .similarity_index import IndexSnapshot, SimilarityIndex


@dataclass(frozen=True)
class DedupDecision:
    """Accept, or Duplicate of an archived article."""
    is_duplicate: bool
    duplicate_of: Optional[int] = None
    reason: Optional[str] = None
    similarity: Optional[float] = None

    REASON_URL = "url"
    REASON_SIMILARITY = "similarity"

    @classmethod
    def accept(cls, similarity: Optional[float] = None) -> "DedupDecision":
        return cls(is_duplicate=False, similarity=similarity)

    @classmethod
    def duplicate(cls, of: int, reason: str, similarity: Optional[float] = None) -> "DedupDecision":
        return cls(is_duplicate=True, duplicate_of=of, reason=reason, similarity=similarity)

    @property
    def accepted(self) -> bool:
        return not self.is_duplicate

    def describe(self) -> str:
        if not self.is_duplicate:
            return "accept"
        if self.reason == self.REASON_URL:
            return f"duplicate of #{self.duplicate_of} by canonical URL"
        return f"duplicate of #{self.duplicate_of} with similarity {self.similarity:.3f}"


class Deduplicator:
    """Decides whether a candidate is novel with respect to the archive."""

    def __init__(self, index: SimilarityIndex, settings: Optional[DedupSettings] = None):
        self.index = index
        self.settings = settings or get_settings().dedup

    @property
    def threshold(self) -> float:
        return self.settings.duplicate_threshold

    def is_known_url(self, canonical_url: str, snapshot: Optional[IndexSnapshot] = None) -> Optional[int]:
        """Archived article id for a canonical URL, if any."""
        if snapshot is None:
            snapshot = self.index.snapshot
        return snapshot.article_for_url(canonical_url)

    def decide(
        self, candidate: ArticleCandidate, snapshot: Optional[IndexSnapshot] = None
    ) -> DedupDecision:
        """Classify a candidate.

        1. A canonical URL already archived is a duplicate.
        2. A nearest match scoring at or above the threshold is a duplicate.
        3. Anything else is accepted.

        Args:
            candidate: Extracted candidate
            snapshot: Index snapshot to decide against (current one by default)

        Returns:
            DedupDecision
        """
        if snapshot is None:
            snapshot = self.index.snapshot

        known_id = snapshot.article_for_url(candidate.canonical_url)
        if known_id is not None:
            return DedupDecision.duplicate(known_id, DedupDecision.REASON_URL)

        match = self.index.nearest(candidate.normalized_text, snapshot=snapshot)
        if match is None:
            return DedupDecision.accept()

        if match.score >= self.threshold:
            return DedupDecision.duplicate(
                match.article_id, DedupDecision.REASON_SIMILARITY, similarity=match.score
            )

        return DedupDecision.accept(similarity=match.score)
