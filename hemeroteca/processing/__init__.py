"""
Hemeroteca Processing Module
============================

Fetch, similarity and deduplication components and the pipeline that
drives them.
"""

from .feed_fetcher import FeedFetcher, FetchResult
from .similarity_index import SimilarityIndex, IndexSnapshot, IndexMatch, similarity
from .deduplicator import Deduplicator, DedupDecision
from .pipeline import IngestionPipeline

__all__ = [
    "FeedFetcher",
    "FetchResult",
    "SimilarityIndex",
    "IndexSnapshot",
    "IndexMatch",
    "similarity",
    "Deduplicator",
    "DedupDecision",
    "IngestionPipeline",
]
