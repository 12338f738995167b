"""
Hemeroteca Storage Layer
========================

Repository pattern implementations for the archive.

This module provides:
- Archive store for accepted articles
- Feed source repository for the fetch schedule
- CSV export for reporting
"""

from .archive_store import ArchiveStore
from .feed_repository import FeedSourceRepository
from .export import export_csv

__all__ = [
    "ArchiveStore",
    "FeedSourceRepository",
    "export_csv",
]
