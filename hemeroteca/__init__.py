"""
Hemeroteca - Feed Archive
=========================

Periodic feed ingestion with similarity-based deduplication against a
durable article archive.

Main Components:
- Fetcher: concurrent feed and article page retrieval with retries
- Extractor: feed parsing and HTML to plain-text normalization
- Similarity Index / Deduplicator: novelty decision against the archive
- Archive Store: SQLite archive, source of truth for the index
- Scheduler: per-feed fetch intervals
"""

__version__ = "0.3.0"
__description__ = "Feed archive with similarity-based deduplication"

from .config.settings import get_settings
from .database.connection import DatabaseConnection
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import HemerotecaError

__all__ = [
    "get_settings",
    "DatabaseConnection",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "HemerotecaError",
]
