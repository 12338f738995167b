"""
Feed Source Repository
======================

Persistence for configured feed sources and their fetch schedule.
"""

import sqlite3
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import FeedSource, ensure_utc
from ..utils.exceptions import DatabaseError, ErrorCode
from ..utils.logging import get_logger_for_component
from .archive_store import to_db_timestamp


class FeedSourceRepository:
    """Repository for managing feed sources in the database."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize feed source repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("feed_repository")

    @staticmethod
    def _from_row(row) -> FeedSource:
        last_fetch = row["last_fetch_at"]
        return FeedSource(
            url=row["url"],
            fetch_interval=timedelta(seconds=row["fetch_interval_seconds"]),
            last_fetch_timestamp=datetime.fromisoformat(last_fetch) if last_fetch else None,
        )

    def sync_sources(self, sources: Iterable[FeedSource]) -> int:
        """Insert new sources and update intervals of existing ones.

        Existing fetch timestamps are kept, so reloading the configuration
        does not reset the schedule. Sources missing from ``sources`` are
        left untouched.

        Returns:
            Number of sources written
        """
        rows = [
            (source.url, int(source.fetch_interval.total_seconds()))
            for source in sources
        ]
        if not rows:
            return 0

        try:
            with self.db.transaction() as conn:
                conn.executemany(
                    """
                    INSERT INTO feed_sources (url, fetch_interval_seconds)
                    VALUES (?, ?)
                    ON CONFLICT(url) DO UPDATE SET
                        fetch_interval_seconds = excluded.fetch_interval_seconds
                    """,
                    rows,
                )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to sync feed sources: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

        self.logger.info(f"Synced {len(rows)} feed sources")
        return len(rows)

    def get_source(self, url: str) -> Optional[FeedSource]:
        row = self.db.execute_one(
            "SELECT url, fetch_interval_seconds, last_fetch_at FROM feed_sources WHERE url = ?",
            (url,),
        )
        return self._from_row(row) if row else None

    def list_sources(self, urls: Optional[Iterable[str]] = None) -> List[FeedSource]:
        """List feed sources, optionally restricted to ``urls``."""
        rows = self.db.execute_query(
            "SELECT url, fetch_interval_seconds, last_fetch_at FROM feed_sources ORDER BY url"
        )
        sources = [self._from_row(row) for row in rows]
        if urls is not None:
            wanted = set(urls)
            sources = [source for source in sources if source.url in wanted]
        return sources

    def update_last_fetch(self, url: str, completed_at: datetime) -> bool:
        """Advance the last fetch timestamp of a source.

        Returns:
            True if the source exists
        """
        try:
            updated = self.db.execute_update(
                "UPDATE feed_sources SET last_fetch_at = ? WHERE url = ?",
                (to_db_timestamp(ensure_utc(completed_at)), url),
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to update fetch timestamp for {url}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e
        return bool(updated)
