"""
Hemeroteca Database Schema
==========================

SQLite database schema for the archive:
- archived_articles: accepted articles, unique by canonical URL
- feed_sources: configured feeds and their last completed pass
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class DatabaseSchema:
    """Database schema manager for the Hemeroteca SQLite database."""

    TABLES = ("archived_articles", "feed_sources")

    def __init__(self, db_path: str = "data/hemeroteca.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables with proper schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            self._create_archived_articles_table(conn)
            self._create_feed_sources_table(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_archived_articles_table(self, conn: sqlite3.Connection) -> None:
        """Create the archive table; ids are assigned at persistence time."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS archived_articles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                canonical_url TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                normalized_text TEXT NOT NULL CHECK (length(normalized_text) > 0),
                published_at TEXT,
                archived_at TEXT NOT NULL,
                source_feed TEXT,
                superseded_by INTEGER REFERENCES archived_articles(id) ON DELETE SET NULL
            )
        """
        )

    def _create_feed_sources_table(self, conn: sqlite3.Connection) -> None:
        """Create the feed schedule table."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feed_sources (
                url TEXT PRIMARY KEY,
                fetch_interval_seconds INTEGER NOT NULL CHECK (fetch_interval_seconds > 0),
                last_fetch_at TEXT
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create indexes used by the reporting queries."""
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_archived_articles_archived_at "
            "ON archived_articles(archived_at)"
        )

    def verify_schema(self) -> bool:
        """Verify that every expected table exists.

        Returns:
            True when the schema is complete
        """
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ).fetchall()

        existing = {row[0] for row in rows}
        missing = [table for table in self.TABLES if table not in existing]
        if missing:
            logger.error(f"Missing tables: {', '.join(missing)}")
            return False
        return True
