"""
Archive Store
=============

Durable, transactional record of accepted articles. The archive is the
source of truth for the similarity index; every canonical URL is stored at
most once.
"""

import sqlite3
from datetime import datetime
from typing import Iterator, List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import ArchivedArticle, ArticleCandidate, ensure_utc, utc_now
from ..utils.exceptions import (
    DatabaseError,
    DuplicateArticleError,
    ErrorCode,
    PersistError,
)
from ..utils.logging import get_logger_for_component


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Store datetimes as UTC ISO-8601 strings so they sort lexicographically."""
    value = ensure_utc(value)
    return value.isoformat(timespec="microseconds") if value else None


_COLUMNS = (
    "id, canonical_url, title, normalized_text, published_at, "
    "archived_at, source_feed, superseded_by"
)


class ArchiveStore:
    """Repository for archived articles."""

    LOAD_BATCH_SIZE = 500

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize archive store.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("archive_store")

    def persist(self, candidate: ArticleCandidate) -> ArchivedArticle:
        """Write an accepted candidate in its own transaction.

        Args:
            candidate: Candidate accepted by the deduplicator

        Returns:
            The archived article with its assigned id

        Raises:
            DuplicateArticleError: The canonical URL is already archived
            PersistError: Any other storage failure
        """
        archived_at = utc_now()

        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO archived_articles (
                        canonical_url, title, normalized_text, published_at,
                        archived_at, source_feed
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        candidate.canonical_url,
                        candidate.title,
                        candidate.normalized_text,
                        to_db_timestamp(candidate.published_at),
                        to_db_timestamp(archived_at),
                        candidate.source_feed,
                    ),
                )
                article_id = cursor.lastrowid

        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e).upper():
                raise DuplicateArticleError(
                    f"Canonical URL already archived: {candidate.canonical_url}",
                    canonical_url=candidate.canonical_url,
                ) from e
            raise PersistError(
                f"Constraint violation persisting article: {e}",
                canonical_url=candidate.canonical_url,
            ) from e
        except sqlite3.Error as e:
            raise PersistError(
                f"Failed to persist article: {e}",
                canonical_url=candidate.canonical_url,
            ) from e

        article = ArchivedArticle(
            id=article_id,
            canonical_url=candidate.canonical_url,
            title=candidate.title,
            normalized_text=candidate.normalized_text,
            published_at=candidate.published_at,
            archived_at=archived_at,
            source_feed=candidate.source_feed,
        )
        self.logger.debug(
            f"Archived article {article_id}",
            extra={"candidate_url": candidate.canonical_url},
        )
        return article

    def load_all(self) -> Iterator[ArchivedArticle]:
        """Yield every archived article ordered by id.

        Rows are read in batches so no connection is held between yields.
        """
        last_id = 0
        while True:
            try:
                rows = self.db.execute_query(
                    f"SELECT {_COLUMNS} FROM archived_articles WHERE id > ? ORDER BY id LIMIT ?",
                    (last_id, self.LOAD_BATCH_SIZE),
                )
            except sqlite3.Error as e:
                raise DatabaseError(
                    f"Failed to load archived articles: {e}",
                    error_code=ErrorCode.DATABASE_ERROR,
                ) from e

            if not rows:
                return

            for row in rows:
                yield ArchivedArticle.from_db_row(row)
            last_id = rows[-1]["id"]

    def get(self, article_id: int) -> Optional[ArchivedArticle]:
        """Get archived article by id."""
        row = self.db.execute_one(
            f"SELECT {_COLUMNS} FROM archived_articles WHERE id = ?", (article_id,)
        )
        return ArchivedArticle.from_db_row(row) if row else None

    def get_by_url(self, canonical_url: str) -> Optional[ArchivedArticle]:
        """Get archived article by canonical URL."""
        row = self.db.execute_one(
            f"SELECT {_COLUMNS} FROM archived_articles WHERE canonical_url = ?",
            (canonical_url,),
        )
        return ArchivedArticle.from_db_row(row) if row else None

    def count(self) -> int:
        row = self.db.execute_one("SELECT COUNT(*) AS total FROM archived_articles")
        return row["total"] if row else 0

    def query_by_date_range(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[ArchivedArticle]:
        """Archived articles with ``start <= archived_at < end``.

        Args:
            start: Inclusive lower bound (unbounded if None)
            end: Exclusive upper bound (unbounded if None)

        Returns:
            Articles ordered by archive time
        """
        clauses = []
        params = []
        if start is not None:
            clauses.append("archived_at >= ?")
            params.append(to_db_timestamp(start))
        if end is not None:
            clauses.append("archived_at < ?")
            params.append(to_db_timestamp(end))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        try:
            rows = self.db.execute_query(
                f"SELECT {_COLUMNS} FROM archived_articles {where} ORDER BY archived_at, id",
                tuple(params),
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to query archived articles: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

        return [ArchivedArticle.from_db_row(row) for row in rows]

    def mark_superseded(self, article_id: int, superseded_by: int) -> bool:
        """Set the soft back-reference from an article to its replacement.

        Returns:
            True if the article exists and was updated
        """
        if article_id == superseded_by:
            raise PersistError(
                "An article cannot supersede itself",
                context={"article_id": article_id},
            )

        try:
            updated = self.db.execute_update(
                "UPDATE archived_articles SET superseded_by = ? WHERE id = ?",
                (superseded_by, article_id),
            )
        except sqlite3.Error as e:
            raise PersistError(
                f"Failed to mark article {article_id} superseded: {e}",
                context={"article_id": article_id, "superseded_by": superseded_by},
            ) from e

        if updated:
            self.logger.info(f"Article {article_id} superseded by {superseded_by}")
        return bool(updated)
