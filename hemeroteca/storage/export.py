"""
Archive export
==============

CSV rendering of archived articles for reporting.
"""

import csv
from pathlib import Path
from typing import Iterable, Union

from ..database.models import ArchivedArticle

EXPORT_FIELDS = ("id", "canonical_url", "title", "normalized_text", "published_at", "archived_at")


def export_csv(articles: Iterable[ArchivedArticle], path: Union[str, Path]) -> int:
    """Write articles to a CSV file with a header row.

    Args:
        articles: Archived articles to export
        path: Destination file, parent directories are created

    Returns:
        Number of rows written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=EXPORT_FIELDS)
        writer.writeheader()
        for article in articles:
            writer.writerow({
                "id": article.id,
                "canonical_url": article.canonical_url,
                "title": article.title,
                "normalized_text": article.normalized_text,
                "published_at": article.published_at.isoformat() if article.published_at else "",
                "archived_at": article.archived_at.isoformat(),
            })
            count += 1

    return count
