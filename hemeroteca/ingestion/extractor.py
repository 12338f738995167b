"""
Article Extractor
=================

Turns raw feed documents into entries and raw article pages into
ArticleCandidate records. Extraction is a pure transformation; failures are
per entry and reported as ExtractionError.
"""

import calendar
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser
from pydantic import ValidationError as PydanticValidationError

from ..config.settings import IngestionSettings, OptInOperator, get_settings
from ..database.models import ArticleCandidate, FeedEntry, RawDocument
from ..utils.exceptions import ErrorCode, ExtractionError, ValidationError
from ..utils.logging import get_logger_for_component
from ..utils.validators import canonicalize_url, resolve_url
from .content_cleaner import ContentCleaner


class ArticleExtractor:
    """Feed parsing, opt-in filtering and article text extraction."""

    # Content types accepted for article pages; an empty type is tried as HTML
    TEXT_CONTENT_TYPES = {
        "",
        "text/html",
        "application/xhtml+xml",
        "text/plain",
        "text/xml",
        "application/xml",
    }

    DATE_FIELDS = ("published_parsed", "updated_parsed", "created_parsed")

    def __init__(
        self,
        settings: Optional[IngestionSettings] = None,
        cleaner: Optional[ContentCleaner] = None,
    ):
        self.settings = settings or get_settings().ingestion
        self.cleaner = cleaner or ContentCleaner(self.settings.max_content_length)
        self.logger = get_logger_for_component("extractor")

    def parse_feed(self, doc: RawDocument) -> List[FeedEntry]:
        """Enumerate the entries of a feed document.

        Args:
            doc: Raw feed document

        Returns:
            Entries with canonical links, in feed order

        Raises:
            ExtractionError: If the document is empty or not a parsable feed
        """
        if not doc.byte_content or not doc.byte_content.strip():
            raise ExtractionError(
                "empty feed document", url=doc.source_url, error_code=ErrorCode.CONTENT_EMPTY
            )

        headers = {"content-type": doc.content_type} if doc.content_type else None
        feed_data = feedparser.parse(doc.byte_content, response_headers=headers)

        if getattr(feed_data, "bozo", False) and not feed_data.entries:
            cause = getattr(feed_data, "bozo_exception", None) or "invalid XML structure"
            raise ExtractionError(
                f"feed parse error: {cause}",
                url=doc.source_url,
                error_code=ErrorCode.CONTENT_UNSUPPORTED,
            )

        feed_link = feed_data.feed.get("link") or doc.source_url
        entries = []
        seen = set()

        for entry in feed_data.entries:
            link = entry.get("link", "")
            if not link:
                self.logger.warning(
                    f"Entry missing URL in feed {doc.source_url}, skipping",
                    extra={"source_url": doc.source_url},
                )
                continue

            try:
                fetch_url = resolve_url(link, base_url=feed_link)
                link = canonicalize_url(fetch_url)
            except ValidationError as e:
                self.logger.warning(
                    f"Invalid entry URL '{link}' in feed {doc.source_url}: {e}",
                    extra={"source_url": doc.source_url},
                )
                continue

            if link in seen:
                continue
            seen.add(link)

            # feedparser also files media:keywords terms under tags
            keywords = tuple(
                term.strip() for term in entry.get("media_keywords", "").split(",") if term.strip()
            )

            entries.append(
                FeedEntry(
                    link=link,
                    title=self.cleaner.extract_text_only(entry.get("title", "")),
                    source_url=doc.source_url,
                    published_at=self._parse_date(entry),
                    categories=tuple(
                        term for term in (tag.get("term", "").strip() for tag in entry.get("tags", []))
                        if term and term not in keywords
                    ),
                    keywords=keywords,
                    summary=self.cleaner.extract_text_only(entry.get("summary", "")) or None,
                    fetch_url=fetch_url,
                )
            )

        self.logger.debug(f"Parsed {len(entries)} entries from {doc.source_url}")
        return entries

    def matches_opt_in(self, entry: FeedEntry) -> bool:
        """Check an entry against the configured opt-in terms.

        Terms are matched case-insensitively as substrings of the entry's
        categories or media keywords. An empty opt-in list keeps everything.
        """
        terms = self.settings.opt_in
        if not terms:
            return True

        haystack = " | ".join(entry.categories + entry.keywords).lower()
        if self.settings.operator == OptInOperator.AND:
            return all(term in haystack for term in terms)
        return any(term in haystack for term in terms)

    def filter_entries(self, entries: List[FeedEntry]) -> List[FeedEntry]:
        """Keep only the entries passing the opt-in filter."""
        kept = [entry for entry in entries if self.matches_opt_in(entry)]
        if len(kept) != len(entries):
            self.logger.debug(f"Opt-in filter kept {len(kept)}/{len(entries)} entries")
        return kept

    def extract(self, doc: RawDocument, entry: FeedEntry) -> ArticleCandidate:
        """Convert a fetched article page into a candidate.

        Args:
            doc: Raw article page
            entry: Feed entry the page was linked from

        Returns:
            Candidate with normalized, non-empty text

        Raises:
            ExtractionError: Empty payload, non-textual content or no text
        """
        if not doc.byte_content or not doc.byte_content.strip():
            raise ExtractionError(
                "empty payload", url=entry.link, error_code=ErrorCode.CONTENT_EMPTY
            )

        if doc.mime_type not in self.TEXT_CONTENT_TYPES:
            raise ExtractionError(
                f"unsupported content type {doc.mime_type}",
                url=entry.link,
                error_code=ErrorCode.CONTENT_UNSUPPORTED,
            )

        normalized_text = self.cleaner.clean_html_content(doc.text(), page_url=entry.link)
        if not normalized_text:
            raise ExtractionError(
                "no text after removing markup",
                url=entry.link,
                error_code=ErrorCode.CONTENT_EMPTY,
            )

        try:
            return ArticleCandidate(
                canonical_url=entry.link,
                title=(entry.title or normalized_text[:80] or "Untitled")[:1000],
                normalized_text=normalized_text,
                published_at=entry.published_at,
                source_feed=entry.source_url,
            )
        except PydanticValidationError as e:
            raise ExtractionError(f"invalid article record: {e}", url=entry.link) from e

    def _parse_date(self, entry: Any) -> Optional[datetime]:
        """Parse the publication date of an entry as UTC."""
        for field in self.DATE_FIELDS:
            date_tuple = entry.get(field)
            if date_tuple:
                try:
                    # feedparser normalizes parsed dates to UTC
                    return datetime.fromtimestamp(calendar.timegm(date_tuple), tz=timezone.utc)
                except (ValueError, OverflowError):
                    continue
        return None
