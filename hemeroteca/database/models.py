"""
Hemeroteca Data Models
======================

Pydantic data models for type safety and validation throughout the pipeline.
Persisted models correspond to the database schema; the ephemeral ones only
travel between fetcher, extractor and deduplicator.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class FeedSource(BaseModel):
    """Configured syndication feed and its fetch schedule."""
    url: str = Field(..., min_length=1, description="Feed URL")
    fetch_interval: timedelta = Field(default=timedelta(hours=1), description="Time between passes")
    last_fetch_timestamp: Optional[datetime] = Field(default=None, description="End of last completed pass")

    @field_validator("fetch_interval")
    @classmethod
    def validate_interval(cls, v):
        """Intervals must be positive."""
        if v <= timedelta(0):
            raise ValueError("fetch_interval must be positive")
        return v

    @field_validator("last_fetch_timestamp")
    @classmethod
    def validate_timestamp(cls, v):
        return ensure_utc(v)

    def is_due(self, now: Optional[datetime] = None) -> bool:
        """Check whether the source should be fetched at ``now``."""
        if self.last_fetch_timestamp is None:
            return True
        now = ensure_utc(now) or utc_now()
        return self.last_fetch_timestamp + self.fetch_interval <= now

    def __str__(self) -> str:
        return f"FeedSource({self.url})"


_CHARSET_PATTERN = re.compile(r"charset=([\w\-]+)", re.IGNORECASE)


@dataclass(frozen=True)
class RawDocument:
    """Bytes retrieved from the network, consumed once by the extractor."""
    source_url: str
    byte_content: bytes
    content_type: str = ""
    retrieved_at: datetime = field(default_factory=utc_now)

    @property
    def charset(self) -> Optional[str]:
        match = _CHARSET_PATTERN.search(self.content_type or "")
        return match.group(1) if match else None

    @property
    def mime_type(self) -> str:
        return (self.content_type or "").split(";", 1)[0].strip().lower()

    def text(self) -> str:
        """Decode the payload using the declared charset, falling back to UTF-8."""
        charset = self.charset or "utf-8"
        try:
            return self.byte_content.decode(charset, errors="replace")
        except LookupError:
            return self.byte_content.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class FeedEntry:
    """One item enumerated from a feed document.

    ``link`` is the canonical URL used as the dedup key. ``fetch_url`` is the
    link as published, resolved against the feed, and is what gets requested.
    """
    link: str
    title: str
    source_url: str
    published_at: Optional[datetime] = None
    categories: tuple = ()
    keywords: tuple = ()
    summary: Optional[str] = None
    fetch_url: Optional[str] = None

    @property
    def request_url(self) -> str:
        return self.fetch_url or self.link


class ArticleCandidate(BaseModel):
    """Extracted article awaiting a dedup decision."""
    canonical_url: str = Field(..., min_length=1, description="Canonical article URL")
    title: str = Field(..., min_length=1, max_length=1000, description="Article title")
    normalized_text: str = Field(..., min_length=1, description="Markup-free article text")
    published_at: Optional[datetime] = Field(default=None, description="Publication date from the feed")
    discovered_at: datetime = Field(default_factory=utc_now, description="When extraction produced it")
    source_feed: Optional[str] = Field(default=None, description="Feed the entry came from")

    @field_validator("normalized_text")
    @classmethod
    def validate_text(cls, v):
        """Extraction failures must never produce candidates."""
        if not v or not v.strip():
            raise ValueError("normalized_text must be non-empty")
        return v

    @field_validator("published_at", "discovered_at")
    @classmethod
    def validate_dates(cls, v):
        return ensure_utc(v)

    def __str__(self) -> str:
        return f"ArticleCandidate({self.canonical_url})"


class ArchivedArticle(BaseModel):
    """Article accepted into the archive."""
    id: int = Field(..., description="Stable id assigned by the archive")
    canonical_url: str = Field(..., description="Unique canonical URL")
    title: str = Field(..., description="Article title")
    normalized_text: str = Field(..., description="Markup-free article text")
    published_at: Optional[datetime] = Field(default=None)
    archived_at: datetime = Field(..., description="Commit time")
    source_feed: Optional[str] = Field(default=None)
    superseded_by: Optional[int] = Field(default=None, description="Newer archived article replacing this one")

    model_config = {"frozen": True}

    @field_validator("published_at", "archived_at")
    @classmethod
    def validate_dates(cls, v):
        return ensure_utc(v)

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "ArchivedArticle":
        """Create an ArchivedArticle from a database row with ISO timestamps."""
        data = dict(row)
        for key in ("published_at", "archived_at"):
            if isinstance(data.get(key), str):
                data[key] = datetime.fromisoformat(data[key])
        return cls(**data)

    def __str__(self) -> str:
        return f"ArchivedArticle({self.id}:{self.canonical_url})"


class CandidateState(str, Enum):
    """Terminal states of one candidate within a pass."""
    PERSISTED = "persisted"
    DUPLICATE = "duplicate"
    EXTRACTION_FAILED = "extraction_failed"
    FETCH_FAILED = "fetch_failed"


@dataclass
class CandidateOutcome:
    """Where one feed entry ended up."""
    url: str
    state: CandidateState
    source_url: str
    detail: Optional[str] = None
    duplicate_of: Optional[int] = None
    similarity: Optional[float] = None
    article_id: Optional[int] = None


@dataclass
class PassResult:
    """Result of one pass over a set of feed sources."""
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    sources_processed: int = 0
    sources_failed: int = 0
    outcomes: List[CandidateOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def count(self, state: CandidateState) -> int:
        return sum(1 for outcome in self.outcomes if outcome.state == state)

    @property
    def persisted(self) -> int:
        return self.count(CandidateState.PERSISTED)

    @property
    def duplicates(self) -> int:
        return self.count(CandidateState.DUPLICATE)

    @property
    def extraction_failures(self) -> int:
        return self.count(CandidateState.EXTRACTION_FAILED)

    @property
    def fetch_failures(self) -> int:
        return self.count(CandidateState.FETCH_FAILED)

    @property
    def processing_time_seconds(self) -> float:
        if not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> Dict[str, Any]:
        """Counters for logging and the CLI summary table."""
        return {
            "sources_processed": self.sources_processed,
            "sources_failed": self.sources_failed,
            "persisted": self.persisted,
            "duplicates": self.duplicates,
            "extraction_failures": self.extraction_failures,
            "fetch_failures": self.fetch_failures,
            "processing_time_seconds": round(self.processing_time_seconds, 3),
        }
