"""
Hemeroteca Feed Scheduler
=========================

Owns the feed sources and their fetch timestamps and drives the ingestion
pipeline over the sources that are due.

Features:
- Feeds file loading and synchronization into the database
- Due-source selection per configured interval
- Timestamps advanced only after a source's pass completes
- Single pass (cron/systemd timers) or polling loop operation
"""

import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..config.settings import HemerotecaSettings, get_settings
from ..database.models import FeedSource, PassResult, ensure_utc, utc_now
from ..processing.pipeline import IngestionPipeline
from ..storage.feed_repository import FeedSourceRepository
from ..utils.exceptions import ConfigurationError, ErrorCode, ValidationError
from ..utils.logging import get_logger_for_component
from ..utils.validators import URLValidator


logger = get_logger_for_component("feed_scheduler")


def read_feed_sources(path: Union[str, Path], default_interval_minutes: int = 60) -> List[FeedSource]:
    """Parse a feeds file.

    One entry per line: ``URL [interval_minutes]``. Blank lines and lines
    starting with ``#`` are ignored; lines that are not http(s) URLs or have
    an invalid interval are skipped with a warning. Repeated URLs keep the
    last entry.

    Raises:
        ConfigurationError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(
            f"Feeds file not found: {path}",
            config_key="ingestion.feeds_file",
            error_code=ErrorCode.CONFIG_MISSING,
        )

    sources: Dict[str, FeedSource] = {}
    for line_number, raw_line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        parts = line.split()
        url = parts[0]
        if not URLValidator.is_valid_url(url):
            logger.warning(f"{path}:{line_number}: not a feed URL, skipping: {line}")
            continue

        interval = default_interval_minutes
        if len(parts) > 1:
            try:
                interval = int(parts[1])
            except ValueError:
                interval = 0
            if interval <= 0:
                logger.warning(f"{path}:{line_number}: invalid interval '{parts[1]}', skipping")
                continue

        try:
            url = URLValidator.validate_feed_url(url)
        except ValidationError as e:
            logger.warning(f"{path}:{line_number}: {e}")
            continue

        sources[url] = FeedSource(url=url, fetch_interval=timedelta(minutes=interval))

    return list(sources.values())


class FeedScheduler:
    """
    Coordinates ingestion passes over the configured feed sources.

    The scheduler is the single writer of ``last_fetch_timestamp``.
    """

    def __init__(
        self,
        repository: FeedSourceRepository,
        pipeline: IngestionPipeline,
        settings: Optional[HemerotecaSettings] = None,
    ):
        self.repository = repository
        self.pipeline = pipeline
        self.settings = settings or get_settings()
        self.logger = logger
        self._configured_urls: Optional[List[str]] = None
        self._stop_event: Optional[asyncio.Event] = None

    def load_sources(self, path: Optional[Union[str, Path]] = None) -> List[FeedSource]:
        """Read the feeds file and sync it into the repository.

        Only the URLs listed in the file are scheduled afterwards; existing
        fetch timestamps are preserved.
        """
        path = path or self.settings.ingestion.feeds_file
        sources = read_feed_sources(path, self.settings.ingestion.default_fetch_interval_minutes)
        self.repository.sync_sources(sources)
        self._configured_urls = [source.url for source in sources]
        self.logger.info(f"Loaded {len(sources)} feed sources from {path}")
        return self.repository.list_sources(self._configured_urls)

    def due_sources(self, now: Optional[datetime] = None) -> List[FeedSource]:
        """Sources whose interval has elapsed at ``now``."""
        now = ensure_utc(now) or utc_now()
        return [
            source
            for source in self.repository.list_sources(self._configured_urls)
            if source.is_due(now)
        ]

    def _mark_complete(self, source: FeedSource, completed_at: datetime) -> None:
        self.repository.update_last_fetch(source.url, completed_at)

    async def run_once(self, now: Optional[datetime] = None, session=None) -> PassResult:
        """Run one pass over the due sources.

        Returns:
            PassResult of the pass (empty if nothing was due)
        """
        due = self.due_sources(now)
        if not due:
            self.logger.info("No feed sources due")
            result = PassResult()
            result.finished_at = result.started_at
            return result

        self.logger.info(f"{len(due)} feed sources due")
        return await self.pipeline.run_pass(
            due, session=session, on_source_complete=self._mark_complete
        )

    async def run_forever(self, poll_seconds: float = 60.0) -> None:
        """Run passes until ``stop()`` is called.

        A fatal storage error ends the loop and propagates.
        """
        self._stop_event = asyncio.Event()
        self.logger.info(f"Scheduler started, polling every {poll_seconds}s")

        while not self._stop_event.is_set():
            result = await self.run_once()
            if result.sources_processed or result.sources_failed:
                self.logger.info("Pass summary", extra=result.summary())

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=poll_seconds)
            except asyncio.TimeoutError:
                pass

        self.logger.info("Scheduler stopped")

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
