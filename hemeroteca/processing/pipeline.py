"""
Ingestion Pipeline Orchestrator
===============================

Runs one fetch → extract → deduplicate → persist pass over a set of feed
sources.

Per-item failures (a feed that cannot be fetched or parsed, an article page
that fails, an entry without text) are isolated and recorded. Storage faults
other than a uniqueness violation abort the pass and propagate to the caller.
All archive writes and index insertions go through one writer lock.
"""

import asyncio
import inspect
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional

from ..config.settings import HemerotecaSettings, get_settings
from ..database.models import (
    ArticleCandidate,
    CandidateOutcome,
    CandidateState,
    FeedEntry,
    FeedSource,
    PassResult,
    utc_now,
)
from ..ingestion.extractor import ArticleExtractor
from ..storage.archive_store import ArchiveStore
from ..utils.exceptions import DuplicateArticleError, ExtractionError, PersistError
from ..utils.logging import PerformanceLogger, get_logger_for_component
from .deduplicator import Deduplicator
from .feed_fetcher import FeedFetcher
from .similarity_index import SimilarityIndex


SourceCallback = Callable[[FeedSource, datetime], object]


class IngestionPipeline:
    """Feed ingestion pipeline orchestrator."""

    def __init__(
        self,
        store: ArchiveStore,
        index: Optional[SimilarityIndex] = None,
        fetcher: Optional[FeedFetcher] = None,
        extractor: Optional[ArticleExtractor] = None,
        deduplicator: Optional[Deduplicator] = None,
        settings: Optional[HemerotecaSettings] = None,
    ):
        """Initialize ingestion pipeline.

        Args:
            store: Archive store receiving accepted articles
            index: Similarity index over the archive
            fetcher: Network fetcher
            extractor: Feed and article extractor
            deduplicator: Novelty decision
            settings: Application settings
        """
        self.settings = settings or get_settings()
        self.store = store
        self.index = index or SimilarityIndex(self.settings.dedup)
        self.fetcher = fetcher or FeedFetcher(self.settings.fetch)
        self.extractor = extractor or ArticleExtractor(self.settings.ingestion)
        self.deduplicator = deduplicator or Deduplicator(self.index, self.settings.dedup)
        self.logger = get_logger_for_component("pipeline")
        self._write_lock: Optional[asyncio.Lock] = None

    def initialize(self) -> int:
        """Rebuild the similarity index from the archive store."""
        return self.index.rebuild(self.store)

    async def run_pass(
        self,
        sources: Iterable[FeedSource],
        session=None,
        on_source_complete: Optional[SourceCallback] = None,
    ) -> PassResult:
        """Run one pass over ``sources``.

        Args:
            sources: Feed sources to process
            session: aiohttp-compatible session, a new one is opened if None
            on_source_complete: Called with ``(source, completed_at)`` once a
                source's pass has completed, including exhausted retries

        Returns:
            PassResult with per-candidate outcomes

        Raises:
            PersistError: A non-uniqueness storage fault; remaining sources
                are cancelled and not reported complete
        """
        sources = list(sources)
        result = PassResult()

        if session is None:
            async with self.fetcher.get_session() as own_session:
                return await self._run(sources, own_session, on_source_complete, result)
        return await self._run(sources, session, on_source_complete, result)

    async def _run(self, sources, session, on_source_complete, result: PassResult) -> PassResult:
        self._write_lock = asyncio.Lock()
        semaphore = asyncio.Semaphore(self.settings.fetch.parallel_feeds)

        async def run_source(source: FeedSource) -> None:
            async with semaphore:
                await self.process_source(source, session, result)
            if on_source_complete is not None:
                callback_result = on_source_complete(source, utc_now())
                if inspect.isawaitable(callback_result):
                    await callback_result

        self.logger.info(f"Starting pass over {len(sources)} feed sources")

        with PerformanceLogger(self.logger, "ingestion pass", sources=len(sources)):
            tasks = [asyncio.ensure_future(run_source(source)) for source in sources]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    if not task.done():
                        task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            finally:
                result.finished_at = utc_now()

        self.logger.info("Pass complete", extra=result.summary())
        return result

    async def process_source(self, source: FeedSource, session, result: PassResult) -> None:
        """Fetch, extract and commit the entries of one feed source.

        Any failure other than a storage fault is confined to this source.
        """
        logger = get_logger_for_component("pipeline", source_url=source.url)
        try:
            await self._process_source(source, session, result, logger)
        except PersistError:
            raise
        except Exception as e:
            self._source_failed(result, source, logger, f"Source aborted: {e}", type(e).__name__, e)

    def _source_failed(self, result: PassResult, source: FeedSource, logger, message, failure_kind, error) -> None:
        result.sources_failed += 1
        result.errors.append(f"{source.url}: {error}")
        logger.warning(message, extra={"failure_kind": failure_kind})

    async def _process_source(self, source: FeedSource, session, result: PassResult, logger) -> None:
        feed_result = await self.fetcher.fetch_feed(source, session)
        if not feed_result.success:
            self._source_failed(
                result, source, logger,
                f"Feed fetch failed, skipping source for this pass: {feed_result.error}",
                type(feed_result.error).__name__, feed_result.error,
            )
            return

        try:
            entries = self.extractor.parse_feed(feed_result.document)
        except ExtractionError as e:
            self._source_failed(result, source, logger, f"Feed could not be parsed: {e}", "ExtractionError", e)
            return

        entries = self.extractor.filter_entries(entries)

        # Keyed by the URL actually requested
        pending: Dict[str, FeedEntry] = {}
        for entry in entries:
            known_id = self.deduplicator.is_known_url(entry.link)
            if known_id is not None:
                self._record(result, CandidateOutcome(
                    url=entry.link,
                    state=CandidateState.DUPLICATE,
                    source_url=source.url,
                    detail="canonical URL already archived",
                    duplicate_of=known_id,
                ))
            else:
                pending[entry.request_url] = entry

        async for page in self.fetcher.fetch_pages(list(pending), session):
            entry = pending[page.url]

            if not page.success:
                self._record(result, CandidateOutcome(
                    url=entry.link,
                    state=CandidateState.FETCH_FAILED,
                    source_url=source.url,
                    detail=str(page.error),
                ))
                continue

            try:
                candidate = self.extractor.extract(page.document, entry)
            except ExtractionError as e:
                self._record(result, CandidateOutcome(
                    url=entry.link,
                    state=CandidateState.EXTRACTION_FAILED,
                    source_url=source.url,
                    detail=e.reason,
                ))
                continue

            await self.commit_candidate(candidate, result)

        result.sources_processed += 1
        logger.info(f"Processed {len(entries)} entries")

    async def commit_candidate(self, candidate: ArticleCandidate, result: PassResult) -> CandidateOutcome:
        """Decide on a candidate and archive it if novel.

        The decision is taken optimistically on the current snapshot, then
        repeated under the writer lock if the index changed meanwhile. Both
        scans run in the default executor so the event loop keeps serving
        fetches.
        """
        source_url = candidate.source_feed or ""
        loop = asyncio.get_running_loop()
        observed = self.index.snapshot
        decision = await loop.run_in_executor(None, self.deduplicator.decide, candidate, observed)

        if decision.accepted:
            if self._write_lock is None:
                self._write_lock = asyncio.Lock()

            async with self._write_lock:
                current = self.index.snapshot
                if current.version != observed.version:
                    decision = await loop.run_in_executor(None, self.deduplicator.decide, candidate, current)

                if decision.accepted:
                    try:
                        article = self.store.persist(candidate)
                    except DuplicateArticleError:
                        existing = self.store.get_by_url(candidate.canonical_url)
                        return self._record(result, CandidateOutcome(
                            url=candidate.canonical_url,
                            state=CandidateState.DUPLICATE,
                            source_url=source_url,
                            detail="canonical URL already archived",
                            duplicate_of=existing.id if existing else None,
                        ))
                    self.index.add(article)
                    return self._record(result, CandidateOutcome(
                        url=candidate.canonical_url,
                        state=CandidateState.PERSISTED,
                        source_url=source_url,
                        article_id=article.id,
                        similarity=decision.similarity,
                    ))

        return self._record(result, CandidateOutcome(
            url=candidate.canonical_url,
            state=CandidateState.DUPLICATE,
            source_url=source_url,
            detail=decision.describe(),
            duplicate_of=decision.duplicate_of,
            similarity=decision.similarity,
        ))

    def _record(self, result: PassResult, outcome: CandidateOutcome) -> CandidateOutcome:
        result.outcomes.append(outcome)

        extra = {
            "source_url": outcome.source_url,
            "candidate_url": outcome.url,
            "outcome": outcome.state.value,
        }
        if outcome.state == CandidateState.PERSISTED:
            self.logger.info(f"Archived {outcome.url} as #{outcome.article_id}", extra=extra)
            return outcome

        extra["failure_kind"] = outcome.state.value
        if outcome.state == CandidateState.DUPLICATE:
            self.logger.info(f"Discarded {outcome.url}: {outcome.detail}", extra=extra)
        else:
            self.logger.warning(
                f"Discarded {outcome.url} ({outcome.state.value}): {outcome.detail}", extra=extra
            )
        return outcome
