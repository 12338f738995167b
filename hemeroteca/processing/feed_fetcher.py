"""
Feed Fetcher
============

Concurrent retrieval of feed documents and linked article pages with
per-request timeouts and retry with exponential backoff.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncGenerator, Iterable, Optional

import aiohttp
import certifi

from ..config.settings import FetchSettings, get_settings
from ..database.models import FeedSource, RawDocument
from ..recovery.retry_logic import RetryConfig, RetryManager
from ..utils.exceptions import FetchError, FetchFailed, FetchTimeout
from ..utils.logging import get_logger_for_component


@dataclass
class FetchResult:
    """Result of fetching one URL."""

    url: str
    success: bool
    document: Optional[RawDocument] = None
    error: Optional[FetchError] = None
    fetch_time: Optional[datetime] = None

    def __post_init__(self):
        if not self.fetch_time:
            self.fetch_time = datetime.now(timezone.utc)


class FeedFetcher:
    """Concurrent fetcher for feeds and article pages."""

    def __init__(
        self,
        settings: Optional[FetchSettings] = None,
        retry_manager: Optional[RetryManager] = None,
    ):
        """Initialize feed fetcher.

        Args:
            settings: Fetch settings (default from global config)
            retry_manager: Retry manager for transient failures
        """
        self.settings = settings or get_settings().fetch
        self.timeout = self.settings.request_timeout
        self.retry_manager = retry_manager or RetryManager(
            RetryConfig.from_fetch_settings(self.settings)
        )
        self.logger = get_logger_for_component("feed_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self):
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=self.settings.parallel_feeds * self.settings.parallel_links_per_feed,
            limit_per_host=self.settings.parallel_links_per_feed,
            enable_cleanup_closed=True,
        )

        timeout = aiohttp.ClientTimeout(total=self.timeout)

        headers = {
            "User-Agent": self.settings.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, "
                      "text/xml, text/html;q=0.9, */*;q=0.8",
            "Accept-Encoding": "gzip, deflate",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def _request(self, url: str, session) -> RawDocument:
        async with session.get(url) as response:
            if not 200 <= response.status < 300:
                reason = getattr(response, "reason", None) or ""
                raise FetchFailed(
                    f"HTTP {response.status} {reason}".strip(),
                    url=url,
                    cause=f"http_{response.status}",
                    status=response.status,
                    recoverable=response.status in self.settings.retry_status_codes,
                )

            body = await response.read()
            return RawDocument(
                source_url=url,
                byte_content=body,
                content_type=response.headers.get("Content-Type", ""),
            )

    async def _fetch_once(self, url: str, session) -> RawDocument:
        """Single attempt bounded by the request timeout."""
        try:
            return await asyncio.wait_for(self._request(url, session), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise FetchTimeout(
                f"Request timeout after {self.timeout}s", url=url, timeout=self.timeout
            )
        except aiohttp.ClientError as e:
            raise FetchFailed(
                f"Network error: {e}", url=url, cause=type(e).__name__
            ) from e
        except OSError as e:
            raise FetchFailed(
                f"Connection error: {e}", url=url, cause=type(e).__name__
            ) from e

    async def fetch_document(self, url: str, session) -> RawDocument:
        """Fetch one URL, retrying transient failures.

        Args:
            url: Feed or article URL
            session: aiohttp session for requests

        Returns:
            Retrieved document

        Raises:
            FetchTimeout: The last attempt stalled past the request timeout
            FetchFailed: Network or HTTP status failure
        """
        return await self.retry_manager.retry_async(
            self._fetch_once, url, session, operation=f"fetch {url}"
        )

    async def fetch_url(self, url: str, session) -> FetchResult:
        """Fetch one URL and wrap the outcome in a FetchResult."""
        start_time = datetime.now(timezone.utc)
        try:
            document = await self.fetch_document(url, session)
        except FetchError as e:
            self.logger.warning(
                f"Fetch failed for {url}: {e}",
                extra={"candidate_url": url, "failure_kind": type(e).__name__},
            )
            return FetchResult(url=url, success=False, error=e, fetch_time=start_time)

        self.logger.debug(
            f"Fetched {len(document.byte_content)} bytes from {url} "
            f"in {(datetime.now(timezone.utc) - start_time).total_seconds():.2f}s"
        )
        return FetchResult(url=url, success=True, document=document, fetch_time=start_time)

    async def fetch_feed(self, source: FeedSource, session) -> FetchResult:
        """Fetch the feed document of a source.

        Args:
            source: Feed source to fetch
            session: aiohttp session for requests

        Returns:
            FetchResult with the raw feed document or the error
        """
        result = await self.fetch_url(source.url, session)
        if result.success:
            self.logger.info(f"Fetched feed {source.url}", extra={"source_url": source.url})
        return result

    async def fetch_pages(
        self, urls: Iterable[str], session
    ) -> AsyncGenerator[FetchResult, None]:
        """Fetch the article pages of one feed concurrently.

        Concurrency is bounded by ``parallel_links_per_feed``; results are
        yielded as they complete.

        Args:
            urls: Article URLs of one feed
            session: aiohttp session for requests

        Yields:
            FetchResult objects as pages are processed
        """
        urls = list(urls)
        if not urls:
            return

        semaphore = asyncio.Semaphore(self.settings.parallel_links_per_feed)

        async def fetch_with_semaphore(url: str) -> FetchResult:
            async with semaphore:
                return await self.fetch_url(url, session)

        tasks = [asyncio.ensure_future(fetch_with_semaphore(url)) for url in urls]
        try:
            for completed_task in asyncio.as_completed(tasks):
                yield await completed_task
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
