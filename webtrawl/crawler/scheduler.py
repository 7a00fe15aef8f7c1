"""
Crawler scheduler that coordinates crawling tasks and manages the overall crawl process.
"""

import asyncio
import contextlib
import logging
import time
from enum import Enum
from typing import Dict, List, Optional
from dataclasses import dataclass

from .url_frontier import URLFrontier, Target, normalize_url
from .fetcher import WebFetcher, FetchResult
from .parser import LinkExtractor
from .scope import ScopePolicy
from .rate_limiter import RateLimiter
from .modes import CrawlStrategy, create_strategy
from .results import CrawlResult, CrawlSummary, StatusFilter
from ..reporting.reporter import ResultReporter
from ..utils.config import CrawlerConfig
from ..utils.logger import CrawlerLogAdapter, get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


class CrawlState(Enum):
    """Lifecycle of a crawl run."""
    IDLE = 'idle'
    RUNNING = 'running'
    DRAINING = 'draining'
    COMPLETED = 'completed'


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    urls_fetched: int = 0
    errors: int = 0
    interesting: int = 0
    scope_denied: int = 0
    links_discovered: int = 0
    links_queued: int = 0
    total_bytes_downloaded: int = 0
    average_response_time: float = 0.0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.urls_fetched / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerScheduler:
    """
    Runs a fixed pool of workers over a shared frontier.

    Each worker repeatedly dequeues a target, checks scope, waits on the
    global rate limiter, fetches, optionally expands the page's links back
    into the frontier, and reports one CrawlResult. The run completes when
    the frontier is empty and no target is in flight.
    """

    def __init__(self, config: CrawlerConfig, reporter: ResultReporter,
                 fetcher: Optional[WebFetcher] = None,
                 extractor: Optional[LinkExtractor] = None,
                 strategy: Optional[CrawlStrategy] = None,
                 monitor: Optional[CrawlerMonitor] = None,
                 stats_interval: float = 30.0):
        self.config = config
        self.reporter = reporter
        self.logger = logging.getLogger(__name__)

        # Components
        self.fetcher = fetcher or WebFetcher(
            user_agent=config.user_agent,
            request_timeout=config.request_timeout,
            max_concurrent_requests=config.max_threads,
            max_redirects=config.max_redirects,
            max_body_size=config.max_body_size,
            verify_ssl=config.verify_ssl
        )
        self.extractor = extractor or LinkExtractor()
        self.strategy = strategy or create_strategy(config)
        self.monitor = monitor
        self.frontier = URLFrontier()
        self.rate_limiter = RateLimiter(config.rate_limit_ms)
        self.status_filter = StatusFilter(config.status_include, config.status_exclude)
        self.scope: Optional[ScopePolicy] = None

        # Crawl state
        self.state = CrawlState.IDLE
        self.stats = CrawlStats(start_time=time.time())
        self.workers: List[asyncio.Task] = []
        self.stats_interval = stats_interval
        self._active_workers = 0

    async def initialize(self):
        """Initialize crawler components."""
        await self.fetcher.start()
        self.logger.info(f"Crawler scheduler initialized with {self.strategy!r}")

    async def add_seed_urls(self) -> int:
        """Capture the scope set and seed the frontier. Returns the count of queued seeds."""
        seed_targets = list(self.strategy.seed_targets())

        self.scope = ScopePolicy.from_urls(
            [*self.config.seed_urls, *(target.url for target in seed_targets)],
            scoped=self.config.scoped,
            include_subdomains=self.config.include_subdomains
        )
        self.logger.info(f"Scope: {self.scope!r}")

        added_count = 0
        for target in seed_targets:
            if await self.frontier.enqueue(target):
                added_count += 1

        self.logger.info(f"Added {added_count} seed URLs to frontier")
        return added_count

    async def start_crawling(self) -> CrawlSummary:
        """
        Run the crawl to completion.

        Returns:
            The summary that was also handed to the reporter
        """
        if self.state is not CrawlState.IDLE:
            raise RuntimeError(f"Crawler cannot start from state {self.state.name}")

        self.state = CrawlState.RUNNING
        self.stats = CrawlStats(start_time=time.time())

        try:
            await self.initialize()
            await self.add_seed_urls()

            num_workers = self.config.max_threads
            self.workers = [
                asyncio.create_task(self._worker(f"worker-{i}"))
                for i in range(num_workers)
            ]

            stats_task = asyncio.create_task(self._stats_reporter())
            self.logger.info(f"Started crawling with {num_workers} workers")

            try:
                await asyncio.gather(*self.workers)
            finally:
                stats_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await stats_task
        finally:
            self.state = CrawlState.COMPLETED
            self.workers.clear()

        summary = CrawlSummary(
            total_fetched=self.stats.urls_fetched,
            total_errors=self.stats.errors,
            elapsed=self.stats.elapsed_time,
            total_interesting=self.stats.interesting,
            total_bytes=self.stats.total_bytes_downloaded
        )
        await self.reporter.summarize(summary)
        self._log_final_stats()
        return summary

    async def _worker(self, worker_id: str):
        """
        Worker coroutine that processes targets from the frontier.
        """
        logger = get_crawler_logger(__name__, worker=worker_id)
        logger.debug("Worker started")

        while True:
            target = await self.frontier.dequeue()
            if target is None:
                self._begin_draining()
                break

            self._active_workers += 1
            self._update_gauges()
            try:
                await self._process_target(target, logger)
            except Exception as e:
                logger.exception(f"Error processing {target.url}: {e}")
            finally:
                self._active_workers -= 1
                await self.frontier.task_done()

        logger.debug("Worker finished")

    async def _process_target(self, target: Target, logger: CrawlerLogAdapter):
        """Process a single target."""
        if not self.scope.is_allowed(target.url):
            self.stats.scope_denied += 1
            logger.debug(f"Out of scope, skipping: {target.url}")
            return

        await self.rate_limiter.acquire()
        fetch_result = await self.fetcher.fetch(target.url)
        self.stats.urls_fetched += 1

        interesting = False
        link_count = 0
        error = fetch_result.error
        if fetch_result.ok:
            try:
                await self._mark_redirect_seen(target, fetch_result, logger)
                interesting = self.status_filter.is_allowed(fetch_result.status_code)
                if self._should_expand(target, interesting):
                    link_count = await self._queue_new_urls(target, fetch_result, logger)
            except Exception as e:
                logger.exception(f"Error processing response from {target.url}: {e}")
                interesting = False
                error = f"Processing error: {e}"
        else:
            logger.info(f"Failed to fetch {target.url}: {error}")

        result = CrawlResult(
            url=target.url,
            status_code=fetch_result.status_code if fetch_result.ok else None,
            content_type=fetch_result.content_type,
            byte_size=len(fetch_result.body),
            discovered_link_count=link_count,
            error=error,
            final_url=fetch_result.final_url,
            depth=target.depth,
            interesting=interesting,
            fetch_time=fetch_result.fetch_time
        )
        self._record(result, fetch_result)
        await self.reporter.report(result)

    async def _mark_redirect_seen(self, target: Target, fetch_result: FetchResult,
                                  logger: CrawlerLogAdapter):
        """Add the post-redirect URL to the visited set so links to it are not fetched again."""
        if not fetch_result.final_url:
            return
        final_url = normalize_url(fetch_result.final_url)
        if final_url != target.url and await self.frontier.mark_seen(final_url):
            logger.debug(f"{target.url} redirected to {final_url}")

    def _should_expand(self, target: Target, interesting: bool) -> bool:
        if not interesting and not self.config.expand_filtered_results:
            return False
        return self.strategy.should_expand(target)

    async def _queue_new_urls(self, target: Target, fetch_result: FetchResult,
                              logger: CrawlerLogAdapter) -> int:
        """Extract links from a fetched page and queue the in-scope ones. Returns links found."""
        base_url = fetch_result.final_url or target.url
        found = 0
        queued = 0

        for link in self.extractor.extract(base_url, fetch_result.content_type,
                                           fetch_result.body, fetch_result.encoding):
            found += 1
            if not self.scope.is_allowed(link):
                continue
            if await self.frontier.enqueue(target.child(link)):
                queued += 1

        self.stats.links_discovered += found
        self.stats.links_queued += queued
        if self.monitor:
            self.monitor.record_links(found)
        logger.debug(f"Queued {queued} of {found} links from {target.url}")
        return found

    def _record(self, result: CrawlResult, fetch_result: FetchResult):
        """Update statistics and metrics for a finished fetch."""
        if result.failed:
            self.stats.errors += 1
        else:
            self.stats.total_bytes_downloaded += result.byte_size
            self.stats.average_response_time = (
                (self.stats.average_response_time * (self.stats.urls_fetched - 1) + result.fetch_time)
                / self.stats.urls_fetched
            )
        if result.interesting:
            self.stats.interesting += 1

        if self.monitor:
            if result.failed:
                self.monitor.record_error(fetch_result.error_type or 'processing')
            else:
                self.monitor.record_fetch(result.status_code, result.fetch_time, result.byte_size)

    def _begin_draining(self):
        if self.state is CrawlState.RUNNING:
            self.state = CrawlState.DRAINING
            self.logger.info("Frontier closed, draining in-flight fetches")

    def _update_gauges(self):
        if self.monitor:
            self.monitor.update_active_workers(self._active_workers)
            self.monitor.update_queue_size(len(self.frontier))

    async def _stats_reporter(self):
        """Periodically log crawl statistics."""
        while True:
            await asyncio.sleep(self.stats_interval)
            self._update_gauges()
            self._log_current_stats()

    def _log_current_stats(self):
        """Log current crawl statistics."""
        frontier_stats = self.frontier.get_stats()
        self.logger.info(
            f"Crawl Progress: "
            f"Fetched={self.stats.urls_fetched}, "
            f"Interesting={self.stats.interesting}, "
            f"Queued={frontier_stats['total_queued']}, "
            f"InFlight={frontier_stats['in_flight']}, "
            f"Errors={self.stats.errors}, "
            f"Rate={self.stats.pages_per_minute:.1f} pages/min, "
            f"AvgTime={self.stats.average_response_time:.2f}s"
        )

    def _log_final_stats(self):
        """Log final crawl statistics."""
        frontier_stats = self.frontier.get_stats()

        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Total URLs fetched: {self.stats.urls_fetched}")
        self.logger.info(f"Interesting results: {self.stats.interesting}")
        self.logger.info(f"Errors: {self.stats.errors}")
        self.logger.info(f"Out of scope skipped: {self.stats.scope_denied}")
        self.logger.info(f"Links discovered: {self.stats.links_discovered} ({self.stats.links_queued} queued)")
        self.logger.info(f"Unique URLs seen: {frontier_stats['total_visited']}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Data downloaded: {self.stats.total_bytes_downloaded / 1024 / 1024:.1f} MB")
        self.logger.info(f"Rate limiter waited: {self.rate_limiter.total_wait_time:.2f} seconds")
        if self.monitor:
            metrics = self.monitor.get_summary()
            self.logger.info(f"Throughput: {metrics['fetches_per_second']:.2f} fetches/s "
                             f"({metrics['fetches']:.0f} recorded by metrics)")

    async def stop_crawling(self):
        """
        Stop the crawl gracefully.

        Queued targets are discarded; fetches already in progress finish and
        are reported before the run completes.
        """
        self.logger.info("Stopping crawler...")
        self._begin_draining()
        await self.frontier.close()

    async def close(self):
        """Close all connections and cleanup resources."""
        if self.state in (CrawlState.RUNNING, CrawlState.DRAINING):
            await self.stop_crawling()

        await self.fetcher.close()
        await self.reporter.close()
        self.logger.info("Crawler scheduler closed")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        return {
            'state': self.state.value,
            'urls_fetched': self.stats.urls_fetched,
            'interesting': self.stats.interesting,
            'errors': self.stats.errors,
            'scope_denied': self.stats.scope_denied,
            'links_discovered': self.stats.links_discovered,
            'elapsed_time': self.stats.elapsed_time,
            'pages_per_minute': self.stats.pages_per_minute,
            'average_response_time': self.stats.average_response_time,
            'total_bytes_downloaded': self.stats.total_bytes_downloaded,
            **self.frontier.get_stats()
        }
