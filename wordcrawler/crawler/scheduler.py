"""
Crawl schedulers that turn "visit this URL" into a tree of sub-visits.

Every task goes through the same admission checks, in order:

1. no depth budget left
2. crawl deadline passed
3. URL fully matches an exclusion pattern
4. URL already claimed by another task
5. robots.txt disallows the URL (the claim from step 4 stands)

An admitted task waits for its origin's throttle, fetches the page, adds
the page's words to the crawl's counts and then recurses into every
outlink with one less level of depth.
"""

import asyncio
import functools
import logging
import os
import re
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Pattern, Sequence, Set

from .fetcher import PageFetchError, PageSource
from .parser import PageContent
from .ranking import sort_word_counts
from .robots import RobotsPolicy
from .task import CrawlResult, CrawlTask, RecursionMode
from .throttle import DomainThrottle
from ..storage.tally import WordTally
from ..storage.visited import VisitedRegistry
from ..utils.config import Config
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlerMonitor
from ..utils.url import get_origin

REJECT_DEPTH = 'depth'
REJECT_DEADLINE = 'deadline'
REJECT_EXCLUDED = 'excluded'
REJECT_VISITED = 'visited'
REJECT_ROBOTS = 'robots'


@dataclass
class CrawlStats:
    """Statistics for one crawl."""
    start_time: float
    pages_fetched: int = 0
    fetch_failures: int = 0
    words_counted: int = 0
    branch_errors: int = 0
    rejections: Dict[str, int] = field(default_factory=dict)

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_fetched / elapsed_minutes if elapsed_minutes > 0 else 0

    def record_rejection(self, reason: str):
        self.rejections[reason] = self.rejections.get(reason, 0) + 1


@dataclass
class CrawlContext:
    """State shared by every task of one crawl and dropped when it ends."""
    deadline: float
    visited: VisitedRegistry
    tally: WordTally
    throttle: DomainThrottle
    stats: CrawlStats
    robots: Optional[RobotsPolicy] = None
    pool: Optional[asyncio.Semaphore] = None
    pending: Set[asyncio.Future] = field(default_factory=set)


class CrawlScheduler:
    """
    Base class holding the admission and visit logic.

    Subclasses decide how admitted tasks recurse into their children.
    """

    def __init__(self, page_source: PageSource, *,
                 max_depth: int = 1,
                 timeout: float = 1.0,
                 popular_word_count: int = 0,
                 excluded_urls: Optional[Iterable] = None,
                 user_agent: str = 'WordCrawler',
                 throttle_delay_ms: int = 0,
                 respect_robots_txt: bool = True,
                 monitor: Optional[CrawlerMonitor] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.page_source = page_source
        self.max_depth = max_depth
        self.timeout = timeout
        self.popular_word_count = popular_word_count
        self.excluded_urls: List[Pattern] = [
            re.compile(pattern) if isinstance(pattern, str) else pattern
            for pattern in (excluded_urls or [])
        ]
        self.user_agent = user_agent
        self.throttle_delay_ms = throttle_delay_ms
        self.respect_robots_txt = respect_robots_txt
        self.monitor = monitor
        self.clock = clock

        self.logger = get_crawler_logger(__name__, component=type(self).__name__)

    def get_concurrency_level(self) -> int:
        raise NotImplementedError

    async def crawl(self, seed_urls: Sequence[str], max_depth: Optional[int] = None,
                    timeout: Optional[float] = None) -> CrawlResult:
        """
        Crawl from the seed URLs and rank the words found.

        Args:
            seed_urls: URLs to start from
            max_depth: Overrides the configured depth; 1 visits the seeds only
            timeout: Overrides the configured wall-clock budget in seconds

        Returns:
            CrawlResult with the top words and the number of claimed URLs
        """
        max_depth = self.max_depth if max_depth is None else max_depth
        timeout = self.timeout if timeout is None else timeout

        deadline = self.clock() + timeout
        context = self._new_context(deadline)
        roots = [CrawlTask(url=url, remaining_depth=max_depth, deadline=deadline)
                 for url in seed_urls]

        self.logger.info(
            f"Starting crawl of {len(roots)} seed URLs with max depth {max_depth}, "
            f"timeout {timeout}s, concurrency {self.get_concurrency_level()}"
        )

        try:
            await self._run(roots, context)
        finally:
            if context.robots:
                await context.robots.close()

        counts = context.tally.snapshot()
        if not counts:
            self.logger.warning("No words found during the crawl.")

        result = CrawlResult(
            word_frequency_map=sort_word_counts(counts, self.popular_word_count),
            total_urls_visited=len(context.visited)
        )
        self._log_final_stats(context, result)
        return result

    def _new_context(self, deadline: float) -> CrawlContext:
        robots = None
        if self.respect_robots_txt:
            robots = RobotsPolicy(self.user_agent, self.page_source.fetch_text)

        return CrawlContext(
            deadline=deadline,
            visited=VisitedRegistry(),
            tally=WordTally(),
            throttle=DomainThrottle(self.throttle_delay_ms, self.monitor),
            stats=CrawlStats(start_time=time.time()),
            robots=robots
        )

    async def _run(self, roots: List[CrawlTask], context: CrawlContext):
        raise NotImplementedError

    def is_excluded(self, url: str) -> bool:
        return any(pattern.fullmatch(url) for pattern in self.excluded_urls)

    async def _admit(self, task: CrawlTask, context: CrawlContext) -> bool:
        """Run the admission checks; True means the task should be visited."""
        if task.remaining_depth <= 0:
            return self._reject(task, context, REJECT_DEPTH)

        if self.clock() > task.deadline:
            return self._reject(task, context, REJECT_DEADLINE)

        if self.is_excluded(task.url):
            return self._reject(task, context, REJECT_EXCLUDED)

        if not context.visited.try_claim(task.url):
            return self._reject(task, context, REJECT_VISITED)

        if context.robots and not await context.robots.is_allowed(task.url):
            return self._reject(task, context, REJECT_ROBOTS)

        return True

    def _reject(self, task: CrawlTask, context: CrawlContext, reason: str) -> bool:
        context.stats.record_rejection(reason)
        if self.monitor:
            self.monitor.record_rejection(task.url, reason)
        self.logger.log_url_event(logging.DEBUG, task.url, f"Skipping {task.url}: {reason}")
        return False

    async def _visit(self, task: CrawlTask, context: CrawlContext) -> PageContent:
        """
        Throttle, fetch and parse an admitted URL.

        A failed fetch yields an empty page; cancellation propagates.
        """
        try:
            await context.throttle.acquire(get_origin(task.url) or task.url)
            page = await self._fetch_page(task, context)
        except PageFetchError as e:
            page = self._failed_page(task, context, str(e))
            self.logger.warning(f"Failed to fetch {task.url}: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            page = self._failed_page(task, context, str(e))
            self.logger.error(f"Error processing {task.url}: {e}", exc_info=True)

        context.stats.pages_fetched += 1
        context.stats.words_counted += len(page.words)
        if self.monitor:
            self.monitor.record_words(len(page.words))

        self.logger.debug(f"Visited {task.url}: {len(page.words)} words, {len(page.links)} links")
        return page

    async def _fetch_page(self, task: CrawlTask, context: CrawlContext) -> PageContent:
        if self.monitor:
            self.monitor.record_url_visited(task.url)
            self.monitor.visit_started()
        start_time = time.monotonic()

        try:
            return await self.page_source.fetch_and_parse(task.url)
        finally:
            if self.monitor:
                self.monitor.visit_finished()
                self.monitor.observe_fetch_time(time.monotonic() - start_time)

    def _failed_page(self, task: CrawlTask, context: CrawlContext, error: str) -> PageContent:
        context.stats.fetch_failures += 1
        if self.monitor:
            self.monitor.record_fetch_failure(task.url, error)
        return PageContent(url=task.url)

    def _log_branch_outcomes(self, tasks: Sequence[CrawlTask], results: Sequence,
                             context: CrawlContext) -> List[Counter]:
        """Log failed branches of a gather and return the successful results."""
        successful = []
        for task, result in zip(tasks, results):
            if isinstance(result, asyncio.CancelledError):
                self.logger.warning(f"Crawl branch cancelled at {task.url}")
            elif isinstance(result, BaseException):
                context.stats.branch_errors += 1
                self.logger.error(f"Crawl branch failed at {task.url}: {result!r}",
                                  extra={'extra_fields': task.to_dict()})
            else:
                successful.append(result)
        return successful

    def _log_final_stats(self, context: CrawlContext, result: CrawlResult):
        stats = context.stats
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Total URLs visited: {result.total_urls_visited}")
        self.logger.info(f"Pages fetched: {stats.pages_fetched}")
        self.logger.info(f"Fetch failures: {stats.fetch_failures}")
        self.logger.info(f"Words counted: {stats.words_counted}")
        self.logger.info(f"Rejected tasks: {stats.rejections}")
        self.logger.info(f"Total time: {stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average rate: {stats.pages_per_minute:.1f} pages/min")
        self.logger.log_crawler_stat('distinct_words', len(context.tally))


class ParallelCrawlScheduler(CrawlScheduler):
    """
    Fans each page out into concurrent child visits.

    At most ``concurrency_level`` pages are being fetched at any time. A
    slot is taken only after the origin's throttle lets the task through
    and is never held while a task waits for its children.
    """

    def __init__(self, page_source: PageSource, *,
                 concurrency_level: int = -1,
                 recursion_mode: RecursionMode = RecursionMode.JOIN,
                 **kwargs):
        super().__init__(page_source, **kwargs)
        self.concurrency_level = concurrency_level if concurrency_level > 0 else (os.cpu_count() or 1)
        self.recursion_mode = recursion_mode

    def get_concurrency_level(self) -> int:
        return self.concurrency_level

    async def _run(self, roots: List[CrawlTask], context: CrawlContext):
        context.pool = asyncio.Semaphore(self.concurrency_level)

        if self.recursion_mode is RecursionMode.JOIN:
            results = await asyncio.gather(
                *(self._process_join(root, context) for root in roots),
                return_exceptions=True
            )
            for counts in self._log_branch_outcomes(roots, results, context):
                context.tally.merge(counts)
            return

        for root in roots:
            self._spawn(root, context)
        try:
            await self._drain(context)
        finally:
            await self._cancel_pending(context)

    async def _fetch_page(self, task: CrawlTask, context: CrawlContext) -> PageContent:
        async with context.pool:
            return await super()._fetch_page(task, context)

    async def _process_join(self, task: CrawlTask, context: CrawlContext) -> Counter:
        """Visit a URL and return the word counts of its whole subtree."""
        counts: Counter = Counter()
        if not await self._admit(task, context):
            return counts

        page = await self._visit(task, context)
        counts.update(page.words)

        children = [task.child(link) for link in page.links]
        if children:
            self.logger.debug(f"Invoking {len(children)} subtasks for {task.url}")
            results = await asyncio.gather(
                *(self._process_join(child, context) for child in children),
                return_exceptions=True
            )
            for child_counts in self._log_branch_outcomes(children, results, context):
                counts.update(child_counts)

        return counts

    async def _process_shared(self, task: CrawlTask, context: CrawlContext):
        """Visit a URL, count its words and spawn its children without waiting."""
        if not await self._admit(task, context):
            return

        page = await self._visit(task, context)
        context.tally.add_words(page.words)

        for link in page.links:
            self._spawn(task.child(link), context)

    def _spawn(self, task: CrawlTask, context: CrawlContext):
        future = asyncio.ensure_future(self._process_shared(task, context))
        context.pending.add(future)
        future.add_done_callback(functools.partial(self._on_branch_done, task, context))

    def _on_branch_done(self, task: CrawlTask, context: CrawlContext, future: asyncio.Future):
        context.pending.discard(future)
        if future.cancelled():
            self.logger.warning(f"Crawl branch cancelled at {task.url}")
        elif future.exception() is not None:
            context.stats.branch_errors += 1
            self.logger.error(f"Crawl branch failed at {task.url}: {future.exception()!r}",
                              extra={'extra_fields': task.to_dict()})

    async def _drain(self, context: CrawlContext):
        """Wait until no spawned task is left, including ones spawned meanwhile."""
        while context.pending:
            await asyncio.gather(*list(context.pending), return_exceptions=True)

    async def _cancel_pending(self, context: CrawlContext):
        pending = [future for future in context.pending if not future.done()]
        for future in pending:
            future.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


class SequentialCrawlScheduler(CrawlScheduler):
    """Depth-first crawl that visits one page at a time."""

    def get_concurrency_level(self) -> int:
        return 1

    async def _run(self, roots: List[CrawlTask], context: CrawlContext):
        # LIFO stack, children pushed in reverse so they pop in link order
        stack = list(reversed(roots))
        while stack:
            task = stack.pop()
            if not await self._admit(task, context):
                continue

            page = await self._visit(task, context)
            context.tally.add_words(page.words)
            stack.extend(task.child(link) for link in reversed(page.links))


def build_scheduler(config: Config, page_source: PageSource,
                    monitor: Optional[CrawlerMonitor] = None) -> CrawlScheduler:
    """Create the scheduler selected by the crawler configuration."""
    crawler = config.crawler
    common = dict(
        max_depth=crawler.max_depth,
        timeout=crawler.timeout_seconds,
        popular_word_count=crawler.popular_word_count,
        excluded_urls=crawler.compiled_excluded_urls(),
        user_agent=crawler.user_agent,
        throttle_delay_ms=crawler.throttle_delay_ms,
        respect_robots_txt=crawler.respect_robots_txt,
        monitor=monitor,
    )

    if crawler.implementation == 'sequential':
        return SequentialCrawlScheduler(page_source, **common)

    return ParallelCrawlScheduler(
        page_source,
        concurrency_level=crawler.effective_concurrency(),
        recursion_mode=RecursionMode(crawler.recursion_mode),
        **common
    )
