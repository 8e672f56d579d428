"""
Shared fixtures: an in-memory page graph and a controllable clock.
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Set, Tuple

import pytest

from wordcrawler.crawler.fetcher import PageFetchError, PageSource
from wordcrawler.crawler.parser import PageContent


class FakePageSource(PageSource):
    """
    Serves pages from a ``{url: (words, links)}`` graph.

    URLs missing from the graph fail with PageFetchError. ``robots`` maps a
    robots.txt URL to its content; unknown robots URLs return "".
    """

    def __init__(self, pages: Dict[str, Tuple[Iterable[str], Iterable[str]]],
                 robots: Optional[Dict[str, str]] = None,
                 broken: Optional[Set[str]] = None,
                 fetch_delay: float = 0.0):
        self.pages = {url: (list(words), list(links)) for url, (words, links) in pages.items()}
        self.robots = robots or {}
        self.broken = broken or set()
        self.fetch_delay = fetch_delay

        self.fetched: List[str] = []
        self.fetch_started: Dict[str, float] = {}
        self.robots_requests: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_and_parse(self, url: str) -> PageContent:
        self.fetched.append(url)
        self.fetch_started[url] = asyncio.get_running_loop().time()
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.fetch_delay)
        finally:
            self.in_flight -= 1

        if url in self.broken:
            raise RuntimeError(f"parser blew up on {url}")
        if url not in self.pages:
            raise PageFetchError(f"HTTP 404 for {url}")

        words, links = self.pages[url]
        return PageContent(url=url, words=list(words), links=list(links))

    async def fetch_text(self, url: str) -> str:
        self.robots_requests.append(url)
        return self.robots.get(url, "")


class FakeClock:
    """Monotonic clock that moves forward by ``step`` on every reading."""

    def __init__(self, start: float = 1000.0, step: float = 0.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def site_graph():
    """
    A small site with a cycle and a shared child::

        /        -> /a, /b
        /a       -> /c, /
        /b       -> /c
        /c       -> /a
    """
    return {
        "http://site.test/": (["welcome", "home", "page"], ["http://site.test/a", "http://site.test/b"]),
        "http://site.test/a": (["cat", "cat", "dog"], ["http://site.test/c", "http://site.test/"]),
        "http://site.test/b": (["dog", "bird"], ["http://site.test/c"]),
        "http://site.test/c": (["cat", "elephant"], ["http://site.test/a"]),
    }
