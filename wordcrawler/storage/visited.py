"""
Registry of URLs already claimed during a crawl.
"""

import logging
import threading
from typing import Iterator, Set


class VisitedRegistry:
    """
    Set of claimed URLs with an atomic claim operation.

    URLs are compared as exact strings; no normalization is applied.
    """

    def __init__(self):
        self._urls: Set[str] = set()
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def try_claim(self, url: str) -> bool:
        """
        Claim a URL for processing.

        Returns True for exactly one caller per URL, False for every
        caller after it.
        """
        with self._lock:
            if url in self._urls:
                return False
            self._urls.add(url)

        self.logger.debug(f"Claimed URL: {url}")
        return True

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._urls

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def snapshot(self) -> Set[str]:
        """Copy of the claimed URLs."""
        with self._lock:
            return set(self._urls)
