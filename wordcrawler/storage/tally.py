"""
Crawl-wide word counter.
"""

import threading
from collections import Counter
from typing import Dict, Iterable, Mapping


class WordTally:
    """Word to count accumulator that is safe to merge into concurrently."""

    def __init__(self):
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def add_words(self, words: Iterable[str]):
        """Count one occurrence per item in ``words``."""
        page_counts = Counter(words)
        with self._lock:
            self._counts.update(page_counts)

    def merge(self, counts: Mapping[str, int]):
        """Add another word to count mapping into this tally."""
        if not counts:
            return
        with self._lock:
            self._counts.update(counts)

    def get(self, word: str) -> int:
        with self._lock:
            return self._counts.get(word, 0)

    def snapshot(self) -> Dict[str, int]:
        """Copy of the current counts."""
        with self._lock:
            return dict(self._counts)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)
