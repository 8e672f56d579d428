"""
Crawl task and result types shared by the schedulers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class RecursionMode(Enum):
    """How a parallel crawl combines the word counts of its branches."""
    JOIN = "join"
    SHARED = "shared"


@dataclass(frozen=True)
class CrawlTask:
    """A single "visit this URL" unit of work."""
    url: str
    remaining_depth: int
    deadline: float
    parent_url: Optional[str] = None

    def child(self, url: str) -> 'CrawlTask':
        """Create the task for an outlink discovered on this page."""
        return CrawlTask(
            url=url,
            remaining_depth=self.remaining_depth - 1,
            deadline=self.deadline,
            parent_url=self.url
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            'url': self.url,
            'remaining_depth': self.remaining_depth,
            'deadline': self.deadline,
            'parent_url': self.parent_url
        }


@dataclass(frozen=True)
class CrawlResult:
    """
    Outcome of a crawl.

    ``word_frequency_map`` holds at most ``popular_word_count`` entries and
    its iteration order is the ranking order.
    """
    word_frequency_map: Dict[str, int] = field(default_factory=dict)
    total_urls_visited: int = 0

    def to_dict(self) -> dict:
        """Convert to the JSON document written by the result writer."""
        return {
            'wordFrequencyMap': dict(self.word_frequency_map),
            'totalUrlsVisited': self.total_urls_visited
        }
