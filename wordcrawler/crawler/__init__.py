"""
Web crawler core components.
"""

from .task import CrawlTask, CrawlResult, RecursionMode
from .parser import WordCountParser, PageContent
from .fetcher import PageSource, HttpPageSource, PageFetchError
from .robots import RobotsPolicy, RobotsRuleSet, parse_robots_txt
from .throttle import DomainThrottle
from .ranking import top_words, sort_word_counts
from .scheduler import (
    CrawlScheduler, ParallelCrawlScheduler, SequentialCrawlScheduler, build_scheduler
)

__all__ = [
    'CrawlTask', 'CrawlResult', 'RecursionMode',
    'WordCountParser', 'PageContent',
    'PageSource', 'HttpPageSource', 'PageFetchError',
    'RobotsPolicy', 'RobotsRuleSet', 'parse_robots_txt',
    'DomainThrottle',
    'top_words', 'sort_word_counts',
    'CrawlScheduler', 'ParallelCrawlScheduler', 'SequentialCrawlScheduler', 'build_scheduler'
]
