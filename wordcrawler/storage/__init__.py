"""
Per-crawl shared state and result output.
"""

from .visited import VisitedRegistry
from .tally import WordTally
from .result_writer import CrawlResultWriter, ResultWriteError

__all__ = ['VisitedRegistry', 'WordTally', 'CrawlResultWriter', 'ResultWriteError']
