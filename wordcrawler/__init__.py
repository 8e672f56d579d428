"""
Word Crawler

A bounded web crawler that counts the most frequent words across linked pages.
"""

__version__ = "1.0.0"
__description__ = "A bounded, concurrent word-frequency web crawler"
