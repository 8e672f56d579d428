"""
HTML parser that extracts words and outbound links from a page.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Pattern
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup, Comment
from bs4.element import PreformattedString

from ..utils.url import is_crawlable_url


@dataclass
class PageContent:
    """Words and links found on one page."""
    url: str
    words: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return len(self.words)


class WordCountParser:
    """
    Turns HTML into normalized words and absolute outbound links.

    Text is split on whitespace. Tokens that fully match one of the
    excluded word patterns are dropped, then non-word characters are
    stripped and the token is lower-cased.
    """

    def __init__(self, excluded_words: Optional[Iterable[Pattern]] = None):
        self.excluded_words: List[Pattern] = list(excluded_words or [])
        self.logger = logging.getLogger(__name__)

        self.whitespace_pattern = re.compile(r'\s+')
        self.non_word_pattern = re.compile(r'\W')

    def parse(self, url: str, html_content: str) -> PageContent:
        """
        Parse HTML content.

        Args:
            url: The URL of the page, used to resolve relative links
            html_content: Raw HTML content

        Returns:
            PageContent with the page's words and links
        """
        soup = BeautifulSoup(html_content, 'lxml')

        for script in soup(["script", "style", "noscript"]):
            script.decompose()

        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        page = PageContent(url=url)
        page.words = self._extract_words(soup)
        page.links = self._extract_links(soup, url)

        self.logger.debug(f"Parsed content from {url}: {page.word_count} words, "
                          f"{len(page.links)} links")
        return page

    def tokenize(self, text: str) -> List[str]:
        """Split a piece of text into normalized words."""
        words = []
        for token in self.whitespace_pattern.split(text.strip()):
            if not token:
                continue
            if any(pattern.fullmatch(token) for pattern in self.excluded_words):
                continue
            word = self.non_word_pattern.sub('', token).lower()
            if word:
                words.append(word)
        return words

    def _extract_words(self, soup: BeautifulSoup) -> List[str]:
        words: List[str] = []
        for text in soup.find_all(string=True):
            # Doctypes, CDATA and processing instructions are not page text
            if isinstance(text, PreformattedString):
                continue
            words.extend(self.tokenize(str(text)))
        return words

    def _extract_links(self, soup: BeautifulSoup, base_url: str) -> List[str]:
        """Extract links in document order, without duplicates."""
        links = {}

        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href or href.startswith('#'):
                continue

            absolute_url = self.resolve_link(base_url, href)
            if is_crawlable_url(absolute_url):
                links.setdefault(absolute_url, None)

        return list(links)

    def resolve_link(self, base_url: str, href: str) -> str:
        """Resolve an href found on ``base_url`` into an absolute URL."""
        if href.startswith('http://') or href.startswith('https://'):
            return href

        base = urlparse(base_url)
        if base.scheme == 'file' and href.startswith('/'):
            # Local pages treat "/" as the directory the page lives in.
            directory = str(PurePosixPath(base.path).parent)
            path = str(PurePosixPath(directory) / href.lstrip('/'))
            return urlunparse(('file', base.netloc, path, '', '', ''))

        return urljoin(base_url, href)
