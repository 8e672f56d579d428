"""
Page sources: fetch a URL and turn it into words and links.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, Iterable, Optional, Pattern
from urllib.parse import unquote, urlparse

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout

from .parser import PageContent, WordCountParser


class PageFetchError(Exception):
    """A page could not be fetched or parsed."""
    pass


class PageSource:
    """Base class for everything the scheduler can read pages from."""

    async def fetch_and_parse(self, url: str) -> PageContent:
        """
        Fetch ``url`` and extract its words and outbound links.

        Raises:
            PageFetchError: if the page cannot be fetched or parsed
        """
        raise NotImplementedError

    async def fetch_text(self, url: str) -> str:
        """
        Fetch a plain-text resource such as robots.txt.

        Returns an empty string for non-200 responses and raises on
        transport failures.
        """
        raise NotImplementedError


class HttpPageSource(PageSource):
    """
    Reads pages over HTTP(S) with aiohttp, and ``file://`` pages from disk.
    """

    TEXT_TYPES = (
        'text/html',
        'text/plain',
        'text/xml',
        'application/xml',
        'application/xhtml+xml',
    )

    def __init__(self, user_agent: str, request_timeout: int = 30,
                 excluded_words: Optional[Iterable[Pattern]] = None,
                 max_content_size: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_content_size = max_content_size
        self.parser = WordCountParser(excluded_words)

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the HTTP session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}
            self.session = aiohttp.ClientSession(timeout=timeout, headers=headers)
            self.logger.info("HttpPageSource session started")

    async def close(self):
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("HttpPageSource session closed")

    async def fetch_and_parse(self, url: str) -> PageContent:
        start_time = time.time()
        html = await self.fetch_html(url)
        page = self.parser.parse(url, html)
        self.logger.debug(f"Fetched and parsed {url} in {time.time() - start_time:.2f}s")
        return page

    async def fetch_html(self, url: str) -> str:
        """Fetch the raw markup of a page."""
        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise PageFetchError(f"Malformed URL {url!r}: {e}") from e

        if parsed.scheme == 'file':
            return await self._read_file(parsed.path)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise PageFetchError(f"Unsupported URL: {url}")

        self.stats['total_requests'] += 1
        try:
            async with self._require_session().get(url) as response:
                if response.status >= 400:
                    raise PageFetchError(f"HTTP {response.status} for {url}")

                content_type = response.headers.get('content-type', '').lower()
                if content_type and not self._is_text_content(content_type):
                    raise PageFetchError(f"Non-text content ({content_type}) at {url}")

                content = await self._read_content_safely(response)

        except asyncio.TimeoutError as e:
            self.stats['failed_requests'] += 1
            raise PageFetchError(f"Timeout fetching {url}") from e
        except ClientError as e:
            self.stats['failed_requests'] += 1
            raise PageFetchError(f"Client error fetching {url}: {e}") from e
        except PageFetchError:
            self.stats['failed_requests'] += 1
            raise

        self.stats['successful_requests'] += 1
        self.stats['total_bytes_downloaded'] += len(content)
        return content

    async def fetch_text(self, url: str) -> str:
        async with self._require_session().get(url) as response:
            if response.status != 200:
                self.logger.debug(f"No text at {url}: HTTP {response.status}")
                return ""
            return await response.text()

    def _require_session(self) -> ClientSession:
        if self.session is None:
            raise RuntimeError("HttpPageSource.start() must be called first")
        return self.session

    async def _read_file(self, path: str) -> str:
        file_path = Path(unquote(path))
        try:
            return await asyncio.to_thread(file_path.read_text, encoding='utf-8', errors='ignore')
        except OSError as e:
            raise PageFetchError(f"Cannot read {file_path}: {e}") from e

    def _is_text_content(self, content_type: str) -> bool:
        return any(text_type in content_type for text_type in self.TEXT_TYPES)

    async def _read_content_safely(self, response: aiohttp.ClientResponse) -> str:
        """
        Read a response body, enforcing ``max_content_size``.

        Raises:
            PageFetchError: if the body is larger than allowed
        """
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_size:
            raise PageFetchError(f"Content too large ({content_length} bytes): {response.url}")

        content_bytes = bytearray()
        async for chunk in response.content.iter_chunked(8192):
            content_bytes.extend(chunk)
            if len(content_bytes) > self.max_content_size:
                raise PageFetchError(f"Content exceeded size limit during reading: {response.url}")

        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            for fallback_encoding in ['utf-8', 'latin-1', 'cp1252']:
                try:
                    return content_bytes.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue

            return content_bytes.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
