"""
URL helpers shared by the parser, robots policy and scheduler.
"""

from typing import Optional
from urllib.parse import urlparse

CRAWLABLE_SCHEMES = ('http', 'https', 'file')

SKIP_EXTENSIONS = (
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp',
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.zip', '.rar', '.tar', '.gz', '.exe', '.dmg', '.iso',
    '.mp3', '.mp4', '.avi', '.mov', '.wmv', '.flv',
    '.css', '.js', '.ico', '.woff', '.woff2', '.ttf', '.eot'
)


def get_origin(url: str) -> Optional[str]:
    """
    Return ``scheme://host[:port]`` for a URL.

    Returns None when the URL cannot be parsed or has no scheme.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if not parsed.scheme:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def get_path(url: str) -> str:
    """Path component of a URL, ``/`` when empty."""
    try:
        path = urlparse(url).path
    except ValueError:
        return '/'
    return path or '/'


def is_crawlable_url(url: str) -> bool:
    """Check if a discovered link is worth turning into a crawl task."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False

    if parsed.scheme not in CRAWLABLE_SCHEMES:
        return False

    if parsed.scheme != 'file' and not parsed.netloc:
        return False

    path = parsed.path.lower()
    return not any(path.endswith(ext) for ext in SKIP_EXTENSIONS)
