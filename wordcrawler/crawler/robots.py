"""
robots.txt policy with a per-origin, single-flight cache.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List
from urllib.parse import urlparse

from ..utils.url import get_origin, get_path

RobotsFetcher = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class RobotsRuleSet:
    """Allow/Disallow path prefixes that apply to our user agent."""
    allow_prefixes: List[str] = field(default_factory=list)
    disallow_prefixes: List[str] = field(default_factory=list)

    def is_allowed(self, path: str) -> bool:
        """
        Allow rules win over disallow rules regardless of their length;
        a path matched by neither is allowed.
        """
        path = path or '/'
        if any(path.startswith(prefix) for prefix in self.allow_prefixes):
            return True
        if any(path.startswith(prefix) for prefix in self.disallow_prefixes):
            return False
        return True


ALLOW_ALL = RobotsRuleSet()


def parse_robots_txt(content: str, user_agent: str) -> RobotsRuleSet:
    """
    Parse robots.txt content into the rules relevant to ``user_agent``.

    A ``User-agent`` line makes the following directives relevant when its
    value equals our agent name (case-insensitive) or is ``*``.
    """
    agent = user_agent.strip().lower()
    allow: List[str] = []
    disallow: List[str] = []
    relevant = False

    for raw_line in content.splitlines():
        line = raw_line.split('#', 1)[0].strip()
        if not line or ':' not in line:
            continue

        directive, value = line.split(':', 1)
        directive = directive.strip().lower()
        value = value.strip()

        if directive == 'user-agent':
            name = value.lower()
            relevant = name == agent or name == '*'
        elif relevant and value:
            if directive == 'allow':
                allow.append(value)
            elif directive == 'disallow':
                disallow.append(value)

    return RobotsRuleSet(allow_prefixes=allow, disallow_prefixes=disallow)


class RobotsPolicy:
    """
    Decides whether a URL may be crawled.

    Rules are fetched lazily once per origin and kept for the lifetime of
    the policy. Concurrent first lookups for one origin share a single
    fetch. Any failure to fetch robots.txt allows the whole origin.
    """

    def __init__(self, user_agent: str, fetch_text: RobotsFetcher):
        self.user_agent = user_agent
        self._fetch_text = fetch_text
        self._rules: Dict[str, asyncio.Task] = {}
        self.logger = logging.getLogger(__name__)

    async def is_allowed(self, url: str) -> bool:
        """Check if ``url`` may be fetched by this crawler."""
        origin = get_origin(url)
        if origin is None or urlparse(url).scheme not in ('http', 'https'):
            return True

        rules = await self.rules_for(origin)
        allowed = rules.is_allowed(get_path(url))
        if not allowed:
            self.logger.info(f"Robots.txt blocks access to: {url}")
        return allowed

    async def rules_for(self, origin: str) -> RobotsRuleSet:
        """Get the cached rule set for an origin, fetching it on first use."""
        task = self._rules.get(origin)
        if task is None:
            task = asyncio.ensure_future(self._load_rules(origin))
            self._rules[origin] = task

        # A cancelled waiter must not cancel the fetch other waiters share.
        return await asyncio.shield(task)

    async def _load_rules(self, origin: str) -> RobotsRuleSet:
        robots_url = f"{origin}/robots.txt"
        self.logger.info(f"Fetching robots.txt from: {robots_url}")

        try:
            content = await self._fetch_text(robots_url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.warning(f"Could not fetch robots.txt for {origin}: {e}")
            return ALLOW_ALL

        return parse_robots_txt(content or '', self.user_agent)

    def cached_origins(self) -> List[str]:
        return list(self._rules)

    async def close(self):
        """Cancel robots.txt fetches that nobody is waiting for any more."""
        pending = [task for task in self._rules.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
