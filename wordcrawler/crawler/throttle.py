"""
Per-origin request throttling.
"""

import asyncio
import logging
import time
from typing import Dict, Optional

from ..utils.monitoring import CrawlerMonitor


class DomainThrottle:
    """
    Spaces out requests to the same origin.

    Each origin gets its own lock. ``acquire`` takes the lock, holds it for
    ``delay_ms`` and then lets the next caller for that origin in, so two
    requests to one origin start at least ``delay_ms`` apart. Different
    origins never wait on each other.
    """

    def __init__(self, delay_ms: int = 0, monitor: Optional[CrawlerMonitor] = None):
        if delay_ms < 0:
            raise ValueError("delay_ms must be non-negative")

        self.delay_ms = delay_ms
        self.monitor = monitor
        self.logger = logging.getLogger(__name__)
        self._gates: Dict[str, asyncio.Lock] = {}

    @property
    def enabled(self) -> bool:
        return self.delay_ms > 0

    def _get_gate(self, origin: str) -> asyncio.Lock:
        # No await between lookup and insert, so the event loop cannot hand
        # out two different locks for one origin.
        gate = self._gates.get(origin)
        if gate is None:
            gate = asyncio.Lock()
            self._gates[origin] = gate
        return gate

    async def acquire(self, origin: str):
        """
        Wait for this origin's turn.

        Raises:
            asyncio.CancelledError: if the caller is cancelled; the origin's
                gate is released either way
        """
        if not self.enabled:
            return

        gate = self._get_gate(origin)
        start_time = time.monotonic()

        async with gate:
            if self.monitor:
                self.monitor.observe_throttle_wait(time.monotonic() - start_time)
            self.logger.debug(f"Throttling {origin} for {self.delay_ms}ms")
            await asyncio.sleep(self.delay_ms / 1000)

    def known_origins(self) -> int:
        """Number of origins that have been throttled so far."""
        return len(self._gates)
