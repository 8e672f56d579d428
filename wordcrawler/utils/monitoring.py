"""
Monitoring and metrics collection for the crawler.
"""

import logging
import time
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class MetricsCollector:
    """Owns the Prometheus metrics of one crawler process."""

    def __init__(self, enable_http_server: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_http_server = enable_http_server
        self.prometheus_port = prometheus_port

        # Metrics live in a per-collector registry, not the global default.
        self.registry = CollectorRegistry()

        self.urls_visited = Counter(
            'crawler_urls_visited_total',
            'Total number of pages fetched',
            registry=self.registry
        )
        self.urls_rejected = Counter(
            'crawler_urls_rejected_total',
            'Total number of crawl tasks rejected before visiting',
            ['reason'],
            registry=self.registry
        )
        self.fetch_failures = Counter(
            'crawler_fetch_failures_total',
            'Total number of pages that could not be fetched or parsed',
            registry=self.registry
        )
        self.words_counted = Counter(
            'crawler_words_counted_total',
            'Total number of words merged into the tally',
            registry=self.registry
        )
        self.fetch_seconds = Histogram(
            'crawler_fetch_seconds',
            'Time spent fetching and parsing a page',
            registry=self.registry
        )
        self.throttle_wait_seconds = Histogram(
            'crawler_throttle_wait_seconds',
            'Time spent waiting on a per-origin throttle',
            registry=self.registry
        )
        self.active_visits = Gauge(
            'crawler_active_visits',
            'Number of page visits currently in flight',
            registry=self.registry
        )

        self.logger.debug("Prometheus metrics initialized")

    def start_server(self):
        """Start the Prometheus metrics HTTP server."""
        if not self.enable_http_server:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Read the current value of a sample, 0 if it was never set."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0


class CrawlerMonitor:
    """High-level monitoring interface for the crawler."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.logger = logging.getLogger(__name__)
        self.start_time = time.time()

    def record_url_visited(self, url: str):
        self.metrics.urls_visited.inc()

    def record_rejection(self, url: str, reason: str):
        self.metrics.urls_rejected.labels(reason=reason).inc()

    def record_fetch_failure(self, url: str, error: str = ""):
        self.metrics.fetch_failures.inc()

    def record_words(self, count: int):
        if count > 0:
            self.metrics.words_counted.inc(count)

    def observe_fetch_time(self, seconds: float):
        self.metrics.fetch_seconds.observe(seconds)

    def observe_throttle_wait(self, seconds: float):
        self.metrics.throttle_wait_seconds.observe(seconds)

    def visit_started(self):
        self.metrics.active_visits.inc()

    def visit_finished(self):
        self.metrics.active_visits.dec()

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the crawl metrics."""
        runtime = time.time() - self.start_time
        visited = self.metrics.sample('crawler_urls_visited_total')

        rejected = {}
        for metric in self.metrics.urls_rejected.collect():
            for sample in metric.samples:
                if sample.name.endswith('_total'):
                    rejected[sample.labels['reason']] = sample.value

        return {
            'runtime_seconds': runtime,
            'urls_visited': visited,
            'urls_rejected': rejected,
            'fetch_failures': self.metrics.sample('crawler_fetch_failures_total'),
            'words_counted': self.metrics.sample('crawler_words_counted_total'),
            'urls_per_second': visited / runtime if runtime > 0 else 0,
        }


def initialize_monitoring(enable_http_server: bool = False, prometheus_port: int = 8000) -> CrawlerMonitor:
    """Create a monitor and start its exporter if enabled."""
    metrics_collector = MetricsCollector(enable_http_server, prometheus_port)
    metrics_collector.start_server()
    return CrawlerMonitor(metrics_collector)
