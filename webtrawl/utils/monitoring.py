"""
Monitoring and metrics collection for the crawler.
"""

import time
import logging
from typing import Dict, Optional, Any

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry
from prometheus_client import start_http_server


class MetricsCollector:
    """Owns the Prometheus metrics for one crawl run."""

    def __init__(self, enable_http_server: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_http_server = enable_http_server
        self.prometheus_port = prometheus_port

        self.registry = CollectorRegistry()
        self.fetches_total = Counter(
            'webtrawl_fetches_total',
            'Total number of completed fetches',
            ['status_code'],
            registry=self.registry
        )
        self.errors_total = Counter(
            'webtrawl_errors_total',
            'Total number of failed fetches',
            ['error_type'],
            registry=self.registry
        )
        self.bytes_downloaded_total = Counter(
            'webtrawl_bytes_downloaded_total',
            'Total bytes downloaded',
            registry=self.registry
        )
        self.links_discovered_total = Counter(
            'webtrawl_links_discovered_total',
            'Total links extracted from fetched pages',
            registry=self.registry
        )
        self.response_time_seconds = Histogram(
            'webtrawl_response_time_seconds',
            'Response time for HTTP requests',
            registry=self.registry
        )
        self.queue_size = Gauge(
            'webtrawl_queue_size',
            'Number of URLs waiting in the frontier',
            registry=self.registry
        )
        self.active_workers = Gauge(
            'webtrawl_active_workers',
            'Number of workers currently processing a target',
            registry=self.registry
        )

        self.logger.debug("Prometheus metrics initialized")

    def start_http_server(self):
        """Start Prometheus metrics HTTP server."""
        if not self.enable_http_server:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Read the current value of a sample, 0 if it was never recorded."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0


class CrawlerMonitor:
    """High-level monitoring interface for the crawler."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.logger = logging.getLogger(__name__)
        self.start_time = time.time()

    def record_fetch(self, status_code: int, response_time: float, byte_size: int):
        """Record a completed fetch."""
        self.metrics.fetches_total.labels(status_code=str(status_code)).inc()
        self.metrics.response_time_seconds.observe(response_time)
        self.metrics.bytes_downloaded_total.inc(byte_size)

    def record_error(self, error_type: str):
        """Record a failed fetch."""
        self.metrics.errors_total.labels(error_type=error_type).inc()

    def record_links(self, count: int):
        self.metrics.links_discovered_total.inc(count)

    def update_queue_size(self, size: int):
        self.metrics.queue_size.set(size)

    def update_active_workers(self, count: int):
        self.metrics.active_workers.set(count)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the headline metrics."""
        runtime = time.time() - self.start_time
        fetched = sum(
            sample.value
            for metric in self.metrics.fetches_total.collect()
            for sample in metric.samples
            if sample.name.endswith('_total')
        )
        return {
            'runtime_seconds': runtime,
            'fetches': fetched,
            'bytes_downloaded': self.metrics.get_value('webtrawl_bytes_downloaded_total'),
            'links_discovered': self.metrics.get_value('webtrawl_links_discovered_total'),
            'fetches_per_second': fetched / runtime if runtime > 0 else 0
        }
