"""Metrics collection for the search engine.

Provides a thin convenience wrapper around ``prometheus_client`` so ranking
calls and store connections are recorded consistently.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per collector (can be injected for tests)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest


class SearchMetrics:
    """Centralized metrics for ranking calls and store lifecycle.

    Parameters
    - service_name: Logical name of the search engine instance
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str = "contribux-search", registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.search_requests = Counter(
            'contribux_search_requests_total',
            'Total ranking and scoring calls',
            ['operation', 'strategy', 'status'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'contribux_search_duration_seconds',
            'Ranking call duration',
            ['operation', 'strategy'],
            registry=self.registry
        )

        self.search_results = Histogram(
            'contribux_search_results',
            'Number of results returned per call',
            ['operation'],
            buckets=(0, 1, 5, 10, 20, 50, 100, 500),
            registry=self.registry
        )

        self.active_connections = Gauge(
            'contribux_store_connections_active',
            'Open store connections',
            ['strategy'],
            registry=self.registry
        )

        self.store_fallbacks = Counter(
            'contribux_store_fallbacks_total',
            'Strategy fallbacks after initialisation failure',
            ['from_strategy', 'to_strategy'],
            registry=self.registry
        )

    def record_search(
        self,
        operation: str,
        strategy: str,
        status: str,
        duration: float,
        result_count: Optional[int] = None
    ) -> None:
        """Record one ranking call.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.search_requests.labels(operation=operation, strategy=strategy, status=status).inc()
        self.search_duration.labels(operation=operation, strategy=strategy).observe(duration)
        if result_count is not None:
            self.search_results.labels(operation=operation).observe(result_count)

    def connection_opened(self, strategy: str) -> None:
        self.active_connections.labels(strategy=strategy).inc()

    def connection_closed(self, strategy: str) -> None:
        self.active_connections.labels(strategy=strategy).dec()

    def record_fallback(self, from_strategy: str, to_strategy: str) -> None:
        """Record a strategy fallback."""
        self.store_fallbacks.labels(from_strategy=from_strategy, to_strategy=to_strategy).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_search_metrics: Optional[SearchMetrics] = None


def get_search_metrics(service_name: str = "contribux-search") -> SearchMetrics:
    """Get or create the process-wide metrics collector.

    Returns a singleton to avoid registering the same metric names twice.
    """
    global _search_metrics
    if _search_metrics is None:
        _search_metrics = SearchMetrics(service_name)
    return _search_metrics
