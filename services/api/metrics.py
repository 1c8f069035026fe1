"""Prometheus metrics for the dashboard API.

Exposes key metrics for monitoring:
- Request counts by endpoint and status
- Request duration histograms
- Invoice mutation outcomes
- Page cache invalidations

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Invoice mutation metrics
invoice_mutations_total = Counter(
    "invoice_mutations_total",
    "Total invoice mutations",
    ["action", "outcome"],  # create|update|delete, success|validation_error|database_error
)

# Cache metrics
page_invalidations_total = Counter(
    "page_invalidations_total",
    "Total cached page invalidations",
    ["path"],
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
