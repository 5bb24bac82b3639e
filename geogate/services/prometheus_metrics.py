"""
Prometheus metrics for geogate
"""

import os

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Build info
BUILD_INFO = Gauge(
    'geogate_build_info',
    'Build information',
    ['version']
)

# Country resolutions by the path that answered
LOOKUPS_TOTAL = Counter(
    'geogate_lookups_total',
    'Total number of country resolutions',
    ['source']
)

# Individual provider attempts
PROVIDER_ATTEMPTS_TOTAL = Counter(
    'geogate_provider_attempts_total',
    'Total number of provider lookup attempts',
    ['provider', 'outcome']
)

# Access decisions
ACCESS_DECISIONS_TOTAL = Counter(
    'geogate_access_decisions_total',
    'Total number of access decisions',
    ['allowed', 'reason']
)

RESOLVE_SECONDS = Histogram(
    'geogate_resolve_seconds',
    'Country resolution latency in seconds',
    buckets=[0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0]
)


class PrometheusMetrics:
    """Service for managing Prometheus metrics."""

    def __init__(self):
        BUILD_INFO.labels(version=os.getenv("APP_VERSION", "0.1.0")).set(1)

    def record_lookup(self, source: str):
        # provider:<name> collapses to "provider" to keep label cardinality fixed
        if source.startswith("provider"):
            source = "provider"
        LOOKUPS_TOTAL.labels(source=source).inc()

    def record_provider_attempt(self, provider: str, success: bool):
        PROVIDER_ATTEMPTS_TOTAL.labels(
            provider=provider,
            outcome="success" if success else "failure"
        ).inc()

    def record_decision(self, allowed: bool, reason: str):
        ACCESS_DECISIONS_TOTAL.labels(allowed=str(allowed).lower(), reason=reason).inc()

    def observe_resolve(self, seconds: float):
        RESOLVE_SECONDS.observe(seconds)

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus format."""
        return generate_latest()

    def get_content_type(self) -> str:
        """Get content type for Prometheus metrics."""
        return CONTENT_TYPE_LATEST


# Global metrics instance
prometheus_metrics = PrometheusMetrics()
