"""
Metrics Collection with Prometheus.

Exposes business and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from creditgate.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    SERVICE = "service"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class GateMetrics:
    """
    Centralized metrics for the Credit Gate API.

    Covers HTTP traffic, gate decisions, credits spent and purchased,
    and calls to external vendors.
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info(
            "creditgate_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "creditgate_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "creditgate_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
        )

        self.http_requests_in_progress = Gauge(
            "creditgate_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Gate Metrics
        # ====================================================================
        self.charges_total = Counter(
            "creditgate_charges_total",
            "Gate decisions by service and outcome",
            [MetricLabels.SERVICE, MetricLabels.OUTCOME],
        )

        self.credits_spent_total = Counter(
            "creditgate_credits_spent_total",
            "Credits debited from metered profiles",
            [MetricLabels.SERVICE],
        )

        self.credits_purchased_total = Counter(
            "creditgate_credits_purchased_total",
            "Credits added from captured payments",
        )

        # ====================================================================
        # Upstream Metrics
        # ====================================================================
        self.upstream_requests_total = Counter(
            "creditgate_upstream_requests_total",
            "Calls to external vendors by outcome",
            [MetricLabels.SERVICE, MetricLabels.OUTCOME],
        )

        self.upstream_request_duration_seconds = Histogram(
            "creditgate_upstream_request_duration_seconds",
            "External vendor call duration in seconds",
            [MetricLabels.SERVICE],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "creditgate_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_charge(self, service: str, outcome: str, credits_spent: int = 0) -> None:
        """Record a gate decision (metered, unmetered, insufficient, not_found)."""
        self.charges_total.labels(service=service, outcome=outcome).inc()
        if credits_spent > 0:
            self.credits_spent_total.labels(service=service).inc(credits_spent)

    def record_purchase(self, credits_added: int) -> None:
        """Record credits added by a captured payment."""
        self.credits_purchased_total.inc(credits_added)

    def record_upstream_call(self, service: str, success: bool, duration: float) -> None:
        """Record an external vendor call."""
        self.upstream_requests_total.labels(
            service=service, outcome="success" if success else "failure"
        ).inc()
        self.upstream_request_duration_seconds.labels(service=service).observe(duration)

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = GateMetrics()
