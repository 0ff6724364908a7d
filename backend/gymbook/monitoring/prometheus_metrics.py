"""
Prometheus metrics for the booking engine.

Service timings come from the ``@measure_operation`` decorator; booking
outcomes and ledger movements are recorded by the services directly.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so repeated app construction in tests does not collide
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "gymbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "gymbook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "gymbook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_outcomes_total = Counter(
    "gymbook_booking_outcomes_total",
    "Booking state transitions",
    ["outcome"],  # booked | waitlisted | promoted | cancelled | attended
    registry=REGISTRY,
)

credit_ledger_entries_total = Counter(
    "gymbook_credit_ledger_entries_total",
    "Credit ledger entries written",
    ["type"],
    registry=REGISTRY,
)

stripe_webhook_events_total = Counter(
    "gymbook_stripe_webhook_events_total",
    "Stripe webhook events received",
    ["event_type", "result"],  # handled | ignored | duplicate | error
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_booking_outcome(outcome: str, count: int = 1) -> None:
        if count > 0:
            booking_outcomes_total.labels(outcome=outcome).inc(count)

    @staticmethod
    def inc_credit_entry(entry_type: str) -> None:
        credit_ledger_entries_total.labels(type=entry_type).inc()

    @staticmethod
    def inc_webhook_event(event_type: str, result: str) -> None:
        stripe_webhook_events_total.labels(event_type=event_type, result=result).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
