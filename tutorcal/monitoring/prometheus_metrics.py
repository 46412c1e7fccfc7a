"""
Prometheus metrics for the TutorCal scheduling backend.

Service timings come from the ``@BaseService.measure_operation`` decorator;
the booking counters are incremented by the lesson service.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so repeated app construction in tests never re-registers
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "tutorcal_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "tutorcal_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "tutorcal_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_conflicts_total = Counter(
    "tutorcal_booking_conflicts_total",
    "Lesson writes rejected because the time was already taken",
    ["source"],  # overlap_check | constraint | slot_check
    registry=REGISTRY,
)

outbox_events_total = Counter(
    "tutorcal_outbox_events_total",
    "Domain events written to the notification outbox",
    ["event_type"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Records and exposes Prometheus metrics."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'LessonService')
            operation: Operation/method name (e.g., 'create_lesson')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_booking_conflict(source: str) -> None:
        booking_conflicts_total.labels(source=source).inc()

    @staticmethod
    def inc_outbox_event(event_type: str) -> None:
        outbox_events_total.labels(event_type=event_type).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Metrics in Prometheus text exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
