"""
Prometheus metrics module for the booking core.

Service operations are timed by @BaseService.measure_operation and reported
here. Ledger-specific counters track outcomes that need operator attention.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "vrumi_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "vrumi_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "vrumi_errors_total",
    "Total number of errors by type",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

audit_writes_total = Counter(
    "vrumi_audit_writes_total",
    "Audit rows written",
    ["entity_type", "action"],
    registry=REGISTRY,
)

lessons_consumed_total = Counter(
    "vrumi_package_lessons_consumed_total",
    "Lessons consumed from student packages",
    registry=REGISTRY,
)

reconciliations_total = Counter(
    "vrumi_package_reconciliations_total",
    "Checkout reconciliations by mode and outcome",
    ["mode", "outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade over the module-level collectors."""

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
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_booking')
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
    def record_audit_write(entity_type: str, action: str) -> None:
        audit_writes_total.labels(entity_type=entity_type, action=action).inc()

    @staticmethod
    def record_lesson_consumed() -> None:
        lessons_consumed_total.inc()

    @staticmethod
    def record_reconciliation(mode: str, outcome: str) -> None:
        reconciliations_total.labels(mode=mode, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Serialize the registry in the Prometheus text exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
