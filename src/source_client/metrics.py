"""Prometheus metrics definitions for the Source client."""

from functools import wraps

from prometheus_client import Counter, Histogram

requests_total = Counter(
    "source_client_requests_total",
    "Total requests sent to the Source service",
    ["operation", "outcome"],  # outcome: status code or exception name
)

request_duration = Histogram(
    "source_client_request_duration_seconds",
    "Time to complete one call, retries included",
    ["operation"],
)

retries_total = Counter(
    "source_client_retries_total",
    "Total request retries",
    ["operation"],
)

operation_errors = Counter(
    "source_client_operation_errors_total",
    "Total errors by client operation",
    ["operation", "error_type"],
)


def track_operation(operation: str):
    """Decorator for timing client operations and counting their errors.

    Args:
        operation: Name of the operation for labeling

    Example:
        @track_operation("save")
        def save(self, key, item_type, item):
            ...
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            with request_duration.labels(operation=operation).time():
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    operation_errors.labels(
                        operation=operation,
                        error_type=type(e).__name__,
                    ).inc()
                    raise

        return wrapper

    return decorator
