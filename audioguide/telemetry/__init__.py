"""Telemetry helpers and metrics."""

from .metrics import (
    ATTRACTION_SEARCHES,
    ERROR_COUNTER,
    GENERATION_LATENCY,
    GENERATION_OUTCOMES,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    STATUS_ANOMALIES,
    observe_request,
    record_generation,
    record_search_attempt,
    record_status_anomaly,
)

__all__ = [
    "ATTRACTION_SEARCHES",
    "ERROR_COUNTER",
    "GENERATION_LATENCY",
    "GENERATION_OUTCOMES",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "STATUS_ANOMALIES",
    "observe_request",
    "record_generation",
    "record_search_attempt",
    "record_status_anomaly",
]
