"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

ATTRACTION_SEARCHES = Counter(
    "attraction_search_attempts_total",
    "Point-of-interest search attempts by outcome",
    ("outcome",),
)

GENERATION_OUTCOMES = Counter(
    "audio_guide_generations_total",
    "Audio guide generations by pipeline shape and outcome",
    ("pipeline", "outcome"),
)

GENERATION_LATENCY = Histogram(
    "audio_guide_generation_duration_seconds",
    "Wall-clock duration of completed audio guide generations",
    ("pipeline",),
    buckets=(1.0, 2.5, 5.0, 10.0, 15.0, 20.0, 30.0, 45.0, 60.0, 90.0),
)

STATUS_ANOMALIES = Counter(
    "audio_status_transition_anomalies_total",
    "Status writes that fall outside the transition table",
    ("source", "target"),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def record_search_attempt(outcome: str) -> None:
    """Count one Overpass request (ok, rate_limited, timeout, error, cancelled)."""

    ATTRACTION_SEARCHES.labels(outcome=outcome).inc()


def record_generation(pipeline: str, outcome: str, duration_seconds: float | None = None) -> None:
    """Count a settled generation and, when completed, its duration."""

    GENERATION_OUTCOMES.labels(pipeline=pipeline, outcome=outcome).inc()
    if duration_seconds is not None and duration_seconds >= 0:
        GENERATION_LATENCY.labels(pipeline=pipeline).observe(duration_seconds)


def record_status_anomaly(source: str, target: str) -> None:
    STATUS_ANOMALIES.labels(source=source, target=target).inc()
