"""Prometheus metrics for the genre analyzer.

Labels carry the classification outcome (winning genre, adapter status)
so dashboards show what the analyzer is deciding, not just HTTP stats.

Metrics:
    wga_classifications_total        Counter by winning genre and adapter status
    wga_analysis_latency_seconds     Histogram of end-to-end file analysis latency
    wga_adapter_latency_seconds      Histogram of model adapter call latency
    wga_adapter_failures_total       Counter of adapter errors/timeouts by reason
    wga_tempo_corrections_total      Counter of early and advisory BPM corrections
    wga_circuit_breaker_trips_total  Times a circuit breaker tripped to OPEN
    wga_circuit_breaker_rejected_total  Calls rejected while a circuit was OPEN

Usage::

    from infrastructure.metrics import LatencyTimer, record_classification

    with LatencyTimer() as t:
        analysis = engine.analyze_file(path)
    record_classification(genre="Reggae", adapter_status="absent", latency_seconds=t.elapsed)
"""

from __future__ import annotations

import logging
import time

logger = logging.getLogger(__name__)

# Lazy import — if prometheus_client is missing every helper is a no-op
# and /metrics returns an empty body.
_registry_available = False
try:
    from prometheus_client import (
        CONTENT_TYPE_LATEST,
        CollectorRegistry,
        Counter,
        Histogram,
        generate_latest,
    )

    _REGISTRY = CollectorRegistry()

    classifications_total = Counter(
        "wga_classifications_total",
        "Genre classifications by winning genre and adapter status",
        ["genre", "adapter_status"],
        registry=_REGISTRY,
    )

    analysis_latency_seconds = Histogram(
        "wga_analysis_latency_seconds",
        "End-to-end file analysis latency in seconds",
        buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
        registry=_REGISTRY,
    )

    adapter_latency_seconds = Histogram(
        "wga_adapter_latency_seconds",
        "Genre model adapter call latency in seconds",
        ["adapter"],
        buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
        registry=_REGISTRY,
    )

    adapter_failures_total = Counter(
        "wga_adapter_failures_total",
        "Genre model adapter failures by reason",
        ["adapter", "reason"],
        registry=_REGISTRY,
    )

    tempo_corrections_total = Counter(
        "wga_tempo_corrections_total",
        "Tempo corrections by kind (early halving or advisory verdict)",
        ["kind"],
        registry=_REGISTRY,
    )

    circuit_breaker_trips_total = Counter(
        "wga_circuit_breaker_trips_total",
        "Number of times a circuit breaker tripped to OPEN state",
        ["breaker_name"],
        registry=_REGISTRY,
    )

    circuit_breaker_rejected_total = Counter(
        "wga_circuit_breaker_rejected_total",
        "Calls rejected because the circuit was OPEN",
        ["breaker_name"],
        registry=_REGISTRY,
    )

    _registry_available = True

except ImportError:
    logger.info("prometheus_client not installed — metrics disabled")
    _REGISTRY = None  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# Public helpers — all are no-ops when prometheus_client is not installed
# ---------------------------------------------------------------------------


def metrics_enabled() -> bool:
    return _registry_available


def record_classification(*, genre: str, adapter_status: str, latency_seconds: float | None = None) -> None:
    """Record one completed classification.

    Args:
        genre: Winning label (blend labels are recorded as-is).
        adapter_status: AdapterStatus value, e.g. "absent", "blended".
        latency_seconds: End-to-end analysis time, when measured.
    """
    if not _registry_available:
        return
    classifications_total.labels(genre=genre, adapter_status=adapter_status).inc()
    if latency_seconds is not None:
        analysis_latency_seconds.observe(latency_seconds)


def record_adapter_latency(adapter: str, latency_seconds: float) -> None:
    if _registry_available:
        adapter_latency_seconds.labels(adapter=adapter).observe(latency_seconds)


def record_adapter_failure(adapter: str, reason: str) -> None:
    """Increment the adapter failure counter.

    Args:
        adapter: Adapter class name.
        reason: "error", "timeout" or "circuit_open".
    """
    if _registry_available:
        adapter_failures_total.labels(adapter=adapter, reason=reason).inc()


def record_tempo_correction(kind: str) -> None:
    """kind: "early_halving", "0.5x" or "2x"."""
    if _registry_available:
        tempo_corrections_total.labels(kind=kind).inc()


def record_circuit_trip(breaker_name: str) -> None:
    if _registry_available:
        circuit_breaker_trips_total.labels(breaker_name=breaker_name).inc()


def record_circuit_rejected(breaker_name: str) -> None:
    if _registry_available:
        circuit_breaker_rejected_total.labels(breaker_name=breaker_name).inc()


def get_metrics_response() -> tuple[bytes, str]:
    """Generate Prometheus text exposition format.

    Returns:
        Tuple of (body_bytes, content_type_string).
        Returns empty bytes if prometheus_client is not available.
    """
    if not _registry_available:
        return b"", "text/plain"
    return generate_latest(_REGISTRY), CONTENT_TYPE_LATEST


class LatencyTimer:
    """Context manager measuring wall-clock time into `elapsed`.

    Usage::

        with LatencyTimer() as t:
            result = adapter.predict(bundle)
        record_adapter_latency("SoftmaxGenreModel", t.elapsed)
    """

    def __init__(self) -> None:
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> LatencyTimer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *_: object) -> None:
        self.elapsed = time.perf_counter() - self._start
