"""
FastAPI dependency providers.

Singletons for the genre model adapter and its circuit breaker, so the
weights are loaded once and failure counts accumulate across the lifetime
of the server process.

Environment:
    GENRE_MODEL_PATH           Path to a `.npz` softmax model. Unset → heuristic stub.
    GENRE_MODEL_AUTHORITATIVE  "1"/"true"/"yes" → the model overrides heuristics.
"""

import os

from core.genre.adapters import ModelAdapter
from infrastructure.circuit_breaker import CircuitBreaker
from infrastructure.guarded_adapter import GuardedAdapter
from infrastructure.metrics import record_circuit_trip
from ingestion.model_loader import build_adapter

_TRUTHY: frozenset[str] = frozenset({"1", "true", "yes", "on"})

_model_adapter: ModelAdapter | None = None


def get_model_adapter() -> ModelAdapter:
    """
    Return the cached genre model adapter.

    Reads ``GENRE_MODEL_PATH`` and ``GENRE_MODEL_AUTHORITATIVE`` on first
    call. A missing or unloadable model yields the heuristic stub.
    """
    global _model_adapter  # noqa: PLW0603
    if _model_adapter is None:
        authoritative = os.environ.get("GENRE_MODEL_AUTHORITATIVE", "").strip().lower() in _TRUTHY
        _model_adapter = build_adapter(os.environ.get("GENRE_MODEL_PATH"), authoritative=authoritative)
    return _model_adapter


# ---------------------------------------------------------------------------
# Circuit breaker — one per model
# ---------------------------------------------------------------------------

# Trips after 3 consecutive adapter failures, probes again after 30s.
_model_breaker: CircuitBreaker | None = None


def get_model_breaker() -> CircuitBreaker:
    """Return the genre model circuit breaker singleton."""
    global _model_breaker  # noqa: PLW0603
    if _model_breaker is None:
        _model_breaker = CircuitBreaker(
            name="genre_model",
            failure_threshold=3,
            reset_timeout_seconds=30.0,
            on_trip=record_circuit_trip,
        )
    return _model_breaker


_guarded_adapter: GuardedAdapter | None = None


def get_guarded_adapter() -> GuardedAdapter:
    """Return the model adapter wrapped in the shared circuit breaker."""
    global _guarded_adapter  # noqa: PLW0603
    if _guarded_adapter is None:
        _guarded_adapter = GuardedAdapter(get_model_adapter(), get_model_breaker())
    return _guarded_adapter
