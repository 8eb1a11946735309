"""Circuit breaker for the genre-model adapter.

A trained genre model can fail in ways the classifier cannot fix: corrupt
weights, an out-of-memory worker, a remote model server that stopped
answering. The classifier already survives a single failure (the adapter
is treated as absent), but it still pays the adapter's timeout on every
request. The breaker removes that cost once the model is clearly broken.

    CLOSED    — Calls reach the model.
    OPEN      — Calls fail immediately with CircuitOpenError. After
                ``reset_timeout_seconds`` the next call becomes a probe.
    HALF-OPEN — One probe is let through. Success closes the circuit,
                failure re-opens it.

State machine::

    CLOSED ──(N consecutive failures)──→ OPEN ──(timeout)──→ HALF-OPEN
      ↑                                                          │
      └─────────────────────(success)───────────────────────────┘
                                  └──(failure)──→ OPEN

Usage::

    from infrastructure.circuit_breaker import CircuitBreaker, CircuitOpenError

    model_breaker = CircuitBreaker(name="genre_model", failure_threshold=3)

    try:
        result = model_breaker.call(adapter.predict, bundle)
    except CircuitOpenError:
        result = None  # heuristic scores only
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker state machine states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when a call is attempted while the circuit is OPEN.

    Not a model error: the breaker refused to call the model at all.
    Adapter wrappers catch it and report the adapter as failed so the
    classifier falls back to heuristic scores.

    Args:
        name: Circuit breaker name for context.
        reset_in_seconds: Approximate seconds until the next probe.
    """

    def __init__(self, name: str, reset_in_seconds: float) -> None:
        self.name = name
        self.reset_in_seconds = reset_in_seconds
        super().__init__(f"Circuit '{name}' is OPEN; next probe in ~{reset_in_seconds:.1f}s")


@dataclass
class CircuitStats:
    """Call counters for one breaker."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    trips: int = 0


class CircuitBreaker:
    """Thread-safe circuit breaker.

    Args:
        name: Name used in logs, errors and metrics labels.
        failure_threshold: Consecutive failures that open the circuit.
        reset_timeout_seconds: Time spent OPEN before a probe is allowed.
        success_threshold: Successful probes needed to close again.
        exceptions: Exception types that count as failures. Anything else
            propagates without touching the breaker.
        on_trip: Called with the breaker name each time the circuit opens.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        reset_timeout_seconds: float = 30.0,
        success_threshold: int = 1,
        exceptions: tuple[type[Exception], ...] = (Exception,),
        on_trip: Callable[[str], None] | None = None,
    ) -> None:
        if failure_threshold <= 0:
            raise ValueError(f"failure_threshold must be positive, got {failure_threshold}")
        if reset_timeout_seconds < 0:
            raise ValueError(f"reset_timeout_seconds must be >= 0, got {reset_timeout_seconds}")
        if success_threshold <= 0:
            raise ValueError(f"success_threshold must be positive, got {success_threshold}")

        self.name = name
        self._failure_threshold = failure_threshold
        self._reset_timeout = reset_timeout_seconds
        self._success_threshold = success_threshold
        self._tracked_exceptions = exceptions
        self._on_trip = on_trip

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float = 0.0
        self._lock = threading.Lock()
        self.stats = CircuitStats()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def _remaining_open(self) -> float:
        return self._reset_timeout - (time.monotonic() - self._opened_at)

    def _transition_to(self, new_state: CircuitState) -> None:
        """Must be called with the lock held."""
        old_state = self._state
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
            self.stats.trips += 1
        logger.warning("CircuitBreaker '%s': %s -> %s", self.name, old_state.value, new_state.value)

    def _on_success(self) -> None:
        self._failure_count = 0
        self.stats.successful_calls += 1
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self._success_threshold:
                self._success_count = 0
                self._transition_to(CircuitState.CLOSED)

    def _on_failure(self, exc: Exception) -> bool:
        """Record a failure. Returns True when this failure opened the circuit."""
        self._failure_count += 1
        self.stats.failed_calls += 1
        if self._state == CircuitState.HALF_OPEN:
            self._success_count = 0
            self._transition_to(CircuitState.OPEN)
            return True
        if self._state == CircuitState.CLOSED and self._failure_count >= self._failure_threshold:
            self._transition_to(CircuitState.OPEN)
            logger.error(
                "CircuitBreaker '%s' tripped after %d consecutive failures; last: %s",
                self.name,
                self._failure_count,
                exc,
            )
            return True
        return False

    def call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run func through the breaker.

        Returns:
            Whatever func returns.

        Raises:
            CircuitOpenError: The circuit is OPEN and not yet due a probe.
            Exception: Anything func raises (tracked types count as failures).
        """
        with self._lock:
            self.stats.total_calls += 1
            if self._state == CircuitState.OPEN:
                remaining = self._remaining_open()
                if remaining > 0:
                    self.stats.rejected_calls += 1
                    raise CircuitOpenError(self.name, remaining)
                self._success_count = 0
                self._transition_to(CircuitState.HALF_OPEN)

        # func runs outside the lock so a slow model never blocks other callers
        try:
            result = func(*args, **kwargs)
        except self._tracked_exceptions as exc:
            with self._lock:
                tripped = self._on_failure(exc)
            if tripped and self._on_trip is not None:
                self._on_trip(self.name)
            raise

        with self._lock:
            self._on_success()
        return result

    def reset(self) -> None:
        """Force the circuit CLOSED and clear the failure count."""
        with self._lock:
            self._failure_count = 0
            self._success_count = 0
            if self._state != CircuitState.CLOSED:
                self._transition_to(CircuitState.CLOSED)

    def status(self) -> dict[str, Any]:
        """Snapshot for the /health endpoint."""
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "failure_threshold": self._failure_threshold,
                "reset_timeout_seconds": self._reset_timeout,
                "stats": {
                    "total": self.stats.total_calls,
                    "success": self.stats.successful_calls,
                    "failed": self.stats.failed_calls,
                    "rejected": self.stats.rejected_calls,
                    "trips": self.stats.trips,
                },
            }
