"""Exponential backoff retry for flaky I/O at the edges of the analyzer.

Model weights and audio files may live on network storage that returns a
transient OSError under load. Loaders wrap their read in `with_retry` so a
single hiccup does not fail a request; a persistent failure surfaces as a
RuntimeError chained to the last underlying error.

Usage::

    from infrastructure.retry import with_retry

    @with_retry(max_attempts=3, base_seconds=0.2)
    def read_weights(path: Path) -> dict[str, np.ndarray]:
        ...
"""

from __future__ import annotations

import functools
import logging
import random
import time
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Transient failures worth another attempt. FileNotFoundError is an OSError
# but never transient, so it is excluded explicitly.
_DEFAULT_RETRYABLE: tuple[type[Exception], ...] = (
    OSError,
    TimeoutError,
)
_NEVER_RETRY: tuple[type[Exception], ...] = (
    FileNotFoundError,
    IsADirectoryError,
    PermissionError,
)


def backoff_delay(attempt: int, base_seconds: float, max_seconds: float, *, jitter: bool) -> float:
    """Delay before retry number `attempt` (1-based): base·2^(attempt−1), capped, ±25 % jitter."""
    wait = min(base_seconds * (2 ** (attempt - 1)), max_seconds)
    if jitter:
        wait *= 1 + random.uniform(-0.25, 0.25)  # noqa: S311
    return max(0.0, wait)


def with_retry(
    *,
    max_attempts: int = 3,
    base_seconds: float = 0.5,
    max_seconds: float = 10.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = _DEFAULT_RETRYABLE,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[F], F]:
    """Decorator factory for exponential backoff retry.

    Args:
        max_attempts: Total attempts including the first one.
        base_seconds: Delay before the first retry.
        max_seconds: Cap on any single delay.
        jitter: Randomise each delay by ±25 %.
        exceptions: Exception types that trigger a retry. FileNotFoundError,
            IsADirectoryError and PermissionError always propagate at once.
        sleep: Sleep function (tests pass a no-op).

    Raises:
        ValueError: If max_attempts < 1.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exc: Exception | None = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except _NEVER_RETRY:
                    raise
                except exceptions as exc:
                    last_exc = exc
                    if attempt == max_attempts:
                        break
                    wait = backoff_delay(attempt, base_seconds, max_seconds, jitter=jitter)
                    logger.warning(
                        "retry: %s attempt %d/%d failed (%s); retrying in %.2fs",
                        func.__name__,
                        attempt,
                        max_attempts,
                        exc,
                        wait,
                    )
                    sleep(wait)
            raise RuntimeError(f"{func.__name__} failed after {max_attempts} attempts") from last_exc

        return wrapper  # type: ignore[return-value]

    return decorator
