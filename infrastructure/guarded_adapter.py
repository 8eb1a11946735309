"""Circuit-breaker + metrics wrapper around a genre model adapter.

GuardedAdapter satisfies the ModelAdapter protocol, so the classifier
never knows it is there. Each predict() call goes through the breaker;
failures are counted per reason and re-raised, and the classifier's
invoke_adapter() turns them into a logged "failed" adapter status.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from infrastructure.circuit_breaker import CircuitBreaker, CircuitOpenError
from infrastructure.metrics import (
    LatencyTimer,
    record_adapter_failure,
    record_adapter_latency,
    record_circuit_rejected,
)

if TYPE_CHECKING:
    from core.audio.types import AcousticFeatureBundle
    from core.genre.adapters import ModelAdapter
    from core.genre.types import ModelAdapterResult

logger = logging.getLogger(__name__)


class GuardedAdapter:
    """Wrap `adapter` so repeated failures short-circuit.

    Args:
        adapter: Any ModelAdapter.
        breaker: Breaker shared by every request using this adapter.
    """

    def __init__(self, adapter: ModelAdapter, breaker: CircuitBreaker) -> None:
        self.adapter = adapter
        self.breaker = breaker
        self._name = type(adapter).__name__

    def predict(self, bundle: AcousticFeatureBundle) -> ModelAdapterResult:
        try:
            with LatencyTimer() as timer:
                result = self.breaker.call(self.adapter.predict, bundle)
        except CircuitOpenError:
            record_circuit_rejected(self.breaker.name)
            record_adapter_failure(self._name, "circuit_open")
            raise
        except Exception:
            record_adapter_failure(self._name, "error")
            raise
        record_adapter_latency(self._name, timer.elapsed)
        return result
