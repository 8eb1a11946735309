"""
Tests for the remaining infrastructure and configuration modules.

    infrastructure/retry.py            — backoff delays, retry/no-retry split
    infrastructure/metrics.py          — record_* helpers, no-op mode, LatencyTimer
    infrastructure/guarded_adapter.py  — breaker + metrics around a ModelAdapter
    core/config.py                     — AnalysisConfig / ClassifierConfig validation
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from core.config import AnalysisConfig, ClassifierConfig
from infrastructure import metrics as metrics_module
from infrastructure.circuit_breaker import CircuitBreaker, CircuitOpenError
from infrastructure.guarded_adapter import GuardedAdapter
from infrastructure.retry import backoff_delay, with_retry


def _requires_prometheus() -> None:
    if not metrics_module._registry_available:
        pytest.skip("prometheus_client not installed — skipping metrics tests")


def _counter(counter, **labels) -> float:
    return counter.labels(**labels)._value.get()


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


class TestBackoffDelay:
    def test_doubles_per_attempt(self):
        assert backoff_delay(1, 0.5, 10.0, jitter=False) == pytest.approx(0.5)
        assert backoff_delay(3, 0.5, 10.0, jitter=False) == pytest.approx(2.0)

    def test_capped(self):
        assert backoff_delay(10, 0.5, 3.0, jitter=False) == pytest.approx(3.0)

    def test_jitter_within_quarter(self):
        for _ in range(20):
            assert 0.75 <= backoff_delay(1, 1.0, 10.0, jitter=True) <= 1.25


class TestWithRetry:
    def test_retries_transient_oserror(self):
        sleeps: list[float] = []
        attempts = {"n": 0}

        @with_retry(max_attempts=3, base_seconds=0.1, jitter=False, sleep=sleeps.append)
        def flaky() -> str:
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise OSError("NFS hiccup")
            return "weights"

        assert flaky() == "weights"
        assert sleeps == [pytest.approx(0.1), pytest.approx(0.2)]

    def test_exhausted_raises_runtime_error_chained(self):
        @with_retry(max_attempts=2, jitter=False, sleep=lambda _s: None)
        def always_fails() -> None:
            raise TimeoutError("slow disk")

        with pytest.raises(RuntimeError, match="after 2 attempts") as exc_info:
            always_fails()
        assert isinstance(exc_info.value.__cause__, TimeoutError)

    def test_file_not_found_never_retried(self):
        calls = {"n": 0}

        @with_retry(max_attempts=5, sleep=lambda _s: None)
        def missing() -> None:
            calls["n"] += 1
            raise FileNotFoundError("gone")

        with pytest.raises(FileNotFoundError):
            missing()
        assert calls["n"] == 1

    def test_non_retryable_propagates(self):
        @with_retry(max_attempts=3, sleep=lambda _s: None)
        def bad() -> None:
            raise ValueError("bad shape")

        with pytest.raises(ValueError):
            bad()

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            with_retry(max_attempts=0)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class TestMetrics:
    def test_classification_counter(self):
        _requires_prometheus()
        counter = metrics_module.classifications_total
        before = _counter(counter, genre="Reggae", adapter_status="absent")
        metrics_module.record_classification(genre="Reggae", adapter_status="absent", latency_seconds=0.2)
        assert _counter(counter, genre="Reggae", adapter_status="absent") == before + 1

    def test_adapter_failure_counter(self):
        _requires_prometheus()
        counter = metrics_module.adapter_failures_total
        before = _counter(counter, adapter="SoftmaxGenreModel", reason="timeout")
        metrics_module.record_adapter_failure("SoftmaxGenreModel", "timeout")
        assert _counter(counter, adapter="SoftmaxGenreModel", reason="timeout") == before + 1

    def test_tempo_correction_counter(self):
        _requires_prometheus()
        counter = metrics_module.tempo_corrections_total
        before = _counter(counter, kind="early_halving")
        metrics_module.record_tempo_correction("early_halving")
        metrics_module.record_tempo_correction("early_halving")
        assert _counter(counter, kind="early_halving") == before + 2

    def test_exposition_contains_prefix(self):
        _requires_prometheus()
        metrics_module.record_circuit_trip("genre_model")
        body, content_type = metrics_module.get_metrics_response()
        assert b"wga_circuit_breaker_trips_total" in body
        assert content_type.startswith("text/plain")

    def test_helpers_are_noops_when_disabled(self):
        with patch.object(metrics_module, "_registry_available", False):
            metrics_module.record_classification(genre="Jazz", adapter_status="failed")
            metrics_module.record_adapter_latency("X", 0.1)
            metrics_module.record_circuit_rejected("genre_model")
            assert metrics_module.get_metrics_response() == (b"", "text/plain")
            assert not metrics_module.metrics_enabled()

    def test_latency_timer(self):
        with metrics_module.LatencyTimer() as timer:
            sum(range(1000))
        assert timer.elapsed >= 0.0


# ---------------------------------------------------------------------------
# Guarded adapter
# ---------------------------------------------------------------------------


class TestGuardedAdapter:
    def test_passes_result_through(self, fixed_adapter, make_bundle):
        guarded = GuardedAdapter(fixed_adapter({"Latin": 0.8}), CircuitBreaker(name="g1"))
        assert guarded.predict(make_bundle()).top_genre == "Latin"

    def test_failures_reraised_and_trip_breaker(self, raising_adapter, make_bundle):
        breaker = CircuitBreaker(name="g2", failure_threshold=2, reset_timeout_seconds=60.0)
        guarded = GuardedAdapter(raising_adapter, breaker)
        for _ in range(2):
            with pytest.raises(RuntimeError):
                guarded.predict(make_bundle())
        with pytest.raises(CircuitOpenError):
            guarded.predict(make_bundle())
        assert raising_adapter.calls == 2

    def test_open_circuit_degrades_classification(self, raising_adapter, make_bundle, make_descriptors):
        """The classifier treats a rejected call like any adapter failure."""
        from core.genre.classifier import run_classification
        from core.genre.types import AdapterStatus

        breaker = CircuitBreaker(name="g3", failure_threshold=1, reset_timeout_seconds=60.0)
        guarded = GuardedAdapter(raising_adapter, breaker)
        args = make_descriptors(tempo=120.0)
        first = run_classification(*args, make_bundle(), adapter=guarded)
        second = run_classification(*args, make_bundle(), adapter=guarded)
        assert first.provenance.adapter_status == AdapterStatus.FAILED
        assert second.provenance.adapter_status == AdapterStatus.FAILED
        assert first.predictions == second.predictions
        assert raising_adapter.calls == 1

    def test_rejection_recorded(self, raising_adapter, make_bundle):
        _requires_prometheus()
        breaker = CircuitBreaker(name="g4", failure_threshold=1, reset_timeout_seconds=60.0)
        guarded = GuardedAdapter(raising_adapter, breaker)
        with pytest.raises(RuntimeError):
            guarded.predict(make_bundle())
        with pytest.raises(CircuitOpenError):
            guarded.predict(make_bundle())
        assert _counter(metrics_module.circuit_breaker_rejected_total, breaker_name="g4") == 1
        assert _counter(metrics_module.adapter_failures_total, adapter="RaisingAdapter", reason="circuit_open") >= 1


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestAnalysisConfig:
    def test_defaults(self):
        config = AnalysisConfig()
        assert config.pitch_frame_size == 2048
        assert config.keep_raw_audio

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"pitch_frame_size": 0},
            {"pitch_hop_size": 0},
            {"pitch_frame_size": 1024, "pitch_hop_size": 2048},
            {"max_pitch_frames": 0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            AnalysisConfig(**kwargs)


class TestClassifierConfig:
    def test_defaults(self):
        config = ClassifierConfig()
        assert config.early_correction_bpm == 160.0
        assert config.adapter_blend_weight == pytest.approx(0.4)
        assert (config.min_predictions, config.max_predictions) == (3, 5)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"early_correction_bpm": 5.0},
            {"adapter_timeout_seconds": 0.0},
            {"adapter_blend_weight": 1.5},
            {"blend_ratio": -0.1},
            {"min_percentage": 100},
            {"max_predictions": 0},
            {"min_predictions": 6},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ClassifierConfig(**kwargs)
