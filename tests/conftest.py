"""
Shared fixtures for the test suite.

Synthetic signals stand in for audio files and small fake adapters stand in
for trained genre models, so no test needs an audio backend or weights.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import numpy as np
import pytest

from core.audio.analyzer import ClipAnalyzer
from core.audio.types import (
    AcousticFeatureBundle,
    RhythmAnalysis,
    ScaleAnalysis,
    SpectralAnalysis,
    SpectralSummary,
)
from core.genre.types import ModelAdapterResult, ModelPrediction
from ingestion.audio_engine import FileAnalysis

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SR: int = 44100
"""Default sample rate for synthetic signals."""


# ---------------------------------------------------------------------------
# Signal builders
# ---------------------------------------------------------------------------


def sine(freq: float, seconds: float, *, sr: int = SR, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(seconds * sr)) / sr
    return (amplitude * np.sin(2.0 * np.pi * freq * t)).astype(np.float64)


def click_track(
    bpm: float = 100.0,
    clicks: int = 16,
    *,
    sr: int = SR,
    start: int = 5120,
    burst: int = 768,
    tail_seconds: float = 1.0,
) -> np.ndarray:
    """1 kHz bursts at `bpm`, each start snapped to the 512-sample onset grid."""
    interval = 60.0 * sr / bpm
    starts = [512 * int(round((start + k * interval) / 512)) for k in range(clicks)]
    y = np.zeros(starts[-1] + burst + int(tail_seconds * sr))
    tone = 0.8 * np.sin(2.0 * np.pi * 1000.0 * np.arange(burst) / sr)
    for s in starts:
        y[s : s + burst] = tone
    return y


@pytest.fixture()
def make_sine() -> Callable[..., np.ndarray]:
    return sine


@pytest.fixture()
def make_click_track() -> Callable[..., np.ndarray]:
    return click_track


@pytest.fixture()
def silence() -> np.ndarray:
    return np.zeros(SR * 2)


@pytest.fixture()
def file_analysis() -> FileAnalysis:
    """A real analysis of a 100 BPM click track, as the engine would return it."""
    clip = ClipAnalyzer().analyze(click_track(), SR)
    return FileAnalysis(path="/clips/groove.wav", clip=clip, processing_time_ms=42.0)


# ---------------------------------------------------------------------------
# Descriptor builders
# ---------------------------------------------------------------------------


def descriptors(
    *,
    tempo: float,
    peak_count: int = 10,
    regularity: float = 0.5,
    polyrhythmic: bool = False,
    complexity: float = 0.4,
    percussiveness: float = 0.05,
    centroid: float = 2000.0,
    brightness: float = 0.2,
    scale: str = "C Major (Western)",
) -> tuple[RhythmAnalysis, ScaleAnalysis, SpectralAnalysis]:
    """Build the (rhythm, scale, spectral) triple the classifier consumes."""
    rhythm = RhythmAnalysis(
        tempo=tempo,
        peak_count=peak_count,
        regularity=regularity,
        polyrhythmic=polyrhythmic,
        temporal_complexity=complexity,
        percussiveness=percussiveness,
    )
    scale_analysis = ScaleAnalysis(scale=scale, score=1.0, confidence=0.8)
    spectral = SpectralAnalysis(centroid=centroid, rolloff=centroid * 2.0, flux=0.0, brightness=brightness)
    return rhythm, scale_analysis, spectral


@pytest.fixture()
def make_descriptors() -> Callable[..., tuple[RhythmAnalysis, ScaleAnalysis, SpectralAnalysis]]:
    return descriptors


def bundle(*, mfcc: tuple[float, ...] | None = None, tempo: float = 120.0, centroid: float = 2000.0) -> AcousticFeatureBundle:
    """Minimal feature bundle; MFCC all zeros unless given."""
    return AcousticFeatureBundle(
        mfcc=mfcc if mfcc is not None else (0.0,) * 13,
        spectral=SpectralSummary(centroid=centroid, spread=1000.0, rolloff=4000.0, flux=1.0),
        onset_strength=1.0,
        tempo=tempo,
        key_detection=None,
        source_hash="0" * 16,
        sample_rate=SR,
        duration_sec=5.0,
    )


@pytest.fixture()
def make_bundle() -> Callable[..., AcousticFeatureBundle]:
    return bundle


# ---------------------------------------------------------------------------
# Fake model adapters
# ---------------------------------------------------------------------------


class FixedAdapter:
    """Returns the same distribution for every bundle."""

    def __init__(self, scores: dict[str, float], *, trained: bool = True, authoritative: bool = False) -> None:
        self.scores = scores
        self.trained = trained
        self.authoritative = authoritative
        self.calls = 0

    def predict(self, bundle) -> ModelAdapterResult:
        self.calls += 1
        preds = tuple(
            ModelPrediction(genre=g, confidence=c) for g, c in sorted(self.scores.items(), key=lambda kv: -kv[1])
        )
        return ModelAdapterResult(
            top_genre=preds[0].genre if preds else "Unknown",
            confidence=preds[0].confidence if preds else 0.0,
            predictions=preds,
            model_trained=self.trained,
            authoritative=self.authoritative,
        )


class RaisingAdapter:
    """Always fails."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or RuntimeError("model exploded")
        self.calls = 0

    def predict(self, bundle) -> ModelAdapterResult:
        self.calls += 1
        raise self.exc


class SlowAdapter:
    """Sleeps longer than any test timeout before answering."""

    def __init__(self, delay: float = 1.0) -> None:
        self.delay = delay

    def predict(self, bundle) -> ModelAdapterResult:
        time.sleep(self.delay)
        return FixedAdapter({"Jazz": 0.9}).predict(bundle)


@pytest.fixture()
def fixed_adapter() -> type[FixedAdapter]:
    return FixedAdapter


@pytest.fixture()
def raising_adapter() -> RaisingAdapter:
    return RaisingAdapter()


@pytest.fixture()
def slow_adapter() -> SlowAdapter:
    return SlowAdapter()
