"""
core/audio/rhythm.py — Tempo, regularity, complexity and polyrhythm from onsets.

analyze_rhythm() is the entry point; the helpers below are public so the
classifier tests can drive them with hand-built interval lists.

Thresholds:
    Polyrhythm requires >= 6 onsets, an interval coefficient of variation
    of at least 0.25, and more than 3 distinct GCD ratios. A steady pulse
    with the odd doubled interval therefore never counts as polyrhythmic.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from functools import reduce

import numpy as np
from scipy import stats as scipy_stats

from core.audio.onsets import detect_onsets
from core.audio.spectral import zero_crossing_rate
from core.audio.types import PolyrhythmResult, RhythmAnalysis

POLYRHYTHM_MIN_ONSETS: int = 6
POLYRHYTHM_MIN_CV: float = 0.25
POLYRHYTHM_MIN_DISTINCT: int = 4
COMPLEXITY_BINS: int = 10


def intervals_from_onsets(onsets: Sequence[int]) -> tuple[float, ...]:
    """Consecutive gaps between onset positions."""
    return tuple(float(b - a) for a, b in zip(onsets, onsets[1:]))


def tempo_from_intervals(intervals: Sequence[float], sample_rate: int) -> float:
    """BPM from the mean inter-onset interval (samples). 0.0 if none."""
    if not intervals or sample_rate <= 0:
        return 0.0
    mean = float(np.mean(intervals))
    if mean <= 0.0:
        return 0.0
    return 60.0 * sample_rate / mean


def coefficient_of_variation(intervals: Sequence[float]) -> float:
    """Population std / mean of the intervals. 0.0 when undefined."""
    if len(intervals) < 2:
        return 0.0
    arr = np.asarray(intervals, dtype=np.float64)
    mean = float(arr.mean())
    if mean <= 0.0:
        return 0.0
    return float(arr.std()) / mean


def regularity(intervals: Sequence[float]) -> float:
    """max(0, 1 - CV). 0.0 with fewer than two intervals."""
    if len(intervals) < 2:
        return 0.0
    return max(0.0, 1.0 - coefficient_of_variation(intervals))


def temporal_complexity(intervals: Sequence[float]) -> float:
    """Normalised entropy of a 10-bin interval histogram, in [0, 1]."""
    if len(intervals) < 2:
        return 0.0
    arr = np.asarray(intervals, dtype=np.float64)
    lo, hi = float(arr.min()), float(arr.max())
    bin_width = (hi - lo) / COMPLEXITY_BINS
    bins = np.minimum(
        COMPLEXITY_BINS - 1,
        np.floor((arr - lo) / (bin_width + 0.001)).astype(int),
    )
    counts = np.bincount(bins, minlength=COMPLEXITY_BINS)
    entropy = float(scipy_stats.entropy(counts, base=2))
    return min(1.0, max(0.0, entropy / math.log2(COMPLEXITY_BINS)))


def detect_polyrhythm(intervals: Sequence[float], *, onset_count: int | None = None) -> PolyrhythmResult:
    """GCD-ratio polyrhythm detection.

    Intervals are rounded to integers, divided by their GCD, and the
    distinct integer ratios counted.

    Args:
        intervals: Inter-onset intervals in samples.
        onset_count: Number of onsets; defaults to len(intervals) + 1.
    """
    rounded = [int(round(v)) for v in intervals if v > 0]
    if not rounded:
        return PolyrhythmResult(is_polyrhythmic=False, ratio=None, distinct_ratios=0)

    divisor = reduce(math.gcd, rounded)
    ratios = sorted({int(round(v / divisor)) for v in rounded})
    ratio = ":".join(str(r) for r in ratios) if len(ratios) > 1 else None

    onsets = len(intervals) + 1 if onset_count is None else onset_count
    is_poly = (
        onsets >= POLYRHYTHM_MIN_ONSETS
        and coefficient_of_variation(intervals) >= POLYRHYTHM_MIN_CV
        and len(ratios) >= POLYRHYTHM_MIN_DISTINCT
    )
    return PolyrhythmResult(is_polyrhythmic=is_poly, ratio=ratio, distinct_ratios=len(ratios))


def analyze_rhythm(
    samples: np.ndarray,
    sample_rate: int,
    *,
    onsets: Sequence[int] | None = None,
) -> RhythmAnalysis:
    """Derive rhythm descriptors from a mono buffer.

    Args:
        samples: Mono samples.
        sample_rate: Sample rate in Hz.
        onsets: Pre-computed onset positions. Detected when None.

    Returns:
        RhythmAnalysis. Silence yields tempo 0, regularity 0, no intervals.
    """
    peaks = tuple(detect_onsets(samples)) if onsets is None else tuple(int(p) for p in onsets)
    intervals = intervals_from_onsets(peaks)
    poly = detect_polyrhythm(intervals, onset_count=len(peaks))

    return RhythmAnalysis(
        tempo=tempo_from_intervals(intervals, sample_rate),
        peak_count=len(peaks),
        regularity=regularity(intervals),
        intervals=intervals,
        polyrhythmic=poly.is_polyrhythmic,
        temporal_complexity=temporal_complexity(intervals),
        percussiveness=min(1.0, zero_crossing_rate(samples)),
        polyrhythm_ratio=poly.ratio,
    )
