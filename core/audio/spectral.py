"""
core/audio/spectral.py — Spectral / timbre analysis.

SpectralAnalyzer computes centroid, spread, rolloff, flux and brightness
from one-sided magnitude spectra. Flux needs the previous spectrum, so the
analyzer is a small stateful object: one instance per long-lived analysis
session, reset() to forget history. Separate instances share nothing.

Conventions:
    - Bin k of an N-bin spectrum is k * sr / (2N) Hz.
    - Rolloff is the frequency below which 85 % of the magnitude sum lies.
    - Flux is the L2 distance to the previous spectrum of the same length;
      the first call (or a length change) reports 0.
"""

from __future__ import annotations

import numpy as np

from core.audio.types import SpectralAnalysis
from core.audio.windowing import bin_frequencies, magnitude_spectrum

ROLLOFF_FRACTION: float = 0.85


def zero_crossing_rate(samples: np.ndarray) -> float:
    """Sign changes per sample (0 counts as positive). 0.0 for empty input."""
    x = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
    if x.size == 0:
        return 0.0
    negative = x < 0
    crossings = int(np.count_nonzero(negative[1:] != negative[:-1]))
    return crossings / x.size


def spectral_centroid(spectrum: np.ndarray, sample_rate: int) -> float:
    mags = np.abs(spectrum)
    total = float(mags.sum())
    if total <= 0.0:
        return 0.0
    return float(np.dot(bin_frequencies(mags.size, sample_rate), mags)) / total


def spectral_spread(spectrum: np.ndarray, sample_rate: int, centroid: float) -> float:
    mags = np.abs(spectrum)
    total = float(mags.sum())
    if total <= 0.0:
        return 0.0
    dev = bin_frequencies(mags.size, sample_rate) - centroid
    return float(np.sqrt(np.dot(dev * dev, mags) / total))


def spectral_rolloff(spectrum: np.ndarray, sample_rate: int, fraction: float = ROLLOFF_FRACTION) -> float:
    mags = np.abs(spectrum)
    total = float(mags.sum())
    if total <= 0.0:
        return 0.0
    cumulative = np.cumsum(mags)
    idx = int(np.searchsorted(cumulative, fraction * total))
    idx = min(idx, mags.size - 1)
    return float(bin_frequencies(mags.size, sample_rate)[idx])


class SpectralAnalyzer:
    """Stateful timbre analyzer owning the previous spectrum for flux.

    Example:
        analyzer = SpectralAnalyzer()
        first = analyzer.analyze(spec_a, 44100)   # flux == 0.0
        second = analyzer.analyze(spec_b, 44100)  # flux == ||spec_b - spec_a||
        analyzer.reset()
    """

    def __init__(self) -> None:
        self._previous: np.ndarray | None = None

    @property
    def has_history(self) -> bool:
        return self._previous is not None

    def reset(self) -> None:
        """Forget the previous spectrum."""
        self._previous = None

    def _flux(self, spectrum: np.ndarray) -> float:
        prev = self._previous
        self._previous = spectrum.copy()
        if prev is None or prev.shape != spectrum.shape:
            return 0.0
        diff = spectrum - prev
        return float(np.sqrt(np.dot(diff, diff)))

    def analyze(
        self,
        frequency_data: np.ndarray,
        sample_rate: int,
        *,
        zero_crossing: float = 0.0,
    ) -> SpectralAnalysis:
        """Describe one magnitude spectrum.

        Args:
            frequency_data: One-sided magnitude spectrum. NaN/inf → 0.
            sample_rate: Sample rate of the source signal in Hz.
            zero_crossing: ZCR of the source frame, carried through.

        Returns:
            SpectralAnalysis. An empty or all-zero spectrum yields zeros
            (flux still compares against the previous spectrum).
        """
        spec = np.abs(
            np.nan_to_num(np.asarray(frequency_data, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
        )
        if spec.size == 0 or sample_rate <= 0:
            return SpectralAnalysis(centroid=0.0, rolloff=0.0, flux=0.0, brightness=0.0)

        centroid = spectral_centroid(spec, sample_rate)
        nyquist = sample_rate / 2.0
        return SpectralAnalysis(
            centroid=centroid,
            rolloff=spectral_rolloff(spec, sample_rate),
            flux=self._flux(spec),
            brightness=min(1.0, max(0.0, centroid / nyquist)),
            spread=spectral_spread(spec, sample_rate, centroid),
            zero_crossing_rate=zero_crossing,
        )

    def analyze_signal(self, samples: np.ndarray, sample_rate: int) -> SpectralAnalysis:
        """Window + FFT a time-domain buffer, then analyze() it."""
        x = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
        return self.analyze(
            magnitude_spectrum(x),
            sample_rate,
            zero_crossing=zero_crossing_rate(x),
        )
