"""
core/audio/pitch.py — Autocorrelation pitch detection.

detect_pitch() estimates the fundamental of one buffer:

    1. RMS noise gate (0.005) — quieter buffers report NO_PITCH.
    2. Normalise by RMS.
    3. Autocorrelate over lags covering 80–1000 Hz, each correlation
       averaged over the first half of the buffer.
    4. Accept the best lag only if its correlation exceeds 0.3.
    5. Parabolic refinement around the peak, skipped at the lag boundary.

The best lag can land on a multiple of the true period (subharmonic).
Below 240 Hz only the doubled period fits under the 80 Hz lag limit, so
there the error is a whole octave and the pitch class is unaffected.
"""

from __future__ import annotations

import math

import numpy as np

from core.audio.windowing import frame_signal

NO_PITCH: float = -1.0
"""Sentinel returned when no fundamental is detected."""

NOISE_FLOOR_RMS: float = 0.005
MIN_FREQUENCY_HZ: float = 80.0
MAX_FREQUENCY_HZ: float = 1000.0
MIN_CORRELATION: float = 0.3

NOTE_NAMES: tuple[str, ...] = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")


def _lag_correlation(x: np.ndarray, lag: int, n: int) -> float:
    return float(np.dot(x[:n], x[lag : lag + n])) / n


def detect_pitch(samples: np.ndarray, sample_rate: int) -> float:
    """Estimate the fundamental frequency of a buffer.

    Args:
        samples: Mono samples. NaN/inf are treated as silence.
        sample_rate: Sample rate in Hz.

    Returns:
        Frequency in Hz, or NO_PITCH (-1.0) for silence, empty input,
        or a correlation peak weaker than MIN_CORRELATION.
    """
    x = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
    size = x.size
    if size == 0 or sample_rate <= 0:
        return NO_PITCH

    rms = math.sqrt(float(np.mean(x * x)))
    if rms < NOISE_FLOOR_RMS:
        return NO_PITCH

    x = x / rms
    max_samples = size // 2
    min_lag = int(sample_rate // MAX_FREQUENCY_HZ)
    max_lag = min(int(sample_rate // MIN_FREQUENCY_HZ), max_samples)

    best_lag = -1
    best_corr = 0.0
    for lag in range(max(min_lag, 1), max_lag):
        corr = _lag_correlation(x, lag, max_samples)
        if corr > best_corr:
            best_corr = corr
            best_lag = lag

    if best_lag == -1 or best_corr <= MIN_CORRELATION:
        return NO_PITCH

    refined = float(best_lag)
    if 0 < best_lag < max_samples - 1:
        c1 = _lag_correlation(x, best_lag - 1, max_samples)
        c3 = _lag_correlation(x, best_lag + 1, max_samples)
        denom = c1 - 2.0 * best_corr + c3
        if denom != 0.0:
            refined += 0.5 * (c1 - c3) / denom

    if refined <= 0.0:
        return NO_PITCH
    return sample_rate / refined


def track_pitches(
    samples: np.ndarray,
    sample_rate: int,
    *,
    frame_size: int = 2048,
    hop_size: int = 1024,
) -> tuple[float, ...]:
    """Run detect_pitch over successive frames and keep the voiced ones.

    Returns:
        Detected frequencies in frame order. Unvoiced frames are skipped.
    """
    frames = frame_signal(samples, frame_size, hop_size)
    pitches: list[float] = []
    for frame in frames:
        f0 = detect_pitch(frame, sample_rate)
        if f0 > 0.0:
            pitches.append(f0)
    return tuple(pitches)


# ---------------------------------------------------------------------------
# Note helpers
# ---------------------------------------------------------------------------


def hz_to_midi(frequency: float) -> int:
    """Nearest MIDI note number for a frequency (A4 = 440 Hz = 69)."""
    if frequency <= 0:
        raise ValueError(f"frequency must be positive, got {frequency}")
    return int(round(12.0 * math.log2(frequency / 440.0) + 69.0))


def hz_to_pitch_class(frequency: float) -> int:
    """Pitch class 0–11 (C = 0) of a frequency."""
    return hz_to_midi(frequency) % 12


def midi_to_name(midi: int) -> str:
    """Scientific pitch name, e.g. 69 → 'A4', 60 → 'C4'."""
    return f"{NOTE_NAMES[midi % 12]}{midi // 12 - 1}"
