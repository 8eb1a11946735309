"""
core/audio/windowing.py — Windowing and spectral projection utilities.

Pure numeric functions with no state: Hann window, framing, magnitude
spectrum, and the Mel / Chroma projections used by the basic feature path.

Design:
    - Magnitude spectra are one-sided (rfft), length n_fft // 2 + 1.
    - Bin k of a one-sided spectrum of length N maps to k * (sr / 2) / N Hz
      — the same convention the spectral analyzer uses for centroid/rolloff.
    - Mel projection samples the spectrum at Mel-spaced band centres
      (nearest bin), not triangular filters. This keeps the basic path
      dependency-free; the rich path uses librosa's filterbank instead.
"""

from __future__ import annotations

import numpy as np
from scipy import fft as sp_fft
from scipy.signal import get_window

_A4_HZ: float = 440.0
_CHROMA_MIN_HZ: float = 20.0


# ---------------------------------------------------------------------------
# Windows and framing
# ---------------------------------------------------------------------------


def hann_window(n: int) -> np.ndarray:
    """Return a symmetric Hann window of length n.

    Raises:
        ValueError: If n <= 0.
    """
    if n <= 0:
        raise ValueError(f"window length must be positive, got {n}")
    if n == 1:
        return np.ones(1)
    return get_window("hann", n, fftbins=False)


def frame_signal(samples: np.ndarray, frame_size: int, hop_size: int) -> np.ndarray:
    """Slice a 1-D signal into overlapping frames.

    The ragged tail shorter than frame_size is dropped.

    Returns:
        Array of shape (n_frames, frame_size). n_frames may be 0.
    """
    if frame_size <= 0 or hop_size <= 0:
        raise ValueError(f"frame_size and hop_size must be positive, got {frame_size}, {hop_size}")
    x = np.asarray(samples, dtype=np.float64)
    if x.size < frame_size:
        return np.empty((0, frame_size))
    n_frames = 1 + (x.size - frame_size) // hop_size
    idx = np.arange(frame_size)[None, :] + hop_size * np.arange(n_frames)[:, None]
    return x[idx]


def magnitude_spectrum(frame: np.ndarray, *, window: bool = True) -> np.ndarray:
    """Hann-windowed one-sided FFT magnitude of a frame."""
    x = np.asarray(frame, dtype=np.float64)
    if x.size == 0:
        return np.zeros(0)
    if window:
        x = x * hann_window(x.size)
    return np.abs(sp_fft.rfft(x))


def bin_frequencies(n_bins: int, sample_rate: int) -> np.ndarray:
    """Centre frequency in Hz of each bin of a one-sided spectrum."""
    if n_bins <= 0:
        return np.zeros(0)
    return np.arange(n_bins) * (sample_rate / 2.0) / n_bins


# ---------------------------------------------------------------------------
# Mel
# ---------------------------------------------------------------------------


def hz_to_mel(hz: float | np.ndarray) -> float | np.ndarray:
    """HTK Mel scale: 2595 * log10(1 + f / 700)."""
    return 2595.0 * np.log10(1.0 + np.asarray(hz, dtype=np.float64) / 700.0)


def mel_to_hz(mel: float | np.ndarray) -> float | np.ndarray:
    """Inverse of hz_to_mel."""
    return 700.0 * (10.0 ** (np.asarray(mel, dtype=np.float64) / 2595.0) - 1.0)


def spectrum_to_mel(
    spectrum: np.ndarray,
    sample_rate: int,
    *,
    n_mels: int = 64,
    fmin: float = 20.0,
    fmax: float | None = None,
) -> np.ndarray:
    """Project a one-sided magnitude spectrum onto n_mels Mel bands.

    Each band takes the magnitude of the bin nearest to its Mel-spaced
    centre frequency. Bands whose centre falls outside the spectrum are 0.
    """
    spec = np.abs(np.asarray(spectrum, dtype=np.float64))
    out = np.zeros(n_mels)
    if spec.size == 0 or n_mels <= 0:
        return out

    top = sample_rate / 2.0 if fmax is None else fmax
    centres = mel_to_hz(np.linspace(hz_to_mel(fmin), hz_to_mel(top), n_mels))
    bin_hz = (sample_rate / 2.0) / spec.size
    idx = np.rint(centres / bin_hz).astype(int)
    valid = (idx >= 0) & (idx < spec.size)
    out[valid] = spec[idx[valid]]
    return out


# ---------------------------------------------------------------------------
# Chroma
# ---------------------------------------------------------------------------


def spectrum_to_chroma(spectrum: np.ndarray, sample_rate: int) -> np.ndarray:
    """Fold a one-sided magnitude spectrum into 12 pitch classes.

    Bins below 20 Hz are ignored. Each remaining bin is assigned to the
    nearest equal-tempered semitone relative to A440 and the result is
    normalised by its maximum (index 0 = C).
    """
    spec = np.abs(np.asarray(spectrum, dtype=np.float64))
    chroma = np.zeros(12)
    if spec.size == 0:
        return chroma

    freqs = bin_frequencies(spec.size, sample_rate)
    mask = freqs >= _CHROMA_MIN_HZ
    if not np.any(mask):
        return chroma

    # semitones relative to A4; A is pitch class 9
    semis = np.rint(12.0 * np.log2(freqs[mask] / _A4_HZ)).astype(int)
    classes = (semis + 9) % 12
    np.add.at(chroma, classes, spec[mask])
    return chroma / max(float(chroma.max()), 1e-10)
