"""
core/audio/features.py — Feature extraction façade.

Builds the AcousticFeatureBundle consumed by the genre classifier and
any trained-model adapter. `librosa` is always injected as a parameter —
never imported at module top — so this module is testable without
installing the audio stack.

Design:
    - Rich path (librosa given): 13 MFCC means, 64-band log-Mel means,
      CQT chroma and onset strength. Each rich feature is extracted in
      its own guarded block; one failing feature falls back to its basic
      value and flags the bundle `basic_features=True`.
    - Basic path (librosa=None): numpy-only spectral summary, chroma and
      log-Mel from the mean magnitude spectrum, zeroed MFCC.
    - `extract_key()` is pure numpy. It takes a 12-element chroma vector
      and runs Krumhansl-Schmuckler.
    - `compute_source_hash()` fingerprints length + energy + 8 evenly
      spaced samples so stale or duplicate inputs are detectable.

Krumhansl-Schmuckler profiles (1990):
    Psychoacoustic salience weights for each of 12 pitch classes
    relative to a tonal centre. Pearson correlation against all 24
    key templates (12 major + 12 minor) selects the best match.
"""

from __future__ import annotations

import hashlib
from typing import Any

import numpy as np

from core.audio.onsets import frame_energies
from core.audio.pitch import NOTE_NAMES
from core.audio.spectral import SpectralAnalyzer
from core.audio.types import (
    MAX_RAW_AUDIO_SEC,
    AcousticFeatureBundle,
    KeyDetection,
    SpectralSummary,
)
from core.audio.windowing import frame_signal, magnitude_spectrum, spectrum_to_chroma, spectrum_to_mel

# ---------------------------------------------------------------------------
# Krumhansl-Schmuckler profiles (1990), starting from C
# ---------------------------------------------------------------------------

_MAJOR_PROFILE: tuple[float, ...] = (6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88)
_MINOR_PROFILE: tuple[float, ...] = (6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17)


# Preferred flat spellings for minor keys
_ENHARMONIC_MINOR: dict[str, str] = {"A#": "Bb", "D#": "Eb", "G#": "Ab"}

N_MFCC: int = 13
N_MELS: int = 64
MEL_FMIN: float = 20.0
FRAME_SIZE: int = 2048
HOP_SIZE: int = 512
_LOG_FLOOR: float = 1e-9
_HASH_POINTS: int = 8

# Model-input vector: per-slot (min, max) normalisation bounds
_MFCC_RANGE: tuple[float, float] = (-100.0, 100.0)
_SCALAR_RANGES: tuple[tuple[str, float, float], ...] = (
    ("tempo", 40.0, 300.0),
    ("centroid", 0.0, 11000.0),
    ("spread", 0.0, 8000.0),
    ("rolloff", 0.0, 22050.0),
    ("flux", 0.0, 100.0),
    ("onset_strength", 0.0, 10.0),
)
FEATURE_VECTOR_SIZE: int = N_MFCC + len(_SCALAR_RANGES) + 12 + 1


# ---------------------------------------------------------------------------
# Source fingerprint
# ---------------------------------------------------------------------------


def bound_raw_audio(samples: np.ndarray | None, sample_rate: int) -> np.ndarray | None:
    """Return a read-only copy of at most MAX_RAW_AUDIO_SEC of `samples`."""
    if samples is None:
        return None
    limit = int(MAX_RAW_AUDIO_SEC * sample_rate) if sample_rate > 0 else 0
    arr = np.array(np.asarray(samples, dtype=np.float64)[:limit], copy=True)
    arr.setflags(write=False)
    return arr


def compute_source_hash(samples: np.ndarray | None) -> str:
    """Deterministic fingerprint: length + energy + 8 evenly spaced samples.

    Returns:
        16-char hex digest. Identical buffers always hash identically.
    """
    if samples is None or len(samples) == 0:
        payload = "0|0.000000"
    else:
        x = np.asarray(samples, dtype=np.float64)
        energy = float(np.sum(x * x))
        idx = np.linspace(0, x.size - 1, _HASH_POINTS).astype(int)
        points = ",".join(f"{v:.6f}" for v in x[idx])
        payload = f"{x.size}|{energy:.6f}|{points}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Key detection — pure numpy, no librosa
# ---------------------------------------------------------------------------


def extract_key(chroma_mean: np.ndarray) -> KeyDetection:
    """Detect musical key using Krumhansl-Schmuckler profiles.

    Pearson-correlates the 12-element chroma distribution against all
    24 key templates (12 major + 12 minor). The best correlation wins.

    Args:
        chroma_mean: np.ndarray of shape (12,) — pitch class distribution.

    Returns:
        KeyDetection with key, scale ('major'/'minor') and strength (best
        Pearson r clamped to [0, 1]). Flat/silent chroma gives strength 0.

    Raises:
        ValueError: If chroma_mean is not shape (12,).
    """
    chroma_mean = np.asarray(chroma_mean, dtype=np.float64)
    if chroma_mean.shape != (12,):
        raise ValueError(f"chroma_mean must have shape (12,), got {chroma_mean.shape}")

    best_score = -2.0
    best_root = "C"
    best_mode = "major"
    major_arr = np.array(_MAJOR_PROFILE)
    minor_arr = np.array(_MINOR_PROFILE)

    for root_idx in range(12):
        # zero-variance chroma → NaN → 0.0
        with np.errstate(invalid="ignore", divide="ignore"):
            major_r = float(np.nan_to_num(np.corrcoef(chroma_mean, np.roll(major_arr, root_idx))[0, 1]))
            minor_r = float(np.nan_to_num(np.corrcoef(chroma_mean, np.roll(minor_arr, root_idx))[0, 1]))

        if major_r > best_score:
            best_score = major_r
            best_root = NOTE_NAMES[root_idx]
            best_mode = "major"
        if minor_r > best_score:
            best_score = minor_r
            best_root = _ENHARMONIC_MINOR.get(NOTE_NAMES[root_idx], NOTE_NAMES[root_idx])
            best_mode = "minor"

    return KeyDetection(key=best_root, scale=best_mode, strength=max(0.0, min(1.0, best_score)))


# ---------------------------------------------------------------------------
# Basic (numpy-only) extractors
# ---------------------------------------------------------------------------


def summarize_spectrum(y: np.ndarray, sr: int) -> tuple[SpectralSummary, np.ndarray]:
    """Frame-averaged centroid/spread/rolloff/flux and the mean spectrum.

    Uses a private SpectralAnalyzer so flux history never leaks into the
    caller's analyzer.
    """
    frames = frame_signal(y, FRAME_SIZE, HOP_SIZE)
    if frames.shape[0] == 0:
        if len(y) == 0:
            return SpectralSummary(), np.zeros(0)
        frames = np.asarray(y, dtype=np.float64)[None, :]

    analyzer = SpectralAnalyzer()
    spectra = [magnitude_spectrum(frame) for frame in frames]
    results = [analyzer.analyze(spec, sr) for spec in spectra]
    fluxes = [r.flux for r in results[1:]]

    summary = SpectralSummary(
        centroid=float(np.mean([r.centroid for r in results])),
        spread=float(np.mean([r.spread for r in results])),
        rolloff=float(np.mean([r.rolloff for r in results])),
        flux=float(np.mean(fluxes)) if fluxes else 0.0,
    )
    return summary, np.mean(np.stack(spectra), axis=0)


def basic_onset_strength(y: np.ndarray) -> float:
    """Mean positive frame-to-frame RMS increase."""
    _, energies = frame_energies(y)
    if energies.size < 2:
        return 0.0
    rises = np.diff(energies)
    rises = rises[rises > 0]
    return float(rises.mean()) if rises.size else 0.0


def basic_log_mel(mean_spectrum: np.ndarray, sr: int) -> np.ndarray:
    mel = spectrum_to_mel(mean_spectrum, sr, n_mels=N_MELS, fmin=MEL_FMIN)
    return np.log10(np.maximum(mel, _LOG_FLOOR))


# ---------------------------------------------------------------------------
# Rich (librosa) extractors
# ---------------------------------------------------------------------------


def extract_mfcc(y: np.ndarray, sr: int, *, librosa: Any) -> np.ndarray:
    """13 MFCC coefficient means (n_fft 2048, hop 512)."""
    mfcc = librosa.feature.mfcc(y=y, sr=sr, n_mfcc=N_MFCC, n_fft=FRAME_SIZE, hop_length=HOP_SIZE)
    means = np.mean(np.asarray(mfcc, dtype=np.float64), axis=1)
    if means.shape != (N_MFCC,):
        raise ValueError(f"expected {N_MFCC} MFCC coefficients, got shape {means.shape}")
    return means


def extract_log_mel(y: np.ndarray, sr: int, *, librosa: Any) -> np.ndarray:
    """64 log10 Mel band means (20 Hz – Nyquist)."""
    mel = librosa.feature.melspectrogram(
        y=y, sr=sr, n_fft=FRAME_SIZE, hop_length=HOP_SIZE, n_mels=N_MELS, fmin=MEL_FMIN, fmax=sr / 2.0
    )
    means = np.mean(np.log10(np.maximum(np.asarray(mel, dtype=np.float64), _LOG_FLOOR)), axis=1)
    if means.shape != (N_MELS,):
        raise ValueError(f"expected {N_MELS} Mel bands, got shape {means.shape}")
    return means


def extract_chroma(y: np.ndarray, sr: int, *, librosa: Any) -> np.ndarray:
    """Mean CQT chromagram, normalised by its maximum."""
    chroma = np.mean(np.asarray(librosa.feature.chroma_cqt(y=y, sr=sr), dtype=np.float64), axis=1)
    if chroma.shape != (12,):
        raise ValueError(f"expected 12 chroma bins, got shape {chroma.shape}")
    return chroma / max(float(chroma.max()), 1e-10)


def extract_onset_strength(y: np.ndarray, sr: int, *, librosa: Any) -> float:
    """Mean onset-strength envelope."""
    return float(np.mean(librosa.onset.onset_strength(y=y, sr=sr)))


# ---------------------------------------------------------------------------
# Façade
# ---------------------------------------------------------------------------


def extract_features(
    y: np.ndarray,
    sr: int,
    *,
    librosa: Any = None,
    tempo: float = 0.0,
    keep_raw_audio: bool = True,
) -> AcousticFeatureBundle:
    """Build an AcousticFeatureBundle from a mono buffer.

    Never raises for degraded extraction: failures default the affected
    feature and set `basic_features=True`.

    Args:
        y: Mono samples.
        sr: Sample rate in Hz.
        librosa: Injected librosa module. None = basic numpy path.
        tempo: Tempo (BPM) from the rhythm analyzer, stored on the bundle.
        keep_raw_audio: Attach up to 15 s of samples as `raw_audio`.

    Returns:
        AcousticFeatureBundle with a source hash of the retained audio.
    """
    x = np.nan_to_num(np.asarray(y, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
    bounded = bound_raw_audio(x, sr)
    analysis = bounded if bounded is not None else x

    summary, mean_spec = summarize_spectrum(analysis, sr)
    mfcc = np.zeros(N_MFCC)
    log_mel = basic_log_mel(mean_spec, sr)
    chroma = spectrum_to_chroma(mean_spec, sr)
    onset_strength = basic_onset_strength(analysis)
    basic = True

    if librosa is not None:
        basic = False
        y32 = analysis.astype(np.float32)
        try:
            mfcc = extract_mfcc(y32, sr, librosa=librosa)
        except Exception:
            basic = True
        try:
            log_mel = extract_log_mel(y32, sr, librosa=librosa)
        except Exception:
            basic = True
        try:
            chroma = extract_chroma(y32, sr, librosa=librosa)
        except Exception:
            basic = True
        try:
            onset_strength = extract_onset_strength(y32, sr, librosa=librosa)
        except Exception:
            basic = True

    key_detection = extract_key(chroma) if chroma.any() else None

    raw = bounded if keep_raw_audio else None
    return AcousticFeatureBundle(
        mfcc=tuple(float(v) for v in mfcc),
        spectral=summary,
        onset_strength=onset_strength,
        tempo=float(tempo) if np.isfinite(tempo) else 0.0,
        key_detection=key_detection,
        source_hash=compute_source_hash(bounded),
        sample_rate=sr,
        duration_sec=float(analysis.size) / sr if sr > 0 else 0.0,
        log_mel=tuple(float(v) for v in log_mel),
        chroma=tuple(float(v) for v in chroma),
        basic_features=basic,
        raw_audio=raw,
    )


def feature_vector(bundle: AcousticFeatureBundle) -> np.ndarray:
    """Normalised model-input vector (see AcousticFeatureBundle.to_vector)."""
    lo, hi = _MFCC_RANGE
    mfcc = np.zeros(N_MFCC)
    mfcc[: len(bundle.mfcc)] = np.asarray(bundle.mfcc[:N_MFCC], dtype=np.float64)
    parts = [np.clip((mfcc - lo) / (hi - lo), 0.0, 1.0)]

    scalars = {
        "tempo": bundle.tempo,
        "centroid": bundle.spectral.centroid,
        "spread": bundle.spectral.spread,
        "rolloff": bundle.spectral.rolloff,
        "flux": bundle.spectral.flux,
        "onset_strength": bundle.onset_strength,
    }
    parts.append(
        np.array([min(1.0, max(0.0, (scalars[name] - a) / (b - a))) for name, a, b in _SCALAR_RANGES])
    )

    chroma = np.zeros(12)
    if len(bundle.chroma) == 12:
        chroma = np.clip(np.asarray(bundle.chroma, dtype=np.float64), 0.0, 1.0)
    parts.append(chroma)
    parts.append(np.array([bundle.key_detection.strength if bundle.key_detection else 0.0]))

    return np.nan_to_num(np.concatenate(parts), nan=0.0)
