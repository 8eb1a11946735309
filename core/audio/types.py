"""
core/audio/types.py — Frozen data types for clip analysis results.

All types are frozen dataclasses — immutable value objects created fresh
by one analysis call and discarded with it.

Design principles:
    - No I/O, no side effects.
    - `AudioFrame` is the only type that validates at construction time:
      it is the framing boundary where an empty or malformed buffer must
      be signalled distinctly (InvalidAudioError) instead of flowing into
      the DSP code as a nonsense pitch.
    - Sequences are stored as tuples so results stay hashable.
    - `AcousticFeatureBundle.raw_audio` is excluded from equality/hashing;
      `source_hash` stands in for it and is recomputed on every rebuild.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

import numpy as np

# Raw audio retained on a feature bundle is capped at this many seconds.
MAX_RAW_AUDIO_SEC: float = 15.0


class InvalidAudioError(ValueError):
    """Raised when a buffer cannot be framed for analysis.

    Covers empty buffers, non-positive sample rates and non-1-D input.
    Subclasses ValueError so API and tool layers map it like any other
    invalid-input error.
    """


# ---------------------------------------------------------------------------
# AudioFrame
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AudioFrame:
    """A mono block of PCM samples plus the rate it was captured at.

    Invariants:
        samples is a non-empty, read-only, 1-D float64 array
        sample_rate > 0
        no NaN/inf values (replaced with 0.0 at construction)
    """

    samples: np.ndarray = field(compare=False)
    """Mono samples, normalised to float64 and made read-only."""

    sample_rate: int
    """Sample rate in Hz."""

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise InvalidAudioError(f"sample_rate must be positive, got {self.sample_rate}")

        arr = np.asarray(self.samples, dtype=np.float64)
        if arr.ndim != 1:
            raise InvalidAudioError(f"samples must be 1-D (mono), got shape {arr.shape}")
        if arr.size == 0:
            raise InvalidAudioError("samples buffer is empty")

        arr = np.nan_to_num(arr, nan=0.0, posinf=0.0, neginf=0.0)
        arr.setflags(write=False)
        object.__setattr__(self, "samples", arr)

    @property
    def duration_sec(self) -> float:
        """Length of the frame in seconds."""
        return float(self.samples.size) / float(self.sample_rate)

    def __len__(self) -> int:
        return int(self.samples.size)


# ---------------------------------------------------------------------------
# Rhythm
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PolyrhythmResult:
    """Outcome of GCD-ratio polyrhythm detection."""

    is_polyrhythmic: bool
    ratio: str | None
    """Distinct integer ratios joined with ':' (e.g. '1:2:3'), None if < 2."""

    distinct_ratios: int


@dataclass(frozen=True)
class RhythmAnalysis:
    """Rhythm descriptors derived from onset positions.

    Invariants:
        tempo >= 0.0  (0.0 = fewer than two onsets)
        peak_count >= 0
        0.0 <= regularity <= 1.0
        0.0 <= temporal_complexity <= 1.0
        0.0 <= percussiveness <= 1.0
    """

    tempo: float
    """Tempo in BPM from the mean inter-onset interval."""

    peak_count: int
    """Number of detected onsets."""

    regularity: float
    """Inverse coefficient of variation of the intervals. 1 = steady pulse."""

    intervals: tuple[float, ...] = ()
    """Inter-onset intervals in samples."""

    polyrhythmic: bool = False
    temporal_complexity: float = 0.0
    """Normalised Shannon entropy of the 10-bin interval histogram."""

    percussiveness: float = 0.0
    """Zero-crossing rate of the clip, used as a noisiness/percussion proxy."""

    polyrhythm_ratio: str | None = None


# ---------------------------------------------------------------------------
# Spectral / timbre
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SpectralAnalysis:
    """Timbre descriptors for one magnitude spectrum.

    Invariants:
        centroid, rolloff, spread >= 0 (Hz)
        flux >= 0
        0.0 <= brightness <= 1.0
    """

    centroid: float
    rolloff: float
    flux: float
    brightness: float
    """Centroid divided by the Nyquist frequency."""

    spread: float = 0.0
    zero_crossing_rate: float = 0.0


@dataclass(frozen=True)
class SpectralSummary:
    """Spectral block of an AcousticFeatureBundle."""

    centroid: float = 0.0
    spread: float = 0.0
    rolloff: float = 0.0
    flux: float = 0.0


# ---------------------------------------------------------------------------
# Scale / key
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScaleAnalysis:
    """Best-fit scale for a pitch sequence.

    Invariants:
        0.0 <= confidence <= 1.0
        scale == "Unknown" implies score == confidence == 0.0
    """

    scale: str
    """Root + template label, e.g. 'C Major (Western)', or 'Chromatic'/'Unknown'."""

    score: float
    confidence: float
    root: str | None = None
    template: str | None = None
    unique_classes: int = 0


UNKNOWN_SCALE = ScaleAnalysis(scale="Unknown", score=0.0, confidence=0.0)


@dataclass(frozen=True)
class KeyDetection:
    """Key estimate from chroma correlation (Krumhansl-Schmuckler).

    Invariants:
        scale in {"major", "minor"}
        0.0 <= strength <= 1.0
    """

    key: str
    """Root note name, e.g. 'A', 'C#', 'Bb'."""

    scale: str
    """'major' or 'minor'."""

    strength: float
    """Pearson correlation of the best profile match, clamped to [0, 1]."""

    @property
    def label(self) -> str:
        """Human-readable key label, e.g. 'A minor'."""
        return f"{self.key} {self.scale}"


# ---------------------------------------------------------------------------
# Feature bundle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcousticFeatureBundle:
    """The unit passed from feature extraction to classification.

    Never mutated after creation: use `with_raw_audio()` to derive a new
    bundle, which recomputes `source_hash`.

    Invariants:
        len(mfcc) == 13
        len(chroma) == 12 (or 0 when not computed)
        raw_audio is None or at most MAX_RAW_AUDIO_SEC long
        source_hash == compute_source_hash(raw_audio) whenever raw_audio is set
    """

    mfcc: tuple[float, ...]
    """13 MFCC means. All zeros when the rich extractor was unavailable."""

    spectral: SpectralSummary
    onset_strength: float
    tempo: float
    key_detection: KeyDetection | None
    source_hash: str
    sample_rate: int
    duration_sec: float

    log_mel: tuple[float, ...] = ()
    """64 mean log-Mel band energies."""

    chroma: tuple[float, ...] = ()
    """12 max-normalised pitch class energies."""

    basic_features: bool = False
    """True when any rich feature fell back to a default."""

    raw_audio: np.ndarray | None = field(default=None, compare=False, hash=False, repr=False)

    def with_raw_audio(self, samples: np.ndarray | None) -> AcousticFeatureBundle:
        """Return a copy referencing `samples` (bounded) with a fresh hash."""
        from core.audio.features import bound_raw_audio, compute_source_hash

        bounded = bound_raw_audio(samples, self.sample_rate)
        return dataclasses.replace(
            self,
            raw_audio=bounded,
            source_hash=compute_source_hash(bounded),
        )

    def to_vector(self) -> np.ndarray:
        """Flatten into a normalised model-input vector.

        Layout: 13 MFCC, tempo, centroid, spread, rolloff, flux,
        onset strength, 12 chroma, key strength — 32 values.
        """
        from core.audio.features import feature_vector

        return feature_vector(self)


@dataclass(frozen=True)
class ClipAnalysis:
    """Everything one ClipAnalyzer.analyze() call produces."""

    pitch_hz: float
    """Pitch of the whole clip, or NO_PITCH (-1.0)."""

    pitches: tuple[float, ...]
    rhythm: RhythmAnalysis
    spectral: SpectralAnalysis
    scale: ScaleAnalysis
    features: AcousticFeatureBundle
    classification: Any
    """core.genre.types.GenreClassification (kept untyped to avoid a cycle)."""
