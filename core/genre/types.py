"""
core/genre/types.py — Frozen data types for genre classification results.

All types are frozen dataclasses — constructed once per classify call and
never mutated. The mutable score accumulator lives in core/genre/scoring.py
and never escapes a single call.

Design principles:
    - Predictions carry integer percentages (0–100) so API and tool
      consumers never see float noise.
    - Provenance is a side channel: everything the pipeline decided along
      the way (corrections, fired rules, adapter handling) is recorded on
      ClassificationProvenance, never folded into the prediction labels.
    - Adapter handling is an explicit enum (AdapterKind + AdapterStatus)
      instead of ad-hoc flags.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Canonical genre labels in table order. Ties in the ranking resolve in
# this order.
GENRES: tuple[str, ...] = (
    "Blues",
    "Classical",
    "Electronic",
    "Folk",
    "Hip Hop",
    "Indian Classical",
    "Indigenous",
    "Jazz",
    "Latin",
    "Metal",
    "Pop",
    "R&B/Soul",
    "Reggae",
    "Rock",
    "World",
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AdapterKind(str, Enum):
    """What kind of trained-model collaborator the call was given."""

    ABSENT = "absent"
    HEURISTIC = "heuristic"
    TRAINED = "trained"


class AdapterStatus(str, Enum):
    """How the adapter's output was used by the fusion step."""

    ABSENT = "absent"
    UNTRAINED = "untrained"
    FAILED = "failed"
    LOW_CONFIDENCE = "low_confidence"
    """Trained, but no prediction cleared the confidence floor."""

    BLENDED = "blended"
    OVERRIDE = "override"


class BpmVerdict(str, Enum):
    """Outcome of checking the tempo against the winner's canonical range."""

    OK = "ok"
    HALF = "0.5x"
    DOUBLE = "2x"
    OUT_OF_RANGE = "out_of_range"
    """Neither the tempo nor its half/double fits the range."""

    UNKNOWN = "unknown"
    """No tempo was detected, or the winner has no canonical range."""


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenrePrediction:
    """One ranked genre label.

    Invariants:
        0 <= confidence <= 100
        genre is a canonical label or an "A-B" blend of two of them
    """

    genre: str
    confidence: int
    """Integer percentage."""

    def __post_init__(self) -> None:
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be in [0, 100], got {self.confidence}")


@dataclass(frozen=True)
class ModelPrediction:
    """One entry of a model adapter's output distribution."""

    genre: str
    confidence: float
    """Probability in [0, 1]."""


@dataclass(frozen=True)
class ModelAdapterResult:
    """What a ModelAdapter.predict() call returns.

    Invariants:
        0.0 <= confidence <= 1.0
        predictions are sorted by descending confidence
    """

    top_genre: str
    confidence: float
    predictions: tuple[ModelPrediction, ...]
    model_trained: bool
    """False for feature-based stubs. Untrained output never touches the scores."""

    authoritative: bool = False
    """Trained + authoritative → the adapter's ranking overrides the heuristics."""


# ---------------------------------------------------------------------------
# BPM correction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TempoCorrection:
    """Advisory tempo correction for the winning genre."""

    verdict: BpmVerdict
    original_bpm: float
    corrected_bpm: float | None
    """Suggested tempo, None unless the verdict is HALF or DOUBLE."""

    confidence_factor: float
    """0.85 for a half-time verdict, 0.70 for double-time, 1.0 otherwise."""

    genre: str | None = None


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassificationProvenance:
    """Side channel describing how one ranking was reached."""

    raw_scores: tuple[tuple[str, float], ...]
    """Score table after fusion, before clamping, in table order."""

    tempo_in: float
    tempo_used: float
    """Tempo after the early half-time correction."""

    early_correction: bool
    fired_rules: tuple[str, ...]
    adapter_kind: AdapterKind
    adapter_status: AdapterStatus
    mfcc_nudged: bool
    blended: bool
    bpm: TempoCorrection | None = None
    relative_fallback: bool = False
    """True when no score was positive and confidences are relative-to-max."""


@dataclass(frozen=True)
class GenreClassification:
    """Ranked predictions plus the provenance that produced them."""

    predictions: tuple[GenrePrediction, ...]
    provenance: ClassificationProvenance = field(repr=False)

    @property
    def top(self) -> GenrePrediction:
        return self.predictions[0]
