"""
core/genre/adapters.py — Trained-model adapter boundary.

The classifier talks to any genre model through the ModelAdapter protocol:
one `predict(bundle)` call returning a ModelAdapterResult. Two adapters
ship with the package:

    HeuristicGenreModel  feature-based stub with Discogs-style labels.
                         Always reports model_trained=False, so the fusion
                         step records it and ignores it.
    SoftmaxGenreModel    a dense softmax layer over bundle.to_vector(),
                         with weights loaded by ingestion/model_loader.py.

Model labels are free-form (Discogs classes, dataset names ...);
canonical_genre() maps them onto the 15 canonical labels. Labels with no
canonical counterpart are dropped from the result.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import numpy as np
from scipy.special import softmax

from core.audio.features import FEATURE_VECTOR_SIZE
from core.audio.rhythm import analyze_rhythm
from core.audio.types import AcousticFeatureBundle
from core.genre.types import AdapterKind, ModelAdapterResult, ModelPrediction

_MAX_PREDICTIONS: int = 5


@runtime_checkable
class ModelAdapter(Protocol):
    """Anything that can score an AcousticFeatureBundle.

    Implementations may be slow or fail; the classifier calls them through
    core.genre.fusion.invoke_adapter with a bounded wait.
    """

    def predict(self, bundle: AcousticFeatureBundle) -> ModelAdapterResult: ...


def adapter_kind(adapter: object | None, result: ModelAdapterResult | None) -> AdapterKind:
    """Resolve the tagged adapter state for provenance."""
    if adapter is None:
        return AdapterKind.ABSENT
    if result is not None and result.model_trained:
        return AdapterKind.TRAINED
    return AdapterKind.HEURISTIC


# ---------------------------------------------------------------------------
# Label canonicalization
# ---------------------------------------------------------------------------

# Checked in order: first keyword found in the lower-cased label wins.
_CANONICAL_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("reggae", "dub", "ska", "dancehall"), "Reggae"),
    (("hip hop", "hip-hop", "rap"), "Hip Hop"),
    (("hindustani", "carnatic", "raga", "indian classical"), "Indian Classical"),
    (("indigenous", "aboriginal", "native american", "first nations"), "Indigenous"),
    (("electronic", "edm", "techno", "house", "trance"), "Electronic"),
    (("classical", "baroque", "romantic", "opera"), "Classical"),
    (("folk", "country", "bluegrass"), "Folk"),
    (("world", "afrobeat", "ethnic"), "World"),
    (("latin", "salsa", "cumbia", "bossa", "samba", "tango"), "Latin"),
    (("metal",), "Metal"),
    (("rock", "punk"), "Rock"),
    (("jazz", "swing", "bebop"), "Jazz"),
    (("blues", "brass"), "Blues"),
    (("soul", "r&b", "funk", "rnb"), "R&B/Soul"),
    (("pop",), "Pop"),
)


def canonical_genre(label: str | None) -> str | None:
    """Map a free-form model label to a canonical genre.

    Example:
        >>> canonical_genre("Folk, World, & Country")
        'Folk'
        >>> canonical_genre("Funk / Soul")
        'R&B/Soul'
        >>> canonical_genre("Non-Music") is None
        True
    """
    lowered = (label or "").lower().strip()
    if not lowered:
        return None
    for keywords, genre in _CANONICAL_KEYWORDS:
        if any(k in lowered for k in keywords):
            return genre
    return None


def _collapse(scores: Sequence[tuple[str, float]]) -> tuple[ModelPrediction, ...]:
    """Sum probabilities per canonical genre, sort, keep the top five."""
    merged: dict[str, float] = {}
    for label, prob in scores:
        genre = canonical_genre(label)
        if genre is None or not np.isfinite(prob):
            continue
        merged[genre] = merged.get(genre, 0.0) + float(prob)
    ordered = sorted(merged.items(), key=lambda kv: -kv[1])[:_MAX_PREDICTIONS]
    return tuple(ModelPrediction(genre=g, confidence=min(1.0, max(0.0, c))) for g, c in ordered)


def _result(predictions: tuple[ModelPrediction, ...], *, trained: bool, authoritative: bool) -> ModelAdapterResult:
    if not predictions:
        return ModelAdapterResult(
            top_genre="Unknown",
            confidence=0.0,
            predictions=(),
            model_trained=trained,
            authoritative=authoritative,
        )
    return ModelAdapterResult(
        top_genre=predictions[0].genre,
        confidence=predictions[0].confidence,
        predictions=predictions,
        model_trained=trained,
        authoritative=authoritative,
    )


# ---------------------------------------------------------------------------
# Heuristic stub
# ---------------------------------------------------------------------------


class HeuristicGenreModel:
    """Feature-based stand-in used when no trained weights are configured.

    Scores Discogs-style classes from tempo, brightness and (when the
    bundle carries raw audio) rhythm descriptors. Reports
    model_trained=False: its output is informational only.
    """

    def predict(self, bundle: AcousticFeatureBundle) -> ModelAdapterResult:
        tempo = bundle.tempo
        centroid = bundle.spectral.centroid
        nyquist = bundle.sample_rate / 2.0 if bundle.sample_rate > 0 else 1.0
        brightness = min(1.0, centroid / nyquist)

        regularity = complexity = percussiveness = 0.0
        if bundle.raw_audio is not None and bundle.raw_audio.size:
            rhythm = analyze_rhythm(bundle.raw_audio, bundle.sample_rate)
            regularity = rhythm.regularity
            complexity = rhythm.temporal_complexity
            percussiveness = rhythm.percussiveness

        def band(value: float, lo: float, hi: float, weight: float) -> float:
            return weight if lo <= value <= hi else 0.0

        scores = {
            "Blues": band(tempo, 60, 120, 1.5)
            + band(centroid, 3000, 10000, 1.0)
            + band(brightness, 0.0, 0.6, 1.0)
            + band(percussiveness, 0.0, 0.15, 1.0),
            "Classical": band(regularity, 0.3, 1.0, 2.0)
            + band(complexity, 0.7, 1.0, 1.5)
            + band(percussiveness, 0.0, 0.1, 2.0)
            + band(brightness, 0.5, 1.0, 1.0),
            "Electronic": band(regularity, 0.4, 1.0, 2.0)
            + band(percussiveness, 0.15, 1.0, 1.5)
            + band(centroid, 8000, np.inf, 1.5),
            "Folk, World, & Country": band(complexity, 0.6, 1.0, 1.5)
            + band(regularity, 0.0, 0.2, 1.5)
            + band(percussiveness, 0.03, 0.15, 1.5),
            "Funk / Soul": band(tempo, 90, 130, 1.5)
            + band(regularity, 0.0, 0.3, 1.5)
            + band(percussiveness, 0.1, 0.25, 2.0),
            "Hip Hop": band(tempo, 80, 110, 1.5)
            + band(regularity, 0.3, 1.0, 1.5)
            + band(percussiveness, 0.15, 1.0, 2.0)
            + band(brightness, 0.0, 0.5, 1.0),
            "Jazz": band(complexity, 0.7, 1.0, 2.0) + band(regularity, 0.0, 0.25, 1.5) + band(tempo, 120, 200, 1.0),
            "Latin": band(tempo, 100, 140, 1.5)
            + band(regularity, 0.0, 0.3, 1.5)
            + band(percussiveness, 0.12, 0.3, 2.0),
            "Pop": band(tempo, 100, 130, 1.5)
            + band(regularity, 0.25, 1.0, 1.5)
            + band(brightness, 0.4, 0.7, 1.0)
            + band(complexity, 0.4, 0.7, 1.0),
            "Reggae": band(tempo, 70, 110, 1.5)
            + band(regularity, 0.0, 0.2, 1.5)
            + band(percussiveness, 0.02, 0.1, 1.5),
            "Rock": band(tempo, 110, 150, 1.5)
            + band(percussiveness, 0.2, 1.0, 2.0)
            + band(brightness, 0.6, 1.0, 1.0),
        }
        total = sum(scores.values())
        if total <= 0.0:
            return _result((), trained=False, authoritative=False)
        return _result(
            _collapse([(label, score / total) for label, score in scores.items()]),
            trained=False,
            authoritative=False,
        )


# ---------------------------------------------------------------------------
# Trained softmax layer
# ---------------------------------------------------------------------------


class SoftmaxGenreModel:
    """Dense softmax classifier: softmax(W·x + b) over bundle.to_vector().

    Args:
        weights: (n_labels, n_features) matrix.
        bias: (n_labels,) vector.
        labels: Model class names, canonicalized on output.
        authoritative: Let the ranking override the heuristic scores.

    Raises:
        ValueError: If the shapes disagree with each other or with the
            feature vector layout.
    """

    def __init__(
        self,
        weights: np.ndarray,
        bias: np.ndarray,
        labels: Sequence[str],
        *,
        authoritative: bool = False,
    ) -> None:
        w = np.asarray(weights, dtype=np.float64)
        b = np.asarray(bias, dtype=np.float64)
        if w.ndim != 2:
            raise ValueError(f"weights must be 2-D, got shape {w.shape}")
        if w.shape[1] != FEATURE_VECTOR_SIZE:
            raise ValueError(f"weights expect {w.shape[1]} features, the feature vector has {FEATURE_VECTOR_SIZE}")
        if b.shape != (w.shape[0],):
            raise ValueError(f"bias shape {b.shape} does not match {w.shape[0]} labels")
        if len(labels) != w.shape[0]:
            raise ValueError(f"{len(labels)} labels given for {w.shape[0]} weight rows")
        if not (np.all(np.isfinite(w)) and np.all(np.isfinite(b))):
            raise ValueError("weights and bias must be finite")

        self._weights = w
        self._bias = b
        self._labels = tuple(str(label) for label in labels)
        self.authoritative = authoritative

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    def predict(self, bundle: AcousticFeatureBundle) -> ModelAdapterResult:
        probs = softmax(self._weights @ bundle.to_vector() + self._bias)
        return _result(
            _collapse(list(zip(self._labels, probs.tolist()))),
            trained=True,
            authoritative=self.authoritative,
        )
