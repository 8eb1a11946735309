"""
core/genre — Genre classification from mid-level musical descriptors.

Pure scoring logic plus one bounded asynchronous boundary (the optional
model adapter). Lookup tables live in genre_profiles.yaml and are loaded
once per process; nothing else is shared between calls.

Public API:
    Pipeline:   classify_genre, run_classification, check_bpm_plausibility
    Adapters:   ModelAdapter, HeuristicGenreModel, SoftmaxGenreModel, canonical_genre
    Types:      GenrePrediction, GenreClassification, ClassificationProvenance,
                ModelAdapterResult, ModelPrediction, AdapterKind, AdapterStatus,
                BpmVerdict, TempoCorrection, GENRES
"""

from core.genre.adapters import HeuristicGenreModel, ModelAdapter, SoftmaxGenreModel, canonical_genre
from core.genre.alignment import check_bpm_plausibility
from core.genre.classifier import classify_genre, run_classification
from core.genre.types import (
    GENRES,
    AdapterKind,
    AdapterStatus,
    BpmVerdict,
    ClassificationProvenance,
    GenreClassification,
    GenrePrediction,
    ModelAdapterResult,
    ModelPrediction,
    TempoCorrection,
)

__all__ = [
    "GENRES",
    "AdapterKind",
    "AdapterStatus",
    "BpmVerdict",
    "ClassificationProvenance",
    "GenreClassification",
    "GenrePrediction",
    "HeuristicGenreModel",
    "ModelAdapter",
    "ModelAdapterResult",
    "ModelPrediction",
    "SoftmaxGenreModel",
    "TempoCorrection",
    "canonical_genre",
    "check_bpm_plausibility",
    "classify_genre",
    "run_classification",
]
