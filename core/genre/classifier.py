"""
core/genre/classifier.py — Genre classification pipeline.

One call = one fresh GenreScoreTable run through a fixed, linear pipeline:

    1. sanitize          None/NaN/inf → neutral defaults, ratios clamped
    2. early correction  > 160 BPM with sparse, irregular, simple rhythm → halve
    3. scoring passes    tempo, regularity, percussiveness, brightness,
                         scale keywords, complexity (genre_profiles.yaml)
    4. rules             reggae groove → indigenous polyrhythmic pentatonic
                         → raga ornamental (at most one fires)
    5. re-weighting      profile alignment bonus for the top three
    6. fusion            MFCC nudges, then the model adapter (if any)
    7. normalization     clamp, floored integer percentages, > 5 % filter
    8. blend             top two within 20 % → "A-B"
    9. BPM plausibility  advisory half/double-time check for the winner

The early correction (2) and the plausibility check (9) are independent:
a tempo halved at step 2 can be reported as half-time again at step 9.

Failure semantics: never raises for defective descriptors; adapter errors
are logged and treated as an absent adapter; always returns at least
`min_predictions` predictions.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from collections.abc import Mapping, Sequence

from core.audio.types import AcousticFeatureBundle, RhythmAnalysis, ScaleAnalysis, SpectralAnalysis
from core.config import DEFAULT_CLASSIFIER_CONFIG, ClassifierConfig
from core.genre.adapters import ModelAdapter, adapter_kind
from core.genre.alignment import adaptive_reweight, check_bpm_plausibility
from core.genre.fusion import fuse_adapter, invoke_adapter
from core.genre.profiles import GenreTables, load_genre_tables
from core.genre.rules import apply_rules
from core.genre.scoring import Descriptors, GenreScoreTable, apply_mfcc_nudges, run_passes, sanitize
from core.genre.types import (
    GENRES,
    AdapterStatus,
    ClassificationProvenance,
    GenreClassification,
    GenrePrediction,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Early correction
# ---------------------------------------------------------------------------


def early_tempo_correction(d: Descriptors, config: ClassifierConfig) -> Descriptors:
    """Halve a tempo that is most likely a doubled detection."""
    if (
        d.tempo > config.early_correction_bpm
        and d.percussiveness < config.early_correction_max_percussiveness
        and d.regularity < config.early_correction_max_regularity
        and d.complexity < config.early_correction_max_complexity
    ):
        return dataclasses.replace(d, tempo=d.tempo / 2.0)
    return d


# ---------------------------------------------------------------------------
# Normalization and blend
# ---------------------------------------------------------------------------


def _ordered(scores: Mapping[str, float]) -> list[str]:
    """Genres by descending score, table order on ties."""
    return sorted(GENRES, key=lambda g: -scores.get(g, 0.0))


def normalize_scores(
    scores: Mapping[str, float],
    *,
    min_percentage: int = 5,
    min_predictions: int = 3,
    max_predictions: int = 5,
) -> tuple[tuple[GenrePrediction, ...], bool]:
    """Turn raw scores into a ranked list of integer percentages.

    Scores are clamped at 0 and expressed as a floored share of their
    total, so the percentages never sum past 100. Genres at or below
    `min_percentage` are dropped; if fewer than `min_predictions` survive
    the plain top `max_predictions` is returned instead.

    When no score is positive, every confidence is relative to the
    maximum (which is 0), so all are 0 and the ranking follows the raw
    scores.

    Returns:
        (predictions, relative_fallback)
    """
    clamped = {g: max(0.0, float(scores.get(g, 0.0))) for g in GENRES}
    total = sum(clamped.values())

    if total <= 0.0:
        ranked = _ordered(scores)[:max_predictions]
        return tuple(GenrePrediction(genre=g, confidence=0) for g in ranked), True

    percent = {g: int(math.floor(100.0 * s / total)) for g, s in clamped.items()}
    ranked = _ordered(clamped)
    survivors = [g for g in ranked if percent[g] > min_percentage]
    if len(survivors) < min_predictions:
        survivors = ranked[:max_predictions]
    return tuple(GenrePrediction(genre=g, confidence=percent[g]) for g in survivors[:max_predictions]), False


def detect_blend(
    predictions: Sequence[GenrePrediction],
    *,
    blend_ratio: float = 0.2,
) -> tuple[tuple[GenrePrediction, ...], bool]:
    """Relabel the winner "A-B" when the runner-up is within `blend_ratio`.

    The blended entry takes the mean of both confidences; the runner-up
    keeps its own entry.

    Returns:
        (predictions, blended)
    """
    preds = tuple(predictions)
    if len(preds) < 2:
        return preds, False
    first, second = preds[0], preds[1]
    if second.confidence <= 0 or first.confidence - second.confidence > blend_ratio * first.confidence:
        return preds, False
    merged = GenrePrediction(
        genre=f"{first.genre}-{second.genre}",
        confidence=(first.confidence + second.confidence) // 2,
    )
    return (merged, *preds[1:]), True


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def run_classification(
    rhythm: RhythmAnalysis | None,
    scale: ScaleAnalysis | None,
    spectral: SpectralAnalysis | None,
    features: AcousticFeatureBundle | None = None,
    config: ClassifierConfig | None = None,
    *,
    adapter: ModelAdapter | None = None,
    tables: GenreTables | None = None,
) -> GenreClassification:
    """Classify one clip and return predictions plus provenance.

    Args:
        rhythm: Output of core.audio.rhythm.analyze_rhythm().
        scale: Output of core.audio.scales.identify_scale().
        spectral: Output of SpectralAnalyzer.analyze*().
        features: Feature bundle; enables MFCC nudges and the adapter.
        config: Classifier thresholds. Defaults to DEFAULT_CLASSIFIER_CONFIG.
        adapter: Optional trained-model adapter.
        tables: Genre tables. Loaded from YAML when None.

    Returns:
        GenreClassification with 3–5 descending predictions.
    """
    config = config or DEFAULT_CLASSIFIER_CONFIG
    tables = tables or load_genre_tables()

    raw = sanitize(rhythm, scale, spectral)
    d = early_tempo_correction(raw, config)
    early = d.tempo != raw.tempo
    if early:
        logger.info("Early tempo correction: %.1f BPM halved to %.1f BPM", raw.tempo, d.tempo)

    table = GenreScoreTable()
    run_passes(table, d, tables)
    fired = apply_rules(table, d, tables)
    adaptive_reweight(table, d, tables)

    nudged = False
    if features is not None:
        nudged = apply_mfcc_nudges(table, features.mfcc, tables)

    result = None
    if adapter is None:
        status = AdapterStatus.ABSENT
    elif features is None:
        logger.debug("Model adapter given without a feature bundle; skipping it")
        status = AdapterStatus.ABSENT
    else:
        result = invoke_adapter(adapter, features, config.adapter_timeout_seconds)
        if result is None:
            status = AdapterStatus.FAILED
        else:
            status = fuse_adapter(
                table,
                result,
                blend_weight=config.adapter_blend_weight,
                confidence_floor=config.adapter_confidence_floor,
            )

    snapshot = table.snapshot()
    predictions, relative = normalize_scores(
        dict(snapshot),
        min_percentage=config.min_percentage,
        min_predictions=config.min_predictions,
        max_predictions=config.max_predictions,
    )
    winner = predictions[0].genre
    predictions, blended = detect_blend(predictions, blend_ratio=config.blend_ratio)

    bpm = check_bpm_plausibility(
        d.tempo,
        winner,
        tables=tables,
        half_time_factor=config.half_time_factor,
        double_time_factor=config.double_time_factor,
    )

    provenance = ClassificationProvenance(
        raw_scores=snapshot,
        tempo_in=raw.tempo,
        tempo_used=d.tempo,
        early_correction=early,
        fired_rules=fired,
        adapter_kind=adapter_kind(adapter, result),
        adapter_status=status,
        mfcc_nudged=nudged,
        blended=blended,
        bpm=bpm,
        relative_fallback=relative,
    )
    return GenreClassification(predictions=predictions, provenance=provenance)


def classify_genre(
    rhythm: RhythmAnalysis | None,
    scale: ScaleAnalysis | None,
    spectral: SpectralAnalysis | None,
    features: AcousticFeatureBundle | None = None,
    config: ClassifierConfig | None = None,
    *,
    adapter: ModelAdapter | None = None,
) -> tuple[GenrePrediction, ...]:
    """Ranked genre predictions only. See run_classification()."""
    return run_classification(rhythm, scale, spectral, features, config, adapter=adapter).predictions
