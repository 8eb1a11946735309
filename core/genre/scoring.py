"""
core/genre/scoring.py — Score table, input sanitization and the scoring passes.

Each pass reads one descriptor, looks up its band in the YAML tables and
adds (or subtracts) fixed weights. Passes are independent: their order
does not change the result.

Silence handling:
    The tempo, regularity and complexity passes need at least two onsets;
    the brightness pass needs a positive centroid; the percussiveness table
    has a 'none' band below 0.01. A silent clip therefore scores 0 for
    every genre.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from core.audio.types import RhythmAnalysis, ScaleAnalysis, SpectralAnalysis
from core.genre.profiles import Band, GenreTables, Weights, find_band
from core.genre.types import GENRES

# ---------------------------------------------------------------------------
# Score table
# ---------------------------------------------------------------------------


class GenreScoreTable:
    """Mutable per-call accumulator: one float per canonical genre.

    Negative values are allowed while the pipeline runs; `clamped()` is
    applied before normalization. Never shared between calls.
    """

    def __init__(self) -> None:
        self._scores: dict[str, float] = dict.fromkeys(GENRES, 0.0)

    def __getitem__(self, genre: str) -> float:
        return self._scores[genre]

    def __iter__(self) -> Iterator[str]:
        return iter(self._scores)

    def add(self, genre: str, amount: float) -> None:
        self._scores[genre] += amount

    def boost(self, weights: Weights, factor: float = 1.0) -> None:
        for genre, weight in weights:
            self._scores[genre] += weight * factor

    def penalize(self, weights: Weights) -> None:
        for genre, weight in weights:
            self._scores[genre] -= weight

    def apply(self, band: Band | None) -> None:
        if band is None:
            return
        self.boost(band.boost)
        self.penalize(band.penalize)

    def ranked(self) -> list[tuple[str, float]]:
        """(genre, score) sorted by descending score, table order on ties."""
        return sorted(self._scores.items(), key=lambda kv: -kv[1])

    def top(self, n: int) -> list[str]:
        return [genre for genre, _ in self.ranked()[:n]]

    def snapshot(self) -> tuple[tuple[str, float], ...]:
        return tuple(self._scores.items())

    def clamped(self) -> dict[str, float]:
        return {genre: max(0.0, score) for genre, score in self._scores.items()}

    def replace(self, scores: dict[str, float]) -> None:
        """Overwrite every genre's score (missing genres become 0)."""
        self._scores = {genre: float(scores.get(genre, 0.0)) for genre in GENRES}


# ---------------------------------------------------------------------------
# Sanitized descriptors
# ---------------------------------------------------------------------------


def _finite(value: Any, default: float = 0.0) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    return f if math.isfinite(f) else default


def _ratio(value: Any) -> float:
    return min(1.0, max(0.0, _finite(value)))


@dataclass(frozen=True)
class Descriptors:
    """Finite, range-clamped view of the analyzers' output.

    Invariants:
        tempo >= 0, centroid >= 0
        regularity, complexity, percussiveness, brightness in [0, 1]
    """

    tempo: float
    peak_count: int
    regularity: float
    polyrhythmic: bool
    complexity: float
    percussiveness: float
    centroid: float
    brightness: float
    scale: str

    @property
    def has_rhythm(self) -> bool:
        return self.peak_count >= 2

    @property
    def scale_lower(self) -> str:
        return self.scale.lower()


def sanitize(
    rhythm: RhythmAnalysis | None,
    scale: ScaleAnalysis | None,
    spectral: SpectralAnalysis | None,
) -> Descriptors:
    """Build Descriptors, replacing None/NaN/inf with neutral defaults."""
    peak_count = 0
    if rhythm is not None:
        try:
            peak_count = max(0, int(rhythm.peak_count))
        except (TypeError, ValueError):
            peak_count = 0

    return Descriptors(
        tempo=max(0.0, _finite(getattr(rhythm, "tempo", 0.0))),
        peak_count=peak_count,
        regularity=_ratio(getattr(rhythm, "regularity", 0.0)),
        polyrhythmic=bool(getattr(rhythm, "polyrhythmic", False)),
        complexity=_ratio(getattr(rhythm, "temporal_complexity", 0.0)),
        percussiveness=_ratio(getattr(rhythm, "percussiveness", 0.0)),
        centroid=max(0.0, _finite(getattr(spectral, "centroid", 0.0))),
        brightness=_ratio(getattr(spectral, "brightness", 0.0)),
        scale=str(getattr(scale, "scale", None) or "Unknown"),
    )


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------


def tempo_pass(table: GenreScoreTable, d: Descriptors, tables: GenreTables) -> None:
    if d.has_rhythm and d.tempo > 0.0:
        table.apply(find_band(tables.tempo_bands, d.tempo))


def regularity_pass(table: GenreScoreTable, d: Descriptors, tables: GenreTables) -> None:
    """Regularity band; the very-low band splits on the reggae window."""
    if not d.has_rhythm:
        return
    band = find_band(tables.regularity_bands, d.regularity)
    table.apply(band)
    if band is tables.regularity_bands[0]:
        branch = tables.regularity_branch
        if branch.contains(d.tempo, d.percussiveness):
            table.boost(branch.inside)
        else:
            table.boost(branch.outside)


def percussiveness_pass(table: GenreScoreTable, d: Descriptors, tables: GenreTables) -> None:
    table.apply(find_band(tables.percussiveness_bands, d.percussiveness))


def brightness_pass(table: GenreScoreTable, d: Descriptors, tables: GenreTables) -> None:
    if d.centroid > 0.0:
        table.apply(find_band(tables.brightness_bands, d.brightness))


def scale_pass(table: GenreScoreTable, d: Descriptors, tables: GenreTables) -> None:
    """Every keyword found in the scale label contributes."""
    label = d.scale_lower
    for entry in tables.scale_keywords:
        if entry.keyword in label:
            table.boost(entry.boost)


def complexity_pass(table: GenreScoreTable, d: Descriptors, tables: GenreTables) -> None:
    if d.has_rhythm:
        table.apply(find_band(tables.complexity_bands, d.complexity))


SCORING_PASSES = (
    tempo_pass,
    regularity_pass,
    percussiveness_pass,
    brightness_pass,
    scale_pass,
    complexity_pass,
)


def run_passes(table: GenreScoreTable, d: Descriptors, tables: GenreTables) -> None:
    for scoring_pass in SCORING_PASSES:
        scoring_pass(table, d, tables)


def apply_mfcc_nudges(table: GenreScoreTable, mfcc: Sequence[float], tables: GenreTables) -> bool:
    """Apply the low-order MFCC nudges. Returns True if any coefficient was usable.

    An all-zero MFCC (basic feature path) is treated as absent.
    """
    values = [_finite(v) for v in mfcc]
    if not values or not any(values):
        return False
    for nudge in tables.mfcc_nudges:
        if nudge.fires(values):
            table.boost(nudge.boost)
    return True
