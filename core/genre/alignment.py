"""
core/genre/alignment.py — Profile alignment and BPM plausibility.

adaptive_reweight() rewards the current top three genres for how well the
clip matches their profile:

    adjustment = 0.3·tempo + 0.2·regularity + 0.2·polyrhythm + 0.2·brightness

    tempo       1 inside the BPM range, else max(0, 1 − distance/30)
    regularity  1 − |regularity − target|
    polyrhythm  affinity if polyrhythmic, else 1 − affinity
    brightness  1 − |brightness − target|

check_bpm_plausibility() is advisory: it never changes the ranking, it
only reports whether half or double the tempo would fit the winner.
"""

from __future__ import annotations

from core.genre.profiles import GenreProfile, GenreTables, load_genre_tables
from core.genre.scoring import Descriptors, GenreScoreTable
from core.genre.types import GENRES, BpmVerdict, TempoCorrection

TEMPO_WEIGHT: float = 0.3
REGULARITY_WEIGHT: float = 0.2
POLYRHYTHM_WEIGHT: float = 0.2
BRIGHTNESS_WEIGHT: float = 0.2
TEMPO_FALLOFF_BPM: float = 30.0
REWEIGHT_TOP_N: int = 3

HALF_TIME_FACTOR: float = 0.85
DOUBLE_TIME_FACTOR: float = 0.70


def profile_alignment(profile: GenreProfile, d: Descriptors) -> float:
    """Weighted 0–0.9 alignment of the descriptors with one genre profile."""
    if profile.bpm_contains(d.tempo):
        tempo_align = 1.0
    else:
        tempo_align = max(0.0, 1.0 - profile.bpm_distance(d.tempo) / TEMPO_FALLOFF_BPM)
    reg_align = 1.0 - abs(d.regularity - profile.regularity_target)
    if d.polyrhythmic:
        poly_align = profile.polyrhythm_affinity
    else:
        poly_align = 1.0 - profile.polyrhythm_affinity
    bright_align = 1.0 - abs(d.brightness - profile.brightness_target)

    return (
        TEMPO_WEIGHT * tempo_align
        + REGULARITY_WEIGHT * reg_align
        + POLYRHYTHM_WEIGHT * poly_align
        + BRIGHTNESS_WEIGHT * bright_align
    )


def adaptive_reweight(table: GenreScoreTable, d: Descriptors, tables: GenreTables) -> dict[str, float]:
    """Add the alignment adjustment to the current top three genres.

    Skipped when no genre has a positive score (silence stays all-zero).

    Returns:
        genre → adjustment applied.
    """
    leaders = [genre for genre, score in table.ranked()[:REWEIGHT_TOP_N] if score > 0.0]
    applied: dict[str, float] = {}
    for genre in leaders:
        adjustment = profile_alignment(tables.profile(genre), d)
        table.add(genre, adjustment)
        applied[genre] = adjustment
    return applied


def check_bpm_plausibility(
    tempo: float,
    genre: str,
    *,
    tables: GenreTables | None = None,
    half_time_factor: float = HALF_TIME_FACTOR,
    double_time_factor: float = DOUBLE_TIME_FACTOR,
) -> TempoCorrection:
    """Check a tempo against a genre's canonical BPM range.

    Args:
        tempo: Detected (possibly early-corrected) tempo in BPM.
        genre: Canonical label, or an "A-B" blend (the first part is used).
        tables: Genre tables; loaded from YAML when None.

    Returns:
        TempoCorrection. HALF when tempo/2 fits (factor 0.85), DOUBLE when
        tempo·2 fits (factor 0.70), OK when the tempo already fits.
    """
    tables = tables or load_genre_tables()
    name = genre if genre in GENRES else genre.split("-", 1)[0]
    if tempo <= 0.0 or name not in GENRES:
        return TempoCorrection(BpmVerdict.UNKNOWN, tempo, None, 1.0, genre=genre)

    profile = tables.profile(name)
    if profile.bpm_contains(tempo):
        return TempoCorrection(BpmVerdict.OK, tempo, None, 1.0, genre=name)
    if profile.bpm_contains(tempo / 2.0):
        return TempoCorrection(BpmVerdict.HALF, tempo, tempo / 2.0, half_time_factor, genre=name)
    if profile.bpm_contains(tempo * 2.0):
        return TempoCorrection(BpmVerdict.DOUBLE, tempo, tempo * 2.0, double_time_factor, genre=name)
    return TempoCorrection(BpmVerdict.OUT_OF_RANGE, tempo, None, 1.0, genre=name)
