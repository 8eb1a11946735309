"""
core/audio/scales.py — Scale identification from a pitch sequence.

identify_scale() builds a 12-bin pitch-class histogram and scores it
against every rotation of a fixed template library (13 templates × 12
roots = 156 candidates).

Candidate score:
    (in_energy − 1.3·out_energy + 0.15·coverage + 0.15·explained + adjacency)
    × size_prior

    in_energy   share of observed energy on template tones
    out_energy  share of observed energy off the template
    coverage    template tones observed / template size
    explained   observed classes on the template / observed classes
    adjacency   0.1 × share of consecutive template steps with both tones observed
    size_prior  with >= 6 observed classes: 5-note × 0.75, 7-note × 1.1

Overrides after ranking:
    - >= 6 observed classes and a 5-note winner → best 7-note candidate.
    - exactly 5 observed classes and a 5-note winner whose lead over the
      best 7-note candidate is <= 0.25 → best 7-note candidate.

Candidates are visited templates-outer, roots-inner (C first) and only a
strictly higher score replaces the leader, so modes sharing a pitch-class
set resolve to the first template listed (Major before its modes).
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np
from scipy import stats as scipy_stats

from core.audio.pitch import NOTE_NAMES
from core.audio.types import UNKNOWN_SCALE, ScaleAnalysis


# Template name → semitone offsets from the root. Order matters for ties.
SCALE_TEMPLATES: tuple[tuple[str, tuple[int, ...]], ...] = (
    ("Major (Western)", (0, 2, 4, 5, 7, 9, 11)),
    ("Minor (Western)", (0, 2, 3, 5, 7, 8, 10)),
    ("Harmonic Minor", (0, 2, 3, 5, 7, 8, 11)),
    ("Melodic Minor", (0, 2, 3, 5, 7, 9, 11)),
    ("Dorian", (0, 2, 3, 5, 7, 9, 10)),
    ("Phrygian", (0, 1, 3, 5, 7, 8, 10)),
    ("Lydian", (0, 2, 4, 6, 7, 9, 11)),
    ("Mixolydian", (0, 2, 4, 5, 7, 9, 10)),
    ("Pentatonic Major", (0, 2, 4, 7, 9)),
    ("Pentatonic Minor", (0, 3, 5, 7, 10)),
    ("Blues", (0, 3, 5, 6, 7, 10)),
    ("Hirajoshi (Japanese)", (0, 2, 3, 7, 8)),
    ("Raga Bhairav (Indian)", (0, 1, 4, 5, 7, 8, 11)),
)

PRESENCE_THRESHOLD: float = 0.01
CHROMATIC_MIN_CLASSES: int = 10
OUT_ENERGY_PENALTY: float = 1.3
COVERAGE_WEIGHT: float = 0.15
EXPLAINED_WEIGHT: float = 0.15
ADJACENCY_WEIGHT: float = 0.1
RICH_EVIDENCE_CLASSES: int = 6
PENTATONIC_PRIOR: float = 0.75
DIATONIC_PRIOR: float = 1.1
NARROW_MARGIN: float = 0.25
MARGIN_SCALE: float = 0.3
PENTATONIC_DAMPING: float = 0.7


@dataclass(frozen=True)
class _Candidate:
    template: str
    root: int
    pitch_classes: frozenset[int]
    size: int
    score: float
    out_energy: float
    coverage: float
    adjacency: float
    balance: float

    @property
    def label(self) -> str:
        return f"{NOTE_NAMES[self.root]} {self.template}"


def pitch_class(frequency: float) -> int:
    """round(12·log2(f/440) + 69) mod 12."""
    return int(round(12.0 * math.log2(frequency / 440.0) + 69.0)) % 12


def pitch_class_histogram(pitches: Iterable[float]) -> np.ndarray:
    """Normalised 12-bin histogram. All zeros when no valid pitch is given."""
    classes = [pitch_class(f) for f in pitches if f is not None and math.isfinite(f) and f > 0.0]
    if not classes:
        return np.zeros(12)
    counts = np.bincount(np.asarray(classes, dtype=int), minlength=12).astype(np.float64)
    return counts / counts.sum()


def _score_candidate(
    template: str,
    offsets: tuple[int, ...],
    root: int,
    hist: np.ndarray,
    present: np.ndarray,
    n_present: int,
) -> _Candidate:
    degrees = [(root + o) % 12 for o in offsets]
    size = len(degrees)
    mask = np.zeros(12, dtype=bool)
    mask[degrees] = True

    in_energy = float(hist[mask].sum())
    out_energy = float(hist[~mask].sum())
    matched = int(np.count_nonzero(present & mask))
    coverage = matched / size
    explained = matched / n_present if n_present else 0.0

    steps = sum(1 for a, b in zip(degrees, degrees[1:] + degrees[:1]) if present[a] and present[b])
    adjacency = steps / size

    if n_present >= RICH_EVIDENCE_CLASSES and size == 5:
        prior = PENTATONIC_PRIOR
    elif n_present >= RICH_EVIDENCE_CLASSES and size == 7:
        prior = DIATONIC_PRIOR
    else:
        prior = 1.0

    score = (
        in_energy
        - OUT_ENERGY_PENALTY * out_energy
        + COVERAGE_WEIGHT * coverage
        + EXPLAINED_WEIGHT * explained
        + ADJACENCY_WEIGHT * adjacency
    ) * prior

    observed = hist[present & mask]
    if observed.size <= 1:
        balance = 1.0
    else:
        balance = float(scipy_stats.entropy(observed, base=2)) / math.log2(observed.size)

    return _Candidate(
        template=template,
        root=root,
        pitch_classes=frozenset(degrees),
        size=size,
        score=score,
        out_energy=out_energy,
        coverage=coverage,
        adjacency=adjacency,
        balance=balance,
    )


def _best(candidates: Iterable[_Candidate]) -> _Candidate | None:
    best: _Candidate | None = None
    for cand in candidates:
        if best is None or cand.score > best.score:
            best = cand
    return best


def identify_scale(pitches: Iterable[float]) -> ScaleAnalysis:
    """Identify the best-fitting scale for a sequence of pitches (Hz).

    Args:
        pitches: Detected frequencies. Non-positive and non-finite values
                 (e.g. NO_PITCH) are ignored.

    Returns:
        ScaleAnalysis. 'Unknown' with zero score/confidence when no valid
        pitch remains; 'Chromatic' when 10+ classes are present.
    """
    hist = pitch_class_histogram(pitches)
    if not hist.any():
        return UNKNOWN_SCALE

    present = hist > PRESENCE_THRESHOLD
    n_present = int(np.count_nonzero(present))

    if n_present >= CHROMATIC_MIN_CLASSES:
        confidence = min(1.0, 0.6 + 0.2 * (n_present - CHROMATIC_MIN_CLASSES))
        return ScaleAnalysis(
            scale="Chromatic",
            score=n_present / 12.0,
            confidence=confidence,
            template="Chromatic",
            unique_classes=n_present,
        )

    candidates = [
        _score_candidate(name, offsets, root, hist, present, n_present)
        for name, offsets in SCALE_TEMPLATES
        for root in range(12)
    ]
    best = _best(candidates)
    best_diatonic = _best(c for c in candidates if c.size == 7)
    if best is None or best_diatonic is None:
        return UNKNOWN_SCALE

    if best.size == 5:
        if n_present >= RICH_EVIDENCE_CLASSES:
            best = best_diatonic
        elif n_present == 5 and best.score - best_diatonic.score <= NARROW_MARGIN:
            best = best_diatonic

    runner_up = _best(c for c in candidates if c.pitch_classes != best.pitch_classes)
    runner_score = runner_up.score if runner_up is not None else 0.0
    margin = max(0.0, best.score - runner_score)

    confidence = (
        0.4 * min(1.0, margin / MARGIN_SCALE)
        + 0.3 * best.coverage
        + 0.2 * best.balance
        + 0.1 * best.adjacency
    )
    confidence *= 1.0 - best.out_energy
    if best.size == 5 and n_present >= 5:
        confidence *= PENTATONIC_DAMPING

    return ScaleAnalysis(
        scale=best.label,
        score=best.score,
        confidence=min(1.0, max(0.0, confidence)),
        root=NOTE_NAMES[best.root],
        template=best.template,
        unique_classes=n_present,
    )
