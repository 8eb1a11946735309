"""
core/genre/rules.py — Ordered cross-feature disambiguation rules.

Each rule is (name, predicate, effect). Rules are evaluated in the order
of DISAMBIGUATION_RULES; when a predicate fires, its effect is applied
with the weights the `rules` table in genre_profiles.yaml keeps under the
rule's name.

Order and exclusion:
    1. reggae_groove                       offbeat groove at 70–115 BPM
    2. indigenous_polyrhythmic_pentatonic  only when (1) does not fire
    3. raga_ornamental                     only when neither (1) nor (2) fires

Exclusion is built into the predicates themselves (later predicates call
the earlier ones), so at most one rule fires for any input, whatever the
evaluation order.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from core.genre.profiles import GenreTables, RuleEffect
from core.genre.scoring import Descriptors, GenreScoreTable

REGGAE_TEMPO_RANGE: tuple[float, float] = (70.0, 115.0)
REGGAE_MAX_REGULARITY: float = 0.2
REGGAE_PERCUSSIVENESS_RANGE: tuple[float, float] = (0.02, 0.1)
INDIGENOUS_MIN_COMPLEXITY: float = 0.6
INDIGENOUS_MIN_CENTROID: float = 8000.0
RAGA_MAX_REGULARITY: float = 0.03


def reggae_groove(d: Descriptors) -> bool:
    lo, hi = REGGAE_TEMPO_RANGE
    p_lo, p_hi = REGGAE_PERCUSSIVENESS_RANGE
    return (
        lo <= d.tempo <= hi
        and d.regularity < REGGAE_MAX_REGULARITY
        and p_lo <= d.percussiveness <= p_hi
    )


def indigenous_polyrhythmic_pentatonic(d: Descriptors) -> bool:
    if reggae_groove(d):
        return False
    return (
        d.polyrhythmic
        and "pentatonic" in d.scale_lower
        and (d.complexity > INDIGENOUS_MIN_COMPLEXITY or d.centroid > INDIGENOUS_MIN_CENTROID)
    )


def raga_ornamental(d: Descriptors) -> bool:
    """Free, ornamented time. Needs detected onsets so silence never fires it."""
    if reggae_groove(d) or indigenous_polyrhythmic_pentatonic(d):
        return False
    return d.has_rhythm and d.regularity < RAGA_MAX_REGULARITY


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------


def boost_and_suppress(table: GenreScoreTable, d: Descriptors, weights: RuleEffect) -> None:
    """Boost the matched genres and penalize the ones being disambiguated against."""
    table.boost(weights.boost)
    table.penalize(weights.penalize)


def boost_and_suppress_with_blues_hint(table: GenreScoreTable, d: Descriptors, weights: RuleEffect) -> None:
    """As boost_and_suppress, plus the extra weights when the scale is a blues scale."""
    boost_and_suppress(table, d, weights)
    if "blues" in d.scale_lower:
        table.boost(weights.extra)


RuleEffectFn = Callable[[GenreScoreTable, Descriptors, RuleEffect], None]


@dataclass(frozen=True)
class Rule:
    name: str
    """Key of the rule's weights in the YAML `rules` table."""

    predicate: Callable[[Descriptors], bool]
    effect: RuleEffectFn


DISAMBIGUATION_RULES: tuple[Rule, ...] = (
    Rule("reggae_groove", reggae_groove, boost_and_suppress),
    Rule("indigenous_polyrhythmic_pentatonic", indigenous_polyrhythmic_pentatonic, boost_and_suppress),
    Rule("raga_ornamental", raga_ornamental, boost_and_suppress_with_blues_hint),
)


def apply_rules(table: GenreScoreTable, d: Descriptors, tables: GenreTables) -> tuple[str, ...]:
    """Apply every rule whose predicate fires.

    Returns:
        Names of the fired rules, in evaluation order.
    """
    fired: list[str] = []
    for rule in DISAMBIGUATION_RULES:
        if not rule.predicate(d):
            continue
        rule.effect(table, d, tables.rules[rule.name])
        fired.append(rule.name)
    return tuple(fired)
