"""
core/genre/profiles.py — Load the genre lookup tables from YAML.

Uses importlib.resources (stdlib) to read genre_profiles.yaml bundled in
the core.genre package. The parsed, validated tables are cached in a
module-level dict so the file is read only once per process.

Every genre referenced by a band, keyword, rule or nudge is checked against
the canonical label list at load time, so a typo in the YAML fails loudly
instead of silently scoring nothing.
"""

from __future__ import annotations

import importlib.resources
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import yaml  # PyYAML

from core.genre.types import GENRES

_PROFILES_PACKAGE = "core.genre"
_PROFILES_FILE = "genre_profiles.yaml"

_CACHE: dict[str, GenreTables] = {}

Weights = tuple[tuple[str, float], ...]


# ---------------------------------------------------------------------------
# Table types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenreProfile:
    """Canonical BPM range and alignment targets for one genre."""

    name: str
    bpm_min: float
    bpm_max: float
    regularity_target: float
    polyrhythm_affinity: float
    brightness_target: float

    def bpm_contains(self, bpm: float) -> bool:
        return self.bpm_min <= bpm <= self.bpm_max

    def bpm_distance(self, bpm: float) -> float:
        """Distance in BPM to the nearest edge of the range. 0 inside."""
        if bpm < self.bpm_min:
            return self.bpm_min - bpm
        if bpm > self.bpm_max:
            return bpm - self.bpm_max
        return 0.0


@dataclass(frozen=True)
class Band:
    """A half-open [low, high) range with its score effects."""

    name: str
    low: float
    high: float
    boost: Weights = ()
    penalize: Weights = ()


@dataclass(frozen=True)
class RegularityBranch:
    """Reggae-window split of the very-low regularity band."""

    tempo_range: tuple[float, float]
    percussiveness_range: tuple[float, float]
    inside: Weights
    outside: Weights

    def contains(self, tempo: float, percussiveness: float) -> bool:
        t_lo, t_hi = self.tempo_range
        p_lo, p_hi = self.percussiveness_range
        return t_lo <= tempo <= t_hi and p_lo <= percussiveness <= p_hi


@dataclass(frozen=True)
class ScaleKeyword:
    keyword: str
    boost: Weights


@dataclass(frozen=True)
class RuleEffect:
    boost: Weights
    penalize: Weights
    extra: Weights = ()
    """Conditional extra boost (raga_ornamental: Blues when the scale is a blues scale)."""


@dataclass(frozen=True)
class MfccNudge:
    coefficient: int
    above: float | None
    below: float | None
    boost: Weights

    def fires(self, mfcc: Sequence[float]) -> bool:
        if self.coefficient >= len(mfcc):
            return False
        value = mfcc[self.coefficient]
        if self.above is not None and value > self.above:
            return True
        return self.below is not None and value < self.below


@dataclass(frozen=True)
class GenreTables:
    """Everything the scoring passes read from genre_profiles.yaml."""

    profiles: tuple[GenreProfile, ...]
    tempo_bands: tuple[Band, ...]
    regularity_bands: tuple[Band, ...]
    regularity_branch: RegularityBranch
    percussiveness_bands: tuple[Band, ...]
    brightness_bands: tuple[Band, ...]
    complexity_bands: tuple[Band, ...]
    scale_keywords: tuple[ScaleKeyword, ...]
    rules: Mapping[str, RuleEffect]
    mfcc_nudges: tuple[MfccNudge, ...]

    def profile(self, genre: str) -> GenreProfile:
        """Return the profile for a canonical genre label.

        Raises:
            ValueError: If genre is not a canonical label.
        """
        for prof in self.profiles:
            if prof.name == genre:
                return prof
        raise ValueError(f"Unknown genre {genre!r}. Available: {list(GENRES)}")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _weights(raw: Mapping[str, Any] | None, where: str) -> Weights:
    if not raw:
        return ()
    out: list[tuple[str, float]] = []
    for genre, weight in raw.items():
        if genre not in GENRES:
            raise ValueError(f"{where}: unknown genre {genre!r}")
        out.append((genre, float(weight)))
    return tuple(out)


def _range(raw: Sequence[Any], where: str) -> tuple[float, float]:
    if len(raw) != 2:
        raise ValueError(f"{where}: range must have two values, got {raw!r}")
    low, high = float(raw[0]), float(raw[1])
    if math.isnan(low) or math.isnan(high) or low > high:
        raise ValueError(f"{where}: invalid range {raw!r}")
    return low, high


def _bands(raw: Sequence[Mapping[str, Any]], table: str) -> tuple[Band, ...]:
    bands: list[Band] = []
    for entry in raw:
        where = f"{table}.{entry['name']}"
        low, high = _range(entry["range"], where)
        bands.append(
            Band(
                name=entry["name"],
                low=low,
                high=high,
                boost=_weights(entry.get("boost"), where),
                penalize=_weights(entry.get("penalize"), where),
            )
        )
    if not bands:
        raise ValueError(f"{table}: at least one band is required")
    return tuple(bands)


def _parse(data: Mapping[str, Any]) -> GenreTables:
    genres = data["genres"]
    missing = [g for g in GENRES if g not in genres]
    if missing:
        raise ValueError(f"genres: missing profiles for {missing}")

    profiles = []
    for name in GENRES:
        entry = genres[name]
        bpm_min, bpm_max = _range(entry["bpm"], f"genres.{name}.bpm")
        profiles.append(
            GenreProfile(
                name=name,
                bpm_min=bpm_min,
                bpm_max=bpm_max,
                regularity_target=float(entry["regularity_target"]),
                polyrhythm_affinity=float(entry["polyrhythm_affinity"]),
                brightness_target=float(entry["brightness_target"]),
            )
        )

    reg_raw = data["regularity_bands"]
    branch_raw = next((b["branch"] for b in reg_raw if "branch" in b), None)
    if branch_raw is None:
        raise ValueError("regularity_bands: the very-low band must define a branch")
    branch = RegularityBranch(
        tempo_range=_range(branch_raw["window"]["tempo"], "regularity_bands.branch.tempo"),
        percussiveness_range=_range(
            branch_raw["window"]["percussiveness"], "regularity_bands.branch.percussiveness"
        ),
        inside=_weights(branch_raw.get("inside"), "regularity_bands.branch.inside"),
        outside=_weights(branch_raw.get("outside"), "regularity_bands.branch.outside"),
    )

    rules = {}
    for name, entry in data["rules"].items():
        where = f"rules.{name}"
        rules[name] = RuleEffect(
            boost=_weights(entry.get("boost"), where),
            penalize=_weights(entry.get("penalize"), where),
            extra=_weights(entry.get("blues_scale_boost"), where),
        )

    nudges = tuple(
        MfccNudge(
            coefficient=int(entry["coefficient"]),
            above=float(entry["above"]) if "above" in entry else None,
            below=float(entry["below"]) if "below" in entry else None,
            boost=_weights(entry.get("boost"), f"mfcc_nudges[{i}]"),
        )
        for i, entry in enumerate(data.get("mfcc_nudges") or ())
    )

    return GenreTables(
        profiles=tuple(profiles),
        tempo_bands=_bands(data["tempo_bands"], "tempo_bands"),
        regularity_bands=_bands(reg_raw, "regularity_bands"),
        regularity_branch=branch,
        percussiveness_bands=_bands(data["percussiveness_bands"], "percussiveness_bands"),
        brightness_bands=_bands(data["brightness_bands"], "brightness_bands"),
        complexity_bands=_bands(data["complexity_bands"], "complexity_bands"),
        scale_keywords=tuple(
            ScaleKeyword(
                keyword=str(entry["keyword"]).lower(),
                boost=_weights(entry.get("boost"), f"scale_keywords.{entry['keyword']}"),
            )
            for entry in data["scale_keywords"]
        ),
        rules=rules,
        mfcc_nudges=nudges,
    )


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_genre_tables() -> GenreTables:
    """Return the parsed genre tables, reading the YAML on first use.

    Raises:
        ValueError: If the YAML references an unknown genre or a band
            range is malformed.
    """
    cached = _CACHE.get(_PROFILES_FILE)
    if cached is not None:
        return cached

    pkg = importlib.resources.files(_PROFILES_PACKAGE)
    text = (pkg / _PROFILES_FILE).read_text(encoding="utf-8")
    tables = _parse(yaml.safe_load(text))
    _CACHE[_PROFILES_FILE] = tables
    return tables


def find_band(bands: Sequence[Band], value: float) -> Band | None:
    """Return the band whose [low, high) contains value.

    The last band also contains its upper bound. None when value is
    outside every band.
    """
    for band in bands:
        if band.low <= value < band.high:
            return band
    if bands and value == bands[-1].high:
        return bands[-1]
    return None


def available_genres() -> list[str]:
    """Return the canonical genre labels in table order."""
    return list(GENRES)
