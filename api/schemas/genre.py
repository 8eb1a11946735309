"""
api/schemas/genre.py — Pydantic request/response schemas for genre analysis.

Covers:
    /analyze/genre — GenreAnalyzeRequest / GenreAnalyzeResponse
"""

from pydantic import BaseModel, Field

from core.audio.types import MAX_RAW_AUDIO_SEC

# ---------------------------------------------------------------------------
# Shared sub-schemas
# ---------------------------------------------------------------------------


class GenrePredictionOut(BaseModel):
    """One ranked genre label."""

    genre: str
    confidence: int = Field(..., ge=0, le=100)


class RhythmOut(BaseModel):
    tempo: float = Field(..., ge=0.0)
    peak_count: int = Field(..., ge=0)
    regularity: float = Field(..., ge=0.0, le=1.0)
    polyrhythmic: bool
    polyrhythm_ratio: str | None = None
    temporal_complexity: float = Field(..., ge=0.0, le=1.0)
    percussiveness: float = Field(..., ge=0.0, le=1.0)


class SpectralOut(BaseModel):
    centroid: float
    rolloff: float
    spread: float
    flux: float
    brightness: float = Field(..., ge=0.0, le=1.0)


class ScaleOut(BaseModel):
    scale: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    unique_classes: int = Field(..., ge=0)


class KeyOut(BaseModel):
    """Krumhansl-Schmuckler key estimate."""

    key: str
    scale: str
    strength: float = Field(..., ge=0.0, le=1.0)
    label: str


class TempoCorrectionOut(BaseModel):
    verdict: str
    original_bpm: float
    corrected_bpm: float | None = None
    confidence_factor: float


class ProvenanceOut(BaseModel):
    """How the ranking was reached. Only returned when requested."""

    raw_scores: dict[str, float]
    tempo_in: float
    tempo_used: float
    early_correction: bool
    fired_rules: list[str]
    adapter_kind: str
    adapter_status: str
    mfcc_nudged: bool
    blended: bool
    relative_fallback: bool


# ---------------------------------------------------------------------------
# /analyze/genre
# ---------------------------------------------------------------------------


class GenreAnalyzeRequest(BaseModel):
    """Request body for POST /analyze/genre."""

    file_path: str = Field(
        ...,
        description="Absolute path to audio file on the server filesystem.",
    )
    duration: float = Field(
        default=MAX_RAW_AUDIO_SEC,
        gt=0.0,
        le=MAX_RAW_AUDIO_SEC,
        description="Seconds to analyse from the start (default and maximum 15s).",
    )
    rich_features: bool = Field(
        default=True,
        description="Use librosa MFCC/log-Mel/chroma features. False = numpy-only features.",
    )
    include_provenance: bool = Field(
        default=False,
        description="If True, include raw scores, fired rules and adapter handling.",
    )


class GenreAnalyzeResponse(BaseModel):
    """Response body for POST /analyze/genre."""

    predictions: list[GenrePredictionOut] = Field(..., min_length=1, max_length=5)
    pitch_hz: float
    rhythm: RhythmOut
    spectral: SpectralOut
    scale: ScaleOut
    key: KeyOut | None = None
    bpm_check: TempoCorrectionOut | None = None
    basic_features: bool
    source_hash: str
    duration_sec: float
    sample_rate: int
    processing_time_ms: float
    provenance: ProvenanceOut | None = None
