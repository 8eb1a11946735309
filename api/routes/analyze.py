"""
api/routes/analyze.py — Genre analysis endpoint.

Endpoints:
    POST /analyze/genre — Ranked genre predictions plus musical descriptors

Accepts a file path on the server filesystem and delegates to
GenreAnalysisEngine in ingestion/audio_engine.py. The model adapter comes
from api/deps.py already wrapped in the process-wide circuit breaker.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from api.deps import get_guarded_adapter
from api.schemas.genre import (
    GenreAnalyzeRequest,
    GenreAnalyzeResponse,
    GenrePredictionOut,
    KeyOut,
    ProvenanceOut,
    RhythmOut,
    ScaleOut,
    SpectralOut,
    TempoCorrectionOut,
)
from ingestion.audio_engine import FileAnalysis, GenreAnalysisEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyze", tags=["analyze"])

# Shared engine instance — librosa imported lazily on first request
_engine: GenreAnalysisEngine | None = None


def _get_engine() -> GenreAnalysisEngine:
    global _engine
    if _engine is None:
        _engine = GenreAnalysisEngine(adapter=get_guarded_adapter())
    return _engine


def _to_response(result: FileAnalysis, *, include_provenance: bool) -> GenreAnalyzeResponse:
    clip = result.clip
    classification = clip.classification
    prov = classification.provenance
    features = clip.features

    key_out = None
    if features.key_detection is not None:
        kd = features.key_detection
        key_out = KeyOut(key=kd.key, scale=kd.scale, strength=kd.strength, label=kd.label)

    bpm_out = None
    if prov.bpm is not None:
        bpm_out = TempoCorrectionOut(
            verdict=prov.bpm.verdict.value,
            original_bpm=prov.bpm.original_bpm,
            corrected_bpm=prov.bpm.corrected_bpm,
            confidence_factor=prov.bpm.confidence_factor,
        )

    provenance_out = None
    if include_provenance:
        provenance_out = ProvenanceOut(
            raw_scores=dict(prov.raw_scores),
            tempo_in=prov.tempo_in,
            tempo_used=prov.tempo_used,
            early_correction=prov.early_correction,
            fired_rules=list(prov.fired_rules),
            adapter_kind=prov.adapter_kind.value,
            adapter_status=prov.adapter_status.value,
            mfcc_nudged=prov.mfcc_nudged,
            blended=prov.blended,
            relative_fallback=prov.relative_fallback,
        )

    return GenreAnalyzeResponse(
        predictions=[GenrePredictionOut(genre=p.genre, confidence=p.confidence) for p in classification.predictions],
        pitch_hz=clip.pitch_hz,
        rhythm=RhythmOut(
            tempo=clip.rhythm.tempo,
            peak_count=clip.rhythm.peak_count,
            regularity=clip.rhythm.regularity,
            polyrhythmic=clip.rhythm.polyrhythmic,
            polyrhythm_ratio=clip.rhythm.polyrhythm_ratio,
            temporal_complexity=clip.rhythm.temporal_complexity,
            percussiveness=clip.rhythm.percussiveness,
        ),
        spectral=SpectralOut(
            centroid=clip.spectral.centroid,
            rolloff=clip.spectral.rolloff,
            spread=clip.spectral.spread,
            flux=clip.spectral.flux,
            brightness=clip.spectral.brightness,
        ),
        scale=ScaleOut(
            scale=clip.scale.scale,
            confidence=clip.scale.confidence,
            unique_classes=clip.scale.unique_classes,
        ),
        key=key_out,
        bpm_check=bpm_out,
        basic_features=features.basic_features,
        source_hash=features.source_hash,
        duration_sec=features.duration_sec,
        sample_rate=features.sample_rate,
        processing_time_ms=result.processing_time_ms,
        provenance=provenance_out,
    )


# ---------------------------------------------------------------------------
# POST /analyze/genre
# ---------------------------------------------------------------------------


@router.post("/genre", response_model=GenreAnalyzeResponse)
def analyze_genre(request: GenreAnalyzeRequest) -> GenreAnalyzeResponse:
    """Classify the genre of an audio clip.

    Loads up to 15 s of the file at `file_path` (server-side path), runs
    pitch, rhythm, spectral and scale analysis, and returns 3–5 ranked
    genre predictions with the descriptors that produced them.

    Raises:
        422: file_path does not exist, extension not supported, or the
             audio is empty / cannot be framed.
        500: Audio decoding failure.
    """
    engine = _get_engine()
    try:
        result = engine.analyze_file(
            request.file_path,
            duration=request.duration,
            rich_features=request.rich_features,
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.error("Genre analysis failed: %s", exc)
        raise HTTPException(status_code=500, detail=f"Genre analysis failed: {exc}") from exc

    return _to_response(result, include_provenance=request.include_provenance)
