"""
classify_genre tool — ranked genre predictions for an audio file.

Runs the full analysis pipeline (pitch, rhythm, spectral, scale, acoustic
features) on the first seconds of a file and returns 3–5 ranked world/
popular genre labels with the descriptors that produced them.

Requires the audio stack (librosa + soundfile) to be installed.
"""

from __future__ import annotations

from typing import Any

from core.audio.types import MAX_RAW_AUDIO_SEC
from tools.base import GenreTool, ToolParameter, ToolResult


class ClassifyGenre(GenreTool):
    """Classify the genre of an audio clip.

    Example:
        tool = ClassifyGenre()
        result = tool(file_path="/path/to/clip.wav")
        # result.data["predictions"][0] == {"genre": "Reggae", "confidence": 38}
    """

    def __init__(self, engine: Any = None) -> None:
        self._engine = engine

    def _get_engine(self) -> Any:
        if self._engine is None:
            from api.deps import get_guarded_adapter
            from ingestion.audio_engine import GenreAnalysisEngine

            self._engine = GenreAnalysisEngine(adapter=get_guarded_adapter())
        return self._engine

    @property
    def name(self) -> str:
        return "classify_genre"

    @property
    def description(self) -> str:
        return (
            "Classify the genre of an audio file among 15 world and popular genres "
            "(Reggae, Latin, Indian Classical, Indigenous, Jazz, Blues, Metal, ...). "
            "Analyses at most the first 15 seconds. Returns 3-5 ranked predictions "
            "with integer confidences, plus tempo, regularity, scale and key."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="file_path",
                type=str,
                description="Absolute path to an audio file (.wav .mp3 .flac .ogg .aiff .m4a).",
                required=True,
            ),
            ToolParameter(
                name="duration",
                type=float,
                description="Seconds to analyse from the start (default and maximum 15).",
                required=False,
                default=MAX_RAW_AUDIO_SEC,
                minimum=0.1,
                maximum=MAX_RAW_AUDIO_SEC,
            ),
            ToolParameter(
                name="include_provenance",
                type=bool,
                description="Include raw scores, fired rules and adapter handling.",
                required=False,
                default=False,
            ),
        ]

    def execute(self, **kwargs: Any) -> ToolResult:
        """Run the genre pipeline on one file.

        Returns:
            ToolResult.data with keys predictions, tempo, regularity,
            polyrhythmic, scale, key (or None), bpm_check (or None),
            basic_features and, when requested, provenance.
        """
        file_path: str = (kwargs.get("file_path") or "").strip()
        duration = float(kwargs.get("duration") or MAX_RAW_AUDIO_SEC)
        include_provenance = bool(kwargs.get("include_provenance") or False)

        if not file_path:
            return ToolResult(success=False, error="file_path cannot be empty")

        try:
            result = self._get_engine().analyze_file(file_path, duration=duration)
        except FileNotFoundError as exc:
            return ToolResult(success=False, error=f"File not found: {exc}")
        except ValueError as exc:
            return ToolResult(success=False, error=str(exc))
        except RuntimeError as exc:
            return ToolResult(success=False, error=f"Analysis failed: {exc}")

        clip = result.clip
        prov = clip.classification.provenance
        key = clip.features.key_detection

        data: dict[str, Any] = {
            "predictions": [
                {"genre": p.genre, "confidence": p.confidence} for p in clip.classification.predictions
            ],
            "tempo": round(clip.rhythm.tempo, 2),
            "regularity": round(clip.rhythm.regularity, 3),
            "polyrhythmic": clip.rhythm.polyrhythmic,
            "scale": clip.scale.scale,
            "key": key.label if key is not None else None,
            "bpm_check": (
                {
                    "verdict": prov.bpm.verdict.value,
                    "corrected_bpm": prov.bpm.corrected_bpm,
                    "confidence_factor": prov.bpm.confidence_factor,
                }
                if prov.bpm is not None
                else None
            ),
            "basic_features": clip.features.basic_features,
        }
        if include_provenance:
            data["provenance"] = {
                "raw_scores": dict(prov.raw_scores),
                "fired_rules": list(prov.fired_rules),
                "early_correction": prov.early_correction,
                "adapter_kind": prov.adapter_kind.value,
                "adapter_status": prov.adapter_status.value,
                "blended": prov.blended,
            }

        return ToolResult(
            success=True,
            data=data,
            metadata={
                "processing_time_ms": round(result.processing_time_ms, 1),
                "source_hash": clip.features.source_hash,
            },
        )
