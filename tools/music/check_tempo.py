"""
check_tempo tool — octave-error check of a BPM against a genre's range.

Pure lookup against genre_profiles.yaml; no audio is loaded.
"""

from __future__ import annotations

from typing import Any

from core.genre.alignment import check_bpm_plausibility
from core.genre.types import GENRES
from tools.base import GenreTool, ToolParameter, ToolResult


class CheckTempo(GenreTool):
    """Check whether a tempo is plausible for a genre, or off by an octave."""

    @property
    def name(self) -> str:
        return "check_tempo"

    @property
    def description(self) -> str:
        return (
            "Check a detected tempo against a genre's canonical BPM range. "
            "Reports 'ok', '0.5x' (tempo was doubled), '2x' (tempo was halved), "
            "'out_of_range' or 'unknown', with the corrected BPM when one fits. "
            f"Genres: {', '.join(GENRES)}."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="bpm",
                type=float,
                description="Detected tempo in beats per minute.",
                required=True,
                minimum=0.0,
            ),
            ToolParameter(
                name="genre",
                type=str,
                description="Genre label, or an 'A-B' blend label.",
                required=True,
            ),
        ]

    def execute(self, **kwargs: Any) -> ToolResult:
        genre: str = kwargs["genre"].strip()
        head = genre.split("-", 1)[0] if genre not in GENRES else genre
        if head not in GENRES:
            return ToolResult(success=False, error=f"Unknown genre '{genre}'. Known: {list(GENRES)}")

        check = check_bpm_plausibility(float(kwargs["bpm"]), genre)
        return ToolResult(
            success=True,
            data={
                "genre": check.genre,
                "verdict": check.verdict.value,
                "original_bpm": check.original_bpm,
                "corrected_bpm": check.corrected_bpm,
                "confidence_factor": check.confidence_factor,
            },
        )
