"""
ingestion/audio_engine.py — File-level orchestrator for genre analysis.

GenreAnalysisEngine wires the I/O boundary to the pure analysis core:

    audio file
        │
        ├─ load_audio()            [ingestion/audio_loader.py — I/O boundary]
        │       ↓
        ├─ ClipAnalyzer.analyze()  [core/audio/analyzer.py — pure DSP]
        │       ↓
        └─ run_classification()    [core/genre/classifier.py — scoring + fusion]

This module is in `ingestion/` because it reads files and records metrics.
The analysis itself is pure and lives in `core/`.

Each call builds a fresh ClipAnalyzer, so concurrent requests sharing one
engine never share flux history.

Usage:
    engine = GenreAnalysisEngine()
    result = engine.analyze_file("/path/to/clip.wav")
    print(result.clip.classification.predictions[0])
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.audio.analyzer import ClipAnalyzer
from core.audio.types import ClipAnalysis
from core.config import DEFAULT_ANALYSIS_CONFIG, DEFAULT_CLASSIFIER_CONFIG, AnalysisConfig, ClassifierConfig
from core.genre.types import BpmVerdict, GenreClassification
from infrastructure.metrics import record_classification, record_tempo_correction
from ingestion.audio_loader import DEFAULT_DURATION, load_audio

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileAnalysis:
    """Output of GenreAnalysisEngine.analyze_file().

    Attributes:
        path:               File that was analyzed.
        clip:               Full clip analysis, classification included.
        processing_time_ms: Wall-clock time for load + analysis.
    """

    path: str
    clip: ClipAnalysis
    processing_time_ms: float

    @property
    def classification(self) -> GenreClassification:
        return self.clip.classification


class GenreAnalysisEngine:
    """Load an audio file and run the full genre analysis on it.

    Args:
        librosa: Injected librosa module. Pass a MagicMock in tests to avoid
                 loading the audio stack. None = import lazily on first use.
        adapter: Optional ModelAdapter used by every classification.
        config: Front-end settings for each ClipAnalyzer.
        classifier_config: Classifier thresholds.
    """

    def __init__(
        self,
        librosa: Any = None,
        adapter: Any = None,
        config: AnalysisConfig | None = None,
        classifier_config: ClassifierConfig | None = None,
    ) -> None:
        self._librosa = librosa
        self.adapter = adapter
        self.config = config or DEFAULT_ANALYSIS_CONFIG
        self.classifier_config = classifier_config or DEFAULT_CLASSIFIER_CONFIG

    def _get_librosa(self) -> Any:
        """Return librosa, importing it lazily if not already injected."""
        if self._librosa is None:
            import librosa as _lib  # deferred — allows testing without audio backend

            self._librosa = _lib
        return self._librosa

    def analyze_file(
        self,
        path: str | Path,
        *,
        duration: float = DEFAULT_DURATION,
        rich_features: bool = True,
    ) -> FileAnalysis:
        """Load `path` and classify it.

        Args:
            path:          Path to an audio file (mp3, wav, flac, etc.).
            duration:      Seconds to analyze from the start, at most 15.
            rich_features: Use librosa for MFCC/log-Mel/chroma. False = numpy only.

        Returns:
            FileAnalysis with the ClipAnalysis and timing.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: Unsupported format, bad duration, or audio that
                        cannot be framed (InvalidAudioError).
            RuntimeError: If the audio cannot be decoded.
        """
        t_start = time.monotonic()
        lib = self._get_librosa()
        y, sr = load_audio(path, duration=duration, librosa=lib)

        analyzer = ClipAnalyzer(config=self.config, classifier_config=self.classifier_config)
        clip = analyzer.analyze(y, sr, adapter=self.adapter, librosa=lib if rich_features else None)
        elapsed = time.monotonic() - t_start

        provenance = clip.classification.provenance
        if provenance.early_correction:
            record_tempo_correction("early_halving")
        if provenance.bpm is not None and provenance.bpm.verdict in (BpmVerdict.HALF, BpmVerdict.DOUBLE):
            record_tempo_correction(provenance.bpm.verdict.value)
        record_classification(
            genre=clip.classification.predictions[0].genre,
            adapter_status=provenance.adapter_status.value,
            latency_seconds=elapsed,
        )
        logger.info(
            "Analyzed %s: %s (%d%%) in %.0f ms",
            Path(path).name,
            clip.classification.predictions[0].genre,
            clip.classification.predictions[0].confidence,
            elapsed * 1000.0,
        )

        return FileAnalysis(path=str(path), clip=clip, processing_time_ms=elapsed * 1000.0)
