"""
core/audio/analyzer.py — One "analyze this clip" call, end to end.

ClipAnalyzer is the long-lived object a session holds on to. It owns the
only cross-call state in the audio layer (the SpectralAnalyzer's previous
spectrum) plus its configuration. Separate instances share nothing.

Pipeline per call:
    AudioFrame → pitch + pitch track → rhythm → spectrum → scale
    → feature bundle → genre classification

The only error raised is InvalidAudioError, from AudioFrame, for input
that cannot be framed. Everything downstream degrades instead of raising.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from core.audio.features import extract_features
from core.audio.pitch import NO_PITCH, detect_pitch, track_pitches
from core.audio.rhythm import analyze_rhythm
from core.audio.scales import identify_scale
from core.audio.spectral import SpectralAnalyzer
from core.audio.types import AudioFrame, ClipAnalysis
from core.config import DEFAULT_ANALYSIS_CONFIG, DEFAULT_CLASSIFIER_CONFIG, AnalysisConfig, ClassifierConfig
from core.genre.classifier import run_classification


class ClipAnalyzer:
    """Stateful front end for clip analysis and genre classification.

    Args:
        config: Front-end settings (pitch framing, raw-audio retention).
        classifier_config: Thresholds passed to the genre classifier.

    Example:
        analyzer = ClipAnalyzer()
        result = analyzer.analyze(y, 44100)
        result.classification.predictions[0].genre   # e.g. 'Reggae'
    """

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        classifier_config: ClassifierConfig | None = None,
    ) -> None:
        self.config = config or DEFAULT_ANALYSIS_CONFIG
        self.classifier_config = classifier_config or DEFAULT_CLASSIFIER_CONFIG
        self._spectral = SpectralAnalyzer()

    @property
    def spectral_analyzer(self) -> SpectralAnalyzer:
        return self._spectral

    def reset(self) -> None:
        """Forget flux history."""
        self._spectral.reset()

    def _pitch_track(self, samples: np.ndarray, sample_rate: int) -> tuple[float, tuple[float, ...]]:
        cfg = self.config
        if samples.size <= cfg.pitch_frame_size:
            f0 = detect_pitch(samples, sample_rate)
            return f0, ((f0,) if f0 > 0.0 else ())

        limit = cfg.pitch_frame_size + cfg.pitch_hop_size * (cfg.max_pitch_frames - 1)
        pitches = track_pitches(
            samples[:limit],
            sample_rate,
            frame_size=cfg.pitch_frame_size,
            hop_size=cfg.pitch_hop_size,
        )
        f0 = float(np.median(pitches)) if pitches else NO_PITCH
        return f0, pitches

    def analyze(
        self,
        samples: np.ndarray,
        sample_rate: int,
        *,
        adapter: Any = None,
        librosa: Any = None,
    ) -> ClipAnalysis:
        """Analyze one mono clip.

        Args:
            samples: Mono PCM samples (any float-convertible array).
            sample_rate: Sample rate in Hz.
            adapter: Optional ModelAdapter for the classifier's fusion step.
            librosa: Injected librosa module for rich features. None = basic.

        Returns:
            ClipAnalysis with descriptors, feature bundle and classification.

        Raises:
            InvalidAudioError: Empty buffer, non-1-D input or sample_rate <= 0.
        """
        frame = AudioFrame(samples=samples, sample_rate=sample_rate)
        y = frame.samples

        pitch_hz, pitches = self._pitch_track(y, sample_rate)
        rhythm = analyze_rhythm(y, sample_rate)
        spectral = self._spectral.analyze_signal(y, sample_rate)
        scale = identify_scale(pitches)
        features = extract_features(
            y,
            sample_rate,
            librosa=librosa,
            tempo=rhythm.tempo,
            keep_raw_audio=self.config.keep_raw_audio,
        )
        classification = run_classification(
            rhythm,
            scale,
            spectral,
            features,
            self.classifier_config,
            adapter=adapter,
        )

        return ClipAnalysis(
            pitch_hz=pitch_hz,
            pitches=pitches,
            rhythm=rhythm,
            spectral=spectral,
            scale=scale,
            features=features,
            classification=classification,
        )
