"""
core/audio — Pure audio analysis module.

Provides DSP functions for extracting musical descriptors from mono audio.
All functions are pure: they take (samples: np.ndarray, sr: int) and return
structured data. No file I/O — that lives in ingestion/audio_loader.py.

Architecture note:
    numpy and scipy are DSP-pure libraries (no I/O, no side effects).
    librosa is always injected as a parameter — never imported at module
    top — so tests can mock it without installing the full audio stack.
    The ClipAnalyzer orchestrator lives in core.audio.analyzer and is not
    re-exported here, because it depends on core.genre.

Public API:
    Types:      AudioFrame, InvalidAudioError, RhythmAnalysis, SpectralAnalysis,
                ScaleAnalysis, KeyDetection, AcousticFeatureBundle, ClipAnalysis
    Pitch:      detect_pitch, track_pitches, NO_PITCH
    Rhythm:     detect_onsets, analyze_rhythm
    Spectral:   SpectralAnalyzer, zero_crossing_rate
    Scale:      identify_scale
    Features:   extract_features, extract_key, compute_source_hash
"""

from core.audio.features import compute_source_hash, extract_features, extract_key
from core.audio.onsets import detect_onsets
from core.audio.pitch import NO_PITCH, detect_pitch, track_pitches
from core.audio.rhythm import analyze_rhythm
from core.audio.scales import identify_scale
from core.audio.spectral import SpectralAnalyzer, zero_crossing_rate
from core.audio.types import (
    AcousticFeatureBundle,
    AudioFrame,
    ClipAnalysis,
    InvalidAudioError,
    KeyDetection,
    RhythmAnalysis,
    ScaleAnalysis,
    SpectralAnalysis,
)

__all__ = [
    "NO_PITCH",
    "AcousticFeatureBundle",
    "AudioFrame",
    "ClipAnalysis",
    "InvalidAudioError",
    "KeyDetection",
    "RhythmAnalysis",
    "ScaleAnalysis",
    "SpectralAnalysis",
    "SpectralAnalyzer",
    "analyze_rhythm",
    "compute_source_hash",
    "detect_onsets",
    "detect_pitch",
    "extract_features",
    "extract_key",
    "identify_scale",
    "track_pitches",
    "zero_crossing_rate",
]
