"""
Configuration dataclasses for clip analysis and genre classification.

These immutable config objects keep tunable thresholds out of function
signatures, so a deployment can define its own profile once and reuse it
across every ClipAnalyzer / classify_genre call.
"""

from dataclasses import dataclass

# Lowest and highest tempo any genre range or correction may report.
MIN_PLAUSIBLE_BPM: float = 20.0
MAX_PLAUSIBLE_BPM: float = 400.0


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Configuration for the clip analyzer front end.

    Attributes:
        pitch_frame_size: Samples per pitch-tracking frame. Defaults to 2048,
            enough for two periods of the 80 Hz pitch floor at 44.1 kHz.
        pitch_hop_size: Hop between pitch-tracking frames. Defaults to 1024.
        max_pitch_frames: Upper bound on tracked frames per clip. Keeps the
            scale histogram cost bounded for long inputs.
        keep_raw_audio: Attach the bounded raw buffer to the feature bundle.

    Example:
        >>> config = AnalysisConfig(pitch_frame_size=4096, pitch_hop_size=2048)
        >>> analyzer = ClipAnalyzer(config=config)
    """

    pitch_frame_size: int = 2048
    pitch_hop_size: int = 1024
    max_pitch_frames: int = 2000
    keep_raw_audio: bool = True

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.pitch_frame_size <= 0:
            raise ValueError(f"pitch_frame_size must be positive, got {self.pitch_frame_size}")
        if self.pitch_hop_size <= 0:
            raise ValueError(f"pitch_hop_size must be positive, got {self.pitch_hop_size}")
        if self.pitch_hop_size > self.pitch_frame_size:
            raise ValueError(
                f"pitch_hop_size ({self.pitch_hop_size}) must not exceed "
                f"pitch_frame_size ({self.pitch_frame_size})"
            )
        if self.max_pitch_frames <= 0:
            raise ValueError(f"max_pitch_frames must be positive, got {self.max_pitch_frames}")


@dataclass(frozen=True)
class ClassifierConfig:
    """
    Thresholds for the genre classification pipeline.

    Attributes:
        early_correction_bpm: Tempo above which a sparse, irregular, simple
            rhythm is treated as a doubled detection and halved.
        early_correction_max_percussiveness: Percussiveness must be below this.
        early_correction_max_regularity: Regularity must be below this.
        early_correction_max_complexity: Temporal complexity must be below this.
        adapter_timeout_seconds: Bounded wait on the model adapter call.
        adapter_blend_weight: Share of the adapter's distribution mixed into
            the heuristic scores when the adapter is trained.
        adapter_confidence_floor: Adapter predictions below this are ignored.
        min_percentage: Normalized predictions at or below this share are
            filtered out (unless fewer than `min_predictions` survive).
        min_predictions: Survivors needed before the top-N rebuild kicks in.
        max_predictions: Length cap of the ranked output.
        blend_ratio: Top two within this fraction of the winner → "A-B" label.
        half_time_factor: Confidence factor reported for a 0.5x BPM verdict.
        double_time_factor: Confidence factor reported for a 2x BPM verdict.

    Example:
        >>> config = ClassifierConfig(adapter_timeout_seconds=0.5)
        >>> classify_genre(rhythm, scale, spectral, config=config)
    """

    early_correction_bpm: float = 160.0
    early_correction_max_percussiveness: float = 0.1
    early_correction_max_regularity: float = 0.3
    early_correction_max_complexity: float = 0.5
    adapter_timeout_seconds: float = 2.0
    adapter_blend_weight: float = 0.4
    adapter_confidence_floor: float = 0.1
    min_percentage: int = 5
    min_predictions: int = 3
    max_predictions: int = 5
    blend_ratio: float = 0.2
    half_time_factor: float = 0.85
    double_time_factor: float = 0.70

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not MIN_PLAUSIBLE_BPM <= self.early_correction_bpm <= MAX_PLAUSIBLE_BPM:
            raise ValueError(
                f"early_correction_bpm must be in [{MIN_PLAUSIBLE_BPM}, {MAX_PLAUSIBLE_BPM}], "
                f"got {self.early_correction_bpm}"
            )
        if self.adapter_timeout_seconds <= 0:
            raise ValueError(f"adapter_timeout_seconds must be positive, got {self.adapter_timeout_seconds}")
        for name in (
            "early_correction_max_percussiveness",
            "early_correction_max_regularity",
            "early_correction_max_complexity",
            "adapter_blend_weight",
            "adapter_confidence_floor",
            "blend_ratio",
            "half_time_factor",
            "double_time_factor",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if not 0 <= self.min_percentage < 100:
            raise ValueError(f"min_percentage must be in [0, 100), got {self.min_percentage}")
        if self.max_predictions <= 0:
            raise ValueError(f"max_predictions must be positive, got {self.max_predictions}")
        if not 0 < self.min_predictions <= self.max_predictions:
            raise ValueError(
                f"min_predictions ({self.min_predictions}) must be in [1, max_predictions "
                f"({self.max_predictions})]"
            )


# Pre-defined configurations

DEFAULT_ANALYSIS_CONFIG = AnalysisConfig()
"""Default front end: 2048-sample pitch frames, hop 1024, raw audio kept."""

DEFAULT_CLASSIFIER_CONFIG = ClassifierConfig()
"""Default classifier: halve above 160 BPM, 2 s adapter wait, 40 % blend."""
