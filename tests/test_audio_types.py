"""
Tests for core/audio/types.py — frozen analysis value objects.

Covers:
    - AudioFrame validation (empty, 2-D, bad sample rate) and NaN scrubbing
    - Immutability of frozen dataclasses
    - AcousticFeatureBundle: raw audio excluded from equality, with_raw_audio
      bounds the buffer and refreshes the source hash, to_vector layout
    - KeyDetection label
"""

from __future__ import annotations

import dataclasses

import numpy as np
import pytest

from core.audio.features import FEATURE_VECTOR_SIZE, compute_source_hash
from core.audio.types import (
    MAX_RAW_AUDIO_SEC,
    UNKNOWN_SCALE,
    AcousticFeatureBundle,
    AudioFrame,
    InvalidAudioError,
    KeyDetection,
    SpectralSummary,
)


def _bundle(**overrides) -> AcousticFeatureBundle:
    defaults = dict(
        mfcc=(0.0,) * 13,
        spectral=SpectralSummary(centroid=1500.0),
        onset_strength=0.5,
        tempo=120.0,
        key_detection=None,
        source_hash=compute_source_hash(None),
        sample_rate=1000,
        duration_sec=1.0,
    )
    defaults.update(overrides)
    return AcousticFeatureBundle(**defaults)


class TestAudioFrame:
    def test_empty_buffer_raises(self):
        """An empty buffer cannot be framed."""
        with pytest.raises(InvalidAudioError, match="empty"):
            AudioFrame(samples=np.zeros(0), sample_rate=44100)

    def test_non_positive_sample_rate_raises(self):
        with pytest.raises(InvalidAudioError, match="sample_rate"):
            AudioFrame(samples=np.ones(10), sample_rate=0)

    def test_two_dimensional_input_raises(self):
        """Stereo must be mixed down before framing."""
        with pytest.raises(InvalidAudioError, match="1-D"):
            AudioFrame(samples=np.ones((2, 10)), sample_rate=44100)

    def test_invalid_audio_error_is_value_error(self):
        """API layers map InvalidAudioError like any ValueError."""
        assert issubclass(InvalidAudioError, ValueError)

    def test_nan_and_inf_replaced_with_zero(self):
        frame = AudioFrame(samples=np.array([np.nan, np.inf, -np.inf, 0.5]), sample_rate=100)
        np.testing.assert_array_equal(frame.samples, [0.0, 0.0, 0.0, 0.5])

    def test_samples_read_only(self):
        frame = AudioFrame(samples=np.ones(4), sample_rate=100)
        with pytest.raises(ValueError):
            frame.samples[0] = 2.0

    def test_duration_and_len(self):
        frame = AudioFrame(samples=np.ones(22050), sample_rate=44100)
        assert frame.duration_sec == pytest.approx(0.5)
        assert len(frame) == 22050

    def test_list_input_converted(self):
        frame = AudioFrame(samples=[0.1, 0.2, 0.3], sample_rate=3)
        assert frame.samples.dtype == np.float64


class TestFrozen:
    def test_unknown_scale_is_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            UNKNOWN_SCALE.scale = "C Major (Western)"  # type: ignore[misc]

    def test_unknown_scale_zero_confidence(self):
        assert UNKNOWN_SCALE.score == 0.0
        assert UNKNOWN_SCALE.confidence == 0.0


class TestKeyDetection:
    def test_label(self):
        assert KeyDetection(key="A", scale="minor", strength=0.8).label == "A minor"


class TestAcousticFeatureBundle:
    def test_raw_audio_excluded_from_equality(self):
        """Two bundles differing only in raw_audio compare equal."""
        a = _bundle(raw_audio=np.ones(5))
        b = _bundle(raw_audio=np.zeros(5))
        assert a == b

    def test_with_raw_audio_recomputes_hash(self):
        base = _bundle()
        samples = np.linspace(-1.0, 1.0, 500)
        derived = base.with_raw_audio(samples)
        assert derived.source_hash == compute_source_hash(samples)
        assert derived.source_hash != base.source_hash
        assert base.raw_audio is None

    def test_with_raw_audio_bounds_length(self):
        """Raw audio never exceeds MAX_RAW_AUDIO_SEC."""
        base = _bundle(sample_rate=100)
        derived = base.with_raw_audio(np.ones(100 * 20))
        assert derived.raw_audio.size == int(MAX_RAW_AUDIO_SEC * 100)

    def test_with_raw_audio_none_clears(self):
        derived = _bundle().with_raw_audio(np.ones(10)).with_raw_audio(None)
        assert derived.raw_audio is None
        assert derived.source_hash == compute_source_hash(None)

    def test_to_vector_size_and_range(self):
        vec = _bundle(mfcc=(500.0,) + (-500.0,) * 12, tempo=1000.0).to_vector()
        assert vec.shape == (FEATURE_VECTOR_SIZE,)
        assert np.all(vec >= 0.0)
        assert np.all(vec <= 1.0)

    def test_to_vector_carries_key_strength(self):
        vec = _bundle(key_detection=KeyDetection(key="C", scale="major", strength=0.75)).to_vector()
        assert vec[-1] == pytest.approx(0.75)
