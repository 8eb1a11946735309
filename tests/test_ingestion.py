"""
Tests for the ingestion layer.

    ingestion/audio_loader.py  — path/extension/duration checks, mono mixdown,
                                 decode errors wrapped as RuntimeError
    ingestion/model_loader.py  — .npz softmax weights, validation, fallback
    ingestion/audio_engine.py  — GenreAnalysisEngine with an injected librosa

librosa is always a MagicMock; no audio backend is needed.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest

from core.audio.types import InvalidAudioError
from core.genre.adapters import HeuristicGenreModel, SoftmaxGenreModel
from core.genre.types import AdapterStatus
from ingestion.audio_engine import FileAnalysis, GenreAnalysisEngine
from ingestion.audio_loader import load_audio, mix_to_mono
from ingestion.model_loader import build_adapter, load_softmax_model

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _audio_file(tmp_path: Path, name: str = "clip.wav") -> Path:
    path = tmp_path / name
    path.write_bytes(b"RIFF")
    return path


def _mock_librosa(y: np.ndarray, sr: int = 44100) -> MagicMock:
    """librosa stand-in whose load() returns (y, sr); feature calls raise."""
    lib = MagicMock()
    lib.load.return_value = (y.astype(np.float32), sr)
    lib.feature.mfcc.side_effect = RuntimeError("no backend")
    lib.feature.melspectrogram.side_effect = RuntimeError("no backend")
    lib.feature.chroma_cqt.side_effect = RuntimeError("no backend")
    lib.onset.onset_strength.side_effect = RuntimeError("no backend")
    return lib


def _save_model(tmp_path: Path, *, labels=("Reggae", "Jazz", "Non-Music"), bias=(3.0, 0.0, 0.0), **arrays) -> Path:
    path = tmp_path / "genre.npz"
    payload = {
        "weights": np.zeros((len(labels), 32)),
        "bias": np.array(bias, dtype=float),
        "labels": np.array(labels),
    }
    payload.update(arrays)
    np.savez(path, **payload)
    return path


# ---------------------------------------------------------------------------
# Audio loader
# ---------------------------------------------------------------------------


class TestMixToMono:
    def test_mono_passthrough(self):
        y = np.ones(10)
        out = mix_to_mono(y)
        assert out.dtype == np.float32
        assert out.shape == (10,)

    def test_stereo_averaged(self):
        y = np.stack([np.ones(4), np.zeros(4)])
        np.testing.assert_allclose(mix_to_mono(y), 0.5)

    def test_three_dimensional_rejected(self):
        with pytest.raises(ValueError):
            mix_to_mono(np.zeros((2, 2, 2)))


class TestLoadAudio:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_audio(tmp_path / "nope.wav", librosa=MagicMock())

    def test_unsupported_extension(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported"):
            load_audio(_audio_file(tmp_path, "notes.txt"), librosa=MagicMock())

    @pytest.mark.parametrize("duration", [0.0, -1.0, 15.5])
    def test_duration_bounds(self, tmp_path, duration):
        with pytest.raises(ValueError, match="duration"):
            load_audio(_audio_file(tmp_path), duration=duration, librosa=MagicMock())

    def test_loads_first_seconds_mono(self, tmp_path):
        lib = _mock_librosa(np.zeros(44100))
        y, sr = load_audio(_audio_file(tmp_path), duration=8.0, librosa=lib)
        assert sr == 44100
        assert y.ndim == 1
        kwargs = lib.load.call_args.kwargs
        assert kwargs["duration"] == 8.0
        assert kwargs["offset"] == 0.0
        assert kwargs["mono"] is True

    def test_uppercase_extension_accepted(self, tmp_path):
        lib = _mock_librosa(np.zeros(100))
        load_audio(_audio_file(tmp_path, "CLIP.FLAC"), librosa=lib)
        lib.load.assert_called_once()

    def test_decode_error_wrapped(self, tmp_path):
        lib = MagicMock()
        lib.load.side_effect = EOFError("truncated")
        with pytest.raises(RuntimeError, match="Failed to decode"):
            load_audio(_audio_file(tmp_path), librosa=lib)


# ---------------------------------------------------------------------------
# Model loader
# ---------------------------------------------------------------------------


class TestLoadSoftmaxModel:
    def test_round_trip_archive(self, tmp_path, make_bundle):
        model = load_softmax_model(_save_model(tmp_path), authoritative=True)
        assert isinstance(model, SoftmaxGenreModel)
        assert model.labels == ("Reggae", "Jazz", "Non-Music")
        result = model.predict(make_bundle())
        assert result.top_genre == "Reggae"
        assert result.authoritative

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_softmax_model(tmp_path / "absent.npz")

    def test_wrong_extension(self, tmp_path):
        path = tmp_path / "genre.pkl"
        path.write_bytes(b"\x80")
        with pytest.raises(ValueError, match=".npz"):
            load_softmax_model(path)

    def test_missing_arrays(self, tmp_path):
        path = tmp_path / "genre.npz"
        np.savez(path, weights=np.zeros((1, 32)))
        with pytest.raises(ValueError, match="missing arrays"):
            load_softmax_model(path)

    def test_shape_mismatch(self, tmp_path):
        path = _save_model(tmp_path, weights=np.zeros((3, 10)))
        with pytest.raises(ValueError, match="features"):
            load_softmax_model(path)


class TestBuildAdapter:
    def test_no_path_gives_stub(self):
        assert isinstance(build_adapter(None), HeuristicGenreModel)
        assert isinstance(build_adapter(""), HeuristicGenreModel)

    def test_bad_path_falls_back(self, tmp_path, caplog):
        adapter = build_adapter(tmp_path / "absent.npz")
        assert isinstance(adapter, HeuristicGenreModel)
        assert "heuristic stub" in caplog.text

    def test_valid_path(self, tmp_path):
        assert isinstance(build_adapter(_save_model(tmp_path)), SoftmaxGenreModel)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TestGenreAnalysisEngine:
    def test_analyze_click_track(self, tmp_path, make_click_track):
        lib = _mock_librosa(make_click_track(bpm=100.0, clicks=16))
        engine = GenreAnalysisEngine(librosa=lib)
        result = engine.analyze_file(_audio_file(tmp_path))

        assert isinstance(result, FileAnalysis)
        assert result.clip.rhythm.tempo == pytest.approx(100.0, abs=2.0)
        assert 3 <= len(result.classification.predictions) <= 5
        assert result.clip.features.basic_features
        assert result.processing_time_ms >= 0.0
        assert result.classification.provenance.adapter_status == AdapterStatus.ABSENT

    def test_numpy_only_features(self, tmp_path, make_sine):
        lib = _mock_librosa(make_sine(440.0, 1.0))
        engine = GenreAnalysisEngine(librosa=lib)
        engine.analyze_file(_audio_file(tmp_path), rich_features=False)
        lib.feature.mfcc.assert_not_called()

    def test_adapter_forwarded(self, tmp_path, make_click_track, fixed_adapter):
        adapter = fixed_adapter({"Latin": 0.9}, authoritative=True)
        engine = GenreAnalysisEngine(librosa=_mock_librosa(make_click_track()), adapter=adapter)
        result = engine.analyze_file(_audio_file(tmp_path))
        assert result.classification.predictions[0].genre == "Latin"
        assert adapter.calls == 1

    def test_empty_audio_is_value_error(self, tmp_path):
        engine = GenreAnalysisEngine(librosa=_mock_librosa(np.zeros(0)))
        with pytest.raises(InvalidAudioError):
            engine.analyze_file(_audio_file(tmp_path))

    def test_missing_file_propagates(self, tmp_path):
        engine = GenreAnalysisEngine(librosa=MagicMock())
        with pytest.raises(FileNotFoundError):
            engine.analyze_file(tmp_path / "missing.wav")

    def test_requests_do_not_share_flux_history(self, tmp_path, make_sine):
        """Each call starts a fresh ClipAnalyzer, so the first flux is always 0."""
        engine = GenreAnalysisEngine(librosa=_mock_librosa(make_sine(440.0, 0.5)))
        first = engine.analyze_file(_audio_file(tmp_path))
        second = engine.analyze_file(_audio_file(tmp_path))
        assert first.clip.spectral.flux == 0.0
        assert second.clip.spectral.flux == 0.0
