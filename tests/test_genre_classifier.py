"""
Tests for core/genre/classifier.py, core/genre/fusion.py and core/genre/adapters.py.

Covers:
    - Normalization: floored percentages, > 5 % filter, top-N rebuild,
      relative fallback when nothing is positive
    - Blend detection ("A-B" label, runner-up kept)
    - End-to-end pipeline on fixed descriptor sets: doubled tempo, reggae
      groove vs. slow polyrhythmic pentatonic, silence
    - Adapter handling: absent, failing, slow, untrained, low confidence,
      blended, authoritative override
    - Adapters: label canonicalization, heuristic stub, softmax layer
"""

from __future__ import annotations

import threading

import numpy as np
import pytest

from core.config import ClassifierConfig
from core.genre.adapters import (
    HeuristicGenreModel,
    ModelAdapter,
    SoftmaxGenreModel,
    adapter_kind,
    canonical_genre,
)
from core.genre.classifier import (
    classify_genre,
    detect_blend,
    early_tempo_correction,
    normalize_scores,
    run_classification,
)
from core.genre.fusion import ADAPTER_THREAD_NAME, fuse_adapter, invoke_adapter
from core.genre.scoring import GenreScoreTable, sanitize
from core.genre.types import (
    GENRES,
    AdapterKind,
    AdapterStatus,
    BpmVerdict,
    GenrePrediction,
    ModelAdapterResult,
    ModelPrediction,
)

_FAST_ADAPTER = ClassifierConfig(adapter_timeout_seconds=0.05)


def _doubled_jazz(make_descriptors):
    """Dorian line detected at twice its tempo: sparse, irregular, simple."""
    return make_descriptors(tempo=340.0, regularity=0.2, scale="A Dorian")


def _reggae_like(make_descriptors, tempo: float):
    return make_descriptors(
        tempo=tempo,
        peak_count=12,
        regularity=0.05,
        polyrhythmic=True,
        complexity=0.7,
        percussiveness=0.05,
        centroid=11000.0,
        brightness=0.5,
        scale="C Pentatonic Minor",
    )


def _silent(make_descriptors):
    return make_descriptors(
        tempo=0.0,
        peak_count=0,
        regularity=0.0,
        complexity=0.0,
        percussiveness=0.0,
        centroid=0.0,
        brightness=0.0,
        scale="Unknown",
    )


# ---------------------------------------------------------------------------
# Normalization and blend
# ---------------------------------------------------------------------------


class TestNormalizeScores:
    def test_floored_shares_above_threshold(self):
        preds, relative = normalize_scores({"Jazz": 3.0, "Blues": 1.0, "Pop": 1.0, "Rock": 0.1})
        assert [(p.genre, p.confidence) for p in preds] == [("Jazz", 58), ("Blues", 19), ("Pop", 19)]
        assert not relative

    def test_negative_scores_clamped(self):
        preds, _ = normalize_scores({"Jazz": 2.0, "Blues": 1.0, "Folk": 1.0, "Metal": -5.0})
        assert "Metal" not in [p.genre for p in preds]
        assert sum(p.confidence for p in preds) <= 100

    def test_rebuilds_top_n_when_too_few_survive(self):
        """One dominant genre → the plain top five, zeros in table order."""
        preds, _ = normalize_scores({"Jazz": 10.0, "Blues": 0.1})
        assert [p.genre for p in preds] == ["Jazz", "Blues", "Classical", "Electronic", "Folk"]
        assert preds[0].confidence == 99

    def test_all_zero_uses_relative_fallback(self):
        preds, relative = normalize_scores({})
        assert relative
        assert [p.genre for p in preds] == list(GENRES[:5])
        assert all(p.confidence == 0 for p in preds)

    def test_all_negative_ranks_by_raw_score(self):
        scores = {g: -1.0 for g in GENRES}
        scores["Reggae"] = -0.5
        preds, relative = normalize_scores(scores)
        assert relative
        assert preds[0].genre == "Reggae"

    def test_respects_max_predictions(self):
        scores = {g: 1.0 for g in GENRES}
        preds, _ = normalize_scores(scores, min_percentage=0, max_predictions=4)
        assert len(preds) == 4


class TestDetectBlend:
    def test_close_runner_up_blends(self):
        preds = (GenrePrediction("Jazz", 40), GenrePrediction("Blues", 35), GenrePrediction("Folk", 25))
        blended, did_blend = detect_blend(preds)
        assert did_blend
        assert blended[0] == GenrePrediction("Jazz-Blues", 37)
        assert blended[1] == GenrePrediction("Blues", 35)
        assert len(blended) == 3

    def test_distant_runner_up_does_not_blend(self):
        preds = (GenrePrediction("Jazz", 50), GenrePrediction("Blues", 30))
        assert detect_blend(preds) == (preds, False)

    def test_zero_runner_up_never_blends(self):
        preds = (GenrePrediction("Blues", 0), GenrePrediction("Classical", 0))
        assert not detect_blend(preds)[1]

    def test_single_prediction(self):
        preds = (GenrePrediction("Jazz", 100),)
        assert detect_blend(preds) == (preds, False)


class TestGenrePrediction:
    def test_confidence_out_of_range_raises(self):
        with pytest.raises(ValueError):
            GenrePrediction("Jazz", 101)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestEarlyCorrection:
    def test_halves_sparse_fast_tempo(self, make_descriptors):
        d = sanitize(*_doubled_jazz(make_descriptors))
        assert early_tempo_correction(d, ClassifierConfig()).tempo == pytest.approx(170.0)

    def test_percussive_fast_tempo_kept(self, make_descriptors):
        rhythm, scale, spectral = make_descriptors(tempo=340.0, regularity=0.2, percussiveness=0.5)
        d = sanitize(rhythm, scale, spectral)
        assert early_tempo_correction(d, ClassifierConfig()).tempo == pytest.approx(340.0)


class TestRunClassification:
    def test_doubled_tempo_resolves_to_jazz(self, make_descriptors):
        """340 BPM Dorian → halved to 170 → Jazz, tempo plausible."""
        result = run_classification(*_doubled_jazz(make_descriptors))
        prov = result.provenance
        assert prov.early_correction
        assert prov.tempo_in == pytest.approx(340.0)
        assert prov.tempo_used == pytest.approx(170.0)
        assert [p.genre for p in result.predictions[:3]] == ["Jazz", "Blues", "Folk"]
        assert result.top.confidence == 24
        assert not prov.blended
        assert prov.fired_rules == ()
        assert prov.bpm.verdict == BpmVerdict.OK
        assert prov.adapter_status == AdapterStatus.ABSENT
        assert prov.adapter_kind == AdapterKind.ABSENT

    def test_reggae_groove(self, make_descriptors):
        result = run_classification(*_reggae_like(make_descriptors, 95.0))
        assert result.top.genre == "Reggae"
        assert result.provenance.fired_rules == ("reggae_groove",)
        assert not result.provenance.blended

    def test_slow_polyrhythmic_pentatonic_is_not_reggae(self, make_descriptors):
        """Same texture at 55 BPM → world/folk family, never Reggae."""
        result = run_classification(*_reggae_like(make_descriptors, 55.0))
        assert result.provenance.fired_rules == ("indigenous_polyrhythmic_pentatonic",)
        assert result.top.genre == "World"
        assert result.top.confidence == 27
        assert "Reggae" not in [p.genre for p in result.predictions]

    def test_silence(self, make_descriptors):
        result = run_classification(*_silent(make_descriptors))
        assert [p.genre for p in result.predictions] == list(GENRES[:5])
        assert all(p.confidence == 0 for p in result.predictions)
        assert result.provenance.relative_fallback
        assert result.provenance.bpm.verdict == BpmVerdict.UNKNOWN
        assert result.provenance.fired_rules == ()

    def test_none_descriptors_do_not_raise(self):
        result = run_classification(None, None, None)
        assert len(result.predictions) >= 3

    def test_deterministic(self, make_descriptors, make_bundle):
        args = _reggae_like(make_descriptors, 95.0)
        first = run_classification(*args, make_bundle())
        second = run_classification(*args, make_bundle())
        assert first == second

    def test_output_invariants_over_grid(self, make_descriptors):
        rng = np.random.default_rng(7)
        scales = ("C Major (Western)", "A Dorian", "C Pentatonic Minor", "C Blues", "D Raga Bhairav", "Unknown")
        for _ in range(60):
            args = make_descriptors(
                tempo=float(rng.uniform(0, 400)),
                peak_count=int(rng.integers(0, 40)),
                regularity=float(rng.uniform()),
                polyrhythmic=bool(rng.integers(0, 2)),
                complexity=float(rng.uniform()),
                percussiveness=float(rng.uniform(0, 0.4)),
                centroid=float(rng.uniform(0, 15000)),
                brightness=float(rng.uniform()),
                scale=scales[int(rng.integers(0, len(scales)))],
            )
            preds = classify_genre(*args)
            assert 3 <= len(preds) <= 5
            confidences = [p.confidence for p in preds]
            assert confidences == sorted(confidences, reverse=True)
            assert sum(confidences) <= 100
            assert all(0 <= c <= 100 for c in confidences)

    def test_mfcc_nudge_recorded(self, make_descriptors, make_bundle):
        bundle = make_bundle(mfcc=(-500.0, 150.0) + (0.0,) * 11)
        result = run_classification(*_doubled_jazz(make_descriptors), bundle)
        assert result.provenance.mfcc_nudged

    def test_basic_bundle_not_nudged(self, make_descriptors, make_bundle):
        result = run_classification(*_doubled_jazz(make_descriptors), make_bundle())
        assert not result.provenance.mfcc_nudged


class TestAdapterHandling:
    def test_authoritative_override(self, make_descriptors, make_bundle, fixed_adapter):
        """A trained, authoritative adapter replaces the heuristic ranking."""
        adapter = fixed_adapter({"Reggae": 0.9}, authoritative=True)
        result = run_classification(*_doubled_jazz(make_descriptors), make_bundle(tempo=340.0), adapter=adapter)
        prov = result.provenance
        assert result.top == GenrePrediction("Reggae", 100)
        assert [p.genre for p in result.predictions[1:]] == ["Blues", "Classical", "Electronic", "Folk"]
        assert prov.adapter_status == AdapterStatus.OVERRIDE
        assert prov.adapter_kind == AdapterKind.TRAINED
        assert prov.bpm.verdict == BpmVerdict.HALF
        assert prov.bpm.corrected_bpm == pytest.approx(85.0)

    def test_trained_adapter_blends(self, make_descriptors, make_bundle, fixed_adapter):
        adapter = fixed_adapter({"Reggae": 0.9})
        result = run_classification(*_doubled_jazz(make_descriptors), make_bundle(), adapter=adapter)
        raw = dict(result.provenance.raw_scores)
        assert result.provenance.adapter_status == AdapterStatus.BLENDED
        assert raw["Reggae"] > raw["Jazz"]
        assert adapter.calls == 1

    def test_absent_failing_untrained_and_slow_agree(
        self, make_descriptors, make_bundle, fixed_adapter, raising_adapter, slow_adapter
    ):
        """Every degraded adapter leaves the heuristic ranking untouched."""
        args = _reggae_like(make_descriptors, 95.0)
        baseline = run_classification(*args, make_bundle(), _FAST_ADAPTER)

        outcomes = {
            AdapterStatus.FAILED: raising_adapter,
            AdapterStatus.UNTRAINED: fixed_adapter({"Jazz": 0.99}, trained=False),
        }
        for status, adapter in outcomes.items():
            result = run_classification(*args, make_bundle(), _FAST_ADAPTER, adapter=adapter)
            assert result.predictions == baseline.predictions
            assert result.provenance.adapter_status == status
            assert result.provenance.adapter_kind == AdapterKind.HEURISTIC

        slow = run_classification(*args, make_bundle(), _FAST_ADAPTER, adapter=slow_adapter)
        assert slow.predictions == baseline.predictions
        assert slow.provenance.adapter_status == AdapterStatus.FAILED

    def test_low_confidence_ignored(self, make_descriptors, make_bundle, fixed_adapter):
        args = _reggae_like(make_descriptors, 95.0)
        baseline = run_classification(*args, make_bundle())
        result = run_classification(*args, make_bundle(), adapter=fixed_adapter({"Jazz": 0.05}))
        assert result.provenance.adapter_status == AdapterStatus.LOW_CONFIDENCE
        assert result.predictions == baseline.predictions

    def test_adapter_without_bundle_is_skipped(self, make_descriptors, fixed_adapter):
        adapter = fixed_adapter({"Reggae": 0.9}, authoritative=True)
        result = run_classification(*_doubled_jazz(make_descriptors), adapter=adapter)
        assert adapter.calls == 0
        assert result.provenance.adapter_status == AdapterStatus.ABSENT
        assert result.top.genre == "Jazz"


class TestFusion:
    def test_invoke_returns_result(self, make_bundle, fixed_adapter):
        result = invoke_adapter(fixed_adapter({"Jazz": 0.7}), make_bundle())
        assert result.top_genre == "Jazz"

    def test_invoke_swallows_exception(self, make_bundle, raising_adapter, caplog):
        assert invoke_adapter(raising_adapter, make_bundle()) is None
        assert "failed" in caplog.text

    def test_invoke_times_out(self, make_bundle, slow_adapter, caplog):
        assert invoke_adapter(slow_adapter, make_bundle(), timeout_seconds=0.05) is None
        assert "timed out" in caplog.text

    def test_abandoned_worker_is_daemon(self, make_bundle, slow_adapter):
        """A hung adapter left running after the timeout never blocks interpreter exit."""
        assert invoke_adapter(slow_adapter, make_bundle(), timeout_seconds=0.05) is None
        workers = [t for t in threading.enumerate() if t.name == ADAPTER_THREAD_NAME and t.is_alive()]
        assert workers
        assert all(t.daemon for t in workers)

    def test_invoke_rejects_malformed(self, make_bundle):
        class WrongType:
            def predict(self, bundle):
                return {"top_genre": "Jazz"}

        class NonFinite:
            def predict(self, bundle):
                return ModelAdapterResult("Jazz", float("nan"), (ModelPrediction("Jazz", float("nan")),), True)

        assert invoke_adapter(WrongType(), make_bundle()) is None
        assert invoke_adapter(NonFinite(), make_bundle()) is None

    def test_blend_is_convex_and_mass_scaled(self):
        table = GenreScoreTable()
        table.add("Jazz", 3.0)
        table.add("Blues", 1.0)
        result = ModelAdapterResult("Reggae", 0.5, (ModelPrediction("Reggae", 0.5),), model_trained=True)
        status = fuse_adapter(table, result, blend_weight=0.4, confidence_floor=0.1)
        assert status == AdapterStatus.BLENDED
        assert table["Jazz"] == pytest.approx(1.8)
        assert table["Blues"] == pytest.approx(0.6)
        assert table["Reggae"] == pytest.approx(0.4 * 0.5 * 4.0)

    def test_non_canonical_predictions_ignored(self):
        table = GenreScoreTable()
        result = ModelAdapterResult("Polka", 0.9, (ModelPrediction("Polka", 0.9),), model_trained=True)
        assert fuse_adapter(table, result, blend_weight=0.4, confidence_floor=0.1) == AdapterStatus.LOW_CONFIDENCE


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class TestCanonicalGenre:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Folk, World, & Country", "Folk"),
            ("Funk / Soul", "R&B/Soul"),
            ("Hip Hop", "Hip Hop"),
            ("Reggae", "Reggae"),
            ("Electronic", "Electronic"),
            ("Hindustani", "Indian Classical"),
            ("Latin", "Latin"),
            ("Brass & Military", "Blues"),
            ("Heavy Metal", "Metal"),
        ],
    )
    def test_known_labels(self, label, expected):
        assert canonical_genre(label) == expected

    def test_unmapped_labels(self):
        assert canonical_genre("Non-Music") is None
        assert canonical_genre("") is None
        assert canonical_genre(None) is None


class TestAdapterKind:
    def test_kinds(self, fixed_adapter, make_bundle):
        trained = fixed_adapter({"Jazz": 0.9})
        assert adapter_kind(None, None) == AdapterKind.ABSENT
        assert adapter_kind(trained, trained.predict(make_bundle())) == AdapterKind.TRAINED
        assert adapter_kind(trained, None) == AdapterKind.HEURISTIC


class TestHeuristicGenreModel:
    def test_is_model_adapter(self):
        assert isinstance(HeuristicGenreModel(), ModelAdapter)

    def test_never_trained(self, make_bundle):
        result = HeuristicGenreModel().predict(make_bundle())
        assert not result.model_trained
        assert not result.authoritative
        assert 1 <= len(result.predictions) <= 5
        assert all(p.genre in GENRES for p in result.predictions)
        assert all(0.0 <= p.confidence <= 1.0 for p in result.predictions)

    def test_uses_raw_audio_rhythm(self, make_bundle, make_click_track):
        bundle = make_bundle(tempo=100.0).with_raw_audio(make_click_track(bpm=100.0))
        result = HeuristicGenreModel().predict(bundle)
        confidences = [p.confidence for p in result.predictions]
        assert confidences == sorted(confidences, reverse=True)


class TestSoftmaxGenreModel:
    def test_predict_collapses_labels(self, make_bundle):
        model = SoftmaxGenreModel(
            np.zeros((3, 32)),
            np.array([2.0, 0.0, 0.0]),
            ["Reggae", "Roots Reggae", "Jazz"],
            authoritative=True,
        )
        result = model.predict(make_bundle())
        assert result.model_trained
        assert result.authoritative
        assert result.top_genre == "Reggae"
        e2 = np.exp(2.0)
        assert result.confidence == pytest.approx((e2 + 1.0) / (e2 + 2.0))
        assert [p.genre for p in result.predictions] == ["Reggae", "Jazz"]

    def test_unmapped_labels_dropped(self, make_bundle):
        model = SoftmaxGenreModel(np.zeros((2, 32)), np.array([5.0, 0.0]), ["Non-Music", "Jazz"])
        result = model.predict(make_bundle())
        assert [p.genre for p in result.predictions] == ["Jazz"]
        assert result.confidence < 0.01

    @pytest.mark.parametrize(
        ("weights", "bias", "labels", "match"),
        [
            (np.zeros(32), np.zeros(1), ["Jazz"], "2-D"),
            (np.zeros((2, 31)), np.zeros(2), ["Jazz", "Pop"], "features"),
            (np.zeros((2, 32)), np.zeros(3), ["Jazz", "Pop"], "bias"),
            (np.zeros((2, 32)), np.zeros(2), ["Jazz"], "labels"),
            (np.full((2, 32), np.nan), np.zeros(2), ["Jazz", "Pop"], "finite"),
        ],
    )
    def test_shape_validation(self, weights, bias, labels, match):
        with pytest.raises(ValueError, match=match):
            SoftmaxGenreModel(weights, bias, labels)
