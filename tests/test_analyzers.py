"""Tests for the level, tempo and key analyzers."""

import numpy as np
import pytest

from autotag.analyzers import KeyAnalyzer, LevelsAnalyzer, TempoAnalyzer
from autotag.analyzers.key import HPS_FLOOR, harmonic_product_spectrum
from autotag.core.analyzer_base import Analyzer, BaseAnalyzer
from autotag.core.models import KeyEstimate, LevelFeatures, PcmSource, TempoEstimate
from autotag.utils.errors import AnalysisError

SR = 22050


def _pcm(samples) -> PcmSource:
    return PcmSource(samples=np.asarray(samples, dtype=np.float32), sample_rate=SR)


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------


class TestLevelsAnalyzer:

    def setup_method(self):
        self.analyzer = LevelsAnalyzer()

    def test_silence_hits_loudness_floor(self, silence):
        result = self.analyzer.analyze(silence)
        assert result.loudness == pytest.approx(-160.0)
        assert result.brightness == 0.0
        assert result.percussive == 0.0

    def test_empty_input_returns_zeros(self):
        result = self.analyzer.analyze(_pcm([]))
        assert result == LevelFeatures(loudness=0.0, brightness=0.0, percussive=0.0)

    def test_dc_offset(self):
        result = self.analyzer.analyze(_pcm(np.full(SR, 0.5)))
        assert result.loudness == pytest.approx(-6.02, abs=0.01)
        assert result.brightness == 0.0
        assert result.percussive == 0.0

    def test_alternating_full_scale_is_fully_bright(self):
        samples = np.tile([1.0, -1.0], SR // 2)
        result = self.analyzer.analyze(_pcm(samples))
        assert result.brightness == 1.0
        assert result.loudness == pytest.approx(0.0, abs=0.01)

    def test_rising_envelope_is_percussive(self, make_ramp_train):
        result = self.analyzer.analyze(_pcm(make_ramp_train()))
        assert result.percussive > 0.6

    def test_scores_are_rounded(self, a_tone):
        result = self.analyzer.analyze(a_tone)
        assert result.brightness == round(result.brightness, 3)
        assert result.loudness == round(result.loudness, 2)

    def test_satisfies_analyzer_protocol(self):
        assert isinstance(self.analyzer, Analyzer)
        assert self.analyzer.name == "levels"


# ---------------------------------------------------------------------------
# Tempo
# ---------------------------------------------------------------------------


class TestTempoAnalyzer:

    def setup_method(self):
        self.analyzer = TempoAnalyzer()

    def test_click_train_at_120(self, clicks_120):
        result = self.analyzer.analyze(clicks_120)
        assert result.bpm == pytest.approx(120.0, abs=0.5)
        assert result.bpm_norm == 120
        assert result.confidence > 0.5

    def test_alternates_include_half_time(self, clicks_120):
        result = self.analyzer.analyze(clicks_120)
        # Double time (240) is above the alternate ceiling
        assert result.alt_bpms == [120, 60]

    def test_click_train_at_90(self, make_click_train):
        result = self.analyzer.analyze(_pcm(make_click_train(90.0)))
        assert result.bpm == pytest.approx(90.0, abs=1.0)
        assert result.bpm_norm == 90
        assert result.alt_bpms[0] == 90

    def test_alternates_round_halves_up(self):
        # 125 / 2 = 62.5
        assert self.analyzer._alternates(125.0, 125) == [125, 63]

    def test_silence_has_no_tempo(self, silence):
        assert self.analyzer.analyze(silence) == TempoEstimate.empty()

    def test_empty_input(self):
        assert self.analyzer.analyze(_pcm([])) == TempoEstimate.empty()

    def test_too_short_for_any_lag(self, make_click_train):
        result = self.analyzer.analyze(_pcm(make_click_train(120.0, seconds=0.2)))
        assert result.bpm is None
        assert result.confidence == 0.0

    def test_only_the_head_is_analyzed(self, make_click_train):
        clicks = make_click_train(120.0, seconds=5.0)
        noise = np.random.default_rng(0).uniform(-1, 1, 5 * SR).astype(np.float32)
        analyzer = TempoAnalyzer(max_seconds=5.0)
        result = analyzer.analyze(_pcm(np.concatenate([clicks, noise])))
        assert result.bpm_norm == 120

    def test_confidence_in_unit_range(self, a_tone, clicks_120):
        for pcm in (a_tone, clicks_120):
            result = self.analyzer.analyze(pcm)
            assert 0.0 <= result.confidence <= 1.0


# ---------------------------------------------------------------------------
# Key
# ---------------------------------------------------------------------------


class TestHarmonicProductSpectrum:

    def test_products_of_harmonics(self):
        out = harmonic_product_spectrum(np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]), 2)
        np.testing.assert_allclose(out, [1.0, 6.0, 15.0])

    def test_zero_bins_are_floored(self):
        out = harmonic_product_spectrum(np.array([0.0, 1.0, 0.0, 1.0]), 2)
        np.testing.assert_allclose(out, [HPS_FLOOR * HPS_FLOOR, HPS_FLOOR])


class TestKeyAnalyzer:

    def setup_method(self):
        self.analyzer = KeyAnalyzer()

    def test_harmonic_tone_on_a(self, a_tone):
        result = self.analyzer.analyze(a_tone)
        assert result.key == "A"
        assert result.mode == "major"
        assert 0.5 <= result.confidence <= 0.6

    def test_silence_has_no_key(self, silence):
        assert self.analyzer.analyze(silence) == KeyEstimate.empty()

    def test_shorter_than_one_frame(self):
        assert self.analyzer.analyze(_pcm(np.ones(1000) * 0.1)) == KeyEstimate.empty()

    def test_minor_triad_template(self):
        chroma = np.zeros(12)
        chroma[[9, 0, 4]] = 1.0  # A, C, E
        root, mode, _, _ = KeyAnalyzer._match_templates(chroma)
        assert (root, mode) == (9, "minor")

    def test_major_triad_template(self):
        chroma = np.zeros(12)
        chroma[[0, 4, 7]] = 1.0  # C, E, G
        root, mode, _, _ = KeyAnalyzer._match_templates(chroma)
        assert (root, mode) == (0, "major")

    def test_pitch_class(self):
        assert KeyAnalyzer._pitch_class(440.0) == 9
        assert KeyAnalyzer._pitch_class(261.63) == 0


# ---------------------------------------------------------------------------
# Base analyzer template
# ---------------------------------------------------------------------------


class _FailingAnalyzer(BaseAnalyzer[float]):

    def __init__(self):
        super().__init__("failing", "0.1.0")

    def _analyze_impl(self, pcm: PcmSource) -> float:
        raise ZeroDivisionError("boom")


class TestBaseAnalyzer:

    def test_wraps_unexpected_errors(self, silence):
        with pytest.raises(AnalysisError) as exc_info:
            _FailingAnalyzer().analyze(silence)
        assert exc_info.value.analyzer_name == "failing"
        assert isinstance(exc_info.value.original_error, ZeroDivisionError)

    def test_exposes_name_and_version(self):
        analyzer = _FailingAnalyzer()
        assert analyzer.name == "failing"
        assert analyzer.version == "0.1.0"

    def test_subclass_must_implement_analysis(self):
        class _Incomplete(BaseAnalyzer[float]):
            pass

        with pytest.raises(TypeError):
            _Incomplete("incomplete", "0.1.0")
