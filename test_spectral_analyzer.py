#!/usr/bin/env python3
"""
Tests for the spectral analyzer.

Uses synthetic bin-aligned tones so expected bins and levels are exact.
"""

import numpy as np
import pytest

from detector_config import TunableParameters
from spectral_analyzer import AVERAGE_FLOOR, AVERAGING_ALPHA, SpectralAnalyzer, WindowFunction
from tone_synth import bin_frequency, generate_tone


SAMPLE_RATE = 44100
FRAME_SIZE = 2048
TONE_BIN = 40


@pytest.fixture
def analyzer():
    return SpectralAnalyzer(SAMPLE_RATE, FRAME_SIZE)


def tone_frame(amplitude: float = 0.5, bin_index: int = TONE_BIN) -> np.ndarray:
    freq = bin_frequency(bin_index, SAMPLE_RATE, FRAME_SIZE)
    return generate_tone(freq, FRAME_SIZE, SAMPLE_RATE, amplitude)


def test_hann_window_coefficients():
    """Window follows 0.5 * (1 - cos(2*pi*i / (N-1)))."""
    n = 64
    window = WindowFunction(n)
    i = np.arange(n)
    expected = 0.5 * (1 - np.cos(2 * np.pi * i / (n - 1)))
    assert np.allclose(window.coefficients, expected)


def test_spectrum_shape_and_resolution(analyzer):
    """Only the first half of the bins is kept."""
    power, visual = analyzer.analyze(tone_frame(), TunableParameters())
    assert len(power) == FRAME_SIZE // 2
    assert len(visual) == FRAME_SIZE // 2
    assert analyzer.freq_resolution == pytest.approx(SAMPLE_RATE / FRAME_SIZE)


def test_tone_peaks_at_its_bin(analyzer):
    """A bin-aligned tone puts its strongest bin at the tone frequency."""
    power, visual = analyzer.analyze(tone_frame(0.5), TunableParameters())
    assert int(np.argmax(power)) == TONE_BIN
    # Normalized level of a half-scale tone is amplitude squared
    assert visual[TONE_BIN] == pytest.approx(0.25, abs=0.01)


def test_full_scale_tone_normalizes_to_one(analyzer):
    _, visual = analyzer.analyze(tone_frame(1.0), TunableParameters())
    assert visual.max() <= 1.0
    assert visual[TONE_BIN] == pytest.approx(1.0, abs=0.02)


def test_gain_scales_power(analyzer):
    """+20 dB of gain makes a tenth-amplitude tone match the original."""
    params = TunableParameters()
    reference, _ = analyzer.analyze(tone_frame(0.5), params)

    params.set_gain_db(20.0)
    boosted, _ = analyzer.analyze(tone_frame(0.05), params)
    assert boosted[TONE_BIN] == pytest.approx(reference[TONE_BIN], rel=1e-6)


def test_bandpass_masks_outside_bins(analyzer):
    """Bins outside the band-pass carry no power."""
    params = TunableParameters(bandpass_low_hz=1000.0, bandpass_high_hz=5000.0)
    power, visual = analyzer.analyze(tone_frame(), params)

    outside = ((analyzer.bin_frequencies < 1000.0) |
               (analyzer.bin_frequencies > 5000.0))
    assert np.all(power[outside] == 0.0)
    assert power[TONE_BIN] == 0.0
    assert visual[TONE_BIN] == 0.0


def test_inverted_bandpass_yields_nothing(analyzer):
    """A high edge below the low edge leaves every bin empty."""
    params = TunableParameters(bandpass_low_hz=5000.0, bandpass_high_hz=1000.0)
    power, visual = analyzer.analyze(tone_frame(), params)
    assert not power.any()
    assert not visual.any()


def test_averaging_smooths_across_frames(analyzer):
    """With averaging on, a silent frame decays the previous spectrum."""
    params = TunableParameters(averaging_enabled=True)
    first, _ = analyzer.analyze(tone_frame(), params)
    second, _ = analyzer.analyze(np.zeros(FRAME_SIZE), params)
    assert np.allclose(second, (1.0 - AVERAGING_ALPHA) * first,
                       atol=AVERAGE_FLOOR * analyzer.max_power)


def test_averaged_silence_decays_to_zero(analyzer):
    """A decaying average reaches exact zero instead of shrinking forever."""
    params = TunableParameters(averaging_enabled=True)
    analyzer.analyze(tone_frame(amplitude=1.0), params)

    silence = np.zeros(FRAME_SIZE)
    for _ in range(analyzer.decay_frames):
        power, visual = analyzer.analyze(silence, params)

    assert not power.any()
    assert not visual.any()


def test_disabling_averaging_resets_average(analyzer):
    """Raw power is used and stored when averaging is off."""
    params = TunableParameters(averaging_enabled=True)
    analyzer.analyze(tone_frame(), params)

    params.set_averaging_enabled(False)
    silent, _ = analyzer.analyze(np.zeros(FRAME_SIZE), params)
    assert not silent.any()

    # Re-enabling resumes from the silent frame, not the old tone
    params.set_averaging_enabled(True)
    resumed, _ = analyzer.analyze(np.zeros(FRAME_SIZE), params)
    assert not resumed.any()


def test_squelch_zeroes_quiet_bins(analyzer):
    """Squelch gates both outputs below the threshold."""
    rng = np.random.default_rng(1)
    frame = tone_frame() + 0.001 * rng.standard_normal(FRAME_SIZE)
    params = TunableParameters(squelch_enabled=True, squelch_threshold=0.001)

    power, visual = analyzer.analyze(frame, params)
    gated = visual == 0.0
    assert gated.sum() > FRAME_SIZE // 4
    assert np.all(power[gated] == 0.0)
    assert power[TONE_BIN] > 0.0


def test_squelch_toggle_is_idempotent(analyzer):
    """Squelch off then on again reproduces the same visual spectrum."""
    rng = np.random.default_rng(2)
    frame = tone_frame() + 0.001 * rng.standard_normal(FRAME_SIZE)
    params = TunableParameters(squelch_enabled=True, squelch_threshold=0.001)

    _, before = analyzer.analyze(frame, params)
    params.toggle_squelch()
    _, ungated = analyzer.analyze(frame, params)
    params.toggle_squelch()
    _, after = analyzer.analyze(frame, params)

    assert np.array_equal(before, after)
    assert np.count_nonzero(ungated) > np.count_nonzero(before)
