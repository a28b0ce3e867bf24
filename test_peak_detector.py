#!/usr/bin/env python3
"""
Tests for the peak detector.
"""

import numpy as np

from detector_config import TunableParameters
from peak_detector import SUPPRESSION_BINS, PeakDetector
from spectral_analyzer import SpectralAnalyzer
from tone_synth import bin_frequency, generate_tone


def lobe(n: int, centre: int, height: float) -> np.ndarray:
    """Spectrum with a three-bin lobe around centre."""
    power = np.zeros(n)
    power[centre] = height
    power[centre - 1] = height / 4
    power[centre + 1] = height / 4
    return power


def test_single_lobe_is_one_peak():
    """Shoulders of a lobe are not reported as extra peaks."""
    detector = PeakDetector()
    peaks = detector.find_peaks(lobe(64, 20, 9.0), max_peaks=5)
    assert [p.bin_index for p in peaks] == [20]
    assert peaks[0].power == 9.0


def test_peaks_ordered_by_power():
    power = lobe(64, 10, 2.0) + lobe(64, 30, 8.0) + lobe(64, 50, 5.0)
    peaks = PeakDetector().find_peaks(power, max_peaks=5)
    assert [p.bin_index for p in peaks] == [30, 50, 10]


def test_max_peaks_limit():
    power = lobe(64, 10, 2.0) + lobe(64, 30, 8.0) + lobe(64, 50, 5.0)
    peaks = PeakDetector().find_peaks(power, max_peaks=2)
    assert [p.bin_index for p in peaks] == [30, 50]


def test_suppression_window_hides_close_peak():
    """A weaker maximum inside the suppression window is dropped."""
    power = np.zeros(64)
    power[20] = 10.0
    power[20 + SUPPRESSION_BINS] = 6.0
    peaks = PeakDetector().find_peaks(power, max_peaks=5)
    assert [p.bin_index for p in peaks] == [20]


def test_peak_just_outside_suppression_window_survives():
    power = np.zeros(64)
    power[20] = 10.0
    power[20 + SUPPRESSION_BINS + 1] = 6.0
    peaks = PeakDetector().find_peaks(power, max_peaks=5)
    assert [p.bin_index for p in peaks] == [20, 20 + SUPPRESSION_BINS + 1]


def test_plateau_resolves_to_lower_bin():
    power = np.zeros(32)
    power[10] = 5.0
    power[11] = 5.0
    peaks = PeakDetector().find_peaks(power, max_peaks=3)
    assert [p.bin_index for p in peaks] == [10]


def test_edges_are_never_peaks():
    power = np.zeros(32)
    power[0] = 10.0
    power[-1] = 10.0
    assert PeakDetector().find_peaks(power, max_peaks=3) == []


def test_flat_and_tiny_spectra():
    detector = PeakDetector()
    assert detector.find_peaks(np.zeros(128), max_peaks=4) == []
    assert detector.find_peaks(np.ones(2), max_peaks=4) == []
    assert detector.find_peaks(lobe(16, 5, 1.0), max_peaks=0) == []


def test_two_tones_are_separated():
    """Two real tones far apart give two distinct peaks."""
    sample_rate, frame_size = 44100, 2048
    analyzer = SpectralAnalyzer(sample_rate, frame_size)
    frame = (generate_tone(bin_frequency(40, sample_rate, frame_size), frame_size, sample_rate, 0.5) +
             generate_tone(bin_frequency(80, sample_rate, frame_size), frame_size, sample_rate, 0.3))
    power, _ = analyzer.analyze(frame, TunableParameters())

    peaks = PeakDetector().find_peaks(power, max_peaks=2)
    assert [p.bin_index for p in peaks] == [40, 80]
    assert peaks[0].power > peaks[1].power
