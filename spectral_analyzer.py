#!/usr/bin/env python3
"""
Spectral Analyzer for the Sine Tone Detector

Turns one fixed-size audio frame into a power spectrum for peak detection and
a normalized spectrum for display. Gain, band-pass masking, optional temporal
averaging and squelch are applied here so later stages only see bins that are
eligible for detection.
"""

import math

import numpy as np
import scipy.signal as signal
from typing import Optional, Tuple

from detector_config import TunableParameters


# Smoothing factor for the per-bin exponential moving average
AVERAGING_ALPHA = 0.3

# Averaged bins below this fraction of max_power are flushed to zero
AVERAGE_FLOOR = 1e-12


class WindowFunction:
    """Precomputed tapering coefficients for a fixed frame size."""

    def __init__(self, size: int, name: str = 'hann'):
        self.size = size
        self.name = name
        # Symmetric window: 0.5 * (1 - cos(2*pi*i / (N-1))) for hann
        self.coefficients = signal.get_window(name, size, fftbins=False)

    def apply(self, frame: np.ndarray) -> np.ndarray:
        return frame * self.coefficients


class SpectralAnalyzer:
    """
    Computes power and visualization spectra for fixed-size frames.

    Only bins [0, frame_size/2) are kept. The averaged spectrum is the only
    state carried from one frame to the next.
    """

    def __init__(
        self,
        sample_rate: int,
        frame_size: int = 2048,
        window: str = 'hann',
        averaging_alpha: float = AVERAGING_ALPHA
    ):
        """
        Initialize the analyzer.

        Args:
            sample_rate: Sample rate of input audio in Hz
            frame_size: Samples per frame (FFT length)
            window: Window name understood by scipy.signal.get_window
            averaging_alpha: Weight of the newest frame when averaging
        """
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.num_bins = frame_size // 2
        self.averaging_alpha = averaging_alpha

        self.window = WindowFunction(frame_size, window)

        # Frequency of each retained bin
        self.freq_resolution = sample_rate / frame_size
        self.bin_frequencies = np.arange(self.num_bins) * self.freq_resolution

        # Peak power of a full-scale windowed sine at a bin centre
        coherent_gain = float(np.sum(self.window.coefficients)) / 2.0
        self.max_power = coherent_gain ** 2

        self._average: Optional[np.ndarray] = None

    def analyze(
        self,
        frame: np.ndarray,
        params: TunableParameters
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Analyze one frame.

        Args:
            frame: Samples normalized to [-1.0, 1.0], length frame_size
            params: Current tunable parameters

        Returns:
            Tuple of (power spectrum, normalized visualization spectrum)
        """
        gain = 10.0 ** (params.gain_db / 20.0)
        windowed = self.window.apply(np.asarray(frame, dtype=np.float64) * gain)

        spectrum = np.fft.rfft(windowed, n=self.frame_size)[:self.num_bins]
        power = spectrum.real ** 2 + spectrum.imag ** 2

        # Band-pass mask; an inverted band simply leaves nothing
        outside = ((self.bin_frequencies < params.bandpass_low_hz) |
                   (self.bin_frequencies > params.bandpass_high_hz))
        power[outside] = 0.0

        if params.averaging_enabled and self._average is not None:
            alpha = self.averaging_alpha
            self._average = alpha * power + (1.0 - alpha) * self._average
            # A decaying tail never reaches zero on its own, and its purity stays constant
            self._average[self._average < AVERAGE_FLOOR * self.max_power] = 0.0
            power = self._average.copy()
        else:
            # Keep the average primed so re-enabling resumes from this frame
            self._average = power.copy()

        visual = np.clip(power / self.max_power, 0.0, 1.0)

        if params.squelch_enabled:
            gated = visual < params.squelch_threshold
            visual[gated] = 0.0
            power[gated] = 0.0

        return power, visual

    @property
    def decay_frames(self) -> int:
        """Silent frames needed for a full-scale averaged bin to reach the floor."""
        if self.averaging_alpha >= 1.0:
            return 1
        return math.ceil(math.log(AVERAGE_FLOOR) / math.log(1.0 - self.averaging_alpha))

    def reset(self):
        """Forget the averaged spectrum."""
        self._average = None
