#!/usr/bin/env python3
"""
Peak Detector for the Sine Tone Detector

Extracts the strongest local maxima from a power spectrum. After each pick the
surrounding bins are suppressed so one broad spectral lobe is never reported
as several peaks.
"""

import numpy as np
from dataclasses import dataclass
from typing import List


# Bins suppressed on each side of a selected peak
SUPPRESSION_BINS = 3


@dataclass
class Peak:
    """A candidate tone in one frame's spectrum."""
    bin_index: int
    power: float


class PeakDetector:
    """Greedy non-maximum suppression over a power spectrum."""

    def __init__(self, suppression_bins: int = SUPPRESSION_BINS):
        self.suppression_bins = suppression_bins

    def find_peaks(self, power: np.ndarray, max_peaks: int) -> List[Peak]:
        """
        Find up to max_peaks non-overlapping peaks.

        Args:
            power: Power spectrum
            max_peaks: Maximum number of peaks to report

        Returns:
            Peaks ordered by descending power
        """
        power = np.asarray(power)
        n = len(power)
        if n < 3 or max_peaks <= 0:
            return []

        # Local maxima excluding the edges; a plateau resolves to its lowest bin
        centre = power[1:-1]
        is_max = (centre > power[:-2]) & (centre >= power[2:])

        available = np.zeros(n, dtype=bool)
        available[1:-1] = is_max

        peaks = []
        while len(peaks) < max_peaks:
            candidates = np.where(available, power, -np.inf)
            idx = int(np.argmax(candidates))
            if not available[idx]:
                break

            peaks.append(Peak(bin_index=idx, power=float(power[idx])))

            lo = max(0, idx - self.suppression_bins)
            hi = min(n, idx + self.suppression_bins + 1)
            available[lo:hi] = False

        return peaks
