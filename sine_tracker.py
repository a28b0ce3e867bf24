#!/usr/bin/env python3
"""
Sine Track Manager

Keeps a fixed table of tone tracks. Peaks from each frame are matched to
existing tracks by frequency, new tones open pending tracks, and a tone must
persist before it is confirmed and stay silent before it is retired. Every
confirmation and retirement is reported as a transition.
"""

import sys
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Set, Tuple

import numpy as np

from detector_config import TunableParameters
from peak_detector import Peak


MAX_TRACKED_SINES = 8
DETECT_THRESHOLD = 0.1       # Minimum share of total power around a peak
FREQUENCY_TOLERANCE = 5.0    # Hz; closer peaks belong to the same track
FREQUENCY_SMOOTHING = 0.9    # Weight of the previous frequency estimate
PURITY_HALF_WIDTH = 1        # Bins on each side counted towards purity


class TrackState(Enum):
    EMPTY = 'empty'
    PENDING = 'pending'
    ACTIVE = 'active'


class Transition(Enum):
    NONE = 'none'
    ACTIVATED = 'activated'
    DEACTIVATED = 'deactivated'


@dataclass
class SineTrack:
    """One candidate or confirmed tone. Timestamps are in milliseconds."""
    slot: int
    state: TrackState = TrackState.EMPTY
    frequency_hz: float = 0.0
    purity_percent: float = 0.0
    first_seen_at: float = 0.0
    last_seen_at: float = 0.0
    tone_started_at: float = 0.0

    @property
    def tone_duration_ms(self) -> float:
        return self.last_seen_at - self.tone_started_at

    def clear(self):
        self.state = TrackState.EMPTY
        self.frequency_hz = 0.0
        self.purity_percent = 0.0
        self.first_seen_at = 0.0
        self.last_seen_at = 0.0
        self.tone_started_at = 0.0


class SineTrackManager:
    """
    Matches spectral peaks to tone tracks and runs the per-track lifecycle.

    Tracks live in a fixed-capacity table indexed by slot. A slot is reused as
    soon as its track returns to EMPTY.
    """

    def __init__(
        self,
        sample_rate: int,
        frame_size: int = 2048,
        max_tracks: int = MAX_TRACKED_SINES,
        detect_threshold: float = DETECT_THRESHOLD,
        frequency_tolerance: float = FREQUENCY_TOLERANCE,
        debug: bool = False
    ):
        """
        Initialize the track table.

        Args:
            sample_rate: Sample rate of input audio in Hz
            frame_size: Samples per analyzed frame
            max_tracks: Number of track slots
            detect_threshold: Minimum fraction of total power for a peak to qualify
            frequency_tolerance: Maximum distance in Hz for a peak to match a track
            debug: Enable debug output to stderr
        """
        self.freq_resolution = sample_rate / frame_size
        self.detect_threshold = detect_threshold
        self.frequency_tolerance = frequency_tolerance
        self.debug = debug

        self.tracks = [SineTrack(slot=i) for i in range(max_tracks)]

    def update(
        self,
        peaks: List[Peak],
        power: np.ndarray,
        total_power: float,
        params: TunableParameters,
        now: float
    ) -> List[Tuple[SineTrack, Transition]]:
        """
        Apply one frame of peaks to the track table.

        Args:
            peaks: Peaks from this frame, strongest first
            power: Power spectrum the peaks were taken from
            total_power: Sum of the power spectrum
            params: Current tunable parameters
            now: Frame timestamp in milliseconds

        Returns:
            (track, transition) for every slot that was occupied before or
            after this frame. Tracks are copies; a deactivated track keeps
            the values it had when it ended.
        """
        matched: Set[int] = set()

        for frequency, purity in self._qualifying(peaks, power, total_power, params):
            track = self._nearest_track(frequency, exclude=matched)
            if track is not None:
                track.frequency_hz = (FREQUENCY_SMOOTHING * track.frequency_hz +
                                      (1.0 - FREQUENCY_SMOOTHING) * frequency)
                track.purity_percent = purity
                track.last_seen_at = now
                matched.add(track.slot)
                continue

            # Within tolerance of a track already fed this frame: same tone
            if self._nearest_track(frequency) is not None:
                continue

            track = self._free_slot()
            if track is None:
                if self.debug:
                    print(f"No free track for {frequency:.1f} Hz", file=sys.stderr, flush=True)
                continue

            track.state = TrackState.PENDING
            track.frequency_hz = frequency
            track.purity_percent = purity
            track.first_seen_at = now
            track.last_seen_at = now
            matched.add(track.slot)

        results = []
        for track in self.tracks:
            if track.state is TrackState.EMPTY:
                continue

            transition = Transition.NONE

            if track.slot in matched:
                if (track.state is TrackState.PENDING and
                        now - track.first_seen_at >= params.persistence_threshold_ms):
                    track.state = TrackState.ACTIVE
                    track.tone_started_at = now
                    transition = Transition.ACTIVATED
                reported = replace(track)
            elif now - track.last_seen_at >= params.persistence_threshold_ms:
                # Pending tracks never confirmed, so they end without a transition
                if track.state is TrackState.ACTIVE:
                    transition = Transition.DEACTIVATED
                reported = replace(track, state=TrackState.EMPTY)
                track.clear()
            else:
                reported = replace(track)

            if self.debug and transition is not Transition.NONE:
                print(f"Track {track.slot} {transition.value} at "
                      f"{reported.frequency_hz:.1f} Hz", file=sys.stderr, flush=True)

            results.append((reported, transition))

        return results

    def active_tracks(self) -> List[SineTrack]:
        return [replace(t) for t in self.tracks if t.state is TrackState.ACTIVE]

    def reset(self):
        for track in self.tracks:
            track.clear()

    def _qualifying(
        self,
        peaks: List[Peak],
        power: np.ndarray,
        total_power: float,
        params: TunableParameters
    ) -> List[Tuple[float, float]]:
        """
        Compute frequency and purity for each peak and keep those that qualify.

        Returns:
            List of (frequency_hz, purity_percent)
        """
        if total_power <= 0:
            return []

        qualifying = []
        for peak in peaks:
            frequency = peak.bin_index * self.freq_resolution
            lo = max(0, peak.bin_index - PURITY_HALF_WIDTH)
            hi = peak.bin_index + PURITY_HALF_WIDTH + 1
            purity = float(np.sum(power[lo:hi])) / total_power

            if purity <= self.detect_threshold:
                continue
            if not params.bandpass_low_hz <= frequency <= params.bandpass_high_hz:
                continue
            qualifying.append((frequency, purity * 100.0))

        return qualifying

    def _nearest_track(self, frequency: float, exclude: Set[int] = frozenset()) -> Optional[SineTrack]:
        best = None
        best_distance = self.frequency_tolerance
        for track in self.tracks:
            if track.state is TrackState.EMPTY or track.slot in exclude:
                continue
            distance = abs(track.frequency_hz - frequency)
            if distance <= best_distance:
                best = track
                best_distance = distance
        return best

    def _free_slot(self) -> Optional[SineTrack]:
        for track in self.tracks:
            if track.state is TrackState.EMPTY:
                return track
        return None
