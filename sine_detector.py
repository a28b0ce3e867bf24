#!/usr/bin/env python3
"""
Sine Tone Detector

Runs the per-frame pipeline: spectral analysis, peak detection, tone tracking
and Morse decoding. The audio thread calls process_frame() and a display
thread calls snapshot(); both hold the same lock, so a snapshot never sees a
half-updated frame. Tunable parameters are read without the lock.
"""

import threading
import time
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

import numpy as np

from detector_config import TunableParameters
from morse_decoder import MorseDecoder
from peak_detector import PeakDetector
from sine_tracker import (
    FREQUENCY_TOLERANCE,
    MAX_TRACKED_SINES,
    SineTrack,
    SineTrackManager,
    TrackState,
    Transition,
)
from spectral_analyzer import SpectralAnalyzer


@dataclass
class ToneEvent:
    """A confirmed tone starting or ending."""
    transition: Transition
    track: SineTrack
    symbol: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {
            'event': self.transition.value,
            'frequency': self.track.frequency_hz,
            'purity': self.track.purity_percent,
        }
        if self.transition is Transition.ACTIVATED:
            data['timestamp'] = self.track.tone_started_at / 1000.0
        else:
            data['timestamp'] = self.track.last_seen_at / 1000.0
            data['width'] = self.track.tone_duration_ms / 1000.0
            data['symbol'] = self.symbol
        return data


@dataclass
class DetectorSnapshot:
    """Consistent copy of detector state for display."""
    tracks: Tuple[SineTrack, ...]
    spectrum: np.ndarray
    symbols: str
    text: str
    estimated_dot_ms: float
    parameters: TunableParameters

    @property
    def active_tracks(self) -> List[SineTrack]:
        return [t for t in self.tracks if t.state is TrackState.ACTIVE]


class SineDetector:
    """
    Owns the analysis pipeline and the state shared with the display thread.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        frame_size: int = 2048,
        params: Optional[TunableParameters] = None,
        max_tracks: int = MAX_TRACKED_SINES,
        debug: bool = False
    ):
        """
        Initialize the detector.

        Args:
            sample_rate: Sample rate of input audio in Hz
            frame_size: Samples per frame
            params: Tunable parameters shared with the UI (defaults if None)
            max_tracks: Maximum number of simultaneous tones
            debug: Enable debug output to stderr
        """
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.max_tracks = max_tracks
        self.params = params if params is not None else TunableParameters()

        self.analyzer = SpectralAnalyzer(sample_rate, frame_size)
        self.peak_detector = PeakDetector()
        # A tone drifting across one bin boundary is still the same tone
        self.tracker = SineTrackManager(
            sample_rate,
            frame_size,
            max_tracks=max_tracks,
            frequency_tolerance=max(FREQUENCY_TOLERANCE, self.analyzer.freq_resolution),
            debug=debug
        )
        self.decoder = MorseDecoder(debug=debug)

        self.frame_duration_ms = 1000.0 * frame_size / sample_rate
        self._spectrum = np.zeros(self.analyzer.num_bins)
        self._lock = threading.Lock()

    def process_frame(self, frame: np.ndarray, now_ms: Optional[float] = None) -> List[ToneEvent]:
        """
        Run one frame through the pipeline.

        Args:
            frame: Samples normalized to [-1.0, 1.0]; padded or truncated
                   to the frame size
            now_ms: Frame timestamp in milliseconds (monotonic clock if None)

        Returns:
            Activation and deactivation events produced by this frame
        """
        if now_ms is None:
            now_ms = time.monotonic() * 1000.0

        frame = np.asarray(frame, dtype=np.float64)
        if len(frame) != self.frame_size:
            fitted = np.zeros(self.frame_size)
            n = min(len(frame), self.frame_size)
            fitted[:n] = frame[:n]
            frame = fitted

        params = self.params
        events = []

        with self._lock:
            power, visual = self.analyzer.analyze(frame, params)
            self._spectrum[:] = visual

            peaks = self.peak_detector.find_peaks(power, self.max_tracks)
            total_power = float(np.sum(power))
            updates = self.tracker.update(peaks, power, total_power, params, now_ms)

            for track, transition in updates:
                if transition is Transition.ACTIVATED:
                    self.decoder.on_activated(track.first_seen_at)
                    events.append(ToneEvent(transition, track))
                elif transition is Transition.DEACTIVATED:
                    symbol = self.decoder.on_deactivated(track.tone_duration_ms, track.last_seen_at)
                    events.append(ToneEvent(transition, track, symbol))

        return events

    def snapshot(self) -> DetectorSnapshot:
        with self._lock:
            return DetectorSnapshot(
                tracks=tuple(replace(t) for t in self.tracker.tracks),
                spectrum=self._spectrum.copy(),
                symbols="".join(self.decoder.symbols),
                text=self.decoder.text,
                estimated_dot_ms=self.decoder.estimated_dot_ms,
                parameters=replace(self.params),
            )

    def flush(self):
        """Close the character currently being decoded."""
        with self._lock:
            self.decoder.flush()

    def reset(self):
        with self._lock:
            self.analyzer.reset()
            self.tracker.reset()
            self.decoder.reset()
            self._spectrum[:] = 0.0
