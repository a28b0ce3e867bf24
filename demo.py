#!/usr/bin/env python3
"""
Demo script for the Sine Tone Detector

Synthesizes keyed tones, runs them through the detector frame by frame and
prints the tone events and decoded text.
"""

import numpy as np

from sine_detector import SineDetector
from sine_tracker import Transition
from tone_synth import bin_frequency, generate_keyed_signal, split_frames


SAMPLE_RATE = 44100
FRAME_SIZE = 2048


def demo_signal(audio: np.ndarray, description: str):
    """Run one synthesized signal through a fresh detector."""
    print("\n" + "=" * 70)
    print(f"  {description}")
    print("=" * 70)

    detector = SineDetector(sample_rate=SAMPLE_RATE, frame_size=FRAME_SIZE)
    frame_ms = detector.frame_duration_ms

    frames = split_frames(np.concatenate([audio, np.zeros(FRAME_SIZE * 4)]), FRAME_SIZE)
    for index, frame in enumerate(frames):
        for event in detector.process_frame(frame, now_ms=index * frame_ms):
            track = event.track
            if event.transition is Transition.ACTIVATED:
                print(f"   [{track.tone_started_at / 1000:6.3f}s] {track.frequency_hz:7.1f} Hz on "
                      f"(purity {track.purity_percent:.1f}%)")
            else:
                print(f"   [{track.last_seen_at / 1000:6.3f}s] {track.frequency_hz:7.1f} Hz off "
                      f"after {track.tone_duration_ms:.0f}ms -> '{event.symbol}'")

    detector.flush()
    snapshot = detector.snapshot()
    print("-" * 70)
    print(f"   Symbols: {snapshot.symbols}")
    print(f"   Text:    \"{snapshot.text}\"")
    print(f"   Dot:     {snapshot.estimated_dot_ms:.1f}ms")


def main():
    """Run demo."""
    print("\n" + "*" * 70)
    print("*" + "  Sine Tone Detector - Demo".center(68) + "*")
    print("*" * 70)

    freq = bin_frequency(40, SAMPLE_RATE, FRAME_SIZE)
    sos = generate_keyed_signal(freq, "... --- ...", SAMPLE_RATE, FRAME_SIZE)
    demo_signal(sos, f"Sample 1: SOS at {freq:.1f} Hz")

    # Two stations keyed at once on well separated tones
    freq1 = bin_frequency(37, SAMPLE_RATE, FRAME_SIZE)
    freq2 = bin_frequency(70, SAMPLE_RATE, FRAME_SIZE)
    length = FRAME_SIZE * 60
    mixed = (generate_keyed_signal(freq1, "-.-.", SAMPLE_RATE, FRAME_SIZE, num_samples=length) +
             generate_keyed_signal(freq2, "--.-", SAMPLE_RATE, FRAME_SIZE, num_samples=length,
                                   lead_frames=6))
    demo_signal(mixed, f"Sample 2: two tones at {freq1:.1f} Hz and {freq2:.1f} Hz")

    print("\n" + "=" * 70)
    print("  Demo Complete!")
    print("=" * 70)
    print("\nTo decode your own audio:")
    print("  python sine_detector_streaming.py yourfile.wav")
    print("  python sine_detector_streaming.py --live --status-interval 1")
    print()


if __name__ == '__main__':
    main()
