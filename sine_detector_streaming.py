#!/usr/bin/env python3
"""
Streaming Sine Tone Detector

Feeds continuous audio through the sine detector frame by frame and writes
each confirmed tone start/end as a JSON line as soon as it happens.

Input: Raw PCM or WAV audio (stdin or file), or a live input device
Output: JSON lines with tone events and a final summary (stdout)
"""

import json
import math
import queue
import sys
import threading
import time
import wave
from typing import BinaryIO, Iterator, Optional, Union

import numpy as np

from detector_config import TunableParameters, load_parameters, save_parameters
from sine_detector import DetectorSnapshot, SineDetector, ToneEvent
from sine_tracker import TrackState


def parse_device(value: str) -> Union[int, str]:
    """Device indices are integers; anything else is a device name."""
    value = value.strip()
    if value.isdigit():
        return int(value)
    return value


def pcm_to_float(data: bytes, sample_width: int, channels: int = 1) -> np.ndarray:
    """
    Convert interleaved PCM bytes to mono float samples.

    Args:
        data: Raw PCM bytes
        sample_width: Bytes per sample (1=uint8, 2=int16, 4=int32)
        channels: Number of interleaved channels

    Returns:
        First channel as float64 samples in [-1.0, 1.0]
    """
    if sample_width == 1:
        audio = np.frombuffer(data, dtype=np.uint8).astype(np.float64)
        audio = (audio - 128) / 128.0
    elif sample_width == 2:
        audio = np.frombuffer(data, dtype=np.int16).astype(np.float64) / 32768.0
    elif sample_width == 4:
        audio = np.frombuffer(data, dtype=np.int32).astype(np.float64) / 2147483648.0
    else:
        raise ValueError(f"Unsupported sample width: {sample_width}")

    # Multi-channel - use first channel only
    if channels > 1:
        usable = len(audio) - len(audio) % channels
        audio = audio[:usable].reshape(-1, channels)[:, 0]

    return audio


def read_pcm_frames(
    stream: BinaryIO,
    frame_size: int,
    channels: int = 1,
    sample_width: int = 2
) -> Iterator[np.ndarray]:
    """
    Read raw PCM from a binary stream in whole frames.

    Yields:
        Frames of frame_size mono samples; the last one may be short
    """
    frame_bytes = frame_size * channels * sample_width

    while True:
        data = stream.read(frame_bytes)
        if not data:
            break
        yield pcm_to_float(data, sample_width, channels)


def read_wav_frames(wav_file: wave.Wave_read, frame_size: int) -> Iterator[np.ndarray]:
    """
    Read an open WAV file in whole frames.

    Yields:
        Frames of frame_size mono samples; the last one may be short
    """
    channels = wav_file.getnchannels()
    sample_width = wav_file.getsampwidth()

    while True:
        data = wav_file.readframes(frame_size)
        if not data:
            break
        yield pcm_to_float(data, sample_width, channels)


def emit_event(event: ToneEvent):
    """Write a tone event as a JSON line to stdout."""
    print(json.dumps(event.to_dict()), flush=True)


def emit_summary(snapshot: DetectorSnapshot):
    output = {
        'event': 'summary',
        'symbols': snapshot.symbols,
        'text': snapshot.text,
        'dot_ms': snapshot.estimated_dot_ms,
    }
    print(json.dumps(output), flush=True)


def format_status(snapshot: DetectorSnapshot) -> str:
    """One-line summary of a snapshot for the status display."""
    tones = ", ".join(
        f"{t.frequency_hz:.1f} Hz ({t.purity_percent:.1f}%)"
        for t in snapshot.active_tracks
    ) or "none"
    pending = sum(1 for t in snapshot.tracks if t.state is TrackState.PENDING)
    p = snapshot.parameters
    return (f"tones: {tones} | pending: {pending} | "
            f"dot: {snapshot.estimated_dot_ms:.0f}ms | "
            f"text: {snapshot.text[-40:]!r} | "
            f"gain {p.gain_db:+.0f}dB bp {p.bandpass_low_hz:.0f}-{p.bandpass_high_hz:.0f}Hz "
            f"sq {'on' if p.squelch_enabled else 'off'} "
            f"avg {'on' if p.averaging_enabled else 'off'}")


class StatusReporter(threading.Thread):
    """Periodically prints detector snapshots to stderr."""

    def __init__(self, detector: SineDetector, interval: float):
        super().__init__(daemon=True)
        self.detector = detector
        self.interval = interval
        self._stop_event = threading.Event()

    def run(self):
        while not self._stop_event.wait(self.interval):
            print(format_status(self.detector.snapshot()), file=sys.stderr, flush=True)

    def stop(self):
        self._stop_event.set()
        self.join()


def process_stream(detector: SineDetector, frames: Iterator[np.ndarray]):
    """
    Process frames timed by sample count and emit events as they occur.

    After the input ends, enough silent frames are fed to close any tone
    still sounding.

    Args:
        detector: Detector to feed
        frames: Iterator of audio frames
    """
    frame_ms = detector.frame_duration_ms
    index = 0

    for frame in frames:
        for event in detector.process_frame(frame, now_ms=index * frame_ms):
            emit_event(event)
        index += 1

    tail = math.ceil(detector.params.persistence_threshold_ms / frame_ms) + 1
    if detector.params.averaging_enabled:
        # The averaged spectrum has to decay to silence before the tone can end
        tail += detector.analyzer.decay_frames
    silence = np.zeros(detector.frame_size)
    for _ in range(tail):
        for event in detector.process_frame(silence, now_ms=index * frame_ms):
            emit_event(event)
        index += 1

    detector.flush()


def run_live(
    detector: SineDetector,
    device: Optional[Union[int, str]] = None,
    status_interval: float = 0.0
):
    """
    Capture from an audio input device until interrupted.

    The audio callback only runs the detector and queues events; printing
    happens on the calling thread.

    Args:
        detector: Detector to feed
        device: Input device name or index (default device if None)
        status_interval: Seconds between status lines (0 disables)
    """
    import sounddevice as sd

    events: queue.Queue = queue.Queue()

    def callback(indata, frames, time_info, status):
        if status:
            print(f"Audio status: {status}", file=sys.stderr, flush=True)
        for event in detector.process_frame(indata[:, 0]):
            events.put_nowait(event)

    with sd.InputStream(
        samplerate=detector.sample_rate,
        blocksize=detector.frame_size,
        device=device,
        channels=1,
        dtype='float32',
        callback=callback
    ):
        print("Listening for sine waves... Press Ctrl+C to exit.", file=sys.stderr, flush=True)
        last_status = time.monotonic()
        while True:
            try:
                emit_event(events.get(timeout=0.1))
            except queue.Empty:
                pass
            if status_interval > 0 and time.monotonic() - last_status >= status_interval:
                print(format_status(detector.snapshot()), file=sys.stderr, flush=True)
                last_status = time.monotonic()


def apply_overrides(params: TunableParameters, args):
    """Apply command line values on top of loaded parameters."""
    if args.gain_db is not None:
        params.set_gain_db(args.gain_db)
    if args.bandpass_low is not None:
        params.set_bandpass_low(args.bandpass_low)
    if args.bandpass_high is not None:
        params.set_bandpass_high(args.bandpass_high)
    if args.persistence is not None:
        params.set_persistence_threshold_ms(args.persistence)
    if args.squelch is not None:
        params.set_squelch_enabled(True)
        params.set_squelch_threshold(args.squelch)
    if args.averaging:
        params.set_averaging_enabled(True)


def main():
    """Command line interface for the streaming sine detector."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Detect sine tones and decode on/off keying from an audio stream'
    )
    parser.add_argument(
        'input',
        nargs='?',
        default='-',
        help="Input file, or '-' for stdin (default: stdin)"
    )
    parser.add_argument(
        '--wav-file',
        action='store_true',
        default=False,
        help='Input is a WAV file (default: False, raw PCM)'
    )
    parser.add_argument(
        '--live',
        action='store_true',
        help='Capture from an audio input device instead of a stream'
    )
    parser.add_argument(
        '--device',
        type=parse_device,
        help='Input device index or name for --live (default: system default)'
    )
    parser.add_argument(
        '-r', '--sample-rate',
        type=int,
        default=44100,
        help='Sample rate in Hz (default: 44100)'
    )
    parser.add_argument(
        '-c', '--channels',
        type=int,
        default=1,
        choices=[1, 2],
        help='Number of channels (default: 1)'
    )
    parser.add_argument(
        '-w', '--sample-width',
        type=int,
        default=2,
        choices=[1, 2, 4],
        help='Sample width in bytes (default: 2 for int16)'
    )
    parser.add_argument(
        '-n', '--frame-size',
        type=int,
        default=2048,
        help='Samples per analysis frame (default: 2048)'
    )
    parser.add_argument(
        '--config',
        help='key=value parameter file, loaded at start and saved at exit'
    )
    parser.add_argument('--gain-db', type=float, help='Input gain in dB')
    parser.add_argument('--bandpass-low', type=float, help='Band-pass low edge in Hz')
    parser.add_argument('--bandpass-high', type=float, help='Band-pass high edge in Hz')
    parser.add_argument('--persistence', type=float, help='Persistence threshold in ms')
    parser.add_argument('--squelch', type=float, help='Enable squelch at this level (0-1)')
    parser.add_argument('--averaging', action='store_true', help='Enable spectral averaging')
    parser.add_argument(
        '--status-interval',
        type=float,
        default=0.0,
        help='Seconds between status lines on stderr (default: off)'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output'
    )

    args = parser.parse_args()

    params = load_parameters(args.config) if args.config else TunableParameters()
    apply_overrides(params, args)

    input_stream = sys.stdin.buffer if args.input == '-' else open(args.input, 'rb')
    wav_file = None
    if args.wav_file or args.input.lower().endswith('.wav'):
        wav_file = wave.open(input_stream, 'rb')
        args.sample_rate = wav_file.getframerate()

    detector = SineDetector(
        sample_rate=args.sample_rate,
        frame_size=args.frame_size,
        params=params,
        debug=args.debug
    )

    reporter = None
    try:
        if args.live:
            run_live(detector, args.device, args.status_interval)
        else:
            if args.status_interval > 0:
                reporter = StatusReporter(detector, args.status_interval)
                reporter.start()

            if wav_file is not None:
                frames = read_wav_frames(wav_file, args.frame_size)
            else:
                frames = read_pcm_frames(
                    input_stream, args.frame_size, args.channels, args.sample_width
                )
            process_stream(detector, frames)
            emit_summary(detector.snapshot())
    except KeyboardInterrupt:
        detector.flush()
        emit_summary(detector.snapshot())
    except BrokenPipeError:
        # Output pipe closed
        pass
    finally:
        if reporter is not None:
            reporter.stop()
        if wav_file is not None:
            wav_file.close()
        if input_stream is not sys.stdin.buffer:
            input_stream.close()
        if args.config:
            save_parameters(params, args.config)


if __name__ == '__main__':
    main()
