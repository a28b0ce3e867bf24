#!/usr/bin/env python3
"""
Synthetic keyed tones for exercising the sine detector.

Keying is aligned to analysis frames so every frame is either fully keyed or
silent, which makes expected timings exact multiples of the frame duration.
"""

import wave
from typing import Optional

import numpy as np


def bin_frequency(bin_index: int, sample_rate: int, frame_size: int) -> float:
    """Centre frequency of an FFT bin."""
    return bin_index * sample_rate / frame_size


def generate_tone(
    frequency: float,
    num_samples: int,
    sample_rate: int,
    amplitude: float = 0.5,
    phase: float = 0.0
) -> np.ndarray:
    t = np.arange(num_samples) / sample_rate
    return amplitude * np.sin(2 * np.pi * frequency * t + phase)


def keying_envelope(
    pattern: str,
    frame_size: int,
    dot_frames: int = 5,
    dash_frames: int = 11,
    element_gap_frames: int = 3,
    char_gap_frames: int = 9,
    word_gap_frames: int = 15,
    lead_frames: int = 2
) -> np.ndarray:
    """
    Build an on/off envelope for a morse pattern.

    Args:
        pattern: Dots and dashes; ' ' separates characters, '/' separates words
        frame_size: Samples per frame
        dot_frames: Frames keyed for a dot
        dash_frames: Frames keyed for a dash
        element_gap_frames: Silent frames between elements of a character
        char_gap_frames: Silent frames between characters
        word_gap_frames: Silent frames between words
        lead_frames: Silent frames before the first element

    Returns:
        Envelope of 0.0/1.0 samples
    """
    frames = [0.0] * lead_frames
    previous = None

    for symbol in pattern:
        if symbol in '.-':
            if previous in ('.', '-'):
                frames.extend([0.0] * element_gap_frames)
            elif previous == ' ':
                frames.extend([0.0] * char_gap_frames)
            elif previous == '/':
                frames.extend([0.0] * word_gap_frames)
            length = dot_frames if symbol == '.' else dash_frames
            frames.extend([1.0] * length)
        previous = symbol

    return np.repeat(np.array(frames), frame_size)


def generate_keyed_signal(
    frequency: float,
    pattern: str,
    sample_rate: int,
    frame_size: int,
    amplitude: float = 0.5,
    num_samples: Optional[int] = None,
    **timing
) -> np.ndarray:
    """
    Generate a keyed carrier for a morse pattern.

    Args:
        frequency: Carrier frequency in Hz
        pattern: Morse pattern (see keying_envelope)
        sample_rate: Sample rate in Hz
        frame_size: Samples per frame
        amplitude: Carrier amplitude (0-1)
        num_samples: Pad or cut the result to this length
        **timing: Frame counts passed to keying_envelope

    Returns:
        Audio samples
    """
    envelope = keying_envelope(pattern, frame_size, **timing)
    if num_samples is not None:
        padded = np.zeros(num_samples)
        n = min(num_samples, len(envelope))
        padded[:n] = envelope[:n]
        envelope = padded

    carrier = generate_tone(frequency, len(envelope), sample_rate, amplitude)
    return carrier * envelope


def split_frames(audio: np.ndarray, frame_size: int):
    """Split audio into whole frames, zero padding the last one."""
    count = -(-len(audio) // frame_size)
    padded = np.zeros(count * frame_size)
    padded[:len(audio)] = audio
    return padded.reshape(count, frame_size)


def save_wav(filename: str, audio: np.ndarray, sample_rate: int):
    """Save audio to WAV file."""
    # Convert to int16
    audio_int = (np.clip(audio, -1.0, 1.0) * 32767).astype(np.int16)

    with wave.open(filename, 'wb') as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(audio_int.tobytes())
