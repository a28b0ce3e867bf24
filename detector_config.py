#!/usr/bin/env python3
"""
Tunable parameters for the Sine Tone Detector

The detector reads these values once per frame. Setters clamp to sane ranges;
the detector itself never validates them. Parameters persist as a flat
key=value text file.
"""

import os
import sys
from dataclasses import dataclass, fields


GAIN_DB_RANGE = (-60.0, 60.0)
FREQUENCY_RANGE = (0.0, 100000.0)
PERSISTENCE_MS_RANGE = (0.0, 5000.0)
SQUELCH_RANGE = (0.0, 1.0)


def _clamp(value: float, bounds) -> float:
    low, high = bounds
    return max(low, min(high, float(value)))


@dataclass
class TunableParameters:
    """Values adjusted by the user interface and read by the detector."""
    gain_db: float = 0.0
    bandpass_low_hz: float = 20.0
    bandpass_high_hz: float = 20000.0
    persistence_threshold_ms: float = 50.0
    squelch_enabled: bool = False
    squelch_threshold: float = 0.001
    averaging_enabled: bool = False

    def set_gain_db(self, value: float):
        self.gain_db = _clamp(value, GAIN_DB_RANGE)

    def set_bandpass_low(self, value: float):
        self.bandpass_low_hz = _clamp(value, FREQUENCY_RANGE)

    def set_bandpass_high(self, value: float):
        self.bandpass_high_hz = _clamp(value, FREQUENCY_RANGE)

    def set_persistence_threshold_ms(self, value: float):
        self.persistence_threshold_ms = _clamp(value, PERSISTENCE_MS_RANGE)

    def set_squelch_enabled(self, enabled: bool):
        self.squelch_enabled = bool(enabled)

    def set_squelch_threshold(self, value: float):
        self.squelch_threshold = _clamp(value, SQUELCH_RANGE)

    def set_averaging_enabled(self, enabled: bool):
        self.averaging_enabled = bool(enabled)

    def toggle_squelch(self):
        self.squelch_enabled = not self.squelch_enabled

    def toggle_averaging(self):
        self.averaging_enabled = not self.averaging_enabled


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    if lowered in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f"Not a boolean: {text!r}")


def load_parameters(path: str) -> TunableParameters:
    """
    Load parameters from a key=value file.

    Missing files give the defaults. Unknown keys and malformed lines are
    skipped with a warning.

    Args:
        path: Path to the parameter file

    Returns:
        Loaded parameters, clamped through the setters
    """
    params = TunableParameters()
    if not os.path.exists(path):
        return params

    setters = {
        'gain_db': (float, params.set_gain_db),
        'bandpass_low_hz': (float, params.set_bandpass_low),
        'bandpass_high_hz': (float, params.set_bandpass_high),
        'persistence_threshold_ms': (float, params.set_persistence_threshold_ms),
        'squelch_enabled': (_parse_bool, params.set_squelch_enabled),
        'squelch_threshold': (float, params.set_squelch_threshold),
        'averaging_enabled': (_parse_bool, params.set_averaging_enabled),
    }

    with open(path, 'r') as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            key, sep, value = line.partition('=')
            key = key.strip()
            if not sep or key not in setters:
                print(f"Warning: {path}:{line_no}: ignoring '{line}'", file=sys.stderr)
                continue

            convert, setter = setters[key]
            try:
                setter(convert(value.strip()))
            except ValueError as e:
                print(f"Warning: {path}:{line_no}: {e}", file=sys.stderr)

    return params


def save_parameters(params: TunableParameters, path: str):
    """
    Save parameters as key=value lines.

    Args:
        params: Parameters to save
        path: Destination file
    """
    with open(path, 'w') as f:
        for field in fields(params):
            value = getattr(params, field.name)
            if isinstance(value, bool):
                value = 'true' if value else 'false'
            f.write(f"{field.name}={value}\n")
