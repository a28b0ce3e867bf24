#!/usr/bin/env python3
"""
Adaptive Morse Code Decoder

This module classifies tone durations reported by the sine track manager as
dots or dashes. The dot length is estimated online with exponential smoothing
so the decoder follows changes in sending speed. Silences between tones are
used to group symbols into characters and words.
"""

import sys
from typing import List, Optional


# International Morse Code lookup table
MORSE_CODE_DICT = {
    '.-': 'A', '-...': 'B', '-.-.': 'C', '-..': 'D', '.': 'E',
    '..-.': 'F', '--.': 'G', '....': 'H', '..': 'I', '.---': 'J',
    '-.-': 'K', '.-..': 'L', '--': 'M', '-.': 'N', '---': 'O',
    '.--.': 'P', '--.-': 'Q', '.-.': 'R', '...': 'S', '-': 'T',
    '..-': 'U', '...-': 'V', '.--': 'W', '-..-': 'X', '-.--': 'Y',
    '--..': 'Z',
    '-----': '0', '.----': '1', '..---': '2', '...--': '3', '....-': '4',
    '.....': '5', '-....': '6', '--...': '7', '---..': '8', '----.': '9',
    '.-.-.-': '.', '--..--': ',', '..--..': '?', '.----.': "'", '-.-.--': '!',
    '-..-.': '/', '-.--.': '(', '-.--.-': ')', '.-...': '&', '---...': ':',
    '-.-.-.': ';', '-...-': '=', '.-.-.': '+', '-....-': '-', '..--.-': '_',
    '.-..-.': '"', '...-..-': '$', '.--.-.': '@', '...---...': 'SOS'
}

DOT = '.'
DASH = '-'

INITIAL_DOT_MS = 100.0       # 12 WPM
DOT_EST_ALPHA = 0.2
DASH_DOT_RATIO = 2.0         # Durations below this many dots are dots
SYMBOL_BUFFER_SIZE = 256
TEXT_BUFFER_SIZE = 256


def decode_pattern(pattern: str) -> str:
    """
    Decode one character pattern.

    Args:
        pattern: Morse pattern (string of dots and dashes)

    Returns:
        Decoded character, or the pattern in brackets if unknown
    """
    if pattern in MORSE_CODE_DICT:
        return MORSE_CODE_DICT[pattern]
    return "[" + pattern + "]"


class MorseDecoder:
    """
    Streaming dot/dash classifier with an adaptive dot length.

    The symbol buffer and the text buffer are bounded; once either is full
    further output is dropped.
    """

    def __init__(
        self,
        initial_dot_ms: float = INITIAL_DOT_MS,
        alpha: float = DOT_EST_ALPHA,
        symbol_capacity: int = SYMBOL_BUFFER_SIZE,
        text_capacity: int = TEXT_BUFFER_SIZE,
        char_gap_dots: float = 2.5,
        word_gap_dots: float = 6.0,
        debug: bool = False
    ):
        """
        Initialize the decoder.

        Args:
            initial_dot_ms: Starting dot length estimate in milliseconds
            alpha: Weight of each new observation in the dot estimate
            symbol_capacity: Maximum number of buffered symbols
            text_capacity: Maximum number of decoded characters kept
            char_gap_dots: Silence, in dots, that ends a character
            word_gap_dots: Silence, in dots, that ends a word
            debug: Enable debug output to stderr
        """
        self.initial_dot_ms = initial_dot_ms
        self.alpha = alpha
        self.symbol_capacity = symbol_capacity
        self.text_capacity = text_capacity
        self.char_gap_dots = char_gap_dots
        self.word_gap_dots = word_gap_dots
        self.debug = debug

        self.estimated_dot_ms = initial_dot_ms
        self.symbols: List[str] = []
        self._text: List[str] = []
        self._pattern = ""
        self._last_tone_end: Optional[float] = None

    @property
    def wpm(self) -> float:
        """Sending speed implied by the dot estimate (PARIS timing)."""
        return 1200.0 / self.estimated_dot_ms if self.estimated_dot_ms > 0 else 0.0

    @property
    def text(self) -> str:
        """Decoded text including the character still being received."""
        pending = decode_pattern(self._pattern) if self._pattern else ""
        return "".join(self._text) + pending

    def on_activated(self, started_at: float):
        """
        Note the start of a tone and close characters or words on long gaps.

        Args:
            started_at: Timestamp in milliseconds when the tone was first heard
        """
        if self._last_tone_end is None:
            return

        gap = started_at - self._last_tone_end
        if gap >= self.char_gap_dots * self.estimated_dot_ms:
            self.flush()
            if gap >= self.word_gap_dots * self.estimated_dot_ms and self._text \
                    and self._text[-1] != ' ':
                self._append_text(' ')

    def on_deactivated(self, tone_duration: float, ended_at: Optional[float] = None) -> str:
        """
        Classify a finished tone and append its symbol.

        Args:
            tone_duration: Confirmed tone duration in milliseconds
            ended_at: Timestamp in milliseconds when the tone was last heard

        Returns:
            The symbol the tone was classified as
        """
        if tone_duration < DASH_DOT_RATIO * self.estimated_dot_ms:
            symbol = DOT
            observation = tone_duration
        else:
            symbol = DASH
            # A dash is nominally three dot units
            observation = tone_duration / 3.0

        self.estimated_dot_ms = (1.0 - self.alpha) * self.estimated_dot_ms + self.alpha * observation

        if len(self.symbols) < self.symbol_capacity:
            self.symbols.append(symbol)
        self._pattern += symbol

        if ended_at is not None:
            self._last_tone_end = ended_at

        if self.debug:
            print(f"{symbol} {tone_duration:.1f}ms -> dot={self.estimated_dot_ms:.1f}ms",
                  file=sys.stderr, flush=True)

        return symbol

    def flush(self):
        """Decode the character currently being received, if any."""
        if self._pattern:
            char = decode_pattern(self._pattern)
            if self.debug and char.startswith('['):
                print(f"Unknown symbol: {self._pattern}", file=sys.stderr, flush=True)
            for c in char:
                self._append_text(c)
            self._pattern = ""

    def reset(self):
        self.estimated_dot_ms = self.initial_dot_ms
        self.symbols = []
        self._text = []
        self._pattern = ""
        self._last_tone_end = None

    def _append_text(self, char: str):
        if len(self._text) < self.text_capacity:
            self._text.append(char)
