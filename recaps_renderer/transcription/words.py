"""Soniox sub-word tokens to caption-ready word timings.

WHY: Soniox uses BPE tokenization, so "fantastic" arrives as
[" fan", "tastic"], and punctuation arrives as its own token. The
caption chunker wants one WordTimestamp per spoken word, with
punctuation kept on the word it follows ("world," not "world" ",").

HOW: A leading space in token.text starts a new word; any other token
extends the current word's text and end time. Punctuation-only tokens
are appended to the current word's text without touching its timing,
and close the word: Soniox often omits the space after "?" or ".".

RULES:
- Translation tokens and blank tokens are skipped
- First real token always starts a word, leading space or not
- Punctuation before the first word is dropped, as are control tokens (<end>)
- Times are converted from integer ms to float seconds
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from recaps_renderer.core.ir import WordTimestamp
from recaps_renderer.transcription.models import SonioxToken

_PUNCTUATION_RE = re.compile(r"^[.,!?;:…—–\-\"')\]]+$")
_CONTROL_TOKEN_RE = re.compile(r"^<[a-z_]+>$")  # e.g. <end>


def tokens_to_word_timestamps(tokens: Sequence[SonioxToken]) -> List[WordTimestamp]:
    """Assemble Soniox tokens into ordered word timings."""
    words = []  # type: List[WordTimestamp]
    current_text = None  # type: Optional[str]
    current_start = 0
    current_end = 0
    closed = False  # trailing punctuation ends the word

    def _flush() -> None:
        nonlocal current_text
        if current_text:
            words.append(WordTimestamp(
                word=current_text,
                start_time=current_start / 1000.0,
                end_time=max(current_end, current_start) / 1000.0,
            ))
        current_text = None

    for token in tokens:
        if token.is_translation or not token.text.strip():
            continue

        stripped = token.text.strip()
        if _PUNCTUATION_RE.match(stripped):
            if current_text is not None:
                current_text += stripped
                closed = True
            continue
        if _CONTROL_TOKEN_RE.match(stripped):
            continue

        if token.text.startswith(" ") or current_text is None or closed:
            closed = False
            _flush()
            current_text = token.text.lstrip()
            current_start = token.start_ms
            current_end = token.end_ms
        else:
            current_text += token.text
            current_end = token.end_ms

    _flush()
    return words
