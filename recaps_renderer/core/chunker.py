"""Caption chunking: word streams to non-overlapping on-screen captions.

WHY: Vertical "brainrot" videos show one to three words at a time in
huge type. Too many words and the viewer can't read them; split a
phrase like "in the nucleus" and it stops making sense. The chunker
groups words into readable units and gives each one a display window
that never collides with its neighbours.

HOW: Two modes share one grouping heuristic:
  Precise   — real per-word timestamps (TTS alignment or transcription);
              each chunk spans its first word's start to its last word's
              end, then one pass resolves overlaps and duration bounds.
  Estimated — script text and a target duration only; a uniform
              speaking rate is assumed, chunks are stretched for
              readability, shown slightly early, then overlaps clipped.

RULES:
- chunk[i].end_time <= chunk[i + 1].start_time, always
- end_time > start_time, always
- Concatenated chunk texts reproduce the input words (uppercased)
- Same input + same settings → same chunks (weighted mode: same seed)
- Precise mode on no words → []; estimated mode on no words → one
  placeholder chunk spanning the whole duration
"""

from __future__ import annotations

import logging
import math
import random
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from recaps_renderer.config import CaptionSettings
from recaps_renderer.core.ir import CaptionChunk, WordTimestamp
from recaps_renderer.core.phrases import (
    ARTICLES,
    AUXILIARIES,
    CONJUNCTIONS,
    IMPACT_WORDS,
    PREPOSITIONS,
    PRONOUNS,
    QUANTIFIERS,
    THREE_WORD_PHRASES,
    TWO_WORD_PHRASES,
)

logger = logging.getLogger(__name__)

ChunkSizer = Callable[[Sequence[str], int], int]
"""Returns how many words (1–3) the chunk starting at ``index`` takes."""

MAX_WORDS_PER_CHUNK = 3
LONG_WORD_CHARS = 8

_EDGE_PUNCT_RE = re.compile(r"^[^\w']+|[^\w']+$")
_NUMBER_RE = re.compile(r"^\d+(?:[.,:]\d+)*(?:st|nd|rd|th|s|k|m|x)?$")

_PAIRED_CLASSES = AUXILIARIES | PRONOUNS | CONJUNCTIONS | QUANTIFIERS


# =============================================================================
# Grouping
# =============================================================================

def normalize_word(word: str) -> str:
    """Lowercase a word and strip surrounding punctuation for table lookups."""
    return _EDGE_PUNCT_RE.sub("", word.lower())


def is_number(word: str) -> bool:
    return bool(_NUMBER_RE.match(word))


def _phrase_length(first: str, second: str, third: str) -> int:
    if "{} {} {}".format(first, second, third) in THREE_WORD_PHRASES:
        return 3
    if "{} {}".format(first, second) in TWO_WORD_PHRASES:
        return 2
    return 0


def choose_chunk_size(words: Sequence[str], index: int) -> int:
    """Pick how many words the caption starting at ``index`` should take.

    WHY: Natural phrases have to stay on screen together: split "in the
    nucleus" across two captions and neither half means anything.

    HOW: Checks the rules below in order and returns the first match.
    Idioms that open with a preposition ("in order to", "in front of")
    are looked up before the preposition rule, which would otherwise
    always claim them.

    RULES:
    - 1 or 2 words remain → take them all
    - Article first → 2 (article + noun)
    - Preposition + article → 3; preposition alone → 2
    - Auxiliary, pronoun, conjunction, quantifier or number first → 2
    - Known 3-word / 2-word phrase → its length
    - Long (> 8 chars) or impactful word → 1, alone for emphasis
    - Otherwise 2

    Args:
        words: The full word list (raw text, punctuation allowed).
        index: Position of the first word of the next chunk.

    Returns:
        Chunk size in words, 1–3, never more than the words remaining.
    """
    remaining = len(words) - index
    if remaining <= 2:
        return max(remaining, 0)

    first = normalize_word(words[index])
    second = normalize_word(words[index + 1])
    phrase = _phrase_length(first, second, normalize_word(words[index + 2]))

    if first in ARTICLES:
        return 2
    if first in PREPOSITIONS:
        if phrase:
            return phrase
        return 3 if second in ARTICLES else 2
    if first in _PAIRED_CLASSES or is_number(first):
        return 2
    if phrase:
        return phrase
    if len(first) > LONG_WORD_CHARS or first in IMPACT_WORDS:
        return 1
    return 2


class WeightedRandomSizer:
    """Alternative chunk sizing: random 1/2/3-word groups, favouring 2.

    WHY: Some creators prefer a jumpier caption rhythm. Randomness is
    seeded so a render stays reproducible when the seed is recorded.

    RULES:
    - Weights: 20% one word, 50% two words, 30% three words
    - 1 or 2 words remaining → take them all
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)

    def __call__(self, words: Sequence[str], index: int) -> int:
        remaining = len(words) - index
        if remaining <= 2:
            return max(remaining, 0)
        roll = self._rng.random()
        if roll < 0.2:
            size = 1
        elif roll < 0.7:
            size = 2
        else:
            size = 3
        return min(size, remaining)


def make_sizer(settings: CaptionSettings) -> ChunkSizer:
    """Return the chunk sizer selected by ``settings.grouping``."""
    if settings.grouping == "linguistic":
        return choose_chunk_size
    if settings.grouping == "weighted":
        return WeightedRandomSizer(settings.seed)
    raise ValueError(
        "Unknown caption grouping '{}'. Available: linguistic, weighted".format(
            settings.grouping
        )
    )


def group_words(
    words: Sequence[str],
    sizer: Optional[ChunkSizer] = None,
) -> List[Tuple[int, int]]:
    """Split a word list into consecutive (start_index, size) groups.

    RULES:
    - Every word belongs to exactly one group, in order
    - Sizes are clamped to 1..3 whatever the sizer returns
    """
    sizer = sizer or choose_chunk_size
    groups = []  # type: List[Tuple[int, int]]
    index = 0
    while index < len(words):
        size = sizer(words, index)
        size = max(1, min(size, MAX_WORDS_PER_CHUNK, len(words) - index))
        groups.append((index, size))
        index += size
    return groups


# =============================================================================
# Precise mode
# =============================================================================

def chunk_word_timestamps(
    words: Sequence[WordTimestamp],
    settings: Optional[CaptionSettings] = None,
    total_duration: Optional[float] = None,
    sizer: Optional[ChunkSizer] = None,
) -> List[CaptionChunk]:
    """Build captions from real per-word timestamps.

    WHY: When the TTS provider or a transcription service tells us when
    each word is spoken, captions can follow the voice exactly instead
    of guessing.

    HOW: Group the words with the shared heuristic, take each group's
    first start and last end, merge any chunk its successor does not
    start after, clip to the video length, then resolve overlaps and
    the precise duration band in one pass. A final pass trims whatever
    still overlaps.

    RULES:
    - Blank-only or empty input → []
    - Text is the verbatim words joined by spaces, uppercased
    - Times are clamped to >= 0 (TTS alignment can start slightly early)
    - Chunks starting at or after total_duration are dropped
    - Non-overlap wins over the minimum duration

    Args:
        words: Ordered word timings.
        settings: Caption timing thresholds (defaults if omitted).
        total_duration: Video length; all times are clamped to it.
        sizer: Override for the grouping heuristic.

    Returns:
        Ordered, non-overlapping caption chunks.
    """
    settings = settings or CaptionSettings()
    timed = [w for w in words if w.word.strip()]
    if not timed:
        return []

    texts = [w.word.strip() for w in timed]
    chunks = []  # type: List[CaptionChunk]
    for start, size in group_words(texts, sizer or make_sizer(settings)):
        group = timed[start:start + size]
        chunks.append(CaptionChunk(
            text=" ".join(texts[start:start + size]).upper(),
            start_time=max(0.0, group[0].start_time),
            end_time=max(0.0, max(w.end_time for w in group)),
        ))

    chunks = _merge_simultaneous(chunks)
    if total_duration is not None:
        chunks = _clip_to_duration(chunks, total_duration)

    for i, chunk in enumerate(chunks):
        if i + 1 < len(chunks):
            limit = _end_limit(chunk, chunks[i + 1], settings.gap)
        else:
            limit = total_duration if total_duration is not None else math.inf

        end = min(chunk.end_time, limit)
        if end - chunk.start_time < settings.precise_min_duration:
            end = min(chunk.start_time + settings.precise_min_duration, limit)
        if end - chunk.start_time > settings.precise_max_duration:
            end = chunk.start_time + settings.precise_max_duration
        chunk.end_time = end

    _trim_overlaps(chunks, settings.gap)
    _log_chunks("precise", chunks)
    return chunks


def _merge_simultaneous(chunks: List[CaptionChunk]) -> List[CaptionChunk]:
    """Fold a chunk into its successor when the successor starts no later."""
    merged = []  # type: List[CaptionChunk]
    for chunk in reversed(chunks):
        if merged and merged[-1].start_time <= chunk.start_time:
            following = merged[-1]
            merged[-1] = CaptionChunk(
                text="{} {}".format(chunk.text, following.text),
                start_time=min(chunk.start_time, following.start_time),
                end_time=max(chunk.end_time, following.end_time),
            )
        else:
            merged.append(chunk)
    merged.reverse()
    return merged


def _clip_to_duration(chunks: List[CaptionChunk], total_duration: float) -> List[CaptionChunk]:
    kept = []  # type: List[CaptionChunk]
    for chunk in chunks:
        if chunk.start_time >= total_duration:
            logger.debug(
                "Dropping %d caption(s) starting after the %.2fs cut",
                len(chunks) - len(kept), total_duration,
            )
            break
        chunk.end_time = min(chunk.end_time, total_duration)
        kept.append(chunk)
    return kept


def _end_limit(chunk: CaptionChunk, following: CaptionChunk, gap: float) -> float:
    """Latest end time for ``chunk``: the gap before ``following`` if it fits."""
    limit = following.start_time - gap
    if limit <= chunk.start_time:
        return following.start_time
    return limit


def _trim_overlaps(chunks: List[CaptionChunk], gap: float) -> None:
    for current, following in zip(chunks, chunks[1:]):
        limit = _end_limit(current, following, gap)
        if current.end_time > limit:
            current.end_time = limit


# =============================================================================
# Estimated mode
# =============================================================================

def chunk_script(
    script: str,
    duration: float,
    settings: Optional[CaptionSettings] = None,
    sizer: Optional[ChunkSizer] = None,
) -> List[CaptionChunk]:
    """Build captions from script text and a duration, without timings.

    WHY: Without word timestamps the best we can do is assume an even
    speaking rate. Captions are stretched beyond their estimated speech
    span so viewers have time to read them, and shown slightly early
    so they feel in sync rather than late.

    HOW: seconds_per_word = duration * pause_factor / word_count. Each
    chunk's display length is its speech span times extension_factor,
    clamped to [min_duration, max_duration]. Its start is its speech
    position minus lead_time (the lead never exceeds half of the
    previous chunk's span, so starts strictly increase). A single pass
    then clips overlaps and re-applies a reduced minimum.

    RULES:
    - Empty script → [CaptionChunk(placeholder_text, 0, duration)]
    - duration must be > 0 (ValueError otherwise)
    - All times within [0, duration]

    Args:
        script: Narration text; whitespace is normalised.
        duration: Total video/voice duration in seconds.
        settings: Caption timing thresholds (defaults if omitted).
        sizer: Override for the grouping heuristic.

    Returns:
        Ordered, non-overlapping caption chunks.
    """
    settings = settings or CaptionSettings()
    if duration <= 0:
        raise ValueError("Caption duration must be positive, got {}".format(duration))

    words = script.split()
    if not words:
        return [CaptionChunk(text=settings.placeholder_text, start_time=0.0, end_time=float(duration))]

    seconds_per_word = duration * settings.pause_factor / len(words)
    logger.debug(
        "Caption timing: %d words, %.2fs total, %.2fs per word",
        len(words), duration, seconds_per_word,
    )

    chunks = []  # type: List[CaptionChunk]
    position = 0.0
    previous_position = None  # type: Optional[float]
    for start, size in group_words(words, sizer or make_sizer(settings)):
        speech_span = size * seconds_per_word
        display = speech_span * settings.extension_factor
        display = max(settings.min_duration, min(settings.max_duration, display))

        lead = settings.lead_time
        if previous_position is not None:
            lead = min(lead, (position - previous_position) / 2)
        start_time = max(0.0, position - lead)

        chunks.append(CaptionChunk(
            text=" ".join(words[start:start + size]).upper(),
            start_time=start_time,
            end_time=min(float(duration), start_time + display),
        ))
        previous_position = position
        position += speech_span

    for current, following in zip(chunks, chunks[1:]):
        limit = _end_limit(current, following, settings.gap)
        if current.end_time > limit:
            current.end_time = limit
        if current.duration < settings.overlap_min_duration:
            current.end_time = min(
                current.start_time + settings.overlap_min_duration,
                following.start_time,
            )

    _log_chunks("estimated", chunks)
    return chunks


# =============================================================================
# Dispatch and diagnostics
# =============================================================================

def generate_captions(
    script: str,
    duration: float,
    settings: Optional[CaptionSettings] = None,
    word_timestamps: Optional[Sequence[WordTimestamp]] = None,
) -> Tuple[str, List[CaptionChunk]]:
    """Precise captions when timings are usable, estimated otherwise.

    Returns:
        (mode, chunks) where mode is "precise" or "estimated".
    """
    if word_timestamps:
        chunks = chunk_word_timestamps(word_timestamps, settings, total_duration=duration)
        if chunks:
            return "precise", chunks
    return "estimated", chunk_script(script, duration, settings)


def find_overlaps(chunks: Sequence[CaptionChunk]) -> List[Tuple[int, int]]:
    """Index pairs of adjacent chunks whose display windows overlap."""
    return [
        (i, i + 1)
        for i, (current, following) in enumerate(zip(chunks, chunks[1:]))
        if current.end_time > following.start_time
    ]


def caption_stats(chunks: Sequence[CaptionChunk], duration: float) -> Dict[str, Any]:
    """Timing summary: count, average and total display time, coverage, gaps, overlaps."""
    total = sum(c.duration for c in chunks)
    gaps = sum(
        1 for current, following in zip(chunks, chunks[1:])
        if current.end_time < following.start_time
    )
    return {
        "count": len(chunks),
        "average_duration": total / len(chunks) if chunks else 0.0,
        "total_caption_time": total,
        "coverage_pct": (total / duration) * 100 if duration > 0 else 0.0,
        "gaps": gaps,
        "overlaps": len(find_overlaps(chunks)),
    }


def _log_chunks(mode: str, chunks: Sequence[CaptionChunk]) -> None:
    logger.info("Generated %d caption chunk(s) in %s mode", len(chunks), mode)
    for index, chunk in enumerate(chunks, 1):
        logger.debug(
            "  %d. [%.2fs - %.2fs] (%.2fs) %r",
            index, chunk.start_time, chunk.end_time, chunk.duration, chunk.text,
        )
