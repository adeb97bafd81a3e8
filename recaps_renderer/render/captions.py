"""Caption fallback chain: precise → transcribed → estimated.

WHY: Captions should follow the voice exactly whenever real word timings
exist, but a render must not fail just because the TTS provider gave no
alignment or the speech-to-text service is down. Each source of timings
is a strategy; they are tried in a fixed order.

HOW: A strategy is an object with a ``mode`` name and an async
``generate(job, voice_path, duration, settings)`` returning chunks. The
chain is an ordered list. run_caption_chain() walks it: a strategy that
raises a RenderError/ValueError or returns no chunks hands over to the
next one, and the first non-empty result wins.

RULES:
- Order: supplied word timestamps, transcription of the voice, script estimate
- An empty word_timestamps list counts as "not supplied"
- Estimated mode refuses a blank script (the placeholder is for previews,
  never for a published video)
- All strategies failing → CaptionGenerationError listing each attempt
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from recaps_renderer.config import CaptionSettings
from recaps_renderer.core.chunker import chunk_script, chunk_word_timestamps
from recaps_renderer.core.ir import CaptionChunk, RenderJob
from recaps_renderer.errors import CaptionGenerationError, RenderError
from recaps_renderer.transcription.transcriber import Transcriber

logger = logging.getLogger(__name__)


@dataclass
class CaptionOutcome:
    """Which strategy produced the captions, and the captions."""

    mode: str
    chunks: List[CaptionChunk]


class CaptionStrategy(Protocol):
    mode: str

    async def generate(
        self,
        job: RenderJob,
        voice_path: Path,
        duration: float,
        settings: CaptionSettings,
    ) -> List[CaptionChunk]:
        ...


class PreciseStrategy:
    """Chunks the job's own word timestamps (TTS alignment)."""

    mode = "precise"

    async def generate(self, job, voice_path, duration, settings):  # noqa: ANN001
        if not job.word_timestamps:
            return []
        return chunk_word_timestamps(job.word_timestamps, settings, total_duration=duration)


class TranscriptionStrategy:
    """Transcribes the voice-over, then chunks the recovered timings."""

    mode = "transcribed"

    def __init__(self, transcriber: Transcriber) -> None:
        self._transcriber = transcriber

    async def generate(self, job, voice_path, duration, settings):  # noqa: ANN001
        words = await self._transcriber.transcribe(voice_path, job.script)
        return chunk_word_timestamps(words, settings, total_duration=duration)


class EstimatedStrategy:
    """Spreads the script evenly across the duration."""

    mode = "estimated"

    async def generate(self, job, voice_path, duration, settings):  # noqa: ANN001
        if not job.script.strip():
            raise CaptionGenerationError("Script is empty; nothing to caption")
        return chunk_script(job.script, duration, settings)


def build_caption_chain(transcriber: Optional[Transcriber] = None) -> List[CaptionStrategy]:
    """Default strategy order; transcription is skipped without a transcriber."""
    chain = [PreciseStrategy()]  # type: List[CaptionStrategy]
    if transcriber is not None:
        chain.append(TranscriptionStrategy(transcriber))
    chain.append(EstimatedStrategy())
    return chain


async def run_caption_chain(
    chain: Sequence[CaptionStrategy],
    job: RenderJob,
    voice_path: Path,
    duration: float,
    settings: CaptionSettings,
) -> CaptionOutcome:
    """Return the first non-empty caption result from ``chain``.

    Raises:
        CaptionGenerationError: No strategy produced captions.
    """
    attempts = []
    for strategy in chain:
        try:
            chunks = await strategy.generate(job, voice_path, duration, settings)
        except (RenderError, ValueError) as exc:
            logger.warning("Caption mode '%s' failed: %s", strategy.mode, exc)
            attempts.append((strategy.mode, str(exc)))
            continue

        if not chunks:
            logger.info("Caption mode '%s' produced no captions, falling back", strategy.mode)
            attempts.append((strategy.mode, "no captions"))
            continue

        logger.info("Using %s captions (%d chunks) for job %s", strategy.mode, len(chunks), job.job_id)
        return CaptionOutcome(mode=strategy.mode, chunks=chunks)

    raise CaptionGenerationError("No caption strategy produced captions", attempts)
