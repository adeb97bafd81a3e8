"""Speech-to-text collaborator used by the caption fallback chain.

WHY: The render pipeline only cares that *something* can turn a voice
file into word timings. Keeping that behind a one-method protocol lets
the orchestrator run without any provider configured and lets tests
substitute a fake.

RULES:
- transcribe() returns a non-empty word list or raises TranscriptionError
- Every provider failure (HTTP, job error, timeout, bad payload) is
  wrapped in TranscriptionError so the fallback chain can recover
- default_transcriber() returns None when no API key is configured
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol

import httpx

from recaps_renderer.config import TRANSCRIPTION_LANGUAGE, has_api_key
from recaps_renderer.core.ir import WordTimestamp
from recaps_renderer.errors import TranscriptionError
from recaps_renderer.transcription.client import (
    SonioxAPIError,
    SonioxClient,
    SonioxJobError,
    TranscriptionTimeoutError,
)
from recaps_renderer.transcription.words import tokens_to_word_timestamps

logger = logging.getLogger(__name__)

_WRAPPED_ERRORS = (
    SonioxAPIError,
    SonioxJobError,
    TranscriptionTimeoutError,
    httpx.HTTPError,
    OSError,
    KeyError,
    ValueError,
)


class Transcriber(Protocol):
    """Anything that can produce word timings for an audio file."""

    async def transcribe(self, audio_path: Path, script: Optional[str] = None) -> List[WordTimestamp]:
        ...


class SonioxTranscriber:
    """Transcriber backed by the Soniox async API.

    Args:
        language: ISO 639-1 hint sent with every job.
        client_factory: Builds the SonioxClient; tests pass a factory
            that injects an httpx.MockTransport.
    """

    def __init__(
        self,
        language: str = TRANSCRIPTION_LANGUAGE,
        client_factory: Callable[[], SonioxClient] = SonioxClient,
    ) -> None:
        self.language = language
        self._client_factory = client_factory

    async def transcribe(self, audio_path: Path, script: Optional[str] = None) -> List[WordTimestamp]:
        try:
            async with self._client_factory() as client:
                file_id = await client.upload_file(audio_path)
                transcription_id = None
                try:
                    transcription_id = await client.create_transcription(
                        file_id,
                        language_hints=[self.language] if self.language else None,
                        script_text=script,
                    )
                    await client.poll_until_complete(transcription_id)
                    tokens = await client.fetch_transcript(transcription_id)
                finally:
                    await client.cleanup(transcription_id, file_id)
        except _WRAPPED_ERRORS as exc:
            raise TranscriptionError("Soniox transcription failed: {}".format(exc)) from exc

        words = tokens_to_word_timestamps(tokens)
        if not words:
            raise TranscriptionError("Soniox returned no words for {}".format(Path(audio_path).name))
        logger.info("Transcribed %d words from %s", len(words), Path(audio_path).name)
        return words


def default_transcriber() -> Optional[SonioxTranscriber]:
    """Soniox transcriber when SONIOX_API_KEY is set, else None."""
    if not has_api_key():
        logger.debug("SONIOX_API_KEY not set; transcription fallback disabled")
        return None
    return SonioxTranscriber()
