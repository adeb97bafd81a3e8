"""Soniox async speech-to-text, reduced to what caption timing needs.

WHY: A voice-over without alignment data (a recorded narration, a TTS
provider that returns audio only) can still get precise captions if we
transcribe it and read back per-word timestamps.

HOW: SonioxClient owns one httpx.AsyncClient for the lifetime of an
``async with`` block. Every call goes through _request(), which checks
the status code and decodes the JSON body. A transcription is one pass
over: upload_file → create_transcription → poll_until_complete →
fetch_transcript, with cleanup() in the caller's finally.

RULES:
- Outside ``async with`` every call raises RuntimeError
- Poll interval grows 1.5x per round, from 2s up to 15s
- Give up after 10 minutes; recap narrations are well under that
- The script rides along as recognition context unless it exceeds
  the provider's context size
- cleanup() logs failures and never raises
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

import httpx

from recaps_renderer.config import SONIOX_BASE_URL, SONIOX_MODEL, load_api_key
from recaps_renderer.transcription.models import (
    SonioxToken,
    TranscriptResponse,
    TranscriptionStatus,
)

logger = logging.getLogger(__name__)

_FIRST_POLL_S = 2.0
_POLL_GROWTH = 1.5
_LONGEST_POLL_S = 15.0
_GIVE_UP_AFTER_S = 600.0

_MAX_CONTEXT_CHARS = 10_000


class SonioxAPIError(Exception):
    """Non-success HTTP status from the Soniox API."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__("Soniox returned HTTP {}: {}".format(status_code, body))


class SonioxJobError(Exception):
    """The transcription job itself finished with status "error"."""


class TranscriptionTimeoutError(TimeoutError):
    """The job did not complete within the polling deadline."""


class SonioxClient:
    """Async Soniox client scoped to one ``async with`` block.

    Args:
        api_key: Defaults to SONIOX_API_KEY via load_api_key().
        poll_interval_s: First wait between status checks.
        poll_timeout_s: Total polling deadline.
        transport: Injected by tests (httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        poll_interval_s: float = _FIRST_POLL_S,
        poll_timeout_s: float = _GIVE_UP_AFTER_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self._base_url = (base_url or SONIOX_BASE_URL).rstrip("/")
        self._model = model or SONIOX_MODEL
        self._poll_interval_s = poll_interval_s
        self._poll_timeout_s = poll_timeout_s
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> SonioxClient:
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": "Bearer {}".format(self._api_key)},
            timeout=httpx.Timeout(120.0, connect=15.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        if self._http is None:
            raise RuntimeError("SonioxClient is only usable inside 'async with'")
        resp = await self._http.request(method, path, **kwargs)
        if resp.status_code not in (200, 201):
            raise SonioxAPIError(resp.status_code, resp.text)
        return resp.json()

    async def upload_file(self, file_path: Path) -> str:
        """Upload the voice-over; returns the Soniox file id."""
        file_path = Path(file_path)
        content = file_path.read_bytes()
        logger.info("Uploading %s (%d bytes) to Soniox", file_path.name, len(content))
        data = await self._request("POST", "/files", files={"file": (file_path.name, content)})
        return data["id"]

    async def create_transcription(
        self,
        file_id: str,
        language_hints: list[str] | None = None,
        script_text: str | None = None,
    ) -> str:
        """Start an async transcription job; returns its id."""
        body: dict[str, Any] = {"model": self._model, "file_id": file_id}
        if language_hints:
            body["language_hints"] = language_hints
        if script_text and len(script_text) > _MAX_CONTEXT_CHARS:
            logger.warning(
                "Script has %d chars, over the %d char context limit; sending no context",
                len(script_text), _MAX_CONTEXT_CHARS,
            )
        elif script_text:
            body["context"] = {"text": script_text}

        data = await self._request("POST", "/transcriptions", json=body)
        return data["id"]

    async def poll_until_complete(self, transcription_id: str) -> TranscriptionStatus:
        """Wait for the job to leave the queued/processing states.

        Raises:
            SonioxJobError: Job finished with status "error".
            TranscriptionTimeoutError: Deadline passed first.
        """
        deadline = time.monotonic() + self._poll_timeout_s
        delay = self._poll_interval_s

        while True:
            status = TranscriptionStatus.from_dict(
                await self._request("GET", "/transcriptions/{}".format(transcription_id))
            )
            logger.debug("Soniox job %s is %s", transcription_id, status.status)
            if status.status == "completed":
                return status
            if status.status == "error":
                raise SonioxJobError("Soniox job {} failed: {}".format(
                    transcription_id, status.error_message
                ))
            if time.monotonic() + delay > deadline:
                raise TranscriptionTimeoutError(
                    "Soniox job {} still {} after {:.0f}s".format(
                        transcription_id, status.status, self._poll_timeout_s
                    )
                )
            await asyncio.sleep(delay)
            delay = min(delay * _POLL_GROWTH, _LONGEST_POLL_S)

    async def fetch_transcript(self, transcription_id: str) -> list[SonioxToken]:
        """Token list of a completed job."""
        data = await self._request("GET", "/transcriptions/{}/transcript".format(transcription_id))
        return TranscriptResponse.from_dict(data).tokens

    async def cleanup(self, transcription_id: str | None, file_id: str) -> None:
        """Remove the job and the uploaded audio from Soniox."""
        if self._http is None:
            return
        targets = ["/files/{}".format(file_id)]
        if transcription_id:
            targets.insert(0, "/transcriptions/{}".format(transcription_id))

        for path in targets:
            try:
                resp = await self._http.delete(path)
            except httpx.HTTPError as exc:
                logger.warning("Could not delete Soniox resource %s: %s", path, exc)
                continue
            if resp.status_code >= 400:
                logger.warning("Could not delete Soniox resource %s: HTTP %d", path, resp.status_code)
