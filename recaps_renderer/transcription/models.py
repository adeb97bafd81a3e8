"""Soniox API response dataclasses.

WHY: The transcription fallback only needs three Soniox objects: the
token, the job status, and the transcript. Typed dataclasses keep field
mismatches out of the word-timing conversion.

HOW: Each dataclass maps 1:1 to a Soniox JSON object with a from_dict
factory. Fields the renderer never reads (speaker, language) are not
modelled.

RULES:
- start_ms/end_ms are None only for translation tokens
- TranscriptionStatus.status is one of queued, processing, completed, error
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SonioxToken:
    """A single BPE token from the Soniox transcript.

    RULES:
    - text keeps its leading space; a leading space starts a new word
    - start_ms/end_ms: integer milliseconds
    """

    text: str
    start_ms: int | None
    end_ms: int | None
    confidence: float = 1.0
    translation_status: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> SonioxToken:
        return cls(
            text=data["text"],
            start_ms=data.get("start_ms"),
            end_ms=data.get("end_ms"),
            confidence=data.get("confidence", 1.0),
            translation_status=data.get("translation_status"),
        )

    @property
    def is_translation(self) -> bool:
        return self.translation_status == "translation" or self.start_ms is None


@dataclass
class TranscriptionStatus:
    """Status response from polling GET /v1/transcriptions/{id}."""

    id: str
    status: str
    error_message: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> TranscriptionStatus:
        return cls(
            id=data["id"],
            status=data["status"],
            error_message=data.get("error_message"),
        )


@dataclass
class TranscriptResponse:
    """Full transcript from GET /v1/transcriptions/{id}/transcript."""

    id: str
    text: str
    tokens: list[SonioxToken]

    @classmethod
    def from_dict(cls, data: dict) -> TranscriptResponse:
        return cls(
            id=data["id"],
            text=data.get("text", ""),
            tokens=[SonioxToken.from_dict(t) for t in data.get("tokens", [])],
        )
