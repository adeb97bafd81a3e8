"""Intermediate representation dataclasses for caption timing and render jobs.

WHY: Word timings arrive from several collaborators (TTS alignment,
speech-to-text, or nowhere at all), and the chunker, serializer and
compositor each need the same handful of shapes. A single, typed IR
decouples where timings came from and what is done with them.

HOW: Five types form the model:
  WordTimestamp — one spoken word with start/end seconds
  CaptionChunk  — 1–3 words shown together on screen
  RenderJob     — the inputs of one render
  RenderResult  — what a successful render hands back
  RenderState   — the job lifecycle

RULES:
- All times are float seconds
- WordTimestamp is immutable and validates start <= end
- CaptionChunk text is uppercased by the chunker, never here
- RenderJob owns the temp files created on its behalf (see orchestrator)
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class WordTimestamp:
    """A single spoken word with its timing.

    RULES:
    - word: verbatim text, may include punctuation ("world,")
    - start_time <= end_time; negative values from alignment jitter are
      accepted here and clamped to 0 by the chunker
    """

    word: str
    start_time: float
    end_time: float

    def __post_init__(self) -> None:
        if self.end_time < self.start_time:
            raise ValueError(
                "Invalid word timing for {!r}: {} -> {}".format(
                    self.word, self.start_time, self.end_time
                )
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WordTimestamp:
        """Parse a word timing dict from a TTS or transcription payload.

        WHY: ElevenLabs-style alignment uses camelCase (startTime), our own
        JSON uses snake_case, and many STT dumps use plain start/end.

        RULES:
        - text key: "word" or "text"
        - start key: "startTime", "start_time" or "start"
        - end key: "endTime", "end_time" or "end"
        """
        text = data.get("word", data.get("text", ""))
        start = data.get("startTime", data.get("start_time", data.get("start", 0.0)))
        end = data.get("endTime", data.get("end_time", data.get("end", start)))
        return cls(word=str(text), start_time=float(start), end_time=float(end))

    def to_dict(self) -> dict[str, Any]:
        return {"word": self.word, "startTime": self.start_time, "endTime": self.end_time}


@dataclass
class CaptionChunk:
    """A short on-screen caption with its display window."""

    text: str
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }


class RenderState(str, enum.Enum):
    """Lifecycle of a single render job.

    RULES:
    - created → resolving_media → generating_captions → compositing
    - succeeded and failed are terminal
    - No retries at this layer
    """

    CREATED = "created"
    RESOLVING_MEDIA = "resolving_media"
    GENERATING_CAPTIONS = "generating_captions"
    COMPOSITING = "compositing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RenderJob:
    """Inputs for one render.

    RULES:
    - background_video / voice_audio: local path or http(s) URL
    - target_duration_s: seconds, hard-capped by RenderSettings.max_duration_s
    - word_timestamps: optional precise timings; an empty list counts as absent
    - job_id: unique per job, used in every temp filename
    """

    script: str
    background_video: str
    voice_audio: str
    target_duration_s: float
    output_path: Path
    word_timestamps: list[WordTimestamp] | None = None
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        self.output_path = Path(self.output_path)


@dataclass
class RenderResult:
    """Successful render outcome."""

    job_id: str
    output_path: Path
    caption_mode: str
    caption_count: int
    duration_s: float
