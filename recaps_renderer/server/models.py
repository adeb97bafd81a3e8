"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization and the generated OpenAPI docs.

HOW: Each endpoint has its own request and/or response model. Every
field carries a Field description for the /docs UI.

RULES:
- All models use Field(description=...)
- Word timings accept camelCase (startTime) like TTS alignment payloads
- Use Optional from typing in models (pydantic evaluates annotations)
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Shared models
# ---------------------------------------------------------------------------


class WordTimestampModel(BaseModel):
    """One word with its spoken start/end time in seconds."""

    model_config = ConfigDict(populate_by_name=True)

    word: str = Field(description="Word text; punctuation allowed.")
    start_time: float = Field(alias="startTime", description="Start time in seconds; negatives are clamped to 0.")
    end_time: float = Field(alias="endTime", description="End time in seconds; negatives are clamped to 0.")


class CaptionModel(BaseModel):
    """A timed caption as rendered on screen."""

    index: int = Field(description="1-based position in the caption list.")
    text: str = Field(description="Caption text (uppercased).")
    startTime: float = Field(description="Display start in seconds.")
    endTime: float = Field(description="Display end in seconds.")
    duration: float = Field(description="Display length in seconds.")


class CaptionStatsModel(BaseModel):
    """Timing summary for a caption list."""

    count: int = Field(description="Number of captions.")
    average_duration: float = Field(description="Mean display length in seconds.")
    total_caption_time: float = Field(description="Sum of display lengths in seconds.")
    coverage_pct: float = Field(description="Share of the video with a caption on screen.")
    gaps: int = Field(description="Adjacent pairs with a blank interval between them.")
    overlaps: int = Field(description="Adjacent pairs that overlap (always 0).")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RenderRequest(BaseModel):
    """Inputs for a new render job."""

    script: str = Field(description="Narration script, used for estimated captions.")
    background_video: str = Field(description="Local path or http(s) URL of the background loop.")
    voice_audio: str = Field(description="Local path or http(s) URL of the voice-over (mp3/wav).")
    duration_s: Optional[float] = Field(
        default=None,
        gt=0,
        description="Target length in seconds. Probed from the voice-over when omitted. Capped at the server maximum.",
    )
    word_timestamps: Optional[List[WordTimestampModel]] = Field(
        default=None,
        description="Per-word timings from TTS alignment; enables precise captions.",
    )
    transcribe: bool = Field(
        default=True,
        description="Transcribe the voice-over when no word timings are given.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "script": "The mitochondria is the powerhouse of the cell.",
                "background_video": "https://cdn.example.com/backgrounds/parkour.mp4",
                "voice_audio": "https://cdn.example.com/voice/topic-1.mp3",
                "duration_s": 42.5,
            }
        ]
    }}


class CaptionPreviewRequest(BaseModel):
    """Caption timing request; nothing is rendered."""

    script: str = Field(default="", description="Narration script.")
    duration_s: float = Field(gt=0, description="Video length in seconds.")
    word_timestamps: Optional[List[WordTimestampModel]] = Field(
        default=None,
        description="Per-word timings; precise mode is used when present.",
    )
    grouping: str = Field(
        default="linguistic",
        pattern="^(linguistic|weighted)$",
        description="Chunk sizing: 'linguistic' or seeded 'weighted' random.",
    )
    seed: Optional[int] = Field(default=None, description="Seed for weighted grouping.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class RenderCreatedResponse(BaseModel):
    id: str = Field(description="Job identifier for polling and download.")
    status: str = Field(description="Initial job status (always 'pending').")


class RenderJobResponse(BaseModel):
    """Render job status."""

    id: str = Field(description="Job identifier.")
    status: str = Field(description="Current job status.")
    created_at: float = Field(description="Creation timestamp (Unix epoch seconds).")
    error: Optional[str] = Field(default=None, description="Failure reason when status is 'failed'.")
    caption_mode: Optional[str] = Field(
        default=None,
        description="Caption source used: precise, transcribed or estimated.",
    )
    caption_count: Optional[int] = Field(default=None, description="Number of captions burned in.")
    duration_s: Optional[float] = Field(default=None, description="Rendered length in seconds.")
    video_url: Optional[str] = Field(default=None, description="Download path once completed.")


class CaptionPreviewResponse(BaseModel):
    mode: str = Field(description="'precise' or 'estimated'.")
    duration: float = Field(description="Video length in seconds.")
    captions: List[CaptionModel] = Field(description="Timed captions in display order.")
    stats: CaptionStatsModel = Field(description="Timing summary.")
    srt: str = Field(description="The captions as an SRT document.")


class ErrorResponse(BaseModel):
    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    ffmpeg: bool = Field(description="Whether the FFmpeg binary was found on PATH.")
