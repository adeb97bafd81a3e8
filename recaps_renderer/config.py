"""Configuration constants, immutable render settings, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Environment-level defaults (binaries, cache
location, API keys) are plain module constants; everything the caption
chunker and compositor consume is bundled in frozen dataclasses that
are passed in explicitly, so tests can override a timing threshold
without touching global state.

HOW: python-dotenv loads the .env file on import. Constants are read
with os.getenv. CaptionSettings, VideoSettings and RenderSettings are
frozen dataclasses; use ``dataclasses.replace`` to derive variants.

RULES:
- Algorithms never read module constants directly — only settings objects
- RenderSettings.from_env() is the single place env values become settings
- API key is loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Environment defaults
# ---------------------------------------------------------------------------

FFMPEG_BINARY = os.getenv("RECAPS_FFMPEG_BINARY", "ffmpeg")
FFPROBE_BINARY = os.getenv("RECAPS_FFPROBE_BINARY", "ffprobe")

CACHE_DIR = Path(
    os.getenv("RECAPS_CACHE_DIR", str(Path.home() / ".cache" / "recaps" / "backgrounds"))
)
CACHE_TTL_SECONDS = float(os.getenv("RECAPS_CACHE_TTL_SECONDS", str(24 * 60 * 60)))

RENDER_TIMEOUT_SECONDS = float(os.getenv("RECAPS_RENDER_TIMEOUT_SECONDS", "600"))
OUTPUT_DIR = Path(os.getenv("RECAPS_OUTPUT_DIR", "generated-videos"))

MAX_VIDEO_DURATION_SECONDS = float(os.getenv("MAX_VIDEO_DURATION_SECONDS", "60"))
"""Global cap on rendered video length; longer targets are hard-trimmed."""

EMOJI_OVERLAYS = os.getenv("RECAPS_EMOJI_OVERLAYS", "").strip().lower() in ("1", "true", "yes")
"""Draw the corner emoji decorations on rendered videos."""

SONIOX_BASE_URL = os.getenv("SONIOX_BASE_URL", "https://api.soniox.com/v1")
SONIOX_MODEL = os.getenv("SONIOX_MODEL", "stt-async-v4")
TRANSCRIPTION_LANGUAGE = os.getenv("RECAPS_TRANSCRIPTION_LANGUAGE", "en")

SUPPORTED_VOICE_FORMATS: set[str] = {".mp3", ".wav", ".m4a", ".aac", ".ogg"}
"""Voice-over extensions accepted by the CLI (lowercase, with dot)."""


def load_api_key() -> str:
    """Load the Soniox API key from the environment.

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("SONIOX_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "Soniox API key not configured. "
            "Add SONIOX_API_KEY to the .env file to enable transcription."
        )
    return key


def has_api_key() -> bool:
    """True when a Soniox API key is present in the environment."""
    return bool(os.getenv("SONIOX_API_KEY", "").strip())


# ---------------------------------------------------------------------------
# Immutable settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CaptionSettings:
    """Timing thresholds for the caption chunker.

    WHY: The estimated and precise chunking modes each need a duration
    band, an inter-caption gap, and the readability tweaks (lead time,
    extension factor). Keeping them together makes a render reproducible
    from its settings alone.

    RULES:
    - min_duration / max_duration: band for estimated-mode captions (seconds)
    - precise_min_duration / precise_max_duration: band when real word
      timestamps drive the captions
    - gap: preferred silence between consecutive captions
    - lead_time: estimated captions appear this much before their speech
    - pause_factor: share of the duration assumed to be actual speech
    - extension_factor: estimated captions linger this many times longer
      than their speech span before clamping
    - overlap_min_duration: floor re-applied after overlap clipping
    - grouping: "linguistic" (deterministic) or "weighted" (seeded random)
    """

    min_duration: float = 3.5
    max_duration: float = 8.0
    precise_min_duration: float = 0.8
    precise_max_duration: float = 3.0
    gap: float = 0.1
    lead_time: float = 0.3
    pause_factor: float = 0.85
    extension_factor: float = 2.5
    overlap_min_duration: float = 0.5
    grouping: str = "linguistic"
    seed: int | None = None
    placeholder_text: str = "NO TEXT"


@dataclass(frozen=True)
class TextOverlay:
    """A static drawtext decoration burned over every frame.

    x and y are FFmpeg drawtext expressions ("60", "w-100").
    """

    text: str
    x: str
    y: str
    font_size: int = 32
    alpha: float = 0.8


CORNER_EMOJIS: tuple[TextOverlay, ...] = (
    TextOverlay("\U0001F525", "60", "100"),
    TextOverlay("⚡", "w-100", "100"),
)
"""Fire and lightning in the top corners, the classic recap look."""


@dataclass(frozen=True)
class VideoSettings:
    """Output frame, subtitle style, audio mix, and encoder parameters.

    overlays are drawn after the subtitles, in order; none by default.
    """

    width: int = 1080
    height: int = 1920
    fps: int = 30
    font_family: str = "Arial Black"
    font_size: int = 32
    bold: bool = True
    outline: int = 3
    shadow: int = 2
    alignment: int = 2  # ASS numpad layout: 2 = bottom centre
    margin_v: int = 100
    primary_colour: str = "&Hffffff"
    outline_colour: str = "&H000000"
    voice_volume: float = 1.0
    background_volume: float = 0.2
    video_codec: str = "libx264"
    preset: str = "fast"
    crf: int = 23
    pixel_format: str = "yuv420p"
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    audio_sample_rate: int = 44100
    overlays: tuple[TextOverlay, ...] = ()


@dataclass(frozen=True)
class RenderSettings:
    """Everything a render job needs besides its inputs."""

    captions: CaptionSettings = field(default_factory=CaptionSettings)
    video: VideoSettings = field(default_factory=VideoSettings)
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    timeout_s: float | None = 600.0
    cache_ttl_s: float = 24 * 60 * 60
    max_duration_s: float = 60.0

    @classmethod
    def from_env(cls) -> RenderSettings:
        """Build settings from the environment-level defaults above."""
        return cls(
            ffmpeg_binary=FFMPEG_BINARY,
            ffprobe_binary=FFPROBE_BINARY,
            timeout_s=RENDER_TIMEOUT_SECONDS or None,
            cache_ttl_s=CACHE_TTL_SECONDS,
            max_duration_s=MAX_VIDEO_DURATION_SECONDS,
            video=VideoSettings(overlays=CORNER_EMOJIS if EMOJI_OVERLAYS else ()),
        )
