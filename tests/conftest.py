"""Shared test fixtures for the recaps_renderer test suite.

WHY: The chunker, orchestrator and API tests all need the same word
timings, the same throwaway media files and a way to "run FFmpeg"
without FFmpeg being installed.

HOW: Module-level sample data plus pytest fixtures. FakeRunner stands in
for run_process: it records every invocation, writes the output file the
way FFmpeg would, and returns a canned ProcessResult.

RULES:
- No test spawns FFmpeg or touches the network
- SCENARIO_WORDS is the six-word "hello world" stream used across modules
- Media fixtures live under tmp_path; nothing leaks between tests
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from recaps_renderer.config import CaptionSettings, RenderSettings
from recaps_renderer.core.ir import WordTimestamp
from recaps_renderer.render.compositor import ProcessResult


# ---------------------------------------------------------------------------
# Sample word timings
# ---------------------------------------------------------------------------

SCENARIO_WORDS = [
    ("HELLO", 0.0, 0.4),
    ("WORLD", 0.4, 0.9),
    ("THIS", 0.9, 1.1),
    ("IS", 1.1, 1.3),
    ("A", 1.3, 1.4),
    ("TEST", 1.4, 1.9),
]

SAMPLE_SCRIPT = (
    "The mitochondria is the powerhouse of the cell. In the nucleus, DNA "
    "is copied before every division, and that is absolutely insane when "
    "you think about how many cells divide right now in your body."
)

# Soniox transcript for "How are you doing today? I am fantastic, thank you."
SONIOX_TOKENS: List[Dict[str, Any]] = [
    {"text": "How",      "start_ms": 120,  "end_ms": 250,  "confidence": 0.97},
    {"text": " are",     "start_ms": 260,  "end_ms": 380,  "confidence": 0.95},
    {"text": " you",     "start_ms": 390,  "end_ms": 510,  "confidence": 0.96},
    {"text": " do",      "start_ms": 520,  "end_ms": 600,  "confidence": 0.93},
    {"text": "ing",      "start_ms": 600,  "end_ms": 720,  "confidence": 0.94},
    {"text": " to",      "start_ms": 730,  "end_ms": 790,  "confidence": 0.91},
    {"text": "day",      "start_ms": 790,  "end_ms": 920,  "confidence": 0.96},
    {"text": "?",        "start_ms": 920,  "end_ms": 940,  "confidence": 0.99},
    {"text": "I",        "start_ms": 1200, "end_ms": 1260, "confidence": 0.98},
    {"text": " am",      "start_ms": 1270, "end_ms": 1380, "confidence": 0.97},
    {"text": " fan",     "start_ms": 1390, "end_ms": 1520, "confidence": 0.90},
    {"text": "tastic",   "start_ms": 1520, "end_ms": 1780, "confidence": 0.93},
    {"text": ",",        "start_ms": 1780, "end_ms": 1800, "confidence": 0.98},
    {"text": " thank",   "start_ms": 1810, "end_ms": 1950, "confidence": 0.96},
    {"text": " you",     "start_ms": 1960, "end_ms": 2100, "confidence": 0.97},
    {"text": ".",        "start_ms": 2100, "end_ms": 2120, "confidence": 0.99},
]


def make_words(rows) -> List[WordTimestamp]:
    return [WordTimestamp(word, start, end) for word, start, end in rows]


@pytest.fixture
def scenario_words() -> List[WordTimestamp]:
    return make_words(SCENARIO_WORDS)


@pytest.fixture
def caption_settings() -> CaptionSettings:
    return CaptionSettings()


@pytest.fixture
def render_settings() -> RenderSettings:
    """Defaults with a generous cap, independent of the environment."""
    return RenderSettings(max_duration_s=60.0, timeout_s=30.0)


# ---------------------------------------------------------------------------
# Media files
# ---------------------------------------------------------------------------


@pytest.fixture
def media_files(tmp_path) -> Dict[str, Path]:
    """A fake background clip and voice-over on local disk."""
    media = tmp_path / "media"
    media.mkdir()
    background = media / "parkour.mp4"
    background.write_bytes(b"background-video-bytes")
    voice = media / "voice.mp3"
    voice.write_bytes(b"voice-audio-bytes")
    return {"background": background, "voice": voice}


# ---------------------------------------------------------------------------
# FFmpeg stand-in
# ---------------------------------------------------------------------------


class FakeRunner:
    """Drop-in for run_process that never spawns a process.

    Each call is recorded with the subtitle text FFmpeg would have read,
    since the work directory is gone by the time the test inspects it.
    """

    def __init__(self, exit_code: int = 0, stderr: str = "", stdout: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, args, cwd=None, cancel_event=None, timeout=None) -> ProcessResult:
        subtitles: Optional[str] = None
        if cwd is not None:
            srt_files = sorted(Path(cwd).glob("*.srt"))
            if srt_files:
                subtitles = srt_files[0].read_text(encoding="utf-8")
        self.calls.append({
            "args": list(args),
            "cwd": cwd,
            "timeout": timeout,
            "cancel_event": cancel_event,
            "subtitles": subtitles,
        })
        if self.exit_code == 0 and args and str(args[-1]).endswith(".mp4"):
            Path(args[-1]).write_bytes(b"rendered-mp4")
        return ProcessResult(exit_code=self.exit_code, stdout=self.stdout, stderr=self.stderr)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def runner_factory():
    """FakeRunner class, for tests that need a failing or custom runner."""
    return FakeRunner


@pytest.fixture
def soniox_tokens() -> List[Dict[str, Any]]:
    return [dict(token) for token in SONIOX_TOKENS]


@pytest.fixture
def sample_script() -> str:
    return SAMPLE_SCRIPT
