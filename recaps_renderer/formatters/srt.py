"""SubRip (SRT) serialization of caption chunks.

WHY: FFmpeg's subtitles filter burns in a subtitle file, and SRT is the
simplest format it reads. Timing is decided entirely by the chunker;
this module only formats and parses.

HOW: Each chunk becomes an index line, a ``start --> end`` line and the
caption text, separated by a blank line. The parser reverses that so
round trips and ``captions --from-srt`` inspection work.

RULES:
- Indices start at 1
- Times are HH:MM:SS,mmm, zero-padded, milliseconds truncated (never rounded)
- Files are written as UTF-8
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Sequence

from recaps_renderer.core.ir import CaptionChunk
from recaps_renderer.formatters.base import BaseFormatter, FormatterOutput

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"(\d+):(\d{2}):(\d{2})[,.](\d{3})")
_TIMING_LINE_RE = re.compile(
    r"^\s*(\d+:\d{2}:\d{2}[,.]\d{3})\s*-->\s*(\d+:\d{2}:\d{2}[,.]\d{3})"
)

# Absorbs float noise such as 2.3 * 1000 == 2299.9999999999995.
_MS_EPSILON = 1e-6


def format_srt_time(seconds: float) -> str:
    """Convert seconds to an SRT timestamp: HH:MM:SS,mmm"""
    total_ms = int(max(seconds, 0.0) * 1000 + _MS_EPSILON)
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return "{:02d}:{:02d}:{:02d},{:03d}".format(hours, minutes, secs, millis)


def parse_srt_time(value: str) -> float:
    """Convert an SRT timestamp back to float seconds."""
    match = _TIME_RE.fullmatch(value.strip())
    if not match:
        raise ValueError("Invalid SRT timestamp: {!r}".format(value))
    hours, minutes, secs, millis = (int(part) for part in match.groups())
    return hours * 3600 + minutes * 60 + secs + millis / 1000


def serialize_srt(chunks: Sequence[CaptionChunk]) -> str:
    """Serialize caption chunks into an SRT document.

    Returns:
        SRT content; an empty string for no chunks.
    """
    lines = []  # type: List[str]
    for i, chunk in enumerate(chunks, 1):
        lines.append(str(i))
        lines.append("{} --> {}".format(
            format_srt_time(chunk.start_time), format_srt_time(chunk.end_time)
        ))
        lines.append(chunk.text)
        lines.append("")
    return "\n".join(lines)


def write_subtitle_file(chunks: Sequence[CaptionChunk], path: Path) -> Path:
    """Write chunks as an SRT file and return its path."""
    path = Path(path)
    path.write_text(serialize_srt(chunks), encoding="utf-8")
    logger.debug("Wrote %d caption(s) to %s", len(chunks), path)
    return path


def parse_srt(content: str) -> List[CaptionChunk]:
    """Parse SRT content into caption chunks.

    RULES:
    - Blocks are separated by blank lines; the index line is optional
    - Multi-line caption text is joined with newlines
    - Blocks without a timing line are skipped
    """
    chunks = []  # type: List[CaptionChunk]
    for block in re.split(r"\n\s*\n", content.replace("\r\n", "\n").strip()):
        lines = [line for line in block.split("\n") if line.strip()]
        for pos, line in enumerate(lines):
            match = _TIMING_LINE_RE.match(line)
            if match:
                chunks.append(CaptionChunk(
                    text="\n".join(lines[pos + 1:]),
                    start_time=parse_srt_time(match.group(1)),
                    end_time=parse_srt_time(match.group(2)),
                ))
                break
    return chunks


class SRTFormatter(BaseFormatter):
    """SubRip caption file, the format the compositor burns in."""

    @property
    def name(self) -> str:
        return "SubRip captions"

    def format(self, chunks: Sequence[CaptionChunk], duration: float) -> FormatterOutput:
        return FormatterOutput(
            suffix=".srt",
            content=serialize_srt(chunks),
            media_type="application/x-subrip",
        )
