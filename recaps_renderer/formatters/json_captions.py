"""JSON caption dump with timing statistics.

WHY: Tuning the chunker means looking at numbers, not at a rendered
video: how long each caption stays up, how much of the video is
covered, whether anything overlaps. The preview endpoint and the
``captions`` CLI command both emit this.

RULES:
- captions[*] carry a 1-based index, text, startTime, endTime, duration
- stats come from caption_stats()
- Times rounded to milliseconds for readability
"""

from __future__ import annotations

import json
from typing import Any, Dict, Sequence

from recaps_renderer.core.chunker import caption_stats
from recaps_renderer.core.ir import CaptionChunk
from recaps_renderer.formatters.base import BaseFormatter, FormatterOutput


def captions_to_dict(chunks: Sequence[CaptionChunk], duration: float) -> Dict[str, Any]:
    captions = [
        {
            "index": i,
            "text": chunk.text,
            "startTime": round(chunk.start_time, 3),
            "endTime": round(chunk.end_time, 3),
            "duration": round(chunk.duration, 3),
        }
        for i, chunk in enumerate(chunks, 1)
    ]
    stats = caption_stats(chunks, duration)
    stats["average_duration"] = round(stats["average_duration"], 3)
    stats["total_caption_time"] = round(stats["total_caption_time"], 3)
    stats["coverage_pct"] = round(stats["coverage_pct"], 1)
    return {"duration": duration, "captions": captions, "stats": stats}


class CaptionJSONFormatter(BaseFormatter):
    """Timed captions plus stats as pretty-printed JSON."""

    @property
    def name(self) -> str:
        return "Caption JSON"

    def format(self, chunks: Sequence[CaptionChunk], duration: float) -> FormatterOutput:
        return FormatterOutput(
            suffix="-captions.json",
            content=json.dumps(captions_to_dict(chunks, duration), indent=2, ensure_ascii=False),
            media_type="application/json",
        )
