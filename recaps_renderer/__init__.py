"""Recaps renderer — caption timing and vertical video composition.

WHY: Lecture recaps are delivered as short vertical videos: a narration
script read by a synthetic voice over a looping background clip, with
big word-synchronised captions burned in. Everything around that (script
writing, ingestion, storage) is glue; the timing of the captions and the
FFmpeg composition are where the work is.

HOW: Four-stage pipeline — resolve media (download/cache), generate
caption chunks (precise timestamps, transcription, or estimation),
serialize them to SRT, and drive FFmpeg to produce the final MP4. Each
stage is independently testable.

RULES:
- Caption chunks never overlap and always have end > start
- All timing thresholds live in immutable settings objects, not globals
- A render job cleans up every temp file it created, success or failure
"""

__version__ = "0.1.0"
