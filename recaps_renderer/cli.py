"""Command-line interface for the recaps renderer.

WHY: Creators and scripts need to render a video, or check caption
timing, without running the HTTP service. The CLI wires the same
pipeline the API uses behind two subcommands.

HOW: argparse with subcommands:
  render    — script + background + voice → MP4 via RenderOrchestrator
  captions  — script (or word timings, or an existing SRT) → timed
              captions as SRT or JSON on stdout, nothing rendered
Async work runs through asyncio.run(). Status messages go to stderr so
``captions`` output can be piped.

RULES:
- --script accepts a file path or literal text
- --duration omitted → probed from the voice file with ffprobe
- --timestamps: JSON list of {word, startTime, endTime} (or {"words": [...]})
- Exit codes: 0 success, 1 failure, 130 interrupted
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from recaps_renderer.config import (
    CACHE_DIR,
    OUTPUT_DIR,
    SUPPORTED_VOICE_FORMATS,
    RenderSettings,
)
from recaps_renderer.core.chunker import caption_stats, find_overlaps, generate_captions
from recaps_renderer.core.ir import RenderJob, RenderState, WordTimestamp
from recaps_renderer.errors import RenderError
from recaps_renderer.formatters import FORMATTERS
from recaps_renderer.formatters.srt import parse_srt
from recaps_renderer.media.cache import DiskMediaCache
from recaps_renderer.media.download import is_url
from recaps_renderer.render.compositor import probe_duration
from recaps_renderer.render.orchestrator import RenderOrchestrator
from recaps_renderer.transcription.transcriber import default_transcriber


def _status(msg: str) -> None:
    """Print a status message to stderr (stdout stays pipeable)."""
    print(msg, file=sys.stderr, flush=True)


def _load_script(value: Optional[str]) -> str:
    """Script text from a file path, or the value itself."""
    if not value:
        return ""
    path = Path(value)
    if len(value) < 1024 and path.is_file():
        return path.read_text(encoding="utf-8")
    return value


def load_word_timestamps(path: Path) -> List[WordTimestamp]:
    """Read word timings from a JSON file.

    RULES:
    - Top level is a list of word dicts, or an object with a "words" or
      "wordTimestamps" list
    - Keys follow WordTimestamp.from_dict (startTime/start_time/start, ...)
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("words", data.get("wordTimestamps", []))
    if not isinstance(data, list):
        raise ValueError("Timestamps file must contain a list of words: {}".format(path))
    return [WordTimestamp.from_dict(item) for item in data]


def _validate_voice(ref: str) -> None:
    if is_url(ref):
        return
    path = Path(ref)
    if not path.is_file():
        raise ValueError("Voice file not found: {}".format(ref))
    if path.suffix.lower() not in SUPPORTED_VOICE_FORMATS:
        raise ValueError(
            "Unsupported voice format '{}'. Supported: {}".format(
                path.suffix, ", ".join(sorted(SUPPORTED_VOICE_FORMATS))
            )
        )


async def _resolve_duration(args: argparse.Namespace, settings: RenderSettings) -> float:
    if args.duration is not None:
        return args.duration
    if not getattr(args, "voice", None):
        raise ValueError("--duration is required when no --voice file is given")
    _status("Probing voice-over duration...")
    duration = await probe_duration(args.voice, settings.ffprobe_binary)
    _status("  {:.2f}s".format(duration))
    return duration


# ---------------------------------------------------------------------------
# render
# ---------------------------------------------------------------------------


async def _run_render(args: argparse.Namespace) -> int:
    settings = RenderSettings.from_env()
    if args.timeout is not None:
        settings = dataclasses.replace(settings, timeout_s=args.timeout or None)

    _validate_voice(args.voice)
    script = _load_script(args.script)
    words = load_word_timestamps(Path(args.timestamps)) if args.timestamps else None
    duration = await _resolve_duration(args, settings)

    output = Path(args.output) if args.output else OUTPUT_DIR / "recap-{}.mp4".format(
        time.strftime("%Y%m%d-%H%M%S")
    )

    transcriber = None if args.no_transcribe else default_transcriber()
    orchestrator = RenderOrchestrator(
        settings=settings,
        cache=None if args.no_cache else DiskMediaCache(CACHE_DIR, ttl_s=settings.cache_ttl_s),
        transcriber=transcriber,
        on_state=lambda _job_id, state: _status(_STATE_MESSAGES.get(state, state.value)),
    )

    result = await orchestrator.render(RenderJob(
        script=script,
        background_video=args.background,
        voice_audio=args.voice,
        target_duration_s=duration,
        output_path=output,
        word_timestamps=words,
    ))

    _status("")
    _status("Done! {:.1f}s video with {} {} captions".format(
        result.duration_s, result.caption_count, result.caption_mode
    ))
    print(result.output_path)
    return 0


_STATE_MESSAGES = {
    RenderState.CREATED: "Starting render...",
    RenderState.RESOLVING_MEDIA: "Fetching background video and voice-over...",
    RenderState.GENERATING_CAPTIONS: "Timing captions...",
    RenderState.COMPOSITING: "Rendering video with FFmpeg...",
    RenderState.SUCCEEDED: "Render complete.",
    RenderState.FAILED: "Render failed.",
}


# ---------------------------------------------------------------------------
# captions
# ---------------------------------------------------------------------------


async def _run_captions(args: argparse.Namespace) -> int:
    settings = RenderSettings.from_env()
    captions = dataclasses.replace(settings.captions, grouping=args.grouping, seed=args.seed)

    if args.from_srt:
        chunks = parse_srt(Path(args.from_srt).read_text(encoding="utf-8"))
        mode = "srt"
        duration = args.duration or (chunks[-1].end_time if chunks else 0.0)
    else:
        words = load_word_timestamps(Path(args.timestamps)) if args.timestamps else None
        duration = await _resolve_duration(args, settings)
        mode, chunks = generate_captions(_load_script(args.script), duration, captions, words)

    stats = caption_stats(chunks, duration)
    _status("{} caption(s), {} mode, {:.1f}% coverage, {} overlap(s)".format(
        stats["count"], mode, stats["coverage_pct"], stats["overlaps"]
    ))
    for left, right in find_overlaps(chunks):
        _status("  overlap: #{} ends after #{} starts".format(left + 1, right + 1))

    output = FORMATTERS[args.format]().format(chunks, duration)
    if args.output:
        Path(args.output).write_text(output.content, encoding="utf-8")
        _status("Saved {}".format(args.output))
    else:
        sys.stdout.write(output.content)
        if not output.content.endswith("\n"):
            sys.stdout.write("\n")
    return 0


# ---------------------------------------------------------------------------
# Parser and entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser (separate from main() so tests can inspect it)."""
    parser = argparse.ArgumentParser(
        prog="recaps_renderer",
        description="Render short vertical videos with word-synchronised captions.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging (caption timings, FFmpeg command line).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Render a video.")
    render.add_argument("--script", default="", help="Script file path or literal text.")
    render.add_argument("--background", required=True, help="Background video path or URL.")
    render.add_argument("--voice", required=True, help="Voice-over path or URL (mp3/wav).")
    render.add_argument(
        "--duration", type=float, default=None,
        help="Target length in seconds (default: length of the voice-over).",
    )
    render.add_argument("--timestamps", default=None, help="JSON file with word timings.")
    render.add_argument(
        "--output", default=None,
        help="Output MP4 path (default: {}/recap-<time>.mp4).".format(OUTPUT_DIR),
    )
    render.add_argument(
        "--no-transcribe", action="store_true",
        help="Skip the speech-to-text fallback.",
    )
    render.add_argument("--no-cache", action="store_true", help="Bypass the background cache.")
    render.add_argument(
        "--timeout", type=float, default=None,
        help="FFmpeg timeout in seconds; 0 disables it.",
    )

    captions = subparsers.add_parser("captions", help="Preview caption timing only.")
    captions.add_argument("--script", default="", help="Script file path or literal text.")
    captions.add_argument("--duration", type=float, default=None, help="Video length in seconds.")
    captions.add_argument("--voice", default=None, help="Voice-over to probe for the duration.")
    captions.add_argument("--timestamps", default=None, help="JSON file with word timings.")
    captions.add_argument("--from-srt", default=None, help="Inspect an existing SRT file instead.")
    captions.add_argument(
        "--format", choices=sorted(FORMATTERS.keys()), default="srt",
        help="Output format (default: %(default)s).",
    )
    captions.add_argument(
        "--grouping", choices=["linguistic", "weighted"], default="linguistic",
        help="Chunk sizing policy (default: %(default)s).",
    )
    captions.add_argument("--seed", type=int, default=None, help="Seed for weighted grouping.")
    captions.add_argument("--output", default=None, help="Write to a file instead of stdout.")

    return parser


_COMMANDS = {
    "render": _run_render,
    "captions": _run_captions,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m recaps_renderer``.

    RULES:
    - argv=None means use sys.argv; explicit argv is for testing
    - Exits non-zero only on failure
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        exit_code = asyncio.run(_COMMANDS[args.command](args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except (RenderError, ValueError, OSError) as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
