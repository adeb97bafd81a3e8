"""FFmpeg composition: background loop + voice-over + burned-in captions.

WHY: The final deliverable is one vertical MP4. FFmpeg does all the
heavy lifting in a single pass: it letterboxes an arbitrary background
clip into 1080x1920, burns in the SRT captions, mixes the narration over
the quietened background audio and stops at the target duration.

HOW: Argument building is pure (build_filter_graph, build_ffmpeg_args)
so it can be asserted on directly. run_process() drives the binary with
asyncio's subprocess API: stderr is captured for diagnostics, and the
process is killed on timeout, on the job's cancel signal, or when the
awaiting task itself is cancelled. Compositor ties both together and
turns a non-zero exit into CompositorError.

RULES:
- The subtitle file is referenced by bare filename; FFmpeg runs with
  its directory as cwd, so filter-graph escaping never sees a full path
- Every other path passed to FFmpeg is absolute
- Background video loops forever (-stream_loop -1); -t caps the output
- Voice at full volume, background audio at 0.2, amix duration=first
- A killed process always raises; it never returns a ProcessResult
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

from recaps_renderer.config import RenderSettings, TextOverlay, VideoSettings
from recaps_renderer.errors import (
    CompositorError,
    CompositorTimeoutError,
    RenderCancelledError,
)

logger = logging.getLogger(__name__)

_KILL_GRACE_S = 5.0


@dataclass
class ProcessResult:
    """Exit status and captured output of a finished subprocess."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""


ProcessRunner = Callable[..., Awaitable[ProcessResult]]
"""``runner(args, cwd=..., cancel_event=..., timeout=...)``; run_process or a test fake."""


# ---------------------------------------------------------------------------
# Argument building
# ---------------------------------------------------------------------------


def escape_filter_path(path: str) -> str:
    """Escape a path for use as a filter-graph option value."""
    escaped = str(path).replace("\\", "/")
    escaped = escaped.replace(":", r"\:")
    escaped = escaped.replace("'", r"\'")
    return escaped


def build_force_style(video: VideoSettings) -> str:
    """ASS style overrides for the subtitles filter."""
    return ",".join([
        "FontName={}".format(video.font_family),
        "FontSize={}".format(video.font_size),
        "PrimaryColour={}".format(video.primary_colour),
        "OutlineColour={}".format(video.outline_colour),
        "Outline={}".format(video.outline),
        "Shadow={}".format(video.shadow),
        "Bold={}".format(1 if video.bold else 0),
        "Alignment={}".format(video.alignment),
        "MarginV={}".format(video.margin_v),
    ])


def build_drawtext(overlay: TextOverlay) -> str:
    """drawtext filter for one static text decoration."""
    text = escape_filter_path(overlay.text)
    return "drawtext=text='{}':fontsize={}:fontcolor=white:x={}:y={}:alpha={}".format(
        text, overlay.font_size, overlay.x, overlay.y, overlay.alpha
    )


def build_filter_graph(video: VideoSettings, subtitle_ref: str) -> str:
    """Single filter graph for scaling, subtitle burn-in and audio mixing.

    Input 0 is the looping background video, input 1 the voice-over.
    Outputs are labelled [video_out] and [audio_out]. Text overlays,
    when configured, are drawn on top of the subtitles.
    """
    w, h = video.width, video.height
    video_chain = (
        "[0:v]scale={w}:{h}:force_original_aspect_ratio=decrease,"
        "pad={w}:{h}:(ow-iw)/2:(oh-ih)/2:black,"
        "fps={fps},"
        "subtitles={subs}:force_style='{style}'{overlays}[video_out]"
    ).format(
        w=w,
        h=h,
        fps=video.fps,
        subs=escape_filter_path(subtitle_ref),
        style=build_force_style(video),
        overlays="".join("," + build_drawtext(o) for o in video.overlays),
    )
    audio_chain = (
        "[1:a]volume={voice}[voice_audio];"
        "[0:a]volume={bg}[bg_audio];"
        "[voice_audio][bg_audio]amix=inputs=2:duration=first:dropout_transition=3[audio_out]"
    ).format(voice=video.voice_volume, bg=video.background_volume)
    return "{};{}".format(video_chain, audio_chain)


def build_ffmpeg_args(
    settings: RenderSettings,
    background: str,
    voice: str,
    subtitle_ref: str,
    duration: float,
    output: str,
) -> List[str]:
    """Full FFmpeg command line for one composition."""
    video = settings.video
    return [
        settings.ffmpeg_binary,
        "-y",
        "-hide_banner",
        "-loglevel", "error",
        "-stream_loop", "-1",
        "-i", str(background),
        "-i", str(voice),
        "-filter_complex", build_filter_graph(video, subtitle_ref),
        "-map", "[video_out]",
        "-map", "[audio_out]",
        "-c:v", video.video_codec,
        "-preset", video.preset,
        "-crf", str(video.crf),
        "-r", str(video.fps),
        "-pix_fmt", video.pixel_format,
        "-t", "{:.3f}".format(duration),
        "-c:a", video.audio_codec,
        "-b:a", video.audio_bitrate,
        "-ar", str(video.audio_sample_rate),
        str(output),
    ]


# ---------------------------------------------------------------------------
# Process execution
# ---------------------------------------------------------------------------


async def run_process(
    args: Sequence[str],
    cwd: Optional[Path] = None,
    cancel_event: Optional[asyncio.Event] = None,
    timeout: Optional[float] = None,
) -> ProcessResult:
    """Run a subprocess to completion, capturing stdout and stderr.

    RULES:
    - Timeout expiry → process killed, CompositorTimeoutError
    - cancel_event set → process killed, RenderCancelledError
    - Awaiting task cancelled → process killed, CancelledError propagates
    - Binary missing or not executable → CompositorError

    Args:
        args: Program and arguments (no shell).
        cwd: Working directory for the process.
        cancel_event: Optional signal to abort the run.
        timeout: Seconds before the process is killed; None waits forever.
    """
    logger.debug("Running: %s", " ".join(shlex.quote(str(a)) for a in args))
    try:
        process = await asyncio.create_subprocess_exec(
            *[str(a) for a in args],
            cwd=str(cwd) if cwd is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise CompositorError("Could not start {}: {}".format(args[0], exc)) from exc

    communicate = asyncio.ensure_future(process.communicate())
    waiters = {communicate}
    cancel_wait = None
    if cancel_event is not None:
        cancel_wait = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_wait)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        await _kill(process, communicate)
        raise
    finally:
        if cancel_wait is not None and not cancel_wait.done():
            cancel_wait.cancel()

    if communicate not in done:
        await _kill(process, communicate)
        if cancel_wait is not None and cancel_wait in done:
            raise RenderCancelledError("Render cancelled while {} was running".format(args[0]))
        raise CompositorTimeoutError("{} timed out after {:.0f}s".format(args[0], timeout))

    stdout, stderr = communicate.result()
    return ProcessResult(
        exit_code=process.returncode,
        stdout=(stdout or b"").decode("utf-8", errors="replace"),
        stderr=(stderr or b"").decode("utf-8", errors="replace"),
    )


async def _kill(process: asyncio.subprocess.Process, communicate: asyncio.Future) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        logger.warning("Killed process %s", process.pid)
    await asyncio.wait({communicate}, timeout=_KILL_GRACE_S)
    if not communicate.done():
        communicate.cancel()


# ---------------------------------------------------------------------------
# High-level API
# ---------------------------------------------------------------------------


class Compositor:
    """Builds and runs the FFmpeg composition for one render.

    Args:
        settings: Binary names, timeout and video settings.
        runner: Process runner; tests inject a fake that never spawns FFmpeg.
    """

    def __init__(self, settings: RenderSettings, runner: ProcessRunner = run_process) -> None:
        self.settings = settings
        self._runner = runner

    async def compose(
        self,
        background: Path,
        voice: Path,
        subtitle_path: Path,
        duration: float,
        output: Path,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Path:
        """Render ``output`` and return its path.

        Raises:
            CompositorError: FFmpeg exited non-zero (stderr attached).
            CompositorTimeoutError: settings.timeout_s expired.
            RenderCancelledError: cancel_event was set.
        """
        subtitle_path = Path(subtitle_path).resolve()
        args = build_ffmpeg_args(
            self.settings,
            background=str(Path(background).resolve()),
            voice=str(Path(voice).resolve()),
            subtitle_ref=subtitle_path.name,
            duration=duration,
            output=str(Path(output).resolve()),
        )

        logger.info("Compositing %.2fs video -> %s", duration, output)
        result = await self._runner(
            args,
            cwd=subtitle_path.parent,
            cancel_event=cancel_event,
            timeout=self.settings.timeout_s,
        )
        if result.exit_code != 0:
            raise CompositorError(
                "FFmpeg exited with code {}".format(result.exit_code),
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        return Path(output)


async def probe_duration(
    path: Path,
    ffprobe_binary: str = "ffprobe",
    runner: ProcessRunner = run_process,
) -> float:
    """Media duration in seconds, read with ffprobe.

    Raises:
        CompositorError: ffprobe failed or printed no usable duration.
    """
    args = [
        ffprobe_binary,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]
    result = await runner(args, cwd=None, cancel_event=None, timeout=60.0)
    if result.exit_code != 0:
        raise CompositorError(
            "ffprobe could not read {}".format(path),
            exit_code=result.exit_code,
            stderr=result.stderr,
        )
    try:
        duration = float(result.stdout.strip().splitlines()[0])
    except (IndexError, ValueError) as exc:
        raise CompositorError(
            "ffprobe returned no duration for {}: {!r}".format(path, result.stdout)
        ) from exc
    logger.debug("Probed %s: %.3fs", path, duration)
    return duration
