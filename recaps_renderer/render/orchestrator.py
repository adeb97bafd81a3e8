"""Render orchestrator: one RenderJob in, one MP4 (or one typed error) out.

WHY: Rendering touches the network, a speech-to-text service, the disk
and a long-running FFmpeg process. Callers (CLI, HTTP API, batch runner)
need a single call that either hands back a finished video or raises
one typed error, and that never leaves temp files or a half-written
output behind.

HOW: render() runs the pipeline sequentially:
  1. resolve media   (MediaResolver, background cache)
  2. captions        (precise → transcribed → estimated chain)
  3. subtitle file   (SRT in the job's work directory)
  4. composite       (FFmpeg into <output>.partial-<job_id>.mp4)
  5. publish         (os.replace onto output_path)
Every job gets its own ``render_<timestamp>_<job_id>`` work directory,
which is deleted in ``finally`` along with any partial output.

RULES:
- Duration policy is a hard cap: min(target, settings.max_duration_s)
- State: created → resolving_media → generating_captions → compositing
  → succeeded | failed, reported through on_state(job_id, state)
- output_path only ever appears after a fully successful composite
- Cleanup failures are logged, never raised
- No retries here; the caller decides what to do with a failure
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx

from recaps_renderer.config import RenderSettings
from recaps_renderer.core.ir import RenderJob, RenderResult, RenderState
from recaps_renderer.errors import RenderCancelledError
from recaps_renderer.formatters.srt import write_subtitle_file
from recaps_renderer.media.cache import MediaCache
from recaps_renderer.media.resolver import MediaResolver
from recaps_renderer.render.captions import build_caption_chain, run_caption_chain
from recaps_renderer.render.compositor import Compositor
from recaps_renderer.transcription.transcriber import Transcriber

logger = logging.getLogger(__name__)

StateCallback = Callable[[str, RenderState], None]


class RenderOrchestrator:
    """Runs render jobs end to end.

    Args:
        settings: Render settings (RenderSettings.from_env() if omitted).
        cache: Background-video cache shared by all jobs; None disables it.
        transcriber: Speech-to-text fallback; None skips that step.
        compositor: Compositor to use (tests inject a fake runner).
        work_root: Parent of the per-job work directories (system temp).
        http_client: Shared httpx client for downloads; each job opens
            its own when omitted.
        on_state: Called as on_state(job_id, state) on every transition.
    """

    def __init__(
        self,
        settings: Optional[RenderSettings] = None,
        cache: Optional[MediaCache] = None,
        transcriber: Optional[Transcriber] = None,
        compositor: Optional[Compositor] = None,
        work_root: Optional[Path] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        on_state: Optional[StateCallback] = None,
    ) -> None:
        self.settings = settings or RenderSettings.from_env()
        self.cache = cache
        self.caption_chain = build_caption_chain(transcriber)
        self.compositor = compositor or Compositor(self.settings)
        self.work_root = Path(work_root) if work_root else Path(tempfile.gettempdir())
        self._http_client = http_client
        self._on_state = on_state
        self.states = {}  # type: Dict[str, RenderState]

    def effective_duration(self, job: RenderJob) -> float:
        """Target duration after the global hard cap."""
        if job.target_duration_s <= 0:
            raise ValueError(
                "Target duration must be positive, got {}".format(job.target_duration_s)
            )
        duration = min(job.target_duration_s, self.settings.max_duration_s)
        if duration < job.target_duration_s:
            logger.info(
                "Capping job %s from %.2fs to %.2fs",
                job.job_id, job.target_duration_s, duration,
            )
        return duration

    async def render(
        self,
        job: RenderJob,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RenderResult:
        """Render ``job`` to ``job.output_path``.

        Raises:
            DownloadError: A remote asset could not be fetched.
            CaptionGenerationError: No caption strategy succeeded.
            CompositorError: FFmpeg failed or timed out.
            RenderCancelledError: cancel_event was set.
            ValueError: target_duration_s is not positive.
        """
        self._set_state(job, RenderState.CREATED)
        work_dir = self.work_root / "render_{}_{}".format(int(time.time() * 1000), job.job_id)
        output_path = job.output_path
        partial_path = output_path.with_name(
            "{}.partial-{}.mp4".format(output_path.name, job.job_id)
        )

        try:
            duration = self.effective_duration(job)
            work_dir.mkdir(parents=True)

            _check_cancel(cancel_event)
            self._set_state(job, RenderState.RESOLVING_MEDIA)
            async with MediaResolver(work_dir, self.cache, self._http_client) as resolver:
                background = await resolver.resolve_background(job.background_video)
                voice = await resolver.resolve_voice(job.voice_audio)

            _check_cancel(cancel_event)
            self._set_state(job, RenderState.GENERATING_CAPTIONS)
            outcome = await run_caption_chain(
                self.caption_chain, job, voice.path, duration, self.settings.captions
            )
            subtitle_path = write_subtitle_file(
                outcome.chunks, work_dir / "captions_{}.srt".format(job.job_id)
            )

            _check_cancel(cancel_event)
            self._set_state(job, RenderState.COMPOSITING)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            await self.compositor.compose(
                background.path,
                voice.path,
                subtitle_path,
                duration,
                partial_path,
                cancel_event=cancel_event,
            )
            os.replace(partial_path, output_path)
        except BaseException as exc:
            self._set_state(job, RenderState.FAILED)
            logger.error("Render %s failed: %s", job.job_id, exc)
            raise
        finally:
            _remove_file(partial_path)
            _remove_tree(work_dir)

        self._set_state(job, RenderState.SUCCEEDED)
        logger.info("Render %s finished: %s", job.job_id, output_path)
        return RenderResult(
            job_id=job.job_id,
            output_path=output_path,
            caption_mode=outcome.mode,
            caption_count=len(outcome.chunks),
            duration_s=duration,
        )

    def _set_state(self, job: RenderJob, state: RenderState) -> None:
        self.states[job.job_id] = state
        logger.debug("Job %s -> %s", job.job_id, state.value)
        if self._on_state:
            self._on_state(job.job_id, state)


def _check_cancel(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise RenderCancelledError("Render cancelled")


def _remove_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove %s: %s", path, exc)


def _remove_tree(path: Path) -> None:
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.warning("Could not remove work directory %s: %s", path, exc)
