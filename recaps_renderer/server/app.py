"""FastAPI application: render jobs, caption previews, health.

WHY: The web front end (and scripts, n8n flows, curl) needs to hand a
script, a voice-over and a background clip to the renderer and get a
video back without holding an HTTP request open for minutes.

HOW: POST /renders validates the request, creates a job in the JobStore
and renders in the background through the RenderOrchestrator. Clients
poll GET /renders/{id} and download GET /renders/{id}/video. POST
/captions/preview runs only the caption chunker, so timing can be tuned
without rendering anything.

RULES:
- Error responses use the ErrorResponse schema
- Background renders use FastAPI BackgroundTasks
- The job store is a module singleton; expired jobs are swept every 5 minutes
- DELETE on a running job cancels it (the FFmpeg process is killed)
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import shutil
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import FileResponse, Response

from recaps_renderer import __version__
from recaps_renderer.config import CACHE_DIR, RenderSettings
from recaps_renderer.core.chunker import generate_captions
from recaps_renderer.core.ir import RenderJob, RenderState, WordTimestamp
from recaps_renderer.errors import RenderError
from recaps_renderer.formatters.json_captions import captions_to_dict
from recaps_renderer.formatters.srt import serialize_srt
from recaps_renderer.media.cache import DiskMediaCache
from recaps_renderer.render.compositor import probe_duration
from recaps_renderer.render.orchestrator import RenderOrchestrator, StateCallback
from recaps_renderer.server.jobs import Job, JobStatus, JobStore
from recaps_renderer.server.models import (
    CaptionPreviewRequest,
    CaptionPreviewResponse,
    ErrorResponse,
    HealthResponse,
    RenderCreatedResponse,
    RenderJobResponse,
    RenderRequest,
)
from recaps_renderer.transcription.transcriber import default_transcriber

logger = logging.getLogger(__name__)

_CANCEL_POLL_S = 0.5

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

job_store = JobStore()


async def _periodic_cleanup() -> None:
    """Run job cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        job_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Recaps Renderer API",
    description=(
        "Renders short vertical videos from a narration script, a voice-over "
        "and a looping background clip, with word-synchronised burned-in "
        "captions. Submit a render, poll for status, download the MP4."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _job_to_response(job: Job) -> RenderJobResponse:
    return RenderJobResponse(
        id=job.id,
        status=job.status.value,
        created_at=job.created_at,
        error=job.error,
        caption_mode=job.caption_mode,
        caption_count=job.caption_count,
        duration_s=job.duration_s,
        video_url="/renders/{}/video".format(job.id) if job.status == JobStatus.COMPLETED else None,
    )


def _build_orchestrator(transcribe: bool, on_state: StateCallback) -> RenderOrchestrator:
    """Orchestrator wired to the disk cache and, optionally, Soniox."""
    settings = RenderSettings.from_env()
    return RenderOrchestrator(
        settings=settings,
        cache=DiskMediaCache(CACHE_DIR, ttl_s=settings.cache_ttl_s),
        transcriber=default_transcriber() if transcribe else None,
        on_state=on_state,
    )


async def _watch_cancel(job: Job, cancel_event: asyncio.Event) -> None:
    """Bridge the job's thread-safe cancel flag onto the render's event."""
    while not job.cancel_requested.is_set():
        await asyncio.sleep(_CANCEL_POLL_S)
    cancel_event.set()


async def _run_render_pipeline(job_id: str, store: JobStore) -> None:
    """Render one stored job and record the outcome.

    RULES:
    - Orchestrator state changes are mirrored into the store
    - RenderError and ValueError mark the job failed with their message
    - Anything else is logged with traceback and marks the job failed
    - A job deleted while rendering leaves no output directory behind
    """
    job = store.get_job(job_id)
    if job is None:
        return
    request = RenderRequest.model_validate(job.request)

    def on_state(_render_id: str, state: RenderState) -> None:
        if state not in (RenderState.SUCCEEDED, RenderState.FAILED):
            store.update_job(job_id, status=JobStatus.from_render_state(state))

    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_cancel(job, cancel_event))
    try:
        orchestrator = _build_orchestrator(request.transcribe, on_state)
        duration = request.duration_s
        if duration is None:
            duration = await probe_duration(request.voice_audio, orchestrator.settings.ffprobe_binary)

        words = None
        if request.word_timestamps is not None:
            words = [
                WordTimestamp(w.word, w.start_time, w.end_time)
                for w in request.word_timestamps
            ]

        result = await orchestrator.render(
            RenderJob(
                script=request.script,
                background_video=request.background_video,
                voice_audio=request.voice_audio,
                target_duration_s=duration,
                output_path=job.output_path,
                word_timestamps=words,
                job_id=job_id,
            ),
            cancel_event=cancel_event,
        )
        store.update_job(
            job_id,
            status=JobStatus.COMPLETED,
            caption_mode=result.caption_mode,
            caption_count=result.caption_count,
            duration_s=result.duration_s,
        )
    except (RenderError, ValueError) as exc:
        store.update_job(job_id, status=JobStatus.FAILED, error=str(exc))
    except Exception as exc:
        logger.exception("Render pipeline failed for job %s", job_id)
        store.update_job(job_id, status=JobStatus.FAILED, error=str(exc))
    finally:
        watcher.cancel()
        if job.cancel_requested.is_set():
            # Deleted mid-render: the store already removed the directory,
            # but the render may have recreated it before seeing the flag.
            store.remove_output_dir(job.output_dir)


def _run_render_sync(job_id: str, store: JobStore) -> None:
    """BackgroundTasks runs sync callables in a worker thread; give it a loop."""
    asyncio.run(_run_render_pipeline(job_id, store))


# ---------------------------------------------------------------------------
# Endpoints: Renders
# ---------------------------------------------------------------------------


@app.post(
    "/renders",
    response_model=RenderCreatedResponse,
    status_code=201,
    tags=["renders"],
    summary="Submit a render job",
    description=(
        "Queue a video render. Returns a job ID immediately; the render runs "
        "in the background. Poll GET /renders/{id} for status."
    ),
    responses={
        422: {"model": ErrorResponse, "description": "Invalid request"},
        429: {"model": ErrorResponse, "description": "Too many concurrent jobs"},
    },
)
async def create_render(
    request: RenderRequest,
    background_tasks: BackgroundTasks,
) -> RenderCreatedResponse:
    if not request.script.strip() and not request.word_timestamps:
        raise HTTPException(
            status_code=422,
            detail="Provide a script or word timestamps; there is nothing to caption.",
        )

    try:
        job = job_store.create_job(request=request.model_dump(by_alias=True))
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    background_tasks.add_task(_run_render_sync, job.id, job_store)
    return RenderCreatedResponse(id=job.id, status=job.status.value)


@app.get(
    "/renders/{job_id}",
    response_model=RenderJobResponse,
    tags=["renders"],
    summary="Get render job status",
    responses={404: {"model": ErrorResponse, "description": "Job not found"}},
)
async def get_render(job_id: str) -> RenderJobResponse:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return _job_to_response(job)


@app.get(
    "/renders/{job_id}/video",
    tags=["renders"],
    summary="Download the rendered video",
    responses={
        404: {"model": ErrorResponse, "description": "Job or video not found"},
        409: {"model": ErrorResponse, "description": "Job not yet completed"},
    },
)
async def download_render(job_id: str) -> FileResponse:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))

    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail="Job is not completed (current status: {}).".format(job.status.value),
        )

    if not job.output_path.exists():
        raise HTTPException(status_code=404, detail="Video not found on disk.")

    return FileResponse(
        job.output_path,
        media_type="video/mp4",
        filename="recap-{}.mp4".format(job.id),
    )


@app.delete(
    "/renders/{job_id}",
    status_code=204,
    tags=["renders"],
    summary="Delete or cancel a render job",
    responses={404: {"model": ErrorResponse, "description": "Job not found"}},
)
async def delete_render(job_id: str) -> Response:
    if not job_store.delete_job(job_id):
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Captions
# ---------------------------------------------------------------------------


@app.post(
    "/captions/preview",
    response_model=CaptionPreviewResponse,
    tags=["captions"],
    summary="Preview caption timing",
    description=(
        "Run the caption chunker on a script (or word timings) and return the "
        "timed captions, timing statistics and the SRT document."
    ),
    responses={422: {"model": ErrorResponse, "description": "Invalid timings"}},
)
async def preview_captions(request: CaptionPreviewRequest) -> CaptionPreviewResponse:
    settings = dataclasses.replace(
        RenderSettings.from_env().captions,
        grouping=request.grouping,
        seed=request.seed,
    )
    try:
        words = None  # type: Optional[list]
        if request.word_timestamps:
            words = [
                WordTimestamp(w.word, w.start_time, w.end_time)
                for w in request.word_timestamps
            ]
        mode, chunks = generate_captions(request.script, request.duration_s, settings, words)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    payload = captions_to_dict(chunks, request.duration_s)
    return CaptionPreviewResponse(
        mode=mode,
        duration=request.duration_s,
        captions=payload["captions"],
        stats=payload["stats"],
        srt=serialize_srt(chunks),
    )


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
)
async def health_check() -> HealthResponse:
    ffmpeg_found = shutil.which(RenderSettings.from_env().ffmpeg_binary) is not None
    return HealthResponse(status="ok", version=__version__, ffmpeg=ffmpeg_found)


def run_api():
    """Entry point for ``python -m recaps_renderer --serve``."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
