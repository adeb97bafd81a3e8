"""In-memory render job store with TTL cleanup.

WHY: Renders take from a few seconds to several minutes, so the HTTP API
returns a job ID immediately and renders in the background. Clients then
poll for status and download the MP4. An in-memory store is enough for a
single-instance service with no persistence requirements.

HOW: Three components work together:
  JobStatus  — enum of job states, mirroring the orchestrator's RenderState
  Job        — dataclass holding the request, status, result and output dir
  JobStore   — lock-protected dict with create/get/list/update/delete
               and TTL expiry of finished jobs

RULES:
- All store mutations are protected by threading.Lock
- Each job gets a dedicated temp directory holding its output video
- Deleting a job that is still running sets its cancel flag
- TTL is measured from completed_at; only finished jobs expire
"""

from __future__ import annotations

import enum
import logging
import shutil
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from recaps_renderer.core.ir import RenderState

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600

OUTPUT_FILENAME = "recap.mp4"


class JobStatus(str, enum.Enum):
    """Render job states as seen by API clients.

    RULES:
    - pending: accepted, not started
    - resolving_media / generating_captions / compositing: in progress
    - completed: video ready for download
    - failed: error holds the reason
    """

    PENDING = "pending"
    RESOLVING_MEDIA = "resolving_media"
    GENERATING_CAPTIONS = "generating_captions"
    COMPOSITING = "compositing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_render_state(cls, state: RenderState) -> JobStatus:
        return _STATE_TO_STATUS[state]


_STATE_TO_STATUS = {
    RenderState.CREATED: JobStatus.PENDING,
    RenderState.RESOLVING_MEDIA: JobStatus.RESOLVING_MEDIA,
    RenderState.GENERATING_CAPTIONS: JobStatus.GENERATING_CAPTIONS,
    RenderState.COMPOSITING: JobStatus.COMPOSITING,
    RenderState.SUCCEEDED: JobStatus.COMPLETED,
    RenderState.FAILED: JobStatus.FAILED,
}

_TERMINAL = (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class Job:
    """Metadata and state for a single render job."""

    id: str
    status: JobStatus
    output_dir: Path
    created_at: float
    updated_at: float
    request: Dict[str, Any] = field(default_factory=dict)
    completed_at: Optional[float] = None
    error: Optional[str] = None
    caption_mode: Optional[str] = None
    caption_count: Optional[int] = None
    duration_s: Optional[float] = None
    cancel_requested: threading.Event = field(default_factory=threading.Event)

    @property
    def output_path(self) -> Path:
        return self.output_dir / OUTPUT_FILENAME

    @property
    def finished(self) -> bool:
        return self.status in _TERMINAL


class JobStore:
    """Thread-safe in-memory store for render jobs."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_jobs: int = 100,
    ) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs

    def create_job(self, request: Optional[Dict[str, Any]] = None) -> Job:
        """Create a PENDING job with its own output directory.

        Raises:
            ValueError: max_jobs already tracked.
        """
        with self._lock:
            if len(self._jobs) >= self.max_jobs:
                raise ValueError(
                    "Maximum number of concurrent jobs ({}) reached".format(self.max_jobs)
                )

            job_id = uuid.uuid4().hex
            now = time.time()
            job = Job(
                id=job_id,
                status=JobStatus.PENDING,
                output_dir=Path(tempfile.mkdtemp(prefix="recaps_job_")),
                created_at=now,
                updated_at=now,
                request=request or {},
            )
            self._jobs[job_id] = job

        logger.info("Created render job %s", job_id)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> List[Job]:
        """All jobs, oldest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        error: Optional[str] = None,
        caption_mode: Optional[str] = None,
        caption_count: Optional[int] = None,
        duration_s: Optional[float] = None,
    ) -> Optional[Job]:
        """Apply the non-None fields; returns None for unknown IDs.

        RULES:
        - A finished job never changes status again
        - completed_at is set on the first terminal transition
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None

            now = time.time()
            if status is not None and not job.finished:
                job.status = status
                if job.finished:
                    job.completed_at = now
            if error is not None:
                job.error = error
            if caption_mode is not None:
                job.caption_mode = caption_mode
            if caption_count is not None:
                job.caption_count = caption_count
            if duration_s is not None:
                job.duration_s = duration_s
            job.updated_at = now
            return job

    def delete_job(self, job_id: str) -> bool:
        """Remove a job, cancelling it if still running, and delete its files."""
        with self._lock:
            job = self._jobs.pop(job_id, None)

        if job is None:
            return False

        job.cancel_requested.set()
        self.remove_output_dir(job.output_dir)
        logger.info("Deleted render job %s", job_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove finished jobs older than the TTL; returns how many."""
        now = time.time()
        expired: List[Job] = []

        with self._lock:
            for job_id, job in list(self._jobs.items()):
                if not job.finished or job.completed_at is None:
                    continue
                if now - job.completed_at > self._ttl_seconds:
                    expired.append(self._jobs.pop(job_id))

        for job in expired:
            self.remove_output_dir(job.output_dir)
            logger.info("Expired render job %s (finished %.0fs ago)", job.id, now - job.completed_at)

        return len(expired)

    @staticmethod
    def remove_output_dir(output_dir: Path) -> None:
        """Delete a job directory; failures are logged, not raised."""
        if output_dir.exists():
            try:
                shutil.rmtree(output_dir)
            except OSError:
                logger.warning("Failed to clean up job dir: %s", output_dir)
