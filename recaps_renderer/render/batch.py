"""Concurrent rendering of several independent jobs.

WHY: A lecture split into topics yields one video per topic. The jobs
share nothing but the background cache, so they can run side by side,
and one topic failing must not sink the others.

RULES:
- At most ``concurrency`` renders run at once (asyncio.Semaphore)
- Results come back in job order, one BatchItemResult per job
- Render failures are captured per item; programming errors propagate
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from recaps_renderer.core.ir import RenderJob, RenderResult
from recaps_renderer.errors import RenderError
from recaps_renderer.render.orchestrator import RenderOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class BatchItemResult:
    job_id: str
    result: Optional[RenderResult] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def render_batch(
    orchestrator: RenderOrchestrator,
    jobs: Sequence[RenderJob],
    concurrency: int = 2,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[BatchItemResult]:
    """Render ``jobs`` with bounded concurrency."""
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _run(job: RenderJob) -> BatchItemResult:
        async with semaphore:
            try:
                result = await orchestrator.render(job, cancel_event)
            except (RenderError, ValueError, OSError) as exc:
                return BatchItemResult(job_id=job.job_id, error=exc)
            return BatchItemResult(job_id=job.job_id, result=result)

    results = await asyncio.gather(*(_run(job) for job in jobs))
    failed = sum(1 for item in results if not item.ok)
    logger.info("Batch finished: %d rendered, %d failed", len(results) - failed, failed)
    return list(results)
