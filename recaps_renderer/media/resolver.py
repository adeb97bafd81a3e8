"""Turn media references into local files before compositing.

WHY: A render job names its background video and voice-over either by
local path or by URL. FFmpeg needs local files, and whoever downloads
them has to know which ones to delete afterwards.

HOW: MediaResolver wraps an httpx.AsyncClient (owned or injected) and
a job-scoped work directory. Local paths pass through untouched.
Background URLs go through the MediaCache first; on a miss they are
downloaded into the work directory and copied into the cache
afterwards. Voice URLs are always downloaded fresh.

RULES:
- Use as: async with MediaResolver(work_dir, cache) as resolver: ...
- ResolvedMedia.temporary is True only for files downloaded into work_dir
- Cached and local files are never temporary (never deleted by the job)
- A failed cache write is logged; it never fails the render
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from recaps_renderer.media.cache import MediaCache, cache_key
from recaps_renderer.media.download import download_file, is_url, url_suffix

logger = logging.getLogger(__name__)


@dataclass
class ResolvedMedia:
    """A local media file and whether the current job owns it."""

    path: Path
    temporary: bool


class MediaResolver:
    """Resolves background and voice references for one render job."""

    def __init__(
        self,
        work_dir: Path,
        cache: MediaCache | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._work_dir = Path(work_dir)
        self._cache = cache
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> MediaResolver:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(300.0, connect=30.0))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "MediaResolver must be used as an async context manager: "
                "async with MediaResolver(work_dir) as resolver: ..."
            )
        return self._client

    async def resolve_background(self, ref: str) -> ResolvedMedia:
        """Local path for the background video, via the cache when remote."""
        if not is_url(ref):
            return ResolvedMedia(Path(ref).expanduser(), temporary=False)

        key = cache_key(ref)
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                logger.info("Background video cache hit: %s", ref)
                return ResolvedMedia(cached, temporary=False)

        dest = self._work_dir / "background_{}{}".format(key[:16], url_suffix(ref, ".mp4"))
        await download_file(self._ensure_client(), ref, dest)

        if self._cache is not None:
            try:
                self._cache.put(key, dest)
            except OSError as exc:
                logger.warning("Could not cache background video %s: %s", ref, exc)
        return ResolvedMedia(dest, temporary=True)

    async def resolve_voice(self, ref: str) -> ResolvedMedia:
        """Local path for the voice-over; remote files are never cached."""
        if not is_url(ref):
            return ResolvedMedia(Path(ref).expanduser(), temporary=False)

        dest = self._work_dir / "voice_{}{}".format(cache_key(ref)[:16], url_suffix(ref, ".mp3"))
        await download_file(self._ensure_client(), ref, dest)
        return ResolvedMedia(dest, temporary=True)
