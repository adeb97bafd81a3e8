"""Remote asset download over httpx.

WHY: Background videos and voice-overs usually live in object storage
and arrive as URLs, but FFmpeg gets local files. Downloads must fail
loudly with the URL and status attached, and must never leave a
truncated file behind that a later step would happily read.

RULES:
- Only http/https references count as remote
- Non-2xx responses raise DownloadError(url, status_code)
- Network failures raise DownloadError(url, reason=...)
- The destination file is removed on any failure
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlparse

import httpx

from recaps_renderer.errors import DownloadError

logger = logging.getLogger(__name__)

_CHUNK_BYTES = 64 * 1024


def is_url(ref: str) -> bool:
    """True when ``ref`` is an http(s) URL rather than a local path."""
    return urlparse(str(ref)).scheme.lower() in ("http", "https")


def url_suffix(url: str, default: str = "") -> str:
    """File extension of the URL path (".mp4"), or ``default`` if none."""
    suffix = Path(urlparse(url).path).suffix.lower()
    if 1 < len(suffix) <= 6 and suffix[1:].isalnum():
        return suffix
    return default


async def download_file(client: httpx.AsyncClient, url: str, dest: Path) -> Path:
    """Stream ``url`` into ``dest``.

    Args:
        client: An open httpx.AsyncClient.
        url: http(s) URL of the asset.
        dest: Local file to create (parent directory must exist).

    Returns:
        ``dest``, fully written.

    Raises:
        DownloadError: On a non-2xx response or any transport failure.
    """
    dest = Path(dest)
    logger.info("Downloading %s", url)
    try:
        async with client.stream("GET", url, follow_redirects=True) as response:
            if not response.is_success:
                raise DownloadError(url, status_code=response.status_code)
            with open(dest, "wb") as f:
                async for block in response.aiter_bytes(_CHUNK_BYTES):
                    f.write(block)
    except httpx.HTTPError as exc:
        _discard(dest)
        raise DownloadError(url, reason=str(exc) or type(exc).__name__) from exc
    except BaseException:
        _discard(dest)
        raise

    logger.debug("Downloaded %s -> %s (%d bytes)", url, dest, dest.stat().st_size)
    return dest


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove partial download %s: %s", path, exc)
