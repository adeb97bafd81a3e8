"""Content-addressed cache for downloaded background videos.

WHY: The same handful of background loops (Minecraft parkour, Subway
Surfers) are used for nearly every render. Re-downloading a 50 MB clip
per render wastes minutes, so the first download is kept on disk and
served to later renders for a day.

HOW: Entries are keyed by the SHA-256 of the source URL and stored as
``<key>.mp4`` in one directory. Freshness is the file's mtime compared
with a TTL. Writes copy into a unique temp file and ``os.replace`` it
into place, so concurrent writers never expose a half-written entry.

RULES:
- get() never raises; unreadable or stale entries are misses
- put() is idempotent, last writer wins
- The cache is shared across jobs; nothing else in a render is
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import time
import uuid
from pathlib import Path
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

CACHE_SUFFIX = ".mp4"


class MediaCache(Protocol):
    """Lookup and population interface used by the media resolver."""

    def get(self, key: str) -> Optional[Path]:
        """Path of a fresh entry for ``key``, or None."""

    def put(self, key: str, source: Path) -> Path:
        """Store a copy of ``source`` under ``key`` and return its path."""


def cache_key(url: str) -> str:
    """Stable cache key for a source URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


class DiskMediaCache:
    """MediaCache backed by a local directory with mtime-based TTL.

    Args:
        directory: Where entries live; created on first put().
        ttl_s: Entry lifetime in seconds.
        clock: Returns the current epoch time; injectable for tests.
    """

    def __init__(
        self,
        directory: Path,
        ttl_s: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory)
        self.ttl_s = ttl_s
        self._clock = clock

    def path_for(self, key: str) -> Path:
        return self.directory / "{}{}".format(key, CACHE_SUFFIX)

    def get(self, key: str) -> Optional[Path]:
        path = self.path_for(key)
        try:
            age = self._clock() - path.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Cannot read cache entry %s: %s", path, exc)
            return None

        if age >= self.ttl_s:
            logger.debug("Cache entry %s is stale (%.0fs old)", path.name, age)
            return None
        return path

    def put(self, key: str, source: Path) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        final = self.path_for(key)
        tmp = self.directory / ".{}.{}.tmp".format(key, uuid.uuid4().hex)
        try:
            shutil.copyfile(source, tmp)
            os.replace(tmp, final)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.info("Cached background video as %s", final.name)
        return final
