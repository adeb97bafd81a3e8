"""Tests for media resolution (media/download.py, media/cache.py, media/resolver.py).

WHY: A half-downloaded background clip makes FFmpeg fail minutes later
with an unhelpful error, and a cache that never hits re-downloads 50 MB
per render. These tests pin download failure handling and cache reuse.

HOW: httpx.MockTransport serves canned responses and counts requests.
Async code runs through asyncio.run() inside ordinary sync tests.
DiskMediaCache gets an injected clock for TTL tests.

RULES:
- No real network access
- Every failed download leaves no file behind
"""

from __future__ import annotations

import asyncio
import logging
import time

import httpx
import pytest

from recaps_renderer.errors import DownloadError
from recaps_renderer.media.cache import DiskMediaCache, cache_key
from recaps_renderer.media.download import download_file, is_url, url_suffix
from recaps_renderer.media.resolver import MediaResolver

BACKGROUND_URL = "https://cdn.example.com/backgrounds/parkour.mp4"
VOICE_URL = "https://cdn.example.com/voice/topic-1.mp3"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _transport(requests, status_code=200, content=b"video-bytes"):
    """MockTransport that records request URLs and returns a fixed response."""

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        return httpx.Response(status_code, content=content)

    return httpx.MockTransport(handler)


def _failing_transport(requests):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


class _BrokenCache:
    """Cache whose writes always fail."""

    def get(self, key):
        return None

    def put(self, key, source):
        raise OSError("disk full")


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


class TestUrlHelpers:

    def test_is_url(self):
        assert is_url(BACKGROUND_URL)
        assert is_url("http://example.com/a.mp3")
        assert not is_url("/tmp/video.mp4")
        assert not is_url("C:\\videos\\clip.mp4")
        assert not is_url("ftp://example.com/clip.mp4")

    def test_url_suffix(self):
        assert url_suffix(BACKGROUND_URL) == ".mp4"
        assert url_suffix("https://x.com/a.MP3?token=1") == ".mp3"
        assert url_suffix("https://x.com/stream", ".mp4") == ".mp4"


# ---------------------------------------------------------------------------
# download_file
# ---------------------------------------------------------------------------


class TestDownloadFile:
    """download_file() writes the full body or nothing at all."""

    def test_writes_body(self, tmp_path):
        requests = []

        async def run():
            async with httpx.AsyncClient(transport=_transport(requests)) as client:
                return await download_file(client, BACKGROUND_URL, tmp_path / "bg.mp4")

        dest = asyncio.run(run())
        assert dest.read_bytes() == b"video-bytes"
        assert requests == [BACKGROUND_URL]

    def test_http_error_status(self, tmp_path):
        dest = tmp_path / "bg.mp4"

        async def run():
            async with httpx.AsyncClient(transport=_transport([], status_code=404)) as client:
                await download_file(client, BACKGROUND_URL, dest)

        with pytest.raises(DownloadError) as exc_info:
            asyncio.run(run())

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == BACKGROUND_URL
        assert "HTTP 404" in str(exc_info.value)
        assert not dest.exists()

    def test_network_error_has_no_status(self, tmp_path):
        dest = tmp_path / "bg.mp4"

        async def run():
            async with httpx.AsyncClient(transport=_failing_transport([])) as client:
                await download_file(client, BACKGROUND_URL, dest)

        with pytest.raises(DownloadError) as exc_info:
            asyncio.run(run())

        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.reason
        assert not dest.exists()


# ---------------------------------------------------------------------------
# DiskMediaCache
# ---------------------------------------------------------------------------


class TestDiskMediaCache:
    """Content-addressed cache with mtime TTL."""

    def test_miss_on_empty_cache(self, tmp_path):
        cache = DiskMediaCache(tmp_path / "cache")
        assert cache.get(cache_key(BACKGROUND_URL)) is None

    def test_put_then_get(self, tmp_path):
        source = tmp_path / "clip.mp4"
        source.write_bytes(b"clip")
        cache = DiskMediaCache(tmp_path / "cache")
        key = cache_key(BACKGROUND_URL)

        stored = cache.put(key, source)

        assert stored == cache.path_for(key)
        assert cache.get(key) == stored
        assert stored.read_bytes() == b"clip"
        assert source.exists()

    def test_no_temp_files_left(self, tmp_path):
        source = tmp_path / "clip.mp4"
        source.write_bytes(b"clip")
        cache = DiskMediaCache(tmp_path / "cache")
        cache.put("k", source)
        assert [p.name for p in (tmp_path / "cache").iterdir()] == ["k.mp4"]

    def test_stale_entry_is_a_miss(self, tmp_path):
        source = tmp_path / "clip.mp4"
        source.write_bytes(b"clip")
        now = [time.time()]
        cache = DiskMediaCache(tmp_path / "cache", ttl_s=60, clock=lambda: now[0])
        cache.put("k", source)

        now[0] += 30
        assert cache.get("k") is not None
        now[0] += 31
        assert cache.get("k") is None

    def test_put_overwrites(self, tmp_path):
        first = tmp_path / "a.mp4"
        first.write_bytes(b"first")
        second = tmp_path / "b.mp4"
        second.write_bytes(b"second")
        cache = DiskMediaCache(tmp_path / "cache")
        cache.put("k", first)
        cache.put("k", second)
        assert cache.get("k").read_bytes() == b"second"

    def test_cache_key_is_stable(self):
        assert cache_key(BACKGROUND_URL) == cache_key(BACKGROUND_URL)
        assert cache_key(BACKGROUND_URL) != cache_key(VOICE_URL)
        assert len(cache_key(BACKGROUND_URL)) == 64


# ---------------------------------------------------------------------------
# MediaResolver
# ---------------------------------------------------------------------------


class TestMediaResolver:
    """MediaResolver picks local, cached or downloaded files."""

    def test_second_background_request_served_from_cache(self, tmp_path):
        requests = []
        cache = DiskMediaCache(tmp_path / "cache")

        async def run():
            async with httpx.AsyncClient(transport=_transport(requests)) as client:
                first_dir = tmp_path / "job1"
                first_dir.mkdir()
                async with MediaResolver(first_dir, cache, client) as resolver:
                    first = await resolver.resolve_background(BACKGROUND_URL)
                second_dir = tmp_path / "job2"
                second_dir.mkdir()
                async with MediaResolver(second_dir, cache, client) as resolver:
                    second = await resolver.resolve_background(BACKGROUND_URL)
                return first, second

        first, second = asyncio.run(run())

        assert requests == [BACKGROUND_URL]
        assert first.temporary is True
        assert second.temporary is False
        assert second.path == cache.path_for(cache_key(BACKGROUND_URL))
        assert first.path.read_bytes() == second.path.read_bytes()

    def test_local_paths_pass_through(self, tmp_path, media_files):
        requests = []

        async def run():
            async with httpx.AsyncClient(transport=_transport(requests)) as client:
                async with MediaResolver(tmp_path, None, client) as resolver:
                    bg = await resolver.resolve_background(str(media_files["background"]))
                    voice = await resolver.resolve_voice(str(media_files["voice"]))
                    return bg, voice

        bg, voice = asyncio.run(run())
        assert bg.path == media_files["background"]
        assert voice.path == media_files["voice"]
        assert not bg.temporary and not voice.temporary
        assert requests == []

    def test_voice_never_cached(self, tmp_path):
        requests = []
        cache = DiskMediaCache(tmp_path / "cache")

        async def run():
            async with httpx.AsyncClient(transport=_transport(requests)) as client:
                async with MediaResolver(tmp_path, cache, client) as resolver:
                    await resolver.resolve_voice(VOICE_URL)
                    return await resolver.resolve_voice(VOICE_URL)

        voice = asyncio.run(run())
        assert len(requests) == 2
        assert voice.temporary is True
        assert voice.path.parent == tmp_path
        assert voice.path.suffix == ".mp3"
        assert not (tmp_path / "cache").exists()

    def test_failed_cache_write_does_not_fail_resolve(self, tmp_path, caplog):
        async def run():
            async with httpx.AsyncClient(transport=_transport([])) as client:
                async with MediaResolver(tmp_path, _BrokenCache(), client) as resolver:
                    return await resolver.resolve_background(BACKGROUND_URL)

        with caplog.at_level(logging.WARNING, logger="recaps_renderer.media.resolver"):
            resolved = asyncio.run(run())

        assert resolved.temporary is True
        assert resolved.path.read_bytes() == b"video-bytes"
        assert "disk full" in caplog.text

    def test_download_error_propagates(self, tmp_path):
        async def run():
            async with httpx.AsyncClient(transport=_transport([], status_code=503)) as client:
                async with MediaResolver(tmp_path, None, client) as resolver:
                    await resolver.resolve_voice(VOICE_URL)

        with pytest.raises(DownloadError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.status_code == 503
        assert list(tmp_path.iterdir()) == []

    def test_requires_context_manager_for_downloads(self, tmp_path):
        resolver = MediaResolver(tmp_path)
        with pytest.raises(RuntimeError, match="async context manager"):
            asyncio.run(resolver.resolve_voice(VOICE_URL))

    def test_injected_client_left_open(self, tmp_path):
        async def run():
            client = httpx.AsyncClient(transport=_transport([]))
            async with MediaResolver(tmp_path, None, client):
                pass
            closed = client.is_closed
            await client.aclose()
            return closed

        assert asyncio.run(run()) is False
