"""Typed failures for a render job.

WHY: The render orchestrator reports exactly one terminal outcome to its
caller. Callers (CLI, HTTP API, batch runner) need to tell a dead
download apart from an FFmpeg crash without parsing messages, and the
diagnostics (URL, HTTP status, FFmpeg stderr) have to travel with the
exception.

HOW: A small hierarchy rooted at RenderError. Each class carries the
fields a caller needs for diagnostics as attributes.

RULES:
- DownloadError, CaptionGenerationError, CompositorError are fatal
- TranscriptionError is recovered locally by the caption fallback chain
- Cleanup and cache failures are never exceptions — they are logged
"""

from __future__ import annotations


class RenderError(Exception):
    """Base class for every fatal render outcome."""


class DownloadError(RenderError):
    """Raised when a remote asset cannot be fetched.

    RULES:
    - url is always set
    - status_code is None for network-level failures (DNS, reset, timeout)
    """

    def __init__(self, url: str, status_code: int | None = None, reason: str = "") -> None:
        self.url = url
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            message = f"Failed to download {url}: HTTP {status_code}"
        else:
            message = f"Failed to download {url}: {reason or 'network error'}"
        super().__init__(message)


class TranscriptionError(RenderError):
    """Raised when the speech-to-text collaborator yields no usable words."""


class CaptionGenerationError(RenderError):
    """Raised when every caption strategy failed or produced nothing.

    RULES:
    - attempts lists (mode, reason) for each strategy that was tried
    """

    def __init__(self, message: str, attempts: list[tuple[str, str]] | None = None) -> None:
        self.attempts = list(attempts or [])
        if self.attempts:
            details = "; ".join(f"{mode}: {reason}" for mode, reason in self.attempts)
            message = f"{message} ({details})"
        super().__init__(message)


class CompositorError(RenderError):
    """Raised when the FFmpeg process exits non-zero.

    RULES:
    - exit_code is the process return code (None if it never finished)
    - stderr is the captured error stream, included in the message
    """

    def __init__(self, message: str, exit_code: int | None = None, stderr: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        if stderr:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class CompositorTimeoutError(CompositorError):
    """Raised when the compositor exceeds the per-render timeout."""


class RenderCancelledError(RenderError):
    """Raised when the caller aborts a running render."""
