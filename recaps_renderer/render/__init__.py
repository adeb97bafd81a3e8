"""Rendering: caption fallback chain, FFmpeg compositor, job orchestration."""
