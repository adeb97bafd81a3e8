"""Abstract base formatter and output container.

WHY: Caption chunks end up in more than one place: the SRT file FFmpeg
burns in, and JSON for the preview endpoint and the CLI. A shared
interface lets the CLI and API pick a formatter by name.

HOW: BaseFormatter is an ABC with a ``name`` property and a
``format()`` method. FormatterOutput bundles a file suffix with its
content and MIME type.

RULES:
- Subclasses MUST implement ``name`` and ``format()``
- ``suffix`` starts with a dot or hyphen, e.g. ``".srt"``
- The caller prepends the output stem
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from recaps_renderer.core.ir import CaptionChunk


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: Appended to the output stem, e.g. ``".srt"``.
        content: File content as a string.
        media_type: MIME type, e.g. ``"application/x-subrip"``.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for caption formatters.

    To add a new output format:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement format() and name
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'SubRip captions'."""

    @abstractmethod
    def format(self, chunks: Sequence[CaptionChunk], duration: float) -> FormatterOutput:
        """Render timed caption chunks into one output file.

        Args:
            chunks: Ordered, non-overlapping caption chunks.
            duration: Total video duration in seconds (used for stats).
        """
