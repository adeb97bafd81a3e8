"""Caption formatter registry.

WHY: The CLI and API pick an output format by name. A central dict
makes adding one a single line.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["srt"]()``.

RULES:
- Keys are snake_case identifiers (used in CLI flags)
- Values are BaseFormatter subclasses (not instances)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from recaps_renderer.formatters.json_captions import CaptionJSONFormatter
from recaps_renderer.formatters.srt import SRTFormatter

if TYPE_CHECKING:
    from recaps_renderer.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "srt": SRTFormatter,
    "json": CaptionJSONFormatter,
}
