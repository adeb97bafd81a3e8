"""Core caption timing modules.

WHY: The core package contains the algorithmic heart of the renderer —
the IR dataclasses and the caption chunker. Media, transcription and
FFmpeg glue all depend on it; it depends on nothing but settings.

HOW: ir.py defines the data structures, phrases.py holds the word
tables the grouping heuristic consults, chunker.py turns word streams
into non-overlapping caption chunks.

RULES:
- IR dataclasses are the contract — change with care
- Chunking is pure: no I/O, no clocks, no hidden randomness
"""
