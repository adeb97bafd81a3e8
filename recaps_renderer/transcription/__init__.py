"""Speech-to-text fallback for voice-overs without word timings.

WHY: Precise captions need per-word timestamps. TTS providers with
alignment supply them directly; for everything else the voice-over is
transcribed with Soniox and the timings recovered from its tokens.

HOW: client.py speaks the Soniox HTTP API, models.py types its
responses, words.py turns BPE tokens into WordTimestamp objects, and
transcriber.py exposes the one-method Transcriber protocol the render
pipeline depends on.
"""
