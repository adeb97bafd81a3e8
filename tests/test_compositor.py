"""Tests for FFmpeg composition (render/compositor.py).

WHY: The FFmpeg command line is long and easy to break: a wrong stream
label silently drops the audio, an unescaped colon in the subtitle path
kills the whole filter graph. The process runner must also never leave
a zombie FFmpeg behind on timeout or cancellation.

HOW: Argument builders are asserted on directly. run_process() is
exercised with the current Python interpreter standing in for FFmpeg,
so timeouts and kills are real. Compositor and probe_duration get the
FakeRunner from conftest.

RULES:
- FFmpeg itself is never required
- Subprocess tests keep their timeouts short
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

from recaps_renderer import config
from recaps_renderer.config import CORNER_EMOJIS, RenderSettings, TextOverlay, VideoSettings
from recaps_renderer.errors import (
    CompositorError,
    CompositorTimeoutError,
    RenderCancelledError,
)
from recaps_renderer.render.compositor import (
    Compositor,
    ProcessResult,
    build_drawtext,
    build_ffmpeg_args,
    build_filter_graph,
    build_force_style,
    escape_filter_path,
    probe_duration,
    run_process,
)


def _value_after(args, flag):
    return args[args.index(flag) + 1]


# ---------------------------------------------------------------------------
# Argument building
# ---------------------------------------------------------------------------


class TestFilterGraph:
    """build_filter_graph() and its helpers."""

    def test_escape_filter_path(self):
        assert escape_filter_path("captions.srt") == "captions.srt"
        assert escape_filter_path("C:\\clips\\it's.srt") == r"C\:/clips/it\'s.srt"

    def test_force_style(self):
        assert build_force_style(VideoSettings()) == (
            "FontName=Arial Black,FontSize=32,PrimaryColour=&Hffffff,"
            "OutlineColour=&H000000,Outline=3,Shadow=2,Bold=1,Alignment=2,MarginV=100"
        )

    def test_video_chain(self):
        graph = build_filter_graph(VideoSettings(), "captions_job.srt")
        assert graph.startswith("[0:v]scale=1080:1920:force_original_aspect_ratio=decrease,")
        assert "pad=1080:1920:(ow-iw)/2:(oh-ih)/2:black" in graph
        assert "fps=30" in graph
        assert "subtitles=captions_job.srt:force_style='FontName=Arial Black," in graph
        assert "[video_out]" in graph

    def test_audio_chain(self):
        graph = build_filter_graph(VideoSettings(), "c.srt")
        assert "[1:a]volume=1.0[voice_audio]" in graph
        assert "[0:a]volume=0.2[bg_audio]" in graph
        assert "amix=inputs=2:duration=first" in graph
        assert graph.endswith("[audio_out]")

    def test_custom_frame(self):
        graph = build_filter_graph(VideoSettings(width=720, height=1280, fps=24), "c.srt")
        assert "scale=720:1280" in graph
        assert "fps=24" in graph

    def test_no_overlays_by_default(self):
        assert "drawtext" not in build_filter_graph(VideoSettings(), "c.srt")

    def test_corner_emojis_drawn_after_subtitles(self):
        graph = build_filter_graph(VideoSettings(overlays=CORNER_EMOJIS), "c.srt")
        assert (
            "MarginV=100',"
            "drawtext=text='\U0001F525':fontsize=32:fontcolor=white:x=60:y=100:alpha=0.8,"
            "drawtext=text='⚡':fontsize=32:fontcolor=white:x=w-100:y=100:alpha=0.8"
            "[video_out]"
        ) in graph

    def test_overlay_text_escaped(self):
        assert build_drawtext(TextOverlay("it's 9:00", "0", "0")).startswith(
            r"drawtext=text='it\'s 9\:00'"
        )

    def test_env_switch_enables_emojis(self, monkeypatch):
        monkeypatch.setattr(config, "EMOJI_OVERLAYS", True)
        assert RenderSettings.from_env().video.overlays == CORNER_EMOJIS
        monkeypatch.setattr(config, "EMOJI_OVERLAYS", False)
        assert RenderSettings.from_env().video.overlays == ()


class TestFfmpegArgs:
    """build_ffmpeg_args() produces one complete command line."""

    def _args(self, **overrides):
        settings = RenderSettings(**overrides)
        return build_ffmpeg_args(
            settings,
            background="/abs/bg.mp4",
            voice="/abs/voice.mp3",
            subtitle_ref="captions.srt",
            duration=12.5,
            output="/abs/out.mp4",
        )

    def test_binary_and_output(self):
        args = self._args(ffmpeg_binary="/opt/ffmpeg/bin/ffmpeg")
        assert args[0] == "/opt/ffmpeg/bin/ffmpeg"
        assert args[-1] == "/abs/out.mp4"
        assert "-y" in args

    def test_background_loops_before_its_input(self):
        args = self._args()
        loop = args.index("-stream_loop")
        assert args[loop + 1] == "-1"
        assert args[loop + 2:loop + 4] == ["-i", "/abs/bg.mp4"]
        assert args[loop + 4:loop + 6] == ["-i", "/abs/voice.mp3"]

    def test_duration_cap(self):
        assert _value_after(self._args(), "-t") == "12.500"

    def test_encoder_settings(self):
        args = self._args()
        assert _value_after(args, "-c:v") == "libx264"
        assert _value_after(args, "-preset") == "fast"
        assert _value_after(args, "-crf") == "23"
        assert _value_after(args, "-r") == "30"
        assert _value_after(args, "-pix_fmt") == "yuv420p"
        assert _value_after(args, "-c:a") == "aac"
        assert _value_after(args, "-b:a") == "128k"
        assert _value_after(args, "-ar") == "44100"

    def test_maps_filter_outputs(self):
        args = self._args()
        maps = [args[i + 1] for i, a in enumerate(args) if a == "-map"]
        assert maps == ["[video_out]", "[audio_out]"]


# ---------------------------------------------------------------------------
# run_process
# ---------------------------------------------------------------------------


class TestRunProcess:
    """run_process() with a real child process."""

    def test_captures_exit_code_and_streams(self):
        code = "import sys; print('out'); sys.stderr.write('bad input'); sys.exit(3)"
        result = asyncio.run(run_process([sys.executable, "-c", code]))
        assert result.exit_code == 3
        assert result.stdout.strip() == "out"
        assert result.stderr == "bad input"

    def test_success(self):
        result = asyncio.run(run_process([sys.executable, "-c", "pass"], timeout=30))
        assert result.exit_code == 0

    def test_cwd(self, tmp_path):
        code = "import os; print(os.getcwd())"
        result = asyncio.run(run_process([sys.executable, "-c", code], cwd=tmp_path))
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()

    def test_timeout_kills_process(self):
        args = [sys.executable, "-c", "import time; time.sleep(30)"]
        with pytest.raises(CompositorTimeoutError, match="timed out"):
            asyncio.run(run_process(args, timeout=0.5))

    def test_cancel_event_kills_process(self):
        args = [sys.executable, "-c", "import time; time.sleep(30)"]

        async def run():
            cancel_event = asyncio.Event()
            asyncio.get_running_loop().call_later(0.3, cancel_event.set)
            await run_process(args, cancel_event=cancel_event, timeout=20)

        with pytest.raises(RenderCancelledError):
            asyncio.run(run())

    def test_task_cancellation_kills_process(self):
        args = [sys.executable, "-c", "import time; time.sleep(30)"]

        async def run():
            task = asyncio.ensure_future(run_process(args))
            await asyncio.sleep(0.3)
            task.cancel()
            await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(run())

    def test_missing_binary(self, tmp_path):
        with pytest.raises(CompositorError, match="Could not start"):
            asyncio.run(run_process([str(tmp_path / "no-such-ffmpeg")]))


# ---------------------------------------------------------------------------
# Compositor
# ---------------------------------------------------------------------------


class TestCompositor:
    """Compositor.compose() wires paths, cwd and timeout into the runner."""

    def _paths(self, tmp_path):
        work = tmp_path / "work dir"
        work.mkdir()
        subtitle = work / "captions_abc.srt"
        subtitle.write_text("1\n00:00:00,000 --> 00:00:01,000\nHI\n", encoding="utf-8")
        return tmp_path / "bg.mp4", tmp_path / "voice.mp3", subtitle, tmp_path / "out.mp4"

    def test_compose_success(self, tmp_path, fake_runner, render_settings):
        background, voice, subtitle, output = self._paths(tmp_path)
        compositor = Compositor(render_settings, runner=fake_runner)

        result = asyncio.run(compositor.compose(background, voice, subtitle, 10.0, output))

        assert result == output
        assert output.read_bytes() == b"rendered-mp4"
        call = fake_runner.calls[0]
        assert call["cwd"] == subtitle.parent.resolve()
        assert call["timeout"] == render_settings.timeout_s
        assert "subtitles=captions_abc.srt:" in _value_after(call["args"], "-filter_complex")
        assert str(subtitle) not in " ".join(call["args"])
        assert _value_after(call["args"], "-t") == "10.000"

    def test_paths_made_absolute(self, tmp_path, fake_runner, render_settings, monkeypatch):
        background, voice, subtitle, output = self._paths(tmp_path)
        monkeypatch.chdir(tmp_path)
        compositor = Compositor(render_settings, runner=fake_runner)

        asyncio.run(compositor.compose(Path("bg.mp4"), Path("voice.mp3"), subtitle, 5.0, Path("out.mp4")))

        args = fake_runner.calls[0]["args"]
        inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
        assert all(Path(p).is_absolute() for p in inputs)
        assert Path(args[-1]).is_absolute()

    def test_non_zero_exit(self, tmp_path, runner_factory, render_settings):
        background, voice, subtitle, output = self._paths(tmp_path)
        runner = runner_factory(exit_code=1, stderr="Invalid data found when processing input\n")
        compositor = Compositor(render_settings, runner=runner)

        with pytest.raises(CompositorError) as exc_info:
            asyncio.run(compositor.compose(background, voice, subtitle, 10.0, output))

        assert exc_info.value.exit_code == 1
        assert "Invalid data found" in exc_info.value.stderr
        assert "Invalid data found" in str(exc_info.value)
        assert not output.exists()


# ---------------------------------------------------------------------------
# probe_duration
# ---------------------------------------------------------------------------


class TestProbeDuration:

    def _runner(self, result):
        calls = []

        async def runner(args, cwd=None, cancel_event=None, timeout=None):
            calls.append(args)
            return result

        return runner, calls

    def test_parses_duration(self):
        runner, calls = self._runner(ProcessResult(0, stdout="12.345000\n"))
        duration = asyncio.run(probe_duration(Path("voice.mp3"), "ffprobe", runner=runner))
        assert duration == pytest.approx(12.345)
        assert calls[0][0] == "ffprobe"
        assert calls[0][-1] == "voice.mp3"

    def test_failure(self):
        runner, _ = self._runner(ProcessResult(1, stderr="No such file"))
        with pytest.raises(CompositorError, match="No such file"):
            asyncio.run(probe_duration(Path("missing.mp3"), runner=runner))

    def test_unparseable_output(self):
        runner, _ = self._runner(ProcessResult(0, stdout="N/A\n"))
        with pytest.raises(CompositorError, match="no duration"):
            asyncio.run(probe_duration(Path("voice.mp3"), runner=runner))
