import asyncio
from pathlib import Path

import pytest

from f1tv_dl.exceptions import ConfigurationError
from f1tv_dl.media.muxer import FFmpegMuxer, ProgressParser, build_command
from f1tv_dl.models.content import TransportKind
from f1tv_dl.models.plan import PlanInput, TrackRef, TransportPlan


def make_plan():
    return TransportPlan(
        kind=TransportKind.HLS,
        primary_video=TrackRef(0, "0:p:2:v", "2"),
        primary_audio=TrackRef(0, "0:p:2:a:0", "0", "eng"),
        inputs=[PlanInput("https://x/index.m3u8", ["-probesize", "24M"])],
        output_maps=["0:p:2:v", "0:p:2:a:0"],
        codec_options=["-c:v", "copy", "-c:a", "copy"],
    )


def test_build_command_orders_inputs_maps_and_output():
    cmd = build_command("ffmpeg", make_plan(), Path("out.mp4"))

    assert cmd[:5] == ["ffmpeg", "-hide_banner", "-nostats", "-progress", "pipe:1"]
    assert cmd[5:9] == ["-probesize", "24M", "-i", "https://x/index.m3u8"]
    assert cmd[9:13] == ["-map", "0:p:2:v", "-map", "0:p:2:a:0"]
    assert cmd[-2:] == ["-y", "out.mp4"]


def test_progress_parser_reports_on_progress_lines():
    parser = ProgressParser()
    parser.feed_stderr("  Duration: 00:01:40.00, start: 0.000000, bitrate: N/A")

    for line in ("frame=250", "fps=50.0", "bitrate=4000.5kbits/s", "out_time=00:00:50.000000"):
        assert parser.feed(line) is None
    snapshot = parser.feed("progress=continue")

    assert snapshot.percent == 50
    assert snapshot.frames == 250
    assert snapshot.fps == 50.0
    assert snapshot.bitrate == 4000.5
    assert snapshot.duration == 100.0

    final = parser.feed("progress=end")
    assert parser.finished
    assert final.percent == 100


def test_progress_parser_ignores_unavailable_values():
    parser = ProgressParser()
    assert parser.feed("out_time=N/A") is None
    assert parser.feed("garbage") is None
    assert parser.feed("progress=continue").percent == 0


def test_missing_ffmpeg_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr("f1tv_dl.media.muxer.shutil.which", lambda name: None)
    with pytest.raises(ConfigurationError):
        asyncio.run(FFmpegMuxer("ffmpeg-missing").run(make_plan(), Path("out.mp4")))
