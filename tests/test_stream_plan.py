import asyncio

import pytest
from conftest import (
    INTERNATIONAL_HLS,
    PRIMARY_HLS,
    FakeResolver,
    dash_manifest,
    hls_manifest,
    race_content,
)

from f1tv_dl.core.stream_plan import (
    StreamPlanBuilder,
    StreamSelection,
    find_channel,
    select_video,
)
from f1tv_dl.exceptions import TrackNotFoundError, UnsupportedContentError
from f1tv_dl.models.content import ContentMetadata, TransportKind

PRIMARY_DASH = "https://f1tv.example/primary/manifest.mpd"
INTERNATIONAL_DASH = "https://f1tv.example/international/manifest.mpd"


def build(resolver, content, **selection):
    return asyncio.run(StreamPlanBuilder(resolver).build_plan(content, StreamSelection(**selection)))


def test_find_channel_by_title_number_code_and_name():
    streams = race_content().additional_streams
    assert find_channel(streams, "international").title == "INTERNATIONAL"
    assert find_channel(streams, "1").title == "VER"
    assert find_channel(streams, "ver").title == "VER"
    assert find_channel(streams, "Max Verstappen").title == "VER"
    assert find_channel(streams, "verstappen").title == "VER"
    with pytest.raises(TrackNotFoundError):
        find_channel(streams, "HAM")


def test_select_video_best_and_exact():
    manifest = hls_manifest()
    assert select_video(manifest, "best").resolution == "1920x1080"
    assert select_video(manifest, "1280x720").program == 1
    with pytest.raises(TrackNotFoundError):
        select_video(manifest, "3840x2160")


def test_race_without_channel_defaults_to_main_feed():
    resolver = FakeResolver()
    plan = build(resolver, race_content())

    assert resolver.stream_calls == ["1001"]
    assert plan.kind is TransportKind.HLS
    assert plan.output_maps == ["0:p:2:v", "0:p:2:a:0"]
    assert plan.inputs[0].url == PRIMARY_HLS


def test_channel_id_is_dropped_when_playback_url_is_not_channel_addressed():
    resolver = FakeResolver()
    build(resolver, race_content(), channel="DATA")
    assert resolver.stream_calls == [None]


def test_content_without_additional_streams_uses_main_url():
    resolver = FakeResolver()
    content = ContentMetadata(id="1", name="show", content_subtype="REPLAY")
    plan = build(resolver, content, channel="F1 LIVE")
    assert resolver.stream_calls == [None]
    assert len(plan.inputs) == 1


def test_mp4_copies_streams_with_adts_filter():
    plan = build(FakeResolver(), race_content(), container="mp4")
    assert plan.codec_options == [
        "-c:v", "copy", "-c:a", "copy", "-bsf:a", "aac_adtstoasc", "-movflags", "faststart",
    ]

    ts_plan = build(FakeResolver(), race_content(), container="ts")
    assert "-bsf:a" not in ts_plan.codec_options


def test_secondary_audio_adds_offset_input_and_second_audio_map():
    resolver = FakeResolver(stream_urls={"1001": PRIMARY_HLS, "1002": INTERNATIONAL_HLS})
    plan = build(resolver, race_content(), secondary_audio_language="nld", offset="-00:00:04.750")

    assert len(plan.inputs) == 2
    assert plan.inputs[1].url == INTERNATIONAL_HLS
    assert plan.inputs[1].input_options[-2:] == ["-itsoffset", "-00:00:04.750"]
    assert plan.output_offset == "-00:00:04.750"
    assert plan.audio_maps == ["0:p:2:a:0", "1:p:0:a:1"]
    # HLS opens the lowest international variant and maps its video too.
    assert plan.output_maps == ["0:p:2:v", "0:p:2:a:0", "1:p:0:v", "1:p:0:a:1"]

    options = plan.codec_options
    assert options[options.index("-disposition:a:0") + 1] == "default"
    assert options[options.index("-disposition:a:1") + 1] == "0"
    assert "language=nld" in options


def test_english_secondary_audio_is_labelled_sky():
    resolver = FakeResolver(stream_urls={"1002": INTERNATIONAL_HLS})
    plan = build(resolver, race_content(), secondary_audio_language="eng")
    assert plan.secondary_audio.language == "Sky"


def test_dash_plan_addresses_tracks_by_id():
    resolver = FakeResolver(
        stream_urls={"1001": PRIMARY_DASH, "1002": INTERNATIONAL_DASH},
        manifests={PRIMARY_DASH: dash_manifest(), INTERNATIONAL_DASH: dash_manifest()},
    )
    plan = build(resolver, race_content(), secondary_audio_language="nld")

    assert plan.kind is TransportKind.DASH
    assert plan.output_maps == [
        "0:v:m:id:video=1080",
        "0:a:m:id:audio_eng=128000",
        "1:a:m:id:audio_nld=128000",
    ]


def test_secondary_audio_requires_live_content():
    content = race_content(content_subtype="REPLAY")
    with pytest.raises(UnsupportedContentError):
        build(FakeResolver(), content, secondary_audio_language="nld")


def test_secondary_audio_requires_international_feed():
    content = race_content(additional_streams=race_content().additional_streams[:1])
    with pytest.raises(UnsupportedContentError):
        build(FakeResolver(), content, secondary_audio_language="nld")


def test_missing_audio_language_raises_track_not_found():
    with pytest.raises(TrackNotFoundError):
        build(FakeResolver(), race_content(), audio_language="jpn")
