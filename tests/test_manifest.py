import pytest

from f1tv_dl.exceptions import TransientTransportError
from f1tv_dl.media.manifest import parse_dash_mpd, parse_hls_master, parse_manifest
from f1tv_dl.models.content import TransportKind

HLS_MASTER = """#EXTM3U
#EXT-X-VERSION:4
#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aac",LANGUAGE="eng",NAME="English",DEFAULT=YES,AUTOSELECT=YES,URI="eng.m3u8"
#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aac",LANGUAGE="nld",NAME="Nederlands",URI="nld.m3u8"
#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="aac-low",LANGUAGE="eng",NAME="English",URI="eng-low.m3u8"
#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=480x270,AUDIO="aac-low"
270.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=6000000,RESOLUTION=1920x1080,AUDIO="aac"
1080.m3u8
"""

MEDIA_PLAYLIST = """#EXTM3U
#EXT-X-TARGETDURATION:6
#EXTINF:6.0,
segment0.ts
#EXT-X-ENDLIST
"""

DASH_MPD = """<?xml version="1.0" encoding="UTF-8"?>
<MPD xmlns="urn:mpeg:dash:schema:mpd:2011" type="static">
  <Period id="0">
    <AdaptationSet contentType="video" mimeType="video/mp4">
      <Representation id="video=6000000" bandwidth="6000000" width="1920" height="1080"/>
      <Representation id="video=800000" bandwidth="800000" width="480" height="270"/>
    </AdaptationSet>
    <AdaptationSet mimeType="audio/mp4" lang="eng">
      <Representation id="audio_eng=128000" bandwidth="128000"/>
    </AdaptationSet>
    <AdaptationSet mimeType="audio/mp4" lang="NLD">
      <Representation id="audio_nld=128000" bandwidth="128000"/>
    </AdaptationSet>
  </Period>
</MPD>
"""


def test_hls_variants_become_programs():
    manifest = parse_hls_master(HLS_MASTER, "https://f1tv.example/index.m3u8")

    assert manifest.kind is TransportKind.HLS
    assert [(t.program, t.resolution, t.audio_group) for t in manifest.video_tracks] == [
        (0, "480x270", "aac-low"),
        (1, "1920x1080", "aac"),
    ]


def test_hls_audio_is_indexed_within_its_group():
    manifest = parse_hls_master(HLS_MASTER)

    assert [(t.group_id, t.language, t.index) for t in manifest.audio_tracks] == [
        ("aac", "eng", 0),
        ("aac", "nld", 1),
        ("aac-low", "eng", 0),
    ]


def test_hls_media_playlist_is_rejected():
    with pytest.raises(TransientTransportError):
        parse_hls_master(MEDIA_PLAYLIST)


def test_dash_representations_keep_their_ids():
    manifest = parse_dash_mpd(DASH_MPD)

    assert manifest.kind is TransportKind.DASH
    assert [(t.id, t.resolution) for t in manifest.video_tracks] == [
        ("video=6000000", "1920x1080"),
        ("video=800000", "480x270"),
    ]
    assert [(t.id, t.language) for t in manifest.audio_tracks] == [
        ("audio_eng=128000", "eng"),
        ("audio_nld=128000", "nld"),
    ]


def test_malformed_dash_raises_transient_error():
    with pytest.raises(TransientTransportError):
        parse_dash_mpd("<MPD><Period>")


def test_parse_manifest_picks_format_from_url():
    assert parse_manifest(HLS_MASTER, "https://x/index.m3u8?token=1").kind is TransportKind.HLS
    assert parse_manifest(DASH_MPD, "https://x/manifest.mpd").kind is TransportKind.DASH
