import asyncio
import base64
import json
from dataclasses import replace
from typing import Optional

import pytest

from f1tv_dl.models.content import (
    AdditionalStream,
    AudioTrack,
    ContentMetadata,
    Manifest,
    TransportKind,
    VideoTrack,
)
from f1tv_dl.models.job import JobProgress
from f1tv_dl.utils.url import get_content_params

RACE_URL = "https://f1tv.formula1.com/detail/1000005104/2023-bahrain-grand-prix"
PRIMARY_HLS = "https://f1tv.example/primary/index.m3u8"
INTERNATIONAL_HLS = "https://f1tv.example/international/index.m3u8"


def make_jwt(payload: dict) -> str:
    def segment(data: dict) -> str:
        raw = json.dumps(data).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    return f"{segment({'alg': 'HS256', 'typ': 'JWT'})}.{segment(payload)}.signature"


def hls_manifest() -> Manifest:
    return Manifest(
        kind=TransportKind.HLS,
        video_tracks=[
            VideoTrack("0", 480, 270, 800_000, program=0, audio_group="aac"),
            VideoTrack("1", 1280, 720, 3_000_000, program=1, audio_group="aac"),
            VideoTrack("2", 1920, 1080, 6_000_000, program=2, audio_group="aac"),
        ],
        audio_tracks=[
            AudioTrack("0", "eng", 0, "aac"),
            AudioTrack("1", "nld", 1, "aac"),
            AudioTrack("2", "deu", 2, "aac"),
        ],
    )


def dash_manifest() -> Manifest:
    return Manifest(
        kind=TransportKind.DASH,
        video_tracks=[
            VideoTrack("video=1080", 1920, 1080, 6_000_000),
            VideoTrack("video=270", 480, 270, 800_000),
        ],
        audio_tracks=[
            AudioTrack("audio_eng=128000", "eng", 0),
            AudioTrack("audio_nld=128000", "nld", 1),
        ],
    )


def race_content(**overrides) -> ContentMetadata:
    content = ContentMetadata(
        id="1000005104",
        name="2023-bahrain-grand-prix",
        title="Race",
        content_subtype="LIVE",
        additional_streams=[
            AdditionalStream(title="F1 LIVE", channel_id="1001", playback_url="CONTENT/PLAY?channelId=1001"),
            AdditionalStream(title="INTERNATIONAL", channel_id="1002", playback_url="CONTENT/PLAY?channelId=1002"),
            AdditionalStream(
                title="VER",
                channel_id="1033",
                playback_url="CONTENT/PLAY?channelId=1033",
                reporting_name="VERSTAPPEN",
                racing_number=1,
                driver_tla="VER",
                driver_name="Max Verstappen",
                stream_type="obc",
            ),
            AdditionalStream(title="DATA", channel_id="1050", playback_url="CONTENT/PLAY?contentId=1"),
        ],
    )
    return replace(content, **overrides)


class FakeResolver:
    """In-memory ContentResolver with scriptable failures per URL."""

    def __init__(
        self,
        content: Optional[ContentMetadata] = None,
        stream_urls: Optional[dict] = None,
        manifests: Optional[dict] = None,
    ):
        self.content = content or ContentMetadata(
            id="1", name="", content_subtype="REPLAY", additional_streams=None
        )
        self.stream_urls = stream_urls or {}
        self.manifests = manifests or {}
        self.failures: dict[str, list[BaseException]] = {}
        self.content_calls: list[str] = []
        self.stream_calls: list[Optional[str]] = []

    def fail(self, url: str, *errors: BaseException) -> None:
        self.failures.setdefault(url, []).extend(errors)

    async def get_content_info(self, url: str) -> ContentMetadata:
        self.content_calls.append(url)
        pending = self.failures.get(url)
        if pending:
            raise pending.pop(0)
        return replace(self.content, name=get_content_params(url).name)

    async def get_stream_url(self, content, channel_id=None) -> str:
        self.stream_calls.append(channel_id)
        return self.stream_urls.get(channel_id, PRIMARY_HLS)

    async def get_manifest(self, stream_url: str) -> Manifest:
        return self.manifests.get(stream_url) or hls_manifest()


class FakeMuxer:
    """Records plans and reports a little progress instead of running ffmpeg."""

    def __init__(self, duration: float = 0.0, on_run=None):
        self.duration = duration
        self.on_run = on_run
        self.runs = []

    async def run(self, plan, output_path, on_progress=None):
        self.runs.append((plan, output_path))
        if self.on_run:
            self.on_run(plan, output_path)
        if on_progress:
            on_progress(JobProgress(percent=50, frames=10, fps=25.0))
        await asyncio.sleep(self.duration)
        if on_progress:
            on_progress(JobProgress(percent=100, frames=20, fps=25.0))


class FakeChecker:
    """Liveness checker accepting a fixed set of tokens."""

    def __init__(self, valid=()):
        self.valid = set(valid)
        self.checked: list[str] = []

    async def check_token(self, token: str) -> bool:
        self.checked.append(token)
        return token in self.valid


class FakeAcquirer:
    """TokenAcquirer returning scripted results; exceptions are raised."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def acquire(self, username: str, password: str) -> str:
        self.calls += 1
        result = self.results.pop(0) if self.results else None
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def muxer():
    return FakeMuxer()
