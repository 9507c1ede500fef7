"""
Content metadata and manifest track models returned by the content resolver.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass
class AdditionalStream:
    """An alternative feed (onboard camera, data channel, international feed...)."""

    title: str
    channel_id: Optional[str] = None
    playback_url: Optional[str] = None
    reporting_name: Optional[str] = None
    racing_number: Optional[int] = None
    driver_tla: Optional[str] = None
    driver_name: Optional[str] = None
    stream_type: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "AdditionalStream":
        first = data.get("driverFirstName") or ""
        last = data.get("driverLastName") or ""
        number = data.get("racingNumber")
        return cls(
            title=data.get("title", ""),
            channel_id=str(data["channelId"]) if data.get("channelId") is not None else None,
            playback_url=data.get("playbackUrl"),
            reporting_name=data.get("reportingName"),
            racing_number=int(number) if number not in (None, "", 0) else None,
            driver_tla=data.get("title") if data.get("type") == "obc" else None,
            driver_name=f"{first} {last}".strip() or None,
            stream_type=data.get("type"),
        )


@dataclass
class ContentMetadata:
    """The subset of F1TV content metadata the downloader relies on."""

    id: str
    name: str
    title: str = ""
    content_subtype: str = ""
    additional_streams: Optional[list[AdditionalStream]] = None

    @property
    def is_race(self) -> bool:
        """Live sessions (race, qualifying, practice) carry multiple channels."""
        return self.content_subtype.upper() == "LIVE"

    @property
    def has_international_feed(self) -> bool:
        return any(
            s.title.upper() == "INTERNATIONAL" for s in self.additional_streams or []
        )


class TransportKind(str, Enum):
    HLS = "hls"  # index playlist, tracks addressed by program
    DASH = "dash"  # segmented manifest, tracks addressed by id


def detect_transport_kind(stream_url: str) -> TransportKind:
    return TransportKind.HLS if "m3u8" in stream_url else TransportKind.DASH


@dataclass
class VideoTrack:
    id: str
    width: int
    height: int
    bandwidth: int = 0
    program: int = 0
    audio_group: Optional[str] = None

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass
class AudioTrack:
    id: str
    language: str
    index: int = 0
    group_id: Optional[str] = None
    name: Optional[str] = None


@dataclass
class Manifest:
    kind: TransportKind
    video_tracks: list[VideoTrack] = field(default_factory=list)
    audio_tracks: list[AudioTrack] = field(default_factory=list)
