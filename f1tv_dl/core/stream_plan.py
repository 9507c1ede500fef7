"""
Builds the ffmpeg transport plan for a download: which inputs to open, which
tracks to map, and how to copy them into the output container.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from f1tv_dl.api.resolver import ContentResolver
from f1tv_dl.exceptions import TrackNotFoundError, UnsupportedContentError
from f1tv_dl.models.config import DEFAULT_ITSOFFSET, JobConfig
from f1tv_dl.models.content import (
    AdditionalStream,
    AudioTrack,
    ContentMetadata,
    Manifest,
    TransportKind,
    VideoTrack,
    detect_transport_kind,
)
from f1tv_dl.models.plan import PlanInput, TrackRef, TransportPlan

log = logging.getLogger(__name__)

DEFAULT_RACE_CHANNEL = "F1 LIVE"
INTERNATIONAL_CHANNEL = "INTERNATIONAL"

# The international feed only contributes audio, so its lowest variant is enough.
SECONDARY_REFERENCE_RESOLUTION = "480x270"

BASE_INPUT_OPTIONS = ["-probesize", "24M", "-analyzeduration", "6M", "-rtbufsize", "2147M"]

# Display labels for international commentary tracks.
SECONDARY_LANGUAGE_ALIASES = {"eng": "Sky"}


@dataclass
class StreamSelection:
    """What the user asked for, independent of how the content is delivered."""

    channel: Optional[str] = None
    audio_language: str = "eng"
    video_size: str = "best"
    container: str = "mp4"
    secondary_audio_language: Optional[str] = None
    offset: str = DEFAULT_ITSOFFSET

    @classmethod
    def from_job_config(cls, config: JobConfig) -> "StreamSelection":
        return cls(
            channel=config.channel,
            audio_language=config.audio_stream,
            video_size=config.video_size,
            container=config.format,
            secondary_audio_language=config.international_audio,
            offset=config.itsoffset,
        )


def secondary_language_label(language: str) -> str:
    return SECONDARY_LANGUAGE_ALIASES.get(language, language)


def find_channel(streams: list[AdditionalStream], selector: str) -> AdditionalStream:
    """
    Finds a channel by title or reporting name, driver racing number, driver
    three-letter code, or driver full name. Matching is case-insensitive.
    """
    wanted = selector.strip().upper()
    number = int(wanted) if wanted.isdigit() else None
    for stream in streams:
        names = (stream.title, stream.reporting_name, stream.driver_tla, stream.driver_name)
        if any(name and name.upper() == wanted for name in names):
            return stream
        if number is not None and stream.racing_number == number:
            return stream
    available = ", ".join(s.title for s in streams)
    raise TrackNotFoundError(f"No channel matching '{selector}'. Available: {available}")


def select_video(manifest: Manifest, video_size: str) -> VideoTrack:
    """Picks the highest variant for ``best``, otherwise an exact WIDTHxHEIGHT match."""
    if not manifest.video_tracks:
        raise TrackNotFoundError("The stream has no video tracks.")
    if video_size == "best":
        return max(manifest.video_tracks, key=lambda t: (t.height, t.width, t.bandwidth))
    matches = [t for t in manifest.video_tracks if t.resolution == video_size]
    if not matches:
        available = ", ".join(sorted({t.resolution for t in manifest.video_tracks}))
        raise TrackNotFoundError(
            f"No video track at {video_size}. Available: {available}"
        )
    return max(matches, key=lambda t: t.bandwidth)


def select_audio(manifest: Manifest, language: str, video: VideoTrack) -> AudioTrack:
    """Picks the audio track for a language; for HLS only the variant's group counts."""
    candidates = manifest.audio_tracks
    if manifest.kind is TransportKind.HLS and video.audio_group is not None:
        candidates = [t for t in candidates if t.group_id == video.audio_group]
    for track in candidates:
        if track.language == language.lower():
            return track
    available = ", ".join(sorted({t.language for t in candidates if t.language}))
    raise TrackNotFoundError(
        f"No '{language}' audio track. Available: {available or 'none'}"
    )


def video_selector(kind: TransportKind, input_index: int, video: VideoTrack) -> str:
    if kind is TransportKind.DASH:
        return f"{input_index}:v:m:id:{video.id}"
    return f"{input_index}:p:{video.program}:v"


def audio_selector(
    kind: TransportKind, input_index: int, video: VideoTrack, audio: AudioTrack
) -> str:
    if kind is TransportKind.DASH:
        return f"{input_index}:a:m:id:{audio.id}"
    return f"{input_index}:p:{video.program}:a:{audio.index}"


class StreamPlanBuilder:
    """Turns content metadata and a selection into a TransportPlan."""

    def __init__(self, resolver: ContentResolver):
        self._resolver = resolver

    async def resolve_stream_url(
        self, content: ContentMetadata, channel: Optional[str] = None
    ) -> str:
        """
        Gets the playback URL for the requested channel. Race content defaults
        to the main broadcast channel; the channel id is only sent when the
        channel's playback URL is channel-addressed.
        """
        if content.additional_streams is None:
            return await self._resolver.get_stream_url(content)

        if channel is None and content.is_race:
            channel = DEFAULT_RACE_CHANNEL
        if channel is None:
            return await self._resolver.get_stream_url(content)

        stream = find_channel(content.additional_streams, channel)
        channel_id = stream.channel_id
        if stream.playback_url is not None and "channelId" not in stream.playback_url:
            channel_id = None
        log.debug(f"Resolved channel '{channel}' -> '{stream.title}' (id={channel_id})")
        return await self._resolver.get_stream_url(content, channel_id)

    async def build_plan(
        self, content: ContentMetadata, selection: StreamSelection
    ) -> TransportPlan:
        """
        Raises:
            UnsupportedContentError: Secondary audio requested for content
                without an international feed.
            TrackNotFoundError: No channel/video/audio track matches.
        """
        wants_secondary = selection.secondary_audio_language is not None
        if wants_secondary and not (content.is_race and content.has_international_feed):
            raise UnsupportedContentError(
                "International commentary is only available for live sessions "
                f"with an international feed; '{content.name}' has none."
            )

        primary_url = await self.resolve_stream_url(content, selection.channel)
        kind = detect_transport_kind(primary_url)
        if kind is TransportKind.DASH:
            log.info("Using DASH.")
        manifest = await self._resolver.get_manifest(primary_url)

        video = select_video(manifest, selection.video_size)
        audio = select_audio(manifest, selection.audio_language, video)
        primary_video = TrackRef(0, video_selector(kind, 0, video), video.id)
        primary_audio = TrackRef(
            0, audio_selector(kind, 0, video, audio), audio.id, audio.language
        )

        inputs = [PlanInput(primary_url, list(BASE_INPUT_OPTIONS))]
        output_maps = [primary_video.selector, primary_audio.selector]
        codec_options = ["-c:v", "copy", "-c:a", "copy"]
        plan = TransportPlan(
            kind=kind,
            primary_video=primary_video,
            primary_audio=primary_audio,
            inputs=inputs,
            output_maps=output_maps,
            codec_options=codec_options,
            container=selection.container,
        )

        if wants_secondary:
            self._add_secondary_audio(
                plan,
                selection,
                await self._resolve_secondary(content, selection),
            )

        if selection.container == "mp4":
            codec_options += ["-bsf:a", "aac_adtstoasc", "-movflags", "faststart"]
        return plan

    async def _resolve_secondary(
        self, content: ContentMetadata, selection: StreamSelection
    ) -> tuple[str, Manifest, VideoTrack, AudioTrack]:
        log.info(
            f"Adding {selection.secondary_audio_language} commentary from the "
            "international feed as a second audio channel."
        )
        url = await self.resolve_stream_url(content, INTERNATIONAL_CHANNEL)
        manifest = await self._resolver.get_manifest(url)
        if not manifest.video_tracks:
            raise TrackNotFoundError("The international feed has no video tracks.")
        try:
            video = select_video(manifest, SECONDARY_REFERENCE_RESOLUTION)
        except TrackNotFoundError:
            video = min(manifest.video_tracks, key=lambda t: (t.height, t.bandwidth))
        audio = select_audio(manifest, selection.secondary_audio_language, video)
        return url, manifest, video, audio

    @staticmethod
    def _add_secondary_audio(
        plan: TransportPlan,
        selection: StreamSelection,
        secondary: tuple[str, Manifest, VideoTrack, AudioTrack],
    ) -> None:
        url, manifest, video, audio = secondary
        kind = manifest.kind
        plan.inputs.append(
            PlanInput(url, BASE_INPUT_OPTIONS + ["-itsoffset", selection.offset])
        )
        plan.output_offset = selection.offset
        plan.secondary_video = TrackRef(1, video_selector(kind, 1, video), video.id)
        plan.secondary_audio = TrackRef(
            1,
            audio_selector(kind, 1, video, audio),
            audio.id,
            secondary_language_label(audio.language),
        )

        # HLS renditions only exist inside an opened program, so the
        # international variant's video has to be mapped as well.
        if kind is TransportKind.HLS:
            plan.output_maps.append(plan.secondary_video.selector)
        plan.output_maps.append(plan.secondary_audio.selector)

        plan.codec_options += [
            "-metadata:s:a:0", f"language={plan.primary_audio.language}",
            "-disposition:a:0", "default",
            "-metadata:s:a:1", f"language={plan.secondary_audio.language}",
            "-disposition:a:1", "0",
        ]
