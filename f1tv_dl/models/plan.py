"""
The transport plan handed to the muxer: inputs, stream maps and codec options.
"""

from dataclasses import dataclass, field
from typing import Optional

from .content import TransportKind


@dataclass
class TrackRef:
    """A resolved track: which input it lives in and how ffmpeg addresses it."""

    input_index: int
    selector: str
    track_id: str
    language: Optional[str] = None


@dataclass
class PlanInput:
    url: str
    input_options: list[str] = field(default_factory=list)


@dataclass
class TransportPlan:
    kind: TransportKind
    primary_video: TrackRef
    primary_audio: TrackRef
    inputs: list[PlanInput]
    output_maps: list[str]
    codec_options: list[str]
    container: str = "mp4"
    secondary_video: Optional[TrackRef] = None
    secondary_audio: Optional[TrackRef] = None
    output_offset: Optional[str] = None

    @property
    def audio_maps(self) -> list[str]:
        """The audio map selectors, in output order."""
        audio = [self.primary_audio]
        if self.secondary_audio:
            audio.append(self.secondary_audio)
        return [track.selector for track in audio]

    def output_options(self) -> list[str]:
        """Flattens the map directives and codec options into ffmpeg output arguments."""
        options: list[str] = []
        for selector in self.output_maps:
            options += ["-map", selector]
        return options + self.codec_options
