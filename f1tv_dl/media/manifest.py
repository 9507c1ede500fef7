"""
Parses HLS master playlists and DASH MPDs into the flat track lists used to
build ffmpeg stream selectors.

Track numbering follows how ffmpeg exposes the inputs:
- HLS: every variant is a program (numbered in playlist order) and its audio
  renditions are numbered within that program in group order.
- DASH: every representation keeps its ``id`` as stream metadata.
"""

import logging
from typing import Optional

import m3u8
from lxml import etree

from f1tv_dl.exceptions import TransientTransportError
from f1tv_dl.models.content import (
    AudioTrack,
    Manifest,
    TransportKind,
    VideoTrack,
    detect_transport_kind,
)

log = logging.getLogger(__name__)

DASH_NAMESPACE = "urn:mpeg:dash:schema:mpd:2011"


def parse_manifest(text: str, url: str) -> Manifest:
    """Parses a manifest, picking the format from the stream URL."""
    if detect_transport_kind(url) is TransportKind.HLS:
        return parse_hls_master(text, url)
    return parse_dash_mpd(text)


def parse_hls_master(text: str, url: Optional[str] = None) -> Manifest:
    master = m3u8.loads(text, uri=url)
    if not master.is_variant:
        raise TransientTransportError("HLS playlist is not a master playlist.")

    manifest = Manifest(kind=TransportKind.HLS)
    for program, playlist in enumerate(master.playlists):
        info = playlist.stream_info
        width, height = info.resolution or (0, 0)
        manifest.video_tracks.append(
            VideoTrack(
                id=str(program),
                width=width,
                height=height,
                bandwidth=info.bandwidth or 0,
                program=program,
                audio_group=info.audio,
            )
        )

    group_positions: dict[Optional[str], int] = {}
    for media in master.media:
        if (media.type or "").upper() != "AUDIO":
            continue
        index = group_positions.get(media.group_id, 0)
        group_positions[media.group_id] = index + 1
        manifest.audio_tracks.append(
            AudioTrack(
                id=str(index),
                language=(media.language or "").lower(),
                index=index,
                group_id=media.group_id,
                name=media.name,
            )
        )

    log.debug(
        f"HLS manifest: {len(manifest.video_tracks)} variants, "
        f"{len(manifest.audio_tracks)} audio renditions"
    )
    return manifest


def _content_type(adaptation_set: etree._Element, representation: etree._Element) -> str:
    content_type = adaptation_set.get("contentType")
    if content_type:
        return content_type.lower()
    mime = representation.get("mimeType") or adaptation_set.get("mimeType") or ""
    return mime.split("/")[0].lower()


def parse_dash_mpd(text: str) -> Manifest:
    try:
        root = etree.fromstring(text.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        raise TransientTransportError(f"Malformed DASH manifest: {e}") from e

    ns = {"mpd": root.nsmap.get(None) or DASH_NAMESPACE}
    manifest = Manifest(kind=TransportKind.DASH)
    audio_index = 0

    # Only the first period matters for a single live/VOD session.
    period = root.find("mpd:Period", namespaces=ns)
    if period is None:
        raise TransientTransportError("DASH manifest has no Period.")

    for adaptation_set in period.findall("mpd:AdaptationSet", namespaces=ns):
        for rep in adaptation_set.findall("mpd:Representation", namespaces=ns):
            kind = _content_type(adaptation_set, rep)
            rep_id = rep.get("id")
            if not rep_id:
                continue
            bandwidth = int(rep.get("bandwidth") or 0)
            if kind == "video":
                manifest.video_tracks.append(
                    VideoTrack(
                        id=rep_id,
                        width=int(rep.get("width") or adaptation_set.get("width") or 0),
                        height=int(rep.get("height") or adaptation_set.get("height") or 0),
                        bandwidth=bandwidth,
                    )
                )
            elif kind == "audio":
                lang = rep.get("lang") or adaptation_set.get("lang") or ""
                manifest.audio_tracks.append(
                    AudioTrack(id=rep_id, language=lang.lower(), index=audio_index)
                )
                audio_index += 1

    log.debug(
        f"DASH manifest: {len(manifest.video_tracks)} video, "
        f"{len(manifest.audio_tracks)} audio representations"
    )
    return manifest
