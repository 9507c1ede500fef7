"""
Media Processing Layer.

This package parses stream manifests and drives ffmpeg to remux the selected
tracks into the output container.
"""

from .manifest import parse_manifest
from .muxer import FFmpegMuxer, Muxer

__all__ = ["FFmpegMuxer", "Muxer", "parse_manifest"]
