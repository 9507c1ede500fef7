"""
Utilities for validating F1TV URLs and naming output files.
"""

import re
from pathlib import Path
from typing import NamedTuple, Optional
from urllib.parse import urlparse

from pathvalidate import sanitize_filename

F1TV_HOST = "f1tv.formula1.com"

_DETAIL_PATH = re.compile(r"^/detail/(?P<id>\d+)/(?P<name>[^/?#]+)/?$")


class ContentParams(NamedTuple):
    id: str
    name: str


def parse_f1tv_url(url: str) -> Optional[ContentParams]:
    """
    Parses an F1TV content URL of the form
    ``https://f1tv.formula1.com/detail/<id>/<slug>`` into its id and slug.
    """
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or parsed.hostname != F1TV_HOST:
        return None
    match = _DETAIL_PATH.match(parsed.path)
    if not match:
        return None
    return ContentParams(match.group("id"), match.group("name"))


def is_f1tv_url(url: str) -> bool:
    return parse_f1tv_url(url) is not None


def get_content_params(url: str) -> ContentParams:
    """Returns the id/slug of a URL, or the raw URL as name when it does not parse."""
    return parse_f1tv_url(url) or ContentParams("", url)


def build_output_path(
    name: str,
    container: str,
    channel: Optional[str] = None,
    is_race: bool = False,
    output_directory: Optional[str] = None,
) -> Path:
    """
    Builds the output file path for a download.

    Race content downloaded from a specific channel gets the channel's first
    word appended, e.g. ``2023-bahrain-grand-prix-VER.mp4``.
    """
    ext = "mp4" if container == "mp4" else "ts"
    stem = name
    if is_race and channel:
        stem = f"{name}-{channel.split(' ')[0]}"
    filename = sanitize_filename(f"{stem}.{ext}", platform="auto")
    return Path(output_directory) / filename if output_directory else Path(filename)
