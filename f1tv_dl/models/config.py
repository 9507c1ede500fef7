"""
Pydantic models for application, queue and per-job configuration.
Provides robust validation for all settings.
"""

import logging
import re
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

log = logging.getLogger(__name__)

# Known server-side abuse limit; never run more downloads than this at once.
MAX_CONCURRENT_CEILING = 3

DEFAULT_ITSOFFSET = "-00:00:04.750"

# Commentary languages carried on the international feed.
INTERNATIONAL_AUDIO_LANGUAGES = ("eng", "nld", "deu", "fra", "por", "spa", "fx")

_OFFSET_RE = re.compile(r"^-?\d{2}:\d{2}:\d{2}\.\d{3}$")
_VIDEO_SIZE_RE = re.compile(r"^\d+x\d+$")


class QueueSettings(BaseModel):
    """Concurrency, pacing and retry settings for the download queue."""

    max_concurrent: int = 1
    delay: float = 30.0  # seconds between downloads
    retry_attempts: int = 3
    retry_delay: float = 5.0  # base of the exponential retry schedule
    rate_limit_backoff: float = 60.0  # fixed wait after an HTTP 429

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True

    @field_validator("max_concurrent")
    @classmethod
    def clamp_concurrency(cls, v: int) -> int:
        """Clamps concurrency to [1, 3] instead of rejecting it."""
        if v > MAX_CONCURRENT_CEILING:
            log.warning(
                f"[yellow]Requested {v} parallel downloads; limiting to "
                f"{MAX_CONCURRENT_CEILING}.[/yellow]"
            )
            return MAX_CONCURRENT_CEILING
        return max(1, v)

    @field_validator("retry_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Retry attempts must be at least 1.")
        return v

    @field_validator("delay", "retry_delay", "rate_limit_backoff")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Delays cannot be negative.")
        return v


class JobConfig(BaseModel):
    """A validated download request."""

    url: str
    channel: Optional[str] = None
    audio_stream: str = "eng"
    international_audio: Optional[str] = None
    video_size: str = "best"
    format: Literal["mp4", "ts"] = "mp4"
    output_directory: Optional[str] = None
    itsoffset: str = DEFAULT_ITSOFFSET

    class Config:
        """Pydantic model configuration."""

        str_strip_whitespace = True

    @field_validator("channel")
    @classmethod
    def empty_channel_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("audio_stream")
    @classmethod
    def validate_audio_stream(cls, v: str) -> str:
        if not v:
            raise ValueError("Audio stream language cannot be empty.")
        return v.lower()

    @field_validator("international_audio")
    @classmethod
    def validate_international_audio(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.lower()
        if v not in INTERNATIONAL_AUDIO_LANGUAGES:
            raise ValueError(
                "International audio must be one of: "
                + ", ".join(INTERNATIONAL_AUDIO_LANGUAGES)
            )
        return v

    @field_validator("video_size")
    @classmethod
    def validate_video_size(cls, v: str) -> str:
        v = v.lower()
        if v != "best" and not _VIDEO_SIZE_RE.match(v):
            raise ValueError("Video size must be 'best' or WIDTHxHEIGHT, e.g. 1920x1080.")
        return v

    @field_validator("itsoffset")
    @classmethod
    def validate_itsoffset(cls, v: str) -> str:
        if not _OFFSET_RE.match(v):
            raise ValueError("Offset must look like [-]hh:mm:ss.mmm, e.g. -00:00:04.750.")
        return v


class AppSettings(BaseModel):
    """Settings loaded from the INI file and environment."""

    username: str = ""
    password: str = ""
    debug: bool = False

    # Job defaults
    audio_stream: str = "eng"
    video_size: str = "best"
    format: Literal["mp4", "ts"] = "mp4"
    output_directory: str = ""

    queue: QueueSettings = Field(default_factory=QueueSettings)

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @model_validator(mode="after")
    def validate_login_pair(self) -> "AppSettings":
        """A username without a password (or vice versa) is always a mistake."""
        if bool(self.username) != bool(self.password):
            raise ValueError("Both username and password are required for automated login.")
        return self

    @property
    def token_cache_path(self) -> Path:
        return Path(self.config_path) / ".token-cache.json"

    @property
    def manual_token_path(self) -> Path:
        return Path(self.config_path) / ".f1tv-cookies.json"

    @property
    def has_login(self) -> bool:
        return bool(self.username and self.password)
