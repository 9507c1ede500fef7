"""
Credential model and helpers for reading the expiry out of an F1TV token.
"""

import base64
import binascii
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# A token this close to its expiry is treated as already expired.
EXPIRY_BUFFER_SECONDS = 5 * 60
# Cached tokens older than this are re-validated through a fresh acquisition.
MAX_CACHE_AGE_SECONDS = 24 * 60 * 60


class CredentialSource(str, Enum):
    """Where a credential was obtained from."""

    CACHE = "cache"
    BROWSER_EXTRACT = "browser-extract"
    MANUAL_FILE = "manual-file"
    AUTOMATED_LOGIN = "automated-login"


def parse_token_expiry(token: str) -> Optional[int]:
    """
    Extracts the ``exp`` claim (unix seconds) from a JWT-encoded token.

    The token is expected to be three dot-separated base64url segments with a
    JSON payload in the middle one. Anything that does not decode cleanly
    yields None, meaning "no expiry known", rather than raising.
    """
    parts = token.split(".")
    if len(parts) < 2:
        return None
    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        decoded = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeError):
        return None
    if not isinstance(decoded, dict):
        return None
    exp = decoded.get("exp")
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        return int(exp)
    return None


@dataclass
class Credential:
    """A bearer token proving entitlement to stream content."""

    value: str
    source: CredentialSource
    acquired_at: float = field(default_factory=time.time)
    expires_at: Optional[int] = None

    @classmethod
    def from_token(cls, token: str, source: CredentialSource) -> "Credential":
        return cls(value=token, source=source, expires_at=parse_token_expiry(token))

    def is_expired(self, now: float | None = None) -> bool:
        """True if the token expires within the safety buffer."""
        if self.expires_at is None:
            return False
        now = time.time() if now is None else now
        return self.expires_at < now + EXPIRY_BUFFER_SECONDS

    def is_stale(self, now: float | None = None) -> bool:
        """True if the token was acquired too long ago to trust without re-checking."""
        now = time.time() if now is None else now
        return now - self.acquired_at > MAX_CACHE_AGE_SECONDS

    def is_reusable(self, now: float | None = None) -> bool:
        return not self.is_expired(now) and not self.is_stale(now)

    def to_cache_record(self) -> dict:
        """Serializes to the on-disk cache shape shared with the login helper."""
        return {
            "token": self.value,
            "source": self.source.value,
            "timestamp": int(self.acquired_at * 1000),
            "expires": self.expires_at,
        }

    @classmethod
    def from_cache_record(cls, record: dict) -> "Credential":
        """
        Builds a credential from the on-disk cache shape.

        ``timestamp`` is stored in milliseconds, ``expires`` in seconds.
        Unknown sources are mapped to ``CACHE``.
        """
        try:
            source = CredentialSource(record.get("source"))
        except ValueError:
            source = CredentialSource.CACHE
        expires = record.get("expires")
        return cls(
            value=record["token"],
            source=source,
            acquired_at=float(record.get("timestamp", 0)) / 1000,
            expires_at=int(expires) if isinstance(expires, (int, float)) else None,
        )
