"""
File-backed stores for the cached credential and the manual credential file.

Both files are plain JSON and are shared with the external login helper, so
their shape must not change:

- token cache: ``{"token", "source", "timestamp" (ms), "expires" (s or null)}``
- manual file: ``{"entitlement_token"}``
"""

import json
import logging
from pathlib import Path
from typing import Optional

from f1tv_dl.models.credential import Credential

log = logging.getLogger(__name__)


class TokenStore:
    """Persists the most recent validated credential."""

    def __init__(self, cache_file: Path):
        self.cache_file = cache_file

    def load(self) -> Optional[Credential]:
        """
        Reads the cached credential. Missing or malformed files yield None;
        staleness and expiry are left to the caller.
        """
        if not self.cache_file.is_file():
            return None
        try:
            with open(self.cache_file, encoding="utf-8") as f:
                record = json.load(f)
            return Credential.from_cache_record(record)
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as e:
            log.debug(f"Failed to load cached token: {e}")
            return None

    def save(self, credential: Credential) -> bool:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as f:
                json.dump(credential.to_cache_record(), f, indent=2)
            log.debug(f"Token cached from source: {credential.source.value}")
            return True
        except (OSError, TypeError) as e:
            log.warning(f"[yellow]Failed to cache token:[/] {e}")
            return False

    def clear(self) -> bool:
        """Removes the cache file. Returns True if a file was deleted."""
        try:
            self.cache_file.unlink()
            log.debug("Token cache cleared.")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            log.error(f"[red]Failed to clear token cache: {e}[/red]")
            return False


class ManualTokenFile:
    """A user-supplied ``{"entitlement_token": ...}`` file."""

    def __init__(self, path: Path):
        self.path = path

    def read(self) -> Optional[str]:
        if not self.path.is_file():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.debug(f"Failed to load manual token file: {e}")
            return None
        token = data.get("entitlement_token") if isinstance(data, dict) else None
        return token or None

    def write(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"entitlement_token": token}, f, indent=2)

    def clear(self) -> bool:
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False
