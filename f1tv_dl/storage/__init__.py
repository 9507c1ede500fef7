"""
Storage Layer.

This package manages persistent data: the INI configuration file, the cached
credential and the manual credential file.
"""

from .config_manager import ConfigManager
from .token_store import ManualTokenFile, TokenStore

__all__ = ["ConfigManager", "ManualTokenFile", "TokenStore"]
