"""
F1TV API Layer.

This package handles all communication with the F1TV service: token
acquisition and validation, content metadata, playback URLs and manifests.
"""

from .auth import TokenAcquirer, TokenManager
from .client import F1TVAPIClient
from .rate_limiter import AdaptiveRateLimiter
from .resolver import ContentResolver, F1TVContentResolver

__all__ = [
    "AdaptiveRateLimiter",
    "ContentResolver",
    "F1TVAPIClient",
    "F1TVContentResolver",
    "TokenAcquirer",
    "TokenManager",
]
