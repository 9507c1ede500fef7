"""
f1tv-dl: a queued, rate-aware downloader for F1TV content.
"""

__version__ = "1.0.0"
