"""
Helper functions for formatting data into human-readable strings.
"""


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def parse_timestamp(value: str) -> float:
    """Parses an ffmpeg ``hh:mm:ss.xx`` timestamp into seconds (signed)."""
    sign = -1.0 if value.startswith("-") else 1.0
    hours, minutes, seconds = value.lstrip("-").split(":")
    return sign * (int(hours) * 3600 + int(minutes) * 60 + float(seconds))


def mask_token(token: str) -> str:
    """Shortens a token for log output."""
    if len(token) <= 12:
        return "****"
    return f"{token[:6]}…{token[-4:]}"
