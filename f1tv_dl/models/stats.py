"""
Aggregate statistics for a download queue session.
"""

import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class QueueStats:
    """Counters reported in queue status and the end-of-run summary."""

    total_queued: int = 0
    completed: int = 0
    failed: int = 0
    retries: int = 0
    rate_limited: int = 0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    peak_active: int = 0
    _start_monotonic: float = field(default=0.0, repr=False)
    _end_monotonic: float = field(default=0.0, repr=False)

    def mark_started(self) -> None:
        self.started_at = time.time()
        self._start_monotonic = time.monotonic()
        self.finished_at = None
        self._end_monotonic = 0.0

    def mark_finished(self) -> None:
        self.finished_at = time.time()
        self._end_monotonic = time.monotonic()

    @property
    def duration_seconds(self) -> float:
        if not self._start_monotonic:
            return 0.0
        end = self._end_monotonic or time.monotonic()
        return end - self._start_monotonic

    def as_dict(self) -> dict:
        return {
            "total_queued": self.total_queued,
            "completed": self.completed,
            "failed": self.failed,
            "retries": self.retries,
            "rate_limited": self.rate_limited,
            "peak_active": self.peak_active,
        }
