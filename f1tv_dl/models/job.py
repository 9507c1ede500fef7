"""
The download job model and its state machine.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from f1tv_dl.utils.url import get_content_params

from .config import JobConfig


class JobState(str, Enum):
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed transitions. DOWNLOADING -> QUEUED is the retry path.
_TRANSITIONS = {
    JobState.QUEUED: {JobState.DOWNLOADING},
    JobState.DOWNLOADING: {JobState.QUEUED, JobState.COMPLETED, JobState.FAILED},
    JobState.COMPLETED: set(),
    JobState.FAILED: set(),
}


@dataclass
class JobProgress:
    """Latest progress report from the muxer for a job."""

    percent: int = 0
    frames: int = 0
    fps: float = 0.0
    bitrate: float = 0.0  # kbit/s
    timemark: str = ""
    duration: Optional[float] = None  # media duration in seconds


def new_job_id() -> str:
    return f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class Job:
    """A single queued download and its mutable execution state."""

    config: JobConfig
    id: str = field(default_factory=new_job_id)
    attempts: int = 0
    state: JobState = JobState.QUEUED
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    last_error: Optional[str] = None
    output_path: Optional[str] = None
    progress: JobProgress = field(default_factory=JobProgress)

    @property
    def url(self) -> str:
        return self.config.url

    @property
    def name(self) -> str:
        return get_content_params(self.config.url).name

    def transition(self, new_state: JobState) -> None:
        """Moves the job to ``new_state``, rejecting transitions the state machine forbids."""
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Job {self.id}: illegal transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        if new_state is JobState.DOWNLOADING:
            self.started_at = time.time()
            self.attempts += 1
        elif new_state in (JobState.COMPLETED, JobState.FAILED):
            self.completed_at = time.time()
