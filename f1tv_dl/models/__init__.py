"""
Data Models Layer.

This package contains the pydantic configuration models and the dataclasses
that describe credentials, jobs, content metadata and transport plans.
"""

from .config import AppSettings, JobConfig, QueueSettings
from .credential import Credential, CredentialSource
from .job import Job, JobProgress, JobState
from .plan import TransportPlan
from .stats import QueueStats

__all__ = [
    "AppSettings",
    "Credential",
    "CredentialSource",
    "Job",
    "JobConfig",
    "JobProgress",
    "JobState",
    "QueueSettings",
    "QueueStats",
    "TransportPlan",
]
