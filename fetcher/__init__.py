"""Fetcher module for talking to the AuroraX request API."""

from fetcher.api_client import ApiClient
from fetcher.job_client import AsyncJobClient, JobHandle, JobState, JobStatus, format_size

__all__ = [
    "ApiClient",
    "AsyncJobClient",
    "JobHandle",
    "JobState",
    "JobStatus",
    "format_size",
]
