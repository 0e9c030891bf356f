"""
Exceptions raised by the conjunction search workflow.
"""

from typing import Optional


class ConjunctionSearchError(Exception):
    """Base class for all conjunction search errors."""


class SearchValidationError(ConjunctionSearchError):
    """Caller input was rejected before any network call was made."""


class TimestampParseError(SearchValidationError):
    """Start or end timestamp could not be parsed."""

    def __init__(self, bound: str, value):
        self.bound = bound
        self.value = value
        super().__init__(f"Could not parse {bound} timestamp: {value!r}")


class BlockCountExceededError(SearchValidationError):
    """Too many criteria blocks in one search."""

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(
            f"Too many criteria blocks: {count} supplied, at most {limit} allowed"
        )


class DistanceValidationError(SearchValidationError):
    """Distance value or distance map is unusable."""

    def __init__(self, message: str, missing_key: Optional[str] = None):
        self.missing_key = missing_key
        super().__init__(message)


class InsufficientBlocksError(DistanceValidationError):
    """Fewer than two criteria blocks, so no distance pairing exists."""

    def __init__(self, total: int):
        self.total = total
        super().__init__(
            f"At least 2 criteria blocks are required for distance pairing, got {total}"
        )


class InvalidCriteriaError(SearchValidationError):
    """Criteria block, conjunction type or precision value is invalid."""


class TransportError(ConjunctionSearchError):
    """Network failure or unexpected HTTP status from the backend."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None
    ):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class MalformedResponseError(ConjunctionSearchError):
    """Backend answered, but the response is missing required data."""


class JobFailedError(ConjunctionSearchError):
    """Backend reported a terminal failure for a job."""

    def __init__(self, job_id: str, logs: Optional[list] = None):
        self.job_id = job_id
        self.logs = logs or []
        message = f"Job {job_id} failed"
        if self.logs:
            message += ": " + "; ".join(str(line) for line in self.logs)
        super().__init__(message)


class PollTimeoutError(ConjunctionSearchError):
    """Job did not become ready before the caller's deadline."""

    def __init__(self, job_id: str, timeout: float):
        self.job_id = job_id
        self.timeout = timeout
        super().__init__(f"Job {job_id} not ready after {timeout} seconds")


class InvalidJobStateError(ConjunctionSearchError):
    """Job operation called out of order."""
