"""
Asynchronous search job lifecycle against the AuroraX request API.

A search is submitted, the backend answers 202 with the request location,
and the job is polled until it reports completion. The result is then
downloaded in one piece.

States: IDLE -> SUBMITTED -> POLLING -> READY -> FETCHED, with FAILED
reachable from any non-terminal state.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import structlog

from conjunctions.errors import (
    InvalidJobStateError,
    JobFailedError,
    MalformedResponseError,
    PollTimeoutError,
    TransportError,
)
from fetcher.api_client import ApiClient, raise_for_status

logger = structlog.get_logger()

# Request ids are UUIDs at the end of the Location header
REQUEST_ID_LENGTH = 36
REQUESTS_SEGMENT = "requests"

SIZE_UNITS = ("KB", "MB", "GB", "TB")


def format_size(num_bytes: Optional[int]) -> str:
    """Human readable size, e.g. 1024 -> '1.00 KB'."""
    value = float(num_bytes or 0) / 1024
    for unit in SIZE_UNITS:
        if value < 1024 or unit == SIZE_UNITS[-1]:
            return f"{value:.2f} {unit}"
        value /= 1024


def extract_request_id(location: Optional[str]) -> Optional[str]:
    """
    Pull the request id out of a Location header value.

    The last path segment is used. If that comes back empty the trailing
    fixed-width window of the path is used instead. Candidates holding a
    separator, or naming the requests collection itself, give None.
    """
    if not location or not location.strip():
        return None
    path = urlparse(location.strip()).path.rstrip("/")
    request_id = path.rsplit("/", 1)[-1]
    if not request_id:
        request_id = path[-REQUEST_ID_LENGTH:].strip("/")
    if not request_id or "/" in request_id or ":" in request_id or request_id == REQUESTS_SEGMENT:
        return None
    return request_id


class JobState(str, Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    POLLING = "polling"
    READY = "ready"
    FETCHED = "fetched"
    FAILED = "failed"


@dataclass
class JobHandle:
    """
    One backend job. Owned by a single search call, never shared.
    """
    job_type: str
    job_id: Optional[str] = None
    state: JobState = JobState.IDLE
    file_size: Optional[int] = None
    result_count: Optional[int] = None
    polls: int = 0
    error: Optional[str] = None

    @property
    def request_path(self) -> str:
        return f"/api/v1/{self.job_type}/requests/{self.job_id}"

    @property
    def data_path(self) -> str:
        return f"{self.request_path}/data"

    @property
    def size_display(self) -> str:
        return format_size(self.file_size)


@dataclass
class JobStatus:
    """Parsed reply of the job status endpoint."""
    ready: bool
    failed: bool = False
    file_size: Optional[int] = None
    result_count: Optional[int] = None
    logs: list[Any] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Any) -> "JobStatus":
        if not isinstance(data, dict) or not isinstance(data.get("search_result"), dict):
            raise MalformedResponseError("Job status response has no search_result")
        result = data["search_result"]
        return cls(
            ready=result.get("completed_timestamp") is not None,
            failed=bool(result.get("error_condition")),
            file_size=result.get("file_size"),
            result_count=result.get("result_count"),
            logs=list(data.get("logs") or []),
            raw=data,
        )


class AsyncJobClient:
    """
    Drives one search job through submit, poll and fetch.

    Sleep and clock are injectable so polling can be tested without waiting.
    """

    DEFAULT_POLL_INTERVAL = 1.0  # seconds

    def __init__(
        self,
        api_client: ApiClient,
        job_type: str = "conjunctions",
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.api_client = api_client
        self.job_type = job_type
        self.sleep = sleep
        self.clock = clock

    @property
    def search_path(self) -> str:
        return f"/api/v1/{self.job_type}/search"

    def handle_for(self, job_id: str) -> JobHandle:
        """Handle for a job submitted earlier, e.g. from another process."""
        if not job_id:
            raise ValueError("job_id is required")
        return JobHandle(job_type=self.job_type, job_id=job_id, state=JobState.SUBMITTED)

    def _fail(self, handle: JobHandle, error: str) -> None:
        handle.state = JobState.FAILED
        handle.error = error

    def _require(self, handle: JobHandle, *states: JobState) -> None:
        if handle.state not in states:
            expected = ", ".join(state.value for state in states)
            raise InvalidJobStateError(
                f"Job {handle.job_id} is {handle.state.value}, expected {expected}"
            )

    def submit(self, request) -> JobHandle:
        """
        Submit a search request.

        Args:
            request: SearchRequest (anything with to_payload())

        Returns:
            JobHandle in SUBMITTED state

        Raises:
            TransportError: network failure or any status other than 202
            MalformedResponseError: no request id in the Location header
        """
        handle = JobHandle(job_type=self.job_type)
        payload = request.to_payload()

        try:
            response = self.api_client.request("POST", self.search_path, json=payload)
        except TransportError as e:
            self._fail(handle, str(e))
            raise

        if response.status_code != 202:
            self._fail(handle, response.text)
            logger.error(
                "Search submission rejected",
                status=response.status_code,
                body=response.text[:500]
            )
            raise TransportError(
                f"Search submission returned HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
                detail=response.text
            )

        job_id = extract_request_id(response.headers.get("location"))
        if not job_id:
            self._fail(handle, "missing request id")
            logger.error("No request id in submission response", headers=dict(response.headers))
            raise MalformedResponseError("Search accepted but no request id in Location header")

        handle.job_id = job_id
        handle.state = JobState.SUBMITTED
        logger.info("Search submitted", job_type=self.job_type, job_id=job_id)
        return handle

    def get_status(self, handle: JobHandle) -> JobStatus:
        """Query job status once, updating size and count on the handle."""
        data = self.api_client.get_json(handle.request_path)
        status = JobStatus.from_response(data)
        handle.polls += 1
        if status.file_size is not None:
            handle.file_size = status.file_size
        if status.result_count is not None:
            handle.result_count = status.result_count
        return status

    def poll_until_ready(
        self,
        handle: JobHandle,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None
    ) -> JobStatus:
        """
        Block until the backend reports the job complete.

        Args:
            handle: Submitted job
            poll_interval: Seconds between status queries
            timeout: Give up after this many seconds; None waits indefinitely

        Returns:
            Final JobStatus

        Raises:
            JobFailedError: backend reported an error condition
            PollTimeoutError: timeout elapsed before completion
            TransportError: a status query failed
        """
        self._require(handle, JobState.SUBMITTED, JobState.POLLING)
        handle.state = JobState.POLLING
        started = self.clock()

        while True:
            try:
                status = self.get_status(handle)
            except (TransportError, MalformedResponseError) as e:
                self._fail(handle, str(e))
                raise

            if status.failed:
                self._fail(handle, "backend error condition")
                logger.error("Job failed", job_id=handle.job_id, logs=status.logs)
                raise JobFailedError(handle.job_id, [_log_message(line) for line in status.logs])

            if status.ready:
                handle.state = JobState.READY
                logger.info(
                    "Job ready",
                    job_id=handle.job_id,
                    polls=handle.polls,
                    result_count=handle.result_count,
                    size=handle.size_display
                )
                return status

            if timeout is not None and self.clock() - started >= timeout:
                self._fail(handle, "poll timeout")
                logger.warning("Job not ready before timeout", job_id=handle.job_id, timeout=timeout)
                raise PollTimeoutError(handle.job_id, timeout)

            # Only log every few polls to reduce noise
            if handle.polls % 5 == 1:
                logger.debug("Job in progress", job_id=handle.job_id, polls=handle.polls)
            self.sleep(poll_interval)

    def fetch_result(self, handle: JobHandle) -> list[dict[str, Any]]:
        """
        Download the result payload of a ready job.

        Returns:
            Raw result records

        Raises:
            TransportError: download failed
            MalformedResponseError: payload has no result list
        """
        self._require(handle, JobState.READY)
        logger.info("Downloading results", job_id=handle.job_id, size=handle.size_display)

        try:
            data = self.api_client.get_json(handle.data_path)
        except TransportError as e:
            self._fail(handle, str(e))
            raise

        records = data.get("result") if isinstance(data, dict) else data
        if not isinstance(records, list):
            self._fail(handle, "no result list")
            raise MalformedResponseError(f"Result payload for job {handle.job_id} has no result list")

        handle.state = JobState.FETCHED
        logger.info("Results downloaded", job_id=handle.job_id, records=len(records))
        return records

    def get_logs(self, handle: JobHandle) -> list[Any]:
        """Backend log entries for a job."""
        data = self.api_client.get_json(handle.request_path)
        if not isinstance(data, dict):
            raise MalformedResponseError("Job status response is not an object")
        return list(data.get("logs") or [])

    def cancel(self, handle: JobHandle) -> None:
        """Ask the backend to stop a job."""
        self._require(handle, JobState.SUBMITTED, JobState.POLLING, JobState.READY)
        response = self.api_client.request("DELETE", handle.request_path)
        raise_for_status(response)
        self._fail(handle, "cancelled")
        logger.info("Job cancelled", job_id=handle.job_id)


def _log_message(line: Any) -> str:
    if isinstance(line, dict):
        return str(line.get("summary") or line.get("message") or line)
    return str(line)
