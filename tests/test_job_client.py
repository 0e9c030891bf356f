"""
Tests for the asynchronous job client.
"""

import httpx
import pytest
from unittest.mock import MagicMock

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from job_fakes import BASE_URL, JOB_PATH, FakeBackend, make_job_client, make_request, status_reply


class TestExtractRequestId:
    """Tests for request id extraction from the Location header."""

    def test_last_path_segment(self):
        """Test the id is the last path segment."""
        from fetcher.job_client import extract_request_id

        assert extract_request_id(f"{BASE_URL}{JOB_PATH}") == "abc123"

    def test_uuid(self):
        """Test a full UUID location."""
        from fetcher.job_client import extract_request_id

        uuid = "5f3a8b2c-1d4e-4f6a-9b7c-0d1e2f3a4b5c"
        location = f"https://api.aurorax.space/api/v1/conjunctions/requests/{uuid}"

        assert extract_request_id(location) == uuid

    def test_trailing_slash(self):
        """Test a trailing slash is ignored."""
        from fetcher.job_client import extract_request_id

        assert extract_request_id(f"{BASE_URL}{JOB_PATH}/") == "abc123"

    @pytest.mark.parametrize("location", [None, "", "   "])
    def test_missing(self, location):
        """Test missing or blank headers give no id."""
        from fetcher.job_client import extract_request_id

        assert extract_request_id(location) is None

    @pytest.mark.parametrize("location", [
        "https://api.test",
        "https://api.test/",
        "https://api.test/api/v1/conjunctions/requests/",
    ])
    def test_no_id_in_path(self, location):
        """Test a location without an id segment gives no id."""
        from fetcher.job_client import extract_request_id

        assert extract_request_id(location) is None

    @pytest.mark.parametrize("location", [
        "https://api.test",
        "https://api.test/api/v1/conjunctions/requests/",
    ])
    def test_submit_with_unusable_location(self, location):
        """Test submission fails before any poll when the location has no id."""
        from conjunctions.errors import MalformedResponseError

        backend = FakeBackend(location=location)
        client = make_job_client(backend)

        with pytest.raises(MalformedResponseError):
            client.submit(make_request())

        assert backend.count("GET", JOB_PATH) == 0
        assert all(method == "POST" for method, _ in backend.calls)


class TestFormatSize:
    """Tests for human readable sizes."""

    @pytest.mark.parametrize("num_bytes,expected", [
        (None, "0.00 KB"),
        (512, "0.50 KB"),
        (1024, "1.00 KB"),
        (1536, "1.50 KB"),
        (1024 ** 2, "1.00 MB"),
        (3 * 1024 ** 3, "3.00 GB"),
        (5 * 1024 ** 4, "5.00 TB"),
        (1024 ** 5, "1024.00 TB"),
    ])
    def test_format_size(self, num_bytes, expected):
        """Test auto-scaled units."""
        from fetcher.job_client import format_size

        assert format_size(num_bytes) == expected


class TestSubmit:
    """Tests for AsyncJobClient.submit."""

    def test_submit_accepted(self):
        """Test a 202 reply gives a submitted handle."""
        from fetcher.job_client import JobState

        backend = FakeBackend()
        client = make_job_client(backend)
        request = make_request()

        handle = client.submit(request)

        assert handle.job_id == "abc123"
        assert handle.state == JobState.SUBMITTED
        assert backend.submitted == request.to_payload()

    def test_submit_sends_user_agent_and_key(self):
        """Test configured version and API key are sent."""
        seen = {}

        def backend(request):
            seen.update(request.headers)
            return httpx.Response(202, headers={"location": f"{BASE_URL}{JOB_PATH}"})

        client = make_job_client(backend, api_key="secret")
        client.submit(make_request())

        assert seen["user-agent"] == "conjunction-search/9.9.9"
        assert seen["x-aurorax-api-key"] == "secret"

    @pytest.mark.parametrize("status", [200, 400, 500])
    def test_submit_rejected(self, status):
        """Test any status other than 202 fails with the response body."""
        from conjunctions.errors import TransportError

        backend = FakeBackend(submit_status=status)
        client = make_job_client(backend)

        with pytest.raises(TransportError) as exc_info:
            client.submit(make_request())

        assert exc_info.value.status_code == status
        assert exc_info.value.detail == "bad request: start is after end"
        assert backend.count("GET", JOB_PATH) == 0

    def test_submit_without_location(self):
        """Test a 202 without a Location header is a malformed response."""
        from conjunctions.errors import MalformedResponseError

        client = make_job_client(FakeBackend(location=None))

        with pytest.raises(MalformedResponseError):
            client.submit(make_request())

    def test_submit_network_error(self):
        """Test connection failures are raised as TransportError."""
        from conjunctions.errors import TransportError

        def backend(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_job_client(backend)

        with pytest.raises(TransportError) as exc_info:
            client.submit(make_request())

        assert exc_info.value.status_code is None


class TestPollUntilReady:
    """Tests for AsyncJobClient.poll_until_ready."""

    def test_not_ready_then_ready(self):
        """Test polling stops on the first ready reply."""
        from fetcher.job_client import JobState

        backend = FakeBackend(statuses=[
            status_reply(ready=False),
            status_reply(ready=True, file_size=1024, result_count=1),
        ])
        sleep = MagicMock()
        client = make_job_client(backend, sleep=sleep)
        handle = client.submit(make_request())

        status = client.poll_until_ready(handle, poll_interval=0.25)

        assert status.ready is True
        assert backend.count("GET", JOB_PATH) == 2
        assert handle.polls == 2
        assert handle.state == JobState.READY
        assert handle.file_size == 1024
        assert handle.result_count == 1
        assert handle.size_display == "1.00 KB"
        sleep.assert_called_once_with(0.25)

    def test_submit_precedes_polls(self):
        """Test calls happen in submit, poll order."""
        backend = FakeBackend()
        client = make_job_client(backend)
        handle = client.submit(make_request())
        client.poll_until_ready(handle)

        assert backend.calls[0] == ("POST", "/api/v1/conjunctions/search")
        assert all(call == ("GET", JOB_PATH) for call in backend.calls[1:])

    def test_backend_error_condition(self):
        """Test a backend error condition raises JobFailedError."""
        from conjunctions.errors import JobFailedError
        from fetcher.job_client import JobState

        logs = [{"level": "error", "summary": "search timed out on backend"}]
        backend = FakeBackend(statuses=[status_reply(error=True, logs=logs)])
        client = make_job_client(backend)
        handle = client.submit(make_request())

        with pytest.raises(JobFailedError) as exc_info:
            client.poll_until_ready(handle)

        assert exc_info.value.job_id == "abc123"
        assert exc_info.value.logs == ["search timed out on backend"]
        assert handle.state == JobState.FAILED

    def test_timeout(self):
        """Test an optional deadline stops polling."""
        from conjunctions.errors import PollTimeoutError
        from fetcher.job_client import JobState

        backend = FakeBackend(statuses=[status_reply(ready=False)])
        clock = iter([0.0, 5.0, 11.0]).__next__
        client = make_job_client(backend, clock=clock)
        handle = client.submit(make_request())

        with pytest.raises(PollTimeoutError):
            client.poll_until_ready(handle, poll_interval=5, timeout=10)

        assert handle.polls == 2
        assert handle.state == JobState.FAILED

    def test_no_timeout_keeps_polling(self):
        """Test that without a deadline polling continues until ready."""
        statuses = [status_reply(ready=False)] * 25 + [status_reply(ready=True, file_size=10)]
        backend = FakeBackend(statuses=statuses)
        client = make_job_client(backend)
        handle = client.submit(make_request())

        client.poll_until_ready(handle)

        assert handle.polls == 26

    def test_status_http_error(self):
        """Test a failing status query raises TransportError."""
        from conjunctions.errors import TransportError
        from fetcher.job_client import JobState

        def backend(request):
            if request.method == "POST":
                return httpx.Response(202, headers={"location": f"{BASE_URL}{JOB_PATH}"})
            return httpx.Response(503, text="unavailable")

        client = make_job_client(backend)
        handle = client.submit(make_request())

        with pytest.raises(TransportError) as exc_info:
            client.poll_until_ready(handle)

        assert exc_info.value.status_code == 503
        assert handle.state == JobState.FAILED

    def test_poll_requires_submission(self):
        """Test polling an unsubmitted handle is rejected."""
        from conjunctions.errors import InvalidJobStateError
        from fetcher.job_client import JobHandle

        client = make_job_client(FakeBackend())

        with pytest.raises(InvalidJobStateError):
            client.poll_until_ready(JobHandle(job_type="conjunctions"))


class TestFetchResult:
    """Tests for AsyncJobClient.fetch_result."""

    def test_fetch_result(self):
        """Test the result list is returned after ready."""
        from fetcher.job_client import JobState

        records = [{"start": "a", "end": "b", "events": []}]
        backend = FakeBackend(result={"result": records})
        client = make_job_client(backend)
        handle = client.submit(make_request())
        client.poll_until_ready(handle)

        assert client.fetch_result(handle) == records
        assert handle.state == JobState.FETCHED
        assert backend.calls[-1] == ("GET", f"{JOB_PATH}/data")

    def test_fetch_bare_list(self):
        """Test a bare JSON array is accepted."""
        backend = FakeBackend(result=[{"start": "a", "end": "b"}])
        client = make_job_client(backend)
        handle = client.submit(make_request())
        client.poll_until_ready(handle)

        assert client.fetch_result(handle) == [{"start": "a", "end": "b"}]

    def test_fetch_without_result(self):
        """Test a payload without a result list is malformed."""
        from conjunctions.errors import MalformedResponseError

        client = make_job_client(FakeBackend(result={"message": "nothing"}))
        handle = client.submit(make_request())
        client.poll_until_ready(handle)

        with pytest.raises(MalformedResponseError):
            client.fetch_result(handle)

    def test_fetch_before_ready(self):
        """Test fetching before the job is ready is rejected."""
        from conjunctions.errors import InvalidJobStateError

        backend = FakeBackend()
        client = make_job_client(backend)
        handle = client.submit(make_request())

        with pytest.raises(InvalidJobStateError):
            client.fetch_result(handle)

        assert backend.count("GET", f"{JOB_PATH}/data") == 0


class TestExistingJobs:
    """Tests for operations on previously submitted jobs."""

    def test_get_logs(self):
        """Test backend logs are returned."""
        logs = [{"timestamp": "2020-01-01T00:00:00", "level": "info", "summary": "started"}]
        client = make_job_client(FakeBackend(statuses=[status_reply(logs=logs)]))

        assert client.get_logs(client.handle_for("abc123")) == logs

    def test_cancel(self):
        """Test cancel sends DELETE and marks the job failed."""
        from fetcher.job_client import JobState

        backend = FakeBackend()
        client = make_job_client(backend)
        handle = client.handle_for("abc123")

        client.cancel(handle)

        assert backend.count("DELETE", JOB_PATH) == 1
        assert handle.state == JobState.FAILED

    def test_handle_for_requires_id(self):
        """Test an empty id is rejected."""
        client = make_job_client(FakeBackend())

        with pytest.raises(ValueError):
            client.handle_for("")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
