"""
Tests for the command line interface.
"""

import json

import httpx
import pytest
from unittest.mock import patch

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from job_fakes import JOB_PATH, FakeBackend, make_job_client, status_reply


class TestPairsCommand:
    """Tests for 'cli.py pairs'."""

    def test_lists_keys(self, capsys):
        """Test distance keys are printed one per line."""
        from cli import main

        exit_code = main(["pairs", "1", "2", "0"])

        assert exit_code == 0
        assert capsys.readouterr().out.split() == ["ground1-space1", "ground1-space2", "space1-space2"]

    def test_too_few_blocks(self, capsys):
        """Test a single block is reported as an error."""
        from cli import main

        exit_code = main(["pairs", "1", "0"])

        assert exit_code == 1
        assert "At least 2" in capsys.readouterr().err


class TestSearchCommand:
    """Tests for 'cli.py search'."""

    def test_dry_run_prints_payload(self, capsys):
        """Test dry run prints the request body and never builds a client."""
        from cli import main

        with patch("cli.build_job_client") as build:
            exit_code = main([
                "search", "2020-01-01", "2020-01-02",
                "--distance", "500",
                "--ground", '[{"programs": ["themis-asi"]}]',
                "--space", '[{"programs": ["swarm"]}, {"programs": ["themis"]}]',
                "--conjunction-types", "nbtrace", "geographic",
                "--dry-run",
            ])

        assert exit_code == 0
        build.assert_not_called()
        payload = json.loads(capsys.readouterr().out)
        assert payload["start"] == "2020-01-01T00:00:00"
        assert payload["conjunction_types"] == ["nbtrace", "geographic"]
        assert payload["max_distances"] == {
            "ground1-space1": 500.0,
            "ground1-space2": 500.0,
            "space1-space2": 500.0,
        }

    def test_distance_map_argument(self, capsys):
        """Test a JSON distance map is accepted."""
        from cli import main

        exit_code = main([
            "search", "2020-01-01", "2020-01-02",
            "--distance", '{"ground1-space1": 250}',
            "--ground", "[{}]",
            "--space", "[{}]",
            "--dry-run",
        ])

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out)["max_distances"] == {"ground1-space1": 250}

    def test_search_prints_results(self, capsys):
        """Test a full search prints normalized records."""
        from cli import main

        backend = FakeBackend(
            statuses=[status_reply(ready=False), status_reply(ready=True, file_size=2048, result_count=1)],
            result={"result": [{"start": "2020-01-01T00:00:00", "_end": "2020-01-01T00:01:00", "events": []}]},
        )

        with patch("cli.build_job_client", return_value=make_job_client(backend)):
            exit_code = main([
                "search", "2020-01-01", "2020-01-02",
                "--distance", "500", "--ground", "[{}]", "--space", "[{}]",
                "--poll-interval", "0",
            ])

        captured = capsys.readouterr()
        assert exit_code == 0
        records = json.loads(captured.out)
        assert records[0]["start_dt"] == "2020-01-01T00:00:00"
        assert records[0]["end_dt"] == "2020-01-01T00:01:00"
        assert records[0]["events"] == []
        assert backend.count("GET", JOB_PATH) == 2
        assert "Conjunctions: 1" in captured.err

    def test_search_writes_output_file(self, tmp_path, capsys):
        """Test results can be written to a file."""
        from cli import main

        backend = FakeBackend(result={"result": [{"start": "a", "end": "b"}]})
        output = tmp_path / "conjunctions.json"

        with patch("cli.build_job_client", return_value=make_job_client(backend)):
            exit_code = main([
                "search", "2020-01-01", "2020-01-02",
                "--distance", "500", "--ground", "[{}]", "--space", "[{}]",
                "--output", str(output),
            ])

        assert exit_code == 0
        assert json.loads(output.read_text())[0]["end_dt"] == "b"

    def test_validation_failure(self, capsys):
        """Test invalid input exits with 1 before any request."""
        from cli import main

        with patch("cli.build_job_client") as build:
            build.return_value = make_job_client(FakeBackend())
            exit_code = main([
                "search", "not-a-date", "2020-01-02",
                "--distance", "500", "--ground", "[{}]", "--space", "[{}]",
            ])

        assert exit_code == 1
        assert "start" in capsys.readouterr().err

    @pytest.mark.parametrize("distance", ["nan", "inf"])
    def test_non_finite_distance(self, distance, capsys):
        """Test NaN or infinite distances exit with 1 before any request."""
        from cli import main

        backend = FakeBackend()

        with patch("cli.build_job_client", return_value=make_job_client(backend)):
            exit_code = main([
                "search", "2020-01-01", "2020-01-02",
                "--distance", distance, "--ground", "[{}]", "--space", "[{}]",
            ])

        assert exit_code == 1
        assert backend.calls == []
        assert "finite" in capsys.readouterr().err

    def test_invalid_json(self):
        """Test malformed JSON block arguments exit with 1."""
        from cli import main

        with patch("cli.build_job_client") as build:
            exit_code = main(["search", "2020-01-01", "2020-01-02", "--distance", "500", "--ground", "[{"])

        assert exit_code == 1
        build.assert_not_called()

    def test_transport_failure(self):
        """Test network failures exit with 2."""
        from cli import main

        def backend(request):
            raise httpx.ConnectError("unreachable", request=request)

        with patch("cli.build_job_client", return_value=make_job_client(backend)):
            exit_code = main([
                "search", "2020-01-01", "2020-01-02",
                "--distance", "500", "--ground", "[{}]", "--space", "[{}]",
            ])

        assert exit_code == 2


class TestRequestCommands:
    """Tests for status, logs and cancel."""

    def test_status(self, capsys):
        """Test status shows state, count and size."""
        from cli import main

        backend = FakeBackend(statuses=[status_reply(ready=True, file_size=1024 ** 2, result_count=12)])

        with patch("cli.build_job_client", return_value=make_job_client(backend)):
            exit_code = main(["status", "abc123"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "complete" in out
        assert "12" in out
        assert "1.00 MB" in out

    def test_logs(self, capsys):
        """Test logs are printed."""
        from cli import main

        logs = [{"timestamp": "2020-01-01T00:00:00", "level": "info", "summary": "search started"}]
        backend = FakeBackend(statuses=[status_reply(logs=logs)])

        with patch("cli.build_job_client", return_value=make_job_client(backend)):
            exit_code = main(["logs", "abc123"])

        assert exit_code == 0
        assert "search started" in capsys.readouterr().out

    def test_cancel(self):
        """Test cancel sends a DELETE for the request."""
        from cli import main

        backend = FakeBackend()

        with patch("cli.build_job_client", return_value=make_job_client(backend)):
            exit_code = main(["cancel", "abc123"])

        assert exit_code == 0
        assert backend.count("DELETE", JOB_PATH) == 1

    def test_status_not_found(self):
        """Test an unknown request exits with 2."""
        from cli import main

        with patch("cli.build_job_client", return_value=make_job_client(FakeBackend())):
            exit_code = main(["status", "does-not-exist"])

        assert exit_code == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
