#!/usr/bin/env python3
"""
CLI runner for conjunction searches.

Provides command-line interface for:
- Running a conjunction search (or a dry run that only prints the request)
- Listing the distance pairings a search needs
- Checking, reading logs of, and cancelling submitted searches

Usage:
    python cli.py search 2020-01-01T00:00 2020-01-01T06:00 --distance 500 \
        --ground '[{"programs": ["themis-asi"]}]' \
        --space '[{"programs": ["swarm"], "hemisphere": ["northern"]}]'
    python cli.py search 2020-01-01 2020-01-02 --distance 500 --ground '[{}, {}]' --dry-run
    python cli.py pairs 1 2 0       # Distance keys for 1 ground, 2 space blocks
    python cli.py status <request-id>
    python cli.py logs <request-id>
    python cli.py cancel <request-id>
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import structlog

from config import settings
from conjunctions.distances import generate_distance_keys
from conjunctions.errors import ConjunctionSearchError, SearchValidationError, TransportError
from conjunctions.search import search_conjunctions
from fetcher.api_client import ApiClient
from fetcher.job_client import AsyncJobClient

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_TRANSPORT = 2


def _stderr_logger(*args) -> structlog.PrintLogger:
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog console output on stderr at the given level."""
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=_stderr_logger,
    )


def parse_json_arg(value: Optional[str], name: str) -> Any:
    """Decode a JSON argument. A leading '@' reads the JSON from a file."""
    if value is None:
        return None
    try:
        if value.startswith("@"):
            return json.loads(Path(value[1:]).read_text())
        return json.loads(value)
    except (OSError, ValueError) as e:
        raise SearchValidationError(f"Invalid JSON for {name}: {e}") from e


def parse_distance(value: str) -> Any:
    """A distance is a plain number or a JSON object of pair keys."""
    try:
        return float(value)
    except ValueError:
        return parse_json_arg(value, "--distance")


def build_job_client() -> AsyncJobClient:
    api_client = ApiClient(
        base_url=settings.AURORAX_API_URL,
        version=settings.APP_VERSION,
        api_key=settings.AURORAX_API_KEY or None,
        timeout=settings.AURORAX_API_TIMEOUT,
    )
    return AsyncJobClient(api_client)


def cmd_search(args) -> int:
    """Run a conjunction search."""
    try:
        distance = parse_distance(args.distance)
        ground = parse_json_arg(args.ground, "--ground")
        space = parse_json_arg(args.space, "--space")
        events = parse_json_arg(args.events, "--events")
    except SearchValidationError as e:
        logger.error("Invalid arguments", error=str(e))
        return EXIT_FAILED

    job_client = None if args.dry_run else build_job_client()
    try:
        outcome = search_conjunctions(
            job_client,
            args.start,
            args.end,
            distance,
            ground=ground,
            space=space,
            events=events,
            conjunction_types=args.conjunction_types,
            epoch_search_precision=args.precision,
            poll_interval=args.poll_interval,
            timeout=args.timeout,
            dry_run=args.dry_run,
            verbose=args.verbose,
        )
    except TransportError as e:
        logger.error("Search failed", error=str(e), status=e.status_code)
        return EXIT_TRANSPORT
    finally:
        if job_client is not None:
            job_client.api_client.close()

    if not outcome.success:
        print(f"Search failed: {outcome.error}", file=sys.stderr)
        return EXIT_FAILED

    if outcome.dry_run:
        print(json.dumps(outcome.payload, indent=2))
        return EXIT_OK

    output = json.dumps(outcome.result.to_dicts(), indent=2, default=str)
    if args.output:
        Path(args.output).write_text(output)
        print(f"Wrote {len(outcome.result)} conjunctions to {args.output}")
    else:
        print(output)

    print("\n=== Search Results ===", file=sys.stderr)
    print(f"Request: {outcome.job_id}", file=sys.stderr)
    print(f"Conjunctions: {len(outcome.result)}", file=sys.stderr)
    return EXIT_OK


def cmd_pairs(args) -> int:
    """Print distance keys for the given block counts."""
    try:
        keys = generate_distance_keys(args.ground, args.space, args.events)
    except SearchValidationError as e:
        print(str(e), file=sys.stderr)
        return EXIT_FAILED

    for key in keys:
        print(key)
    return EXIT_OK


def _with_job(args, action) -> int:
    job_client = build_job_client()
    try:
        handle = job_client.handle_for(args.request_id)
        action(job_client, handle)
    except TransportError as e:
        logger.error("Request failed", request_id=args.request_id, error=str(e), status=e.status_code)
        return EXIT_TRANSPORT
    except ConjunctionSearchError as e:
        logger.error("Request failed", request_id=args.request_id, error=str(e))
        return EXIT_FAILED
    finally:
        job_client.api_client.close()
    return EXIT_OK


def cmd_status(args) -> int:
    """Show status of a submitted search."""
    def show(job_client, handle):
        status = job_client.get_status(handle)
        state = "failed" if status.failed else ("complete" if status.ready else "running")
        print(f"Request:     {handle.job_id}")
        print(f"Status:      {state}")
        print(f"Results:     {status.result_count if status.result_count is not None else 'n/a'}")
        print(f"Size:        {handle.size_display}")

    return _with_job(args, show)


def cmd_logs(args) -> int:
    """Print backend logs of a submitted search."""
    def show(job_client, handle):
        for entry in job_client.get_logs(handle):
            if isinstance(entry, dict):
                print(f"[{entry.get('timestamp', '')}] {entry.get('level', '')} {entry.get('summary', '')}")
            else:
                print(entry)

    return _with_job(args, show)


def cmd_cancel(args) -> int:
    """Cancel a submitted search."""
    def cancel(job_client, handle):
        job_client.cancel(handle)
        print(f"Cancelled {handle.job_id}")

    return _with_job(args, cancel)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AuroraX conjunction search CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  search    Run a conjunction search
  pairs     List distance keys needed for a set of blocks
  status    Show status of a submitted search
  logs      Show backend logs of a submitted search
  cancel    Cancel a submitted search

Examples:
  python cli.py search 2020-01-01 2020-01-02 --distance 500 --ground '[{}]' --space '[{}]'
  python cli.py pairs 1 2 0
  python cli.py status 0b6a4e1c-...
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Run a conjunction search")
    search.add_argument("start", help="Start timestamp, e.g. 2020-01-01T00:00")
    search.add_argument("end", help="End timestamp")
    search.add_argument(
        "--distance",
        required=True,
        help="Max distance in km, or a JSON object such as '{\"ground1-space1\": 500}'"
    )
    search.add_argument("--ground", help="JSON list of ground criteria blocks (or @file)")
    search.add_argument("--space", help="JSON list of space criteria blocks (or @file)")
    search.add_argument("--events", help="JSON list of events criteria blocks (or @file)")
    search.add_argument(
        "--conjunction-types",
        nargs="*",
        default=[],
        help="Any of nbtrace, sbtrace, geographic"
    )
    search.add_argument("--precision", type=int, default=60, choices=[30, 60],
                        help="Epoch search precision in seconds")
    search.add_argument("--poll-interval", type=float, default=settings.POLL_INTERVAL,
                        help="Seconds between status checks")
    search.add_argument("--timeout", type=float, default=settings.POLL_TIMEOUT,
                        help="Give up waiting after this many seconds (default: wait)")
    search.add_argument("--verbose", "-v", action="store_true", help="Verbose progress logging")
    search.add_argument("--dry-run", action="store_true",
                        help="Print the request body instead of submitting it")
    search.add_argument("--output", "-o", help="Write results JSON to this file")
    search.set_defaults(func=cmd_search)

    pairs = subparsers.add_parser("pairs", help="List required distance keys")
    pairs.add_argument("ground", type=int, help="Number of ground blocks")
    pairs.add_argument("space", type=int, help="Number of space blocks")
    pairs.add_argument("events", type=int, nargs="?", default=0, help="Number of events blocks")
    pairs.set_defaults(func=cmd_pairs)

    for name, func, help_text in (
        ("status", cmd_status, "Show status of a submitted search"),
        ("logs", cmd_logs, "Show backend logs of a submitted search"),
        ("cancel", cmd_cancel, "Cancel a submitted search"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("request_id", help="Request id returned on submission")
        sub.set_defaults(func=func)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if getattr(args, "verbose", False) else settings.LOG_LEVEL)

    issues = settings.validate()
    if issues:
        for issue in issues:
            logger.warning(f"Configuration issue: {issue}")

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
