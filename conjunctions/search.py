"""
Blocking conjunction search: build, submit, poll, fetch, normalize.

Input problems and backend job problems are reported through
SearchOutcome.error with an empty result. Transport failures propagate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence, Union

import structlog

from conjunctions.distances import Distance
from conjunctions.errors import (
    JobFailedError,
    MalformedResponseError,
    PollTimeoutError,
    SearchValidationError,
)
from conjunctions.models import ConjunctionResult
from conjunctions.normalizer import ResultNormalizer
from conjunctions.request_builder import BlockInput, ConjunctionType, SearchRequestBuilder

if TYPE_CHECKING:
    from fetcher.job_client import AsyncJobClient

logger = structlog.get_logger()

DEFAULT_POLL_INTERVAL = 1.0  # seconds


@dataclass
class SearchOutcome:
    """Result of a conjunction search call."""
    success: bool
    result: ConjunctionResult = field(default_factory=ConjunctionResult)
    error: Optional[str] = None
    payload: Optional[dict[str, Any]] = None  # Serialized request, set once built
    job_id: Optional[str] = None
    dry_run: bool = False


def _progress(verbose: bool, message: str, **context) -> None:
    if verbose:
        logger.info(message, **context)
    else:
        logger.debug(message, **context)


def search_conjunctions(
    job_client: Optional["AsyncJobClient"],
    start: Union[str, datetime],
    end: Union[str, datetime],
    distance: Union[Distance, float, Mapping[str, float]],
    ground: Optional[Sequence[BlockInput]] = None,
    space: Optional[Sequence[BlockInput]] = None,
    events: Optional[Sequence[BlockInput]] = None,
    conjunction_types: Optional[Iterable[Union[str, ConjunctionType]]] = None,
    epoch_search_precision: int = 60,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    timeout: Optional[float] = None,
    dry_run: bool = False,
    verbose: bool = False,
    builder: Optional[SearchRequestBuilder] = None,
    normalizer: Optional[ResultNormalizer] = None
) -> SearchOutcome:
    """
    Run one conjunction search to completion.

    Args:
        job_client: Client used for the backend job; may be None for dry runs
        start: Start of the search window
        end: End of the search window
        distance: Max distance for every pair, or a map of pair key to distance
        ground: Ground criteria blocks
        space: Space criteria blocks
        events: Events criteria blocks
        conjunction_types: nbtrace/sbtrace/geographic; empty uses backend defaults
        epoch_search_precision: 30 or 60 seconds
        poll_interval: Seconds between status queries
        timeout: Max seconds to wait for the job; None waits indefinitely
        dry_run: Build and return the payload without submitting
        verbose: Log progress at info level

    Returns:
        SearchOutcome

    Raises:
        TransportError: network failure or unexpected HTTP status
    """
    builder = builder or SearchRequestBuilder()
    normalizer = normalizer or ResultNormalizer()

    try:
        request = builder.build(
            start,
            end,
            distance,
            ground=ground,
            space=space,
            events=events,
            conjunction_types=conjunction_types,
            epoch_search_precision=epoch_search_precision,
        )
    except SearchValidationError as e:
        logger.error("Invalid search parameters", error=str(e))
        return SearchOutcome(success=False, error=str(e))

    payload = request.to_payload()
    _progress(verbose, "Search request created", blocks=request.block_count, start=request.start, end=request.end)

    if dry_run:
        _progress(verbose, "Dry run, search not submitted")
        return SearchOutcome(success=True, payload=payload, dry_run=True)

    if job_client is None:
        raise ValueError("job_client is required unless dry_run is set")

    handle = None
    try:
        handle = job_client.submit(request)
        _progress(verbose, "Search submitted", job_id=handle.job_id)
        job_client.poll_until_ready(handle, poll_interval=poll_interval, timeout=timeout)
        _progress(
            verbose,
            "Search completed",
            job_id=handle.job_id,
            result_count=handle.result_count,
            size=handle.size_display
        )
        records = job_client.fetch_result(handle)
        result = normalizer.normalize(records)
    except (JobFailedError, PollTimeoutError, MalformedResponseError) as e:
        job_id = getattr(e, "job_id", None) or (handle.job_id if handle else None)
        logger.error("Conjunction search failed", job_id=job_id, error=str(e))
        return SearchOutcome(success=False, error=str(e), payload=payload, job_id=job_id)

    _progress(verbose, "Search results ready", job_id=handle.job_id, conjunctions=len(result))
    return SearchOutcome(success=True, result=result, payload=payload, job_id=handle.job_id)
