"""
Maps raw conjunction records from the backend onto domain records.
"""

from typing import Any, Iterable, Mapping

import structlog
from pydantic import ValidationError

from conjunctions.errors import MalformedResponseError
from conjunctions.models import (
    Conjunction,
    ConjunctionEvent,
    ConjunctionResult,
    ConjunctionWire,
    EventWire,
)

logger = structlog.get_logger()


def event_from_wire(wire: EventWire) -> ConjunctionEvent:
    return ConjunctionEvent(
        start_dt=wire.start,
        end_dt=wire.end,
        conjunction_type=wire.conjunction_type,
        e1_source=wire.e1_source,
        e2_source=wire.e2_source,
        min_distance=wire.min_distance,
        max_distance=wire.max_distance,
        extra=dict(wire.model_extra or {}),
    )


def conjunction_from_wire(wire: ConjunctionWire) -> Conjunction:
    return Conjunction(
        start_dt=wire.start,
        end_dt=wire.end,
        conjunction_type=wire.conjunction_type,
        min_distance=wire.min_distance,
        max_distance=wire.max_distance,
        closest_epoch=wire.closest_epoch,
        farthest_epoch=wire.farthest_epoch,
        data_sources=tuple(wire.data_sources or ()),
        events=tuple(event_from_wire(event) for event in (wire.events or [])),
        extra=dict(wire.model_extra or {}),
    )


class ResultNormalizer:
    """
    Turns the raw result payload into a ConjunctionResult.

    Only field names change: ``start``/``end`` (or ``_end``) become
    ``start_dt``/``end_dt`` on records and on their nested events.
    """

    def normalize(self, raw_records: Iterable[Mapping[str, Any]]) -> ConjunctionResult:
        """
        Args:
            raw_records: Decoded JSON array from the result download

        Returns:
            ConjunctionResult in payload order

        Raises:
            MalformedResponseError: a record does not match the wire format
        """
        if raw_records is None:
            raw_records = []
        if isinstance(raw_records, Mapping) or isinstance(raw_records, (str, bytes)):
            raise MalformedResponseError("Result payload must be a list of records")

        conjunctions = []
        for index, raw in enumerate(raw_records):
            try:
                wire = ConjunctionWire.model_validate(raw)
            except ValidationError as e:
                logger.error("Malformed conjunction record", index=index, error=str(e))
                raise MalformedResponseError(
                    f"Conjunction record {index} is malformed: {e}"
                ) from e
            conjunctions.append(conjunction_from_wire(wire))

        logger.debug("Normalized conjunction results", count=len(conjunctions))
        return ConjunctionResult(tuple(conjunctions))
