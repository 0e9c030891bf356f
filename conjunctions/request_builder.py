"""
Construction and validation of conjunction search requests.

Builds the JSON body posted to the search endpoint. Nothing here touches the
network; every validation error is raised before a request object exists.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import structlog
from dateutil import parser as date_parser

from conjunctions.distances import Distance, as_distance
from conjunctions.errors import (
    BlockCountExceededError,
    InvalidCriteriaError,
    TimestampParseError,
)

logger = structlog.get_logger()

MAX_CRITERIA_BLOCKS = 10
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"
EPOCH_SEARCH_PRECISIONS = (30, 60)
HEMISPHERES = ("northern", "southern")


class ConjunctionType(str, Enum):
    """How spatial proximity between blocks is measured."""
    NBTRACE = "nbtrace"
    SBTRACE = "sbtrace"
    GEOGRAPHIC = "geographic"


def parse_timestamp(value: Union[str, date, datetime], bound: str = "start") -> str:
    """
    Parse a flexible timestamp and normalize it to second resolution.

    Timezone-aware values are converted to UTC before formatting.

    Args:
        value: datetime, date, or a string in any format dateutil understands
        bound: "start" or "end", used in the error message

    Returns:
        Timestamp formatted as YYYY-MM-DDTHH:MM:SS
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif isinstance(value, str) and value.strip():
        try:
            parsed = date_parser.parse(value)
        except (ValueError, OverflowError) as e:
            logger.warning("Timestamp parse failed", bound=bound, value=value, error=str(e))
            raise TimestampParseError(bound, value) from e
    else:
        raise TimestampParseError(bound, value)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed.strftime(TIMESTAMP_FORMAT)


def normalize_conjunction_types(values: Iterable[Union[str, ConjunctionType]]) -> list[str]:
    """Deduplicate conjunction types and order them as the enum does."""
    requested = set()
    for value in values or ():
        try:
            requested.add(ConjunctionType(str(getattr(value, "value", value)).strip().lower()))
        except ValueError:
            valid = ", ".join(t.value for t in ConjunctionType)
            raise InvalidCriteriaError(
                f"Unknown conjunction type {value!r}, expected one of: {valid}"
            ) from None
    return [t.value for t in ConjunctionType if t in requested]


@dataclass(frozen=True)
class CriteriaBlock:
    """
    One set of matching rules for a ground, space or events block.

    Metadata filters are passed to the backend as given.
    """
    programs: tuple[str, ...] = ()
    platforms: tuple[str, ...] = ()
    instrument_types: tuple[str, ...] = ()
    ephemeris_metadata_filters: Optional[Mapping[str, Any]] = None
    hemisphere: tuple[str, ...] = ()

    FIELDS = (
        "programs",
        "platforms",
        "instrument_types",
        "ephemeris_metadata_filters",
        "hemisphere",
    )

    def __post_init__(self):
        for name in ("programs", "platforms", "instrument_types", "hemisphere"):
            value = getattr(self, name)
            if isinstance(value, str):
                value = (value,)
            object.__setattr__(self, name, tuple(value or ()))
        for value in self.hemisphere:
            if value not in HEMISPHERES:
                raise InvalidCriteriaError(
                    f"Hemisphere must be one of {', '.join(HEMISPHERES)}, got {value!r}"
                )
        if self.ephemeris_metadata_filters is not None and not isinstance(
            self.ephemeris_metadata_filters, Mapping
        ):
            raise InvalidCriteriaError("ephemeris_metadata_filters must be a mapping")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CriteriaBlock":
        """Build a block from its JSON representation."""
        if not isinstance(data, Mapping):
            raise InvalidCriteriaError(
                f"Criteria block must be a mapping, got {type(data).__name__}"
            )
        unknown = sorted(set(data) - set(cls.FIELDS))
        if unknown:
            raise InvalidCriteriaError(f"Unknown criteria block fields: {', '.join(unknown)}")
        return cls(**data)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "programs": list(self.programs),
            "platforms": list(self.platforms),
            "instrument_types": list(self.instrument_types),
        }
        if self.ephemeris_metadata_filters:
            payload["ephemeris_metadata_filters"] = dict(self.ephemeris_metadata_filters)
        if self.hemisphere:
            payload["hemisphere"] = list(self.hemisphere)
        return payload


BlockInput = Union[CriteriaBlock, Mapping[str, Any]]


def _as_blocks(blocks: Optional[Iterable[BlockInput]]) -> tuple[CriteriaBlock, ...]:
    return tuple(
        block if isinstance(block, CriteriaBlock) else CriteriaBlock.from_dict(block)
        for block in (blocks or ())
    )


@dataclass(frozen=True)
class SearchRequest:
    """A validated conjunction search, ready to serialize."""
    start: str
    end: str
    ground: tuple[CriteriaBlock, ...] = ()
    space: tuple[CriteriaBlock, ...] = ()
    events: tuple[CriteriaBlock, ...] = ()
    conjunction_types: tuple[str, ...] = ()
    max_distances: Mapping[str, float] = field(default_factory=dict)
    epoch_search_precision: int = 60

    @property
    def block_count(self) -> int:
        return len(self.ground) + len(self.space) + len(self.events)

    def to_payload(self) -> dict[str, Any]:
        """JSON body for the search endpoint."""
        return {
            "start": self.start,
            "end": self.end,
            "ground": [block.to_payload() for block in self.ground],
            "space": [block.to_payload() for block in self.space],
            "events": [block.to_payload() for block in self.events],
            "conjunction_types": list(self.conjunction_types),
            "max_distances": dict(self.max_distances),
            "epoch_search_precision": self.epoch_search_precision,
        }


class SearchRequestBuilder:
    """
    Validates caller parameters and assembles a SearchRequest.

    Checks run in a fixed order: timestamps, block count, criteria,
    conjunction types, precision, distances.
    """

    def __init__(self, max_blocks: int = MAX_CRITERIA_BLOCKS):
        self.max_blocks = max_blocks

    def build(
        self,
        start: Union[str, datetime],
        end: Union[str, datetime],
        distance: Union[Distance, float, Mapping[str, float]],
        ground: Optional[Sequence[BlockInput]] = None,
        space: Optional[Sequence[BlockInput]] = None,
        events: Optional[Sequence[BlockInput]] = None,
        conjunction_types: Optional[Iterable[Union[str, ConjunctionType]]] = None,
        epoch_search_precision: int = 60,
    ) -> SearchRequest:
        """
        Build a search request.

        Args:
            start: Start of the search window
            end: End of the search window
            distance: ScalarDistance, MappedDistance, or a raw number/mapping
            ground: Ground criteria blocks
            space: Space criteria blocks
            events: Events criteria blocks
            conjunction_types: Subset of nbtrace/sbtrace/geographic, may be empty
            epoch_search_precision: 30 or 60 seconds

        Returns:
            SearchRequest

        Raises:
            SearchValidationError: any input is invalid
        """
        start_ts = parse_timestamp(start, "start")
        end_ts = parse_timestamp(end, "end")

        ground = list(ground or ())
        space = list(space or ())
        events = list(events or ())
        total = len(ground) + len(space) + len(events)
        if total > self.max_blocks:
            logger.warning("Too many criteria blocks", count=total, limit=self.max_blocks)
            raise BlockCountExceededError(total, self.max_blocks)

        ground_blocks = _as_blocks(ground)
        space_blocks = _as_blocks(space)
        events_blocks = _as_blocks(events)

        types = normalize_conjunction_types(conjunction_types)

        if epoch_search_precision not in EPOCH_SEARCH_PRECISIONS:
            raise InvalidCriteriaError(
                f"epoch_search_precision must be 30 or 60, got {epoch_search_precision!r}"
            )

        max_distances = as_distance(distance).resolve(
            len(ground_blocks), len(space_blocks), len(events_blocks)
        )

        request = SearchRequest(
            start=start_ts,
            end=end_ts,
            ground=ground_blocks,
            space=space_blocks,
            events=events_blocks,
            conjunction_types=tuple(types),
            max_distances=max_distances,
            epoch_search_precision=epoch_search_precision,
        )
        logger.debug(
            "Search request built",
            start=start_ts,
            end=end_ts,
            blocks=request.block_count,
            pairings=len(max_distances),
        )
        return request
