"""
Distance pairing for multi-block conjunction searches.

Every pair of criteria blocks in a search needs its own maximum distance.
Keys look like ``ground1-space2``: category name plus 1-based index within
that category, one key per unordered pair.
"""

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Mapping, Optional, Union

import structlog

from conjunctions.errors import DistanceValidationError, InsufficientBlocksError

logger = structlog.get_logger()

CATEGORIES = ("ground", "space", "events")


def block_labels(ground_count: int, space_count: int, events_count: int) -> list[str]:
    """Labels for all blocks in fixed category order, indices starting at 1."""
    labels = []
    for category, count in zip(CATEGORIES, (ground_count, space_count, events_count)):
        labels.extend(f"{category}{i}" for i in range(1, count + 1))
    return labels


def generate_distance_keys(ground_count: int, space_count: int, events_count: int) -> list[str]:
    """
    Enumerate the distance keys required for the given block counts.

    Args:
        ground_count: Number of ground criteria blocks
        space_count: Number of space criteria blocks
        events_count: Number of events criteria blocks

    Returns:
        Unique keys in stable enumeration order, one per unordered block pair

    Raises:
        InsufficientBlocksError: fewer than two blocks in total
    """
    counts = (ground_count, space_count, events_count)
    total = sum(counts)
    if min(counts) < 0 or total < 2:
        logger.warning("Distance pairing needs at least two blocks", total=total)
        raise InsufficientBlocksError(total)

    labels = block_labels(ground_count, space_count, events_count)
    keys: dict[str, None] = {}
    for i, first in enumerate(labels):
        for j, second in enumerate(labels):
            if i == j:
                continue
            key = f"{first}-{second}"
            if key not in keys and f"{second}-{first}" not in keys:
                keys[key] = None

    return list(keys)


def validate_distance_map(
    distances: Mapping[str, float],
    ground_count: int,
    space_count: int,
    events_count: int
) -> tuple[bool, Optional[str]]:
    """
    Check that a distance map covers every required block pair.

    Extra keys are ignored.

    Returns:
        Tuple of (is_valid, first missing key)
    """
    for key in generate_distance_keys(ground_count, space_count, events_count):
        if key not in distances:
            logger.warning("Distance map is missing a pairing", missing_key=key)
            return False, key
    return True, None


def _check_value(key: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise DistanceValidationError(f"Distance for {key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise DistanceValidationError(f"Distance for {key} must be finite, got {value}")
    if value < 0:
        raise DistanceValidationError(f"Distance for {key} must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class ScalarDistance:
    """One distance applied to every block pair."""
    value: float

    def resolve(self, ground_count: int, space_count: int, events_count: int) -> dict[str, float]:
        value = _check_value("all pairs", self.value)
        return {
            key: value
            for key in generate_distance_keys(ground_count, space_count, events_count)
        }


@dataclass(frozen=True)
class MappedDistance:
    """Explicit distance per block pair."""
    distances: Mapping[str, float] = field(default_factory=dict)

    def resolve(self, ground_count: int, space_count: int, events_count: int) -> dict[str, float]:
        is_valid, missing_key = validate_distance_map(
            self.distances, ground_count, space_count, events_count
        )
        if not is_valid:
            raise DistanceValidationError(
                f"Distance map is missing required pairing '{missing_key}'",
                missing_key=missing_key
            )
        return {key: _check_value(key, value) for key, value in self.distances.items()}


Distance = Union[ScalarDistance, MappedDistance]


def as_distance(raw) -> Distance:
    """
    Convert a raw number or mapping into a Distance.

    Existing ScalarDistance/MappedDistance values are returned unchanged.
    """
    if isinstance(raw, (ScalarDistance, MappedDistance)):
        return raw
    if isinstance(raw, Mapping):
        return MappedDistance(dict(raw))
    if isinstance(raw, Real) and not isinstance(raw, bool):
        return ScalarDistance(raw)
    raise DistanceValidationError(
        f"Distance must be a number or a mapping of pair keys to numbers, got {type(raw).__name__}"
    )
