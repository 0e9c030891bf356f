"""
Result record types.

Wire models mirror the JSON the backend returns, where the interval end is
named ``end`` (older payloads use ``_end``). Domain records are what callers
receive: frozen, with ``start_dt``/``end_dt`` naming.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class EventWire(BaseModel):
    """One per-pair event inside a conjunction, as sent by the backend."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    start: Any = None
    end: Any = Field(default=None, validation_alias=AliasChoices("end", "_end"))
    conjunction_type: Optional[str] = None
    e1_source: Any = None
    e2_source: Any = None
    min_distance: Optional[float] = None
    max_distance: Optional[float] = None


class ConjunctionWire(BaseModel):
    """One conjunction record, as sent by the backend."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    start: Any = None
    end: Any = Field(default=None, validation_alias=AliasChoices("end", "_end"))
    conjunction_type: Optional[str] = None
    min_distance: Optional[float] = None
    max_distance: Optional[float] = None
    closest_epoch: Any = None
    farthest_epoch: Any = None
    data_sources: Optional[list[Any]] = None
    events: Optional[list[EventWire]] = None


@dataclass(frozen=True)
class ConjunctionEvent:
    """Distance between two specific data sources during a conjunction."""
    start_dt: Any
    end_dt: Any
    conjunction_type: Optional[str] = None
    e1_source: Any = None
    e2_source: Any = None
    min_distance: Optional[float] = None
    max_distance: Optional[float] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_dt": self.start_dt,
            "end_dt": self.end_dt,
            "conjunction_type": self.conjunction_type,
            "e1_source": self.e1_source,
            "e2_source": self.e2_source,
            "min_distance": self.min_distance,
            "max_distance": self.max_distance,
            **self.extra,
        }


@dataclass(frozen=True)
class Conjunction:
    """A period where all criteria blocks matched within the distance limits."""
    start_dt: Any
    end_dt: Any
    conjunction_type: Optional[str] = None
    min_distance: Optional[float] = None
    max_distance: Optional[float] = None
    closest_epoch: Any = None
    farthest_epoch: Any = None
    data_sources: tuple[Any, ...] = ()
    events: tuple[ConjunctionEvent, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_dt": self.start_dt,
            "end_dt": self.end_dt,
            "conjunction_type": self.conjunction_type,
            "min_distance": self.min_distance,
            "max_distance": self.max_distance,
            "closest_epoch": self.closest_epoch,
            "farthest_epoch": self.farthest_epoch,
            "data_sources": list(self.data_sources),
            "events": [event.to_dict() for event in self.events],
            **self.extra,
        }


@dataclass(frozen=True)
class ConjunctionResult:
    """Ordered, immutable set of conjunctions returned by a search."""
    conjunctions: tuple[Conjunction, ...] = ()

    def __len__(self) -> int:
        return len(self.conjunctions)

    def __iter__(self) -> Iterator[Conjunction]:
        return iter(self.conjunctions)

    def __getitem__(self, index: int) -> Conjunction:
        return self.conjunctions[index]

    def to_dicts(self) -> list[dict[str, Any]]:
        return [conjunction.to_dict() for conjunction in self.conjunctions]
