"""Conjunction search: request construction, validation and result handling."""

from conjunctions.distances import (
    MappedDistance,
    ScalarDistance,
    as_distance,
    generate_distance_keys,
    validate_distance_map,
)
from conjunctions.models import Conjunction, ConjunctionEvent, ConjunctionResult
from conjunctions.normalizer import ResultNormalizer
from conjunctions.request_builder import (
    ConjunctionType,
    CriteriaBlock,
    SearchRequest,
    SearchRequestBuilder,
)
from conjunctions.search import SearchOutcome, search_conjunctions

__all__ = [
    "MappedDistance",
    "ScalarDistance",
    "as_distance",
    "generate_distance_keys",
    "validate_distance_map",
    "Conjunction",
    "ConjunctionEvent",
    "ConjunctionResult",
    "ResultNormalizer",
    "ConjunctionType",
    "CriteriaBlock",
    "SearchRequest",
    "SearchRequestBuilder",
    "SearchOutcome",
    "search_conjunctions",
]
