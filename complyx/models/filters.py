"""Metadata filter language for vector-store queries.

Filters are a tagged union of leaf predicates and boolean combinators:

    Eq(field, value)          exact match
    In(field, values)         match any of a set of values
    Range(field, gte, lte)    inclusive numeric / datetime range
    Contains(field, value)    case-insensitive substring
    And(filters) / Or(filters) / Not(filter)

The ``op`` key is the discriminator, so a filter round-trips through JSON,
e.g. ``{"op": "and", "filters": [{"op": "eq", "field": "section",
"value": "B3"}]}``.  ``None`` means "no filter" and matches every record.
``And``/``Or`` require at least one child.

:func:`evaluate` is the reference semantics; remote backends translate what
they can and always re-check results with it.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from complyx.models.vectors import VectorMetadata

FILTERABLE_FIELDS: frozenset[str] = frozenset(VectorMetadata.model_fields)
DATETIME_FIELDS: frozenset[str] = frozenset({"created_at", "updated_at", "publish_date"})

Scalar = Union[str, int, float, bool]


class _Leaf(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str

    @field_validator("field")
    @classmethod
    def _known_field(cls, value: str) -> str:
        if value not in FILTERABLE_FIELDS:
            raise ValueError(
                f"Unknown metadata field '{value}'; expected one of {sorted(FILTERABLE_FIELDS)}"
            )
        return value


class Eq(_Leaf):
    op: Literal["eq"] = "eq"
    value: Scalar


class In(_Leaf):
    op: Literal["in"] = "in"
    values: list[Scalar] = Field(min_length=1)


class Range(_Leaf):
    """Inclusive bounds.  On datetime fields numeric bounds are epoch seconds (UTC)."""

    op: Literal["range"] = "range"
    gte: float | datetime | None = None
    lte: float | datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _epoch_bounds(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or data.get("field") not in DATETIME_FIELDS:
            return data
        data = dict(data)
        for key in ("gte", "lte"):
            bound = data.get(key)
            if isinstance(bound, (int, float)) and not isinstance(bound, bool):
                data[key] = datetime.fromtimestamp(bound, tz=timezone.utc)
        return data


class Contains(_Leaf):
    op: Literal["contains"] = "contains"
    value: str


class And(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["and"] = "and"
    filters: list[MetadataFilter] = Field(min_length=1)


class Or(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["or"] = "or"
    filters: list[MetadataFilter] = Field(min_length=1)


class Not(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: Literal["not"] = "not"
    filter: MetadataFilter


MetadataFilter = Annotated[
    Union[Eq, In, Range, Contains, And, Or, Not],
    Field(discriminator="op"),
]

And.model_rebuild()
Or.model_rebuild()
Not.model_rebuild()

_FILTER_ADAPTER: TypeAdapter[Any] = TypeAdapter(MetadataFilter)


def parse_filter(data: Mapping[str, Any] | None) -> MetadataFilter | None:
    """Build a filter tree from its JSON form (``None`` passes through)."""
    if data is None:
        return None
    return _FILTER_ADAPTER.validate_python(data)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _comparable(left: Any, right: Any) -> tuple[Any, Any] | None:
    """Normalise a metadata value and a bound so they can be ordered."""
    if isinstance(left, datetime) and isinstance(right, datetime):
        return _as_utc(left), _as_utc(right)
    if isinstance(left, bool) or isinstance(right, bool):
        return None
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left, right
    return None


def _in_range(value: Any, node: Range) -> bool:
    if value is None:
        return False
    if node.gte is not None:
        pair = _comparable(value, node.gte)
        if pair is None or pair[0] < pair[1]:
            return False
    if node.lte is not None:
        pair = _comparable(value, node.lte)
        if pair is None or pair[0] > pair[1]:
            return False
    return True


def evaluate(node: MetadataFilter | None, metadata: VectorMetadata | Mapping[str, Any]) -> bool:
    """Return ``True`` if *metadata* satisfies the filter tree *node*."""
    if node is None:
        return True
    values = metadata.model_dump() if isinstance(metadata, VectorMetadata) else metadata
    return _evaluate(node, values)


def _evaluate(node: Any, values: Mapping[str, Any]) -> bool:
    if isinstance(node, Eq):
        return values.get(node.field) == node.value
    if isinstance(node, In):
        return values.get(node.field) in node.values
    if isinstance(node, Range):
        return _in_range(values.get(node.field), node)
    if isinstance(node, Contains):
        current = values.get(node.field)
        return isinstance(current, str) and node.value.lower() in current.lower()
    if isinstance(node, And):
        return all(_evaluate(child, values) for child in node.filters)
    if isinstance(node, Or):
        return any(_evaluate(child, values) for child in node.filters)
    if isinstance(node, Not):
        return not _evaluate(node.filter, values)
    raise TypeError(f"Unsupported filter node: {type(node).__name__}")
