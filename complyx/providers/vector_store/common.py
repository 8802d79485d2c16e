"""Helpers shared by the vector-store backends.

Remote stores only accept flat scalar metadata, so datetimes are stored as
epoch seconds and ``None`` values are omitted.  :func:`flatten_metadata`
and :func:`unflatten_metadata` convert in both directions.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from complyx.models.filters import DATETIME_FIELDS
from complyx.models.vectors import VectorMetadata, VectorRecord
from complyx.utils.errors import ConfigurationError


def check_dimension(vector: Sequence[float], expected: int, provider_name: str) -> None:
    """Raise :class:`ConfigurationError` if *vector* is not *expected* long."""
    if len(vector) != expected:
        raise ConfigurationError(
            message=(
                f"Vector dimension mismatch: got {len(vector)}, store is configured "
                f"for {expected}. Check EMBEDDING_DIMENSION against the embedding model."
            ),
            provider_name=provider_name,
        )


def check_batch_dimensions(
    records: Sequence[VectorRecord], expected: int, provider_name: str
) -> None:
    for record in records:
        check_dimension(record.vector, expected, provider_name)


def to_epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def flatten_metadata(metadata: VectorMetadata) -> dict[str, str | int | float | bool]:
    """Convert metadata into the scalar-only form remote stores accept."""
    flat: dict[str, str | int | float | bool] = {}
    for key, value in metadata.model_dump().items():
        if value is None:
            continue
        if isinstance(value, datetime):
            flat[key] = to_epoch(value)
        else:
            flat[key] = value
    return flat


def unflatten_metadata(raw: Mapping[str, Any] | None) -> VectorMetadata:
    """Reverse :func:`flatten_metadata`."""
    values: dict[str, Any] = {}
    for key, value in (raw or {}).items():
        if key not in VectorMetadata.model_fields:
            continue
        if key in DATETIME_FIELDS and isinstance(value, (int, float)):
            values[key] = datetime.fromtimestamp(value, tz=timezone.utc)
        elif key == "chunk_index" and isinstance(value, float):
            values[key] = int(value)
        else:
            values[key] = value
    values.setdefault("text", "")
    values.setdefault("document_id", "")
    return VectorMetadata(**values)


def chunk_id_prefix(document_id: str) -> str:
    return f"{document_id}-chunk-"
