# cdc_vector_sink/vectors.py
# SPDX-License-Identifier: Apache-2.0
"""
Record → vector parsing.

The `after` payload of every non-delete record must be JSON of the form

    {
        "values": [<float>, ...],
        "sparse_values": {"indices": [<uint32>, ...], "values": [<float>, ...]}
    }

where `sparse_values` is optional. A sparse component whose arrays are both
empty is reported as absent (`NO_SPARSE_VALUES`), because the store rejects a
sparse field that is present but empty.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from cdc_vector_sink.errors import EmptyPayload, InvalidRecord, MalformedPayload
from cdc_vector_sink.records import Record

UINT32_MAX = 2**32 - 1
FLOAT32_MAX = 3.4028234663852886e38

NO_SPARSE_VALUES = None
"""Sentinel for a vector without a sparse component."""


@dataclass(frozen=True)
class SparseValues:
    indices: List[int]
    values: List[float]


@dataclass(frozen=True)
class Vector:
    """
    A vector ready to be written to the store.

    Attributes:
        id: Vector identifier (the record key)
        values: Dense vector values
        sparse_values: Optional sparse component, `NO_SPARSE_VALUES` if absent
        metadata: Metadata stored alongside the vector
    """
    id: str
    values: List[float]
    sparse_values: Optional[SparseValues] = NO_SPARSE_VALUES
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Store wire representation; absent parts are omitted."""
        item: Dict[str, Any] = {"id": self.id, "values": list(self.values)}
        if self.sparse_values is not NO_SPARSE_VALUES:
            item["sparse_values"] = {
                "indices": list(self.sparse_values.indices),
                "values": list(self.sparse_values.values),
            }
        if self.metadata:
            item["metadata"] = dict(self.metadata)
        return item


def vector_id(record: Record) -> str:
    try:
        return record.key.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidRecord("record key is not valid UTF-8") from exc


def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def _float_list(raw: Any, field_name: str) -> List[float]:
    if not isinstance(raw, list) or not all(_is_number(x) for x in raw):
        raise MalformedPayload(f"{field_name} must be a list of numbers")
    values: List[float] = []
    for x in raw:
        if isinstance(x, float) and not math.isfinite(x):
            raise MalformedPayload(f"{field_name} must contain only finite numbers")
        if abs(x) > FLOAT32_MAX:
            raise MalformedPayload(
                f"{field_name} must contain only float32 numbers, got {x!r}",
            )
        values.append(float(x))
    return values


def _parse_sparse(raw: Any) -> Optional[SparseValues]:
    if raw is None:
        return NO_SPARSE_VALUES
    if not isinstance(raw, dict):
        raise MalformedPayload("sparse_values must be an object")

    indices = raw.get("indices")
    if indices is None:
        indices = []
    if not isinstance(indices, list) or not all(
        isinstance(i, int) and not isinstance(i, bool) and 0 <= i <= UINT32_MAX
        for i in indices
    ):
        raise MalformedPayload("sparse_values.indices must be a list of uint32 integers")
    values = raw.get("values")
    values = _float_list([] if values is None else values, "sparse_values.values")

    if not indices and not values:
        return NO_SPARSE_VALUES
    if len(indices) != len(values):
        raise MalformedPayload(
            "sparse_values.indices and sparse_values.values must have the same length",
            details={"indices": len(indices), "values": len(values)},
        )
    return SparseValues(indices=list(indices), values=values)


def parse_payload(record: Record) -> Tuple[List[float], Optional[SparseValues]]:
    """Decode the dense and sparse components of a record's `after` payload."""
    data = record.payload.after
    if not data:
        raise EmptyPayload(f"empty payload for {record.operation.value} record")

    try:
        decoded = json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedPayload(f"payload is not valid JSON: {exc}") from exc

    if not isinstance(decoded, dict):
        raise MalformedPayload("payload must be a JSON object")
    if "values" not in decoded:
        raise MalformedPayload("payload is missing required field 'values'")

    values = _float_list(decoded["values"], "values")
    sparse = _parse_sparse(decoded.get("sparse_values"))
    return values, sparse


def parse_metadata(record: Record, prefix: Optional[str] = None) -> Dict[str, Any]:
    """
    Copy record metadata into vector metadata.

    With a prefix, only keys starting with it are kept and the prefix is
    stripped from them (`pinecone.lang` → `lang` for prefix `pinecone.`).
    """
    if not prefix:
        return dict(record.metadata)
    return {
        key[len(prefix):]: value
        for key, value in record.metadata.items()
        if key.startswith(prefix) and len(key) > len(prefix)
    }


def parse_vector(record: Record, *, metadata_prefix: Optional[str] = None) -> Vector:
    """Build the store vector for an upsert-like record."""
    values, sparse = parse_payload(record)
    return Vector(
        id=vector_id(record),
        values=values,
        sparse_values=sparse,
        metadata=parse_metadata(record, metadata_prefix),
    )


__all__ = [
    "NO_SPARSE_VALUES",
    "SparseValues",
    "Vector",
    "vector_id",
    "parse_payload",
    "parse_metadata",
    "parse_vector",
]
