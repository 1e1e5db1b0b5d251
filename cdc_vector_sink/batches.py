# cdc_vector_sink/batches.py
# SPDX-License-Identifier: Apache-2.0
"""
Batch building: ordered CDC records → ordered bulk operations.

The store's bulk API accepts either a set of upserts or a set of deletes per
call, scoped to one namespace. Records are grouped into batches in a single
left-to-right pass:

- a record joins the open (last) batch iff it targets the same namespace and
  the same operation category (delete vs. create/update/snapshot);
- otherwise the open batch is closed for good and a new one is started.

There is no lookahead and no merging across a gap, so replaying the batches in
order, and each batch's elements in order, applies exactly the original
sequence. Adjacent batches always differ in namespace or kind.

Example (one namespace):

    U(k1) D(k2) D(k3) C(k4) C(k5) C(k6) D(k7) S(k8) S(k9)
    → Upsert[k1] Delete[k2,k3] Upsert[k4,k5,k6] Delete[k7] Upsert[k8,k9]
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from cdc_vector_sink.errors import VectorSinkError
from cdc_vector_sink.records import Operation, Record
from cdc_vector_sink.vectors import Vector, parse_vector, vector_id

logger = logging.getLogger(__name__)

NamespaceFn = Callable[[Record], str]


class BatchKind(str, enum.Enum):
    UPSERT = "upsert"
    DELETE = "delete"

    @classmethod
    def for_operation(cls, operation: Operation) -> "BatchKind":
        return cls.DELETE if operation.is_delete else cls.UPSERT


@dataclass
class UpsertBatch:
    namespace: str
    vectors: List[Vector] = field(default_factory=list)

    @property
    def kind(self) -> BatchKind:
        return BatchKind.UPSERT

    def element_ids(self) -> List[str]:
        return [v.id for v in self.vectors]

    def __len__(self) -> int:
        return len(self.vectors)


@dataclass
class DeleteBatch:
    namespace: str
    ids: List[str] = field(default_factory=list)

    @property
    def kind(self) -> BatchKind:
        return BatchKind.DELETE

    def element_ids(self) -> List[str]:
        return list(self.ids)

    def __len__(self) -> int:
        return len(self.ids)


Batch = Union[UpsertBatch, DeleteBatch]


class BatchBuilder:
    """
    Incremental batch builder.

    `batches` only ever grows; every batch but the last is closed and never
    touched again. A record that fails to resolve or parse leaves the builder
    exactly as it was before the call.
    """

    def __init__(
        self,
        namespace_of: NamespaceFn,
        *,
        metadata_prefix: Optional[str] = None,
    ) -> None:
        self._namespace_of = namespace_of
        self._metadata_prefix = metadata_prefix
        self._batches: List[Batch] = []

    @property
    def batches(self) -> List[Batch]:
        return self._batches

    def _open_batch(self) -> Optional[Batch]:
        return self._batches[-1] if self._batches else None

    def add(self, record: Record, index: Optional[int] = None) -> Batch:
        """Append `record` and return the batch it landed in."""
        try:
            namespace = self._namespace_of(record)
            kind = BatchKind.for_operation(record.operation)
            # Parse before touching state so a bad record never opens a batch.
            if kind is BatchKind.DELETE:
                element: Any = vector_id(record)
            else:
                element = parse_vector(record, metadata_prefix=self._metadata_prefix)
        except VectorSinkError as exc:
            if exc.record_index is None:
                exc.record_index = index
            raise

        batch = self._open_batch()
        if batch is None or batch.namespace != namespace or batch.kind is not kind:
            batch = UpsertBatch(namespace) if kind is BatchKind.UPSERT else DeleteBatch(namespace)
            self._batches.append(batch)

        if isinstance(batch, UpsertBatch):
            batch.vectors.append(element)
        elif isinstance(batch, DeleteBatch):
            batch.ids.append(element)
        else:  # pragma: no cover - closed union
            raise TypeError(f"unknown batch type {type(batch).__name__}")
        return batch


def build_batches(
    records: Iterable[Record],
    namespace_of: NamespaceFn,
    *,
    metadata_prefix: Optional[str] = None,
) -> List[Batch]:
    """
    Group records into ordered, homogeneous, same-namespace batches.

    On failure the raised `VectorSinkError` has `record_index` set and
    `partial_batches` holding what was built before the failing record.
    """
    builder = BatchBuilder(namespace_of, metadata_prefix=metadata_prefix)
    count = 0
    for index, record in enumerate(records):
        try:
            builder.add(record, index)
        except VectorSinkError as exc:
            exc.partial_batches = list(builder.batches)
            logger.debug(
                "batch build aborted at record %d after %d batch(es): %s",
                index, len(builder.batches), exc.code,
            )
            raise
        count += 1

    logger.debug("built %d batch(es) from %d record(s)", len(builder.batches), count)
    return builder.batches


def plan_summary(batches: Iterable[Batch]) -> List[Dict[str, Any]]:
    """Describe a batch plan in JSON-friendly form."""
    return [
        {
            "index": i,
            "kind": batch.kind.value,
            "namespace": batch.namespace,
            "size": len(batch),
            "ids": batch.element_ids(),
        }
        for i, batch in enumerate(batches)
    ]


__all__ = [
    "BatchKind",
    "UpsertBatch",
    "DeleteBatch",
    "Batch",
    "BatchBuilder",
    "build_batches",
    "plan_summary",
]
