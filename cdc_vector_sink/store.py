# cdc_vector_sink/store.py
# SPDX-License-Identifier: Apache-2.0
"""
Store-facing contracts.

The sink talks to the vector store through one connection per namespace.
Connections are blocking: a call returns once the store has acknowledged the
bulk operation or raised. Implementations should raise `BulkOperationError`
(or another `VectorSinkError`) with a meaningful `code`; anything else is
wrapped by the writer.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from cdc_vector_sink.vectors import Vector


@runtime_checkable
class IndexConnection(Protocol):
    """A connection to the index, bound to a single namespace."""

    namespace: str

    def upsert_vectors(self, vectors: Sequence[Vector]) -> int:
        """Upsert all vectors in one call; return the number written."""
        ...

    def delete_vectors(self, ids: Sequence[str]) -> int:
        """Delete all ids in one call; return the number deleted."""
        ...

    def close(self) -> None: ...


class ConnectionFactory(Protocol):
    """Opens a connection for a namespace (`""` is the default namespace)."""

    def __call__(self, namespace: str) -> IndexConnection: ...


__all__ = [
    "IndexConnection",
    "ConnectionFactory",
]
