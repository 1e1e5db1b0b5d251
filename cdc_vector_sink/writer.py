# cdc_vector_sink/writer.py
# SPDX-License-Identifier: Apache-2.0
"""
Collection writer: applies a batch plan to the store.

For one `write_records` call the writer

1. resolves a namespace per record and builds the ordered batch plan;
2. optionally opens connections for all new namespaces in parallel;
3. applies the batches strictly in order, one bulk call per batch.

Failure policy is fail-fast. The first failing batch stops the call, even if
later batches target unrelated namespaces, and the raised error reports how
many records were written by the batches that completed. Earlier batches are
not rolled back.

Concurrent `write_records` calls on the same writer are not supported.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, List, Optional, Sequence

from cdc_vector_sink.batches import Batch, DeleteBatch, UpsertBatch, build_batches
from cdc_vector_sink.context import MetricsSink, NoopMetrics, OperationContext
from cdc_vector_sink.errors import (
    BulkOperationError,
    DeadlineExceeded,
    NamespaceConnectionError,
    VectorSinkError,
)
from cdc_vector_sink.namespaces import NamespaceResolver
from cdc_vector_sink.records import Record
from cdc_vector_sink.registry import ConnectionRegistry
from cdc_vector_sink.store import IndexConnection

logger = logging.getLogger(__name__)


class CollectionWriter:
    _component = "vector_sink"

    def __init__(
        self,
        resolver: NamespaceResolver,
        registry: ConnectionRegistry,
        *,
        metadata_prefix: Optional[str] = None,
        parallel_connect: bool = False,
        max_connect_workers: int = 4,
        metrics: Optional[MetricsSink] = None,
    ) -> None:
        self._resolver = resolver
        self._registry = registry
        self._metadata_prefix = metadata_prefix
        self._parallel_connect = parallel_connect
        self._max_connect_workers = max(1, int(max_connect_workers))
        self._metrics: MetricsSink = metrics or NoopMetrics()

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    def build_batches(self, records: Iterable[Record]) -> List[Batch]:
        return build_batches(
            records,
            self._resolver.resolve,
            metadata_prefix=self._metadata_prefix,
        )

    def _record(self, op: str, t0: float, ok: bool, *, code: str = "OK", **extra) -> None:
        try:
            self._metrics.observe(
                component=self._component,
                op=op,
                ms=(time.monotonic() - t0) * 1000.0,
                ok=ok,
                code=code,
                extra=extra or None,
            )
        except Exception:  # noqa: BLE001
            # Never let metrics recording break the write
            logger.debug("metrics sink failed", exc_info=True)

    def _write_batch(self, batch: Batch, connection: IndexConnection) -> int:
        if isinstance(batch, UpsertBatch):
            return int(connection.upsert_vectors(batch.vectors))
        if isinstance(batch, DeleteBatch):
            return int(connection.delete_vectors(batch.ids))
        raise TypeError(f"unknown batch type {type(batch).__name__}")

    def write_records(
        self,
        records: Sequence[Record],
        *,
        ctx: Optional[OperationContext] = None,
    ) -> int:
        """
        Write `records` in order and return the number of records written.

        Raises a `VectorSinkError` on the first failure. Its `written`
        attribute is the count of records applied by completed batches, and
        `batch_index`/`record_index` locate the failure.
        """
        ctx_details = ctx.details() if ctx else {}
        try:
            batches = self.build_batches(records)
        except VectorSinkError as exc:
            exc.written = 0
            for k, v in ctx_details.items():
                exc.details.setdefault(k, v)
            raise

        connect_failures: Dict[str, NamespaceConnectionError] = {}
        if self._parallel_connect:
            connect_failures = self._registry.prefetch(
                (b.namespace for b in batches),
                max_workers=self._max_connect_workers,
            )

        written = 0
        for index, batch in enumerate(batches):
            if ctx is not None and ctx.should_stop():
                raise DeadlineExceeded(
                    "write stopped before batch: deadline exceeded or cancelled",
                    batch_index=index,
                    namespace=batch.namespace,
                    written=written,
                    details=dict(ctx_details, remaining_batches=len(batches) - index),
                )

            t0 = time.monotonic()
            try:
                if batch.namespace in connect_failures:
                    raise connect_failures.pop(batch.namespace)
                connection = self._registry.get_or_create(batch.namespace)
                count = self._write_batch(batch, connection)
            except VectorSinkError as exc:
                self._record(batch.kind.value, t0, False, code=exc.code, namespace=batch.namespace)
                exc.batch_index = index
                exc.written = written
                if exc.namespace is None:
                    exc.namespace = batch.namespace
                for k, v in ctx_details.items():
                    exc.details.setdefault(k, v)
                logger.debug("batch %d failed after %d record(s) written: %s", index, written, exc)
                raise
            except Exception as exc:  # noqa: BLE001 - store SDKs raise arbitrary errors
                self._record(batch.kind.value, t0, False, code="BULK_OPERATION_ERROR", namespace=batch.namespace)
                raise BulkOperationError(
                    f"failed to {batch.kind.value} {len(batch)} vector(s): {exc}",
                    batch_index=index,
                    namespace=batch.namespace,
                    written=written,
                    details=dict(ctx_details),
                ) from exc

            self._record(batch.kind.value, t0, True, namespace=batch.namespace, size=len(batch))
            logger.debug(
                "batch %d: %s %d record(s) in namespace %r",
                index, batch.kind.value, count, batch.namespace,
            )
            written += count

        try:
            self._metrics.counter(component=self._component, name="records_written", value=written)
        except Exception:  # noqa: BLE001
            logger.debug("metrics sink failed", exc_info=True)
        return written

    def close(self) -> None:
        self._registry.close_all()


__all__ = ["CollectionWriter"]
