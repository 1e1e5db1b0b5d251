# cdc_vector_sink/registry.py
# SPDX-License-Identifier: Apache-2.0
"""
Namespace → connection cache.

One connection per namespace is opened lazily, the first time a batch for
that namespace is written, and reused for the lifetime of the writer.
Teardown closes every cached connection exactly once: unlike writing, closing
is best effort with total coverage, so a failing close never prevents the
remaining ones from being attempted.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Dict, Iterable, List, Optional

from cdc_vector_sink.errors import CloseError, NamespaceConnectionError, VectorSinkError
from cdc_vector_sink.store import ConnectionFactory, IndexConnection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    def __init__(self, factory: ConnectionFactory) -> None:
        self._factory = factory
        self._connections: Dict[str, IndexConnection] = {}
        # Only contended while prefetch() runs worker threads.
        self._lock = threading.Lock()

    def __contains__(self, namespace: object) -> bool:
        return namespace in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def namespaces(self) -> List[str]:
        return list(self._connections)

    def get(self, namespace: str) -> Optional[IndexConnection]:
        return self._connections.get(namespace)

    def _open(self, namespace: str) -> IndexConnection:
        try:
            connection = self._factory(namespace)
        except NamespaceConnectionError as exc:
            if exc.namespace is None:
                exc.namespace = namespace
            raise
        except Exception as exc:  # noqa: BLE001 - factories raise SDK-specific errors
            code = exc.code if isinstance(exc, VectorSinkError) else None
            raise NamespaceConnectionError(
                f"failed to open connection for namespace {namespace!r}: {exc}",
                code=code,
                namespace=namespace,
            ) from exc
        logger.info("connected to namespace %r", namespace)
        return connection

    def get_or_create(self, namespace: str) -> IndexConnection:
        """Return the cached connection, opening it on first use."""
        connection = self._connections.get(namespace)
        if connection is not None:
            return connection

        connection = self._open(namespace)
        with self._lock:
            self._connections[namespace] = connection
        return connection

    def prefetch(
        self,
        namespaces: Iterable[str],
        *,
        max_workers: int = 4,
    ) -> Dict[str, NamespaceConnectionError]:
        """
        Open connections for unseen namespaces concurrently.

        Failures are returned per namespace rather than raised so the caller
        can report each one at the batch that first needs it.
        """
        missing: List[str] = []
        for ns in namespaces:
            if ns not in self._connections and ns not in missing:
                missing.append(ns)
        if not missing:
            return {}
        if len(missing) == 1:
            try:
                self.get_or_create(missing[0])
            except NamespaceConnectionError as exc:
                return {missing[0]: exc}
            return {}

        failures: Dict[str, NamespaceConnectionError] = {}
        workers = max(1, min(int(max_workers), len(missing)))
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="ns-connect",
        ) as pool:
            futures = {pool.submit(self._open, ns): ns for ns in missing}
            for future in concurrent.futures.as_completed(futures):
                ns = futures[future]
                try:
                    connection = future.result()
                except NamespaceConnectionError as exc:
                    failures[ns] = exc
                    continue
                with self._lock:
                    self._connections[ns] = connection
        logger.debug(
            "prefetched %d namespace connection(s), %d failed",
            len(missing) - len(failures), len(failures),
        )
        return failures

    def close_all(self) -> None:
        """Close every connection; raise `CloseError` if any close failed."""
        with self._lock:
            connections = self._connections
            self._connections = {}

        failures: Dict[str, BaseException] = {}
        for namespace, connection in connections.items():
            try:
                connection.close()
            except Exception as exc:  # noqa: BLE001 - aggregated below
                logger.warning("failed to close connection for namespace %r: %s", namespace, exc)
                failures[namespace] = exc

        if failures:
            raise CloseError(failures)
        logger.debug("closed %d connection(s)", len(connections))


__all__ = ["ConnectionRegistry"]
