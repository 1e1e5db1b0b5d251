# cdc_vector_sink/pinecone_store.py
# SPDX-License-Identifier: Apache-2.0
"""
Pinecone-backed index connections.

Usage
-----
    from cdc_vector_sink.pinecone_store import PineconeConnectionFactory
    from cdc_vector_sink.registry import ConnectionRegistry

    factory = PineconeConnectionFactory(api_key="...", host="my-index-abc.svc.pinecone.io")
    registry = ConnectionRegistry(factory)
    conn = registry.get_or_create("docs")
    conn.upsert_vectors([...])

Design notes
------------
- One `Pinecone` client is shared; each namespace gets its own index handle.
- Calls are blocking and issued once. Pinecone errors are normalized into
  `BulkOperationError` / `NamespaceConnectionError` codes with a retry hint,
  but retrying is left to the caller.
- Pinecone creates namespaces implicitly on first write, so opening a
  connection does not touch the network for the namespace itself.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Type

from pinecone import Pinecone
from pinecone.exceptions import PineconeException

from cdc_vector_sink.errors import (
    BulkOperationError,
    ConfigError,
    NamespaceConnectionError,
    VectorSinkError,
)
from cdc_vector_sink.vectors import Vector

logger = logging.getLogger(__name__)


def _safe_get(obj: Any, key: str, default: Any = None) -> Any:
    """Support both dict-style and attribute-style access."""
    if isinstance(obj, Mapping):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _status_of(err: BaseException) -> Optional[int]:
    status = (
        getattr(err, "status", None)
        or getattr(err, "status_code", None)
        or getattr(getattr(err, "response", None), "status_code", None)
    )
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def translate_pinecone_error(
    err: BaseException,
    *,
    op: str,
    namespace: Optional[str],
    error_cls: Type[VectorSinkError] = BulkOperationError,
) -> VectorSinkError:
    """
    Map a Pinecone (or transport) exception to a normalized sink error.

    The returned error's `code` classifies the failure; `retry_after_ms` is
    set for failures that are usually transient.
    """
    msg = str(err) or f"Pinecone error during {op}"
    lowered = msg.lower()
    status = _status_of(err)
    details: Dict[str, Any] = {"op": op}
    if status is not None:
        details["status"] = status
    logger.debug("Pinecone error in %s (namespace %r): %r", op, namespace, err)

    def make(code: str, message: str, retry_after_ms: Optional[int] = None) -> VectorSinkError:
        return error_cls(
            message,
            code=code,
            retry_after_ms=retry_after_ms,
            namespace=namespace,
            details=details,
        )

    if isinstance(err, PineconeException):
        if (
            status == 429
            or "rate limit" in lowered
            or "too many requests" in lowered
            or "resource exhausted" in lowered
        ):
            return make("RESOURCE_EXHAUSTED", f"Pinecone rate limit exceeded during {op}", 500)
        if status in (401, 403) or "unauthorized" in lowered or "forbidden" in lowered:
            return make("AUTH_ERROR", f"Pinecone authentication/authorization error during {op}")
        if status == 404 or "not found" in lowered:
            return make("NOT_FOUND", f"Pinecone index not found during {op}", 1000)
        if status in (400, 422) or "invalid" in lowered or "bad request" in lowered:
            return make("BAD_REQUEST", msg)
        if status is not None and status >= 500:
            return make("UNAVAILABLE", f"Pinecone service unavailable during {op}", 1000)

    if "timeout" in lowered or "timed out" in lowered:
        return make("TRANSIENT_NETWORK", f"Pinecone network timeout during {op}", 500)
    if "connection" in lowered:
        return make("TRANSIENT_NETWORK", f"Pinecone connection error during {op}", 500)

    return make("UNAVAILABLE", msg)


class PineconeConnection:
    """An `IndexConnection` over a Pinecone index handle, bound to a namespace."""

    def __init__(self, index: Any, namespace: str) -> None:
        self._index = index
        self.namespace = namespace

    def upsert_vectors(self, vectors: Sequence[Vector]) -> int:
        payload = [v.to_dict() for v in vectors]
        try:
            resp = self._index.upsert(vectors=payload, namespace=self.namespace)
        except Exception as exc:  # noqa: BLE001
            raise translate_pinecone_error(exc, op="upsert", namespace=self.namespace) from exc

        upserted = _safe_get(resp, "upserted_count", None)
        try:
            count = int(upserted) if upserted is not None else len(payload)
        except (TypeError, ValueError):
            count = len(payload)
        logger.debug("upserted %d vector(s) into namespace %r", count, self.namespace)
        return count

    def delete_vectors(self, ids: Sequence[str]) -> int:
        try:
            self._index.delete(ids=list(ids), namespace=self.namespace)
        except Exception as exc:  # noqa: BLE001
            raise translate_pinecone_error(exc, op="delete", namespace=self.namespace) from exc
        # Pinecone does not report delete counts; report the targeted ids.
        logger.debug("deleted %d vector(s) from namespace %r", len(ids), self.namespace)
        return len(ids)

    def close(self) -> None:
        close = getattr(self._index, "close", None)
        if callable(close):
            close()

    def __repr__(self) -> str:
        return f"PineconeConnection(namespace={self.namespace!r})"


class PineconeConnectionFactory:
    """Opens `PineconeConnection`s for namespaces of one index host."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        host: str,
        client: Optional[Any] = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ConfigError("PineconeConnectionFactory requires an api_key or a client")
            client = Pinecone(api_key=api_key)
            logger.info("created pinecone client")
        self._client = client
        self._host = host

    def __call__(self, namespace: str) -> PineconeConnection:
        try:
            index = self._client.Index(host=self._host)
        except Exception as exc:  # noqa: BLE001
            raise translate_pinecone_error(
                exc,
                op="open",
                namespace=namespace,
                error_cls=NamespaceConnectionError,
            ) from exc
        return PineconeConnection(index, namespace)


__all__ = [
    "translate_pinecone_error",
    "PineconeConnection",
    "PineconeConnectionFactory",
]
