# cdc_vector_sink/errors.py
# SPDX-License-Identifier: Apache-2.0
"""
Normalized errors for the CDC vector sink.

Every failure surfaced by the sink derives from `VectorSinkError`. Besides the
human-readable message and a machine-readable `code`, errors carry the write
contract that callers rely on to report partial progress:

- `record_index`: position of the offending record in the input sequence
- `batch_index`: position of the failing batch in the batch plan
- `namespace`: namespace the failing record or batch targets
- `written`: number of records applied by fully completed batches before the
  failure. This is the authoritative low-water mark, not an estimate.
- `partial_batches`: batches built before a record failed to parse or resolve

Nothing in the sink retries. `retry_after_ms` is only a hint for callers.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional


class VectorSinkError(Exception):
    """
    Base exception for all sink errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (UPPER_SNAKE_CASE)
        retry_after_ms: Suggested delay before a caller-side retry, if any
        details: Additional JSON-serializable context
        record_index: Index of the failing record, when known
        batch_index: Index of the failing batch, when known
        namespace: Namespace involved in the failure, when known
        written: Records durably applied before the failure
        partial_batches: Batches built before a record-level failure
    """

    default_code = "SINK_ERROR"

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        retry_after_ms: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
        record_index: Optional[int] = None,
        batch_index: Optional[int] = None,
        namespace: Optional[str] = None,
        written: int = 0,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.retry_after_ms = retry_after_ms
        self.details = dict(details or {})
        self.record_index = record_index
        self.batch_index = batch_index
        self.namespace = namespace
        self.written = written
        self.partial_batches: List[Any] = []

    def __str__(self) -> str:
        location = []
        if self.record_index is not None:
            location.append(f"record {self.record_index}")
        if self.batch_index is not None:
            location.append(f"batch {self.batch_index}")
        if self.namespace is not None:
            location.append(f"namespace {self.namespace!r}")
        if not location:
            return self.message
        return f"{self.message} ({', '.join(location)})"

    def asdict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization and logging."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "retry_after_ms": self.retry_after_ms,
            "record_index": self.record_index,
            "batch_index": self.batch_index,
            "namespace": self.namespace,
            "written": self.written,
            "details": {k: self.details[k] for k in sorted(self.details)},
        }


class InvalidRecord(VectorSinkError):
    """Record does not have the expected CDC shape (operation, key, metadata)."""
    default_code = "INVALID_RECORD"


class EmptyPayload(VectorSinkError):
    """A non-delete record has no `after` payload."""
    default_code = "EMPTY_PAYLOAD"


class MalformedPayload(VectorSinkError):
    """The `after` payload does not decode to the expected vector JSON."""
    default_code = "MALFORMED_PAYLOAD"


class TemplateEvalError(VectorSinkError):
    """The namespace template failed to render for a record."""
    default_code = "TEMPLATE_EVAL_ERROR"


class ConfigError(VectorSinkError):
    """Invalid destination configuration."""
    default_code = "BAD_CONFIG"


class NamespaceConnectionError(VectorSinkError):
    """A connection for a namespace could not be opened."""
    default_code = "CONNECTION_ERROR"


class BulkOperationError(VectorSinkError):
    """A bulk upsert or delete call against the store failed."""
    default_code = "BULK_OPERATION_ERROR"


class DeadlineExceeded(VectorSinkError):
    """The caller's deadline passed or it cancelled the write between batches."""
    default_code = "DEADLINE_EXCEEDED"


class CloseError(VectorSinkError):
    """
    One or more namespace connections failed to close.

    `failures` maps each namespace to the exception its close raised. All
    connections were attempted regardless.
    """

    default_code = "CLOSE_ERROR"

    def __init__(self, failures: Mapping[str, BaseException], **kwargs: Any):
        self.failures: Dict[str, BaseException] = dict(failures)
        names = ", ".join(repr(ns) for ns in sorted(self.failures))
        kwargs.setdefault(
            "details",
            {"failed_namespaces": sorted(self.failures)},
        )
        super().__init__(
            f"failed to close {len(self.failures)} connection(s): {names}",
            **kwargs,
        )


__all__ = [
    "VectorSinkError",
    "InvalidRecord",
    "EmptyPayload",
    "MalformedPayload",
    "TemplateEvalError",
    "ConfigError",
    "NamespaceConnectionError",
    "BulkOperationError",
    "DeadlineExceeded",
    "CloseError",
]
