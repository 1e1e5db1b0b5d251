# cdc_vector_sink/records.py
# SPDX-License-Identifier: Apache-2.0
"""
Change-data-capture record model.

Records are produced upstream (a replication log, a pipeline, a JSON Lines
file) and handed to the sink in arrival order. The sink never mutates them.

Logical wire shape accepted by `Record.from_dict`:

    {
        "operation": "create" | "update" | "delete" | "snapshot",
        "key": <bytes | str>,
        "metadata": {<str>: <str>, ...},
        "position": <bytes | str | null>,
        "payload": {
            "before": <bytes | str | object | null>,   # never read
            "after": <bytes | str | object | null>     # required unless delete
        }
    }
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Union

from cdc_vector_sink.errors import InvalidRecord

METADATA_COLLECTION = "opencdc.collection"
"""Well-known metadata key holding the record's collection (namespace)."""

RawData = Union[bytes, bytearray, str]


class Operation(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SNAPSHOT = "snapshot"

    @classmethod
    def parse(cls, value: Any) -> "Operation":
        if isinstance(value, Operation):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidRecord(
            f"unknown operation {value!r}",
            details={"allowed": [op.value for op in cls]},
        )

    @property
    def is_delete(self) -> bool:
        return self is Operation.DELETE


@dataclass(frozen=True)
class Change:
    """Before/after images of a record. Only `after` is ever used."""
    before: Optional[bytes] = None
    after: Optional[bytes] = None


@dataclass(frozen=True)
class Record:
    """
    One change event.

    Attributes:
        operation: Kind of change
        key: Opaque key, used verbatim (UTF-8 decoded) as the vector id
        metadata: String metadata; carried into the vector metadata and used
            for per-record namespace resolution
        payload: Before/after images; `after` holds the vector JSON
        position: Upstream position, opaque to the sink
    """
    operation: Operation
    key: bytes
    metadata: Dict[str, str] = field(default_factory=dict)
    payload: Change = field(default_factory=Change)
    position: Optional[bytes] = None

    @property
    def collection(self) -> Optional[str]:
        return self.metadata.get(METADATA_COLLECTION)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        if not isinstance(data, Mapping):
            raise InvalidRecord(f"record must be an object, got {type(data).__name__}")

        operation = Operation.parse(data.get("operation"))

        key = data.get("key")
        if key is None:
            raise InvalidRecord("record is missing a key")
        if not isinstance(key, (bytes, bytearray, str)):
            raise InvalidRecord(f"record key must be bytes or a string, got {type(key).__name__}")

        raw_meta = data.get("metadata")
        metadata: Dict[str, str] = {}
        if isinstance(raw_meta, Mapping):
            metadata = {str(k): str(v) for k, v in raw_meta.items()}

        payload = data.get("payload")
        if not isinstance(payload, Mapping):
            payload = {}

        position = data.get("position")
        return cls(
            operation=operation,
            key=_to_bytes(key),
            metadata=metadata,
            payload=Change(
                before=_payload_bytes(payload.get("before")),
                after=_payload_bytes(payload.get("after")),
            ),
            position=_to_bytes(position) if isinstance(position, (bytes, bytearray, str)) else None,
        )


def _to_bytes(value: RawData) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _payload_bytes(value: Any) -> Optional[bytes]:
    # Structured payloads are re-encoded so the vector parser sees one format.
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, str)):
        return _to_bytes(value)
    if isinstance(value, (Mapping, list)):
        return json.dumps(value).encode("utf-8")
    raise InvalidRecord(f"unsupported payload type {type(value).__name__}")


def read_records(lines: Iterable[str]) -> Iterator[Record]:
    """Parse records from JSON Lines; blank lines are skipped."""
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as exc:
            raise InvalidRecord(
                f"line {lineno}: invalid JSON: {exc.msg}",
                details={"line": lineno},
            ) from exc
        try:
            yield Record.from_dict(data)
        except InvalidRecord as exc:
            exc.details.setdefault("line", lineno)
            raise


__all__ = [
    "METADATA_COLLECTION",
    "Operation",
    "Change",
    "Record",
    "read_records",
]
