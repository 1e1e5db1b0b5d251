# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures: record factories and an in-memory store.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import pytest

from cdc_vector_sink.records import METADATA_COLLECTION, Change, Operation, Record
from cdc_vector_sink.registry import ConnectionRegistry
from tests.mock.mock_vector_store import MemoryVectorStore, RecordingMetrics


def vector_payload(
    values=(0.1, 0.2),
    sparse: Optional[Dict[str, Any]] = None,
) -> bytes:
    body: Dict[str, Any] = {"values": list(values)}
    if sparse is not None:
        body["sparse_values"] = sparse
    return json.dumps(body).encode("utf-8")


def make_record(
    op: str,
    key: str,
    *,
    collection: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
    values=(0.1, 0.2),
    after: Optional[bytes] = None,
) -> Record:
    """Build a record; non-delete records get a valid vector payload by default."""
    operation = Operation.parse(op)
    meta = dict(metadata or {})
    if collection is not None:
        meta[METADATA_COLLECTION] = collection
    if after is None and not operation.is_delete:
        after = vector_payload(values)
    return Record(
        operation=operation,
        key=key.encode("utf-8"),
        metadata=meta,
        payload=Change(after=after),
    )


@pytest.fixture
def rec():
    """Record factory: rec("create", "k1", collection="docs")."""
    return make_record


@pytest.fixture
def store() -> MemoryVectorStore:
    return MemoryVectorStore()


@pytest.fixture
def registry(store: MemoryVectorStore) -> ConnectionRegistry:
    return ConnectionRegistry(store)


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture(autouse=True)
def _no_api_key_env(monkeypatch):
    monkeypatch.delenv("PINECONE_API_KEY", raising=False)
