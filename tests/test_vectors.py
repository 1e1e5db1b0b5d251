# SPDX-License-Identifier: Apache-2.0
"""
Vector parsing: payload decoding, sparse handling, metadata filtering.
"""

import json

import pytest

from cdc_vector_sink.errors import EmptyPayload, InvalidRecord, MalformedPayload
from cdc_vector_sink.records import Change, Operation, Record
from cdc_vector_sink.vectors import (
    NO_SPARSE_VALUES,
    SparseValues,
    Vector,
    parse_metadata,
    parse_payload,
    parse_vector,
    vector_id,
)


def _record(after, *, key=b"k1", metadata=None):
    if isinstance(after, dict):
        after = json.dumps(after).encode()
    return Record(
        operation=Operation.CREATE,
        key=key,
        metadata=metadata or {},
        payload=Change(after=after),
    )


def test_dense_only_payload_has_no_sparse_component():
    values, sparse = parse_payload(_record({"values": [1, 2.5]}))
    assert values == [1.0, 2.5]
    assert sparse is NO_SPARSE_VALUES


def test_empty_sparse_arrays_are_treated_as_absent():
    """Payload {"values":[1.0,2.0],"sparse_values":{"indices":[],"values":[]}}."""
    values, sparse = parse_payload(
        _record({"values": [1.0, 2.0], "sparse_values": {"indices": [], "values": []}})
    )
    assert values == [1.0, 2.0]
    assert sparse is NO_SPARSE_VALUES


def test_populated_sparse_values_are_kept():
    _, sparse = parse_payload(
        _record({"values": [0.5], "sparse_values": {"indices": [3, 7], "values": [0.1, 0.9]}})
    )
    assert sparse == SparseValues(indices=[3, 7], values=[0.1, 0.9])


@pytest.mark.parametrize("after", [None, b""])
def test_missing_after_payload_is_empty_payload(after):
    with pytest.raises(EmptyPayload) as exc_info:
        parse_payload(_record(after))
    assert exc_info.value.code == "EMPTY_PAYLOAD"


@pytest.mark.parametrize(
    "after",
    [
        b"not json",
        b"[1, 2]",
        b'{"sparse_values": {"indices": [1], "values": [1]}}',
        b'{"values": "abc"}',
        b'{"values": [true, 1]}',
        b'{"values": [1], "sparse_values": [1, 2]}',
        b'{"values": [1], "sparse_values": {"indices": [-1], "values": [1]}}',
        b'{"values": [1], "sparse_values": {"indices": [4294967296], "values": [1]}}',
        b'{"values": [1], "sparse_values": {"indices": [1, 2], "values": [1]}}',
        b'{"values": [1], "sparse_values": {"indices": 0, "values": false}}',
        b'{"values": [1], "sparse_values": {"indices": {}, "values": ""}}',
    ],
)
def test_malformed_payloads_are_rejected(after):
    with pytest.raises(MalformedPayload):
        parse_payload(_record(after))


def test_non_finite_values_are_rejected():
    with pytest.raises(MalformedPayload):
        parse_payload(_record(b'{"values": [NaN]}'))


@pytest.mark.parametrize(
    "after",
    [
        b'{"values": [1e39]}',
        b'{"values": [-1e39]}',
        b'{"values": [1], "sparse_values": {"indices": [0], "values": [1e39]}}',
    ],
)
def test_values_outside_float32_range_are_rejected(after):
    with pytest.raises(MalformedPayload):
        parse_payload(_record(after))


def test_float32_max_is_accepted():
    values, _ = parse_payload(_record(b'{"values": [3.4028234663852886e38]}'))
    assert values == [3.4028234663852886e38]


def test_vector_metadata_defaults_to_empty_dict():
    vec = Vector(id="a", values=[1.0])
    assert vec.metadata == {}
    assert "metadata" not in vec.to_dict()


def test_vector_id_is_the_utf8_key():
    assert vector_id(_record({"values": [1]}, key="ключ".encode())) == "ключ"


def test_vector_id_rejects_invalid_utf8():
    with pytest.raises(InvalidRecord):
        vector_id(_record({"values": [1]}, key=b"\xff\xfe"))


def test_metadata_without_prefix_is_copied():
    record = _record({"values": [1]}, metadata={"a": "1", "opencdc.collection": "docs"})
    assert parse_metadata(record) == {"a": "1", "opencdc.collection": "docs"}


def test_metadata_prefix_filters_and_strips():
    record = _record(
        {"values": [1]},
        metadata={"pinecone.lang": "en", "pinecone.": "x", "other": "y"},
    )
    assert parse_metadata(record, "pinecone.") == {"lang": "en"}


def test_parse_vector_builds_store_vector():
    record = _record(
        {"values": [1, 2], "sparse_values": {"indices": [0], "values": [0.5]}},
        key=b"doc",
        metadata={"m": "v"},
    )
    vec = parse_vector(record)
    assert vec == Vector(
        id="doc",
        values=[1.0, 2.0],
        sparse_values=SparseValues([0], [0.5]),
        metadata={"m": "v"},
    )


def test_to_dict_omits_absent_parts():
    assert Vector(id="a", values=[1.0]).to_dict() == {"id": "a", "values": [1.0]}
    full = Vector(id="a", values=[1.0], sparse_values=SparseValues([2], [0.3]), metadata={"x": "y"})
    assert full.to_dict() == {
        "id": "a",
        "values": [1.0],
        "sparse_values": {"indices": [2], "values": [0.3]},
        "metadata": {"x": "y"},
    }
