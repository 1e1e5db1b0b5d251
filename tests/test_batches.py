# SPDX-License-Identifier: Apache-2.0
"""
Batch building: ordering, homogeneity, maximality and failure behaviour.
"""

import random

import pytest

from cdc_vector_sink.batches import (
    BatchBuilder,
    BatchKind,
    DeleteBatch,
    UpsertBatch,
    build_batches,
    plan_summary,
)
from cdc_vector_sink.errors import EmptyPayload, MalformedPayload, TemplateEvalError
from cdc_vector_sink.namespaces import MetadataNamespace, StaticNamespace, TemplateNamespace
from tests.conftest import make_record

OPS = ["create", "update", "delete", "snapshot"]


def _shape(batches):
    return [(b.kind.value, b.namespace, b.element_ids()) for b in batches]


def _random_records(rng, n, namespaces=("a", "b", "")):
    return [
        make_record(rng.choice(OPS), f"k{i}", collection=rng.choice(namespaces))
        for i in range(n)
    ]


def test_mixed_operations_single_namespace():
    """U D D C C C D S S → five batches, in order."""
    ops = ["update", "delete", "delete", "create", "create", "create", "delete", "snapshot", "snapshot"]
    records = [make_record(op, f"k{i + 1}") for i, op in enumerate(ops)]

    batches = build_batches(records, StaticNamespace("ns").resolve)

    assert _shape(batches) == [
        ("upsert", "ns", ["k1"]),
        ("delete", "ns", ["k2", "k3"]),
        ("upsert", "ns", ["k4", "k5", "k6"]),
        ("delete", "ns", ["k7"]),
        ("upsert", "ns", ["k8", "k9"]),
    ]
    assert isinstance(batches[0], UpsertBatch)
    assert isinstance(batches[1], DeleteBatch)


def test_empty_input_builds_no_batches():
    assert build_batches([], StaticNamespace("").resolve) == []


def test_missing_payload_aborts_before_appending():
    records = [make_record("create", "k1", after=b"")]
    with pytest.raises(EmptyPayload) as exc_info:
        build_batches(records, StaticNamespace("").resolve)
    assert exc_info.value.record_index == 0
    assert exc_info.value.partial_batches == []


def test_namespace_change_splits_same_kind():
    """Namespaces a, b, a with one kind → three batches."""
    records = [make_record("create", f"k{i}", collection=ns) for i, ns in enumerate("aba")]
    batches = build_batches(records, MetadataNamespace().resolve)
    assert [(b.namespace, len(b)) for b in batches] == [("a", 1), ("b", 1), ("a", 1)]


def test_update_and_snapshot_share_an_upsert_batch():
    records = [make_record("create", "a"), make_record("update", "b"), make_record("snapshot", "c")]
    batches = build_batches(records, StaticNamespace("").resolve)
    assert _shape(batches) == [("upsert", "", ["a", "b", "c"])]


def test_delete_records_need_no_payload():
    batches = build_batches([make_record("delete", "gone")], StaticNamespace("").resolve)
    assert _shape(batches) == [("delete", "", ["gone"])]


def test_failure_mid_stream_reports_partial_batches():
    records = [
        make_record("create", "k0"),
        make_record("delete", "k1"),
        make_record("create", "k2", after=b"{broken"),
        make_record("create", "k3"),
    ]
    with pytest.raises(MalformedPayload) as exc_info:
        build_batches(records, StaticNamespace("").resolve)
    err = exc_info.value
    assert err.record_index == 2
    assert _shape(err.partial_batches) == [("upsert", "", ["k0"]), ("delete", "", ["k1"])]


def test_template_failure_reports_record_index():
    resolver = TemplateNamespace("{{ metadata.tenant }}")
    records = [
        make_record("delete", "k0", metadata={"tenant": "t1"}),
        make_record("delete", "k1"),
    ]
    with pytest.raises(TemplateEvalError) as exc_info:
        build_batches(records, resolver.resolve)
    assert exc_info.value.record_index == 1
    assert _shape(exc_info.value.partial_batches) == [("delete", "t1", ["k0"])]


def test_builder_state_unchanged_by_failed_add():
    builder = BatchBuilder(StaticNamespace("").resolve)
    builder.add(make_record("create", "ok"))
    with pytest.raises(EmptyPayload):
        builder.add(make_record("update", "bad", after=b""), 1)
    assert _shape(builder.batches) == [("upsert", "", ["ok"])]


def test_metadata_prefix_applies_to_vectors():
    record = make_record("create", "k", metadata={"p.lang": "en", "q": "x"})
    (batch,) = build_batches([record], StaticNamespace("").resolve, metadata_prefix="p.")
    assert batch.vectors[0].metadata == {"lang": "en"}


def test_batch_kind_for_operation():
    assert BatchKind.for_operation(make_record("delete", "x").operation) is BatchKind.DELETE
    assert BatchKind.for_operation(make_record("snapshot", "x").operation) is BatchKind.UPSERT


def test_plan_summary_shape():
    records = [make_record("create", "a"), make_record("delete", "b")]
    summary = plan_summary(build_batches(records, StaticNamespace("ns").resolve))
    assert summary == [
        {"index": 0, "kind": "upsert", "namespace": "ns", "size": 1, "ids": ["a"]},
        {"index": 1, "kind": "delete", "namespace": "ns", "size": 1, "ids": ["b"]},
    ]


# ---------------------------------------------------------------------------
# Properties over randomized streams
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("seed", range(25))
def test_batches_flatten_to_original_order(seed):
    rng = random.Random(seed)
    records = _random_records(rng, rng.randint(0, 60))
    resolver = MetadataNamespace()

    batches = build_batches(records, resolver.resolve)

    flattened = [
        (b.kind, b.namespace, element_id) for b in batches for element_id in b.element_ids()
    ]
    expected = [
        (BatchKind.for_operation(r.operation), resolver.resolve(r), r.key.decode())
        for r in records
    ]
    assert flattened == expected


@pytest.mark.parametrize("seed", range(25))
def test_batches_are_nonempty_and_maximal(seed):
    rng = random.Random(1000 + seed)
    records = _random_records(rng, rng.randint(1, 60), namespaces=("a", "b"))

    batches = build_batches(records, MetadataNamespace().resolve)

    assert all(len(b) > 0 for b in batches)
    for prev, nxt in zip(batches, batches[1:]):
        assert (prev.namespace, prev.kind) != (nxt.namespace, nxt.kind)


@pytest.mark.parametrize("seed", range(10))
def test_rebatching_is_deterministic(seed):
    rng = random.Random(2000 + seed)
    records = _random_records(rng, 40)
    resolver = MetadataNamespace()
    assert build_batches(records, resolver.resolve) == build_batches(records, resolver.resolve)
