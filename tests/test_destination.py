# SPDX-License-Identifier: Apache-2.0
"""
Destination lifecycle: configure, open, write, teardown.
"""

import pytest

from cdc_vector_sink.destination import Destination
from cdc_vector_sink.errors import CloseError, ConfigError, NamespaceConnectionError
from tests.conftest import make_record

BASE_CFG = {"apiKey": "k", "host": "idx.svc.pinecone.io"}


def test_parameters_describe_configuration():
    params = Destination.parameters()
    assert {"apiKey", "host", "namespace", "metadataPrefix"} <= set(params)
    assert params["host"]["required"] is True


def test_static_namespace_connects_on_open(store):
    dest = Destination(store)
    dest.configure(dict(BASE_CFG, namespace="docs"))
    dest.open()
    assert store.opened == ["docs"]


def test_static_namespace_connect_failure_fails_open(store):
    store.fail_connect.add("docs")
    dest = Destination(store)
    dest.configure(dict(BASE_CFG, namespace="docs"))
    with pytest.raises(NamespaceConnectionError):
        dest.open()


def test_metadata_mode_connects_lazily(store):
    dest = Destination(store)
    dest.configure(BASE_CFG)
    dest.open()
    assert store.opened == []

    written = dest.write(
        [make_record("create", "a", collection="x"), make_record("delete", "b", collection="y")]
    )
    assert written == 2
    assert store.opened == ["x", "y"]


def test_template_mode_routes_by_template(store):
    dest = Destination(store)
    dest.configure(dict(BASE_CFG, namespace="{{ metadata.table }}_{{ operation }}"))
    dest.open()
    dest.write([make_record("create", "a", metadata={"table": "t"})])
    assert store.calls == [("upsert", "t_create", ["a"])]


def test_metadata_prefix_is_applied(store):
    dest = Destination(store)
    dest.configure(dict(BASE_CFG, namespace="ns", metadataPrefix="pc."))
    dest.open()
    dest.write([make_record("create", "a", metadata={"pc.lang": "en", "other": "1"})])
    assert store.vectors("ns")["a"].metadata == {"lang": "en"}


def test_write_before_open_is_rejected(store):
    dest = Destination(store)
    dest.configure(BASE_CFG)
    with pytest.raises(ConfigError):
        dest.write([])


def test_open_before_configure_is_rejected(store):
    with pytest.raises(ConfigError):
        Destination(store).open()


def test_teardown_is_safe_before_open_and_idempotent(store):
    dest = Destination(store)
    dest.teardown()
    dest.configure(dict(BASE_CFG, namespace="ns"))
    dest.open()
    dest.teardown()
    dest.teardown()
    assert store.closed == ["ns"]


def test_teardown_reports_close_failures(store):
    store.fail_close.add("ns")
    dest = Destination(store)
    dest.configure(dict(BASE_CFG, namespace="ns"))
    dest.open()
    with pytest.raises(CloseError):
        dest.teardown()


def test_second_open_is_rejected_without_leaking(store):
    dest = Destination(store)
    dest.configure(dict(BASE_CFG, namespace="ns"))
    dest.open()
    with pytest.raises(ConfigError):
        dest.open()
    assert store.opened == ["ns"]
    dest.teardown()
    assert store.closed == ["ns"]
    dest.open()
    assert store.opened == ["ns", "ns"]
