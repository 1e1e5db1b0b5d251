# cdc_vector_sink/__init__.py
# SPDX-License-Identifier: Apache-2.0
"""
cdc_vector_sink

Ordered, namespace-aware writes of change-data-capture records into a
vector index. The Pinecone binding lives in `cdc_vector_sink.pinecone_store`
and the connector lifecycle in `cdc_vector_sink.destination`.
"""

from cdc_vector_sink.batches import (
    BatchBuilder,
    BatchKind,
    DeleteBatch,
    UpsertBatch,
    build_batches,
    plan_summary,
)
from cdc_vector_sink.context import MetricsSink, NoopMetrics, OperationContext
from cdc_vector_sink.errors import (
    BulkOperationError,
    CloseError,
    ConfigError,
    DeadlineExceeded,
    EmptyPayload,
    InvalidRecord,
    MalformedPayload,
    NamespaceConnectionError,
    TemplateEvalError,
    VectorSinkError,
)
from cdc_vector_sink.namespaces import (
    DEFAULT_NAMESPACE,
    MetadataNamespace,
    StaticNamespace,
    TemplateNamespace,
    resolver_for,
)
from cdc_vector_sink.records import METADATA_COLLECTION, Change, Operation, Record
from cdc_vector_sink.registry import ConnectionRegistry
from cdc_vector_sink.store import ConnectionFactory, IndexConnection
from cdc_vector_sink.vectors import NO_SPARSE_VALUES, SparseValues, Vector
from cdc_vector_sink.writer import CollectionWriter

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "BatchBuilder",
    "BatchKind",
    "DeleteBatch",
    "UpsertBatch",
    "build_batches",
    "plan_summary",
    "MetricsSink",
    "NoopMetrics",
    "OperationContext",
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
    "DEFAULT_NAMESPACE",
    "MetadataNamespace",
    "StaticNamespace",
    "TemplateNamespace",
    "resolver_for",
    "METADATA_COLLECTION",
    "Change",
    "Operation",
    "Record",
    "ConnectionRegistry",
    "ConnectionFactory",
    "IndexConnection",
    "NO_SPARSE_VALUES",
    "SparseValues",
    "Vector",
    "CollectionWriter",
]
