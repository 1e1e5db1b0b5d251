# cdc_vector_sink/destination.py
# SPDX-License-Identifier: Apache-2.0
"""
Connector-style destination lifecycle: configure → open → write* → teardown.

    dest = Destination()
    dest.configure({"apiKey": "...", "host": "my-index.svc.pinecone.io"})
    dest.open()
    try:
        written = dest.write(records)
    finally:
        dest.teardown()
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from cdc_vector_sink.config import PARAMETERS, DestinationConfig
from cdc_vector_sink.context import MetricsSink, OperationContext
from cdc_vector_sink.errors import ConfigError
from cdc_vector_sink.namespaces import StaticNamespace, TemplateEngine, resolver_for
from cdc_vector_sink.pinecone_store import PineconeConnectionFactory
from cdc_vector_sink.records import Record
from cdc_vector_sink.registry import ConnectionRegistry
from cdc_vector_sink.store import ConnectionFactory
from cdc_vector_sink.writer import CollectionWriter

logger = logging.getLogger(__name__)


class Destination:
    def __init__(
        self,
        connection_factory: Optional[ConnectionFactory] = None,
        *,
        metrics: Optional[MetricsSink] = None,
        template_engine: Optional[TemplateEngine] = None,
    ) -> None:
        self._factory = connection_factory
        self._metrics = metrics
        self._template_engine = template_engine
        self._config: Optional[DestinationConfig] = None
        self._writer: Optional[CollectionWriter] = None

    @classmethod
    def parameters(cls) -> Dict[str, Dict[str, Any]]:
        return {name: dict(spec) for name, spec in PARAMETERS.items()}

    @property
    def config(self) -> Optional[DestinationConfig]:
        return self._config

    def configure(self, cfg: Mapping[str, str]) -> None:
        self._config = DestinationConfig.from_mapping(cfg)
        logger.debug("configured destination: %r", self._config)

    def open(self) -> None:
        if self._config is None:
            raise ConfigError("destination must be configured before open")
        if self._writer is not None:
            raise ConfigError("destination is already open; call teardown first")
        cfg = self._config

        resolver = resolver_for(cfg.namespace, engine=self._template_engine)
        factory = self._factory or PineconeConnectionFactory(api_key=cfg.api_key, host=cfg.host)
        registry = ConnectionRegistry(factory)

        # A static namespace is known up front; connect now so bad credentials
        # or a bad host fail at open time.
        if isinstance(resolver, StaticNamespace):
            registry.get_or_create(resolver.namespace)

        self._writer = CollectionWriter(
            resolver,
            registry,
            metadata_prefix=cfg.metadata_prefix,
            parallel_connect=cfg.parallel_connect,
            max_connect_workers=cfg.max_connect_workers,
            metrics=self._metrics,
        )
        logger.info("destination opened (host=%s, resolver=%r)", cfg.host, resolver)

    def write(self, records: Sequence[Record], *, ctx: Optional[OperationContext] = None) -> int:
        if self._writer is None:
            raise ConfigError("destination must be opened before write")
        return self._writer.write_records(records, ctx=ctx)

    def teardown(self) -> None:
        """Close all connections. Safe to call before `open` and more than once."""
        writer, self._writer = self._writer, None
        if writer is None:
            return
        logger.info("tearing down destination")
        writer.close()


__all__ = ["Destination"]
