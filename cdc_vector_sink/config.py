# cdc_vector_sink/config.py
# SPDX-License-Identifier: Apache-2.0
"""
Destination configuration.

Connector runtimes hand over configuration as a flat string map:

    apiKey             Pinecone API key (falls back to $PINECONE_API_KEY)
    host               index host URL, e.g. https://my-index-abc123.svc.pinecone.io
    namespace          static namespace, a template containing {{ }}, or empty
                       to route by the record's `opencdc.collection` metadata
    metadataPrefix     only carry metadata keys with this prefix (stripped)
    parallelConnect    "true" to open new namespaces concurrently
    maxConnectWorkers  thread count for parallelConnect (default 4)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

from cdc_vector_sink.errors import ConfigError

API_KEY_ENV = "PINECONE_API_KEY"

PARAMETERS: Dict[str, Dict[str, Any]] = {
    "apiKey": {
        "default": "",
        "required": True,
        "description": f"API key for authenticating with Pinecone. Defaults to ${API_KEY_ENV}.",
    },
    "host": {
        "default": "",
        "required": True,
        "description": "The whole Pinecone index host URL.",
    },
    "namespace": {
        "default": "",
        "required": False,
        "description": (
            "Index namespace. Empty routes each record by its opencdc.collection "
            "metadata (default namespace if absent). A value containing '{{' and "
            "'}}' is a Jinja2 template rendered for each record."
        ),
    },
    "metadataPrefix": {
        "default": "",
        "required": False,
        "description": "Only metadata keys with this prefix are stored, with the prefix stripped.",
    },
    "parallelConnect": {
        "default": "false",
        "required": False,
        "description": "Open connections for newly seen namespaces concurrently.",
    },
    "maxConnectWorkers": {
        "default": "4",
        "required": False,
        "description": "Maximum threads used when parallelConnect is enabled.",
    },
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"", "0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def normalize_host(host: str) -> str:
    """Reduce a host URL to its network location (`https://h:443/x` → `h:443`)."""
    host = host.strip()
    parsed = urlparse(host if "://" in host else f"https://{host}")
    if not parsed.netloc:
        raise ConfigError(f"invalid host url {host!r}")
    return parsed.netloc


@dataclass
class DestinationConfig:
    api_key: str = ""
    host: str = ""
    namespace: str = ""
    metadata_prefix: Optional[str] = None
    parallel_connect: bool = False
    max_connect_workers: int = 4

    def __post_init__(self) -> None:
        """Validate configuration immediately when constructed."""
        self.api_key = (self.api_key or os.getenv(API_KEY_ENV) or "").strip()
        if not self.api_key:
            raise ConfigError(f"apiKey is required (or set {API_KEY_ENV})")
        if not self.host or not self.host.strip():
            raise ConfigError("host is required")
        self.host = normalize_host(self.host)
        self.namespace = self.namespace or ""
        self.metadata_prefix = self.metadata_prefix or None
        if int(self.max_connect_workers) < 1:
            raise ConfigError(
                f"maxConnectWorkers must be positive, got {self.max_connect_workers}"
            )
        self.max_connect_workers = int(self.max_connect_workers)

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, str]) -> "DestinationConfig":
        unknown = sorted(set(cfg) - set(PARAMETERS))
        if unknown:
            raise ConfigError(
                f"unrecognized configuration parameter(s): {', '.join(unknown)}",
                details={"unknown": unknown},
            )

        workers_raw = cfg.get("maxConnectWorkers", "4") or "4"
        try:
            workers = int(workers_raw)
        except ValueError as exc:
            raise ConfigError(f"maxConnectWorkers must be an integer, got {workers_raw!r}") from exc

        return cls(
            api_key=cfg.get("apiKey", ""),
            host=cfg.get("host", ""),
            namespace=cfg.get("namespace", ""),
            metadata_prefix=cfg.get("metadataPrefix") or None,
            parallel_connect=_parse_bool("parallelConnect", cfg.get("parallelConnect", "false")),
            max_connect_workers=workers,
        )

    def to_mapping(self) -> Dict[str, str]:
        return {
            "apiKey": self.api_key,
            "host": self.host,
            "namespace": self.namespace,
            "metadataPrefix": self.metadata_prefix or "",
            "parallelConnect": "true" if self.parallel_connect else "false",
            "maxConnectWorkers": str(self.max_connect_workers),
        }

    def __repr__(self) -> str:
        return (
            f"DestinationConfig(host={self.host!r}, namespace={self.namespace!r}, "
            f"metadata_prefix={self.metadata_prefix!r}, "
            f"parallel_connect={self.parallel_connect}, "
            f"max_connect_workers={self.max_connect_workers})"
        )


__all__ = [
    "API_KEY_ENV",
    "PARAMETERS",
    "DestinationConfig",
    "normalize_host",
]
