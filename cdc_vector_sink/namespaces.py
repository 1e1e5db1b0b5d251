# cdc_vector_sink/namespaces.py
# SPDX-License-Identifier: Apache-2.0
"""
Namespace resolution.

Every record is routed to exactly one namespace of the index. Three modes are
selected once, from the `namespace` configuration value:

- static:     a fixed namespace for every record (`""` is the default namespace)
- template:   a template rendered against each record, e.g.
              ``{{ metadata["opencdc.collection"] }}-{{ operation }}``
- per-record: the record's `opencdc.collection` metadata value, or the
              default namespace when the key is absent

Resolvers are pure: no I/O and no shared mutable state.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import jinja2
from jinja2.sandbox import SandboxedEnvironment

from cdc_vector_sink.errors import ConfigError, TemplateEvalError
from cdc_vector_sink.records import METADATA_COLLECTION, Record

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = ""


def is_template(value: Optional[str]) -> bool:
    return bool(value) and "{{" in value and "}}" in value


@runtime_checkable
class NamespaceResolver(Protocol):
    def resolve(self, record: Record) -> str: ...


@runtime_checkable
class TemplateEngine(Protocol):
    """
    Renders a namespace template against a record.

    An engine may also define `check(source)`, raising if the template cannot
    be compiled; it is called once when the resolver is built.
    """

    def render(self, source: str, record: Record) -> str: ...


def _decode(raw: Optional[bytes]) -> Any:
    # Expose JSON payloads as objects and anything else as text.
    if raw is None:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def template_context(record: Record) -> Dict[str, Any]:
    """Names visible to a namespace template."""
    return {
        "record": record,
        "key": record.key.decode("utf-8", errors="replace"),
        "operation": record.operation.value,
        "metadata": dict(record.metadata),
        "position": record.position.decode("utf-8", errors="replace") if record.position else None,
        "payload": {
            "before": _decode(record.payload.before),
            "after": _decode(record.payload.after),
        },
    }


class JinjaTemplateEngine:
    """
    Sandboxed Jinja2 engine.

    Undefined names are errors rather than empty strings, so a template that
    references missing metadata fails the record instead of silently routing
    it to the default namespace.
    """

    def __init__(self) -> None:
        self._env = SandboxedEnvironment(
            undefined=jinja2.StrictUndefined,
            autoescape=False,
            keep_trailing_newline=False,
        )
        self._compiled: Dict[str, jinja2.Template] = {}

    def _template(self, source: str) -> jinja2.Template:
        template = self._compiled.get(source)
        if template is None:
            template = self._env.from_string(source)
            self._compiled[source] = template
        return template

    def check(self, source: str) -> None:
        self._template(source)

    def render(self, source: str, record: Record) -> str:
        return self._template(source).render(template_context(record))


class StaticNamespace:
    def __init__(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.namespace = namespace

    def resolve(self, record: Record) -> str:
        return self.namespace

    def __repr__(self) -> str:
        return f"StaticNamespace({self.namespace!r})"


class MetadataNamespace:
    """Reads the namespace from record metadata; absent means the default namespace."""

    def __init__(self, key: str = METADATA_COLLECTION) -> None:
        self.key = key

    def resolve(self, record: Record) -> str:
        return record.metadata.get(self.key, DEFAULT_NAMESPACE)

    def __repr__(self) -> str:
        return f"MetadataNamespace({self.key!r})"


class TemplateNamespace:
    """Renders `source` for each record; any rendering failure is fatal for the write."""

    def __init__(self, source: str, engine: Optional[TemplateEngine] = None) -> None:
        self.source = source
        self._engine: TemplateEngine = engine or JinjaTemplateEngine()
        check = getattr(self._engine, "check", None)
        if check is None:
            return
        try:
            check(source)
        except ConfigError:
            raise
        except jinja2.TemplateSyntaxError as exc:
            raise ConfigError(
                f"failed to parse namespace template {source!r}: {exc.message}",
                details={"line": exc.lineno},
            ) from exc
        except Exception as exc:  # noqa: BLE001 - engines raise arbitrary errors
            raise ConfigError(
                f"failed to parse namespace template {source!r}: {exc}",
            ) from exc

    def resolve(self, record: Record) -> str:
        try:
            rendered = self._engine.render(self.source, record)
        except TemplateEvalError:
            raise
        except Exception as exc:  # noqa: BLE001 - engines raise arbitrary errors
            raise TemplateEvalError(
                f"failed to execute namespace template: {exc}",
                details={"template": self.source},
            ) from exc
        return str(rendered)

    def __repr__(self) -> str:
        return f"TemplateNamespace({self.source!r})"


def resolver_for(
    namespace: Optional[str],
    engine: Optional[TemplateEngine] = None,
) -> NamespaceResolver:
    """Pick the resolver mode for a `namespace` configuration value."""
    if is_template(namespace):
        resolver: NamespaceResolver = TemplateNamespace(namespace, engine=engine)
    elif not namespace:
        resolver = MetadataNamespace()
    else:
        resolver = StaticNamespace(namespace)
    logger.debug("namespace resolver: %r", resolver)
    return resolver


__all__ = [
    "DEFAULT_NAMESPACE",
    "is_template",
    "NamespaceResolver",
    "TemplateEngine",
    "JinjaTemplateEngine",
    "template_context",
    "StaticNamespace",
    "MetadataNamespace",
    "TemplateNamespace",
    "resolver_for",
]
