# cdc_vector_sink/context.py
# SPDX-License-Identifier: Apache-2.0
"""
Per-call context and metrics hooks.

`OperationContext` lets a caller bound a write call by a deadline or cancel it.
Both are honoured between batches only: a batch that has started is always
allowed to finish, so a cancelled write never truncates a bulk call.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Protocol


@dataclass(frozen=True)
class OperationContext:
    """
    Attributes:
        request_id: Correlation id, copied into error details
        deadline_ms: Absolute epoch milliseconds after which no new batch starts
        cancelled: Optional callable; a truthy result stops before the next batch
        attrs: Free-form attributes for callers and middleware
    """
    request_id: Optional[str] = None
    deadline_ms: Optional[int] = None
    cancelled: Optional[Callable[[], bool]] = None
    attrs: Mapping[str, Any] = None

    def __post_init__(self) -> None:
        if self.attrs is None:
            object.__setattr__(self, "attrs", {})

    def remaining_ms(self) -> Optional[int]:
        """Milliseconds until the deadline (0 once expired), or None without one."""
        if self.deadline_ms is None:
            return None
        now_ms = int(time.time() * 1000)
        return max(0, self.deadline_ms - now_ms)

    def should_stop(self) -> bool:
        if self.cancelled is not None and self.cancelled():
            return True
        return self.remaining_ms() == 0

    def details(self) -> Dict[str, Any]:
        """Low-cardinality fields safe to attach to errors and logs."""
        out: Dict[str, Any] = {}
        if self.request_id:
            out["request_id"] = self.request_id
        return out

    @classmethod
    def with_timeout(cls, timeout_ms: int, **kwargs: Any) -> "OperationContext":
        return cls(deadline_ms=int(time.time() * 1000) + int(timeout_ms), **kwargs)


class MetricsSink(Protocol):
    """Metrics collection hook. Values must stay low-cardinality."""

    def observe(
        self,
        *,
        component: str,
        op: str,
        ms: float,
        ok: bool,
        code: str = "OK",
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None: ...

    def counter(
        self,
        *,
        component: str,
        name: str,
        value: int = 1,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None: ...


class NoopMetrics:
    def observe(self, **_: Any) -> None: ...
    def counter(self, **_: Any) -> None: ...


__all__ = [
    "OperationContext",
    "MetricsSink",
    "NoopMetrics",
]
