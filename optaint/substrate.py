# optaint/substrate.py
"""
Taint substrate.

The substrate owns wrapped-value identity and the taint registry; the
rest of the engine only calls the four operations of
:class:`TaintSubstrate`.  :class:`InMemorySubstrate` is a reference
implementation used by the CLI, the generated code's default prologue and
the tests.  Hosts with their own value representation (proxies, shadow
memory, ...) pass any object implementing the protocol to
:class:`~optaint.mocks.MockFactory` and point
``EngineConfig.substrate_module`` at a module exposing the same
functions.

Module-level functions delegate to a process-wide default instance so
generated code can simply ``from optaint.substrate import is_tainted,
unwrap, wrap, provenance_name, record_sink``.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Optional, Protocol, Tuple, runtime_checkable

logger = logging.getLogger(__name__)

__all__ = [
    "TaintSubstrate",
    "TaintedValue",
    "SinkHit",
    "InMemorySubstrate",
    "DEFAULT_MAX_RECORDS",
    "default_substrate",
    "is_tainted",
    "unwrap",
    "wrap",
    "provenance_name",
    "record_sink",
    "taint",
]


@runtime_checkable
class TaintSubstrate(Protocol):
    """The four operations the mocks need."""

    def is_tainted(self, value: Any) -> bool: ...

    def unwrap(self, value: Any) -> Any: ...

    def wrap(self, raw: Any, label: str) -> Any: ...

    def provenance_name(self, value: Any) -> str: ...


class TaintedValue:
    """A raw value paired with its provenance label.

    Deliberately defines no operators: every operation on a tainted value
    must go through a mock.
    """

    __slots__ = ("raw", "label")

    def __init__(self, raw: Any, label: str) -> None:
        self.raw = raw
        self.label = label

    def __repr__(self) -> str:
        return f"TaintedValue({self.raw!r}, label={self.label!r})"


@dataclass(frozen=True)
class SinkHit:
    sink: str
    label: str


# Records kept by the process-wide default substrate before the oldest are dropped.
DEFAULT_MAX_RECORDS = 10_000


class InMemorySubstrate:
    """Reference substrate: wrapped values are :class:`TaintedValue` objects.

    Source names and sink hits are recorded for inspection.  With
    ``max_records`` set, each record keeps only its newest entries;
    otherwise both grow until :meth:`clear` is called.
    """

    def __init__(self, max_records: Optional[int] = None) -> None:
        if max_records is not None and max_records < 1:
            raise ValueError(f"max_records must be positive, got {max_records}")
        self.max_records = max_records
        self._sources: Deque[str] = deque(maxlen=max_records)
        self._sink_hits: Deque[SinkHit] = deque(maxlen=max_records)

    # -- protocol ---------------------------------------------------------

    def is_tainted(self, value: Any) -> bool:
        return isinstance(value, TaintedValue)

    def unwrap(self, value: Any) -> Any:
        if isinstance(value, TaintedValue):
            return value.raw
        return value

    def wrap(self, raw: Any, label: str) -> TaintedValue:
        return TaintedValue(raw, label)

    def provenance_name(self, value: Any) -> str:
        if not isinstance(value, TaintedValue):
            raise TypeError(f"value {value!r} is not tainted")
        return value.label

    # -- sources and sinks ------------------------------------------------

    def taint(self, value: Any, name: str) -> TaintedValue:
        """Introduce an untrusted source value under provenance ``name``."""
        self._sources.append(name)
        logger.debug("tainted source %r", name)
        return TaintedValue(value, name)

    def tainted_names(self) -> Tuple[str, ...]:
        return tuple(self._sources)

    def record_sink(self, sink: str, label: str) -> None:
        self._sink_hits.append(SinkHit(sink, label))

    def sink_hits(self) -> Tuple[SinkHit, ...]:
        return tuple(self._sink_hits)

    def clear(self) -> None:
        self._sources.clear()
        self._sink_hits.clear()


_default = InMemorySubstrate(DEFAULT_MAX_RECORDS)


def default_substrate() -> InMemorySubstrate:
    """The instance behind the module-level functions.

    It is capped at :data:`DEFAULT_MAX_RECORDS` entries per record;
    long-running hosts that read the records should call ``clear()``
    once they have consumed them.
    """
    return _default


def is_tainted(value: Any) -> bool:
    return _default.is_tainted(value)


def unwrap(value: Any) -> Any:
    return _default.unwrap(value)


def wrap(raw: Any, label: str) -> Any:
    return _default.wrap(raw, label)


def provenance_name(value: Any) -> str:
    return _default.provenance_name(value)


def record_sink(sink: str, label: str) -> None:
    _default.record_sink(sink, label)


def taint(value: Any, name: str) -> Any:
    return _default.taint(value, name)
