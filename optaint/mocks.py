# optaint/mocks.py
"""
Mock Implementation Factory.

Builds, from the same :class:`~optaint.rules.RuleCatalog` the rewriter
uses, one taint-aware :class:`MockFunction` per operator.  Rewritten code
calls ``__plus__(a, b)`` instead of ``a + b``; the mock asks the taint
substrate whether an operand is tainted, unwraps it, applies the native
JavaScript semantics from :mod:`optaint.jsops` and re-wraps the result
with a provenance label.

Category semantics
------------------
unary / function
    ``x`` tainted with ``P``: ``wrap(native(unwrap(x)), "op(P)")``;
    otherwise ``native(x)``.
binary
    Each operand's repr is its provenance (tainted) or ``value(...)``.
    With at least one tainted operand the result is wrapped with
    ``"op(leftRepr,rightRepr)"``; with none it is the plain native result.
equality
    Same unwrapping as binary, but the boolean is never wrapped.  Tainted
    comparisons would otherwise taint every branch they decide.

Errors raised by the native semantics propagate unchanged; a mock never
catches them and never wraps them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, Mapping, MutableMapping, Optional, Tuple

from optaint.errors import ConfigurationError, UnclassifiedOperatorError
from optaint.operators import Category, OperatorSpec
from optaint.provenance import binary_label, unary_label, value_label
from optaint.rules import RuleCatalog
from optaint.substrate import TaintSubstrate, default_substrate

logger = logging.getLogger(__name__)

__all__ = [
    "MOCK_FUNCTION_KEY",
    "MockFunction",
    "MockNamespace",
    "MockFactory",
    "is_mock_function",
    "unary_mock",
    "binary_mock",
    "equality_mock",
    "function_mock",
]

# Name of the marker binding in generated code.
MOCK_FUNCTION_KEY = "__is_mock_function__"


@dataclass(frozen=True, eq=False)
class MockFunction:
    """A taint-aware replacement for one native operator.

    ``native`` is the literal operator on raw values; ``impl`` is the
    taint-aware wrapper around it.  Instances compare by identity.
    """

    spec: OperatorSpec
    native: Callable[..., Any]
    impl: Callable[..., Any]

    def __call__(self, *args: Any) -> Any:
        return self.impl(*args)

    @property
    def name(self) -> str:
        return self.spec.replacement_name

    @property
    def symbol(self) -> str:
        return self.spec.symbol

    @property
    def category(self) -> Category:
        return self.spec.category

    def __repr__(self) -> str:
        return f"<mock {self.spec.replacement_name} for {self.spec.symbol!r}>"


def is_mock_function(obj: object) -> bool:
    """Whether ``obj`` is an instrumentation mock (for inspection tooling)."""
    return isinstance(obj, MockFunction)


# ═══════════════════════════════════════════════════════════════════════
# PER-CATEGORY BUILDERS
# ═══════════════════════════════════════════════════════════════════════

def unary_mock(spec: OperatorSpec, substrate: TaintSubstrate) -> MockFunction:
    native = spec.native_function()
    symbol = spec.symbol

    def impl(value):
        if not substrate.is_tainted(value):
            return native(value)
        result = native(substrate.unwrap(value))
        return substrate.wrap(result, unary_label(symbol, substrate.provenance_name(value)))

    impl.__name__ = spec.replacement_name
    return MockFunction(spec, native, impl)


def _operand(substrate: TaintSubstrate, value: Any) -> Tuple[Any, Optional[str]]:
    # (raw value, provenance or None when untainted)
    if substrate.is_tainted(value):
        return substrate.unwrap(value), substrate.provenance_name(value)
    return value, None


def binary_mock(spec: OperatorSpec, substrate: TaintSubstrate) -> MockFunction:
    native = spec.native_function()
    symbol = spec.symbol

    def impl(left, right):
        left_raw, left_label = _operand(substrate, left)
        right_raw, right_label = _operand(substrate, right)
        result = native(left_raw, right_raw)
        if left_label is None and right_label is None:
            return result
        label = binary_label(
            symbol,
            left_label if left_label is not None else value_label(left_raw),
            right_label if right_label is not None else value_label(right_raw),
        )
        return substrate.wrap(result, label)

    impl.__name__ = spec.replacement_name
    return MockFunction(spec, native, impl)


def equality_mock(spec: OperatorSpec, substrate: TaintSubstrate) -> MockFunction:
    native = spec.native_function()

    def impl(left, right):
        return native(substrate.unwrap(left) if substrate.is_tainted(left) else left,
                      substrate.unwrap(right) if substrate.is_tainted(right) else right)

    impl.__name__ = spec.replacement_name
    return MockFunction(spec, native, impl)


def function_mock(spec: OperatorSpec, substrate: TaintSubstrate) -> MockFunction:
    """Sink mock: unary propagation, plus a warning and a recorded sink hit."""
    native = spec.native_function()
    symbol = spec.symbol
    record_sink = getattr(substrate, "record_sink", None)

    def impl(value):
        if not substrate.is_tainted(value):
            return native(value)
        label = unary_label(symbol, substrate.provenance_name(value))
        logger.warning("tainted value reached sink %s: %s", symbol, label)
        if record_sink is not None:
            record_sink(symbol, label)
        return substrate.wrap(native(substrate.unwrap(value)), label)

    impl.__name__ = spec.replacement_name
    return MockFunction(spec, native, impl)


MockBuilder = Callable[[OperatorSpec, TaintSubstrate], MockFunction]

DEFAULT_BUILDERS: Mapping[Category, MockBuilder] = MappingProxyType({
    Category.UNARY: unary_mock,
    Category.BINARY: binary_mock,
    Category.EQUALITY: equality_mock,
    Category.FUNCTION: function_mock,
})


# ═══════════════════════════════════════════════════════════════════════
# NAMESPACE AND FACTORY
# ═══════════════════════════════════════════════════════════════════════

class MockNamespace(Mapping):
    """Read-only mapping from replacement name to :class:`MockFunction`."""

    def __init__(self, mocks: Mapping[str, MockFunction], catalog: RuleCatalog) -> None:
        self._mocks = MappingProxyType(dict(mocks))
        self._catalog = catalog

    def __getitem__(self, name: str) -> MockFunction:
        return self._mocks[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mocks)

    def __len__(self) -> int:
        return len(self._mocks)

    @property
    def catalog(self) -> RuleCatalog:
        return self._catalog

    def by_category(self, category: Category) -> Tuple[MockFunction, ...]:
        return tuple(mock for mock in self._mocks.values() if mock.category is category)

    def for_symbol(self, symbol: str) -> MockFunction:
        return self._mocks[self._catalog.replacement_name_of(symbol)]

    def install(self, target: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        """Bind every mock (and the marker predicate) into ``target``."""
        target.update(self._mocks)
        target[MOCK_FUNCTION_KEY] = is_mock_function
        return target

    def __repr__(self) -> str:
        return f"MockNamespace({len(self._mocks)} mocks)"


class MockFactory:
    """Builds the mock namespace for a rule catalog.

    The factory is bound to one taint substrate; every mock it builds
    closes over that substrate.
    """

    def __init__(
        self,
        substrate: Optional[TaintSubstrate] = None,
        builders: Mapping[Category, MockBuilder] = DEFAULT_BUILDERS,
    ) -> None:
        substrate = substrate if substrate is not None else default_substrate()
        if not isinstance(substrate, TaintSubstrate):
            raise ConfigurationError(
                f"{type(substrate).__name__} does not implement the taint substrate protocol",
                hint="needs is_tainted, unwrap, wrap and provenance_name",
            )
        self._substrate = substrate
        self._builders = dict(builders)

    @property
    def substrate(self) -> TaintSubstrate:
        return self._substrate

    def build(self, catalog: RuleCatalog) -> MockNamespace:
        """One mock per catalog entry; fails before any mock is returned."""
        mocks: Dict[str, MockFunction] = {}
        for rule in catalog.rules:
            category = catalog.classify(rule.symbol)
            builder = self._builders.get(category)
            if builder is None:
                raise UnclassifiedOperatorError(rule.symbol, category)
            mocks[rule.replacement_name] = builder(rule.spec, self._substrate)
        logger.debug("built %d mocks", len(mocks))
        return MockNamespace(mocks, catalog)
