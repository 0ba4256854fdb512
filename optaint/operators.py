# optaint/operators.py
"""
Operator Spec Table.

The closed enumeration of intercepted operators and functions, their
category and their unique replacement names.  Both the rewrite rule
catalog (:mod:`optaint.rules`) and the mock factory
(:mod:`optaint.mocks`) are built from one :class:`OperatorTable`, which
is what keeps the two halves of the engine in one-to-one correspondence.

Design invariants
-----------------
* A table is immutable once constructed (frozen dataclasses, tuples and
  read-only mapping proxies).
* ``replacement_name`` is injective over symbols.
* Every symbol belongs to exactly one :class:`Category`; the four
  category sets partition the table.
* Every ``native`` names a function in :mod:`optaint.jsops`.

Any violation is a :class:`~optaint.errors.ConfigurationError` raised by
the constructor, never later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, Mapping, Tuple

from optaint import jsops
from optaint.errors import (
    ConfigurationError,
    DuplicateOperatorError,
    ErrorCodes,
    UnclassifiedOperatorError,
)

logger = logging.getLogger(__name__)

__all__ = [
    "Category",
    "OperatorSpec",
    "OperatorTable",
    "DEFAULT_TABLE",
]


class Category(Enum):
    """Operator categories; each has its own rule shape and mock semantics."""

    UNARY = "unary"
    BINARY = "binary"
    EQUALITY = "equality"
    FUNCTION = "function"

    @classmethod
    def parse(cls, name: object) -> "Category":
        if isinstance(name, Category):
            return name
        try:
            return cls(str(name).lower())
        except ValueError:
            raise ConfigurationError(
                f"unknown operator category {name!r}",
                code=ErrorCodes.UNKNOWN_CATEGORY,
                hint="expected one of: " + ", ".join(c.value for c in cls),
            ) from None


@dataclass(frozen=True, slots=True)
class OperatorSpec:
    """One intercepted operator or function.

    ``native`` is the name of the :mod:`optaint.jsops` function that
    implements the literal operator on raw (unwrapped) values.
    """

    symbol: str
    category: Category
    replacement_name: str
    native: str

    @property
    def arity(self) -> int:
        return 2 if self.category in (Category.BINARY, Category.EQUALITY) else 1

    def native_function(self) -> Callable:
        return getattr(jsops, self.native)


# Natives for the default table, keyed by symbol.
_NATIVES: Mapping[str, str] = {
    "~": "js_bitwise_not",
    "!": "js_logical_not",
    "typeof": "js_typeof",
    "++": "js_increment",
    "--": "js_decrement",
    "+": "js_add",
    "-": "js_subtract",
    "*": "js_multiply",
    "/": "js_divide",
    "%": "js_modulus",
    "&": "js_bitwise_and",
    "|": "js_bitwise_or",
    "^": "js_bitwise_xor",
    ">>": "js_shift_right",
    "<<": "js_shift_left",
    "&&": "js_logical_and",
    "||": "js_logical_or",
    ">": "js_greater",
    "<": "js_lesser",
    ">=": "js_greater_equal",
    "<=": "js_lesser_equal",
    "==": "js_double_equal",
    "===": "js_triple_equal",
    "!=": "js_double_inequal",
    "!==": "js_triple_inequal",
    "eval": "js_eval",
}


class OperatorTable:
    """Immutable, validated collection of :class:`OperatorSpec`.

    Specs keep their insertion order, which is also the order of
    ``RuleCatalog.rules``.
    """

    __slots__ = ("_specs", "_by_symbol", "_by_name")

    def __init__(self, specs: Iterable[OperatorSpec]) -> None:
        by_symbol: Dict[str, OperatorSpec] = {}
        by_name: Dict[str, OperatorSpec] = {}
        for spec in specs:
            if not isinstance(spec.category, Category):
                raise UnclassifiedOperatorError(spec.symbol, spec.category)
            if spec.symbol in by_symbol:
                other = by_symbol[spec.symbol]
                raise DuplicateOperatorError(
                    f"operator {spec.symbol!r} listed as both "
                    f"{other.category.value} and {spec.category.value}",
                    code=ErrorCodes.DUPLICATE_SYMBOL,
                )
            if spec.replacement_name in by_name:
                raise DuplicateOperatorError(
                    f"replacement name {spec.replacement_name!r} used for both "
                    f"{by_name[spec.replacement_name].symbol!r} and {spec.symbol!r}",
                    code=ErrorCodes.DUPLICATE_REPLACEMENT,
                )
            if not spec.replacement_name.isidentifier():
                raise ConfigurationError(
                    f"replacement name {spec.replacement_name!r} is not an identifier",
                    code=ErrorCodes.INVALID_REPLACEMENT,
                )
            if not callable(getattr(jsops, spec.native, None)):
                raise ConfigurationError(
                    f"no native semantics {spec.native!r} for operator {spec.symbol!r}",
                    code=ErrorCodes.UNKNOWN_NATIVE,
                )
            by_symbol[spec.symbol] = spec
            by_name[spec.replacement_name] = spec
        self._specs: Tuple[OperatorSpec, ...] = tuple(by_symbol.values())
        self._by_symbol = MappingProxyType(by_symbol)
        self._by_name = MappingProxyType(by_name)
        logger.debug("operator table built with %d entries", len(self._specs))

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Mapping[str, str]],
        natives: Mapping[str, str] = _NATIVES,
    ) -> "OperatorTable":
        """Build a table from ``{category: {symbol: replacement_name}}``.

        Raises :class:`ConfigurationError` for an unknown category name, a
        symbol listed under two categories, or a symbol without natives.
        """
        specs = []
        for category_name, entries in mapping.items():
            category = Category.parse(category_name)
            for symbol, name in entries.items():
                if symbol not in natives:
                    raise ConfigurationError(
                        f"no native semantics registered for operator {symbol!r}",
                        code=ErrorCodes.UNKNOWN_NATIVE,
                    )
                specs.append(OperatorSpec(symbol, category, name, natives[symbol]))
        return cls(specs)

    # -- queries ---------------------------------------------------------

    def __iter__(self) -> Iterator[OperatorSpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._by_symbol

    @property
    def specs(self) -> Tuple[OperatorSpec, ...]:
        return self._specs

    def get(self, symbol: str) -> OperatorSpec:
        try:
            return self._by_symbol[symbol]
        except KeyError:
            raise ConfigurationError(
                f"operator {symbol!r} is not in the operator table",
                code=ErrorCodes.UNKNOWN_SYMBOL,
            ) from None

    def by_replacement_name(self, name: str) -> OperatorSpec:
        try:
            return self._by_name[name]
        except KeyError:
            raise ConfigurationError(
                f"no operator is replaced by {name!r}",
                code=ErrorCodes.UNKNOWN_SYMBOL,
            ) from None

    def in_category(self, category: Category) -> Tuple[OperatorSpec, ...]:
        return tuple(spec for spec in self._specs if spec.category is category)

    def replacement_names(self) -> Tuple[str, ...]:
        return tuple(spec.replacement_name for spec in self._specs)

    def __repr__(self) -> str:
        counts = ", ".join(
            f"{category.value}={len(self.in_category(category))}" for category in Category
        )
        return f"OperatorTable({counts})"


DEFAULT_TABLE = OperatorTable.from_mapping(
    {
        "unary": {
            "~": "__bitwise_not__",
            "!": "__logical_not__",
            "typeof": "__typeof__",
            "++": "__increment__",
            "--": "__decrement__",
        },
        "binary": {
            "+": "__plus__",
            "-": "__minus__",
            "*": "__multiply__",
            "/": "__divide__",
            "%": "__modulus__",
            "&": "__bitwise_and__",
            "|": "__bitwise_or__",
            "^": "__xor__",
            ">>": "__shift_right__",
            "<<": "__shift_left__",
            "&&": "__logical_and__",
            "||": "__logical_or__",
            ">": "__greater__",
            "<": "__lesser__",
            ">=": "__greater_equal__",
            "<=": "__lesser_equal__",
        },
        "equality": {
            "==": "__double_equal__",
            "===": "__triple_equal__",
            "!=": "__double_inequal__",
            "!==": "__triple_inequal__",
        },
        "function": {
            "eval": "__eval__",
        },
    }
)
