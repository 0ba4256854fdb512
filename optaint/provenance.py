# optaint/provenance.py
"""
Provenance labels.

A provenance label is the textual derivation record attached to every
tainted value the mocks produce::

    !(base)                  unary operator on a tainted value
    +(src,value(2))          binary operator, right operand untainted
    eval(+(src,value(2)))    the eval sink

The label is purely descriptive.  This module builds labels (the mocks
and the generated code use the same formatting) and parses them back
into a :class:`Derivation` tree for reports, using a parsimonious PEG
grammar derived from the operator table.

Known limitation: a ``value(...)`` leaf whose string form contains
unbalanced parentheses cannot be parsed back.
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator, Tuple

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from optaint.errors import ProvenanceSyntaxError
from optaint.jsops import to_string
from optaint.nodes import Symbol, format_sexp
from optaint.operators import DEFAULT_TABLE, OperatorTable

logger = logging.getLogger(__name__)

__all__ = [
    "value_label",
    "unary_label",
    "binary_label",
    "Derivation",
    "parse_label",
]


# ═══════════════════════════════════════════════════════════════════════
# FORMATTING
# ═══════════════════════════════════════════════════════════════════════

def value_label(value: Any) -> str:
    """Leaf representation of an untainted operand."""
    return "value(" + to_string(value) + ")"


def unary_label(symbol: str, operand: str) -> str:
    return symbol + "(" + operand + ")"


def binary_label(symbol: str, left: str, right: str) -> str:
    return symbol + "(" + left + "," + right + ")"


# ═══════════════════════════════════════════════════════════════════════
# DERIVATION TREES
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Derivation:
    """Parsed provenance label.

    ``kind`` is ``"operation"`` (``text`` is the operator symbol),
    ``"value"`` (``text`` is the untainted operand's string form) or
    ``"source"`` (``text`` is the taint source name).
    """

    kind: str
    text: str
    operands: Tuple["Derivation", ...] = ()

    @classmethod
    def operation(cls, symbol: str, operands: Tuple["Derivation", ...]) -> "Derivation":
        return cls("operation", symbol, tuple(operands))

    @classmethod
    def value(cls, text: str) -> "Derivation":
        return cls("value", text)

    @classmethod
    def source(cls, name: str) -> "Derivation":
        return cls("source", name)

    def sources(self) -> Tuple[str, ...]:
        """Taint source names, left to right."""
        return tuple(node.text for node in self.walk() if node.kind == "source")

    def operators(self) -> Tuple[str, ...]:
        return tuple(node.text for node in self.walk() if node.kind == "operation")

    def walk(self) -> Iterator["Derivation"]:
        yield self
        for operand in self.operands:
            yield from operand.walk()

    @property
    def depth(self) -> int:
        if not self.operands:
            return 0
        return 1 + max(operand.depth for operand in self.operands)

    def _sexp(self) -> Any:
        if self.kind == "value":
            return [Symbol("value"), self.text]
        if self.kind == "source":
            return Symbol(self.text)
        return [Symbol(self.text)] + [operand._sexp() for operand in self.operands]

    def to_sexp(self) -> str:
        return format_sexp(self._sexp())

    def __str__(self) -> str:
        if self.kind == "value":
            return "value(" + self.text + ")"
        if self.kind == "source":
            return self.text
        return self.text + "(" + ",".join(str(operand) for operand in self.operands) + ")"


# ═══════════════════════════════════════════════════════════════════════
# PARSING
# ═══════════════════════════════════════════════════════════════════════

LABEL_GRAMMAR_TEMPLATE = r'''
    label     = value / derived / source
    value     = "value(" balanced ")"
    balanced  = ~r"[^()]*" nested*
    nested    = "(" balanced ")" ~r"[^()]*"
    derived   = operator "(" operands ")"
    operands  = label more?
    more      = "," label
    operator  = ~r"{operators}"
    source    = ~r"[^(),]+"
'''


@functools.lru_cache(maxsize=8)
def _grammar_for(symbols: Tuple[str, ...]) -> Grammar:
    # Longest symbols first so "!==" wins over "!=" and "!".
    ordered = sorted(symbols, key=len, reverse=True)
    alternatives = "|".join(re.escape(symbol) for symbol in ordered)
    return Grammar(LABEL_GRAMMAR_TEMPLATE.format(operators=alternatives))


class _DerivationBuilder(NodeVisitor):
    """Turns a label parse tree into a :class:`Derivation`."""

    def visit_label(self, node, visited_children):
        return visited_children[0]

    def visit_value(self, node, visited_children):
        return Derivation.value(node.text[len("value("):-1])

    def visit_derived(self, node, visited_children):
        operator, _, operands, _ = visited_children
        return Derivation.operation(operator, operands)

    def visit_operator(self, node, visited_children):
        return node.text

    def visit_operands(self, node, visited_children):
        first, more = visited_children
        rest = more if isinstance(more, list) else []
        return (first, *rest)

    def visit_more(self, node, visited_children):
        _, label = visited_children
        return label

    def visit_source(self, node, visited_children):
        return Derivation.source(node.text)

    def generic_visit(self, node, visited_children):
        return visited_children or node


def parse_label(label: str, table: OperatorTable = DEFAULT_TABLE) -> Derivation:
    """Parse a provenance label produced by the mocks.

    Raises :class:`~optaint.errors.ProvenanceSyntaxError` when ``label``
    does not follow the ``op(repr[,repr])`` shape.
    """
    if not label:
        raise ProvenanceSyntaxError(label, "empty label")
    grammar = _grammar_for(tuple(spec.symbol for spec in table))
    try:
        tree = grammar.parse(label)
    except ParseError as exc:
        raise ProvenanceSyntaxError(label, f"unexpected text at offset {exc.pos}", cause=exc) from exc
    try:
        return _DerivationBuilder().visit(tree)
    except VisitationError as exc:
        raise ProvenanceSyntaxError(label, str(exc.original_class.__name__), cause=exc) from exc
