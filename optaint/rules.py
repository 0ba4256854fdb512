# optaint/rules.py
"""
Rewrite Rule Catalog.

Builds, from an :class:`~optaint.operators.OperatorTable`, one
:class:`RewriteRule` per operator.  A rule is a predicate/transform pair:

* the predicate checks the node *class* first and the operator symbol
  second, so tokens shared across categories (unary ``-`` vs binary
  ``-``, ``!`` vs ``!=``) never collide;
* the transform returns a new node and never mutates its input.

Rule shapes
-----------
unary
    ``UnaryExpression`` or ``UpdateExpression`` node → ``name(argument)``
binary
    ``BinaryExpression`` or ``LogicalExpression`` node → ``name(left, right)``
equality
    ``BinaryExpression`` node → ``name(left, right)``
function
    ``CallExpression`` whose callee is the identifier ``sym`` → the callee
    is renamed to ``name``, arguments untouched

The catalog verifies at construction that no two rules claim the same
(node class, symbol) key and that no replacement name could be matched
again by a function rule, so applying the whole set once is stable.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Type

from optaint.errors import ErrorCodes, OverlappingRuleError, UnclassifiedOperatorError
from optaint.nodes import (
    BinaryExpression,
    CallExpression,
    Identifier,
    LogicalExpression,
    Node,
    UnaryExpression,
    UpdateExpression,
)
from optaint.operators import DEFAULT_TABLE, Category, OperatorSpec, OperatorTable

logger = logging.getLogger(__name__)

__all__ = [
    "RewriteRule",
    "RuleCatalog",
    "unary_rule",
    "binary_rule",
    "equality_rule",
    "function_rule",
]


@dataclass(frozen=True)
class RewriteRule:
    """A matcher/transform pair for one operator.

    ``node_types`` lists the node classes the predicate accepts; together
    with ``spec.symbol`` they form the keys the catalog checks for
    overlap.
    """

    spec: OperatorSpec
    node_types: Tuple[Type[Node], ...]
    predicate: Callable[[Node], bool]
    transform: Callable[[Node], Node]

    @property
    def symbol(self) -> str:
        return self.spec.symbol

    @property
    def replacement_name(self) -> str:
        return self.spec.replacement_name

    @property
    def category(self) -> Category:
        return self.spec.category

    def keys(self) -> Tuple[Tuple[Type[Node], str], ...]:
        return tuple((node_type, self.spec.symbol) for node_type in self.node_types)

    def apply(self, node: Node) -> Node:
        """Transform ``node`` if this rule matches it, else return it unchanged."""
        if self.predicate(node):
            return self.transform(node)
        return node

    def __repr__(self) -> str:
        return f"RewriteRule({self.spec.symbol!r} -> {self.spec.replacement_name})"


def _call(name: str, arguments: Tuple[Node, ...], source: Node) -> CallExpression:
    # The call inherits the operator node's position info.
    return CallExpression(Identifier(name), arguments, extra=source.extra)


def _operator_predicate(
    node_types: Tuple[Type[Node], ...], symbol: str
) -> Callable[[Node], bool]:
    def predicate(node: Node) -> bool:
        return isinstance(node, node_types) and node.operator == symbol

    return predicate


def unary_rule(spec: OperatorSpec) -> RewriteRule:
    """``op x`` / ``x++`` → ``name(x)``; the operand appears exactly once."""
    node_types = (UnaryExpression, UpdateExpression)

    def transform(node: Node) -> Node:
        return _call(spec.replacement_name, (node.argument,), node)

    return RewriteRule(spec, node_types, _operator_predicate(node_types, spec.symbol), transform)


def binary_rule(spec: OperatorSpec) -> RewriteRule:
    """``l op r`` → ``name(l, r)``, left before right."""
    node_types = (BinaryExpression, LogicalExpression)

    def transform(node: Node) -> Node:
        return _call(spec.replacement_name, (node.left, node.right), node)

    return RewriteRule(spec, node_types, _operator_predicate(node_types, spec.symbol), transform)


def equality_rule(spec: OperatorSpec) -> RewriteRule:
    node_types = (BinaryExpression,)

    def transform(node: Node) -> Node:
        return _call(spec.replacement_name, (node.left, node.right), node)

    return RewriteRule(spec, node_types, _operator_predicate(node_types, spec.symbol), transform)


def function_rule(spec: OperatorSpec) -> RewriteRule:
    """``sym(args)`` → ``name(args)``; only the callee identifier changes."""
    node_types = (CallExpression,)

    def predicate(node: Node) -> bool:
        return isinstance(node, CallExpression) and node.callee_name == spec.symbol

    def transform(node: Node) -> Node:
        callee = dataclasses.replace(node.callee, name=spec.replacement_name)
        return dataclasses.replace(node, callee=callee)

    return RewriteRule(spec, node_types, predicate, transform)


_RULE_FACTORIES: Dict[Category, Callable[[OperatorSpec], RewriteRule]] = {
    Category.UNARY: unary_rule,
    Category.BINARY: binary_rule,
    Category.EQUALITY: equality_rule,
    Category.FUNCTION: function_rule,
}


class RuleCatalog:
    """One rewrite rule per operator table entry, built once.

    ``rules`` keeps the table order.  Lookups go through an index keyed by
    (node class, symbol); :meth:`match` still confirms with the rule's own
    predicate.
    """

    def __init__(self, table: OperatorTable = DEFAULT_TABLE) -> None:
        self._table = table
        rules: List[RewriteRule] = []
        index: Dict[Tuple[Type[Node], str], RewriteRule] = {}
        for spec in table:
            factory = _RULE_FACTORIES.get(spec.category)
            if factory is None:
                raise UnclassifiedOperatorError(spec.symbol, spec.category)
            rule = factory(spec)
            for key in rule.keys():
                if key in index:
                    raise OverlappingRuleError(
                        f"rules for {index[key].symbol!r} and {rule.symbol!r} both match "
                        f"{key[0].__name__} nodes with operator {key[1]!r}"
                    )
                index[key] = rule
            rules.append(rule)
        self._rules: Tuple[RewriteRule, ...] = tuple(rules)
        self._index = index
        self._check_stable()
        logger.debug("rule catalog built: %d rules, %d index keys", len(rules), len(index))

    def _check_stable(self) -> None:
        # A call produced by any rule must never be re-matched by a function rule.
        function_symbols = {spec.symbol for spec in self._table.in_category(Category.FUNCTION)}
        for rule in self._rules:
            if rule.replacement_name in function_symbols:
                raise OverlappingRuleError(
                    f"replacement name {rule.replacement_name!r} for {rule.symbol!r} "
                    "would be matched again by a function rule",
                    code=ErrorCodes.OVERLAPPING_RULES,
                )

    @property
    def table(self) -> OperatorTable:
        return self._table

    @property
    def rules(self) -> Tuple[RewriteRule, ...]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def replacement_name_of(self, symbol: str) -> str:
        return self._table.get(symbol).replacement_name

    def classify(self, symbol: str) -> Category:
        return self._table.get(symbol).category

    def replacement_names(self) -> Tuple[str, ...]:
        return self._table.replacement_names()

    def match(self, node: Node) -> Optional[RewriteRule]:
        """The single rule matching ``node``, or ``None`` (pass-through)."""
        if isinstance(node, CallExpression):
            symbol = node.callee_name
        else:
            symbol = getattr(node, "operator", None)
        if symbol is None:
            return None
        rule = self._index.get((type(node), symbol))
        if rule is not None and rule.predicate(node):
            return rule
        return None

    def matching_rules(self, node: Node) -> List[RewriteRule]:
        """Every rule whose predicate accepts ``node`` (linear scan)."""
        return [rule for rule in self._rules if rule.predicate(node)]

    def __repr__(self) -> str:
        return f"RuleCatalog({len(self._rules)} rules)"
