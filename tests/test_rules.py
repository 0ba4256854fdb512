# tests/test_rules.py
"""
Tests for the rewrite rule catalog: one rule per operator, node-kind
disambiguation, transform shapes and construction-time overlap checks.
"""

import pytest

from optaint.errors import OverlappingRuleError
from optaint.nodes import (
    BinaryExpression,
    CallExpression,
    Identifier,
    Literal,
    LogicalExpression,
    UnaryExpression,
    UpdateExpression,
)
from optaint.operators import DEFAULT_TABLE, Category, OperatorTable
from optaint.rules import RuleCatalog


A = Identifier("a")
B = Identifier("b")


def occurrence(spec):
    """A syntax node that is an occurrence of ``spec``'s operator."""
    if spec.category is Category.UNARY:
        cls = UpdateExpression if spec.symbol in ("++", "--") else UnaryExpression
        return cls(spec.symbol, A)
    if spec.category is Category.FUNCTION:
        return CallExpression(Identifier(spec.symbol), (A,))
    cls = LogicalExpression if spec.symbol in ("&&", "||") else BinaryExpression
    return cls(spec.symbol, A, B)


class TestCatalog:

    def test_one_rule_per_entry(self, catalog):
        assert len(catalog) == len(DEFAULT_TABLE)
        assert [r.symbol for r in catalog.rules] == [s.symbol for s in DEFAULT_TABLE]

    @pytest.mark.parametrize("spec", DEFAULT_TABLE.specs, ids=lambda s: s.symbol)
    def test_exactly_one_rule_matches(self, catalog, spec):
        node = occurrence(spec)
        matching = catalog.matching_rules(node)
        assert [r.symbol for r in matching] == [spec.symbol]
        assert catalog.match(node) is matching[0]

    def test_replacement_name_of(self, catalog):
        assert catalog.replacement_name_of("typeof") == "__typeof__"
        assert catalog.replacement_name_of(">>") == "__shift_right__"

    def test_classify(self, catalog):
        assert catalog.classify("!") is Category.UNARY
        assert catalog.classify("||") is Category.BINARY
        assert catalog.classify("!=") is Category.EQUALITY
        assert catalog.classify("eval") is Category.FUNCTION

    def test_rules_are_immutable(self, catalog):
        assert isinstance(catalog.rules, tuple)


class TestDisambiguation:

    def test_unary_minus_is_not_binary_minus(self, catalog):
        assert catalog.match(UnaryExpression("-", A)) is None
        assert catalog.match(UnaryExpression("+", A)) is None

    def test_not_vs_not_equal(self, catalog):
        assert catalog.match(UnaryExpression("!", A)).symbol == "!"
        assert catalog.match(BinaryExpression("!=", A, B)).symbol == "!="
        assert catalog.match(BinaryExpression("!", A, B)) is None

    def test_update_operator_on_binary_node(self, catalog):
        assert catalog.match(BinaryExpression("++", A, B)) is None

    def test_unary_rules_ignore_binary_nodes(self, catalog):
        rule = catalog.match(UnaryExpression("~", A))
        assert not rule.predicate(BinaryExpression("~", A, B))
        assert not rule.predicate(LogicalExpression("~", A, B))

    def test_logical_operator_on_binary_node(self, catalog):
        # esprima never produces this, but the class is checked anyway
        assert catalog.match(BinaryExpression("&&", A, B)) is not None
        assert catalog.match(UnaryExpression("&&", A)) is None

    def test_unsupported_operators_pass_through(self, catalog):
        for node in (
            BinaryExpression("**", A, B),
            BinaryExpression("instanceof", A, B),
            BinaryExpression(">>>", A, B),
            UnaryExpression("void", A),
            LogicalExpression("??", A, B),
        ):
            assert catalog.match(node) is None

    def test_eval_only_as_plain_callee(self, catalog):
        assert catalog.match(CallExpression(Identifier("eval"))) is not None
        assert catalog.match(CallExpression(Identifier("evaluate"))) is None
        assert catalog.match(Identifier("eval")) is None


class TestTransforms:

    def test_unary_shape(self, catalog):
        node = UnaryExpression("!", A, extra=(("range", [0, 2]),))
        out = catalog.match(node).transform(node)
        assert out == CallExpression(Identifier("__logical_not__"), (A,), extra=(("range", [0, 2]),))

    @pytest.mark.parametrize("prefix", [True, False])
    def test_update_shape(self, catalog, prefix):
        node = UpdateExpression("++", A, prefix=prefix)
        out = catalog.match(node).transform(node)
        assert out.callee_name == "__increment__"
        assert out.arguments == (A,)

    def test_binary_keeps_operand_order(self, catalog):
        node = BinaryExpression("-", A, B)
        out = catalog.match(node).transform(node)
        assert out.callee_name == "__minus__"
        assert out.arguments[0] is A
        assert out.arguments[1] is B

    def test_logical_shape(self, catalog):
        node = LogicalExpression("||", A, B)
        assert catalog.match(node).transform(node).arguments == (A, B)

    def test_equality_shape(self, catalog):
        node = BinaryExpression("===", Literal(5), Literal(5))
        out = catalog.match(node).transform(node)
        assert out == CallExpression(Identifier("__triple_equal__"), (Literal(5), Literal(5)))

    def test_function_renames_callee_only(self, catalog):
        args = (Literal("1+1"), B)
        node = CallExpression(Identifier("eval"), args)
        out = catalog.match(node).transform(node)
        assert out.callee == Identifier("__eval__")
        assert out.arguments is args

    def test_transform_does_not_mutate(self, catalog):
        node = BinaryExpression("+", A, B)
        catalog.match(node).transform(node)
        assert node == BinaryExpression("+", A, B)

    def test_apply_leaves_other_nodes(self, catalog):
        rule = catalog.match(BinaryExpression("+", A, B))
        other = BinaryExpression("*", A, B)
        assert rule.apply(other) is other

    @pytest.mark.parametrize("spec", DEFAULT_TABLE.specs, ids=lambda s: s.symbol)
    def test_output_never_rematched(self, catalog, spec):
        node = occurrence(spec)
        out = catalog.match(node).transform(node)
        assert catalog.matching_rules(out) == []


class TestConstructionChecks:

    def test_replacement_name_matched_by_function_rule(self):
        table = OperatorTable.from_mapping({
            "unary": {"!": "eval"},
            "function": {"eval": "__eval__"},
        })
        with pytest.raises(OverlappingRuleError):
            RuleCatalog(table)

    def test_same_symbol_in_overlapping_categories(self):
        # equality and binary rules both match BinaryExpression nodes
        table = OperatorTable.from_mapping({"equality": {"+": "__eq_plus__"}})
        catalog = RuleCatalog(table)
        assert catalog.match(BinaryExpression("+", A, B)).category is Category.EQUALITY

    def test_custom_table(self):
        table = OperatorTable.from_mapping({"binary": {"+": "ADD"}})
        catalog = RuleCatalog(table)
        out = catalog.match(BinaryExpression("+", A, B)).transform(BinaryExpression("+", A, B))
        assert out.callee_name == "ADD"
        assert catalog.match(UnaryExpression("!", A)) is None
