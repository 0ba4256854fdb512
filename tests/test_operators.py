# tests/test_operators.py
"""
Tests for the operator table: default contents, partitioning and the
construction-time checks.
"""

import pytest

from optaint.errors import (
    ConfigurationError,
    DuplicateOperatorError,
    ErrorCodes,
    UnclassifiedOperatorError,
)
from optaint.operators import DEFAULT_TABLE, Category, OperatorSpec, OperatorTable


EXPECTED = {
    Category.UNARY: {"~", "!", "typeof", "++", "--"},
    Category.BINARY: {
        "+", "-", "*", "/", "%", "&", "|", "^", ">>", "<<",
        "&&", "||", ">", "<", ">=", "<=",
    },
    Category.EQUALITY: {"==", "===", "!=", "!=="},
    Category.FUNCTION: {"eval"},
}


class TestDefaultTable:

    def test_size(self):
        assert len(DEFAULT_TABLE) == 26

    @pytest.mark.parametrize("category", list(Category), ids=lambda c: c.value)
    def test_category_contents(self, category):
        assert {s.symbol for s in DEFAULT_TABLE.in_category(category)} == EXPECTED[category]

    def test_categories_partition_table(self):
        seen = set()
        for category in Category:
            symbols = {s.symbol for s in DEFAULT_TABLE.in_category(category)}
            assert not (symbols & seen)
            seen |= symbols
        assert seen == {s.symbol for s in DEFAULT_TABLE}

    def test_replacement_names_injective(self):
        names = DEFAULT_TABLE.replacement_names()
        assert len(set(names)) == len(names)

    @pytest.mark.parametrize("symbol,name", [
        ("!", "__logical_not__"),
        ("+", "__plus__"),
        ("^", "__xor__"),
        ("<", "__lesser__"),
        ("===", "__triple_equal__"),
        ("!==", "__triple_inequal__"),
        ("eval", "__eval__"),
    ])
    def test_replacement_name(self, symbol, name):
        assert DEFAULT_TABLE.get(symbol).replacement_name == name
        assert DEFAULT_TABLE.by_replacement_name(name).symbol == symbol

    def test_every_native_resolves(self):
        for spec in DEFAULT_TABLE:
            assert callable(spec.native_function())

    def test_arity(self):
        assert DEFAULT_TABLE.get("typeof").arity == 1
        assert DEFAULT_TABLE.get("eval").arity == 1
        assert DEFAULT_TABLE.get("&&").arity == 2
        assert DEFAULT_TABLE.get("==").arity == 2

    def test_contains(self):
        assert "+" in DEFAULT_TABLE
        assert "**" not in DEFAULT_TABLE

    def test_unknown_symbol(self):
        with pytest.raises(ConfigurationError) as info:
            DEFAULT_TABLE.get("**")
        assert info.value.code == ErrorCodes.UNKNOWN_SYMBOL

    def test_specs_are_frozen(self):
        spec = DEFAULT_TABLE.get("+")
        with pytest.raises(AttributeError):
            spec.replacement_name = "__other__"


class TestTableValidation:

    def test_unknown_category_name(self):
        with pytest.raises(ConfigurationError) as info:
            OperatorTable.from_mapping({"ternary": {"+": "__plus__"}})
        assert info.value.code == ErrorCodes.UNKNOWN_CATEGORY

    def test_symbol_in_two_categories(self):
        with pytest.raises(DuplicateOperatorError) as info:
            OperatorTable.from_mapping({
                "binary": {"==": "__a__"},
                "equality": {"==": "__b__"},
            })
        assert info.value.code == ErrorCodes.DUPLICATE_SYMBOL

    def test_duplicate_replacement_name(self):
        with pytest.raises(DuplicateOperatorError) as info:
            OperatorTable.from_mapping({"binary": {"+": "__op__", "-": "__op__"}})
        assert info.value.code == ErrorCodes.DUPLICATE_REPLACEMENT

    def test_replacement_name_must_be_identifier(self):
        with pytest.raises(ConfigurationError) as info:
            OperatorTable.from_mapping({"binary": {"+": "not valid"}})
        assert info.value.code == ErrorCodes.INVALID_REPLACEMENT

    def test_symbol_without_native(self):
        with pytest.raises(ConfigurationError) as info:
            OperatorTable.from_mapping({"binary": {"**": "__power__"}})
        assert info.value.code == ErrorCodes.UNKNOWN_NATIVE

    def test_unclassified_spec(self):
        with pytest.raises(UnclassifiedOperatorError):
            OperatorTable([OperatorSpec("+", "binary", "__plus__", "js_add")])

    def test_custom_names(self):
        table = OperatorTable.from_mapping({"binary": {"+": "PLUS"}, "function": {"eval": "EVAL"}})
        assert table.replacement_names() == ("PLUS", "EVAL")
        assert repr(table) == "OperatorTable(unary=0, binary=1, equality=0, function=1)"

    def test_category_parse(self):
        assert Category.parse("Equality") is Category.EQUALITY
        assert Category.parse(Category.UNARY) is Category.UNARY
