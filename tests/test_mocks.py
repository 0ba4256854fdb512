# tests/test_mocks.py
"""
Tests for the mock implementation factory: taint propagation per
category, equivalence on untainted input and construction failures.
"""

import logging
import math

import pytest

from optaint import jsops
from optaint.errors import ConfigurationError, UnclassifiedOperatorError
from optaint.jsops import UNDEFINED, to_string
from optaint.mocks import MockFactory, MockFunction, MockNamespace, is_mock_function
from optaint.operators import DEFAULT_TABLE, Category
from optaint.substrate import TaintedValue


BINARY = DEFAULT_TABLE.in_category(Category.BINARY)
EQUALITY = DEFAULT_TABLE.in_category(Category.EQUALITY)
UNARY = DEFAULT_TABLE.in_category(Category.UNARY)

SAMPLES = [
    (1, 2), (7, -3), ("abc", 2), ("10", "9"), (True, None),
    (0, ""), ([1, 2], 3), (2.5, 0), (UNDEFINED, 1), ("x", "x"),
]


def _same(a, b):
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    return type(a) is type(b) and a == b


class TestNamespace:

    def test_one_mock_per_replacement_name(self, catalog, mocks):
        assert isinstance(mocks, MockNamespace)
        assert set(mocks) == set(catalog.replacement_names())
        for spec in DEFAULT_TABLE:
            mock = mocks[spec.replacement_name]
            assert mock.spec is spec
            assert mock.category is spec.category

    def test_for_symbol(self, mocks):
        assert mocks.for_symbol("+").name == "__plus__"

    def test_by_category(self, mocks):
        assert {m.symbol for m in mocks.by_category(Category.EQUALITY)} == {"==", "===", "!=", "!=="}

    def test_read_only(self, mocks):
        with pytest.raises(TypeError):
            mocks["__plus__"] = None

    def test_marker(self, mocks):
        assert all(is_mock_function(m) for m in mocks.values())
        assert not is_mock_function(len)
        assert not is_mock_function(lambda x: x)

    def test_install(self, mocks):
        target = {}
        mocks.install(target)
        assert target["__plus__"] is mocks["__plus__"]
        assert target["__is_mock_function__"](target["__eval__"])

    def test_mocks_compare_by_identity(self, catalog, substrate):
        first = MockFactory(substrate).build(catalog)
        second = MockFactory(substrate).build(catalog)
        assert first["__plus__"] != second["__plus__"]
        assert first["__plus__"] == first["__plus__"]

    def test_frozen(self, mocks):
        with pytest.raises(AttributeError):
            mocks["__plus__"].native = None


class TestUntaintedEquivalence:

    @pytest.mark.parametrize("spec", BINARY, ids=lambda s: s.symbol)
    def test_binary(self, mocks, spec, substrate):
        mock = mocks[spec.replacement_name]
        native = spec.native_function()
        for left, right in SAMPLES:
            result = mock(left, right)
            assert not substrate.is_tainted(result)
            assert _same(result, native(left, right))

    @pytest.mark.parametrize("spec", UNARY, ids=lambda s: s.symbol)
    def test_unary(self, mocks, spec, substrate):
        mock = mocks[spec.replacement_name]
        for value in (0, 1, "", "5", None, UNDEFINED, [1]):
            result = mock(value)
            assert not substrate.is_tainted(result)
            assert _same(result, spec.native_function()(value))


class TestUnaryPropagation:

    def test_logical_not(self, mocks, substrate):
        x = substrate.taint(True, "base")
        result = mocks["__logical_not__"](x)
        assert substrate.is_tainted(result)
        assert substrate.unwrap(result) is False
        assert substrate.provenance_name(result) == "!(base)"

    @pytest.mark.parametrize("spec", UNARY, ids=lambda s: s.symbol)
    def test_label_shape(self, mocks, substrate, spec):
        result = mocks[spec.replacement_name](substrate.taint(3, "P"))
        assert substrate.provenance_name(result) == f"{spec.symbol}(P)"
        assert _same(substrate.unwrap(result), spec.native_function()(3))

    def test_increment(self, mocks, substrate):
        result = mocks["__increment__"](substrate.taint("41", "n"))
        assert substrate.unwrap(result) == 42
        assert substrate.provenance_name(result) == "++(n)"

    def test_operand_not_mutated(self, mocks, substrate):
        x = substrate.taint(1, "i")
        mocks["__increment__"](x)
        assert x.raw == 1
        assert x.label == "i"

    def test_composes(self, mocks, substrate):
        x = substrate.taint(1, "src")
        result = mocks["__bitwise_not__"](mocks["__logical_not__"](x))
        assert substrate.provenance_name(result) == "~(!(src))"
        assert substrate.unwrap(result) == -1


class TestBinaryPropagation:

    def test_plus(self, mocks, substrate):
        a = substrate.taint("abc", "src")
        result = mocks["__plus__"](a, 2)
        assert substrate.unwrap(result) == "abc2"
        assert substrate.provenance_name(result) == "+(src,value(2))"

    def test_right_tainted(self, mocks, substrate):
        b = substrate.taint(4, "b")
        result = mocks["__minus__"](10, b)
        assert substrate.unwrap(result) == 6
        assert substrate.provenance_name(result) == "-(value(10),b)"

    def test_both_tainted(self, mocks, substrate):
        result = mocks["__multiply__"](substrate.taint(3, "l"), substrate.taint(5, "r"))
        assert substrate.unwrap(result) == 15
        assert substrate.provenance_name(result) == "*(l,r)"

    @pytest.mark.parametrize("spec", BINARY, ids=lambda s: s.symbol)
    def test_exactly_one_tainted(self, mocks, substrate, spec):
        mock = mocks[spec.replacement_name]
        native = spec.native_function()
        for left, right in SAMPLES:
            result = mock(substrate.taint(left, "L"), right)
            assert _same(substrate.unwrap(result), native(left, right))
            assert substrate.provenance_name(result) == f"{spec.symbol}(L,value({to_string(right)}))"

    def test_value_repr_uses_js_string_form(self, mocks, substrate):
        a = substrate.taint(1, "a")
        assert substrate.provenance_name(mocks["__plus__"](a, None)) == "+(a,value(null))"
        assert substrate.provenance_name(mocks["__plus__"](a, True)) == "+(a,value(true))"
        assert substrate.provenance_name(mocks["__plus__"](a, 2.0)) == "+(a,value(2))"

    def test_logical_and_keeps_operand(self, mocks, substrate):
        a = substrate.taint("", "a")
        result = mocks["__logical_and__"](a, "never")
        assert substrate.unwrap(result) == ""
        assert substrate.provenance_name(result) == "&&(a,value(never))"

    def test_nested_labels(self, mocks, substrate):
        a = substrate.taint(2, "a")
        inner = mocks["__plus__"](a, 1)
        result = mocks["__multiply__"](inner, substrate.taint(4, "b"))
        assert substrate.unwrap(result) == 12
        assert substrate.provenance_name(result) == "*(+(a,value(1)),b)"


class TestEquality:

    def test_literal_equality(self, mocks, substrate):
        result = mocks["__triple_equal__"](5, 5)
        assert result is True
        assert not substrate.is_tainted(result)

    @pytest.mark.parametrize("spec", EQUALITY, ids=lambda s: s.symbol)
    @pytest.mark.parametrize("taint_left,taint_right", [
        (False, False), (True, False), (False, True), (True, True),
    ])
    def test_never_tainted(self, mocks, substrate, spec, taint_left, taint_right):
        mock = mocks[spec.replacement_name]
        native = spec.native_function()
        for left, right in SAMPLES:
            a = substrate.taint(left, "a") if taint_left else left
            b = substrate.taint(right, "b") if taint_right else right
            result = mock(a, b)
            assert not isinstance(result, TaintedValue)
            assert result is native(left, right)

    def test_tainted_compared_to_itself(self, mocks, substrate):
        x = substrate.taint("s", "x")
        assert mocks["__triple_equal__"](x, x) is True
        assert mocks["__double_inequal__"](x, "s") is False


class TestEvalSink:

    def test_untainted_passes_through(self, mocks, substrate, evaluator):
        assert mocks["__eval__"]("1") == "evaluated:1"
        assert substrate.sink_hits() == ()

    def test_non_string_argument(self, mocks, substrate):
        marker = object()
        assert mocks["__eval__"](marker) is marker

    def test_tainted_propagates(self, mocks, substrate, evaluator):
        code = substrate.taint("alert(1)", "location.hash")
        result = mocks["__eval__"](code)
        assert evaluator == ["alert(1)"]
        assert substrate.unwrap(result) == "evaluated:alert(1)"
        assert substrate.provenance_name(result) == "eval(location.hash)"

    def test_records_sink_hit(self, mocks, substrate, evaluator):
        mocks["__eval__"](substrate.taint("x", "src"))
        hits = substrate.sink_hits()
        assert len(hits) == 1
        assert hits[0].sink == "eval"
        assert hits[0].label == "eval(src)"

    def test_logs_warning(self, mocks, substrate, evaluator, caplog):
        with caplog.at_level(logging.WARNING, logger="optaint.mocks"):
            mocks["__eval__"](substrate.taint("x", "src"))
        assert "eval(src)" in caplog.text


class TestErrors:

    def test_native_error_propagates(self, mocks, substrate):
        def failing(code):
            raise ValueError("boom")

        previous = jsops.set_evaluator(failing)
        try:
            with pytest.raises(ValueError, match="boom"):
                mocks["__eval__"](substrate.taint("x", "a"))
            with pytest.raises(ValueError, match="boom"):
                mocks["__eval__"]("x")
        finally:
            jsops.set_evaluator(previous)

    def test_native_error_from_evaluator(self, mocks, substrate):
        with pytest.raises(SyntaxError):
            mocks["__eval__"](substrate.taint("1 +", "src"))

    def test_unclassified_category(self, catalog, substrate):
        factory = MockFactory(substrate, builders={Category.UNARY: lambda s, sub: None})
        with pytest.raises(UnclassifiedOperatorError) as info:
            factory.build(catalog)
        assert info.value.symbol == "+"

    def test_substrate_must_implement_protocol(self):
        with pytest.raises(ConfigurationError):
            MockFactory(object())

    def test_default_substrate(self, catalog, shared_substrate):
        namespace = MockFactory().build(catalog)
        result = namespace["__plus__"](shared_substrate.taint(1, "s"), 1)
        assert shared_substrate.provenance_name(result) == "+(s,value(1))"


class TestCustomSubstrate:

    class BoxSubstrate:
        """Substrate whose wrapped values are ('T', raw, label) tuples."""

        def is_tainted(self, value):
            return isinstance(value, tuple) and len(value) == 3 and value[0] == "T"

        def unwrap(self, value):
            return value[1]

        def wrap(self, raw, label):
            return ("T", raw, label)

        def provenance_name(self, value):
            return value[2]

    def test_mocks_use_given_substrate(self, catalog):
        namespace = MockFactory(self.BoxSubstrate()).build(catalog)
        result = namespace["__plus__"](("T", 1, "src"), 2)
        assert result == ("T", 3, "+(src,value(2))")

    def test_sink_without_record_hook(self, catalog, evaluator):
        namespace = MockFactory(self.BoxSubstrate()).build(catalog)
        assert namespace["__eval__"](("T", "c", "s")) == ("T", "evaluated:c", "eval(s)")

    def test_mock_type(self, catalog):
        namespace = MockFactory(self.BoxSubstrate()).build(catalog)
        assert isinstance(namespace["__typeof__"], MockFunction)
        assert namespace["__typeof__"](("T", None, "n")) == ("T", "object", "typeof(n)")
