"""
Tests for the value model and coercion helpers.
"""

import math

import pytest

from expr_sandbox import UNDEFINED, JSBigInt, JSSymbol, typeof
from expr_sandbox.errors import TypeError as ExprTypeError
from expr_sandbox.values import (
    BoundFunction,
    NativeFunction,
    array_index,
    is_callable,
    is_object,
    loose_equals,
    normalize_number,
    number_to_string,
    same_value,
    same_value_zero,
    strict_equals,
    string_to_bigint,
    string_to_number,
    to_boolean,
    to_int32,
    to_number,
    to_primitive,
    to_string,
    to_uint32,
)


def noop(this, args, ctx):
    return UNDEFINED


class TestUndefined:
    """Tests for the undefined singleton."""

    def test_is_falsy(self):
        assert not UNDEFINED

    def test_repr(self):
        assert repr(UNDEFINED) == "undefined"

    def test_is_distinct_from_none(self):
        assert UNDEFINED is not None
        assert typeof(UNDEFINED) == "undefined"
        assert typeof(None) == "object"


class TestTypeof:
    """Tests for the typeof operator."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, "boolean"),
            (1, "number"),
            (1.5, "number"),
            ("s", "string"),
            (JSBigInt(1), "bigint"),
            (JSSymbol("x"), "symbol"),
            ([], "object"),
            ({}, "object"),
            (len, "function"),
        ],
    )
    def test_typeof(self, value, expected):
        assert typeof(value) == expected

    def test_native_function_is_function(self):
        assert typeof(NativeFunction("f", noop)) == "function"

    def test_objects(self):
        assert is_object([])
        assert is_object({})
        assert not is_object("s")
        assert not is_object(None)

    def test_host_containers_are_not_callable(self):
        assert not is_callable({})
        assert not is_callable([])
        assert is_callable(len)


class TestNormalizeNumber:
    """Tests for number normalization."""

    def test_integral_float_becomes_int(self):
        assert normalize_number(3.0) == 3
        assert isinstance(normalize_number(3.0), int)

    def test_negative_zero_is_kept(self):
        result = normalize_number(-0.0)
        assert isinstance(result, float)
        assert math.copysign(1.0, result) < 0

    def test_unsafe_int_becomes_float(self):
        assert isinstance(normalize_number(2**60), float)


class TestToBoolean:
    """Tests for ToBoolean."""

    @pytest.mark.parametrize("value", [UNDEFINED, None, False, 0, -0.0, math.nan, "", JSBigInt(0)])
    def test_falsy(self, value):
        assert to_boolean(value) is False

    @pytest.mark.parametrize("value", [True, 1, -1, "0", " ", [], {}, JSBigInt(2)])
    def test_truthy(self, value):
        assert to_boolean(value) is True


class TestToNumber:
    """Tests for ToNumber."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("", 0),
            ("  42  ", 42),
            ("3.5", 3.5),
            ("0x1f", 31),
            ("0b11", 3),
            ("1e3", 1000),
            ("-Infinity", -math.inf),
            (".5", 0.5),
        ],
    )
    def test_string_to_number(self, text, expected):
        assert string_to_number(text) == expected

    @pytest.mark.parametrize("text", ["abc", "1px", "0x", "--1", "1 2"])
    def test_invalid_strings_are_nan(self, text):
        assert math.isnan(string_to_number(text))

    def test_primitive_conversions(self):
        assert to_number(None) == 0
        assert math.isnan(to_number(UNDEFINED))
        assert to_number(True) == 1
        assert to_number([5]) == 5
        assert to_number([]) == 0
        assert math.isnan(to_number({}))

    def test_bigint_raises(self):
        with pytest.raises(ExprTypeError, match="Cannot convert a BigInt value to a number"):
            to_number(JSBigInt(1))

    def test_symbol_raises(self):
        with pytest.raises(ExprTypeError):
            to_number(JSSymbol())

    def test_int32_wraps(self):
        assert to_int32(2**31) == -(2**31)
        assert to_int32(-1) == -1
        assert to_int32(math.nan) == 0
        assert to_int32(4294967297) == 1

    def test_uint32_wraps(self):
        assert to_uint32(-1) == 4294967295


class TestToString:
    """Tests for ToString and number formatting."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (1, "1"),
            (1.5, "1.5"),
            (-0.0, "0"),
            (0.1, "0.1"),
            (1e21, "1e+21"),
            (1e-7, "1e-7"),
            (123456789012, "123456789012"),
            (0.000001, "0.000001"),
            (math.inf, "Infinity"),
            (math.nan, "NaN"),
        ],
    )
    def test_number_to_string(self, value, expected):
        assert number_to_string(value) == expected

    def test_radix(self):
        assert number_to_string(255, 16) == "ff"
        assert number_to_string(-5, 2) == "-101"
        assert number_to_string(0.5, 2) == "0.1"

    def test_primitives(self):
        assert to_string(None) == "null"
        assert to_string(UNDEFINED) == "undefined"
        assert to_string(True) == "true"
        assert to_string(JSBigInt(7)) == "7"

    def test_arrays_join_with_commas(self):
        assert to_string([1, [2, 3], None, UNDEFINED]) == "1,2,3,,"

    def test_plain_object(self):
        assert to_string({"a": 1}) == "[object Object]"

    def test_symbol_raises(self):
        with pytest.raises(ExprTypeError):
            to_string(JSSymbol("s"))

    def test_to_primitive_leaves_primitives(self):
        assert to_primitive(5) == 5


class TestEquality:
    """Tests for equality algorithms."""

    def test_strict_equality(self):
        assert strict_equals(1, 1.0)
        assert not strict_equals(1, "1")
        assert not strict_equals(math.nan, math.nan)
        assert strict_equals(0, -0.0)
        assert not strict_equals(None, UNDEFINED)
        assert strict_equals(JSBigInt(5), JSBigInt(5))

    def test_objects_compare_by_identity(self):
        a = [1]
        assert strict_equals(a, a)
        assert not strict_equals([1], [1])

    @pytest.mark.parametrize(
        "left,right",
        [
            (None, UNDEFINED),
            (1, "1"),
            (0, ""),
            (True, 1),
            ("1", True),
            ([1], 1),
            (JSBigInt(2), 2),
            (JSBigInt(2), "2"),
        ],
    )
    def test_loose_equality_holds(self, left, right):
        assert loose_equals(left, right)

    @pytest.mark.parametrize(
        "left,right",
        [
            (None, 0),
            (UNDEFINED, 0),
            (math.nan, math.nan),
            ("a", 1),
            ({}, "x"),
        ],
    )
    def test_loose_equality_fails(self, left, right):
        assert not loose_equals(left, right)

    def test_same_value(self):
        assert same_value(math.nan, math.nan)
        assert not same_value(0, -0.0)
        assert same_value_zero(0, -0.0)

    def test_string_to_bigint(self):
        assert string_to_bigint(" 12 ") == 12
        assert string_to_bigint("0x10") == 16
        assert string_to_bigint("1.5") is None


class TestHelpers:
    """Tests for miscellaneous helpers."""

    def test_array_index(self):
        assert array_index("0") == 0
        assert array_index("10") == 10
        assert array_index("01") is None
        assert array_index("-1") is None
        assert array_index(2.0) == 2
        assert array_index(2.5) is None

    def test_bound_function_length(self):
        target = NativeFunction("f", noop, 3)
        bound = BoundFunction(target, UNDEFINED, [1])
        assert bound.name == "bound f"
        assert bound.length == 2
