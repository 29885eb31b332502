"""
Tests for the built-in library: Object, Array, String, Number, Math, JSON, URI and BigInt.
"""

import math

import pytest

from expr_sandbox import UNDEFINED, BuiltinError, JSBigInt, evaluate_expression
from expr_sandbox.builtins import get_property, has_property, own_keys
from expr_sandbox.errors import TypeError as ExprTypeError


def evaluate(source: str, **context):
    return evaluate_expression(source, context)


class TestPropertyProtocol:
    """Tests for get_property and friends."""

    def test_reads_dict_keys(self):
        assert get_property({"a": 1}, "a") == 1
        assert get_property({"a": 1}, "b") is UNDEFINED

    def test_reads_array_indices(self):
        assert get_property([1, 2], "1") == 2
        assert get_property([1, 2], "5") is UNDEFINED

    def test_nullish_receiver_raises(self):
        with pytest.raises(ExprTypeError, match="Cannot read property 'x' of undefined"):
            get_property(UNDEFINED, "x")

    def test_opaque_python_objects_expose_nothing(self):
        class Opaque:
            secret = "hidden"

        assert get_property(Opaque(), "secret") is UNDEFINED

    def test_own_keys_orders_indices_first(self):
        assert own_keys({"b": 1, "2": 0, "a": 2, "1": 3}) == ["1", "2", "b", "a"]

    def test_has_property_sees_methods(self):
        assert has_property([], "map")
        assert not has_property({}, "missing")


class TestObject:
    """Tests for Object statics and prototype methods."""

    def test_keys_values_entries(self):
        obj = {"b": 1, "a": 2}
        assert evaluate("Object.keys(obj)", obj=obj) == ["b", "a"]
        assert evaluate("Object.values(obj)", obj=obj) == [1, 2]
        assert evaluate("Object.entries(obj)", obj=obj) == [["b", 1], ["a", 2]]

    def test_from_entries(self):
        assert evaluate("Object.fromEntries([['a', 1], ['b', 2]])") == {"a": 1, "b": 2}

    def test_keys_of_null_raises(self):
        with pytest.raises(ExprTypeError, match="Cannot convert undefined or null to object"):
            evaluate("Object.keys(null)")

    def test_has_own_property(self):
        assert evaluate("obj.hasOwnProperty('a')", obj={"a": 1}) is True
        assert evaluate("Object.hasOwn(obj, 'toString')", obj={"a": 1}) is False

    def test_to_string_tags(self):
        assert evaluate("Object.prototype.toString.call([])") == "[object Array]"
        assert evaluate("Object.prototype.toString.call(null)") == "[object Null]"

    def test_object_is(self):
        assert evaluate("Object.is(NaN, NaN)") is True
        assert evaluate("Object.is(0, -0)") is False


class TestArray:
    """Tests for Array methods."""

    def test_non_mutating_transforms(self):
        assert evaluate("[1, [2, [3]]].flat()") == [1, 2, [3]]
        assert evaluate("[1, 2].flatMap(x => [x, x])") == [1, 1, 2, 2]
        assert evaluate("[1, 2, 3].toReversed()") == [3, 2, 1]
        assert evaluate("[1, 2, 3].with(0, 9)") == [9, 2, 3]
        assert evaluate("[1, 2, 3].toSpliced(1, 1)") == [1, 3]

    def test_default_sort_compares_strings(self):
        assert evaluate("[10, 9, 1].toSorted()") == [1, 10, 9]

    def test_sort_with_comparator(self):
        assert evaluate("[10, 9, 1].toSorted((a, b) => a - b)") == [1, 9, 10]

    def test_searching(self):
        assert evaluate("[1, 2, 3].find(x => x > 1)") == 2
        assert evaluate("[1, 2, 3].findLast(x => x > 1)") == 3
        assert evaluate("[1, 2, 3].findIndex(x => x > 5)") == -1
        assert evaluate("[1, NaN].includes(NaN)") is True
        assert evaluate("[1, NaN].indexOf(NaN)") == -1
        assert evaluate("[1, 2, 1].lastIndexOf(1)") == 2

    def test_predicates(self):
        assert evaluate("[2, 4].every(x => x % 2 === 0)") is True
        assert evaluate("[1, 3].some(x => x > 2)") is True

    def test_join_and_at(self):
        assert evaluate("[1, null, undefined, 2].join('-')") == "1---2"
        assert evaluate("[1, 2, 3].at(-1)") == 3

    def test_reduce_right(self):
        assert evaluate("['a', 'b', 'c'].reduceRight((acc, x) => acc + x)") == "cba"

    def test_reduce_of_empty_array_raises(self):
        with pytest.raises(ExprTypeError, match="Reduce of empty array"):
            evaluate("[].reduce((a, b) => a)")

    def test_iterator_methods_return_arrays(self):
        assert evaluate("['a', 'b'].entries()") == [[0, "a"], [1, "b"]]
        assert evaluate("['a', 'b'].keys()") == [0, 1]

    def test_callback_must_be_function(self):
        with pytest.raises(ExprTypeError, match="is not a function"):
            evaluate("[1].map(1)")

    def test_array_statics(self):
        assert evaluate("Array.isArray([])") is True
        assert evaluate("Array.from('abc')") == ["a", "b", "c"]
        assert evaluate("Array.from([1, 2], x => x * 10)") == [10, 20]
        assert evaluate("Array.of(7)") == [7]
        assert evaluate("Array(3)") == [UNDEFINED, UNDEFINED, UNDEFINED]

    def test_invalid_array_length(self):
        with pytest.raises(BuiltinError, match="Invalid array length"):
            evaluate("Array(-1)")


class TestString:
    """Tests for String methods."""

    def test_case_and_trim(self):
        assert evaluate("'  Hi  '.trim().toUpperCase()") == "HI"
        assert evaluate("'  Hi'.trimStart()") == "Hi"

    def test_slicing(self):
        assert evaluate("'hello'.slice(1, -1)") == "ell"
        assert evaluate("'hello'.substring(3, 1)") == "el"
        assert evaluate("'hello'.substr(-3, 2)") == "ll"
        assert evaluate("'hello'.at(-1)") == "o"
        assert evaluate("'hello'.charAt(10)") == ""

    def test_searching(self):
        assert evaluate("'hello'.indexOf('l')") == 2
        assert evaluate("'hello'.lastIndexOf('l')") == 3
        assert evaluate("'hello'.includes('ell')") is True
        assert evaluate("'hello'.startsWith('he')") is True
        assert evaluate("'hello'.endsWith('lo')") is True
        assert evaluate("'hello'.search(/l+/)") == 2

    def test_includes_rejects_regex(self):
        with pytest.raises(ExprTypeError, match="must not be a regular expression"):
            evaluate("'a'.includes(/a/)")

    def test_padding_and_repeat(self):
        assert evaluate("'5'.padStart(3, '0')") == "005"
        assert evaluate("'5'.padEnd(3)") == "5  "
        assert evaluate("'ab'.repeat(3)") == "ababab"

    def test_repeat_negative_raises(self):
        with pytest.raises(BuiltinError, match="Invalid count value"):
            evaluate("'a'.repeat(-1)")

    def test_split(self):
        assert evaluate("'a,b,c'.split(',')") == ["a", "b", "c"]
        assert evaluate("'abc'.split('')") == ["a", "b", "c"]
        assert evaluate("'a1b2c'.split(/\\d/)") == ["a", "b", "c"]
        assert evaluate("'a,b,c'.split(',', 2)") == ["a", "b"]

    def test_replace(self):
        assert evaluate("'aaa'.replace('a', 'b')") == "baa"
        assert evaluate("'aaa'.replaceAll('a', 'b')") == "bbb"
        assert evaluate("'john smith'.replace(/(\\w+) (\\w+)/, '$2, $1')") == "smith, john"
        assert evaluate("'abc'.replace(/b/, m => m.toUpperCase())") == "aBc"

    def test_replace_all_requires_global_regex(self):
        with pytest.raises(ExprTypeError, match="global RegExp"):
            evaluate("'a'.replaceAll(/a/, 'b')")

    def test_match(self):
        assert evaluate("'a1b22'.match(/\\d+/g)") == ["1", "22"]
        assert evaluate("'abc'.match(/x/)") is None
        assert evaluate("'a1'.match(/(\\d)/).index") == 1
        assert evaluate("'key=val'.match(/(?<k>\\w+)=(?<v>\\w+)/).groups.v") == "val"

    def test_char_codes(self):
        assert evaluate("'A'.charCodeAt(0)") == 65
        assert evaluate("String.fromCharCode(72, 105)") == "Hi"

    def test_string_conversion(self):
        assert evaluate("String(123)") == "123"
        assert evaluate("String(null)") == "null"
        assert evaluate("String([1, [2, 3]])") == "1,2,3"


class TestNumber:
    """Tests for Number formatting and parsing."""

    def test_to_fixed(self):
        assert evaluate("(3.14159).toFixed(2)") == "3.14"
        assert evaluate("(1.005).toFixed(2)") == "1.00"
        assert evaluate("(2.5).toFixed(0)") == "3"
        assert evaluate("(-1.5).toFixed(1)") == "-1.5"
        assert evaluate("(1e21).toFixed(2)") == "1e+21"

    def test_to_fixed_digits_range(self):
        with pytest.raises(BuiltinError, match="digits argument must be between 0 and 100"):
            evaluate("(1).toFixed(101)")

    def test_to_precision(self):
        assert evaluate("(123.456).toPrecision(4)") == "123.5"
        assert evaluate("(0.000123).toPrecision(2)") == "0.00012"
        assert evaluate("(123456).toPrecision(2)") == "1.2e+5"

    def test_to_exponential(self):
        assert evaluate("(12345).toExponential(2)") == "1.23e+4"
        assert evaluate("(12345).toExponential()") == "1.2345e+4"

    def test_to_string_radix(self):
        assert evaluate("(255).toString(16)") == "ff"
        assert evaluate("(255).toString(2)") == "11111111"

    def test_to_locale_string(self):
        assert evaluate("(1234567.891).toLocaleString()") == "1,234,567.891"

    def test_statics(self):
        assert evaluate("Number.isInteger(5.0)") is True
        assert evaluate("Number.isSafeInteger(2 ** 53)") is False
        assert evaluate("Number.MAX_SAFE_INTEGER") == 9007199254740991
        assert evaluate("Number('  12  ')") == 12
        assert evaluate("Number(10n)") == 10

    def test_is_nan_does_not_coerce(self):
        assert evaluate("isNaN('abc')") is False
        assert evaluate("isNaN(NaN)") is True
        assert evaluate("isFinite('1')") is False

    def test_parse_int(self):
        assert evaluate("parseInt('42px')") == 42
        assert evaluate("parseInt('0x1F')") == 31
        assert evaluate("parseInt('101', 2)") == 5
        assert math.isnan(evaluate("parseInt('px')"))

    def test_parse_float(self):
        assert evaluate("parseFloat('3.5e2abc')") == 350
        assert evaluate("parseFloat('-Infinity')") == -math.inf
        assert math.isnan(evaluate("parseFloat('.')"))


class TestMath:
    """Tests for the Math namespace."""

    def test_rounding(self):
        assert evaluate("Math.round(2.5)") == 3
        assert evaluate("Math.round(-2.5)") == -2
        assert evaluate("Math.floor(-1.5)") == -2
        assert evaluate("Math.ceil(1.1)") == 2
        assert evaluate("Math.trunc(-4.7)") == -4

    def test_cbrt_is_exact_for_cubes(self):
        assert evaluate("Math.cbrt(27)") == 3
        assert evaluate("Math.cbrt(-8)") == -2

    def test_min_max(self):
        assert evaluate("Math.max()") == -math.inf
        assert evaluate("Math.min(3, 1, 2)") == 1
        assert math.isnan(evaluate("Math.max(1, NaN)"))

    def test_misc(self):
        assert evaluate("Math.abs(-3)") == 3
        assert evaluate("Math.sqrt(16)") == 4
        assert math.isnan(evaluate("Math.sqrt(-1)"))
        assert evaluate("Math.hypot(3, 4)") == 5
        assert evaluate("Math.sign(-3)") == -1
        assert evaluate("Math.log(0)") == -math.inf
        assert evaluate("Math.pow(2, 8)") == 256
        assert evaluate("Math.clz32(1)") == 31

    def test_random_in_range(self):
        value = evaluate("Math.random()")
        assert 0 <= value < 1

    def test_constants(self):
        assert evaluate("Math.PI") == math.pi


class TestJson:
    """Tests for the JSON namespace."""

    def test_stringify(self):
        assert evaluate("JSON.stringify({a: [1, 'x', null, true]})") == '{"a":[1,"x",null,true]}'

    def test_stringify_skips_undefined_and_functions(self):
        assert evaluate("JSON.stringify({a: undefined, f: x => x, b: 1})") == '{"b":1}'
        assert evaluate("JSON.stringify([undefined])") == "[null]"
        assert evaluate("JSON.stringify(undefined)") is UNDEFINED

    def test_stringify_non_finite_numbers(self):
        assert evaluate("JSON.stringify([NaN, Infinity])") == "[null,null]"

    def test_stringify_with_indent(self):
        assert evaluate("JSON.stringify({a: 1}, null, 2)") == '{\n  "a": 1\n}'

    def test_stringify_with_replacer_list(self):
        assert evaluate("JSON.stringify({a: 1, b: 2}, ['b'])") == '{"b":2}'

    def test_stringify_bigint_raises(self):
        with pytest.raises(BuiltinError, match="Do not know how to serialize a BigInt"):
            evaluate("JSON.stringify(1n)")

    def test_stringify_circular_raises(self):
        obj = {}
        obj["self"] = obj
        with pytest.raises(BuiltinError, match="circular structure"):
            evaluate("JSON.stringify(obj)", obj=obj)

    def test_parse(self):
        assert evaluate("JSON.parse('{\"a\": [1, 2.5, null]}')") == {"a": [1, 2.5, None]}

    def test_parse_with_reviver(self):
        assert evaluate("JSON.parse('[1, 2]', (k, v) => typeof v === 'number' ? v * 2 : v)") == [2, 4]

    def test_parse_invalid_raises_syntax_error(self):
        with pytest.raises(BuiltinError) as exc_info:
            evaluate("JSON.parse('{bad')")
        assert exc_info.value.error_name == "SyntaxError"


class TestUri:
    """Tests for URI helper functions."""

    def test_encode_uri_keeps_reserved_characters(self):
        source = "encodeURI('https://example.com/a b?x=1&y=\u00e9')"
        assert evaluate(source) == "https://example.com/a%20b?x=1&y=%C3%A9"

    def test_encode_uri_component_escapes_reserved_characters(self):
        assert evaluate("encodeURIComponent('a b&c/d')") == "a%20b%26c%2Fd"

    def test_decode(self):
        assert evaluate("decodeURIComponent('a%20b%26c')") == "a b&c"
        assert evaluate("decodeURI('a%20b%26c')") == "a b%26c"

    def test_malformed_uri_raises(self):
        with pytest.raises(BuiltinError, match="URI malformed") as exc_info:
            evaluate("decodeURIComponent('%E0%A4%A')")
        assert exc_info.value.error_name == "URIError"


class TestBigIntBuiltins:
    """Tests for the BigInt function."""

    def test_conversions(self):
        assert evaluate("BigInt(10)") == JSBigInt(10)
        assert evaluate("BigInt('0x10')") == JSBigInt(16)
        assert evaluate("BigInt(true)") == JSBigInt(1)

    def test_non_integer_raises(self):
        with pytest.raises(BuiltinError, match="not an integer"):
            evaluate("BigInt(1.5)")

    def test_new_bigint_raises(self):
        with pytest.raises(ExprTypeError, match="BigInt is not a constructor"):
            evaluate("new BigInt(1)")

    def test_to_string(self):
        assert evaluate("(255n).toString(16)") == "ff"
        assert evaluate("String(12n)") == "12"

    def test_as_int_n(self):
        assert evaluate("BigInt.asIntN(8, 255n)") == JSBigInt(-1)
        assert evaluate("BigInt.asUintN(8, 257n)") == JSBigInt(1)
