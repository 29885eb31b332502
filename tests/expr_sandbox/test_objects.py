"""
Tests for host objects: errors, dates, regular expressions, keyed collections,
typed arrays and promises.
"""

import math

import pytest

from expr_sandbox import (
    UNDEFINED,
    BuiltinError,
    ExpressionLimits,
    JSBigInt,
    LimitExceededError,
    SecurityError,
    evaluate_expression,
)
from expr_sandbox.errors import TypeError as ExprTypeError
from expr_sandbox.objects import (
    JSDate,
    JSError,
    JSMap,
    JSPromise,
    JSRegExp,
    JSSet,
    JSTypedArray,
    parse_date,
    translate_pattern,
)


def evaluate(source: str, **context):
    return evaluate_expression(source, context)


class TestErrors:
    """Tests for Error constructors."""

    def test_constructs_error(self):
        error = evaluate("new Error('boom')")
        assert isinstance(error, JSError)
        assert error.name == "Error"
        assert error.message == "boom"

    def test_call_without_new(self):
        assert evaluate("Error('x').message") == "x"

    def test_string_conversion(self):
        assert evaluate("String(new TypeError('bad'))") == "TypeError: bad"
        assert evaluate("new RangeError('r').toString()") == "RangeError: r"
        assert evaluate("String(new Error())") == "Error"

    def test_subclass_instanceof(self):
        assert evaluate("new TypeError('x') instanceof Error") is True
        assert evaluate("new TypeError('x') instanceof TypeError") is True
        assert evaluate("new Error('x') instanceof TypeError") is False

    def test_cause_option(self):
        assert evaluate("new Error('x', {cause: 42}).cause") == 42

    def test_stack_mentions_message(self):
        assert evaluate("new Error('oops').stack").startswith("Error: oops")


class TestDate:
    """Tests for Date."""

    def test_epoch(self):
        assert evaluate("new Date(0).getTime()") == 0
        assert evaluate("new Date(0).toISOString()") == "1970-01-01T00:00:00.000Z"

    def test_utc_string(self):
        assert evaluate("new Date(0).toUTCString()") == "Thu, 01 Jan 1970 00:00:00 GMT"

    def test_utc_static(self):
        assert evaluate("Date.UTC(2020, 0, 1)") == 1577836800000

    def test_utc_month_overflow(self):
        assert evaluate("Date.UTC(2019, 12, 1)") == 1577836800000

    def test_parse_date_only_is_utc(self):
        assert evaluate("Date.parse('2020-01-01')") == 1577836800000

    def test_parse_with_offset(self):
        assert parse_date("2020-01-01T01:00:00+01:00") == 1577836800000

    def test_parse_invalid_is_nan(self):
        assert math.isnan(evaluate("Date.parse('not a date')"))

    def test_utc_getters(self):
        assert evaluate("new Date('2020-01-01T00:00:00Z').getUTCDay()") == 3
        assert evaluate("new Date('2020-03-15T10:20:30.456Z').getUTCMonth()") == 2
        assert evaluate("new Date('2020-03-15T10:20:30.456Z').getUTCMilliseconds()") == 456

    def test_local_components_round_trip(self):
        assert evaluate("new Date(2020, 5, 15).getFullYear()") == 2020
        assert evaluate("new Date(2020, 5, 15).getMonth()") == 5
        assert evaluate("new Date(2020, 5, 15).getDate()") == 15

    def test_invalid_date(self):
        date = evaluate("new Date('garbage')")
        assert isinstance(date, JSDate)
        assert math.isnan(date.time)
        assert evaluate("String(new Date(NaN))") == "Invalid Date"
        assert evaluate("new Date(NaN).toJSON()") is None

    def test_invalid_date_iso_string_raises(self):
        with pytest.raises(BuiltinError, match="Invalid time value") as exc_info:
            evaluate("new Date(NaN).toISOString()")
        assert exc_info.value.error_name == "RangeError"

    def test_copy_constructor(self):
        assert evaluate("new Date(new Date(5)).getTime()") == 5

    def test_now_is_a_number(self):
        assert isinstance(evaluate("Date.now()"), int)

    def test_subtraction_uses_time_value(self):
        assert evaluate("new Date(1000) - new Date(400)") == 600

    def test_setters_are_blocked(self):
        with pytest.raises(SecurityError, match="Mutable method is not allowed"):
            evaluate("new Date(0).setTime(5)")
        with pytest.raises(SecurityError):
            evaluate("new Date(0).setUTCFullYear(2000)")


class TestRegExp:
    """Tests for RegExp literals and the RegExp constructor."""

    def test_test_method(self):
        assert evaluate(r"/^\d+$/.test('123')") is True
        assert evaluate(r"/^\d+$/.test('12a')") is False

    def test_dollar_does_not_match_before_trailing_newline(self):
        assert evaluate(r"/^\d+$/.test(s)", s="12\n") is False

    def test_ignore_case(self):
        assert evaluate("/abc/i.test('ABC')") is True

    def test_exec_result(self):
        assert evaluate(r"/a(\d+)/.exec('xa12')[1]") == "12"
        assert evaluate(r"/a(\d+)/.exec('xa12').index") == 1
        assert evaluate(r"/a(\d+)/.exec('xa12').input") == "xa12"

    def test_exec_no_match(self):
        assert evaluate("/z/.exec('abc')") is None

    def test_named_groups(self):
        assert evaluate(r"/(?<year>\d{4})/.exec('in 2024').groups.year") == "2024"

    def test_flags_are_sorted(self):
        assert evaluate("new RegExp('a', 'ig').flags") == "gi"
        assert evaluate("new RegExp('a', 'g').global") is True

    def test_last_index_is_always_zero(self):
        assert evaluate("/a/g.lastIndex") == 0

    def test_to_string(self):
        assert evaluate("new RegExp('a+', 'g').toString()") == "/a+/g"
        assert evaluate("String(new RegExp(''))") == "/(?:)/"

    def test_constructed_value(self):
        regexp = evaluate("new RegExp('x')")
        assert isinstance(regexp, JSRegExp)
        assert regexp.source == "x"

    def test_invalid_flags(self):
        with pytest.raises(BuiltinError, match="Invalid flags") as exc_info:
            evaluate("new RegExp('a', 'gg')")
        assert exc_info.value.error_name == "SyntaxError"

    def test_invalid_pattern(self):
        with pytest.raises(BuiltinError, match="Invalid regular expression"):
            evaluate("new RegExp('(')")

    def test_rejects_nested_quantifiers(self):
        with pytest.raises(BuiltinError, match="excessive backtracking"):
            evaluate("new RegExp('(a+)+')")

    def test_pattern_length_limit(self):
        limits = ExpressionLimits(max_regex_pattern_length=3)
        with pytest.raises(LimitExceededError):
            evaluate_expression("new RegExp('abcd')", {}, limits)

    def test_escape(self):
        assert evaluate("RegExp.escape('a.b*c')") == "a\\.b\\*c"

    def test_translate_pattern(self):
        assert translate_pattern(r"\d", "") == "[0-9]"
        assert translate_pattern("(?<n>a)", "") == "(?P<n>a)"
        assert translate_pattern("a$", "m") == "a$"
        assert translate_pattern("a$", "") == "a\\Z"


class TestSet:
    """Tests for Set."""

    def test_deduplicates(self):
        assert evaluate("[...new Set([1, 2, 2, 3])]") == [1, 2, 3]
        assert evaluate("new Set([1, 2, 2]).size") == 2

    def test_nan_and_zero_are_same_value_zero(self):
        assert evaluate("new Set([NaN, NaN]).size") == 1
        assert evaluate("new Set([0, -0]).size") == 1

    def test_objects_by_identity(self):
        assert evaluate("new Set([{}, {}]).size") == 2
        assert evaluate("new Set([o, o]).size", o={}) == 1

    def test_has(self):
        assert evaluate("new Set(['a']).has('a')") is True
        assert evaluate("new Set(['a']).has('b')") is False

    def test_from_string(self):
        assert evaluate("new Set('aab').size") == 2

    def test_set_operations(self):
        assert evaluate("[...new Set([1, 2]).union(new Set([2, 3]))]") == [1, 2, 3]
        assert evaluate("[...new Set([1, 2]).intersection(new Set([2, 3]))]") == [2]
        assert evaluate("[...new Set([1, 2]).difference(new Set([2, 3]))]") == [1]
        assert evaluate("[...new Set([1, 2]).symmetricDifference(new Set([2, 3]))]") == [1, 3]

    def test_set_predicates(self):
        assert evaluate("new Set([1]).isSubsetOf(new Set([1, 2]))") is True
        assert evaluate("new Set([1, 2]).isSupersetOf(new Set([1]))") is True
        assert evaluate("new Set([1]).isDisjointFrom(new Set([2]))") is True

    def test_set_operation_returns_set(self):
        assert isinstance(evaluate("new Set([1]).union(new Set([2]))"), JSSet)

    def test_for_each(self):
        assert evaluate("new Set([1, 2]).forEach(x => x)") is UNDEFINED

    def test_requires_new(self):
        with pytest.raises(ExprTypeError, match="Constructor Set requires 'new'"):
            evaluate("Set([1])")

    @pytest.mark.parametrize("method", ["add(1)", "delete(1)", "clear()"])
    def test_mutators_are_blocked(self, method):
        with pytest.raises(SecurityError, match="Mutable method is not allowed"):
            evaluate(f"new Set([1]).{method}")


class TestMap:
    """Tests for Map."""

    def test_get(self):
        assert evaluate("new Map([['a', 1]]).get('a')") == 1
        assert evaluate("new Map([['a', 1]]).get('b') === undefined") is True

    def test_has_and_size(self):
        assert evaluate("new Map([['a', 1], ['b', 2]]).size") == 2
        assert evaluate("new Map([[1, 'x']]).has(1)") is True

    def test_spread_gives_entries(self):
        assert evaluate("[...new Map([['a', 1]])]") == [["a", 1]]

    def test_later_entries_win(self):
        assert evaluate("new Map([['a', 1], ['a', 2]]).get('a')") == 2

    def test_value(self):
        assert isinstance(evaluate("new Map()"), JSMap)

    def test_rejects_non_entry(self):
        with pytest.raises(ExprTypeError, match="is not an entry object"):
            evaluate("new Map([1])")

    def test_group_by(self):
        result = evaluate("Map.groupBy([1, 2, 3], x => x % 2 ? 'odd' : 'even')")
        assert result.get("odd") == [1, 3]
        assert result.get("even") == [2]

    @pytest.mark.parametrize("method", ["set('a', 1)", "delete('a')", "clear()"])
    def test_mutators_are_blocked(self, method):
        with pytest.raises(SecurityError, match="Mutable method is not allowed"):
            evaluate(f"new Map().{method}")


class TestTypedArrays:
    """Tests for typed arrays."""

    def test_integer_wrapping(self):
        assert evaluate("[...new Int8Array([200])]") == [-56]
        assert evaluate("[...new Uint8Array([256, -1])]") == [0, 255]

    def test_clamped(self):
        assert evaluate("[...new Uint8ClampedArray([300, -5, 1.5])]") == [255, 0, 2]

    def test_length_constructor_zero_fills(self):
        assert evaluate("[...new Uint8Array(3)]") == [0, 0, 0]
        assert evaluate("new Int32Array(3).byteLength") == 12

    def test_bytes_per_element(self):
        assert evaluate("Int32Array.BYTES_PER_ELEMENT") == 4
        assert evaluate("new Float64Array(1).BYTES_PER_ELEMENT") == 8

    def test_float32_rounds(self):
        assert evaluate("new Float32Array([0.5])").items == [0.5]
        assert evaluate("new Float32Array([0.1])").items[0] != 0.1

    def test_bigint_arrays(self):
        assert evaluate("new BigInt64Array([1n])").items == [JSBigInt(1)]
        with pytest.raises(ExprTypeError, match="Cannot convert 1 to a BigInt"):
            evaluate("new BigInt64Array([1])")

    def test_map_returns_typed_array(self):
        result = evaluate("new Int16Array([1, 2, 3]).map(x => x * 2)")
        assert isinstance(result, JSTypedArray)
        assert result.kind.name == "Int16Array"
        assert result.items == [2, 4, 6]

    def test_non_mutating_methods(self):
        assert evaluate("new Uint8Array([3, 1, 2]).toSorted().join('-')") == "1-2-3"
        assert evaluate("new Uint8Array([1, 2, 3]).slice(1).length") == 2
        assert evaluate("new Uint8Array([1, 2, 3]).includes(2)") is True

    def test_static_of(self):
        assert evaluate("Uint8Array.of(1, 2)").items == [1, 2]

    def test_requires_new(self):
        with pytest.raises(ExprTypeError, match="Constructor Uint8Array requires 'new'"):
            evaluate("Uint8Array(2)")

    def test_invalid_length(self):
        with pytest.raises(BuiltinError, match="Invalid typed array length"):
            evaluate("new Uint8Array(-1)")

    @pytest.mark.parametrize(
        "method", ["fill(0)", "set([1])", "reverse()", "sort()", "copyWithin(0, 1)"]
    )
    def test_mutators_are_blocked(self, method):
        with pytest.raises(SecurityError, match="Mutable method is not allowed"):
            evaluate(f"new Uint8Array([1, 2]).{method}")


class TestPromise:
    """Tests for Promise."""

    def test_resolve_then(self):
        promise = evaluate("Promise.resolve(2).then(x => x * 2)")
        assert isinstance(promise, JSPromise)
        assert promise.state == "fulfilled"
        assert promise.value == 4

    def test_catch(self):
        promise = evaluate("Promise.reject('no').catch(e => e + '!')")
        assert promise.state == "fulfilled"
        assert promise.value == "no!"

    def test_finally_passes_value_through(self):
        assert evaluate("Promise.resolve(1).finally(() => 0)").value == 1

    def test_executor(self):
        promise = evaluate("new Promise((resolve, reject) => resolve(5))")
        assert promise.state == "fulfilled"
        assert promise.value == 5

    def test_executor_reject(self):
        promise = evaluate("new Promise((resolve, reject) => reject('e'))")
        assert promise.state == "rejected"
        assert promise.value == "e"

    def test_all(self):
        assert evaluate("Promise.all([1, Promise.resolve(2)])").value == [1, 2]
        rejected = evaluate("Promise.all([1, Promise.reject('e')])")
        assert rejected.state == "rejected"
        assert rejected.value == "e"

    def test_all_empty(self):
        assert evaluate("Promise.all([])").value == []

    def test_all_settled(self):
        result = evaluate("Promise.allSettled([1, Promise.reject('e')])")
        assert result.value == [
            {"status": "fulfilled", "value": 1},
            {"status": "rejected", "reason": "e"},
        ]

    def test_race(self):
        assert evaluate("Promise.race([Promise.resolve(1), 2])").value == 1

    def test_any(self):
        assert evaluate("Promise.any([Promise.reject(1), 2])").value == 2
        failed = evaluate("Promise.any([Promise.reject(1)])")
        assert failed.state == "rejected"
        assert failed.value.name == "AggregateError"

    def test_pending_promise(self):
        assert evaluate("new Promise(() => 0)").state == "pending"

    def test_non_callable_executor(self):
        with pytest.raises(ExprTypeError, match="Promise resolver 1 is not a function"):
            evaluate("new Promise(1)")

    def test_requires_new(self):
        with pytest.raises(ExprTypeError, match="requires 'new'"):
            evaluate("Promise(() => 0)")
