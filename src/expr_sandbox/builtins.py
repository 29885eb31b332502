"""
Built-in library for the expression language.

This module owns the property-access protocol (``get_property``,
``has_property``, ``own_keys``) and the method tables of the primitive and
plain-object types: Object, Function, Array, String, Number, Boolean,
BigInt, Symbol, plus the Math and JSON namespaces, the typed array
constructors and the numeric/URI helper functions.

Every built-in function has the signature ``fn(this, args, ctx)`` and is
wrapped in a NativeFunction exactly once, so function identity is stable
for the mutable-method registry.
"""

import json
import math
import random
import re
import sys
import unicodedata
import urllib.parse
from decimal import ROUND_HALF_UP, Context, Decimal
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import SecurityError
from .errors import TypeError as ExprTypeError
from .limits import check_array_length
from .objects import (
    DATE_CONSTRUCTOR,
    DATE_METHODS,
    ERROR_CONSTRUCTORS,
    ERROR_METHODS,
    MAP_CONSTRUCTOR,
    MAP_METHODS,
    PROMISE_CONSTRUCTOR,
    PROMISE_METHODS,
    REGEXP_CONSTRUCTOR,
    REGEXP_METHODS,
    SET_CONSTRUCTOR,
    SET_METHODS,
    TYPED_ARRAY_KINDS,
    WEAKMAP_CONSTRUCTOR,
    WEAKMAP_METHODS,
    WEAKSET_CONSTRUCTOR,
    WEAKSET_METHODS,
    JSDate,
    JSError,
    JSMap,
    JSPromise,
    JSRegExp,
    JSSet,
    JSTypedArray,
    JSWeakMap,
    JSWeakSet,
    MatchArray,
    TypedArrayKind,
    create_regexp,
    expand_replacement,
    regexp_exec,
    regexp_find_all,
    requires_new,
    typed_array_construct,
)
from .values import (
    FUNCTION_CONSTRUCTOR,
    MAX_SAFE_INTEGER,
    MISSING,
    SYMBOL_ASYNC_ITERATOR,
    SYMBOL_HAS_INSTANCE,
    SYMBOL_ITERATOR,
    SYMBOL_TO_PRIMITIVE,
    SYMBOL_TO_STRING_TAG,
    UNDEFINED,
    BoundFunction,
    BuiltinConstructor,
    BuiltinContext,
    HostObject,
    JSBigInt,
    JSFunction,
    JSSymbol,
    NativeFunction,
    PrototypeObject,
    array_index,
    array_join,
    bigint_to_string,
    get_arg,
    is_callable,
    is_iterable,
    is_negative_zero,
    is_nullish,
    is_number,
    is_object,
    iterate,
    js_trim,
    js_trim_end,
    js_trim_start,
    normalize_number,
    number_to_string,
    require_callable,
    same_value,
    same_value_zero,
    strict_equals,
    string_to_bigint,
    to_boolean,
    to_display_string,
    to_integer_or_infinity,
    to_number,
    to_numeric,
    to_primitive,
    to_property_key,
    to_string,
    to_int32,
    to_uint32,
)

# JavaScript engines refuse strings longer than about 2**29 code units.
MAX_STRING_LENGTH = 2**28

# Exact binary doubles need up to ~770 significant digits.
_DECIMAL_CONTEXT = Context(prec=1200)


def _fn(name: str, impl: Callable[[Any, List[Any], BuiltinContext], Any], length: int = 0) -> NativeFunction:
    return NativeFunction(name, impl, length)


# ============================================================
# Property Access Protocol
# ============================================================


def _dict_get(obj: Dict[Any, Any], key: Any) -> Any:
    if key in obj:
        return obj[key]
    # Python callers may key plain objects by int
    index = array_index(key) if isinstance(key, str) else None
    if index is not None and index in obj:
        return obj[index]
    return MISSING


def _host_methods(value: HostObject) -> Dict[str, JSFunction]:
    if isinstance(value, JSTypedArray):
        return TYPED_ARRAY_METHODS
    for cls, methods in _HOST_METHOD_TABLES:
        if isinstance(value, cls):
            return methods
    return {}


def _host_constructor(value: HostObject) -> Any:
    if isinstance(value, JSTypedArray):
        return TYPED_ARRAY_CONSTRUCTORS[value.kind.name]
    if isinstance(value, JSError):
        return ERROR_CONSTRUCTORS.get(value.name, ERROR_CONSTRUCTORS["Error"])
    for cls, constructor in _HOST_CONSTRUCTORS:
        if isinstance(value, cls):
            return constructor
    return OBJECT_CONSTRUCTOR


def _function_property(fn: Any, key: Any) -> Any:
    if key == "constructor":
        return FUNCTION_CONSTRUCTOR
    if isinstance(fn, BuiltinConstructor):
        if key == "prototype":
            return fn.prototype
        if key in fn.statics:
            return fn.statics[key]
    if key == "name":
        return fn.name if isinstance(fn, JSFunction) else ""
    if key == "length":
        return fn.length if isinstance(fn, JSFunction) else 0
    if key in FUNCTION_METHODS:
        return FUNCTION_METHODS[key]
    if key in OBJECT_METHODS:
        return OBJECT_METHODS[key]
    return UNDEFINED


def get_property(value: Any, key: Any) -> Any:
    """
    Reads ``value[key]`` with JavaScript lookup rules.

    Own properties win over methods of the value's prototype. Arbitrary
    Python objects expose no properties at all.

    Raises:
        TypeError: If value is null or undefined
        SecurityError: If the key is ``__proto__``
    """
    if is_nullish(value):
        raise ExprTypeError(
            f"Cannot read property '{to_display_string(key)}' of {to_string(value)}"
        )

    key = to_property_key(key)
    if key == "__proto__":
        raise SecurityError("Access to '__proto__' is not allowed")

    if isinstance(value, str):
        if key == "length":
            return len(value)
        index = array_index(key)
        if index is not None:
            return value[index] if index < len(value) else UNDEFINED
        if key == "constructor":
            return STRING_CONSTRUCTOR
        return STRING_METHODS.get(key, UNDEFINED)

    if isinstance(value, bool):
        if key == "constructor":
            return BOOLEAN_CONSTRUCTOR
        return BOOLEAN_METHODS.get(key, UNDEFINED)

    if is_number(value):
        if key == "constructor":
            return NUMBER_CONSTRUCTOR
        return NUMBER_METHODS.get(key, UNDEFINED)

    if isinstance(value, JSBigInt):
        if key == "constructor":
            return BIGINT_CONSTRUCTOR
        return BIGINT_METHODS.get(key, UNDEFINED)

    if isinstance(value, JSSymbol):
        if key == "description":
            return value.description
        if key == "constructor":
            return SYMBOL_CONSTRUCTOR
        return SYMBOL_METHODS.get(key, UNDEFINED)

    if isinstance(value, list):
        if isinstance(value, MatchArray):
            extra = value.get_extra(key) if isinstance(key, str) else MISSING
            if extra is not MISSING:
                return extra
        if key == "length":
            return len(value)
        index = array_index(key)
        if index is not None:
            return value[index] if index < len(value) else UNDEFINED
        if key == "constructor":
            return ARRAY_CONSTRUCTOR
        if key in ARRAY_METHODS:
            return ARRAY_METHODS[key]
        return OBJECT_METHODS.get(key, UNDEFINED)

    if isinstance(value, dict):
        own = _dict_get(value, key)
        if own is not MISSING:
            return own
        if key == "constructor":
            return OBJECT_CONSTRUCTOR
        return OBJECT_METHODS.get(key, UNDEFINED)

    if is_callable(value):
        return _function_property(value, key)

    if isinstance(value, HostObject):
        if isinstance(key, str):
            if isinstance(value, JSTypedArray):
                index = array_index(key)
                if index is not None:
                    return value.items[index] if index < len(value.items) else UNDEFINED
            own = value.get_own(key)
            if own is not MISSING:
                return own
        if isinstance(value, PrototypeObject):
            return UNDEFINED
        if key == "constructor":
            return _host_constructor(value)
        methods = _host_methods(value)
        if key in methods:
            return methods[key]
        return OBJECT_METHODS.get(key, UNDEFINED)

    # Opaque host value
    return UNDEFINED


def has_own_property(value: Any, key: Any) -> bool:
    key = to_property_key(key)
    if isinstance(value, dict):
        return _dict_get(value, key) is not MISSING
    if isinstance(value, (list, str)):
        if key == "length":
            return True
        index = array_index(key)
        return index is not None and index < len(value)
    if isinstance(value, JSTypedArray):
        index = array_index(key)
        if index is not None:
            return index < len(value.items)
    if isinstance(value, HostObject) and isinstance(key, str):
        return value.has_own(key)
    if isinstance(value, BuiltinConstructor):
        return key in value.statics or key in ("prototype", "name", "length")
    return False


def has_property(value: Any, key: Any) -> bool:
    """
    The ``in`` operator.

    Raises:
        TypeError: If the right-hand side is not an object
    """
    if not is_object(value):
        raise ExprTypeError(
            f"Cannot use 'in' operator to search for '{to_display_string(key)}' "
            f"in {to_display_string(value)}"
        )
    if has_own_property(value, key):
        return True
    return get_property(value, key) is not UNDEFINED


def _ordered_keys(keys: List[Any]) -> List[str]:
    """Orders keys the way JavaScript does: array indices first, then insertion order."""
    strings = [str(key) if not isinstance(key, str) else key for key in keys if not isinstance(key, JSSymbol)]
    indices = sorted((key for key in strings if array_index(key) is not None), key=int)
    names = [key for key in strings if array_index(key) is None]
    return indices + names


def own_keys(value: Any) -> List[str]:
    """Own enumerable string keys (Object.keys)."""
    if isinstance(value, dict):
        return _ordered_keys(list(value.keys()))
    if isinstance(value, (list, str)):
        return [str(index) for index in range(len(value))]
    if isinstance(value, HostObject):
        return value.own_keys()
    return []


def _is_array(value: Any) -> bool:
    return isinstance(value, list)


def _object_tag(value: Any) -> str:
    if value is UNDEFINED:
        return "Undefined"
    if value is None:
        return "Null"
    if isinstance(value, list):
        return "Array"
    if isinstance(value, str):
        return "String"
    if isinstance(value, bool):
        return "Boolean"
    if is_number(value):
        return "Number"
    if is_callable(value):
        return "Function"
    if isinstance(value, JSBigInt):
        return "BigInt"
    if isinstance(value, JSSymbol):
        return "Symbol"
    if isinstance(value, HostObject):
        return value.class_name
    return "Object"


# ============================================================
# Object.prototype
# ============================================================


def _object_has_own_property(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return has_own_property(this, get_arg(args, 0))


def _object_is_prototype_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return False


def _object_property_is_enumerable(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    key = to_property_key(get_arg(args, 0))
    if isinstance(this, (list, str)) and key == "length":
        return False
    return key in own_keys(this) if isinstance(key, str) else False


def _object_to_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return f"[object {_object_tag(this)}]"


def _object_to_locale_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return to_string(this)


def _object_value_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    if is_nullish(this):
        raise ExprTypeError("Cannot convert undefined or null to object")
    return this


OBJECT_METHODS: Dict[str, JSFunction] = {
    "hasOwnProperty": _fn("hasOwnProperty", _object_has_own_property, 1),
    "isPrototypeOf": _fn("isPrototypeOf", _object_is_prototype_of, 1),
    "propertyIsEnumerable": _fn("propertyIsEnumerable", _object_property_is_enumerable, 1),
    "toString": _fn("toString", _object_to_string),
    "toLocaleString": _fn("toLocaleString", _object_to_locale_string),
    "valueOf": _fn("valueOf", _object_value_of),
}


# ============================================================
# Function.prototype
# ============================================================


def _this_function(this: Any, method: str) -> Any:
    if not is_callable(this):
        raise ExprTypeError(
            f"Function.prototype.{method} called on {to_display_string(this)}, "
            f"which is not a function"
        )
    return this


def _function_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _this_function(this, "call")
    return ctx.invoke(target, get_arg(args, 0), list(args[1:]))


def _function_apply(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _this_function(this, "apply")
    arguments = get_arg(args, 1)
    if is_nullish(arguments):
        call_args: List[Any] = []
    elif isinstance(arguments, list):
        call_args = list(arguments)
    elif isinstance(arguments, JSTypedArray):
        call_args = list(arguments.items)
    else:
        raise ExprTypeError("CreateListFromArrayLike called on non-object")
    return ctx.invoke(target, get_arg(args, 0), call_args)


def _function_bind(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _this_function(this, "bind")
    return BoundFunction(target, get_arg(args, 0), list(args[1:]))


def _function_to_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _this_function(this, "toString")
    if isinstance(target, JSFunction):
        return target.source_text()
    return "function () { [native code] }"


FUNCTION_METHODS: Dict[str, JSFunction] = {
    "call": _fn("call", _function_call, 1),
    "apply": _fn("apply", _function_apply, 2),
    "bind": _fn("bind", _function_bind, 1),
    "toString": _fn("toString", _function_to_string),
}


# ============================================================
# Array
# ============================================================


def _to_length(value: Any) -> int:
    length = to_integer_or_infinity(value)
    if length <= 0:
        return 0
    return int(min(length, MAX_SAFE_INTEGER))


def _relative_index(value: Any, length: int, default: int) -> int:
    """Resolves a possibly negative index argument against a length."""
    if value is UNDEFINED:
        return default
    index = to_integer_or_infinity(value)
    if index < 0:
        return int(max(length + index, 0))
    return int(min(index, length))


def _new_array(items: List[Any], ctx: BuiltinContext) -> List[Any]:
    check_array_length(len(items), ctx.limits)
    return items


def _array_like(this: Any, method: str, ctx: BuiltinContext) -> List[Any]:
    """The elements a generic Array.prototype method operates on."""
    if isinstance(this, list):
        return this
    if isinstance(this, JSTypedArray):
        return this.items
    if is_nullish(this):
        raise ExprTypeError(f"Array.prototype.{method} called on null or undefined")
    if isinstance(this, str):
        return list(this)
    if isinstance(this, dict):
        length = _to_length(get_property(this, "length"))
        check_array_length(length, ctx.limits)
        return [get_property(this, str(index)) for index in range(length)]
    return []


def _this_array(this: Any, method: str) -> List[Any]:
    if not isinstance(this, list):
        raise ExprTypeError(
            f"Array.prototype.{method} called on non-array {to_display_string(this)}"
        )
    return this


def _callback(args: List[Any], owner: str, method: str) -> Tuple[Any, Any]:
    fn = require_callable(get_arg(args, 0), f"{owner}.prototype.{method}")
    return fn, get_arg(args, 1)


def _sort_values(values: List[Any], comparator: Any, ctx: BuiltinContext) -> List[Any]:
    if comparator is not UNDEFINED and not is_callable(comparator):
        raise ExprTypeError("The comparison function must be either a function or undefined")

    defined = [value for value in values if value is not UNDEFINED]
    undefined_count = len(values) - len(defined)

    if comparator is UNDEFINED:
        ordered = sorted(defined, key=to_string)
    else:

        def compare(left: Any, right: Any) -> int:
            result = to_number(ctx.invoke(comparator, UNDEFINED, [left, right]))
            if isinstance(result, float) and math.isnan(result):
                return 0
            return -1 if result < 0 else (1 if result > 0 else 0)

        ordered = sorted(defined, key=cmp_to_key(compare))

    return ordered + [UNDEFINED] * undefined_count


def _flatten(items: List[Any], depth: Any) -> List[Any]:
    out: List[Any] = []
    for item in items:
        if isinstance(item, list) and depth >= 1:
            out.extend(_flatten(item, depth - 1))
        else:
            out.append(item)
    return out


def _copy_within(items: List[Any], args: List[Any]) -> None:
    length = len(items)
    target = _relative_index(get_arg(args, 0), length, 0)
    start = _relative_index(get_arg(args, 1), length, 0)
    end = _relative_index(get_arg(args, 2), length, length)
    count = min(end - start, length - target)
    if count > 0:
        items[target : target + count] = items[start : start + count]


def _array_at(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "at", ctx)
    index = to_integer_or_infinity(get_arg(args, 0))
    if index < 0:
        index += len(items)
    if index < 0 or index >= len(items):
        return UNDEFINED
    return items[int(index)]


def _array_concat(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    result = list(_array_like(this, "concat", ctx))
    for arg in args:
        if isinstance(arg, list):
            result.extend(arg)
        else:
            result.append(arg)
    return _new_array(result, ctx)


def _array_copy_within(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    _copy_within(_this_array(this, "copyWithin"), args)
    return this


def _array_entries(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return [[index, value] for index, value in enumerate(_array_like(this, "entries", ctx))]


def _array_keys(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return list(range(len(_array_like(this, "keys", ctx))))


def _array_values(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return list(_array_like(this, "values", ctx))


def _array_every(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "every", ctx)
    fn, this_arg = _callback(args, "Array", "every")
    for index, value in enumerate(list(items)):
        if not to_boolean(ctx.invoke(fn, this_arg, [value, index, this])):
            return False
    return True


def _array_some(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "some", ctx)
    fn, this_arg = _callback(args, "Array", "some")
    for index, value in enumerate(list(items)):
        if to_boolean(ctx.invoke(fn, this_arg, [value, index, this])):
            return True
    return False


def _array_fill(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _this_array(this, "fill")
    length = len(items)
    start = _relative_index(get_arg(args, 1), length, 0)
    end = _relative_index(get_arg(args, 2), length, length)
    for index in range(start, end):
        items[index] = get_arg(args, 0)
    return this


def _array_filter(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "filter", ctx)
    fn, this_arg = _callback(args, "Array", "filter")
    return [
        value
        for index, value in enumerate(list(items))
        if to_boolean(ctx.invoke(fn, this_arg, [value, index, this]))
    ]


def _find(method: str, reverse: bool, want_index: bool) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        items = list(_array_like(this, method, ctx))
        fn, this_arg = _callback(args, "Array", method)
        indices = range(len(items) - 1, -1, -1) if reverse else range(len(items))
        for index in indices:
            if to_boolean(ctx.invoke(fn, this_arg, [items[index], index, this])):
                return index if want_index else items[index]
        return -1 if want_index else UNDEFINED

    return _fn(method, impl, 1)


def _array_flat(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "flat", ctx)
    depth_arg = get_arg(args, 0)
    depth = 1 if depth_arg is UNDEFINED else to_integer_or_infinity(depth_arg)
    return _new_array(_flatten(items, depth), ctx)


def _array_flat_map(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "flatMap", ctx)
    fn, this_arg = _callback(args, "Array", "flatMap")
    mapped = [ctx.invoke(fn, this_arg, [value, index, this]) for index, value in enumerate(list(items))]
    return _new_array(_flatten(mapped, 1), ctx)


def _array_for_each(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "forEach", ctx)
    fn, this_arg = _callback(args, "Array", "forEach")
    for index, value in enumerate(list(items)):
        ctx.invoke(fn, this_arg, [value, index, this])
    return UNDEFINED


def _array_includes(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "includes", ctx)
    target = get_arg(args, 0)
    start = _relative_index(get_arg(args, 1), len(items), 0)
    return any(same_value_zero(value, target) for value in items[start:])


def _array_index_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "indexOf", ctx)
    target = get_arg(args, 0)
    start = _relative_index(get_arg(args, 1), len(items), 0)
    for index in range(start, len(items)):
        if strict_equals(items[index], target):
            return index
    return -1


def _array_last_index_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "lastIndexOf", ctx)
    target = get_arg(args, 0)
    start = len(items) - 1
    if len(args) > 1:
        position = to_integer_or_infinity(args[1])
        if position >= 0:
            start = int(min(position, start))
        else:
            start = int(max(len(items) + position, -1))
    for index in range(start, -1, -1):
        if strict_equals(items[index], target):
            return index
    return -1


def _array_join(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "join", ctx)
    separator = get_arg(args, 0)
    return array_join(items, "," if separator is UNDEFINED else to_string(separator))


def _array_map(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "map", ctx)
    fn, this_arg = _callback(args, "Array", "map")
    return [ctx.invoke(fn, this_arg, [value, index, this]) for index, value in enumerate(list(items))]


def _array_push(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _this_array(this, "push")
    check_array_length(len(items) + len(args), ctx.limits)
    items.extend(args)
    return len(items)


def _array_pop(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _this_array(this, "pop")
    return items.pop() if items else UNDEFINED


def _array_shift(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _this_array(this, "shift")
    return items.pop(0) if items else UNDEFINED


def _array_unshift(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _this_array(this, "unshift")
    check_array_length(len(items) + len(args), ctx.limits)
    items[0:0] = args
    return len(items)


def _reduce(method: str, reverse: bool) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        items = list(_array_like(this, method, ctx))
        fn = require_callable(get_arg(args, 0), f"Array.prototype.{method}")
        indices = list(range(len(items) - 1, -1, -1) if reverse else range(len(items)))
        if len(args) > 1:
            accumulator = args[1]
        elif indices:
            accumulator = items[indices.pop(0)]
        else:
            raise ExprTypeError("Reduce of empty array with no initial value")
        for index in indices:
            accumulator = ctx.invoke(fn, UNDEFINED, [accumulator, items[index], index, this])
        return accumulator

    return _fn(method, impl, 1)


def _array_reverse(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    _this_array(this, "reverse").reverse()
    return this


def _array_slice(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _array_like(this, "slice", ctx)
    start = _relative_index(get_arg(args, 0), len(items), 0)
    end = _relative_index(get_arg(args, 1), len(items), len(items))
    return list(items[start:end])


def _array_sort(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _this_array(this, "sort")
    items[:] = _sort_values(items, get_arg(args, 0), ctx)
    return this


def _splice_arguments(items: List[Any], args: List[Any]) -> Tuple[int, int, List[Any]]:
    length = len(items)
    start = _relative_index(get_arg(args, 0), length, 0)
    if not args:
        delete_count = 0
    elif len(args) == 1:
        delete_count = length - start
    else:
        delete_count = int(min(max(to_integer_or_infinity(args[1]), 0), length - start))
    return start, delete_count, list(args[2:])


def _array_splice(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = _this_array(this, "splice")
    start, delete_count, inserted = _splice_arguments(items, args)
    check_array_length(len(items) - delete_count + len(inserted), ctx.limits)
    removed = items[start : start + delete_count]
    items[start : start + delete_count] = inserted
    return removed


def _array_to_spliced(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = list(_array_like(this, "toSpliced", ctx))
    start, delete_count, inserted = _splice_arguments(items, args)
    items[start : start + delete_count] = inserted
    return _new_array(items, ctx)


def _array_to_reversed(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return list(reversed(_array_like(this, "toReversed", ctx)))


def _array_to_sorted(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _sort_values(list(_array_like(this, "toSorted", ctx)), get_arg(args, 0), ctx)


def _array_with(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = list(_array_like(this, "with", ctx))
    index = to_integer_or_infinity(get_arg(args, 0))
    if index < 0:
        index += len(items)
    if index < 0 or index >= len(items):
        raise ctx.error("Array.prototype.with", "Invalid index", "RangeError")
    items[int(index)] = get_arg(args, 1)
    return items


def _array_to_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return array_join(_array_like(this, "toString", ctx), ",")


def _array_to_locale_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    parts = []
    for value in _array_like(this, "toLocaleString", ctx):
        if is_nullish(value):
            parts.append("")
        elif is_number(value):
            parts.append(_format_locale_number(value))
        else:
            parts.append(to_string(value))
    return ",".join(parts)


ARRAY_METHODS: Dict[str, JSFunction] = {
    "at": _fn("at", _array_at, 1),
    "concat": _fn("concat", _array_concat, 1),
    "copyWithin": _fn("copyWithin", _array_copy_within, 2),
    "entries": _fn("entries", _array_entries),
    "every": _fn("every", _array_every, 1),
    "fill": _fn("fill", _array_fill, 1),
    "filter": _fn("filter", _array_filter, 1),
    "find": _find("find", reverse=False, want_index=False),
    "findIndex": _find("findIndex", reverse=False, want_index=True),
    "findLast": _find("findLast", reverse=True, want_index=False),
    "findLastIndex": _find("findLastIndex", reverse=True, want_index=True),
    "flat": _fn("flat", _array_flat),
    "flatMap": _fn("flatMap", _array_flat_map, 1),
    "forEach": _fn("forEach", _array_for_each, 1),
    "includes": _fn("includes", _array_includes, 1),
    "indexOf": _fn("indexOf", _array_index_of, 1),
    "join": _fn("join", _array_join, 1),
    "keys": _fn("keys", _array_keys),
    "lastIndexOf": _fn("lastIndexOf", _array_last_index_of, 1),
    "map": _fn("map", _array_map, 1),
    "pop": _fn("pop", _array_pop),
    "push": _fn("push", _array_push, 1),
    "reduce": _reduce("reduce", reverse=False),
    "reduceRight": _reduce("reduceRight", reverse=True),
    "reverse": _fn("reverse", _array_reverse),
    "shift": _fn("shift", _array_shift),
    "slice": _fn("slice", _array_slice, 2),
    "some": _fn("some", _array_some, 1),
    "sort": _fn("sort", _array_sort, 1),
    "splice": _fn("splice", _array_splice, 2),
    "toLocaleString": _fn("toLocaleString", _array_to_locale_string),
    "toReversed": _fn("toReversed", _array_to_reversed),
    "toSorted": _fn("toSorted", _array_to_sorted, 1),
    "toSpliced": _fn("toSpliced", _array_to_spliced, 2),
    "toString": _fn("toString", _array_to_string),
    "unshift": _fn("unshift", _array_unshift, 1),
    "values": _fn("values", _array_values),
    "with": _fn("with", _array_with, 2),
}


def _array_from_values(source: Any, ctx: BuiltinContext) -> List[Any]:
    if is_nullish(source):
        raise ExprTypeError(f"{to_string(source)} is not iterable")
    if is_iterable(source):
        return iterate(source)
    if isinstance(source, dict):
        return _array_like(source, "from", ctx)
    return []


def _array_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    if len(args) == 1 and is_number(args[0]):
        length = args[0]
        if (isinstance(length, float) and not length.is_integer()) or not 0 <= length <= 2**32 - 1:
            raise ctx.error("Array", "Invalid array length", "RangeError")
        length = int(length)
        check_array_length(length, ctx.limits)
        return [UNDEFINED] * length
    return _new_array(list(args), ctx)


def _array_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _array_construct(args, ctx)


def _array_is_array(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _is_array(get_arg(args, 0))


def _array_from(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    values = _array_from_values(get_arg(args, 0), ctx)
    check_array_length(len(values), ctx.limits)
    map_fn = get_arg(args, 1)
    if map_fn is UNDEFINED:
        return values
    map_fn = require_callable(map_fn, "Array.from")
    this_arg = get_arg(args, 2)
    return [ctx.invoke(map_fn, this_arg, [value, index]) for index, value in enumerate(values)]


def _array_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _new_array(list(args), ctx)


ARRAY_CONSTRUCTOR = BuiltinConstructor(
    "Array",
    call_impl=_array_call,
    construct_impl=_array_construct,
    length=1,
    methods=ARRAY_METHODS,
    statics={
        "isArray": _fn("isArray", _array_is_array, 1),
        "from": _fn("from", _array_from, 1),
        "of": _fn("of", _array_of),
    },
    instance_check=_is_array,
)


# ============================================================
# String
# ============================================================


def _this_string(this: Any, method: str) -> str:
    if is_nullish(this):
        raise ExprTypeError(f"String.prototype.{method} called on null or undefined")
    return to_string(this)


def _check_string_length(length: int, ctx: BuiltinContext, method: str) -> None:
    if length > MAX_STRING_LENGTH:
        raise ctx.error(method, "Invalid string length", "RangeError")


def _reject_regexp(value: Any, method: str) -> str:
    if isinstance(value, JSRegExp):
        raise ExprTypeError(
            f"First argument to String.prototype.{method} must not be a regular expression"
        )
    return to_string(value)


def _as_regexp(value: Any, flags: str, ctx: BuiltinContext) -> JSRegExp:
    if isinstance(value, JSRegExp):
        return value
    source = "(?:)" if value is UNDEFINED else to_string(value)
    return create_regexp(source, flags, ctx.limits)


def _string_at(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "at")
    index = to_integer_or_infinity(get_arg(args, 0))
    if index < 0:
        index += len(text)
    if index < 0 or index >= len(text):
        return UNDEFINED
    return text[int(index)]


def _string_char_at(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "charAt")
    index = to_integer_or_infinity(get_arg(args, 0))
    if index < 0 or index >= len(text):
        return ""
    return text[int(index)]


def _string_char_code_at(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "charCodeAt")
    index = to_integer_or_infinity(get_arg(args, 0))
    if index < 0 or index >= len(text):
        return math.nan
    return ord(text[int(index)])


def _string_code_point_at(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "codePointAt")
    index = to_integer_or_infinity(get_arg(args, 0))
    if index < 0 or index >= len(text):
        return UNDEFINED
    return ord(text[int(index)])


def _string_concat(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    result = _this_string(this, "concat") + "".join(to_string(arg) for arg in args)
    _check_string_length(len(result), ctx, "String.prototype.concat")
    return result


def _string_ends_with(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "endsWith")
    search = _reject_regexp(get_arg(args, 0), "endsWith")
    end_arg = get_arg(args, 1)
    end = len(text) if end_arg is UNDEFINED else int(min(max(to_integer_or_infinity(end_arg), 0), len(text)))
    return text[:end].endswith(search)


def _string_starts_with(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "startsWith")
    search = _reject_regexp(get_arg(args, 0), "startsWith")
    start = int(min(max(to_integer_or_infinity(get_arg(args, 1)), 0), len(text)))
    return text.startswith(search, start)


def _string_includes(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "includes")
    search = _reject_regexp(get_arg(args, 0), "includes")
    start = int(min(max(to_integer_or_infinity(get_arg(args, 1)), 0), len(text)))
    return search in text[start:]


def _string_index_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "indexOf")
    search = to_string(get_arg(args, 0))
    start = int(min(max(to_integer_or_infinity(get_arg(args, 1)), 0), len(text)))
    return text.find(search, start)


def _string_last_index_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "lastIndexOf")
    search = to_string(get_arg(args, 0))
    position = to_number(get_arg(args, 1))
    if isinstance(position, float) and math.isnan(position):
        start = len(text)
    else:
        start = int(min(max(to_integer_or_infinity(position), 0), len(text)))
    return text.rfind(search, 0, start + len(search))


def _string_locale_compare(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "localeCompare")
    other = to_string(get_arg(args, 0))
    left, right = (text.casefold(), text), (other.casefold(), other)
    return -1 if left < right else (1 if left > right else 0)


def _string_match(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "match")
    regexp = _as_regexp(get_arg(args, 0), "", ctx)
    if not regexp.is_global:
        return regexp_exec(regexp, text)
    matches = regexp_find_all(regexp, text)
    if not matches:
        return None
    return [found[0] for found in matches]


def _string_match_all(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "matchAll")
    pattern = get_arg(args, 0)
    if isinstance(pattern, JSRegExp) and not pattern.is_global:
        raise ExprTypeError("String.prototype.matchAll called with a non-global RegExp argument")
    regexp = _as_regexp(pattern, "g", ctx)
    return regexp_find_all(regexp, text)


def _string_normalize(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "normalize")
    form = get_arg(args, 0)
    form = "NFC" if form is UNDEFINED else to_string(form)
    if form not in ("NFC", "NFD", "NFKC", "NFKD"):
        raise ctx.error(
            "String.prototype.normalize",
            "The normalization form should be one of NFC, NFD, NFKC, NFKD.",
            "RangeError",
        )
    return unicodedata.normalize(form, text)


def _pad(method: str, at_start: bool) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        text = _this_string(this, method)
        target = _to_length(get_arg(args, 0))
        filler = get_arg(args, 1)
        filler = " " if filler is UNDEFINED else to_string(filler)
        if target <= len(text) or filler == "":
            return text
        _check_string_length(target, ctx, f"String.prototype.{method}")
        needed = target - len(text)
        padding = (filler * (needed // len(filler) + 1))[:needed]
        return padding + text if at_start else text + padding

    return _fn(method, impl, 1)


def _string_repeat(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "repeat")
    count = to_integer_or_infinity(get_arg(args, 0))
    if count < 0 or count == math.inf:
        raise ctx.error(
            "String.prototype.repeat", f"Invalid count value: {number_to_string(count)}", "RangeError"
        )
    count = int(count)
    _check_string_length(len(text) * count, ctx, "String.prototype.repeat")
    return text * count


def _replacement_for(match: MatchArray, replacement: Any, ctx: BuiltinContext) -> str:
    if is_callable(replacement):
        call_args: List[Any] = list(match) + [match.index, match.input]
        if isinstance(match.groups, dict):
            call_args.append(match.groups)
        return to_string(ctx.invoke(replacement, UNDEFINED, call_args))
    return expand_replacement(to_string(replacement), match)


def _apply_replacements(
    text: str, matches: List[MatchArray], replacement: Any, ctx: BuiltinContext
) -> str:
    out: List[str] = []
    last = 0
    for match in matches:
        out.append(text[last : match.index])
        out.append(_replacement_for(match, replacement, ctx))
        last = match.index + len(match[0])
    out.append(text[last:])
    result = "".join(out)
    _check_string_length(len(result), ctx, "String.prototype.replace")
    return result


def _string_matches(text: str, search: str, find_all: bool) -> List[MatchArray]:
    matches: List[MatchArray] = []
    position = text.find(search)
    while position != -1:
        matches.append(MatchArray([search], position, text, UNDEFINED))
        if not find_all:
            break
        step = len(search) or 1
        next_position = position + step
        if next_position > len(text):
            break
        position = text.find(search, next_position)
    return matches


def _string_replace(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "replace")
    pattern, replacement = get_arg(args, 0), get_arg(args, 1)
    if isinstance(pattern, JSRegExp):
        if pattern.is_global:
            matches = regexp_find_all(pattern, text)
        else:
            found = regexp_exec(pattern, text)
            matches = [found] if found is not None else []
    else:
        matches = _string_matches(text, to_string(pattern), find_all=False)
    return _apply_replacements(text, matches, replacement, ctx)


def _string_replace_all(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "replaceAll")
    pattern, replacement = get_arg(args, 0), get_arg(args, 1)
    if isinstance(pattern, JSRegExp):
        if not pattern.is_global:
            raise ExprTypeError("replaceAll must be called with a global RegExp")
        matches = regexp_find_all(pattern, text)
    else:
        matches = _string_matches(text, to_string(pattern), find_all=True)
    return _apply_replacements(text, matches, replacement, ctx)


def _string_search(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "search")
    found = regexp_exec(_as_regexp(get_arg(args, 0), "", ctx), text)
    return -1 if found is None else found.index


def _string_slice(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "slice")
    start = _relative_index(get_arg(args, 0), len(text), 0)
    end = _relative_index(get_arg(args, 1), len(text), len(text))
    return text[start:end]


def _split_regexp(text: str, regexp: JSRegExp) -> List[Any]:
    if text == "":
        found = regexp_exec(regexp, text)
        return [] if found is not None else [""]
    parts: List[Any] = []
    last = 0
    for found in regexp_find_all(regexp, text):
        start = found.index
        end = start + len(found[0])
        if end == start and (start == 0 or start >= len(text)):
            continue
        parts.append(text[last:start])
        parts.extend(found[1:])
        last = end
    parts.append(text[last:])
    return parts


def _string_split(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "split")
    separator, limit = get_arg(args, 0), get_arg(args, 1)
    max_parts = 2**32 - 1 if limit is UNDEFINED else to_uint32(limit)
    if max_parts == 0:
        return []
    if separator is UNDEFINED:
        return [text]
    if isinstance(separator, JSRegExp):
        parts = _split_regexp(text, separator)
    else:
        separator = to_string(separator)
        if separator == "":
            parts = list(text)
        else:
            parts = text.split(separator)
    parts = parts[:max_parts]
    return _new_array(parts, ctx)


def _string_substring(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "substring")
    length = len(text)
    start = int(min(max(to_integer_or_infinity(get_arg(args, 0)), 0), length))
    end_arg = get_arg(args, 1)
    end = length if end_arg is UNDEFINED else int(min(max(to_integer_or_infinity(end_arg), 0), length))
    if start > end:
        start, end = end, start
    return text[start:end]


def _string_substr(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = _this_string(this, "substr")
    start = _relative_index(get_arg(args, 0), len(text), 0)
    count_arg = get_arg(args, 1)
    count = len(text) - start if count_arg is UNDEFINED else to_integer_or_infinity(count_arg)
    count = int(min(max(count, 0), len(text) - start))
    return text[start : start + count]


def _string_transform(method: str, transform: Callable[[str], str]) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        return transform(_this_string(this, method))

    return _fn(method, impl)


def _is_well_formed(text: str) -> bool:
    return not any(0xD800 <= ord(ch) <= 0xDFFF for ch in text)


def _to_well_formed(text: str) -> str:
    return "".join("\ufffd" if 0xD800 <= ord(ch) <= 0xDFFF else ch for ch in text)


def _string_value_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    if not isinstance(this, str):
        raise ExprTypeError("String.prototype.valueOf requires that 'this' be a String")
    return this


STRING_METHODS: Dict[str, JSFunction] = {
    "at": _fn("at", _string_at, 1),
    "charAt": _fn("charAt", _string_char_at, 1),
    "charCodeAt": _fn("charCodeAt", _string_char_code_at, 1),
    "codePointAt": _fn("codePointAt", _string_code_point_at, 1),
    "concat": _fn("concat", _string_concat, 1),
    "endsWith": _fn("endsWith", _string_ends_with, 1),
    "includes": _fn("includes", _string_includes, 1),
    "indexOf": _fn("indexOf", _string_index_of, 1),
    "isWellFormed": _string_transform("isWellFormed", _is_well_formed),
    "lastIndexOf": _fn("lastIndexOf", _string_last_index_of, 1),
    "localeCompare": _fn("localeCompare", _string_locale_compare, 1),
    "match": _fn("match", _string_match, 1),
    "matchAll": _fn("matchAll", _string_match_all, 1),
    "normalize": _fn("normalize", _string_normalize),
    "padEnd": _pad("padEnd", at_start=False),
    "padStart": _pad("padStart", at_start=True),
    "repeat": _fn("repeat", _string_repeat, 1),
    "replace": _fn("replace", _string_replace, 2),
    "replaceAll": _fn("replaceAll", _string_replace_all, 2),
    "search": _fn("search", _string_search, 1),
    "slice": _fn("slice", _string_slice, 2),
    "split": _fn("split", _string_split, 2),
    "startsWith": _fn("startsWith", _string_starts_with, 1),
    "substr": _fn("substr", _string_substr, 2),
    "substring": _fn("substring", _string_substring, 2),
    "toLocaleLowerCase": _string_transform("toLocaleLowerCase", str.lower),
    "toLocaleUpperCase": _string_transform("toLocaleUpperCase", str.upper),
    "toLowerCase": _string_transform("toLowerCase", str.lower),
    "toString": _fn("toString", _string_value_of),
    "toUpperCase": _string_transform("toUpperCase", str.upper),
    "toWellFormed": _string_transform("toWellFormed", _to_well_formed),
    "trim": _string_transform("trim", js_trim),
    "trimEnd": _string_transform("trimEnd", js_trim_end),
    "trimStart": _string_transform("trimStart", js_trim_start),
    "valueOf": _fn("valueOf", _string_value_of),
}


def _string_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    if not args:
        return ""
    value = args[0]
    if isinstance(value, JSSymbol):
        return repr(value)
    return to_string(value)


def _string_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    return _string_call(UNDEFINED, args, ctx)


def _string_from_char_code(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return "".join(chr(to_uint32(arg) & 0xFFFF) for arg in args)


def _string_from_code_point(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    chars = []
    for arg in args:
        code = to_number(arg)
        if (isinstance(code, float) and not code.is_integer()) or not 0 <= code <= 0x10FFFF:
            raise ctx.error(
                "String.fromCodePoint", f"Invalid code point {to_display_string(code)}", "RangeError"
            )
        chars.append(chr(int(code)))
    return "".join(chars)


def _string_raw(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    strings = get_arg(args, 0)
    raw = get_property(strings, "raw")
    literals = [to_string(part) for part in _array_like(raw, "raw", ctx)]
    out: List[str] = []
    for index, literal in enumerate(literals):
        out.append(literal)
        if index + 1 < len(literals) and index + 1 < len(args):
            out.append(to_string(args[index + 1]))
    return "".join(out)


STRING_CONSTRUCTOR = BuiltinConstructor(
    "String",
    call_impl=_string_call,
    construct_impl=_string_construct,
    length=1,
    methods=STRING_METHODS,
    statics={
        "fromCharCode": _fn("fromCharCode", _string_from_char_code, 1),
        "fromCodePoint": _fn("fromCodePoint", _string_from_code_point, 1),
        "raw": _fn("raw", _string_raw, 1),
    },
)


# ============================================================
# Number
# ============================================================


def _this_number(this: Any, method: str) -> Any:
    if not is_number(this):
        raise ExprTypeError(
            f"Number.prototype.{method} requires that 'this' be a Number"
        )
    return this


def _is_finite_number(value: Any) -> bool:
    return not (isinstance(value, float) and (math.isnan(value) or math.isinf(value)))


def _digits_argument(value: Any, low: int, high: int, method: str, ctx: BuiltinContext) -> int:
    digits = to_integer_or_infinity(value)
    if digits < low or digits > high:
        raise ctx.error(
            f"Number.prototype.{method}",
            f"{method}() digits argument must be between {low} and {high}",
            "RangeError",
        )
    return int(digits)


def _scale_to_integer(value: Decimal, shift: int) -> int:
    scaled = value.scaleb(shift, context=_DECIMAL_CONTEXT)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP, context=_DECIMAL_CONTEXT))


def _round_digits(value: Decimal, exponent: int, precision: int) -> Tuple[str, int]:
    """Rounds to ``precision`` significant digits; returns the digits and decimal exponent."""
    scaled = _scale_to_integer(value, precision - 1 - exponent)
    if scaled >= 10**precision:
        exponent += 1
        scaled = _scale_to_integer(value, precision - 1 - exponent)
    return str(scaled), exponent


def _exponential(digits: str, exponent: int) -> str:
    mantissa = digits if len(digits) == 1 else digits[0] + "." + digits[1:]
    sign = "+" if exponent >= 0 else "-"
    return f"{mantissa}e{sign}{abs(exponent)}"


def _number_to_fixed(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = _this_number(this, "toFixed")
    digits = _digits_argument(get_arg(args, 0), 0, 100, "toFixed", ctx)
    if not _is_finite_number(value) or abs(value) >= 1e21:
        return number_to_string(value)
    if value == 0:
        value = 0
    sign = "-" if value < 0 else ""
    rounded = Decimal(abs(value)).quantize(
        Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP, context=_DECIMAL_CONTEXT
    )
    return sign + f"{rounded:f}"


def _number_to_precision(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = _this_number(this, "toPrecision")
    if get_arg(args, 0) is UNDEFINED or not _is_finite_number(value):
        return number_to_string(value)
    precision = _digits_argument(get_arg(args, 0), 1, 100, "toPrecision", ctx)
    if value == 0:
        return "0" if precision == 1 else "0." + "0" * (precision - 1)

    sign = "-" if value < 0 else ""
    exact = Decimal(abs(value))
    digits, exponent = _round_digits(exact, exact.adjusted(), precision)

    if exponent < -6 or exponent >= precision:
        return sign + _exponential(digits, exponent)
    if exponent == precision - 1:
        return sign + digits
    if exponent >= 0:
        return sign + digits[: exponent + 1] + "." + digits[exponent + 1 :]
    return sign + "0." + "0" * (-exponent - 1) + digits


def _number_to_exponential(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = _this_number(this, "toExponential")
    fraction_arg = get_arg(args, 0)
    if not _is_finite_number(value):
        return number_to_string(value)
    sign = "-" if value < 0 else ""

    if fraction_arg is UNDEFINED:
        if value == 0:
            return "0e+0"
        shortest = Decimal(repr(float(abs(value)))).normalize()
        digits = "".join(str(d) for d in shortest.as_tuple().digits)
        return sign + _exponential(digits, shortest.adjusted())

    fraction = _digits_argument(fraction_arg, 0, 100, "toExponential", ctx)
    if value == 0:
        return _exponential("0" * (fraction + 1), 0)
    exact = Decimal(abs(value))
    digits, exponent = _round_digits(exact, exact.adjusted(), fraction + 1)
    return sign + _exponential(digits, exponent)


def _number_to_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = _this_number(this, "toString")
    radix_arg = get_arg(args, 0)
    radix = 10 if radix_arg is UNDEFINED else to_integer_or_infinity(radix_arg)
    if radix < 2 or radix > 36:
        raise ctx.error(
            "Number.prototype.toString", "toString() radix must be between 2 and 36", "RangeError"
        )
    return number_to_string(value, int(radix))


def _format_locale_number(value: Any) -> str:
    """en-US style grouping with at most three fraction digits."""
    if not _is_finite_number(value):
        return "NaN" if math.isnan(value) else ("\u221e" if value > 0 else "-\u221e")
    rounded = Decimal(abs(value)).quantize(
        Decimal("0.001"), rounding=ROUND_HALF_UP, context=_DECIMAL_CONTEXT
    )
    whole, _, fraction = f"{rounded:f}".partition(".")
    text = f"{int(whole):,}"
    fraction = fraction.rstrip("0")
    if fraction:
        text += "." + fraction
    return ("-" + text) if value < 0 and rounded != 0 else text


def _number_to_locale_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _format_locale_number(_this_number(this, "toLocaleString"))


def _number_value_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_number(this, "valueOf")


NUMBER_METHODS: Dict[str, JSFunction] = {
    "toExponential": _fn("toExponential", _number_to_exponential, 1),
    "toFixed": _fn("toFixed", _number_to_fixed, 1),
    "toLocaleString": _fn("toLocaleString", _number_to_locale_string),
    "toPrecision": _fn("toPrecision", _number_to_precision, 1),
    "toString": _fn("toString", _number_to_string, 1),
    "valueOf": _fn("valueOf", _number_value_of),
}


def _number_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    if not args:
        return 0
    value = to_numeric(args[0])
    if isinstance(value, JSBigInt):
        return normalize_number(value.value)
    return value


def _number_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    return _number_call(UNDEFINED, args, ctx)


def _number_is_nan(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = get_arg(args, 0)
    return isinstance(value, float) and math.isnan(value)


def _number_is_finite(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = get_arg(args, 0)
    return is_number(value) and _is_finite_number(value)


def _is_integral(value: Any) -> bool:
    if not is_number(value) or not _is_finite_number(value):
        return False
    return isinstance(value, int) or value.is_integer()


def _number_is_integer(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _is_integral(get_arg(args, 0))


def _number_is_safe_integer(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = get_arg(args, 0)
    return _is_integral(value) and abs(value) <= MAX_SAFE_INTEGER


_RADIX_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_FLOAT_PREFIX = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _parse_int(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = js_trim_start(to_string(get_arg(args, 0)))
    sign = 1
    if text and text[0] in "+-":
        if text[0] == "-":
            sign = -1
        text = text[1:]

    radix = to_int32(get_arg(args, 1))
    strip_prefix = True
    if radix != 0:
        if radix < 2 or radix > 36:
            return math.nan
        strip_prefix = radix == 16
    else:
        radix = 10
    if strip_prefix and text[:2].lower() == "0x":
        text = text[2:]
        radix = 16

    valid = _RADIX_DIGITS[:radix]
    end = 0
    while end < len(text) and text[end].lower() in valid:
        end += 1
    if end == 0:
        return math.nan

    value = int(text[:end], radix)
    if sign < 0 and value == 0:
        return -0.0
    return normalize_number(sign * value)


def _parse_float(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = js_trim_start(to_string(get_arg(args, 0)))
    match = _FLOAT_PREFIX.match(text)
    if match is None:
        return math.nan
    literal = match.group(0)
    if literal.lstrip("+-") == "Infinity":
        return -math.inf if literal.startswith("-") else math.inf
    return normalize_number(float(literal))


PARSE_INT = _fn("parseInt", _parse_int, 2)
PARSE_FLOAT = _fn("parseFloat", _parse_float, 1)
IS_NAN = _fn("isNaN", _number_is_nan, 1)
IS_FINITE = _fn("isFinite", _number_is_finite, 1)

NUMBER_CONSTRUCTOR = BuiltinConstructor(
    "Number",
    call_impl=_number_call,
    construct_impl=_number_construct,
    length=1,
    methods=NUMBER_METHODS,
    statics={
        "EPSILON": 2.0**-52,
        "MAX_SAFE_INTEGER": MAX_SAFE_INTEGER,
        "MIN_SAFE_INTEGER": -MAX_SAFE_INTEGER,
        "MAX_VALUE": sys.float_info.max,
        "MIN_VALUE": 5e-324,
        "NaN": math.nan,
        "POSITIVE_INFINITY": math.inf,
        "NEGATIVE_INFINITY": -math.inf,
        "isNaN": IS_NAN,
        "isFinite": IS_FINITE,
        "isInteger": _fn("isInteger", _number_is_integer, 1),
        "isSafeInteger": _fn("isSafeInteger", _number_is_safe_integer, 1),
        "parseFloat": PARSE_FLOAT,
        "parseInt": PARSE_INT,
    },
)


# ============================================================
# Boolean
# ============================================================


def _this_boolean(this: Any, method: str) -> bool:
    if not isinstance(this, bool):
        raise ExprTypeError(f"Boolean.prototype.{method} requires that 'this' be a Boolean")
    return this


def _boolean_to_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return "true" if _this_boolean(this, "toString") else "false"


def _boolean_value_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_boolean(this, "valueOf")


BOOLEAN_METHODS: Dict[str, JSFunction] = {
    "toString": _fn("toString", _boolean_to_string),
    "valueOf": _fn("valueOf", _boolean_value_of),
}


def _boolean_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return to_boolean(get_arg(args, 0))


BOOLEAN_CONSTRUCTOR = BuiltinConstructor(
    "Boolean",
    call_impl=_boolean_call,
    construct_impl=lambda args, ctx: to_boolean(get_arg(args, 0)),
    length=1,
    methods=BOOLEAN_METHODS,
)


# ============================================================
# BigInt
# ============================================================


def _this_bigint(this: Any, method: str) -> JSBigInt:
    if not isinstance(this, JSBigInt):
        raise ExprTypeError(f"BigInt.prototype.{method} requires that 'this' be a BigInt")
    return this


def _bigint_to_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = _this_bigint(this, "toString")
    radix_arg = get_arg(args, 0)
    radix = 10 if radix_arg is UNDEFINED else to_integer_or_infinity(radix_arg)
    if radix < 2 or radix > 36:
        raise ctx.error(
            "BigInt.prototype.toString", "toString() radix must be between 2 and 36", "RangeError"
        )
    return bigint_to_string(value.value, int(radix))


def _bigint_to_locale_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return f"{_this_bigint(this, 'toLocaleString').value:,}"


def _bigint_value_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_bigint(this, "valueOf")


BIGINT_METHODS: Dict[str, JSFunction] = {
    "toLocaleString": _fn("toLocaleString", _bigint_to_locale_string),
    "toString": _fn("toString", _bigint_to_string),
    "valueOf": _fn("valueOf", _bigint_value_of),
}


def to_bigint(value: Any, ctx: BuiltinContext) -> JSBigInt:
    """The BigInt(value) conversion."""
    primitive = to_primitive(value, "number")
    if isinstance(primitive, JSBigInt):
        return primitive
    if isinstance(primitive, bool):
        return JSBigInt(int(primitive))
    if is_number(primitive):
        if not _is_integral(primitive):
            raise ctx.error(
                "BigInt",
                f"The number {number_to_string(primitive)} cannot be converted to a BigInt "
                f"because it is not an integer",
                "RangeError",
            )
        return JSBigInt(int(primitive))
    if isinstance(primitive, str):
        parsed = string_to_bigint(primitive)
        if parsed is None:
            raise ctx.error("BigInt", f"Cannot convert {primitive} to a BigInt", "SyntaxError")
        return JSBigInt(parsed)
    raise ExprTypeError(f"Cannot convert {to_display_string(primitive)} to a BigInt")


def _bigint_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return to_bigint(get_arg(args, 0), ctx)


def _bigint_bits(args: List[Any], method: str, ctx: BuiltinContext) -> Tuple[int, int]:
    bits = to_integer_or_infinity(get_arg(args, 0))
    if bits < 0 or bits > 2**53 - 1:
        raise ctx.error(f"BigInt.{method}", "Invalid value: not (convertible to) a safe integer", "RangeError")
    return int(bits), to_bigint(get_arg(args, 1), ctx).value


def _bigint_as_int_n(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    bits, value = _bigint_bits(args, "asIntN", ctx)
    if bits == 0:
        return JSBigInt(0)
    modulus = 1 << bits
    result = value % modulus
    if result >= modulus >> 1:
        result -= modulus
    return JSBigInt(result)


def _bigint_as_uint_n(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    bits, value = _bigint_bits(args, "asUintN", ctx)
    return JSBigInt(value % (1 << bits))


BIGINT_CONSTRUCTOR = BuiltinConstructor(
    "BigInt",
    call_impl=_bigint_call,
    construct_impl=None,
    length=1,
    methods=BIGINT_METHODS,
    statics={
        "asIntN": _fn("asIntN", _bigint_as_int_n, 2),
        "asUintN": _fn("asUintN", _bigint_as_uint_n, 2),
    },
)


# ============================================================
# Symbol
# ============================================================


def _this_symbol(this: Any, method: str) -> JSSymbol:
    if not isinstance(this, JSSymbol):
        raise ExprTypeError(f"Symbol.prototype.{method} requires that 'this' be a Symbol")
    return this


def _symbol_to_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return repr(_this_symbol(this, "toString"))


def _symbol_value_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_symbol(this, "valueOf")


SYMBOL_METHODS: Dict[str, JSFunction] = {
    "toString": _fn("toString", _symbol_to_string),
    "valueOf": _fn("valueOf", _symbol_value_of),
}


def _symbol_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    description = get_arg(args, 0)
    return JSSymbol(UNDEFINED if description is UNDEFINED else to_string(description))


SYMBOL_CONSTRUCTOR = BuiltinConstructor(
    "Symbol",
    call_impl=_symbol_call,
    construct_impl=None,
    length=0,
    methods=SYMBOL_METHODS,
    statics={
        "asyncIterator": SYMBOL_ASYNC_ITERATOR,
        "hasInstance": SYMBOL_HAS_INSTANCE,
        "iterator": SYMBOL_ITERATOR,
        "toPrimitive": SYMBOL_TO_PRIMITIVE,
        "toStringTag": SYMBOL_TO_STRING_TAG,
    },
)


# ============================================================
# Object
# ============================================================


def _require_object_coercible(value: Any, fn_name: str) -> Any:
    if is_nullish(value):
        raise ExprTypeError(f"{fn_name}: Cannot convert undefined or null to object")
    return value


def _object_keys(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return own_keys(_require_object_coercible(get_arg(args, 0), "Object.keys"))


def _object_values(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _require_object_coercible(get_arg(args, 0), "Object.values")
    return [get_property(target, key) for key in own_keys(target)]


def _object_entries(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _require_object_coercible(get_arg(args, 0), "Object.entries")
    return [[key, get_property(target, key)] for key in own_keys(target)]


def _object_from_entries(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    result: Dict[Any, Any] = {}
    for entry in iterate(_require_object_coercible(get_arg(args, 0), "Object.fromEntries")):
        if not is_object(entry):
            raise ExprTypeError(
                f"Iterator value {to_display_string(entry)} is not an entry object"
            )
        result[to_property_key(get_property(entry, "0"))] = get_property(entry, "1")
    return result


def _object_assign(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _require_object_coercible(get_arg(args, 0), "Object.assign")
    for source in args[1:]:
        if is_nullish(source):
            continue
        if not isinstance(target, dict):
            raise ExprTypeError("Object.assign: target is not extensible")
        for key in own_keys(source):
            target[key] = get_property(source, key)
    return target


def _object_freeze(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    # Expressions cannot assign, so every object is effectively frozen.
    return get_arg(args, 0)


def _object_is_frozen(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return not is_object(get_arg(args, 0))


def _object_is_extensible(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return is_object(get_arg(args, 0))


def _define_property(target: Any, key: Any, descriptor: Any) -> None:
    if not isinstance(target, dict):
        raise ExprTypeError("Object.defineProperty called on non-object")
    if not is_object(descriptor):
        raise ExprTypeError(
            f"Property description must be an object: {to_display_string(descriptor)}"
        )
    target[to_property_key(key)] = get_property(descriptor, "value")


def _object_define_property(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = get_arg(args, 0)
    _define_property(target, get_arg(args, 1), get_arg(args, 2))
    return target


def _object_define_properties(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = get_arg(args, 0)
    descriptors = _require_object_coercible(get_arg(args, 1), "Object.defineProperties")
    for key in own_keys(descriptors):
        _define_property(target, key, get_property(descriptors, key))
    return target


def _object_prevent_extensions(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return get_arg(args, 0)


def _prototype_of(value: Any) -> Any:
    if isinstance(value, PrototypeObject):
        return None if value is OBJECT_CONSTRUCTOR.prototype else OBJECT_CONSTRUCTOR.prototype
    if isinstance(value, dict):
        return OBJECT_CONSTRUCTOR.prototype
    constructor = get_property(value, "constructor")
    if isinstance(constructor, BuiltinConstructor):
        return constructor.prototype
    return None


def _object_get_prototype_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _prototype_of(_require_object_coercible(get_arg(args, 0), "Object.getPrototypeOf"))


def _object_set_prototype_of(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _require_object_coercible(get_arg(args, 0), "Object.setPrototypeOf")
    proto = get_arg(args, 1)
    if proto is not None and not is_object(proto):
        raise ExprTypeError(
            f"Object prototype may only be an Object or null: {to_display_string(proto)}"
        )
    return target


def _object_get_own_property_names(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _require_object_coercible(get_arg(args, 0), "Object.getOwnPropertyNames")
    keys = own_keys(target)
    if isinstance(target, (list, str)):
        keys.append("length")
    return keys


def _object_get_own_property_descriptor(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _require_object_coercible(get_arg(args, 0), "Object.getOwnPropertyDescriptor")
    key = get_arg(args, 1)
    if not has_own_property(target, key):
        return UNDEFINED
    return {
        "value": get_property(target, key),
        "writable": False,
        "enumerable": to_property_key(key) in own_keys(target),
        "configurable": False,
    }


def _object_has_own(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _require_object_coercible(get_arg(args, 0), "Object.hasOwn")
    return has_own_property(target, get_arg(args, 1))


def _object_is(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return same_value(get_arg(args, 0), get_arg(args, 1))


def _object_create(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    proto = get_arg(args, 0)
    if proto is not None and not is_object(proto):
        raise ExprTypeError(
            f"Object prototype may only be an Object or null: {to_display_string(proto)}"
        )
    result: Dict[Any, Any] = {}
    properties = get_arg(args, 1)
    if properties is not UNDEFINED:
        for key in own_keys(properties):
            _define_property(result, key, get_property(properties, key))
    return result


def _object_group_by(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = iterate(_require_object_coercible(get_arg(args, 0), "Object.groupBy"))
    fn = require_callable(get_arg(args, 1), "Object.groupBy")
    result: Dict[Any, Any] = {}
    for index, item in enumerate(items):
        key = to_property_key(ctx.invoke(fn, UNDEFINED, [item, index]))
        result.setdefault(key, []).append(item)
    return result


def _object_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = get_arg(args, 0)
    if is_nullish(value):
        return {}
    return value


OBJECT_CONSTRUCTOR = BuiltinConstructor(
    "Object",
    call_impl=_object_call,
    construct_impl=lambda args, ctx: _object_call(UNDEFINED, args, ctx),
    length=1,
    methods=OBJECT_METHODS,
    statics={
        "assign": _fn("assign", _object_assign, 2),
        "create": _fn("create", _object_create, 2),
        "defineProperties": _fn("defineProperties", _object_define_properties, 2),
        "defineProperty": _fn("defineProperty", _object_define_property, 3),
        "entries": _fn("entries", _object_entries, 1),
        "freeze": _fn("freeze", _object_freeze, 1),
        "fromEntries": _fn("fromEntries", _object_from_entries, 1),
        "getOwnPropertyDescriptor": _fn(
            "getOwnPropertyDescriptor", _object_get_own_property_descriptor, 2
        ),
        "getOwnPropertyNames": _fn("getOwnPropertyNames", _object_get_own_property_names, 1),
        "getPrototypeOf": _fn("getPrototypeOf", _object_get_prototype_of, 1),
        "groupBy": _fn("groupBy", _object_group_by, 2),
        "hasOwn": _fn("hasOwn", _object_has_own, 2),
        "is": _fn("is", _object_is, 2),
        "isExtensible": _fn("isExtensible", _object_is_extensible, 1),
        "isFrozen": _fn("isFrozen", _object_is_frozen, 1),
        "keys": _fn("keys", _object_keys, 1),
        "preventExtensions": _fn("preventExtensions", _object_prevent_extensions, 1),
        "setPrototypeOf": _fn("setPrototypeOf", _object_set_prototype_of, 2),
        "values": _fn("values", _object_values, 1),
    },
    instance_check=is_object,
)


def instance_of(value: Any, constructor: Any) -> bool:
    """
    The ``instanceof`` operator.

    Raises:
        TypeError: If the right-hand side is not callable
    """
    if not is_callable(constructor):
        raise ExprTypeError("Right-hand side of 'instanceof' is not callable")
    if isinstance(constructor, BoundFunction):
        return instance_of(value, constructor.target)
    if isinstance(constructor, BuiltinConstructor):
        return constructor.has_instance(value)
    if constructor is FUNCTION_CONSTRUCTOR:
        return is_callable(value)
    return False


# ============================================================
# Namespaces
# ============================================================


class NamespaceObject(HostObject):
    """A plain namespace object such as Math or JSON."""

    def __init__(self, name: str, members: Dict[str, Any]):
        self.class_name = name
        self.members = members

    def get_own(self, key: str) -> Any:
        return self.members.get(key, MISSING)

    def __repr__(self) -> str:
        return f"[object {self.class_name}]"


# ============================================================
# Math
# ============================================================


def number_pow(base: Any, exponent: Any) -> Any:
    """Number::exponentiate, following IEEE 754 rather than Python's exceptions."""
    if isinstance(exponent, float) and math.isnan(exponent):
        return math.nan
    if exponent == 0:
        return 1
    if isinstance(base, float) and math.isnan(base):
        return math.nan
    if abs(base) == 1 and isinstance(exponent, float) and math.isinf(exponent):
        return math.nan

    odd_integer = _is_integral(exponent) and int(exponent) % 2 == 1
    if base == 0 and exponent < 0:
        if is_negative_zero(base) and odd_integer:
            return -math.inf
        return math.inf

    if isinstance(base, int) and isinstance(exponent, int) and 0 <= exponent <= 1100:
        result = base**exponent
        if result.bit_length() > 1024:
            return -math.inf if result < 0 else math.inf
        return normalize_number(result)

    try:
        return normalize_number(math.pow(base, exponent))
    except ValueError:
        return math.nan
    except OverflowError:
        return -math.inf if base < 0 and odd_integer else math.inf


def _math_unary(
    name: str, impl: Callable[[float], Any], overflow: Optional[Callable[[float], Any]] = None
) -> NativeFunction:
    def call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        value = float(to_number(get_arg(args, 0)))
        try:
            return normalize_number(impl(value))
        except ValueError:
            return math.nan
        except OverflowError:
            if overflow is None:
                return math.inf
            return overflow(value)

    return _fn(name, call, 1)


def _keep_sign(value: float, result: Any) -> Any:
    """Integer-valued results of negative inputs keep JavaScript's -0."""
    if result == 0 and (value < 0 or is_negative_zero(value)):
        return -0.0
    return result


def _integer_op(op: Callable[[float], int]) -> Callable[[float], Any]:
    def impl(value: float) -> Any:
        if math.isnan(value) or math.isinf(value):
            return value
        return _keep_sign(value, op(value))

    return impl


def _js_round(value: float) -> Any:
    if math.isnan(value) or math.isinf(value):
        return value
    floor = math.floor(value)
    result = floor + 1 if value - floor >= 0.5 else floor
    return _keep_sign(value, result)


def _cbrt(value: float) -> Any:
    if math.isnan(value) or math.isinf(value) or value == 0:
        return value
    result = math.copysign(abs(value) ** (1.0 / 3.0), value)
    nearest = round(result)
    if nearest**3 == value:
        return float(nearest)
    return result


def _sign(value: float) -> Any:
    if math.isnan(value) or value == 0:
        return value
    return 1 if value > 0 else -1


def _log(fn: Callable[[float], float]) -> Callable[[float], Any]:
    def impl(value: float) -> Any:
        if value == 0:
            return -math.inf
        if value < 0:
            return math.nan
        return fn(value)

    return impl


def _log1p(value: float) -> Any:
    if value == -1:
        return -math.inf
    return math.log1p(value)


def _atanh(value: float) -> Any:
    if abs(value) == 1:
        return math.copysign(math.inf, value)
    return math.atanh(value)


def _fround(value: float) -> Any:
    return TYPED_ARRAY_KINDS["Float32Array"].coerce(value)


def _math_numbers(args: List[Any]) -> List[Any]:
    return [to_number(arg) for arg in args]


def _math_max(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    result: Any = -math.inf
    for value in _math_numbers(args):
        if isinstance(value, float) and math.isnan(value):
            return math.nan
        if value > result or (value == result == 0 and is_negative_zero(result)):
            result = value
    return result


def _math_min(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    result: Any = math.inf
    for value in _math_numbers(args):
        if isinstance(value, float) and math.isnan(value):
            return math.nan
        if value < result or (value == result == 0 and is_negative_zero(value)):
            result = value
    return result


def _math_pow(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return number_pow(to_number(get_arg(args, 0)), to_number(get_arg(args, 1)))


def _math_atan2(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    y, x = to_number(get_arg(args, 0)), to_number(get_arg(args, 1))
    return normalize_number(math.atan2(y, x))


def _math_hypot(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    values = [float(value) for value in _math_numbers(args)]
    if any(math.isinf(value) for value in values):
        return math.inf
    if any(math.isnan(value) for value in values):
        return math.nan
    return normalize_number(math.hypot(*values)) if values else 0


def _math_abs(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return normalize_number(abs(to_number(get_arg(args, 0))))


def _math_clz32(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return 32 - to_uint32(get_arg(args, 0)).bit_length()


def _math_imul(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return to_int32(to_int32(get_arg(args, 0)) * to_int32(get_arg(args, 1)))


def _math_random(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return random.random()


MATH = NamespaceObject(
    "Math",
    {
        "E": math.e,
        "LN10": math.log(10),
        "LN2": math.log(2),
        "LOG10E": math.log10(math.e),
        "LOG2E": math.log2(math.e),
        "PI": math.pi,
        "SQRT1_2": math.sqrt(0.5),
        "SQRT2": math.sqrt(2),
        "abs": _fn("abs", _math_abs, 1),
        "acos": _math_unary("acos", math.acos),
        "acosh": _math_unary("acosh", math.acosh),
        "asin": _math_unary("asin", math.asin),
        "asinh": _math_unary("asinh", math.asinh),
        "atan": _math_unary("atan", math.atan),
        "atan2": _fn("atan2", _math_atan2, 2),
        "atanh": _math_unary("atanh", _atanh),
        "cbrt": _math_unary("cbrt", _cbrt),
        "ceil": _math_unary("ceil", _integer_op(math.ceil)),
        "clz32": _fn("clz32", _math_clz32, 1),
        "cos": _math_unary("cos", math.cos),
        "cosh": _math_unary("cosh", math.cosh),
        "exp": _math_unary("exp", math.exp),
        "expm1": _math_unary("expm1", math.expm1),
        "floor": _math_unary("floor", _integer_op(math.floor)),
        "fround": _math_unary("fround", _fround),
        "hypot": _fn("hypot", _math_hypot, 2),
        "imul": _fn("imul", _math_imul, 2),
        "log": _math_unary("log", _log(math.log)),
        "log10": _math_unary("log10", _log(math.log10)),
        "log1p": _math_unary("log1p", _log1p),
        "log2": _math_unary("log2", _log(math.log2)),
        "max": _fn("max", _math_max, 2),
        "min": _fn("min", _math_min, 2),
        "pow": _fn("pow", _math_pow, 2),
        "random": _fn("random", _math_random),
        "round": _math_unary("round", _js_round),
        "sign": _math_unary("sign", _sign),
        "sin": _math_unary("sin", math.sin),
        "sinh": _math_unary("sinh", math.sinh, overflow=lambda value: math.copysign(math.inf, value)),
        "sqrt": _math_unary("sqrt", math.sqrt),
        "tan": _math_unary("tan", math.tan),
        "tanh": _math_unary("tanh", math.tanh),
        "trunc": _math_unary("trunc", _integer_op(math.trunc)),
    },
)


# ============================================================
# JSON
# ============================================================


class _JsonState:
    def __init__(self, ctx: BuiltinContext, replacer: Any, gap: str):
        self.ctx = ctx
        self.replacer_fn = replacer if is_callable(replacer) else None
        self.property_list: Optional[List[str]] = None
        if isinstance(replacer, list):
            keys: List[str] = []
            for item in replacer:
                if isinstance(item, str) or is_number(item):
                    key = to_string(item)
                    if key not in keys:
                        keys.append(key)
            self.property_list = keys
        self.gap = gap
        self.stack: List[int] = []


def _json_quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _json_gap(space: Any) -> str:
    if is_number(space):
        count = to_integer_or_infinity(space)
        return " " * int(min(max(count, 0), 10))
    if isinstance(space, str):
        return space[:10]
    return ""


def _json_wrap(open_char: str, close_char: str, parts: List[str], state: _JsonState, indent: str) -> str:
    if not parts:
        return open_char + close_char
    if not state.gap:
        return open_char + ",".join(parts) + close_char
    inner = indent + state.gap
    body = (",\n" + inner).join(parts)
    return f"{open_char}\n{inner}{body}\n{indent}{close_char}"


def _json_serialize(state: _JsonState, holder: Any, key: str, value: Any, indent: str) -> Optional[str]:
    ctx = state.ctx
    if is_object(value) or isinstance(value, JSBigInt):
        to_json = get_property(value, "toJSON")
        if is_callable(to_json):
            value = ctx.invoke(to_json, value, [key])
    if state.replacer_fn is not None:
        value = ctx.invoke(state.replacer_fn, holder, [key, value])

    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return _json_quote(value)
    if is_number(value):
        return number_to_string(value) if _is_finite_number(value) else "null"
    if isinstance(value, JSBigInt):
        raise ctx.error("JSON.stringify", "Do not know how to serialize a BigInt", "TypeError")
    if value is UNDEFINED or isinstance(value, JSSymbol) or is_callable(value):
        return None

    if id(value) in state.stack:
        raise ctx.error("JSON.stringify", "Converting circular structure to JSON", "TypeError")
    state.stack.append(id(value))
    inner_indent = indent + state.gap
    try:
        if isinstance(value, list):
            parts = []
            for index, item in enumerate(value):
                serialized = _json_serialize(state, value, str(index), item, inner_indent)
                parts.append("null" if serialized is None else serialized)
            return _json_wrap("[", "]", parts, state, indent)

        keys = state.property_list if state.property_list is not None else own_keys(value)
        separator = ": " if state.gap else ":"
        parts = []
        for name in keys:
            serialized = _json_serialize(state, value, name, get_property(value, name), inner_indent)
            if serialized is not None:
                parts.append(_json_quote(name) + separator + serialized)
        return _json_wrap("{", "}", parts, state, indent)
    finally:
        state.stack.pop()


def _json_stringify(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = get_arg(args, 0)
    state = _JsonState(ctx, get_arg(args, 1), _json_gap(get_arg(args, 2)))
    result = _json_serialize(state, {"": value}, "", value, "")
    return UNDEFINED if result is None else result


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Unexpected token {name[0]} in JSON")


def _json_revive(holder: Any, key: str, reviver: Any, ctx: BuiltinContext) -> Any:
    value = get_property(holder, key)
    if isinstance(value, list):
        for index in range(len(value)):
            revived = _json_revive(value, str(index), reviver, ctx)
            value[index] = revived
    elif isinstance(value, dict):
        for name in list(value):
            revived = _json_revive(value, name, reviver, ctx)
            if revived is UNDEFINED:
                del value[name]
            else:
                value[name] = revived
    return ctx.invoke(reviver, holder, [key, value])


def _json_parse(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    text = to_string(get_arg(args, 0))
    try:
        value = json.loads(
            text,
            parse_int=lambda literal: normalize_number(int(literal)),
            parse_float=lambda literal: normalize_number(float(literal)),
            parse_constant=_reject_constant,
        )
    except ValueError as e:
        position = getattr(e, "pos", 0)
        raise ctx.error(
            "JSON.parse", f"Unexpected token in JSON at position {position}", "SyntaxError"
        )
    except RecursionError:
        raise ctx.error("JSON.parse", "JSON nesting too deep", "SyntaxError")

    reviver = get_arg(args, 1)
    if is_callable(reviver):
        return _json_revive({"": value}, "", reviver, ctx)
    return value


JSON_NAMESPACE = NamespaceObject(
    "JSON",
    {
        "parse": _fn("parse", _json_parse, 2),
        "stringify": _fn("stringify", _json_stringify, 3),
    },
)


# ============================================================
# URI Handling
# ============================================================


_URI_RESERVED = ";/?:@&=+$,#"
_URI_MARKS = "!*'()"
_ESCAPE_RUN = re.compile(r"(?:%[0-9A-Fa-f]{2})+")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _uri_encoder(name: str, keep: str) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        text = to_string(get_arg(args, 0))
        try:
            return urllib.parse.quote(text, safe=keep, encoding="utf-8", errors="strict")
        except UnicodeEncodeError:
            raise ctx.error(name, "URI malformed", "URIError")

    return _fn(name, impl, 1)


def _uri_decoder(name: str, reserved: str) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        text = to_string(get_arg(args, 0))
        if _BAD_ESCAPE.search(text):
            raise ctx.error(name, "URI malformed", "URIError")

        def replace(match: "re.Match[str]") -> str:
            escaped = match.group(0)
            try:
                decoded = bytes.fromhex(escaped.replace("%", "")).decode("utf-8")
            except UnicodeDecodeError:
                raise ctx.error(name, "URI malformed", "URIError")
            if not reserved:
                return decoded
            out = []
            offset = 0
            for ch in decoded:
                width = 3 * len(ch.encode("utf-8"))
                out.append(escaped[offset : offset + width] if ch in reserved else ch)
                offset += width
            return "".join(out)

        return _ESCAPE_RUN.sub(replace, text)

    return _fn(name, impl, 1)


ENCODE_URI = _uri_encoder("encodeURI", _URI_RESERVED + _URI_MARKS)
ENCODE_URI_COMPONENT = _uri_encoder("encodeURIComponent", _URI_MARKS)
DECODE_URI = _uri_decoder("decodeURI", _URI_RESERVED)
DECODE_URI_COMPONENT = _uri_decoder("decodeURIComponent", "")


# ============================================================
# Typed Arrays
# ============================================================


def _this_typed(this: Any, method: str) -> JSTypedArray:
    if not isinstance(this, JSTypedArray):
        raise ExprTypeError(
            f"Method %TypedArray%.prototype.{method} called on incompatible receiver "
            f"{to_display_string(this)}"
        )
    return this


def _typed_shared(method: str, impl: Callable[[Any, List[Any], BuiltinContext], Any], length: int) -> NativeFunction:
    def call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        return impl(_this_typed(this, method), args, ctx)

    return _fn(method, call, length)


def _typed_producing(method: str, impl: Callable[[Any, List[Any], BuiltinContext], Any], length: int) -> NativeFunction:
    def call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        typed = _this_typed(this, method)
        return JSTypedArray(typed.kind, impl(typed, args, ctx))

    return _fn(method, call, length)


def _typed_sort_key(value: Any) -> Tuple[int, Any, int]:
    number = value.value if isinstance(value, JSBigInt) else value
    if isinstance(number, float) and math.isnan(number):
        return (1, 0, 0)
    return (0, number, 0 if is_negative_zero(number) else 1)


def _typed_sorted(typed: JSTypedArray, comparator: Any, ctx: BuiltinContext) -> List[Any]:
    if comparator is UNDEFINED:
        return sorted(typed.items, key=_typed_sort_key)
    return _sort_values(list(typed.items), comparator, ctx)


def _typed_sort(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    typed = _this_typed(this, "sort")
    typed.items[:] = _typed_sorted(typed, get_arg(args, 0), ctx)
    return typed


def _typed_to_sorted(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    typed = _this_typed(this, "toSorted")
    return JSTypedArray(typed.kind, _typed_sorted(typed, get_arg(args, 0), ctx))


def _typed_fill(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    typed = _this_typed(this, "fill")
    value = typed.kind.coerce(get_arg(args, 0))
    length = len(typed.items)
    start = _relative_index(get_arg(args, 1), length, 0)
    end = _relative_index(get_arg(args, 2), length, length)
    for index in range(start, end):
        typed.items[index] = value
    return typed


def _typed_reverse(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    typed = _this_typed(this, "reverse")
    typed.items.reverse()
    return typed


def _typed_copy_within(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    typed = _this_typed(this, "copyWithin")
    _copy_within(typed.items, args)
    return typed


def _typed_set(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    typed = _this_typed(this, "set")
    source = get_arg(args, 0)
    values = source.items if isinstance(source, JSTypedArray) else _array_from_values(source, ctx)
    offset = to_integer_or_infinity(get_arg(args, 1))
    if offset < 0 or offset + len(values) > len(typed.items):
        raise ctx.error("TypedArray.prototype.set", "offset is out of bounds", "RangeError")
    offset = int(offset)
    typed.items[offset : offset + len(values)] = [typed.kind.coerce(value) for value in values]
    return UNDEFINED


def _typed_subarray(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    # Elements are copied; there is no shared buffer.
    typed = _this_typed(this, "subarray")
    return JSTypedArray(typed.kind, _array_slice(typed, args, ctx))


def _typed_with(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    typed = _this_typed(this, "with")
    return JSTypedArray(typed.kind, _array_with(typed, args, ctx))


TYPED_ARRAY_METHODS: Dict[str, JSFunction] = {
    "at": _typed_shared("at", _array_at, 1),
    "copyWithin": _fn("copyWithin", _typed_copy_within, 2),
    "entries": _typed_shared("entries", _array_entries, 0),
    "every": _typed_shared("every", _array_every, 1),
    "fill": _fn("fill", _typed_fill, 1),
    "filter": _typed_producing("filter", _array_filter, 1),
    "find": _typed_shared("find", ARRAY_METHODS["find"].impl, 1),
    "findIndex": _typed_shared("findIndex", ARRAY_METHODS["findIndex"].impl, 1),
    "findLast": _typed_shared("findLast", ARRAY_METHODS["findLast"].impl, 1),
    "findLastIndex": _typed_shared("findLastIndex", ARRAY_METHODS["findLastIndex"].impl, 1),
    "forEach": _typed_shared("forEach", _array_for_each, 1),
    "includes": _typed_shared("includes", _array_includes, 1),
    "indexOf": _typed_shared("indexOf", _array_index_of, 1),
    "join": _typed_shared("join", _array_join, 1),
    "keys": _typed_shared("keys", _array_keys, 0),
    "lastIndexOf": _typed_shared("lastIndexOf", _array_last_index_of, 1),
    "map": _typed_producing("map", _array_map, 1),
    "reduce": _typed_shared("reduce", ARRAY_METHODS["reduce"].impl, 1),
    "reduceRight": _typed_shared("reduceRight", ARRAY_METHODS["reduceRight"].impl, 1),
    "reverse": _fn("reverse", _typed_reverse),
    "set": _fn("set", _typed_set, 1),
    "slice": _typed_producing("slice", _array_slice, 2),
    "some": _typed_shared("some", _array_some, 1),
    "sort": _fn("sort", _typed_sort, 1),
    "subarray": _fn("subarray", _typed_subarray, 2),
    "toLocaleString": _typed_shared("toLocaleString", _array_to_locale_string, 0),
    "toReversed": _typed_producing("toReversed", _array_to_reversed, 0),
    "toSorted": _fn("toSorted", _typed_to_sorted, 1),
    "toString": _typed_shared("toString", _array_to_string, 0),
    "values": _typed_shared("values", _array_values, 0),
    "with": _fn("with", _typed_with, 2),
}


def _typed_array_constructor(kind: TypedArrayKind) -> BuiltinConstructor:
    def from_impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        values = _array_from(UNDEFINED, args, ctx)
        return JSTypedArray(kind, values)

    def of_impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        return JSTypedArray(kind, list(args))

    return BuiltinConstructor(
        kind.name,
        call_impl=requires_new(kind.name),
        construct_impl=typed_array_construct(kind),
        length=3,
        methods=TYPED_ARRAY_METHODS,
        statics={
            "BYTES_PER_ELEMENT": kind.bytes_per_element,
            "from": _fn("from", from_impl, 1),
            "of": _fn("of", of_impl),
        },
        instance_check=lambda value: isinstance(value, JSTypedArray) and value.kind is kind,
    )


TYPED_ARRAY_CONSTRUCTORS: Dict[str, BuiltinConstructor] = {
    name: _typed_array_constructor(kind) for name, kind in TYPED_ARRAY_KINDS.items()
}


# ============================================================
# Host Object Dispatch
# ============================================================


_HOST_METHOD_TABLES: Tuple[Tuple[type, Dict[str, JSFunction]], ...] = (
    (JSDate, DATE_METHODS),
    (JSRegExp, REGEXP_METHODS),
    (JSMap, MAP_METHODS),
    (JSSet, SET_METHODS),
    (JSWeakMap, WEAKMAP_METHODS),
    (JSWeakSet, WEAKSET_METHODS),
    (JSPromise, PROMISE_METHODS),
    (JSError, ERROR_METHODS),
)

_HOST_CONSTRUCTORS: Tuple[Tuple[type, BuiltinConstructor], ...] = (
    (JSDate, DATE_CONSTRUCTOR),
    (JSRegExp, REGEXP_CONSTRUCTOR),
    (JSMap, MAP_CONSTRUCTOR),
    (JSSet, SET_CONSTRUCTOR),
    (JSWeakMap, WEAKMAP_CONSTRUCTOR),
    (JSWeakSet, WEAKSET_CONSTRUCTOR),
    (JSPromise, PROMISE_CONSTRUCTOR),
)
