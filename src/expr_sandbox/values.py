"""
Value model for the expression language.

Expression values are plain Python objects wherever a natural counterpart
exists:

- undefined: the UNDEFINED singleton
- null: None
- boolean: bool
- number: int or float (integral results in the safe integer range are int;
  negative zero stays -0.0)
- string: str
- array: list
- plain object: dict
- bigint: JSBigInt
- symbol: JSSymbol
- function: JSFunction subclasses, or any Python callable supplied by the caller

Runtime objects such as dates, maps or regular expressions derive from
HostObject (see objects.py). Any other Python object is opaque: it can be
passed around and compared, but none of its attributes are reachable.
"""

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from .errors import BuiltinError, SecurityError
from .errors import TypeError as ExprTypeError
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits

MAX_SAFE_INTEGER = 2**53 - 1


class _Undefined:
    """The JavaScript undefined value."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


@dataclass(frozen=True)
class JSBigInt:
    """An arbitrary precision integer (123n)."""

    value: int

    def __repr__(self) -> str:
        return f"{self.value}n"


class JSSymbol:
    """A unique symbol value. Equality is identity."""

    def __init__(self, description: Any = UNDEFINED):
        self.description = description

    def __repr__(self) -> str:
        if self.description is UNDEFINED:
            return "Symbol()"
        return f"Symbol({self.description})"


# Well-known symbols
SYMBOL_ITERATOR = JSSymbol("Symbol.iterator")
SYMBOL_ASYNC_ITERATOR = JSSymbol("Symbol.asyncIterator")
SYMBOL_HAS_INSTANCE = JSSymbol("Symbol.hasInstance")
SYMBOL_TO_PRIMITIVE = JSSymbol("Symbol.toPrimitive")
SYMBOL_TO_STRING_TAG = JSSymbol("Symbol.toStringTag")


# ============================================================
# Builtin Context
# ============================================================


InvokeFn = Callable[[Any, Any, List[Any]], Any]


class BuiltinContext:
    """
    Context handed to every native function.

    ``invoke(fn, this, args)`` calls back into expression functions (arrow
    functions passed to ``map`` and friends) through the same guarded path
    the evaluator uses for direct calls.
    """

    def __init__(
        self,
        limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS,
        invoke: Optional[InvokeFn] = None,
        position: Optional[int] = None,
        source: Optional[str] = None,
    ):
        self.limits = limits
        self._invoke = invoke
        self.position = position
        self.source = source

    def invoke(self, fn: Any, this: Any, args: List[Any]) -> Any:
        if self._invoke is not None:
            return self._invoke(fn, this, args)
        return call_function(fn, this, args, self)

    def error(self, function_name: str, message: str, error_name: str = "TypeError") -> BuiltinError:
        return BuiltinError(
            function_name, message, self.position, self.source, error_name=error_name
        )


# ============================================================
# Functions
# ============================================================


class JSFunction:
    """Base class for callable expression values."""

    name: str = ""
    length: int = 0

    def call(self, this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        raise NotImplementedError

    def construct(self, args: List[Any], ctx: BuiltinContext) -> Any:
        raise ExprTypeError(f"{self.name or 'anonymous'} is not a constructor")

    def source_text(self) -> str:
        return f"function {self.name}() {{ [native code] }}"

    def __repr__(self) -> str:
        return f"[Function: {self.name or '(anonymous)'}]"


NativeImpl = Callable[[Any, List[Any], BuiltinContext], Any]


class NativeFunction(JSFunction):
    """A built-in function implemented in Python."""

    def __init__(self, name: str, impl: NativeImpl, length: int = 0):
        self.name = name
        self.impl = impl
        self.length = length

    def call(self, this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        return self.impl(this, args, ctx)


class HostObject:
    """
    Base class for runtime objects (dates, maps, regular expressions, ...).

    Subclasses expose own properties through ``get_own`` and share methods
    through the class-level ``prototype`` table.
    """

    prototype: Dict[str, JSFunction] = {}
    class_name = "Object"

    def get_own(self, key: str) -> Any:
        return MISSING

    def has_own(self, key: str) -> bool:
        return self.get_own(key) is not MISSING

    def own_keys(self) -> List[str]:
        return []

    def js_iterate(self) -> Optional[List[Any]]:
        """Returns the iteration values, or None if the object is not iterable."""
        return None

    def to_primitive(self, hint: str) -> Any:
        return f"[object {self.class_name}]"


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


# Marker for "no such own property", distinct from a property holding undefined.
MISSING = _Missing()


class PrototypeObject(HostObject):
    """The ``prototype`` object of a built-in constructor: a table of methods."""

    def __init__(self, owner_name: str, methods: Dict[str, JSFunction]):
        self.owner_name = owner_name
        self.methods = methods

    def get_own(self, key: str) -> Any:
        return self.methods.get(key, MISSING)

    def own_keys(self) -> List[str]:
        return list(self.methods)


class BuiltinConstructor(JSFunction):
    """
    A built-in constructor such as Array or Date.

    ``call_impl`` handles ``X(...)``, ``construct_impl`` handles ``new X(...)``;
    either may be None when the form is not allowed. ``instance_check`` backs
    ``instanceof``.
    """

    def __init__(
        self,
        name: str,
        call_impl: Optional[NativeImpl] = None,
        construct_impl: Optional[Callable[[List[Any], BuiltinContext], Any]] = None,
        length: int = 1,
        methods: Optional[Dict[str, JSFunction]] = None,
        statics: Optional[Dict[str, Any]] = None,
        instance_check: Optional[Callable[[Any], bool]] = None,
    ):
        self.name = name
        self.length = length
        self.call_impl = call_impl
        self.construct_impl = construct_impl
        self.prototype = PrototypeObject(name, methods if methods is not None else {})
        self.statics: Dict[str, Any] = statics if statics is not None else {}
        self.instance_check = instance_check

    def call(self, this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        if self.call_impl is None:
            raise ExprTypeError(
                f"Class constructor {self.name} cannot be invoked without 'new'"
            )
        return self.call_impl(this, args, ctx)

    def construct(self, args: List[Any], ctx: BuiltinContext) -> Any:
        if self.construct_impl is None:
            raise ExprTypeError(f"{self.name} is not a constructor")
        return self.construct_impl(args, ctx)

    def has_instance(self, value: Any) -> bool:
        if self.instance_check is None:
            return False
        return self.instance_check(value)


class BoundFunction(JSFunction):
    """Result of ``fn.bind(thisArg, ...args)``."""

    def __init__(self, target: Any, bound_this: Any, bound_args: List[Any]):
        self.target = target
        self.bound_this = bound_this
        self.bound_args = list(bound_args)
        target_name = target.name if isinstance(target, JSFunction) else ""
        self.name = f"bound {target_name}"
        target_length = target.length if isinstance(target, JSFunction) else 0
        self.length = max(0, target_length - len(self.bound_args))

    def call(self, this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        return ctx.invoke(self.target, self.bound_this, self.bound_args + list(args))

    def construct(self, args: List[Any], ctx: BuiltinContext) -> Any:
        if isinstance(self.target, JSFunction):
            return self.target.construct(self.bound_args + list(args), ctx)
        return super().construct(args, ctx)


class FunctionConstructor(JSFunction):
    """
    Stand-in for the dynamic code constructor reachable as ``fn.constructor``.

    It exists only so that escapes such as ``[].map.constructor("...")`` are
    reported as blocked rather than as a missing property.
    """

    name = "Function"
    length = 1

    def call(self, this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        raise SecurityError("Function constructor is not allowed")

    def construct(self, args: List[Any], ctx: BuiltinContext) -> Any:
        raise SecurityError("Cannot use new with Function constructor")


FUNCTION_CONSTRUCTOR = FunctionConstructor()


def is_callable(value: Any) -> bool:
    """Checks whether a value can be invoked."""
    if isinstance(value, JSFunction):
        return True
    if isinstance(value, (HostObject, dict, list, str, JSSymbol, JSBigInt)):
        return False
    return callable(value)


def call_function(fn: Any, this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    """Invokes a function value without any security checks."""
    if isinstance(fn, JSFunction):
        return fn.call(this, list(args), ctx)
    if is_callable(fn):
        return fn(*args)
    raise ExprTypeError(f"{to_display_string(fn)} is not a function")


# ============================================================
# Type Predicates
# ============================================================


def is_number(value: Any) -> bool:
    """Checks if a value is a number (bool excluded)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_nullish(value: Any) -> bool:
    """Checks if a value is null or undefined."""
    return value is None or value is UNDEFINED


def is_object(value: Any) -> bool:
    """Checks if a value is an object (including arrays and functions)."""
    return not (
        is_nullish(value)
        or isinstance(value, (bool, str, JSBigInt, JSSymbol))
        or is_number(value)
    )


def typeof(value: Any) -> str:
    """Returns the result of the typeof operator."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, JSBigInt):
        return "bigint"
    if isinstance(value, JSSymbol):
        return "symbol"
    if is_callable(value):
        return "function"
    return "object"


def int_to_float(value: int) -> float:
    """Rounds an int to a double; magnitudes past the double range become Infinity."""
    try:
        return float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf


def normalize_number(value: Any) -> Any:
    """Returns integral floats in the safe range as int; keeps -0.0 as float."""
    if isinstance(value, float):
        if value.is_integer() and abs(value) <= MAX_SAFE_INTEGER:
            if value == 0 and math.copysign(1.0, value) < 0:
                return value
            return int(value)
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        if abs(value) > MAX_SAFE_INTEGER:
            return int_to_float(value)
    return value


def is_negative_zero(value: Any) -> bool:
    return isinstance(value, float) and value == 0 and math.copysign(1.0, value) < 0


# ============================================================
# Coercions
# ============================================================


def to_boolean(value: Any) -> bool:
    """ToBoolean: falsy values are false, undefined, null, 0, -0, NaN and ""."""
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    if isinstance(value, str):
        return value != ""
    if isinstance(value, JSBigInt):
        return value.value != 0
    return True


_JS_WHITESPACE = (
    " \t\n\r\v\f\u00a0\ufeff\u1680\u2000\u2001\u2002\u2003\u2004\u2005"
    "\u2006\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000"
)

_DECIMAL_LITERAL = re.compile(r"[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)")
_PREFIXED_LITERAL = re.compile(r"0([xXoObB])([0-9a-fA-F]+)")


def js_trim(text: str) -> str:
    return text.strip(_JS_WHITESPACE)


def js_trim_start(text: str) -> str:
    return text.lstrip(_JS_WHITESPACE)


def js_trim_end(text: str) -> str:
    return text.rstrip(_JS_WHITESPACE)


def string_to_number(text: str) -> Any:
    """StringToNumber: the Number("...") conversion."""
    text = js_trim(text)
    if text == "":
        return 0
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf

    match = _PREFIXED_LITERAL.fullmatch(text)
    if match:
        base = {"x": 16, "o": 8, "b": 2}[match.group(1).lower()]
        try:
            return normalize_number(int(match.group(2), base))
        except ValueError:
            return math.nan

    if _DECIMAL_LITERAL.fullmatch(text):
        return normalize_number(float(text))
    return math.nan


def to_primitive(value: Any, hint: str = "default") -> Any:
    """ToPrimitive for the object kinds the sandbox knows about."""
    if not is_object(value):
        return value
    if isinstance(value, list):
        return array_join(value, ",")
    if isinstance(value, HostObject):
        return value.to_primitive(hint)
    if is_callable(value):
        if isinstance(value, JSFunction):
            return value.source_text()
        return "function () { [native code] }"
    return "[object Object]"


def to_number(value: Any) -> Any:
    """ToNumber. BigInt and Symbol operands raise TypeError."""
    if is_number(value):
        return normalize_number(value)
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, str):
        return string_to_number(value)
    if isinstance(value, JSBigInt):
        raise ExprTypeError("Cannot convert a BigInt value to a number")
    if isinstance(value, JSSymbol):
        raise ExprTypeError("Cannot convert a Symbol value to a number")
    return to_number(to_primitive(value, "number"))


def to_numeric(value: Any) -> Any:
    """ToNumeric: like to_number but lets BigInt through."""
    primitive = to_primitive(value, "number")
    if isinstance(primitive, JSBigInt):
        return primitive
    return to_number(primitive)


def to_integer_or_infinity(value: Any) -> Any:
    number = to_number(value)
    if isinstance(number, float):
        if math.isnan(number):
            return 0
        if math.isinf(number):
            return number
        return int(number)
    return number


def to_int32(value: Any) -> int:
    number = to_number(value)
    if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
        return 0
    result = int(number) & 0xFFFFFFFF
    if result >= 0x80000000:
        result -= 0x100000000
    return result


def to_uint32(value: Any) -> int:
    number = to_number(value)
    if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
        return 0
    return int(number) & 0xFFFFFFFF


def number_to_string(value: Any, radix: int = 10) -> str:
    """Number::toString, including JavaScript's exponent formatting rules."""
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value == 0:
            return "0"

    if radix != 10:
        return _number_to_radix_string(value, radix)

    if isinstance(value, int):
        if abs(value) < 10**21:
            return str(value)
        return number_to_string(int_to_float(value))

    if value < 0:
        return "-" + number_to_string(-value)

    _, digit_tuple, exponent = Decimal(repr(value)).as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    point = len(digits) + int(exponent)
    digits = digits.rstrip("0") or "0"
    stripped = digits.lstrip("0")
    point -= len(digits) - len(stripped)
    digits = stripped
    k = len(digits)

    if k <= point <= 21:
        return digits + "0" * (point - k)
    if 0 < point <= 21:
        return digits[:point] + "." + digits[point:]
    if -6 < point <= 0:
        return "0." + "0" * (-point) + digits

    exp = point - 1
    sign = "+" if exp >= 0 else "-"
    mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{mantissa}e{sign}{abs(exp)}"


_RADIX_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _number_to_radix_string(value: Any, radix: int) -> str:
    negative = value < 0
    value = abs(value)
    integer = int(value)
    fraction = value - integer

    if integer == 0:
        text = "0"
    else:
        chars = []
        while integer:
            integer, remainder = divmod(integer, radix)
            chars.append(_RADIX_DIGITS[remainder])
        text = "".join(reversed(chars))

    if fraction:
        chars = []
        # 52 bits of mantissa never need more than this many digits
        while fraction and len(chars) < 52:
            fraction *= radix
            digit = int(fraction)
            chars.append(_RADIX_DIGITS[digit])
            fraction -= digit
        text += "." + "".join(chars)

    return "-" + text if negative else text


def bigint_to_string(value: int, radix: int = 10) -> str:
    if radix == 10:
        return str(value)
    return _number_to_radix_string(value, radix)


def to_string(value: Any) -> str:
    """ToString. Symbol operands raise TypeError."""
    if isinstance(value, str):
        return value
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return number_to_string(value)
    if isinstance(value, JSBigInt):
        return str(value.value)
    if isinstance(value, JSSymbol):
        raise ExprTypeError("Cannot convert a Symbol value to a string")
    return to_string(to_primitive(value, "string"))


def to_display_string(value: Any) -> str:
    """Renders any value for messages; never raises."""
    if isinstance(value, JSSymbol):
        return repr(value)
    if isinstance(value, str):
        return value
    try:
        return to_string(value)
    except ExprTypeError:
        return repr(value)


def to_property_key(value: Any) -> Any:
    """ToPropertyKey: symbols stay symbols, everything else becomes a string."""
    if isinstance(value, JSSymbol):
        return value
    return to_string(value)


def array_join(items: List[Any], separator: str) -> str:
    parts = []
    for item in items:
        if is_nullish(item):
            parts.append("")
        elif isinstance(item, list):
            # Cyclic arrays would recurse forever; join them as empty.
            parts.append("" if item is items else array_join(item, ","))
        else:
            parts.append(to_string(item))
    return separator.join(parts)


def array_index(key: Any) -> Optional[int]:
    """Returns the array index a property key denotes, if any."""
    if is_number(key):
        if isinstance(key, float):
            if not key.is_integer():
                return None
            key = int(key)
        return key if key >= 0 else None
    if isinstance(key, str) and key.isdigit() and key.isascii():
        if key == "0" or not key.startswith("0"):
            return int(key)
    return None


# ============================================================
# Equality
# ============================================================


def _js_type(value: Any) -> str:
    if is_callable(value) or is_object(value):
        return "object"
    return typeof(value)


def strict_equals(left: Any, right: Any) -> bool:
    """IsStrictlyEqual (===)."""
    left_type = _js_type(left)
    if left_type != _js_type(right):
        return False
    if left_type == "number":
        return left == right
    if left_type in ("string", "boolean"):
        return left == right
    if left_type == "bigint":
        return left.value == right.value
    return left is right


def same_value_zero(left: Any, right: Any) -> bool:
    """SameValueZero: like === but NaN equals NaN."""
    if is_number(left) and is_number(right):
        if isinstance(left, float) and isinstance(right, float):
            if math.isnan(left) and math.isnan(right):
                return True
    return strict_equals(left, right)


def same_value(left: Any, right: Any) -> bool:
    """SameValue (Object.is): NaN equals NaN, +0 and -0 differ."""
    if is_number(left) and is_number(right):
        if is_negative_zero(left) != is_negative_zero(right):
            return False
    return same_value_zero(left, right)


def loose_equals(left: Any, right: Any) -> bool:
    """IsLooselyEqual (==)."""
    left_type = _js_type(left)
    right_type = _js_type(right)

    if left_type == right_type:
        return strict_equals(left, right)

    if is_nullish(left) and is_nullish(right):
        return True
    if is_nullish(left) or is_nullish(right):
        return False

    if left_type == "number" and right_type == "string":
        return left == string_to_number(right)
    if left_type == "string" and right_type == "number":
        return string_to_number(left) == right

    if left_type == "bigint" and right_type == "string":
        parsed = string_to_bigint(right)
        return parsed is not None and parsed == left.value
    if left_type == "string" and right_type == "bigint":
        return loose_equals(right, left)

    if left_type == "boolean":
        return loose_equals(to_number(left), right)
    if right_type == "boolean":
        return loose_equals(left, to_number(right))

    if left_type == "object" and right_type in ("number", "string", "bigint", "symbol"):
        return loose_equals(to_primitive(left), right)
    if right_type == "object" and left_type in ("number", "string", "bigint", "symbol"):
        return loose_equals(left, to_primitive(right))

    if left_type == "bigint" and right_type == "number":
        return _bigint_equals_number(left.value, right)
    if left_type == "number" and right_type == "bigint":
        return _bigint_equals_number(right.value, left)

    return False


def _bigint_equals_number(big: int, number: Any) -> bool:
    if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
        return False
    return big == number


def string_to_bigint(text: str) -> Optional[int]:
    """StringToBigInt; returns None when the text is not an integer literal."""
    text = js_trim(text)
    if text == "":
        return 0
    match = _PREFIXED_LITERAL.fullmatch(text)
    if match:
        base = {"x": 16, "o": 8, "b": 2}[match.group(1).lower()]
        try:
            return int(match.group(2), base)
        except ValueError:
            return None
    if re.fullmatch(r"[+-]?\d+", text):
        return int(text)
    return None


# ============================================================
# Iteration
# ============================================================


def iterate(value: Any) -> List[Any]:
    """
    Collects the values produced by iterating ``value`` (spread, Array.from, ...).

    Raises:
        TypeError: If the value is not iterable
    """
    if isinstance(value, list):
        return list(value)
    if isinstance(value, str):
        return list(value)
    if isinstance(value, HostObject):
        items = value.js_iterate()
        if items is not None:
            return items
    raise ExprTypeError(f"{to_display_string(value)} is not iterable")


def is_iterable(value: Any) -> bool:
    if isinstance(value, (list, str)):
        return True
    return isinstance(value, HostObject) and value.js_iterate() is not None


def get_arg(args: List[Any], index: int) -> Any:
    """Gets an argument by position; missing arguments are undefined."""
    if index < len(args):
        return args[index]
    return UNDEFINED


def require_callable(value: Any, function_name: str) -> Any:
    """Asserts that a callback argument is a function."""
    if not is_callable(value):
        raise ExprTypeError(f"{function_name}: {to_display_string(value)} is not a function")
    return value
