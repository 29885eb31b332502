"""
Runtime object types: errors, dates, regular expressions, keyed collections,
typed arrays and promises.

Each type derives from HostObject and carries a method table that is shared
by every instance, mirroring a JavaScript prototype. Method identity matters:
the mutable-method registry blocks calls by function identity, so every table
entry is created exactly once at import time.
"""

import email.utils
import math
import re
import struct
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import BuiltinError
from .errors import TypeError as ExprTypeError
from .limits import ExpressionLimits, check_regex_pattern_length
from .values import (
    UNDEFINED,
    BuiltinConstructor,
    BuiltinContext,
    HostObject,
    JSBigInt,
    JSFunction,
    JSSymbol,
    MISSING,
    NativeFunction,
    array_join,
    get_arg,
    is_callable,
    is_number,
    is_object,
    iterate,
    normalize_number,
    require_callable,
    to_display_string,
    to_integer_or_infinity,
    to_number,
    to_primitive,
    to_string,
)


def _receiver(this: Any, cls: type, owner: str, method: str) -> Any:
    if not isinstance(this, cls):
        raise ExprTypeError(
            f"Method {owner}.prototype.{method} called on incompatible receiver "
            f"{to_display_string(this)}"
        )
    return this


def map_key(value: Any) -> Tuple[Any, ...]:
    """
    Hashable key implementing SameValueZero for Map and Set.

    Objects are keyed by identity; the collection keeps the object itself
    alive alongside the key.
    """
    if value is UNDEFINED:
        return ("undefined",)
    if value is None:
        return ("null",)
    if isinstance(value, bool):
        return ("boolean", value)
    if is_number(value):
        if isinstance(value, float) and math.isnan(value):
            return ("number", "NaN")
        return ("number", value if value != 0 else 0)
    if isinstance(value, str):
        return ("string", value)
    if isinstance(value, JSBigInt):
        return ("bigint", value.value)
    return ("object", id(value))


# ============================================================
# Errors
# ============================================================

ERROR_NAMES = (
    "Error",
    "EvalError",
    "RangeError",
    "ReferenceError",
    "SyntaxError",
    "TypeError",
    "URIError",
)


class JSError(HostObject):
    """An error object created by an Error constructor."""

    class_name = "Error"

    def __init__(self, name: str = "Error", message: str = "", cause: Any = MISSING):
        self.name = name
        self.message = message
        self.cause = cause

    def get_own(self, key: str) -> Any:
        if key == "name":
            return self.name
        if key == "message":
            return self.message
        if key == "stack":
            return f"{self.to_primitive('string')}\n    at <expression>"
        if key == "cause":
            return self.cause
        return MISSING

    def own_keys(self) -> List[str]:
        return []

    def to_primitive(self, hint: str) -> Any:
        if not self.message:
            return self.name
        if not self.name:
            return self.message
        return f"{self.name}: {self.message}"

    def __repr__(self) -> str:
        return f"JSError({self.to_primitive('string')!r})"


def _error_to_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return to_string(_receiver(this, JSError, "Error", "toString"))


ERROR_METHODS: Dict[str, JSFunction] = {
    "toString": NativeFunction("toString", _error_to_string),
}


def _make_error_constructor(name: str) -> BuiltinConstructor:
    def construct(args: List[Any], ctx: BuiltinContext) -> Any:
        message = get_arg(args, 0)
        options = get_arg(args, 1)
        cause = MISSING
        if isinstance(options, dict) and "cause" in options:
            cause = options["cause"]
        return JSError(name, "" if message is UNDEFINED else to_string(message), cause)

    def call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        return construct(args, ctx)

    if name == "Error":

        def instance_check(value: Any) -> bool:
            return isinstance(value, JSError)

    else:

        def instance_check(value: Any) -> bool:
            return isinstance(value, JSError) and value.name == name

    return BuiltinConstructor(
        name,
        call_impl=call,
        construct_impl=construct,
        methods=ERROR_METHODS,
        instance_check=instance_check,
    )


ERROR_CONSTRUCTORS: Dict[str, BuiltinConstructor] = {
    name: _make_error_constructor(name) for name in ERROR_NAMES
}


# ============================================================
# Date
# ============================================================

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MAX_TIME = 8.64e15
_DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
_MONTH_NAMES = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

_ISO_DATE = re.compile(
    r"([+-]\d{6}|\d{4})(?:-(\d{2})(?:-(\d{2}))?)?"
    r"(?:T(\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{1,9}))?)?(Z|[+-]\d{2}:\d{2})?)?"
)
_DATE_STRING = re.compile(
    r"(?:\w{3} )?(\w{3}) (\d{1,2}) (-?\d{1,6})"
    r"(?: (\d{2}):(\d{2})(?::(\d{2}))?(?: GMT([+-]\d{4}))?)?(?: \(.*\))?"
)


def time_clip(value: Any) -> Any:
    """TimeClip: NaN for out-of-range times, integral milliseconds otherwise."""
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return math.nan
    if abs(value) > _MAX_TIME:
        return math.nan
    return int(value)


def _is_invalid(ms: Any) -> bool:
    return isinstance(ms, float) and math.isnan(ms)


def _to_datetime(ms: Any, local: bool) -> datetime:
    try:
        moment = _EPOCH + timedelta(milliseconds=ms)
    except OverflowError:
        raise BuiltinError("Date", "Invalid time value", error_name="RangeError")
    return moment.astimezone() if local else moment


def make_time(
    year: Any,
    month: Any = 0,
    day: Any = 1,
    hours: Any = 0,
    minutes: Any = 0,
    seconds: Any = 0,
    millis: Any = 0,
    local: bool = True,
) -> Any:
    """Builds a time value from (possibly overflowing) calendar fields."""
    fields = [year, month, day, hours, minutes, seconds, millis]
    if any(isinstance(f, float) and (math.isnan(f) or math.isinf(f)) for f in fields):
        return math.nan
    year, month, day, hours, minutes, seconds, millis = (int(f) for f in fields)

    year += month // 12
    month %= 12
    try:
        base = datetime(year, month + 1, 1)
        moment = base + timedelta(
            days=day - 1,
            hours=hours,
            minutes=minutes,
            seconds=seconds,
            milliseconds=millis,
        )
    except (OverflowError, ValueError):
        return math.nan

    if local:
        return time_clip(round(moment.timestamp() * 1000))
    delta = moment.replace(tzinfo=timezone.utc) - _EPOCH
    return time_clip(delta // timedelta(milliseconds=1))


def parse_date(text: str) -> Any:
    """Date.parse: ISO 8601, the Date.prototype.toString format and RFC 2822."""
    text = text.strip()

    match = _ISO_DATE.fullmatch(text)
    if match:
        year_text, month, day, hours, minutes, seconds, fraction, offset = match.groups()
        year = int(year_text)
        millis = int((fraction or "0").ljust(3, "0")[:3])
        # Date-only forms are UTC, date-time forms without offset are local
        local = hours is not None and offset is None
        ms = make_time(
            year,
            int(month or 1) - 1,
            int(day or 1),
            int(hours or 0),
            int(minutes or 0),
            int(seconds or 0),
            millis,
            local=local,
        )
        if offset and offset != "Z" and not _is_invalid(ms):
            sign = 1 if offset[0] == "+" else -1
            ms -= sign * (int(offset[1:3]) * 60 + int(offset[4:6])) * 60000
        return ms

    match = _DATE_STRING.fullmatch(text)
    if match and match.group(1) in _MONTH_NAMES:
        month_name, day, year, hours, minutes, seconds, offset = match.groups()
        ms = make_time(
            int(year),
            _MONTH_NAMES.index(month_name),
            int(day),
            int(hours or 0),
            int(minutes or 0),
            int(seconds or 0),
            0,
            local=offset is None,
        )
        if offset and not _is_invalid(ms):
            sign = 1 if offset[0] == "+" else -1
            ms -= sign * (int(offset[1:3]) * 60 + int(offset[3:5])) * 60000
        return ms

    try:
        parsed = email.utils.parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return math.nan
    if parsed.tzinfo is None:
        return time_clip(round(parsed.timestamp() * 1000))
    return time_clip((parsed - _EPOCH) // timedelta(milliseconds=1))


class JSDate(HostObject):
    """A Date: milliseconds since the epoch, or NaN for an invalid date."""

    class_name = "Date"

    def __init__(self, time_value: Any):
        self.time = time_clip(time_value) if is_number(time_value) else math.nan

    @classmethod
    def from_datetime(cls, moment: datetime) -> "JSDate":
        if moment.tzinfo is None:
            return cls(round(moment.timestamp() * 1000))
        return cls((moment - _EPOCH) // timedelta(milliseconds=1))

    @classmethod
    def now(cls) -> "JSDate":
        return cls(int(time.time() * 1000))

    def fields(self, local: bool) -> Dict[str, int]:
        moment = _to_datetime(self.time, local)
        return {
            "year": moment.year,
            "month": moment.month - 1,
            "day": moment.day,
            "hours": moment.hour,
            "minutes": moment.minute,
            "seconds": moment.second,
            "millis": moment.microsecond // 1000,
            "weekday": (moment.weekday() + 1) % 7,
        }

    def timezone_offset(self) -> int:
        offset = _to_datetime(self.time, True).utcoffset() or timedelta(0)
        return -int(offset.total_seconds() // 60)

    def to_iso_string(self) -> str:
        if _is_invalid(self.time):
            raise BuiltinError("Date.prototype.toISOString", "Invalid time value", error_name="RangeError")
        f = self.fields(local=False)
        year = f["year"]
        year_text = f"{year:04d}" if 0 <= year <= 9999 else f"{year:+07d}"
        return (
            f"{year_text}-{f['month'] + 1:02d}-{f['day']:02d}T"
            f"{f['hours']:02d}:{f['minutes']:02d}:{f['seconds']:02d}.{f['millis']:03d}Z"
        )

    def _offset_text(self) -> str:
        offset = -self.timezone_offset()
        sign = "+" if offset >= 0 else "-"
        offset = abs(offset)
        return f"GMT{sign}{offset // 60:02d}{offset % 60:02d}"

    def to_date_string(self) -> str:
        if _is_invalid(self.time):
            return "Invalid Date"
        f = self.fields(local=True)
        return (
            f"{_DAY_NAMES[f['weekday']]} {_MONTH_NAMES[f['month']]} "
            f"{f['day']:02d} {f['year']:04d}"
        )

    def to_time_string(self) -> str:
        if _is_invalid(self.time):
            return "Invalid Date"
        f = self.fields(local=True)
        return (
            f"{f['hours']:02d}:{f['minutes']:02d}:{f['seconds']:02d} "
            f"{self._offset_text()}"
        )

    def to_display(self) -> str:
        if _is_invalid(self.time):
            return "Invalid Date"
        return f"{self.to_date_string()} {self.to_time_string()}"

    def to_utc_string(self) -> str:
        if _is_invalid(self.time):
            return "Invalid Date"
        f = self.fields(local=False)
        return (
            f"{_DAY_NAMES[f['weekday']]}, {f['day']:02d} {_MONTH_NAMES[f['month']]} "
            f"{f['year']:04d} {f['hours']:02d}:{f['minutes']:02d}:{f['seconds']:02d} GMT"
        )

    def to_locale_date_string(self) -> str:
        if _is_invalid(self.time):
            return "Invalid Date"
        f = self.fields(local=True)
        return f"{f['month'] + 1}/{f['day']}/{f['year']}"

    def to_locale_time_string(self) -> str:
        if _is_invalid(self.time):
            return "Invalid Date"
        f = self.fields(local=True)
        hour = f["hours"] % 12 or 12
        meridiem = "AM" if f["hours"] < 12 else "PM"
        return f"{hour}:{f['minutes']:02d}:{f['seconds']:02d} {meridiem}"

    def to_primitive(self, hint: str) -> Any:
        if hint == "number":
            return self.time
        return self.to_display()

    def __repr__(self) -> str:
        if _is_invalid(self.time):
            return "JSDate(Invalid Date)"
        return f"JSDate({self.to_iso_string()})"


def _this_date(this: Any, method: str) -> JSDate:
    return _receiver(this, JSDate, "Date", method)


def _date_getter(method: str, field: str, local: bool) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        date = _this_date(this, method)
        if _is_invalid(date.time):
            return math.nan
        return date.fields(local)[field]

    return NativeFunction(method, impl)


# Calendar fields each setter may overwrite, in argument order.
_SETTER_FIELDS = {
    "Milliseconds": ("millis",),
    "Seconds": ("seconds", "millis"),
    "Minutes": ("minutes", "seconds", "millis"),
    "Hours": ("hours", "minutes", "seconds", "millis"),
    "Date": ("day",),
    "Month": ("month", "day"),
    "FullYear": ("year", "month", "day"),
}


def _date_setter(method: str, names: Tuple[str, ...], local: bool) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        date = _this_date(this, method)
        if _is_invalid(date.time):
            if names[0] != "year":
                return math.nan
            fields: Dict[str, Any] = {"year": 1970, "month": 0, "day": 1}
            fields.update(hours=0, minutes=0, seconds=0, millis=0)
        else:
            fields = date.fields(local)
        for name, value in zip(names, args):
            fields[name] = to_number(value)
        date.time = make_time(
            fields["year"],
            fields["month"],
            fields["day"],
            fields["hours"],
            fields["minutes"],
            fields["seconds"],
            fields["millis"],
            local=local,
        )
        return date.time

    return NativeFunction(method, impl, len(names))


def _date_set_time(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    date = _this_date(this, "setTime")
    date.time = time_clip(to_number(get_arg(args, 0)))
    return date.time


def _date_get_time(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_date(this, "getTime").time


def _date_get_timezone_offset(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    date = _this_date(this, "getTimezoneOffset")
    if _is_invalid(date.time):
        return math.nan
    return date.timezone_offset()


def _date_to_json(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    date = _this_date(this, "toJSON")
    if _is_invalid(date.time):
        return None
    return date.to_iso_string()


def _date_formatter(method: str, render: Callable[[JSDate], str]) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        return render(_this_date(this, method))

    return NativeFunction(method, impl)


def _build_date_methods() -> Dict[str, JSFunction]:
    methods: Dict[str, JSFunction] = {
        "getTime": NativeFunction("getTime", _date_get_time),
        "valueOf": NativeFunction("valueOf", _date_get_time),
        "getTimezoneOffset": NativeFunction("getTimezoneOffset", _date_get_timezone_offset),
        "setTime": NativeFunction("setTime", _date_set_time, 1),
        "toJSON": NativeFunction("toJSON", _date_to_json, 1),
        "toISOString": _date_formatter("toISOString", JSDate.to_iso_string),
        "toString": _date_formatter("toString", JSDate.to_display),
        "toDateString": _date_formatter("toDateString", JSDate.to_date_string),
        "toTimeString": _date_formatter("toTimeString", JSDate.to_time_string),
        "toUTCString": _date_formatter("toUTCString", JSDate.to_utc_string),
        "toGMTString": _date_formatter("toGMTString", JSDate.to_utc_string),
        "toLocaleDateString": _date_formatter(
            "toLocaleDateString", JSDate.to_locale_date_string
        ),
        "toLocaleTimeString": _date_formatter(
            "toLocaleTimeString", JSDate.to_locale_time_string
        ),
        "toLocaleString": _date_formatter(
            "toLocaleString",
            lambda date: (
                "Invalid Date"
                if _is_invalid(date.time)
                else f"{date.to_locale_date_string()}, {date.to_locale_time_string()}"
            ),
        ),
    }

    getters = {
        "FullYear": "year",
        "Month": "month",
        "Date": "day",
        "Day": "weekday",
        "Hours": "hours",
        "Minutes": "minutes",
        "Seconds": "seconds",
        "Milliseconds": "millis",
    }
    for suffix, field in getters.items():
        methods[f"get{suffix}"] = _date_getter(f"get{suffix}", field, local=True)
        methods[f"getUTC{suffix}"] = _date_getter(f"getUTC{suffix}", field, local=False)

    for suffix, names in _SETTER_FIELDS.items():
        methods[f"set{suffix}"] = _date_setter(f"set{suffix}", names, local=True)
        methods[f"setUTC{suffix}"] = _date_setter(f"setUTC{suffix}", names, local=False)

    return methods


DATE_METHODS = _build_date_methods()


def _date_from_components(args: List[Any], local: bool) -> Any:
    numbers = [to_number(arg) for arg in args[:7]]
    year = numbers[0]
    if is_number(year) and not (isinstance(year, float) and math.isnan(year)):
        integral = int(year)
        if 0 <= integral <= 99:
            numbers[0] = 1900 + integral
    defaults = [math.nan, 0, 1, 0, 0, 0, 0]
    fields = numbers + defaults[len(numbers) :]
    return make_time(*fields, local=local)


def _date_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    if not args:
        return JSDate.now()

    if len(args) == 1:
        value = args[0]
        if isinstance(value, JSDate):
            return JSDate(value.time)
        primitive = to_primitive(value)
        if isinstance(primitive, str):
            return JSDate(parse_date(primitive))
        return JSDate(to_number(primitive))

    return JSDate(_date_from_components(args, local=True))


def _date_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return JSDate.now().to_display()


def _date_now(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return int(time.time() * 1000)


def _date_parse(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return parse_date(to_string(get_arg(args, 0)))


def _date_utc(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    if not args:
        return math.nan
    return _date_from_components(args, local=False)


DATE_CONSTRUCTOR = BuiltinConstructor(
    "Date",
    call_impl=_date_call,
    construct_impl=_date_construct,
    length=7,
    methods=DATE_METHODS,
    statics={
        "now": NativeFunction("now", _date_now),
        "parse": NativeFunction("parse", _date_parse, 1),
        "UTC": NativeFunction("UTC", _date_utc, 7),
    },
    instance_check=lambda value: isinstance(value, JSDate),
)


# ============================================================
# RegExp
# ============================================================

_VALID_FLAGS = "dgimsuyv"


def _is_safe_regex(pattern: str) -> bool:
    """
    Detects potentially catastrophic regex patterns.

    This is a best-effort heuristic check for common ReDoS patterns.
    """
    # Simple heuristic: reject patterns with nested quantifiers like (a+)+
    nested_quantifiers = re.compile(r"([+*?]|\{\d+,?\d*\})\s*\)\s*([+*?]|\{\d+,?\d*\})")
    if nested_quantifiers.search(pattern):
        return False

    # Reject patterns with excessive backtracking potential
    excessive_backtracking = re.compile(r"(\.\*){3,}|(\.\+){3,}")
    if excessive_backtracking.search(pattern):
        return False

    return True


def translate_pattern(source: str, flags: str) -> str:
    """Rewrites a JavaScript regular expression into Python ``re`` syntax."""
    out: List[str] = []
    in_class = False
    index = 0
    length = len(source)

    while index < length:
        ch = source[index]

        if ch == "\\":
            if index + 1 >= length:
                raise ValueError("\\ at end of pattern")
            escaped = source[index + 1]
            if escaped == "d":
                out.append("0-9" if in_class else "[0-9]")
            elif escaped == "D" and not in_class:
                out.append("[^0-9]")
            elif escaped == "k" and source.startswith("<", index + 2):
                close = source.find(">", index + 3)
                if close == -1:
                    raise ValueError("Invalid named reference")
                out.append(f"(?P={source[index + 3:close]})")
                index = close + 1
                continue
            elif escaped == "u" and source.startswith("{", index + 2) and "u" in flags:
                close = source.find("}", index + 3)
                if close == -1:
                    raise ValueError("Invalid Unicode escape")
                out.append(f"\\U{int(source[index + 3:close], 16):08x}")
                index = close + 1
                continue
            elif escaped == "c" and index + 2 < length and source[index + 2].isalpha():
                out.append(f"\\x{ord(source[index + 2]) % 32:02x}")
                index += 3
                continue
            elif escaped == "/":
                out.append("/")
            else:
                out.append(ch + escaped)
            index += 2
            continue

        if in_class:
            if ch == "]":
                in_class = False
                out.append(ch)
            elif ch == "[":
                out.append("\\[")
            else:
                out.append(ch)
            index += 1
            continue

        if ch == "[":
            if source.startswith("[^]", index):
                out.append("[\\s\\S]")
                index += 3
                continue
            if source.startswith("[]", index):
                out.append("(?!)")
                index += 2
                continue
            in_class = True
            out.append(ch)
            # A leading "]" or "^]" is literal in Python but closes the class in JS
            if source.startswith("^", index + 1):
                out.append("^")
                index += 1
            index += 1
            continue

        if ch == "(" and source.startswith("(?<", index) and source[index + 3 : index + 4] not in ("=", "!"):
            out.append("(?P<")
            index += 3
            continue

        if ch == "$" and "m" not in flags:
            out.append("\\Z")
            index += 1
            continue

        out.append(ch)
        index += 1

    return "".join(out)


@lru_cache(maxsize=256)
def _compile(source: str, flags: str) -> "re.Pattern[str]":
    python_flags = 0
    if "i" in flags:
        python_flags |= re.IGNORECASE
    if "m" in flags:
        python_flags |= re.MULTILINE
    if "s" in flags:
        python_flags |= re.DOTALL
    return re.compile(translate_pattern(source, flags), python_flags)


class JSRegExp(HostObject):
    """
    A compiled regular expression.

    ``lastIndex`` is always 0: matching methods never carry state between
    calls, so global and sticky regular expressions behave the same on every
    call.
    """

    class_name = "RegExp"

    def __init__(self, source: str, flags: str, compiled: "re.Pattern[str]"):
        self.source = source
        self.flags = flags
        self.compiled = compiled

    def get_own(self, key: str) -> Any:
        if key == "source":
            return self.source or "(?:)"
        if key == "flags":
            return self.flags
        if key == "lastIndex":
            return 0
        flag = {
            "global": "g",
            "ignoreCase": "i",
            "multiline": "m",
            "dotAll": "s",
            "unicode": "u",
            "unicodeSets": "v",
            "sticky": "y",
            "hasIndices": "d",
        }.get(key)
        if flag is not None:
            return flag in self.flags
        return MISSING

    @property
    def is_global(self) -> bool:
        return "g" in self.flags

    def to_primitive(self, hint: str) -> Any:
        return f"/{self.source or '(?:)'}/{self.flags}"

    def __repr__(self) -> str:
        return f"JSRegExp({self.to_primitive('string')})"


def create_regexp(pattern: str, flags: str, limits: ExpressionLimits) -> JSRegExp:
    """
    Validates and compiles a regular expression.

    Raises:
        BuiltinError: SyntaxError-kind for invalid flags or patterns,
            or for patterns that may cause excessive backtracking
        LimitExceededError: If the pattern is longer than allowed
    """
    if any(flag not in _VALID_FLAGS for flag in flags) or len(set(flags)) != len(flags):
        raise BuiltinError(
            "RegExp", f"Invalid flags supplied to RegExp constructor '{flags}'", error_name="SyntaxError"
        )

    check_regex_pattern_length(pattern, limits)

    if not _is_safe_regex(pattern):
        raise BuiltinError(
            "RegExp", f"pattern may cause excessive backtracking: {pattern}", error_name="SyntaxError"
        )

    try:
        compiled = _compile(pattern, "".join(sorted(flags)))
    except (re.error, ValueError, OverflowError) as e:
        raise BuiltinError(
            "RegExp",
            f"Invalid regular expression: /{pattern}/{flags}: {e}",
            error_name="SyntaxError",
        )

    return JSRegExp(pattern, "".join(sorted(flags)), compiled)


class MatchArray(list):
    """Array returned by RegExp exec and String match, with index/input/groups."""

    def __init__(self, items: List[Any], index: int, input_text: str, groups: Any):
        super().__init__(items)
        self.index = index
        self.input = input_text
        self.groups = groups

    def get_extra(self, key: str) -> Any:
        if key == "index":
            return self.index
        if key == "input":
            return self.input
        if key == "groups":
            return self.groups
        return MISSING


def match_to_array(match: "re.Match[str]", text: str) -> MatchArray:
    items: List[Any] = [match.group(0)]
    items.extend(UNDEFINED if group is None else group for group in match.groups())
    named = match.groupdict()
    groups: Any = UNDEFINED
    if named:
        groups = {
            name: (UNDEFINED if value is None else value) for name, value in named.items()
        }
    return MatchArray(items, match.start(), text, groups)


def regexp_exec(regexp: JSRegExp, text: str, start: int = 0) -> Optional[MatchArray]:
    """Runs a regular expression once; sticky expressions are anchored at ``start``."""
    if "y" in regexp.flags:
        match = regexp.compiled.match(text, start)
    else:
        match = regexp.compiled.search(text, start)
    if match is None:
        return None
    return match_to_array(match, text)


def regexp_find_all(regexp: JSRegExp, text: str) -> List[MatchArray]:
    """Returns every non-overlapping match, advancing past empty matches."""
    results: List[MatchArray] = []
    position = 0
    while position <= len(text):
        found = regexp_exec(regexp, text, position)
        if found is None:
            break
        results.append(found)
        end = found.index + len(found[0])
        position = end if end > found.index else end + 1
    return results


def expand_replacement(template: str, match: MatchArray) -> str:
    """Expands $&, $1, $<name>, $`, $' and $$ in a replacement string."""
    out: List[str] = []
    index = 0
    text = match.input
    captures = list(match)[1:]

    while index < len(template):
        ch = template[index]
        if ch != "$" or index + 1 >= len(template):
            out.append(ch)
            index += 1
            continue

        nxt = template[index + 1]
        if nxt == "$":
            out.append("$")
            index += 2
        elif nxt == "&":
            out.append(match[0])
            index += 2
        elif nxt == "`":
            out.append(text[: match.index])
            index += 2
        elif nxt == "'":
            out.append(text[match.index + len(match[0]) :])
            index += 2
        elif nxt.isdigit():
            two = template[index + 1 : index + 3]
            if len(two) == 2 and two.isdigit() and 1 <= int(two) <= len(captures):
                number, width = int(two), 2
            else:
                number, width = int(nxt), 1
            if 1 <= number <= len(captures):
                value = captures[number - 1]
                out.append("" if value is UNDEFINED else value)
                index += 1 + width
            else:
                out.append("$")
                index += 1
        elif nxt == "<" and isinstance(match.groups, dict):
            close = template.find(">", index + 2)
            if close == -1:
                out.append("$")
                index += 1
            else:
                value = match.groups.get(template[index + 2 : close], UNDEFINED)
                out.append("" if value is UNDEFINED else to_string(value))
                index = close + 1
        else:
            out.append("$")
            index += 1

    return "".join(out)


def _this_regexp(this: Any, method: str) -> JSRegExp:
    return _receiver(this, JSRegExp, "RegExp", method)


def _regexp_test(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    regexp = _this_regexp(this, "test")
    return regexp_exec(regexp, to_string(get_arg(args, 0))) is not None


def _regexp_exec(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    regexp = _this_regexp(this, "exec")
    return regexp_exec(regexp, to_string(get_arg(args, 0)))


def _regexp_to_string(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_regexp(this, "toString").to_primitive("string")


REGEXP_METHODS: Dict[str, JSFunction] = {
    "test": NativeFunction("test", _regexp_test, 1),
    "exec": NativeFunction("exec", _regexp_exec, 1),
    "toString": NativeFunction("toString", _regexp_to_string),
}


def _regexp_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    pattern = get_arg(args, 0)
    flags = get_arg(args, 1)

    if isinstance(pattern, JSRegExp):
        source = pattern.source
        flag_text = pattern.flags if flags is UNDEFINED else to_string(flags)
    else:
        source = "" if pattern is UNDEFINED else to_string(pattern)
        flag_text = "" if flags is UNDEFINED else to_string(flags)

    return create_regexp(source, flag_text, ctx.limits)


def _regexp_call(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    pattern = get_arg(args, 0)
    if isinstance(pattern, JSRegExp) and get_arg(args, 1) is UNDEFINED:
        return pattern
    return _regexp_construct(args, ctx)


def _regexp_escape(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    value = get_arg(args, 0)
    if not isinstance(value, str):
        raise ExprTypeError("RegExp.escape: argument must be a string")
    return re.sub(r"[\\^$.*+?()[\]{}|/]", lambda m: "\\" + m.group(0), value)


REGEXP_CONSTRUCTOR = BuiltinConstructor(
    "RegExp",
    call_impl=_regexp_call,
    construct_impl=_regexp_construct,
    length=2,
    methods=REGEXP_METHODS,
    statics={"escape": NativeFunction("escape", _regexp_escape, 1)},
    instance_check=lambda value: isinstance(value, JSRegExp),
)


# ============================================================
# Keyed Collections
# ============================================================


class JSSet(HostObject):
    """An insertion-ordered Set using SameValueZero membership."""

    class_name = "Set"

    def __init__(self, values: Optional[List[Any]] = None):
        self.items: Dict[Tuple[Any, ...], Any] = {}
        for value in values or []:
            self.add(value)

    def add(self, value: Any) -> None:
        if is_number(value) and value == 0:
            value = 0
        self.items.setdefault(map_key(value), value)

    def has(self, value: Any) -> bool:
        return map_key(value) in self.items

    def get_own(self, key: str) -> Any:
        if key == "size":
            return len(self.items)
        return MISSING

    def js_iterate(self) -> Optional[List[Any]]:
        return list(self.items.values())

    def __repr__(self) -> str:
        return f"JSSet({list(self.items.values())!r})"


class JSMap(HostObject):
    """An insertion-ordered Map using SameValueZero keys."""

    class_name = "Map"

    def __init__(self, entries: Optional[List[Any]] = None):
        self.entries: Dict[Tuple[Any, ...], Tuple[Any, Any]] = {}
        for key, value in entries or []:
            self.set(key, value)

    def set(self, key: Any, value: Any) -> None:
        if is_number(key) and key == 0:
            key = 0
        hashed = map_key(key)
        if hashed in self.entries:
            key = self.entries[hashed][0]
        self.entries[hashed] = (key, value)

    def get(self, key: Any) -> Any:
        entry = self.entries.get(map_key(key))
        return UNDEFINED if entry is None else entry[1]

    def has(self, key: Any) -> bool:
        return map_key(key) in self.entries

    def get_own(self, key: str) -> Any:
        if key == "size":
            return len(self.entries)
        return MISSING

    def js_iterate(self) -> Optional[List[Any]]:
        return [[key, value] for key, value in self.entries.values()]

    def __repr__(self) -> str:
        return f"JSMap({list(self.entries.values())!r})"


class JSWeakSet(HostObject):
    """A WeakSet. Entries are held strongly; the sandbox has no garbage collector hooks."""

    class_name = "WeakSet"

    def __init__(self) -> None:
        self.items: Dict[int, Any] = {}


class JSWeakMap(HostObject):
    """A WeakMap. Entries are held strongly; the sandbox has no garbage collector hooks."""

    class_name = "WeakMap"

    def __init__(self) -> None:
        self.entries: Dict[int, Tuple[Any, Any]] = {}


def _can_be_held_weakly(value: Any) -> bool:
    return is_object(value) or isinstance(value, JSSymbol)


def _this_set(this: Any, method: str) -> JSSet:
    return _receiver(this, JSSet, "Set", method)


def _this_map(this: Any, method: str) -> JSMap:
    return _receiver(this, JSMap, "Map", method)


def _set_add(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    _this_set(this, "add").add(get_arg(args, 0))
    return this


def _set_delete(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _this_set(this, "delete")
    return target.items.pop(map_key(get_arg(args, 0)), MISSING) is not MISSING


def _set_clear(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    _this_set(this, "clear").items.clear()
    return UNDEFINED


def _set_has(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_set(this, "has").has(get_arg(args, 0))


def _set_values(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return list(_this_set(this, "values").items.values())


def _set_entries(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return [[value, value] for value in _this_set(this, "entries").items.values()]


def _set_for_each(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _this_set(this, "forEach")
    callback = require_callable(get_arg(args, 0), "Set.prototype.forEach")
    for value in list(target.items.values()):
        ctx.invoke(callback, get_arg(args, 1), [value, value, target])
    return UNDEFINED


def _other_set_values(value: Any, method: str) -> List[Any]:
    if isinstance(value, JSSet):
        return list(value.items.values())
    if isinstance(value, JSMap):
        return [key for key, _ in value.entries.values()]
    raise ExprTypeError(f"Set.prototype.{method}: argument must be a Set or Map")


def _set_operation(method: str, combine: Callable[[JSSet, JSSet], Any]) -> NativeFunction:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        target = _this_set(this, method)
        other = JSSet(_other_set_values(get_arg(args, 0), method))
        return combine(target, other)

    return NativeFunction(method, impl, 1)


SET_METHODS: Dict[str, JSFunction] = {
    "add": NativeFunction("add", _set_add, 1),
    "delete": NativeFunction("delete", _set_delete, 1),
    "clear": NativeFunction("clear", _set_clear),
    "has": NativeFunction("has", _set_has, 1),
    "values": NativeFunction("values", _set_values),
    "keys": NativeFunction("keys", _set_values),
    "entries": NativeFunction("entries", _set_entries),
    "forEach": NativeFunction("forEach", _set_for_each, 1),
    "union": _set_operation(
        "union", lambda a, b: JSSet(list(a.items.values()) + list(b.items.values()))
    ),
    "intersection": _set_operation(
        "intersection", lambda a, b: JSSet([v for v in a.items.values() if b.has(v)])
    ),
    "difference": _set_operation(
        "difference", lambda a, b: JSSet([v for v in a.items.values() if not b.has(v)])
    ),
    "symmetricDifference": _set_operation(
        "symmetricDifference",
        lambda a, b: JSSet(
            [v for v in a.items.values() if not b.has(v)]
            + [v for v in b.items.values() if not a.has(v)]
        ),
    ),
    "isSubsetOf": _set_operation(
        "isSubsetOf", lambda a, b: all(b.has(v) for v in a.items.values())
    ),
    "isSupersetOf": _set_operation(
        "isSupersetOf", lambda a, b: all(a.has(v) for v in b.items.values())
    ),
    "isDisjointFrom": _set_operation(
        "isDisjointFrom", lambda a, b: not any(b.has(v) for v in a.items.values())
    ),
}


def _map_get(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_map(this, "get").get(get_arg(args, 0))


def _map_set(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    _this_map(this, "set").set(get_arg(args, 0), get_arg(args, 1))
    return this


def _map_has(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_map(this, "has").has(get_arg(args, 0))


def _map_delete(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _this_map(this, "delete")
    return target.entries.pop(map_key(get_arg(args, 0)), MISSING) is not MISSING


def _map_clear(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    _this_map(this, "clear").entries.clear()
    return UNDEFINED


def _map_keys(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return [key for key, _ in _this_map(this, "keys").entries.values()]


def _map_values(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return [value for _, value in _this_map(this, "values").entries.values()]


def _map_entries(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return _this_map(this, "entries").js_iterate()


def _map_for_each(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _this_map(this, "forEach")
    callback = require_callable(get_arg(args, 0), "Map.prototype.forEach")
    for key, value in list(target.entries.values()):
        ctx.invoke(callback, get_arg(args, 1), [value, key, target])
    return UNDEFINED


MAP_METHODS: Dict[str, JSFunction] = {
    "get": NativeFunction("get", _map_get, 1),
    "set": NativeFunction("set", _map_set, 2),
    "has": NativeFunction("has", _map_has, 1),
    "delete": NativeFunction("delete", _map_delete, 1),
    "clear": NativeFunction("clear", _map_clear),
    "keys": NativeFunction("keys", _map_keys),
    "values": NativeFunction("values", _map_values),
    "entries": NativeFunction("entries", _map_entries),
    "forEach": NativeFunction("forEach", _map_for_each, 1),
}


def _weakset_add(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _receiver(this, JSWeakSet, "WeakSet", "add")
    value = get_arg(args, 0)
    if not _can_be_held_weakly(value):
        raise ExprTypeError(f"Invalid value used in weak set: {to_display_string(value)}")
    target.items[id(value)] = value
    return this


def _weakset_delete(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _receiver(this, JSWeakSet, "WeakSet", "delete")
    return target.items.pop(id(get_arg(args, 0)), MISSING) is not MISSING


def _weakset_has(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _receiver(this, JSWeakSet, "WeakSet", "has")
    value = get_arg(args, 0)
    return id(value) in target.items and target.items[id(value)] is value


WEAKSET_METHODS: Dict[str, JSFunction] = {
    "add": NativeFunction("add", _weakset_add, 1),
    "delete": NativeFunction("delete", _weakset_delete, 1),
    "has": NativeFunction("has", _weakset_has, 1),
}


def _weakmap_lookup(target: JSWeakMap, key: Any) -> Optional[Tuple[Any, Any]]:
    entry = target.entries.get(id(key))
    if entry is None or entry[0] is not key:
        return None
    return entry


def _weakmap_get(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _receiver(this, JSWeakMap, "WeakMap", "get")
    entry = _weakmap_lookup(target, get_arg(args, 0))
    return UNDEFINED if entry is None else entry[1]


def _weakmap_set(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _receiver(this, JSWeakMap, "WeakMap", "set")
    key = get_arg(args, 0)
    if not _can_be_held_weakly(key):
        raise ExprTypeError(f"Invalid value used as weak map key: {to_display_string(key)}")
    target.entries[id(key)] = (key, get_arg(args, 1))
    return this


def _weakmap_has(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _receiver(this, JSWeakMap, "WeakMap", "has")
    return _weakmap_lookup(target, get_arg(args, 0)) is not None


def _weakmap_delete(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    target = _receiver(this, JSWeakMap, "WeakMap", "delete")
    key = get_arg(args, 0)
    if _weakmap_lookup(target, key) is None:
        return False
    del target.entries[id(key)]
    return True


WEAKMAP_METHODS: Dict[str, JSFunction] = {
    "get": NativeFunction("get", _weakmap_get, 1),
    "set": NativeFunction("set", _weakmap_set, 2),
    "has": NativeFunction("has", _weakmap_has, 1),
    "delete": NativeFunction("delete", _weakmap_delete, 1),
}


def requires_new(name: str) -> Callable[[Any, List[Any], BuiltinContext], Any]:
    def impl(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        raise ExprTypeError(f"Constructor {name} requires 'new'")

    return impl


def _set_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    source = get_arg(args, 0)
    if source is UNDEFINED or source is None:
        return JSSet()
    return JSSet(iterate(source))


def _map_entries_from(source: Any, owner: str) -> List[Tuple[Any, Any]]:
    pairs = []
    for entry in iterate(source):
        if not is_object(entry):
            raise ExprTypeError(
                f"Iterator value {to_display_string(entry)} is not an entry object"
            )
        items = iterate(entry) if isinstance(entry, list) else []
        key = items[0] if len(items) > 0 else UNDEFINED
        value = items[1] if len(items) > 1 else UNDEFINED
        pairs.append((key, value))
    return pairs


def _map_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    source = get_arg(args, 0)
    if source is UNDEFINED or source is None:
        return JSMap()
    return JSMap(_map_entries_from(source, "Map"))


def _weakset_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    target = JSWeakSet()
    source = get_arg(args, 0)
    if source is not UNDEFINED and source is not None:
        for value in iterate(source):
            _weakset_add(target, [value], ctx)
    return target


def _weakmap_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    target = JSWeakMap()
    source = get_arg(args, 0)
    if source is not UNDEFINED and source is not None:
        for key, value in _map_entries_from(source, "WeakMap"):
            _weakmap_set(target, [key, value], ctx)
    return target


def _map_group_by(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = iterate(get_arg(args, 0))
    callback = require_callable(get_arg(args, 1), "Map.groupBy")
    result = JSMap()
    for index, item in enumerate(items):
        key = ctx.invoke(callback, UNDEFINED, [item, index])
        group = result.get(key)
        if group is UNDEFINED:
            group = []
            result.set(key, group)
        group.append(item)
    return result


SET_CONSTRUCTOR = BuiltinConstructor(
    "Set",
    call_impl=requires_new("Set"),
    construct_impl=_set_construct,
    length=0,
    methods=SET_METHODS,
    instance_check=lambda value: isinstance(value, JSSet),
)

MAP_CONSTRUCTOR = BuiltinConstructor(
    "Map",
    call_impl=requires_new("Map"),
    construct_impl=_map_construct,
    length=0,
    methods=MAP_METHODS,
    statics={"groupBy": NativeFunction("groupBy", _map_group_by, 2)},
    instance_check=lambda value: isinstance(value, JSMap),
)

WEAKSET_CONSTRUCTOR = BuiltinConstructor(
    "WeakSet",
    call_impl=requires_new("WeakSet"),
    construct_impl=_weakset_construct,
    length=0,
    methods=WEAKSET_METHODS,
    instance_check=lambda value: isinstance(value, JSWeakSet),
)

WEAKMAP_CONSTRUCTOR = BuiltinConstructor(
    "WeakMap",
    call_impl=requires_new("WeakMap"),
    construct_impl=_weakmap_construct,
    length=0,
    methods=WEAKMAP_METHODS,
    instance_check=lambda value: isinstance(value, JSWeakMap),
)


# ============================================================
# Typed Arrays
# ============================================================


def _wrap_integer(bits: int, signed: bool) -> Callable[[Any], Any]:
    modulus = 1 << bits
    half = 1 << (bits - 1)

    def coerce(value: Any) -> Any:
        number = to_number(value)
        if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
            return 0
        result = int(number) % modulus
        if signed and result >= half:
            result -= modulus
        return result

    return coerce


def _clamp_uint8(value: Any) -> Any:
    number = to_number(value)
    if isinstance(number, float) and math.isnan(number):
        return 0
    if number <= 0:
        return 0
    if number >= 255:
        return 255
    # Ties round to even
    return int(round(number))


def _to_float32(value: Any) -> Any:
    number = float(to_number(value))
    if math.isnan(number) or math.isinf(number):
        return number
    try:
        return normalize_number(struct.unpack("f", struct.pack("f", number))[0])
    except OverflowError:
        return math.copysign(math.inf, number)


def _to_float64(value: Any) -> Any:
    return to_number(value)


def _wrap_bigint(signed: bool) -> Callable[[Any], Any]:
    modulus = 1 << 64
    half = 1 << 63

    def coerce(value: Any) -> Any:
        primitive = to_primitive(value, "number")
        if isinstance(primitive, bool):
            big = int(primitive)
        elif isinstance(primitive, JSBigInt):
            big = primitive.value
        else:
            raise ExprTypeError(f"Cannot convert {to_display_string(primitive)} to a BigInt")
        result = big % modulus
        if signed and result >= half:
            result -= modulus
        return JSBigInt(result)

    return coerce


@dataclass(frozen=True)
class TypedArrayKind:
    """Element type of a typed array constructor."""

    name: str
    bytes_per_element: int
    coerce: Callable[[Any], Any]
    is_bigint: bool = False


TYPED_ARRAY_KINDS: Dict[str, TypedArrayKind] = {
    kind.name: kind
    for kind in (
        TypedArrayKind("Int8Array", 1, _wrap_integer(8, True)),
        TypedArrayKind("Uint8Array", 1, _wrap_integer(8, False)),
        TypedArrayKind("Uint8ClampedArray", 1, _clamp_uint8),
        TypedArrayKind("Int16Array", 2, _wrap_integer(16, True)),
        TypedArrayKind("Uint16Array", 2, _wrap_integer(16, False)),
        TypedArrayKind("Int32Array", 4, _wrap_integer(32, True)),
        TypedArrayKind("Uint32Array", 4, _wrap_integer(32, False)),
        TypedArrayKind("Float32Array", 4, _to_float32),
        TypedArrayKind("Float64Array", 8, _to_float64),
        TypedArrayKind("BigInt64Array", 8, _wrap_bigint(True), is_bigint=True),
        TypedArrayKind("BigUint64Array", 8, _wrap_bigint(False), is_bigint=True),
    )
}


class JSTypedArray(HostObject):
    """A fixed-length array of numeric elements of one kind."""

    def __init__(self, kind: TypedArrayKind, values: Optional[List[Any]] = None, length: int = 0):
        self.kind = kind
        if values is None:
            zero: Any = JSBigInt(0) if kind.is_bigint else 0
            self.items: List[Any] = [zero] * length
        else:
            self.items = [kind.coerce(value) for value in values]

    @property
    def class_name(self) -> str:  # type: ignore[override]
        return self.kind.name

    def get_own(self, key: str) -> Any:
        if key == "length":
            return len(self.items)
        if key == "byteLength":
            return len(self.items) * self.kind.bytes_per_element
        if key == "byteOffset":
            return 0
        if key == "BYTES_PER_ELEMENT":
            return self.kind.bytes_per_element
        return MISSING

    def own_keys(self) -> List[str]:
        return [str(index) for index in range(len(self.items))]

    def js_iterate(self) -> Optional[List[Any]]:
        return list(self.items)

    def to_primitive(self, hint: str) -> Any:
        return array_join(self.items, ",")

    def __repr__(self) -> str:
        return f"{self.kind.name}({self.items!r})"


def typed_array_construct(kind: TypedArrayKind) -> Callable[[List[Any], BuiltinContext], Any]:
    def construct(args: List[Any], ctx: BuiltinContext) -> Any:
        source = get_arg(args, 0)
        if source is UNDEFINED or source is None:
            return JSTypedArray(kind)
        if isinstance(source, JSTypedArray):
            if source.kind.is_bigint != kind.is_bigint:
                raise ExprTypeError(
                    "Cannot mix BigInt and other types, use explicit conversions"
                )
            return JSTypedArray(kind, list(source.items))
        if is_object(source):
            values = iterate(source) if isinstance(source, (list, HostObject)) else []
            return JSTypedArray(kind, values)
        length = to_integer_or_infinity(source)
        if isinstance(length, float) or length < 0:
            raise BuiltinError(kind.name, "Invalid typed array length", error_name="RangeError")
        if length > ctx.limits.max_array_length:
            raise BuiltinError(kind.name, "Invalid typed array length", error_name="RangeError")
        return JSTypedArray(kind, length=length)

    return construct


# ============================================================
# Promise
# ============================================================


class JSPromise(HostObject):
    """
    A settled-or-pending promise.

    There is no job queue: reactions run synchronously as soon as the promise
    settles, and expressions never await. Errors raised inside reactions
    propagate to the caller instead of rejecting the derived promise.
    """

    class_name = "Promise"

    def __init__(self) -> None:
        self.state = "pending"
        self.value: Any = UNDEFINED
        self._reactions: List[Callable[[], None]] = []

    def on_settle(self, reaction: Callable[[], None]) -> None:
        if self.state == "pending":
            self._reactions.append(reaction)
        else:
            reaction()

    def _settle(self, state: str, value: Any) -> None:
        if self.state != "pending":
            return
        self.state = state
        self.value = value
        reactions, self._reactions = self._reactions, []
        for reaction in reactions:
            reaction()

    def resolve(self, value: Any) -> None:
        if self.state != "pending":
            return
        if value is self:
            self._settle("rejected", JSError("TypeError", "Chaining cycle detected for promise"))
            return
        if isinstance(value, JSPromise):
            value.on_settle(lambda: self._settle(value.state, value.value))
            return
        self._settle("fulfilled", value)

    def reject(self, reason: Any) -> None:
        self._settle("rejected", reason)

    def __repr__(self) -> str:
        if self.state == "pending":
            return "Promise { <pending> }"
        return f"Promise {{ <{self.state}> {self.value!r} }}"


def _this_promise(this: Any, method: str) -> JSPromise:
    return _receiver(this, JSPromise, "Promise", method)


def _resolving_functions(promise: JSPromise) -> Tuple[NativeFunction, NativeFunction]:
    def resolve(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        promise.resolve(get_arg(args, 0))
        return UNDEFINED

    def reject(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        promise.reject(get_arg(args, 0))
        return UNDEFINED

    return NativeFunction("resolve", resolve, 1), NativeFunction("reject", reject, 1)


def promise_then(
    promise: JSPromise, on_fulfilled: Any, on_rejected: Any, ctx: BuiltinContext
) -> JSPromise:
    derived = JSPromise()

    def react() -> None:
        handler = on_fulfilled if promise.state == "fulfilled" else on_rejected
        if is_callable(handler):
            derived.resolve(ctx.invoke(handler, UNDEFINED, [promise.value]))
        elif promise.state == "fulfilled":
            derived.resolve(promise.value)
        else:
            derived.reject(promise.value)

    promise.on_settle(react)
    return derived


def _promise_then(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    promise = _this_promise(this, "then")
    return promise_then(promise, get_arg(args, 0), get_arg(args, 1), ctx)


def _promise_catch(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    promise = _this_promise(this, "catch")
    return promise_then(promise, UNDEFINED, get_arg(args, 0), ctx)


def _promise_finally(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    promise = _this_promise(this, "finally")
    callback = get_arg(args, 0)
    derived = JSPromise()

    def react() -> None:
        if is_callable(callback):
            ctx.invoke(callback, UNDEFINED, [])
        if promise.state == "fulfilled":
            derived.resolve(promise.value)
        else:
            derived.reject(promise.value)

    promise.on_settle(react)
    return derived


PROMISE_METHODS: Dict[str, JSFunction] = {
    "then": NativeFunction("then", _promise_then, 2),
    "catch": NativeFunction("catch", _promise_catch, 1),
    "finally": NativeFunction("finally", _promise_finally, 1),
}


def _promise_construct(args: List[Any], ctx: BuiltinContext) -> Any:
    executor = get_arg(args, 0)
    if not is_callable(executor):
        raise ExprTypeError(f"Promise resolver {to_display_string(executor)} is not a function")
    promise = JSPromise()
    resolve, reject = _resolving_functions(promise)
    ctx.invoke(executor, UNDEFINED, [resolve, reject])
    return promise


def promise_resolve(value: Any) -> JSPromise:
    if isinstance(value, JSPromise):
        return value
    promise = JSPromise()
    promise.resolve(value)
    return promise


def _promise_static_resolve(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    return promise_resolve(get_arg(args, 0))


def _promise_static_reject(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    promise = JSPromise()
    promise.reject(get_arg(args, 0))
    return promise


def _promise_all(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = [promise_resolve(item) for item in iterate(get_arg(args, 0))]
    result = JSPromise()
    values: List[Any] = [UNDEFINED] * len(items)
    remaining = [len(items)]

    if not items:
        result.resolve(values)
        return result

    def watch(index: int, item: JSPromise) -> None:
        def react() -> None:
            if item.state == "rejected":
                result.reject(item.value)
                return
            values[index] = item.value
            remaining[0] -= 1
            if remaining[0] == 0:
                result.resolve(values)

        item.on_settle(react)

    for index, item in enumerate(items):
        watch(index, item)
    return result


def _promise_all_settled(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = [promise_resolve(item) for item in iterate(get_arg(args, 0))]
    result = JSPromise()
    outcomes: List[Any] = [UNDEFINED] * len(items)
    remaining = [len(items)]

    if not items:
        result.resolve(outcomes)
        return result

    def watch(index: int, item: JSPromise) -> None:
        def react() -> None:
            if item.state == "fulfilled":
                outcomes[index] = {"status": "fulfilled", "value": item.value}
            else:
                outcomes[index] = {"status": "rejected", "reason": item.value}
            remaining[0] -= 1
            if remaining[0] == 0:
                result.resolve(outcomes)

        item.on_settle(react)

    for index, item in enumerate(items):
        watch(index, item)
    return result


def _promise_race(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    result = JSPromise()
    for item in iterate(get_arg(args, 0)):
        promise = promise_resolve(item)
        promise.on_settle(
            lambda promise=promise: (
                result.resolve(promise.value)
                if promise.state == "fulfilled"
                else result.reject(promise.value)
            )
        )
    return result


def _promise_any(this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
    items = [promise_resolve(item) for item in iterate(get_arg(args, 0))]
    result = JSPromise()
    remaining = [len(items)]

    def reject_all() -> None:
        result.reject(JSError("AggregateError", "All promises were rejected"))

    if not items:
        reject_all()
        return result

    def watch(item: JSPromise) -> None:
        def react() -> None:
            if item.state == "fulfilled":
                result.resolve(item.value)
                return
            remaining[0] -= 1
            if remaining[0] == 0:
                reject_all()

        item.on_settle(react)

    for item in items:
        watch(item)
    return result


PROMISE_CONSTRUCTOR = BuiltinConstructor(
    "Promise",
    call_impl=requires_new("Promise"),
    construct_impl=_promise_construct,
    length=1,
    methods=PROMISE_METHODS,
    statics={
        "resolve": NativeFunction("resolve", _promise_static_resolve, 1),
        "reject": NativeFunction("reject", _promise_static_reject, 1),
        "all": NativeFunction("all", _promise_all, 1),
        "allSettled": NativeFunction("allSettled", _promise_all_settled, 1),
        "race": NativeFunction("race", _promise_race, 1),
        "any": NativeFunction("any", _promise_any, 1),
    },
    instance_check=lambda value: isinstance(value, JSPromise),
)
