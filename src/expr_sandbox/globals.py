"""
The global scope shared by every evaluation.

The table below is authored by hand: only the names listed here are
reachable from an expression. Anything else, including ``eval`` and
timers, fails with "<name> is not defined". ``Function`` is bound to a
stand-in whose call and construct paths both raise SecurityError.
"""

import logging
import math
from types import MappingProxyType
from typing import Any, Dict, Mapping

from .builtins import (
    ARRAY_CONSTRUCTOR,
    BIGINT_CONSTRUCTOR,
    BOOLEAN_CONSTRUCTOR,
    DECODE_URI,
    DECODE_URI_COMPONENT,
    ENCODE_URI,
    ENCODE_URI_COMPONENT,
    IS_FINITE,
    IS_NAN,
    JSON_NAMESPACE,
    MATH,
    NUMBER_CONSTRUCTOR,
    OBJECT_CONSTRUCTOR,
    PARSE_FLOAT,
    PARSE_INT,
    STRING_CONSTRUCTOR,
    SYMBOL_CONSTRUCTOR,
    TYPED_ARRAY_CONSTRUCTORS,
)
from .objects import (
    DATE_CONSTRUCTOR,
    ERROR_CONSTRUCTORS,
    MAP_CONSTRUCTOR,
    PROMISE_CONSTRUCTOR,
    REGEXP_CONSTRUCTOR,
    SET_CONSTRUCTOR,
    WEAKMAP_CONSTRUCTOR,
    WEAKSET_CONSTRUCTOR,
)
from .values import FUNCTION_CONSTRUCTOR, UNDEFINED

logger = logging.getLogger("expr_sandbox.globals")


def build_global_scope() -> Mapping[str, Any]:
    """
    Builds the read-only mapping of allow-listed global names.

    ``isNaN``, ``isFinite``, ``parseInt`` and ``parseFloat`` are the same
    function objects as their ``Number`` counterparts, so they do not coerce
    their argument.
    """
    table: Dict[str, Any] = {
        # Values
        "Infinity": math.inf,
        "NaN": math.nan,
        "undefined": UNDEFINED,
        "null": None,
        # Functions
        "isNaN": IS_NAN,
        "isFinite": IS_FINITE,
        "parseFloat": PARSE_FLOAT,
        "parseInt": PARSE_INT,
        "encodeURI": ENCODE_URI,
        "encodeURIComponent": ENCODE_URI_COMPONENT,
        "decodeURI": DECODE_URI,
        "decodeURIComponent": DECODE_URI_COMPONENT,
        # Fundamental objects
        "Number": NUMBER_CONSTRUCTOR,
        "String": STRING_CONSTRUCTOR,
        "Boolean": BOOLEAN_CONSTRUCTOR,
        "BigInt": BIGINT_CONSTRUCTOR,
        "Symbol": SYMBOL_CONSTRUCTOR,
        "Object": OBJECT_CONSTRUCTOR,
        "Array": ARRAY_CONSTRUCTOR,
        "Function": FUNCTION_CONSTRUCTOR,
        # Keyed collections
        "Set": SET_CONSTRUCTOR,
        "WeakSet": WEAKSET_CONSTRUCTOR,
        "Map": MAP_CONSTRUCTOR,
        "WeakMap": WEAKMAP_CONSTRUCTOR,
        # Namespaces
        "Math": MATH,
        "JSON": JSON_NAMESPACE,
        # Dates, text processing, control abstraction
        "Date": DATE_CONSTRUCTOR,
        "RegExp": REGEXP_CONSTRUCTOR,
        "Promise": PROMISE_CONSTRUCTOR,
    }
    table.update(ERROR_CONSTRUCTORS)
    table.update(TYPED_ARRAY_CONSTRUCTORS)

    logger.debug("global_scope_built", extra={"names": len(table)})
    return MappingProxyType(table)


GLOBAL_SCOPE: Mapping[str, Any] = build_global_scope()
