"""
Mutable-method registry and call guard.

Built-ins that change an object in place are blocked by function identity,
not by name: ``arr["pu" + "sh"]``, ``const p = [].push`` style aliasing and
``Array.prototype.push.call(...)`` all reach the same function object and
are rejected the same way.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .builtins import get_property
from .errors import EvaluationError, SecurityError
from .globals import GLOBAL_SCOPE
from .objects import TYPED_ARRAY_KINDS
from .values import FUNCTION_CONSTRUCTOR, MISSING, UNDEFINED, BoundFunction

logger = logging.getLogger("expr_sandbox.security")

_ARRAY_MUTATORS = (
    "push",
    "pop",
    "shift",
    "unshift",
    "splice",
    "reverse",
    "sort",
    "fill",
    "copyWithin",
)

_TYPED_ARRAY_MUTATORS = ("set", "fill", "copyWithin", "reverse", "sort")

_DATE_SETTERS = (
    "setDate",
    "setFullYear",
    "setHours",
    "setMilliseconds",
    "setMinutes",
    "setMonth",
    "setSeconds",
    "setTime",
    "setUTCDate",
    "setUTCFullYear",
    "setUTCHours",
    "setUTCMilliseconds",
    "setUTCMinutes",
    "setUTCMonth",
    "setUTCSeconds",
)

_DATAVIEW_SETTERS = (
    "setInt8",
    "setUint8",
    "setInt16",
    "setUint16",
    "setInt32",
    "setUint32",
    "setFloat32",
    "setFloat64",
    "setBigInt64",
    "setBigUint64",
)

MUTABLE_METHOD_PATHS: Tuple[str, ...] = (
    *(f"Array.prototype.{name}" for name in _ARRAY_MUTATORS),
    # Not in the global scope; kept so the list stays complete if they are added.
    "ArrayBuffer.prototype.slice",
    *(f"DataView.prototype.{name}" for name in _DATAVIEW_SETTERS),
    *(
        f"{kind}.prototype.{name}"
        for kind in TYPED_ARRAY_KINDS
        for name in _TYPED_ARRAY_MUTATORS
    ),
    "Object.freeze",
    "Object.defineProperty",
    "Object.defineProperties",
    "Object.preventExtensions",
    "Object.setPrototypeOf",
    "Object.assign",
    "Set.prototype.add",
    "Set.prototype.delete",
    "Set.prototype.clear",
    "WeakSet.prototype.add",
    "WeakSet.prototype.delete",
    "Map.prototype.set",
    "Map.prototype.delete",
    "Map.prototype.clear",
    "WeakMap.prototype.set",
    "WeakMap.prototype.delete",
    *(f"Date.prototype.{name}" for name in _DATE_SETTERS),
)


def _resolve_path(scope: Mapping[str, Any], path: str) -> Optional[Any]:
    root, *rest = path.split(".")
    if root not in scope:
        return None
    value = scope[root]
    for part in rest:
        try:
            value = get_property(value, part)
        except EvaluationError:
            return None
        if value is UNDEFINED:
            return None
    return value


def build_mutable_method_set(
    scope: Mapping[str, Any] = GLOBAL_SCOPE,
    paths: Iterable[str] = MUTABLE_METHOD_PATHS,
) -> Mapping[int, Any]:
    """
    Resolves each dotted path against ``scope`` into an identity set.

    The result maps ``id(fn)`` to ``fn``; holding the function keeps its id
    from being reused. Paths that do not resolve are skipped.
    """
    resolved: Dict[int, Any] = {}
    for path in paths:
        fn = _resolve_path(scope, path)
        if fn is None:
            logger.debug("mutable_method_path_skipped", extra={"path": path})
            continue
        resolved[id(fn)] = fn

    logger.debug("mutable_method_set_built", extra={"count": len(resolved)})
    return resolved


MUTABLE_METHODS: Mapping[int, Any] = build_mutable_method_set()


def is_mutable_method(fn: Any, registry: Mapping[int, Any] = MUTABLE_METHODS) -> bool:
    """Checks by identity whether ``fn`` (or the target of a bound ``fn``) mutates in place."""
    while isinstance(fn, BoundFunction):
        if registry.get(id(fn), MISSING) is fn:
            return True
        fn = fn.target
    return registry.get(id(fn), MISSING) is fn


def assert_call_allowed(
    fn: Any, receiver: Any = UNDEFINED, registry: Mapping[int, Any] = MUTABLE_METHODS
) -> None:
    """
    Rejects calls to mutable methods and to the Function constructor.

    The receiver is checked as well, which blocks
    ``Array.prototype.splice.call(arr, ...)``: there the receiver of ``call``
    is ``splice`` itself.

    Raises:
        SecurityError: If the call is not allowed
    """
    if fn is FUNCTION_CONSTRUCTOR:
        raise SecurityError("Function constructor is not allowed")
    if is_mutable_method(fn, registry) or is_mutable_method(receiver, registry):
        logger.debug(
            "mutable_method_call_blocked",
            extra={"function": getattr(fn, "name", repr(fn))},
        )
        raise SecurityError("Mutable method is not allowed")
