"""
Tests for the allow-listed global scope.
"""

import math

import pytest

from expr_sandbox import (
    GLOBAL_SCOPE,
    UNDEFINED,
    ReferenceError,
    build_global_scope,
    evaluate_expression,
)
from expr_sandbox.builtins import get_property
from expr_sandbox.values import FUNCTION_CONSTRUCTOR


class TestGlobalScope:
    """Tests for the contents of the global scope."""

    @pytest.mark.parametrize(
        "name",
        [
            "Math",
            "JSON",
            "Object",
            "Array",
            "String",
            "Number",
            "Boolean",
            "BigInt",
            "Symbol",
            "Date",
            "RegExp",
            "Map",
            "Set",
            "WeakMap",
            "WeakSet",
            "Promise",
            "Error",
            "TypeError",
            "Uint8Array",
            "BigInt64Array",
            "encodeURIComponent",
            "parseInt",
        ],
    )
    def test_allowed_names(self, name):
        assert name in GLOBAL_SCOPE

    @pytest.mark.parametrize(
        "name",
        [
            "eval",
            "setTimeout",
            "setInterval",
            "globalThis",
            "window",
            "process",
            "require",
            "Proxy",
            "Reflect",
            "ArrayBuffer",
            "DataView",
        ],
    )
    def test_blocked_names_are_absent(self, name):
        assert name not in GLOBAL_SCOPE
        with pytest.raises(ReferenceError, match=f"{name} is not defined"):
            evaluate_expression(name)

    def test_value_bindings(self):
        assert GLOBAL_SCOPE["undefined"] is UNDEFINED
        assert GLOBAL_SCOPE["null"] is None
        assert math.isinf(GLOBAL_SCOPE["Infinity"])
        assert math.isnan(GLOBAL_SCOPE["NaN"])

    def test_function_is_the_guarded_stand_in(self):
        assert GLOBAL_SCOPE["Function"] is FUNCTION_CONSTRUCTOR

    def test_scope_is_read_only(self):
        with pytest.raises(TypeError):
            GLOBAL_SCOPE["eval"] = len  # type: ignore[index]

    def test_global_number_helpers_are_number_statics(self):
        number = GLOBAL_SCOPE["Number"]
        for name in ("isNaN", "isFinite", "parseInt", "parseFloat"):
            assert GLOBAL_SCOPE[name] is get_property(number, name)

    def test_is_nan_does_not_coerce(self):
        assert evaluate_expression("isNaN('abc')") is False
        assert evaluate_expression("isNaN(NaN)") is True

    def test_context_shadows_globals(self):
        assert evaluate_expression("Math", {"Math": 1}) == 1

    def test_rebuild_matches_shared_scope(self):
        assert set(build_global_scope()) == set(GLOBAL_SCOPE)
