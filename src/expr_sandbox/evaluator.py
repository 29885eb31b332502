"""
Expression evaluator.

Evaluates an AST against a scope chain and returns a JavaScript value.

Scope semantics:
- The scope chain is a tuple of frames searched innermost first: arrow
  function frames, then the caller's context, then the global scope.
- Arrow function calls extend the chain by building a new tuple, so no
  frame is ever pushed onto shared state.
- An identifier missing from every frame raises ReferenceError.

Security semantics:
- Every call, including callbacks made by built-ins, goes through
  ``Evaluator.invoke`` and is checked against the mutable-method set.
- ``this``, ``delete``, assignments and statements are rejected.
"""

import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union, cast

from .ast import (
    ArrayExpressionNode,
    ArrowFunctionExpressionNode,
    AstNode,
    BinaryExpressionNode,
    CallExpressionNode,
    ChainExpressionNode,
    ConditionalExpressionNode,
    IdentifierNode,
    LiteralNode,
    LogicalExpressionNode,
    MemberExpressionNode,
    NewExpressionNode,
    ObjectExpressionNode,
    PropertyNode,
    RegExpLiteralNode,
    SpreadElementNode,
    TemplateLiteralNode,
    UnaryExpressionNode,
    describe_node,
)
from .builtins import get_property, has_property, instance_of, number_pow, own_keys
from .errors import BuiltinError, ExpressionError, ReferenceError, SecurityError
from .errors import TypeError as ExprTypeError
from .globals import GLOBAL_SCOPE
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    check_array_length,
    check_call_depth,
    check_function_arg_count,
)
from .objects import create_regexp
from .parser import parse
from .security import assert_call_allowed
from .values import (
    FUNCTION_CONSTRUCTOR,
    UNDEFINED,
    BuiltinContext,
    JSBigInt,
    JSFunction,
    call_function,
    get_arg,
    is_callable,
    is_nullish,
    iterate,
    loose_equals,
    normalize_number,
    strict_equals,
    string_to_bigint,
    to_boolean,
    to_int32,
    to_number,
    to_numeric,
    to_primitive,
    to_property_key,
    to_string,
    to_uint32,
    typeof,
)

Scope = Tuple[Mapping[str, Any], ...]

# Largest BigInt result, in bits, an expression may produce
MAX_BIGINT_BITS = 1 << 20

# Longest source excerpt quoted back in "not a valid syntax" errors
_SNIPPET_LENGTH = 50


class _OptionalChainShortCircuit(Exception):
    """Unwinds an optional chain whose base is null or undefined."""


@dataclass
class EvaluationResult:
    """Result of expression evaluation."""

    value: Any
    """The evaluated value."""

    success: bool
    """Whether evaluation succeeded."""

    error: Optional[str] = None
    """Error message if evaluation failed."""


class Closure(JSFunction):
    """The value of an arrow function: its parameters, body and captured scope."""

    def __init__(
        self,
        node: ArrowFunctionExpressionNode,
        scope: Scope,
        evaluator: "Evaluator",
        source: str,
    ):
        self.node = node
        self.scope = scope
        self.evaluator = evaluator
        self.source = source
        self.name = ""
        self.length = len(node.params)

    def call(self, this: Any, args: List[Any], ctx: BuiltinContext) -> Any:
        return self.evaluator.call_closure(self, args)

    def source_text(self) -> str:
        if self.source:
            return self.source[self.node.start : self.node.end]
        return "() => { [expression] }"

    def __call__(self, *args: Any) -> Any:
        # Lets host code holding a returned closure call it like a Python function.
        return self.evaluator.invoke(self, UNDEFINED, list(args))


class Evaluator:
    """
    Evaluates expressions against a fixed context.

    One instance may evaluate many expressions. It keeps a call-depth
    counter while closures run, so it must not be shared across threads.
    """

    def __init__(
        self,
        context: Optional[Mapping[str, Any]] = None,
        limits: Optional[ExpressionLimits] = None,
    ):
        self._context: Mapping[str, Any] = context if context is not None else {}
        self._limits = limits or DEFAULT_EXPRESSION_LIMITS
        self._scope: Scope = (self._context, GLOBAL_SCOPE)
        self._source = ""
        self._call_depth = 0
        self._builtin_context = BuiltinContext(limits=self._limits, invoke=self.invoke)

    @property
    def context(self) -> Mapping[str, Any]:
        return self._context

    @property
    def limits(self) -> ExpressionLimits:
        return self._limits

    def evaluate(self, expression: Union[str, AstNode]) -> Any:
        """
        Parses (when given text) and evaluates an expression.

        Raises:
            ExpressionSyntaxError: If the text does not parse
            EvaluationError: If evaluation fails
            LimitExceededError: If a limit is exceeded
        """
        if isinstance(expression, str):
            self._source = expression
            node = parse(expression, self._limits)
        else:
            self._source = ""
            node = expression
        self._builtin_context.source = self._source or None

        try:
            return self._evaluate(node, self._scope)
        except ExpressionError as e:
            if e.expression is None and self._source:
                e.expression = self._source
            raise

    def invoke(self, fn: Any, this: Any, args: List[Any]) -> Any:
        """Calls a function value after the mutable-method and Function checks."""
        assert_call_allowed(fn, this)
        return call_function(fn, this, args, self._builtin_context)

    def call_closure(self, closure: Closure, args: List[Any]) -> Any:
        """Runs an arrow function body in a new frame binding its parameters."""
        self._call_depth += 1
        try:
            check_call_depth(self._call_depth, self._limits)
            frame = {
                param.name: get_arg(args, index)
                for index, param in enumerate(closure.node.params)
            }
            return self._evaluate(closure.node.body, (frame,) + closure.scope)
        finally:
            self._call_depth -= 1

    def _evaluate(self, node: AstNode, scope: Scope) -> Any:
        try:
            return self._evaluate_node(node, scope)
        except ExpressionError as e:
            # The innermost node that fails owns the position.
            if e.position is None:
                e.position = node.start
            raise

    def _evaluate_node(self, node: AstNode, scope: Scope) -> Any:
        node_type = node.type

        if node_type == "Literal":
            return cast(LiteralNode, node).value

        if node_type == "Identifier":
            return self._lookup(cast(IdentifierNode, node), scope)

        if node_type == "MemberExpression":
            return self._evaluate_member(cast(MemberExpressionNode, node), scope)

        if node_type == "CallExpression":
            return self._evaluate_call(cast(CallExpressionNode, node), scope)

        if node_type == "ChainExpression":
            try:
                return self._evaluate(cast(ChainExpressionNode, node).expression, scope)
            except _OptionalChainShortCircuit:
                return UNDEFINED

        if node_type == "BinaryExpression":
            n = cast(BinaryExpressionNode, node)
            left = self._evaluate(n.left, scope)
            right = self._evaluate(n.right, scope)
            return self._evaluate_binary(n.operator, left, right)

        if node_type == "LogicalExpression":
            return self._evaluate_logical(cast(LogicalExpressionNode, node), scope)

        if node_type == "UnaryExpression":
            return self._evaluate_unary(cast(UnaryExpressionNode, node), scope)

        if node_type == "ConditionalExpression":
            n = cast(ConditionalExpressionNode, node)
            if to_boolean(self._evaluate(n.test, scope)):
                return self._evaluate(n.consequent, scope)
            return self._evaluate(n.alternate, scope)

        if node_type == "ArrayExpression":
            return self._evaluate_array(cast(ArrayExpressionNode, node), scope)

        if node_type == "ObjectExpression":
            return self._evaluate_object(cast(ObjectExpressionNode, node), scope)

        if node_type == "TemplateLiteral":
            n = cast(TemplateLiteralNode, node)
            parts = [n.quasis[0].cooked]
            for expression, quasi in zip(n.expressions, n.quasis[1:]):
                parts.append(to_string(self._evaluate(expression, scope)))
                parts.append(quasi.cooked)
            return "".join(parts)

        if node_type == "ArrowFunctionExpression":
            return Closure(cast(ArrowFunctionExpressionNode, node), scope, self, self._source)

        if node_type == "NewExpression":
            return self._evaluate_new(cast(NewExpressionNode, node), scope)

        if node_type == "RegExpLiteral":
            n = cast(RegExpLiteralNode, node)
            return create_regexp(n.pattern, n.flags, self._limits)

        if node_type == "ThisExpression":
            raise SecurityError("'this' keyword is not allowed")

        # Assignments, updates, sequences, tagged templates and statements
        raise SecurityError(f"'{self._snippet(node)}' is not a valid syntax")

    def _snippet(self, node: AstNode) -> str:
        text = self._source[node.start : node.end]
        if not text:
            return node.type
        if len(text) > _SNIPPET_LENGTH:
            return text[:_SNIPPET_LENGTH] + "..."
        return text

    def _lookup(self, node: IdentifierNode, scope: Scope) -> Any:
        for frame in scope:
            if node.name in frame:
                return frame[node.name]
        raise ReferenceError(node.name, node.start, self._source or None)

    def _is_bound(self, name: str, scope: Scope) -> bool:
        return any(name in frame for frame in scope)

    # ------------------------------------------------------------
    # Member access and calls
    # ------------------------------------------------------------

    def _property_key(self, node: MemberExpressionNode, scope: Scope) -> Any:
        if node.computed:
            return to_property_key(self._evaluate(node.property, scope))
        return cast(IdentifierNode, node.property).name

    def _evaluate_member(self, node: MemberExpressionNode, scope: Scope) -> Any:
        obj = self._evaluate(node.object, scope)
        if node.optional and is_nullish(obj):
            raise _OptionalChainShortCircuit()
        return get_property(obj, self._property_key(node, scope))

    def _evaluate_arguments(self, nodes: Sequence[AstNode], scope: Scope) -> List[Any]:
        args: List[Any] = []
        for arg in nodes:
            if arg.type == "SpreadElement":
                spread = self._evaluate(cast(SpreadElementNode, arg).argument, scope)
                args.extend(iterate(spread))
            else:
                args.append(self._evaluate(arg, scope))
        check_function_arg_count(len(args), self._limits)
        return args

    def _evaluate_call(self, node: CallExpressionNode, scope: Scope) -> Any:
        callee = node.callee
        receiver: Any = UNDEFINED

        if callee.type == "MemberExpression":
            member = cast(MemberExpressionNode, callee)
            receiver = self._evaluate(member.object, scope)
            if member.optional and is_nullish(receiver):
                raise _OptionalChainShortCircuit()
            fn = get_property(receiver, self._property_key(member, scope))
        else:
            fn = self._evaluate(callee, scope)

        if node.optional and is_nullish(fn):
            raise _OptionalChainShortCircuit()

        if not is_callable(fn):
            name = describe_node(callee) or "expression"
            raise ExprTypeError(f"{name} is not a function", callee.start, self._source or None)

        args = self._evaluate_arguments(node.arguments, scope)
        return self.invoke(fn, receiver, args)

    def _evaluate_new(self, node: NewExpressionNode, scope: Scope) -> Any:
        if node.callee.type != "Identifier":
            raise SecurityError(f"'{self._snippet(node)}' is not a valid syntax")

        name = cast(IdentifierNode, node.callee).name
        constructor = self._lookup(cast(IdentifierNode, node.callee), scope)
        if constructor is FUNCTION_CONSTRUCTOR:
            raise SecurityError("Cannot use new with Function constructor")

        args = self._evaluate_arguments(node.arguments, scope)
        assert_call_allowed(constructor)

        if isinstance(constructor, JSFunction):
            return constructor.construct(args, self._builtin_context)
        if is_callable(constructor):
            return constructor(*args)
        raise ExprTypeError(f"{name} is not a constructor")

    # ------------------------------------------------------------
    # Literals
    # ------------------------------------------------------------

    def _evaluate_array(self, node: ArrayExpressionNode, scope: Scope) -> List[Any]:
        result: List[Any] = []
        for element in node.elements:
            if element is None:
                result.append(UNDEFINED)
            elif element.type == "SpreadElement":
                spread = self._evaluate(cast(SpreadElementNode, element).argument, scope)
                result.extend(iterate(spread))
            else:
                result.append(self._evaluate(element, scope))
            check_array_length(len(result), self._limits)
        return result

    def _evaluate_object(self, node: ObjectExpressionNode, scope: Scope) -> dict:
        result: dict = {}
        for prop in node.properties:
            if prop.type == "SpreadElement":
                source = self._evaluate(cast(SpreadElementNode, prop).argument, scope)
                if is_nullish(source):
                    continue
                for key in own_keys(source):
                    result[key] = get_property(source, key)
                continue

            prop = cast(PropertyNode, prop)
            if prop.computed:
                key = to_property_key(self._evaluate(prop.key, scope))
            elif prop.key.type == "Identifier":
                key = cast(IdentifierNode, prop.key).name
            else:
                key = to_property_key(cast(LiteralNode, prop.key).value)

            if key == "__proto__":
                raise SecurityError("Access to '__proto__' is not allowed")
            result[key] = self._evaluate(prop.value, scope)
        return result

    # ------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------

    def _evaluate_logical(self, node: LogicalExpressionNode, scope: Scope) -> Any:
        left = self._evaluate(node.left, scope)

        if node.operator == "&&":
            return self._evaluate(node.right, scope) if to_boolean(left) else left

        if node.operator == "||":
            return left if to_boolean(left) else self._evaluate(node.right, scope)

        # ??
        return self._evaluate(node.right, scope) if is_nullish(left) else left

    def _evaluate_unary(self, node: UnaryExpressionNode, scope: Scope) -> Any:
        operator = node.operator

        if operator == "delete":
            raise SecurityError("Delete operator is not allowed")

        if operator == "typeof":
            argument = node.argument
            if argument.type == "Identifier" and not self._is_bound(
                cast(IdentifierNode, argument).name, scope
            ):
                return "undefined"
            return typeof(self._evaluate(argument, scope))

        value = self._evaluate(node.argument, scope)

        if operator == "void":
            return UNDEFINED

        if operator == "!":
            return not to_boolean(value)

        if operator == "+":
            return to_number(value)

        numeric = to_numeric(value)

        if operator == "-":
            if isinstance(numeric, JSBigInt):
                return JSBigInt(-numeric.value)
            if numeric == 0 and isinstance(numeric, int):
                return -0.0
            return normalize_number(-numeric)

        if operator == "~":
            if isinstance(numeric, JSBigInt):
                return JSBigInt(~numeric.value)
            return ~to_int32(numeric)

        raise SecurityError(f"'{self._snippet(node)}' is not a valid syntax")

    def _evaluate_binary(self, operator: str, left: Any, right: Any) -> Any:
        if operator == "===":
            return strict_equals(left, right)
        if operator == "!==":
            return not strict_equals(left, right)
        if operator == "==":
            return loose_equals(left, right)
        if operator == "!=":
            return not loose_equals(left, right)

        if operator in ("<", ">", "<=", ">="):
            return _compare(operator, left, right)

        if operator == "in":
            return has_property(right, to_property_key(left))

        if operator == "instanceof":
            return instance_of(left, right)

        if operator == "+":
            left = to_primitive(left)
            right = to_primitive(right)
            if isinstance(left, str) or isinstance(right, str):
                return to_string(left) + to_string(right)

        left = to_numeric(left)
        right = to_numeric(right)
        left_big = isinstance(left, JSBigInt)
        if left_big != isinstance(right, JSBigInt):
            raise ExprTypeError("Cannot mix BigInt and other types, use explicit conversions")
        if left_big:
            return _bigint_binary(operator, left.value, right.value)
        return _number_binary(operator, left, right)


def _compare(operator: str, left: Any, right: Any) -> bool:
    """Relational comparison; any comparison involving NaN is false."""
    left = to_primitive(left, "number")
    right = to_primitive(right, "number")

    if isinstance(left, str) and isinstance(right, str):
        a: Any = left
        b: Any = right
    else:
        a = _comparable(left, right)
        b = _comparable(right, left)
        if a is None or b is None:
            return False

    if operator == "<":
        return a < b
    if operator == ">":
        return a > b
    if operator == "<=":
        return a <= b
    return a >= b


def _comparable(value: Any, other: Any) -> Any:
    """Numeric form of a relational operand, or None when the comparison is undefined."""
    if isinstance(value, str) and isinstance(other, JSBigInt):
        return string_to_bigint(value)
    numeric = to_numeric(value)
    if isinstance(numeric, JSBigInt):
        return numeric.value
    if isinstance(numeric, float) and math.isnan(numeric):
        return None
    return numeric


def _to_int32_range(value: int) -> int:
    value &= 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def _number_binary(operator: str, left: Any, right: Any) -> Any:
    if operator == "+":
        return normalize_number(left + right)
    if operator == "-":
        return normalize_number(left - right)
    if operator == "*":
        return normalize_number(left * right)
    if operator == "/":
        return _number_divide(left, right)
    if operator == "%":
        return _number_remainder(left, right)
    if operator == "**":
        return number_pow(left, right)

    if operator == "&":
        return to_int32(left) & to_int32(right)
    if operator == "|":
        return to_int32(left) | to_int32(right)
    if operator == "^":
        return to_int32(left) ^ to_int32(right)
    if operator == "<<":
        return _to_int32_range(to_int32(left) << (to_uint32(right) & 31))
    if operator == ">>":
        return to_int32(left) >> (to_uint32(right) & 31)
    if operator == ">>>":
        return to_uint32(left) >> (to_uint32(right) & 31)

    raise SecurityError(f"Unsupported operator '{operator}'")


def _number_divide(left: Any, right: Any) -> Any:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        sign = math.copysign(1.0, left) * math.copysign(1.0, right)
        return math.copysign(math.inf, sign)
    if math.isinf(left) and math.isinf(right):
        return math.nan
    return normalize_number(left / right)


def _number_remainder(left: Any, right: Any) -> Any:
    if right == 0 or math.isnan(left) or math.isnan(right) or math.isinf(left):
        return math.nan
    if math.isinf(right):
        return left
    result = math.fmod(left, right)
    if result == 0:
        return math.copysign(0.0, left) if math.copysign(1.0, left) < 0 else 0
    return normalize_number(result)


def _check_bigint_bits(bits: int) -> None:
    if bits > MAX_BIGINT_BITS:
        raise BuiltinError("BigInt", "Maximum BigInt size exceeded", error_name="RangeError")


def _bigint_binary(operator: str, left: int, right: int) -> JSBigInt:
    if operator == "+":
        result = left + right
    elif operator == "-":
        result = left - right
    elif operator == "*":
        _check_bigint_bits(left.bit_length() + right.bit_length())
        result = left * right
    elif operator in ("/", "%"):
        if right == 0:
            raise BuiltinError("BigInt", "Division by zero", error_name="RangeError")
        quotient = abs(left) // abs(right)
        if operator == "/":
            result = quotient if (left < 0) == (right < 0) else -quotient
        else:
            remainder = abs(left) - quotient * abs(right)
            result = -remainder if left < 0 else remainder
    elif operator == "**":
        if right < 0:
            raise BuiltinError("BigInt", "Exponent must be non-negative", error_name="RangeError")
        if abs(left) > 1:
            _check_bigint_bits(left.bit_length() * right)
        result = left**right
    elif operator == "&":
        result = left & right
    elif operator == "|":
        result = left | right
    elif operator == "^":
        result = left ^ right
    elif operator == "<<":
        if right > 0 and left != 0:
            _check_bigint_bits(left.bit_length() + right)
        result = left << right if right >= 0 else left >> -right
    elif operator == ">>":
        if right < 0 and left != 0:
            _check_bigint_bits(left.bit_length() - right)
        result = left >> right if right >= 0 else left << -right
    elif operator == ">>>":
        raise ExprTypeError("BigInts have no unsigned right shift, use >> instead")
    else:
        raise SecurityError(f"Unsupported operator '{operator}'")

    return JSBigInt(result)


def evaluate_expression(
    source: str,
    context: Optional[Mapping[str, Any]] = None,
    limits: Optional[ExpressionLimits] = None,
) -> Any:
    """
    Parses and evaluates a single expression.

    Args:
        source: The expression text
        context: Variable bindings available to the expression
        limits: Optional expression limits

    Returns:
        The value of the expression

    Raises:
        ExpressionError: If parsing or evaluation fails
    """
    return Evaluator(context, limits).evaluate(source)


def try_evaluate(
    source: str,
    context: Optional[Mapping[str, Any]] = None,
    limits: Optional[ExpressionLimits] = None,
) -> EvaluationResult:
    """
    Evaluates an expression and reports failure in the result instead of raising.

    Only expression errors are captured; errors raised by host callables
    passed in the context propagate.
    """
    try:
        value = evaluate_expression(source, context, limits)
        return EvaluationResult(value=value, success=True)
    except ExpressionError as error:
        return EvaluationResult(value=None, success=False, error=str(error))
