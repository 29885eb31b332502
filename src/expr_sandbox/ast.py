"""
Abstract Syntax Tree (AST) node types for the expression language.

The node kinds and field names follow ESTree, so a reader familiar with
any ECMAScript parser will recognise the shape. The AST is produced by the
parser and consumed by the evaluator; nodes are immutable.
"""

from abc import ABC
from dataclasses import dataclass, fields
from typing import Any, Iterator, Literal, Optional, Sequence, Union

# ============================================================
# Operator Types
# ============================================================

UnaryOperator = Literal["-", "+", "!", "~", "typeof", "void", "delete"]

UpdateOperator = Literal["++", "--"]

BinaryOperator = Literal[
    "+",
    "-",
    "*",
    "/",
    "%",
    "**",
    "==",
    "!=",
    "===",
    "!==",
    "<",
    "<=",
    ">",
    ">=",
    "&",
    "|",
    "^",
    "<<",
    ">>",
    ">>>",
    "in",
    "instanceof",
]

LogicalOperator = Literal["&&", "||", "??"]


# ============================================================
# AST Node Types
# ============================================================


@dataclass(frozen=True)
class AstNodeBase(ABC):
    """Base class for all AST nodes."""

    start: int
    """Offset of the first character of the node in the source."""

    end: int
    """Offset one past the last character of the node in the source."""

    @property
    def position(self) -> int:
        return self.start


@dataclass(frozen=True)
class LiteralNode(AstNodeBase):
    """Number, string, boolean, null or BigInt literal."""

    value: Any
    raw: str

    @property
    def type(self) -> Literal["Literal"]:
        return "Literal"


@dataclass(frozen=True)
class RegExpLiteralNode(AstNodeBase):
    """Regular expression literal (/pattern/flags)."""

    pattern: str
    flags: str

    @property
    def type(self) -> Literal["RegExpLiteral"]:
        return "RegExpLiteral"


@dataclass(frozen=True)
class IdentifierNode(AstNodeBase):
    """Identifier node."""

    name: str

    @property
    def type(self) -> Literal["Identifier"]:
        return "Identifier"


@dataclass(frozen=True)
class ThisExpressionNode(AstNodeBase):
    """The `this` keyword."""

    @property
    def type(self) -> Literal["ThisExpression"]:
        return "ThisExpression"


@dataclass(frozen=True)
class SpreadElementNode(AstNodeBase):
    """Spread element (...argument) in arrays, objects and call arguments."""

    argument: "AstNode"

    @property
    def type(self) -> Literal["SpreadElement"]:
        return "SpreadElement"


@dataclass(frozen=True)
class ArrayExpressionNode(AstNodeBase):
    """Array literal node. A None element is a hole ([1, , 3])."""

    elements: Sequence[Optional["AstNode"]]

    @property
    def type(self) -> Literal["ArrayExpression"]:
        return "ArrayExpression"


@dataclass(frozen=True)
class PropertyNode(AstNodeBase):
    """Key/value pair inside an object literal."""

    key: "AstNode"
    value: "AstNode"
    computed: bool = False
    shorthand: bool = False

    @property
    def type(self) -> Literal["Property"]:
        return "Property"


@dataclass(frozen=True)
class ObjectExpressionNode(AstNodeBase):
    """Object literal node."""

    properties: Sequence[Union[PropertyNode, SpreadElementNode]]

    @property
    def type(self) -> Literal["ObjectExpression"]:
        return "ObjectExpression"


@dataclass(frozen=True)
class TemplateElementNode(AstNodeBase):
    """Literal text segment of a template literal."""

    cooked: str
    raw: str
    tail: bool = False

    @property
    def type(self) -> Literal["TemplateElement"]:
        return "TemplateElement"


@dataclass(frozen=True)
class TemplateLiteralNode(AstNodeBase):
    """Backtick template literal. quasis has one more entry than expressions."""

    quasis: Sequence[TemplateElementNode]
    expressions: Sequence["AstNode"]

    @property
    def type(self) -> Literal["TemplateLiteral"]:
        return "TemplateLiteral"


@dataclass(frozen=True)
class TaggedTemplateExpressionNode(AstNodeBase):
    """tag`...` expression. Parsed so it can be rejected with a clear message."""

    tag: "AstNode"
    quasi: TemplateLiteralNode

    @property
    def type(self) -> Literal["TaggedTemplateExpression"]:
        return "TaggedTemplateExpression"


@dataclass(frozen=True)
class UnaryExpressionNode(AstNodeBase):
    """Prefix unary operator node."""

    operator: UnaryOperator
    argument: "AstNode"

    @property
    def type(self) -> Literal["UnaryExpression"]:
        return "UnaryExpression"


@dataclass(frozen=True)
class UpdateExpressionNode(AstNodeBase):
    """++/-- node. Always rejected by the evaluator."""

    operator: UpdateOperator
    argument: "AstNode"
    prefix: bool

    @property
    def type(self) -> Literal["UpdateExpression"]:
        return "UpdateExpression"


@dataclass(frozen=True)
class BinaryExpressionNode(AstNodeBase):
    """Binary operator node."""

    operator: BinaryOperator
    left: "AstNode"
    right: "AstNode"

    @property
    def type(self) -> Literal["BinaryExpression"]:
        return "BinaryExpression"


@dataclass(frozen=True)
class LogicalExpressionNode(AstNodeBase):
    """Short-circuiting operator node (&&, ||, ??)."""

    operator: LogicalOperator
    left: "AstNode"
    right: "AstNode"

    @property
    def type(self) -> Literal["LogicalExpression"]:
        return "LogicalExpression"


@dataclass(frozen=True)
class AssignmentExpressionNode(AstNodeBase):
    """Assignment node. Always rejected by the evaluator."""

    operator: str
    left: "AstNode"
    right: "AstNode"

    @property
    def type(self) -> Literal["AssignmentExpression"]:
        return "AssignmentExpression"


@dataclass(frozen=True)
class ConditionalExpressionNode(AstNodeBase):
    """Ternary operator node (test ? consequent : alternate)."""

    test: "AstNode"
    consequent: "AstNode"
    alternate: "AstNode"

    @property
    def type(self) -> Literal["ConditionalExpression"]:
        return "ConditionalExpression"


@dataclass(frozen=True)
class MemberExpressionNode(AstNodeBase):
    """Member access node (obj.prop, obj[expr], obj?.prop)."""

    object: "AstNode"
    property: "AstNode"
    computed: bool = False
    optional: bool = False

    @property
    def type(self) -> Literal["MemberExpression"]:
        return "MemberExpression"


@dataclass(frozen=True)
class CallExpressionNode(AstNodeBase):
    """Function call node (callee(args), callee?.(args))."""

    callee: "AstNode"
    arguments: Sequence["AstNode"]
    optional: bool = False

    @property
    def type(self) -> Literal["CallExpression"]:
        return "CallExpression"


@dataclass(frozen=True)
class NewExpressionNode(AstNodeBase):
    """Constructor call node (new Callee(args))."""

    callee: "AstNode"
    arguments: Sequence["AstNode"]

    @property
    def type(self) -> Literal["NewExpression"]:
        return "NewExpression"


@dataclass(frozen=True)
class ArrowFunctionExpressionNode(AstNodeBase):
    """Arrow function with identifier parameters and an expression body."""

    params: Sequence[IdentifierNode]
    body: "AstNode"

    @property
    def type(self) -> Literal["ArrowFunctionExpression"]:
        return "ArrowFunctionExpression"


@dataclass(frozen=True)
class ChainExpressionNode(AstNodeBase):
    """Wrapper around a member/call chain that contains optional links."""

    expression: "AstNode"

    @property
    def type(self) -> Literal["ChainExpression"]:
        return "ChainExpression"


@dataclass(frozen=True)
class SequenceExpressionNode(AstNodeBase):
    """Comma expression. Always rejected by the evaluator."""

    expressions: Sequence["AstNode"]

    @property
    def type(self) -> Literal["SequenceExpression"]:
        return "SequenceExpression"


@dataclass(frozen=True)
class StatementNode(AstNodeBase):
    """
    A statement (`with`, `if`, `for`, ...) where an expression was expected.

    The parser does not descend into statements; the node spans the rest of
    the source so the evaluator can quote it back when rejecting it.
    """

    keyword: str

    @property
    def type(self) -> Literal["Statement"]:
        return "Statement"


# Union type for all AST nodes
AstNode = Union[
    LiteralNode,
    RegExpLiteralNode,
    IdentifierNode,
    ThisExpressionNode,
    SpreadElementNode,
    ArrayExpressionNode,
    PropertyNode,
    ObjectExpressionNode,
    TemplateElementNode,
    TemplateLiteralNode,
    TaggedTemplateExpressionNode,
    UnaryExpressionNode,
    UpdateExpressionNode,
    BinaryExpressionNode,
    LogicalExpressionNode,
    AssignmentExpressionNode,
    ConditionalExpressionNode,
    MemberExpressionNode,
    CallExpressionNode,
    NewExpressionNode,
    ArrowFunctionExpressionNode,
    ChainExpressionNode,
    SequenceExpressionNode,
    StatementNode,
]


# ============================================================
# AST Utilities
# ============================================================


def iter_child_nodes(node: AstNode) -> Iterator[AstNode]:
    """Yields the direct children of a node in field order."""
    for field in fields(node):
        value = getattr(node, field.name)
        if isinstance(value, AstNodeBase):
            yield value  # type: ignore[misc]
        elif isinstance(value, (list, tuple)):
            for item in value:
                if isinstance(item, AstNodeBase):
                    yield item  # type: ignore[misc]


def count_ast_nodes(node: AstNode) -> int:
    """Counts the total number of nodes in an AST."""
    count = 0
    pending = [node]
    while pending:
        current = pending.pop()
        count += 1
        pending.extend(iter_child_nodes(current))
    return count


def calculate_ast_depth(node: AstNode) -> int:
    """Calculates the maximum depth of an AST."""
    max_depth = 0
    pending = [(node, 1)]
    while pending:
        current, depth = pending.pop()
        max_depth = max(max_depth, depth)
        pending.extend((child, depth + 1) for child in iter_child_nodes(current))
    return max_depth


def describe_node(node: AstNode) -> Optional[str]:
    """
    Renders a callee-like node the way a JavaScript engine names it in
    "x is not a function" messages.

    Returns None for node kinds that have no short rendering.
    """
    if node.type == "Identifier":
        return node.name  # type: ignore[union-attr]

    if node.type == "Literal":
        return node.raw  # type: ignore[union-attr]

    if node.type == "ArrayExpression":
        parts = []
        for element in node.elements:  # type: ignore[union-attr]
            rendered = describe_node(element) if element is not None else ""
            parts.append(rendered if rendered is not None else "")
        return "[" + ",".join(parts) + "]"

    if node.type == "ObjectExpression":
        if not node.properties:  # type: ignore[union-attr]
            return "{}"
        return "{(intermediate value)}"

    if node.type == "MemberExpression":
        accessor = describe_node(node.object)  # type: ignore[union-attr]
        prop = describe_node(node.property)  # type: ignore[union-attr]
        if accessor is None or prop is None:
            return None
        if node.computed:  # type: ignore[union-attr]
            return f"{accessor}[{prop}]"
        separator = "?." if node.optional else "."  # type: ignore[union-attr]
        return f"{accessor}{separator}{prop}"

    if node.type == "ChainExpression":
        return describe_node(node.expression)  # type: ignore[union-attr]

    return None


def ast_to_string(node: AstNode, indent: int = 0) -> str:
    """Returns a human-readable representation of an AST node for debugging."""
    prefix = "  " * indent

    if node.type == "Literal":
        return f"{prefix}Literal: {node.raw}"  # type: ignore[union-attr]

    if node.type == "RegExpLiteral":
        return f"{prefix}RegExp: /{node.pattern}/{node.flags}"  # type: ignore[union-attr]

    if node.type == "Identifier":
        return f"{prefix}Identifier: {node.name}"  # type: ignore[union-attr]

    label = node.type
    operator = getattr(node, "operator", None)
    if operator is not None:
        label = f"{label}: {operator}"
    elif node.type == "MemberExpression" and node.optional:  # type: ignore[union-attr]
        label = f"{label}: ?."
    elif node.type == "TemplateElement":
        return f'{prefix}TemplateElement: "{node.raw}"'  # type: ignore[union-attr]

    children = [ast_to_string(child, indent + 1) for child in iter_child_nodes(node)]
    if not children:
        return f"{prefix}{label}"
    return f"{prefix}{label}\n" + "\n".join(children)
