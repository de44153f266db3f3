"""
Defines the abstract syntax tree (AST) node classes for the Perilla language.

Classes:
    ASTNode:
        Common base. Every node exposes `kind`, its source position, its
        direct `children()` and a `to_dict()` serialisation.

    NumberLiteral, VariableReference, BinaryExpression, CallExpression:
        The expression variants.

    Prototype, FunctionDefinition:
        Declarations. An `extern` produces a bare Prototype; `def` and every
        top-level expression produce a FunctionDefinition.

    ASTDict:
        TypedDict shape produced by `to_dict()`, suitable for JSON output.

Nodes are frozen dataclasses: once the parser builds one it cannot be changed,
and each child belongs to exactly one parent. After a syntax error a child
slot may hold None; consumers decide what a missing child means.

Equality is structural and ignores `line`/`col`, so tests and backends can
compare trees built from different source layouts.

Example:
    node = BinaryExpression("+", NumberLiteral(1.0), VariableReference("x"))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, TypedDict, Union


class ASTDict(TypedDict, total=False):
    """
    Serialised form of an AST node.

    Fields:
        kind (str): The node kind (e.g. "binary", "call", "function").
        value (Any): The node's scalar payload (number, name, operator), if any.
        line (int): Line number where the node starts.
        col (int): Column number where the node starts.
        params (list[str]): Parameter names of a prototype.
        children (list[ASTDict | None]): Child nodes in source order.
    """

    kind: str
    value: Any
    line: int
    col: int
    params: list[str]
    children: list["ASTDict | None"]


@dataclass(frozen=True)
class ASTNode:
    """Base class for every Perilla AST node."""

    kind: ClassVar[str] = "node"

    line: int = field(default=0, compare=False, kw_only=True)
    col: int = field(default=0, compare=False, kw_only=True)

    def children(self) -> tuple["ASTNode", ...]:
        """Returns the direct child nodes, skipping missing ones."""
        return ()

    def _value(self) -> Any:
        return None

    def _child_slots(self) -> tuple["ASTNode | None", ...]:
        return ()

    def _header(self) -> ASTDict:
        d: ASTDict = {
            "kind": self.kind,
            "value": self._value(),
            "line": self.line,
            "col": self.col,
        }
        return d

    def to_dict(self) -> ASTDict:
        """Serialise this subtree without recursing, so long operator chains are safe."""
        root = self._header()
        pending: list[tuple[ASTNode, ASTDict]] = [(self, root)]
        while pending:
            node, d = pending.pop()
            children: list[ASTDict | None] = []
            for child in node._child_slots():
                if child is None:
                    children.append(None)
                    continue
                child_dict = child._header()
                children.append(child_dict)
                pending.append((child, child_dict))
            d["children"] = children
        return root


@dataclass(frozen=True)
class NumberLiteral(ASTNode):
    kind: ClassVar[str] = "number"

    value: float

    def _value(self) -> Any:
        return self.value


@dataclass(frozen=True)
class VariableReference(ASTNode):
    kind: ClassVar[str] = "variable"

    name: str

    def _value(self) -> Any:
        return self.name


@dataclass(frozen=True)
class BinaryExpression(ASTNode):
    """`left operator right`, where `operator` is a single character."""

    kind: ClassVar[str] = "binary"

    operator: str
    left: Expression | None
    right: Expression | None

    def _value(self) -> Any:
        return self.operator

    def _child_slots(self) -> tuple[ASTNode | None, ...]:
        return (self.left, self.right)

    def children(self) -> tuple[ASTNode, ...]:
        return tuple(c for c in (self.left, self.right) if c is not None)


@dataclass(frozen=True)
class CallExpression(ASTNode):
    kind: ClassVar[str] = "call"

    callee: str
    arguments: tuple[Expression, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence but always store a tuple.
        object.__setattr__(self, "arguments", tuple(self.arguments))

    def _value(self) -> Any:
        return self.callee

    def _child_slots(self) -> tuple[ASTNode | None, ...]:
        return self.arguments

    def children(self) -> tuple[ASTNode, ...]:
        return self.arguments


@dataclass(frozen=True)
class Prototype(ASTNode):
    """A function signature: a name and its parameter names.

    Parameter names are not checked for duplicates.
    """

    kind: ClassVar[str] = "prototype"

    name: str
    parameters: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", tuple(self.parameters))

    @property
    def arity(self) -> int:
        return len(self.parameters)

    def _value(self) -> Any:
        return self.name

    def _header(self) -> ASTDict:
        d = super()._header()
        d["params"] = list(self.parameters)
        return d


@dataclass(frozen=True)
class FunctionDefinition(ASTNode):
    """A prototype plus its single-expression body.

    Top-level expressions are wrapped into an anonymous FunctionDefinition
    whose prototype has no parameters; `is_anonymous` marks those.
    """

    kind: ClassVar[str] = "function"

    prototype: Prototype | None
    body: Expression | None
    is_anonymous: bool = False

    @property
    def name(self) -> str | None:
        return self.prototype.name if self.prototype is not None else None

    def _value(self) -> Any:
        return self.name

    def _child_slots(self) -> tuple[ASTNode | None, ...]:
        return (self.prototype, self.body)

    def children(self) -> tuple[ASTNode, ...]:
        return tuple(c for c in (self.prototype, self.body) if c is not None)


Expression = Union[NumberLiteral, VariableReference, BinaryExpression, CallExpression]
"""Any node that can appear where an expression is expected."""

TopLevel = Union[Prototype, FunctionDefinition]
"""Any node the parser hands back from `parse()`."""

NODE_TYPES: tuple[type[ASTNode], ...] = (
    NumberLiteral,
    VariableReference,
    BinaryExpression,
    CallExpression,
    Prototype,
    FunctionDefinition,
)

__all__ = [
    "NODE_TYPES",
    "ASTDict",
    "ASTNode",
    "BinaryExpression",
    "CallExpression",
    "Expression",
    "FunctionDefinition",
    "NumberLiteral",
    "Prototype",
    "TopLevel",
    "VariableReference",
]
