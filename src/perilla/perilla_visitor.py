"""
Read-only traversal of Perilla ASTs.

Backends (code generators, interpreters, pretty printers) subclass
`ASTVisitor` and implement one `visit_<kind>` method per node kind they
understand:

    visit_number, visit_variable, visit_binary, visit_call,
    visit_prototype, visit_function

`visit` dispatches on `node.kind`. Kinds without a handler go to
`generic_visit`, which raises NotImplementedError. Missing children (None
slots left behind by syntax errors) go to `visit_missing`.

`walk` iterates a tree in pre-order without recursion.

Example:
    >>> class Names(ASTVisitor):
    ...     def visit_variable(self, node):
    ...         return node.name
    >>> Names().visit(VariableReference("x"))
    'x'
"""

from collections.abc import Iterator
from typing import Any

from perilla.perilla_ast import NODE_TYPES, ASTNode


class ASTVisitor:
    """Dispatches AST nodes to `visit_<kind>` methods."""

    def visit(self, node: ASTNode | None) -> Any:
        if node is None:
            return self.visit_missing()
        if not isinstance(node, NODE_TYPES):
            raise TypeError(f"Expected a Perilla AST node, got {type(node).__name__}")
        method = getattr(self, f"visit_{node.kind}", None)
        if method is None:
            return self.generic_visit(node)
        return method(node)

    def visit_all(self, nodes: list[ASTNode]) -> list[Any]:
        return [self.visit(node) for node in nodes]

    def visit_missing(self) -> Any:
        return None

    def generic_visit(self, node: ASTNode) -> Any:
        raise NotImplementedError(
            f"No visitor method for node kind '{node.kind}' "
            f"(line {node.line}, col {node.col})"
        )


def walk(node: ASTNode) -> Iterator[ASTNode]:
    """Yields `node` and all its descendants in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children()))


__all__ = ["ASTVisitor", "walk"]
