# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Base visitor over SyntaxNode trees.

NodeVisitor exposes one handler per NodeKind. The base handlers simply
descend into children; subclasses override the kinds they care about.

Every NodeKind must have a handler named ``visit_<kind value>``. The check
runs when a visitor class is defined, so adding a kind without a handler
fails at import time instead of silently falling through.
"""

from typing import Callable, Dict

from rubyprint.analyzers.syntax import NodeKind, SyntaxNode


def handler_name(kind: NodeKind) -> str:
    return f"visit_{kind.value}"


class NodeVisitor:
    """Dispatches each node to the handler for its kind."""

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        _check_handlers(cls)

    def __init__(self) -> None:
        self._handlers: Dict[NodeKind, Callable[[SyntaxNode], None]] = {
            kind: getattr(self, handler_name(kind)) for kind in NodeKind
        }

    def visit(self, node: SyntaxNode) -> None:
        self._handlers[node.kind](node)

    def generic_visit(self, node: SyntaxNode) -> None:
        """Visit all children in source order."""
        for child in node.children:
            self.visit(child)

    # One handler per NodeKind. Defaults descend into children.

    def visit_program(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_body(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_class(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_module(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_singleton_class(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_method(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_singleton_method(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_call(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_identifier(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_constant(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_scope_resolution(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_assignment(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_string(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_symbol(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_parameters(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_error(self, node: SyntaxNode) -> None:
        self.generic_visit(node)

    def visit_other(self, node: SyntaxNode) -> None:
        self.generic_visit(node)


def _check_handlers(cls: type) -> None:
    missing = [kind.value for kind in NodeKind if not callable(getattr(cls, handler_name(kind), None))]
    if missing:
        raise TypeError(f"{cls.__name__} has no handler for node kinds: {', '.join(missing)}")


_check_handlers(NodeVisitor)
