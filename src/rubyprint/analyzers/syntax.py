# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Parser-independent syntax tree consumed by fingerprint extraction.

Parse adapters translate the grammar's concrete tree into SyntaxNode values.
Each node is tagged with exactly one NodeKind; the kinds form a closed set
and NodeVisitor (see visitor.py) requires a handler for every one of them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from rubyprint.models import Location, ParseDiagnostic


class NodeKind(Enum):
    """Closed set of node variants the fingerprint builder distinguishes."""

    PROGRAM = "program"
    BODY = "body"
    CLASS = "class"
    MODULE = "module"
    SINGLETON_CLASS = "singleton_class"
    METHOD = "method"
    SINGLETON_METHOD = "singleton_method"
    CALL = "call"
    IDENTIFIER = "identifier"
    CONSTANT = "constant"
    SCOPE_RESOLUTION = "scope_resolution"
    ASSIGNMENT = "assignment"
    STRING = "string"
    SYMBOL = "symbol"
    PARAMETERS = "parameters"
    ERROR = "error"
    OTHER = "other"


# Grammar node types (tree-sitter-ruby) mapped onto node kinds.
# Anything not listed is NodeKind.OTHER.
GRAMMAR_KINDS: Dict[str, NodeKind] = {
    "program": NodeKind.PROGRAM,
    "body_statement": NodeKind.BODY,
    "class": NodeKind.CLASS,
    "module": NodeKind.MODULE,
    "singleton_class": NodeKind.SINGLETON_CLASS,
    "method": NodeKind.METHOD,
    "singleton_method": NodeKind.SINGLETON_METHOD,
    "call": NodeKind.CALL,
    "identifier": NodeKind.IDENTIFIER,
    "constant": NodeKind.CONSTANT,
    "scope_resolution": NodeKind.SCOPE_RESOLUTION,
    "assignment": NodeKind.ASSIGNMENT,
    "operator_assignment": NodeKind.ASSIGNMENT,
    "string": NodeKind.STRING,
    "simple_symbol": NodeKind.SYMBOL,
    "delimited_symbol": NodeKind.SYMBOL,
    "method_parameters": NodeKind.PARAMETERS,
    "ERROR": NodeKind.ERROR,
}

# Named fields the builder looks up on nodes.
FIELD_NAMES: Tuple[str, ...] = (
    "name",
    "superclass",
    "body",
    "parameters",
    "receiver",
    "method",
    "arguments",
    "block",
    "scope",
    "left",
    "right",
    "value",
    "object",
)


def kind_for(grammar_type: str) -> NodeKind:
    return GRAMMAR_KINDS.get(grammar_type, NodeKind.OTHER)


@dataclass
class SyntaxNode:
    """A node of the converted syntax tree.

    Attributes:
        kind: The node variant.
        grammar_type: Node type name in the underlying grammar.
        location: Source position (offsets may be None).
        children: Named children in source order.
        fields: Named-field children (subset of children).
        source: The whole parsed text, shared by every node of a tree.
        byte_range: Start and end byte of the node within source.
    """

    kind: NodeKind
    grammar_type: str
    location: Location
    children: List["SyntaxNode"] = field(default_factory=list)
    fields: Dict[str, "SyntaxNode"] = field(default_factory=dict)
    source: bytes = field(default=b"", repr=False, compare=False)
    byte_range: Tuple[int, int] = (0, 0)

    @property
    def text(self) -> str:
        """Source text covered by the node."""
        start, end = self.byte_range
        return self.source[start:end].decode("utf-8", errors="replace")

    def get(self, name: str) -> Optional["SyntaxNode"]:
        """Return the child stored under a named field, or None."""
        return self.fields.get(name)

    @property
    def line(self) -> int:
        return self.location.start_line

    def __repr__(self) -> str:
        return f"SyntaxNode({self.kind.value}:{self.grammar_type}@{self.line})"


@dataclass(frozen=True)
class CommentSpan:
    """A raw comment as reported by the parser, marker included."""

    text: str
    start_line: int
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None


@dataclass
class ParseResult:
    """Outcome of parsing one source text.

    Attributes:
        success: True when the parser reported no problems.
        diagnostics: Problems found, in source order.
        tree: Root node, possibly partial. None only when the adapter
            cannot produce any tree (strict adapter on invalid input).
        comments: Comments with their positions.
        source: The parsed text.
        scoped_visibility: False when visibility must be inferred textually
            instead of from type-body scoping.
    """

    success: bool
    diagnostics: List[ParseDiagnostic]
    tree: Optional[SyntaxNode]
    comments: List[CommentSpan]
    source: str = ""
    scoped_visibility: bool = True
