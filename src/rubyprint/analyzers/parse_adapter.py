# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Parse adapters turning Ruby source text into SyntaxNode trees.

Two adapters share the tree-sitter Ruby grammar:
- TreeSitterAdapter: error tolerant. Invalid input still yields the best
  partial tree plus diagnostics. Comments keep exact byte offsets.
- StrictAdapter: reduced fidelity. Any syntax error fails the whole parse
  (no tree), comments are dropped, locations carry line ranges only, and
  visibility has to be inferred textually by the builder.

Adapters never raise on malformed input; one file mid-edit must not stop the
analysis of the rest of the project.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

import tree_sitter_ruby
from tree_sitter import Language, Node, Parser

from rubyprint.analyzers.syntax import (
    FIELD_NAMES,
    CommentSpan,
    NodeKind,
    ParseResult,
    SyntaxNode,
    kind_for,
)
from rubyprint.models import Location, ParseDiagnostic

logger = logging.getLogger(__name__)

RUBY_LANGUAGE = Language(tree_sitter_ruby.language())

DEFAULT_MAX_TREE_DEPTH = 200


class ParseAdapter(ABC):
    """Contract between the fingerprint builder and a concrete parser."""

    @abstractmethod
    def parse(self, text: str) -> ParseResult:
        """Parse source text.

        Must not raise for malformed input. On failure, return
        success=False with at least one diagnostic.
        """
        pass

    @abstractmethod
    def name(self) -> str:
        """Return adapter name for logging and configuration."""
        pass


class TreeSitterAdapter(ParseAdapter):
    """Error-tolerant adapter backed by tree-sitter.

    A new tree-sitter Parser is created per call; parser instances are not
    safe to share between threads.
    """

    report_offsets = True

    def __init__(self, max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH):
        """Initialize the adapter.

        Args:
            max_tree_depth: Subtrees nested deeper than this are dropped
                with a warning (default: 200).
        """
        self.max_tree_depth = max_tree_depth

    def name(self) -> str:
        return "tree_sitter"

    def parse(self, text: str) -> ParseResult:
        source = text.encode("utf-8", errors="replace")
        try:
            tree = Parser(RUBY_LANGUAGE).parse(source)
        except Exception as e:
            logger.error(f"Unexpected parser failure: {e}")
            return ParseResult(
                success=False,
                diagnostics=[ParseDiagnostic(line=1, message=f"parser failure: {e}")],
                tree=self._empty_program(source),
                comments=[],
                source=text,
            )

        converter = _TreeConverter(source, self.max_tree_depth, self.report_offsets)
        root = converter.convert(tree.root_node)
        if tree.root_node.has_error and not converter.diagnostics:
            # Error nodes below the depth limit are not visited
            converter.diagnostics.append(ParseDiagnostic(line=1, message="syntax error"))

        return ParseResult(
            success=not converter.diagnostics,
            diagnostics=converter.diagnostics,
            tree=root,
            comments=converter.comments,
            source=text,
        )

    def _empty_program(self, source: bytes) -> SyntaxNode:
        return SyntaxNode(
            kind=NodeKind.PROGRAM,
            grammar_type="program",
            location=Location(start_line=1, end_line=1),
            source=source,
        )


class StrictAdapter(TreeSitterAdapter):
    """Reduced-fidelity adapter.

    - Fails outright (tree=None) on any syntax error
    - Discards comments
    - Reports line ranges only, no byte offsets
    - Leaves visibility to the builder's textual heuristic
    """

    report_offsets = False

    def name(self) -> str:
        return "strict"

    def parse(self, text: str) -> ParseResult:
        result = super().parse(text)

        if not result.success:
            first = result.diagnostics[0]
            return ParseResult(
                success=False,
                diagnostics=[
                    ParseDiagnostic(line=first.line, message=f"fatal: {first.message}")
                ],
                tree=None,
                comments=[],
                source=text,
                scoped_visibility=False,
            )

        return ParseResult(
            success=True,
            diagnostics=[],
            tree=result.tree,
            comments=[],
            source=text,
            scoped_visibility=False,
        )


ADAPTERS: Dict[str, Type[TreeSitterAdapter]] = {
    "tree_sitter": TreeSitterAdapter,
    "strict": StrictAdapter,
}


def create_adapter(name: str, max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH) -> ParseAdapter:
    """Create a parse adapter by configuration name.

    Raises:
        ValueError: If the name is unknown.
    """
    adapter_cls = ADAPTERS.get(name)
    if adapter_cls is None:
        raise ValueError(f"Unknown parser backend '{name}', expected one of {sorted(ADAPTERS)}")
    return adapter_cls(max_tree_depth=max_tree_depth)


class _TreeConverter:
    """Converts a tree-sitter tree into SyntaxNode values in one pass."""

    def __init__(self, source: bytes, max_depth: int, report_offsets: bool):
        self.source = source
        self.max_depth = max_depth
        self.report_offsets = report_offsets
        self.diagnostics: List[ParseDiagnostic] = []
        self.comments: List[CommentSpan] = []
        self._depth_warned = False

    def convert(self, ts_node: Node) -> SyntaxNode:
        root = self._convert(ts_node, 0)
        self.diagnostics.sort(key=lambda d: d.line)
        return root

    def _convert(self, ts_node: Node, depth: int) -> SyntaxNode:
        node = SyntaxNode(
            kind=kind_for(ts_node.type),
            grammar_type=ts_node.type,
            location=self._location(ts_node),
            source=self.source,
            byte_range=(ts_node.start_byte, ts_node.end_byte),
        )

        if ts_node.type == "ERROR":
            self.diagnostics.append(
                ParseDiagnostic(
                    line=ts_node.start_point[0] + 1,
                    message=f"syntax error near '{self._snippet(ts_node)}'",
                )
            )

        if depth >= self.max_depth:
            if not self._depth_warned:
                logger.warning(
                    f"⚠️ Syntax tree depth limit ({self.max_depth}) exceeded "
                    f"at line {node.line}, skipping subtree"
                )
                self._depth_warned = True
            return node

        field_ids = self._field_children(ts_node)

        for ts_child in ts_node.children:
            if ts_child.is_missing:
                self.diagnostics.append(
                    ParseDiagnostic(
                        line=ts_child.start_point[0] + 1,
                        message=f"missing '{ts_child.type}'",
                    )
                )
                continue
            if ts_child.type == "comment":
                self.comments.append(self._comment(ts_child))
                continue
            if not ts_child.is_named:
                continue

            child = self._convert(ts_child, depth + 1)
            node.children.append(child)
            for field_name, field_node in field_ids.items():
                if field_node == ts_child:
                    node.fields[field_name] = child

        return node

    def _field_children(self, ts_node: Node) -> Dict[str, Node]:
        found: Dict[str, Node] = {}
        for field_name in FIELD_NAMES:
            ts_child = ts_node.child_by_field_name(field_name)
            if ts_child is not None:
                found[field_name] = ts_child
        return found

    def _location(self, ts_node: Node) -> Location:
        start_offset: Optional[int] = ts_node.start_byte if self.report_offsets else None
        end_offset: Optional[int] = ts_node.end_byte if self.report_offsets else None
        return Location(
            start_line=ts_node.start_point[0] + 1,
            end_line=ts_node.end_point[0] + 1,
            start_offset=start_offset,
            end_offset=end_offset,
        )

    def _comment(self, ts_node: Node) -> CommentSpan:
        return CommentSpan(
            text=self.source[ts_node.start_byte : ts_node.end_byte].decode(
                "utf-8", errors="replace"
            ),
            start_line=ts_node.start_point[0] + 1,
            start_offset=ts_node.start_byte,
            end_offset=ts_node.end_byte,
        )

    def _snippet(self, ts_node: Node) -> str:
        text = self.source[ts_node.start_byte : ts_node.end_byte].decode("utf-8", errors="replace")
        first_line = text.strip().splitlines()[0] if text.strip() else ""
        return first_line[:40]
