# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Fingerprint extraction from Ruby syntax trees.

FingerprintBuilder runs the extraction pipeline for one source text:
1. Parsing: the configured ParseAdapter produces a (possibly partial) tree
2. Traversal: a single source-order walk fills a FingerprintDraft
3. Comments: parser comments are attached, doc annotations tagged
4. Finish: the draft is frozen into an immutable Fingerprint

Traversal state:
- Visibility stack: ``public`` pushed on entering a type body, replaced in
  place by a bare ``private``/``protected``/``public`` marker, popped on exit
- Type stack: enclosing class/module names, used to qualify method owners
- Singleton depth: methods inside ``class << self`` are type level

Parse diagnostics never raise. They are logged as warnings and stored on
the Fingerprint.
"""

import bisect
import logging
import re
from typing import Callable, Iterable, List, Optional, Tuple

from rubyprint.analyzers.parse_adapter import ParseAdapter
from rubyprint.analyzers.syntax import CommentSpan, NodeKind, ParseResult, SyntaxNode
from rubyprint.analyzers.visitor import NodeVisitor
from rubyprint.events import AnalysisEvent, EventBus, EventType
from rubyprint.models import (
    Attribute,
    AttributeKind,
    Comment,
    Dependency,
    DependencyKind,
    Fingerprint,
    FingerprintDraft,
    Method,
    Mixin,
    MixinKind,
    OptionalParameter,
    ParameterSignature,
    Visibility,
)
from rubyprint.source_files import DEFAULT_MAX_FILE_SIZE_BYTES, read_source

logger = logging.getLogger(__name__)

DEFAULT_DOC_MARKER = "@"

DEPENDENCY_CALLS = {
    "require": DependencyKind.ABSOLUTE,
    "require_relative": DependencyKind.RELATIVE,
}

_COMMENT_MARKER = re.compile(r"^#\s?")
_VISIBILITY_LINE = re.compile(r"^\s*(private|protected|public)\s*(#.*)?$")


class FingerprintBuilder:
    """Builds Fingerprints from Ruby source.

    Usage:
        builder = FingerprintBuilder(create_adapter("tree_sitter"))
        fingerprint = builder.build_file("lib/garden/seed.rb")
        print(fingerprint.describe())
    """

    def __init__(
        self,
        adapter: ParseAdapter,
        doc_marker: str = DEFAULT_DOC_MARKER,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
        events: Optional[EventBus] = None,
    ):
        """Initialize the builder.

        Args:
            adapter: Parser used to produce syntax trees.
            doc_marker: Comment prefix marking documentation annotations.
            max_file_size_bytes: Files larger than this are treated as empty.
            events: Optional bus receiving lifecycle events.
        """
        self.adapter = adapter
        self.doc_marker = doc_marker
        self.max_file_size_bytes = max_file_size_bytes
        self.events = events

    def build(self, text: str, path: str = "(unknown)") -> Fingerprint:
        """Extract the Fingerprint of a source text.

        Args:
            text: Ruby source.
            path: Used only for log messages.

        Returns:
            The frozen Fingerprint. Never raises for malformed source.
        """
        result = self.adapter.parse(text)

        for diagnostic in result.diagnostics:
            logger.warning(f"⚠️ [{self.adapter.name()}] {path}:{diagnostic.line}: {diagnostic.message}")

        draft = FingerprintDraft()
        draft.diagnostics.extend(result.diagnostics)

        if result.tree is not None:
            _ShapeVisitor(draft, result).visit(result.tree)

        draft.comments.extend(self._comments(result.comments))
        return draft.finish()

    def build_file(self, path: str) -> Fingerprint:
        """Extract the Fingerprint of a file.

        Unreadable files are treated as empty sources and logged; they never
        abort the caller's wider analysis.
        """
        text = read_source(path, max_bytes=self.max_file_size_bytes)
        if text is None:
            self._publish(EventType.FILE_UNREADABLE, path)
            text = ""

        fingerprint = self.build(text, path=path)
        self._publish(
            EventType.FINGERPRINT_COMPUTED,
            path,
            classes=str(len(fingerprint.classes)),
            modules=str(len(fingerprint.modules)),
            methods=str(len(fingerprint.methods)),
        )
        logger.debug(
            f"Fingerprinted {path}: {len(fingerprint.classes)} classes, "
            f"{len(fingerprint.methods)} methods"
        )
        return fingerprint

    def _comments(self, spans: Iterable[CommentSpan]) -> List[Comment]:
        comments: List[Comment] = []
        for span in spans:
            text = _COMMENT_MARKER.sub("", span.text, count=1)
            comments.append(
                Comment(
                    text=text,
                    line=span.start_line,
                    is_doc_annotation=text.startswith(self.doc_marker),
                )
            )
        return comments

    def _publish(self, event_type: str, path: str, **detail: str) -> None:
        if self.events is not None:
            self.events.publish(AnalysisEvent(event_type=event_type, path=path, detail=detail))


class LineVisibilityHeuristic:
    """Textual visibility inference for adapters without scoped visibility.

    The most recent bare visibility marker line above a method decides its
    visibility. Markers are not reset at class or module boundaries, so a
    ``private`` in one class also applies to methods of a later class in the
    same file.
    """

    def __init__(self, source: str):
        self._lines: List[int] = []
        self._levels: List[str] = []
        for number, line in enumerate(source.splitlines(), start=1):
            match = _VISIBILITY_LINE.match(line)
            if match:
                self._lines.append(number)
                self._levels.append(match.group(1))

    def visibility_at(self, line: int) -> str:
        index = bisect.bisect_left(self._lines, line) - 1
        if index < 0:
            return Visibility.PUBLIC
        return self._levels[index]


class _ShapeVisitor(NodeVisitor):
    """Single-pass traversal filling a FingerprintDraft."""

    def __init__(self, draft: FingerprintDraft, result: ParseResult):
        super().__init__()
        self.draft = draft
        self.scoped = result.scoped_visibility
        self.heuristic = None if self.scoped else LineVisibilityHeuristic(result.source)
        self.visibility_stack: List[str] = [Visibility.PUBLIC]
        self.type_stack: List[str] = []
        self.singleton_depth = 0
        self.pending_visibility: Optional[str] = None

    # -- statements and visibility markers ---------------------------------

    def visit_program(self, node: SyntaxNode) -> None:
        self._visit_statements(node.children)

    def visit_body(self, node: SyntaxNode) -> None:
        self._visit_statements(node.children)

    def _visit_statements(self, statements: Iterable[SyntaxNode]) -> None:
        for statement in statements:
            if (
                self.scoped
                and statement.kind is NodeKind.IDENTIFIER
                and statement.text in Visibility.ALL
            ):
                self.visibility_stack[-1] = statement.text
                continue
            self.visit(statement)

    # -- types -------------------------------------------------------------

    def visit_class(self, node: SyntaxNode) -> None:
        name_node = node.get("name")
        superclass_node = node.get("superclass")
        name = _qualified_name(name_node)
        if name:
            self.draft.classes.append(name)

        if superclass_node is not None:
            parent = _qualified_name(superclass_node.children[0]) if superclass_node.children else None
            if name and parent:
                self.draft.superclass_of[name] = parent
            self.visit(superclass_node)

        self._visit_type_body(node, name, skip=(name_node, superclass_node))

    def visit_module(self, node: SyntaxNode) -> None:
        name_node = node.get("name")
        name = _qualified_name(name_node)
        if name:
            self.draft.modules.append(name)
        self._visit_type_body(node, name, skip=(name_node,))

    def visit_singleton_class(self, node: SyntaxNode) -> None:
        value_node = node.get("value")
        self.singleton_depth += 1
        self.visibility_stack.append(Visibility.PUBLIC)
        try:
            self._visit_statements(c for c in node.children if c is not value_node)
        finally:
            self.visibility_stack.pop()
            self.singleton_depth -= 1

    def _visit_type_body(
        self, node: SyntaxNode, name: Optional[str], skip: Tuple[Optional[SyntaxNode], ...]
    ) -> None:
        statements = [c for c in node.children if not any(c is s for s in skip)]
        self._visit_in_type(name, lambda: self._visit_statements(statements))

    def _visit_in_type(self, name: Optional[str], walk: Callable[[], None]) -> None:
        self.type_stack.append(name or "")
        self.visibility_stack.append(Visibility.PUBLIC)
        outer_singleton = self.singleton_depth
        self.singleton_depth = 0
        try:
            walk()
        finally:
            self.singleton_depth = outer_singleton
            self.visibility_stack.pop()
            self.type_stack.pop()

    # -- error recovery ----------------------------------------------------

    def visit_error(self, node: SyntaxNode) -> None:
        """Recover type declarations the parser could not close.

        An unterminated ``class Seed < Base`` leaves the keyword as a bare
        token followed by the name inside an ERROR node. Such a declaration
        scopes everything after it up to the end of the ERROR node.
        """
        self._visit_recovered(node, 0)

    def _visit_recovered(self, node: SyntaxNode, start: int) -> None:
        children = node.children
        for index in range(start, len(children)):
            child = children[index]
            keyword = _token_before(node, index)
            if keyword not in ("class", "module"):
                self._visit_statements([child])
                continue

            name_node: Optional[SyntaxNode] = child
            superclass_node: Optional[SyntaxNode] = None
            body_start = index + 1
            if keyword == "class" and _is_inheritance(child):
                # class Seed < Base parsed as a comparison
                name_node, superclass_node = child.children
            elif keyword == "class":
                superclass_node = _recovered_superclass(node, body_start)
                if superclass_node is not None:
                    body_start += 1

            name = _qualified_name(name_node)
            if not name:
                self._visit_statements([child])
                continue

            if keyword == "module":
                self.draft.modules.append(name)
            else:
                self.draft.classes.append(name)
            if superclass_node is not None:
                parent_node = superclass_node
                if superclass_node.grammar_type == "superclass" and superclass_node.children:
                    parent_node = superclass_node.children[0]
                parent = _qualified_name(parent_node)
                if parent:
                    self.draft.superclass_of[name] = parent
                self.visit(superclass_node)

            self._visit_in_type(name, lambda: self._visit_recovered(node, body_start))
            return

    # -- methods -----------------------------------------------------------

    def visit_method(self, node: SyntaxNode) -> None:
        self._record_method(node, type_level=self.singleton_depth > 0)

    def visit_singleton_method(self, node: SyntaxNode) -> None:
        object_node = node.get("object")
        self._record_method(node, type_level=True)
        # def Foo.bar references Foo
        if object_node is not None and object_node.kind is not NodeKind.OTHER:
            self.visit(object_node)

    def _record_method(self, node: SyntaxNode, type_level: bool) -> None:
        name_node = node.get("name")
        if name_node is None:
            self.generic_visit(node)
            return

        self.draft.methods.append(
            Method(
                name=name_node.text,
                visibility=self._visibility_for(node),
                parameters=_parameters(node.get("parameters")),
                owning_type=self._owning_type(),
                is_type_level=type_level,
                location=node.location,
            )
        )

        skipped = (name_node, node.get("object"))
        for child in node.children:
            if not any(child is s for s in skipped):
                self.visit(child)

    def _visibility_for(self, node: SyntaxNode) -> str:
        if self.heuristic is not None:
            return self.heuristic.visibility_at(node.line)
        if self.pending_visibility is not None:
            return self.pending_visibility
        return self.visibility_stack[-1]

    def _owning_type(self) -> Optional[str]:
        names = [n for n in self.type_stack if n]
        return "::".join(names) if names else None

    # -- declaration calls -------------------------------------------------

    def visit_call(self, node: SyntaxNode) -> None:
        receiver = node.get("receiver")
        method_node = node.get("method")
        if method_node is None or (receiver is not None and receiver.grammar_type != "self"):
            self.generic_visit(node)
            return

        keyword = method_node.text
        arguments_node = node.get("arguments")
        arguments = arguments_node.children if arguments_node is not None else []

        if keyword in DEPENDENCY_CALLS:
            target = _plain_string(arguments[0]) if arguments else None
            if target:
                self.draft.dependencies.append(
                    Dependency(kind=DEPENDENCY_CALLS[keyword], target_path=target, location=node.location)
                )
        elif keyword in MixinKind.ALL:
            for argument in arguments:
                mixin_name = _qualified_name(argument)
                if mixin_name:
                    self.draft.mixins.append(Mixin(kind=keyword, name=mixin_name, location=node.location))
        elif keyword in AttributeKind.ALL:
            for argument in arguments:
                attribute_name = _symbol_name(argument)
                if attribute_name:
                    self.draft.attributes.append(
                        Attribute(kind=keyword, name=attribute_name, location=node.location)
                    )
        elif keyword in Visibility.ALL and self.scoped:
            self._visibility_call(keyword, arguments)
            return

        self.generic_visit(node)

    def _visibility_call(self, keyword: str, arguments: List[SyntaxNode]) -> None:
        if not arguments:
            self.visibility_stack[-1] = keyword
            return

        names: List[str] = []
        for argument in arguments:
            if argument.kind in (NodeKind.METHOD, NodeKind.SINGLETON_METHOD):
                self.pending_visibility = keyword
                try:
                    self.visit(argument)
                finally:
                    self.pending_visibility = None
                continue
            name = _symbol_name(argument)
            if name:
                names.append(name)
            else:
                self.visit(argument)

        if names:
            self.draft.retag_methods(names, self._owning_type(), keyword)

    # -- constants ---------------------------------------------------------

    def visit_constant(self, node: SyntaxNode) -> None:
        self.draft.constant_references.append(node.text)

    def visit_scope_resolution(self, node: SyntaxNode) -> None:
        name = _qualified_name(node)
        if name:
            self.draft.constant_references.append(name)
        else:
            self.generic_visit(node)

    def visit_assignment(self, node: SyntaxNode) -> None:
        target = node.get("left")
        if target is not None and target.kind in (NodeKind.CONSTANT, NodeKind.SCOPE_RESOLUTION):
            for child in node.children:
                if child is not target:
                    self.visit(child)
            return
        self.generic_visit(node)


def _qualified_name(node: Optional[SyntaxNode]) -> Optional[str]:
    """Return ``A::B::C`` for constant paths, None for anything else."""
    if node is None:
        return None
    if node.kind is NodeKind.CONSTANT:
        return node.text
    if node.kind is NodeKind.SCOPE_RESOLUTION:
        name = node.get("name")
        if name is None:
            return None
        scope = node.get("scope")
        if scope is None:
            return name.text
        prefix = _qualified_name(scope)
        return f"{prefix}::{name.text}" if prefix else None
    return None


def _token_before(node: SyntaxNode, index: int) -> Optional[str]:
    """Return the last unnamed token between child ``index`` and its predecessor."""
    children = node.children
    gap_start = children[index - 1].byte_range[1] if index else node.byte_range[0]
    gap = node.source[gap_start : children[index].byte_range[0]].decode("utf-8", errors="replace")
    tokens: List[str] = []
    for line in gap.splitlines():
        tokens.extend(line.split("#", 1)[0].split())
    return tokens[-1] if tokens else None


def _is_inheritance(node: SyntaxNode) -> bool:
    return (
        node.grammar_type == "binary"
        and len(node.children) == 2
        and _token_before(node, 1) == "<"
        and _qualified_name(node.children[0]) is not None
    )


def _recovered_superclass(node: SyntaxNode, index: int) -> Optional[SyntaxNode]:
    """Return the ``< Parent`` part following a recovered class name, if any."""
    if index >= len(node.children):
        return None
    candidate = node.children[index]
    if candidate.grammar_type == "superclass":
        return candidate
    if _token_before(node, index) == "<" and _qualified_name(candidate):
        return candidate
    return None


def _plain_string(node: SyntaxNode) -> Optional[str]:
    """Return the content of a string literal without interpolation."""
    if node.kind is not NodeKind.STRING:
        return None
    parts: List[str] = []
    for child in node.children:
        if child.grammar_type == "string_content":
            parts.append(child.text)
        elif child.grammar_type != "escape_sequence":
            return None
    return "".join(parts)


def _symbol_name(node: SyntaxNode) -> Optional[str]:
    if node.kind is NodeKind.SYMBOL:
        return node.text.lstrip(":").strip("\"'") or None
    if node.kind is NodeKind.STRING:
        return _plain_string(node) or None
    return None


def _parameters(node: Optional[SyntaxNode]) -> ParameterSignature:
    if node is None:
        return ParameterSignature.empty()

    required: List[str] = []
    optional: List[OptionalParameter] = []
    keyword: List[str] = []
    rest: Optional[str] = None
    keyword_rest: Optional[str] = None
    block: Optional[str] = None

    for param in node.children:
        name_node = param.get("name")
        name = name_node.text if name_node is not None else ""
        kind = param.grammar_type
        if kind in ("identifier", "destructured_parameter"):
            required.append(param.text)
        elif kind == "optional_parameter":
            value = param.get("value")
            optional.append(OptionalParameter(name=name, default=value.text if value else ""))
        elif kind == "splat_parameter":
            rest = name
        elif kind == "forward_parameter":
            rest = "..."
        elif kind == "keyword_parameter":
            keyword.append(name)
        elif kind == "hash_splat_parameter":
            keyword_rest = name
        elif kind == "block_parameter":
            block = name

    return ParameterSignature(
        required=tuple(required),
        optional=tuple(optional),
        rest=rest,
        keyword=tuple(keyword),
        keyword_rest=keyword_rest,
        block=block,
    )
