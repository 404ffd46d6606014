# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for Ruby structural fingerprints.

This module defines the value types produced by fingerprint extraction:
- Visibility, DependencyKind, MixinKind, AttributeKind: string constants
- Location: line range and optional byte offsets of a syntax element
- ParameterSignature / OptionalParameter: method parameter lists
- Method, Dependency, Mixin, Attribute, Comment: fingerprint records
- Fingerprint: the immutable structural record of one file
- FingerprintDraft: the mutable accumulator used only during traversal

A Fingerprint is never mutated. FingerprintDraft collects records while the
tree is walked and finish() produces the frozen Fingerprint exactly once.
"""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class Visibility:
    """Method visibility levels.

    Design: Using class constants (not Enum) so values print as plain strings.
    """

    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"

    ALL = (PUBLIC, PROTECTED, PRIVATE)


class DependencyKind:
    """Kinds of dependency declarations."""

    ABSOLUTE = "absolute"  # require 'json'
    RELATIVE = "relative"  # require_relative 'soil'


class MixinKind:
    """Kinds of mixin declarations."""

    INCLUDE = "include"
    EXTEND = "extend"
    PREPEND = "prepend"

    ALL = (INCLUDE, EXTEND, PREPEND)


class AttributeKind:
    """Kinds of attribute declarations."""

    READER = "attr_reader"
    WRITER = "attr_writer"
    ACCESSOR = "attr_accessor"

    ALL = (READER, WRITER, ACCESSOR)
    READABLE = (READER, ACCESSOR)
    WRITABLE = (WRITER, ACCESSOR)


@dataclass(frozen=True)
class Location:
    """Source position of a syntax element.

    Lines are 1-based and inclusive. Offsets are byte offsets into the source
    and are None when the producing adapter cannot report them.
    """

    start_line: int
    end_line: int
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None

    @property
    def has_offsets(self) -> bool:
        return self.start_offset is not None and self.end_offset is not None


@dataclass(frozen=True)
class OptionalParameter:
    """A parameter with a default value (``name = default``)."""

    name: str
    default: str  # default expression as written


@dataclass(frozen=True)
class ParameterSignature:
    """Parameter list of a method definition."""

    required: Tuple[str, ...] = ()
    optional: Tuple[OptionalParameter, ...] = ()
    rest: Optional[str] = None  # "" for an anonymous splat
    keyword: Tuple[str, ...] = ()
    keyword_rest: Optional[str] = None  # "" for an anonymous double splat
    block: Optional[str] = None  # "" for an anonymous block parameter

    @classmethod
    def empty(cls) -> "ParameterSignature":
        return cls()

    @property
    def arity(self) -> int:
        """Number of required positional parameters."""
        return len(self.required)

    @property
    def signature_text(self) -> str:
        """Render the parameter list, e.g. ``(seed, color = ..., *rest, soil:, &blk)``."""
        parts: List[str] = list(self.required)
        parts.extend(f"{opt.name} = ..." for opt in self.optional)
        if self.rest is not None:
            parts.append(self.rest if self.rest == "..." else f"*{self.rest}")
        parts.extend(f"{name}:" for name in self.keyword)
        if self.keyword_rest is not None:
            parts.append(f"**{self.keyword_rest}")
        if self.block is not None:
            parts.append(f"&{self.block}")
        return f"({', '.join(parts)})"

    def __str__(self) -> str:
        return self.signature_text


@dataclass(frozen=True)
class Method:
    """A method definition."""

    name: str
    visibility: str  # Visibility value
    parameters: ParameterSignature = field(default_factory=ParameterSignature)
    owning_type: Optional[str] = None
    is_type_level: bool = False  # def self.foo / class << self
    location: Optional[Location] = None

    @property
    def signature_text(self) -> str:
        return self.parameters.signature_text

    @property
    def is_public(self) -> bool:
        return self.visibility == Visibility.PUBLIC

    @property
    def is_protected(self) -> bool:
        return self.visibility == Visibility.PROTECTED

    @property
    def is_private(self) -> bool:
        return self.visibility == Visibility.PRIVATE

    def describe(self) -> str:
        """Display form: ``visibility [self.]name(signature)``."""
        prefix = "self." if self.is_type_level else ""
        return f"{self.visibility} {prefix}{self.name}{self.signature_text}"

    def __str__(self) -> str:
        return self.describe()


@dataclass(frozen=True)
class Dependency:
    """A dependency declaration (``require`` / ``require_relative``)."""

    kind: str  # DependencyKind value
    target_path: str  # as written, unresolved
    location: Optional[Location] = None

    def __str__(self) -> str:
        keyword = "require_relative" if self.kind == DependencyKind.RELATIVE else "require"
        return f"{keyword} '{self.target_path}'"


@dataclass(frozen=True)
class Mixin:
    """A mixin declaration (``include`` / ``extend`` / ``prepend``)."""

    kind: str  # MixinKind value
    name: str  # qualified constant name
    location: Optional[Location] = None

    def __str__(self) -> str:
        return f"{self.kind} {self.name}"


@dataclass(frozen=True)
class Attribute:
    """A declared attribute (``attr_reader :name``)."""

    kind: str  # AttributeKind value
    name: str
    location: Optional[Location] = None

    def __str__(self) -> str:
        return f"{self.kind} :{self.name}"


@dataclass(frozen=True)
class Comment:
    """A source comment with its leading marker stripped."""

    text: str
    line: int
    is_doc_annotation: bool = False

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class ParseDiagnostic:
    """A problem reported by the parser. Surfaced as a warning, never raised."""

    line: int
    message: str

    def __str__(self) -> str:
        return f"line {self.line}: {self.message}"


@dataclass(frozen=True)
class PublicInterface:
    """What the outside world can call or read on a file's types."""

    methods: Tuple[Method, ...]
    readable: Tuple[str, ...]
    writable: Tuple[str, ...]
    mixins: Tuple[str, ...]


@dataclass(frozen=True)
class Fingerprint:
    """Immutable structural record of one source file.

    Sequences keep source order so repeated extraction of the same text is
    reproducible. constant_references is deduplicated in order of first
    appearance. superclasses holds (class, superclass) pairs; every field is
    a tuple, so fingerprints are hashable.
    """

    classes: Tuple[str, ...] = ()
    modules: Tuple[str, ...] = ()
    superclasses: Tuple[Tuple[str, str], ...] = ()
    mixins: Tuple[Mixin, ...] = ()
    attributes: Tuple[Attribute, ...] = ()
    methods: Tuple[Method, ...] = ()
    dependencies: Tuple[Dependency, ...] = ()
    constant_references: Tuple[str, ...] = ()
    comments: Tuple[Comment, ...] = ()
    diagnostics: Tuple[ParseDiagnostic, ...] = ()

    @classmethod
    def empty(cls) -> "Fingerprint":
        return cls()

    @property
    def superclass_of(self) -> Mapping[str, str]:
        """Read-only view of superclasses keyed by class name."""
        return MappingProxyType(dict(self.superclasses))

    @property
    def defined_types(self) -> Tuple[str, ...]:
        """Classes followed by modules, in declaration order."""
        return self.classes + self.modules

    @property
    def mixin_names(self) -> Tuple[str, ...]:
        return _unique(m.name for m in self.mixins)

    @property
    def parsed_cleanly(self) -> bool:
        return not self.diagnostics

    def external_references(self) -> Tuple[str, ...]:
        """Constants referenced here but neither defined nor mixed in here.

        Returned in order of first reference.
        """
        excluded: Set[str] = set(self.classes) | set(self.modules) | set(self.mixin_names)
        return tuple(name for name in self.constant_references if name not in excluded)

    def public_interface(self) -> PublicInterface:
        return PublicInterface(
            methods=tuple(m for m in self.methods if m.is_public),
            readable=tuple(a.name for a in self.attributes if a.kind in AttributeKind.READABLE),
            writable=tuple(a.name for a in self.attributes if a.kind in AttributeKind.WRITABLE),
            mixins=self.mixin_names,
        )

    def find_method(self, name: str) -> Optional[Method]:
        """Return the first method with this name, or None."""
        for method in self.methods:
            if method.name == name:
                return method
        return None

    def describe(self) -> str:
        """Compact multi-line summary of this file's structure.

        Section order and labels are fixed; downstream consumers parse them.
        Empty sections are omitted.
        """
        lines: List[str] = []
        if self.classes:
            lines.append(f"Classes: {', '.join(self.classes)}")
        if self.modules:
            lines.append(f"Modules: {', '.join(self.modules)}")
        for child, parent in self.superclass_of.items():
            lines.append(f"  {child} < {parent}")
        if self.mixins:
            lines.append(f"Includes: {', '.join(str(m) for m in self.mixins)}")
        if self.attributes:
            lines.append(f"Attributes: {', '.join(str(a) for a in self.attributes)}")
        if self.methods:
            lines.append("Methods:")
            lines.extend(f"  {m.describe()}" for m in self.methods)
        references = self.external_references()
        if references:
            lines.append(f"References: {', '.join(references)}")
        return "\n".join(lines)


class FingerprintDraft:
    """Mutable accumulator for a Fingerprint under construction.

    Only the traversal that owns a draft may touch it. finish() freezes the
    collected records into a Fingerprint; a draft cannot be finished twice.
    """

    def __init__(self) -> None:
        self.classes: List[str] = []
        self.modules: List[str] = []
        self.superclass_of: Dict[str, str] = {}
        self.mixins: List[Mixin] = []
        self.attributes: List[Attribute] = []
        self.methods: List[Method] = []
        self.dependencies: List[Dependency] = []
        self.constant_references: List[str] = []
        self.comments: List[Comment] = []
        self.diagnostics: List[ParseDiagnostic] = []
        self._finished = False

    def retag_methods(self, names: Iterable[str], owning_type: Optional[str], visibility: str) -> int:
        """Change visibility of already recorded methods (``private :a, :b``).

        Returns:
            Number of methods re-tagged.
        """
        wanted = set(names)
        count = 0
        for index, method in enumerate(self.methods):
            if method.name in wanted and method.owning_type == owning_type:
                self.methods[index] = replace(method, visibility=visibility)
                count += 1
        return count

    def finish(self) -> Fingerprint:
        """Freeze the draft into an immutable Fingerprint.

        Raises:
            RuntimeError: If the draft was already finished.
        """
        if self._finished:
            raise RuntimeError("FingerprintDraft.finish() called twice")
        self._finished = True

        return Fingerprint(
            classes=tuple(self.classes),
            modules=tuple(self.modules),
            superclasses=tuple(self.superclass_of.items()),
            mixins=tuple(self.mixins),
            attributes=tuple(self.attributes),
            methods=tuple(self.methods),
            dependencies=tuple(self.dependencies),
            constant_references=_unique(self.constant_references),
            comments=tuple(self.comments),
            diagnostics=tuple(self.diagnostics),
        )


def _unique(items: Iterable[str]) -> Tuple[str, ...]:
    """Deduplicate while keeping first-appearance order."""
    seen: Set[str] = set()
    ordered: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return tuple(ordered)
