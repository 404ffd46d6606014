# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Relationship discovery between files of a pond.

Two independent evidence tiers:

Direct tier (declarations and raw text):
- F declares a dependency resolving to C          -> "requires <target>"
- C declares a dependency resolving to F          -> "required by <C.name>"
- F's text contains C's stem                      -> "mentions <C.stem>"
- C's text contains F's stem                      -> "mentioned by <C.name>"

Structural tier (Fingerprints of both files):
- C's external references include a type F defines -> "<C.name> references <T>"
- F's external references include a type C defines -> "<F.name> references <T>"
- F and C share a mixin                            -> "both include <M>"
- a type of one file subclasses a type of the other -> "<Child> inherits from <Parent>"

Traversal:
- kin(F): files with any direct-tier evidence, in order of discovery
- deep_kin(F, depth): lazy breadth-first closure of kin, deduplicated by path

Edges exist only when evidence exists; a RelationshipEdge never carries an
empty reason list.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, Union

from rubyprint.cache import FingerprintCache
from rubyprint.events import AnalysisEvent, EventBus, EventType
from rubyprint.models import Fingerprint
from rubyprint.pond import Pond
from rubyprint.source_files import DEFAULT_MAX_FILE_SIZE_BYTES, SourceFile

logger = logging.getLogger(__name__)

DEFAULT_DEEP_KIN_DEPTH = 3

FileRef = Union[str, SourceFile]


@dataclass(frozen=True)
class RelationshipEdge:
    """Evidence that a file is related to ``target``.

    Raises:
        ValueError: If constructed without reasons.
    """

    target: SourceFile
    reasons: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.reasons:
            raise ValueError(f"RelationshipEdge to {self.target.path} needs at least one reason")

    def merged(self, other: "RelationshipEdge") -> "RelationshipEdge":
        """Combine reasons of two edges to the same target, keeping order."""
        return RelationshipEdge(target=self.target, reasons=_unique(self.reasons + other.reasons))

    def __str__(self) -> str:
        return f"{self.target.name}: {', '.join(self.reasons)}"


class RelationshipGraph:
    """Discovers and explains relationships between files.

    Counters (for instrumentation, reset with reset_counters()):
        expansions: Number of kin() computations.
        evidence_evaluations: Number of candidate files whose evidence was
            evaluated, across both tiers.

    Usage:
        graph = RelationshipGraph(pond, cache)
        for relative in graph.deep_kin(pond.find("seed"), depth=2):
            print(relative.name)
    """

    def __init__(
        self,
        pond: Pond,
        cache: FingerprintCache,
        events: Optional[EventBus] = None,
        default_depth: int = DEFAULT_DEEP_KIN_DEPTH,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
    ):
        """Initialize the graph.

        Args:
            pond: Candidate files.
            cache: Source of Fingerprints.
            events: Optional bus receiving edge_discovered events.
            default_depth: deep_kin depth when none is given (default: 3).
            max_file_size_bytes: Size limit for name-mention text reads.
        """
        self.pond = pond
        self.cache = cache
        self.events = events
        self.default_depth = default_depth
        self.max_file_size_bytes = max_file_size_bytes

        self.expansions = 0
        self.evidence_evaluations = 0

    def reset_counters(self) -> None:
        self.expansions = 0
        self.evidence_evaluations = 0

    # -- direct tier -------------------------------------------------------

    def direct_edges(self, file: FileRef) -> List[RelationshipEdge]:
        """Direct-tier edges from a file, in order of discovery.

        Resolved dependencies of the file come first (declaration order),
        followed by the remaining pond files in path order.
        """
        source = self._source(file)
        fingerprint = self.cache.get(source)
        text = self._text(source)

        required: Dict[str, List[str]] = OrderedDict()
        for dependency in fingerprint.dependencies:
            resolved = self.pond.resolve(dependency.target_path, relative_to=source)
            if resolved is None:
                logger.debug(f"Unresolved dependency '{dependency.target_path}' in {source.path}")
                continue
            required.setdefault(resolved.path, []).append(dependency.target_path)

        candidates: List[SourceFile] = [SourceFile(path=p) for p in required]
        candidates.extend(c for c in self.pond if c.path not in required)

        edges: List[RelationshipEdge] = []
        for candidate in candidates:
            if candidate.path == source.path:
                continue
            self.evidence_evaluations += 1

            reasons = [f"requires {target}" for target in required.get(candidate.path, [])]
            if self._requires(candidate, source):
                reasons.append(f"required by {candidate.name}")
            if candidate.stem and candidate.stem in text:
                reasons.append(f"mentions {candidate.stem}")
            if source.stem and source.stem in self._text(candidate):
                reasons.append(f"mentioned by {candidate.name}")

            if reasons:
                edge = RelationshipEdge(target=candidate, reasons=_unique(reasons))
                edges.append(edge)
                self._publish(source, edge)

        return edges

    def kin(self, file: FileRef) -> List[SourceFile]:
        """Files with direct-tier evidence, deduplicated, in order of discovery."""
        self.expansions += 1
        return [edge.target for edge in self.direct_edges(file)]

    def _requires(self, candidate: SourceFile, target: SourceFile) -> bool:
        for dependency in self.cache.get(candidate).dependencies:
            resolved = self.pond.resolve(dependency.target_path, relative_to=candidate)
            if resolved is not None and resolved.path == target.path:
                return True
        return False

    # -- structural tier ---------------------------------------------------

    def structural_edges(
        self, file: FileRef, candidates: Optional[Iterable[FileRef]] = None
    ) -> Dict[str, RelationshipEdge]:
        """Structural-tier edges from a file, keyed by target path.

        Args:
            file: The file to relate.
            candidates: Files to consider (default: every pond file).
        """
        source = self._source(file)
        mine = self.cache.get(source)
        pool = self.pond if candidates is None else (self._source(c) for c in candidates)

        edges: Dict[str, RelationshipEdge] = OrderedDict()
        for candidate in pool:
            if candidate.path == source.path:
                continue
            self.evidence_evaluations += 1

            reasons = self._structural_reasons(source, mine, candidate, self.cache.get(candidate))
            if reasons:
                edge = RelationshipEdge(target=candidate, reasons=reasons)
                edges[candidate.path] = edge
                self._publish(source, edge)

        return edges

    def _structural_reasons(
        self, source: SourceFile, mine: Fingerprint, candidate: SourceFile, theirs: Fingerprint
    ) -> Tuple[str, ...]:
        my_types = set(mine.defined_types)
        their_types = set(theirs.defined_types)
        my_references = set(mine.external_references())
        their_references = set(theirs.external_references())

        reasons: List[str] = []
        reasons.extend(f"{candidate.name} references {t}" for t in mine.defined_types if t in their_references)
        reasons.extend(f"{source.name} references {t}" for t in theirs.defined_types if t in my_references)

        their_mixins = set(theirs.mixin_names)
        reasons.extend(f"both include {m}" for m in mine.mixin_names if m in their_mixins)

        for child, parent in theirs.superclass_of.items():
            if parent in my_types:
                reasons.append(f"{child} inherits from {parent}")
        for child, parent in mine.superclass_of.items():
            if parent in their_types:
                reasons.append(f"{child} inherits from {parent}")

        return _unique(reasons)

    # -- combined ----------------------------------------------------------

    def relationships(self, file: FileRef) -> Dict[str, RelationshipEdge]:
        """Both tiers merged per target; direct reasons come first."""
        merged: Dict[str, RelationshipEdge] = OrderedDict()
        for edge in self.direct_edges(file):
            merged[edge.target.path] = edge
        for path, edge in self.structural_edges(file).items():
            merged[path] = merged[path].merged(edge) if path in merged else edge
        return merged

    # -- traversal ---------------------------------------------------------

    def deep_kin(self, file: FileRef, depth: Optional[int] = None) -> Iterator[SourceFile]:
        """Lazy breadth-first closure of the kin relation.

        Each call returns a fresh iterator. No file is yielded twice and the
        starting file is never yielded. A file's own kin is only computed
        after it has been yielded and only if a further level remains, so a
        consumer taking k results triggers at most k kin computations.

        Args:
            file: Starting file.
            depth: Number of levels (default: the graph's default depth).

        Raises:
            ValueError: If depth is negative.
        """
        levels = self.default_depth if depth is None else depth
        if levels < 0:
            raise ValueError(f"depth must be non-negative, got {levels}")
        return self._walk(self._source(file), levels)

    def _walk(self, start: SourceFile, levels: int) -> Iterator[SourceFile]:
        if levels == 0:
            return

        seen: Set[str] = {start.path}
        frontier: Sequence[SourceFile] = self.kin(start)

        for level in range(levels):
            expand = level < levels - 1
            next_frontier: List[SourceFile] = []
            for node in frontier:
                if node.path in seen:
                    continue
                seen.add(node.path)
                yield node
                if expand:
                    next_frontier.extend(self.kin(node))
            if not next_frontier:
                break
            frontier = next_frontier

    # -- helpers -----------------------------------------------------------

    def _source(self, file: FileRef) -> SourceFile:
        path = file.path if isinstance(file, SourceFile) else file
        return self.pond.source_file(path)

    def _text(self, source: SourceFile) -> str:
        text = source.read_text(max_bytes=self.max_file_size_bytes)
        return text if text is not None else ""

    def _publish(self, source: SourceFile, edge: RelationshipEdge) -> None:
        if self.events is not None:
            self.events.publish(
                AnalysisEvent(
                    event_type=EventType.EDGE_DISCOVERED,
                    path=source.path,
                    detail={"target": edge.target.path, "reasons": "; ".join(edge.reasons)},
                )
            )


def _unique(items: Iterable[str]) -> Tuple[str, ...]:
    seen: Set[str] = set()
    ordered: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return tuple(ordered)
