# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""AnalysisEngine - coordinator owning the analysis components.

Owned components:
- ParseAdapter: chosen by the ``parser_backend`` setting
- FingerprintBuilder: extracts Fingerprints through the adapter
- FingerprintCache: memoizes Fingerprints per path
- Pond: the project's source files
- RelationshipGraph: direct/structural evidence and deep kin traversal

build_engine() wires them from a Config; the engine itself only delegates.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from rubyprint.analyzers.fingerprint_builder import FingerprintBuilder
from rubyprint.analyzers.parse_adapter import ParseAdapter, create_adapter
from rubyprint.cache import FingerprintCache
from rubyprint.config import Config, ConfigurationError
from rubyprint.events import EventBus
from rubyprint.fingerprint_diff import DiffWeights, FingerprintDiff
from rubyprint.models import Fingerprint
from rubyprint.pond import Pond
from rubyprint.relationship_graph import FileRef, RelationshipEdge, RelationshipGraph
from rubyprint.source_files import SourceFile

logger = logging.getLogger(__name__)


class AnalysisEngine:
    """Structural analysis of one Ruby project.

    Usage:
        engine = build_engine("/path/to/project")
        print(engine.fingerprint("lib/seed.rb").describe())
        for relative in engine.deep_kin("lib/seed.rb"):
            print(relative.name)
    """

    def __init__(
        self,
        config: Config,
        adapter: ParseAdapter,
        builder: FingerprintBuilder,
        cache: FingerprintCache,
        pond: Pond,
        graph: RelationshipGraph,
        weights: DiffWeights,
        events: Optional[EventBus] = None,
    ):
        self.config = config
        self.adapter = adapter
        self.builder = builder
        self.cache = cache
        self.pond = pond
        self.graph = graph
        self.weights = weights
        self.events = events

    def source(self, file: FileRef) -> SourceFile:
        """Resolve a path (absolute, or relative to the project root) or pond name."""
        if isinstance(file, SourceFile):
            return file
        path = Path(file)
        if not path.is_absolute():
            path = self.pond.root / path
            if not path.exists():
                found = self.pond.find(str(file))
                if found is not None:
                    return found
        return self.pond.source_file(path)

    def fingerprint(self, file: FileRef) -> Fingerprint:
        return self.cache.get(self.source(file))

    def fingerprint_text(self, text: str, path: str = "(text)") -> Fingerprint:
        """Fingerprint source text that is not (or no longer) on disk."""
        return self.builder.build(text, path=path)

    def diff(self, before: Fingerprint, after: Fingerprint) -> FingerprintDiff:
        return FingerprintDiff(before=before, after=after, weights=self.weights)

    def diff_since(self, file: FileRef, previous_text: str) -> FingerprintDiff:
        """Compare a previous version of a file's text with the file as it is now."""
        source = self.source(file)
        before = self.fingerprint_text(previous_text, path=f"{source.path} (previous)")
        return self.diff(before, self.cache.get(source))

    def kin(self, file: FileRef) -> List[SourceFile]:
        return self.graph.kin(self.source(file))

    def deep_kin(self, file: FileRef, depth: Optional[int] = None) -> Iterator[SourceFile]:
        return self.graph.deep_kin(self.source(file), depth=depth)

    def relationships(self, file: FileRef) -> Dict[str, RelationshipEdge]:
        return self.graph.relationships(self.source(file))

    def last_touched(self) -> Optional[SourceFile]:
        return self.pond.last_touched()


def build_engine(
    root: Union[str, Path],
    config: Optional[Config] = None,
    events: Optional[EventBus] = None,
) -> AnalysisEngine:
    """Wire an AnalysisEngine for a project root.

    Args:
        root: Project root directory.
        config: Settings (default: .rubyprint.yml inside root, if present).
        events: Optional bus receiving lifecycle events from every component.

    Raises:
        ConfigurationError: If root is not a directory or the diff weights
            are inconsistent.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise ConfigurationError(f"Project root {root_path} is not a directory")

    if config is None:
        config = Config(config_path=root_path / ".rubyprint.yml")

    weights = config.diff_weights()
    adapter = create_adapter(config.parser_backend, max_tree_depth=config.max_tree_depth)
    builder = FingerprintBuilder(
        adapter,
        doc_marker=config.doc_marker,
        max_file_size_bytes=config.max_file_size_bytes,
        events=events,
    )
    cache = FingerprintCache(builder, max_entries=config.cache_max_entries, events=events)
    pond = Pond(
        str(root_path),
        extension=config.source_extension,
        ignore_patterns=config.ignore_patterns,
    )
    graph = RelationshipGraph(
        pond,
        cache,
        events=events,
        default_depth=config.deep_kin_depth,
        max_file_size_bytes=config.max_file_size_bytes,
    )

    logger.info(
        f"Analysis engine ready for {pond.root}: {len(pond)} files, "
        f"parser backend '{adapter.name()}'"
    )
    return AnalysisEngine(
        config=config,
        adapter=adapter,
        builder=builder,
        cache=cache,
        pond=pond,
        graph=graph,
        weights=weights,
        events=events,
    )
