# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""The pond: the set of source files making up an analyzed project.

Responsibilities:
- Discovery of every source file below the project root
- Ignore rules: hardcoded directories, .gitignore patterns, user patterns
- Explicit name lookup (``files_by_name`` / ``find``)
- Resolution of declared dependency strings to files

Dependency resolution order for a string ``d`` declared in file F:
1. ``dirname(F)/d`` + extension
2. ``dirname(F)/d`` as written
3. ``root/lib/d`` + extension
4. ``root/d`` + extension
The first candidate that is an existing regular file wins.
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Union

from rubyprint.source_files import SourceFile

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".rb"


class Pond:
    """Source files of one project.

    The file list is discovered once on construction; call refresh() after
    files are added or removed.

    Usage:
        pond = Pond("/path/to/project")
        soil = pond.find("soil")
        target = pond.resolve("soil", relative_to=pond.find("seed"))
    """

    # Directories never descended into
    ALWAYS_IGNORED = {
        ".git",
        ".bundle",
        "vendor",
        "node_modules",
        "tmp",
        "coverage",
        ".rubyprint_logs",
    }

    def __init__(
        self,
        root: str,
        extension: str = DEFAULT_EXTENSION,
        ignore_patterns: Iterable[str] = (),
        gitignore_path: Optional[str] = None,
    ):
        """Initialize the pond and discover its files.

        Args:
            root: Project root directory.
            extension: Source file extension, including the dot.
            ignore_patterns: Additional fnmatch patterns to ignore.
            gitignore_path: Path to .gitignore (defaults to {root}/.gitignore).
        """
        self.root = Path(root).resolve()
        self.extension = extension
        self.user_ignore_patterns: Set[str] = set(ignore_patterns)
        self.gitignore_path = (
            Path(gitignore_path) if gitignore_path else self.root / ".gitignore"
        )
        self._gitignore_patterns: Set[str] = self._load_gitignore()

        self._files: List[SourceFile] = []
        self._by_name: Dict[str, SourceFile] = {}
        self.refresh()

    def _load_gitignore(self) -> Set[str]:
        """Load .gitignore patterns, skipping comments, blanks and negations."""
        patterns: Set[str] = set()

        if not self.gitignore_path.exists():
            logger.debug(f"No .gitignore found at {self.gitignore_path}")
            return patterns

        try:
            with open(self.gitignore_path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or line.startswith("!"):
                        continue
                    patterns.add(line.strip("/"))
            logger.debug(f"Loaded {len(patterns)} patterns from .gitignore")
        except UnicodeDecodeError as e:
            logger.error(f"Failed to decode .gitignore (encoding error): {e}")
        except OSError as e:
            logger.warning(f"Failed to read .gitignore: {e}")

        return patterns

    def should_ignore(self, file_path: Union[str, Path]) -> bool:
        """Check a path against the hardcoded, .gitignore and user patterns."""
        path = Path(file_path)
        try:
            rel_path_str = path.relative_to(self.root).as_posix()
            parts = path.relative_to(self.root).parts
        except ValueError:
            rel_path_str = path.as_posix()
            parts = path.parts

        if any(part in self.ALWAYS_IGNORED for part in parts):
            return True

        for pattern in self._gitignore_patterns | self.user_ignore_patterns:
            if fnmatch.fnmatch(rel_path_str, pattern) or fnmatch.fnmatch(path.name, pattern):
                return True
            if any(fnmatch.fnmatch(part, pattern) for part in parts[:-1]):
                return True

        return False

    def refresh(self) -> None:
        """Re-discover the project's files."""
        found: List[SourceFile] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(
                d for d in dirnames if not self.should_ignore(os.path.join(dirpath, d))
            )
            for filename in filenames:
                if not filename.endswith(self.extension):
                    continue
                full_path = os.path.join(dirpath, filename)
                if self.should_ignore(full_path):
                    continue
                found.append(self.source_file(full_path))

        found.sort(key=lambda f: f.path)
        self._files = found

        by_name: Dict[str, SourceFile] = {}
        for source_file in found:
            # First file by path order wins on stem collisions
            by_name.setdefault(source_file.stem, source_file)
        self._by_name = by_name

        logger.debug(f"Pond {self.root}: {len(found)} files")

    @property
    def files(self) -> List[SourceFile]:
        return list(self._files)

    @property
    def files_by_name(self) -> Dict[str, SourceFile]:
        """Mapping of file stem (``soil``) to file."""
        return dict(self._by_name)

    def find(self, name: str) -> Optional[SourceFile]:
        """Look up a file by stem or base name (``soil`` or ``soil.rb``)."""
        if name.endswith(self.extension):
            name = name[: -len(self.extension)]
        return self._by_name.get(name)

    def source_file(self, path: Union[str, Path]) -> SourceFile:
        """Wrap an arbitrary path as a SourceFile with a canonical absolute path."""
        return SourceFile(path=os.path.realpath(str(path)))

    def resolve(
        self, dependency_path: str, relative_to: Union[SourceFile, str, None] = None
    ) -> Optional[SourceFile]:
        """Resolve a declared dependency string to a file.

        Args:
            dependency_path: The string as written (``"soil"``, ``"../lib/x"``).
            relative_to: File declaring the dependency. Defaults to a file at
                the project root.

        Returns:
            The first existing candidate, or None when unresolved.
        """
        if relative_to is None:
            base_dir = str(self.root)
        elif isinstance(relative_to, SourceFile):
            base_dir = relative_to.directory
        else:
            base_dir = os.path.dirname(os.path.abspath(relative_to))

        for candidate in self.candidates(dependency_path, base_dir):
            if os.path.isfile(candidate):
                return self.source_file(candidate)
        return None

    def candidates(self, dependency_path: str, base_dir: str) -> List[str]:
        """Candidate paths for a dependency string, in resolution order."""
        return [
            os.path.join(base_dir, dependency_path + self.extension),
            os.path.join(base_dir, dependency_path),
            os.path.join(str(self.root), "lib", dependency_path + self.extension),
            os.path.join(str(self.root), dependency_path + self.extension),
        ]

    def last_touched(self) -> Optional[SourceFile]:
        """Most recently modified file, or None for an empty pond."""
        newest: Optional[SourceFile] = None
        newest_time = -1.0
        for source_file in self._files:
            mtime = source_file.modification_time()
            if mtime is not None and mtime > newest_time:
                newest, newest_time = source_file, mtime
        return newest

    def __iter__(self) -> Iterator[SourceFile]:
        return iter(list(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, SourceFile) and item in self._files

    def __repr__(self) -> str:
        return f"Pond(root={self.root}, files={len(self._files)})"
