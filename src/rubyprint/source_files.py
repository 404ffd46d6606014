# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Source file access.

Reading rules:
- UTF-8 first, latin-1 fallback (accepts every byte value)
- Files above the size limit are skipped with a warning
- Missing or unreadable files yield None and a warning, never an exception
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10MB


def read_source(filepath: str, max_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES) -> Optional[str]:
    """Read a source file with UTF-8/latin-1 fallback and a size limit.

    Args:
        filepath: Path to the file.
        max_bytes: Files larger than this are skipped.

    Returns:
        File contents, or None if the file should be treated as unreadable.
    """
    path = Path(filepath)
    try:
        file_size = path.stat().st_size
        if file_size > max_bytes:
            logger.warning(
                f"⚠️ Skipping {filepath}: {file_size} bytes exceeds limit ({max_bytes})"
            )
            return None

        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning(f"⚠️ File {filepath} is not UTF-8, using latin-1 fallback encoding")
            return path.read_text(encoding="latin-1")

    except FileNotFoundError:
        logger.warning(f"⚠️ File not found: {filepath}")
        return None
    except PermissionError:
        logger.warning(f"⚠️ Permission denied reading file: {filepath}")
        return None
    except OSError as e:
        logger.warning(f"⚠️ Could not read {filepath}: {e}")
        return None


def modification_time(filepath: str) -> Optional[float]:
    """Return the file's modification time, or None when it does not exist."""
    try:
        return os.path.getmtime(filepath)
    except OSError:
        return None


@dataclass(frozen=True)
class SourceFile:
    """A file of the analyzed project, identified by its absolute path.

    Attributes:
        path: Absolute path.
    """

    path: str

    @property
    def name(self) -> str:
        """Base name with extension (``soil.rb``)."""
        return os.path.basename(self.path)

    @property
    def stem(self) -> str:
        """Base name without extension (``soil``)."""
        return Path(self.path).stem

    @property
    def directory(self) -> str:
        return os.path.dirname(self.path)

    def read_text(self, max_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES) -> Optional[str]:
        return read_source(self.path, max_bytes=max_bytes)

    def modification_time(self) -> Optional[float]:
        return modification_time(self.path)

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def __str__(self) -> str:
        return self.name
