# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Fingerprint cache with modification-time validation.

Key features:
- Fingerprints memoized per file path
- Lazy staleness detection: an entry is reused only while the file's
  modification time equals the one recorded with it
- Entries are immutable and replaced wholesale, never updated in place
- LRU eviction when the size limit is reached
- Thread-safe: per-path locks serialize get/invalidate on the same file,
  a map lock guards the shared index and statistics
- Per-path locks are dropped as soon as no call holds them

Usage:
    cache = FingerprintCache(FingerprintBuilder(create_adapter("tree_sitter")))
    fingerprint = cache.get("/project/lib/seed.rb")
"""

import logging
import os
import threading
import weakref
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from rubyprint.analyzers.fingerprint_builder import FingerprintBuilder
from rubyprint.events import AnalysisEvent, EventBus, EventType
from rubyprint.models import Fingerprint
from rubyprint.source_files import SourceFile, modification_time

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000

PathLike = Union[str, SourceFile]


@dataclass(frozen=True)
class CacheEntry:
    """A cached Fingerprint.

    Attributes:
        path: Absolute file path.
        modification_time: File modification time when computed
            (None if the file did not exist).
        fingerprint: The computed Fingerprint.
    """

    path: str
    modification_time: Optional[float]
    fingerprint: Fingerprint


class FingerprintCache:
    """Memoizes Fingerprints by path.

    Cache Invalidation:
        An entry is stale when the file's current modification time differs
        from the recorded one. Stale entries are recomputed on the next get();
        nothing watches the file system.

    Eviction Policy:
        When max_entries is reached, the least recently used entry is evicted.
    """

    def __init__(
        self,
        builder: FingerprintBuilder,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        events: Optional[EventBus] = None,
    ):
        """Initialize the cache.

        Args:
            builder: Computes Fingerprints on misses.
            max_entries: Maximum number of entries (default: 1000).
            events: Optional bus receiving cache events.
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")

        self.builder = builder
        self._max_entries = max_entries
        self._events = events

        self._map_lock = threading.RLock()
        # Entries live only while some caller holds the lock object
        self._path_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def get(self, path: PathLike) -> Fingerprint:
        """Return the Fingerprint of a file, recomputing it when stale.

        Args:
            path: File path or SourceFile.

        Returns:
            The Fingerprint. Unreadable files produce an empty Fingerprint.
        """
        key = self._key(path)

        with self._path_lock(key):
            current_mtime = modification_time(key)

            with self._map_lock:
                entry = self._cache.get(key)
                if entry is not None and entry.modification_time == current_mtime:
                    self._cache.move_to_end(key)
                    self._hits += 1
                    hit = True
                else:
                    self._misses += 1
                    hit = False
                    if entry is not None:
                        self._invalidations += 1

            if hit:
                self._publish(EventType.CACHE_HIT, key)
                return entry.fingerprint

            if entry is not None:
                logger.debug(f"Stale cache entry for {key}, recomputing")
                self._publish(EventType.CACHE_INVALIDATED, key, reason="modified")

            fingerprint = self.builder.build_file(key)
            self._store(CacheEntry(path=key, modification_time=current_mtime, fingerprint=fingerprint))
            return fingerprint

    def entry(self, path: PathLike) -> Optional[CacheEntry]:
        """Return the stored entry for a path without validating it."""
        with self._map_lock:
            return self._cache.get(self._key(path))

    def invalidate(self, path: PathLike) -> None:
        """Remove the entry for a path unconditionally."""
        key = self._key(path)
        with self._path_lock(key):
            with self._map_lock:
                removed = self._cache.pop(key, None) is not None
                if removed:
                    self._invalidations += 1
            if removed:
                self._publish(EventType.CACHE_INVALIDATED, key, reason="explicit")

    def invalidate_all(self) -> None:
        """Remove every entry."""
        with self._map_lock:
            count = len(self._cache)
            self._cache.clear()
            self._invalidations += count
        logger.debug(f"Fingerprint cache cleared ({count} entries)")

    def cached_paths(self) -> List[str]:
        """Paths with a stored entry, least recently used first."""
        with self._map_lock:
            return list(self._cache)

    def get_statistics(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with entries, max_entries, hits, misses, hit_rate
            and invalidations.
        """
        with self._map_lock:
            total_requests = self._hits + self._misses
            hit_rate = self._hits / total_requests if total_requests > 0 else 0.0

            return {
                "entries": len(self._cache),
                "max_entries": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": hit_rate,
                "invalidations": self._invalidations,
            }

    def __len__(self) -> int:
        with self._map_lock:
            return len(self._cache)

    def _store(self, entry: CacheEntry) -> None:
        with self._map_lock:
            self._cache.pop(entry.path, None)
            while len(self._cache) >= self._max_entries:
                self._evict_oldest()
            self._cache[entry.path] = entry

    def _evict_oldest(self) -> None:
        """Evict the least recently used entry."""
        oldest_key, _ = self._cache.popitem(last=False)
        logger.debug(f"Evicted cache entry: {oldest_key}")

    def _path_lock(self, key: str) -> threading.Lock:
        with self._map_lock:
            lock = self._path_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._path_locks[key] = lock
            return lock

    def _key(self, path: PathLike) -> str:
        raw = path.path if isinstance(path, SourceFile) else path
        return os.path.realpath(raw)

    def _publish(self, event_type: str, path: str, **detail: str) -> None:
        if self._events is not None:
            self._events.publish(AnalysisEvent(event_type=event_type, path=path, detail=detail))
