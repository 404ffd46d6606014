# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Lifecycle events published by the analysis engine.

Components publish discrete events to an optional EventBus; nothing in the
engine depends on anyone listening. Subscribers are plain callables taking
an AnalysisEvent.

Error isolation:
- A subscriber that raises is logged at error level
- Remaining subscribers still receive the event
- The publishing component never sees the exception
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class EventType:
    """Event type names."""

    FINGERPRINT_COMPUTED = "fingerprint_computed"
    CACHE_HIT = "cache_hit"
    CACHE_INVALIDATED = "cache_invalidated"
    EDGE_DISCOVERED = "edge_discovered"
    FILE_UNREADABLE = "file_unreadable"

    ALL = (
        FINGERPRINT_COMPUTED,
        CACHE_HIT,
        CACHE_INVALIDATED,
        EDGE_DISCOVERED,
        FILE_UNREADABLE,
    )


@dataclass(frozen=True)
class AnalysisEvent:
    """A single lifecycle event.

    Attributes:
        event_type: One of the EventType values.
        path: File the event concerns.
        detail: Event-specific string values (e.g. edge target and reasons).
        timestamp: Unix time the event was created.
    """

    event_type: str
    path: str
    detail: Dict[str, str] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


# Subscriber signature: (event: AnalysisEvent) -> None
Subscriber = Callable[[AnalysisEvent], None]


class EventBus:
    """Synchronous publish/subscribe hub.

    Delivery happens on the publishing thread, in subscription order.

    Usage:
        bus = EventBus()
        bus.subscribe(lambda event: print(event.event_type, event.path))
        engine = build_engine(root, config, events=bus)
    """

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> None:
        """Register a subscriber. Registering the same callable twice is a no-op."""
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)
                logger.debug(f"Registered event subscriber: {callback}")

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
                logger.debug(f"Unregistered event subscriber: {callback}")

    def publish(self, event: AnalysisEvent) -> None:
        """Deliver an event to every subscriber."""
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event subscriber failed for {event.event_type} ({event.path}): {e}")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)
