"""
Inbound Event Dedup Cache

The chat transport delivers at least once. A redelivered receipt photo
would otherwise be parsed and recorded a second time, so every inbound
message id is remembered for a short time.

DESIGN DECISION: The cache is an explicit abstraction injected into the
assistant, not a module-level set:
1. A distributed implementation can replace it without touching callers
2. Tests control time through the clock argument

This is the only process-shared mutable state in the engine. It is
guarded by a threading.Lock so handlers running on different threads
(or event loops) can share one instance.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, Optional

import structlog

from ledger_assistant.config import get_settings


logger = structlog.get_logger(__name__)


class EventCache(ABC):
    """Remembers recently seen inbound event ids."""

    @abstractmethod
    def check_and_add(self, key: str) -> bool:
        """
        Record ``key`` as seen.

        Returns:
            True if the key is new, False if it was seen within the TTL
        """
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class TTLEventCache(EventCache):
    """
    In-process cache with a fixed time-to-live and a capacity bound.

    Expired entries are purged on every call. When the capacity is
    reached the oldest entries are evicted first.

    Args:
        ttl_seconds: How long a key is remembered
        capacity: Maximum number of remembered keys
        clock: Monotonic seconds; defaults to time.monotonic
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        capacity: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings().app
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.event_cache_ttl_seconds
        self._capacity = capacity if capacity is not None else settings.event_cache_capacity
        if self._ttl <= 0:
            raise ValueError("ttl_seconds must be positive")
        if self._capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._clock = clock
        # key -> time first seen; insertion order == age order
        self._entries: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    def _purge_expired(self, now: float) -> None:
        while self._entries:
            key, seen_at = next(iter(self._entries.items()))
            if now - seen_at < self._ttl:
                break
            del self._entries[key]

    def check_and_add(self, key: str) -> bool:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)

            if key in self._entries:
                logger.info("Inbound event already seen", key=key)
                return False

            while len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Event cache full, evicting oldest", evicted=evicted)

            self._entries[key] = now
            return True

    def __contains__(self, key: str) -> bool:
        with self._lock:
            self._purge_expired(self._clock())
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired(self._clock())
            return len(self._entries)
