"""Cache manager for expensive aggregates and the snapshot service on top of it."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from sysboard.classify import classify_snapshot
from sysboard.gateway import CommandGateway
from sysboard.models import SystemSnapshot
from sysboard.normalizer import normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")

SYSTEM_SNAPSHOT = "system_snapshot"
SNAPSHOT_COMMAND = "get_system_info_detailed"

SNAPSHOT_TTL_MS = 5 * 60 * 1000
FORCED_REFRESH_SECONDS = 120.0


def epoch_millis() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(slots=True, frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and when it was fetched."""

    value: T
    fetched_at_epoch_millis: int


class SnapshotCache:
    """
    Last-known-good values with a time-to-live.

    Holds at most one entry per slot key. Values are immutable snapshots, so
    handing the stored object to callers cannot leak later mutation; a put
    replaces the entry wholesale.
    """

    def __init__(
        self,
        ttl_ms: int = SNAPSHOT_TTL_MS,
        clock: Callable[[], int] = epoch_millis,
        slots: frozenset[str] = frozenset({SYSTEM_SNAPSHOT}),
    ) -> None:
        """
        Initialize the cache.

        Args:
            ttl_ms: Maximum age at which an entry is still served.
            clock: Returns the current time in epoch milliseconds.
            slots: The logical resources this cache may hold.
        """
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._slots = slots
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_ms(self) -> int:
        """Get the time-to-live in milliseconds."""
        return self._ttl_ms

    def get(self, key: str):
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        age = self._clock() - entry.fetched_at_epoch_millis
        if age >= self._ttl_ms:
            logger.debug("cache entry %s expired (%d ms old)", key, age)
            return None
        return entry.value

    def entry(self, key: str) -> CacheEntry | None:
        """Return the raw entry regardless of age."""
        return self._entries.get(key)

    def put(self, key: str, value) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        if key not in self._slots:
            raise KeyError(f"unknown cache slot: {key}")
        self._entries[key] = CacheEntry(value, self._clock())

    def invalidate(self, key: str) -> None:
        """Forget the entry for ``key``."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Forget every entry."""
        self._entries.clear()


class SnapshotService:
    """
    Serves SystemSnapshot from the cache, fetching through the gateway on a miss.

    Concurrent refreshes are not coalesced: two overlapping calls both hit
    the gateway and whichever resolves last is what the cache keeps.
    """

    def __init__(self, gateway: CommandGateway, cache: SnapshotCache) -> None:
        self._gateway = gateway
        self._cache = cache

    @property
    def cache(self) -> SnapshotCache:
        """The backing cache."""
        return self._cache

    async def get_snapshot(self, force: bool = False) -> SystemSnapshot:
        """
        Return the current snapshot.

        Args:
            force: Skip the cache and fetch from the backend.

        Raises:
            GatewayError: The fetch failed; the cache is left untouched.
        """
        if not force:
            cached = self._cache.get(SYSTEM_SNAPSHOT)
            if cached is not None:
                return cached

        raw = await self._gateway.invoke(SNAPSHOT_COMMAND, expect=dict)
        snapshot = classify_snapshot(normalize(raw))
        self._cache.put(SYSTEM_SNAPSHOT, snapshot)
        return snapshot

    def invalidate(self) -> None:
        """Drop the cached snapshot so the next read refetches."""
        self._cache.invalidate(SYSTEM_SNAPSHOT)
