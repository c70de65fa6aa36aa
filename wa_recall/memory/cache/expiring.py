"""
Insertion-ordered, TTL-bounded message cache.

Entries are kept in a dict in arrival order, so the first keys are the
oldest. The periodic sweep inspects at most ``sweep_batch`` keys from the
front per tick; a forced sweep (size ceiling reached, explicit request)
walks the whole collection. Every mutation is mirrored to disk through a
:class:`~wa_recall.memory.cache.writer.WriteCoordinator`.

``get``/``has`` are plain lookups. Callers that act on an entry are expected
to check :meth:`ExpiringCache.is_expired` themselves, since a stale entry may
still be physically present between sweeps.
"""

from __future__ import annotations

import asyncio
import logging
from itertools import islice
from typing import Callable, Dict, Iterator

from wa_recall import maintenance

from .entry import CacheEntry
from .store import Snapshot, SnapshotStore, now_ms
from .writer import WriteCoordinator

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 30 * 60 * 1000
DEFAULT_MAX_ENTRIES = 1000
DEFAULT_SWEEP_BATCH = 100
MAX_SWEEP_INTERVAL_MS = 5 * 60 * 1000


class ExpiringCache:
    """Process-wide cache of recoverable messages keyed by message id."""

    def __init__(
        self,
        store: SnapshotStore,
        *,
        ttl_ms: int = DEFAULT_TTL_MS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        sweep_batch: int = DEFAULT_SWEEP_BATCH,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.ttl_ms = ttl_ms
        self.max_entries = max_entries
        self.sweep_batch = sweep_batch
        self._clock = clock
        self._store = store
        self._entries: Dict[str, CacheEntry] = {}
        self._writer = WriteCoordinator(store, self.snapshot)
        self._sweep_task: asyncio.Task | None = None

    # ------------------------------------------------------------------ #
    # LIFECYCLE
    # ------------------------------------------------------------------ #

    def init(self) -> int:
        """Replace in-memory state with the persisted snapshot."""

        self._entries = dict(self._store.load())
        return len(self._entries)

    async def shutdown(self) -> None:
        """Stop the sweep and flush the cache one last time."""

        await self.stop_sweeper()
        await self.flush()

    @property
    def sweep_interval(self) -> float:
        """Seconds between periodic sweeps."""
        return min(self.ttl_ms, MAX_SWEEP_INTERVAL_MS) / 1000

    async def start_sweeper(self) -> None:
        """(Re)start the periodic sweep, cancelling any previous one."""

        await self.stop_sweeper()
        self._sweep_task = await maintenance.startup(
            self.sweep_expired, self.sweep_interval, name="cache-sweep"
        )
        logger.info("Cleanup scheduler started (interval=%ss)", self.sweep_interval)

    async def stop_sweeper(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        await maintenance.shutdown(task)

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    # ------------------------------------------------------------------ #
    # READ helpers
    # ------------------------------------------------------------------ #

    def get(self, message_id: str) -> CacheEntry | None:
        return self._entries.get(message_id)

    def has(self, message_id: str) -> bool:
        return message_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def snapshot(self) -> Snapshot:
        """Ordered ``(message_id, entry)`` pairs, oldest first."""
        return list(self._entries.items())

    def is_expired(self, entry: CacheEntry, now: int | None = None) -> bool:
        now = self._clock() if now is None else now
        return entry.age(now) > self.ttl_ms

    # ------------------------------------------------------------------ #
    # WRITE helpers
    # ------------------------------------------------------------------ #

    async def add(self, message_id: str, entry: CacheEntry) -> None:
        """Insert or overwrite ``message_id`` and persist."""

        if len(self._entries) >= self.max_entries:
            removed = self._evict_expired(force=True)
            logger.info(
                "Cache at ceiling (%d); forced sweep removed %d", self.max_entries, removed
            )

        # Re-insert at the end so iteration order keeps tracking arrival time.
        self._entries.pop(message_id, None)
        self._entries[message_id] = entry
        logger.info("Cached message %s from %s in %s", message_id, entry.sender, entry.chat_id)
        await self._writer.request()

    async def remove(self, message_id: str) -> bool:
        """Drop ``message_id`` and persist. Absent ids are a no-op."""

        if self._entries.pop(message_id, None) is None:
            return False
        logger.info("Removed from cache: %s", message_id)
        await self._writer.request()
        return True

    async def clear(self) -> int:
        """Drop every entry regardless of age and persist the empty cache."""

        count = len(self._entries)
        self._entries.clear()
        logger.info("Cache cleared (%d messages dropped)", count)
        await self._writer.request()
        return count

    async def sweep_expired(self, force: bool = False) -> int:
        """Remove expired entries, persisting if anything was removed."""

        removed = self._evict_expired(force)
        if removed:
            logger.info("Cleaned %d expired messages", removed)
            await self._writer.request()
        return removed

    async def flush(self) -> None:
        await self._writer.request()

    def _evict_expired(self, force: bool) -> int:
        now = self._clock()
        if force:
            candidates = list(self._entries)
        else:
            limit = min(self.sweep_batch, len(self._entries))
            candidates = list(islice(self._entries, limit))

        removed = 0
        for message_id in candidates:
            if self.is_expired(self._entries[message_id], now):
                del self._entries[message_id]
                removed += 1
        return removed
