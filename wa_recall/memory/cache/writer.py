"""
Single-flight, coalescing persistence for the recovery cache.

At most one snapshot write is in flight. Requests that arrive while a write
is running park on a future; once the running write finishes, one trailing
write captures every mutation made in the meantime and releases all parked
requests together. N overlapping requests therefore cost one extra write, not
N.

The write loop runs in a task owned by the coordinator. Callers only await it
through :func:`asyncio.shield`, so cancelling a caller (e.g. the periodic
sweep being stopped) never interrupts a write or drops parked requests.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Callable, Deque

from .store import Snapshot, SnapshotStore

logger = logging.getLogger(__name__)


class WriteCoordinator:
    """Serialize snapshot writes against a :class:`SnapshotStore`."""

    def __init__(self, store: SnapshotStore, snapshot: Callable[[], Snapshot]) -> None:
        self._store = store
        self._snapshot = snapshot
        self._flight: asyncio.Task[None] | None = None
        self._waiters: Deque[asyncio.Future[None]] = deque()

    @property
    def saving(self) -> bool:
        return self._flight is not None and not self._flight.done()

    @property
    def pending(self) -> int:
        """Number of requests parked behind the in-flight write."""
        return len(self._waiters)

    async def request(self) -> None:
        """Persist the current cache, piggybacking on any in-flight write."""
        if self.saving:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            await asyncio.shield(waiter)
            return

        self._flight = asyncio.create_task(self._drain(), name="cache-write")
        await asyncio.shield(self._flight)

    async def _drain(self) -> None:
        try:
            await self._write()
            while self._waiters:
                batch = list(self._waiters)
                self._waiters.clear()
                await self._write()
                for waiter in batch:
                    if not waiter.done():
                        waiter.set_result(None)
        except Exception:
            logger.exception("Cache write loop failed")
        finally:
            # Never leave callers parked if the write loop bailed out early.
            while self._waiters:
                waiter = self._waiters.popleft()
                if not waiter.done():
                    waiter.set_result(None)

    async def _write(self) -> bool:
        # Snapshot before yielding so the write reflects the state at request time.
        entries = self._snapshot()
        return await asyncio.to_thread(self._store.save, entries)
