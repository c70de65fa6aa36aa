"""
Short-term recovery cache package.

Modules
=======

``expiring``
    Defines :class:`~wa_recall.memory.cache.expiring.ExpiringCache`, the
    insertion-ordered, TTL-bounded cache that owns eviction and the periodic
    sweep.
``entry``
    :class:`~wa_recall.memory.cache.entry.CacheEntry` plus its snapshot
    (de)serialization.
``store``
    :class:`~wa_recall.memory.cache.store.SnapshotStore`, the gzip JSON file
    holding the whole cache.
``writer``
    :class:`~wa_recall.memory.cache.writer.WriteCoordinator`, the single-flight
    writer that coalesces overlapping persistence requests.
"""

from .entry import CacheEntry, VOICE_NOTE
from .expiring import ExpiringCache
from .store import SnapshotStore
from .writer import WriteCoordinator

__all__ = ["CacheEntry", "VOICE_NOTE", "ExpiringCache", "SnapshotStore", "WriteCoordinator"]
