"""
Durable snapshot of the recovery cache.

The whole cache lives in one gzipped JSON file holding an ordered list of
``[message_id, entry]`` pairs::

    [["3EB0C1...", {"kind": "ptt", "payload": "...", ...}], ...]

The file is read once at startup and rewritten in full after every mutation.
Writes go to a temporary sibling and are swapped in with :func:`os.replace`,
so a failed write leaves the previous snapshot intact.
"""

from __future__ import annotations

import gzip
import json
import logging
import os
import time
import zlib
from pathlib import Path
from typing import Any, Callable, Iterable, List, Tuple

from .entry import CacheEntry, entry_from_dict

logger = logging.getLogger(__name__)

Snapshot = List[Tuple[str, CacheEntry]]


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def _parse_pairs(raw: Any) -> Snapshot:
    """Validate the decoded file shape and rebuild its entries."""
    if not isinstance(raw, list):
        raise ValueError(f"Expected a list of pairs, got {type(raw).__name__}")

    pairs: Snapshot = []
    for item in raw:
        if not (isinstance(item, list) and len(item) == 2 and isinstance(item[1], dict)):
            raise ValueError(f"Malformed snapshot pair: {item!r:.80}")
        pairs.append((str(item[0]), entry_from_dict(item[1])))
    return pairs


class SnapshotStore:
    """Read and write the cache snapshot file."""

    def __init__(
        self,
        path: str | Path,
        ttl_ms: int,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.path = Path(path)
        self.ttl_ms = ttl_ms
        self._clock = clock

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Snapshot:
        """Return the persisted entries that are still within the TTL.

        A missing file yields an empty snapshot. A corrupt file is logged and
        also yields an empty snapshot. When stale entries are dropped the
        filtered snapshot is written back immediately.
        """
        if not self.path.exists():
            return []

        try:
            with gzip.open(self.path, "rt", encoding="utf-8") as f:
                raw = json.load(f)
            pairs = _parse_pairs(raw)
        except (OSError, EOFError, zlib.error, ValueError, KeyError, TypeError):
            logger.exception("Failed to load cache snapshot %s", self.path)
            return []

        now = self._clock()
        valid = [(mid, entry) for mid, entry in pairs if entry.age(now) <= self.ttl_ms]
        logger.info("Loaded %d messages from %s", len(valid), self.path)

        if len(valid) != len(pairs):
            logger.info("Dropped %d expired messages at load", len(pairs) - len(valid))
            self.save(valid)
        return valid

    def save(self, entries: Iterable[Tuple[str, CacheEntry]]) -> bool:
        """Replace the snapshot with ``entries``. Returns ``False`` on failure."""
        tmp = self.path.with_suffix(".tmp")
        try:
            serializable = [[mid, entry.to_dict()] for mid, entry in entries]
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with gzip.open(tmp, "wt", encoding="utf-8") as f:
                json.dump(serializable, f)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError):
            logger.exception("Error saving cache snapshot %s", self.path)
            return False

        logger.info("Cache snapshot saved (%d messages)", len(serializable))
        return True
