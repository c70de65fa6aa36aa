import os, sys
from collections import defaultdict
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# Ensure required environment variables for config validation
os.environ.setdefault("OWNER_NUMBER", "50900000000")
os.environ.setdefault("PREFIX", ".")


OWNER_JID = "50900000000@s.whatsapp.net"


class FakeClock:
    """Millisecond clock tests can move by hand."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += int(minutes * 60 * 1000)


class MemoryStore:
    """SnapshotStore stand-in that records every save."""

    def __init__(self, initial=None) -> None:
        self.initial = list(initial or [])
        self.saves: list[list] = []

    def load(self):
        return list(self.initial)

    def save(self, entries) -> bool:
        self.saves.append(list(entries))
        return True


class FakeTransport:
    def __init__(self, self_jid: str = "50911111111:7@s.whatsapp.net") -> None:
        self._self_jid = self_jid
        self.listeners = defaultdict(list)
        self.sent: list[tuple[str, dict]] = []
        self.reactions: list[tuple[str, str, str]] = []
        self.groups: dict[str, dict] = {}
        self.media = b"OggS\x00voice"
        self.downloads: list[tuple[dict, str]] = []

    def on(self, event, listener):
        self.listeners[event].append(listener)

    def self_jid(self):
        return self._self_jid

    async def send_message(self, jid, content):
        self.sent.append((jid, content))

    async def send_reaction(self, jid, key, emoji):
        self.reactions.append((jid, key.id, emoji))

    async def group_metadata(self, jid):
        if jid not in self.groups:
            raise LookupError(jid)
        return self.groups[jid]

    async def download_media(self, descriptor, media_type):
        self.downloads.append((descriptor, media_type))
        return self.media


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def core_cfg():
    return SimpleNamespace(PREFIX=".", OWNER_NUMBER="50900000000", OWNER_JID=OWNER_JID)


@pytest.fixture
def settings():
    return SimpleNamespace(
        ENABLED=True,
        PATH="owner",
        TTL_MINUTES=30,
        TIMEZONE="UTC",
    )
