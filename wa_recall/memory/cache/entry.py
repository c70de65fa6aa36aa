"""Dataclass model for a cached message.

Snapshot schema (output of :meth:`CacheEntry.to_dict`)::

    {"kind": "ptt", "payload": "<base64>", "mime_type": "audio/ogg",
     "sender": "509...@s.whatsapp.net", "sender_display": "@509...",
     "created_at": 1700000000000, "chat_id": "...@g.us"}

``content`` is included only when the entry carries a text body. ``payload``
is base64 text on disk and raw ``bytes`` in memory.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

EntryKind = Literal["ptt"]

VOICE_NOTE: EntryKind = "ptt"
DEFAULT_VOICE_MIME = "audio/ogg"


def _drop_nones(d: Dict[str, Any]) -> Dict[str, Any]:
    """Return a shallow copy of ``d`` without keys mapped to ``None``."""
    return {k: v for k, v in d.items() if v is not None}


def display_for(address: str) -> str:
    """Render ``address`` as a mention, e.g. ``@50912345678``."""
    return "@" + address.split("@", 1)[0]


@dataclass(slots=True)
class CacheEntry:
    """One recoverable message held by the expiring cache."""

    kind: EntryKind
    payload: Optional[bytes]
    mime_type: str
    sender: str
    sender_display: str
    created_at: int
    chat_id: str
    content: Optional[str] = None

    def age(self, now_ms: int) -> int:
        return now_ms - self.created_at

    def to_dict(self) -> Dict[str, Any]:
        payload = (
            base64.b64encode(self.payload).decode("ascii")
            if self.payload is not None
            else None
        )
        return _drop_nones(
            {
                "kind": self.kind,
                "payload": payload,
                "mime_type": self.mime_type,
                "sender": self.sender,
                "sender_display": self.sender_display,
                "created_at": self.created_at,
                "chat_id": self.chat_id,
                "content": self.content,
            }
        )


def entry_from_dict(data: Dict[str, Any]) -> CacheEntry:
    """Rebuild a :class:`CacheEntry` from :meth:`CacheEntry.to_dict` output.

    Raises ``KeyError``/``ValueError``/``TypeError`` on malformed input.
    """
    raw_payload = data.get("payload")
    try:
        payload = (
            base64.b64decode(raw_payload, validate=True)
            if raw_payload is not None
            else None
        )
    except binascii.Error as exc:
        raise ValueError(f"Invalid payload encoding: {exc}") from exc

    return CacheEntry(
        kind=data["kind"],
        payload=payload,
        mime_type=str(data.get("mime_type") or DEFAULT_VOICE_MIME),
        sender=str(data["sender"]),
        sender_display=str(data.get("sender_display") or display_for(data["sender"])),
        created_at=int(data["created_at"]),
        chat_id=str(data["chat_id"]),
        content=data.get("content"),
    )
