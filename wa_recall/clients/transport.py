"""
Transport boundary between the bot and the WhatsApp session.

The recovery engine and the command dispatcher only talk to an object that
implements :class:`Transport`. The models below are the decoded shapes of the
two event streams the bot listens to:

``messages.upsert``
    :class:`UpsertEvent` carrying a batch of :class:`InboundMessage`.
``messages.update``
    a list of :class:`MessageUpdate` status changes.

``parse_upsert`` and ``parse_updates`` turn the bridge's JSON payloads (which
follow the Baileys ``WebMessageInfo`` layout) into these models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

MESSAGES_UPSERT = "messages.upsert"
MESSAGES_UPDATE = "messages.update"

STATUS_BROADCAST = "status@broadcast"
USER_SERVER = "s.whatsapp.net"
GROUP_SERVER = "g.us"

# WebMessageInfo.StubType.REVOKE
STUB_REVOKE = 1

Listener = Callable[[Any], Awaitable[None]]


def normalize_jid(jid: str | None) -> str:
    """Strip the device suffix from ``jid`` (``123:4@s.whatsapp.net`` -> ``123@s.whatsapp.net``)."""
    if not jid:
        return ""
    user, sep, server = jid.partition("@")
    if not sep:
        return jid
    return f"{user.split(':', 1)[0]}@{server}"


def is_group(jid: str | None) -> bool:
    return bool(jid) and jid.endswith("@" + GROUP_SERVER)


@dataclass(slots=True)
class MessageKey:
    id: str
    remote_jid: str
    from_me: bool = False
    participant: Optional[str] = None

    @property
    def sender(self) -> str:
        """Author address: group participant when present, else the chat."""
        return self.participant or self.remote_jid

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "remoteJid": self.remote_jid,
            "fromMe": self.from_me,
        }
        if self.participant:
            data["participant"] = self.participant
        return data


@dataclass(slots=True)
class AudioAttachment:
    """Opaque audio descriptor plus the fields the cache needs up front."""

    descriptor: Dict[str, Any]
    ptt: bool = False
    mimetype: Optional[str] = None


@dataclass(slots=True)
class InboundMessage:
    key: MessageKey
    text: Optional[str] = None
    audio: Optional[AudioAttachment] = None

    @property
    def sender(self) -> str:
        return self.key.sender

    @property
    def chat_id(self) -> str:
        return self.key.remote_jid

    @property
    def is_voice_note(self) -> bool:
        return self.audio is not None and self.audio.ptt


@dataclass(slots=True)
class UpsertEvent:
    messages: List[InboundMessage] = field(default_factory=list)
    type: str = "notify"


@dataclass(slots=True)
class MessageUpdate:
    key: MessageKey
    stub_type: Optional[int] = None
    deleted: bool = False

    @property
    def is_revoke(self) -> bool:
        return self.deleted or self.stub_type == STUB_REVOKE


class Transport(Protocol):
    """What the bot needs from a live WhatsApp session."""

    def on(self, event: str, listener: Listener) -> None:
        """Register ``listener`` for ``event`` for the lifetime of the process."""

    def self_jid(self) -> str:
        """Normalized address of the bot's own account."""

    async def send_message(self, jid: str, content: Dict[str, Any]) -> Any:
        """Send ``content`` (``{"text": ...}`` or ``{"audio": bytes, "mimetype": ..., "ptt": bool}``)."""

    async def send_reaction(self, jid: str, key: MessageKey, emoji: str) -> Any:
        """React to the message referenced by ``key`` in ``jid``."""

    async def group_metadata(self, jid: str) -> Dict[str, Any]:
        """Return group metadata (at least ``subject``) for ``jid``."""

    async def download_media(self, descriptor: Dict[str, Any], media_type: str) -> bytes:
        """Decode the media referenced by ``descriptor`` into raw bytes."""


# ---------------------------------------------------------------------- #
# Bridge payload parsing
# ---------------------------------------------------------------------- #


def parse_key(raw: Dict[str, Any]) -> MessageKey:
    return MessageKey(
        id=str(raw["id"]),
        remote_jid=str(raw.get("remoteJid") or ""),
        from_me=bool(raw.get("fromMe", False)),
        participant=raw.get("participant") or None,
    )


def _text_of(body: Dict[str, Any]) -> Optional[str]:
    if "conversation" in body:
        return body["conversation"]
    extended = body.get("extendedTextMessage") or {}
    return extended.get("text")


def parse_message(raw: Dict[str, Any]) -> InboundMessage:
    body = raw.get("message") or {}
    audio_raw = body.get("audioMessage")
    audio = None
    if audio_raw:
        audio = AudioAttachment(
            descriptor=audio_raw,
            ptt=bool(audio_raw.get("ptt", False)),
            mimetype=audio_raw.get("mimetype"),
        )
    return InboundMessage(key=parse_key(raw["key"]), text=_text_of(body), audio=audio)


def parse_upsert(params: Dict[str, Any]) -> UpsertEvent:
    return UpsertEvent(
        messages=[parse_message(m) for m in params.get("messages") or []],
        type=str(params.get("type", "notify")),
    )


def parse_updates(params: Any) -> List[MessageUpdate]:
    updates = params.get("updates", []) if isinstance(params, dict) else params
    parsed: List[MessageUpdate] = []
    for raw in updates or []:
        status = raw.get("update") or {}
        parsed.append(
            MessageUpdate(
                key=parse_key(raw["key"]),
                stub_type=status.get("messageStubType"),
                deleted=bool(status.get("deleted", False)),
            )
        )
    return parsed
