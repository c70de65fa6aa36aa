"""
Deleted-message recovery.

The engine listens to two transport streams. Inbound voice notes from other
people are downloaded and cached; when a status update reports that one of
them was revoked, the cached copy is evicted and re-sent to the configured
destination with a short notice.

Per message id the lifecycle is ``untracked -> cached -> delivered|evicted``.
Recovery is at-most-once: the entry leaves the cache before delivery starts,
so a duplicate revoke finds nothing and a failed delivery is not retried.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable

from wa_recall.clients.transport import (
    MESSAGES_UPDATE,
    MESSAGES_UPSERT,
    STATUS_BROADCAST,
    InboundMessage,
    MessageUpdate,
    Transport,
    UpsertEvent,
    normalize_jid,
)
from wa_recall.memory.cache import VOICE_NOTE, CacheEntry, ExpiringCache
from wa_recall.memory.cache.entry import DEFAULT_VOICE_MIME, display_for
from wa_recall.memory.cache.store import now_ms

from . import formatting

logger = logging.getLogger(__name__)

SUCCESS_REACTION = "✅"
FAILURE_REACTION = "❌"


class RecoveryEngine:
    """Cache voice notes and re-deliver them when their sender revokes them."""

    def __init__(
        self,
        transport: Transport,
        cache: ExpiringCache,
        core: Any,
        settings: Any,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.transport = transport
        self.cache = cache
        self.core = core
        self.settings = settings
        self.enabled: bool = bool(settings.ENABLED)
        self._clock = clock

        transport.on(MESSAGES_UPSERT, self.on_messages_upsert)
        transport.on(MESSAGES_UPDATE, self.on_messages_update)

    # ------------------------------------------------------------------ #
    # LIFECYCLE
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Load the persisted cache and start the sweep if enabled."""

        loaded = self.cache.init()
        logger.info("Anti-delete ready (%d cached, enabled=%s)", loaded, self.enabled)
        if self.enabled:
            await self.cache.start_sweeper()

    async def shutdown(self) -> None:
        await self.cache.shutdown()

    # ------------------------------------------------------------------ #
    # CONTROL
    # ------------------------------------------------------------------ #

    async def enable(self) -> None:
        self.enabled = True
        await self.cache.start_sweeper()

    async def disable(self) -> None:
        self.enabled = False
        await self.cache.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "path": self.settings.PATH,
            "count": len(self.cache),
        }

    def controllers(self) -> set[str]:
        """Addresses allowed to run the control command."""
        return {normalize_jid(self.transport.self_jid()), self.core.OWNER_JID}

    def author(self, message: InboundMessage) -> str:
        """Normalized author of ``message``; the bot itself for its own messages."""
        if message.key.from_me:
            return normalize_jid(self.transport.self_jid())
        return normalize_jid(message.sender)

    def is_controller(self, sender: str) -> bool:
        return normalize_jid(sender) in self.controllers()

    def resolve_destination(self, chat_id: str) -> str:
        path = self.settings.PATH
        if path == "same":
            return chat_id
        if path == "inbox":
            return normalize_jid(self.transport.self_jid())
        return self.core.OWNER_JID

    # ------------------------------------------------------------------ #
    # CAPTURE
    # ------------------------------------------------------------------ #

    def should_capture(self, message: InboundMessage) -> bool:
        if message.key.from_me or message.chat_id == STATUS_BROADCAST:
            return False
        return message.is_voice_note

    async def on_messages_upsert(self, event: UpsertEvent) -> None:
        if not self.enabled or event.type != "notify":
            return

        for message in event.messages:
            if not self.should_capture(message):
                continue
            try:
                await self.capture(message)
            except Exception:
                logger.exception("Error caching message %s", message.key.id)

    async def capture(self, message: InboundMessage) -> CacheEntry:
        """Download ``message``'s voice note and cache it under its id."""

        audio = message.audio
        payload = await self.transport.download_media(audio.descriptor, "audio")
        sender = message.sender
        entry = CacheEntry(
            kind=VOICE_NOTE,
            payload=bytes(payload),
            mime_type=audio.mimetype or DEFAULT_VOICE_MIME,
            sender=sender,
            sender_display=display_for(sender),
            created_at=self._clock(),
            chat_id=message.chat_id,
        )
        await self.cache.add(message.key.id, entry)
        return entry

    # ------------------------------------------------------------------ #
    # RECOVERY
    # ------------------------------------------------------------------ #

    async def on_messages_update(self, updates: Iterable[MessageUpdate]) -> None:
        if not self.enabled or not updates:
            return

        for update in updates:
            await self.recover(update)

    async def recover(self, update: MessageUpdate) -> bool:
        """Re-deliver the cached copy of a revoked message.

        Returns ``True`` when a cached entry was found and delivery attempted
        successfully. Never raises.
        """

        key = update.key
        if not update.is_revoke or key.from_me:
            return False

        entry = self.cache.get(key.id)
        if entry is None:
            return False

        if self.cache.is_expired(entry):
            logger.info("Revoked message %s expired before recovery", key.id)
            await self.cache.remove(key.id)
            return False

        destination = self.core.OWNER_JID
        try:
            await self.cache.remove(key.id)
            destination = self.resolve_destination(key.remote_jid)
            await self._deliver(destination, entry)
            await self.transport.send_reaction(destination, key, SUCCESS_REACTION)
        except Exception:
            logger.exception("Error restoring message %s", key.id)
            await self._react_failure(destination, update)
            return False

        logger.info("Recovered message %s to %s", key.id, destination)
        return True

    async def _deliver(self, destination: str, entry: CacheEntry) -> None:
        chat = await formatting.chat_name(self.transport, entry.chat_id)
        notice = formatting.recovery_notice(entry, chat, self.settings.TIMEZONE)
        await self.transport.send_message(destination, {"text": notice})

        if entry.kind == VOICE_NOTE:
            await self.transport.send_message(
                destination,
                {"audio": entry.payload, "mimetype": entry.mime_type, "ptt": True},
            )
        elif entry.payload is not None:
            await self.transport.send_message(
                destination, {entry.kind: entry.payload, "mimetype": entry.mime_type}
            )

        if entry.content:
            await self.transport.send_message(
                destination, {"text": formatting.content_echo(entry.content)}
            )

    async def _react_failure(self, destination: str, update: MessageUpdate) -> None:
        try:
            await self.transport.send_reaction(destination, update.key, FAILURE_REACTION)
        except Exception:
            logger.exception("Failed to send failure reaction for %s", update.key.id)
