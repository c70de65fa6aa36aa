"""Text rendering for recovery notices and the antidelete control command."""

from __future__ import annotations

import datetime
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from wa_recall.clients.transport import Transport, is_group
from wa_recall.memory.cache import CacheEntry

logger = logging.getLogger(__name__)

UNKNOWN_CHAT = "🚫 Unknown Chat"
GROUP_CHAT = "👥 Group"
PRIVATE_CHAT = "👤 Private Chat"

MODE_LABELS = {
    "same": "🔄 Same Chat",
    "inbox": "📥 Bot Inbox",
    "owner": "👑 Owner PM",
}


def mode_label(path: str) -> str:
    return MODE_LABELS.get(path, MODE_LABELS["owner"])


def _zone(name: str) -> datetime.tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; falling back to UTC", name)
        return datetime.timezone.utc


def format_time(timestamp_ms: int, tz_name: str) -> str:
    """Render ``timestamp_ms`` like ``Jan 5, 2025, 3:04:05 PM (EST)``."""
    moment = datetime.datetime.fromtimestamp(timestamp_ms / 1000, tz=_zone(tz_name))
    hour = moment.strftime("%I").lstrip("0") or "12"
    return (
        f"{moment.strftime('%b')} {moment.day}, {moment.year}, "
        f"{hour}:{moment.strftime('%M:%S %p')} ({moment.tzname()})"
    )


async def chat_name(transport: Transport, jid: str | None) -> str:
    """Human name for ``jid``; never raises."""
    if not jid:
        return UNKNOWN_CHAT
    if not is_group(jid):
        return PRIVATE_CHAT
    try:
        meta = await transport.group_metadata(jid)
    except Exception:
        logger.warning("Group metadata lookup failed for %s", jid, exc_info=True)
        return UNKNOWN_CHAT
    return (meta or {}).get("subject") or GROUP_CHAT


def recovery_notice(entry: CacheEntry, chat: str, tz_name: str) -> str:
    return (
        "🚨 *Recovered Deleted Message*\n"
        f"▫️ *Sender:* {entry.sender_display}\n"
        f"▫️ *Chat:* {chat}\n"
        f"🕒 *Time:* {format_time(entry.created_at, tz_name)}"
    )


def content_echo(content: str) -> str:
    return f"📝 *Content:*\n{content}"


def status_on(path: str, ttl_minutes: int, count: int) -> str:
    return (
        "🌟 *Anti-Delete Activated*\n"
        "• Status: 🟢 Active\n"
        f"• Mode: {mode_label(path)}\n"
        f"• Cache Duration: {ttl_minutes}min\n"
        f"• Messages Stored: {count}"
    )


def status_off() -> str:
    return (
        "⚠️ *Anti-Delete Deactivated*\n"
        "• Status: 🔴 Inactive\n"
        "• Cache cleared"
    )


def status_stats(enabled: bool, path: str, count: int) -> str:
    return (
        "📊 *Anti-Delete Stats*\n"
        f"• Status: {'🟢 Active' if enabled else '🔴 Inactive'}\n"
        f"• Mode: {mode_label(path)}\n"
        f"• Messages Cached: {count}"
    )


def help_text(prefix: str) -> str:
    return (
        "🛡️ *Anti-Delete Help*\n"
        f"• {prefix}antidelete on\n"
        f"• {prefix}antidelete off\n"
        f"• {prefix}antidelete stats"
    )
