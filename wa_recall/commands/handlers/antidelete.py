from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from wa_recall.clients.transport import InboundMessage
from wa_recall.recovery import formatting
from . import register

if TYPE_CHECKING:  # pragma: no cover - type-checking only
    from wa_recall.context import BotContext

logger = logging.getLogger(__name__)


async def _reply(ctx: "BotContext", message: InboundMessage, text: str, emoji: str) -> None:
    await ctx.transport.send_message(message.chat_id, {"text": text})
    await ctx.transport.send_reaction(message.chat_id, message.key, emoji)


@register
class AntiDeleteCommand:
    """Toggle deleted-message recovery and report its state."""

    command_str = "antidelete"

    @staticmethod
    def is_authorized(ctx: "BotContext", message: InboundMessage) -> bool:
        return ctx.engine.is_controller(ctx.engine.author(message))

    @staticmethod
    async def handle(
        ctx: "BotContext", message: InboundMessage, args: List[str]
    ) -> None:
        engine = ctx.engine
        subcmd = args[0] if args else ""

        if subcmd == "on":
            await engine.enable()
            logger.info("Anti-delete enabled by %s", message.sender)
            text = formatting.status_on(
                engine.settings.PATH, engine.settings.TTL_MINUTES, len(engine.cache)
            )
            await _reply(ctx, message, text, "🛡️")
        elif subcmd == "off":
            await engine.disable()
            logger.info("Anti-delete disabled by %s", message.sender)
            await _reply(ctx, message, formatting.status_off(), "⚠️")
        elif subcmd == "stats":
            stats = engine.stats()
            text = formatting.status_stats(stats["enabled"], stats["path"], stats["count"])
            await _reply(ctx, message, text, "📊")
        else:
            await _reply(ctx, message, formatting.help_text(ctx.core.PREFIX), "ℹ️")
