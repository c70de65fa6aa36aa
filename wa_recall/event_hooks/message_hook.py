import logging

from wa_recall import commands
from wa_recall.clients.transport import UpsertEvent
from wa_recall.context import BotContext

logger = logging.getLogger(__name__)


async def handle(ctx: BotContext, event: UpsertEvent):
    """Route inbound text messages to the command dispatcher."""

    if event.type != "notify":
        return

    for message in event.messages:
        if not message.text:
            continue
        try:
            await commands.dispatch(ctx, message)
        except Exception:
            logger.exception("Command handling failed for message %s", message.key.id)
