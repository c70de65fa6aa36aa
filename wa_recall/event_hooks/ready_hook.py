import logging

from wa_recall.context import BotContext

logger = logging.getLogger(__name__)


async def handle(ctx: BotContext):
    """Load the recovery cache once the session is connected."""
    logger.info("Connected as %s", ctx.transport.self_jid())
    await ctx.engine.start()
    logger.info("🛡️ Anti-Delete System Initialized")
