"""Command dispatch utilities."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, NamedTuple

from wa_recall.clients.transport import InboundMessage

from .handlers import CommandHandler, get as get_handler

if TYPE_CHECKING:  # pragma: no cover - type-checking only
    from wa_recall.context import BotContext

logger = logging.getLogger(__name__)


class CommandInvocation(NamedTuple):
    """Resolved command data for downstream consumers."""

    handler: CommandHandler
    name: str
    args: List[str]


def _resolve_command(content: str, prefix: str) -> CommandInvocation | None:
    """Return the handler, command name, and args if ``content`` matches."""

    if not prefix or not content.startswith(prefix):
        return None

    parts = content[len(prefix):].split()
    if not parts:
        return None

    command = parts[0].lower()
    handler = get_handler(command)
    if not handler:
        return None

    return CommandInvocation(handler=handler, name=command, args=[a.lower() for a in parts[1:]])


async def dispatch(ctx: "BotContext", message: InboundMessage) -> bool:
    """
    Parse and execute a prefixed command in ``message``.
    Returns True if a command was handled.

    Senders a handler does not authorize see the command as nonexistent.
    """

    invocation = _resolve_command(message.text or "", ctx.core.PREFIX)
    if not invocation:
        return False

    handler, command, args = invocation
    if not handler.is_authorized(ctx, message):
        logger.debug("Ignoring '%s' from unauthorized sender %s", command, message.sender)
        return False

    logger.info("Dispatching command '%s' with args: %s", command, args)
    await handler.handle(ctx, message, args)
    return True
