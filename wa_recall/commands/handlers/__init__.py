"""
Registry of prefix command handlers.

Every module in this package is imported once at load time, so a handler
only has to live here and decorate itself::

    from . import register

    @register
    class StatusCommand:
        command_str = "status"

        @staticmethod
        def is_authorized(ctx, message) -> bool: ...

        @staticmethod
        async def handle(ctx, message, args) -> None: ...

Command names are matched case-insensitively and must be unique.
"""
from __future__ import annotations
from typing import Protocol, Dict, List, TYPE_CHECKING
from importlib import import_module
from pkgutil import iter_modules
from pathlib import Path

from wa_recall.clients.transport import InboundMessage

if TYPE_CHECKING:  # pragma: no cover - type-checking only
    from wa_recall.context import BotContext


class CommandHandler(Protocol):
    """Protocol for command handler classes."""

    command_str: str

    @staticmethod
    def is_authorized(ctx: "BotContext", message: InboundMessage) -> bool:
        """Return ``False`` to make the command invisible to ``message``'s sender."""

    @staticmethod
    async def handle(ctx: "BotContext", message: InboundMessage, args: List[str]) -> None:
        """Coroutine invoked when the command is dispatched.

        :param ctx: Shared transport/engine handles.
        :param message: Incoming command message.
        :param args: Lowercased arguments after the command name.
        """


_REGISTRY: Dict[str, CommandHandler] = {}


def register(cls: CommandHandler):
    """Class decorator adding ``cls`` to the registry under ``cls.command_str``."""
    name = cls.command_str.lower()
    existing = _REGISTRY.get(name)
    if existing is not None and existing is not cls:
        raise ValueError(f"Duplicate command handler for '{name}'")
    _REGISTRY[name] = cls
    return cls


def get(command: str) -> CommandHandler | None:
    return _REGISTRY.get(command.lower())


def all_commands() -> Dict[str, CommandHandler]:
    return dict(_REGISTRY)


for _, _modname, _ in iter_modules([str(Path(__file__).resolve().parent)]):
    import_module(f"{__name__}.{_modname}")
