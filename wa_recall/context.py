"""Shared runtime handles passed to event hooks and command handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from wa_recall.clients.transport import Transport
from wa_recall.recovery import RecoveryEngine


@dataclass
class BotContext:
    transport: Transport
    engine: RecoveryEngine
    core: Any
