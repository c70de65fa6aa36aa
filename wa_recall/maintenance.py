"""
Periodic background task helpers.

The expiring cache schedules its TTL sweep through :func:`startup` and tears it
down with :func:`shutdown`; restarting the sweep is a shutdown followed by a
fresh startup, so at most one sweep loop exists at a time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


async def startup(
    task_fn: Callable[[], Awaitable[object]],
    interval: float,
    *,
    name: str = "periodic",
) -> asyncio.Task:
    """
    Run ``task_fn`` every ``interval`` seconds until cancelled.

    The first run happens one ``interval`` after scheduling. A failing run is
    logged under ``name`` and the loop carries on.
    """

    async def _periodic() -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await task_fn()
            except Exception:
                logger.exception("%s task failed", name)

    return asyncio.create_task(_periodic(), name=name)


async def shutdown(task: asyncio.Task | None) -> None:
    """Cancel a task started with :func:`startup` and wait for it to stop."""

    if not task:
        return

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.debug("%s task stopped", task.get_name())
