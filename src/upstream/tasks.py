"""Detached background tasks.

``fire_and_forget`` schedules a coroutine on the running loop without
tying its result to any caller. Failures are logged here and nowhere else.
Strong references are held until the task finishes so the loop cannot
garbage-collect it mid-flight.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

_pending: set[asyncio.Task[Any]] = set()


async def _guarded(coro: Coroutine[Any, Any, Any], name: str) -> None:
    try:
        await coro
    except Exception:
        logger.exception("Background task failed: %s", name)


def fire_and_forget(coro: Coroutine[Any, Any, Any], name: str = "background") -> asyncio.Task[None]:
    """Schedule ``coro`` and return immediately."""
    task = asyncio.create_task(_guarded(coro, name), name=name)
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


def pending() -> list[asyncio.Task[Any]]:
    """Unfinished background tasks on the running loop."""
    loop = asyncio.get_running_loop()
    return [t for t in _pending if not t.done() and t.get_loop() is loop]


async def drain(timeout: float = 10.0) -> None:
    """Wait (bounded) for outstanding background tasks, e.g. on shutdown."""
    tasks = pending()
    if not tasks:
        return
    logger.info("Waiting for %d background task(s)", len(tasks))
    _, still_running = await asyncio.wait(tasks, timeout=timeout)
    if still_running:
        logger.warning("%d background task(s) still running after %.1fs", len(still_running), timeout)
