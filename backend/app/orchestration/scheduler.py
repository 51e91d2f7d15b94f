"""Tick Scheduler — drives the orchestrator's scheduling step on an interval.

Usage:
    scheduler = TickScheduler(orchestrator.tick, interval_seconds=5.0)
    await scheduler.start()
    # ... app runs ...
    scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from app.config import settings

logger = logging.getLogger(__name__)


class TickScheduler:
    """Calls `tick` every `interval_seconds` until stopped.

    Uses asyncio.create_task (single process, single event loop).
    """

    def __init__(
        self,
        tick: Callable[[], Awaitable[Any]],
        interval_seconds: float | None = None,
        enabled: bool | None = None,
    ) -> None:
        self._tick = tick
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else settings.tick_interval_seconds
        )
        self.enabled = enabled if enabled is not None else settings.scheduler_enabled
        self._task: asyncio.Task | None = None
        self._running = False
        self.ticks = 0
        self.last_tick_at: datetime | None = None
        self.last_error: str | None = None

    async def start(self) -> None:
        """Start the tick loop as a background task."""
        if not self.enabled:
            logger.info("Tick scheduler disabled")
            return

        if self._running:
            logger.warning("Tick scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Tick scheduler started (interval: %.1fs)", self.interval_seconds)

    def stop(self) -> None:
        """Stop the tick loop. In-flight work is not cancelled."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            logger.info("Tick scheduler stopped")

    async def _loop(self) -> None:
        """Main scheduling loop."""
        while self._running:
            try:
                await self._tick()
                self.ticks += 1
                self.last_tick_at = datetime.now(timezone.utc)
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.last_error = f"{type(e).__name__}: {e}"
                logger.error("Tick scheduler error: %s", e, exc_info=True)
                # Keep looping after a failed tick
            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break

    @property
    def is_running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    def get_status(self) -> dict:
        """Get scheduler status for health checks."""
        return {
            "enabled": self.enabled,
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "ticks": self.ticks,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_error": self.last_error,
        }
