"""Interval and on-demand refreshes, collapsed into one in-flight run."""

import asyncio
import contextlib
import enum
from typing import Optional

from .aggregator import Aggregator, RefreshReport
from .config import REFRESH_INTERVAL_MINUTES
from .utils import get_logger

logger = get_logger(__name__)


class RefreshState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class RefreshScheduler:
    """
    Single-flight refresh gate.

    At most one refresh runs at a time. A trigger that arrives while a run is
    in flight waits for that run and gets its report instead of starting
    another one. The interval timer and manual triggers share the same gate.
    """

    def __init__(self, aggregator: Aggregator, interval_minutes: float = REFRESH_INTERVAL_MINUTES):
        self.aggregator = aggregator
        self.interval = interval_minutes * 60
        self.runs = 0
        self._current: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None

    @property
    def state(self) -> RefreshState:
        if self._current is not None and not self._current.done():
            return RefreshState.RUNNING
        return RefreshState.IDLE

    async def _run(self) -> RefreshReport:
        self.runs += 1
        try:
            report = await self.aggregator.refresh_all()
            try:
                await self.aggregator.save_cache()
            except OSError as e:
                # The in-memory collection is still good
                logger.error(f"Error saving articles cache: {e}")
            return report
        finally:
            self._current = None

    async def trigger_refresh(self) -> RefreshReport:
        """Start a refresh, or join the one already running."""
        if self._current is None:
            self._current = asyncio.create_task(self._run())
        else:
            logger.info("Refresh already in progress, waiting for it")
        # A cancelled caller must not cancel the shared run
        return await asyncio.shield(self._current)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            logger.info("Auto-refresh triggered")
            try:
                await self.trigger_refresh()
            except Exception as e:
                logger.exception(f"Auto-refresh failed: {e}")

    def start(self) -> None:
        """Schedule automatic refreshes every ``interval`` seconds."""
        if self._timer is not None:
            return
        self._timer = asyncio.create_task(self._loop())
        logger.info(f"Auto-refresh scheduled every {self.interval / 60:g} minutes")

    async def stop(self) -> None:
        """Cancel the timer and let any in-flight refresh finish."""
        if self._timer is not None:
            self._timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer
            self._timer = None
        if self._current is not None:
            await asyncio.gather(self._current, return_exceptions=True)
