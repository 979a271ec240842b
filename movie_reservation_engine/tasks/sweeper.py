"""
In-process expiry sweeper.

A cancellable periodic ``asyncio`` task owned by the application lifespan.
"""

import asyncio
import logging
from typing import Optional

from ..services.reservation_service import ReservationService

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically releases seats whose hold has expired."""

    def __init__(self, service: ReservationService, interval_seconds: float = 60.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.service = service
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="expiry-sweeper")
        logger.info(f"Expiry sweeper started (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")

    async def run_once(self) -> int:
        """Run a single sweep; failures are logged and reported as zero."""
        try:
            return await self.service.expire_held_reservations()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Expiry sweep failed, retrying next tick: {e}", exc_info=True)
            return 0

    async def _run(self) -> None:
        while True:
            expired = await self.run_once()
            if expired:
                logger.info(f"Expiry sweep released {expired} reservations")
            await asyncio.sleep(self.interval_seconds)
