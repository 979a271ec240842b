"""
Celery tasks sweeping reservations on a schedule.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict

from .celery_app import celery_app
from ..database import create_database_engine, create_session_factory
from ..services.reservation_service import ReservationService

logger = logging.getLogger(__name__)


def _run_with_service(operation: Callable[[ReservationService], Awaitable[Dict[str, int]]]) -> Dict[str, int]:
    """Run ``operation`` on a fresh event loop with its own engine."""

    async def _run():
        # Pooled connections are bound to the loop that opened them
        engine = create_database_engine()
        try:
            service = ReservationService(create_session_factory(engine))
            return await operation(service)
        finally:
            await engine.dispose()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_run())
    finally:
        loop.close()


@celery_app.task(name="expire_held_reservations_task")
def expire_held_reservations_task():
    """
    Periodic task cancelling pending reservations whose hold has expired.

    Runs every ``expiry_sweep_interval_seconds``; seats of expired holds become
    available again.
    """

    async def _expire(service: ReservationService) -> Dict[str, int]:
        logger.info("Starting held reservation expiry task")
        expired_count = await service.expire_held_reservations()
        return {"expired_count": expired_count}

    try:
        return _run_with_service(_expire)
    except Exception as e:
        logger.error(f"Error in reservation expiry task: {e}")
        raise


@celery_app.task(name="complete_started_reservations_task")
def complete_started_reservations_task():
    """Periodic task completing confirmed reservations whose showtime has started."""

    async def _complete(service: ReservationService) -> Dict[str, int]:
        logger.info("Starting reservation completion task")
        completed_count = await service.complete_started_reservations()
        return {"completed_count": completed_count}

    try:
        return _run_with_service(_complete)
    except Exception as e:
        logger.error(f"Error in reservation completion task: {e}")
        raise
