"""
Showtime scheduling with per-screen overlap detection.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import acquire_advisory_xact_lock, translate_storage_errors
from ..models.reservation import Reservation, ReservationStatus
from ..models.reservation_history import ReservationHistory
from ..models.seat_reservation import SeatReservation, ACTIVE_SEAT_STATUSES
from ..models.showtime import Showtime
from ..utils.clock import Clock, to_naive_utc, utcnow
from ..utils.exceptions import (
    ConcurrencyError,
    ShowtimeConflictError,
    ShowtimeHasReservationsError,
    ShowtimeNotFoundError,
    ValidationError,
)
from ..utils.locking import screen_schedule_lock
from ..utils.logging_config import log_business_event
from ..utils.money import parse_amount
from ..utils.retry import retry_on_concurrency_error
from .inventory_service import InventoryReference, MovieInfo, SqlInventoryReference

logger = logging.getLogger(__name__)


def _advisory_key(screen_id: UUID) -> str:
    return f"schedule:screen:{screen_id}"


class ShowtimeService:
    """Service for scheduling showtimes on screens."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utcnow,
        inventory_factory: Callable[[AsyncSession], InventoryReference] = SqlInventoryReference,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.inventory_factory = inventory_factory

    @retry_on_concurrency_error(base_delay=0.1, max_delay=1.0)
    async def schedule_showtime(
        self,
        movie_id: UUID,
        screen_id: UUID,
        start_time: datetime,
        ticket_price: Any,
    ) -> Showtime:
        """
        Schedule a movie on a screen.

        The window is ``[start_time, start_time + duration)``. The overlap check
        and the insert run under the screen's schedule lock, so two concurrent
        requests for overlapping windows cannot both be admitted.

        Raises:
            ValidationError: Past start time, non-positive price, movie without duration
            ScreenNotFoundError / MovieNotFoundError: Unknown catalog reference
            ShowtimeConflictError: Window overlaps an existing showtime on the screen
        """
        start_time = to_naive_utc(start_time)
        ticket_price = self._validate_price(ticket_price)
        self._validate_start_time(start_time)

        logger.info(f"Scheduling movie {movie_id} on screen {screen_id} at {start_time}")

        async with screen_schedule_lock(screen_id):
            with translate_storage_errors("schedule_showtime"):
                async with self.session_factory.begin() as session:
                    inventory = self.inventory_factory(session)
                    await inventory.get_screen(screen_id)
                    movie = await inventory.get_movie(movie_id)
                    end_time = self._derive_end_time(movie, start_time)

                    await acquire_advisory_xact_lock(session, _advisory_key(screen_id))
                    await self._ensure_no_conflict(session, screen_id, start_time, end_time)

                    showtime = Showtime(
                        movie_id=movie_id,
                        screen_id=screen_id,
                        start_time=start_time,
                        end_time=end_time,
                        ticket_price=ticket_price,
                    )
                    session.add(showtime)
                    await session.flush()

        log_business_event(
            "showtime_scheduled",
            {
                "showtime_id": str(showtime.id),
                "screen_id": str(screen_id),
                "movie_id": str(movie_id),
                "start_time": start_time.isoformat(),
                "end_time": end_time.isoformat(),
            },
        )
        return showtime

    @retry_on_concurrency_error(base_delay=0.1, max_delay=1.0)
    async def update_showtime(
        self,
        showtime_id: UUID,
        movie_id: Optional[UUID] = None,
        screen_id: Optional[UUID] = None,
        start_time: Optional[datetime] = None,
        ticket_price: Any = None,
    ) -> Showtime:
        """
        Update a showtime, re-deriving its end time from the movie duration.

        Conflict rules match scheduling, with the showtime itself excluded.
        Moving to another screen is refused while seats are held or confirmed.
        """
        current = await self.get_showtime(showtime_id)
        target_screen_id = screen_id or current.screen_id

        if start_time is not None:
            start_time = to_naive_utc(start_time)
            self._validate_start_time(start_time)
        if ticket_price is not None:
            ticket_price = self._validate_price(ticket_price)

        async with screen_schedule_lock(target_screen_id):
            with translate_storage_errors("update_showtime"):
                async with self.session_factory.begin() as session:
                    showtime = await self._load_showtime(session, showtime_id)

                    if screen_id is None and showtime.screen_id != target_screen_id:
                        # Moved by a concurrent update after we picked the lock
                        raise ConcurrencyError(f"Showtime {showtime_id} was modified concurrently")

                    if showtime.has_started(self.clock()):
                        raise ValidationError(
                            "Cannot update a showtime that has already started",
                            field_errors={"start_time": ["showtime already started"]},
                        )

                    inventory = self.inventory_factory(session)
                    if target_screen_id != showtime.screen_id:
                        await inventory.get_screen(target_screen_id)
                        active = await self._count_active_seat_reservations(session, showtime_id)
                        if active:
                            raise ShowtimeHasReservationsError(showtime_id, active)

                    new_movie_id = movie_id or showtime.movie_id
                    new_start = start_time or showtime.start_time
                    movie = await inventory.get_movie(new_movie_id)
                    new_end = self._derive_end_time(movie, new_start)

                    await acquire_advisory_xact_lock(session, _advisory_key(target_screen_id))
                    await self._ensure_no_conflict(
                        session, target_screen_id, new_start, new_end, exclude_showtime_id=showtime_id
                    )

                    showtime.movie_id = new_movie_id
                    showtime.screen_id = target_screen_id
                    showtime.start_time = new_start
                    showtime.end_time = new_end
                    if ticket_price is not None:
                        showtime.ticket_price = ticket_price
                    await session.flush()

        log_business_event(
            "showtime_updated",
            {
                "showtime_id": str(showtime_id),
                "screen_id": str(target_screen_id),
                "start_time": new_start.isoformat(),
                "end_time": new_end.isoformat(),
            },
        )
        return showtime

    @retry_on_concurrency_error(base_delay=0.1, max_delay=1.0)
    async def delete_showtime(self, showtime_id: UUID) -> None:
        """Delete a showtime that has no pending or confirmed reservations."""
        with translate_storage_errors("delete_showtime"):
            async with self.session_factory.begin() as session:
                showtime = await self._load_showtime(session, showtime_id)

                result = await session.execute(
                    select(func.count(Reservation.id)).where(
                        Reservation.showtime_id == showtime_id,
                        Reservation.status.in_([ReservationStatus.PENDING, ReservationStatus.CONFIRMED]),
                    )
                )
                active = result.scalar_one()
                if active:
                    raise ShowtimeHasReservationsError(showtime_id, active)

                # Finished reservations go with the showtime
                reservation_ids = select(Reservation.id).where(Reservation.showtime_id == showtime_id)
                await session.execute(
                    delete(ReservationHistory).where(ReservationHistory.reservation_id.in_(reservation_ids))
                )
                await session.execute(
                    delete(SeatReservation).where(SeatReservation.showtime_id == showtime_id)
                )
                await session.execute(
                    delete(Reservation).where(Reservation.showtime_id == showtime_id)
                )
                await session.delete(showtime)

        log_business_event("showtime_deleted", {"showtime_id": str(showtime_id)})

    async def get_showtime(self, showtime_id: UUID) -> Showtime:
        async with self.session_factory() as session:
            return await self._load_showtime(session, showtime_id)

    async def list_screen_showtimes(
        self,
        screen_id: UUID,
        starting_after: Optional[datetime] = None,
        starting_before: Optional[datetime] = None,
    ) -> List[Showtime]:
        """Showtimes of a screen ordered by start time."""
        query = select(Showtime).where(Showtime.screen_id == screen_id)
        if starting_after is not None:
            query = query.where(Showtime.start_time >= to_naive_utc(starting_after))
        if starting_before is not None:
            query = query.where(Showtime.start_time < to_naive_utc(starting_before))

        async with self.session_factory() as session:
            result = await session.execute(query.order_by(Showtime.start_time))
            return list(result.scalars().all())

    async def find_conflicting_showtimes(
        self,
        screen_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_showtime_id: Optional[UUID] = None,
    ) -> List[Showtime]:
        """Showtimes on the screen whose window overlaps ``[start_time, end_time)``."""
        async with self.session_factory() as session:
            return await self._overlapping(
                session,
                screen_id,
                to_naive_utc(start_time),
                to_naive_utc(end_time),
                exclude_showtime_id,
            )

    async def _load_showtime(self, session: AsyncSession, showtime_id: UUID) -> Showtime:
        showtime = await session.get(Showtime, showtime_id)
        if not showtime:
            raise ShowtimeNotFoundError(showtime_id)
        return showtime

    async def _overlapping(
        self,
        session: AsyncSession,
        screen_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_showtime_id: Optional[UUID] = None,
    ) -> List[Showtime]:
        # [s1, e1) and [s2, e2) overlap iff s1 < e2 and s2 < e1
        query = select(Showtime).where(
            Showtime.screen_id == screen_id,
            Showtime.start_time < end_time,
            Showtime.end_time > start_time,
        )
        if exclude_showtime_id is not None:
            query = query.where(Showtime.id != exclude_showtime_id)

        result = await session.execute(query.order_by(Showtime.start_time))
        return list(result.scalars().all())

    async def _ensure_no_conflict(
        self,
        session: AsyncSession,
        screen_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_showtime_id: Optional[UUID] = None,
    ) -> None:
        conflicts = await self._overlapping(session, screen_id, start_time, end_time, exclude_showtime_id)
        if conflicts:
            logger.info(
                f"Rejected window {start_time}..{end_time} on screen {screen_id}: "
                f"overlaps showtime {conflicts[0].id}"
            )
            raise ShowtimeConflictError(conflicts[0].id, screen_id)

    async def _count_active_seat_reservations(self, session: AsyncSession, showtime_id: UUID) -> int:
        result = await session.execute(
            select(func.count(SeatReservation.id)).where(
                SeatReservation.showtime_id == showtime_id,
                SeatReservation.status.in_(ACTIVE_SEAT_STATUSES),
            )
        )
        return result.scalar_one()

    def _validate_start_time(self, start_time: datetime) -> None:
        if start_time <= self.clock():
            raise ValidationError(
                "Showtime must start in the future",
                field_errors={"start_time": ["must be in the future"]},
            )

    @staticmethod
    def _validate_price(ticket_price: Any) -> Decimal:
        return parse_amount(ticket_price, "ticket_price", "Ticket price")

    @staticmethod
    def _derive_end_time(movie: MovieInfo, start_time: datetime) -> datetime:
        if not movie.duration_minutes or movie.duration_minutes <= 0:
            raise ValidationError(
                f"Movie {movie.movie_id} has no running time",
                field_errors={"movie_id": ["movie duration must be positive"]},
            )
        return start_time + timedelta(minutes=movie.duration_minutes)
