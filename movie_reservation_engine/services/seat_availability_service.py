"""
Per-showtime seat availability.

Availability is never stored on the seat: a seat is free for a showtime iff no
HELD or CONFIRMED seat reservation exists for the pair.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.seat import Seat
from ..models.seat_reservation import SeatReservation, SeatReservationStatus, ACTIVE_SEAT_STATUSES
from ..models.showtime import Showtime
from ..utils.exceptions import SeatNotFoundError, ShowtimeNotFoundError, ValidationError
from .inventory_service import InventoryReference, SeatInfo, SqlInventoryReference

logger = logging.getLogger(__name__)


class SeatState(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    HELD = "HELD"
    CONFIRMED = "CONFIRMED"


@dataclass(frozen=True)
class SeatMapEntry:
    seat: SeatInfo
    status: SeatState

    @property
    def is_available(self) -> bool:
        return self.status == SeatState.AVAILABLE


class SeatAvailabilityService:
    """Read-only view of which seats are free for a showtime."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        inventory_factory: Callable[[AsyncSession], InventoryReference] = SqlInventoryReference,
    ):
        self.session_factory = session_factory
        self.inventory_factory = inventory_factory

    async def available_seats(self, screen_id: UUID, showtime_id: UUID) -> List[SeatInfo]:
        """
        Seats of the screen not held or confirmed for the showtime.

        Ordered by row, then column, so repeated calls render identically.
        """
        async with self.session_factory() as session:
            showtime = await self._load_showtime(session, showtime_id)
            if showtime.screen_id != screen_id:
                raise ValidationError(
                    f"Showtime {showtime_id} is not on screen {screen_id}",
                    field_errors={"screen_id": ["does not match the showtime's screen"]},
                )

            seats = await self.inventory_factory(session).seats_of(screen_id)
            taken = await self._taken_seats(session, showtime_id)

        return [seat for seat in seats if seat.seat_id not in taken]

    async def is_available(self, seat_id: UUID, showtime_id: UUID) -> bool:
        return await self.seat_status(seat_id, showtime_id) == SeatState.AVAILABLE

    async def seat_status(self, seat_id: UUID, showtime_id: UUID) -> SeatState:
        """Status of one seat for a showtime."""
        async with self.session_factory() as session:
            showtime = await self._load_showtime(session, showtime_id)

            seat = await session.get(Seat, seat_id)
            if not seat:
                raise SeatNotFoundError(seat_id)
            if seat.screen_id != showtime.screen_id:
                raise ValidationError(
                    f"Seat {seat_id} is not on the screen of showtime {showtime_id}",
                    field_errors={"seat_id": ["seat belongs to another screen"]},
                )

            taken = await self._taken_seats(session, showtime_id, [seat_id])

        return taken.get(seat_id, SeatState.AVAILABLE)

    async def seat_map(self, showtime_id: UUID) -> List[SeatMapEntry]:
        """Every seat of the showtime's screen with its current status."""
        async with self.session_factory() as session:
            showtime = await self._load_showtime(session, showtime_id)
            seats = await self.inventory_factory(session).seats_of(showtime.screen_id)
            taken = await self._taken_seats(session, showtime_id)

        return [
            SeatMapEntry(seat=seat, status=taken.get(seat.seat_id, SeatState.AVAILABLE))
            for seat in seats
        ]

    async def _load_showtime(self, session: AsyncSession, showtime_id: UUID) -> Showtime:
        showtime = await session.get(Showtime, showtime_id)
        if not showtime:
            raise ShowtimeNotFoundError(showtime_id)
        return showtime

    async def _taken_seats(
        self,
        session: AsyncSession,
        showtime_id: UUID,
        seat_ids: Optional[List[UUID]] = None,
    ) -> Dict[UUID, SeatState]:
        query = select(SeatReservation.seat_id, SeatReservation.status).where(
            SeatReservation.showtime_id == showtime_id,
            SeatReservation.status.in_(ACTIVE_SEAT_STATUSES),
        )
        if seat_ids:
            query = query.where(SeatReservation.seat_id.in_(seat_ids))

        result = await session.execute(query)
        return {
            seat_id: (
                SeatState.CONFIRMED if status == SeatReservationStatus.CONFIRMED else SeatState.HELD
            )
            for seat_id, status in result.all()
        }
