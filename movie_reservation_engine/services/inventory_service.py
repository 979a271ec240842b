"""
Read-only catalog lookups the reservation engine depends on.

Theaters, screens, seats and movies are maintained by the catalog; the engine
only reads them through the narrow ``InventoryReference`` interface.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.movie import Movie
from ..models.seat import Seat
from ..models.theater import Screen
from ..utils.exceptions import MovieNotFoundError, ScreenNotFoundError


@dataclass(frozen=True)
class SeatInfo:
    seat_id: UUID
    screen_id: UUID
    label: str
    row_label: Optional[str] = None
    column: Optional[int] = None


@dataclass(frozen=True)
class ScreenInfo:
    screen_id: UUID
    theater_id: UUID
    capacity: int
    seat_ids: Tuple[UUID, ...]


@dataclass(frozen=True)
class MovieInfo:
    movie_id: UUID
    title: str
    duration_minutes: Optional[int]


class InventoryReference(Protocol):
    """Catalog facts needed for scheduling and seat selection."""

    async def get_screen(self, screen_id: UUID) -> ScreenInfo:
        ...

    async def get_movie(self, movie_id: UUID) -> MovieInfo:
        ...

    async def seats_of(self, screen_id: UUID) -> List[SeatInfo]:
        ...


def _seat_order():
    # Row, then column, then label; rows and columns without a value sort last
    return (
        Seat.row_label.is_(None),
        Seat.row_label,
        Seat.column.is_(None),
        Seat.column,
        Seat.label,
    )


class SqlInventoryReference:
    """InventoryReference backed by the catalog tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_screen(self, screen_id: UUID) -> ScreenInfo:
        screen = await self.session.get(Screen, screen_id)
        if not screen:
            raise ScreenNotFoundError(screen_id)

        result = await self.session.execute(
            select(Seat.id).where(Seat.screen_id == screen_id).order_by(*_seat_order())
        )
        return ScreenInfo(
            screen_id=screen.id,
            theater_id=screen.theater_id,
            capacity=screen.capacity,
            seat_ids=tuple(result.scalars().all()),
        )

    async def get_movie(self, movie_id: UUID) -> MovieInfo:
        movie = await self.session.get(Movie, movie_id)
        if not movie:
            raise MovieNotFoundError(movie_id)
        return MovieInfo(
            movie_id=movie.id,
            title=movie.title,
            duration_minutes=movie.duration_minutes,
        )

    async def seats_of(self, screen_id: UUID) -> List[SeatInfo]:
        """Seats of a screen in display order."""
        result = await self.session.execute(
            select(Seat).where(Seat.screen_id == screen_id).order_by(*_seat_order())
        )
        return [
            SeatInfo(
                seat_id=seat.id,
                screen_id=seat.screen_id,
                label=seat.label,
                row_label=seat.row_label,
                column=seat.column,
            )
            for seat in result.scalars().all()
        ]
