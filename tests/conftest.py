"""
Shared fixtures: a file-backed SQLite database, a seeded catalog and a
controllable clock.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict
from uuid import UUID

import pytest

from movie_reservation_engine.database import (
    create_database_engine,
    create_session_factory,
    create_tables,
)
from movie_reservation_engine.models import Movie, Screen, Seat, Theater, User
from movie_reservation_engine.services.reservation_service import ReservationService
from movie_reservation_engine.services.seat_availability_service import SeatAvailabilityService
from movie_reservation_engine.services.showtime_service import ShowtimeService


class FakeClock:
    """Clock returning a fixed naive-UTC time until advanced."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class Catalog:
    theater_id: UUID
    screen_id: UUID
    other_screen_id: UUID
    movie_id: UUID
    untimed_movie_id: UUID
    seats: Dict[str, UUID]
    other_screen_seat_id: UUID
    user_id: UUID
    other_user_id: UUID


@pytest.fixture
def clock():
    return FakeClock(datetime(2030, 1, 1, 9, 0))


@pytest.fixture
async def engine(tmp_path):
    engine = create_database_engine(f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def catalog(session_factory) -> Catalog:
    async with session_factory.begin() as session:
        theater = Theater(name="Grand Cinema", city="Springfield")
        session.add(theater)
        await session.flush()

        screen = Screen(theater_id=theater.id, name="Screen 1", capacity=4)
        other_screen = Screen(theater_id=theater.id, name="Screen 2", capacity=1)
        session.add_all([screen, other_screen])
        await session.flush()

        # Inserted out of display order on purpose
        seats = {
            "B2": Seat(screen_id=screen.id, label="B2", row_label="B", column=2),
            "A2": Seat(screen_id=screen.id, label="A2", row_label="A", column=2),
            "B1": Seat(screen_id=screen.id, label="B1", row_label="B", column=1),
            "A1": Seat(screen_id=screen.id, label="A1", row_label="A", column=1),
        }
        other_seat = Seat(screen_id=other_screen.id, label="C1", row_label="C", column=1)
        session.add_all([*seats.values(), other_seat])

        movie = Movie(title="Two Hours", duration_minutes=120)
        untimed_movie = Movie(title="Unknown Length", duration_minutes=None)
        user = User(email="first@example.com", display_name="First")
        other_user = User(email="second@example.com", display_name="Second")
        session.add_all([movie, untimed_movie, user, other_user])
        await session.flush()

        return Catalog(
            theater_id=theater.id,
            screen_id=screen.id,
            other_screen_id=other_screen.id,
            movie_id=movie.id,
            untimed_movie_id=untimed_movie.id,
            seats={label: seat.id for label, seat in seats.items()},
            other_screen_seat_id=other_seat.id,
            user_id=user.id,
            other_user_id=other_user.id,
        )


@pytest.fixture
def showtime_service(session_factory, clock):
    return ShowtimeService(session_factory, clock=clock)


@pytest.fixture
def availability_service(session_factory):
    return SeatAvailabilityService(session_factory)


@pytest.fixture
def reservation_service(session_factory, clock):
    return ReservationService(session_factory, clock=clock)


@pytest.fixture
async def showtime(showtime_service, catalog, clock):
    """A showtime one day ahead at 10.00 per seat."""
    return await showtime_service.schedule_showtime(
        movie_id=catalog.movie_id,
        screen_id=catalog.screen_id,
        start_time=clock.now + timedelta(days=1),
        ticket_price=Decimal("10.00"),
    )
