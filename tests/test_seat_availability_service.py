"""Tests for per-showtime seat availability."""

from uuid import uuid4

import pytest

from movie_reservation_engine.services.seat_availability_service import SeatState
from movie_reservation_engine.utils.exceptions import (
    SeatNotFoundError,
    ShowtimeNotFoundError,
    ValidationError,
)


class TestAvailableSeats:

    async def test_all_seats_free_in_display_order(self, availability_service, showtime, catalog):
        seats = await availability_service.available_seats(catalog.screen_id, showtime.id)

        assert [seat.label for seat in seats] == ["A1", "A2", "B1", "B2"]

    async def test_held_and_confirmed_seats_are_excluded(
        self, availability_service, reservation_service, showtime, catalog
    ):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A2"]])
        confirmed = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["B1"]])
        await reservation_service.confirm_reservation(confirmed.reservation.id)

        seats = await availability_service.available_seats(catalog.screen_id, showtime.id)

        assert [seat.label for seat in seats] == ["A1", "B2"]
        assert held.reservation.status.value == "PENDING"

    async def test_cancelled_seats_are_free_again(self, availability_service, reservation_service, showtime, catalog):
        details = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        await reservation_service.cancel_reservation(details.reservation.id)

        seats = await availability_service.available_seats(catalog.screen_id, showtime.id)

        assert len(seats) == 4

    async def test_repeated_reads_are_identical(self, availability_service, showtime, catalog):
        first = await availability_service.available_seats(catalog.screen_id, showtime.id)
        second = await availability_service.available_seats(catalog.screen_id, showtime.id)

        assert first == second

    async def test_screen_must_match_showtime(self, availability_service, showtime, catalog):
        with pytest.raises(ValidationError):
            await availability_service.available_seats(catalog.other_screen_id, showtime.id)

    async def test_unknown_showtime(self, availability_service, catalog):
        with pytest.raises(ShowtimeNotFoundError):
            await availability_service.available_seats(catalog.screen_id, uuid4())


class TestSeatStatus:

    async def test_status_follows_reservation_lifecycle(
        self, availability_service, reservation_service, showtime, catalog
    ):
        seat_id = catalog.seats["A1"]
        assert await availability_service.seat_status(seat_id, showtime.id) == SeatState.AVAILABLE

        details = await reservation_service.create_reservation(catalog.user_id, showtime.id, [seat_id])
        assert await availability_service.seat_status(seat_id, showtime.id) == SeatState.HELD
        assert not await availability_service.is_available(seat_id, showtime.id)

        await reservation_service.confirm_reservation(details.reservation.id)
        assert await availability_service.seat_status(seat_id, showtime.id) == SeatState.CONFIRMED

        await reservation_service.cancel_reservation(details.reservation.id)
        assert await availability_service.is_available(seat_id, showtime.id)

    async def test_seat_from_another_screen(self, availability_service, showtime, catalog):
        with pytest.raises(ValidationError):
            await availability_service.seat_status(catalog.other_screen_seat_id, showtime.id)

    async def test_unknown_seat(self, availability_service, showtime):
        with pytest.raises(SeatNotFoundError):
            await availability_service.seat_status(uuid4(), showtime.id)


class TestSeatMap:

    async def test_seat_map_reports_every_seat(self, availability_service, reservation_service, showtime, catalog):
        await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["B2"]])

        entries = await availability_service.seat_map(showtime.id)

        assert [(entry.seat.label, entry.status) for entry in entries] == [
            ("A1", SeatState.AVAILABLE),
            ("A2", SeatState.AVAILABLE),
            ("B1", SeatState.AVAILABLE),
            ("B2", SeatState.HELD),
        ]
        assert [entry.is_available for entry in entries] == [True, True, True, False]
