"""Tests for showtime scheduling and overlap detection."""

import asyncio
from datetime import timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from movie_reservation_engine.utils.exceptions import (
    MovieNotFoundError,
    ScreenNotFoundError,
    ShowtimeConflictError,
    ShowtimeHasReservationsError,
    ShowtimeNotFoundError,
    ValidationError,
)


def at(clock, hours: int, minutes: int = 0):
    """A time on the day after the clock's current day."""
    day = clock.now.replace(hour=0, minute=0) + timedelta(days=1)
    return day + timedelta(hours=hours, minutes=minutes)


class TestScheduleShowtime:

    async def test_end_time_derived_from_movie_duration(self, showtime_service, catalog, clock):
        showtime = await showtime_service.schedule_showtime(
            catalog.movie_id, catalog.screen_id, at(clock, 10), Decimal("12.50")
        )

        assert showtime.start_time == at(clock, 10)
        assert showtime.end_time == at(clock, 12)
        assert showtime.ticket_price == Decimal("12.50")

    async def test_overlapping_window_is_rejected(self, showtime_service, catalog, clock):
        first = await showtime_service.schedule_showtime(
            catalog.movie_id, catalog.screen_id, at(clock, 10), Decimal("10")
        )

        with pytest.raises(ShowtimeConflictError) as exc_info:
            await showtime_service.schedule_showtime(
                catalog.movie_id, catalog.screen_id, at(clock, 11), Decimal("10")
            )

        assert exc_info.value.conflicting_showtime_id == str(first.id)

    async def test_window_starting_inside_is_rejected_symmetrically(self, showtime_service, catalog, clock):
        await showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, at(clock, 11), Decimal("10"))

        with pytest.raises(ShowtimeConflictError):
            await showtime_service.schedule_showtime(
                catalog.movie_id, catalog.screen_id, at(clock, 10), Decimal("10")
            )

    async def test_touching_windows_do_not_overlap(self, showtime_service, catalog, clock):
        await showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, at(clock, 10), Decimal("10"))

        later = await showtime_service.schedule_showtime(
            catalog.movie_id, catalog.screen_id, at(clock, 12), Decimal("10")
        )

        assert later.start_time == at(clock, 12)

    async def test_same_window_on_another_screen_is_allowed(self, showtime_service, catalog, clock):
        await showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, at(clock, 10), Decimal("10"))

        other = await showtime_service.schedule_showtime(
            catalog.movie_id, catalog.other_screen_id, at(clock, 10), Decimal("10")
        )

        assert other.screen_id == catalog.other_screen_id

    async def test_start_time_must_be_in_future(self, showtime_service, catalog, clock):
        with pytest.raises(ValidationError):
            await showtime_service.schedule_showtime(
                catalog.movie_id, catalog.screen_id, clock.now - timedelta(minutes=1), Decimal("10")
            )

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-5"), Decimal("0.004"), "abc", "NaN"])
    async def test_ticket_price_must_be_positive(self, showtime_service, catalog, clock, price):
        with pytest.raises(ValidationError):
            await showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, at(clock, 10), price)

    async def test_ticket_price_is_rounded_to_cents(self, showtime_service, catalog, clock):
        showtime = await showtime_service.schedule_showtime(
            catalog.movie_id, catalog.screen_id, at(clock, 10), "12.345"
        )

        assert showtime.ticket_price == Decimal("12.35")

    async def test_unknown_screen_and_movie(self, showtime_service, catalog, clock):
        with pytest.raises(ScreenNotFoundError):
            await showtime_service.schedule_showtime(catalog.movie_id, uuid4(), at(clock, 10), Decimal("10"))

        with pytest.raises(MovieNotFoundError):
            await showtime_service.schedule_showtime(uuid4(), catalog.screen_id, at(clock, 10), Decimal("10"))

    async def test_movie_without_duration_is_rejected(self, showtime_service, catalog, clock):
        with pytest.raises(ValidationError):
            await showtime_service.schedule_showtime(
                catalog.untimed_movie_id, catalog.screen_id, at(clock, 10), Decimal("10")
            )

    async def test_aware_start_time_is_normalized_to_utc(self, showtime_service, catalog, clock):
        aware = at(clock, 10).replace(tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=2)))

        showtime = await showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, aware, Decimal("10"))

        assert showtime.start_time == at(clock, 10)
        assert showtime.start_time.tzinfo is None

    async def test_concurrent_overlapping_requests_admit_exactly_one(self, showtime_service, catalog, clock):
        starts = [at(clock, 10, minutes) for minutes in (0, 15, 30, 45, 59)]

        results = await asyncio.gather(
            *[
                showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, start, Decimal("10"))
                for start in starts
            ],
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, ShowtimeConflictError)]
        assert len(successes) == 1
        assert len(conflicts) == len(starts) - 1
        assert len(await showtime_service.list_screen_showtimes(catalog.screen_id)) == 1


class TestUpdateShowtime:

    async def test_update_excludes_itself_from_conflicts(self, showtime_service, catalog, clock):
        showtime = await showtime_service.schedule_showtime(
            catalog.movie_id, catalog.screen_id, at(clock, 10), Decimal("10")
        )

        updated = await showtime_service.update_showtime(showtime.id, start_time=at(clock, 10, 30))

        assert updated.start_time == at(clock, 10, 30)
        assert updated.end_time == at(clock, 12, 30)

    async def test_update_into_another_window_is_rejected(self, showtime_service, catalog, clock):
        first = await showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, at(clock, 10), Decimal("10"))
        second = await showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, at(clock, 13), Decimal("10"))

        with pytest.raises(ShowtimeConflictError) as exc_info:
            await showtime_service.update_showtime(second.id, start_time=at(clock, 11))

        assert exc_info.value.conflicting_showtime_id == str(first.id)

    async def test_update_price_only(self, showtime_service, showtime):
        updated = await showtime_service.update_showtime(showtime.id, ticket_price="15.00")

        assert updated.ticket_price == Decimal("15.00")
        assert updated.start_time == showtime.start_time

    async def test_screen_change_refused_with_active_seats(self, showtime_service, reservation_service, showtime, catalog):
        await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

        with pytest.raises(ShowtimeHasReservationsError):
            await showtime_service.update_showtime(showtime.id, screen_id=catalog.other_screen_id)

    async def test_screen_change_without_reservations(self, showtime_service, showtime, catalog):
        moved = await showtime_service.update_showtime(showtime.id, screen_id=catalog.other_screen_id)

        assert moved.screen_id == catalog.other_screen_id
        assert await showtime_service.list_screen_showtimes(catalog.screen_id) == []

    async def test_unknown_showtime(self, showtime_service):
        with pytest.raises(ShowtimeNotFoundError):
            await showtime_service.update_showtime(uuid4(), ticket_price="5")


class TestShowtimeQueries:

    async def test_list_screen_showtimes_ordered_and_filtered(self, showtime_service, catalog, clock):
        late = await showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, at(clock, 18), Decimal("10"))
        early = await showtime_service.schedule_showtime(catalog.movie_id, catalog.screen_id, at(clock, 10), Decimal("10"))

        all_showtimes = await showtime_service.list_screen_showtimes(catalog.screen_id)
        afternoon = await showtime_service.list_screen_showtimes(catalog.screen_id, starting_after=at(clock, 12))

        assert [s.id for s in all_showtimes] == [early.id, late.id]
        assert [s.id for s in afternoon] == [late.id]

    async def test_find_conflicting_showtimes(self, showtime_service, showtime, catalog):
        overlapping = await showtime_service.find_conflicting_showtimes(
            catalog.screen_id, showtime.start_time + timedelta(minutes=30), showtime.end_time + timedelta(hours=1)
        )
        touching = await showtime_service.find_conflicting_showtimes(
            catalog.screen_id, showtime.end_time, showtime.end_time + timedelta(hours=2)
        )
        excluded = await showtime_service.find_conflicting_showtimes(
            catalog.screen_id, showtime.start_time, showtime.end_time, exclude_showtime_id=showtime.id
        )

        assert [s.id for s in overlapping] == [showtime.id]
        assert touching == []
        assert excluded == []

    async def test_get_unknown_showtime(self, showtime_service):
        with pytest.raises(ShowtimeNotFoundError):
            await showtime_service.get_showtime(uuid4())


class TestDeleteShowtime:

    async def test_delete_without_reservations(self, showtime_service, showtime):
        await showtime_service.delete_showtime(showtime.id)

        with pytest.raises(ShowtimeNotFoundError):
            await showtime_service.get_showtime(showtime.id)

    async def test_delete_refused_while_reservations_active(self, showtime_service, reservation_service, showtime, catalog):
        await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

        with pytest.raises(ShowtimeHasReservationsError):
            await showtime_service.delete_showtime(showtime.id)

    async def test_delete_after_reservations_cancelled(self, showtime_service, reservation_service, showtime, catalog):
        details = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        await reservation_service.cancel_reservation(details.reservation.id)

        await showtime_service.delete_showtime(showtime.id)

        assert await showtime_service.list_screen_showtimes(catalog.screen_id) == []
