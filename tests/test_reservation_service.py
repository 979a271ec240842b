"""Tests for the reservation state machine."""

import asyncio
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from movie_reservation_engine.models.reservation import ReservationStatus
from movie_reservation_engine.models.reservation_history import ReservationAction
from movie_reservation_engine.models.seat_reservation import SeatReservationStatus
from movie_reservation_engine.utils.exceptions import (
    InvalidStateError,
    NotFoundError,
    ReservationNotFoundError,
    SeatUnavailableError,
    ShowtimeNotFoundError,
    ValidationError,
)


def seat_statuses(details):
    return {seat_reservation.status for seat_reservation in details.seat_reservations}


class TestCreateReservation:

    async def test_hold_seats(self, reservation_service, showtime, catalog, clock):
        seat_ids = [catalog.seats["A1"], catalog.seats["A2"]]

        details = await reservation_service.create_reservation(catalog.user_id, showtime.id, seat_ids)

        reservation = details.reservation
        assert reservation.status == ReservationStatus.PENDING
        assert reservation.version == 1
        assert reservation.hold_expiry == clock.now + timedelta(minutes=10)
        assert reservation.total_amount == Decimal("20.00")
        assert sorted(details.seat_ids) == sorted(seat_ids)
        assert seat_statuses(details) == {SeatReservationStatus.HELD}

    async def test_custom_hold_and_amount(self, reservation_service, showtime, catalog, clock):
        details = await reservation_service.create_reservation(
            catalog.user_id,
            showtime.id,
            [catalog.seats["B1"]],
            hold_duration=timedelta(minutes=2),
            total_amount="7.50",
        )

        assert details.reservation.hold_expiry == clock.now + timedelta(minutes=2)
        assert details.reservation.total_amount == Decimal("7.50")

    async def test_second_hold_on_same_seat_is_rejected(self, reservation_service, showtime, catalog):
        await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

        with pytest.raises(SeatUnavailableError) as exc_info:
            await reservation_service.create_reservation(
                catalog.other_user_id, showtime.id, [catalog.seats["A1"], catalog.seats["A2"]]
            )

        assert exc_info.value.seat_ids == [str(catalog.seats["A1"])]

    async def test_rejected_request_holds_nothing(
        self, reservation_service, availability_service, showtime, catalog
    ):
        await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

        with pytest.raises(SeatUnavailableError):
            await reservation_service.create_reservation(
                catalog.other_user_id, showtime.id, [catalog.seats["A2"], catalog.seats["A1"]]
            )

        assert await availability_service.is_available(catalog.seats["A2"], showtime.id)
        assert await reservation_service.list_user_reservations(catalog.other_user_id) == []

    async def test_seat_claimed_after_precheck_is_reported(
        self, reservation_service, availability_service, showtime, catalog, monkeypatch
    ):
        await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

        original = reservation_service._active_seat_ids
        calls = []

        async def stale_precheck(session, showtime_id, seat_ids):
            calls.append(seat_ids)
            if len(calls) == 1:
                return []
            return await original(session, showtime_id, seat_ids)

        monkeypatch.setattr(reservation_service, "_active_seat_ids", stale_precheck)

        with pytest.raises(SeatUnavailableError) as exc_info:
            await reservation_service.create_reservation(
                catalog.other_user_id, showtime.id, [catalog.seats["A1"], catalog.seats["A2"]]
            )

        assert exc_info.value.seat_ids == [str(catalog.seats["A1"])]
        assert len(calls) == 2
        assert await availability_service.is_available(catalog.seats["A2"], showtime.id)

    async def test_concurrent_holds_on_one_seat_have_one_winner(self, reservation_service, showtime, catalog):
        attempts = 5

        results = await asyncio.gather(
            *[
                reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["B2"]])
                for _ in range(attempts)
            ],
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, SeatUnavailableError)]
        assert len(winners) == 1
        assert len(losers) == attempts - 1
        assert all(loser.seat_ids == [str(catalog.seats["B2"])] for loser in losers)

    async def test_cancelled_seat_can_be_held_again(self, reservation_service, showtime, catalog):
        first = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        await reservation_service.cancel_reservation(first.reservation.id)

        second = await reservation_service.create_reservation(catalog.other_user_id, showtime.id, [catalog.seats["A1"]])

        assert second.reservation.status == ReservationStatus.PENDING

    async def test_same_seat_on_another_showtime(self, reservation_service, showtime_service, showtime, catalog):
        later = await showtime_service.schedule_showtime(
            catalog.movie_id, catalog.screen_id, showtime.end_time, Decimal("8.00")
        )
        await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

        details = await reservation_service.create_reservation(catalog.user_id, later.id, [catalog.seats["A1"]])

        assert details.reservation.total_amount == Decimal("8.00")

    @pytest.mark.parametrize("seat_labels", [[], ["A1", "A1"]])
    async def test_empty_or_duplicate_seats(self, reservation_service, showtime, catalog, seat_labels):
        with pytest.raises(ValidationError):
            await reservation_service.create_reservation(
                catalog.user_id, showtime.id, [catalog.seats[label] for label in seat_labels]
            )

    async def test_too_many_seats(self, reservation_service, showtime, catalog):
        with pytest.raises(ValidationError):
            await reservation_service.create_reservation(catalog.user_id, showtime.id, [uuid4() for _ in range(11)])

    async def test_seat_from_another_screen(self, reservation_service, showtime, catalog):
        with pytest.raises(ValidationError) as exc_info:
            await reservation_service.create_reservation(
                catalog.user_id, showtime.id, [catalog.seats["A1"], catalog.other_screen_seat_id]
            )

        assert exc_info.value.field_errors == {"seat_ids": [str(catalog.other_screen_seat_id)]}

    async def test_unknown_showtime_and_user(self, reservation_service, showtime, catalog):
        with pytest.raises(ShowtimeNotFoundError):
            await reservation_service.create_reservation(catalog.user_id, uuid4(), [catalog.seats["A1"]])

        with pytest.raises(NotFoundError) as exc_info:
            await reservation_service.create_reservation(uuid4(), showtime.id, [catalog.seats["A1"]])
        assert exc_info.value.resource_type == "user"

    async def test_started_showtime_cannot_be_held(self, reservation_service, showtime, catalog, clock):
        clock.advance(days=1)

        with pytest.raises(ValidationError):
            await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

    @pytest.mark.parametrize("amount", ["0.001", "0", "-3", "100000000"])
    async def test_amount_must_be_at_least_one_cent(self, reservation_service, showtime, catalog, amount):
        with pytest.raises(ValidationError):
            await reservation_service.create_reservation(
                catalog.user_id, showtime.id, [catalog.seats["A1"]], total_amount=amount
            )

    async def test_amount_is_rounded_to_cents(self, reservation_service, showtime, catalog):
        details = await reservation_service.create_reservation(
            catalog.user_id, showtime.id, [catalog.seats["A1"]], total_amount="7.505"
        )

        assert details.reservation.total_amount == Decimal("7.51")

    async def test_other_constraint_failures_are_not_seat_races(
        self, reservation_service, availability_service, showtime, catalog, monkeypatch
    ):
        original = reservation_service._active_seat_ids
        calls = []

        async def counting_check(session, showtime_id, seat_ids):
            calls.append(seat_ids)
            return await original(session, showtime_id, seat_ids)

        monkeypatch.setattr(reservation_service, "_active_seat_ids", counting_check)
        # Slips past validation and trips ck_reservations_total_amount_positive
        monkeypatch.setattr(reservation_service, "_validate_amount", lambda amount: Decimal("-1"))

        with pytest.raises(IntegrityError):
            await reservation_service.create_reservation(
                catalog.user_id, showtime.id, [catalog.seats["A1"]], total_amount="5.00"
            )

        assert len(calls) == 1
        assert await availability_service.is_available(catalog.seats["A1"], showtime.id)

    async def test_non_positive_hold_duration(self, reservation_service, showtime, catalog):
        with pytest.raises(ValidationError):
            await reservation_service.create_reservation(
                catalog.user_id, showtime.id, [catalog.seats["A1"]], hold_duration=timedelta(0)
            )


class TestTransitions:

    async def test_confirm(self, reservation_service, showtime, catalog):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

        confirmed = await reservation_service.confirm_reservation(held.reservation.id, catalog.user_id)

        assert confirmed.reservation.status == ReservationStatus.CONFIRMED
        assert confirmed.reservation.version == 2
        assert confirmed.reservation.hold_expiry is None
        assert seat_statuses(confirmed) == {SeatReservationStatus.CONFIRMED}

    async def test_confirm_after_hold_expiry_before_sweep(self, reservation_service, showtime, catalog, clock):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        clock.advance(minutes=30)

        confirmed = await reservation_service.confirm_reservation(held.reservation.id)

        assert confirmed.reservation.status == ReservationStatus.CONFIRMED

    async def test_confirm_twice_is_rejected(self, reservation_service, showtime, catalog):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        await reservation_service.confirm_reservation(held.reservation.id)

        with pytest.raises(InvalidStateError) as exc_info:
            await reservation_service.confirm_reservation(held.reservation.id)

        assert exc_info.value.current_state == "CONFIRMED"

    async def test_racing_confirms_have_one_winner(self, reservation_service, showtime, catalog):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

        results = await asyncio.gather(
            reservation_service.confirm_reservation(held.reservation.id),
            reservation_service.confirm_reservation(held.reservation.id),
            return_exceptions=True,
        )

        assert len([r for r in results if not isinstance(r, Exception)]) == 1
        assert len([r for r in results if isinstance(r, InvalidStateError)]) == 1

        current = await reservation_service.get_reservation(held.reservation.id)
        assert current.reservation.version == 2

    async def test_cancel_pending_and_confirmed(self, reservation_service, showtime, catalog):
        pending = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        confirmed = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A2"]])
        await reservation_service.confirm_reservation(confirmed.reservation.id)

        for reservation_id in (pending.reservation.id, confirmed.reservation.id):
            cancelled = await reservation_service.cancel_reservation(reservation_id, reason="plans changed")
            assert cancelled.reservation.status == ReservationStatus.CANCELLED
            assert seat_statuses(cancelled) == {SeatReservationStatus.CANCELLED}

    async def test_cancelled_is_terminal(self, reservation_service, showtime, catalog):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        await reservation_service.cancel_reservation(held.reservation.id)

        with pytest.raises(InvalidStateError):
            await reservation_service.confirm_reservation(held.reservation.id)
        with pytest.raises(InvalidStateError):
            await reservation_service.cancel_reservation(held.reservation.id)

    async def test_cancel_after_showtime_started(self, reservation_service, showtime, catalog, clock):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        await reservation_service.confirm_reservation(held.reservation.id)
        clock.advance(days=1, minutes=5)

        with pytest.raises(InvalidStateError):
            await reservation_service.cancel_reservation(held.reservation.id)

    async def test_confirm_after_showtime_started(self, reservation_service, showtime, catalog, clock):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        clock.advance(days=1)

        with pytest.raises(InvalidStateError):
            await reservation_service.confirm_reservation(held.reservation.id)

    async def test_complete_once_showtime_started(self, reservation_service, showtime, catalog, clock):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        await reservation_service.confirm_reservation(held.reservation.id)

        with pytest.raises(InvalidStateError):
            await reservation_service.complete_reservation(held.reservation.id)

        clock.advance(days=1)
        completed = await reservation_service.complete_reservation(held.reservation.id)

        assert completed.reservation.status == ReservationStatus.COMPLETED
        assert seat_statuses(completed) == {SeatReservationStatus.COMPLETED}

    async def test_pending_cannot_complete(self, reservation_service, showtime, catalog, clock):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        clock.advance(days=1)

        with pytest.raises(InvalidStateError):
            await reservation_service.complete_reservation(held.reservation.id)

    async def test_unknown_reservation(self, reservation_service):
        with pytest.raises(ReservationNotFoundError):
            await reservation_service.confirm_reservation(uuid4())


class TestQueries:

    async def test_other_users_reservation_is_not_found(self, reservation_service, showtime, catalog):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])

        with pytest.raises(ReservationNotFoundError):
            await reservation_service.get_reservation(held.reservation.id, catalog.other_user_id)
        with pytest.raises(ReservationNotFoundError):
            await reservation_service.cancel_reservation(held.reservation.id, catalog.other_user_id)

    async def test_history_records_every_transition(self, reservation_service, showtime, catalog):
        held = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        await reservation_service.confirm_reservation(held.reservation.id, catalog.user_id)
        await reservation_service.cancel_reservation(held.reservation.id, catalog.user_id, reason="sick")

        history = await reservation_service.get_reservation_history(held.reservation.id, catalog.user_id)

        assert [entry.action for entry in history] == [
            ReservationAction.CREATED,
            ReservationAction.CONFIRMED,
            ReservationAction.CANCELLED,
        ]
        assert history[-1].performed_by == f"user:{catalog.user_id}"
        assert "sick" in history[-1].details

    async def test_list_user_reservations_with_status_filter(self, reservation_service, showtime, catalog):
        first = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        second = await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A2"]])
        await reservation_service.confirm_reservation(second.reservation.id)
        await reservation_service.create_reservation(catalog.other_user_id, showtime.id, [catalog.seats["B1"]])

        mine = await reservation_service.list_user_reservations(catalog.user_id)
        pending = await reservation_service.list_user_reservations(catalog.user_id, [ReservationStatus.PENDING])

        assert {d.reservation.id for d in mine} == {first.reservation.id, second.reservation.id}
        assert [d.reservation.id for d in pending] == [first.reservation.id]
        assert pending[0].seat_ids == [catalog.seats["A1"]]

    async def test_list_showtime_reservations(self, reservation_service, showtime, catalog):
        await reservation_service.create_reservation(catalog.user_id, showtime.id, [catalog.seats["A1"]])
        await reservation_service.create_reservation(catalog.other_user_id, showtime.id, [catalog.seats["A2"]])

        reservations = await reservation_service.list_showtime_reservations(showtime.id)

        assert {d.reservation.user_id for d in reservations} == {catalog.user_id, catalog.other_user_id}

        with pytest.raises(ShowtimeNotFoundError):
            await reservation_service.list_showtime_reservations(uuid4())
