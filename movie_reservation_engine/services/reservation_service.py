"""
Reservation lifecycle: hold, confirm, cancel, complete and expire.

Seat exclusivity is enforced by the partial unique index on
``seat_reservations(seat_id, showtime_id)``; the availability pre-check only
produces a friendlier error. Every state transition is a compare-and-set on
``(status, version)`` so racing transitions on one reservation have exactly
one winner.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..database import is_unique_violation, translate_storage_errors
from ..models.reservation import Reservation, ReservationStatus
from ..models.reservation_history import ReservationAction, ReservationHistory
from ..models.seat import Seat
from ..models.seat_reservation import (
    ACTIVE_SEAT_STATUSES,
    SEAT_CLAIM_INDEX,
    SeatReservation,
    SeatReservationStatus,
)
from ..models.showtime import Showtime
from ..models.user import User
from ..utils.clock import Clock, to_naive_utc, utcnow
from ..utils.exceptions import (
    ConcurrencyError,
    InvalidStateError,
    NotFoundError,
    ReservationNotFoundError,
    SeatUnavailableError,
    ShowtimeNotFoundError,
    ValidationError,
)
from ..utils.logging_config import log_business_event
from ..utils.money import parse_amount
from ..utils.retry import retry_on_concurrency_error

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

# Columns SQLite reports when the seat claim index is violated
SEAT_CLAIM_COLUMNS = ("seat_reservations.seat_id", "seat_reservations.showtime_id")

# Seat-level status mirrored for each reservation status
SEAT_STATUS_FOR = {
    ReservationStatus.PENDING: SeatReservationStatus.HELD,
    ReservationStatus.CONFIRMED: SeatReservationStatus.CONFIRMED,
    ReservationStatus.CANCELLED: SeatReservationStatus.CANCELLED,
    ReservationStatus.COMPLETED: SeatReservationStatus.COMPLETED,
}


@dataclass(frozen=True)
class ReservationDetails:
    """A reservation and its seat reservations, read in one transaction."""

    reservation: Reservation
    seat_reservations: List[SeatReservation]

    @property
    def seat_ids(self) -> List[UUID]:
        return [seat_reservation.seat_id for seat_reservation in self.seat_reservations]


def _actor(user_id: Optional[UUID]) -> str:
    return f"user:{user_id}" if user_id else SYSTEM_ACTOR


class ReservationService:
    """Service driving reservations through their lifecycle."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Clock = utcnow):
        self.session_factory = session_factory
        self.clock = clock
        self.settings = get_settings()

    @retry_on_concurrency_error(base_delay=0.1, max_delay=1.0)
    async def create_reservation(
        self,
        user_id: UUID,
        showtime_id: UUID,
        seat_ids: Sequence[UUID],
        hold_duration: Optional[timedelta] = None,
        total_amount: Any = None,
    ) -> ReservationDetails:
        """
        Hold seats for a showtime.

        All requested seats become HELD together or none do.

        Args:
            user_id: ID of the user making the reservation
            showtime_id: ID of the showtime
            seat_ids: Seats to hold, all on the showtime's screen
            hold_duration: How long the hold lasts before the sweeper releases it
            total_amount: Overrides ticket price times seat count

        Raises:
            ValidationError: Empty or duplicate seats, foreign seats, started showtime
            ShowtimeNotFoundError: Unknown showtime
            SeatUnavailableError: At least one seat is already held or confirmed
        """
        seat_ids = self._validate_seat_ids(seat_ids)
        hold_duration = self._validate_hold_duration(hold_duration)
        amount_override = self._validate_amount(total_amount) if total_amount is not None else None

        logger.info(f"Creating reservation for user {user_id}, showtime {showtime_id}, {len(seat_ids)} seats")

        try:
            with translate_storage_errors("create_reservation"):
                async with self.session_factory.begin() as session:
                    now = self.clock()
                    showtime = await self._load_showtime(session, showtime_id)
                    if showtime.has_started(now):
                        raise ValidationError(
                            f"Showtime {showtime_id} has already started",
                            field_errors={"showtime_id": ["showtime already started"]},
                        )

                    if not await session.get(User, user_id):
                        raise NotFoundError(f"User {user_id} not found", resource_type="user", resource_id=str(user_id))

                    await self._ensure_seats_on_screen(session, seat_ids, showtime.screen_id)

                    taken = await self._active_seat_ids(session, showtime_id, seat_ids)
                    if taken:
                        raise SeatUnavailableError(taken, showtime_id)

                    reservation = Reservation(
                        user_id=user_id,
                        showtime_id=showtime_id,
                        total_amount=(
                            amount_override if amount_override is not None
                            else showtime.ticket_price * len(seat_ids)
                        ),
                        status=ReservationStatus.PENDING,
                        hold_expiry=now + hold_duration,
                        version=1,
                    )
                    session.add(reservation)
                    await session.flush()

                    seat_reservations = [
                        SeatReservation(
                            reservation_id=reservation.id,
                            seat_id=seat_id,
                            showtime_id=showtime_id,
                            status=SeatReservationStatus.HELD,
                        )
                        for seat_id in seat_ids
                    ]
                    session.add_all(seat_reservations)
                    # The partial unique index rejects a seat claimed since the pre-check
                    await session.flush()

                    session.add(
                        ReservationHistory(
                            reservation_id=reservation.id,
                            action=ReservationAction.CREATED,
                            details=f"Held {len(seat_ids)} seats until {reservation.hold_expiry.isoformat()}",
                            performed_by=_actor(user_id),
                        )
                    )

        except IntegrityError as e:
            if not is_unique_violation(e, SEAT_CLAIM_INDEX, SEAT_CLAIM_COLUMNS):
                logger.error(f"Reservation insert for showtime {showtime_id} violated a constraint: {e.orig}")
                raise
            async with self.session_factory() as session:
                conflicting = await self._active_seat_ids(session, showtime_id, seat_ids)
            if conflicting:
                logger.info(f"Lost seat race on showtime {showtime_id}: {conflicting}")
                raise SeatUnavailableError(conflicting, showtime_id) from e
            # The winning claim is already gone; try again
            raise ConcurrencyError(f"Seat claim on showtime {showtime_id} conflicted, retry") from e

        log_business_event(
            "reservation_created",
            {
                "reservation_id": str(reservation.id),
                "showtime_id": str(showtime_id),
                "seat_count": len(seat_ids),
                "total_amount": str(reservation.total_amount),
            },
            user_id=str(user_id),
        )
        return ReservationDetails(reservation, seat_reservations)

    @retry_on_concurrency_error(base_delay=0.1, max_delay=1.0)
    async def confirm_reservation(self, reservation_id: UUID, user_id: Optional[UUID] = None) -> ReservationDetails:
        """
        Confirm a pending reservation, typically after payment succeeds.

        Hold expiry is soft: a hold past its expiry that the sweeper has not
        released yet can still be confirmed.
        """
        with translate_storage_errors("confirm_reservation"):
            async with self.session_factory.begin() as session:
                reservation = await self._load_reservation(session, reservation_id, user_id)
                self._require_status(reservation, ReservationStatus.PENDING)

                showtime = await self._load_showtime(session, reservation.showtime_id)
                if showtime.has_started(self.clock()):
                    raise InvalidStateError(
                        reservation_id,
                        reservation.status.value,
                        ReservationStatus.PENDING.value,
                        reason="showtime has already started",
                    )

                await self._transition(
                    session,
                    reservation,
                    ReservationStatus.CONFIRMED,
                    ReservationAction.CONFIRMED,
                    performed_by=_actor(user_id or reservation.user_id),
                    details="Reservation confirmed",
                )
                details = await self._details(session, reservation)

        log_business_event(
            "reservation_confirmed",
            {"reservation_id": str(reservation_id), "showtime_id": str(reservation.showtime_id)},
            user_id=str(reservation.user_id),
        )
        return details

    @retry_on_concurrency_error(base_delay=0.1, max_delay=1.0)
    async def cancel_reservation(
        self,
        reservation_id: UUID,
        user_id: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> ReservationDetails:
        """Cancel a pending or confirmed reservation and release its seats."""
        with translate_storage_errors("cancel_reservation"):
            async with self.session_factory.begin() as session:
                reservation = await self._load_reservation(session, reservation_id, user_id)
                self._require_status(reservation, ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

                showtime = await self._load_showtime(session, reservation.showtime_id)
                if showtime.has_started(self.clock()):
                    raise InvalidStateError(
                        reservation_id,
                        reservation.status.value,
                        "PENDING or CONFIRMED",
                        reason="showtime has already started",
                    )

                await self._transition(
                    session,
                    reservation,
                    ReservationStatus.CANCELLED,
                    ReservationAction.CANCELLED,
                    performed_by=_actor(user_id or reservation.user_id),
                    details=f"Reservation cancelled: {reason}" if reason else "Reservation cancelled",
                )
                details = await self._details(session, reservation)

        log_business_event(
            "reservation_cancelled",
            {"reservation_id": str(reservation_id), "showtime_id": str(reservation.showtime_id)},
            user_id=str(reservation.user_id),
        )
        return details

    @retry_on_concurrency_error(base_delay=0.1, max_delay=1.0)
    async def complete_reservation(self, reservation_id: UUID, user_id: Optional[UUID] = None) -> ReservationDetails:
        """Mark a confirmed reservation completed once its showtime has started."""
        with translate_storage_errors("complete_reservation"):
            async with self.session_factory.begin() as session:
                reservation = await self._load_reservation(session, reservation_id, user_id)
                self._require_status(reservation, ReservationStatus.CONFIRMED)

                showtime = await self._load_showtime(session, reservation.showtime_id)
                if not showtime.has_started(self.clock()):
                    raise InvalidStateError(
                        reservation_id,
                        reservation.status.value,
                        ReservationStatus.CONFIRMED.value,
                        reason="showtime has not started yet",
                    )

                await self._transition(
                    session,
                    reservation,
                    ReservationStatus.COMPLETED,
                    ReservationAction.COMPLETED,
                    performed_by=_actor(user_id or reservation.user_id),
                    details="Reservation completed",
                )
                details = await self._details(session, reservation)

        log_business_event(
            "reservation_completed",
            {"reservation_id": str(reservation_id), "showtime_id": str(reservation.showtime_id)},
            user_id=str(reservation.user_id),
        )
        return details

    async def expire_held_reservations(self, now: Optional[datetime] = None, batch_size: Optional[int] = None) -> int:
        """
        Cancel every pending reservation whose hold expired before ``now``.

        Each reservation is expired in its own transaction through the same
        compare-and-set as confirmation, so a hold confirmed concurrently is
        left alone. Storage contention on one reservation is logged and left
        for the next sweep.

        Returns:
            Number of reservations expired
        """
        now = to_naive_utc(now) if now is not None else self.clock()
        batch_size = batch_size or self.settings.expiry_sweep_batch_size

        async with self.session_factory() as session:
            result = await session.execute(
                select(Reservation.id)
                .where(
                    Reservation.status == ReservationStatus.PENDING,
                    Reservation.hold_expiry.is_not(None),
                    Reservation.hold_expiry < now,
                )
                .order_by(Reservation.hold_expiry)
            )
            candidate_ids = list(result.scalars().all())

        if not candidate_ids:
            return 0

        expired = await self._sweep(candidate_ids, batch_size, self._expire_one, now)

        logger.info(f"Expired {expired} of {len(candidate_ids)} held reservations")
        return expired

    async def complete_started_reservations(self, now: Optional[datetime] = None, batch_size: Optional[int] = None) -> int:
        """Complete every confirmed reservation whose showtime has started."""
        now = to_naive_utc(now) if now is not None else self.clock()
        batch_size = batch_size or self.settings.expiry_sweep_batch_size

        async with self.session_factory() as session:
            result = await session.execute(
                select(Reservation.id)
                .join(Showtime, Showtime.id == Reservation.showtime_id)
                .where(
                    Reservation.status == ReservationStatus.CONFIRMED,
                    Showtime.start_time <= now,
                )
                .order_by(Showtime.start_time)
            )
            candidate_ids = list(result.scalars().all())

        if not candidate_ids:
            return 0

        completed = await self._sweep(candidate_ids, batch_size, self._complete_one, now)

        logger.info(f"Completed {completed} of {len(candidate_ids)} started reservations")
        return completed

    async def get_reservation(self, reservation_id: UUID, user_id: Optional[UUID] = None) -> ReservationDetails:
        async with self.session_factory() as session:
            reservation = await self._load_reservation(session, reservation_id, user_id)
            return await self._details(session, reservation)

    async def list_user_reservations(
        self,
        user_id: UUID,
        statuses: Optional[Iterable[ReservationStatus]] = None,
    ) -> List[ReservationDetails]:
        """A user's reservations, newest first."""
        query = select(Reservation).where(Reservation.user_id == user_id)
        return await self._list(query, statuses)

    async def list_showtime_reservations(
        self,
        showtime_id: UUID,
        statuses: Optional[Iterable[ReservationStatus]] = None,
    ) -> List[ReservationDetails]:
        async with self.session_factory() as session:
            await self._load_showtime(session, showtime_id)
        query = select(Reservation).where(Reservation.showtime_id == showtime_id)
        return await self._list(query, statuses)

    async def get_reservation_history(
        self,
        reservation_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> List[ReservationHistory]:
        """Audit trail of a reservation, oldest first."""
        async with self.session_factory() as session:
            await self._load_reservation(session, reservation_id, user_id)
            result = await session.execute(
                select(ReservationHistory)
                .where(ReservationHistory.reservation_id == reservation_id)
                .order_by(ReservationHistory.created_at, ReservationHistory.id)
            )
            return list(result.scalars().all())

    async def _sweep(self, candidate_ids: List[UUID], batch_size: int, handler, now: datetime) -> int:
        processed = 0
        for offset in range(0, len(candidate_ids), batch_size):
            for reservation_id in candidate_ids[offset:offset + batch_size]:
                try:
                    if await handler(reservation_id, now):
                        processed += 1
                except InvalidStateError as e:
                    # Another transition won the race
                    logger.debug(f"Skipping reservation {reservation_id}: {e.message}")
                except ConcurrencyError as e:
                    logger.warning(f"Deferring reservation {reservation_id} to the next sweep: {e.message}")
        return processed

    async def _expire_one(self, reservation_id: UUID, now: datetime) -> bool:
        with translate_storage_errors("expire_held_reservations"):
            async with self.session_factory.begin() as session:
                reservation = await session.get(Reservation, reservation_id)
                if not reservation or not reservation.is_hold_expired(now):
                    return False

                await self._transition(
                    session,
                    reservation,
                    ReservationStatus.CANCELLED,
                    ReservationAction.EXPIRED,
                    performed_by=SYSTEM_ACTOR,
                    details=f"Hold expired at {reservation.hold_expiry.isoformat()}",
                )

        log_business_event(
            "reservation_expired",
            {"reservation_id": str(reservation_id), "showtime_id": str(reservation.showtime_id)},
            user_id=str(reservation.user_id),
        )
        return True

    async def _complete_one(self, reservation_id: UUID, now: datetime) -> bool:
        with translate_storage_errors("complete_started_reservations"):
            async with self.session_factory.begin() as session:
                reservation = await session.get(Reservation, reservation_id)
                if not reservation or reservation.status != ReservationStatus.CONFIRMED:
                    return False

                await self._transition(
                    session,
                    reservation,
                    ReservationStatus.COMPLETED,
                    ReservationAction.COMPLETED,
                    performed_by=SYSTEM_ACTOR,
                    details="Showtime started",
                )

        log_business_event(
            "reservation_completed",
            {"reservation_id": str(reservation_id), "showtime_id": str(reservation.showtime_id)},
            user_id=str(reservation.user_id),
        )
        return True

    async def _transition(
        self,
        session: AsyncSession,
        reservation: Reservation,
        target: ReservationStatus,
        action: ReservationAction,
        performed_by: str,
        details: str,
    ) -> None:
        """Compare-and-set the reservation status and mirror it onto its seats."""
        expected_status = reservation.status
        expected_version = reservation.version

        result = await session.execute(
            update(Reservation)
            .where(
                Reservation.id == reservation.id,
                Reservation.status == expected_status,
                Reservation.version == expected_version,
            )
            .values(status=target, hold_expiry=None, version=Reservation.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await session.scalar(
                select(Reservation.status).where(Reservation.id == reservation.id)
            )
            raise InvalidStateError(
                reservation.id,
                current.value if current else "DELETED",
                expected_status.value,
                reason="reservation was modified concurrently",
            )

        await session.execute(
            update(SeatReservation)
            .where(SeatReservation.reservation_id == reservation.id)
            .values(status=SEAT_STATUS_FOR[target])
            .execution_options(synchronize_session=False)
        )

        session.add(
            ReservationHistory(
                reservation_id=reservation.id,
                action=action,
                details=details,
                performed_by=performed_by,
            )
        )
        await session.flush()
        await session.refresh(reservation)

    async def _details(self, session: AsyncSession, reservation: Reservation) -> ReservationDetails:
        result = await session.execute(
            select(SeatReservation)
            .where(SeatReservation.reservation_id == reservation.id)
            .order_by(SeatReservation.created_at, SeatReservation.id)
            .execution_options(populate_existing=True)
        )
        return ReservationDetails(reservation, list(result.scalars().all()))

    async def _list(self, query, statuses: Optional[Iterable[ReservationStatus]]) -> List[ReservationDetails]:
        if statuses:
            query = query.where(Reservation.status.in_(list(statuses)))

        async with self.session_factory() as session:
            result = await session.execute(query.order_by(Reservation.created_at.desc(), Reservation.id))
            reservations = list(result.scalars().all())
            if not reservations:
                return []

            seat_result = await session.execute(
                select(SeatReservation)
                .where(SeatReservation.reservation_id.in_([r.id for r in reservations]))
                .order_by(SeatReservation.created_at, SeatReservation.id)
            )
            by_reservation = {}
            for seat_reservation in seat_result.scalars().all():
                by_reservation.setdefault(seat_reservation.reservation_id, []).append(seat_reservation)

        return [ReservationDetails(r, by_reservation.get(r.id, [])) for r in reservations]

    async def _load_reservation(
        self,
        session: AsyncSession,
        reservation_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> Reservation:
        reservation = await session.get(Reservation, reservation_id)
        # Other users' reservations are reported as missing
        if not reservation or (user_id is not None and reservation.user_id != user_id):
            raise ReservationNotFoundError(reservation_id)
        return reservation

    async def _load_showtime(self, session: AsyncSession, showtime_id: UUID) -> Showtime:
        showtime = await session.get(Showtime, showtime_id)
        if not showtime:
            raise ShowtimeNotFoundError(showtime_id)
        return showtime

    async def _ensure_seats_on_screen(self, session: AsyncSession, seat_ids: List[UUID], screen_id: UUID) -> None:
        result = await session.execute(
            select(Seat.id).where(Seat.id.in_(seat_ids), Seat.screen_id == screen_id)
        )
        found = set(result.scalars().all())
        missing = [str(seat_id) for seat_id in seat_ids if seat_id not in found]
        if missing:
            raise ValidationError(
                "Seats do not exist on the showtime's screen",
                field_errors={"seat_ids": missing},
            )

    async def _active_seat_ids(self, session: AsyncSession, showtime_id: UUID, seat_ids: List[UUID]) -> List[UUID]:
        result = await session.execute(
            select(SeatReservation.seat_id).where(
                SeatReservation.showtime_id == showtime_id,
                SeatReservation.seat_id.in_(seat_ids),
                SeatReservation.status.in_(ACTIVE_SEAT_STATUSES),
            )
        )
        return list(result.scalars().all())

    @staticmethod
    def _require_status(reservation: Reservation, *allowed: ReservationStatus) -> None:
        if reservation.status not in allowed:
            raise InvalidStateError(
                reservation.id,
                reservation.status.value,
                " or ".join(status.value for status in allowed),
            )

    def _validate_seat_ids(self, seat_ids: Sequence[UUID]) -> List[UUID]:
        seat_ids = list(seat_ids or [])
        if not seat_ids:
            raise ValidationError("At least one seat is required", field_errors={"seat_ids": ["must not be empty"]})

        if len(set(seat_ids)) != len(seat_ids):
            raise ValidationError("Duplicate seats in request", field_errors={"seat_ids": ["must be unique"]})

        if len(seat_ids) > self.settings.max_seats_per_reservation:
            raise ValidationError(
                f"At most {self.settings.max_seats_per_reservation} seats per reservation",
                field_errors={"seat_ids": ["too many seats"]},
            )
        return seat_ids

    def _validate_hold_duration(self, hold_duration: Optional[timedelta]) -> timedelta:
        if hold_duration is None:
            return timedelta(minutes=self.settings.reservation_hold_minutes)
        if hold_duration <= timedelta(0):
            raise ValidationError(
                "Hold duration must be positive",
                field_errors={"hold_duration": ["must be greater than 0"]},
            )
        return hold_duration

    @staticmethod
    def _validate_amount(total_amount: Any) -> Decimal:
        return parse_amount(total_amount, "total_amount", "Total amount")
