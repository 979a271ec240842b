"""
Custom exceptions for the movie reservation engine.

Every expected business condition is raised as one of the typed errors below so
callers can catch exactly the outcome they care about; the API layer maps them
to HTTP responses through ``ErrorCode``.
"""

from typing import Any, Dict, Iterable, List, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the engine."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Business logic errors
    SEAT_UNAVAILABLE = "SEAT_UNAVAILABLE"
    SHOWTIME_CONFLICT = "SHOWTIME_CONFLICT"
    INVALID_STATE = "INVALID_STATE"
    SHOWTIME_HAS_RESERVATIONS = "SHOWTIME_HAS_RESERVATIONS"

    # Concurrency errors
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class ReservationEngineError(Exception):
    """Base exception class for the reservation engine."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class ValidationError(ReservationEngineError):
    """Malformed input: non-positive price, past start time, foreign seat, ..."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if field_errors:
            details["field_errors"] = field_errors
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details=details,
            **kwargs
        )
        self.field_errors = field_errors or {}


class NotFoundError(ReservationEngineError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ShowtimeNotFoundError(NotFoundError):
    def __init__(self, showtime_id: Any, **kwargs):
        super().__init__(
            f"Showtime {showtime_id} not found",
            resource_type="showtime",
            resource_id=str(showtime_id),
            suggestions=["Check the showtime ID", "Browse upcoming showtimes"],
            **kwargs
        )


class ReservationNotFoundError(NotFoundError):
    def __init__(self, reservation_id: Any, **kwargs):
        super().__init__(
            f"Reservation {reservation_id} not found",
            resource_type="reservation",
            resource_id=str(reservation_id),
            suggestions=["Check the reservation ID", "View your reservations"],
            **kwargs
        )


class SeatNotFoundError(NotFoundError):
    def __init__(self, seat_id: Any, **kwargs):
        super().__init__(
            f"Seat {seat_id} not found",
            resource_type="seat",
            resource_id=str(seat_id),
            **kwargs
        )


class ScreenNotFoundError(NotFoundError):
    def __init__(self, screen_id: Any, **kwargs):
        super().__init__(
            f"Screen {screen_id} not found",
            resource_type="screen",
            resource_id=str(screen_id),
            **kwargs
        )


class MovieNotFoundError(NotFoundError):
    def __init__(self, movie_id: Any, **kwargs):
        super().__init__(
            f"Movie {movie_id} not found",
            resource_type="movie",
            resource_id=str(movie_id),
            **kwargs
        )


class BusinessLogicError(ReservationEngineError):
    """Base exception for business rule violations."""
    pass


class SeatUnavailableError(BusinessLogicError):
    """Raised when one or more requested seats are already held or confirmed."""

    def __init__(self, seat_ids: Iterable[Any], showtime_id: Optional[Any] = None, **kwargs):
        self.seat_ids = sorted({str(seat_id) for seat_id in seat_ids})
        super().__init__(
            f"Seats not available: {', '.join(self.seat_ids)}",
            error_code=ErrorCode.SEAT_UNAVAILABLE,
            details={
                "seat_ids": self.seat_ids,
                "showtime_id": str(showtime_id) if showtime_id else None,
            },
            suggestions=["Choose different seats", "Refresh seat availability"],
            **kwargs
        )


class ConflictError(BusinessLogicError):
    """Base exception for scheduling conflicts."""
    pass


class ShowtimeConflictError(ConflictError):
    """Raised when a showtime window overlaps another on the same screen."""

    def __init__(self, conflicting_showtime_id: Any, screen_id: Any, **kwargs):
        self.conflicting_showtime_id = str(conflicting_showtime_id)
        super().__init__(
            f"Screen {screen_id} is already booked by showtime {conflicting_showtime_id} "
            f"during the requested window",
            error_code=ErrorCode.SHOWTIME_CONFLICT,
            details={
                "conflicting_showtime_id": self.conflicting_showtime_id,
                "screen_id": str(screen_id),
            },
            suggestions=["Pick a start time after the existing showtime ends", "Use another screen"],
            **kwargs
        )


class InvalidStateError(BusinessLogicError):
    """Raised when a reservation transition is not allowed from its current state."""

    def __init__(self, reservation_id: Any, current_state: str, required_state: str, reason: Optional[str] = None, **kwargs):
        message = f"Reservation {reservation_id} is {current_state}, required {required_state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            error_code=ErrorCode.INVALID_STATE,
            details={
                "reservation_id": str(reservation_id),
                "current_state": current_state,
                "required_state": required_state,
            },
            **kwargs
        )
        self.current_state = current_state
        self.required_state = required_state


class ShowtimeHasReservationsError(BusinessLogicError):
    """Raised when deleting or moving a showtime that still has active reservations."""

    def __init__(self, showtime_id: Any, reservation_count: int, **kwargs):
        super().__init__(
            f"Showtime {showtime_id} has {reservation_count} active reservations",
            error_code=ErrorCode.SHOWTIME_HAS_RESERVATIONS,
            details={"showtime_id": str(showtime_id), "reservation_count": reservation_count},
            suggestions=["Cancel the reservations first"],
            **kwargs
        )


class ConcurrencyError(ReservationEngineError):
    """Transient storage contention; safe to retry."""

    def __init__(self, message: str, retry_after: int = 1, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.CONCURRENCY_CONFLICT,
            retry_after=retry_after,
            suggestions=["Please try again"],
            **kwargs
        )


class ExternalServiceError(ReservationEngineError):
    """Exception raised for external service failures."""

    def __init__(self, service_name: str, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(
            f"{service_name} service error: {message}",
            error_code=ErrorCode.EXTERNAL_SERVICE_ERROR,
            details={"service_name": service_name, "status_code": status_code},
            suggestions=["Try again later"],
            **kwargs
        )
