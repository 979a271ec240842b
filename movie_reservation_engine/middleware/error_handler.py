"""
Error handling for the movie reservation engine API.

Typed engine errors are mapped to HTTP responses by ``ERROR_STATUS``; anything
unexpected becomes a 500 carrying an error id that is also logged.
"""

import logging
import traceback
from typing import Any, Dict
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import OperationalError, TimeoutError as SQLTimeoutError

from ..utils.clock import utcnow
from ..utils.exceptions import (
    ReservationEngineError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    ConcurrencyError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SEAT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.SHOWTIME_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.SHOWTIME_HAS_RESERVATIONS: status.HTTP_409_CONFLICT,
    ErrorCode.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _timestamp() -> str:
    return utcnow().isoformat()


def error_response(exc: ReservationEngineError, error_id: str) -> JSONResponse:
    """Build the JSON response for a typed engine error."""
    content: Dict[str, Any] = {
        "error": exc.to_dict(),
        "error_id": error_id,
        "timestamp": _timestamp()
    }
    
    headers = {}
    if exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=content,
        headers=headers
    )


def log_error(request: Request, exc: Exception, error_id: str) -> None:
    """Log error with request context."""
    request_info = {
        "method": request.method,
        "url": str(request.url),
        "client_ip": request.client.host if request.client else None,
        "user_id": request.headers.get("x-user-id"),
    }
    
    if isinstance(exc, (ValidationError, NotFoundError)):
        logger.warning(
            f"Client error [{error_id}]: {exc.message}",
            extra={
                "error_id": error_id,
                "error_code": exc.error_code.value,
                "request": request_info,
                "details": exc.details
            }
        )
    elif isinstance(exc, (ConcurrencyError, ExternalServiceError)):
        logger.error(
            f"System error [{error_id}]: {exc.message}",
            extra={
                "error_id": error_id,
                "error_code": exc.error_code.value,
                "request": request_info,
                "details": exc.details
            }
        )
    elif isinstance(exc, ReservationEngineError):
        logger.info(
            f"Business error [{error_id}]: {exc.message}",
            extra={
                "error_id": error_id,
                "error_code": exc.error_code.value,
                "request": request_info,
                "details": exc.details
            }
        )
    else:
        logger.error(
            f"Unexpected error [{error_id}]: {str(exc)}",
            extra={
                "error_id": error_id,
                "error_type": type(exc).__name__,
                "request": request_info,
                "traceback": traceback.format_exc()
            }
        )


async def engine_error_handler(request: Request, exc: ReservationEngineError) -> JSONResponse:
    error_id = str(uuid4())
    log_error(request, exc, error_id)
    return error_response(exc, error_id)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and parameters in the engine's error format."""
    field_errors: Dict[str, list] = {}
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors.setdefault(field_path, []).append(error["msg"])
    
    validation_error = ValidationError("Request validation failed", field_errors=field_errors)
    return await engine_error_handler(request, validation_error)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationEngineError, engine_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Last-resort handler turning unexpected exceptions into JSON responses."""
    
    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug
    
    async def dispatch(self, request: Request, call_next):
        error_id = str(uuid4())
        
        try:
            return await call_next(request)
            
        except ReservationEngineError as exc:
            log_error(request, exc, error_id)
            return error_response(exc, error_id)
        except (OperationalError, SQLTimeoutError) as exc:
            log_error(request, exc, error_id)
            return self._handle_database_error(exc, error_id)
        except Exception as exc:
            log_error(request, exc, error_id)
            return self._handle_unexpected_error(exc, error_id)
    
    def _handle_database_error(self, exc: Exception, error_id: str) -> JSONResponse:
        """Handle database connection and operational errors."""
        service_error = ExternalServiceError(
            "database",
            "Database service temporarily unavailable",
            details={"error_type": type(exc).__name__},
            retry_after=30
        )
        return error_response(service_error, error_id)
    
    def _handle_unexpected_error(self, exc: Exception, error_id: str) -> JSONResponse:
        engine_error = ReservationEngineError(
            "An unexpected error occurred",
            error_code=ErrorCode.INTERNAL_ERROR,
            details={"error_type": type(exc).__name__} if self.debug else None
        )
        
        response_data = {
            "error": engine_error.to_dict(),
            "error_id": error_id,
            "timestamp": _timestamp()
        }
        
        if self.debug:
            response_data["debug"] = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }
        
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response_data
        )
