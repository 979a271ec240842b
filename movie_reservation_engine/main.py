"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from movie_reservation_engine.config import settings
from movie_reservation_engine.api import api_router
from movie_reservation_engine.database import init_database, close_database, get_session_factory
from movie_reservation_engine.middleware import (
    ErrorHandlerMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from movie_reservation_engine.redis_client import init_redis, close_redis
from movie_reservation_engine.services.reservation_service import ReservationService
from movie_reservation_engine.tasks.sweeper import ExpirySweeper
from movie_reservation_engine.utils.health_check import get_health_status
from movie_reservation_engine.utils.logging_config import setup_logging

setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_file=settings.log_file,
    enable_json_logging=settings.enable_json_logging or settings.environment == "production",
)

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting movie reservation engine")
    await init_database()
    
    if settings.enable_distributed_locks:
        await init_redis()
    
    sweeper = None
    if settings.enable_inprocess_sweeper:
        sweeper = ExpirySweeper(
            ReservationService(get_session_factory()),
            interval_seconds=settings.expiry_sweep_interval_seconds,
        )
        sweeper.start()
    app.state.expiry_sweeper = sweeper
    
    yield
    
    logger.info("Shutting down movie reservation engine")
    if sweeper:
        await sweeper.stop()
    await close_redis()
    await close_database()


app = FastAPI(
    title="Movie Reservation Engine API",
    description="""
    ## Movie Reservation Engine
    
    Seat reservation and booking engine for cinema showtimes.
    
    ### Key Features
    
    * **Showtime Scheduling**: Overlapping showtimes on the same screen are rejected
    * **Seat Holds**: Seats are held atomically; a seat is never held twice for a showtime
    * **Reservation Lifecycle**: Hold, confirm, cancel and complete, with automatic hold expiry
    
    ### Identity
    
    Authentication happens upstream. Every request carries the caller's id in
    the `X-User-ID` header.
    
    ### Error Handling
    
    ```json
    {
      "error": {
        "error_code": "SEAT_UNAVAILABLE",
        "message": "Human readable error message",
        "details": {"seat_ids": ["..."]},
        "suggestions": ["Choose different seats"]
      },
      "error_id": "...",
      "timestamp": "..."
    }
    ```
    """,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "showtimes",
            "description": "Showtime scheduling with overlap detection"
        },
        {
            "name": "seats",
            "description": "Per-showtime seat availability"
        },
        {
            "name": "reservations",
            "description": "Seat holds and the reservation lifecycle"
        },
        {
            "name": "health",
            "description": "System health and monitoring endpoints"
        }
    ],
    lifespan=lifespan,
)

# Added last runs first: logging wraps error handling wraps CORS
if settings.debug:
    # Cannot use credentials with wildcard origins
    cors_origins = ["*"]
    cors_allow_credentials = False
else:
    cors_origins = settings.cors_origins
    cors_allow_credentials = settings.cors_allow_credentials

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

app.add_middleware(
    LoggingMiddleware,
    log_requests=settings.enable_request_logging,
    log_responses=settings.enable_request_logging
)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/", tags=["health"])
async def root():
    """Basic information about the API."""
    return {
        "message": "Movie Reservation Engine API", 
        "version": API_VERSION,
        "docs_url": "/docs",
        "redoc_url": "/redoc",
        "status": "operational"
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Basic health check for uptime monitoring."""
    return {"status": "healthy", "service": "movie-reservation-engine"}


@app.get("/health/detailed", tags=["health"])
async def detailed_health_check(request: Request):
    """Health of the database and Redis, plus the expiry sweeper state."""
    sweeper = getattr(request.app.state, "expiry_sweeper", None)
    return await get_health_status(
        get_session_factory(),
        sweeper_running=sweeper.is_running if sweeper else None
    )
