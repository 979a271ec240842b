"""
Celery application configuration for background tasks.
"""

from celery import Celery
from ..config import get_settings

settings = get_settings()

celery_app = Celery(
    "movie_reservation_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "movie_reservation_engine.tasks.reservation_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Periodic tasks configuration
celery_app.conf.beat_schedule = {
    "expire-held-reservations": {
        "task": "expire_held_reservations_task",
        "schedule": settings.expiry_sweep_interval_seconds,
    },
    "complete-started-reservations": {
        "task": "complete_started_reservations_task",
        "schedule": settings.completion_sweep_interval_seconds,
    },
}
