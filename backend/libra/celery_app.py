"""Celery application configuration for background ingestion and sync."""

from celery import Celery

from libra.config import settings

celery_app = Celery(
    "libra",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["libra.tasks.ingestion"],
)

celery_app.conf.update(
    # Serialization (security-focused)
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task tracking and reliability
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # One ingestion at a time per worker process keeps memory predictable
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24 hours
    # Must exceed the hard time limit so a running task is not redelivered
    broker_transport_options={
        "visibility_timeout": 2100,  # 35 min
    },
    task_soft_time_limit=1740,  # 29 min, inside the 30 min ingestion lease
    task_time_limit=1800,
    worker_cancel_long_running_tasks_on_connection_loss=True,
)
