"""Celery application configuration."""

import asyncio
import threading

from celery import Celery

from mediaforge.config import get_settings

settings = get_settings()

celery_app = Celery(
    "mediaforge",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "mediaforge.tasks.image_task",
        "mediaforge.tasks.sweep_task",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
)

# Celery Beat schedule for the stale-job sweep
celery_app.conf.beat_schedule = {
    "sweep-stale-jobs": {
        "task": "mediaforge.tasks.sweep_task.sweep_stale_jobs",
        "schedule": float(settings.SWEEP_INTERVAL_SECONDS),
    },
}

# Thread-local storage for event loop reuse within Celery workers
_thread_local = threading.local()


def run_async(coro):
    """Run async code in a sync Celery task.

    Reuses a thread-local event loop so the async engine's pooled
    connections stay bound to one loop per worker thread.
    """
    loop = getattr(_thread_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        _thread_local.loop = loop
    return loop.run_until_complete(coro)
