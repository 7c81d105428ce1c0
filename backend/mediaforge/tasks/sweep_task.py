from __future__ import annotations
"""Celery Beat task: fail jobs stuck in ``processing`` past the TTL."""

import logging

from celery import shared_task

from mediaforge.config import get_settings
from mediaforge.tasks import run_async

logger = logging.getLogger(__name__)
settings = get_settings()


@shared_task(name="mediaforge.tasks.sweep_task.sweep_stale_jobs")
def sweep_stale_jobs(ttl_minutes: int | None = None) -> dict:
    """Fail stale ``processing`` jobs. Returns the number swept."""
    from mediaforge.database import async_session_factory
    from mediaforge.services import sweeper
    from mediaforge.services.history_store import HistoryStore

    ttl = ttl_minutes if ttl_minutes is not None else settings.STALE_JOB_TTL_MINUTES
    store = HistoryStore(async_session_factory)
    count = run_async(sweeper.sweep_stale_jobs(store, ttl))
    logger.info("Beat sweep complete: %d job(s) failed (ttl=%d min)", count, ttl)
    return {"swept": count, "ttl_minutes": ttl}
