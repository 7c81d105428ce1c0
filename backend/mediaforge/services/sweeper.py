from __future__ import annotations
"""Stale-job sweep.

A job stays ``processing`` forever if the generator never calls back or the
process running a detached job dies. The sweep fails every ``processing`` job
older than the TTL. It runs once at startup, periodically in-process via
StaleJobSweeper, and from Celery beat (mediaforge.tasks.sweep_task).
"""

import asyncio
import logging

from mediaforge.services.history_store import HistoryStore, now_ms

logger = logging.getLogger(__name__)

STALE_JOB_ERROR = "Generation timed out"


async def sweep_stale_jobs(
    store: HistoryStore,
    ttl_minutes: int,
    *,
    now: int | None = None,
) -> int:
    """Fail ``processing`` jobs created more than ``ttl_minutes`` ago."""
    cutoff = (now if now is not None else now_ms()) - ttl_minutes * 60 * 1000
    count = await store.fail_stale_jobs(cutoff, STALE_JOB_ERROR)
    if count:
        logger.warning("Stale-job sweep: failed %d job(s) older than %d min", count, ttl_minutes)
    else:
        logger.debug("Stale-job sweep: nothing to do")
    return count


class StaleJobSweeper:
    """Runs sweep_stale_jobs every ``interval_seconds`` on the running loop."""

    def __init__(self, store: HistoryStore, ttl_minutes: int, interval_seconds: float) -> None:
        self._store = store
        self._ttl_minutes = ttl_minutes
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="stale-job-sweeper")
        logger.info(
            "Stale-job sweeper started (ttl=%d min, every %ss)", self._ttl_minutes, self._interval,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stale-job sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await sweep_stale_jobs(self._store, self._ttl_minutes)
            except Exception as e:
                logger.error("Stale-job sweep failed: %s", e)
