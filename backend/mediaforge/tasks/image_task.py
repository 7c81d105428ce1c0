from __future__ import annotations
"""Celery task: generate the image variants of a detached image job.

The API creates the history record and queues this task; the worker calls
the generator, stores the variants under MEDIA_VOLUME and writes the
terminal status. After the last retry the job is marked failed.
"""

import logging

import httpx
from celery import shared_task

from mediaforge.config import get_settings
from mediaforge.tasks import run_async

logger = logging.getLogger(__name__)
settings = get_settings()


def _store():
    from mediaforge.database import async_session_factory
    from mediaforge.services.history_store import HistoryStore

    return HistoryStore(async_session_factory)


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.GENERATOR_TIMEOUT)


async def _generate(job_id: str, prompt: str, source: str) -> dict:
    from mediaforge.models.history import JobStatus
    from mediaforge.services.dispatcher import generate_and_store_images

    store = _store()
    record = await store.find_by_id(job_id)
    if record.job_status != JobStatus.PROCESSING:
        # redelivered after the job was finalized
        logger.info("Image job %s already %s, skipping", job_id, record.status)
        return {"job_id": job_id, "status": record.status}

    async with _http_client() as client:
        await generate_and_store_images(
            store, job_id, prompt, source, settings=settings, http_client=client,
        )
    return {"job_id": job_id, "status": "completed"}


def _mark_job_failed(job_id: str, exc: BaseException) -> None:
    from mediaforge.services.dispatcher import fail_image_job

    run_async(fail_image_job(_store(), job_id, exc))


@shared_task(
    bind=True,
    max_retries=2,
    default_retry_delay=30,
    name="mediaforge.tasks.image_task.generate_image_job",
)
def generate_image_job(self, job_id: str, prompt: str, source: str) -> dict:
    """Generate, store and complete one image job."""
    try:
        result = run_async(_generate(job_id, prompt, source))
        logger.info("Image job %s: %s", job_id, result["status"])
        return result
    except Exception as exc:
        logger.error("Image generation failed for job %s: %s", job_id, exc)
        if self.request.retries >= self.max_retries:
            _mark_job_failed(job_id, exc)
            return {"job_id": job_id, "status": "failed"}
        raise self.retry(exc=exc)
