from __future__ import annotations
"""Job dispatcher: creates the history record and starts generation.

Two completion paths:
  image  - INLINE generation is awaited in the request; DETACHED jobs are
           queued to the Celery worker (mediaforge.tasks.image_task), which
           writes the terminal status and retries before giving up.
  video  - the job is submitted to the generator queue with a webhook URL;
           the record stays ``processing`` until the reconciler (or the
           stale-job sweep) finalizes it.
"""

import enum
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

import httpx

from mediaforge.auth import SessionUser
from mediaforge.config import Settings, get_settings
from mediaforge.errors import (
    ConfigurationError,
    MediaForgeError,
    StorageError,
    UpstreamError,
)
from mediaforge.models.history import HistoryRecord, JobStatus
from mediaforge.schemas.history import GenerateRequest, VideoStartRequest
from mediaforge.services import storage
from mediaforge.services.history_store import HistoryStore, new_history_record, new_job_id
from mediaforge.services.prompt_builder import build_image_prompt, build_video_prompt
from mediaforge.services.providers import fal_image, fal_video

logger = logging.getLogger(__name__)

VIDEO_SUBMIT_ERROR = "Failed to submit job to the video generator"
IMAGE_GENERATION_ERROR = "Image generation failed"
IMAGE_QUEUE_ERROR = "Failed to queue image generation"

SOURCE_FOLDER = "user_uploads"
SOURCE_PREFIX = "MediaForge_source"
IMAGE_FOLDER = "generated_images"
IMAGE_PREFIX = "MediaForge_image"

# (job_id, prompt, source) -> queued
ImageJobEnqueuer = Callable[[str, str, str], Any]


class DispatchMode(str, enum.Enum):
    INLINE = "inline"
    DETACHED = "detached"


def _error_message(exc: BaseException, fallback: str) -> str:
    if isinstance(exc, MediaForgeError):
        return exc.message if exc.expose_message else exc.public_message
    return fallback


def _enqueue_celery(job_id: str, prompt: str, source: str) -> Any:
    from mediaforge.tasks.image_task import generate_image_job

    return generate_image_job.delay(job_id, prompt, source)


# ---------------------------------------------------------------------------
# Image generation (shared by the inline path and the Celery task)
# ---------------------------------------------------------------------------


async def generate_and_store_images(
    store: HistoryStore,
    job_id: str,
    prompt: str,
    source: str,
    *,
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> bool:
    """Generate the variants, store them locally and complete the job.

    Raises on any failure; the caller decides whether to retry or fail the
    job. Returns False when the job was finalized by someone else meanwhile.
    """
    remote_urls = await fal_image.generate_images(
        prompt=prompt,
        image_url=source,
        api_key=settings.FAL_API_KEY,
        variants=settings.IMAGE_VARIANTS,
        model=settings.IMAGE_MODEL,
        run_url=settings.FAL_RUN_URL,
        http_client=http_client,
        timeout=settings.GENERATOR_TIMEOUT,
    )

    local_urls: list[str | None] = []
    for index, url in enumerate(remote_urls):
        if not url:
            local_urls.append(None)
            continue
        try:
            stored = await storage.save_file_from_url(
                url,
                IMAGE_PREFIX,
                IMAGE_FOLDER,
                "png",
                http_client=http_client,
                media_root=settings.MEDIA_VOLUME,
            )
        except StorageError as e:
            logger.warning("Job %s: could not store variant %d: %s", job_id, index, e)
            local_urls.append(None)
            continue
        local_urls.append(stored.relative_url)

    if not any(local_urls):
        raise StorageError(f"Job {job_id}: no generated image could be stored")

    applied = await store.update_status(job_id, JobStatus.COMPLETED, generated_urls=local_urls)
    if not applied:
        logger.warning("Image job %s was already finalized; dropping %d result(s)", job_id, len(local_urls))
    return applied


async def fail_image_job(store: HistoryStore, job_id: str, exc: BaseException) -> None:
    """Mark an image job failed. Best-effort: errors are logged, not raised."""
    message = _error_message(exc, IMAGE_GENERATION_ERROR)
    try:
        applied = await store.update_status(job_id, JobStatus.FAILED, error=message)
    except Exception as err:
        logger.error("Failed to mark image job %s as failed: %s", job_id, err)
        return
    if applied:
        logger.warning("Image job %s marked as failed: %s", job_id, message)
    else:
        logger.warning("Image job %s was already finalized before failure write", job_id)


class JobDispatcher:
    """Creates generation jobs and hands them to the generator."""

    def __init__(
        self,
        store: HistoryStore,
        *,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        enqueue_image_job: ImageJobEnqueuer | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._http_client = http_client
        self._enqueue_image_job = enqueue_image_job or _enqueue_celery

    # ------------------------------------------------------------------
    # Image jobs
    # ------------------------------------------------------------------

    async def create_image_job(
        self,
        user: SessionUser,
        request: GenerateRequest,
        mode: DispatchMode = DispatchMode.DETACHED,
    ) -> HistoryRecord:
        """Create an image job.

        INLINE returns the record in its terminal state; DETACHED returns it
        while still ``processing`` and leaves the rest to the worker.
        """
        if not self._settings.FAL_API_KEY:
            raise ConfigurationError("Image generator API key is not configured")

        source = request.image_source
        parameters = request.parameters.model_dump(exclude_none=True)
        prompt = build_image_prompt(parameters, request.settings_mode)
        source_ref = self._persist_source(source)

        record = new_history_record(
            user.username,
            {"parameters": parameters, "settings_mode": request.settings_mode},
            source_image_url=source_ref,
            constructed_prompt=prompt,
        )
        await self._insert(record, source)

        if mode == DispatchMode.INLINE:
            try:
                await generate_and_store_images(
                    self._store, record.id, prompt, source,
                    settings=self._settings, http_client=self._http_client,
                )
            except Exception as exc:
                logger.error("Image job %s failed: %s", record.id, exc)
                await fail_image_job(self._store, record.id, exc)
            return await self._store.find_by_id(record.id)

        try:
            self._enqueue_image_job(record.id, prompt, source)
        except Exception as exc:
            logger.error("Could not queue image job %s: %s", record.id, exc)
            await fail_image_job(self._store, record.id, MediaForgeError(IMAGE_QUEUE_ERROR))
            raise MediaForgeError(IMAGE_QUEUE_ERROR) from exc
        logger.info("Image job %s queued", record.id)
        return record

    # ------------------------------------------------------------------
    # Video jobs
    # ------------------------------------------------------------------

    def webhook_url(self, job_id: str, username: str) -> str:
        base_url = self._settings.public_base_url
        if not base_url:
            raise ConfigurationError("PUBLIC_APP_URL is not configured")
        query = urlencode({"historyItemId": job_id, "username": username})
        # TODO: append a per-job HMAC token here once the reconciler verifies one
        return f"{base_url}/api/video/webhook?{query}"

    async def create_video_job(self, user: SessionUser, request: VideoStartRequest) -> HistoryRecord:
        """Create a webhook-driven video job and submit it.

        A submission failure marks the job failed and raises UpstreamError.
        """
        if not self._settings.FAL_API_KEY:
            raise ConfigurationError("Video generator API key is not configured")

        job_id = new_job_id()
        webhook_url = self.webhook_url(job_id, user.username)
        generator_image_url = self._generator_image_url(request.image_url)
        source_ref = self._persist_source(request.image_url)

        parameters = request.parameters.model_dump(exclude_none=True)
        prompt = request.prompt or build_video_prompt(parameters)
        params: dict[str, Any] = {
            "prompt": prompt,
            "parameters": parameters,
            "video_model": request.video_model,
            "resolution": request.resolution,
            "duration": request.duration,
            "camera_fixed": request.camera_fixed,
        }
        if request.seed is not None:
            params["seed"] = request.seed

        record = new_history_record(
            user.username,
            params,
            job_id=job_id,
            source_image_url=source_ref,
            constructed_prompt=prompt,
        )
        await self._insert(record, request.image_url)

        video_input = fal_video.build_video_input(
            prompt=prompt,
            image_url=generator_image_url,
            resolution=request.resolution,
            duration=request.duration,
            camera_fixed=request.camera_fixed,
            seed=request.seed,
        )
        try:
            request_id = await fal_video.submit_video_job(
                video_input=video_input,
                webhook_url=webhook_url,
                api_key=self._settings.FAL_API_KEY,
                model_id=fal_video.video_model_id(request.video_model, self._settings),
                queue_url=self._settings.FAL_QUEUE_URL,
                http_client=self._http_client,
            )
        except UpstreamError as e:
            logger.error("Video job %s submission failed: %s", job_id, e)
            await self._store.update_status(job_id, JobStatus.FAILED, error=VIDEO_SUBMIT_ERROR)
            raise UpstreamError(VIDEO_SUBMIT_ERROR) from e

        logger.info("Video job %s submitted (request_id=%s)", job_id, request_id)
        return record

    # ------------------------------------------------------------------
    # Source images
    # ------------------------------------------------------------------

    async def _insert(self, record: HistoryRecord, source: str) -> None:
        """Insert the record; a locally stored source is discarded if that fails."""
        try:
            await self._store.insert(record)
        except Exception:
            if source.startswith("data:"):
                storage.remove_stored_file(record.source_image_url, media_root=self._settings.MEDIA_VOLUME)
            raise

    def _persist_source(self, source: str) -> str:
        """Reference to keep on the record: inline data is stored locally."""
        if source.startswith("data:"):
            stored = storage.save_data_uri(
                source, SOURCE_PREFIX, SOURCE_FOLDER, media_root=self._settings.MEDIA_VOLUME,
            )
            return stored.relative_url
        return source

    def _generator_image_url(self, source: str) -> str:
        """URL the generator can fetch: local references are made absolute."""
        if source.startswith(storage.UPLOADS_PREFIX):
            storage.resolve_safe_path(
                source[len(storage.UPLOADS_PREFIX):], media_root=self._settings.MEDIA_VOLUME,
            )
            return storage.to_absolute_url(source, self._settings.public_base_url)
        return source
