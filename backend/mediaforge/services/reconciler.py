from __future__ import annotations
"""Webhook reconciler: turns generator callbacks into terminal job state.

The callback itself is anonymous. The only binding to a job is the
``historyItemId``/``username`` pair embedded in the webhook URL that the
dispatcher generated, so job ids are random uuid4 values.

Classification of a callback body:
  malformed JSON / non-object   -> ValidationError, no state change
  status ERROR or error field   -> failed with the reported error
  status other than OK          -> failed, "Unexpected status: <status>"
  OK without payload.video.url  -> failed, no artifact
  OK with url                   -> download, then completed
"""

import enum
import json
import logging
from dataclasses import dataclass
from typing import Union

import httpx

from mediaforge.config import Settings, get_settings
from mediaforge.errors import (
    MediaForgeError,
    RecordForbidden,
    StorageError,
    ValidationError,
)
from mediaforge.models.history import HistoryRecord, JobStatus
from mediaforge.services import storage
from mediaforge.services.history_store import HistoryStore

logger = logging.getLogger(__name__)

VIDEO_FOLDER = "generated_videos"
VIDEO_PREFIX = "MediaForge_video"

DEFAULT_FAILURE_MESSAGE = "Video generation failed"
NO_VIDEO_MESSAGE = "No video URL returned from the video generator"
DOWNLOAD_FAILED_MESSAGE = "Failed to download generated video"
PROCESSING_FAILED_MESSAGE = "Webhook processing failed"


@dataclass(frozen=True)
class WebhookSuccess:
    video_url: str | None
    seed: int | None = None


@dataclass(frozen=True)
class WebhookFailure:
    message: str


@dataclass(frozen=True)
class WebhookUnexpectedStatus:
    status: str


WebhookEvent = Union[WebhookSuccess, WebhookFailure, WebhookUnexpectedStatus]


class ReconcileOutcome(str, enum.Enum):
    COMPLETED = "completed"
    ERROR = "error"
    UNEXPECTED_STATUS = "unexpected_status"
    NO_VIDEO = "no_video"
    DOWNLOAD_FAILED = "download_failed"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class ReconcileResult:
    job_id: str
    handled: ReconcileOutcome


def parse_webhook_body(body: bytes | str) -> WebhookEvent:
    """Parse a generator callback body once, at the boundary."""
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid JSON") from e
    if not isinstance(data, dict):
        raise ValidationError("Webhook body must be a JSON object")

    status = data.get("status")
    error = data.get("error")
    if status == "ERROR" or error:
        if isinstance(error, str) and error:
            message = error
        elif error:
            message = json.dumps(error)[:500]
        else:
            message = DEFAULT_FAILURE_MESSAGE
        return WebhookFailure(message=message)

    if status != "OK":
        return WebhookUnexpectedStatus(status=str(status))

    payload = data.get("payload")
    if not isinstance(payload, dict):
        payload = {}
    video = payload.get("video")
    url = video.get("url") if isinstance(video, dict) else None
    seed = payload.get("seed")
    return WebhookSuccess(
        video_url=url if isinstance(url, str) and url else None,
        seed=seed if isinstance(seed, int) and not isinstance(seed, bool) else None,
    )


class WebhookReconciler:
    def __init__(
        self,
        store: HistoryStore,
        *,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._http_client = http_client

    async def reconcile(
        self,
        history_item_id: str | None,
        username: str | None,
        body: bytes | str,
    ) -> ReconcileResult:
        """Apply one callback. Raises ValidationError or NotFoundOrForbidden
        for rejected callbacks; every accepted callback yields a result."""
        if not history_item_id or not username:
            logger.warning(
                "Webhook with incomplete params: historyItemId=%r username=%r",
                history_item_id, username,
            )
            raise ValidationError("Incomplete webhook parameters")

        event = parse_webhook_body(body)
        # TODO: verify a per-job HMAC token from the query string here before
        # trusting the historyItemId/username pair
        record = await self._load_owned_processing(history_item_id, username)
        if record is None:
            return ReconcileResult(history_item_id, ReconcileOutcome.DUPLICATE)

        try:
            return await self._apply(record, event)
        except Exception as e:
            logger.exception("Webhook processing for %s failed", history_item_id)
            await self._fail_best_effort(history_item_id, PROCESSING_FAILED_MESSAGE)
            if isinstance(e, MediaForgeError):
                raise
            raise MediaForgeError(PROCESSING_FAILED_MESSAGE) from e

    async def complete_directly(
        self,
        history_item_id: str,
        username: str,
        *,
        local_url: str,
        remote_url: str | None = None,
        seed: int | None = None,
    ) -> ReconcileResult:
        """Finalize a video job with an already-stored artifact (debug tooling)."""
        record = await self._load_owned_processing(history_item_id, username)
        if record is None:
            return ReconcileResult(history_item_id, ReconcileOutcome.DUPLICATE)
        applied = await self._store.update_status(
            history_item_id,
            JobStatus.COMPLETED,
            generated_urls=[local_url],
            remote_url=remote_url,
            seed=seed,
        )
        return ReconcileResult(
            history_item_id,
            ReconcileOutcome.COMPLETED if applied else ReconcileOutcome.DUPLICATE,
        )

    async def _load_owned_processing(
        self, history_item_id: str, username: str
    ) -> HistoryRecord | None:
        """The record if it belongs to ``username`` and is still processing.

        Returns None for records already finalized; raises NotFoundOrForbidden
        for unknown ids and owner mismatches.
        """
        record = await self._store.find_by_id(history_item_id)
        if record.username != username:
            logger.warning("Webhook owner mismatch for %s", history_item_id)
            raise RecordForbidden(f"History record {history_item_id} is not owned by {username}")
        if record.job_status != JobStatus.PROCESSING:
            logger.info(
                "Duplicate webhook for %s ignored (status=%s)", history_item_id, record.status,
            )
            return None
        return record

    async def _apply(self, record: HistoryRecord, event: WebhookEvent) -> ReconcileResult:
        if isinstance(event, WebhookFailure):
            logger.error("Generator reported failure for %s: %s", record.id, event.message)
            return await self._fail(record.id, event.message, ReconcileOutcome.ERROR)

        if isinstance(event, WebhookUnexpectedStatus):
            logger.error("Unexpected generator status for %s: %s", record.id, event.status)
            return await self._fail(
                record.id, f"Unexpected status: {event.status}", ReconcileOutcome.UNEXPECTED_STATUS,
            )

        if not event.video_url:
            logger.error("No video URL in successful callback for %s", record.id)
            return await self._fail(record.id, NO_VIDEO_MESSAGE, ReconcileOutcome.NO_VIDEO)

        try:
            stored = await storage.save_file_from_url(
                event.video_url,
                VIDEO_PREFIX,
                VIDEO_FOLDER,
                "mp4",
                http_client=self._http_client,
                media_root=self._settings.MEDIA_VOLUME,
                timeout=self._settings.GENERATOR_TIMEOUT,
            )
        except StorageError as e:
            logger.error("Artifact download for %s failed: %s", record.id, e)
            return await self._fail(record.id, DOWNLOAD_FAILED_MESSAGE, ReconcileOutcome.DOWNLOAD_FAILED)

        applied = await self._store.update_status(
            record.id,
            JobStatus.COMPLETED,
            generated_urls=[stored.relative_url],
            remote_url=event.video_url,
            seed=event.seed,
        )
        if not applied:
            logger.warning("Job %s finalized concurrently; %s is orphaned", record.id, stored.relative_url)
            return ReconcileResult(record.id, ReconcileOutcome.DUPLICATE)

        logger.info("Webhook completed job %s -> %s", record.id, stored.relative_url)
        return ReconcileResult(record.id, ReconcileOutcome.COMPLETED)

    async def _fail(self, job_id: str, message: str, outcome: ReconcileOutcome) -> ReconcileResult:
        applied = await self._store.update_status(job_id, JobStatus.FAILED, error=message)
        return ReconcileResult(job_id, outcome if applied else ReconcileOutcome.DUPLICATE)

    async def _fail_best_effort(self, job_id: str, message: str) -> None:
        try:
            await self._store.update_status(job_id, JobStatus.FAILED, error=message)
        except Exception as err:
            logger.error("Failed to mark job %s as failed: %s", job_id, err)
