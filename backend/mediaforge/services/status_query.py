"""Status Query Service: owner-only job status views.

Absence and non-ownership are one outcome (NotFoundOrForbidden); the store's
projection raises either subclass and nothing here distinguishes them.
"""

from __future__ import annotations

import logging

from mediaforge.auth import SessionUser
from mediaforge.config import Settings, get_settings
from mediaforge.models.history import JobKind, JobStatus
from mediaforge.schemas.history import HistoryItemStatusView, JobStatusView
from mediaforge.services import storage
from mediaforge.services.history_store import HistoryStore

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


class StatusQueryService:
    def __init__(self, store: HistoryStore, *, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or get_settings()

    async def get_job_status(self, job_id: str, user: SessionUser) -> JobStatusView:
        """v1 API view. Completed artifacts are absolute proxy URLs."""
        projection = await self._store.get_status_projection(job_id, user.username)

        if projection.status == JobStatus.PROCESSING:
            return JobStatusView(job_id=job_id, status=JobStatus.PROCESSING)

        if projection.status == JobStatus.COMPLETED:
            base_url = self._settings.public_base_url
            # ConfigurationError (500) when unset; never a client error
            urls = [
                storage.to_absolute_url(ref, base_url)
                for ref in projection.generated_urls
            ]
            return JobStatusView(
                job_id=job_id,
                status=JobStatus.COMPLETED,
                generated_image_urls=[u for u in urls if u],
            )

        if projection.status == JobStatus.FAILED:
            return JobStatusView(
                job_id=job_id,
                status=JobStatus.FAILED,
                error=projection.error or UNKNOWN_ERROR_MESSAGE,
            )

        logger.warning("Job %s has unrecognised status; reporting unknown", job_id)
        return JobStatusView(job_id=job_id, status=JobStatus.UNKNOWN)

    async def get_history_item_status(self, item_id: str, user: SessionUser) -> HistoryItemStatusView:
        """UI polling view; artifact references are relative proxy paths."""
        projection = await self._store.get_status_projection(item_id, user.username)

        view = HistoryItemStatusView(status=projection.status, seed=projection.seed)
        if projection.status == JobStatus.COMPLETED:
            proxied = [storage.to_proxy_url(ref) for ref in projection.generated_urls]
            proxied = [u for u in proxied if u]
            if projection.kind == JobKind.VIDEO:
                view.video_url = proxied[0] if proxied else None
            else:
                view.generated_urls = proxied
        elif projection.status == JobStatus.FAILED:
            view.error = projection.error or UNKNOWN_ERROR_MESSAGE
        return view
