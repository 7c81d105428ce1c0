from __future__ import annotations
"""Public v1 API: bearer-authenticated image generation and status polling."""

import logging

from fastapi import APIRouter, Depends, Query, Response

from mediaforge.api.deps import get_dispatcher, get_status_service
from mediaforge.auth import SessionUser, require_any_user, require_api_user
from mediaforge.schemas.history import GenerateRequest, JobAccepted, JobStatusView
from mediaforge.services.dispatcher import DispatchMode, JobDispatcher
from mediaforge.services.status_query import StatusQueryService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate", status_code=202)
async def generate(
    req: GenerateRequest,
    response: Response,
    wait: bool = Query(False, description="Run generation inline and return the final status"),
    user: SessionUser = Depends(require_api_user),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
    status_service: StatusQueryService = Depends(get_status_service),
):
    """Create an image job.

    Default: 202 with ``{jobId, status: "processing"}``; poll /v1/status/{jobId}.
    ``?wait=true``: generation runs inline and the final status is returned.
    """
    if wait:
        record = await dispatcher.create_image_job(user, req, DispatchMode.INLINE)
        response.status_code = 200
        view = await status_service.get_job_status(record.id, user)
        return view.model_dump(mode="json", by_alias=True, exclude_none=True)

    record = await dispatcher.create_image_job(user, req, DispatchMode.DETACHED)
    logger.info("API job %s accepted for %s", record.id, user.username)
    return JobAccepted(job_id=record.id).model_dump(mode="json", by_alias=True)


@router.get(
    "/status/{job_id}",
    response_model=JobStatusView,
    response_model_exclude_none=True,
)
async def job_status(
    job_id: str,
    user: SessionUser = Depends(require_any_user),
    status_service: StatusQueryService = Depends(get_status_service),
):
    return await status_service.get_job_status(job_id, user)
