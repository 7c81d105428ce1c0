from __future__ import annotations
"""Video jobs: session-authenticated start and the generator webhook."""

from fastapi import APIRouter, Depends, Query, Request

from mediaforge.api.deps import get_dispatcher, get_reconciler
from mediaforge.auth import SessionUser, require_session_user
from mediaforge.schemas.history import VideoJobAccepted, VideoStartRequest, WebhookAck
from mediaforge.services.dispatcher import JobDispatcher
from mediaforge.services.reconciler import WebhookReconciler

router = APIRouter()


@router.post("/start", status_code=202, response_model=VideoJobAccepted)
async def start_video(
    req: VideoStartRequest,
    user: SessionUser = Depends(require_session_user),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """Create a video job and submit it; completion arrives via the webhook."""
    record = await dispatcher.create_video_job(user, req)
    return VideoJobAccepted(job_id=record.id, history_item_id=record.id)


@router.post("/webhook", response_model=WebhookAck)
async def video_webhook(
    request: Request,
    history_item_id: str | None = Query(None, alias="historyItemId"),
    username: str | None = Query(None),
    reconciler: WebhookReconciler = Depends(get_reconciler),
):
    """Generator completion callback (unauthenticated).

    2xx for every accepted callback, including failures and duplicates;
    400 for malformed input; 404 for unknown jobs.
    """
    body = await request.body()
    result = await reconciler.reconcile(history_item_id, username, body)
    return WebhookAck(handled=result.handled.value)
