from __future__ import annotations
"""Debug-only helpers. Every route here 404s unless DEBUG is on."""

from fastapi import APIRouter, Depends, HTTPException

from mediaforge.api.deps import get_app_settings, get_reconciler
from mediaforge.auth import SessionUser, require_session_user
from mediaforge.config import Settings
from mediaforge.schemas.history import DebugCompleteVideoRequest
from mediaforge.services.reconciler import WebhookReconciler

router = APIRouter()


@router.post("/complete-video")
async def complete_video(
    req: DebugCompleteVideoRequest,
    user: SessionUser = Depends(require_session_user),
    settings: Settings = Depends(get_app_settings),
    reconciler: WebhookReconciler = Depends(get_reconciler),
):
    """Mark one of the caller's video jobs completed without a real callback."""
    if not settings.DEBUG:
        raise HTTPException(status_code=404, detail="Not Found")

    result = await reconciler.complete_directly(
        req.history_item_id,
        user.username,
        local_url=req.local_video_url,
        remote_url=req.remote_video_url,
        seed=req.seed,
    )
    return {
        "success": True,
        "message": "Video marked as completed",
        "historyItemId": req.history_item_id,
        "handled": result.handled.value,
    }
