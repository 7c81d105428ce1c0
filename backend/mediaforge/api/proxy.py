from __future__ import annotations
"""Serves stored artifacts from MEDIA_VOLUME; ``/uploads/x`` is exposed as ``/api/proxy/x``."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from mediaforge.api.deps import get_app_settings
from mediaforge.config import Settings
from mediaforge.services.storage import resolve_safe_path

router = APIRouter()


@router.get("/{file_path:path}")
async def proxy_file(file_path: str, settings: Settings = Depends(get_app_settings)):
    path = resolve_safe_path(file_path, media_root=settings.MEDIA_VOLUME)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, headers={"Cache-Control": "public, max-age=31536000, immutable"})
