from __future__ import annotations
"""Master API router: mounts all sub-routers under /api."""

from fastapi import APIRouter

from mediaforge.api.debug import router as debug_router
from mediaforge.api.generate import router as v1_router
from mediaforge.api.history import admin_router
from mediaforge.api.history import router as history_router
from mediaforge.api.proxy import router as proxy_router
from mediaforge.api.system import router as system_router
from mediaforge.api.video import router as video_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(v1_router, prefix="/v1", tags=["Public API v1"])
api_router.include_router(video_router, prefix="/video", tags=["Video"])
api_router.include_router(history_router, prefix="/history", tags=["History"])
api_router.include_router(admin_router, prefix="/admin", tags=["Admin"])
api_router.include_router(proxy_router, prefix="/proxy", tags=["Media Proxy"])
api_router.include_router(system_router, prefix="/system", tags=["System"])
api_router.include_router(debug_router, prefix="/debug", tags=["Debug"])
