"""System status endpoint: checks the database, Redis and Celery workers."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import redis
from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text

from mediaforge.api.deps import get_app_settings, get_store
from mediaforge.config import Settings
from mediaforge.models.history import HistoryRecord, JobStatus
from mediaforge.services.history_store import HistoryStore
from mediaforge.tasks import celery_app

router = APIRouter()


async def _check_database(store: HistoryStore) -> dict[str, Any]:
    """Ping the history database and count jobs still processing."""
    t0 = time.time()
    try:
        async with store.session_factory() as session:
            await session.execute(text("SELECT 1"))
            processing = await session.scalar(
                select(func.count())
                .select_from(HistoryRecord)
                .where(HistoryRecord.status == JobStatus.PROCESSING.value)
            )
        return {
            "status": "ok",
            "latency_ms": round((time.time() - t0) * 1000, 1),
            "processing_jobs": processing or 0,
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}


def _check_redis(redis_url: str) -> dict[str, Any]:
    """Check Redis connectivity and the Celery queue length."""
    t0 = time.time()
    try:
        r = redis.Redis.from_url(redis_url, socket_timeout=3)
        info = r.info("server")
        ping = r.ping()
        return {
            "status": "ok" if ping else "error",
            "latency_ms": round((time.time() - t0) * 1000, 1),
            "version": info.get("redis_version", "unknown"),
            "pending_tasks": r.llen("celery"),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}


def _check_celery_workers() -> dict[str, Any]:
    """Ping Celery workers (the beat sweep needs at least one)."""
    try:
        inspector = celery_app.control.inspect(timeout=2)
        ping_result = inspector.ping()
        if not ping_result:
            return {"status": "offline", "workers": [], "count": 0}

        workers = [
            {"name": name, "status": "ok" if pong.get("ok") == "pong" else "error"}
            for name, pong in ping_result.items()
        ]
        return {"status": "ok", "workers": workers, "count": len(workers)}
    except Exception as e:
        return {"status": "error", "error": str(e), "workers": [], "count": 0}


@router.get("/status")
async def system_status(
    settings: Settings = Depends(get_app_settings),
    store: HistoryStore = Depends(get_store),
):
    """Aggregate health of every dependency."""
    database, redis_status, celery_status = await asyncio.gather(
        _check_database(store),
        asyncio.to_thread(_check_redis, settings.REDIS_URL),
        asyncio.to_thread(_check_celery_workers),
    )
    overall = "ok" if database["status"] == "ok" else "degraded"
    return {
        "status": overall,
        "app": settings.APP_NAME,
        "database": database,
        "redis": redis_status,
        "celery": celery_status,
        "public_app_url_configured": settings.public_base_url is not None,
    }
