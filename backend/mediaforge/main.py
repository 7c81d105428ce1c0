from __future__ import annotations
"""MediaForge: FastAPI application entry point.

Mounts the API routes, configures CORS and error handlers, wires the job
services onto ``app.state`` and runs the stale-job sweeper.
"""

import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediaforge.api.router import api_router
from mediaforge.auth import SettingsAuthBackend
from mediaforge.config import Settings, get_settings
from mediaforge.database import (
    async_session_factory,
    close_db,
    engine,
    init_db,
    make_engine,
    make_session_factory,
)
from mediaforge.errors import register_exception_handlers
from mediaforge.services.dispatcher import ImageJobEnqueuer, JobDispatcher
from mediaforge.services.history_store import HistoryStore
from mediaforge.services.reconciler import WebhookReconciler
from mediaforge.services.status_query import StatusQueryService
from mediaforge.services.sweeper import StaleJobSweeper, sweep_stale_jobs

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def wire_services(
    app: FastAPI,
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    http_client: httpx.AsyncClient | None = None,
    enqueue_image_job: ImageJobEnqueuer | None = None,
) -> HistoryStore:
    """Attach the store and the services built on it to ``app.state``."""
    store = HistoryStore(session_factory)
    app.state.settings = config
    app.state.store = store
    app.state.dispatcher = JobDispatcher(
        store, settings=config, http_client=http_client, enqueue_image_job=enqueue_image_job,
    )
    app.state.reconciler = WebhookReconciler(store, settings=config, http_client=http_client)
    app.state.status_service = StatusQueryService(store, settings=config)
    if getattr(app.state, "auth_backend", None) is None:
        app.state.auth_backend = SettingsAuthBackend(config)
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: init DB, recover stale jobs, run the sweeper."""
    config: Settings = app.state.settings
    logger.info("%s starting up...", config.APP_NAME)
    logger.info("Database: %s", make_url(config.DATABASE_URL).render_as_string(hide_password=True))
    if not config.public_base_url:
        logger.warning("PUBLIC_APP_URL is not set: video jobs and absolute status URLs will fail")

    os.makedirs(config.MEDIA_VOLUME, exist_ok=True)
    if config.DATABASE_URL == settings.DATABASE_URL:
        db_engine, session_factory = engine, async_session_factory
    else:
        db_engine = make_engine(config.DATABASE_URL, echo=config.DEBUG)
        session_factory = make_session_factory(db_engine)
    await init_db(bind=db_engine)

    http_client = httpx.AsyncClient(timeout=config.GENERATOR_TIMEOUT)
    store = wire_services(app, config, session_factory, http_client=http_client)

    # --- Startup recovery: fail jobs orphaned by a previous process ---
    try:
        await sweep_stale_jobs(store, config.STALE_JOB_TTL_MINUTES)
    except Exception as e:
        logger.warning("Startup recovery failed (non-fatal): %s", e)

    sweeper: StaleJobSweeper | None = None
    if config.SWEEPER_ENABLED:
        sweeper = StaleJobSweeper(store, config.STALE_JOB_TTL_MINUTES, config.SWEEP_INTERVAL_SECONDS)
        sweeper.start()

    yield

    if sweeper is not None:
        await sweeper.stop()
    await http_client.aclose()
    await close_db(db_engine)
    logger.info("%s shut down", config.APP_NAME)


def create_app(config: Settings | None = None) -> FastAPI:
    config = config or settings
    application = FastAPI(
        title=f"{config.APP_NAME} API",
        description="Media generation jobs: dispatch, webhook reconciliation, status and history",
        version="0.1.0",
        lifespan=lifespan,
        redirect_slashes=False,
    )
    application.state.settings = config

    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(application)
    application.include_router(api_router)

    @application.get("/health")
    async def health():
        """Liveness check."""
        return {"status": "healthy", "service": config.APP_NAME}

    return application


app = create_app()
