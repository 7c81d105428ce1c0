"""FastAPI dependencies resolving the services wired onto ``app.state``."""

from __future__ import annotations

from fastapi import Request

from mediaforge.config import Settings, get_settings
from mediaforge.services.dispatcher import JobDispatcher
from mediaforge.services.history_store import HistoryStore
from mediaforge.services.reconciler import WebhookReconciler
from mediaforge.services.status_query import StatusQueryService


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_store(request: Request) -> HistoryStore:
    return request.app.state.store


def get_dispatcher(request: Request) -> JobDispatcher:
    return request.app.state.dispatcher


def get_reconciler(request: Request) -> WebhookReconciler:
    return request.app.state.reconciler


def get_status_service(request: Request) -> StatusQueryService:
    return request.app.state.status_service
