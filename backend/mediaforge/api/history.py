from __future__ import annotations
"""History listing and per-item endpoints (session auth)."""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from mediaforge.api.deps import get_status_service, get_store
from mediaforge.auth import SessionUser, require_admin, require_session_user
from mediaforge.errors import RecordForbidden
from mediaforge.models.history import HistoryRecord, JobKind
from mediaforge.schemas.history import HistoryItemRead, HistoryItemStatusView, HistoryPageRead
from mediaforge.services import storage
from mediaforge.services.history_store import MAX_PAGE_SIZE, HistoryPage, HistoryStore
from mediaforge.services.status_query import StatusQueryService

router = APIRouter()
admin_router = APIRouter()

KindFilter = Literal["all", "image", "video"]


def _kind(filter_value: KindFilter) -> JobKind | None:
    return None if filter_value == "all" else JobKind(filter_value)


def to_item_read(record: HistoryRecord) -> HistoryItemRead:
    item = HistoryItemRead.model_validate(record)
    item.generated_urls = [u for u in map(storage.to_proxy_url, item.generated_urls) if u]
    item.source_image_url = storage.to_proxy_url(item.source_image_url)
    return item


def to_page_read(page: HistoryPage) -> HistoryPageRead:
    return HistoryPageRead(
        items=[to_item_read(r) for r in page.items],
        total_count=page.total_count,
        has_more=page.has_more,
        current_page=page.current_page,
    )


@router.get("", response_model=HistoryPageRead)
async def list_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    kind_filter: KindFilter = Query("all", alias="filter"),
    user: SessionUser = Depends(require_session_user),
    store: HistoryStore = Depends(get_store),
):
    """Newest-first page of the caller's jobs."""
    result = await store.find_by_username(user.username, page, limit, _kind(kind_filter))
    return to_page_read(result)


@router.get("/{item_id}", response_model=HistoryItemRead)
async def get_history_item(
    item_id: str,
    user: SessionUser = Depends(require_session_user),
    store: HistoryStore = Depends(get_store),
):
    record = await store.find_by_id(item_id)
    if record.username != user.username and not user.is_admin:
        raise RecordForbidden(f"History record {item_id} is not owned by {user.username}")
    return to_item_read(record)


@router.get(
    "/{item_id}/status",
    response_model=HistoryItemStatusView,
    response_model_exclude_none=True,
)
async def get_history_item_status(
    item_id: str,
    user: SessionUser = Depends(require_session_user),
    status_service: StatusQueryService = Depends(get_status_service),
):
    """Lightweight poll target for the UI."""
    return await status_service.get_history_item_status(item_id, user)


@admin_router.get("/history", response_model=HistoryPageRead)
async def list_all_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    kind_filter: KindFilter = Query("all", alias="filter"),
    _admin: SessionUser = Depends(require_admin),
    store: HistoryStore = Depends(get_store),
):
    """Newest-first page across all users."""
    result = await store.find_all(page, limit, _kind(kind_filter))
    return to_page_read(result)
