from __future__ import annotations
"""History store: the single owner of job record reads and writes.

Every mutation is one short transaction against one row. Status transitions
are a single guarded UPDATE (``WHERE status = 'processing'``), so a poll
racing a webhook never observes a half-applied transition and a replayed
webhook cannot re-apply one.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediaforge.errors import (
    ConflictError,
    InvalidTransition,
    RecordForbidden,
    RecordNotFound,
    StorageError,
    ValidationError,
)
from mediaforge.models.history import (
    HistoryRecord,
    JobKind,
    JobStatus,
    kind_for_params,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def now_ms() -> int:
    return int(time.time() * 1000)


def new_job_id() -> str:
    """Random (uuid4) job id; the webhook binding relies on it being unguessable."""
    return str(uuid.uuid4())


def new_history_record(
    username: str,
    params: dict[str, Any],
    *,
    source_image_url: str | None = None,
    constructed_prompt: str | None = None,
    job_id: str | None = None,
    timestamp: int | None = None,
) -> HistoryRecord:
    """Build a fresh ``processing`` record ready for :meth:`HistoryStore.insert`."""
    return HistoryRecord(
        id=job_id or new_job_id(),
        username=username,
        timestamp=timestamp if timestamp is not None else now_ms(),
        kind=kind_for_params(params).value,
        status=JobStatus.PROCESSING.value,
        error=None,
        params=dict(params),
        source_image_url=source_image_url,
        constructed_prompt=constructed_prompt,
        generated_urls=[],
    )


@dataclass
class HistoryPage:
    items: list[HistoryRecord]
    total_count: int
    current_page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return (self.current_page - 1) * self.page_size + len(self.items) < self.total_count


@dataclass(frozen=True)
class StatusProjection:
    """Read-only status view of one record for its owner."""

    id: str
    kind: JobKind
    status: JobStatus
    error: str | None = None
    generated_urls: list[str] = field(default_factory=list)
    remote_url: str | None = None
    seed: int | None = None


class HistoryStore:
    """Async repository over the ``history`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, record: HistoryRecord) -> HistoryRecord:
        """Persist a new record. Duplicate ids raise ConflictError."""
        async with self._session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError(f"History record {record.id} already exists") from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to insert history record {record.id}: {e}") from e

        logger.info(
            "History record created: id=%s user=%s kind=%s",
            record.id, record.username, record.kind,
        )
        return record

    async def update_status(
        self,
        job_id: str,
        new_status: JobStatus | str,
        *,
        generated_urls: Sequence[str | None] | None = None,
        remote_url: str | None = None,
        seed: int | None = None,
        error: str | None = None,
        constructed_prompt: str | None = None,
    ) -> bool:
        """Apply a ``processing -> completed|failed`` transition atomically.

        Returns True when the transition was applied, False when the record
        had already left ``processing`` (duplicate delivery, sweep won the
        race, ...). Raises RecordNotFound when the id does not exist.
        """
        values = _transition_values(
            JobStatus(new_status),
            generated_urls=generated_urls,
            remote_url=remote_url,
            seed=seed,
            error=error,
            constructed_prompt=constructed_prompt,
        )
        stmt = (
            update(HistoryRecord)
            .where(
                HistoryRecord.id == job_id,
                HistoryRecord.status == JobStatus.PROCESSING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        async with self._session_factory() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to update history record {job_id}: {e}") from e

            if result.rowcount == 1:
                logger.info("History record %s -> %s", job_id, values["status"])
                return True

            exists = await session.scalar(
                select(HistoryRecord.status).where(HistoryRecord.id == job_id)
            )

        if exists is None:
            raise RecordNotFound(f"History record {job_id} does not exist")

        logger.warning(
            "Ignoring %s transition for %s: record is already %s",
            values["status"], job_id, exists,
        )
        return False

    async def fail_stale_jobs(self, older_than_ms: int, error: str) -> int:
        """Fail every ``processing`` record created before ``older_than_ms``."""
        stmt = (
            update(HistoryRecord)
            .where(
                HistoryRecord.status == JobStatus.PROCESSING.value,
                HistoryRecord.timestamp < older_than_ms,
            )
            .values(status=JobStatus.FAILED.value, error=error, generated_urls=[])
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to sweep stale jobs: {e}") from e
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_id(self, job_id: str) -> HistoryRecord:
        """Return the record or raise RecordNotFound."""
        async with self._session_factory() as session:
            try:
                record = await session.get(HistoryRecord, job_id)
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to load history record {job_id}: {e}") from e
        if record is None:
            raise RecordNotFound(f"History record {job_id} does not exist")
        return record

    async def find_by_username(
        self,
        username: str,
        page: int = 1,
        page_size: int = 10,
        kind: JobKind | None = None,
    ) -> HistoryPage:
        """Newest-first page of one user's records, optionally filtered by kind."""
        return await self._paginate(
            [HistoryRecord.username == username], page, page_size, kind,
        )

    async def find_all(
        self,
        page: int = 1,
        page_size: int = 10,
        kind: JobKind | None = None,
    ) -> HistoryPage:
        """Newest-first page across all users (administrators only)."""
        return await self._paginate([], page, page_size, kind)

    async def get_status_projection(self, job_id: str, username: str) -> StatusProjection:
        """Minimal status view for the owner.

        Raises RecordNotFound or RecordForbidden; both are NotFoundOrForbidden
        so boundaries that catch the parent cannot tell them apart.
        """
        stmt = select(
            HistoryRecord.username,
            HistoryRecord.kind,
            HistoryRecord.status,
            HistoryRecord.error,
            HistoryRecord.generated_urls,
            HistoryRecord.remote_url,
            HistoryRecord.seed,
        ).where(HistoryRecord.id == job_id)

        async with self._session_factory() as session:
            try:
                row = (await session.execute(stmt)).first()
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to load status for {job_id}: {e}") from e

        if row is None:
            raise RecordNotFound(f"History record {job_id} does not exist")
        if row.username != username:
            raise RecordForbidden(f"History record {job_id} is not owned by {username}")

        try:
            kind = JobKind(row.kind)
        except ValueError:
            kind = JobKind.IMAGE

        return StatusProjection(
            id=job_id,
            kind=kind,
            status=JobStatus.parse(row.status),
            error=row.error,
            generated_urls=[u for u in (row.generated_urls or []) if u],
            remote_url=row.remote_url,
            seed=row.seed,
        )

    async def _paginate(
        self,
        conditions: list[Any],
        page: int,
        page_size: int,
        kind: JobKind | None,
    ) -> HistoryPage:
        if page < 1:
            raise ValidationError("page must be >= 1")
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        if kind is not None:
            conditions = [*conditions, HistoryRecord.kind == kind.value]

        count_stmt = select(func.count()).select_from(HistoryRecord).where(*conditions)
        page_stmt = (
            select(HistoryRecord)
            .where(*conditions)
            # id breaks timestamp ties so pages stay disjoint
            .order_by(HistoryRecord.timestamp.desc(), HistoryRecord.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )

        async with self._session_factory() as session:
            try:
                total = await session.scalar(count_stmt) or 0
                items = list((await session.execute(page_stmt)).scalars().all())
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to page history: {e}") from e

        return HistoryPage(items=items, total_count=total, current_page=page, page_size=page_size)


def _transition_values(
    target: JobStatus,
    *,
    generated_urls: Sequence[str | None] | None,
    remote_url: str | None,
    seed: int | None,
    error: str | None,
    constructed_prompt: str | None,
) -> dict[str, Any]:
    """Column values for a terminal transition, enforcing the record invariants."""
    if target == JobStatus.COMPLETED:
        urls = [u for u in (generated_urls or []) if u]
        if not urls:
            raise InvalidTransition("completed requires at least one generated url")
        values: dict[str, Any] = {
            "status": target.value,
            "error": None,
            "generated_urls": urls,
        }
    elif target == JobStatus.FAILED:
        if not error:
            raise InvalidTransition("failed requires an error message")
        values = {
            "status": target.value,
            "error": error,
            "generated_urls": [],
        }
    else:
        raise InvalidTransition(f"cannot transition a job to {target.value}")

    if remote_url is not None:
        values["remote_url"] = remote_url
    if seed is not None:
        values["seed"] = seed
    if constructed_prompt is not None:
        values["constructed_prompt"] = constructed_prompt
    return values
