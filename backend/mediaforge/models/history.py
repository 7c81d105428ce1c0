from __future__ import annotations
"""HistoryRecord ORM model: one row per generation job."""

import enum
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from mediaforge.database import Base


class JobStatus(str, enum.Enum):
    """Job lifecycle statuses.

    PROCESSING is the only non-terminal state. UNKNOWN is never written; it is
    what readers report for legacy or corrupt rows.
    """

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> JobStatus:
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class JobKind(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


# params keys that only video jobs carry
VIDEO_PARAM_KEYS: frozenset[str] = frozenset({"video_model", "duration", "resolution", "camera_fixed"})


def kind_for_params(params: dict[str, Any] | None) -> JobKind:
    """Derive the job kind from the presence of video-specific parameters."""
    if params and any(key in params for key in VIDEO_PARAM_KEYS):
        return JobKind.VIDEO
    return JobKind.IMAGE


class HistoryRecord(Base):
    """A generation job and its outcome."""

    __tablename__ = "history"
    __table_args__ = (
        Index("ix_history_username_timestamp", "username", "timestamp"),
        Index("ix_history_username_kind_timestamp", "username", "kind", "timestamp"),
        Index("ix_history_status_timestamp", "status", "timestamp"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    # creation time, epoch milliseconds
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[str] = mapped_column(String(10), nullable=False, default=JobKind.IMAGE.value)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JobStatus.PROCESSING.value
    )
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Generation input, stored as submitted
    params: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    source_image_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    constructed_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Outcome. generated_urls holds local "/uploads/..." references
    generated_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    remote_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    seed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True, server_default=func.now(), onupdate=func.now()
    )

    @property
    def job_status(self) -> JobStatus:
        return JobStatus.parse(self.status)

    @property
    def job_kind(self) -> JobKind:
        try:
            return JobKind(self.kind)
        except ValueError:
            return kind_for_params(self.params)
