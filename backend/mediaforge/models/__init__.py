"""ORM model package. Registers all models with Base.metadata."""

from mediaforge.models.history import (
    HistoryRecord,
    JobKind,
    JobStatus,
    kind_for_params,
)

__all__ = [
    "HistoryRecord",
    "JobKind",
    "JobStatus",
    "kind_for_params",
]
