"""Pydantic v2 schemas package."""

from mediaforge.schemas.history import (
    DebugCompleteVideoRequest,
    GenerateRequest,
    HistoryItemRead,
    HistoryItemStatusView,
    HistoryPageRead,
    JobAccepted,
    JobStatusView,
    ModelAttributes,
    VideoJobAccepted,
    VideoParameters,
    VideoStartRequest,
    WebhookAck,
)

__all__ = [
    "DebugCompleteVideoRequest",
    "GenerateRequest",
    "HistoryItemRead",
    "HistoryItemStatusView",
    "HistoryPageRead",
    "JobAccepted",
    "JobStatusView",
    "ModelAttributes",
    "VideoJobAccepted",
    "VideoParameters",
    "VideoStartRequest",
    "WebhookAck",
]
