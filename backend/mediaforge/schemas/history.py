from __future__ import annotations
"""Pydantic v2 schemas for generation requests and history responses.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

from mediaforge.models.history import JobStatus

CAMEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "from_attributes": True,
    "protected_namespaces": (),
}


class CamelModel(BaseModel):
    model_config = CAMEL_CONFIG


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ModelAttributes(CamelModel):
    """Model/scene attributes used to build an image prompt."""

    gender: str | None = None
    body_type: str | None = None
    body_size: str | None = None
    age_range: str | None = None
    ethnicity: str | None = None
    pose_style: str | None = None
    background: str | None = None
    fashion_style: str | None = None
    hair_style: str | None = None
    model_expression: str | None = None
    lighting_type: str | None = None
    light_quality: str | None = None
    camera_angle: str | None = None
    lens_effect: str | None = None
    depth_of_field: str | None = None
    time_of_day: str | None = None
    overall_mood: str | None = None
    fabric_rendering: str | None = None


class GenerateRequest(CamelModel):
    """Image generation request. Exactly one image source is used; URL wins."""

    image_data_uri: str | None = None
    image_url: str | None = Field(default=None, max_length=2048)
    parameters: ModelAttributes = Field(default_factory=ModelAttributes)
    settings_mode: Literal["basic", "advanced"] = "basic"

    @model_validator(mode="after")
    def _require_image_source(self) -> "GenerateRequest":
        if not self.image_url and not self.image_data_uri:
            raise ValueError("Either imageDataUri or imageUrl is required.")
        if self.image_url and not self.image_url.startswith(("http://", "https://")):
            raise ValueError("imageUrl must be an http(s) URL.")
        if not self.image_url and not self.image_data_uri.startswith("data:image/"):
            raise ValueError("imageDataUri must be a data:image/... URI.")
        return self

    @property
    def image_source(self) -> str:
        return self.image_url or self.image_data_uri or ""


class VideoParameters(CamelModel):
    selected_predefined_prompt: str | None = None
    model_movement: str | None = None
    fabric_motion: str | None = None
    camera_action: str | None = None
    aesthetic_vibe: str | None = None


class VideoStartRequest(CamelModel):
    """Video generation request (webhook-driven)."""

    image_url: str = Field(min_length=1, max_length=2048)
    prompt: str | None = Field(default=None, max_length=4000)
    parameters: VideoParameters = Field(default_factory=VideoParameters)
    video_model: Literal["lite", "pro"] = "lite"
    resolution: Literal["480p", "720p", "1080p"] = "480p"
    duration: Literal["5", "10"] = "5"
    camera_fixed: bool = False
    seed: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_image_url(self) -> "VideoStartRequest":
        if not self.image_url.startswith(("http://", "https://", "data:image/", "/uploads/")):
            raise ValueError("imageUrl must be an http(s) URL, a data:image URI or an /uploads/ path.")
        return self


class DebugCompleteVideoRequest(CamelModel):
    history_item_id: str = Field(min_length=1)
    local_video_url: str = "/uploads/generated_videos/test-video.mp4"
    remote_video_url: str | None = None
    seed: int | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class JobAccepted(CamelModel):
    job_id: str
    status: JobStatus = JobStatus.PROCESSING


class VideoJobAccepted(CamelModel):
    job_id: str
    history_item_id: str
    status: JobStatus = JobStatus.PROCESSING


class JobStatusView(CamelModel):
    """v1 status poll result. Only the fields relevant to the status are set."""

    job_id: str
    status: JobStatus
    generated_image_urls: Optional[list[str]] = None
    error: Optional[str] = None


class HistoryItemStatusView(CamelModel):
    """UI polling view of a single history item."""

    status: JobStatus
    video_url: Optional[str] = None
    generated_urls: Optional[list[str]] = None
    error: Optional[str] = None
    seed: Optional[int] = None


class HistoryItemRead(CamelModel):
    id: str
    username: str
    timestamp: int
    kind: str
    status: str
    error: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    source_image_url: str | None = None
    constructed_prompt: str | None = None
    generated_urls: list[str] = Field(default_factory=list)
    remote_url: str | None = None
    seed: int | None = None


class HistoryPageRead(CamelModel):
    items: list[HistoryItemRead]
    total_count: int
    has_more: bool
    current_page: int


class WebhookAck(CamelModel):
    success: bool = True
    handled: str
