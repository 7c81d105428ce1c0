"""fal.ai Seedance image-to-video provider.

Jobs are submitted to the fal queue with a ``fal_webhook`` callback; the
result arrives later at ``/api/video/webhook``. Nothing is polled here.

Supports:
- lite and pro Seedance models
- resolution, duration, camera_fixed and seed (only sent when set)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mediaforge.config import Settings, get_settings
from mediaforge.errors import UpstreamError

logger = logging.getLogger(__name__)
settings = get_settings()


def video_model_id(video_model: str | None, config: Settings | None = None) -> str:
    """Map the ``lite``/``pro`` selector to a fal model id (lite by default)."""
    config = config or settings
    if video_model == "pro":
        return config.VIDEO_MODEL_PRO
    return config.VIDEO_MODEL_LITE


def build_video_input(
    *,
    prompt: str,
    image_url: str,
    resolution: str | None = None,
    duration: str | None = None,
    camera_fixed: bool | None = None,
    seed: int | None = None,
) -> dict[str, Any]:
    """Generator input with only the optional fields that are set."""
    body: dict[str, Any] = {
        "prompt": prompt,
        "image_url": image_url,
    }
    if resolution:
        body["resolution"] = resolution
    if duration:
        body["duration"] = str(duration)
    if isinstance(camera_fixed, bool):
        body["camera_fixed"] = camera_fixed
    if isinstance(seed, int) and not isinstance(seed, bool):
        body["seed"] = seed
    return body


async def submit_video_job(
    *,
    video_input: dict[str, Any],
    webhook_url: str,
    api_key: str,
    model_id: str,
    queue_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> str:
    """Submit a video job to the fal queue.

    Returns the fal ``request_id``. Any rejection is raised as UpstreamError.
    """
    if not api_key:
        raise UpstreamError("Video generator API key is not configured")

    endpoint = f"{(queue_url or settings.FAL_QUEUE_URL).rstrip('/')}/{model_id}"
    headers = {
        "Authorization": f"Key {api_key}",
        "Content-Type": "application/json",
    }

    client = http_client or httpx.AsyncClient(timeout=timeout)
    own_client = http_client is None

    logger.info("Submitting video job to %s (webhook=%s)", model_id, webhook_url)
    try:
        resp = await client.post(
            endpoint,
            params={"fal_webhook": webhook_url},
            json=video_input,
            headers=headers,
        )
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as e:
        raise UpstreamError(
            f"Video generator rejected job: HTTP {e.response.status_code}"
        ) from e
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamError(f"Video generator request failed: {e}") from e
    finally:
        if own_client:
            await client.aclose()

    request_id = data.get("request_id") if isinstance(data, dict) else None
    if not request_id:
        raise UpstreamError("Video generator returned no request_id")

    logger.info("fal video request queued: %s (model=%s)", request_id, model_id)
    return request_id
