"""fal.ai synchronous image provider.

Runs N independent variants of the same edit concurrently. A variant that
fails leaves ``None`` in its slot; the batch fails only when every variant
fails.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from mediaforge.config import get_settings
from mediaforge.errors import UpstreamError

logger = logging.getLogger(__name__)
settings = get_settings()


async def _run_variant(
    client: httpx.AsyncClient,
    endpoint: str,
    body: dict[str, Any],
    headers: dict[str, str],
    index: int,
) -> str:
    resp = await client.post(endpoint, json=body, headers=headers)
    resp.raise_for_status()
    data = resp.json()

    images = data.get("images") if isinstance(data, dict) else None
    url = images[0].get("url") if images and isinstance(images[0], dict) else None
    if not url:
        raise UpstreamError(f"Image variant {index} returned no image URL")
    return url


async def generate_images(
    *,
    prompt: str,
    api_key: str,
    image_url: str | None = None,
    variants: int | None = None,
    model: str | None = None,
    run_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> list[str | None]:
    """Generate ``variants`` images for one prompt.

    Returns one remote URL (or None) per variant, in variant order.
    """
    if not api_key:
        raise UpstreamError("Image generator API key is not configured")

    count = variants or settings.IMAGE_VARIANTS
    model_id = model or settings.IMAGE_MODEL
    endpoint = f"{(run_url or settings.FAL_RUN_URL).rstrip('/')}/{model_id}"
    headers = {
        "Authorization": f"Key {api_key}",
        "Content-Type": "application/json",
    }
    body: dict[str, Any] = {"prompt": prompt}
    if image_url:
        body["image_url"] = image_url

    client = http_client or httpx.AsyncClient(timeout=timeout or settings.GENERATOR_TIMEOUT)
    own_client = http_client is None

    try:
        results = await asyncio.gather(
            *(_run_variant(client, endpoint, body, headers, i) for i in range(count)),
            return_exceptions=True,
        )
    finally:
        if own_client:
            await client.aclose()

    urls: list[str | None] = []
    for i, result in enumerate(results):
        if isinstance(result, BaseException):
            logger.warning("Image variant %d failed (model=%s): %s", i, model_id, result)
            urls.append(None)
        else:
            urls.append(result)

    if not any(urls):
        raise UpstreamError(f"All {count} image variants failed")

    logger.info("Generated %d/%d image variants (model=%s)", sum(1 for u in urls if u), count, model_id)
    return urls
