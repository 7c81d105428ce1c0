from __future__ import annotations
"""Local artifact storage under MEDIA_VOLUME.

Stored references have the shape ``/uploads/<folder>/<file>`` and are served
back through ``/api/proxy/<folder>/<file>``. Nothing here touches the history
table.
"""

import base64
import binascii
import hashlib
import logging
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path

import httpx

from mediaforge.config import get_settings
from mediaforge.errors import ConfigurationError, StorageError, ValidationError

logger = logging.getLogger(__name__)
settings = get_settings()

UPLOADS_PREFIX = "/uploads/"
PROXY_PREFIX = "/api/proxy/"

_DATA_URI_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)
_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class StoredFile:
    relative_url: str
    sha256: str


def _media_root(media_root: str | os.PathLike[str] | None = None) -> Path:
    return Path(media_root or settings.MEDIA_VOLUME).resolve()


def _write_bytes(
    data: bytes,
    prefix: str,
    folder: str,
    extension: str,
    media_root: str | os.PathLike[str] | None,
) -> StoredFile:
    if not _NAME_RE.match(prefix) or not _NAME_RE.match(folder):
        raise ValidationError(f"Invalid storage prefix/folder: {prefix!r}/{folder!r}")
    extension = extension.lstrip(".").lower() or "bin"
    if not _NAME_RE.match(extension):
        raise ValidationError(f"Invalid file extension: {extension!r}")

    filename = f"{prefix}_{uuid.uuid4()}.{extension}"
    dir_path = _media_root(media_root) / folder
    try:
        os.makedirs(dir_path, exist_ok=True)
        file_path = dir_path / filename
        with open(file_path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise StorageError(f"Failed to write {folder}/{filename}: {e}") from e

    try:
        os.chmod(file_path, 0o664)
    except OSError as e:
        logger.warning("Could not set permissions on %s: %s", file_path, e)

    relative_url = f"{UPLOADS_PREFIX}{folder}/{filename}"
    logger.info("Saved %d bytes to %s", len(data), relative_url)
    return StoredFile(relative_url=relative_url, sha256=hashlib.sha256(data).hexdigest())


async def save_file_from_url(
    url: str,
    prefix: str,
    folder: str,
    extension: str = "png",
    *,
    http_client: httpx.AsyncClient | None = None,
    media_root: str | os.PathLike[str] | None = None,
    timeout: float = 120.0,
) -> StoredFile:
    """Download ``url`` and store it as ``<folder>/<prefix>_<uuid>.<extension>``.

    Any network or filesystem failure is raised as StorageError.
    """
    logger.info("Downloading %s into /uploads/%s", url, folder)
    client = http_client or httpx.AsyncClient(timeout=timeout)
    own_client = http_client is None
    try:
        resp = await client.get(url, follow_redirects=True)
        resp.raise_for_status()
        data = resp.content
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise StorageError(f"Failed to download {url}: {e}") from e
    finally:
        if own_client:
            await client.aclose()

    if not data:
        raise StorageError(f"Downloaded empty body from {url}")
    return _write_bytes(data, prefix, folder, extension, media_root)


def save_data_uri(
    data_uri: str,
    prefix: str,
    folder: str,
    *,
    media_root: str | os.PathLike[str] | None = None,
) -> StoredFile:
    """Decode a ``data:image/...;base64,`` URI and store it locally."""
    match = _DATA_URI_RE.match(data_uri or "")
    if not match:
        raise ValidationError("Invalid data URI format")
    mime_type, payload = match.groups()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Invalid base64 payload in data URI") from e

    extension = mime_type.split("/", 1)[1].split("+", 1)[0]
    if extension == "jpeg":
        extension = "jpg"
    return _write_bytes(data, prefix, folder, extension, media_root)


def remove_stored_file(
    ref: str,
    *,
    media_root: str | os.PathLike[str] | None = None,
) -> bool:
    """Delete a file stored under ``/uploads/``. Best-effort, returns False on failure."""
    if not ref or not ref.startswith(UPLOADS_PREFIX):
        return False
    try:
        path = resolve_safe_path(ref[len(UPLOADS_PREFIX):], media_root=media_root)
        path.unlink()
    except (ValidationError, OSError) as e:
        logger.warning("Could not remove stored file %s: %s", ref, e)
        return False
    logger.info("Removed stored file %s", ref)
    return True


def resolve_safe_path(
    sub_path: str,
    *,
    media_root: str | os.PathLike[str] | None = None,
) -> Path:
    """Resolve ``sub_path`` strictly inside the media root.

    Raises ValidationError for anything that escapes it (``..``, absolute
    paths, symlinks pointing outside) or names the root itself.
    """
    if not sub_path or "\x00" in sub_path:
        raise ValidationError("Invalid file path")

    root = _media_root(media_root)
    candidate = (root / sub_path).resolve()
    if candidate == root or not candidate.is_relative_to(root):
        logger.warning("Rejected path outside media root: %r", sub_path)
        raise ValidationError("Invalid file path")
    return candidate


def to_proxy_url(ref: str | None) -> str | None:
    """Map a stored ``/uploads/...`` reference to its ``/api/proxy/...`` path.

    Remote and ``data:`` references pass through unchanged.
    """
    if not ref:
        return None
    if ref.startswith(UPLOADS_PREFIX):
        return PROXY_PREFIX + ref[len(UPLOADS_PREFIX):]
    return ref


def to_absolute_url(ref: str | None, base_url: str | None) -> str | None:
    """Externally fetchable URL for a stored reference.

    Raises ConfigurationError when a relative reference needs ``base_url``
    and none is configured.
    """
    proxied = to_proxy_url(ref)
    if proxied is None:
        return None
    if proxied.startswith(("http://", "https://", "data:")):
        return proxied
    if not base_url:
        raise ConfigurationError("PUBLIC_APP_URL is not configured")
    if not proxied.startswith("/"):
        proxied = "/" + proxied
    return base_url.rstrip("/") + proxied
