from __future__ import annotations
"""Authentication collaborator.

Sessions and API keys are owned by the surrounding deployment; this module only
consumes them. The default backend reads bearer keys from ``API_KEYS`` and the
session user from a header set by the trusted session gateway. Swap the backend
by assigning ``app.state.auth_backend``.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from fastapi import Depends, Request

from mediaforge.config import Settings, get_settings
from mediaforge.errors import UnauthorizedError

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(frozen=True)
class SessionUser:
    username: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class AuthBackend(ABC):
    """Source of caller identity."""

    @abstractmethod
    async def get_current_user(self, request: Request) -> SessionUser | None:
        """Session-authenticated user, or None."""

    @abstractmethod
    async def authenticate_api_request(self, request: Request) -> SessionUser | None:
        """Bearer-key authenticated user, or None."""


def parse_api_keys(raw: str) -> dict[str, SessionUser]:
    """Parse ``key:username[:role]`` entries separated by commas."""
    keys: dict[str, SessionUser] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            logger.warning("Ignoring malformed API_KEYS entry")
            continue
        role = parts[2] if len(parts) > 2 and parts[2] else ROLE_USER
        keys[parts[0]] = SessionUser(username=parts[1], role=role)
    return keys


class SettingsAuthBackend(AuthBackend):
    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._api_keys = parse_api_keys(settings.API_KEYS)
        self._user_header = settings.SESSION_USER_HEADER
        self._role_header = settings.SESSION_ROLE_HEADER

    async def get_current_user(self, request: Request) -> SessionUser | None:
        username = (request.headers.get(self._user_header) or "").strip()
        if not username:
            return None
        role = (request.headers.get(self._role_header) or ROLE_USER).strip() or ROLE_USER
        return SessionUser(username=username, role=role)

    async def authenticate_api_request(self, request: Request) -> SessionUser | None:
        header = request.headers.get("Authorization") or ""
        if not header.startswith("Bearer "):
            return None
        api_key = header[len("Bearer "):].strip()
        if not api_key:
            return None
        return self._api_keys.get(api_key)


def get_auth_backend(request: Request) -> AuthBackend:
    backend = getattr(request.app.state, "auth_backend", None)
    if backend is None:
        backend = SettingsAuthBackend()
        request.app.state.auth_backend = backend
    return backend


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


async def require_session_user(
    request: Request,
    backend: AuthBackend = Depends(get_auth_backend),
) -> SessionUser:
    user = await backend.get_current_user(request)
    if user is None:
        raise UnauthorizedError()
    return user


async def require_api_user(
    request: Request,
    backend: AuthBackend = Depends(get_auth_backend),
) -> SessionUser:
    user = await backend.authenticate_api_request(request)
    if user is None:
        raise UnauthorizedError()
    return user


async def require_any_user(
    request: Request,
    backend: AuthBackend = Depends(get_auth_backend),
) -> SessionUser:
    """Bearer key first, then session."""
    user = await backend.authenticate_api_request(request)
    if user is None:
        user = await backend.get_current_user(request)
    if user is None:
        raise UnauthorizedError()
    return user


async def require_admin(user: SessionUser = Depends(require_session_user)) -> SessionUser:
    if not user.is_admin:
        raise UnauthorizedError()
    return user
