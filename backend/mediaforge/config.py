from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """MediaForge application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "MediaForge"
    DEBUG: bool = False

    # Public origin of this deployment, e.g. "https://forge.example.com".
    # Needed to build absolute artifact URLs and generator webhook URLs.
    PUBLIC_APP_URL: str | None = None

    # --- Database ---
    # SQLite (aiosqlite) by default; MySQL works with "mysql+asyncmy://..."
    DATABASE_URL: str = "sqlite+aiosqlite:///./user_data/history/history.db"

    # --- Redis (Celery broker/backend) ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- Media Volume ---
    MEDIA_VOLUME: str = "user_data/uploads"

    # --- fal.ai generator ---
    FAL_API_KEY: str = ""
    FAL_QUEUE_URL: str = "https://queue.fal.run"
    FAL_RUN_URL: str = "https://fal.run"
    VIDEO_MODEL_LITE: str = "fal-ai/bytedance/seedance/v1/lite/image-to-video"
    VIDEO_MODEL_PRO: str = "fal-ai/bytedance/seedance/v1/pro/image-to-video"
    IMAGE_MODEL: str = "fal-ai/flux-pro/kontext"
    IMAGE_VARIANTS: int = 3
    GENERATOR_TIMEOUT: float = 120.0

    # --- Auth collaborator ---
    # "key:username[:role]" entries, comma-separated
    API_KEYS: str = ""
    SESSION_USER_HEADER: str = "X-Session-User"
    SESSION_ROLE_HEADER: str = "X-Session-Role"

    # --- Stale job sweep ---
    STALE_JOB_TTL_MINUTES: int = 30
    SWEEP_INTERVAL_SECONDS: int = 300
    SWEEPER_ENABLED: bool = True

    # --- CORS ---
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def public_base_url(self) -> str | None:
        """PUBLIC_APP_URL without a trailing slash, or None when unset/blank."""
        if not self.PUBLIC_APP_URL or not self.PUBLIC_APP_URL.strip():
            return None
        return self.PUBLIC_APP_URL.strip().rstrip("/")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
