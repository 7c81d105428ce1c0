"""Pytest configuration and shared fixtures.

Puts ``backend/`` on ``sys.path`` so ``mediaforge`` imports without an
install, and points the import-time settings at a throwaway directory before
any application module is loaded.
"""
import os
import sys
import tempfile

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

_SCRATCH = tempfile.mkdtemp(prefix="mediaforge-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_SCRATCH}/default.db")
os.environ.setdefault("MEDIA_VOLUME", os.path.join(_SCRATCH, "uploads"))
os.environ.setdefault("SWEEPER_ENABLED", "false")

import httpx  # noqa: E402
import pytest  # noqa: E402

from mediaforge.auth import SessionUser, SettingsAuthBackend  # noqa: E402
from mediaforge.config import Settings  # noqa: E402
from mediaforge.database import init_db, make_engine, make_session_factory  # noqa: E402
from mediaforge.main import create_app, wire_services  # noqa: E402
from mediaforge.services.history_store import HistoryStore  # noqa: E402

PUBLIC_URL = "https://forge.example.com"
QUEUE_URL = "https://queue.fal.test"
RUN_URL = "https://run.fal.test"
CDN_HOST = "cdn.fal.test"

ALICE_KEY = "key-alice"
BOB_KEY = "key-bob"


class FakeGenerator:
    """httpx MockTransport handler standing in for fal.ai and its CDN."""

    def __init__(self) -> None:
        self.queue_requests: list[httpx.Request] = []
        self.run_requests: list[httpx.Request] = []
        self.downloads: list[str] = []
        self.queue_status = 200
        self.fail_variants: set[int] = set()
        self.missing_files: set[str] = set()
        self._variant = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url.startswith(QUEUE_URL):
            self.queue_requests.append(request)
            if self.queue_status != 200:
                return httpx.Response(self.queue_status, json={"detail": "rejected"})
            return httpx.Response(200, json={"request_id": f"req-{len(self.queue_requests)}"})

        if url.startswith(RUN_URL):
            self.run_requests.append(request)
            index = self._variant
            self._variant += 1
            if index in self.fail_variants:
                return httpx.Response(500, json={"detail": "variant failed"})
            return httpx.Response(
                200, json={"images": [{"url": f"https://{CDN_HOST}/images/{index}.png"}]},
            )

        if request.url.host == CDN_HOST:
            self.downloads.append(url)
            if request.url.path in self.missing_files:
                return httpx.Response(404)
            return httpx.Response(200, content=b"artifact:" + request.url.path.encode())

        return httpx.Response(404)


@pytest.fixture
def media_root(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def settings(media_root):
    return Settings(
        _env_file=None,
        PUBLIC_APP_URL=PUBLIC_URL,
        MEDIA_VOLUME=str(media_root),
        FAL_API_KEY="test-key",
        FAL_QUEUE_URL=QUEUE_URL,
        FAL_RUN_URL=RUN_URL,
        IMAGE_VARIANTS=3,
        API_KEYS=f"{ALICE_KEY}:alice,{BOB_KEY}:bob",
        SWEEPER_ENABLED=False,
    )


@pytest.fixture
async def session_factory(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'history.db'}")
    await init_db(bind=engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return HistoryStore(session_factory)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
async def http_client(generator):
    client = httpx.AsyncClient(transport=httpx.MockTransport(generator.handler))
    yield client
    await client.aclose()


@pytest.fixture
def celery_queue():
    """Image jobs handed to the worker, as (job_id, prompt, source) tuples."""
    return []


@pytest.fixture
def app(settings, session_factory, http_client, celery_queue):
    application = create_app(settings)
    application.state.auth_backend = SettingsAuthBackend(settings)
    wire_services(
        application, settings, session_factory,
        http_client=http_client, enqueue_image_job=lambda *job: celery_queue.append(job),
    )
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest.fixture
def alice():
    return SessionUser(username="alice")


@pytest.fixture
def bob():
    return SessionUser(username="bob")


def bearer(key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {key}"}


def session_as(username: str, role: str = "user") -> dict[str, str]:
    return {"X-Session-User": username, "X-Session-Role": role}
