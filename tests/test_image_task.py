"""Celery image task: run eagerly against a scratch database and a mocked generator."""
import httpx
import pytest

from mediaforge.database import init_db, make_engine, make_session_factory
from mediaforge.models.history import JobStatus
from mediaforge.services.history_store import HistoryStore, new_history_record
from mediaforge.tasks import image_task, run_async
from mediaforge.tasks.image_task import generate_image_job

SOURCE_URL = "https://example.com/garment.png"
PROMPT = "Create a PHOTOREALISTIC image of a fashion model"


@pytest.fixture
def worker_store(tmp_path, settings, generator, monkeypatch):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'worker.db'}")
    run_async(init_db(bind=engine))
    store = HistoryStore(make_session_factory(engine))

    monkeypatch.setattr(image_task, "settings", settings)
    monkeypatch.setattr(image_task, "_store", lambda: store)
    monkeypatch.setattr(
        image_task, "_http_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(generator.handler)),
    )
    yield store
    run_async(engine.dispose())


def _queued_job(store):
    record = new_history_record("alice", {"parameters": {}}, constructed_prompt=PROMPT)
    return run_async(store.insert(record))


def test_task_completes_the_job(worker_store, generator, media_root):
    record = _queued_job(worker_store)

    result = generate_image_job.apply(args=(record.id, PROMPT, SOURCE_URL)).get()
    assert result == {"job_id": record.id, "status": "completed"}

    loaded = run_async(worker_store.find_by_id(record.id))
    assert loaded.job_status == JobStatus.COMPLETED
    assert len(loaded.generated_urls) == 3
    for url in loaded.generated_urls:
        assert (media_root / url[len("/uploads/"):]).is_file()
    assert len(generator.run_requests) == 3


def test_last_retry_marks_the_job_failed(worker_store, generator):
    generator.fail_variants = {0, 1, 2}
    record = _queued_job(worker_store)

    result = generate_image_job.apply(
        args=(record.id, PROMPT, SOURCE_URL), retries=generate_image_job.max_retries,
    ).get()
    assert result == {"job_id": record.id, "status": "failed"}

    loaded = run_async(worker_store.find_by_id(record.id))
    assert loaded.status == "failed"
    assert loaded.error == "All 3 image variants failed"
    assert loaded.generated_urls == []


def test_finalized_job_is_skipped(worker_store, generator):
    record = _queued_job(worker_store)
    run_async(worker_store.update_status(record.id, JobStatus.FAILED, error="Generation timed out"))

    result = generate_image_job.apply(args=(record.id, PROMPT, SOURCE_URL)).get()
    assert result == {"job_id": record.id, "status": "failed"}
    assert generator.run_requests == []
    assert run_async(worker_store.find_by_id(record.id)).error == "Generation timed out"
