"""Webhook reconciliation: callback classification, idempotence and the HTTP surface."""
import json
import os

import pytest

from mediaforge.errors import (
    NOT_FOUND_OR_FORBIDDEN_MESSAGE,
    MediaForgeError,
    RecordForbidden,
    RecordNotFound,
    StorageError,
    ValidationError,
)
from mediaforge.models.history import JobStatus
from mediaforge.services import storage
from mediaforge.services.history_store import new_history_record
from mediaforge.services.reconciler import (
    DOWNLOAD_FAILED_MESSAGE,
    NO_VIDEO_MESSAGE,
    PROCESSING_FAILED_MESSAGE,
    ReconcileOutcome,
    WebhookFailure,
    WebhookReconciler,
    WebhookSuccess,
    WebhookUnexpectedStatus,
    parse_webhook_body,
)

from conftest import CDN_HOST

VIDEO_URL = f"https://{CDN_HOST}/videos/out.mp4"


def _ok(url=VIDEO_URL, seed=42):
    return json.dumps({"status": "OK", "payload": {"video": {"url": url}, "seed": seed}})


@pytest.fixture
def reconciler(store, settings, http_client):
    return WebhookReconciler(store, settings=settings, http_client=http_client)


@pytest.fixture
async def video_job(store):
    record = new_history_record("alice", {"video_model": "lite", "prompt": "walk"})
    return await store.insert(record)


# ---------------------------------------------------------------------------
# Body classification
# ---------------------------------------------------------------------------


def test_parse_success():
    event = parse_webhook_body(_ok())
    assert event == WebhookSuccess(video_url=VIDEO_URL, seed=42)


def test_parse_success_without_url():
    event = parse_webhook_body(b'{"status": "OK", "payload": {"seed": "not-an-int"}}')
    assert event == WebhookSuccess(video_url=None, seed=None)


@pytest.mark.parametrize(
    "body, message",
    [
        ({"status": "ERROR", "error": "content policy"}, "content policy"),
        ({"status": "OK", "error": "late error"}, "late error"),
        ({"status": "ERROR"}, "Video generation failed"),
    ],
)
def test_parse_failure(body, message):
    assert parse_webhook_body(json.dumps(body)) == WebhookFailure(message=message)


def test_parse_structured_error_is_serialized():
    event = parse_webhook_body(json.dumps({"status": "ERROR", "error": {"code": 3}}))
    assert isinstance(event, WebhookFailure)
    assert '"code": 3' in event.message


def test_parse_unexpected_status():
    assert parse_webhook_body('{"status": "IN_QUEUE"}') == WebhookUnexpectedStatus(status="IN_QUEUE")


@pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b""])
def test_parse_rejects_malformed(body):
    with pytest.raises(ValidationError):
        parse_webhook_body(body)


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------


async def test_success_downloads_and_completes(reconciler, store, video_job, media_root, generator):
    result = await reconciler.reconcile(video_job.id, "alice", _ok())
    assert result.handled == ReconcileOutcome.COMPLETED
    assert generator.downloads == [VIDEO_URL]

    record = await store.find_by_id(video_job.id)
    assert record.job_status == JobStatus.COMPLETED
    assert record.remote_url == VIDEO_URL
    assert record.seed == 42
    [local] = record.generated_urls
    assert local.startswith("/uploads/generated_videos/MediaForge_video_")
    assert local.endswith(".mp4")
    assert os.path.isfile(media_root / local[len("/uploads/"):])


async def test_generator_error_fails_job(reconciler, store, video_job):
    body = json.dumps({"status": "ERROR", "error": "content policy"})
    result = await reconciler.reconcile(video_job.id, "alice", body)

    assert result.handled == ReconcileOutcome.ERROR
    record = await store.find_by_id(video_job.id)
    assert record.status == "failed"
    assert record.error == "content policy"


async def test_unexpected_status_fails_job(reconciler, store, video_job):
    result = await reconciler.reconcile(video_job.id, "alice", '{"status": "IN_PROGRESS"}')
    assert result.handled == ReconcileOutcome.UNEXPECTED_STATUS
    assert (await store.find_by_id(video_job.id)).error == "Unexpected status: IN_PROGRESS"


async def test_missing_video_fails_job(reconciler, store, video_job):
    result = await reconciler.reconcile(video_job.id, "alice", '{"status": "OK", "payload": {}}')
    assert result.handled == ReconcileOutcome.NO_VIDEO
    assert (await store.find_by_id(video_job.id)).error == NO_VIDEO_MESSAGE


async def test_download_failure_fails_job(reconciler, store, video_job, generator):
    generator.missing_files.add("/videos/out.mp4")
    result = await reconciler.reconcile(video_job.id, "alice", _ok())

    assert result.handled == ReconcileOutcome.DOWNLOAD_FAILED
    record = await store.find_by_id(video_job.id)
    assert record.status == "failed"
    assert record.error == DOWNLOAD_FAILED_MESSAGE
    assert record.generated_urls == []


async def test_unparseable_video_url_is_a_download_failure(reconciler, store, video_job, generator):
    result = await reconciler.reconcile(video_job.id, "alice", _ok(url="https://exa mple.com/\x00x.mp4"))

    assert result.handled == ReconcileOutcome.DOWNLOAD_FAILED
    assert generator.downloads == []
    record = await store.find_by_id(video_job.id)
    assert record.status == "failed"
    assert record.error == DOWNLOAD_FAILED_MESSAGE


async def test_unexpected_error_fails_job_and_raises(reconciler, store, video_job, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("disk controller on fire")

    monkeypatch.setattr(storage, "save_file_from_url", explode)
    with pytest.raises(MediaForgeError) as excinfo:
        await reconciler.reconcile(video_job.id, "alice", _ok())
    assert excinfo.value.message == PROCESSING_FAILED_MESSAGE
    assert excinfo.value.status_code == 500

    record = await store.find_by_id(video_job.id)
    assert record.status == "failed"
    assert record.error == PROCESSING_FAILED_MESSAGE


async def test_replayed_callback_is_a_noop(reconciler, store, video_job, generator):
    await reconciler.reconcile(video_job.id, "alice", _ok())
    first = await store.find_by_id(video_job.id)

    result = await reconciler.reconcile(
        video_job.id, "alice", json.dumps({"status": "ERROR", "error": "late"}),
    )
    assert result.handled == ReconcileOutcome.DUPLICATE
    assert len(generator.downloads) == 1

    second = await store.find_by_id(video_job.id)
    assert second.status == "completed"
    assert second.generated_urls == first.generated_urls


async def test_unknown_job_is_rejected(reconciler, store):
    with pytest.raises(RecordNotFound):
        await reconciler.reconcile("no-such-job", "alice", _ok())
    assert (await store.find_all()).total_count == 0


async def test_owner_mismatch_is_rejected(reconciler, store, video_job, generator):
    with pytest.raises(RecordForbidden):
        await reconciler.reconcile(video_job.id, "mallory", _ok())
    assert (await store.find_by_id(video_job.id)).status == "processing"
    assert generator.downloads == []


@pytest.mark.parametrize("job_id, username", [(None, "alice"), ("x", None), ("", "")])
async def test_incomplete_parameters(reconciler, job_id, username):
    with pytest.raises(ValidationError):
        await reconciler.reconcile(job_id, username, _ok())


async def test_malformed_body_leaves_job_untouched(reconciler, store, video_job):
    with pytest.raises(ValidationError):
        await reconciler.reconcile(video_job.id, "alice", b"{broken")
    assert (await store.find_by_id(video_job.id)).status == "processing"


async def test_complete_directly(reconciler, store, video_job):
    result = await reconciler.complete_directly(
        video_job.id, "alice", local_url="/uploads/generated_videos/test-video.mp4", seed=3,
    )
    assert result.handled == ReconcileOutcome.COMPLETED
    record = await store.find_by_id(video_job.id)
    assert record.generated_urls == ["/uploads/generated_videos/test-video.mp4"]
    assert record.seed == 3


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


async def test_webhook_endpoint_is_idempotent(client, store, video_job):
    params = {"historyItemId": video_job.id, "username": "alice"}

    resp = await client.post("/api/video/webhook", params=params, content=_ok())
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "handled": "completed"}

    resp = await client.post("/api/video/webhook", params=params, content=_ok())
    assert resp.status_code == 200
    assert resp.json()["handled"] == "duplicate"

    assert (await store.find_by_id(video_job.id)).status == "completed"


async def test_webhook_failure_is_acknowledged(client, store, video_job):
    resp = await client.post(
        "/api/video/webhook",
        params={"historyItemId": video_job.id, "username": "alice"},
        content=json.dumps({"status": "ERROR", "error": "nsfw"}),
    )
    assert resp.status_code == 200
    assert resp.json()["handled"] == "error"


async def test_webhook_unknown_job_is_404(client, store):
    resp = await client.post(
        "/api/video/webhook", params={"historyItemId": "ghost", "username": "alice"}, content=_ok(),
    )
    assert resp.status_code == 404
    assert resp.json() == {"error": NOT_FOUND_OR_FORBIDDEN_MESSAGE}
    assert (await store.find_all()).total_count == 0


async def test_webhook_malformed_is_400(client, video_job):
    resp = await client.post(
        "/api/video/webhook",
        params={"historyItemId": video_job.id, "username": "alice"},
        content=b"<<<",
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid JSON"}


async def test_webhook_missing_params_is_400(client):
    resp = await client.post("/api/video/webhook", content=_ok())
    assert resp.status_code == 400
    assert resp.json() == {"error": "Incomplete webhook parameters"}


async def test_webhook_bad_video_url_is_acknowledged(client, store, video_job):
    resp = await client.post(
        "/api/video/webhook",
        params={"historyItemId": video_job.id, "username": "alice"},
        content=json.dumps({"status": "OK", "payload": {"video": {"url": "https://exa mple.com/\x00x.mp4"}}}),
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "handled": "download_failed"}
    assert (await store.find_by_id(video_job.id)).error == DOWNLOAD_FAILED_MESSAGE


async def test_webhook_unexpected_error_is_500(client, store, video_job, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("disk controller on fire")

    monkeypatch.setattr(storage, "save_file_from_url", explode)
    resp = await client.post(
        "/api/video/webhook", params={"historyItemId": video_job.id, "username": "alice"}, content=_ok(),
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": PROCESSING_FAILED_MESSAGE}
    assert (await store.find_by_id(video_job.id)).error == PROCESSING_FAILED_MESSAGE


async def test_webhook_is_500_even_when_failure_write_fails(client, app, store, video_job, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("disk controller on fire")

    async def database_gone(*args, **kwargs):
        raise StorageError("database is locked")

    monkeypatch.setattr(storage, "save_file_from_url", explode)
    monkeypatch.setattr(app.state.store, "update_status", database_gone)
    resp = await client.post(
        "/api/video/webhook", params={"historyItemId": video_job.id, "username": "alice"}, content=_ok(),
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": PROCESSING_FAILED_MESSAGE}
    assert (await store.find_by_id(video_job.id)).status == "processing"
