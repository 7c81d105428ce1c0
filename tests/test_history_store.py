"""HistoryStore: inserts, guarded transitions, pagination and projections."""
import pytest

from mediaforge.errors import (
    ConflictError,
    InvalidTransition,
    NotFoundOrForbidden,
    RecordForbidden,
    RecordNotFound,
    ValidationError,
)
from mediaforge.models.history import JobKind, JobStatus
from mediaforge.services.history_store import new_history_record


async def _insert(store, username="alice", params=None, **kwargs):
    record = new_history_record(username, params or {"parameters": {}}, **kwargs)
    return await store.insert(record)


async def test_insert_creates_processing_record(store):
    record = await _insert(store, source_image_url="https://example.com/a.png")

    loaded = await store.find_by_id(record.id)
    assert loaded.username == "alice"
    assert loaded.job_status == JobStatus.PROCESSING
    assert loaded.job_kind == JobKind.IMAGE
    assert loaded.generated_urls == []
    assert loaded.error is None


async def test_video_params_mark_record_as_video(store):
    record = await _insert(store, params={"video_model": "lite", "duration": "5"})
    assert (await store.find_by_id(record.id)).job_kind == JobKind.VIDEO


async def test_duplicate_id_is_a_conflict(store):
    record = await _insert(store)
    with pytest.raises(ConflictError):
        await _insert(store, job_id=record.id)


async def test_find_by_id_missing(store):
    with pytest.raises(RecordNotFound):
        await store.find_by_id("does-not-exist")


async def test_completion_is_applied_once(store):
    record = await _insert(store)

    applied = await store.update_status(
        record.id, JobStatus.COMPLETED,
        generated_urls=["/uploads/generated_images/a.png", None],
        seed=7,
    )
    assert applied is True

    again = await store.update_status(record.id, JobStatus.FAILED, error="late failure")
    assert again is False

    loaded = await store.find_by_id(record.id)
    assert loaded.status == "completed"
    assert loaded.generated_urls == ["/uploads/generated_images/a.png"]
    assert loaded.error is None
    assert loaded.seed == 7


async def test_failure_clears_urls_and_keeps_error(store):
    record = await _insert(store)
    assert await store.update_status(record.id, "failed", error="boom")

    loaded = await store.find_by_id(record.id)
    assert loaded.status == "failed"
    assert loaded.error == "boom"
    assert loaded.generated_urls == []


async def test_update_missing_record(store):
    with pytest.raises(RecordNotFound):
        await store.update_status("nope", JobStatus.FAILED, error="x")


@pytest.mark.parametrize(
    "status, kwargs",
    [
        (JobStatus.COMPLETED, {"generated_urls": []}),
        (JobStatus.COMPLETED, {"generated_urls": [None, ""]}),
        (JobStatus.FAILED, {}),
        (JobStatus.PROCESSING, {}),
    ],
)
async def test_invalid_transitions_are_rejected(store, status, kwargs):
    record = await _insert(store)
    with pytest.raises(InvalidTransition):
        await store.update_status(record.id, status, **kwargs)
    assert (await store.find_by_id(record.id)).status == "processing"


async def test_pages_are_newest_first_and_disjoint(store):
    # five share one timestamp so ordering relies on the id tie-break
    for i in range(12):
        await _insert(store, timestamp=1_000 + (i if i >= 5 else 0))
    await _insert(store, username="bob", timestamp=5_000)

    seen = []
    page_no = 1
    while True:
        page = await store.find_by_username("alice", page=page_no, page_size=5)
        assert page.total_count == 12
        seen.extend(page.items)
        if not page.has_more:
            break
        page_no += 1

    assert page_no == 3
    assert len(seen) == 12
    assert len({r.id for r in seen}) == 12
    timestamps = [r.timestamp for r in seen]
    assert timestamps == sorted(timestamps, reverse=True)
    assert all(r.username == "alice" for r in seen)


async def test_page_past_the_end_is_empty(store):
    await _insert(store)
    page = await store.find_by_username("alice", page=4, page_size=10)
    assert page.items == []
    assert page.total_count == 1
    assert page.has_more is False


async def test_kind_filter(store):
    await _insert(store, timestamp=1)
    await _insert(store, params={"video_model": "pro"}, timestamp=2)
    await _insert(store, params={"resolution": "720p"}, timestamp=3)

    videos = await store.find_by_username("alice", kind=JobKind.VIDEO)
    images = await store.find_by_username("alice", kind=JobKind.IMAGE)
    assert videos.total_count == 2
    assert images.total_count == 1
    assert all(r.kind == "video" for r in videos.items)


async def test_find_all_spans_users(store):
    await _insert(store, username="alice")
    await _insert(store, username="bob")
    page = await store.find_all()
    assert {r.username for r in page.items} == {"alice", "bob"}


@pytest.mark.parametrize("page, size", [(0, 10), (1, 0), (1, 101)])
async def test_bad_paging_arguments(store, page, size):
    with pytest.raises(ValidationError):
        await store.find_by_username("alice", page=page, page_size=size)


async def test_projection_for_owner(store):
    record = await _insert(store)
    await store.update_status(
        record.id, JobStatus.COMPLETED, generated_urls=["/uploads/generated_images/x.png"],
    )

    projection = await store.get_status_projection(record.id, "alice")
    assert projection.status == JobStatus.COMPLETED
    assert projection.kind == JobKind.IMAGE
    assert projection.generated_urls == ["/uploads/generated_images/x.png"]


async def test_projection_missing_and_foreign_look_the_same(store):
    record = await _insert(store)

    with pytest.raises(RecordNotFound) as missing:
        await store.get_status_projection("missing", "alice")
    with pytest.raises(RecordForbidden) as foreign:
        await store.get_status_projection(record.id, "bob")

    assert isinstance(missing.value, NotFoundOrForbidden)
    assert isinstance(foreign.value, NotFoundOrForbidden)
    assert missing.value.message == foreign.value.message
    assert missing.value.status_code == foreign.value.status_code == 404


async def test_projection_reports_unknown_for_corrupt_status(store):
    record = new_history_record("alice", {})
    record.status = "exploded"
    await store.insert(record)

    projection = await store.get_status_projection(record.id, "alice")
    assert projection.status == JobStatus.UNKNOWN


async def test_fail_stale_jobs_only_touches_old_processing(store):
    old = await _insert(store, timestamp=1_000)
    fresh = await _insert(store, timestamp=10_000)
    done = await _insert(store, timestamp=500)
    await store.update_status(done.id, JobStatus.COMPLETED, generated_urls=["/uploads/x/y.png"])

    count = await store.fail_stale_jobs(5_000, "Generation timed out")
    assert count == 1

    assert (await store.find_by_id(old.id)).error == "Generation timed out"
    assert (await store.find_by_id(fresh.id)).status == "processing"
    assert (await store.find_by_id(done.id)).status == "completed"
