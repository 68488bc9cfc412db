import asyncio
import datetime
import uuid

import pytest

from uploader.db.upload_session import UploadSessionStore
from uploader.exceptions import InvalidState
from uploader.utils.types import SessionStatus, can_transition, is_terminal


async def new_session(store, name="abc123"):
    return await store.create(name, "report.pdf", "pdf", "application/pdf", 100)


@pytest.fixture
def store(session_factory):
    return UploadSessionStore(session_factory)


@pytest.mark.asyncio
async def test_compare_and_swap_has_one_winner(store):
    upload = await new_session(store)

    results = await asyncio.gather(*(
        store.compare_and_swap_status(upload.id, SessionStatus.PENDING, SessionStatus.ASSEMBLING)
        for _ in range(4)
    ))

    assert sorted(results) == [False, False, False, True]
    assert (await store.get(upload.id)).status == SessionStatus.ASSEMBLING


@pytest.mark.asyncio
async def test_compare_and_swap_fails_on_stale_expectation(store):
    upload = await new_session(store)

    assert not await store.compare_and_swap_status(upload.id, SessionStatus.ASSEMBLING, SessionStatus.COMPLETED)
    assert (await store.get(upload.id)).status == SessionStatus.PENDING


@pytest.mark.asyncio
async def test_compare_and_swap_on_missing_session(store):
    assert not await store.compare_and_swap_status(uuid.uuid4(), SessionStatus.PENDING, SessionStatus.FAILED)


@pytest.mark.asyncio
@pytest.mark.parametrize("expected, next_", [
    (SessionStatus.PENDING, SessionStatus.COMPLETED),
    (SessionStatus.COMPLETED, SessionStatus.PENDING),
    (SessionStatus.FAILED, SessionStatus.ASSEMBLING),
    (SessionStatus.ASSEMBLING, SessionStatus.PENDING),
])
async def test_illegal_transition_is_refused(store, expected, next_):
    upload = await new_session(store)

    with pytest.raises(InvalidState):
        await store.compare_and_swap_status(upload.id, expected, next_)


def test_transition_table():
    assert can_transition(SessionStatus.PENDING, SessionStatus.ASSEMBLING)
    assert can_transition(SessionStatus.PENDING, SessionStatus.FAILED)
    assert can_transition(SessionStatus.ASSEMBLING, SessionStatus.COMPLETED)
    assert can_transition(SessionStatus.ASSEMBLING, SessionStatus.FAILED)
    assert not can_transition(SessionStatus.COMPLETED, SessionStatus.FAILED)

    assert is_terminal(SessionStatus.COMPLETED)
    assert is_terminal(SessionStatus.FAILED)
    assert not is_terminal(SessionStatus.ASSEMBLING)


@pytest.mark.asyncio
async def test_record_chunk_keeps_highest_end(store):
    upload = await new_session(store)

    await store.record_chunk(upload.id, 40)
    await store.record_chunk(upload.id, 10)

    assert (await store.get(upload.id)).received_through == 40


@pytest.mark.asyncio
async def test_set_final_artifact(store):
    upload = await new_session(store)

    await store.set_final_artifact(upload.id, "/data/abc123.pdf")
    assert (await store.get(upload.id)).final_artifact_path == "/data/abc123.pdf"

    await store.set_final_artifact(upload.id, None)
    assert (await store.get(upload.id)).final_artifact_path is None


@pytest.mark.asyncio
async def test_conditional_delete(store):
    upload = await new_session(store)
    assert await store.compare_and_swap_status(upload.id, SessionStatus.PENDING, SessionStatus.ASSEMBLING)

    assert not await store.delete(upload.id, unless=SessionStatus.ASSEMBLING)
    assert await store.get(upload.id) is not None

    assert await store.delete(upload.id)
    assert await store.get(upload.id) is None
    assert not await store.delete(upload.id)


@pytest.mark.asyncio
async def test_list_stale_filters_by_status_and_activity(store):
    pending = await new_session(store, "one")
    failed = await new_session(store, "two")
    assert await store.compare_and_swap_status(failed.id, SessionStatus.PENDING, SessionStatus.FAILED)

    future = datetime.datetime.now(datetime.UTC) + datetime.timedelta(minutes=1)
    past = datetime.datetime.now(datetime.UTC) - datetime.timedelta(minutes=1)

    stale = await store.list_stale([SessionStatus.PENDING], inactive_since=future)
    assert [upload.id for upload in stale] == [pending.id]
    assert await store.list_stale([SessionStatus.PENDING], inactive_since=past) == []
