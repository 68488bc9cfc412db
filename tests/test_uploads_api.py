import uuid

import pytest

from uploader.config import config


async def create(client, size=10, name="greeting notes.bin"):
    response = await client.post("/uploads", json={
        "file_name": name,
        "file_extension": "bin",
        "file_size": size,
        "file_mime_type": "application/octet-stream",
    })
    assert response.status_code == 201, response.text
    return response.json()


async def patch(client, upload_id, offset, data, **headers):
    return await client.patch(
        f"/uploads/{upload_id}",
        content=data,
        headers={"Upload-Offset": str(offset), **headers}
    )


@pytest.mark.asyncio
async def test_full_upload_flow(client):
    upload = await create(client)
    assert upload["status"] == "pending"
    assert upload["url"] is None
    assert upload["declared_size"] == 10

    response = await patch(client, upload["id"], 5, b"WORLD", **{"Upload-Length": "10", "Upload-Name": "greeting"})
    assert response.status_code == 200
    assert response.json() == {
        "id": upload["id"],
        "offset": 5,
        "received_through": 10,
        "status": "pending",
        "file_name": "greeting",
    }

    response = await client.head(f"/uploads/{upload['id']}")
    assert response.status_code == 200
    assert response.headers["Upload-Offset"] == "0"

    response = await patch(client, upload["id"], 0, b"HELLO")
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    response = await client.head(f"/uploads/{upload['id']}")
    assert response.headers["Upload-Offset"] == "10"

    response = await client.get(f"/uploads/{upload['id']}")
    assert response.status_code == 200
    assert response.json()["url"] == f"/uploads/{upload['id']}/content"

    response = await client.get(f"/uploads/{upload['id']}/content")
    assert response.status_code == 200
    assert response.content == b"HELLOWORLD"
    assert response.headers["content-type"] == "application/octet-stream"
    assert response.headers["content-disposition"] == "inline; filename*=UTF-8''greeting%20notes.bin"

    response = await client.delete(f"/uploads/{upload['id']}")
    assert response.status_code == 204

    response = await client.get(f"/uploads/{upload['id']}")
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_put_is_accepted_for_chunks(client):
    upload = await create(client)

    response = await client.put(
        f"/uploads/{upload['id']}",
        content=b"HELLOWORLD",
        headers={"Upload-Offset": "0"}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_list_uploads(client):
    first = await create(client)
    second = await create(client)

    response = await client.get("/uploads")

    assert response.status_code == 200
    assert {item["id"] for item in response.json()} == {first["id"], second["id"]}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"file_name": "a.exe", "file_extension": "exe", "file_size": 10, "file_mime_type": "application/x-msdownload"},
    {"file_name": "a.bin", "file_extension": "bin", "file_size": 0, "file_mime_type": "application/octet-stream"},
    {"file_name": "", "file_extension": "bin", "file_size": 10, "file_mime_type": "application/octet-stream"},
])
async def test_create_rejects_invalid_metadata(client, body):
    response = await client.post("/uploads", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_METADATA"


@pytest.mark.asyncio
async def test_chunk_outside_declared_size(client):
    upload = await create(client)

    response = await patch(client, upload["id"], 8, b"WORLD")

    assert response.status_code == 416
    assert response.json()["code"] == "OUT_OF_RANGE"


@pytest.mark.asyncio
async def test_total_length_must_match_declared_size(client):
    upload = await create(client)

    response = await patch(client, upload["id"], 0, b"HELLO", **{"Upload-Length": "11"})

    assert response.status_code == 416


@pytest.mark.asyncio
async def test_missing_offset_header(client):
    upload = await create(client)

    response = await client.patch(f"/uploads/{upload['id']}", content=b"HELLO")

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_oversized_chunk_is_refused(client):
    upload = await create(client, size=config.MAX_CHUNK_SIZE * 2)

    response = await patch(client, upload["id"], 0, b"x" * (config.MAX_CHUNK_SIZE + 1))

    assert response.status_code == 413


@pytest.mark.asyncio
async def test_chunk_for_unknown_upload(client):
    response = await patch(client, uuid.uuid4(), 0, b"HELLO")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_gap_is_reported_and_session_fails(client):
    upload = await create(client)
    await patch(client, upload["id"], 0, b"HELL")

    response = await patch(client, upload["id"], 6, b"ORLD")
    assert response.status_code == 422
    assert response.json()["code"] == "COVERAGE_ERROR"
    assert "Missing bytes [4, 6)" in response.json()["detail"]

    response = await client.get(f"/uploads/{upload['id']}")
    assert response.json()["status"] == "failed"

    response = await patch(client, upload["id"], 4, b"OW")
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_content_of_pending_upload_is_unavailable(client):
    upload = await create(client)

    response = await client.get(f"/uploads/{upload['id']}/content")

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_content_of_removed_artifact(client, staging):
    upload = await create(client)
    await patch(client, upload["id"], 0, b"HELLOWORLD")
    staging.artifact_path(upload["storage_name"], "bin").unlink()

    response = await client.get(f"/uploads/{upload['id']}/content")

    assert response.status_code == 404
    assert response.json()["detail"] == "File not found on server."


@pytest.mark.asyncio
async def test_delete_while_assembling(client, service):
    upload = await create(client)
    assert await service.sessions.begin_assembly(uuid.UUID(upload["id"]))

    response = await client.delete(f"/uploads/{upload['id']}")

    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_garbage_collection_endpoint(client):
    upload = await create(client)

    response = await client.post("/maintenance/gc", params={"max_age": 3600})
    assert response.status_code == 200
    assert response.json() == {"max_age_seconds": 3600, "collected": []}

    response = await client.post("/maintenance/gc", params={"max_age": 0})
    assert response.json()["collected"] == [upload["id"]]

    response = await client.get(f"/uploads/{upload['id']}")
    assert response.json()["status"] == "failed"


@pytest.mark.asyncio
async def test_garbage_collection_rejects_negative_age(client):
    response = await client.post("/maintenance/gc", params={"max_age": -1})

    assert response.status_code == 422
