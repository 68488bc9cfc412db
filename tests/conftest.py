"""Test configuration and fixtures for the upload service."""

import os
import tempfile

_TMP_ROOT = tempfile.mkdtemp(prefix="uploader-tests-")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_ROOT}/default.db"
os.environ["STAGING_PATH"] = os.path.join(_TMP_ROOT, "staging")
os.environ["STORAGE_PATH"] = os.path.join(_TMP_ROOT, "storage")
os.environ["ALLOWED_MIME_TYPES"] = "application/octet-stream,text/plain,image/png"
os.environ["MAX_FILE_SIZE"] = "1MiB"
os.environ["MAX_CHUNK_SIZE"] = "64KiB"
os.environ["AUTH_URL"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import uploader.db  # noqa: F401
from uploader.db.base import Base
from uploader.services.staging_service import StagingArea
from uploader.services.upload_service import UploadService, get_upload_service
from uploader.services.validation_service import UploadMetadata


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'uploads.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)

    await engine.dispose()


@pytest.fixture
def staging(tmp_path):
    return StagingArea(tmp_path / "staging", tmp_path / "storage")


@pytest.fixture
def service(session_factory, staging):
    return UploadService(session_factory=session_factory, staging=staging)


@pytest.fixture
def metadata():
    return UploadMetadata(
        original_name="greeting.bin",
        extension="bin",
        declared_size=10,
        mime_type="application/octet-stream",
    )


@pytest.fixture
def assembly_spy(service):
    """Records every reassembly the chunk ingestor starts."""
    calls = []
    original = service.assembler.assemble

    async def spy(upload):
        calls.append(upload.id)
        return await original(upload)

    service.assembler.assemble = spy
    return calls


@pytest_asyncio.fixture
async def client(service):
    """HTTP client bound to the app, wired to the per-test service."""
    from main import app

    app.dependency_overrides[get_upload_service] = lambda: service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def read_artifact(service):
    """Reads a completed upload's artifact through the retrieval path."""
    async def read(session_id) -> bytes:
        retrieved = await service.get_session(session_id)
        assert retrieved.content is not None
        return b"".join([block async for block in retrieved.content])

    return read
