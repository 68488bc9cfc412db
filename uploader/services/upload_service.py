import datetime
import uuid
from typing import Any, Callable, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from uploader.db.models.upload_session import UploadSession
from uploader.db.upload_session import UploadSessionStore
from uploader.services.assembly_service import AssemblyService
from uploader.services.chunk_service import ChunkService
from uploader.services.session_service import SessionService, RetrievedUpload, generate_storage_name
from uploader.services.singleton_base_service import SingletonBaseService
from uploader.services.staging_service import StagingArea
from uploader.services.validation_service import ValidationService


class UploadService(SingletonBaseService):
    """Entry point used by the HTTP layer and maintenance scripts."""

    def __init__(
            self,
            session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
            staging: Optional[StagingArea] = None,
            reserve_attempts: Optional[int] = None,
            name_factory: Callable[[], str] = generate_storage_name
    ):
        if session_factory is None:
            from uploader.db.session import SessionLocal
            session_factory = SessionLocal

        self.store = UploadSessionStore(session_factory)
        self.staging = staging or StagingArea()
        self.sessions = SessionService(self.store, self.staging, reserve_attempts, name_factory)
        self.assembler = AssemblyService(self.store, self.staging)
        self.chunks = ChunkService(self.store, self.staging, self.sessions, self.assembler)

    async def create_session(self, candidate: Mapping[str, Any]) -> UploadSession:
        metadata = ValidationService.validate_metadata(candidate)
        return await self.sessions.create(metadata)

    async def ingest_chunk(self, session_id: uuid.UUID, offset: int, length: int, payload: bytes) -> int:
        return await self.chunks.ingest(session_id, offset, length, payload)

    async def get_session(self, session_id: uuid.UUID) -> RetrievedUpload:
        return await self.sessions.get(session_id)

    async def list_sessions(self) -> List[UploadSession]:
        return await self.sessions.list()

    async def delete_session(self, session_id: uuid.UUID) -> None:
        await self.sessions.delete(session_id)

    async def resume_offset(self, session_id: uuid.UUID) -> int:
        return await self.sessions.resume_offset(session_id)

    async def garbage_collect(self, max_age: datetime.timedelta) -> List[uuid.UUID]:
        return await self.sessions.garbage_collect(max_age)


def get_upload_service() -> UploadService:
    return UploadService.get_instance()
