import datetime
import logging
import secrets
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional

from uploader.config import config
from uploader.db.models.upload_session import UploadSession
from uploader.db.upload_session import UploadSessionStore
from uploader.exceptions import InvalidMetadata, ResourceExhausted, NotFound, Conflict, IOFailure
from uploader.services.staging_service import StagingArea, contiguous_end
from uploader.services.validation_service import UploadMetadata
from uploader.utils.files import delete_file, iter_file
from uploader.utils.retry import retry
from uploader.utils.types import SessionStatus

logger = logging.getLogger(__name__)

COLLECTABLE = (SessionStatus.PENDING, SessionStatus.ASSEMBLING)


def generate_storage_name() -> str:
    return secrets.token_hex(10)


@dataclass
class RetrievedUpload:
    session: UploadSession
    content: Optional[AsyncIterator[bytes]] = None


class SessionService:
    def __init__(
            self,
            store: UploadSessionStore,
            staging: StagingArea,
            reserve_attempts: Optional[int] = None,
            name_factory: Callable[[], str] = generate_storage_name
    ):
        self.store = store
        self.staging = staging
        self.reserve_attempts = reserve_attempts or config.RESERVE_ATTEMPTS
        self.name_factory = name_factory

    async def create(self, metadata: UploadMetadata) -> UploadSession:
        extension = metadata.extension.strip().lstrip(".")
        if not extension:
            raise InvalidMetadata("File extension must not be empty.")
        if metadata.declared_size <= 0:
            raise InvalidMetadata("Declared size must be positive.")

        async def reserve() -> str:
            name = self.name_factory()
            await self.staging.reserve(name, extension)
            return name

        try:
            storage_name = await retry(
                reserve,
                attempts=self.reserve_attempts,
                retry_if=lambda e: isinstance(e, FileExistsError)
            )
        except FileExistsError:
            logger.warning("storage name collided %d times in a row", self.reserve_attempts)
            raise ResourceExhausted("Could not allocate a unique storage name.")
        except OSError as e:
            raise IOFailure("Could not create the staging directory.") from e

        try:
            upload = await self.store.create(
                storage_name=storage_name,
                original_name=metadata.original_name,
                extension=extension,
                mime_type=metadata.mime_type,
                declared_size=metadata.declared_size
            )
        except Exception:
            await self.staging.release(storage_name)
            raise

        logger.info("created upload %s (%s, %d bytes)", upload.id, storage_name, upload.declared_size)
        return upload

    async def begin_assembly(self, session_id: uuid.UUID) -> bool:
        return await self.store.compare_and_swap_status(
            session_id, SessionStatus.PENDING, SessionStatus.ASSEMBLING
        )

    async def require(self, session_id: uuid.UUID) -> UploadSession:
        upload = await self.store.get(session_id)
        if upload is None:
            raise NotFound("Upload session not found.")

        return upload

    async def get(self, session_id: uuid.UUID) -> RetrievedUpload:
        upload = await self.require(session_id)
        if upload.status != SessionStatus.COMPLETED or not upload.final_artifact_path:
            return RetrievedUpload(session=upload)

        path = Path(upload.final_artifact_path)
        if not path.is_file():
            raise NotFound("File not found on server.")

        return RetrievedUpload(session=upload, content=iter_file(path))

    async def list(self) -> List[UploadSession]:
        return await self.store.list_all()

    async def resume_offset(self, session_id: uuid.UUID) -> int:
        upload = await self.require(session_id)
        if upload.status == SessionStatus.COMPLETED:
            return upload.declared_size

        try:
            chunks = await self.staging.list_chunks(upload.storage_name)
        except FileNotFoundError:
            return 0

        return contiguous_end(chunks)

    async def delete(self, session_id: uuid.UUID) -> None:
        upload = await self.require(session_id)
        if upload.status == SessionStatus.ASSEMBLING:
            raise Conflict("Upload is being assembled.")

        if not await self.store.delete(session_id, unless=SessionStatus.ASSEMBLING):
            if await self.store.get(session_id) is None:
                raise NotFound("Upload session not found.")
            raise Conflict("Upload is being assembled.")

        # The snapshot may predate completion.
        artifact = self.staging.artifact_path(upload.storage_name, upload.extension)
        if not await delete_file(artifact):
            logger.warning("could not delete artifact %s", artifact)
        await self.staging.release(upload.storage_name)

        logger.info("deleted upload %s", session_id)

    async def garbage_collect(
            self,
            max_age: datetime.timedelta,
            now: Optional[datetime.datetime] = None
    ) -> List[uuid.UUID]:
        cutoff = (now or datetime.datetime.now(datetime.UTC)) - max_age

        collected: List[uuid.UUID] = []
        for upload in await self.store.list_stale(COLLECTABLE, cutoff):
            if not await self.store.compare_and_swap_status(upload.id, upload.status, SessionStatus.FAILED):
                continue

            await self.staging.release(upload.storage_name)
            collected.append(upload.id)
            logger.info("collected abandoned upload %s (was %s)", upload.id, upload.status)

        return collected
