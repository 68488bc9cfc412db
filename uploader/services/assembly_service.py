import logging
import secrets
from pathlib import Path
from typing import List, Sequence

import aiofiles
import aiofiles.os

from uploader.db.models.upload_session import UploadSession
from uploader.db.upload_session import UploadSessionStore
from uploader.exceptions import CoverageError, IOFailure, InvalidState
from uploader.services.staging_service import StagingArea, StagedChunk
from uploader.utils.files import append_file, delete_file, move_file
from uploader.utils.types import SessionStatus

logger = logging.getLogger(__name__)


def verify_coverage(chunks: Sequence[StagedChunk], declared_size: int) -> None:
    end = 0
    for chunk in chunks:
        if chunk.offset > end:
            raise CoverageError(f"Missing bytes [{end}, {chunk.offset}).")
        if chunk.offset < end:
            raise CoverageError(f"Chunk at offset {chunk.offset} overlaps bytes up to {end}.")
        end = chunk.end

    if end != declared_size:
        raise CoverageError(f"Chunks cover {end} of {declared_size} bytes.")


class AssemblyService:
    """Turns the staged chunks of an ``assembling`` session into its final artifact."""

    def __init__(self, store: UploadSessionStore, staging: StagingArea):
        self.store = store
        self.staging = staging

    async def assemble(self, upload: UploadSession) -> Path:
        logger.info("assembling upload %s (%d bytes)", upload.id, upload.declared_size)

        try:
            chunks = await self.staging.list_chunks(upload.storage_name)
            verify_coverage(chunks, upload.declared_size)

        except CoverageError as e:
            await self._fail(upload, f"coverage check failed: {e.detail}")
            raise

        except OSError as e:
            await self._fail(upload, f"could not list staged chunks: {e}")
            raise IOFailure("Could not read staged chunks.") from e

        final_path = self.staging.artifact_path(upload.storage_name, upload.extension)
        tmp_path = final_path.with_name(f".{final_path.name}.{secrets.token_hex(4)}.part")

        try:
            await self._concatenate(chunks, tmp_path)
            await move_file(tmp_path, final_path)

        except OSError as e:
            await delete_file(tmp_path)
            await self._fail(upload, f"could not write artifact: {e}")
            raise IOFailure("Could not write the final artifact.") from e

        await self.store.set_final_artifact(upload.id, str(final_path))
        completed = await self.store.compare_and_swap_status(
            upload.id, SessionStatus.ASSEMBLING, SessionStatus.COMPLETED
        )
        if not completed:
            # Failed by garbage collection while streaming.
            await delete_file(final_path)
            await self.store.set_final_artifact(upload.id, None)
            raise InvalidState("Upload left the assembling state before it finished.")

        await self.staging.release(upload.storage_name)

        logger.info("upload %s completed -> %s", upload.id, final_path)
        return final_path

    async def _concatenate(self, chunks: List[StagedChunk], destination: Path) -> None:
        await aiofiles.os.makedirs(destination.parent, exist_ok=True)

        async with aiofiles.open(destination, "xb") as out:
            for chunk in chunks:
                written = await append_file(chunk.path, out)
                if written != chunk.length:
                    raise OSError(f"Chunk {chunk.path.name} changed size while assembling.")

                await out.flush()
                if not await delete_file(chunk.path):
                    logger.warning("could not delete consumed chunk %s", chunk.path)

    async def _fail(self, upload: UploadSession, reason: str) -> None:
        logger.error("upload %s failed: %s", upload.id, reason)
        failed = await self.store.compare_and_swap_status(
            upload.id, SessionStatus.ASSEMBLING, SessionStatus.FAILED
        )
        if not failed:
            logger.warning("upload %s was no longer assembling when marked failed", upload.id)
