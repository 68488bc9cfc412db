import logging
import uuid

from uploader.db.upload_session import UploadSessionStore
from uploader.exceptions import InvalidState, IOFailure, NotFound, OutOfRange
from uploader.services.assembly_service import AssemblyService
from uploader.services.session_service import SessionService
from uploader.services.staging_service import StagingArea, tiles
from uploader.utils.types import SessionStatus

logger = logging.getLogger(__name__)


class ChunkService:
    def __init__(
            self,
            store: UploadSessionStore,
            staging: StagingArea,
            sessions: SessionService,
            assembler: AssemblyService
    ):
        self.store = store
        self.staging = staging
        self.sessions = sessions
        self.assembler = assembler

    async def ingest(self, session_id: uuid.UUID, offset: int, length: int, payload: bytes) -> int:
        """
        Stage one chunk and start reassembly once the upload looks finished.

        Returns ``offset + length``. Writes to an offset that was already
        received replace the earlier chunk. Reassembly starts when the staged
        chunks tile the whole file, or when the range reaching the end arrives
        while the first range is staged; in the latter case any hole left is
        reported as a ``CoverageError``. Only the caller that moves the session
        into ``assembling`` runs the reassembly.
        """
        upload = await self.sessions.require(session_id)
        if upload.status != SessionStatus.PENDING:
            raise InvalidState(f"Upload is {upload.status}, chunks are no longer accepted.")

        if offset < 0:
            raise OutOfRange("Offset must not be negative.")
        if length != len(payload):
            raise OutOfRange(f"Declared chunk length {length} does not match the {len(payload)} bytes received.")
        if length == 0:
            raise OutOfRange("Chunk must not be empty.")
        if offset + length > upload.declared_size:
            raise OutOfRange(
                f"Chunk [{offset}, {offset + length}) exceeds the declared size of {upload.declared_size} bytes."
            )

        try:
            await self.staging.write_chunk(upload.storage_name, offset, payload)

        except FileNotFoundError:
            # Staging directory is gone: the session moved on after this request was admitted.
            current = await self.sessions.require(session_id)
            if current.status == SessionStatus.COMPLETED:
                return offset + length
            raise InvalidState(f"Upload is {current.status}, chunks are no longer accepted.")

        except OSError as e:
            raise IOFailure("Could not store chunk.") from e

        end = offset + length
        await self.store.record_chunk(session_id, end)
        logger.debug("upload %s: stored chunk [%d, %d)", session_id, offset, end)

        try:
            chunks = await self.staging.list_chunks(upload.storage_name)
        except FileNotFoundError:
            return end

        covered = tiles(chunks, upload.declared_size)
        closing = end >= upload.declared_size and any(c.offset == 0 for c in chunks)
        if not (covered or closing):
            return end

        if await self.sessions.begin_assembly(session_id):
            await self.assembler.assemble(upload)
        else:
            logger.debug("upload %s: reassembly already claimed by another request", session_id)

        return end
