import datetime
import uuid
from typing import Iterable, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from uploader.db.models.upload_session import UploadSession, utcnow
from uploader.exceptions import InvalidState
from uploader.utils.types import SessionStatus, can_transition


class UploadSessionStore:
    """
    Persistence boundary for upload sessions.

    Every call runs in its own short transaction. Status changes go through
    ``compare_and_swap_status`` only, which is the one concurrency primitive
    the upload core relies on.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(
            self,
            storage_name: str,
            original_name: str,
            extension: str,
            mime_type: str,
            declared_size: int
    ) -> UploadSession:
        upload = UploadSession(
            id=uuid.uuid4(),
            storage_name=storage_name,
            original_name=original_name,
            extension=extension,
            mime_type=mime_type,
            declared_size=declared_size,
            status=SessionStatus.PENDING,
            received_through=0
        )

        async with self._session_factory() as db:
            db.add(upload)
            await db.commit()

        return upload

    async def get(self, session_id: uuid.UUID) -> Optional[UploadSession]:
        async with self._session_factory() as db:
            return await db.get(UploadSession, session_id)

    async def list_all(self) -> List[UploadSession]:
        async with self._session_factory() as db:
            result = await db.scalars(
                sa.select(UploadSession).order_by(UploadSession.created_at.desc())
            )
            return list(result)

    async def compare_and_swap_status(
            self,
            session_id: uuid.UUID,
            expected: SessionStatus,
            next_: SessionStatus
    ) -> bool:
        if not can_transition(expected, next_):
            raise InvalidState(f"Transition {expected} -> {next_} is not allowed.")

        async with self._session_factory() as db:
            result = await db.execute(
                sa.update(UploadSession)
                .where(UploadSession.id == session_id, UploadSession.status == expected)
                .values(status=next_, updated_at=utcnow())
            )
            await db.commit()

        return result.rowcount == 1

    async def set_final_artifact(self, session_id: uuid.UUID, path: Optional[str]) -> None:
        async with self._session_factory() as db:
            await db.execute(
                sa.update(UploadSession)
                .where(UploadSession.id == session_id)
                .values(final_artifact_path=path, updated_at=utcnow())
            )
            await db.commit()

    async def record_chunk(self, session_id: uuid.UUID, received_through: int) -> None:
        async with self._session_factory() as db:
            await db.execute(
                sa.update(UploadSession)
                .where(UploadSession.id == session_id)
                .values(
                    received_through=sa.case(
                        (UploadSession.received_through < received_through, received_through),
                        else_=UploadSession.received_through
                    ),
                    updated_at=utcnow()
                )
            )
            await db.commit()

    async def list_stale(
            self,
            statuses: Iterable[SessionStatus],
            inactive_since: datetime.datetime
    ) -> List[UploadSession]:
        async with self._session_factory() as db:
            result = await db.scalars(
                sa.select(UploadSession).where(
                    UploadSession.status.in_(list(statuses)),
                    UploadSession.updated_at < inactive_since
                )
            )
            return list(result)

    async def delete(self, session_id: uuid.UUID, unless: Optional[SessionStatus] = None) -> bool:
        """Delete the record, skipping it while its status equals ``unless``."""
        query = sa.delete(UploadSession).where(UploadSession.id == session_id)
        if unless is not None:
            query = query.where(UploadSession.status != unless)

        async with self._session_factory() as db:
            result = await db.execute(query)
            await db.commit()

        return result.rowcount == 1
