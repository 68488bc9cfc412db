import datetime
import uuid

import sqlalchemy as sa

from uploader.db.base import Base
from uploader.utils.types import SessionStatus


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class UploadSession(Base):
    __tablename__ = "upload_sessions"

    id = sa.Column(sa.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    storage_name = sa.Column(sa.String(64), nullable=False, unique=True)
    original_name = sa.Column(sa.String(255), nullable=False)
    extension = sa.Column(sa.String(10), nullable=False)
    mime_type = sa.Column(sa.String(100), nullable=False)
    declared_size = sa.Column(sa.BigInteger, nullable=False)

    status = sa.Column(
        sa.Enum(
            SessionStatus,
            name="upload_status",
            native_enum=False,
            length=16,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=SessionStatus.PENDING,
        index=True
    )
    final_artifact_path = sa.Column(sa.Text, nullable=True)
    received_through = sa.Column(sa.BigInteger, nullable=False, default=0)

    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
