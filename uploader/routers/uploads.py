import datetime
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from starlette import status

from uploader.config import config
from uploader.db.models.upload_session import UploadSession
from uploader.exceptions import InvalidState, OutOfRange
from uploader.services.auth_service import AuthService
from uploader.services.upload_service import UploadService, get_upload_service
from uploader.utils.types import SessionStatus

router = APIRouter(prefix="/uploads", tags=["uploads"])


class UploadCreate(BaseModel):
    file_name: str
    file_extension: str
    file_size: int
    file_mime_type: str


class UploadOut(BaseModel):
    id: uuid.UUID
    storage_name: str
    original_name: str
    extension: str
    mime_type: str
    declared_size: int
    status: SessionStatus
    received_through: int
    url: Optional[str] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @classmethod
    def from_session(cls, upload: UploadSession) -> "UploadOut":
        return cls(
            id=upload.id,
            storage_name=upload.storage_name,
            original_name=upload.original_name,
            extension=upload.extension,
            mime_type=upload.mime_type,
            declared_size=upload.declared_size,
            status=upload.status,
            received_through=upload.received_through,
            url=f"/uploads/{upload.id}/content" if upload.status == SessionStatus.COMPLETED else None,
            created_at=upload.created_at,
            updated_at=upload.updated_at,
        )


class ChunkOut(BaseModel):
    id: uuid.UUID
    offset: int
    received_through: int
    status: SessionStatus
    file_name: Optional[str] = None


@router.post("", status_code=status.HTTP_201_CREATED, response_model=UploadOut)
async def create_upload(
        body: UploadCreate,
        service: UploadService = Depends(get_upload_service),
        _user: Optional[Dict[str, Any]] = Depends(AuthService.get_current_user),
):
    upload = await service.create_session({
        "original_name": body.file_name,
        "extension": body.file_extension,
        "declared_size": body.file_size,
        "mime_type": body.file_mime_type,
    })
    return UploadOut.from_session(upload)


@router.get("", response_model=List[UploadOut])
async def list_uploads(
        service: UploadService = Depends(get_upload_service),
        _user: Optional[Dict[str, Any]] = Depends(AuthService.get_current_user),
):
    return [UploadOut.from_session(upload) for upload in await service.list_sessions()]


@router.api_route("/{upload_id}", methods=["PATCH", "PUT"], response_model=ChunkOut)
async def upload_chunk(
        upload_id: uuid.UUID,
        request: Request,
        upload_offset: int = Header(..., alias="Upload-Offset"),
        upload_length: Optional[int] = Header(None, alias="Upload-Length"),
        upload_name: Optional[str] = Header(None, alias="Upload-Name", max_length=255),
        service: UploadService = Depends(get_upload_service),
        _user: Optional[Dict[str, Any]] = Depends(AuthService.get_current_user),
):
    payload = bytearray()
    async for block in request.stream():
        payload.extend(block)
        if len(payload) > config.MAX_CHUNK_SIZE:
            raise HTTPException(
                413,
                f"Chunk exceeds the limit of {config.MAX_CHUNK_SIZE} bytes."
            )

    if upload_length is not None:
        upload = await service.sessions.require(upload_id)
        if upload_length != upload.declared_size:
            raise OutOfRange(
                f"Upload-Length {upload_length} does not match the declared size of {upload.declared_size} bytes."
            )

    received_through = await service.ingest_chunk(upload_id, upload_offset, len(payload), bytes(payload))
    upload = await service.sessions.require(upload_id)

    return ChunkOut(
        id=upload_id,
        offset=upload_offset,
        received_through=received_through,
        status=upload.status,
        file_name=upload_name,
    )


@router.head("/{upload_id}")
async def chunk_status(
        upload_id: uuid.UUID,
        service: UploadService = Depends(get_upload_service),
        _user: Optional[Dict[str, Any]] = Depends(AuthService.get_current_user),
):
    offset = await service.resume_offset(upload_id)
    return Response(status_code=status.HTTP_200_OK, headers={"Upload-Offset": str(offset)})


@router.get("/{upload_id}", response_model=UploadOut)
async def view_upload(
        upload_id: uuid.UUID,
        service: UploadService = Depends(get_upload_service),
        _user: Optional[Dict[str, Any]] = Depends(AuthService.get_current_user),
):
    retrieved = await service.get_session(upload_id)
    return UploadOut.from_session(retrieved.session)


@router.get("/{upload_id}/content")
async def load_upload(
        upload_id: uuid.UUID,
        service: UploadService = Depends(get_upload_service),
        _user: Optional[Dict[str, Any]] = Depends(AuthService.get_current_user),
):
    retrieved = await service.get_session(upload_id)
    upload = retrieved.session
    if retrieved.content is None:
        raise InvalidState(f"Upload is {upload.status}, no content is available yet.")

    return StreamingResponse(
        retrieved.content,
        media_type=upload.mime_type,
        headers={
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(upload.original_name)}",
            "Content-Length": str(upload.declared_size),
        }
    )


@router.delete("/{upload_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_upload(
        upload_id: uuid.UUID,
        service: UploadService = Depends(get_upload_service),
        _user: Optional[Dict[str, Any]] = Depends(AuthService.get_current_user),
):
    await service.delete_session(upload_id)
    return None
