import datetime
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from starlette import status

from uploader.config import config
from uploader.services.auth_service import AuthService
from uploader.services.upload_service import UploadService, get_upload_service

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


class CollectedOut(BaseModel):
    max_age_seconds: float
    collected: List[uuid.UUID]


@router.post("/gc", status_code=status.HTTP_200_OK, response_model=CollectedOut)
async def collect_garbage(
        max_age: float = Query(config.SESSION_MAX_AGE, ge=0, description="Inactivity threshold in seconds."),
        service: UploadService = Depends(get_upload_service),
        _user: Optional[Dict[str, Any]] = Depends(AuthService.get_current_user),
):
    collected = await service.garbage_collect(datetime.timedelta(seconds=max_age))
    return CollectedOut(max_age_seconds=max_age, collected=collected)
