import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class UploadError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "UPLOAD_ERROR"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidMetadata(UploadError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_METADATA"


class NotFound(UploadError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class OutOfRange(UploadError):
    status_code = 416
    code = "OUT_OF_RANGE"


class InvalidState(UploadError):
    status_code = status.HTTP_409_CONFLICT
    code = "INVALID_STATE"


class Conflict(UploadError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class ResourceExhausted(UploadError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "RESOURCE_EXHAUSTED"


class CoverageError(UploadError):
    status_code = 422
    code = "COVERAGE_ERROR"


class IOFailure(UploadError):
    code = "IO_FAILURE"


async def handle_upload_error(_request: Request, exc: UploadError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(UploadError, handle_upload_error)
