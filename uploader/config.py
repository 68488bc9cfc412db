from pathlib import Path

import humanfriendly
from pydantic import BaseModel
from typing import List, Optional
from dotenv import load_dotenv
import os

load_dotenv()


class Config(BaseModel):
    # Database
    DATABASE_URL: str

    # Uploads
    STAGING_PATH: Path
    STORAGE_PATH: Path
    ALLOWED_MIME_TYPES: List[str]
    MAX_FILE_SIZE: int
    MAX_CHUNK_SIZE: int
    RESERVE_ATTEMPTS: int
    SESSION_MAX_AGE: float

    # Identity service
    AUTH_URL: Optional[str]
    AUTH_CACHE_TTL: float
    AUTH_CACHE_SIZE: int

    # FastAPI
    FASTAPI_HOST: str
    FASTAPI_PORT: int

    # Async I/O
    MAX_CONCURRENT_IO: int

    # Logging
    LOG_LEVEL: str


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


config = Config(
    DATABASE_URL=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./uploads.db"),

    STAGING_PATH=Path(os.getenv("STAGING_PATH", "storage/tempdir/chunk")),
    STORAGE_PATH=Path(os.getenv("STORAGE_PATH", "storage/uploads")),
    ALLOWED_MIME_TYPES=_split(os.getenv(
        "ALLOWED_MIME_TYPES",
        "image/jpeg,image/png,image/gif,application/pdf,application/octet-stream"
    )),
    MAX_FILE_SIZE=humanfriendly.parse_size(os.getenv("MAX_FILE_SIZE", "10GiB"), binary=True),
    MAX_CHUNK_SIZE=humanfriendly.parse_size(os.getenv("MAX_CHUNK_SIZE", "10MiB"), binary=True),
    RESERVE_ATTEMPTS=int(os.getenv("RESERVE_ATTEMPTS", "5")),
    SESSION_MAX_AGE=humanfriendly.parse_timespan(os.getenv("SESSION_MAX_AGE", "24h")),

    AUTH_URL=os.getenv("AUTH_URL") or None,
    AUTH_CACHE_TTL=humanfriendly.parse_timespan(os.getenv("AUTH_CACHE_TTL", "5s")),
    AUTH_CACHE_SIZE=int(os.getenv("AUTH_CACHE_SIZE", "1024")),

    FASTAPI_HOST=os.getenv("FASTAPI_HOST", "0.0.0.0"),
    FASTAPI_PORT=int(os.getenv("FASTAPI_PORT", "8000")),

    MAX_CONCURRENT_IO=int(os.getenv("MAX_CONCURRENT_IO", "32")),

    LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
)

__all__ = ["config"]
