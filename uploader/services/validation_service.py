from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from uploader.config import config
from uploader.exceptions import InvalidMetadata


class UploadMetadata(BaseModel):
    original_name: str = Field(min_length=1, max_length=255)
    extension: str = Field(pattern=r"^[A-Za-z0-9]{1,10}$")
    declared_size: int = Field(gt=0)
    mime_type: str = Field(min_length=1, max_length=100)

    @field_validator("original_name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("extension", mode="before")
    @classmethod
    def normalize_extension(cls, value: Any) -> Any:
        return value.strip().lstrip(".").lower() if isinstance(value, str) else value


class ValidationService:
    @staticmethod
    def validate_metadata(candidate: Mapping[str, Any]) -> UploadMetadata:
        try:
            metadata = UploadMetadata.model_validate(dict(candidate))
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise InvalidMetadata(problems)

        if metadata.declared_size > config.MAX_FILE_SIZE:
            raise InvalidMetadata(f"File size exceeds the limit of {config.MAX_FILE_SIZE} bytes.")

        if config.ALLOWED_MIME_TYPES and metadata.mime_type not in config.ALLOWED_MIME_TYPES:
            raise InvalidMetadata(f"Unsupported file type: {metadata.mime_type}.")

        return metadata
