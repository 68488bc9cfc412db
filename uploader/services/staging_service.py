import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from uploader.config import config
from uploader.utils.files import (
    make_directory, write_file_atomic, list_files_with_sizes, remove_directory
)

logger = logging.getLogger(__name__)

CHUNK_PREFIX = "chunk_"


@dataclass(frozen=True)
class StagedChunk:
    offset: int
    length: int
    path: Path

    @property
    def end(self) -> int:
        return self.offset + self.length


def contiguous_end(chunks: Sequence[StagedChunk]) -> int:
    """End of the gap-free run of chunks starting at byte 0."""
    end = 0
    for chunk in sorted(chunks, key=lambda c: c.offset):
        if chunk.offset != end:
            break
        end = chunk.end

    return end


def tiles(chunks: Sequence[StagedChunk], size: int) -> bool:
    """True when the chunks cover ``[0, size)`` exactly once."""
    return contiguous_end(chunks) == size and sum(c.length for c in chunks) == size


class StagingArea:
    """
    Filesystem layout for in-flight and finished uploads.

    Chunks live in ``<staging_root>/<storage_name>/chunk_<offset>``; finished
    artifacts in ``<storage_root>/<storage_name>.<extension>``.
    """

    def __init__(self, staging_root: Optional[Path] = None, storage_root: Optional[Path] = None):
        self.staging_root = Path(staging_root or config.STAGING_PATH)
        self.storage_root = Path(storage_root or config.STORAGE_PATH)

    def chunk_dir(self, storage_name: str) -> Path:
        return self.staging_root / storage_name

    def chunk_path(self, storage_name: str, offset: int) -> Path:
        return self.chunk_dir(storage_name) / f"{CHUNK_PREFIX}{offset}"

    def artifact_path(self, storage_name: str, extension: str) -> Path:
        return self.storage_root / f"{storage_name}.{extension}"

    async def reserve(self, storage_name: str, extension: str) -> Path:
        if self.artifact_path(storage_name, extension).exists():
            raise FileExistsError(f"Artifact name already taken: '{storage_name}'")

        path = self.chunk_dir(storage_name)
        await make_directory(path)
        return path

    async def write_chunk(self, storage_name: str, offset: int, data: bytes) -> Path:
        path = self.chunk_path(storage_name, offset)
        await write_file_atomic(data, path)
        return path

    async def list_chunks(self, storage_name: str) -> List[StagedChunk]:
        directory = self.chunk_dir(storage_name)
        chunks: List[StagedChunk] = []
        for name, size in await list_files_with_sizes(directory, CHUNK_PREFIX):
            suffix = name[len(CHUNK_PREFIX):]
            if not suffix.isdigit():
                logger.warning("ignoring unexpected staging file %s", directory / name)
                continue

            chunks.append(StagedChunk(offset=int(suffix), length=size, path=directory / name))

        chunks.sort(key=lambda c: c.offset)
        return chunks

    async def release(self, storage_name: str) -> bool:
        removed = await remove_directory(self.chunk_dir(storage_name))
        if not removed:
            logger.warning("could not remove staging directory for %s", storage_name)

        return removed
