import asyncio
import os
import secrets
import shutil
from pathlib import Path
from typing import AsyncIterator, List, Tuple

import aiofiles
import aiofiles.os

from uploader.config import config

SEM = asyncio.Semaphore(config.MAX_CONCURRENT_IO)

READ_BLOCK_SIZE = 1024 * 1024


async def make_directory(path: Path) -> None:
    """Create ``path``; raises ``FileExistsError`` when it is already taken."""
    async with SEM:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        await aiofiles.os.mkdir(path)


async def write_file_atomic(data: bytes, path: Path) -> None:
    """
    Write ``data`` to a sibling temp file and rename it over ``path``.

    The parent directory must already exist. An interrupted write leaves only
    the temp file behind; ``path`` is either untouched or fully replaced.
    """
    tmp = path.with_name(f".{path.name}.{secrets.token_hex(4)}.part")
    async with SEM:
        try:
            async with aiofiles.open(tmp, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(tmp, path)

        except BaseException:
            await asyncio.to_thread(tmp.unlink, missing_ok=True)
            raise


async def list_files_with_sizes(directory: Path, prefix: str) -> List[Tuple[str, int]]:
    def scan() -> List[Tuple[str, int]]:
        with os.scandir(directory) as entries:
            return [
                (entry.name, entry.stat().st_size)
                for entry in entries
                if entry.is_file() and entry.name.startswith(prefix)
            ]

    async with SEM:
        return await asyncio.to_thread(scan)


async def append_file(src: Path, out) -> int:
    """Stream ``src`` into the already opened async file ``out``."""
    written = 0
    async with aiofiles.open(src, "rb") as f:
        while block := await f.read(READ_BLOCK_SIZE):
            await out.write(block)
            written += len(block)

    return written


async def iter_file(path: Path, block_size: int = READ_BLOCK_SIZE) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while block := await f.read(block_size):
            yield block


async def move_file(src: Path, dst: Path) -> None:
    async with SEM:
        await aiofiles.os.replace(src, dst)


async def delete_file(path: Path) -> bool:
    async with SEM:
        try:
            await aiofiles.os.remove(path)
            return True
        except FileNotFoundError:
            return True
        except OSError:
            return False


async def remove_directory(path: Path) -> bool:
    """Recursively remove ``path``. Returns ``False`` when it could not be removed."""
    async with SEM:
        try:
            await asyncio.to_thread(shutil.rmtree, path)
            return True
        except FileNotFoundError:
            return True
        except OSError:
            return False
