"""
Filesystem backend for attachment files.

Files live under ``{storage_root}/organizations/{org}/{entity_type}/{entity_id}/{attachment_id}/{name}``.
Writes go to a hidden temp file next to the target and are renamed into
place, so a reader never observes a half-written attachment.
"""

import hashlib
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os

from core.exceptions import (
    StorageAlreadyExistsError,
    StorageChecksumMismatchError,
    StorageDeleteError,
    StorageDownloadError,
    StorageNotFoundError,
    StoragePermissionError,
    StorageUploadError,
)
from core.logging import get_logger
from utils.generators import generate_cuid

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredFile:
    storage_ref: str
    checksum: str
    size_bytes: int


class LocalStorageService:
    """Attachment storage rooted at a single directory"""

    CHUNK_SIZE = 64 * 1024

    def __init__(self, storage_root: str) -> None:
        self.storage_root = Path(storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True, mode=0o750)

    def resolve(self, storage_ref: str) -> Path:
        """
        Map a storage reference to a path inside the root.

        Raises:
            StoragePermissionError: the reference escapes the storage root
        """
        path = (self.storage_root / storage_ref).resolve()
        if not path.is_relative_to(self.storage_root) or path == self.storage_root:
            raise StoragePermissionError(storage_ref, "path_validation")
        return path

    async def put(self, storage_ref: str, content: bytes, checksum: str) -> StoredFile:
        """
        Write ``content`` at ``storage_ref``.

        Raises:
            StorageChecksumMismatchError: content does not hash to ``checksum``
            StorageAlreadyExistsError: something is already stored at the reference
            StorageUploadError: the filesystem write failed
        """
        target = self.resolve(storage_ref)

        actual = hashlib.sha256(content).hexdigest()
        if actual != checksum:
            raise StorageChecksumMismatchError(storage_ref, checksum, actual)
        if await aiofiles.os.path.exists(target):
            raise StorageAlreadyExistsError(storage_ref)

        temp_path = target.with_name(f".tmp_{generate_cuid()}")
        try:
            await aiofiles.os.makedirs(target.parent, mode=0o750, exist_ok=True)
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(content)
            temp_path.chmod(0o640)
            await aiofiles.os.rename(temp_path, target)
        except OSError as e:
            raise StorageUploadError(storage_ref, str(e)) from e
        finally:
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.remove(temp_path)

        logger.debug("Stored %s (%d bytes)", storage_ref, len(content))
        return StoredFile(storage_ref=storage_ref, checksum=actual, size_bytes=len(content))

    async def open_stream(self, storage_ref: str) -> AsyncIterator[bytes]:
        """
        Yield the file in chunks.

        Raises:
            StorageNotFoundError: nothing is stored at the reference
            StorageDownloadError: the file could not be read
        """
        path = self.resolve(storage_ref)
        if not await aiofiles.os.path.isfile(path):
            raise StorageNotFoundError(storage_ref)

        try:
            async with aiofiles.open(path, "rb") as f:
                while chunk := await f.read(self.CHUNK_SIZE):
                    yield chunk
        except OSError as e:
            raise StorageDownloadError(storage_ref, str(e)) from e

    async def remove(self, storage_ref: str) -> bool:
        """
        Delete a stored file and any directories it leaves empty.

        Returns False when nothing was stored at the reference.
        """
        path = self.resolve(storage_ref)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageDeleteError(storage_ref, str(e)) from e

        await self._prune_empty_parents(path.parent)
        return True

    async def exists(self, storage_ref: str) -> bool:
        return await aiofiles.os.path.isfile(self.resolve(storage_ref))

    async def _prune_empty_parents(self, directory: Path) -> None:
        while directory != self.storage_root and directory.is_relative_to(self.storage_root):
            try:
                if await aiofiles.os.listdir(directory):
                    return
                await aiofiles.os.rmdir(directory)
            except OSError:
                # Another upload may have claimed the directory meanwhile
                return
            directory = directory.parent
