"""
Storage protocol for attachment files.

Services depend on this protocol rather than on a concrete backend.
"""
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from services.storage.local_storage import StoredFile


class IStorageService(Protocol):
    """
    Implementations:
    - LocalStorageService: filesystem storage with atomic writes
    """

    async def put(self, storage_ref: str, content: bytes, checksum: str) -> "StoredFile":
        """
        Raises:
            StorageChecksumMismatchError: content does not hash to ``checksum``
            StorageAlreadyExistsError: the reference is taken
            StorageUploadError: the write failed
        """
        ...

    def open_stream(self, storage_ref: str) -> AsyncIterator[bytes]:
        """
        Raises:
            StorageNotFoundError: nothing is stored at the reference
        """
        ...

    async def remove(self, storage_ref: str) -> bool:
        ...

    async def exists(self, storage_ref: str) -> bool:
        ...
